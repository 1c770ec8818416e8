"""Anomaly finding data models"""

from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field
from mpesa_engine.constants import RiskLevel
from .transaction import Transaction


class AnomalyFinding(BaseModel):
    """Anomaly checks that fired on one transaction"""

    transaction_id: str = Field(..., description="Flagged transaction code")
    transaction: Transaction = Field(..., description="Flagged transaction")
    anomaly_types: List[str] = Field(..., min_length=1, description="Names of checks that fired")
    risk_score: float = Field(..., ge=0, le=1, description="Aggregate risk (0-1)")
    requires_immediate_attention: bool = Field(..., description="A critical check fired")
    recommendation: str = Field(..., description="Recommended action")


class AnomalyReport(BaseModel):
    """Batch-level anomaly summary"""

    anomalies_detected: int = Field(..., ge=0)
    high_risk_count: int = Field(..., ge=0, description="Findings with risk above 0.8")
    immediate_attention_count: int = Field(..., ge=0)
    risk_level: RiskLevel = Field(..., description="Overall batch risk")
    anomalies: List[AnomalyFinding] = Field(default_factory=list, description="Findings, riskiest first")
    business_id: Optional[str] = Field(None)
    analysis_timestamp: datetime = Field(default_factory=datetime.now)

    class Config:
        json_schema_extra = {
            "example": {
                "anomalies_detected": 2,
                "high_risk_count": 1,
                "immediate_attention_count": 2,
                "risk_level": "medium",
                "anomalies": [],
                "business_id": "biz_001",
                "analysis_timestamp": "2025-01-15T18:00:00"
            }
        }
