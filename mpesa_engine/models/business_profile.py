"""Business profile data model"""

import datetime as dt
from decimal import Decimal
from typing import List, Optional, Tuple
from pydantic import BaseModel, Field, field_validator
from mpesa_engine.constants import Network, DEFAULT_PEAK_HOURS, DEFAULT_AVERAGE_TRANSACTION_SIZE


def parse_hour_range(value: str) -> Tuple[dt.time, dt.time]:
    """Parse 'HH:MM-HH:MM' into a (start, end) pair"""
    start, end = (part.strip() for part in value.split('-', 1))
    return dt.time.fromisoformat(start.zfill(5)), dt.time.fromisoformat(end.zfill(5))


class BusinessProfile(BaseModel):
    """Baseline used by anomaly checks"""

    business_id: Optional[str] = Field(None, description="Business account ID")
    name: str = Field(default="Unknown Business", description="Business name")
    average_transaction_size: Decimal = Field(
        default=DEFAULT_AVERAGE_TRANSACTION_SIZE, gt=0, description="Average transaction amount in KES"
    )
    peak_hours: List[str] = Field(
        default_factory=lambda: list(DEFAULT_PEAK_HOURS),
        description="Declared operating hour ranges, 'HH:MM-HH:MM'"
    )
    home_network: Network = Field(default=Network.MPESA, description="Wallet network the account lives on")

    @field_validator('peak_hours')
    @classmethod
    def _check_peak_hours(cls, value: List[str]) -> List[str]:
        for item in value:
            try:
                parse_hour_range(item)
            except ValueError:
                raise ValueError(f"Invalid peak hour range: {item!r}")
        return value

    def is_within_peak_hours(self, moment: dt.time) -> bool:
        """True when moment falls inside any declared range (inclusive; ranges may wrap midnight)"""
        for item in self.peak_hours:
            start, end = parse_hour_range(item)
            if start <= end:
                if start <= moment <= end:
                    return True
            elif moment >= start or moment <= end:
                return True
        return False

    class Config:
        json_schema_extra = {
            "example": {
                "business_id": "biz_001",
                "name": "Mama Mboga Groceries",
                "average_transaction_size": "2000",
                "peak_hours": ["07:00-12:00", "15:00-20:00"],
                "home_network": "mpesa"
            }
        }
