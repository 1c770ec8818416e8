"""Category taxonomy and learned-association models"""

from typing import List
from pydantic import BaseModel, Field


class CategoryRule(BaseModel):
    """Keyword rule for one sub-category"""

    name: str = Field(..., description="Category name, e.g. expense_utilities_electricity")
    domain: str = Field(..., description="income or expense")
    keywords: List[str] = Field(..., min_length=1, description="Lowercase keywords")
    vat_applicable: bool = Field(default=True)
    confidence: float = Field(default=0.85, ge=0, le=1)

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        return any(keyword in lowered for keyword in self.keywords)


class LearnedCategory(BaseModel):
    """Counterparty association held by the learned category store"""

    category: str = Field(..., description="Category name")
    confidence: float = Field(..., ge=0, le=1)
