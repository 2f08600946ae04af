from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TrustScoreRequest(BaseModel):
    item_name: str = Field(..., min_length=1, max_length=200)
    content_id: str = Field(..., min_length=10, max_length=255)
    file_format: Optional[str] = Field(None, max_length=100)


class TrustBreakdown(BaseModel):
    clean_scan: int
    popular_format: int
    integrity_verified: int


class TrustScoreResponse(BaseModel):
    item_id: int
    total_score: int
    breakdown: TrustBreakdown
    content_hash: str
    status: str  # verified | pending | failed
    label: str  # Excellent | Good | Fair | Low
    computed_at: datetime
