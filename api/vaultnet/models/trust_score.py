"""Cached trust score per item.

Written once by the first caller that computes it; later callers read the
stored row. There is no TTL and no recomputation path.
"""

from datetime import datetime

from sqlalchemy import BigInteger, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class TrustScore(Base):
    __tablename__ = "trust_scores"
    __table_args__ = (
        CheckConstraint(
            "total_score = clean_scan + popular_format + integrity_verified",
            name="ck_trust_scores_total_is_sum",
        ),
        CheckConstraint(
            "total_score >= 0 AND total_score <= 100",
            name="ck_trust_scores_total_range",
        ),
    )

    item_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    total_score: Mapped[int] = mapped_column(Integer, nullable=False)
    clean_scan: Mapped[int] = mapped_column(Integer, nullable=False)
    popular_format: Mapped[int] = mapped_column(Integer, nullable=False)
    integrity_verified: Mapped[int] = mapped_column(Integer, nullable=False)
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
