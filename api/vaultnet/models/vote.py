import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    BigInteger,
    Boolean,
    CheckConstraint,
    DateTime,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

USER_VOTE_UNIQUE_CONSTRAINT = "uq_user_votes_user_id_item_id"


class VoteType(str, enum.Enum):
    up = "up"
    down = "down"


class VoteAggregate(Base):
    """Per-item tally. Created lazily on the first vote, never deleted."""

    __tablename__ = "vote_aggregates"
    __table_args__ = (
        CheckConstraint("upvotes >= 0", name="ck_vote_aggregates_upvotes_non_negative"),
        CheckConstraint("downvotes >= 0", name="ck_vote_aggregates_downvotes_non_negative"),
    )

    item_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    upvotes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    downvotes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class UserVote(Base):
    """A user's live vote on one item.

    Overwritten in place on a vote switch. A toggle-off keeps the row with
    deleted=True so the history of who voted stays visible.
    """

    __tablename__ = "user_votes"
    __table_args__ = (
        UniqueConstraint("user_id", "item_id", name=USER_VOTE_UNIQUE_CONSTRAINT),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    user_email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    vote_type: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    voted_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
