"""Pydantic schemas for item votes."""

from typing import Literal, Optional

from pydantic import BaseModel


class VoteCreate(BaseModel):
    """Request schema for casting a vote on an item.

    A reason is required whenever the cast leaves a down vote in place; that
    rule depends on the user's prior vote and is checked by the aggregator.
    """

    vote_type: Literal["up", "down"]
    reason: Optional[str] = None


class VoteAggregateResponse(BaseModel):
    item_id: int
    upvotes: int
    downvotes: int
    score: int


class UserVoteResponse(BaseModel):
    item_id: int
    vote_type: Optional[Literal["up", "down"]] = None


class VoteCastResponse(BaseModel):
    item_id: int
    vote_type: Optional[Literal["up", "down"]] = None
    upvotes: int
    downvotes: int
    score: int
