"""Item vote endpoints.

GET  /api/v1/items/{item_id}/votes    -- current tally (public)
GET  /api/v1/items/{item_id}/votes/me -- the caller's own vote
POST /api/v1/items/{item_id}/votes    -- cast, switch or toggle off a vote
"""

from fastapi import APIRouter, Path

from vaultnet.dependencies import CurrentIdentity, Reputation
from vaultnet.errors import StoreUnavailable
from vaultnet.middleware.rate_limiter import ReadRateLimit, VoteRateLimit
from vaultnet.schemas.common import MAX_ITEM_ID
from vaultnet.schemas.vote import (
    UserVoteResponse,
    VoteAggregateResponse,
    VoteCastResponse,
    VoteCreate,
)

router = APIRouter(prefix="/api/v1", tags=["votes"])


@router.get("/items/{item_id}/votes", response_model=VoteAggregateResponse)
async def get_votes(
    _rate: ReadRateLimit,
    reputation: Reputation,
    item_id: int = Path(..., ge=0, le=MAX_ITEM_ID),
) -> VoteAggregateResponse:
    tally = await reputation.get_aggregate(item_id)
    return VoteAggregateResponse(
        item_id=tally.item_id,
        upvotes=tally.upvotes,
        downvotes=tally.downvotes,
        score=tally.score,
    )


@router.get("/items/{item_id}/votes/me", response_model=UserVoteResponse)
async def get_my_vote(
    _rate: ReadRateLimit,
    identity: CurrentIdentity,
    reputation: Reputation,
    item_id: int = Path(..., ge=0, le=MAX_ITEM_ID),
) -> UserVoteResponse:
    vote_type = await reputation.get_user_vote(identity.user_id, item_id)
    return UserVoteResponse(item_id=item_id, vote_type=vote_type)


@router.post("/items/{item_id}/votes", response_model=VoteCastResponse)
async def cast_vote(
    _rate: VoteRateLimit,
    identity: CurrentIdentity,
    body: VoteCreate,
    reputation: Reputation,
    item_id: int = Path(..., ge=0, le=MAX_ITEM_ID),
) -> VoteCastResponse:
    """Cast an upvote or downvote on an item.

    Voting the same way twice removes the vote; voting the other way switches
    it. A down vote that ends up stored must carry a reason code (400
    otherwise). The response carries the caller's resulting vote and the
    updated tally.
    """
    result = await reputation.cast_vote(
        identity.user_id,
        identity.email,
        item_id,
        body.vote_type,
        body.reason,
    )
    if not result.success:
        raise StoreUnavailable(f"vote not applied: {result.error}")

    return VoteCastResponse(
        item_id=item_id,
        vote_type=result.vote_type,
        upvotes=result.tally.upvotes,
        downvotes=result.tally.downvotes,
        score=result.tally.score,
    )
