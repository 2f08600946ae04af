"""Vote tallies and per-user vote state for marketplace items.

Each user has at most one live vote per item. Casting a vote follows a
toggle/switch table:

    prior  new   effect
    none   X     tally[X] += 1, store X
    X      X     tally[X] -= 1 (floor 0), tombstone the user vote
    X      Y     tally[X] -= 1 (floor 0), tally[Y] += 1, store Y

Tally changes are expressed as deltas and applied by the store with atomic
column updates, so concurrent voters on the same item never lose counts.
Casts by one user on one item are serialized by the store: the locking
read in get_live_vote holds until apply_vote or release_vote finishes.
"""

from dataclasses import dataclass
from typing import Optional, Protocol

import structlog

from vaultnet.errors import InvalidInput, StoreUnavailable
from vaultnet.metrics import votes_cast
from vaultnet.models.vote import VoteType

log = structlog.get_logger()

# Reason codes a downvote must carry
DOWNVOTE_REASONS: frozenset[str] = frozenset(
    {
        "inaccurate",
        "poor_quality",
        "outdated",
        "security_concern",
        "documentation",
        "compatibility",
        "other",
    }
)

VOTE_TYPES = frozenset(v.value for v in VoteType)


class VoteStore(Protocol):
    async def get_counts(self, item_id: int) -> Optional[tuple[int, int]]: ...

    async def get_live_vote(
        self, user_id: str, item_id: int, for_update: bool = False
    ) -> Optional[str]: ...

    async def apply_vote(
        self,
        *,
        user_id: str,
        user_email: Optional[str],
        item_id: int,
        up_delta: int,
        down_delta: int,
        stored_vote: Optional[str],
        reason: Optional[str],
    ) -> tuple[int, int]: ...

    async def release_vote(self, user_id: str, item_id: int) -> None: ...


@dataclass(frozen=True)
class VoteTally:
    item_id: int
    upvotes: int = 0
    downvotes: int = 0

    @property
    def score(self) -> int:
        return self.upvotes - self.downvotes


@dataclass(frozen=True)
class VoteTransition:
    kind: str  # new | toggle_off | switch
    up_delta: int
    down_delta: int
    stored_vote: Optional[str]  # None means the user vote is removed


@dataclass(frozen=True)
class VoteResult:
    success: bool
    vote_type: Optional[str] = None
    tally: Optional[VoteTally] = None
    error: Optional[str] = None


def _deltas(vote_type: str, amount: int) -> tuple[int, int]:
    if vote_type == VoteType.up.value:
        return amount, 0
    return 0, amount


def plan_vote_transition(prior: Optional[str], new: str) -> VoteTransition:
    """Work out tally deltas and the resulting user vote for one cast."""
    if prior is None:
        up, down = _deltas(new, 1)
        return VoteTransition("new", up, down, stored_vote=new)

    if prior == new:
        up, down = _deltas(new, -1)
        return VoteTransition("toggle_off", up, down, stored_vote=None)

    old_up, old_down = _deltas(prior, -1)
    new_up, new_down = _deltas(new, 1)
    return VoteTransition("switch", old_up + new_up, old_down + new_down, stored_vote=new)


class ReputationAggregator:
    def __init__(self, store: VoteStore) -> None:
        self.store = store

    async def get_aggregate(self, item_id: int) -> VoteTally:
        """Current tally for an item; zeros when nobody has voted yet."""
        counts = await self.store.get_counts(item_id)
        if counts is None:
            return VoteTally(item_id=item_id)
        upvotes, downvotes = counts
        return VoteTally(item_id=item_id, upvotes=upvotes, downvotes=downvotes)

    async def get_user_vote(self, user_id: str, item_id: int) -> Optional[str]:
        return await self.store.get_live_vote(user_id, item_id)

    async def cast_vote(
        self,
        user_id: str,
        user_email: Optional[str],
        item_id: int,
        vote_type: str,
        reason: Optional[str] = None,
    ) -> VoteResult:
        """Apply one vote cast by user_id on item_id.

        Store failures are returned as an unsuccessful VoteResult; the store
        applies the tally change and the user vote write in one transaction,
        so a failed cast changes nothing.

        Raises:
            InvalidInput: unknown vote type, or a down vote being stored
                without a reason from DOWNVOTE_REASONS.
        """
        if vote_type not in VOTE_TYPES:
            raise InvalidInput(message="vote_type must be 'up' or 'down'")

        bound = log.bind(user_id=user_id, item_id=item_id, vote_type=vote_type)

        try:
            prior = await self.store.get_live_vote(user_id, item_id, for_update=True)
        except StoreUnavailable as exc:
            bound.error("vote_failed", error=exc.code, detail=exc.detail)
            return VoteResult(success=False, error=exc.code)

        transition = plan_vote_transition(prior, vote_type)

        stored_reason = None
        if transition.stored_vote == VoteType.down.value:
            if reason not in DOWNVOTE_REASONS:
                await self.store.release_vote(user_id, item_id)
                raise InvalidInput(
                    message=f"A downvote requires a reason from: {sorted(DOWNVOTE_REASONS)}"
                )
            stored_reason = reason

        try:
            upvotes, downvotes = await self.store.apply_vote(
                user_id=user_id,
                user_email=user_email,
                item_id=item_id,
                up_delta=transition.up_delta,
                down_delta=transition.down_delta,
                stored_vote=transition.stored_vote,
                reason=stored_reason,
            )
        except StoreUnavailable as exc:
            bound.error("vote_failed", error=exc.code, detail=exc.detail)
            return VoteResult(success=False, error=exc.code)

        votes_cast.labels(transition=transition.kind).inc()
        bound.info("vote_cast", transition=transition.kind, prior=prior)
        return VoteResult(
            success=True,
            vote_type=transition.stored_vote,
            tally=VoteTally(item_id=item_id, upvotes=upvotes, downvotes=downvotes),
        )
