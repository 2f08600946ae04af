"""Data access for vote tallies and per-user vote state.

apply_vote performs the aggregate update and the user vote write inside one
database transaction, so a failure leaves neither behind. Tally columns are
only ever changed with column expressions on the server (never a Python-side
read-modify-write), and decrements are floored at zero with GREATEST.
"""

from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from vaultnet.database import store_errors
from vaultnet.models.vote import USER_VOTE_UNIQUE_CONSTRAINT, UserVote, VoteAggregate


class VoteRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_counts(self, item_id: int) -> Optional[tuple[int, int]]:
        """Return (upvotes, downvotes) for an item, or None if nobody voted yet."""
        with store_errors("votes.get_counts"):
            result = await self.session.execute(
                select(VoteAggregate.upvotes, VoteAggregate.downvotes).where(
                    VoteAggregate.item_id == item_id
                )
            )
            row = result.one_or_none()
        if row is None:
            return None
        return row.upvotes, row.downvotes

    async def get_live_vote(
        self, user_id: str, item_id: int, for_update: bool = False
    ) -> Optional[str]:
        """Return the user's current vote type, ignoring tombstoned rows.

        for_update takes a transaction-scoped advisory lock on (user_id, item_id)
        before reading. It is held until apply_vote or release_vote ends the
        transaction, so two concurrent casts by the same user serialize even
        when no user_votes row exists yet.
        """
        stmt = select(UserVote.vote_type, UserVote.deleted).where(
            UserVote.user_id == user_id, UserVote.item_id == item_id
        )
        with store_errors("votes.get_live_vote"):
            if for_update:
                await self.session.execute(
                    select(
                        func.pg_advisory_xact_lock(
                            func.hashtextextended(f"vote:{user_id}:{item_id}", 0)
                        )
                    )
                )
            result = await self.session.execute(stmt)
            row = result.one_or_none()
        if row is None or row.deleted:
            return None
        return row.vote_type

    async def release_vote(self, user_id: str, item_id: int) -> None:
        """End a locking read without writing anything."""
        with store_errors("votes.release_vote"):
            await self.session.rollback()

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
    ) -> tuple[int, int]:
        """Apply tally deltas and write (or tombstone) the user's vote, then commit.

        Returns the item's (upvotes, downvotes) after the change.
        """
        aggregate_stmt = (
            pg_insert(VoteAggregate)
            .values(
                item_id=item_id,
                upvotes=max(up_delta, 0),
                downvotes=max(down_delta, 0),
            )
            .on_conflict_do_update(
                index_elements=[VoteAggregate.item_id],
                set_={
                    "upvotes": func.greatest(VoteAggregate.upvotes + up_delta, 0),
                    "downvotes": func.greatest(VoteAggregate.downvotes + down_delta, 0),
                    "updated_at": func.now(),
                },
            )
            .returning(VoteAggregate.upvotes, VoteAggregate.downvotes)
        )

        with store_errors("votes.apply_vote"):
            try:
                result = await self.session.execute(aggregate_stmt)
                counts = result.one()

                if stored_vote is None:
                    # Toggle-off keeps the row as a tombstone
                    await self.session.execute(
                        update(UserVote)
                        .where(UserVote.user_id == user_id, UserVote.item_id == item_id)
                        .values(
                            deleted=True,
                            deleted_at=func.now(),
                            vote_type=None,
                            reason=None,
                        )
                        .execution_options(synchronize_session=False)
                    )
                else:
                    values = {
                        "user_email": user_email,
                        "vote_type": stored_vote,
                        "reason": reason,
                        "deleted": False,
                        "deleted_at": None,
                        "voted_at": func.now(),
                    }
                    await self.session.execute(
                        pg_insert(UserVote)
                        .values(user_id=user_id, item_id=item_id, **values)
                        .on_conflict_do_update(
                            constraint=USER_VOTE_UNIQUE_CONSTRAINT,
                            set_=values,
                        )
                    )

                await self.session.commit()
            except Exception:
                await self.session.rollback()
                raise

        return counts.upvotes, counts.downvotes
