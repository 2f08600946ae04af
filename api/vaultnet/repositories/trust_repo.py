from typing import Optional

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from vaultnet.database import store_errors
from vaultnet.models.trust_score import TrustScore


class TrustScoreRepository:
    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get(self, item_id: int) -> Optional[TrustScore]:
        with store_errors("trust_scores.get"):
            result = await self.session.execute(
                select(TrustScore).where(TrustScore.item_id == item_id)
            )
            return result.scalar_one_or_none()

    async def insert_if_absent(self, score: TrustScore) -> TrustScore:
        """Persist score unless the item already has one; return whichever row is stored.

        Concurrent first viewers both compute a score, but only the first insert
        lands. Everyone gets the stored row back.
        """
        stmt = (
            pg_insert(TrustScore)
            .values(
                item_id=score.item_id,
                total_score=score.total_score,
                clean_scan=score.clean_scan,
                popular_format=score.popular_format,
                integrity_verified=score.integrity_verified,
                content_hash=score.content_hash,
                computed_at=score.computed_at,
            )
            .on_conflict_do_nothing(index_elements=[TrustScore.item_id])
        )
        with store_errors("trust_scores.insert_if_absent"):
            await self.session.execute(stmt)
            await self.session.commit()
            result = await self.session.execute(
                select(TrustScore)
                .where(TrustScore.item_id == score.item_id)
                .execution_options(populate_existing=True)
            )
            return result.scalar_one()
