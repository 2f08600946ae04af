"""Data access for purchase grants."""

from typing import Optional

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from vaultnet.database import store_errors
from vaultnet.errors import AlreadyPurchased, DuplicateTransaction
from vaultnet.models.purchase import (
    PURCHASE_TX_HASH_CONSTRAINT,
    PURCHASE_USER_ITEM_CONSTRAINT,
    Purchase,
)


class PurchaseRepository:
    """Purchase store backed by the purchases table."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_by_tx_hash(self, tx_hash: str) -> Optional[Purchase]:
        with store_errors("purchases.get_by_tx_hash"):
            result = await self.session.execute(
                select(Purchase).where(Purchase.tx_hash == tx_hash)
            )
            return result.scalar_one_or_none()

    async def get_for_user_item(self, user_id: str, item_id: int) -> Optional[Purchase]:
        with store_errors("purchases.get_for_user_item"):
            result = await self.session.execute(
                select(Purchase).where(
                    Purchase.user_id == user_id, Purchase.item_id == item_id
                )
            )
            return result.scalar_one_or_none()

    async def insert(
        self,
        *,
        user_id: str,
        item_id: int,
        content_id: str,
        item_name: str,
        item_price: str,
        tx_hash: str,
        wallet_address: Optional[str],
    ) -> Purchase:
        """Insert and commit a purchase row.

        Raises:
            DuplicateTransaction: tx_hash unique constraint was hit.
            AlreadyPurchased: (user_id, item_id) unique constraint was hit.
            StoreUnavailable: any other database failure.
        """
        purchase = Purchase(
            user_id=user_id,
            item_id=item_id,
            content_id=content_id,
            item_name=item_name,
            item_price=item_price,
            tx_hash=tx_hash,
            wallet_address=wallet_address,
        )
        with store_errors("purchases.insert"):
            self.session.add(purchase)
            try:
                await self.session.commit()
            except IntegrityError as exc:
                await self.session.rollback()
                if PURCHASE_TX_HASH_CONSTRAINT in str(exc.orig):
                    raise DuplicateTransaction(f"tx_hash {tx_hash} already recorded") from exc
                if PURCHASE_USER_ITEM_CONSTRAINT in str(exc.orig):
                    raise AlreadyPurchased(
                        f"user {user_id} already owns item {item_id}"
                    ) from exc
                raise
            await self.session.refresh(purchase)
        return purchase

    async def list_for_user(
        self,
        user_id: str,
        item_id: Optional[int] = None,
        wallet_address: Optional[str] = None,
    ) -> list[Purchase]:
        """Return the user's purchases (plus any bought with wallet_address), newest first."""
        stmt = select(Purchase)
        if wallet_address:
            stmt = stmt.where(
                or_(
                    Purchase.user_id == user_id,
                    Purchase.wallet_address == wallet_address.lower(),
                )
            )
        else:
            stmt = stmt.where(Purchase.user_id == user_id)
        if item_id is not None:
            stmt = stmt.where(Purchase.item_id == item_id)
        stmt = stmt.order_by(Purchase.purchased_at.desc())

        with store_errors("purchases.list_for_user"):
            result = await self.session.execute(stmt)
            return list(result.scalars().all())
