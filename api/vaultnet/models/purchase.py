"""Purchase ORM model.

Append-only audit trail of purchase grants. A row is inserted exactly once by
the purchase ledger after on-chain verification and is never updated or
deleted.

The two unique constraints are the real serialization point for concurrent
duplicate submissions; the ledger's pre-checks are only an optimization.
Store code references the constraint names through the module constants.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Index, String, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base

PURCHASE_TX_HASH_CONSTRAINT = "uq_purchases_tx_hash"
PURCHASE_USER_ITEM_CONSTRAINT = "uq_purchases_user_id_item_id"


class Purchase(Base):
    __tablename__ = "purchases"
    __table_args__ = (
        UniqueConstraint("tx_hash", name=PURCHASE_TX_HASH_CONSTRAINT),
        UniqueConstraint("user_id", "item_id", name=PURCHASE_USER_ITEM_CONSTRAINT),
        Index("ix_purchases_wallet_address", "wallet_address"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # Opaque identity-provider uid (Firebase)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    item_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    content_id: Mapped[str] = mapped_column(String(255), nullable=False)
    item_name: Mapped[str] = mapped_column(String(200), nullable=False)
    # Decimal ETH string exactly as the client declared it
    item_price: Mapped[str] = mapped_column(String(78), nullable=False)
    tx_hash: Mapped[str] = mapped_column(String(66), nullable=False)
    wallet_address: Mapped[Optional[str]] = mapped_column(String(42), nullable=True)
    purchased_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
