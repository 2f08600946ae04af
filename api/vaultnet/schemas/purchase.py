"""Pydantic schemas for purchase verification and listing.

Request fields are only type-checked here. Format rules (hash shape, name
length, price syntax) are enforced by the ledger so that they run in a fixed
order after authentication and all surface as invalid_input.
"""

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, StrictInt


class PurchaseVerifyRequest(BaseModel):
    """Claimed on-chain payment for one marketplace item."""

    tx_hash: str
    item_id: StrictInt  # JSON true/false and numeric strings are rejected
    content_id: str
    item_name: str
    item_price: str  # decimal ETH, e.g. "0.5"
    wallet_address: Optional[str] = None


class PurchaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    item_id: int
    content_id: str
    item_name: str
    item_price: str
    tx_hash: str
    wallet_address: Optional[str] = None
    purchased_at: datetime


class PurchaseVerifyResponse(BaseModel):
    status: Literal["purchased", "already_purchased"]
    purchase: PurchaseResponse


class PurchaseListResponse(BaseModel):
    purchases: list[PurchaseResponse]
