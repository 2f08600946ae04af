"""Purchase verification and listing endpoints.

POST /api/v1/purchases/verify -- verify an on-chain payment and record the purchase
GET  /api/v1/purchases        -- list the caller's purchases
"""

from typing import Optional

from fastapi import APIRouter, Query, Response

from vaultnet.dependencies import CurrentIdentity, Ledger, PurchaseStoreDep
from vaultnet.middleware.rate_limiter import PurchaseRateLimit, ReadRateLimit
from vaultnet.schemas.common import MAX_ITEM_ID
from vaultnet.schemas.purchase import (
    PurchaseListResponse,
    PurchaseResponse,
    PurchaseVerifyRequest,
    PurchaseVerifyResponse,
)
from vaultnet.services.ledger import PurchaseRequest

router = APIRouter(prefix="/api/v1", tags=["purchases"])


@router.post(
    "/purchases/verify",
    response_model=PurchaseVerifyResponse,
    status_code=201,
)
async def verify_purchase(
    _rate: PurchaseRateLimit,
    identity: CurrentIdentity,
    body: PurchaseVerifyRequest,
    ledger: Ledger,
    response: Response,
) -> PurchaseVerifyResponse:
    """Verify a claimed payment on-chain and record the purchase grant.

    Gates, in order: per-IP rate limit, Firebase ID token, input format, then
    on-chain receipt/contract/value checks. Returns 201 for a new purchase and
    200 when this user already owns the item (the existing record is returned).
    """
    outcome = await ledger.verify_and_record(
        identity,
        PurchaseRequest(
            tx_hash=body.tx_hash,
            item_id=body.item_id,
            content_id=body.content_id,
            item_name=body.item_name,
            item_price=body.item_price,
            wallet_address=body.wallet_address,
        ),
    )

    if not outcome.created:
        response.status_code = 200

    return PurchaseVerifyResponse(
        status="purchased" if outcome.created else "already_purchased",
        purchase=PurchaseResponse.model_validate(outcome.purchase),
    )


@router.get("/purchases", response_model=PurchaseListResponse)
async def list_purchases(
    _rate: ReadRateLimit,
    identity: CurrentIdentity,
    store: PurchaseStoreDep,
    item_id: Optional[int] = Query(None, ge=0, le=MAX_ITEM_ID),
    wallet_address: Optional[str] = Query(None, max_length=42),
) -> PurchaseListResponse:
    """List the caller's purchases, newest first.

    When wallet_address is given, purchases recorded against that wallet are
    included as well. item_id narrows the list to one item (ownership check).
    """
    purchases = await store.list_for_user(
        identity.user_id, item_id=item_id, wallet_address=wallet_address
    )
    return PurchaseListResponse(
        purchases=[PurchaseResponse.model_validate(p) for p in purchases]
    )
