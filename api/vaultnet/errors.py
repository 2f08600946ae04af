"""Closed error taxonomy for the marketplace core.

Every failure a request can end with is one subclass of MarketplaceError.
Raw collaborator errors (httpx, SQLAlchemy, jose) are converted into one of
these exactly once, at the boundary where they are caught. Downstream code
dispatches on the class, never on message text.

Each kind carries:
- code: stable machine identifier returned in the ErrorResponse envelope
- status_code: HTTP status used by the exception handler
- message: fixed user-facing text (never includes collaborator output)
- detail: optional server-side diagnostics, logged but never returned
"""

from typing import Optional

import structlog
from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from vaultnet.schemas.common import ErrorResponse

log = structlog.get_logger()


class MarketplaceError(Exception):
    code: str = "internal_error"
    status_code: int = 500
    message: str = "Internal server error"
    retry_after: Optional[int] = None

    def __init__(self, detail: Optional[str] = None, *, message: Optional[str] = None) -> None:
        self.detail = detail
        if message is not None:
            self.message = message
        super().__init__(detail or self.message)


class Unauthenticated(MarketplaceError):
    code = "unauthenticated"
    status_code = 401
    message = "Authentication required"


class InvalidInput(MarketplaceError):
    code = "invalid_input"
    status_code = 400
    message = "Invalid request"


class RateLimited(MarketplaceError):
    code = "rate_limited"
    status_code = 429
    message = "Too many requests. Please try again later."

    def __init__(
        self,
        detail: Optional[str] = None,
        *,
        message: Optional[str] = None,
        retry_after: Optional[int] = None,
    ) -> None:
        super().__init__(detail, message=message)
        self.retry_after = retry_after


class PendingOrUnknownTransaction(MarketplaceError):
    code = "transaction_pending"
    status_code = 409
    message = "Transaction not found. It may still be pending."
    retry_after = 15


class TransactionFailed(MarketplaceError):
    code = "transaction_failed"
    status_code = 422
    message = "Transaction failed on the blockchain"


class WrongContract(MarketplaceError):
    code = "wrong_contract"
    status_code = 422
    message = "Transaction was not sent to the marketplace contract"


class PriceMismatch(MarketplaceError):
    code = "price_mismatch"
    status_code = 422
    message = "Transaction value does not match the item price"


class DuplicateTransaction(MarketplaceError):
    code = "duplicate_transaction"
    status_code = 409
    message = "Transaction hash already used for another purchase"


class AlreadyPurchased(MarketplaceError):
    """Raised by stores when (user_id, item_id) already has a purchase.

    The ledger turns this into an idempotent success; it is never rendered.
    """

    code = "already_purchased"
    status_code = 200
    message = "Already purchased"


class StoreUnavailable(MarketplaceError):
    code = "store_unavailable"
    status_code = 503
    message = "Service temporarily unavailable"


async def marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    """Render any MarketplaceError as the standard ErrorResponse envelope."""
    log_method = log.error if exc.status_code >= 500 else log.warning
    log_method(
        "request_rejected",
        error=exc.code,
        status_code=exc.status_code,
        detail=exc.detail,
    )

    headers = {}
    if exc.retry_after is not None:
        headers["Retry-After"] = str(exc.retry_after)

    body = ErrorResponse(error=exc.code, detail=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content=body.model_dump(),
        headers=headers or None,
    )


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Render body, path and query validation failures as invalid_input.

    The validator's own report echoes the submitted values, so it is logged
    by location only and replaced with the fixed InvalidInput message.
    """
    log.warning(
        "request_rejected",
        error=InvalidInput.code,
        status_code=InvalidInput.status_code,
        fields=[".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()],
    )
    body = ErrorResponse(error=InvalidInput.code, detail=InvalidInput.message)
    return JSONResponse(status_code=InvalidInput.status_code, content=body.model_dump())
