"""Login attempt throttling endpoints.

POST /api/v1/auth/login-attempts/check -- may this email/IP try to sign in now?
POST /api/v1/auth/login-attempts       -- record the outcome of a sign-in attempt
"""

from fastapi import APIRouter, Request

from vaultnet.dependencies import Guard
from vaultnet.middleware.rate_limiter import client_ip
from vaultnet.schemas.auth import (
    LoginAttemptCreate,
    LoginAttemptRecorded,
    LoginCheckRequest,
    LoginCheckResponse,
)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


@router.post("/login-attempts/check", response_model=LoginCheckResponse)
async def check_login_allowed(
    body: LoginCheckRequest,
    request: Request,
    guard: Guard,
) -> LoginCheckResponse:
    """Return 429 when the email or the client IP has too many recent failures."""
    check = await guard.check(body.email, client_ip(request))
    return LoginCheckResponse(allowed=check.allowed, remaining_attempts=check.remaining_attempts)


@router.post("/login-attempts", response_model=LoginAttemptRecorded, status_code=201)
async def record_login_attempt(
    body: LoginAttemptCreate,
    request: Request,
    guard: Guard,
) -> LoginAttemptRecorded:
    await guard.record(body.email, client_ip(request), body.successful)
    return LoginAttemptRecorded()
