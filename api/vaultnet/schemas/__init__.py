"""VaultNet Pydantic schemas package.

Re-exports all request and response schemas for convenient importing:

    from vaultnet.schemas import PurchaseVerifyRequest, VoteCreate, ...
"""

from vaultnet.schemas.auth import (
    LoginAttemptCreate,
    LoginAttemptRecorded,
    LoginCheckRequest,
    LoginCheckResponse,
)
from vaultnet.schemas.common import ErrorResponse
from vaultnet.schemas.purchase import (
    PurchaseListResponse,
    PurchaseResponse,
    PurchaseVerifyRequest,
    PurchaseVerifyResponse,
)
from vaultnet.schemas.trust_score import TrustBreakdown, TrustScoreRequest, TrustScoreResponse
from vaultnet.schemas.vote import (
    UserVoteResponse,
    VoteAggregateResponse,
    VoteCastResponse,
    VoteCreate,
)

__all__ = [
    # Purchase
    "PurchaseVerifyRequest",
    "PurchaseVerifyResponse",
    "PurchaseResponse",
    "PurchaseListResponse",
    # Vote
    "VoteCreate",
    "VoteAggregateResponse",
    "UserVoteResponse",
    "VoteCastResponse",
    # Trust score
    "TrustScoreRequest",
    "TrustScoreResponse",
    "TrustBreakdown",
    # Auth
    "LoginCheckRequest",
    "LoginCheckResponse",
    "LoginAttemptCreate",
    "LoginAttemptRecorded",
    # Common
    "ErrorResponse",
]
