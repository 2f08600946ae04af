from typing import Annotated, Optional

import redis.asyncio as aioredis
from fastapi import Depends, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from vaultnet.config import settings
from vaultnet.database import get_db
from vaultnet.errors import Unauthenticated
from vaultnet.repositories.login_attempt_repo import LoginAttemptRepository
from vaultnet.repositories.purchase_repo import PurchaseRepository
from vaultnet.repositories.trust_repo import TrustScoreRepository
from vaultnet.repositories.vote_repo import VoteRepository
from vaultnet.services.chain import ChainRpcClient
from vaultnet.services.identity import FirebaseTokenVerifier, Identity
from vaultnet.services.ledger import PurchaseLedger
from vaultnet.services.login_guard import LoginGuard
from vaultnet.services.reputation import ReputationAggregator
from vaultnet.services.trust import TrustScoreService

DbSession = Annotated[AsyncSession, Depends(get_db)]

# Bearer scheme for Firebase ID tokens; missing headers are reported as
# Unauthenticated by get_current_identity rather than FastAPI's default 403
bearer_scheme = HTTPBearer(auto_error=False)


async def get_redis(request: Request) -> aioredis.Redis:
    """Inject the Redis client from app.state (set during lifespan startup)."""
    return request.app.state.redis


async def get_chain_client(request: Request) -> ChainRpcClient:
    return request.app.state.chain_client


async def get_token_verifier(request: Request) -> FirebaseTokenVerifier:
    return request.app.state.token_verifier


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
    verifier: FirebaseTokenVerifier = Depends(get_token_verifier),
) -> Identity:
    """Authenticate a request via its Firebase ID token."""
    if credentials is None or not credentials.credentials:
        raise Unauthenticated("missing bearer token")
    return await verifier.verify(credentials.credentials)


RedisClient = Annotated[aioredis.Redis, Depends(get_redis)]
CurrentIdentity = Annotated[Identity, Depends(get_current_identity)]


# Stores: one handle per request, bound to the request's session

async def get_purchase_store(db: DbSession) -> PurchaseRepository:
    return PurchaseRepository(db)


async def get_vote_store(db: DbSession) -> VoteRepository:
    return VoteRepository(db)


async def get_trust_store(db: DbSession) -> TrustScoreRepository:
    return TrustScoreRepository(db)


async def get_login_attempt_store(db: DbSession) -> LoginAttemptRepository:
    return LoginAttemptRepository(db)


# Services

async def get_purchase_ledger(
    store: PurchaseRepository = Depends(get_purchase_store),
    chain: ChainRpcClient = Depends(get_chain_client),
) -> PurchaseLedger:
    return PurchaseLedger(
        store=store,
        chain=chain,
        contract_address=settings.marketplace_contract_address,
        price_tolerance_bps=settings.price_tolerance_bps,
    )


async def get_reputation_aggregator(
    store: VoteRepository = Depends(get_vote_store),
) -> ReputationAggregator:
    return ReputationAggregator(store)


async def get_trust_score_service(
    store: TrustScoreRepository = Depends(get_trust_store),
) -> TrustScoreService:
    return TrustScoreService(store)


async def get_login_guard(
    store: LoginAttemptRepository = Depends(get_login_attempt_store),
) -> LoginGuard:
    return LoginGuard(
        store,
        window_minutes=settings.login_attempt_window_minutes,
        max_failed_per_email=settings.login_max_failed_per_email,
        max_failed_per_ip=settings.login_max_failed_per_ip,
    )


PurchaseStoreDep = Annotated[PurchaseRepository, Depends(get_purchase_store)]
Ledger = Annotated[PurchaseLedger, Depends(get_purchase_ledger)]
Reputation = Annotated[ReputationAggregator, Depends(get_reputation_aggregator)]
TrustScores = Annotated[TrustScoreService, Depends(get_trust_score_service)]
Guard = Annotated[LoginGuard, Depends(get_login_guard)]
