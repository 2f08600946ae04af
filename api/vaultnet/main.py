from contextlib import asynccontextmanager

import httpx
import redis.asyncio as aioredis
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from vaultnet.config import settings
from vaultnet.errors import (
    MarketplaceError,
    marketplace_error_handler,
    request_validation_error_handler,
)
from vaultnet.logging_config import configure_logging
from vaultnet.metrics import metrics_endpoint
from vaultnet.middleware.logging_middleware import RequestLoggingMiddleware
from vaultnet.routers import auth, purchases, trust_scores, votes
from vaultnet.services.chain import ChainRpcClient
from vaultnet.services.identity import FirebaseTokenVerifier, GoogleCertificateSource


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Configure structured logging before anything else
    configure_logging()

    # Startup: shared clients live on app.state and are injected per request
    app.state.redis = aioredis.from_url(
        settings.redis_url, encoding="utf-8", decode_responses=True
    )
    app.state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(settings.chain_rpc_timeout_seconds)
    )
    app.state.chain_client = ChainRpcClient(
        app.state.http_client,
        settings.chain_rpc_url,
        timeout=settings.chain_rpc_timeout_seconds,
    )
    app.state.token_verifier = FirebaseTokenVerifier(
        settings.firebase_project_id,
        GoogleCertificateSource(app.state.http_client, settings.firebase_certs_url),
    )
    try:
        yield
    finally:
        await app.state.http_client.aclose()
        await app.state.redis.aclose()


app = FastAPI(title="VaultNet Marketplace API", version="0.1.0", lifespan=lifespan)

# Register request logging middleware (runs on every request)
app.add_middleware(RequestLoggingMiddleware)

# Every MarketplaceError renders as the ErrorResponse envelope
app.add_exception_handler(MarketplaceError, marketplace_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_error_handler)

# Register all API routers
app.include_router(purchases.router)
app.include_router(votes.router)
app.include_router(trust_scores.router)
app.include_router(auth.router)

# Prometheus metrics endpoint
app.get("/metrics")(metrics_endpoint)


@app.get("/health")
async def health_check():
    return {"status": "ok"}
