"""Per-IP sliding window rate limiter backed by a Redis Lua script.

Each request is logged as a member of a sorted set scored by its timestamp in
milliseconds. The script drops members older than the window, counts what is
left, and admits the request only if the count is under the limit. Running
it as one Lua script keeps check-and-record atomic across API instances.

Key format: rl:{bucket}:{client_ip}
Buckets: "purchase", "vote", "read"

The check runs before authentication and before any store or chain I/O.
"""
import time
import uuid
from typing import Annotated

import redis.asyncio as aioredis
import structlog
from fastapi import Depends, Request
from redis.exceptions import RedisError

from vaultnet.config import Settings, settings
from vaultnet.dependencies import RedisClient
from vaultnet.errors import RateLimited, StoreUnavailable

log = structlog.get_logger()

# KEYS[1] = rate limit key (e.g. "rl:purchase:203.0.113.7")
# ARGV[1] = limit (max requests inside the window)
# ARGV[2] = window length in milliseconds
# ARGV[3] = now in milliseconds
# ARGV[4] = unique member id for this request
#
# Returns: 1 if allowed (request recorded), 0 if rejected
RATE_LIMIT_LUA = """
local key = KEYS[1]
local limit = tonumber(ARGV[1])
local window_ms = tonumber(ARGV[2])
local now_ms = tonumber(ARGV[3])
local member = ARGV[4]

-- Forget requests that slid out of the window
redis.call('ZREMRANGEBYSCORE', key, 0, now_ms - window_ms)

local allowed = 0
if redis.call('ZCARD', key) < limit then
    redis.call('ZADD', key, now_ms, member)
    allowed = 1
end

redis.call('PEXPIRE', key, window_ms)

return allowed
"""


def client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer, else "unknown"."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None and request.client.host:
        return request.client.host
    return "unknown"


def bucket_limit(bucket: str, app_settings: Settings) -> int:
    if bucket == "purchase":
        return app_settings.rate_limit_purchase_per_window
    if bucket == "vote":
        return app_settings.rate_limit_vote_per_window
    return app_settings.rate_limit_read_per_window


async def check_rate_limit(
    ip_address: str,
    redis_client: aioredis.Redis,
    bucket: str,
    app_settings: Settings,
) -> None:
    """Record one request for ip_address in bucket, or refuse it.

    Raises:
        RateLimited: the window is full (Retry-After = window length).
        StoreUnavailable: Redis could not be reached.
    """
    key = f"rl:{bucket}:{ip_address}"
    window_seconds = app_settings.rate_limit_window_seconds
    now_ms = int(time.time() * 1000)

    try:
        allowed = await redis_client.eval(
            RATE_LIMIT_LUA,
            1,  # number of KEYS
            key,
            bucket_limit(bucket, app_settings),
            window_seconds * 1000,
            now_ms,
            f"{now_ms}-{uuid.uuid4().hex}",
        )
    except RedisError as exc:
        log.error("rate_limiter_unavailable", bucket=bucket, error=str(exc))
        raise StoreUnavailable(f"rate limiter: {exc}") from exc

    if not allowed:
        log.info("rate_limited", bucket=bucket, ip_address=ip_address)
        raise RateLimited(f"{bucket} limit hit for {ip_address}", retry_after=window_seconds)


def require_rate_limit(bucket: str):
    """FastAPI dependency factory for one rate limit bucket."""

    async def _check(request: Request, redis_client: RedisClient) -> None:
        await check_rate_limit(client_ip(request), redis_client, bucket, settings)

    return _check


# Annotated type aliases; declare these first in endpoint signatures so the
# limit is enforced before authentication runs
PurchaseRateLimit = Annotated[None, Depends(require_rate_limit("purchase"))]
VoteRateLimit = Annotated[None, Depends(require_rate_limit("vote"))]
ReadRateLimit = Annotated[None, Depends(require_rate_limit("read"))]
