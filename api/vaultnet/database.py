from contextlib import contextmanager

import structlog
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

from vaultnet.config import settings
from vaultnet.errors import StoreUnavailable

log = structlog.get_logger()

engine = create_async_engine(settings.database_url, echo=settings.debug, pool_pre_ping=True)


async_session_factory = async_sessionmaker(
    engine,
    expire_on_commit=False,
    class_=AsyncSession,
)


async def get_db():
    """FastAPI dependency: yields AsyncSession per request."""
    async with async_session_factory() as session:
        yield session


@contextmanager
def store_errors(operation: str):
    """Convert SQLAlchemy failures raised inside the block into StoreUnavailable.

    Repositories wrap every database round-trip in this so that callers only
    ever see the closed error taxonomy. Integrity errors that carry meaning
    (unique constraint hits) must be handled inside the block first.
    """
    try:
        yield
    except SQLAlchemyError as exc:
        log.error("store_call_failed", operation=operation, error=str(exc))
        raise StoreUnavailable(f"{operation}: {exc}") from exc
