"""
Engines and session factories.

Request handlers and Celery tasks share the synchronous psycopg2 engine; the
OAuth flow runs on asyncpg. Both sit behind PgBouncer in production.
"""

from collections.abc import AsyncGenerator, Generator

from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import Session, sessionmaker

from src.core.config import settings

STATEMENT_TIMEOUT_MS = 30_000


POSTGRES_PREFIXES = ("postgresql+psycopg2://", "postgresql+asyncpg://", "postgresql://", "postgres://")


def _with_driver(url: str, driver: str) -> str:
    for prefix in POSTGRES_PREFIXES:
        if url.startswith(prefix):
            return f"postgresql+{driver}://" + url[len(prefix):]
    return url


def to_sync_url(url: str) -> str:
    """Pin psycopg2; a bare postgresql:// URL would pick whatever SQLAlchemy defaults to."""
    return _with_driver(url, "psycopg2")


def to_async_url(url: str) -> str:
    """Swap the driver of a postgres URL for asyncpg."""
    return _with_driver(url, "asyncpg")


sync_engine = create_engine(
    to_sync_url(settings.database_url),
    pool_pre_ping=True,
    connect_args={"options": f"-c statement_timeout={STATEMENT_TIMEOUT_MS}"},
)

# asyncpg's prepared statement cache does not survive PgBouncer transaction pooling
async_engine = create_async_engine(
    to_async_url(settings.database_url),
    pool_pre_ping=True,
    connect_args={"statement_cache_size": 0},
)

# Services return ORM rows after commit, so attributes must stay loaded
SyncSessionLocal = sessionmaker(bind=sync_engine, autoflush=False, expire_on_commit=False)
AsyncSessionLocal = async_sessionmaker(
    bind=async_engine, class_=AsyncSession, autoflush=False, expire_on_commit=False
)


def get_sync_db() -> Generator[Session, None, None]:
    db = SyncSessionLocal()
    try:
        yield db
    finally:
        db.close()


async def get_async_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as session:
        yield session
