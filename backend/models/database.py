"""
Async engine and session factory.

Port 6543 means a transaction-mode pooler sits in front of Postgres, so the
engine uses NullPool there; any other port gets a local pool sized for the
dashboard fan-outs. Nothing connects until the first session is requested.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
from urllib.parse import urlparse

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, AsyncEngine, async_sessionmaker
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import NullPool

from config import settings

logger = logging.getLogger(__name__)

Base = declarative_base()

POOL_SIZE = 10
MAX_OVERFLOW = 10
TRANSACTION_POOLER_PORT = 6543


def _async_url(url: str) -> str:
    if url and "+asyncpg" not in url:
        return url.replace("postgresql://", "postgresql+asyncpg://")
    return url


_db_url = _async_url(settings.DATABASE_URL)
_db_port: int = (urlparse(_db_url).port if _db_url else None) or 5432

_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def get_engine() -> AsyncEngine:
    global _engine
    if _engine is None:
        # asyncpg prepared statements break behind pgbouncer
        connect_args: dict[str, int] = {
            "statement_cache_size": 0,
            "prepared_statement_cache_size": 0,
        }
        if _db_port == TRANSACTION_POOLER_PORT:
            _engine = create_async_engine(_db_url, poolclass=NullPool, connect_args=connect_args)
            logger.info("Database engine created", extra={"port": _db_port, "pool": "NullPool"})
        else:
            _engine = create_async_engine(
                _db_url,
                pool_size=POOL_SIZE,
                max_overflow=MAX_OVERFLOW,
                pool_recycle=300,
                pool_pre_ping=True,
                connect_args=connect_args,
            )
            logger.info(
                "Database engine created",
                extra={"port": _db_port, "pool_size": POOL_SIZE, "max_overflow": MAX_OVERFLOW},
            )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    global _session_factory
    if _session_factory is None:
        _session_factory = async_sessionmaker(
            get_engine(),
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )
    return _session_factory


@asynccontextmanager
async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Yield a pooled session; it is rolled back on error and always closed.

        async with get_session() as session:
            result = await session.execute(query)
    """
    session: AsyncSession = get_session_factory()()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def close_db() -> None:
    """Dispose of the engine on shutdown."""
    global _engine, _session_factory
    if _engine is None:
        return
    logger.info("Closing database pool", extra=get_pool_status())
    await _engine.dispose()
    _engine = None
    _session_factory = None


def get_pool_status() -> dict[str, int | str]:
    if _engine is None:
        return {"pool_type": "not_initialized", "pool_size": 0, "checked_in": 0, "checked_out": 0, "overflow": 0}

    pool = _engine.pool
    if isinstance(pool, NullPool):
        return {"pool_type": "NullPool", "pool_size": 0, "checked_in": 0, "checked_out": 0, "overflow": 0}

    return {
        "pool_type": type(pool).__name__,
        "pool_size": pool.size(),
        "checked_in": pool.checkedin(),
        "checked_out": pool.checkedout(),
        "overflow": pool.overflow(),
    }
