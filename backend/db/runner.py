"""
Single-statement query execution.

Every call checks a session out of the pool, runs exactly one statement and
returns the connection. Concurrent callers therefore never share a session,
and no connection is held across more than one query.
"""

from __future__ import annotations

import logging
from contextlib import AbstractAsyncContextManager
from typing import Any, Callable, Sequence

from sqlalchemy import Executable, Row
from sqlalchemy.ext.asyncio import AsyncSession

from models.database import get_session

logger = logging.getLogger(__name__)

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]


class QueryRunner:
    """Read/insert gateway over the shared connection pool."""

    def __init__(self, session_factory: SessionFactory = get_session) -> None:
        self._session_factory = session_factory

    async def scalar(self, statement: Executable) -> Any:
        """Return the first column of the first row (None when empty)."""
        async with self._session_factory() as session:
            return await session.scalar(statement)

    async def all(self, statement: Executable) -> Sequence[Row[Any]]:
        """Return every row."""
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return result.all()

    async def scalar_one_or_none(self, statement: Executable) -> Any:
        """Return a single mapped object/value or None."""
        async with self._session_factory() as session:
            result = await session.execute(statement)
            return result.scalar_one_or_none()

    async def write(self, statement: Executable) -> None:
        """Execute one insert and commit it."""
        async with self._session_factory() as session:
            await session.execute(statement)
            await session.commit()
