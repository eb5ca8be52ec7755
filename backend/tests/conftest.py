"""Shared fixtures: an in-memory SQLite database behind the QueryRunner interface."""
from __future__ import annotations

from typing import Any, Iterator, Sequence

import pytest
from sqlalchemy import Executable, Row, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

import models  # noqa: F401  registers every table on Base.metadata
from models.database import Base


class SqliteRunner:
    """Executes the same statements the services plan, on a sync SQLite engine."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self.executed: list[Executable] = []

    async def scalar(self, statement: Executable) -> Any:
        self.executed.append(statement)
        with Session(self.engine) as session:
            return session.scalar(statement)

    async def all(self, statement: Executable) -> Sequence[Row[Any]]:
        self.executed.append(statement)
        with Session(self.engine) as session:
            return session.execute(statement).all()

    async def scalar_one_or_none(self, statement: Executable) -> Any:
        self.executed.append(statement)
        with Session(self.engine, expire_on_commit=False) as session:
            obj = session.execute(statement).scalar_one_or_none()
            if obj is not None and hasattr(obj, "_sa_instance_state"):
                session.expunge(obj)
            return obj

    async def write(self, statement: Executable) -> None:
        self.executed.append(statement)
        with Session(self.engine) as session:
            session.execute(statement)
            session.commit()

    def add(self, *objects: Any) -> None:
        """Seed rows directly."""
        with Session(self.engine, expire_on_commit=False) as session:
            session.add_all(objects)
            session.commit()


@pytest.fixture
def db_runner() -> Iterator[SqliteRunner]:
    engine = create_engine("sqlite://")
    Base.metadata.create_all(engine)
    try:
        yield SqliteRunner(engine)
    finally:
        engine.dispose()

