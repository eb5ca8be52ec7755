"""
Best-effort sink for audit writes (activity log entries, file events).

Producers call submit(), which never blocks and never raises. A single
background task drains the bounded queue and performs the inserts. Write
failures are logged and dropped; they never reach the request that produced
the entry. When the queue is full new entries are dropped with a warning.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import Executable, insert

from config import utc_now
from db.runner import QueryRunner
from models.activity_log import ActivityLog
from models.user_file import UserFile
from services.payloads import ActivityDetails, encode_payload

logger = logging.getLogger(__name__)

# Sentinel that tells the drain loop to exit
_STOP = object()


class BestEffortSink:
    """Bounded queue of insert statements with a background drain task."""

    def __init__(self, runner: QueryRunner, max_queue: int = 1000) -> None:
        self._runner = runner
        self._queue: asyncio.Queue[Any] = asyncio.Queue(maxsize=max_queue)
        self._task: Optional[asyncio.Task[None]] = None
        self.dropped: int = 0
        self.failed: int = 0
        self.written: int = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the drain task on the running loop (idempotent)."""
        if self.running:
            return
        self._task = asyncio.create_task(self._drain(), name="best-effort-sink")
        logger.info("Best-effort sink started")

    async def stop(self) -> None:
        """Flush what is queued, then stop the drain task."""
        task = self._task
        if task is None or task.done():
            return
        await self._queue.put(_STOP)
        await task
        self._task = None
        logger.info(
            "Best-effort sink stopped",
            extra={"written": self.written, "failed": self.failed, "dropped": self.dropped},
        )

    def submit(self, statement: Executable, label: str) -> bool:
        """Queue a write. Returns False if the entry was dropped."""
        try:
            self._queue.put_nowait((statement, label))
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning("Best-effort sink full, dropping entry", extra={"label": label})
            return False
        return True

    async def join(self) -> None:
        """Wait until everything queued so far has been processed."""
        await self._queue.join()

    async def _drain(self) -> None:
        while True:
            item = await self._queue.get()
            try:
                if item is _STOP:
                    return
                statement, label = item
                await self._write(statement, label)
            finally:
                self._queue.task_done()

    async def _write(self, statement: Executable, label: str) -> None:
        try:
            await self._runner.write(statement)
            self.written += 1
        except Exception as e:
            self.failed += 1
            logger.error(
                "Best-effort write failed",
                extra={"label": label, "error": str(e)},
                exc_info=True,
            )


class ActivityLogger:
    """Records activity log entries through the sink."""

    def __init__(self, sink: BestEffortSink) -> None:
        self._sink = sink

    def log(
        self,
        *,
        user_id: Optional[UUID],
        action: str,
        entity_type: str,
        entity_id: Optional[UUID] = None,
        details: Optional[ActivityDetails] = None,
    ) -> bool:
        statement = insert(ActivityLog).values(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            details=encode_payload(details) if details is not None else None,
            created_at=utc_now(),
        )
        return self._sink.submit(statement, label=f"activity:{action}")


def file_event_statement(
    *,
    file_name: str,
    file_url: str,
    entity_type: str,
    action: str,
    entity_id: Optional[UUID] = None,
    file_type: Optional[str] = None,
    file_size: Optional[int] = None,
    related_entity_number: Optional[str] = None,
    client_name: Optional[str] = None,
    uploaded_by: Optional[UUID] = None,
) -> Executable:
    """Insert statement for a user_files row."""
    return insert(UserFile).values(
        file_name=file_name,
        file_url=file_url,
        file_type=file_type or "application/pdf",
        file_size=file_size,
        entity_type=entity_type,
        entity_id=entity_id,
        related_entity_number=related_entity_number,
        client_name=client_name,
        action=action,
        uploaded_by=uploaded_by,
        created_at=utc_now(),
    )
