from __future__ import annotations

import asyncio
import json
from uuid import uuid4

from sqlalchemy import select

from models.activity_log import ActivityLog
from services.activity_sink import ActivityLogger, BestEffortSink
from services.payloads import ActivityDetails


class RecordingRunner:
    def __init__(self, fail: bool = False, delay: float = 0.0) -> None:
        self.fail = fail
        self.delay = delay
        self.writes: list[object] = []

    async def write(self, statement) -> None:
        await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("insert failed")
        self.writes.append(statement)


def test_write_failures_are_counted_not_raised() -> None:
    runner = RecordingRunner(fail=True)
    sink = BestEffortSink(runner)
    activity = ActivityLogger(sink)

    async def _go() -> None:
        sink.start()
        assert activity.log(user_id=uuid4(), action="proposal_sent", entity_type="proposal") is True
        await sink.join()
        assert sink.running
        await sink.stop()

    asyncio.run(_go())

    assert sink.failed == 1
    assert sink.written == 0


def test_full_queue_drops_new_entries() -> None:
    runner = RecordingRunner()
    sink = BestEffortSink(runner, max_queue=2)
    activity = ActivityLogger(sink)

    async def _go() -> list[bool]:
        # Not started yet, so nothing drains
        accepted = [
            activity.log(user_id=None, action=f"a{i}", entity_type="inquiry") for i in range(3)
        ]
        sink.start()
        await sink.stop()
        return accepted

    accepted = asyncio.run(_go())

    assert accepted == [True, True, False]
    assert sink.dropped == 1
    assert sink.written == 2


def test_submit_does_not_wait_for_the_write() -> None:
    runner = RecordingRunner(delay=0.05)
    sink = BestEffortSink(runner)
    activity = ActivityLogger(sink)

    async def _go() -> None:
        sink.start()
        activity.log(user_id=uuid4(), action="file_uploaded", entity_type="contract")
        assert runner.writes == []
        await sink.stop()

    asyncio.run(_go())
    assert len(runner.writes) == 1


def test_details_are_stored_as_versioned_json(db_runner) -> None:
    sink = BestEffortSink(db_runner)
    activity = ActivityLogger(sink)
    entity_id = uuid4()

    async def _go() -> None:
        sink.start()
        activity.log(
            user_id=uuid4(),
            action="proposal_status_changed",
            entity_type="proposal",
            entity_id=entity_id,
            details=ActivityDetails(old_status="pending", new_status="approved"),
        )
        await sink.stop()

    asyncio.run(_go())

    stored = asyncio.run(db_runner.scalar(select(ActivityLog.details)))
    assert json.loads(stored) == {"version": 1, "oldStatus": "pending", "newStatus": "approved"}


def test_stop_without_start_is_a_no_op() -> None:
    sink = BestEffortSink(RecordingRunner())
    asyncio.run(sink.stop())
    assert not sink.running
