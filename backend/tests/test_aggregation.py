from __future__ import annotations

import asyncio

import pytest

from services.aggregation import gather_all
from services.errors import AggregationFailure


async def _value(value, delay: float = 0.0):
    await asyncio.sleep(delay)
    return value


async def _boom(message: str, delay: float = 0.0):
    await asyncio.sleep(delay)
    raise RuntimeError(message)


def test_results_are_assembled_by_key_not_completion_order() -> None:
    result = asyncio.run(
        gather_all(
            "report",
            {"slow": _value("a", 0.03), "fast": _value("b"), "middle": _value("c", 0.01)},
        )
    )
    assert result == {"slow": "a", "fast": "b", "middle": "c"}
    assert list(result) == ["slow", "fast", "middle"]


def test_sub_queries_run_concurrently() -> None:
    active = 0
    peak = 0

    async def _tracked():
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return True

    asyncio.run(gather_all("report", {str(i): _tracked() for i in range(4)}))
    assert peak == 4


def test_one_failure_fails_the_whole_aggregation() -> None:
    finished: list[str] = []

    async def _slow_ok():
        await asyncio.sleep(0.02)
        finished.append("slow")
        return 1

    with pytest.raises(AggregationFailure) as exc_info:
        asyncio.run(gather_all("report", {"ok": _slow_ok(), "bad": _boom("db down")}))

    error = exc_info.value
    assert error.failed == ["bad"]
    assert error.status_code == 500
    assert error.message == "Failed to load report"
    assert isinstance(error.__cause__, RuntimeError)
    # Siblings settle before the failure is reported
    assert finished == ["slow"]


def test_every_failed_key_is_reported() -> None:
    with pytest.raises(AggregationFailure) as exc_info:
        asyncio.run(gather_all("report", {"a": _boom("x"), "b": _value(1), "c": _boom("y")}))
    assert exc_info.value.failed == ["a", "c"]
    assert str(exc_info.value.__cause__) == "x"


def test_deadline_turns_into_aggregation_failure() -> None:
    with pytest.raises(AggregationFailure) as exc_info:
        asyncio.run(
            gather_all("report", {"quick": _value(1), "stuck": _value(2, 1.0)}, timeout=0.05)
        )
    assert "timed out" in exc_info.value.message
    assert exc_info.value.failed == ["stuck"]


def test_empty_fan_out() -> None:
    assert asyncio.run(gather_all("report", {})) == {}
