"""
Concurrent fan-out for independent read queries.

gather_all() starts every sub-query at once, waits until all of them have
settled and assembles the results by key. There is no partial-success mode:
if any sub-query fails the caller gets a single AggregationFailure.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Mapping, Optional

from services.errors import AggregationFailure

logger = logging.getLogger(__name__)


async def gather_all(
    operation: str,
    calls: Mapping[str, Awaitable[Any]],
    timeout: Optional[float] = None,
) -> dict[str, Any]:
    """
    Await every call concurrently and return ``{key: result}``.

    Args:
        operation: Name used in logs and the failure message
        calls: Named awaitables; keys become the result keys
        timeout: Optional deadline in seconds for the whole fan-out

    Raises:
        AggregationFailure: If any call raised or the deadline passed
    """
    keys = list(calls)
    tasks = [asyncio.ensure_future(calls[key]) for key in keys]
    gathered = asyncio.gather(*tasks, return_exceptions=True)

    try:
        if timeout is None:
            outcomes = await gathered
        else:
            outcomes = await asyncio.wait_for(gathered, timeout=timeout)
    except asyncio.TimeoutError as e:
        pending = [key for key, task in zip(keys, tasks) if task.cancelled() or not task.done()]
        logger.error(
            "Aggregation timed out",
            extra={"operation": operation, "timeout": timeout, "pending": pending},
        )
        raise AggregationFailure(f"{operation} timed out", failed=pending) from e

    results: dict[str, Any] = {}
    failures: list[tuple[str, BaseException]] = []
    for key, outcome in zip(keys, outcomes):
        if isinstance(outcome, BaseException):
            failures.append((key, outcome))
        else:
            results[key] = outcome

    if failures:
        failed_keys = [key for key, _ in failures]
        first_key, first_error = failures[0]
        logger.error(
            "Aggregation failed",
            extra={
                "operation": operation,
                "failed": failed_keys,
                "first_error": repr(first_error),
            },
            exc_info=(type(first_error), first_error, first_error.__traceback__),
        )
        raise AggregationFailure(f"Failed to load {operation}", failed=failed_keys) from first_error

    return results
