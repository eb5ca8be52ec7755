"""
Pipeline status sets and per-status breakdowns.

The display lists are derived from the active/terminal declarations rather
than written out separately, so a dashboard's top-line number and the
breakdown beneath it always describe the same statuses.
"""

from __future__ import annotations

from typing import Iterable, Mapping, TypedDict

from models.contract import ContractStatus
from models.proposal import ProposalStatus
from models.ticket import TicketStatus

# Proposals still moving through review/delivery
ACTIVE_PROPOSAL_STATUSES: tuple[str, ...] = (
    ProposalStatus.PENDING.value,
    ProposalStatus.APPROVED.value,
    ProposalStatus.SENT.value,
)
PROPOSAL_DISPLAY_STATUSES: tuple[str, ...] = ACTIVE_PROPOSAL_STATUSES + (
    ProposalStatus.ACCEPTED.value,
)

# No further transition expected after these
TERMINAL_CONTRACT_STATUSES: frozenset[str] = frozenset({
    ContractStatus.SIGNED.value,
    ContractStatus.HARDBOUND_RECEIVED.value,
})
CONTRACT_DISPLAY_STATUSES: tuple[str, ...] = tuple(
    status.value for status in ContractStatus if status.value not in TERMINAL_CONTRACT_STATUSES
)

OPEN_TICKET_STATUSES: tuple[str, ...] = (
    TicketStatus.OPEN.value,
    TicketStatus.IN_PROGRESS.value,
)

LEAD_CLAIMED_STATUS: str = "claimed"


class StatusCount(TypedDict):
    status: str
    count: int


def status_breakdown(
    display_statuses: Iterable[str],
    counts: Mapping[str, int],
) -> list[StatusCount]:
    """
    Per-status counts in the declared display order.

    Every display status appears exactly once, with 0 when the data has none.
    Statuses present in ``counts`` but not in the display list are dropped.
    """
    breakdown: list[StatusCount] = []
    seen: set[str] = set()
    for status in display_statuses:
        if status in seen:
            continue
        seen.add(status)
        breakdown.append({"status": status, "count": int(counts.get(status, 0) or 0)})
    return breakdown


def counts_from_rows(rows: Iterable[tuple[str | None, int]]) -> dict[str, int]:
    """Fold ``(status, count)`` rows from a GROUP BY into a dict, skipping NULL statuses."""
    counts: dict[str, int] = {}
    for status, count in rows:
        if status is None:
            continue
        counts[status] = counts.get(status, 0) + int(count or 0)
    return counts
