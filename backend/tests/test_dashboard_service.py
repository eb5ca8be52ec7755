from __future__ import annotations

import asyncio
from datetime import datetime, timedelta
from uuid import uuid4

import pytest

from access_control.roles import Principal, Role
from models.activity_log import ActivityLog
from models.calendar_event import CalendarEvent
from models.client import Client
from models.contract import Contract
from models.inquiry import Inquiry
from models.lead import Lead
from models.proposal import Proposal
from models.ticket import ClientTicket
from models.user import User
from services.dashboard import DashboardService
from services.errors import AggregationFailure


NOW = datetime(2024, 6, 1, 12, 0)


def _service(runner, timeout=None) -> DashboardService:
    return DashboardService(runner, clock=lambda: NOW, timeout=timeout)


def _proposals(owner, *statuses):
    return [
        Proposal(id=uuid4(), proposal_number=f"PRP-{i}", requested_by=owner, status=status,
                 created_at=NOW - timedelta(days=i))
        for i, status in enumerate(statuses)
    ]


def _contracts(owner, *statuses):
    return [
        Contract(id=uuid4(), contract_number=f"CTR-{i}", requested_by=owner, status=status,
                 created_at=NOW - timedelta(days=i))
        for i, status in enumerate(statuses)
    ]


def test_sales_report_counts_and_breakdowns(db_runner) -> None:
    me, someone_else = uuid4(), uuid4()
    db_runner.add(
        *_proposals(me, "pending", "pending", "pending", "approved", "approved", "accepted", "rejected"),
        *_proposals(someone_else, "pending", "sent"),
        *_contracts(me, "requested", "sent_to_client", "signed", "hardbound_received"),
        *_contracts(someone_else, "requested"),
        Lead(id=uuid4(), client_name="A", claimed_by=me),
        Lead(id=uuid4(), client_name="B", claimed_by=me),
        Lead(id=uuid4(), client_name="C", claimed_by=someone_else),
        Client(id=uuid4(), company_name="Acme", account_manager=me),
    )

    report = asyncio.run(_service(db_runner).build_sales_report(Principal(id=me, role=Role.SALES)))

    assert report["stats"] == {
        "activeLeads": 2,
        "activeProposals": 5,
        "contractsInProgress": 2,
        "totalContracts": 4,
        "myClients": 1,
    }
    assert report["pipeline"]["leads"] == [{"status": "claimed", "count": 2}]
    assert report["pipeline"]["proposals"] == [
        {"status": "pending", "count": 3},
        {"status": "approved", "count": 2},
        {"status": "sent", "count": 0},
        {"status": "accepted", "count": 1},
    ]
    assert report["pipeline"]["contracts"] == [
        {"status": "pending_request", "count": 0},
        {"status": "requested", "count": 1},
        {"status": "ready_for_sales", "count": 0},
        {"status": "sent_to_sales", "count": 0},
        {"status": "sent_to_client", "count": 1},
    ]
    in_progress_breakdown = sum(item["count"] for item in report["pipeline"]["contracts"])
    assert report["stats"]["contractsInProgress"] == in_progress_breakdown


def test_sales_report_for_empty_user(db_runner) -> None:
    report = asyncio.run(_service(db_runner).build_sales_report(Principal(id=uuid4(), role=Role.SALES)))

    assert report["stats"]["activeProposals"] == 0
    assert [item["count"] for item in report["pipeline"]["proposals"]] == [0, 0, 0, 0]
    assert report["upcomingEvents"] == []
    assert report["recentActivity"] == []


def test_upcoming_events_are_next_five_scheduled(db_runner) -> None:
    me = uuid4()
    future = [
        CalendarEvent(id=uuid4(), user_id=me, title=f"Visit {i}", status="scheduled",
                      scheduled_date=NOW + timedelta(days=i))
        for i in range(6, 0, -1)
    ]
    db_runner.add(
        *future,
        CalendarEvent(id=uuid4(), user_id=me, title="Past", status="scheduled",
                      scheduled_date=NOW - timedelta(hours=1)),
        CalendarEvent(id=uuid4(), user_id=me, title="Cancelled", status="cancelled",
                      scheduled_date=NOW + timedelta(hours=1)),
        CalendarEvent(id=uuid4(), user_id=uuid4(), title="Not mine", status="scheduled",
                      scheduled_date=NOW + timedelta(hours=2)),
        CalendarEvent(id=uuid4(), user_id=me, title="Right now", status="scheduled", scheduled_date=NOW),
    )

    report = asyncio.run(_service(db_runner).build_sales_report(Principal(id=me, role=Role.SALES)))

    titles = [event["title"] for event in report["upcomingEvents"]]
    assert titles == ["Right now", "Visit 1", "Visit 2", "Visit 3", "Visit 4"]
    assert report["upcomingEvents"][0]["scheduledDate"] == "2024-06-01T12:00:00Z"


def test_recent_activity_covers_own_actions_and_owned_entities(db_runner) -> None:
    me, colleague = uuid4(), uuid4()
    inquiry = Inquiry(id=uuid4(), inquiry_number="INQ-1", name="Maria Cruz", company="Cruz Foods")
    my_proposal = Proposal(id=uuid4(), proposal_number="PRP-77", requested_by=me,
                           inquiry_id=inquiry.id, status="approved")
    my_contract = Contract(id=uuid4(), contract_number="CTR-5", requested_by=me, status="requested",
                           client_name="Juan", company_name="Juan Corp")
    their_proposal = Proposal(id=uuid4(), proposal_number="PRP-99", requested_by=colleague, status="pending")
    db_runner.add(inquiry, my_proposal, my_contract, their_proposal)
    db_runner.add(
        ActivityLog(id=uuid4(), user_id=me, action="proposal_requested", entity_type="proposal",
                    entity_id=my_proposal.id, created_at=NOW - timedelta(minutes=30),
                    details='{"oldStatus": "pending", "newStatus": "approved", "clientName": "ignored"}'),
        ActivityLog(id=uuid4(), user_id=colleague, action="contract_uploaded", entity_type="contract",
                    entity_id=my_contract.id, created_at=NOW - timedelta(minutes=10)),
        ActivityLog(id=uuid4(), user_id=colleague, action="proposal_requested", entity_type="proposal",
                    entity_id=their_proposal.id, created_at=NOW - timedelta(minutes=5)),
        ActivityLog(id=uuid4(), user_id=me, action="note_added", entity_type="lead",
                    entity_id=uuid4(), created_at=NOW - timedelta(minutes=20), details="{broken"),
    )

    report = asyncio.run(_service(db_runner).build_sales_report(Principal(id=me, role=Role.SALES)))
    activity = report["recentActivity"]

    assert [item["action"] for item in activity] == ["contract_uploaded", "note_added", "proposal_requested"]

    contract_item, lead_item, proposal_item = activity
    assert contract_item["context"] == {
        "contractNumber": "CTR-5",
        "clientName": "Juan",
        "company": "Juan Corp",
    }
    assert lead_item["detailsMalformed"] is True
    assert lead_item["context"] == {}
    assert proposal_item["context"] == {
        "proposalNumber": "PRP-77",
        "clientName": "Maria Cruz",
        "company": "Cruz Foods",
        "oldStatus": "pending",
        "newStatus": "approved",
    }
    assert "detailsMalformed" not in proposal_item


def test_recent_activity_is_limited_to_five(db_runner) -> None:
    me = uuid4()
    db_runner.add(*[
        ActivityLog(id=uuid4(), user_id=me, action=f"action-{i}", entity_type="inquiry",
                    created_at=NOW - timedelta(minutes=i))
        for i in range(8)
    ])

    report = asyncio.run(_service(db_runner).build_sales_report(Principal(id=me, role=Role.SALES)))

    assert [item["action"] for item in report["recentActivity"]] == [f"action-{i}" for i in range(5)]


def test_admin_report(db_runner) -> None:
    admin_id, sales_id = uuid4(), uuid4()
    ticket_id = uuid4()
    db_runner.add(
        User(id=sales_id, email="s@wasteph.test", first_name="Sam", last_name="Reyes", role="sales"),
        User(id=admin_id, email="a@wasteph.test", first_name="Ada", role="admin"),
        Inquiry(id=uuid4(), name="Unassigned"),
        Inquiry(id=uuid4(), name="Assigned", assigned_to=sales_id),
        Lead(id=uuid4(), client_name="L"),
        *_proposals(sales_id, "pending", "pending", "sent", "accepted"),
        *_contracts(sales_id, "requested", "signed"),
        Client(id=uuid4(), company_name="Acme"),
        ClientTicket(id=ticket_id, ticket_number="TKT-1", subject="Missed pickup", status="open", priority="urgent"),
        ClientTicket(id=uuid4(), subject="Invoice", status="in_progress", priority="low"),
        ClientTicket(id=uuid4(), subject="Old", status="closed", priority="urgent"),
        ActivityLog(id=uuid4(), user_id=admin_id, action="ticket_updated", entity_type="ticket",
                    entity_id=ticket_id, created_at=NOW),
    )

    report = asyncio.run(_service(db_runner).build_admin_report())

    assert report["stats"] == {
        "totalInquiries": 2,
        "totalLeads": 1,
        "activeProposals": 3,
        "activeContracts": 1,
        "totalClients": 1,
        "openTickets": 2,
    }
    pending = report["pendingActions"]
    assert pending["proposals"]["total"] == 2
    assert [item["requester"] for item in pending["proposals"]["items"]] == ["Sam Reyes", "Sam Reyes"]
    assert pending["contracts"]["total"] == 1
    assert pending["contracts"]["items"][0]["contractNumber"] == "CTR-0"
    assert pending["unassignedInquiries"] == 1
    assert pending["urgentTickets"] == 1

    [entry] = report["recentActivity"]
    assert entry["context"] == {"ticketNumber": "TKT-1", "subject": "Missed pickup", "actorName": "Ada"}


class FailingRunner:
    """Delegates to SQLite but fails every grouped query."""

    def __init__(self, inner) -> None:
        self._inner = inner
        self.scalar = inner.scalar

    async def all(self, statement):
        if getattr(statement, "_group_by_clauses", None):
            raise RuntimeError("connection reset")
        return await self._inner.all(statement)


def test_failed_sub_query_fails_the_report(db_runner) -> None:
    service = _service(FailingRunner(db_runner))

    with pytest.raises(AggregationFailure) as exc_info:
        asyncio.run(service.build_sales_report(Principal(id=uuid4(), role=Role.SALES)))

    assert exc_info.value.failed == ["proposals", "contracts"]
    assert exc_info.value.message == "Failed to load sales dashboard"


class SlowRunner:
    def __init__(self, inner) -> None:
        self._inner = inner
        self.all = inner.all

    async def scalar(self, statement):
        await asyncio.sleep(1.0)
        return await self._inner.scalar(statement)


def test_report_deadline(db_runner) -> None:
    service = _service(SlowRunner(db_runner), timeout=0.05)

    with pytest.raises(AggregationFailure) as exc_info:
        asyncio.run(service.build_sales_report(Principal(id=uuid4(), role=Role.SALES)))

    assert "timed out" in exc_info.value.message
    assert set(exc_info.value.failed) == {"leads", "clients"}
