"""
Dashboard reports.

Each report is one concurrent fan-out of independent read queries followed by
a second fan-out that enriches the activity feed with entity context. Either
every sub-query succeeds or the caller gets a single AggregationFailure.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional, Sequence
from uuid import UUID

from sqlalchemy import Select, and_, func, or_, select

from access_control.roles import Principal
from config import settings, to_iso8601, utc_now
from db.runner import QueryRunner
from models.activity_log import ActivityLog
from models.calendar_event import CalendarEvent, EventStatus
from models.client import Client
from models.contract import Contract, ContractStatus
from models.inquiry import Inquiry
from models.lead import Lead
from models.proposal import Proposal, ProposalStatus
from models.ticket import ClientTicket, TicketPriority
from models.user import User
from services.aggregation import gather_all
from services.payloads import ActivityDetails, Malformed, Ok, parse_payload
from services.pipeline_status import (
    ACTIVE_PROPOSAL_STATUSES,
    CONTRACT_DISPLAY_STATUSES,
    LEAD_CLAIMED_STATUS,
    OPEN_TICKET_STATUSES,
    PROPOSAL_DISPLAY_STATUSES,
    TERMINAL_CONTRACT_STATUSES,
    counts_from_rows,
    status_breakdown,
)

logger = logging.getLogger(__name__)

UPCOMING_EVENT_LIMIT = 5
SALES_ACTIVITY_LIMIT = 5
ADMIN_ACTIVITY_LIMIT = 15
PENDING_ITEM_LIMIT = 5


def _count(model: Any, *conditions: Any) -> Select[Any]:
    stmt = select(func.count()).select_from(model)
    if conditions:
        stmt = stmt.where(*conditions)
    return stmt


def _person_name(first: Optional[str], last: Optional[str]) -> str:
    return f"{first or ''} {last or ''}".strip()


def _event_to_dict(row: Any) -> dict[str, Any]:
    return {
        "id": str(row.id),
        "title": row.title,
        "eventType": row.event_type,
        "scheduledDate": to_iso8601(row.scheduled_date),
        "startTime": row.start_time,
        "endTime": row.end_time,
        "status": row.status,
    }


def _details_context(details: ActivityDetails, context: dict[str, Any]) -> None:
    for field, key in (
        ("old_status", "oldStatus"),
        ("new_status", "newStatus"),
        ("rejection_reason", "rejectionReason"),
        ("client_email", "clientEmail"),
        ("contract_type", "contractType"),
        ("request_notes", "requestNotes"),
        ("source", "source"),
    ):
        value = getattr(details, field)
        if value:
            context[key] = value
    # Entity lookups win over what was recorded in the details blob
    if details.ticket_number and "ticketNumber" not in context:
        context["ticketNumber"] = details.ticket_number
    if details.client_name and "clientName" not in context:
        context["clientName"] = details.client_name


class DashboardService:
    """Builds the sales and admin dashboard reports."""

    def __init__(
        self,
        runner: QueryRunner,
        clock: Callable[[], datetime] = utc_now,
        timeout: Optional[float] = settings.DASHBOARD_TIMEOUT_SECONDS,
    ) -> None:
        self._runner = runner
        self._clock = clock
        self._timeout = timeout

    # =========================================================================
    # Sales dashboard
    # =========================================================================

    async def build_sales_report(self, principal: Principal) -> dict[str, Any]:
        """
        Personal pipeline report for one principal.

        Every sub-query filters on the principal's own ownership column;
        top-line totals are derived from the same grouped counts as the
        breakdowns beneath them.
        """
        user_id = principal.id
        now = self._clock()

        results = await gather_all(
            "sales dashboard",
            {
                "leads": self._runner.scalar(_count(Lead, Lead.claimed_by == user_id)),
                "proposals": self._runner.all(
                    select(Proposal.status, func.count())
                    .where(Proposal.requested_by == user_id)
                    .group_by(Proposal.status)
                ),
                "contracts": self._runner.all(
                    select(Contract.status, func.count())
                    .where(Contract.requested_by == user_id)
                    .group_by(Contract.status)
                ),
                "clients": self._runner.scalar(_count(Client, Client.account_manager == user_id)),
                "events": self._runner.all(self._upcoming_events_query(user_id, now)),
                "activity": self._runner.all(self._sales_activity_query(user_id)),
            },
            timeout=self._timeout,
        )

        proposal_counts = counts_from_rows(results["proposals"])
        contract_counts = counts_from_rows(results["contracts"])
        lead_count = int(results["leads"] or 0)

        active_proposals = sum(proposal_counts.get(s, 0) for s in ACTIVE_PROPOSAL_STATUSES)
        total_contracts = sum(contract_counts.values())
        contracts_in_progress = sum(
            count for status, count in contract_counts.items()
            if status not in TERMINAL_CONTRACT_STATUSES
        )

        recent_activity = await self._enrich_activity(results["activity"])

        logger.info(
            "Built sales dashboard",
            extra={
                "user_id": str(user_id),
                "active_proposals": active_proposals,
                "contracts_in_progress": contracts_in_progress,
            },
        )
        return {
            "stats": {
                "activeLeads": lead_count,
                "activeProposals": active_proposals,
                "contractsInProgress": contracts_in_progress,
                "totalContracts": total_contracts,
                "myClients": int(results["clients"] or 0),
            },
            "pipeline": {
                "leads": [{"status": LEAD_CLAIMED_STATUS, "count": lead_count}],
                "proposals": status_breakdown(PROPOSAL_DISPLAY_STATUSES, proposal_counts),
                "contracts": status_breakdown(CONTRACT_DISPLAY_STATUSES, contract_counts),
            },
            "upcomingEvents": [_event_to_dict(row) for row in results["events"]],
            "recentActivity": recent_activity,
        }

    @staticmethod
    def _upcoming_events_query(user_id: UUID, now: datetime) -> Select[Any]:
        return (
            select(
                CalendarEvent.id,
                CalendarEvent.title,
                CalendarEvent.event_type,
                CalendarEvent.scheduled_date,
                CalendarEvent.start_time,
                CalendarEvent.end_time,
                CalendarEvent.status,
            )
            .where(
                CalendarEvent.user_id == user_id,
                CalendarEvent.status == EventStatus.SCHEDULED.value,
                CalendarEvent.scheduled_date >= now,
            )
            .order_by(CalendarEvent.scheduled_date.asc())
            .limit(UPCOMING_EVENT_LIMIT)
        )

    @staticmethod
    def _sales_activity_query(user_id: UUID) -> Select[Any]:
        """The principal's own actions plus actions by others on entities they own."""
        owned = (
            ("proposal", select(Proposal.id).where(Proposal.requested_by == user_id)),
            ("contract", select(Contract.id).where(Contract.requested_by == user_id)),
            ("ticket", select(ClientTicket.id).where(ClientTicket.created_by == user_id)),
            ("inquiry", select(Inquiry.id).where(Inquiry.assigned_to == user_id)),
        )
        conditions = [ActivityLog.user_id == user_id]
        for entity_type, ids in owned:
            conditions.append(
                and_(ActivityLog.entity_type == entity_type, ActivityLog.entity_id.in_(ids))
            )

        return (
            select(
                ActivityLog.id,
                ActivityLog.action,
                ActivityLog.entity_type,
                ActivityLog.entity_id,
                ActivityLog.details,
                ActivityLog.created_at,
            )
            .where(or_(*conditions))
            .order_by(ActivityLog.created_at.desc())
            .limit(SALES_ACTIVITY_LIMIT)
        )

    # =========================================================================
    # Admin dashboard
    # =========================================================================

    async def build_admin_report(self) -> dict[str, Any]:
        """System-wide counts, items awaiting admin action and the latest activity."""
        open_ticket = ClientTicket.status.in_(OPEN_TICKET_STATUSES)
        pending_proposal = Proposal.status == ProposalStatus.PENDING.value
        requested_contract = Contract.status == ContractStatus.REQUESTED.value

        results = await gather_all(
            "admin dashboard",
            {
                "inquiries": self._runner.scalar(_count(Inquiry)),
                "leads": self._runner.scalar(_count(Lead)),
                "active_proposals": self._runner.scalar(
                    _count(Proposal, Proposal.status.in_(ACTIVE_PROPOSAL_STATUSES))
                ),
                "active_contracts": self._runner.scalar(
                    _count(Contract, Contract.status.not_in(sorted(TERMINAL_CONTRACT_STATUSES)))
                ),
                "clients": self._runner.scalar(_count(Client)),
                "open_tickets": self._runner.scalar(_count(ClientTicket, open_ticket)),
                "pending_proposals_total": self._runner.scalar(_count(Proposal, pending_proposal)),
                "pending_proposals": self._runner.all(self._pending_proposals_query(pending_proposal)),
                "pending_contracts_total": self._runner.scalar(_count(Contract, requested_contract)),
                "pending_contracts": self._runner.all(self._pending_contracts_query(requested_contract)),
                "unassigned_inquiries": self._runner.scalar(
                    _count(Inquiry, Inquiry.assigned_to.is_(None))
                ),
                "urgent_tickets": self._runner.scalar(
                    _count(ClientTicket, ClientTicket.priority == TicketPriority.URGENT.value, open_ticket)
                ),
                "activity": self._runner.all(self._admin_activity_query()),
            },
            timeout=self._timeout,
        )

        recent_activity = await self._enrich_activity(results["activity"], include_actor=True)

        return {
            "stats": {
                "totalInquiries": int(results["inquiries"] or 0),
                "totalLeads": int(results["leads"] or 0),
                "activeProposals": int(results["active_proposals"] or 0),
                "activeContracts": int(results["active_contracts"] or 0),
                "totalClients": int(results["clients"] or 0),
                "openTickets": int(results["open_tickets"] or 0),
            },
            "pendingActions": {
                "proposals": {
                    "total": int(results["pending_proposals_total"] or 0),
                    "items": [
                        {
                            "id": str(row.id),
                            "proposalNumber": row.proposal_number,
                            "requester": _person_name(row.requester_first_name, row.requester_last_name),
                            "company": row.company,
                            "clientName": row.client_name,
                            "createdAt": to_iso8601(row.created_at),
                        }
                        for row in results["pending_proposals"]
                    ],
                },
                "contracts": {
                    "total": int(results["pending_contracts_total"] or 0),
                    "items": [
                        {
                            "id": str(row.id),
                            "contractNumber": row.contract_number,
                            "requester": _person_name(row.requester_first_name, row.requester_last_name),
                            "clientName": row.client_name,
                            "companyName": row.company_name,
                            "requestedAt": to_iso8601(row.requested_at),
                        }
                        for row in results["pending_contracts"]
                    ],
                },
                "unassignedInquiries": int(results["unassigned_inquiries"] or 0),
                "urgentTickets": int(results["urgent_tickets"] or 0),
            },
            "recentActivity": recent_activity,
        }

    @staticmethod
    def _pending_proposals_query(condition: Any) -> Select[Any]:
        return (
            select(
                Proposal.id,
                Proposal.proposal_number,
                Proposal.created_at,
                User.first_name.label("requester_first_name"),
                User.last_name.label("requester_last_name"),
                Inquiry.company.label("company"),
                Inquiry.name.label("client_name"),
            )
            .select_from(Proposal)
            .outerjoin(User, Proposal.requested_by == User.id)
            .outerjoin(Inquiry, Proposal.inquiry_id == Inquiry.id)
            .where(condition)
            .order_by(Proposal.created_at.desc())
            .limit(PENDING_ITEM_LIMIT)
        )

    @staticmethod
    def _pending_contracts_query(condition: Any) -> Select[Any]:
        return (
            select(
                Contract.id,
                Contract.contract_number,
                Contract.client_name,
                Contract.company_name,
                Contract.requested_at,
                User.first_name.label("requester_first_name"),
                User.last_name.label("requester_last_name"),
            )
            .select_from(Contract)
            .outerjoin(User, Contract.requested_by == User.id)
            .where(condition)
            .order_by(Contract.requested_at.desc())
            .limit(PENDING_ITEM_LIMIT)
        )

    @staticmethod
    def _admin_activity_query() -> Select[Any]:
        return (
            select(
                ActivityLog.id,
                ActivityLog.action,
                ActivityLog.entity_type,
                ActivityLog.entity_id,
                ActivityLog.details,
                ActivityLog.created_at,
                User.first_name.label("actor_first_name"),
                User.last_name.label("actor_last_name"),
            )
            .select_from(ActivityLog)
            .outerjoin(User, ActivityLog.user_id == User.id)
            .order_by(ActivityLog.created_at.desc())
            .limit(ADMIN_ACTIVITY_LIMIT)
        )

    # =========================================================================
    # Activity enrichment
    # =========================================================================

    async def _enrich_activity(
        self,
        rows: Sequence[Any],
        include_actor: bool = False,
    ) -> list[dict[str, Any]]:
        """
        Attach entity context (numbers, client/company names) to activity rows.

        Entity ids are grouped by type and looked up in one batch query per
        type, all concurrently.
        """
        if not rows:
            return []

        ids_by_type: dict[str, set[UUID]] = {}
        for row in rows:
            if row.entity_id is None:
                continue
            ids_by_type.setdefault(row.entity_type, set()).add(row.entity_id)

        lookups: dict[str, Any] = {}
        for entity_type, ids in ids_by_type.items():
            query = _entity_lookup_query(entity_type, ids)
            if query is not None:
                lookups[entity_type] = self._runner.all(query)

        fetched = await gather_all("activity context", lookups, timeout=self._timeout) if lookups else {}
        entities: dict[str, dict[UUID, Any]] = {
            entity_type: {entity.id: entity for entity in entity_rows}
            for entity_type, entity_rows in fetched.items()
        }

        enriched: list[dict[str, Any]] = []
        for row in rows:
            entity = entities.get(row.entity_type, {}).get(row.entity_id)
            context = _entity_context(row.entity_type, entity)

            item: dict[str, Any] = {
                "id": str(row.id),
                "action": row.action,
                "entityType": row.entity_type,
                "createdAt": to_iso8601(row.created_at),
                "context": context,
            }

            parsed = parse_payload(row.details, ActivityDetails)
            if isinstance(parsed, Ok):
                _details_context(parsed.value, context)
            elif isinstance(parsed, Malformed):
                item["detailsMalformed"] = True

            if include_actor and row.actor_first_name:
                context["actorName"] = _person_name(row.actor_first_name, row.actor_last_name)

            enriched.append(item)
        return enriched


def _entity_lookup_query(entity_type: str, ids: set[UUID]) -> Optional[Select[Any]]:
    """Batch lookup of context columns for one entity type (None if the type has no context)."""
    id_list = sorted(ids, key=str)
    if entity_type == "proposal":
        return (
            select(
                Proposal.id,
                Proposal.proposal_number,
                Inquiry.name.label("client_name"),
                Inquiry.company.label("company"),
            )
            .select_from(Proposal)
            .outerjoin(Inquiry, Proposal.inquiry_id == Inquiry.id)
            .where(Proposal.id.in_(id_list))
        )
    if entity_type == "contract":
        return select(
            Contract.id,
            Contract.contract_number,
            Contract.client_name,
            Contract.company_name.label("company"),
        ).where(Contract.id.in_(id_list))
    if entity_type == "inquiry":
        return select(
            Inquiry.id,
            Inquiry.inquiry_number,
            Inquiry.name.label("client_name"),
            Inquiry.company,
        ).where(Inquiry.id.in_(id_list))
    if entity_type == "lead":
        return select(Lead.id, Lead.client_name, Lead.company).where(Lead.id.in_(id_list))
    if entity_type == "client":
        return select(
            Client.id,
            Client.contact_person.label("client_name"),
            Client.company_name.label("company"),
        ).where(Client.id.in_(id_list))
    if entity_type == "ticket":
        return select(
            ClientTicket.id,
            ClientTicket.ticket_number,
            ClientTicket.subject,
        ).where(ClientTicket.id.in_(id_list))
    return None


def _entity_context(entity_type: str, entity: Any) -> dict[str, Any]:
    if entity is None:
        return {}

    context: dict[str, Any] = {}
    if entity_type == "proposal":
        context["proposalNumber"] = entity.proposal_number
    elif entity_type == "contract":
        context["contractNumber"] = entity.contract_number
    elif entity_type == "inquiry":
        context["inquiryNumber"] = entity.inquiry_number
    elif entity_type == "ticket":
        context["ticketNumber"] = entity.ticket_number
        context["subject"] = entity.subject

    if entity_type != "ticket":
        if entity.client_name:
            context["clientName"] = entity.client_name
        if entity.company:
            context["company"] = entity.company
    return context
