"""
Proposal listing with status facets.

Regular sales users only see proposals they requested; admins and master
sales see every proposal and may narrow to one requester. Any caller may narrow
to the proposals raised against one inquiry. Status facets
ignore the status filter so the UI can show counts for every tab.
"""
from __future__ import annotations

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.sql.elements import ColumnElement

from access_control.roles import Principal
from access_control.visibility import resolve_pipeline_scope
from config import to_iso8601
from db.faceting import FacetedSource, ListFilters, facet_counts, plan_faceted_query
from db.runner import QueryRunner
from models.inquiry import Inquiry
from models.proposal import Proposal
from services.aggregation import gather_all
from services.payloads import Malformed, Ok, ProposalData, parse_payload

logger = logging.getLogger(__name__)

PROPOSAL_SOURCE = FacetedSource(
    name="proposals",
    from_clause=Proposal.__table__.outerjoin(Inquiry.__table__, Proposal.inquiry_id == Inquiry.id),
    columns=(
        Proposal.id,
        Proposal.proposal_number,
        Proposal.inquiry_id,
        Proposal.requested_by,
        Proposal.status,
        Proposal.proposal_data,
        Proposal.created_at,
        Proposal.updated_at,
        Inquiry.name.label("inquiry_name"),
        Inquiry.email.label("inquiry_email"),
        Inquiry.company.label("inquiry_company"),
        Inquiry.inquiry_number.label("inquiry_number"),
    ),
    facet_column=Proposal.status,
    timestamp_column=Proposal.created_at,
    search_columns=(
        Proposal.proposal_number,
        Inquiry.name,
        Inquiry.company,
    ),
)


def _proposal_row_to_dict(row: Any) -> dict[str, Any]:
    parsed = parse_payload(row.proposal_data, ProposalData)
    proposal_data: Optional[dict[str, Any]] = None
    malformed = False
    if isinstance(parsed, Ok):
        proposal_data = parsed.value.model_dump(exclude_none=True, by_alias=True)
    elif isinstance(parsed, Malformed):
        malformed = True

    return {
        "id": str(row.id),
        "proposalNumber": row.proposal_number,
        "inquiryId": str(row.inquiry_id) if row.inquiry_id else None,
        "requestedBy": str(row.requested_by),
        "status": row.status,
        "proposalData": proposal_data,
        "proposalDataMalformed": malformed,
        "inquiryName": row.inquiry_name,
        "inquiryEmail": row.inquiry_email,
        "inquiryCompany": row.inquiry_company,
        "inquiryNumber": row.inquiry_number,
        "createdAt": to_iso8601(row.created_at),
        "updatedAt": to_iso8601(row.updated_at),
    }


class ProposalService:
    def __init__(self, runner: QueryRunner) -> None:
        self._runner = runner

    async def list_proposals(
        self,
        principal: Principal,
        filters: ListFilters,
        requested_by: Optional[UUID] = None,
        inquiry_id: Optional[UUID] = None,
    ) -> dict[str, Any]:
        scope = resolve_pipeline_scope(principal)

        extra: list[ColumnElement[bool]] = []
        if requested_by is not None:
            extra.append(Proposal.requested_by == requested_by)
        if inquiry_id is not None:
            extra.append(Proposal.inquiry_id == inquiry_id)

        plan = plan_faceted_query(
            PROPOSAL_SOURCE,
            scope.clause(Proposal.requested_by),
            filters,
            extra,
        )
        results = await gather_all(
            "proposal listing",
            {
                "total": self._runner.scalar(plan.count_query),
                "rows": self._runner.all(plan.list_query),
                "facets": self._runner.all(plan.facet_query),
            },
        )

        total = int(results["total"] or 0)
        logger.info(
            "Listed proposals",
            extra={
                "user_id": str(principal.id),
                "scope": scope.kind.value,
                "total": total,
            },
        )
        return {
            "data": [_proposal_row_to_dict(row) for row in results["rows"]],
            "pagination": filters.pagination(total),
            "facets": {"status": facet_counts(results["facets"])},
        }
