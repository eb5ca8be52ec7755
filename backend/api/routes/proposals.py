"""
Proposal endpoints.

Endpoints:
- GET /api/proposals - List proposals with status facets
"""

import logging
from typing import Any, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query

from access_control.roles import Principal
from api.auth_middleware import get_current_principal
from api.container import Services, get_services
from db.faceting import ListFilters

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
async def list_proposals(
    status: Optional[str] = Query(None, description="Status or comma-separated list"),
    requested_by: Optional[str] = Query(None, alias="requestedBy", description="Requester user ID"),
    inquiry_id: Optional[str] = Query(None, alias="inquiryId", description="Inquiry ID"),
    search: Optional[str] = Query(None, description="Matches proposal number, client name or company"),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None, alias="dateFrom"),
    date_to: Optional[str] = Query(None, alias="dateTo"),
    principal: Principal = Depends(get_current_principal),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """List proposals the caller may see."""
    requester_uuid: Optional[UUID] = None
    if requested_by:
        try:
            requester_uuid = UUID(requested_by)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid requestedBy")
    inquiry_uuid: Optional[UUID] = None
    if inquiry_id:
        try:
            inquiry_uuid = UUID(inquiry_id)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid inquiryId")

    filters = ListFilters.from_params(
        page=page,
        limit=limit,
        facet=status,
        search=search,
        date_from=date_from,
        date_to=date_to,
    )
    result = await services.proposals.list_proposals(
        principal, filters, requested_by=requester_uuid, inquiry_id=inquiry_uuid
    )
    return {"success": True, **result}
