"""
File index endpoints.

Endpoints:
- GET /api/files - List visible files with entity-type facets
- GET /api/files/{file_id}/download - Short-lived download URL for one file
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from access_control.roles import Principal
from api.auth_middleware import get_current_principal
from api.container import Services, get_services
from db.faceting import ListFilters

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("")
async def list_files(
    entity_type: Optional[str] = Query(None, alias="entityType", description="Entity type or comma-separated list"),
    search: Optional[str] = Query(None, description="Matches file name, entity number or client name"),
    page: Optional[str] = Query(None),
    limit: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None, alias="dateFrom", description="YYYY-MM-DD, inclusive"),
    date_to: Optional[str] = Query(None, alias="dateTo", description="YYYY-MM-DD, inclusive"),
    principal: Principal = Depends(get_current_principal),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """List files the caller may see."""
    filters = ListFilters.from_params(
        page=page,
        limit=limit,
        facet=entity_type,
        search=search,
        date_from=date_from,
        date_to=date_to,
    )
    result = await services.files.list_files(principal, filters)
    return {"success": True, **result}


@router.get("/{file_id}/download")
async def get_file_download_url(
    file_id: str,
    principal: Principal = Depends(get_current_principal),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    """Presigned download URL; 404 when the file is unknown, 403 when it is not the caller's."""
    data = await services.files.get_download_url(principal, file_id)
    return {"success": True, "data": data}
