"""
Dashboard endpoints.

Endpoints:
- GET /api/dashboard/sales - Personal pipeline report for the caller
- GET /api/dashboard/admin - System-wide report (admin, super_admin)
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends

from access_control.roles import Principal, Role
from api.auth_middleware import get_current_principal, require_roles
from api.container import Services, get_services

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/sales")
async def get_sales_dashboard(
    principal: Principal = Depends(get_current_principal),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    report = await services.dashboard.build_sales_report(principal)
    return {"success": True, "data": report}


@router.get("/admin")
async def get_admin_dashboard(
    principal: Principal = Depends(require_roles(Role.ADMIN, Role.SUPER_ADMIN)),
    services: Services = Depends(get_services),
) -> dict[str, Any]:
    logger.info("Admin dashboard requested", extra={"user_id": str(principal.id)})
    report = await services.dashboard.build_admin_report()
    return {"success": True, "data": report}
