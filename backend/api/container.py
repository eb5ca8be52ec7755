"""
Process-wide service composition.

Services are built once at startup and stored on ``app.state.services``.
Routes reach them through ``get_services`` so tests can override it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request, status

from config import settings
from db.runner import QueryRunner
from services.activity_sink import ActivityLogger, BestEffortSink
from services.dashboard import DashboardService
from services.files import FileService
from services.proposals import ProposalService
from services.storage import ObjectStorage

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Services:
    sink: BestEffortSink
    activity: ActivityLogger
    files: FileService
    dashboard: DashboardService
    proposals: ProposalService


def build_services(
    runner: Optional[QueryRunner] = None,
    storage: Optional[ObjectStorage] = None,
) -> Services:
    """Wire every service against one runner and one storage client."""
    runner = runner or QueryRunner()
    storage = storage or ObjectStorage.from_settings()
    sink = BestEffortSink(runner, max_queue=settings.ACTIVITY_SINK_MAX_QUEUE)

    services = Services(
        sink=sink,
        activity=ActivityLogger(sink),
        files=FileService(
            runner,
            storage,
            sink,
            download_ttl_seconds=settings.FILE_DOWNLOAD_URL_TTL_SECONDS,
        ),
        dashboard=DashboardService(runner, timeout=settings.DASHBOARD_TIMEOUT_SECONDS),
        proposals=ProposalService(runner),
    )
    logger.info("Services initialized", extra={"bucket": storage.bucket})
    return services


def get_services(request: Request) -> Services:
    """FastAPI dependency returning the process services."""
    services: Optional[Services] = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Services not initialized",
        )
    return services
