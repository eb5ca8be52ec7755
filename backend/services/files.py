"""
Stored-file listing, download authorization and file-event logging.

Listing runs the count, page and facet queries concurrently; all three share
the principal's file scope plus the date/search filters, and only the count
and page queries apply the entity-type filter.
"""
from __future__ import annotations

import logging
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import select

from access_control.roles import Principal
from access_control.visibility import authorize_file, resolve_file_scope
from config import settings, to_iso8601
from db.faceting import FacetedSource, ListFilters, facet_counts, plan_faceted_query
from db.runner import QueryRunner
from models.user import User
from models.user_file import UserFile
from services.activity_sink import BestEffortSink, file_event_statement
from services.aggregation import gather_all
from services.errors import NotFoundError
from services.storage import ObjectStorage

logger = logging.getLogger(__name__)

FILE_SOURCE = FacetedSource(
    name="files",
    from_clause=UserFile.__table__.outerjoin(User.__table__, UserFile.uploaded_by == User.id),
    columns=(
        UserFile.id,
        UserFile.file_name,
        UserFile.file_type,
        UserFile.file_size,
        UserFile.entity_type,
        UserFile.entity_id,
        UserFile.related_entity_number,
        UserFile.client_name,
        UserFile.action,
        UserFile.uploaded_by,
        UserFile.created_at,
        User.first_name.label("uploader_first_name"),
        User.last_name.label("uploader_last_name"),
    ),
    facet_column=UserFile.entity_type,
    timestamp_column=UserFile.created_at,
    search_columns=(
        UserFile.file_name,
        UserFile.related_entity_number,
        UserFile.client_name,
    ),
)


def _file_row_to_dict(row: Any) -> dict[str, Any]:
    return {
        "id": str(row.id),
        "fileName": row.file_name,
        "fileType": row.file_type,
        "fileSize": row.file_size,
        "entityType": row.entity_type,
        "entityId": str(row.entity_id) if row.entity_id else None,
        "relatedEntityNumber": row.related_entity_number,
        "clientName": row.client_name,
        "action": row.action,
        "uploadedBy": str(row.uploaded_by) if row.uploaded_by else None,
        "uploaderName": f"{row.uploader_first_name or ''} {row.uploader_last_name or ''}".strip() or None,
        "createdAt": to_iso8601(row.created_at),
    }


class FileService:
    """Role-scoped access to the file index."""

    def __init__(
        self,
        runner: QueryRunner,
        storage: ObjectStorage,
        sink: BestEffortSink,
        download_ttl_seconds: int = settings.FILE_DOWNLOAD_URL_TTL_SECONDS,
    ) -> None:
        self._runner = runner
        self._storage = storage
        self._sink = sink
        self._download_ttl_seconds = download_ttl_seconds

    async def list_files(self, principal: Principal, filters: ListFilters) -> dict[str, Any]:
        """One page of visible files with pagination and entity-type facets."""
        scope = resolve_file_scope(principal)
        plan = plan_faceted_query(
            FILE_SOURCE,
            scope.clause(UserFile.uploaded_by, UserFile.entity_type),
            filters,
        )

        results = await gather_all(
            "file listing",
            {
                "total": self._runner.scalar(plan.count_query),
                "rows": self._runner.all(plan.list_query),
                "facets": self._runner.all(plan.facet_query),
            },
        )

        total = int(results["total"] or 0)
        logger.info(
            "Listed files",
            extra={
                "user_id": str(principal.id),
                "scope": scope.kind.value,
                "total": total,
                "page": filters.page,
            },
        )
        return {
            "data": [_file_row_to_dict(row) for row in results["rows"]],
            "pagination": filters.pagination(total),
            "facets": {"entityType": facet_counts(results["facets"])},
        }

    async def get_download_url(self, principal: Principal, file_id: str) -> dict[str, Any]:
        """Authorize a download and return a short-lived URL for it."""
        try:
            file_uuid = UUID(str(file_id))
        except ValueError:
            raise NotFoundError("File not found")

        record = authorize_file(
            principal,
            await self._runner.scalar_one_or_none(
                select(UserFile).where(UserFile.id == file_uuid).limit(1)
            ),
        )

        download_url = await self._storage.get_presigned_url(
            record.file_url,
            self._download_ttl_seconds,
            file_name=record.file_name,
        )
        return {
            "downloadUrl": download_url,
            "fileName": record.file_name,
            "fileType": record.file_type,
        }

    def log_file(
        self,
        *,
        file_name: str,
        file_url: str,
        entity_type: str,
        action: str,
        entity_id: Optional[UUID] = None,
        file_type: Optional[str] = None,
        file_size: Optional[int] = None,
        related_entity_number: Optional[str] = None,
        client_name: Optional[str] = None,
        uploaded_by: Optional[UUID] = None,
    ) -> bool:
        """Record a file event without waiting for (or failing on) the write."""
        statement = file_event_statement(
            file_name=file_name,
            file_url=file_url,
            entity_type=entity_type,
            action=action,
            entity_id=entity_id,
            file_type=file_type,
            file_size=file_size,
            related_entity_number=related_entity_number,
            client_name=client_name,
            uploaded_by=uploaded_by,
        )
        return self._sink.submit(statement, label=f"file:{entity_type}:{action}")
