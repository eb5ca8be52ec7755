"""
Domain errors raised by the service layer.

Each error carries a machine-readable ``kind`` and a human message so the
HTTP layer can map it to a status code without inspecting the text.
Infrastructure errors (driver, pool, SQL) are never wrapped here except when
they break a concurrent fan-out, which surfaces as AggregationFailure.
"""
from __future__ import annotations


class CrmError(Exception):
    """Base class for errors the API reports with a specific status."""

    kind: str = "error"
    status_code: int = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, object]:
        return {"success": False, "message": self.message, "kind": self.kind}


class NotFoundError(CrmError):
    """The requested record does not exist."""

    kind = "not_found"
    status_code = 404


class AccessDeniedError(CrmError):
    """The principal's visibility scope rejects the requested record."""

    kind = "access_denied"
    status_code = 403


class AggregationFailure(CrmError):
    """One or more sub-queries of a concurrent aggregation failed."""

    kind = "aggregation_failed"
    status_code = 500

    def __init__(self, message: str, failed: list[str] | None = None) -> None:
        super().__init__(message)
        self.failed: list[str] = failed or []
