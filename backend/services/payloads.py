"""
Typed payloads stored as JSON text columns.

Payloads are validated when written and decoded into a ParseResult when read,
so a corrupt column is reported as Malformed instead of silently becoming an
empty dict.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generic, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

PAYLOAD_VERSION: int = 1

ModelT = TypeVar("ModelT", bound=BaseModel)


class ActivityDetails(BaseModel):
    """Optional context recorded with an activity log entry."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True, alias_generator=to_camel)

    version: int = PAYLOAD_VERSION
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    rejection_reason: Optional[str] = None
    client_email: Optional[str] = None
    client_name: Optional[str] = None
    contract_type: Optional[str] = None
    request_notes: Optional[str] = None
    ticket_number: Optional[str] = None
    source: Optional[str] = None


class ProposalData(BaseModel):
    """Client-facing content of a proposal."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, alias_generator=to_camel)

    version: int = PAYLOAD_VERSION
    client_name: Optional[str] = None
    client_email: Optional[str] = None
    client_company: Optional[str] = None
    service_name: Optional[str] = None
    total: Optional[float] = None


@dataclass(frozen=True)
class Ok(Generic[ModelT]):
    value: ModelT


@dataclass(frozen=True)
class Malformed:
    raw: str
    error: str


ParseResult = Union[Ok[ModelT], Malformed]


def encode_payload(payload: BaseModel) -> str:
    """Serialize a validated payload for storage."""
    return payload.model_dump_json(exclude_none=True, by_alias=True)


def parse_payload(raw: Optional[str], model: type[ModelT]) -> Optional[ParseResult[ModelT]]:
    """
    Decode a stored payload.

    Returns None when nothing was stored, Ok(model) when the text validates
    and Malformed(raw, error) otherwise.
    """
    if raw is None or raw == "":
        return None
    try:
        return Ok(model.model_validate_json(raw))
    except ValidationError as e:
        logger.warning(
            "Malformed stored payload",
            extra={"model": model.__name__, "errors": e.error_count()},
        )
        return Malformed(raw=raw, error=str(e))
