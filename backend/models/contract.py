"""
Contract model - contracts requested from accepted proposals.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from config import utc_now
from models.database import Base


class ContractStatus(StrEnum):
    """Contract lifecycle, in workflow order."""

    PENDING_REQUEST = "pending_request"
    REQUESTED = "requested"
    READY_FOR_SALES = "ready_for_sales"
    SENT_TO_SALES = "sent_to_sales"
    SENT_TO_CLIENT = "sent_to_client"
    SIGNED = "signed"
    HARDBOUND_RECEIVED = "hardbound_received"


class Contract(Base):
    """Contract owned by the sales user who requested it."""

    __tablename__ = "contracts"
    __table_args__ = (
        Index("idx_contracts_requested_by_status", "requested_by", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    contract_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    proposal_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("proposals.id"), nullable=True
    )
    requested_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ContractStatus.PENDING_REQUEST.value
    )
    client_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    company_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    requested_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
