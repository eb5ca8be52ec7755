"""
Proposal model - priced service proposals requested by sales and reviewed by admins.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from config import utc_now
from models.database import Base


class ProposalStatus(StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    DISAPPROVED = "disapproved"
    SENT = "sent"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class Proposal(Base):
    """Proposal for an inquiry, owned by the requesting sales user."""

    __tablename__ = "proposals"
    __table_args__ = (
        Index("idx_proposals_requested_by_status", "requested_by", "status"),
        Index("idx_proposals_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    proposal_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    inquiry_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("inquiries.id"), nullable=True
    )
    requested_by: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(50), nullable=False, default=ProposalStatus.PENDING.value
    )

    # Serialized ProposalData (see services/payloads.py)
    proposal_data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
