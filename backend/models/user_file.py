"""
UserFile model - index of every file the system generated or received.

The bytes live in object storage under ``file_url`` (an object key); this
table only records metadata used for listing and access checks.
"""
from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum
from typing import Optional

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from config import utc_now
from models.database import Base


class FileEntityType(StrEnum):
    PROPOSAL = "proposal"
    CONTRACT = "contract"
    SIGNED_CONTRACT = "signed_contract"
    HARDBOUND_CONTRACT = "hardbound_contract"
    CUSTOM_TEMPLATE = "custom_template"
    TICKET_ATTACHMENT = "ticket_attachment"


class UserFile(Base):
    """Metadata for a stored file."""

    __tablename__ = "user_files"
    __table_args__ = (
        Index("idx_user_files_uploaded_by", "uploaded_by"),
        Index("idx_user_files_entity_type", "entity_type"),
        Index("idx_user_files_created_at", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    file_name: Mapped[str] = mapped_column(String(512), nullable=False)
    file_url: Mapped[str] = mapped_column(String(1024), nullable=False)  # object key
    file_type: Mapped[str] = mapped_column(String(255), nullable=False, default="application/pdf")
    file_size: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)

    entity_type: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    related_entity_number: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    client_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    action: Mapped[str] = mapped_column(String(50), nullable=False, default="generated")

    uploaded_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("users.id"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
