"""
CalendarEvent model - site visits, calls and meetings scheduled by staff.
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


class EventStatus(StrEnum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CalendarEvent(Base):
    """Event on a user's calendar."""

    __tablename__ = "calendar_events"
    __table_args__ = (
        Index("idx_calendar_events_user_date", "user_id", "scheduled_date"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    event_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    scheduled_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    start_time: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)  # "HH:MM"
    end_time: Mapped[Optional[str]] = mapped_column(String(10), nullable=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=EventStatus.SCHEDULED.value
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utc_now, nullable=False)
