"""Persisted notification model."""

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, utc_now_naive


class NotificationPriority(StrEnum):
    LOW = "LOW"
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"


class NotificationType(StrEnum):
    ASSIGNMENT_GRADED = "ASSIGNMENT_GRADED"
    RESUBMIT_REQUESTED = "RESUBMIT_REQUESTED"
    NEW_STUDENT_ENROLLED = "NEW_STUDENT_ENROLLED"
    COURSE_ANNOUNCEMENT = "COURSE_ANNOUNCEMENT"
    SYSTEM = "SYSTEM"


class Notification(Base):
    """
    A personal notification queued for one user.

    Rows stay unread until the user acknowledges them and are included in every
    connect-time drain until then. The integer id is the insertion order used
    to break ties between equal ``created_at`` values.
    """

    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_unread", "user_id", "is_read", "created_at"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(length=50), nullable=False)
    title: Mapped[str] = mapped_column(String(length=255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    priority: Mapped[str] = mapped_column(String(length=10), nullable=False, default=NotificationPriority.NORMAL.value)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    action_url: Mapped[str | None] = mapped_column(String(length=500), nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    is_delivered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(), nullable=False, default=utc_now_naive)
