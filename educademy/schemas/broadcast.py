"""System broadcast request bodies.

A broadcast is one of four kinds, discriminated on ``kind``. Each goes to an
audience: every connected session, or one role's room.
"""

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import Field, model_validator

from ..models.notification import NotificationPriority
from .notification import CamelModel


class BroadcastAudience(StrEnum):
    ALL = "ALL"
    STUDENT = "STUDENT"
    INSTRUCTOR = "INSTRUCTOR"
    ADMIN = "ADMIN"
    MODERATOR = "MODERATOR"


class AnnouncementAction(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class _BroadcastBase(CamelModel):
    audience: BroadcastAudience = BroadcastAudience.ALL


class AnnouncementBroadcast(_BroadcastBase):
    """A platform announcement. Admin consoles are told about every action."""

    kind: Literal["announcement"]
    action: AnnouncementAction = AnnouncementAction.CREATED
    announcement: dict[str, Any] = Field(default_factory=dict)


class EmergencyBroadcast(_BroadcastBase):
    kind: Literal["emergency"]
    message: str = Field(min_length=1)
    priority: NotificationPriority = NotificationPriority.URGENT


class MaintenanceBroadcast(_BroadcastBase):
    kind: Literal["maintenance"]
    start_time: datetime
    end_time: datetime
    description: str = ""
    affected_services: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def window_is_ordered(self) -> "MaintenanceBroadcast":
        if self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self


class SystemUpdateBroadcast(_BroadcastBase):
    kind: Literal["system_update"]
    version: str = Field(min_length=1)
    features: list[str] = Field(default_factory=list)
    update_time: datetime | None = None
    requires_reload: bool = False


BroadcastBody = AnnouncementBroadcast | EmergencyBroadcast | MaintenanceBroadcast | SystemUpdateBroadcast
BroadcastRequest = Annotated[BroadcastBody, Field(discriminator="kind")]
