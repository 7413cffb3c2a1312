"""Notification records."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ..models.notification import NotificationPriority


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class NotificationDraft(CamelModel):
    """Content of a notification before it is persisted."""

    type: str
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    data: dict[str, Any] = Field(default_factory=dict)
    action_url: str | None = None
    expires_at: datetime | None = None


class NotificationRecord(CamelModel):
    """A persisted notification."""

    id: int
    user_id: int
    type: str
    title: str
    message: str
    priority: NotificationPriority = NotificationPriority.NORMAL
    data: dict[str, Any] = Field(default_factory=dict)
    action_url: str | None = None
    is_read: bool = False
    read_at: datetime | None = None
    is_delivered: bool = False
    delivered_at: datetime | None = None
    expires_at: datetime | None = None
    created_at: datetime


class MarkReadRequest(CamelModel):
    notification_ids: list[int] = Field(default_factory=list)
    mark_all: bool = False
