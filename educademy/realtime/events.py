"""
Realtime event vocabulary.

Client events form a closed, discriminated union keyed on ``event``; anything
outside it is rejected at parse time. Server events are named by
ServerEvent and their payloads are typed models serialised in camelCase.
"""

from enum import StrEnum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from ..exceptions import ValidationError


class ServerEvent(StrEnum):
    """Event names the server emits."""

    CONNECTED = "connected"
    NEW_DEVICE_CONNECTED = "new_device_connected"
    DEVICE_DISCONNECTED = "device_disconnected"
    JOINED_ROOM = "joined_room"
    LEFT_ROOM = "left_room"
    PENDING_NOTIFICATIONS = "pending_notifications"
    NEW_NOTIFICATION = "new_notification"
    USER_TYPING = "user_typing"
    NOTIFICATIONS_MARKED_READ = "notifications_marked_read"
    UNREAD_COUNT_UPDATED = "unread_count_updated"
    PONG = "pong"
    FORCE_DISCONNECT = "force_disconnect"
    ERROR = "error"
    ASSIGNMENT_GRADED = "ASSIGNMENT_GRADED"
    NEW_STUDENT_ENROLLED = "new_student_enrolled"
    ANNOUNCEMENT_BROADCAST = "announcement_broadcast"
    ANNOUNCEMENT_CREATED = "announcement_created"
    ANNOUNCEMENT_UPDATED = "announcement_updated"
    ANNOUNCEMENT_DELETED = "announcement_deleted"
    EMERGENCY_NOTIFICATION = "emergency_notification"
    MAINTENANCE_NOTIFICATION = "maintenance_notification"
    SYSTEM_UPDATE = "system_update"


class _WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )


# Client -> server


class AuthenticateEvent(_WireModel):
    event: Literal["authenticate"]
    token: str = ""


class JoinRoomEvent(_WireModel):
    event: Literal["join_room"]
    room_type: str = ""
    room_id: str = ""


class LeaveRoomEvent(_WireModel):
    event: Literal["leave_room"]
    room_type: str = ""
    room_id: str = ""


class MarkNotificationsReadEvent(_WireModel):
    event: Literal["mark_notifications_read"]
    notification_ids: list[int] = Field(default_factory=list)
    mark_all: bool = False


class GetUnreadCountEvent(_WireModel):
    event: Literal["get_unread_count"]


class TypingEvent(_WireModel):
    event: Literal["typing"]
    room_id: str = ""
    is_typing: bool = True


class JoinCourseEvent(_WireModel):
    event: Literal["join_course"]
    course_id: str = ""


class PingEvent(_WireModel):
    event: Literal["ping"]


ClientEvent = Annotated[
    AuthenticateEvent
    | JoinRoomEvent
    | LeaveRoomEvent
    | MarkNotificationsReadEvent
    | GetUnreadCountEvent
    | TypingEvent
    | JoinCourseEvent
    | PingEvent,
    Field(discriminator="event"),
]

_client_event_adapter: TypeAdapter[Any] = TypeAdapter(ClientEvent)


def parse_client_event(raw: Any) -> Any:
    """
    Parse an inbound frame into a client event.

    Accepts either a flat object (``{"event": "join_room", "roomType": ...}``)
    or one with the fields nested under ``data``.

    Raises:
        ValidationError: If the frame is not an object, names an unknown event,
            or carries malformed fields
    """
    if not isinstance(raw, dict):
        raise ValidationError("Message must be a JSON object", field="message")
    payload = dict(raw)
    nested = payload.pop("data", None)
    if isinstance(nested, dict):
        payload = {**nested, **payload}
    try:
        return _client_event_adapter.validate_python(payload)
    except PydanticValidationError as e:
        raise ValidationError(
            f"Malformed client event: {e.error_count()} error(s)",
            field="event",
            value=payload.get("event"),
            details={"errors": e.errors(include_url=False, include_input=False)},
            user_friendly="Unrecognised or malformed message",
        ) from e


# Server -> client payloads


class ServerPayload(_WireModel):
    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class ConnectedPayload(ServerPayload):
    success: bool = True
    user_id: int
    connection_id: str
    role: str
    connected_devices: int
    rooms: list[str]


class DeviceInfoPayload(ServerPayload):
    device_type: str
    os: str
    browser: str
    ip_address: str | None = None


class NewDeviceConnectedPayload(ServerPayload):
    device_info: DeviceInfoPayload
    total_devices: int


class DeviceDisconnectedPayload(ServerPayload):
    reason: str
    total_devices: int


class RoomAckPayload(ServerPayload):
    room_id: str
    member_count: int


class PendingNotificationsPayload(ServerPayload):
    notifications: list[dict[str, Any]]
    count: int


class UserTypingPayload(ServerPayload):
    user_id: int
    user_name: str
    room_id: str
    is_typing: bool


class NotificationsMarkedReadPayload(ServerPayload):
    notification_ids: list[int]
    mark_all: bool
    count: int


class UnreadCountPayload(ServerPayload):
    count: int


class ForceDisconnectPayload(ServerPayload):
    reason: str
    message: str
