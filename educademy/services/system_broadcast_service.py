"""
Administrative system broadcasts.

Announcements, emergency notices, maintenance windows and release notes are
pushed live to an audience: every connected session, or the room of one
role. Nothing is persisted, so offline users do not see them on reconnect.
"""

from typing import Any

from ..models.user import UserRole
from ..persistence.protocols import AuditSinkProtocol
from ..realtime.events import ServerEvent
from ..realtime.notification_dispatcher import NotificationDispatcher
from ..schemas.broadcast import (
    AnnouncementAction,
    AnnouncementBroadcast,
    BroadcastAudience,
    BroadcastRequest,
    EmergencyBroadcast,
    MaintenanceBroadcast,
    SystemUpdateBroadcast,
)
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

ANNOUNCEMENT_ADMIN_EVENTS = {
    AnnouncementAction.CREATED: ServerEvent.ANNOUNCEMENT_CREATED,
    AnnouncementAction.UPDATED: ServerEvent.ANNOUNCEMENT_UPDATED,
    AnnouncementAction.DELETED: ServerEvent.ANNOUNCEMENT_DELETED,
}


def build_broadcast_event(request: BroadcastRequest) -> tuple[ServerEvent, dict[str, Any]]:
    """Event name and payload the audience receives for a broadcast."""
    body = request.model_dump(by_alias=True, mode="json", exclude={"kind", "audience", "action"})
    match request:
        case AnnouncementBroadcast():
            return ServerEvent.ANNOUNCEMENT_BROADCAST, {**body, "audience": str(request.audience)}
        case EmergencyBroadcast():
            return ServerEvent.EMERGENCY_NOTIFICATION, {**body, "type": "emergency", "requiresAcknowledgment": True}
        case MaintenanceBroadcast():
            return ServerEvent.MAINTENANCE_NOTIFICATION, {**body, "type": "maintenance"}
        case SystemUpdateBroadcast():
            return ServerEvent.SYSTEM_UPDATE, body
    raise TypeError(f"Unsupported broadcast {type(request).__name__}")


class SystemBroadcastService:
    """Routes admin broadcasts through the dispatcher's role and global fan-out."""

    def __init__(self, dispatcher: NotificationDispatcher, audit: AuditSinkProtocol):
        self._dispatcher = dispatcher
        self._audit = audit

    async def _send_to_audience(self, audience: BroadcastAudience, event: str, payload: dict[str, Any]) -> int:
        if audience == BroadcastAudience.ALL:
            return await self._dispatcher.broadcast(event, payload)
        return await self._dispatcher.send_to_role(audience.value, event, payload)

    async def broadcast(self, sender_id: int, request: BroadcastRequest) -> dict[str, Any]:
        """
        Push a broadcast to its audience.

        An announcement that is created reaches the audience; every
        announcement action is also mirrored to the ADMIN room so admin
        consoles stay in step.

        Returns:
            dict: ``{"kind", "audience", "deliveries"}`` where deliveries maps
            each emitted event to the number of connections that accepted it
        """
        event, payload = build_broadcast_event(request)
        payload = {**payload, "sentBy": sender_id}
        deliveries: dict[str, int] = {}

        if isinstance(request, AnnouncementBroadcast):
            if request.action == AnnouncementAction.CREATED:
                deliveries[event] = await self._send_to_audience(request.audience, event, payload)
            admin_event = ANNOUNCEMENT_ADMIN_EVENTS[request.action]
            deliveries[admin_event] = await self._dispatcher.send_to_role(UserRole.ADMIN, admin_event, payload)
        else:
            deliveries[event] = await self._send_to_audience(request.audience, event, payload)

        logger.info(
            "System broadcast sent",
            kind=request.kind,
            audience=str(request.audience),
            sender_id=sender_id,
            deliveries=deliveries,
        )
        try:
            self._audit.log_business_operation(
                "SYSTEM_BROADCAST",
                "broadcast",
                request.kind,
                "SUCCESS",
                {"sender_id": sender_id, "audience": str(request.audience), "deliveries": deliveries},
            )
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: audit failure must not fail a sent broadcast
            logger.warning("Broadcast audit failed", kind=request.kind, error=str(e))
        return {"kind": request.kind, "audience": str(request.audience), "deliveries": deliveries}
