"""
Room membership manager.

Validates and authorises client requests to join or leave rooms, then
applies them to the session registry. Course rooms are open to enrolled
students and the owning instructor; a user room only to its user; a role
room only to holders of that role. Any other room type is open.
"""

from dataclasses import dataclass

from ..exceptions import ForbiddenError
from ..persistence.protocols import AuditSinkProtocol, AuthorizationOracleProtocol
from ..structured_logging.enhanced_logging_config import get_logger
from ..utils.error_logging import create_error_context
from .connection_models import ConnectionSession, RoomKey, RoomType
from .session_registry import SessionRegistry

logger = get_logger(__name__)


@dataclass(frozen=True)
class RoomAck:
    room_id: str
    member_count: int


class RoomMembershipManager:
    """Applies authorised join/leave requests."""

    def __init__(self, registry: SessionRegistry, oracle: AuthorizationOracleProtocol, audit: AuditSinkProtocol):
        self._registry = registry
        self._oracle = oracle
        self._audit = audit

    async def join(self, session: ConnectionSession, room_type: str | None, room_id: str | None) -> RoomAck:
        """
        Join a room on behalf of a connection.

        Args:
            session: Requesting connection
            room_type: Room type, for example ``course``
            room_id: Room id within the type

        Returns:
            RoomAck: Room key and member count after the join

        Raises:
            InvalidRoomSpecError: If type or id is missing
            ForbiddenError: If the user may not join the room
        """
        key = RoomKey.of(room_type, room_id)
        await self._authorize(session, key)
        count = await self._registry.join_room(session.connection_id, key)
        self._record("ROOM_JOINED", session, key, count)
        return RoomAck(str(key), count)

    async def leave(self, session: ConnectionSession, room_type: str | None, room_id: str | None) -> RoomAck:
        """
        Leave a room. Leaving a room not joined succeeds.

        Raises:
            InvalidRoomSpecError: If type or id is missing
        """
        key = RoomKey.of(room_type, room_id)
        count = await self._registry.leave_room(session.connection_id, key)
        self._record("ROOM_LEFT", session, key, count)
        return RoomAck(str(key), count)

    async def _authorize(self, session: ConnectionSession, key: RoomKey) -> None:
        allowed = True
        if key.room_type == RoomType.COURSE:
            try:
                course_id = int(key.room_id)
            except ValueError:
                allowed = False
            else:
                allowed = await self._oracle.is_enrolled(session.user_id, course_id) or await self._oracle.is_course_owner(
                    session.user_id, course_id
                )
        elif key.room_type == RoomType.USER:
            allowed = key.room_id == str(session.user_id)
        elif key.room_type == RoomType.ROLE:
            allowed = key.room_id == session.role

        if not allowed:
            raise ForbiddenError(
                f"User {session.user_id} may not join room {key}",
                context=create_error_context(
                    operation="join_room", user_id=session.user_id, connection_id=session.connection_id, room_id=str(key)
                ),
                user_friendly="Access denied to this room",
            )

    def _record(self, operation: str, session: ConnectionSession, key: RoomKey, member_count: int) -> None:
        try:
            self._audit.log_business_operation(
                operation,
                "room",
                str(key),
                "SUCCESS",
                {"user_id": session.user_id, "connection_id": session.connection_id, "member_count": member_count},
            )
        except Exception as e:  # pylint: disable=broad-exception-caught  # Reason: membership audit is best-effort
            logger.warning("Room membership audit failed", room=str(key), error=str(e))
