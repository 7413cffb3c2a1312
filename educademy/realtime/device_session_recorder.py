"""
Device session recorder.

Writes one device_sessions row per connection and closes it on disconnect.
Recording is an audit trail, not part of session establishment: every
failure is logged and absorbed so a database hiccup never refuses a
connection.
"""

from ..persistence.protocols import PersistenceProtocol
from ..structured_logging.enhanced_logging_config import get_logger
from ..utils.error_logging import best_effort
from .connection_models import ConnectionSession

logger = get_logger(__name__)


class DeviceSessionRecorder:
    """Persists device metadata for connections, best-effort."""

    def __init__(self, persistence: PersistenceProtocol):
        self._persistence = persistence

    async def record_connect(self, session: ConnectionSession) -> int | None:
        """
        Record a newly registered connection.

        Returns:
            The device session id, or None when recording failed
        """
        device = session.device
        record = await best_effort(
            "record_device_session",
            self._persistence.create_device_session(
                user_id=session.user_id,
                connection_id=session.connection_id,
                device_type=device.device_type,
                os=device.os,
                browser=device.browser,
                ip_address=device.ip_address,
                user_agent=device.user_agent,
            ),
            user_id=session.user_id,
            connection_id=session.connection_id,
        )
        if record is None:
            return None
        session.device_session_id = record.id
        logger.debug(
            "Device session recorded",
            device_session_id=record.id,
            device_type=device.device_type,
            os=device.os,
            browser=device.browser,
        )
        return record.id

    async def record_disconnect(self, session: ConnectionSession, reason: str) -> bool:
        """Close the connection's device session row. Returns False when nothing was closed."""
        if session.device_session_id is None:
            return False
        result = await best_effort(
            "end_device_session",
            self._closing(session.device_session_id, reason),
            default=False,
            connection_id=session.connection_id,
        )
        return bool(result)

    async def _closing(self, device_session_id: int, reason: str) -> bool:
        await self._persistence.end_device_session(device_session_id, reason)
        return True
