"""Device session repository for async persistence operations."""

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ...exceptions import DatabaseError
from ...models.base import utc_now_naive
from ...models.device_session import DeviceSession
from ...schemas.user import DeviceSessionRecord
from ...structured_logging.enhanced_logging_config import get_logger
from ...utils.error_logging import create_error_context, log_and_raise

logger = get_logger(__name__)


class DeviceSessionRepository:
    """Repository for per-connection device records."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self._session_maker = session_maker

    async def create_device_session(
        self,
        user_id: int,
        connection_id: str,
        device_type: str,
        os: str,
        browser: str,
        ip_address: str | None,
        user_agent: str | None,
    ) -> DeviceSessionRecord:
        context = create_error_context(operation="create_device_session", user_id=user_id, connection_id=connection_id)
        try:
            async with self._session_maker() as session:
                record = DeviceSession(
                    user_id=user_id,
                    connection_id=connection_id,
                    device_type=device_type,
                    os=os,
                    browser=browser,
                    ip_address=ip_address,
                    user_agent=user_agent[:500] if user_agent else None,
                    connected_at=utc_now_naive(),
                )
                session.add(record)
                await session.commit()
                await session.refresh(record)
                return DeviceSessionRecord.model_validate(record)
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error recording device session: {e}",
                context=context,
                details={"error": str(e)},
                operation="create_device_session",
                table="device_sessions",
            )

    async def end_device_session(self, session_id: int, reason: str) -> None:
        context = create_error_context(operation="end_device_session")
        try:
            async with self._session_maker() as session:
                stmt = (
                    update(DeviceSession)
                    .where(DeviceSession.id == session_id)
                    .values(is_active=False, disconnected_at=utc_now_naive(), disconnect_reason=reason[:100])
                )
                await session.execute(stmt)
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            log_and_raise(
                DatabaseError,
                f"Database error closing device session '{session_id}': {e}",
                context=context,
                details={"session_id": session_id, "error": str(e)},
                operation="end_device_session",
                table="device_sessions",
            )
