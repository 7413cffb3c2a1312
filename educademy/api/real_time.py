"""
Real-time API endpoints for Educademy.

The WebSocket gateway at ``/ws`` plus the administrative surface over live
connections: system statistics, online users by role, forced eviction, and
system broadcasts.
"""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, WebSocket

from ..container import ApplicationContainer
from ..dependencies import get_broadcast_service, get_connection_manager, require_admin
from ..error_types import create_websocket_error_response
from ..models.user import UserRole
from ..realtime.connection_manager import ConnectionManager
from ..realtime.envelope import build_event
from ..realtime.events import ServerEvent
from ..realtime.websocket_handler import handle_websocket_connection
from ..schemas.broadcast import BroadcastBody
from ..schemas.user import UserRecord
from ..services.system_broadcast_service import SystemBroadcastService
from ..structured_logging.enhanced_logging_config import get_logger

logger = get_logger(__name__)

realtime_router = APIRouter(tags=["realtime"])


@realtime_router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """
    WebSocket gateway.

    The client authenticates with a bearer token in the ``Authorization``
    header, the ``token`` query parameter, the ``bearer, <token>``
    subprotocol, or an ``authenticate`` event sent as its first frame.
    """
    container: ApplicationContainer | None = getattr(websocket.app.state, "container", None)
    if container is None or not container.is_initialized:
        await websocket.accept()
        await websocket.send_json(
            build_event(
                ServerEvent.ERROR,
                create_websocket_error_response("service_unavailable", "Service temporarily unavailable"),
            )
        )
        await websocket.close(code=1013)
        return

    assert container.connection_manager is not None
    assert container.message_handler is not None
    assert container.config is not None
    await handle_websocket_connection(
        websocket, container.connection_manager, container.message_handler, container.config.realtime
    )


@realtime_router.get("/api/realtime/stats")
async def get_realtime_stats(
    _admin: UserRecord = Depends(require_admin),
    connection_manager: ConnectionManager = Depends(get_connection_manager),
) -> dict[str, Any]:
    return {"success": True, "data": connection_manager.get_system_stats()}


@realtime_router.get("/api/realtime/online/{role}")
async def get_online_users(
    role: UserRole,
    _admin: UserRecord = Depends(require_admin),
    connection_manager: ConnectionManager = Depends(get_connection_manager),
) -> dict[str, Any]:
    users = connection_manager.get_online_users_by_role(role)
    return {"success": True, "data": {"role": role, "users": users, "count": len(users)}}


@realtime_router.post("/api/realtime/users/{user_id}/disconnect")
async def disconnect_user(
    user_id: int,
    admin: UserRecord = Depends(require_admin),
    connection_manager: ConnectionManager = Depends(get_connection_manager),
) -> dict[str, Any]:
    """Evict every live connection of a user."""
    closed = await connection_manager.disconnect_user(user_id, reason="admin_action")
    logger.info("Admin disconnected user", admin_id=admin.id, user_id=user_id, connections=closed)
    return {"success": True, "data": {"userId": user_id, "closedConnections": closed}}


@realtime_router.post("/api/realtime/broadcast")
async def send_system_broadcast(
    broadcast: Annotated[BroadcastBody, Body(discriminator="kind")],
    admin: UserRecord = Depends(require_admin),
    broadcast_service: SystemBroadcastService = Depends(get_broadcast_service),
) -> dict[str, Any]:
    """Push an announcement, emergency notice, maintenance window or release note live."""
    result = await broadcast_service.broadcast(admin.id, broadcast)
    return {"success": True, "data": result}
