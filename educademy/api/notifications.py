"""
Notification API endpoints.

The REST view of a user's pending-notification queue. Every route acts only
on the caller's own notifications.
"""

from typing import Any

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_current_user, get_notification_queue
from ..schemas.notification import MarkReadRequest
from ..schemas.user import UserRecord
from ..services.pending_notification_queue import PendingNotificationQueue

notification_router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@notification_router.get("/unread")
async def get_unread_notifications(
    limit: int | None = Query(default=None, ge=1, le=500),
    current_user: UserRecord = Depends(get_current_user),
    queue: PendingNotificationQueue = Depends(get_notification_queue),
) -> dict[str, Any]:
    notifications = await queue.unread(current_user.id, limit=limit)
    return {
        "success": True,
        "data": {"notifications": [n.to_wire() for n in notifications], "count": len(notifications)},
    }


@notification_router.post("/read")
async def mark_notifications_read(
    body: MarkReadRequest,
    current_user: UserRecord = Depends(get_current_user),
    queue: PendingNotificationQueue = Depends(get_notification_queue),
) -> dict[str, Any]:
    """Mark notifications read. Ids belonging to other users are ignored."""
    count = await queue.acknowledge(current_user.id, body.notification_ids, mark_all=body.mark_all)
    unread = await queue.unread_count(current_user.id)
    return {"success": True, "data": {"markedRead": count, "unreadCount": unread}}


@notification_router.delete("/{notification_id}")
async def delete_notification(
    notification_id: int,
    current_user: UserRecord = Depends(get_current_user),
    queue: PendingNotificationQueue = Depends(get_notification_queue),
) -> dict[str, Any]:
    await queue.remove(current_user.id, notification_id)
    return {"success": True, "message": "Notification deleted"}
