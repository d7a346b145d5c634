"""
cush/services/notification_service.py

Purpose: In-app notifications

- Create notifications and push them over the realtime channel
- List (newest first), unread counts
- Mark read (owner only), mark all read, delete
"""

import uuid
from typing import Any, Dict, List, Optional

from cush.core.exceptions import AuthorizationError, ResourceNotFoundError, ValidationError
from cush.core.logging import get_logger
from cush.db import keys
from cush.db.redis_client import get_store
from cush.services.realtime_service import emit_to_user
from utils.constants import NOTIFICATION_INFO, NOTIFICATION_TYPES
from utils.time_utils import epoch_ms

logger = get_logger(__name__)

NOTIFICATION_EVENT = "notification"


async def create_notification(
    user_id: str,
    title: str,
    message: str,
    notification_type: str = NOTIFICATION_INFO,
    link: Optional[str] = None
) -> Dict[str, Any]:
    """
    Creates a notification and emits it to the user.

    Args:
        user_id: Recipient
        title: Short heading
        message: Body text
        notification_type: info | success | warning | error
        link: Optional in-app link

    Returns:
        The stored notification
    """
    if notification_type not in NOTIFICATION_TYPES:
        raise ValidationError(f"Unknown notification type: {notification_type}")

    notification = {
        "id": str(uuid.uuid4()),
        "userId": user_id,
        "title": title,
        "message": message,
        "type": notification_type,
        "read": False,
        "createdAt": epoch_ms(),
    }
    if link:
        notification["link"] = link

    store = get_store()
    await store.set_json(keys.notification_key(notification["id"]), notification)
    await store.sadd(keys.user_notifications_key(user_id), notification["id"])

    await emit_to_user(user_id, NOTIFICATION_EVENT, notification)

    logger.info(f"Notification created: {title}", extra={"user_id": user_id})
    return notification


async def get_notification(notification_id: str) -> Optional[Dict[str, Any]]:
    return await get_store().get_json(keys.notification_key(notification_id))


async def _all_for_user(user_id: str) -> List[Dict[str, Any]]:
    store = get_store()
    notifications = []
    for notification_id in await store.smembers(keys.user_notifications_key(user_id)):
        notification = await store.get_json(keys.notification_key(notification_id))
        if notification:
            notifications.append(notification)
    notifications.sort(key=lambda n: n.get("createdAt", 0), reverse=True)
    return notifications


async def get_user_notifications(user_id: str, limit: int = 10, offset: int = 0) -> List[Dict[str, Any]]:
    """
    A page of a user's notifications, newest first.
    """
    notifications = await _all_for_user(user_id)
    return notifications[offset:offset + limit]


async def get_unread_count(user_id: str) -> int:
    return sum(1 for n in await _all_for_user(user_id) if not n.get("read"))


async def mark_as_read(notification_id: str, user_id: str) -> Dict[str, Any]:
    """
    Marks one notification read.

    Raises:
        ResourceNotFoundError: If the notification does not exist
        AuthorizationError: If it belongs to another user
    """
    notification = await get_notification(notification_id)
    if not notification:
        raise ResourceNotFoundError("Notification not found")
    if notification["userId"] != user_id:
        raise AuthorizationError("Not allowed to modify this notification")

    if not notification.get("read"):
        notification["read"] = True
        await get_store().set_json(keys.notification_key(notification_id), notification)
    return notification


async def mark_all_as_read(user_id: str) -> int:
    """
    Marks every notification for a user read.

    Returns:
        Number of notifications that changed
    """
    store = get_store()
    updated = 0
    for notification in await _all_for_user(user_id):
        if notification.get("read"):
            continue
        notification["read"] = True
        await store.set_json(keys.notification_key(notification["id"]), notification)
        updated += 1
    return updated


async def delete_notification(notification_id: str, user_id: str) -> None:
    """
    Deletes a notification owned by user_id.

    Raises:
        ResourceNotFoundError / AuthorizationError as for mark_as_read
    """
    notification = await get_notification(notification_id)
    if not notification:
        raise ResourceNotFoundError("Notification not found")
    if notification["userId"] != user_id:
        raise AuthorizationError("Not allowed to modify this notification")

    store = get_store()
    await store.delete(keys.notification_key(notification_id))
    await store.srem(keys.user_notifications_key(user_id), notification_id)
