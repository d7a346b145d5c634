"""
cush/api/notifications.py

Purpose: Notification and realtime endpoints

- List notifications with unread count, mark read, mark all read, delete
- WebSocket channel: authenticates, flushes queued events, then streams live ones
- Polling fallback that drains queued events
"""

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status

from cush.api.deps import current_session
from cush.core.access import extract_token
from cush.core.logging import get_logger
from cush.core.security import SessionClaims, decode_session_token
from cush.services import notification_service, realtime_service

logger = get_logger(__name__)
router = APIRouter()


@router.get("/notifications")
async def list_notifications(
    limit: int = Query(10, ge=1, le=100),
    offset: int = Query(0, ge=0),
    session: SessionClaims = Depends(current_session)
):
    notifications = await notification_service.get_user_notifications(session.id, limit, offset)
    unread = await notification_service.get_unread_count(session.id)
    return {"notifications": notifications, "unreadCount": unread}


@router.post("/notifications/read-all")
async def mark_all_read(session: SessionClaims = Depends(current_session)):
    updated = await notification_service.mark_all_as_read(session.id)
    return {"success": True, "updated": updated}


@router.post("/notifications/{notification_id}/read")
async def mark_read(notification_id: str, session: SessionClaims = Depends(current_session)):
    notification = await notification_service.mark_as_read(notification_id, session.id)
    return {"success": True, "notification": notification}


@router.delete("/notifications/{notification_id}")
async def delete_notification(notification_id: str, session: SessionClaims = Depends(current_session)):
    await notification_service.delete_notification(notification_id, session.id)
    return {"success": True}


@router.get("/socket/events")
async def pending_events(session: SessionClaims = Depends(current_session)):
    """
    Drains events queued while the user had no live connection.
    """
    return {"events": await realtime_service.get_pending_events(session.id)}


@router.websocket("/socket")
async def socket_channel(websocket: WebSocket):
    """
    Per-user realtime channel.

    Authenticates with ?token=... or the session cookie; closes with 1008
    when the session is missing or invalid.
    """
    token = websocket.query_params.get("token") or extract_token(websocket)
    claims = decode_session_token(token)
    if claims is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    hub = realtime_service.get_hub()
    hub.connect(claims.id, websocket)

    try:
        for event in await realtime_service.get_pending_events(claims.id):
            await websocket.send_json(event)

        while True:
            message = await websocket.receive_text()
            if message == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(claims.id, websocket)
