"""
cush/services/realtime_service.py

Purpose: Per-user realtime event delivery

- Tracks live WebSocket connections per user (process-local)
- Pushes events to connected sockets
- Queues events in the store for users with no live connection
- Drains the queue on reconnect or on demand
"""

import json
from typing import Any, Dict, List, Optional, Set

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from cush.core.logging import get_logger
from cush.db import keys
from cush.db.redis_client import get_store
from utils.time_utils import epoch_ms

logger = get_logger(__name__)

MAX_PENDING_EVENTS = 200


class ConnectionHub:
    """
    Registry of live WebSocket connections keyed by user id.

    Only knows about sockets attached to this process; events for users
    connected elsewhere fall through to the store queue.
    """

    def __init__(self):
        self._connections: Dict[str, Set[WebSocket]] = {}

    def connect(self, user_id: str, websocket: WebSocket):
        self._connections.setdefault(user_id, set()).add(websocket)
        logger.info(f"Realtime client connected ({len(self._connections[user_id])} open)", extra={"user_id": user_id})

    def disconnect(self, user_id: str, websocket: WebSocket):
        sockets = self._connections.get(user_id)
        if not sockets:
            return
        sockets.discard(websocket)
        if not sockets:
            del self._connections[user_id]
        logger.info("Realtime client disconnected", extra={"user_id": user_id})

    def is_connected(self, user_id: str) -> bool:
        return bool(self._connections.get(user_id))

    async def send(self, user_id: str, message: Dict[str, Any]) -> int:
        """
        Sends to every live socket for a user.

        Returns:
            Number of sockets the message reached
        """
        delivered = 0
        for websocket in list(self._connections.get(user_id, ())):
            if websocket.application_state != WebSocketState.CONNECTED:
                self.disconnect(user_id, websocket)
                continue
            try:
                await websocket.send_json(message)
                delivered += 1
            except (RuntimeError, OSError) as e:
                logger.warning(f"Dropping dead realtime socket: {e}", extra={"user_id": user_id})
                self.disconnect(user_id, websocket)
        return delivered


# Singleton instance
_hub: Optional[ConnectionHub] = None


def get_hub() -> ConnectionHub:
    """Get or create the global connection hub."""
    global _hub
    if _hub is None:
        _hub = ConnectionHub()
    return _hub


async def emit_to_user(user_id: str, event: str, data: Dict[str, Any]) -> bool:
    """
    Delivers an event to a user.

    Pushed directly when the user has a live socket on this process,
    otherwise queued under user:<id>:events.

    Returns:
        True if delivered live, False if queued
    """
    message = {"event": event, "data": data, "timestamp": epoch_ms()}

    if await get_hub().send(user_id, message):
        return True

    store = get_store()
    await store.lpush(keys.user_events_key(user_id), json.dumps(message, default=str))
    await store.ltrim(keys.user_events_key(user_id), 0, MAX_PENDING_EVENTS - 1)
    return False


async def get_pending_events(user_id: str) -> List[Dict[str, Any]]:
    """
    Returns and clears queued events, oldest first.

    Read and delete happen in one transaction, so an event queued
    concurrently is either returned here or left for the next call.
    """
    raw_events = await get_store().drain_list(keys.user_events_key(user_id))

    events = []
    for raw in reversed(raw_events):
        try:
            events.append(json.loads(raw))
        except ValueError:
            logger.warning("Skipping malformed queued event", extra={"user_id": user_id})
    return events
