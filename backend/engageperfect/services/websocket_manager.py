from typing import Any, Dict, List
from fastapi import WebSocket
import logging

logger = logging.getLogger(__name__)


class ConnectionManager:
    """
    Manages WebSocket connections that follow a wizard session.

    Several clients (tabs) may watch the same session; events are
    fanned out to all of them. Singleton so routers share one registry.
    """
    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(ConnectionManager, cls).__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        if self._initialized:
            return
        self.active_connections: Dict[str, List[WebSocket]] = {}
        self._initialized = True

    async def connect(self, websocket: WebSocket, session_id: str):
        await websocket.accept()
        self.active_connections.setdefault(session_id, []).append(websocket)
        logger.info(f"Client joined session {session_id}. Watchers: {len(self.active_connections[session_id])}")

    def disconnect(self, websocket: WebSocket, session_id: str):
        watchers = self.active_connections.get(session_id, [])
        if websocket in watchers:
            watchers.remove(websocket)
            logger.info(f"Client left session {session_id}. Watchers: {len(watchers)}")
        if not watchers:
            self.active_connections.pop(session_id, None)

    async def close_session(self, session_id: str, payload: Dict[str, Any]):
        """Send a final event to every watcher of a destroyed session and close them."""
        await self.publish(session_id, "session_closed", payload)
        for websocket in self.active_connections.pop(session_id, []):
            try:
                await websocket.close()
            except Exception as e:
                logger.error(f"Failed to close a watcher of {session_id}: {e}")

    async def publish(self, session_id: str, event: str, payload: Dict[str, Any]):
        message = {"event": event, "session_id": session_id, **payload}
        for websocket in list(self.active_connections.get(session_id, [])):
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.error(f"Failed to send {event} to a watcher of {session_id}: {e}")
                self.disconnect(websocket, session_id)


manager = ConnectionManager()
