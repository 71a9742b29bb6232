"""
WebSocket Manager - Pushes topology change events to connected clients.

Clients receive a small `topology_updated` event and re-fetch the topology
over HTTP, so events never carry state. The only client message understood
is "ping", answered with a pong.
"""
import asyncio
import json
import logging
from typing import Optional

from fastapi import WebSocket


logger = logging.getLogger(__name__)

PONG = json.dumps({"type": "pong"})


class WebSocketManager:
    """
    Tracks open sockets and fans events out to them.

    A socket whose send fails is considered gone and is dropped.
    """

    def __init__(self):
        self._clients: set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self._clients.add(websocket)
        logger.info("WebSocket client connected (%d open)", self.connection_count)

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self._clients.discard(websocket)
        logger.info("WebSocket client disconnected (%d open)", self.connection_count)

    async def handle_message(self, websocket: WebSocket, text: str):
        """React to a client message; anything but a ping is ignored."""
        if text == "ping":
            await websocket.send_text(PONG)
        else:
            logger.debug("Ignoring WebSocket message %r", text[:80])

    async def broadcast(self, event: dict):
        """Send one event to every client."""
        if not self._clients:
            return

        payload = json.dumps(event)
        async with self._lock:
            dropped = set()
            for websocket in list(self._clients):
                try:
                    await websocket.send_text(payload)
                except Exception:
                    logger.warning("Dropping WebSocket client after failed send", exc_info=True)
                    dropped.add(websocket)
            self._clients.difference_update(dropped)

    async def notify_topology_updated(self, topology_id: Optional[str] = None):
        """Tell clients to re-fetch GET /api/topology."""
        await self.broadcast({"type": "topology_updated", "topology_id": topology_id})

    async def close_all(self):
        """Close every client socket (server shutdown)."""
        async with self._lock:
            clients, self._clients = self._clients, set()
        for websocket in clients:
            try:
                await websocket.close()
            except Exception:
                logger.debug("WebSocket already closed", exc_info=True)


# Global instance
ws_manager = WebSocketManager()
