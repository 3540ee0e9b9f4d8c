"""
Recall Run Engine v1.0: WebSocket Manager
Pushes published snapshots to connected browser clients.
"""

import json
import asyncio
import logging

from fastapi import WebSocket

logger = logging.getLogger("recall.web")


class ConnectionManager:
    """Manages active WebSocket connections and broadcasts events."""

    def __init__(self):
        self.active: list[WebSocket] = []
        self._tasks: set = set()

    async def connect(self, ws: WebSocket):
        await ws.accept()
        self.active.append(ws)

    def disconnect(self, ws: WebSocket):
        if ws in self.active:
            self.active.remove(ws)

    async def broadcast(self, event: str, data: dict = None):
        """Send an event to all connected clients. Dead sockets are dropped."""
        message = json.dumps({"event": event, "data": data or {}})
        disconnected = []
        for ws in list(self.active):
            try:
                await ws.send_text(message)
            except Exception as e:
                logger.info(f"Dropping websocket client: {e}")
                disconnected.append(ws)
        for ws in disconnected:
            self.disconnect(ws)

    def broadcast_sync(self, event: str, data: dict = None):
        """
        Schedule a broadcast from synchronous code (engine subscribers).
        Without a running event loop there is nobody to send to.
        """
        if not self.active:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        # The loop only keeps weak references to tasks
        task = loop.create_task(self.broadcast(event, data))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    @property
    def client_count(self) -> int:
        return len(self.active)
