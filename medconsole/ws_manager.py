# ws_manager.py
import asyncio
from typing import Dict

from fastapi import WebSocket

from medconsole.logs import get_logger

logger = get_logger("ws_manager")


class ConnectionManager:
    """Fan-out of badge updates, one queue per connected websocket."""

    def __init__(self):
        self.active_connections: Dict[WebSocket, asyncio.Queue] = {}

    async def connect(self, websocket: WebSocket) -> asyncio.Queue:
        await websocket.accept()
        queue: asyncio.Queue = asyncio.Queue()
        self.active_connections[websocket] = queue
        logger.info(f"[WS] Client connected ({len(self.active_connections)} active)")
        return queue

    def disconnect(self, websocket: WebSocket):
        self.active_connections.pop(websocket, None)
        logger.info(f"[WS] Client disconnected ({len(self.active_connections)} active)")

    def publish(self, message: dict):
        """Queue a JSON message for every connected client; safe to call from sync code."""
        for queue in self.active_connections.values():
            queue.put_nowait(message)

    async def stream(self, websocket: WebSocket, queue: asyncio.Queue):
        """Forward queued messages until the client goes away."""
        while True:
            getter = asyncio.ensure_future(queue.get())
            listener = asyncio.ensure_future(websocket.receive())
            done, pending = await asyncio.wait({getter, listener}, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()
            if listener in done and listener.result()["type"] == "websocket.disconnect":
                return
            if getter in done:
                await websocket.send_json(getter.result())
