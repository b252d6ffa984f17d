"""
Engine state stream

Keeps the display clients connected to /ws/engine and pushes engine
snapshots to them. Sends run concurrently with a per-client timeout; a
client that errors or stalls past the timeout is dropped.
"""

import asyncio
import logging
from typing import Any, Dict, List

from fastapi import WebSocket

from breakout_engine.config import settings

logger = logging.getLogger(__name__)


class WebSocketManager:
    def __init__(self, send_timeout: float = 5.0):
        self.active_connections: List[WebSocket] = []
        self.send_timeout = send_timeout

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"📡 Display client connected ({len(self.active_connections)} active)")

    async def disconnect(self, websocket: WebSocket):
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
            logger.info(f"Display client left ({len(self.active_connections)} active)")

    async def _send(self, websocket: WebSocket, message: dict) -> bool:
        try:
            await asyncio.wait_for(websocket.send_json(message), timeout=self.send_timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Display client stalled for {self.send_timeout}s, dropping it")
        except Exception as e:
            logger.warning(f"Display client send failed, dropping it: {e}")
        return False

    async def broadcast(self, message: dict):
        clients = list(self.active_connections)
        if not clients:
            return

        delivered = await asyncio.gather(*(self._send(ws, message) for ws in clients))
        for websocket, ok in zip(clients, delivered):
            if not ok:
                await self.disconnect(websocket)

    async def broadcast_engine_state(self, snapshot: Dict[str, Any]):
        await self.broadcast({"type": "engine_state", "data": snapshot})


ws_manager = WebSocketManager(send_timeout=settings.broadcast_send_timeout_seconds)
