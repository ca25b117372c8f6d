from __future__ import annotations

from typing import Any, Dict, Set

from fastapi import WebSocket
import structlog

logger = structlog.get_logger()


class ConnectionManager:
    """Open WebSockets per user; used to push upload stage changes."""

    def __init__(self) -> None:
        self.user_id_to_connections: Dict[int, Set[WebSocket]] = {}

    async def connect(self, user_id: int, websocket: WebSocket) -> None:
        await websocket.accept()
        connections = self.user_id_to_connections.setdefault(user_id, set())
        connections.add(websocket)

    def disconnect(self, user_id: int, websocket: WebSocket) -> None:
        connections = self.user_id_to_connections.get(user_id)
        if not connections:
            return
        connections.discard(websocket)
        if not connections:
            self.user_id_to_connections.pop(user_id, None)

    async def send_json(self, user_id: int, message: Dict[str, Any]) -> None:
        connections = self.user_id_to_connections.get(user_id)
        if not connections:
            return
        to_remove: Set[WebSocket] = set()
        for ws in list(connections):
            try:
                await ws.send_json(message)
            except Exception as e:
                logger.warning("websocket_send_failed", user_id=user_id, error=str(e))
                to_remove.add(ws)
        for ws in to_remove:
            self.disconnect(user_id, ws)


manager = ConnectionManager()


async def notify_stage(user_id: int, stage: str, progress: int) -> None:
    await manager.send_json(user_id, {"type": "processing", "stage": stage, "progress": progress})
