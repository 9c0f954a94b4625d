import logging
from typing import Dict, Set
from fastapi import WebSocket

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Live WebSocket connections grouped into rooms keyed by user id."""

    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = {}

    async def connect(self, room: str, websocket: WebSocket):
        await websocket.accept()
        self.rooms.setdefault(room, set()).add(websocket)
        logger.info("User %s joined their room (%d sockets)", room, len(self.rooms[room]))

    def disconnect(self, room: str, websocket: WebSocket):
        sockets = self.rooms.get(room)
        if not sockets:
            return

        sockets.discard(websocket)
        if not sockets:
            del self.rooms[room]
        logger.info("Socket left room %s", room)

    def is_online(self, room: str) -> bool:
        return bool(self.rooms.get(room))

    async def publish(self, room: str, event: str, payload: dict) -> None:
        for websocket in list(self.rooms.get(room, ())):
            try:
                await websocket.send_json({"event": event, "data": payload})
            except Exception as exc:
                logger.warning("Dropping socket in room %s: %s", room, exc)
                self.disconnect(room, websocket)
