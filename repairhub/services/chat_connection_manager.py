from typing import Dict, List, Optional

from fastapi import WebSocket, WebSocketDisconnect

from repairhub.core.logging import get_logger

logger = get_logger(__name__)

class ConnectionManager:
    """Tracks relay websocket connections and their chat rooms."""

    def __init__(self):
        self.active_connections: List[WebSocket] = []
        # Map chat_id -> sockets that joined the room
        self.rooms: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket):
        """Accept connection and add to active connections."""
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info(f"Client connected via WebSocket. Connection count: {len(self.active_connections)}")

    def disconnect(self, websocket: WebSocket):
        """Remove connection from the pool and from every room."""
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
        for chat_id in list(self.rooms):
            self.leave_room(websocket, chat_id)
        logger.info("Client disconnected from WebSocket.")

    def join_room(self, websocket: WebSocket, chat_id: str):
        members = self.rooms.setdefault(chat_id, [])
        if websocket not in members:
            members.append(websocket)
        logger.debug(f"Socket joined chat_{chat_id} ({len(members)} members)")

    def leave_room(self, websocket: WebSocket, chat_id: str):
        members = self.rooms.get(chat_id)
        if not members:
            return
        if websocket in members:
            members.remove(websocket)
        if not members:
            del self.rooms[chat_id]

    async def send_personal_message(self, message: dict, websocket: WebSocket) -> bool:
        """Send JSON message to a specific connection."""
        try:
            await websocket.send_json(message)
            return True
        except (WebSocketDisconnect, RuntimeError, ConnectionError) as e:
            logger.error(f"Error sending personal message, dropping connection: {e}")
            self.disconnect(websocket)
            return False

    async def broadcast_to_room(
        self, message: dict, chat_id: str, exclude: Optional[WebSocket] = None
    ) -> int:
        """Send to every socket in a room. Returns the number of deliveries."""
        sent_count = 0
        for connection in list(self.rooms.get(chat_id, [])):
            if connection is exclude:
                continue
            if await self.send_personal_message(message, connection):
                sent_count += 1
        logger.info(f"Broadcast {message.get('type')} to chat_{chat_id}: {sent_count} delivered")
        return sent_count

    async def broadcast(self, message: dict) -> int:
        """Send to every connected socket."""
        sent_count = 0
        for connection in list(self.active_connections):
            if await self.send_personal_message(message, connection):
                sent_count += 1
        logger.info(f"Broadcast {message.get('type')} to all clients: {sent_count} delivered")
        return sent_count

chat_manager = ConnectionManager()
