import json

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from repairhub.core.logging import get_logger
from repairhub.schemas.events import (
    AssignCommand,
    AssignmentEvent,
    JoinCommand,
    LeaveCommand,
    MessageEvent,
    PingCommand,
    PongEvent,
    SendMessageCommand,
    StatusChangeCommand,
    StatusChangeEvent,
    TypingCommand,
    TypingEvent,
    parse_command,
)
from repairhub.services.chat_connection_manager import chat_manager

logger = get_logger(__name__)

router = APIRouter()

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket relay for live chat.
    Supports:
    - room membership (type="join" / "leave")
    - chat messages (type="sendMessage"), relayed to the whole room
    - typing indicators (type="typing"), relayed to everyone else in the room
    - agent actions (type="assign" / "statusChange")
    - heartbeats (type="ping")
    """
    await chat_manager.connect(websocket)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                command = parse_command(json.loads(raw))
            except (ValueError, ValidationError) as e:
                logger.warning(f"Rejected relay frame: {e}")
                await chat_manager.send_personal_message(
                    {"type": "error", "message": "Invalid command"}, websocket
                )
                continue

            await handle_command(websocket, command)

    except WebSocketDisconnect:
        chat_manager.disconnect(websocket)
    except Exception as e:
        logger.error(f"Relay websocket error: {e}")
        chat_manager.disconnect(websocket)
        try:
            await websocket.close()
        except RuntimeError:
            pass


async def handle_command(websocket: WebSocket, command) -> None:
    if isinstance(command, PingCommand):
        await chat_manager.send_personal_message(PongEvent().to_wire(), websocket)

    elif isinstance(command, JoinCommand):
        chat_manager.join_room(websocket, command.chat_id)

    elif isinstance(command, LeaveCommand):
        chat_manager.leave_room(websocket, command.chat_id)

    elif isinstance(command, SendMessageCommand):
        # Sender included; clients drop their own echo by sessionId
        event = MessageEvent(
            chat_id=command.chat_id,
            message=command.message,
            session_id=command.session_id,
        )
        await chat_manager.broadcast_to_room(event.to_wire(), command.chat_id)

    elif isinstance(command, TypingCommand):
        event = TypingEvent(
            chat_id=command.chat_id,
            user_id=command.user_id,
            is_typing=command.is_typing,
        )
        await chat_manager.broadcast_to_room(event.to_wire(), command.chat_id, exclude=websocket)

    elif isinstance(command, AssignCommand):
        event = AssignmentEvent(chat_id=command.chat_id, assigned_to=command.assigned_to)
        await chat_manager.broadcast_to_room(event.to_wire(), command.chat_id)

    elif isinstance(command, StatusChangeCommand):
        event = StatusChangeEvent(chat_id=command.chat_id, status=command.status)
        await chat_manager.broadcast_to_room(event.to_wire(), command.chat_id)
