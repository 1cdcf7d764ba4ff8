"""Transport frames.

Inbound events and outbound commands are tagged unions keyed on ``type``.
Frames are validated here, once, before any handler sees them.
"""

from typing import Annotated, Literal, Optional, Union

from pydantic import Field, TypeAdapter

from repairhub.schemas.base import CamelModel
from repairhub.schemas.chat import ChatAgent, ChatMessage, ChatStatus
from repairhub.schemas.notification import NotificationCreate


# Inbound events (server -> client)

class NotificationEvent(CamelModel):
    type: Literal["notification"] = "notification"
    data: NotificationCreate


class MessageEvent(CamelModel):
    type: Literal["message"] = "message"
    chat_id: str
    message: ChatMessage
    session_id: Optional[str] = None


class TypingEvent(CamelModel):
    type: Literal["typing"] = "typing"
    chat_id: str
    user_id: str
    is_typing: bool = True


class AssignmentEvent(CamelModel):
    type: Literal["assignment"] = "assignment"
    chat_id: str
    assigned_to: Optional[ChatAgent] = None


class StatusChangeEvent(CamelModel):
    type: Literal["statusChange"] = "statusChange"
    chat_id: str
    status: ChatStatus


class PongEvent(CamelModel):
    type: Literal["pong"] = "pong"


TransportEvent = Annotated[
    Union[NotificationEvent, MessageEvent, TypingEvent, AssignmentEvent, StatusChangeEvent, PongEvent],
    Field(discriminator="type"),
]


# Outbound commands (client -> server)

class PingCommand(CamelModel):
    type: Literal["ping"] = "ping"


class JoinCommand(CamelModel):
    type: Literal["join"] = "join"
    chat_id: str


class LeaveCommand(CamelModel):
    type: Literal["leave"] = "leave"
    chat_id: str


class SendMessageCommand(CamelModel):
    type: Literal["sendMessage"] = "sendMessage"
    chat_id: str
    message: ChatMessage
    session_id: str


class TypingCommand(CamelModel):
    type: Literal["typing"] = "typing"
    chat_id: str
    user_id: str
    is_typing: bool = True


class AssignCommand(CamelModel):
    type: Literal["assign"] = "assign"
    chat_id: str
    assigned_to: ChatAgent


class StatusChangeCommand(CamelModel):
    type: Literal["statusChange"] = "statusChange"
    chat_id: str
    status: ChatStatus


TransportCommand = Annotated[
    Union[
        PingCommand,
        JoinCommand,
        LeaveCommand,
        SendMessageCommand,
        TypingCommand,
        AssignCommand,
        StatusChangeCommand,
    ],
    Field(discriminator="type"),
]

_event_adapter = TypeAdapter(TransportEvent)
_command_adapter = TypeAdapter(TransportCommand)


def parse_event(raw: Union[str, bytes]) -> TransportEvent:
    """Parse an inbound frame. Raises pydantic.ValidationError on malformed input."""
    return _event_adapter.validate_json(raw)


def parse_command(data: dict) -> TransportCommand:
    """Validate a decoded outbound command (used by the relay)."""
    return _command_adapter.validate_python(data)


def encode(frame: CamelModel) -> str:
    """Serialize an event or command to a wire frame."""
    return frame.model_dump_json(by_alias=True)
