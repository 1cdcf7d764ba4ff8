"""Schemas for customer live chat."""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import Field

from repairhub.schemas.base import CamelModel


class ChatStatus(str, Enum):
    WAITING = "waiting"
    ACTIVE = "active"
    RESOLVED = "resolved"
    CLOSED = "closed"

    @property
    def is_terminal(self) -> bool:
        return self in (ChatStatus.RESOLVED, ChatStatus.CLOSED)


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class ChatSender(CamelModel):
    name: str
    email: Optional[str] = None


class ChatMessage(CamelModel):
    id: Optional[str] = Field(default=None, alias="_id")
    sender: ChatSender
    content: str
    message_type: MessageType = MessageType.TEXT
    is_read: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ChatCustomer(CamelModel):
    name: str = Field(..., min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    session_id: str


class ChatAgent(CamelModel):
    id: str = Field(..., alias="_id")
    name: str
    email: Optional[str] = None


class ChatRating(CamelModel):
    score: int = Field(..., ge=1, le=5)
    feedback: str = ""
    date: Optional[datetime] = None


class Chat(CamelModel):
    id: str = Field(..., alias="_id")
    customer: ChatCustomer
    assigned_to: Optional[ChatAgent] = None
    status: ChatStatus = ChatStatus.WAITING
    priority: str = "medium"
    subject: Optional[str] = None
    category: Optional[str] = None
    messages: List[ChatMessage] = Field(default_factory=list)
    last_activity: Optional[datetime] = None
    rating: Optional[ChatRating] = None


class ChatCreate(CamelModel):
    """Body for the chat-creation collaborator."""

    customer: ChatCustomer
    subject: str = "Customer Support"
    category: str = "general"
    priority: str = "medium"
    initial_message: str


class ChatMessageCreate(CamelModel):
    content: str = Field(..., min_length=1)
    message_type: MessageType = MessageType.TEXT
