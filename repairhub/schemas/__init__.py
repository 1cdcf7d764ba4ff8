"""Pydantic schemas for notifications, chat and transport frames."""

from repairhub.schemas.base import CamelModel
from repairhub.schemas.notification import (
    Notification,
    NotificationCategory,
    NotificationCreate,
    NotificationPriority,
    NotificationStats,
    NotificationType,
)
from repairhub.schemas.chat import (
    Chat,
    ChatAgent,
    ChatCreate,
    ChatCustomer,
    ChatMessage,
    ChatMessageCreate,
    ChatRating,
    ChatSender,
    ChatStatus,
    MessageType,
)

__all__ = [
    "CamelModel",
    "Notification",
    "NotificationCategory",
    "NotificationCreate",
    "NotificationPriority",
    "NotificationStats",
    "NotificationType",
    "Chat",
    "ChatAgent",
    "ChatCreate",
    "ChatCustomer",
    "ChatMessage",
    "ChatMessageCreate",
    "ChatRating",
    "ChatSender",
    "ChatStatus",
    "MessageType",
]
