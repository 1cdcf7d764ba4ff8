"""Schemas for in-session notifications."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import ConfigDict

from repairhub.schemas.base import CamelModel


class NotificationType(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    APPROVAL = "approval"
    URGENT = "urgent"


class NotificationPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class NotificationCategory(str, Enum):
    APPROVAL = "approval"
    FOLLOWUP = "followup"
    SYSTEM = "system"
    REMINDER = "reminder"


class NotificationCreate(CamelModel):
    """Caller-supplied notification fields (everything except id/timestamp/read)."""

    type: NotificationType
    title: str
    message: str
    action_url: Optional[str] = None
    priority: NotificationPriority
    category: NotificationCategory


class Notification(NotificationCreate):
    """A notification as held in the hub's canonical list. Immutable; updates replace it."""

    model_config = ConfigDict(frozen=True)

    id: str
    timestamp: datetime
    read: bool = False


class NotificationStats(CamelModel):
    total: int
    unread: int
    urgent: int
    by_type: dict[str, int]
    by_priority: dict[str, int]
