"""Ephemeral toast presentation for notifications and chat feedback."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from repairhub.core.config import settings
from repairhub.core.logging import get_logger
from repairhub.schemas.notification import Notification, NotificationPriority, NotificationType

logger = get_logger(__name__)


class ToastStyle(str, Enum):
    NEUTRAL = "neutral"
    SUCCESS = "success"
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"
    ALERT = "alert"


@dataclass(frozen=True)
class Toast:
    style: ToastStyle
    text: str
    duration: float
    icon: Optional[str] = None


def toast_for_notification(notification: Notification) -> Toast:
    """Map a notification to its toast. Purely cosmetic."""
    text = f"{notification.title}: {notification.message}"
    duration = settings.toast_duration_seconds
    if notification.priority in (NotificationPriority.HIGH, NotificationPriority.URGENT):
        duration = settings.toast_priority_duration_seconds

    if notification.type == NotificationType.SUCCESS:
        return Toast(ToastStyle.SUCCESS, text, duration)
    if notification.type == NotificationType.ERROR:
        return Toast(ToastStyle.ERROR, text, duration)
    if notification.type == NotificationType.WARNING:
        return Toast(ToastStyle.WARNING, text, duration, icon="⚠️")
    if notification.type == NotificationType.APPROVAL:
        return Toast(ToastStyle.INFO, text, duration, icon="📋")
    if notification.type == NotificationType.URGENT:
        return Toast(ToastStyle.ALERT, text, settings.toast_urgent_duration_seconds, icon="🚨")
    return Toast(ToastStyle.NEUTRAL, text, duration)


class Toaster:
    """Sink for toasts. Subclasses decide how they are shown."""

    def show(self, toast: Toast) -> None:
        raise NotImplementedError

    def success(self, text: str) -> None:
        self.show(Toast(ToastStyle.SUCCESS, text, settings.toast_duration_seconds))

    def error(self, text: str) -> None:
        self.show(Toast(ToastStyle.ERROR, text, settings.toast_duration_seconds))

    def info(self, text: str) -> None:
        self.show(Toast(ToastStyle.INFO, text, settings.toast_duration_seconds))


class LoggingToaster(Toaster):
    """Writes toasts to the log; used when no UI is attached."""

    def show(self, toast: Toast) -> None:
        level = "error" if toast.style == ToastStyle.ERROR else "info"
        getattr(logger, level)(
            toast.text,
            extra={"toast_style": toast.style.value, "toast_duration": toast.duration},
        )
