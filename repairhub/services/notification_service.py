"""In-session notification hub.

The hub owns the canonical notification list. Every mutation is applied
synchronously, persisted in full, and then fanned out to subscribers in
registration order before the call returns.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Callable, List, Optional, Union
from uuid import uuid4

from repairhub.core.config import settings
from repairhub.core.logging import get_logger
from repairhub.db.repositories.notification_repo import NotificationRepository
from repairhub.schemas.events import NotificationEvent
from repairhub.schemas.notification import (
    Notification,
    NotificationCategory,
    NotificationCreate,
    NotificationPriority,
    NotificationStats,
    NotificationType,
)
from repairhub.services.toast import LoggingToaster, Toaster, toast_for_notification
from repairhub.services.transport import TransportConnection

logger = get_logger(__name__)

Subscriber = Callable[[List[Notification]], None]


def generate_notification_id() -> str:
    """Millisecond timestamp plus a random suffix."""
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"{millis}-{uuid4().hex[:9]}"


class NotificationService:
    """Single source of truth for notifications within a session."""

    def __init__(
        self,
        repository: NotificationRepository,
        toaster: Optional[Toaster] = None,
        transport: Optional[TransportConnection] = None,
    ):
        self.repository = repository
        self.toaster = toaster or LoggingToaster()
        self._subscribers: List[Subscriber] = []
        self._notifications: List[Notification] = repository.load()
        self._unsubscribe_transport: Optional[Callable[[], None]] = None
        if transport is not None:
            self._unsubscribe_transport = transport.on("notification", self._handle_push)
        logger.info(f"Notification hub ready with {len(self._notifications)} stored notifications")

    def close(self) -> None:
        """Detach from the transport and drop all subscribers."""
        if self._unsubscribe_transport is not None:
            self._unsubscribe_transport()
            self._unsubscribe_transport = None
        self._subscribers.clear()

    def _handle_push(self, event: NotificationEvent) -> None:
        # Server pushes are not deduplicated: a repeated push is a new entry
        self.add_notification(event.data)

    # Mutations

    def add_notification(self, data: Union[NotificationCreate, dict]) -> Notification:
        if isinstance(data, dict):
            data = NotificationCreate.model_validate(data)
        notification = Notification(
            **data.model_dump(),
            id=generate_notification_id(),
            timestamp=datetime.now(timezone.utc),
            read=False,
        )
        self._notifications.insert(0, notification)
        self._show_toast(notification)
        self._commit()
        return notification

    def mark_as_read(self, notification_id: str) -> None:
        for index, notification in enumerate(self._notifications):
            if notification.id == notification_id:
                if not notification.read:
                    self._notifications[index] = notification.model_copy(update={"read": True})
                self._commit()
                return

    def mark_all_as_read(self) -> None:
        self._notifications = [
            n if n.read else n.model_copy(update={"read": True}) for n in self._notifications
        ]
        self._commit()

    def delete_notification(self, notification_id: str) -> None:
        self._notifications = [n for n in self._notifications if n.id != notification_id]
        self._commit()

    def clear_all_notifications(self) -> None:
        self._notifications = []
        self._commit()

    # Queries

    def get_notifications(self) -> List[Notification]:
        return list(self._notifications)

    def get_unread_notifications(self) -> List[Notification]:
        return [n for n in self._notifications if not n.read]

    def get_notifications_by_category(self, category: NotificationCategory) -> List[Notification]:
        return [n for n in self._notifications if n.category == category]

    def get_urgent_notifications(self) -> List[Notification]:
        return [
            n for n in self._notifications
            if n.priority == NotificationPriority.URGENT and not n.read
        ]

    def get_notification_count(self) -> int:
        return len(self.get_unread_notifications())

    def get_urgent_notification_count(self) -> int:
        return len(self.get_urgent_notifications())

    def get_notification_stats(self) -> NotificationStats:
        return NotificationStats(
            total=len(self._notifications),
            unread=self.get_notification_count(),
            urgent=self.get_urgent_notification_count(),
            by_type=dict(Counter(n.type.value for n in self._notifications)),
            by_priority=dict(Counter(n.priority.value for n in self._notifications)),
        )

    # Subscribers

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for list changes. Returns an unsubscribe callable."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _commit(self) -> None:
        self.repository.save(self._notifications)
        for callback in list(self._subscribers):
            try:
                callback(list(self._notifications))
            except Exception:
                logger.exception("Notification subscriber failed")

    def _show_toast(self, notification: Notification) -> None:
        try:
            self.toaster.show(toast_for_notification(notification))
        except Exception:
            logger.exception("Failed to show notification toast")

    # Domain helpers

    def send_approval_request_notification(
        self,
        customer_name: str,
        service_type: str,
        estimated_cost: float,
        appointment_id: Optional[str] = None,
    ) -> Notification:
        """Ask for approval of an appointment; costly work is escalated to urgent."""
        priority = (
            NotificationPriority.URGENT
            if estimated_cost > settings.approval_urgent_cost_threshold
            else NotificationPriority.HIGH
        )
        action_url = f"/appointments/{appointment_id}" if appointment_id else "/appointments"
        return self.add_notification(NotificationCreate(
            type=NotificationType.APPROVAL,
            title="Approval Required",
            message=f"{service_type} for {customer_name} needs approval (estimated ${estimated_cost:,.2f})",
            action_url=action_url,
            priority=priority,
            category=NotificationCategory.APPROVAL,
        ))

    def send_follow_up_task_notification(self, customer_name: str, assigned_to: str) -> Notification:
        return self.add_notification(NotificationCreate(
            type=NotificationType.INFO,
            title="Follow-up Task Assigned",
            message=f"A follow-up task for {customer_name} has been assigned to {assigned_to}",
            action_url="/tasks",
            priority=NotificationPriority.MEDIUM,
            category=NotificationCategory.FOLLOWUP,
        ))

    def send_urgent_reminder(self, title: str, message: str, action_url: Optional[str] = None) -> Notification:
        return self.add_notification(NotificationCreate(
            type=NotificationType.URGENT,
            title=title,
            message=message,
            action_url=action_url,
            priority=NotificationPriority.URGENT,
            category=NotificationCategory.REMINDER,
        ))
