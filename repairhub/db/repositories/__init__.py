"""Repository layer for local persistence."""

from repairhub.db.repositories.notification_repo import NotificationRepository

__all__ = [
    "NotificationRepository",
]
