"""Notification repository."""

import json
from typing import List, Optional, Sequence

from pydantic import TypeAdapter, ValidationError

from repairhub.core.config import settings
from repairhub.core.logging import get_logger
from repairhub.db.storage import KeyValueStorage, StorageError
from repairhub.schemas.notification import Notification

logger = get_logger(__name__)

_notification_list = TypeAdapter(List[Notification])


class NotificationRepository:
    """Persists the whole notification list under a single key.

    Persistence is best effort: neither save() nor load() raises.
    """

    def __init__(self, storage: KeyValueStorage, key: Optional[str] = None):
        self.storage = storage
        self.key = key or settings.notification_storage_key

    def save(self, notifications: Sequence[Notification]) -> bool:
        """Overwrite the stored list. Returns False if the write failed."""
        try:
            payload = json.dumps([n.to_wire() for n in notifications])
            self.storage.set_item(self.key, payload)
        except (StorageError, TypeError, ValueError) as e:
            logger.error(f"Error saving notifications to storage: {e}")
            return False
        return True

    def load(self) -> List[Notification]:
        """Read the stored list; empty when missing or unreadable."""
        try:
            raw = self.storage.get_item(self.key)
        except (StorageError, ValueError) as e:
            logger.error(f"Error loading notifications from storage: {e}")
            return []

        if raw is None:
            return []

        try:
            return _notification_list.validate_json(raw)
        except ValidationError as e:
            logger.warning(
                "Discarding unreadable stored notifications",
                extra={"key": self.key, "errors": e.error_count()},
            )
            return []
