"""Per-session composition of the notification hub and live chat."""

from pathlib import Path
from typing import Optional

from repairhub.core.config import Settings, settings as default_settings
from repairhub.core.logging import get_logger
from repairhub.db.repositories.notification_repo import NotificationRepository
from repairhub.db.storage import JsonFileStorage, KeyValueStorage
from repairhub.services.chat_api import ChatApiClient
from repairhub.services.chat_service import ChatSessionController
from repairhub.services.notification_service import NotificationService
from repairhub.services.toast import LoggingToaster, Toaster
from repairhub.services.transport import Connector, TransportConnection

logger = get_logger(__name__)


class PortalSession:
    """Owns the one transport of a customer/staff session and everything sharing it.

    Usage::

        async with PortalSession() as portal:
            portal.notifications.subscribe(render)
            await portal.chat.start_chat("Dana")
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        storage: Optional[KeyValueStorage] = None,
        toaster: Optional[Toaster] = None,
        connector: Optional[Connector] = None,
        api: Optional[ChatApiClient] = None,
    ):
        self.settings = settings or default_settings
        self.toaster = toaster or LoggingToaster()
        storage = storage or JsonFileStorage(Path(self.settings.storage_dir))
        self.transport = TransportConnection(
            url=self.settings.transport_url,
            connector=connector,
            reconnect_delay=self.settings.reconnect_delay_seconds,
        )
        self.notifications = NotificationService(
            NotificationRepository(storage, key=self.settings.notification_storage_key),
            toaster=self.toaster,
            transport=self.transport,
        )
        self.api = api or ChatApiClient(
            base_url=self.settings.api_base_url,
            token=self.settings.api_token,
            timeout=self.settings.api_timeout_seconds,
        )
        self._chat: Optional[ChatSessionController] = None

    @property
    def chat(self) -> ChatSessionController:
        """The session's chat controller, created on first use."""
        if self._chat is None:
            self._chat = ChatSessionController(
                self.api,
                self.transport,
                toaster=self.toaster,
                typing_timeout=self.settings.typing_timeout_seconds,
            )
        return self._chat

    async def start(self) -> None:
        await self.transport.start()

    async def close(self) -> None:
        if self._chat is not None:
            await self._chat.leave()
            self._chat.close()
        self.notifications.close()
        await self.transport.close()
        await self.api.aclose()
        logger.info("Portal session closed")

    async def __aenter__(self) -> "PortalSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()
