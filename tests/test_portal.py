import httpx
import pytest
import pytest_asyncio

from repairhub.core.config import Settings
from repairhub.portal import PortalSession
from repairhub.services.chat_api import ChatApiClient
from repairhub.services.transport import ConnectionState


@pytest_asyncio.fixture
async def portal_factory(storage, connector, chat_backend, toaster):
    """Portal sessions sharing one storage, connector and fake chat backend."""
    created = []

    def build():
        settings = Settings(
            transport_url="ws://relay.test/ws",
            reconnect_delay_seconds=0.01,
            typing_timeout_seconds=0.05,
            notification_storage_key="portal-notifications",
        )
        api = ChatApiClient(
            base_url="http://api.test/api",
            token="",
            transport=httpx.MockTransport(chat_backend.handler),
        )
        portal = PortalSession(
            settings=settings,
            storage=storage,
            toaster=toaster,
            connector=connector,
            api=api,
        )
        created.append(portal)
        return portal

    yield build
    for portal in created:
        await portal.transport.close()


@pytest.mark.asyncio
async def test_portal_shares_one_transport(portal_factory, connector, storage, wait_until):
    async with portal_factory() as portal:
        await wait_until(lambda: portal.transport.is_connected)
        assert portal.chat.transport is portal.transport

        chat = await portal.chat.start_chat("Dana")
        connector.latest.push({
            "type": "notification",
            "data": {
                "type": "info",
                "title": "New chat reply",
                "message": "Sam replied to your chat",
                "priority": "low",
                "category": "system",
            },
        })
        await wait_until(lambda: portal.notifications.get_notification_count() == 1)
        assert {"type": "join", "chatId": chat.id} in connector.latest.sent

    assert portal.transport.state == ConnectionState.CLOSED
    assert {"type": "leave", "chatId": chat.id} in connector.latest.sent
    assert storage.get_item("portal-notifications") is not None
    assert connector.calls == 1


@pytest.mark.asyncio
async def test_portal_reloads_notifications_across_sessions(portal_factory):
    async with portal_factory() as first:
        created = first.notifications.send_urgent_reminder("Pickup", "Vehicle ready since 9am")

    async with portal_factory() as second:
        assert second.notifications.get_notifications() == [created]
