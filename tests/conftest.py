"""Pytest configuration and fixtures."""

import asyncio
import json
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Set

import httpx
import pytest
import pytest_asyncio

from repairhub.db.repositories.notification_repo import NotificationRepository
from repairhub.db.storage import MemoryStorage
from repairhub.services.chat_api import ChatApiClient
from repairhub.services.notification_service import NotificationService
from repairhub.services.toast import Toast, Toaster
from repairhub.services.transport import Channel, TransportConnection, TransportError

API_BASE_URL = "http://api.test/api"


class RecordingToaster(Toaster):
    """Keeps every toast for assertions."""

    def __init__(self):
        self.toasts: List[Toast] = []

    def show(self, toast: Toast) -> None:
        self.toasts.append(toast)

    @property
    def texts(self) -> List[str]:
        return [t.text for t in self.toasts]


class FakeChannel(Channel):
    """In-memory channel; tests push server frames and inspect sent commands."""

    def __init__(self):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent: List[Dict[str, Any]] = []
        self.closed = False

    async def receive(self) -> Optional[str]:
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, data: str) -> None:
        if self.closed:
            raise ConnectionError("channel closed")
        self.sent.append(json.loads(data))

    async def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.incoming.put_nowait(None)

    def push(self, frame) -> None:
        """Deliver a frame as if the server sent it."""
        self.incoming.put_nowait(frame if isinstance(frame, str) else json.dumps(frame))

    def drop(self) -> None:
        """Simulate the server closing the connection."""
        self.closed = True
        self.incoming.put_nowait(None)

    def fail(self, error: BaseException) -> None:
        """Make the next receive raise, as a broken socket would."""
        self.incoming.put_nowait(error)


class FakeConnector:
    def __init__(self, failures: int = 0):
        self.failures = failures
        self.calls = 0
        self.channels: List[FakeChannel] = []

    async def __call__(self, url: str) -> FakeChannel:
        self.calls += 1
        if self.failures > 0:
            self.failures -= 1
            raise TransportError("connection refused")
        channel = FakeChannel()
        self.channels.append(channel)
        return channel

    @property
    def latest(self) -> FakeChannel:
        return self.channels[-1]


def _envelope(data: Dict[str, Any], status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, json={"success": True, "message": "ok", "data": data})


class FakeChatBackend:
    """Minimal stand-in for the chat REST API, served through httpx.MockTransport."""

    def __init__(self):
        self.chats: Dict[str, Dict[str, Any]] = {}
        self.requests: List[httpx.Request] = []
        self.failing: Set[str] = set()
        self._next_id = 1

    def fail(self, *routes: str) -> None:
        """Make routes ("create", "get", "list", "message", "rating") return 500."""
        self.failing.update(routes)

    def add_chat(self, **overrides: Any) -> Dict[str, Any]:
        chat_id = overrides.pop("_id", None) or f"chat-{self._next_id}"
        self._next_id += 1
        chat = {
            "_id": chat_id,
            "customer": {"name": "Dana", "email": None, "phone": None, "sessionId": "session_x"},
            "assignedTo": None,
            "status": "waiting",
            "priority": "medium",
            "subject": "Customer Support",
            "category": "general",
            "messages": [],
            "lastActivity": datetime.now(timezone.utc).isoformat(),
        }
        chat.update(overrides)
        self.chats[chat_id] = chat
        return chat

    def _error(self, status_code: int, message: str) -> httpx.Response:
        return httpx.Response(status_code, json={"success": False, "message": message})

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        parts = request.url.path.strip("/").split("/")[1:]  # drop "api"
        method = request.method

        if method == "POST" and parts == ["chat"]:
            if "create" in self.failing:
                return self._error(500, "Server error")
            body = json.loads(request.content)
            chat = self.add_chat(
                customer=body["customer"],
                subject=body["subject"],
                category=body["category"],
                messages=[{
                    "_id": f"m-{len(self.requests)}",
                    "sender": {"name": "Customer", "email": body["customer"].get("email")},
                    "content": body["initialMessage"],
                    "messageType": "text",
                    "isRead": False,
                    "createdAt": datetime.now(timezone.utc).isoformat(),
                }],
            )
            return _envelope({"chat": chat}, 201)

        if method == "GET" and parts == ["chat", "customer"]:
            if "list" in self.failing:
                return self._error(500, "Server error")
            chats = sorted(self.chats.values(), key=lambda c: c["lastActivity"], reverse=True)
            return _envelope({"chats": chats})

        if len(parts) >= 2 and parts[0] == "chat":
            chat = self.chats.get(parts[1])
            if method == "GET" and len(parts) == 2:
                if "get" in self.failing:
                    return self._error(500, "Server error")
                if chat is None:
                    return self._error(404, "Chat not found")
                return _envelope({"chat": chat})

            if method == "POST" and parts[2:] == ["customer-messages"]:
                if "message" in self.failing:
                    return self._error(500, "Server error")
                if chat is None:
                    return self._error(404, "Chat not found")
                body = json.loads(request.content)
                message = {
                    "_id": f"m-{len(self.requests)}",
                    "sender": {"name": chat["customer"]["name"]},
                    "content": body["content"],
                    "messageType": body.get("messageType", "text"),
                    "isRead": False,
                    "createdAt": datetime.now(timezone.utc).isoformat(),
                }
                chat["messages"].append(message)
                return _envelope({"message": message})

            if method == "POST" and parts[2:] == ["rating"]:
                if "rating" in self.failing:
                    return self._error(500, "Server error")
                body = json.loads(request.content)
                rating = {"score": body["rating"], "feedback": body.get("feedback", "")}
                return _envelope({"rating": rating})

        return self._error(404, "Not found")

    def last_json(self) -> Dict[str, Any]:
        return json.loads(self.requests[-1].content)


async def _wait_until(predicate: Callable[[], bool], timeout: float = 1.0, interval: float = 0.005) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("Condition not met before timeout")
        await asyncio.sleep(interval)


@pytest.fixture
def wait_until():
    """Poll a predicate until it holds (async)."""
    return _wait_until


@pytest.fixture
def toaster():
    return RecordingToaster()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def repository(storage):
    return NotificationRepository(storage, key="notifications")


@pytest.fixture
def notification_service(repository, toaster):
    return NotificationService(repository, toaster=toaster)


@pytest.fixture
def connector():
    return FakeConnector()


@pytest_asyncio.fixture
async def transport(connector):
    """Transport over fake channels with a short reconnect delay (not started)."""
    transport = TransportConnection(url="ws://relay.test/ws", connector=connector, reconnect_delay=0.01)
    yield transport
    await transport.close()


@pytest_asyncio.fixture
async def connected_transport(transport, wait_until):
    await transport.start()
    await wait_until(lambda: transport.is_connected)
    return transport


@pytest.fixture
def chat_backend():
    return FakeChatBackend()


@pytest_asyncio.fixture
async def chat_api(chat_backend):
    api = ChatApiClient(
        base_url=API_BASE_URL,
        token="test-token",
        transport=httpx.MockTransport(chat_backend.handler),
    )
    yield api
    await api.aclose()


@pytest_asyncio.fixture
async def transport_factory():
    """Build transports with custom connectors/delays; all are closed afterwards."""
    created: List[TransportConnection] = []

    def build(failures: int = 0, reconnect_delay: float = 0.01):
        connector = FakeConnector(failures=failures)
        transport = TransportConnection(
            url="ws://relay.test/ws", connector=connector, reconnect_delay=reconnect_delay
        )
        created.append(transport)
        return transport, connector

    yield build
    for transport in created:
        await transport.close()
