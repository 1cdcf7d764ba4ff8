"""Realtime transport: a single websocket per session with fixed-delay reconnect.

State machine::

    disconnected -> connecting -> connected -> disconnected -> (delay) -> connecting ...
                                                     close() -> closed

Every drop (failed connect or closed socket) schedules exactly one new attempt
after ``reconnect_delay`` seconds. There is no attempt limit and no backoff.
"""

import asyncio
import inspect
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional

import aiohttp
from pydantic import ValidationError

from repairhub.core.config import settings
from repairhub.core.logging import get_logger
from repairhub.schemas.base import CamelModel
from repairhub.schemas.chat import ChatMessage
from repairhub.schemas.events import (
    JoinCommand,
    LeaveCommand,
    PingCommand,
    SendMessageCommand,
    TypingCommand,
    encode,
    parse_event,
)

logger = get_logger(__name__)


class TransportError(Exception):
    """Raised by a connector that cannot open a channel."""
    pass


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


class Channel:
    """An open, message-oriented text channel."""

    async def receive(self) -> Optional[str]:
        """Next text frame, or None once the channel has closed."""
        raise NotImplementedError

    async def send(self, data: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError


class AiohttpChannel(Channel):
    """Channel over an aiohttp client websocket."""

    def __init__(self, session: aiohttp.ClientSession, ws: aiohttp.ClientWebSocketResponse):
        self.session = session
        self.ws = ws

    async def receive(self) -> Optional[str]:
        while True:
            msg = await self.ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                return msg.data
            if msg.type == aiohttp.WSMsgType.BINARY:
                return msg.data.decode("utf-8", errors="replace")
            if msg.type == aiohttp.WSMsgType.ERROR:
                logger.error(f"Transport error: {self.ws.exception()}")
                continue
            # CLOSE / CLOSING / CLOSED
            return None

    async def send(self, data: str) -> None:
        await self.ws.send_str(data)

    async def close(self) -> None:
        await self.ws.close()
        await self.session.close()


async def aiohttp_connect(url: str) -> Channel:
    """Default connector."""
    session = aiohttp.ClientSession()
    try:
        ws = await session.ws_connect(url)
    except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
        await session.close()
        raise TransportError(f"Cannot connect to {url}: {e}") from e
    return AiohttpChannel(session, ws)


Connector = Callable[[str], Awaitable[Channel]]
EventHandler = Callable[[Any], Optional[Awaitable[None]]]
StateListener = Callable[[ConnectionState], None]


class TransportConnection:
    """Owns the session's one connection and routes inbound events by type."""

    def __init__(
        self,
        url: Optional[str] = None,
        connector: Optional[Connector] = None,
        reconnect_delay: Optional[float] = None,
    ):
        self.url = url or settings.transport_url
        self.reconnect_delay = (
            settings.reconnect_delay_seconds if reconnect_delay is None else reconnect_delay
        )
        self.state = ConnectionState.DISCONNECTED
        self.connect_attempts = 0
        self._connector = connector or aiohttp_connect
        self._channel: Optional[Channel] = None
        self._task: Optional[asyncio.Task] = None
        self._closing = False
        self._handlers: Dict[str, List[EventHandler]] = {}
        self._state_listeners: List[StateListener] = []
        # Insertion-ordered set of joined rooms, replayed after each reconnect
        self._rooms: Dict[str, None] = {}

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    @property
    def rooms(self) -> List[str]:
        return list(self._rooms)

    def on(self, event_type: str, handler: EventHandler) -> Callable[[], None]:
        """Register a handler for one event type. Returns an unsubscribe callable."""
        handlers = self._handlers.setdefault(event_type, [])
        handlers.append(handler)

        def unsubscribe() -> None:
            if handler in handlers:
                handlers.remove(handler)

        return unsubscribe

    def on_state_change(self, listener: StateListener) -> Callable[[], None]:
        self._state_listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._state_listeners:
                self._state_listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: ConnectionState) -> None:
        if state == self.state:
            return
        self.state = state
        logger.info(f"Transport {state.value}", extra={"url": self.url})
        for listener in list(self._state_listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Connection state listener failed")

    async def start(self) -> None:
        """Open the connection in the background. Idempotent while running."""
        if self._task is not None and not self._task.done():
            return
        self._closing = False
        self._task = asyncio.create_task(self._run(), name="repairhub-transport")

    async def close(self) -> None:
        """Shut down for good: no further reconnects."""
        self._closing = True
        channel = self._channel
        if channel is not None:
            await self._close_channel(channel)
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._channel = None
        self._set_state(ConnectionState.CLOSED)

    async def _run(self) -> None:
        while not self._closing:
            try:
                await self._connect_and_read()
            except Exception:
                logger.exception("Transport connection failed unexpectedly")
                self._channel = None
                self._set_state(ConnectionState.DISCONNECTED)
            if self._closing:
                break
            logger.info(f"Reconnecting to transport in {self.reconnect_delay}s")
            await asyncio.sleep(self.reconnect_delay)

    async def _connect_and_read(self) -> None:
        self._set_state(ConnectionState.CONNECTING)
        self.connect_attempts += 1
        try:
            channel = await self._connector(self.url)
        except (TransportError, aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.error(f"Transport connection failed: {e}", extra={"attempt": self.connect_attempts})
            self._set_state(ConnectionState.DISCONNECTED)
            return

        self._channel = channel
        self._set_state(ConnectionState.CONNECTED)
        for chat_id in list(self._rooms):
            await self.send(JoinCommand(chat_id=chat_id))

        try:
            while True:
                raw = await channel.receive()
                if raw is None:
                    break
                await self._dispatch(raw)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError) as e:
            logger.error(f"Transport read failed: {e}")
        finally:
            self._channel = None
            if not self._closing:
                await self._close_channel(channel)
                self._set_state(ConnectionState.DISCONNECTED)

    async def _close_channel(self, channel: Channel) -> None:
        try:
            await channel.close()
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            logger.warning(f"Error closing transport channel: {e}")

    async def _dispatch(self, raw: str) -> None:
        try:
            event = parse_event(raw)
        except ValidationError as e:
            logger.warning(
                "Dropping malformed transport frame",
                extra={"errors": e.error_count(), "frame": str(raw)[:200]},
            )
            return

        for handler in list(self._handlers.get(event.type, [])):
            try:
                result = handler(event)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"Handler for '{event.type}' event failed")

    async def send(self, command: CamelModel) -> bool:
        """Send one command. Not retried; returns False if it could not be sent."""
        channel = self._channel
        if channel is None or not self.is_connected:
            logger.warning(f"Transport not connected, dropping '{command.type}' command")
            return False
        try:
            await channel.send(encode(command))
        except (aiohttp.ClientError, ConnectionError, RuntimeError) as e:
            logger.error(f"Error sending '{command.type}' command: {e}")
            return False
        return True

    async def join(self, chat_id: str) -> bool:
        """Join a chat room; remembered and re-joined after reconnects."""
        self._rooms[chat_id] = None
        return await self.send(JoinCommand(chat_id=chat_id))

    async def leave(self, chat_id: str) -> bool:
        self._rooms.pop(chat_id, None)
        return await self.send(LeaveCommand(chat_id=chat_id))

    async def send_message(self, chat_id: str, message: ChatMessage, session_id: str) -> bool:
        return await self.send(SendMessageCommand(chat_id=chat_id, message=message, session_id=session_id))

    async def send_typing(self, chat_id: str, user_id: str, is_typing: bool = True) -> bool:
        return await self.send(TypingCommand(chat_id=chat_id, user_id=user_id, is_typing=is_typing))

    async def ping(self) -> bool:
        return await self.send(PingCommand())
