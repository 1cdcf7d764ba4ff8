"""Customer-side live chat controller."""

import asyncio
from datetime import datetime, timezone
from typing import Callable, List, Optional
from uuid import uuid4

from pydantic import ValidationError

from repairhub.core.config import settings
from repairhub.core.context import bind_log_fields
from repairhub.core.logging import get_logger
from repairhub.schemas.chat import (
    Chat,
    ChatCreate,
    ChatCustomer,
    ChatMessage,
    ChatMessageCreate,
    ChatRating,
    MessageType,
)
from repairhub.schemas.events import AssignmentEvent, MessageEvent, StatusChangeEvent, TypingEvent
from repairhub.services.chat_api import ChatApiClient, ChatApiError
from repairhub.services.toast import LoggingToaster, Toaster
from repairhub.services.transport import TransportConnection

logger = get_logger(__name__)

UNINITIALIZED = "uninitialized"


def generate_session_id() -> str:
    """Correlation token for this browser session; tags our own outbound events."""
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"session_{millis}_{uuid4().hex[:8]}"


def _message_key(message: ChatMessage):
    # Relayed messages may arrive without a server id
    return message.id or (message.content, message.created_at)


class ChatSessionController:
    """Drives one customer chat over the shared transport.

    Only events whose ``chatId`` matches the active chat are handled, so several
    controllers can share one transport without seeing each other's traffic.
    """

    def __init__(
        self,
        api: ChatApiClient,
        transport: TransportConnection,
        toaster: Optional[Toaster] = None,
        session_id: Optional[str] = None,
        typing_timeout: Optional[float] = None,
    ):
        self.api = api
        self.transport = transport
        self.toaster = toaster or LoggingToaster()
        self.session_id = session_id or generate_session_id()
        self.typing_timeout = (
            settings.typing_timeout_seconds if typing_timeout is None else typing_timeout
        )
        self.chat: Optional[Chat] = None
        self.is_agent_typing = False
        self._typing_handle: Optional[asyncio.TimerHandle] = None
        self._unsubscribers: List[Callable[[], None]] = [
            transport.on("message", self._on_message),
            transport.on("typing", self._on_typing),
            transport.on("assignment", self._on_assignment),
            transport.on("statusChange", self._on_status_change),
        ]
        bind_log_fields(session_id=self.session_id)

    @property
    def state(self) -> str:
        if self.chat is None:
            return UNINITIALIZED
        return self.chat.status.value

    @property
    def can_send(self) -> bool:
        return self.chat is not None and not self.chat.status.is_terminal

    def close(self) -> None:
        """Stop listening to the transport."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._clear_agent_typing()

    async def start_chat(
        self,
        name: str,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        subject: str = "Customer Support",
        category: str = "general",
        initial_message: Optional[str] = None,
    ) -> Optional[Chat]:
        """Create a chat for this session and join its room."""
        if not name or not name.strip():
            self.toaster.error("Please enter your name to start a chat")
            return None

        name = name.strip()
        payload = ChatCreate(
            customer=ChatCustomer(name=name, email=email, phone=phone, session_id=self.session_id),
            subject=subject,
            category=category,
            initial_message=initial_message or f"Customer {name} started a chat for support",
        )
        try:
            chat = await self.api.create_chat(payload)
        except ChatApiError as e:
            logger.error(f"Error creating chat: {e}")
            self.toaster.error("Failed to start chat")
            return None

        await self._activate(chat)
        self.toaster.success("Chat started successfully!")
        return chat

    async def resume_chat(self) -> Optional[Chat]:
        """Re-attach to the customer's most recent chat, if any."""
        try:
            chats = await self.api.get_customer_chats()
        except ChatApiError as e:
            logger.error(f"Error loading existing chats: {e}")
            self.toaster.error("Failed to load chat")
            return None
        if not chats:
            return None
        await self._activate(chats[0])
        return chats[0]

    async def load_chat(self, chat_id: str) -> Optional[Chat]:
        try:
            chat = await self.api.get_chat(chat_id)
        except ChatApiError as e:
            logger.error(f"Error loading chat {chat_id}: {e}")
            self.toaster.error("Failed to load chat")
            return None
        await self._activate(chat)
        return chat

    async def refresh(self) -> Optional[Chat]:
        """Refetch the active chat to reconcile assignment and status."""
        if self.chat is None:
            return None
        chat_id = self.chat.id
        try:
            chat = await self.api.get_chat(chat_id)
        except ChatApiError as e:
            logger.error(f"Error refreshing chat {chat_id}: {e}")
            self.toaster.error("Failed to load chat")
            return None
        if not self._is_active_chat(chat.id):
            return chat
        self.chat = self._merge_local_messages(chat)
        return self.chat

    def _merge_local_messages(self, fetched: Chat) -> Chat:
        """Keep messages appended locally that the fetched record does not have yet."""
        known = {_message_key(m) for m in fetched.messages}
        pending = [m for m in self.chat.messages if _message_key(m) not in known]
        if not pending:
            return fetched
        fetched.messages.extend(pending)
        if self.chat.last_activity is not None and (
            fetched.last_activity is None or self.chat.last_activity > fetched.last_activity
        ):
            fetched.last_activity = self.chat.last_activity
        return fetched

    async def leave(self) -> None:
        if self.chat is not None:
            await self.transport.leave(self.chat.id)

    async def _activate(self, chat: Chat) -> None:
        if self.chat is not None and self.chat.id != chat.id:
            await self.transport.leave(self.chat.id)
        self.chat = chat
        bind_log_fields(chat_id=chat.id)
        await self.transport.join(chat.id)
        logger.info(f"Joined chat {chat.id} ({chat.status.value})")

    async def send_message(
        self, content: str, message_type: MessageType = MessageType.TEXT
    ) -> Optional[ChatMessage]:
        """Post a message, append it locally, then relay it to other participants."""
        if self.chat is None or not content or not content.strip():
            return None
        if self.chat.status.is_terminal:
            self.toaster.error("This chat has ended")
            return None

        chat_id = self.chat.id
        try:
            message = await self.api.post_message(
                chat_id, ChatMessageCreate(content=content, message_type=message_type)
            )
        except ChatApiError as e:
            logger.error(f"Error sending message to chat {chat_id}: {e}")
            self.toaster.error("Failed to send message")
            return None

        if self._is_active_chat(chat_id):
            self._append(message)
        await self.transport.send_message(chat_id, message, self.session_id)
        self.toaster.success("Message sent!")
        return message

    async def send_typing(self, is_typing: bool = True) -> bool:
        if self.chat is None:
            return False
        return await self.transport.send_typing(self.chat.id, self.session_id, is_typing)

    async def rate_chat(self, score: int, feedback: str = "") -> Optional[ChatRating]:
        if self.chat is None:
            return None
        try:
            rating = ChatRating(score=score, feedback=feedback)
        except ValidationError:
            self.toaster.error("Rating must be between 1 and 5")
            return None
        try:
            saved = await self.api.rate_chat(self.chat.id, rating)
        except ChatApiError as e:
            logger.error(f"Error rating chat {self.chat.id}: {e}")
            self.toaster.error("Failed to submit rating")
            return None
        self.chat.rating = saved
        self.toaster.success("Thank you for your feedback!")
        return saved

    # Transport event handlers

    def _is_active_chat(self, chat_id: str) -> bool:
        return self.chat is not None and self.chat.id == chat_id

    def _append(self, message: ChatMessage) -> None:
        self.chat.messages.append(message)
        self.chat.last_activity = datetime.now(timezone.utc)

    def _on_message(self, event: MessageEvent) -> None:
        if not self._is_active_chat(event.chat_id):
            return
        if event.session_id == self.session_id:
            # Our own message, already appended when the POST succeeded
            return
        self._append(event.message)

    def _on_typing(self, event: TypingEvent) -> None:
        if not self._is_active_chat(event.chat_id) or event.user_id == self.session_id:
            return
        if event.is_typing:
            self._set_agent_typing()
        else:
            self._clear_agent_typing()

    def _set_agent_typing(self) -> None:
        self.is_agent_typing = True
        if self._typing_handle is not None:
            self._typing_handle.cancel()
        loop = asyncio.get_running_loop()
        self._typing_handle = loop.call_later(self.typing_timeout, self._clear_agent_typing)

    def _clear_agent_typing(self) -> None:
        self.is_agent_typing = False
        if self._typing_handle is not None:
            self._typing_handle.cancel()
            self._typing_handle = None

    async def _on_assignment(self, event: AssignmentEvent) -> None:
        if not self._is_active_chat(event.chat_id):
            return
        agent = event.assigned_to.name if event.assigned_to else "An agent"
        self.toaster.info(f"{agent} has joined the chat")
        await self.refresh()

    async def _on_status_change(self, event: StatusChangeEvent) -> None:
        if not self._is_active_chat(event.chat_id):
            return
        self.toaster.info(f"Chat status changed to {event.status.value}")
        await self.refresh()
