"""HTTP collaborators for live chat."""

from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from repairhub.core.config import settings
from repairhub.core.logging import get_logger
from repairhub.schemas.chat import Chat, ChatCreate, ChatMessage, ChatMessageCreate, ChatRating

logger = get_logger(__name__)


class ChatApiError(Exception):
    """Raised when a chat API request fails or returns an unusable body."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ChatApiClient:
    """Thin async client over the chat REST endpoints.

    Responses use a ``{"success": bool, "message": str, "data": {...}}`` envelope.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: Optional[float] = None,
    ):
        token = settings.api_token if token is None else token
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            headers=headers,
            timeout=timeout or settings.api_timeout_seconds,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "ChatApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs: Any) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Chat API {method} {url} failed: {e}")
            raise ChatApiError(f"Request failed: {e}") from e

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_error or not body.get("success", False):
            message = body.get("message") or response.reason_phrase
            logger.error(
                f"Chat API {method} {url} returned {response.status_code}: {message}",
                extra={"status_code": response.status_code},
            )
            raise ChatApiError(message, status_code=response.status_code)

        return body.get("data") or {}

    async def create_chat(self, payload: ChatCreate) -> Chat:
        data = await self._request("POST", "/chat", json=payload.to_wire())
        return self._parse(Chat, data, "chat")

    async def get_chat(self, chat_id: str) -> Chat:
        data = await self._request("GET", f"/chat/{chat_id}")
        return self._parse(Chat, data, "chat")

    async def get_customer_chats(self) -> List[Chat]:
        """Chats of the signed-in customer, most recent first."""
        data = await self._request("GET", "/chat/customer")
        try:
            return [Chat.model_validate(item) for item in data.get("chats", [])]
        except ValidationError as e:
            raise ChatApiError(f"Invalid chat list in response: {e}") from e

    async def post_message(self, chat_id: str, payload: ChatMessageCreate) -> ChatMessage:
        data = await self._request("POST", f"/chat/{chat_id}/customer-messages", json=payload.to_wire())
        return self._parse(ChatMessage, data, "message")

    async def rate_chat(self, chat_id: str, rating: ChatRating) -> ChatRating:
        data = await self._request(
            "POST",
            f"/chat/{chat_id}/rating",
            json={"rating": rating.score, "feedback": rating.feedback},
        )
        return self._parse(ChatRating, data, "rating")

    @staticmethod
    def _parse(model, data: Dict[str, Any], key: str):
        if key not in data:
            raise ChatApiError(f"Response is missing '{key}'")
        try:
            return model.model_validate(data[key])
        except ValidationError as e:
            raise ChatApiError(f"Invalid {key} in response: {e}") from e
