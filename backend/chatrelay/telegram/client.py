"""
Telegram Bot API client.

WHAT: The three Bot API calls the delivery pipeline needs
WHY: Concrete ChatTransport for production; tests use in-memory fakes
HOW: httpx POSTs to {domain}/bot{token}/{method}, Bot API envelope checked
"""

from typing import Any

import httpx

from ..core.config import Settings, settings
from ..utils.exceptions import RelayException
from ..utils.logger import get_logger, mask_secret

logger = get_logger(__name__)


class TelegramAPIError(RelayException):
    """Bot API answered ok=false (or a non-JSON error)."""

    def __init__(self, error_code: int, description: str):
        super().__init__(
            message=f"Telegram API error {error_code}: {description}",
            code="TELEGRAM_API_ERROR",
            details={"error_code": error_code, "description": description}
        )
        self.error_code = error_code
        self.description = description


class TelegramClient:
    """Minimal async Bot API client implementing ChatTransport."""

    def __init__(self, token: str, config: Settings | None = None, timeout: float = 30.0):
        self.config = config or settings
        self.token = token
        self.timeout = timeout

    def _url(self, method: str, token: str | None = None) -> str:
        token = self.token if token is None else token
        return f"{self.config.TELEGRAM_API_DOMAIN.rstrip('/')}/bot{token}/{method}"

    def _log_url(self, method: str) -> str:
        """Request URL with the bot token masked, safe for log lines."""
        return self._url(method, mask_secret(self.token))

    async def call(self, method: str, payload: dict[str, Any]) -> Any:
        """
        Invoke a Bot API method.

        Returns:
            The "result" field of the envelope

        Raises:
            TelegramAPIError: ok=false or an unparseable error body
        """
        logger.debug(f"Telegram POST {self._log_url(method)}")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self._url(method), json=payload)
        except httpx.TransportError as e:
            logger.error(f"Telegram {method} failed at {self._log_url(method)}: {type(e).__name__}")
            raise

        try:
            body = response.json()
        except ValueError:
            raise TelegramAPIError(response.status_code, response.text[:200])

        if not isinstance(body, dict):
            raise TelegramAPIError(response.status_code, response.text[:200])
        if not body.get("ok"):
            error_code = body.get("error_code", response.status_code)
            description = body.get("description", "unknown error")
            logger.debug(f"Telegram {method} failed: {error_code} {description}")
            raise TelegramAPIError(error_code, description)
        return body.get("result")

    async def send_message(self, chat_id: int, text: str, parse_mode: str = "") -> int:
        payload: dict[str, Any] = {"chat_id": chat_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        result = await self.call("sendMessage", payload)
        return result["message_id"]

    async def edit_message(self, chat_id: int, message_id: int, text: str, parse_mode: str = "") -> None:
        payload: dict[str, Any] = {"chat_id": chat_id, "message_id": message_id, "text": text}
        if parse_mode:
            payload["parse_mode"] = parse_mode
        await self.call("editMessageText", payload)

    async def send_chat_action(self, chat_id: int, action: str) -> None:
        await self.call("sendChatAction", {"chat_id": chat_id, "action": action})
