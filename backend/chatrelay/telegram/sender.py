"""
Per-turn message sender.

WHAT: Keeps one reply message per turn up to date
WHY: Streaming shows progress by editing the same message in place
HOW: First delivery sends a new message and remembers its id; later ones edit it
"""

from typing import Protocol

from ..utils.logger import get_logger

logger = get_logger(__name__)

NOT_MODIFIED = "message is not modified"


class ChatTransport(Protocol):
    """Outbound operations the delivery pipeline needs from a chat platform."""

    async def send_message(self, chat_id: int, text: str, parse_mode: str = "") -> int:
        """Send a new message and return its id."""
        ...

    async def edit_message(self, chat_id: int, message_id: int, text: str, parse_mode: str = "") -> None:
        ...

    async def send_chat_action(self, chat_id: int, action: str) -> None:
        ...


class MessageSender:
    """Send-then-edit delivery for one chat."""

    def __init__(self, transport: ChatTransport, chat_id: int):
        self.transport = transport
        self.chat_id = chat_id
        self.message_id: int | None = None

    async def send_rich_text(self, text: str, parse_mode: str = "") -> None:
        """
        Create the reply message, or replace its text if it already exists.

        Raises whatever the transport raises, except Telegram's
        "message is not modified", which means the text is already shown.
        """
        if self.message_id is None:
            self.message_id = await self.transport.send_message(self.chat_id, text, parse_mode)
            return

        try:
            await self.transport.edit_message(self.chat_id, self.message_id, text, parse_mode)
        except Exception as e:
            if NOT_MODIFIED in str(e).lower():
                logger.debug(f"Edit skipped for message {self.message_id}: not modified")
                return
            raise

    async def send_chat_action(self, action: str) -> None:
        await self.transport.send_chat_action(self.chat_id, action)
