"""
Conversation history truncation utilities.

WHAT: Bound the history sent with each turn and strip stale images
WHY: LLM context windows are limited, and re-sending old images is costly
HOW: Keep system messages plus the most recent conversation messages;
     swap image parts for a placeholder text
"""

from typing import List

from ..llm.types import ChatMessage, ContentPart
from .logger import get_logger

logger = get_logger(__name__)


def trim_history(history: List[ChatMessage], max_length: int, enabled: bool = True) -> List[ChatMessage]:
    """
    Keep every system message and the last max_length other messages.

    Args:
        history: Full conversation history, oldest first
        max_length: Conversation messages to keep (<= 0 disables trimming)
        enabled: AUTO_TRIM_HISTORY

    Returns:
        System messages followed by the retained conversation messages
    """
    if not enabled or max_length <= 0:
        return list(history)

    system_messages = [m for m in history if m.role == "system"]
    conversation = [m for m in history if m.role != "system"]

    if len(conversation) > max_length:
        logger.info(f"Trimmed conversation history: {len(conversation)} -> {max_length} messages")
        conversation = conversation[-max_length:]

    return system_messages + conversation


def replace_image_placeholder(history: List[ChatMessage], placeholder: str) -> List[ChatMessage]:
    """
    Replace image parts with placeholder text.

    A message left with a single text part collapses to plain string content.
    An empty placeholder leaves the history untouched.
    """
    if not placeholder:
        return list(history)

    result = []
    for message in history:
        if not message.has_images():
            result.append(message)
            continue

        parts = [
            ContentPart.of_text(placeholder) if part.type == "image" else part
            for part in message.content
        ]
        if len(parts) == 1:
            result.append(ChatMessage(role=message.role, content=parts[0].text))
        else:
            result.append(ChatMessage(role=message.role, content=parts))
    return result
