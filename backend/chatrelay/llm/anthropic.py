"""
Anthropic agent implementation.

WHAT: Claude messages API, streaming and non-streaming
WHY: Anthropic takes the system prompt as a top-level field and streams
     typed events rather than choice deltas
HOW: Fold system messages into "system", read text from content_block_delta
"""

from typing import Any

from ..core.config import Settings
from .base import BaseChatAgent, join_url
from .types import ChatMessage, ChatRequest, EmptyCompletionError, is_url, split_data_uri

ANTHROPIC_VERSION = "2023-06-01"
DEFAULT_MAX_TOKENS = 4096


def anthropic_content(message: ChatMessage) -> list[dict[str, Any]]:
    blocks: list[dict[str, Any]] = []
    for part in message.parts():
        if part.type == "text":
            blocks.append({"type": "text", "text": part.text})
        elif is_url(part.image):
            blocks.append({"type": "image", "source": {"type": "url", "url": part.image}})
        else:
            mime, data = split_data_uri(part.image)
            blocks.append({
                "type": "image",
                "source": {"type": "base64", "media_type": mime, "data": data},
            })
    return blocks


def anthropic_system_and_messages(request: ChatRequest) -> tuple[str, list[dict[str, Any]]]:
    """
    Split a canonical request into Anthropic's system string and messages.

    Explicit system messages are appended to the system prompt in order,
    joined with newlines, and left out of the message array.
    """
    system_parts = [request.system_prompt] if request.system_prompt else []
    messages: list[dict[str, Any]] = []
    for message in request.messages:
        if message.role == "system":
            text = message.text_content()
            if text:
                system_parts.append(text)
            continue
        messages.append({"role": message.role, "content": anthropic_content(message)})
    return "\n".join(system_parts), messages


class AnthropicChatAgent(BaseChatAgent):
    """Anthropic Claude."""

    name = "anthropic"
    model_key = "ANTHROPIC_CHAT_MODEL"
    models_list_key = "ANTHROPIC_CHAT_MODELS_LIST"
    extra_params_key = "ANTHROPIC_CHAT_EXTRA_PARAMS"
    default_models = (
        "claude-3-5-sonnet-latest",
        "claude-3-5-haiku-latest",
        "claude-3-opus-latest",
        "claude-3-sonnet-20240229",
        "claude-3-haiku-20240307",
    )

    def enabled(self, config: Settings) -> bool:
        return bool(config.ANTHROPIC_API_KEY)

    def endpoint(self, config: Settings, stream: bool) -> str:
        return join_url(config.ANTHROPIC_API_BASE, "messages")

    def headers(self, config: Settings) -> dict[str, str]:
        return {
            "x-api-key": config.ANTHROPIC_API_KEY,
            "anthropic-version": ANTHROPIC_VERSION,
        }

    def build_body(self, request: ChatRequest, config: Settings, stream: bool) -> dict[str, Any]:
        system, messages = anthropic_system_and_messages(request)
        body: dict[str, Any] = {
            "model": self.model(config),
            "messages": messages,
            "max_tokens": DEFAULT_MAX_TOKENS,
            "stream": stream,
        }
        if system:
            body["system"] = system
        return body

    def extract_deltas(self, frame: dict) -> list[str]:
        if frame.get("type") != "content_block_delta":
            return []
        delta = frame.get("delta")
        if not isinstance(delta, dict):
            return []
        text = delta.get("text")
        if isinstance(text, str) and text:
            return [text]
        return []

    def extract_text(self, body: dict) -> str:
        blocks = body.get("content") or []
        if not blocks:
            raise EmptyCompletionError(self.name, "content")
        return "".join(block.get("text", "") for block in blocks if block.get("type") == "text")
