"""
OpenAI agent implementation.

WHAT: Chat completions and DALL-E image generation via the OpenAI API
WHY: Default backend, and the wire format most re-hosts copy
HOW: Bearer auth, system prompt as leading message, newline/SSE framed deltas
"""

from typing import Any

from ..core.config import Settings
from ..utils.logger import get_logger
from .base import BaseChatAgent, BaseImageAgent, join_url
from .types import (
    ChatMessage,
    ChatRequest,
    EmptyCompletionError,
    ProviderResponseError,
    is_url,
    to_data_uri,
)

logger = get_logger(__name__)


def openai_content(message: ChatMessage) -> str | list[dict[str, Any]]:
    """Translate canonical content to OpenAI's string-or-parts shape."""
    if isinstance(message.content, str):
        return message.content
    if not message.has_images():
        return message.text_content()

    parts: list[dict[str, Any]] = []
    for part in message.content:
        if part.type == "text":
            parts.append({"type": "text", "text": part.text})
        elif part.type == "image":
            url = part.image if is_url(part.image) else to_data_uri(part.image)
            parts.append({"type": "image_url", "image_url": {"url": url}})
    return parts


def openai_messages(request: ChatRequest) -> list[dict[str, Any]]:
    """System prompt as a leading system message, then the history."""
    messages: list[dict[str, Any]] = []
    if request.system_prompt:
        messages.append({"role": "system", "content": request.system_prompt})
    for message in request.messages:
        messages.append({"role": message.role, "content": openai_content(message)})
    return messages


def extract_choice_delta(frame: dict) -> list[str]:
    """choices[0].delta.content, tolerating metadata-only frames."""
    choices = frame.get("choices")
    if not isinstance(choices, list) or not choices:
        return []
    delta = choices[0].get("delta") if isinstance(choices[0], dict) else None
    if not isinstance(delta, dict):
        return []
    content = delta.get("content")
    if isinstance(content, str) and content:
        return [content]
    return []


def extract_choice_message(provider: str, body: dict) -> str:
    """choices[0].message.content of a non-streaming body."""
    choices = body.get("choices") or []
    if not choices:
        raise EmptyCompletionError(provider, "choices")
    return choices[0]["message"].get("content") or ""


class OpenAIChatAgent(BaseChatAgent):
    """OpenAI chat completions."""

    name = "openai"
    model_key = "OPENAI_CHAT_MODEL"
    models_list_key = "OPENAI_CHAT_MODELS_LIST"
    extra_params_key = "OPENAI_API_EXTRA_PARAMS"
    default_models = ("gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-3.5-turbo")

    def enabled(self, config: Settings) -> bool:
        return bool(config.get_openai_api_keys())

    def api_key(self, config: Settings) -> str:
        return config.get_openai_api_keys()[0]

    def api_base(self, config: Settings) -> str:
        return config.OPENAI_API_BASE

    def endpoint(self, config: Settings, stream: bool) -> str:
        return join_url(self.api_base(config), "chat/completions")

    def headers(self, config: Settings) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.api_key(config)}"}

    def build_body(self, request: ChatRequest, config: Settings, stream: bool) -> dict[str, Any]:
        return {
            "model": self.model(config),
            "messages": openai_messages(request),
            "stream": stream,
        }

    def extract_deltas(self, frame: dict) -> list[str]:
        return extract_choice_delta(frame)

    def extract_text(self, body: dict) -> str:
        return extract_choice_message(self.name, body)


class DallEImageAgent(BaseImageAgent):
    """DALL-E image generation."""

    name = "dall-e"
    model_key = "DALL_E_MODEL"
    models_list_key = "DALL_E_MODELS_LIST"
    default_models = ("dall-e-3", "dall-e-2")

    def enabled(self, config: Settings) -> bool:
        return bool(config.get_openai_api_keys())

    async def request(self, prompt: str, config: Settings) -> str:
        payload = {
            "model": self.model(config),
            "prompt": prompt,
            "n": 1,
            "size": config.DALL_E_IMAGE_SIZE,
            "quality": config.DALL_E_IMAGE_QUALITY,
            "style": config.DALL_E_IMAGE_STYLE,
        }
        response = await self.post(
            config,
            join_url(config.OPENAI_API_BASE, "images/generations"),
            payload,
            headers={"Authorization": f"Bearer {config.get_openai_api_keys()[0]}"},
        )
        return image_from_data(self.name, self.decode_json(response))


def image_from_data(provider: str, body: dict) -> str:
    """data[0].url, falling back to data[0].b64_json."""
    data = body.get("data") or []
    if not isinstance(data, list):
        raise ProviderResponseError(provider, "invalid response format: data is not a list")
    if not data:
        raise EmptyCompletionError(provider, "image data")
    first = data[0]
    if not isinstance(first, dict):
        raise ProviderResponseError(provider, "invalid response format: data[0] is not an object")
    image = first.get("url") or first.get("b64_json")
    if not isinstance(image, str) or not image:
        raise ProviderResponseError(provider, "invalid response format: missing url and b64_json")
    return image
