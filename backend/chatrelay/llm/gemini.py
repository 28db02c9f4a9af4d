"""
Google Gemini agent implementation.

WHAT: generateContent / streamGenerateContent against the Generative Language API
WHY: Gemini uses contents/parts, a "model" role and key-in-query auth
HOW: Map roles and parts, move system text into systemInstruction,
     stream with alt=sse so frames arrive one JSON object per data line
"""

from typing import Any

from ..core.config import Settings
from .base import BaseChatAgent, join_url
from .types import ChatMessage, ChatRequest, EmptyCompletionError, is_url, split_data_uri

URL_IMAGE_MIME = "image/jpeg"


def gemini_parts(message: ChatMessage) -> list[dict[str, Any]]:
    parts: list[dict[str, Any]] = []
    for part in message.parts():
        if part.type == "text":
            parts.append({"text": part.text})
        elif is_url(part.image):
            parts.append({"file_data": {"mime_type": URL_IMAGE_MIME, "file_uri": part.image}})
        else:
            mime, data = split_data_uri(part.image)
            parts.append({"inline_data": {"mime_type": mime, "data": data}})
    return parts


def gemini_contents(request: ChatRequest) -> tuple[str, list[dict[str, Any]]]:
    """Return (system instruction text, contents) for a canonical request."""
    system_parts = [request.system_prompt] if request.system_prompt else []
    contents: list[dict[str, Any]] = []
    for message in request.messages:
        if message.role == "system":
            text = message.text_content()
            if text:
                system_parts.append(text)
            continue
        role = "model" if message.role == "assistant" else message.role
        contents.append({"role": role, "parts": gemini_parts(message)})
    return "\n".join(system_parts), contents


def candidate_texts(body: dict) -> list[str]:
    candidates = body.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return []
    content = candidates[0].get("content") if isinstance(candidates[0], dict) else None
    if not isinstance(content, dict):
        return []
    texts = []
    for part in content.get("parts") or []:
        text = part.get("text") if isinstance(part, dict) else None
        if isinstance(text, str) and text:
            texts.append(text)
    return texts


class GeminiChatAgent(BaseChatAgent):
    """Google Gemini."""

    name = "gemini"
    model_key = "GOOGLE_CHAT_MODEL"
    models_list_key = "GOOGLE_CHAT_MODELS_LIST"
    extra_params_key = "GOOGLE_CHAT_EXTRA_PARAMS"
    default_models = ("gemini-1.5-flash", "gemini-1.5-pro", "gemini-pro")
    # model travels in the URL and streaming is chosen by endpoint
    reserved_keys = ("contents",)

    def enabled(self, config: Settings) -> bool:
        return bool(config.GOOGLE_API_KEY)

    def endpoint(self, config: Settings, stream: bool) -> str:
        method = "streamGenerateContent" if stream else "generateContent"
        return join_url(config.GOOGLE_API_BASE, f"models/{self.model(config)}:{method}")

    def query_params(self, config: Settings, stream: bool) -> dict[str, str]:
        params = {"key": config.GOOGLE_API_KEY}
        if stream:
            params["alt"] = "sse"
        return params

    def build_body(self, request: ChatRequest, config: Settings, stream: bool) -> dict[str, Any]:
        system, contents = gemini_contents(request)
        body: dict[str, Any] = {"contents": contents}
        if system:
            body["systemInstruction"] = {"parts": [{"text": system}]}
        return body

    def extract_deltas(self, frame: dict) -> list[str]:
        return candidate_texts(frame)

    def extract_text(self, body: dict) -> str:
        if not body.get("candidates"):
            raise EmptyCompletionError(self.name, "candidates")
        return "".join(candidate_texts(body))
