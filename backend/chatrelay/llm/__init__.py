"""LLM agent layer."""

from .types import (
    ContentPart,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    AgentError,
    SelectionError,
    ProviderNotAvailableError,
    NoProviderAvailableError,
    TransportError,
    ProviderHTTPError,
    ProviderTimeoutError,
    ProviderUnavailableError,
    ProviderResponseError,
    DecodeError,
    EmptyCompletionError,
    ModelListParseError,
)
from .provider import ChatAgent, ImageAgent, DeltaSink
from .registry import AgentRegistry, build_default_registry
from .selector import select_chat_agent, select_image_agent
from .streaming_handler import StreamHandler

__all__ = [
    "ContentPart",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "AgentError",
    "SelectionError",
    "ProviderNotAvailableError",
    "NoProviderAvailableError",
    "TransportError",
    "ProviderHTTPError",
    "ProviderTimeoutError",
    "ProviderUnavailableError",
    "ProviderResponseError",
    "DecodeError",
    "EmptyCompletionError",
    "ModelListParseError",
    "ChatAgent",
    "ImageAgent",
    "DeltaSink",
    "AgentRegistry",
    "build_default_registry",
    "select_chat_agent",
    "select_image_agent",
    "StreamHandler",
]
