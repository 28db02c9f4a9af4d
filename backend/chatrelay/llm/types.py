"""
LLM agent types, dataclasses, and exceptions.

WHAT: Canonical conversation model shared by every agent and by storage
WHY: Ensure consistent contracts across all backends
HOW: Dataclasses for messages/requests/responses, custom exceptions for errors
"""

import re
from dataclasses import dataclass, field
from typing import Any, Literal, Union

from ..utils.exceptions import RelayException


Role = Literal["user", "assistant", "system"]
ROLES = ("user", "assistant", "system")

_DATA_URI = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+);base64,(?P<data>.*)$", re.DOTALL)
DEFAULT_IMAGE_MIME = "image/jpeg"


def is_url(image: str) -> bool:
    """True when an image string is an http(s) reference rather than inline data."""
    return image.startswith("http://") or image.startswith("https://")


def split_data_uri(image: str) -> tuple[str, str]:
    """
    Split inline image data into (mime type, bare base64).

    Bare base64 without a data-URI prefix is assumed to be JPEG, which is
    what Telegram hands out for photos.
    """
    match = _DATA_URI.match(image)
    if match:
        return match.group("mime"), match.group("data")
    return DEFAULT_IMAGE_MIME, image


def to_data_uri(image: str) -> str:
    """Return inline image data as a data URI, adding a prefix if missing."""
    if image.startswith("data:"):
        return image
    return f"data:{DEFAULT_IMAGE_MIME};base64,{image}"


@dataclass
class ContentPart:
    """One part of a multimodal message."""
    type: Literal["text", "image"]
    text: str = ""
    image: str = ""

    @classmethod
    def of_text(cls, text: str) -> "ContentPart":
        return cls(type="text", text=text)

    @classmethod
    def of_image(cls, image: str) -> "ContentPart":
        return cls(type="image", image=image)


Content = Union[str, list[ContentPart]]


@dataclass
class ChatMessage:
    """
    A single conversation turn.

    User and system messages need non-empty text or at least one part.
    An assistant message may carry empty text, which is what an empty
    stream produces.
    """
    role: Role
    content: Content

    def __post_init__(self):
        if self.role not in ROLES:
            raise ValueError(f"Unknown role: {self.role!r}")
        if isinstance(self.content, list):
            if not self.content:
                raise ValueError("Message content must have at least one part")
        elif not self.content and self.role != "assistant":
            raise ValueError(f"Empty {self.role} message")

    def text_content(self, sep: str = "\n") -> str:
        """Join the text parts of the message."""
        if isinstance(self.content, str):
            return self.content
        return sep.join(part.text for part in self.content if part.type == "text")

    def has_images(self) -> bool:
        return isinstance(self.content, list) and any(p.type == "image" for p in self.content)

    def parts(self) -> list[ContentPart]:
        """Content as a list of parts regardless of how it is stored."""
        if isinstance(self.content, str):
            return [ContentPart.of_text(self.content)]
        return list(self.content)


@dataclass
class ChatRequest:
    """Backend-agnostic chat completion request."""
    system_prompt: str = ""
    messages: list[ChatMessage] = field(default_factory=list)
    extra_params: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChatResponse:
    """Backend-agnostic chat completion result."""
    messages: list[ChatMessage] = field(default_factory=list)

    @property
    def text(self) -> str:
        """Text of the last assistant message (empty if there is none)."""
        for message in reversed(self.messages):
            if message.role == "assistant":
                return message.text_content()
        return ""

    @classmethod
    def from_text(cls, text: str) -> "ChatResponse":
        return cls(messages=[ChatMessage(role="assistant", content=text)])


# Agent exceptions

class AgentError(RelayException):
    """Base class for errors raised while selecting or calling an agent."""

    def __init__(self, message: str, code: str, provider: str | None = None, details: Any = None):
        super().__init__(message=message, code=code, details=details)
        self.provider = provider


class SelectionError(AgentError):
    """No usable agent for the requested provider."""


class ProviderNotAvailableError(SelectionError):
    """A named provider is unknown or disabled."""

    def __init__(self, provider: str, source: str = "configured"):
        super().__init__(
            message=f"{source} AI provider {provider} is not available",
            code="PROVIDER_NOT_AVAILABLE",
            provider=provider,
            details={"provider": provider, "source": source}
        )


class NoProviderAvailableError(SelectionError):
    """Auto mode found no enabled agent."""

    def __init__(self, kind: str = "chat"):
        super().__init__(
            message=f"no AI {kind} provider available",
            code="NO_PROVIDER_AVAILABLE",
            details={"kind": kind}
        )


class TransportError(AgentError):
    """The upstream HTTP call did not produce a usable response."""


class ProviderHTTPError(TransportError):
    """Provider answered with a non-2xx status."""

    def __init__(self, provider: str, status_code: int, body: str):
        super().__init__(
            message=f"{provider} request failed with status {status_code}: {body}",
            code="PROVIDER_HTTP_ERROR",
            provider=provider,
            details={"status_code": status_code, "body": body}
        )
        self.status_code = status_code
        self.body = body


class ProviderTimeoutError(TransportError):
    """Request to provider timed out."""

    def __init__(self, provider: str | None, message: str = "request timed out"):
        super().__init__(message=message, code="PROVIDER_TIMEOUT", provider=provider)


class ProviderUnavailableError(TransportError):
    """Provider is not reachable or down."""

    def __init__(self, provider: str | None, message: str = "provider is not reachable"):
        super().__init__(message=message, code="PROVIDER_UNAVAILABLE", provider=provider)


class ProviderResponseError(AgentError):
    """Provider returned an invalid or error response."""

    def __init__(self, provider: str | None, message: str, code: str = "PROVIDER_BAD_RESPONSE"):
        super().__init__(message=message, code=code, provider=provider)


class DecodeError(ProviderResponseError):
    """A streamed frame or a response body was not valid JSON."""

    def __init__(self, provider: str | None, message: str, frame: str = ""):
        super().__init__(provider, message, code="PROVIDER_DECODE_ERROR")
        self.details = {"frame": frame[:200]}


class EmptyCompletionError(ProviderResponseError):
    """Provider reported zero choices or candidates."""

    def __init__(self, provider: str | None, what: str = "choices"):
        super().__init__(provider, f"no {what} in response", code="PROVIDER_EMPTY_COMPLETION")


class ModelListParseError(AgentError):
    """A configured *_MODELS_LIST value is not a JSON array of strings."""

    def __init__(self, key: str, reason: str):
        super().__init__(
            message=f"failed to parse {key}: {reason}",
            code="MODEL_LIST_PARSE_ERROR",
            details={"key": key}
        )
        self.key = key
