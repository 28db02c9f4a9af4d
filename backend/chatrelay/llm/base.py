"""
Shared request/decode machinery for backend adapters.

WHAT: The build -> execute -> decode -> finish cycle every chat backend follows
WHY: Backends differ only in payload shape, endpoint, auth and delta path
HOW: BaseChatAgent drives httpx and line-framed JSON decoding; subclasses
     supply hooks for the backend-specific parts
"""

import json
from typing import Any, AsyncIterator, Iterable

import httpx

from ..core.config import Settings
from ..utils.logger import get_logger
from .provider import DeltaSink
from .types import (
    ChatRequest,
    ChatResponse,
    DecodeError,
    ModelListParseError,
    ProviderHTTPError,
    ProviderResponseError,
    ProviderTimeoutError,
    ProviderUnavailableError,
)

logger = get_logger(__name__)

MAX_ERROR_BODY = 1000
SSE_FIELD_PREFIXES = ("event:", "id:", "retry:")


def request_timeout(config: Settings) -> httpx.Timeout:
    """Build the httpx timeout from CHAT_COMPLETE_API_TIMEOUT (ms, 0 = none)."""
    if config.CHAT_COMPLETE_API_TIMEOUT > 0:
        return httpx.Timeout(config.CHAT_COMPLETE_API_TIMEOUT / 1000.0)
    return httpx.Timeout(None)


def join_url(base: str, path: str) -> str:
    return base.rstrip("/") + "/" + path.lstrip("/")


def parse_model_list(raw: str, key: str, defaults: Iterable[str]) -> list[str]:
    """
    Parse a JSON-encoded model list setting.

    Args:
        raw: Setting value (empty means "use defaults")
        key: Setting name, for the error message
        defaults: Built-in models for the backend

    Returns:
        Ordered list of model names

    Raises:
        ModelListParseError: Value is not a JSON array of strings
    """
    if not raw:
        return list(defaults)
    try:
        models = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ModelListParseError(key, str(e)) from e
    if not isinstance(models, list) or not all(isinstance(m, str) for m in models):
        raise ModelListParseError(key, "expected a JSON array of strings")
    return models


def build_payload(
    fields: dict[str, Any],
    extras: dict[str, Any] | None,
    reserved: Iterable[str],
    provider: str,
) -> dict[str, Any]:
    """
    Merge passthrough parameters into a generated payload.

    Reserved keys must be present in the generated fields and are never
    overridden; everything else in extras wins over the generated value.
    """
    reserved = tuple(reserved)
    missing = [key for key in reserved if key not in fields]
    if missing:
        raise ValueError(f"{provider} payload is missing required keys: {missing}")

    payload = dict(fields)
    for key, value in (extras or {}).items():
        if key in reserved:
            logger.warning(f"{provider}: ignoring extra param {key!r}, it is protocol-managed")
            continue
        payload[key] = value
    return payload


async def iter_json_frames(response: httpx.Response, provider: str) -> AsyncIterator[dict]:
    """
    Yield one JSON object per frame of a streamed response.

    Handles both newline-delimited JSON and server-sent events: blank lines,
    SSE comments and non-data fields are skipped, "data:" prefixes are
    stripped and "[DONE]" ends the stream.

    Raises:
        DecodeError: A frame is not a JSON object
    """
    async for raw_line in response.aiter_lines():
        line = raw_line.strip()
        if not line or line.startswith(":") or line.startswith(SSE_FIELD_PREFIXES):
            continue
        if line.startswith("data:"):
            line = line[5:].strip()
            if not line:
                continue
        if line == "[DONE]":
            return

        try:
            frame = json.loads(line)
        except json.JSONDecodeError as e:
            logger.error(f"{provider}: invalid stream frame: {line[:100]}")
            raise DecodeError(provider, f"failed to decode stream: {e}", frame=line) from e
        if not isinstance(frame, dict):
            raise DecodeError(provider, "stream frame is not a JSON object", frame=line)
        yield frame


async def raise_for_status(response: httpx.Response, provider: str) -> None:
    """Turn a non-2xx response into ProviderHTTPError carrying a capped body."""
    if response.is_success:
        return
    await response.aread()
    body = response.text[:MAX_ERROR_BODY]
    logger.error(f"{provider} HTTP error {response.status_code}: {body[:200]}")
    raise ProviderHTTPError(provider, response.status_code, body)


class AgentDescriptor:
    """Name, model and enablement accessors shared by chat and image agents."""

    name: str = ""
    model_key: str = ""
    models_list_key: str = ""
    default_models: tuple[str, ...] = ()

    def enabled(self, config: Settings) -> bool:
        raise NotImplementedError

    def model(self, config: Settings) -> str:
        return getattr(config, self.model_key)

    def model_list(self, config: Settings) -> list[str]:
        raw = getattr(config, self.models_list_key, "") if self.models_list_key else ""
        return parse_model_list(raw, self.models_list_key, self.default_models)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


class BaseChatAgent(AgentDescriptor):
    """
    Chat agent template.

    Subclasses implement build_body, endpoint, headers, extract_deltas and
    extract_text; request() handles transport, streaming and error mapping.
    """

    extra_params_key: str = ""
    reserved_keys: tuple[str, ...] = ("model", "messages", "stream")

    # Hooks

    def build_body(self, request: ChatRequest, config: Settings, stream: bool) -> dict[str, Any]:
        raise NotImplementedError

    def endpoint(self, config: Settings, stream: bool) -> str:
        raise NotImplementedError

    def headers(self, config: Settings) -> dict[str, str]:
        return {}

    def query_params(self, config: Settings, stream: bool) -> dict[str, str]:
        return {}

    def extract_deltas(self, frame: dict) -> list[str]:
        """Text fragments carried by one stream frame (may be empty)."""
        raise NotImplementedError

    def extract_text(self, body: dict) -> str:
        """Completion text from a non-streaming body."""
        raise NotImplementedError

    # Template

    def extra_params(self, request: ChatRequest, config: Settings) -> dict[str, Any]:
        merged = dict(getattr(config, self.extra_params_key, None) or {}) if self.extra_params_key else {}
        merged.update(request.extra_params or {})
        return merged

    def build_payload(self, request: ChatRequest, config: Settings, stream: bool) -> dict[str, Any]:
        return build_payload(
            self.build_body(request, config, stream),
            self.extra_params(request, config),
            self.reserved_keys,
            self.name,
        )

    async def request(
        self,
        request: ChatRequest,
        config: Settings,
        sink: DeltaSink | None = None
    ) -> ChatResponse:
        """
        Run a chat completion against this backend.

        Args:
            request: Canonical request
            config: Settings for this turn
            sink: Receives each text delta; None requests a non-streaming call

        Returns:
            ChatResponse with one assistant message

        Raises:
            ProviderHTTPError: Non-2xx status
            ProviderTimeoutError: Request timed out
            ProviderUnavailableError: Provider not reachable
            DecodeError: Malformed body or stream frame
            EmptyCompletionError: No choices/candidates in a non-streaming body
        """
        stream = sink is not None
        payload = self.build_payload(request, config, stream)
        url = self.endpoint(config, stream)
        logger.debug(f"{self.name}: POST {url} (model: {self.model(config)}, stream: {stream})")

        try:
            async with httpx.AsyncClient(timeout=request_timeout(config)) as client:
                if stream:
                    async with client.stream(
                        "POST",
                        url,
                        json=payload,
                        headers=self.headers(config),
                        params=self.query_params(config, stream),
                    ) as response:
                        await raise_for_status(response, self.name)
                        return await self._decode_stream(response, sink)

                response = await client.post(
                    url,
                    json=payload,
                    headers=self.headers(config),
                    params=self.query_params(config, stream),
                )
                await raise_for_status(response, self.name)
                return self._decode_body(response)

        except httpx.TimeoutException as e:
            logger.error(f"{self.name} request timeout")
            raise ProviderTimeoutError(self.name, f"{self.name} request timed out") from e

        except httpx.TransportError as e:
            logger.error(f"{self.name} not reachable: {type(e).__name__}")
            raise ProviderUnavailableError(self.name, f"{self.name} is not reachable: {e}") from e

    async def _decode_stream(self, response: httpx.Response, sink: DeltaSink) -> ChatResponse:
        pieces: list[str] = []
        async for frame in iter_json_frames(response, self.name):
            for delta in self.extract_deltas(frame):
                pieces.append(delta)
                await sink.on_delta(delta)

        logger.info(f"{self.name} stream completed ({len(pieces)} deltas)")
        return ChatResponse.from_text("".join(pieces))

    def _decode_body(self, response: httpx.Response) -> ChatResponse:
        try:
            body = response.json()
        except ValueError as e:
            # JSONDecodeError and UnicodeDecodeError both subclass ValueError
            raise DecodeError(self.name, f"failed to decode response: {e}", frame=response.text) from e

        try:
            text = self.extract_text(body)
        except (KeyError, IndexError, TypeError, AttributeError) as e:
            raise ProviderResponseError(self.name, f"invalid response format: {e}") from e

        logger.info(f"{self.name} completion success ({len(text)} chars)")
        return ChatResponse.from_text(text)


class BaseImageAgent(AgentDescriptor):
    """Image agent template; subclasses implement request()."""

    async def post(
        self,
        config: Settings,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> httpx.Response:
        """POST with the same error mapping chat agents use."""
        logger.debug(f"{self.name}: POST {url} (model: {self.model(config)})")
        try:
            async with httpx.AsyncClient(timeout=request_timeout(config)) as client:
                response = await client.post(url, json=payload, headers=headers or {}, params=params)
                await raise_for_status(response, self.name)
                return response
        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(self.name, f"{self.name} request timed out") from e
        except httpx.TransportError as e:
            raise ProviderUnavailableError(self.name, f"{self.name} is not reachable: {e}") from e

    def decode_json(self, response: httpx.Response) -> dict:
        """Parse a JSON object body; anything else is a provider response error."""
        try:
            body = response.json()
        except ValueError as e:
            raise DecodeError(self.name, f"failed to decode response: {e}", frame=response.text) from e
        if not isinstance(body, dict):
            raise ProviderResponseError(self.name, "invalid response format: expected a JSON object")
        return body

    async def request(self, prompt: str, config: Settings) -> str:
        raise NotImplementedError
