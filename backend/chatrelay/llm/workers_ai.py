"""
Cloudflare Workers AI agent implementation.

WHAT: Chat and text-to-image through the Workers AI run endpoint
WHY: OpenAI-like messages but a different envelope ({"result": {"response"}})
HOW: Account-scoped URL with the model as the last path segment, bearer token
"""

import base64
from typing import Any

from ..core.config import Settings
from .base import BaseChatAgent, BaseImageAgent, join_url
from .openai import openai_messages
from .types import ChatRequest, ProviderResponseError


def run_url(config: Settings, model: str) -> str:
    return join_url(config.WORKERS_API_BASE, f"accounts/{config.CLOUDFLARE_ACCOUNT_ID}/ai/run/{model}")


def workers_enabled(config: Settings) -> bool:
    return bool(config.CLOUDFLARE_ACCOUNT_ID and config.CLOUDFLARE_TOKEN)


def response_text(frame: dict) -> str | None:
    """result.response, or a top-level response as the SSE stream sends it."""
    result = frame.get("result")
    if isinstance(result, dict) and isinstance(result.get("response"), str):
        return result["response"]
    if isinstance(frame.get("response"), str):
        return frame["response"]
    return None


class WorkersChatAgent(BaseChatAgent):
    """Workers AI text generation."""

    name = "workers"
    model_key = "WORKERS_CHAT_MODEL"
    models_list_key = "WORKERS_CHAT_MODELS_LIST"
    extra_params_key = "WORKERS_CHAT_EXTRA_PARAMS"
    default_models = (
        "@cf/meta/llama-3.1-8b-instruct",
        "@cf/qwen/qwen1.5-7b-chat-awq",
        "@cf/mistral/mistral-7b-instruct-v0.1",
    )
    reserved_keys = ("messages", "stream")

    def enabled(self, config: Settings) -> bool:
        return workers_enabled(config)

    def endpoint(self, config: Settings, stream: bool) -> str:
        return run_url(config, self.model(config))

    def headers(self, config: Settings) -> dict[str, str]:
        return {"Authorization": f"Bearer {config.CLOUDFLARE_TOKEN}"}

    def build_body(self, request: ChatRequest, config: Settings, stream: bool) -> dict[str, Any]:
        return {
            "messages": openai_messages(request),
            "stream": stream,
        }

    def extract_deltas(self, frame: dict) -> list[str]:
        text = response_text(frame)
        return [text] if text else []

    def extract_text(self, body: dict) -> str:
        text = response_text(body)
        if text is None:
            raise ProviderResponseError(self.name, "invalid response format: missing result.response")
        return text


class WorkersImageAgent(BaseImageAgent):
    """Workers AI text-to-image."""

    name = "workers-image"
    model_key = "WORKERS_IMAGE_MODEL"
    models_list_key = "WORKERS_IMAGE_MODELS_LIST"
    default_models = (
        "@cf/black-forest-labs/flux-1-schnell",
        "@cf/stabilityai/stable-diffusion-xl-base-1.0",
    )

    def enabled(self, config: Settings) -> bool:
        return workers_enabled(config)

    async def request(self, prompt: str, config: Settings) -> str:
        """
        Generate an image and return it as base64.

        Diffusion models answer with raw image bytes; flux answers with JSON
        carrying result.image, which is already base64.
        """
        response = await self.post(
            config,
            run_url(config, self.model(config)),
            {"prompt": prompt},
            headers={"Authorization": f"Bearer {config.CLOUDFLARE_TOKEN}"},
        )
        if response.headers.get("content-type", "").startswith("application/json"):
            body = self.decode_json(response)
            result = body.get("result")
            image = result.get("image") if isinstance(result, dict) else None
            if not isinstance(image, str) or not image:
                raise ProviderResponseError(self.name, "invalid response format: missing result.image")
            return image
        return base64.b64encode(response.content).decode("ascii")
