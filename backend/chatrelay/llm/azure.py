"""
Azure OpenAI agent implementation.

WHAT: Chat completions and DALL-E through an Azure OpenAI resource
WHY: Same protocol as OpenAI, but deployment-addressed with an api-key header
HOW: Model name selects the deployment; api-version travels as a query param
"""

from typing import Any

from ..core.config import Settings
from .base import BaseChatAgent, BaseImageAgent
from .openai import extract_choice_delta, extract_choice_message, image_from_data, openai_messages
from .types import ChatRequest


def deployment_url(config: Settings, deployment: str, operation: str) -> str:
    return (
        f"https://{config.AZURE_RESOURCE_NAME}.openai.azure.com"
        f"/openai/deployments/{deployment}/{operation}"
    )


class AzureChatAgent(BaseChatAgent):
    """Azure-hosted OpenAI chat completions."""

    name = "azure"
    model_key = "AZURE_CHAT_MODEL"
    models_list_key = "AZURE_CHAT_MODELS_LIST"
    extra_params_key = "AZURE_CHAT_EXTRA_PARAMS"
    default_models = ("gpt-4o", "gpt-4o-mini", "gpt-4-turbo", "gpt-35-turbo")
    # the model is part of the URL, not the body
    reserved_keys = ("messages", "stream")

    def enabled(self, config: Settings) -> bool:
        return bool(config.AZURE_API_KEY and config.AZURE_RESOURCE_NAME)

    def endpoint(self, config: Settings, stream: bool) -> str:
        return deployment_url(config, self.model(config), "chat/completions")

    def query_params(self, config: Settings, stream: bool) -> dict[str, str]:
        return {"api-version": config.AZURE_API_VERSION}

    def headers(self, config: Settings) -> dict[str, str]:
        return {"api-key": config.AZURE_API_KEY}

    def build_body(self, request: ChatRequest, config: Settings, stream: bool) -> dict[str, Any]:
        return {
            "messages": openai_messages(request),
            "stream": stream,
        }

    def extract_deltas(self, frame: dict) -> list[str]:
        return extract_choice_delta(frame)

    def extract_text(self, body: dict) -> str:
        return extract_choice_message(self.name, body)


class AzureImageAgent(BaseImageAgent):
    """Azure-hosted DALL-E."""

    name = "azure-dalle"
    model_key = "AZURE_IMAGE_MODEL"
    # Azure addresses deployments, not models, so there is no configurable list
    default_models = ("dall-e-3", "dall-e-2")

    def enabled(self, config: Settings) -> bool:
        return bool(config.AZURE_API_KEY and config.AZURE_RESOURCE_NAME)

    async def request(self, prompt: str, config: Settings) -> str:
        model = self.model(config)
        payload: dict[str, Any] = {
            "prompt": prompt,
            "n": 1,
            "size": config.DALL_E_IMAGE_SIZE,
        }
        if "dall-e-3" in model:
            payload["quality"] = config.DALL_E_IMAGE_QUALITY
            payload["style"] = config.DALL_E_IMAGE_STYLE

        response = await self.post(
            config,
            deployment_url(config, model, "images/generations"),
            payload,
            headers={"api-key": config.AZURE_API_KEY},
            params={"api-version": config.AZURE_API_VERSION},
        )
        return image_from_data(self.name, self.decode_json(response))
