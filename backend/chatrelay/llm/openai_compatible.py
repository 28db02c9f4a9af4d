"""
OpenAI-compatible re-hosts (Mistral, Cohere, DeepSeek, Groq, xAI).

WHAT: One agent class configured per vendor
WHY: These vendors speak the OpenAI chat-completions protocol verbatim
HOW: Reuse OpenAIChatAgent, reading key/base/model from a settings prefix
"""

from ..core.config import Settings
from .openai import OpenAIChatAgent


class OpenAICompatibleAgent(OpenAIChatAgent):
    """
    OpenAI-protocol agent for a vendor whose settings share a prefix.

    A prefix of "MISTRAL" reads MISTRAL_API_KEY, MISTRAL_API_BASE,
    MISTRAL_CHAT_MODEL, MISTRAL_CHAT_MODELS_LIST and MISTRAL_CHAT_EXTRA_PARAMS.
    """

    def __init__(self, name: str, prefix: str, default_models: tuple[str, ...]):
        self.name = name
        self.prefix = prefix
        self.model_key = f"{prefix}_CHAT_MODEL"
        self.models_list_key = f"{prefix}_CHAT_MODELS_LIST"
        self.extra_params_key = f"{prefix}_CHAT_EXTRA_PARAMS"
        self.default_models = default_models

    def enabled(self, config: Settings) -> bool:
        return bool(getattr(config, f"{self.prefix}_API_KEY"))

    def api_key(self, config: Settings) -> str:
        return getattr(config, f"{self.prefix}_API_KEY")

    def api_base(self, config: Settings) -> str:
        return getattr(config, f"{self.prefix}_API_BASE")


def mistral_agent() -> OpenAICompatibleAgent:
    return OpenAICompatibleAgent(
        "mistral", "MISTRAL",
        ("mistral-large-latest", "mistral-medium-latest", "mistral-small-latest"),
    )


def cohere_agent() -> OpenAICompatibleAgent:
    return OpenAICompatibleAgent("cohere", "COHERE", ("command-r-plus", "command-r", "command"))


def deepseek_agent() -> OpenAICompatibleAgent:
    return OpenAICompatibleAgent("deepseek", "DEEPSEEK", ("deepseek-chat", "deepseek-coder"))


def groq_agent() -> OpenAICompatibleAgent:
    return OpenAICompatibleAgent(
        "groq", "GROQ",
        ("llama-3.1-70b-versatile", "llama-3.1-8b-instant", "mixtral-8x7b-32768"),
    )


def xai_agent() -> OpenAICompatibleAgent:
    return OpenAICompatibleAgent("xai", "XAI", ("grok-2-latest", "grok-2-vision-latest"))
