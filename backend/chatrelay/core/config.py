"""
Application configuration using pydantic-settings.

WHAT: Centralized config from environment variables
WHY: Type-safe, validated config with sensible defaults for every backend
HOW: Pydantic BaseSettings reads from .env and environment
"""

from pathlib import Path
from typing import Any

from pydantic import field_validator
from pydantic_settings import BaseSettings


# Keys a per-user override may change for a single turn.
USER_OVERRIDABLE_KEYS = frozenset({
    "AI_PROVIDER",
    "AI_IMAGE_PROVIDER",
    "OPENAI_CHAT_MODEL",
    "AZURE_CHAT_MODEL",
    "GOOGLE_CHAT_MODEL",
    "ANTHROPIC_CHAT_MODEL",
    "WORKERS_CHAT_MODEL",
    "MISTRAL_CHAT_MODEL",
    "COHERE_CHAT_MODEL",
    "DEEPSEEK_CHAT_MODEL",
    "GROQ_CHAT_MODEL",
    "XAI_CHAT_MODEL",
    "DALL_E_MODEL",
    "SYSTEM_INIT_MESSAGE",
    "STREAM_MODE",
})

PARSE_MODES = ("Markdown", "MarkdownV2", "HTML", "")


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    APP_NAME: str = "chatrelay"
    APP_VERSION: str = "0.1.0"

    # Provider selection ("auto" picks the first enabled agent)
    AI_PROVIDER: str = "auto"
    AI_IMAGE_PROVIDER: str = "auto"
    SYSTEM_INIT_MESSAGE: str = ""

    # OpenAI (comma-separated keys, the first one is used)
    OPENAI_API_KEY: str = ""
    OPENAI_API_BASE: str = "https://api.openai.com/v1"
    OPENAI_CHAT_MODEL: str = "gpt-4o-mini"
    OPENAI_CHAT_MODELS_LIST: str = ""
    OPENAI_API_EXTRA_PARAMS: dict[str, Any] = {}

    # DALL-E
    DALL_E_MODEL: str = "dall-e-3"
    DALL_E_IMAGE_SIZE: str = "1024x1024"
    DALL_E_IMAGE_QUALITY: str = "standard"
    DALL_E_IMAGE_STYLE: str = "vivid"
    DALL_E_MODELS_LIST: str = '["dall-e-3"]'

    # Azure OpenAI
    AZURE_API_KEY: str = ""
    AZURE_RESOURCE_NAME: str = ""
    AZURE_CHAT_MODEL: str = "gpt-4o-mini"
    AZURE_IMAGE_MODEL: str = "dall-e-3"
    AZURE_API_VERSION: str = "2024-06-01"
    AZURE_CHAT_MODELS_LIST: str = ""
    AZURE_CHAT_EXTRA_PARAMS: dict[str, Any] = {}

    # Cloudflare Workers AI
    CLOUDFLARE_ACCOUNT_ID: str = ""
    CLOUDFLARE_TOKEN: str = ""
    WORKERS_API_BASE: str = "https://api.cloudflare.com/client/v4"
    WORKERS_CHAT_MODEL: str = "@cf/qwen/qwen1.5-7b-chat-awq"
    WORKERS_IMAGE_MODEL: str = "@cf/black-forest-labs/flux-1-schnell"
    WORKERS_CHAT_MODELS_LIST: str = ""
    WORKERS_IMAGE_MODELS_LIST: str = ""
    WORKERS_CHAT_EXTRA_PARAMS: dict[str, Any] = {}

    # Google Gemini
    GOOGLE_API_KEY: str = ""
    GOOGLE_API_BASE: str = "https://generativelanguage.googleapis.com/v1beta"
    GOOGLE_CHAT_MODEL: str = "gemini-1.5-flash"
    GOOGLE_CHAT_MODELS_LIST: str = ""
    GOOGLE_CHAT_EXTRA_PARAMS: dict[str, Any] = {}

    # Anthropic
    ANTHROPIC_API_KEY: str = ""
    ANTHROPIC_API_BASE: str = "https://api.anthropic.com/v1"
    ANTHROPIC_CHAT_MODEL: str = "claude-3-5-haiku-latest"
    ANTHROPIC_CHAT_MODELS_LIST: str = ""
    ANTHROPIC_CHAT_EXTRA_PARAMS: dict[str, Any] = {}

    # OpenAI-compatible re-hosts
    MISTRAL_API_KEY: str = ""
    MISTRAL_API_BASE: str = "https://api.mistral.ai/v1"
    MISTRAL_CHAT_MODEL: str = "mistral-tiny"
    MISTRAL_CHAT_MODELS_LIST: str = ""
    MISTRAL_CHAT_EXTRA_PARAMS: dict[str, Any] = {}

    COHERE_API_KEY: str = ""
    COHERE_API_BASE: str = "https://api.cohere.com/v2"
    COHERE_CHAT_MODEL: str = "command-r-plus"
    COHERE_CHAT_MODELS_LIST: str = ""
    COHERE_CHAT_EXTRA_PARAMS: dict[str, Any] = {}

    DEEPSEEK_API_KEY: str = ""
    DEEPSEEK_API_BASE: str = "https://api.deepseek.com"
    DEEPSEEK_CHAT_MODEL: str = "deepseek-chat"
    DEEPSEEK_CHAT_MODELS_LIST: str = ""
    DEEPSEEK_CHAT_EXTRA_PARAMS: dict[str, Any] = {}

    GROQ_API_KEY: str = ""
    GROQ_API_BASE: str = "https://api.groq.com/openai/v1"
    GROQ_CHAT_MODEL: str = "groq-chat"
    GROQ_CHAT_MODELS_LIST: str = ""
    GROQ_CHAT_EXTRA_PARAMS: dict[str, Any] = {}

    XAI_API_KEY: str = ""
    XAI_API_BASE: str = "https://api.x.ai/v1"
    XAI_CHAT_MODEL: str = "grok-2-latest"
    XAI_CHAT_MODELS_LIST: str = ""
    XAI_CHAT_EXTRA_PARAMS: dict[str, Any] = {}

    # LLM request configuration
    CHAT_COMPLETE_API_TIMEOUT: int = 0  # milliseconds, 0 disables the timeout

    # Telegram delivery
    TELEGRAM_API_DOMAIN: str = "https://api.telegram.org"
    DEFAULT_PARSE_MODE: str = "Markdown"
    TELEGRAM_MIN_STREAM_INTERVAL: int = 0  # milliseconds between message edits
    STREAM_MODE: bool = True

    # Delivery retry (rate-limited edits only)
    STREAM_MAX_RETRIES: int = 3
    STREAM_RETRY_DELAY: float = 1.0  # seconds, base for linear backoff
    STREAM_MAX_RETRY_DELAY: float = 30.0
    STREAM_RETRY_BACKOFF_FACTOR: float = 2.0

    # History
    AUTO_TRIM_HISTORY: bool = True
    MAX_HISTORY_LENGTH: int = 20
    HISTORY_IMAGE_PLACEHOLDER: str = ""

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = ""

    @field_validator("DEFAULT_PARSE_MODE")
    @classmethod
    def validate_parse_mode(cls, v):
        """Reject parse modes Telegram does not understand."""
        if v not in PARSE_MODES:
            raise ValueError(f"DEFAULT_PARSE_MODE must be one of {PARSE_MODES[:-1]}, got {v!r}")
        return v

    @field_validator("OPENAI_API_KEY", mode="before")
    @classmethod
    def parse_openai_keys(cls, v):
        """Accept a list of keys as well as a comma-separated string."""
        if isinstance(v, list):
            return ",".join(v)
        return v

    def get_openai_api_keys(self) -> list[str]:
        """Get OpenAI API keys as a list."""
        return [key.strip() for key in self.OPENAI_API_KEY.split(",") if key.strip()]

    class Config:
        env_file = [
            str(Path(__file__).parent.parent.parent.parent / ".env"),  # repo root
            str(Path(__file__).parent.parent.parent / ".env"),  # backend/.env (fallback)
        ]
        env_file_encoding = "utf-8"
        case_sensitive = True
        extra = "ignore"


def merge_user_config(config: Settings, user_config: dict[str, Any] | None) -> Settings:
    """
    Overlay per-user values on the global settings for one turn.

    Only keys in USER_OVERRIDABLE_KEYS are applied; credentials and base URLs
    always come from the global configuration.

    Args:
        config: Global settings
        user_config: Per-user override map (may be None)

    Returns:
        A copy of config with the allowed overrides applied
    """
    if not user_config:
        return config

    updates = {
        key: value
        for key, value in user_config.items()
        if key in USER_OVERRIDABLE_KEYS and value is not None
    }
    if not updates:
        return config
    return config.model_copy(update=updates)


# Singleton instance
settings = Settings()
