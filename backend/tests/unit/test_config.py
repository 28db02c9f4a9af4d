"""
Unit tests for settings and per-user overrides.

WHAT: Validators, key parsing and merge_user_config
WHY: Per-turn config must never let users swap credentials or endpoints
HOW: Isolated Settings instances
"""

import logging

import pytest
from pydantic import ValidationError

from chatrelay.core.config import merge_user_config
from chatrelay.utils.logger import mask_secret, setup_logging
from tests.fixtures.fakes import make_settings


@pytest.mark.unit
class TestSettings:

    def test_openai_keys_comma_separated(self):
        config = make_settings(OPENAI_API_KEY="sk-a, sk-b,,")
        assert config.get_openai_api_keys() == ["sk-a", "sk-b"]

    def test_openai_keys_from_list(self):
        config = make_settings(OPENAI_API_KEY=["sk-a", "sk-b"])
        assert config.get_openai_api_keys() == ["sk-a", "sk-b"]

    def test_invalid_parse_mode_rejected(self):
        with pytest.raises(ValidationError):
            make_settings(DEFAULT_PARSE_MODE="RTF")

    @pytest.mark.parametrize("mode", ["Markdown", "MarkdownV2", "HTML", ""])
    def test_valid_parse_modes(self, mode):
        assert make_settings(DEFAULT_PARSE_MODE=mode).DEFAULT_PARSE_MODE == mode

    def test_extra_params_accept_dict(self):
        config = make_settings(OPENAI_API_EXTRA_PARAMS={"temperature": 0.2})
        assert config.OPENAI_API_EXTRA_PARAMS == {"temperature": 0.2}

    def test_extra_params_from_env_json(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_CHAT_EXTRA_PARAMS", '{"max_tokens": 1024}')
        assert make_settings().ANTHROPIC_CHAT_EXTRA_PARAMS == {"max_tokens": 1024}


@pytest.mark.unit
class TestMergeUserConfig:

    def test_no_overrides_returns_same_object(self):
        config = make_settings()
        assert merge_user_config(config, None) is config
        assert merge_user_config(config, {}) is config

    def test_allowed_keys_applied(self):
        config = make_settings(OPENAI_CHAT_MODEL="gpt-4o-mini")
        merged = merge_user_config(config, {"OPENAI_CHAT_MODEL": "gpt-4o", "STREAM_MODE": False})

        assert merged.OPENAI_CHAT_MODEL == "gpt-4o"
        assert merged.STREAM_MODE is False
        assert config.OPENAI_CHAT_MODEL == "gpt-4o-mini"

    def test_credentials_and_bases_ignored(self):
        config = make_settings(OPENAI_API_KEY="sk-global")
        merged = merge_user_config(config, {
            "OPENAI_API_KEY": "sk-user",
            "OPENAI_API_BASE": "https://evil.example",
        })

        assert merged.OPENAI_API_KEY == "sk-global"
        assert merged.OPENAI_API_BASE == "https://api.openai.com/v1"

    def test_none_values_skipped(self):
        config = make_settings(SYSTEM_INIT_MESSAGE="be brief")
        assert merge_user_config(config, {"SYSTEM_INIT_MESSAGE": None}).SYSTEM_INIT_MESSAGE == "be brief"


@pytest.mark.unit
def test_mask_secret():
    assert mask_secret("") == "<unset>"
    assert mask_secret("abc") == "***"
    assert mask_secret("sk-1234567890") == "**********7890"


@pytest.mark.unit
def test_setup_logging_adds_file_handler(tmp_path):
    root = logging.getLogger()
    saved_handlers, saved_level = list(root.handlers), root.level
    log_file = tmp_path / "logs" / "relay.log"
    try:
        setup_logging("DEBUG", str(log_file))

        assert root.level == logging.DEBUG
        assert any(isinstance(h, logging.FileHandler) for h in root.handlers)
        assert log_file.exists()
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        for handler in root.handlers:
            if handler not in saved_handlers:
                handler.close()
        root.handlers[:] = saved_handlers
        root.setLevel(saved_level)
