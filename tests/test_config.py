"""
Unit Tests for configuration loading
"""

import pytest
from pydantic import ValidationError

from dispatch.utils.config import DispatchConfig
from grader.services.config import GraderConfig

PROVIDER_VARS = [
    "GEMINI_API_KEY",
    "GROQ_API_KEY",
    "OPENAI_API_KEY",
    "OPENROUTER_API_KEY",
    "DISPATCH_PROVIDER_ORDER",
    "DISPATCH_RETRY_MAX_ATTEMPTS",
]


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in PROVIDER_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestDispatchConfig:
    """Tests for DispatchConfig."""

    def test_specs_when_env_keys_then_credentials_and_priorities(self, clean_env):
        clean_env.setenv("GEMINI_API_KEY", "g-key")
        clean_env.setenv("GROQ_API_KEY", "q-key")

        specs = DispatchConfig().provider_specs()

        assert [s.name for s in specs] == ["gemini", "groq", "openai", "openrouter"]
        assert [s.priority for s in specs] == [0, 1, 2, 3]
        assert specs[0].credential == "g-key"
        assert specs[2].credential == ""

    def test_specs_when_order_overridden_then_followed(self, clean_env):
        clean_env.setenv("DISPATCH_PROVIDER_ORDER", "openai, gemini, unknown")

        specs = DispatchConfig().provider_specs()

        assert [s.name for s in specs] == ["openai", "gemini"]
        assert specs[0].priority == 0

    def test_config_when_default_models_then_current_ids(self, clean_env):
        config = DispatchConfig()
        assert config.gemini_model == "gemini-flash-latest"
        assert config.groq_model == "llama-3.1-8b-instant"
        assert config.openai_model == "gpt-4o-mini"

    def test_config_when_zero_attempts_then_rejected(self, clean_env):
        clean_env.setenv("DISPATCH_RETRY_MAX_ATTEMPTS", "0")
        with pytest.raises(ValidationError):
            DispatchConfig()

    def test_config_when_env_file_then_read(self, clean_env, tmp_path):
        (tmp_path / ".env").write_text("OPENAI_API_KEY=from-file\n")
        assert DispatchConfig().openai_api_key == "from-file"


class TestGraderConfig:
    def test_config_when_env_set_then_parsed(self, clean_env):
        clean_env.setenv("GRADER_CACHE_BACKEND", "sqlite")
        clean_env.setenv("GRADER_SINGLE_FLIGHT", "false")
        clean_env.setenv("GRADER_EVALUATE_TIMEOUT", "45")

        config = GraderConfig()

        assert config.cache_backend == "sqlite"
        assert config.single_flight is False
        assert config.evaluate_timeout == 45

    def test_config_when_unknown_backend_then_rejected(self, clean_env):
        clean_env.setenv("GRADER_CACHE_BACKEND", "redis")
        with pytest.raises(ValidationError):
            GraderConfig()
