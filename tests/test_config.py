"""Tests for environment-driven configuration."""

import pytest
from pydantic import ValidationError

from dealpulse.core.config import (
    BatchConfig,
    ResearchConfig,
    Settings,
    configuration_status,
    validate_required_settings,
)

ENV_KEYS = (
    "RESEARCH_SOURCES",
    "RESEARCH_COOLDOWN_HOURS",
    "RESEARCH_REFETCH_ALL_SOURCES",
    "SERPAPI_API_KEY",
    "PDL_API_KEY",
    "OPENAI_API_KEY",
    "STAGE_TAXONOMY",
    "BATCH_SIZE",
)


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    # keep a developer's .env out of these tests
    monkeypatch.chdir(tmp_path)
    return monkeypatch


class TestDefaults:
    """Test configuration defaults."""

    def test_research_defaults(self, clean_env):
        config = ResearchConfig()
        assert config.sources == ["news", "discussion", "enrichment"]
        assert config.cooldown_hours == 12.0
        assert config.refetch_all_sources is False
        assert config.serpapi_api_key is None

    def test_settings_defaults(self, clean_env):
        settings = Settings()
        assert settings.scoring.taxonomy == "default"
        assert settings.batch.batch_size == 5
        assert settings.batch.batch_delay_seconds == 3.0
        assert settings.generation.openai_model == "gpt-4o"


class TestEnvironment:
    """Test values read from the environment."""

    def test_env_aliases(self, clean_env):
        clean_env.setenv("RESEARCH_SOURCES", " News , enrichment,,")
        clean_env.setenv("RESEARCH_COOLDOWN_HOURS", "6")
        clean_env.setenv("RESEARCH_REFETCH_ALL_SOURCES", "yes")
        clean_env.setenv("STAGE_TAXONOMY", " Enterprise ")

        settings = Settings()

        assert settings.research.sources == ["news", "enrichment"]
        assert settings.research.cooldown_hours == 6.0
        assert settings.research.refetch_all_sources is True
        assert settings.scoring.taxonomy == "enterprise"

    def test_invalid_batch_size(self, clean_env):
        clean_env.setenv("BATCH_SIZE", "0")
        with pytest.raises(ValidationError):
            BatchConfig()


class TestValidation:
    """Test required-setting checks."""

    def test_missing_keys_per_workflow(self, clean_env):
        settings = Settings()
        assert validate_required_settings("research", settings) == [
            "SERPAPI_API_KEY",
            "PDL_API_KEY",
        ]
        assert validate_required_settings("intelligence", settings) == ["OPENAI_API_KEY"]
        assert validate_required_settings("minimal", settings) == []

    def test_disabled_sources_need_no_keys(self, clean_env):
        clean_env.setenv("RESEARCH_SOURCES", "discussion")
        settings = Settings()
        assert validate_required_settings("research", settings) == []
        status = configuration_status(settings)
        assert status["news"] == "disabled"
        assert status["discussion"] == "available"
        assert status["generation"] == "fallback_only"
