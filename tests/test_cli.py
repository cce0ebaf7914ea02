"""Tests for the command line interface."""

import json

import pytest
import structlog
from click.testing import CliRunner

from dealpulse.core import config as config_module
from dealpulse.core.config import GenerationConfig, ResearchConfig, Settings
from dealpulse.main import main


@pytest.fixture
def cli_settings(monkeypatch, tmp_path):
    """Point the CLI at a temporary roster and store, with no API keys."""
    monkeypatch.chdir(tmp_path)
    # log lines would otherwise land in the captured command output
    monkeypatch.setattr(
        "dealpulse.main.setup_logging",
        lambda **kwargs: structlog.configure(logger_factory=structlog.ReturnLoggerFactory()),
    )

    roster_path = tmp_path / "roster.json"
    roster_path.write_text(
        json.dumps(
            [
                {
                    "id": "ent-1",
                    "userId": "user-1",
                    "company": "Acme Lending",
                    "notes": "They need SSO. Can they integrate with our CRM?",
                    "lastContact": "2025-03-10",
                    "deals": [{"title": "Rollout", "value": 50000, "status": "proposal"}],
                }
            ]
        )
    )
    settings = Settings(
        roster_path=str(roster_path),
        store_path=str(tmp_path / "store.json"),
        research=ResearchConfig(sources_raw="news", serpapi_api_key=None, pdl_api_key=None),
        generation=GenerationConfig(openai_api_key=None),
    )
    monkeypatch.setattr(config_module, "settings", settings)
    yield settings
    structlog.reset_defaults()


class TestCli:
    """Test CLI commands against temporary files."""

    def test_show_pending(self, cli_settings):
        result = CliRunner().invoke(main, ["show", "ent-1", "user-1"])
        assert result.exit_code == 0
        assert "pending" in result.output

    def test_intelligence_then_show(self, cli_settings):
        runner = CliRunner()

        result = runner.invoke(main, ["intelligence"])
        assert result.exit_code == 0, result.output
        assert "fallback reports" in result.output
        assert "Processed" in result.output

        shown = runner.invoke(main, ["show", "ent-1", "user-1", "--json"])
        assert shown.exit_code == 0
        document = json.loads(shown.output)
        assert document["metadata"]["source"] == "fallback"
        assert 0 <= document["score"] <= 100

    def test_config_reports_missing_keys(self, cli_settings):
        result = CliRunner().invoke(main, ["config"])
        assert result.exit_code == 1
        assert "SERPAPI_API_KEY" in result.output
        assert "OPENAI_API_KEY" in result.output
