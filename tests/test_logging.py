"""Tests for logging setup and context helpers."""

import json
import logging

import structlog

from dealpulse.core.logging import (
    LIBRARY_LOGGERS,
    entity_context,
    get_correlation_id,
    set_correlation_id,
    setup_logging,
)


class TestCorrelation:
    """Test correlation and entity context binding."""

    def teardown_method(self):
        structlog.contextvars.clear_contextvars()

    def test_explicit_and_generated_ids(self):
        assert set_correlation_id("run-42") == "run-42"
        assert get_correlation_id() == "run-42"

        generated = set_correlation_id()
        assert len(generated) == 8
        assert get_correlation_id() == generated

    def test_entity_context_is_scoped(self):
        with entity_context("ent-1", "user-1"):
            bound = structlog.contextvars.get_contextvars()
            assert bound["entity_id"] == "ent-1"
            assert bound["user_id"] == "user-1"
        assert "entity_id" not in structlog.contextvars.get_contextvars()


class TestSetupLogging:
    """Test JSON-lines output for structlog and library loggers."""

    def teardown_method(self):
        root = logging.getLogger()
        for handler in [h for h in root.handlers if h.get_name() == "dealpulse"]:
            root.removeHandler(handler)
        root.setLevel(logging.WARNING)
        for name in LIBRARY_LOGGERS:
            logging.getLogger(name).setLevel(logging.NOTSET)
        structlog.contextvars.clear_contextvars()
        structlog.reset_defaults()

    def test_json_lines_share_context(self, capsys):
        setup_logging(rich_output=False)
        set_correlation_id("run-7")

        structlog.get_logger("dealpulse.tests").info("research_started", entity_id="ent-1")
        logging.getLogger("openai").warning("rate limited")
        logging.getLogger("httpx").info("HTTP Request: GET https://example.test")

        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]

        assert [line["event"] for line in lines] == ["research_started", "rate limited"]
        assert all(line["correlation_id"] == "run-7" for line in lines)
        assert lines[0]["entity_id"] == "ent-1"
        assert lines[1]["level"] == "warning"

    def test_setup_is_idempotent(self):
        setup_logging(rich_output=False)
        setup_logging(rich_output=False, debug=True)
        names = [h.get_name() for h in logging.getLogger().handlers]
        assert names.count("dealpulse") == 1
        assert logging.getLogger("httpx").level == logging.DEBUG
