"""Tests for observability mode selection and logging setup."""

import logging
from unittest.mock import patch

from fastapi import FastAPI

from gemini_chat.config import Settings
from gemini_chat.logging_config import InterceptHandler, setup_logging
from gemini_chat.telemetry import instrument_agents, observability_mode, setup_telemetry


class TestObservabilityMode:
    def test_off_is_noop(self):
        settings = Settings(_env_file=None)
        with patch("pydantic_ai.Agent.instrument_all") as instrument_all:
            assert setup_telemetry(FastAPI(), settings) == "off"
        instrument_all.assert_not_called()

    def test_case_insensitive(self):
        assert observability_mode(Settings(_env_file=None, observability=" OTEL ")) == "otel"

    def test_unknown_mode_disables(self):
        settings = Settings(_env_file=None, observability="jaeger")
        assert observability_mode(settings) == "off"


class TestAgentInstrumentation:
    def test_instruments_all_agents(self):
        with patch("pydantic_ai.Agent.instrument_all") as instrument_all:
            instrument_agents()
        instrument_all.assert_called_once_with()


class TestSetupLogging:
    def test_routes_stdlib_through_loguru(self):
        setup_logging(level="info")

        assert any(isinstance(h, InterceptHandler) for h in logging.getLogger().handlers)
        assert logging.getLogger("uvicorn").handlers == []
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_debug_keeps_libraries_verbose(self):
        setup_logging(level="DEBUG", json=True)
        assert logging.getLogger("httpx").level == logging.DEBUG
