"""Tests for configuration and logging setup."""

import pytest


class TestSettings:
    """Tests for Settings loading."""

    def test_defaults(self):
        """Test default budget and run options."""
        from shared.config import Settings

        settings = Settings()
        budget = settings.budget()
        options = settings.run_options()

        assert budget.max_steps == 10
        assert budget.max_tool_calls == 5
        assert options.use_tools is True
        assert options.development_mode is False
        assert settings.tools.is_enabled("calendar")
        assert not settings.tools.is_enabled("passport")
        assert not settings.tools.is_enabled("unknown")

    def test_from_yaml(self, tmp_path):
        """Test loading nested settings from YAML."""
        from shared.config import Settings

        path = tmp_path / "settings.yaml"
        path.write_text(
            "environment: production\n"
            "llm:\n"
            "  provider: mock\n"
            "  model: google/gemini-2.0-flash-001\n"
            "orchestrator:\n"
            "  max_tool_calls: 2\n"
            "  development_mode: true\n"
            "tools:\n"
            "  web: true\n"
        )

        settings = Settings.from_yaml(path)

        assert settings.environment == "production"
        assert settings.llm.provider == "mock"
        assert settings.llm.model == "google/gemini-2.0-flash-001"
        assert settings.budget().max_tool_calls == 2
        assert settings.run_options().development_mode is True
        assert settings.tools.is_enabled("web")

    def test_missing_yaml_uses_defaults(self, tmp_path):
        """Test a missing file falls back to defaults."""
        from shared.config import load_yaml_config

        assert load_yaml_config(tmp_path / "missing.yaml") == {}

    def test_run_option_overrides(self):
        """Test per-run overrides on top of configured defaults."""
        from shared.config import Settings

        options = Settings().run_options(use_tools=False, max_refinements=1)

        assert options.use_tools is False
        assert options.max_refinements == 1

    def test_env_override(self, monkeypatch):
        """Test environment variables override defaults."""
        from shared.config import OrchestratorSettings

        monkeypatch.setenv("ORCHESTRATOR_MAX_STEPS", "4")

        assert OrchestratorSettings().max_steps == 4

    def test_get_settings_reads_config_path(self, tmp_path, monkeypatch):
        """Test get_settings uses CALENDAR_AGENT_CONFIG_PATH."""
        from shared.config import get_settings

        path = tmp_path / "settings.yaml"
        path.write_text("log_level: DEBUG\n")
        monkeypatch.setenv("CALENDAR_AGENT_CONFIG_PATH", str(path))

        get_settings.cache_clear()
        try:
            assert get_settings().log_level == "DEBUG"
        finally:
            get_settings.cache_clear()

    def test_invalid_budget_rejected(self):
        """Test budgets must be positive."""
        from pydantic import ValidationError
        from shared.models import OrchestrationBudget

        with pytest.raises(ValidationError):
            OrchestrationBudget(max_steps=0)


class TestLogging:
    """Tests for logging helpers."""

    def test_bind_and_clear_context(self):
        """Test binding and clearing context values."""
        import structlog
        from shared.logging import bind_context, clear_context

        clear_context()
        bind_context(run_id="abc", user="u1")
        clear_context("run_id")

        assert structlog.contextvars.get_contextvars() == {"user": "u1"}

        clear_context()
        assert structlog.contextvars.get_contextvars() == {}

    def test_setup_logging_json(self):
        """Test JSON logging can be configured and used."""
        from shared.logging import get_logger, setup_logging

        setup_logging("INFO", json_output=True)
        logger = get_logger("test", component="tests")

        logger.info("Configured")

    def test_run_context(self):
        """Test run values are bound only inside the context."""
        import structlog
        from shared.logging import clear_context, run_context

        clear_context()
        with run_context("run-1", model="gpt-4.1-mini"):
            assert structlog.contextvars.get_contextvars() == {
                "run_id": "run-1",
                "model": "gpt-4.1-mini",
            }

        assert structlog.contextvars.get_contextvars() == {}

    def test_truncate_long_values(self):
        """Test oversized fields are shortened but the event name is kept."""
        from shared.logging import MAX_FIELD_LENGTH, truncate_long_values

        long_text = "x" * (MAX_FIELD_LENGTH + 50)
        event = truncate_long_values(None, "info", {"event": long_text, "reply": long_text, "count": 3})

        assert event["event"] == long_text
        assert event["reply"] == "x" * MAX_FIELD_LENGTH + "..."
        assert event["count"] == 3

    def test_configure_logging_from_settings(self):
        """Test settings drive the logging configuration."""
        from unittest.mock import patch
        from shared.config import Settings
        from shared.logging import configure_logging

        with patch("shared.logging.setup_logging") as setup:
            configure_logging(Settings(environment="production", log_level="WARNING"))
            configure_logging(Settings(debug=True))

        assert setup.call_args_list[0].args == ("WARNING",)
        assert setup.call_args_list[0].kwargs == {"json_output": True}
        assert setup.call_args_list[1].args == ("DEBUG",)
        assert setup.call_args_list[1].kwargs == {"json_output": False}
