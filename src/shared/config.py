"""Configuration management for the calendar assistant.

Supports YAML configuration files and environment variable overrides.
Configuration is loaded once and cached for performance.
"""

import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.models import OrchestrationBudget, RunOptions


class LLMSettings(BaseSettings):
    """Language-model gateway configuration."""
    provider: str = Field(default="openai", description="LLM provider: openai, mock")
    model: str = Field(default="gpt-4.1-mini", description="Default model identifier")
    api_key: Optional[str] = Field(default=None, description="OpenAI API key")
    api_base: Optional[str] = Field(default=None, description="OpenAI API base URL")
    openrouter_api_key: Optional[str] = Field(default=None, description="OpenRouter API key")
    openrouter_api_base: str = Field(default="https://openrouter.ai/api/v1")
    temperature: float = Field(default=0.1, ge=0, le=2)
    max_tokens: int = Field(default=4096, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        extra="ignore"
    )


class OrchestratorSettings(BaseSettings):
    """Default budget and run options for orchestration."""
    max_steps: int = Field(default=10, gt=0)
    max_tool_calls: int = Field(default=5, ge=0)
    tool_timeout_seconds: float = Field(default=30.0, gt=0)
    llm_timeout_seconds: float = Field(default=60.0, gt=0)
    max_decision_retries: int = Field(default=2, ge=0)
    max_refinements: int = Field(default=0, ge=0)
    development_mode: bool = Field(default=False)

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_",
        env_file=".env",
        extra="ignore"
    )


class ToolSettings(BaseSettings):
    """Which tool families are enabled, plus per-family options."""
    calendar: bool = Field(default=True)
    email: bool = Field(default=False)
    web: bool = Field(default=False)
    passport: bool = Field(default=False)
    file_search: bool = Field(default=False)

    web_timeout_seconds: float = Field(default=15.0, gt=0)
    web_max_content_chars: int = Field(default=8000, gt=0)

    model_config = SettingsConfigDict(
        env_prefix="TOOLS_",
        env_file=".env",
        extra="ignore"
    )

    def is_enabled(self, category: str) -> bool:
        """Return whether a tool category is switched on."""
        return bool(getattr(self, category, False))


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field(default="development")
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # Component settings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    orchestrator: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)

    model_config = SettingsConfigDict(
        env_prefix="CALENDAR_AGENT_",
        env_file=".env",
        extra="ignore"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Settings":
        """Load settings from a YAML file."""
        data = load_yaml_config(path)
        return cls(**data)

    def budget(self) -> OrchestrationBudget:
        """Build the default per-run budget."""
        return OrchestrationBudget(
            max_steps=self.orchestrator.max_steps,
            max_tool_calls=self.orchestrator.max_tool_calls,
            tool_timeout_seconds=self.orchestrator.tool_timeout_seconds,
        )

    def run_options(self, **overrides: Any) -> RunOptions:
        """Build default run options, optionally overriding fields."""
        values: dict[str, Any] = {
            "development_mode": self.orchestrator.development_mode,
            "max_decision_retries": self.orchestrator.max_decision_retries,
            "max_refinements": self.orchestrator.max_refinements,
            "llm_timeout_seconds": self.orchestrator.llm_timeout_seconds,
        }
        values.update(overrides)
        return RunOptions(**values)


def load_yaml_config(path: str | Path) -> dict[str, Any]:
    """Load a YAML configuration file."""
    path = Path(path)
    if not path.exists():
        return {}

    with open(path) as f:
        return yaml.safe_load(f) or {}


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    config_path = os.environ.get("CALENDAR_AGENT_CONFIG_PATH", "config/settings.yaml")
    return Settings.from_yaml(config_path)
