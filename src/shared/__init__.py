"""Shared utilities and base classes for the calendar assistant."""

from shared.models import (
    ToolDefinition,
    ToolResult,
    ToolExecution,
    InternalStep,
    StepKind,
    ErrorKind,
    OrchestrationBudget,
    OrchestrationResult,
    RunOptions,
)
from shared.config import Settings, get_settings
from shared.logging import configure_logging, get_logger, setup_logging

__all__ = [
    "ToolDefinition",
    "ToolResult",
    "ToolExecution",
    "InternalStep",
    "StepKind",
    "ErrorKind",
    "OrchestrationBudget",
    "OrchestrationResult",
    "RunOptions",
    "Settings",
    "get_settings",
    "configure_logging",
    "get_logger",
    "setup_logging",
]
