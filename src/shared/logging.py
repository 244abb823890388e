"""Structured logging for the calendar assistant.

Every orchestration run logs through structlog with its ``run_id`` bound,
so the decisions, tool calls and verdicts of concurrent runs can be told
apart in interleaved output.
"""

import logging
import sys
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator

import structlog
from structlog.types import EventDict, Processor

if TYPE_CHECKING:
    from shared.config import Settings

# Model replies and tool payloads are cut to this length in log lines
MAX_FIELD_LENGTH = 500

QUIET_LIBRARIES = ("httpx", "httpcore", "openai")


def truncate_long_values(logger: Any, method_name: str, event_dict: EventDict) -> EventDict:
    """Shorten oversized string fields, leaving the event name intact."""
    for key, value in event_dict.items():
        if key != "event" and isinstance(value, str) and len(value) > MAX_FIELD_LENGTH:
            event_dict[key] = value[:MAX_FIELD_LENGTH] + "..."
    return event_dict


def setup_logging(log_level: str = "INFO", json_output: bool = False) -> None:
    """
    Configure structured logging.

    Args:
        log_level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Emit JSON lines instead of colored console output
    """
    level = getattr(logging, log_level.upper())

    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        truncate_long_values,
    ]
    if json_output:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    # HTTP client chatter would drown out the run's own events
    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def configure_logging(settings: "Settings") -> None:
    """Configure logging from settings; JSON everywhere but development."""
    setup_logging(
        "DEBUG" if settings.debug else settings.log_level,
        json_output=settings.environment != "development",
    )


def get_logger(name: str | None = None, **initial_context: Any) -> structlog.BoundLogger:
    """Get a logger, optionally with values bound to it."""
    logger = structlog.get_logger(name)
    if initial_context:
        logger = logger.bind(**initial_context)
    return logger


def bind_context(**context: Any) -> None:
    """Bind values to every logger in the current async context."""
    structlog.contextvars.bind_contextvars(**context)


def clear_context(*keys: str) -> None:
    """Clear bound context values; all of them when no keys are given."""
    if keys:
        structlog.contextvars.unbind_contextvars(*keys)
    else:
        structlog.contextvars.clear_contextvars()


@contextmanager
def run_context(run_id: str, **context: Any) -> Iterator[None]:
    """Bind ``run_id`` and extra values for the duration of one run."""
    bind_context(run_id=run_id, **context)
    try:
        yield
    finally:
        clear_context("run_id", *context)
