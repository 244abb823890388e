"""Assistant tools.

Each tool family contains:
- Tool definitions with JSON Schema parameters
- A backend contract the tools call
- An in-memory or HTTP backend where one is useful outside production

Families are isolated: no cross-family calls or shared state.
"""

from typing import Optional

from shared.config import ToolSettings
from shared.logging import get_logger
from tools.calendar import CalendarBackend, build_calendar_tools
from tools.email import EmailBackend, build_email_tools
from tools.file_search import FileSearchBackend, build_file_search_tools
from tools.passport import PassportStore, build_passport_tools
from tools.registry import DuplicateToolName, ToolNotFound, ToolRegistry, ToolRegistryError
from tools.web import WebBackend, build_web_tools

logger = get_logger(__name__)


def create_tool_registry(
    settings: Optional[ToolSettings] = None,
    calendar: Optional[CalendarBackend] = None,
    email: Optional[EmailBackend] = None,
    web: Optional[WebBackend] = None,
    passport: Optional[PassportStore] = None,
    file_search: Optional[FileSearchBackend] = None,
) -> ToolRegistry:
    """
    Register every tool family and seal the registry.

    A family is enabled only when its category is switched on in settings
    and a backend for it was supplied; other families are registered
    disabled and never shown to the model.
    """
    settings = settings or ToolSettings()
    registry = ToolRegistry()

    registry.register_many(build_calendar_tools(calendar, settings.is_enabled("calendar")))
    registry.register_many(build_email_tools(email, settings.is_enabled("email")))
    registry.register_many(build_web_tools(web, settings.is_enabled("web")))
    registry.register_many(build_passport_tools(passport, settings.is_enabled("passport")))
    registry.register_many(build_file_search_tools(file_search, settings.is_enabled("file_search")))

    registry.seal()
    logger.info(
        "Tool registry ready",
        categories=registry.get_available_categories(),
        tool_count=len(registry)
    )
    return registry


__all__ = [
    "create_tool_registry",
    "ToolRegistry",
    "ToolRegistryError",
    "DuplicateToolName",
    "ToolNotFound",
]
