"""Helpers shared by the tool families.

Every family follows the same rules:
- Tools only call their own backend
- Backends are injected, never looked up globally
- Lookup failures are reported as unsuccessful results, not raised
"""

from typing import Any, Optional

from shared.models import ToolDefinition, ToolExecutor, ToolResult


def success(data: Any = None, message: Optional[str] = None) -> ToolResult:
    """Create a success result."""
    return ToolResult(success=True, data=data, message=message)


def failure(error: str, message: Optional[str] = None) -> ToolResult:
    """Create an error result."""
    return ToolResult(success=False, error=error, message=message)


def make_tool(
    name: str,
    category: str,
    description: str,
    input_schema: dict[str, Any],
    executor: ToolExecutor,
    enabled: bool = True
) -> ToolDefinition:
    """Build a tool definition for a family."""
    return ToolDefinition(
        name=name,
        category=category,
        description=description,
        input_schema=input_schema,
        executor=executor,
        enabled=enabled,
    )


async def unavailable(arguments: dict[str, Any]) -> ToolResult:
    """Executor used for tools whose backend is not configured."""
    return failure("Service not configured")


TIME_RANGE_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "start": {
            "type": "string",
            "description": 'ISO date string for start time (e.g., "2025-03-01" or "2025-03-01T00:00:00+08:00")'
        },
        "end": {
            "type": "string",
            "description": 'ISO date string for end time (e.g., "2025-06-30" or "2025-06-30T23:59:59+08:00")'
        }
    }
}
