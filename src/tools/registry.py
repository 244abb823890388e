"""Tool Registry.

Manages registration, discovery, lookup and invocation of assistant tools.
Tools are registered once at startup; the registry is then sealed and is
safe to share read-only between concurrent orchestration runs.
"""

from typing import Any, Optional

from shared.logging import get_logger
from shared.models import ToolDefinition, ToolResult
from shared.schema import validate_schema

logger = get_logger(__name__)


class ToolRegistryError(Exception):
    """Base exception for tool registry errors."""
    pass


class DuplicateToolName(ToolRegistryError):
    """A tool with the same name is already registered."""
    pass


class ToolNotFound(ToolRegistryError):
    """No enabled tool is registered under the requested name."""
    pass


class ToolRegistry:
    """
    Central registry for assistant tools.

    Responsibilities:
    - Register tools from every tool family
    - Expose the manifest of enabled tools for prompting
    - Lookup and invoke tools by name
    - Validate tool arguments
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolDefinition] = {}
        self._sealed = False

    def register(self, tool: ToolDefinition) -> None:
        """
        Register a tool in the registry.

        Args:
            tool: Tool definition to register

        Raises:
            DuplicateToolName: If tool name is already registered
            ToolRegistryError: If the registry has been sealed
        """
        if self._sealed:
            raise ToolRegistryError(
                f"Cannot register '{tool.name}': registry is sealed"
            )

        if tool.name in self._tools:
            raise DuplicateToolName(f"Tool '{tool.name}' is already registered")

        self._tools[tool.name] = tool

        logger.info(
            "Tool registered",
            tool=tool.name,
            category=tool.category,
            enabled=tool.enabled
        )

    def register_many(self, tools: list[ToolDefinition]) -> None:
        """Register multiple tools at once."""
        for tool in tools:
            self.register(tool)

    def seal(self) -> None:
        """Disallow any further registration."""
        self._sealed = True

    @property
    def sealed(self) -> bool:
        return self._sealed

    def get(self, tool_name: str) -> Optional[ToolDefinition]:
        """
        Get an enabled tool by name.

        Returns:
            ToolDefinition if found and enabled, None otherwise
        """
        tool = self._tools.get(tool_name)
        if tool is None or not tool.enabled:
            return None
        return tool

    def has_tool(self, tool_name: str) -> bool:
        return self.get(tool_name) is not None

    def list_tools(self, include_disabled: bool = False) -> list[ToolDefinition]:
        """List registered tools in registration order."""
        tools = list(self._tools.values())
        if not include_disabled:
            tools = [t for t in tools if t.enabled]
        return tools

    def get_available_tools(self) -> list[dict[str, Any]]:
        """
        Manifest of every enabled tool.

        Tools whose backing service is not configured are silently left out.
        """
        return [tool.manifest() for tool in self.list_tools()]

    def get_available_categories(self) -> list[str]:
        """Sorted categories that have at least one enabled tool."""
        return sorted({tool.category for tool in self.list_tools()})

    def get_tools_by_category(self, category: str) -> list[ToolDefinition]:
        return [t for t in self.list_tools() if t.category == category]

    def get_tools_for_llm(self) -> list[dict[str, Any]]:
        """
        Get enabled tool definitions formatted for LLM consumption.

        Returns:
            List of tool definitions in OpenAI function calling format
        """
        return [
            {
                "type": "function",
                "function": {
                    "name": manifest["name"],
                    "description": manifest["description"],
                    "parameters": manifest["parameters"]
                }
            }
            for manifest in self.get_available_tools()
        ]

    def validate_input(
        self,
        tool_name: str,
        parameters: dict[str, Any]
    ) -> tuple[bool, list[str]]:
        """
        Validate input parameters against the tool's input schema.

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        tool = self.get(tool_name)
        if not tool:
            return False, [f"Tool '{tool_name}' not found"]

        if not tool.input_schema:
            return True, []

        return validate_schema(parameters, tool.input_schema)

    async def invoke(self, tool_name: str, arguments: dict[str, Any]) -> ToolResult:
        """
        Invoke a tool and return its result unchanged.

        Raises:
            ToolNotFound: If no enabled tool has that name
        """
        tool = self.get(tool_name)
        if tool is None:
            raise ToolNotFound(f"Tool '{tool_name}' not found")

        return await tool.invoke(arguments)

    def __len__(self) -> int:
        return len(self.list_tools())

    def __contains__(self, tool_name: object) -> bool:
        return isinstance(tool_name, str) and self.has_tool(tool_name)
