"""Core data models for the calendar assistant.

This module defines all shared data structures used across the orchestrator,
the tool registry and the tool families, ensuring type safety and validation
throughout the system.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field


class ToolResult(BaseModel):
    """
    Result of a tool invocation.

    Produced by a tool and consumed by the orchestrator; never mutated
    afterwards.
    """
    model_config = ConfigDict(frozen=True)

    success: bool
    data: Optional[Any] = None
    message: Optional[str] = None
    error: Optional[str] = None


ToolExecutor = Callable[[dict[str, Any]], Awaitable[ToolResult]]


class ToolDefinition(BaseModel):
    """
    Complete definition of an assistant tool.

    Every tool family (calendar, email, web, passport) exposes the same
    capability shape: a unique name, a description for the model, a JSON
    Schema for its parameters and an async executor.
    """
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str = Field(..., description="Unique tool name")
    category: str = Field(..., description="Tool family, e.g. calendar")
    description: str = Field(..., description="Clear description for LLM usage")
    input_schema: dict[str, Any] = Field(
        default_factory=dict,
        description="JSON Schema for input validation"
    )
    enabled: bool = Field(default=True, description="False when the backing service is not configured")
    executor: ToolExecutor = Field(..., exclude=True, repr=False)

    async def invoke(self, arguments: dict[str, Any]) -> ToolResult:
        """Run the tool with already-validated arguments."""
        return await self.executor(arguments)

    def manifest(self) -> dict[str, Any]:
        """Serializable description shown to the language model."""
        return {
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "parameters": self.input_schema or {
                "type": "object",
                "properties": {},
                "required": []
            }
        }


class ToolExecution(BaseModel):
    """One executed tool invocation and its outcome."""
    model_config = ConfigDict(frozen=True)

    tool: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    result: ToolResult
    started_at: datetime
    finished_at: datetime
    duration_ms: float = 0


class StepKind(str, Enum):
    """Kind of an entry in the internal conversation log."""
    DECISION = "decision"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    EVALUATION = "evaluation"
    SYNTHESIS = "synthesis"


# Kinds that consume the per-run step budget
BUDGETED_STEP_KINDS = frozenset({
    StepKind.DECISION,
    StepKind.EVALUATION,
    StepKind.TOOL_CALL,
})


class InternalStep(BaseModel):
    """A single entry of the internal conversation log."""
    model_config = ConfigDict(frozen=True)

    position: int = Field(..., description="Insertion index within the run")
    kind: StepKind
    timestamp: datetime = Field(default_factory=datetime.utcnow)
    content: str = ""
    rationale: Optional[str] = None

    # Populated for tool_call / tool_result steps
    tool_name: Optional[str] = None
    arguments: Optional[dict[str, Any]] = None
    result: Optional[ToolResult] = None

    # Set when the step records a failure (e.g. malformed decision)
    error: Optional[str] = None


class ErrorKind(str, Enum):
    """Classification of failures surfaced by orchestration."""
    DUPLICATE_TOOL_NAME = "DuplicateToolName"
    TOOL_NOT_FOUND = "ToolNotFound"
    TOOL_INVOCATION_FAILURE = "ToolInvocationFailure"
    MALFORMED_DECISION = "MalformedDecision"
    BUDGET_EXCEEDED = "BudgetExceeded"
    GATEWAY_UNAVAILABLE = "GatewayUnavailable"


class OrchestrationBudget(BaseModel):
    """Caller-imposed hard caps for a single orchestration run."""
    model_config = ConfigDict(frozen=True)

    max_steps: int = Field(default=10, gt=0)
    max_tool_calls: int = Field(default=5, ge=0)
    tool_timeout_seconds: Optional[float] = Field(default=30.0, gt=0)


class RunOptions(BaseModel):
    """Per-run behaviour switches."""
    model_config = ConfigDict(frozen=True)

    use_tools: bool = True
    development_mode: bool = Field(
        default=False,
        description="Return every internal step instead of only synthesis steps"
    )
    max_decision_retries: int = Field(default=2, ge=0)
    max_refinements: int = Field(default=0, ge=0)
    llm_timeout_seconds: Optional[float] = Field(default=60.0, gt=0)


class OrchestrationResult(BaseModel):
    """Final envelope returned by the orchestrator for one run."""
    model_config = ConfigDict(frozen=True)

    response: str
    steps: list[InternalStep] = Field(default_factory=list)
    tool_calls: list[ToolExecution] = Field(default_factory=list)
    success: bool
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    # Metadata
    steps_taken: int = 0
    tool_call_count: int = 0
    model: Optional[str] = None


class ConversationMessage(BaseModel):
    """A single message in a chat history or a model prompt."""
    role: str = Field(..., description="Message role: user, assistant, system, tool")
    content: str
    tool_calls: Optional[list[dict[str, Any]]] = None
    tool_call_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=datetime.utcnow)


class LLMResponse(BaseModel):
    """Response from the language-model gateway."""
    content: Optional[str] = None
    tool_calls: Optional[list[dict[str, Any]]] = None
    finish_reason: str = "stop"
    usage: dict[str, int] = Field(default_factory=dict)
