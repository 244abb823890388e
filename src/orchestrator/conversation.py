"""Internal Conversation Log for the Orchestrator.

Records every decision, tool call, tool result, evaluation and synthesis
made during one orchestration run. It is separate from the user-visible
chat history and is discarded once the run's result is assembled.
"""

import json
from typing import Any, Iterator, Optional

from shared.logging import get_logger
from shared.models import (
    BUDGETED_STEP_KINDS,
    InternalStep,
    StepKind,
    ToolResult,
)

logger = get_logger(__name__)

# Tool payloads are cut to this many characters when rendered into prompts
MAX_RENDERED_PAYLOAD = 1500


def render_payload(data: Any, limit: int = MAX_RENDERED_PAYLOAD) -> str:
    """Render tool data for a prompt, truncating long payloads."""
    if data is None:
        return "(no data)"
    if isinstance(data, str):
        text = data
    else:
        text = json.dumps(data, indent=2, default=str, ensure_ascii=False)
    if len(text) > limit:
        return text[:limit] + "\n... (truncated)"
    return text


class InternalConversationLog:
    """
    Append-only, ordered log of internal steps for one run.

    Responsibilities:
    - Append steps with monotonically increasing positions
    - Count steps against the run budget
    - Render the full log for model prompts
    """

    def __init__(self) -> None:
        self._steps: list[InternalStep] = []

    def append(
        self,
        kind: StepKind,
        content: str = "",
        rationale: Optional[str] = None,
        tool_name: Optional[str] = None,
        arguments: Optional[dict[str, Any]] = None,
        result: Optional[ToolResult] = None,
        error: Optional[str] = None
    ) -> InternalStep:
        """
        Append a new step at the end of the log.

        Returns:
            The recorded step
        """
        step = InternalStep(
            position=len(self._steps),
            kind=kind,
            content=content,
            rationale=rationale,
            tool_name=tool_name,
            arguments=arguments,
            result=result,
            error=error,
        )
        self._steps.append(step)

        logger.debug(
            "Internal step recorded",
            position=step.position,
            kind=kind.value,
            tool=tool_name
        )
        return step

    @property
    def steps(self) -> tuple[InternalStep, ...]:
        """Snapshot of all steps in insertion order."""
        return tuple(self._steps)

    def count(self, *kinds: StepKind) -> int:
        """Number of steps of the given kinds (all steps when none given)."""
        if not kinds:
            return len(self._steps)
        return sum(1 for step in self._steps if step.kind in kinds)

    @property
    def budgeted_steps(self) -> int:
        """Steps that consume the run's step budget."""
        return self.count(*BUDGETED_STEP_KINDS)

    def tool_results(self) -> list[InternalStep]:
        return [s for s in self._steps if s.kind == StepKind.TOOL_RESULT]

    def format(self) -> str:
        """
        Render the whole log for a model prompt.

        The rendering depends only on the recorded steps, so the same log
        always produces the same text.
        """
        if not self._steps:
            return "**INTERNAL CONVERSATION**\n(nothing done yet)"

        lines = ["**INTERNAL CONVERSATION**"]
        for step in self._steps:
            lines.append(self._format_step(step))
        return "\n".join(lines)

    @staticmethod
    def _format_step(step: InternalStep) -> str:
        prefix = f"[{step.position}] {step.kind.value.upper()}"

        if step.kind == StepKind.TOOL_CALL:
            args = json.dumps(step.arguments or {}, default=str, ensure_ascii=False)
            return f"{prefix}: {step.tool_name} {args}"

        if step.kind == StepKind.TOOL_RESULT and step.result is not None:
            result = step.result
            if result.success:
                body = render_payload(result.data)
                summary = f" ({result.message})" if result.message else ""
                return f"{prefix}: {step.tool_name} SUCCEEDED{summary}\n{body}"
            reason = result.error or result.message or "unknown error"
            return f"{prefix}: {step.tool_name} FAILED: {reason}"

        if step.error:
            return f"{prefix} (rejected: {step.error}): {step.content}"

        return f"{prefix}: {step.content}"

    def __len__(self) -> int:
        return len(self._steps)

    def __iter__(self) -> Iterator[InternalStep]:
        return iter(tuple(self._steps))
