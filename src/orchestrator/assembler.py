"""Result Assembler.

Turns a finished (or aborted) run into the caller-facing
``OrchestrationResult``.
"""

from typing import Optional

from shared.models import (
    ErrorKind,
    OrchestrationResult,
    StepKind,
    ToolExecution,
)
from orchestrator.conversation import InternalConversationLog

GENERIC_FAILURE = "I encountered an error while processing your request. Please try again."


class ResultAssembler:
    """Builds orchestration results from a run's log and tool executions."""

    def assemble(
        self,
        response: str,
        log: InternalConversationLog,
        executions: list[ToolExecution],
        success: bool,
        model: Optional[str] = None,
        development_mode: bool = False,
        error: Optional[str] = None,
        error_kind: Optional[ErrorKind] = None
    ) -> OrchestrationResult:
        """
        Assemble the final result.

        Outside development mode only synthesis steps are returned; the
        metadata counters always cover the whole run.
        """
        steps = list(log.steps)
        if not development_mode:
            steps = [s for s in steps if s.kind == StepKind.SYNTHESIS]

        return OrchestrationResult(
            response=response,
            steps=steps,
            tool_calls=list(executions),
            success=success,
            error=error,
            error_kind=error_kind,
            steps_taken=log.budgeted_steps,
            tool_call_count=len(executions),
            model=model,
        )

    def fallback_response(self, log: InternalConversationLog, reason: str) -> str:
        """
        Deterministic partial answer used when the model cannot synthesize.

        Lists the outcome of every tool call made before the run stopped.
        """
        results = log.tool_results()
        if not results:
            return GENERIC_FAILURE

        lines = [
            f"I wasn't able to finish your request ({reason}).",
            "Here is what I found before stopping:",
        ]
        for step in results:
            result = step.result
            if result is None:
                continue
            if result.success:
                lines.append(f"- {step.tool_name}: {result.message or 'completed'}")
            else:
                lines.append(f"- {step.tool_name}: failed ({result.error or 'unknown error'})")
        return "\n".join(lines)
