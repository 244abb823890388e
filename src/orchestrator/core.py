"""Tool Orchestrator - the decide / execute / evaluate / synthesize loop.

One orchestration run moves through these states:

    DECIDING -> EXECUTING -> EVALUATING -> (DECIDING | SYNTHESIZING) -> DONE

and may enter ABORTED from any of them. Every state is an awaited step;
runs share nothing but the sealed tool registry.
"""

import asyncio
import json
import time
import uuid
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Optional

from shared.logging import get_logger, run_context
from shared.models import (
    ConversationMessage,
    ErrorKind,
    LLMResponse,
    OrchestrationBudget,
    OrchestrationResult,
    RunOptions,
    StepKind,
    ToolExecution,
    ToolResult,
)
from tools.registry import ToolNotFound, ToolRegistry
from orchestrator.assembler import ResultAssembler
from orchestrator.conversation import InternalConversationLog
from orchestrator.decisions import (
    DecisionOutcome,
    EvaluationVerdict,
    PlannedCall,
    is_format_acceptable,
    parse_decision,
    parse_evaluation,
)
from orchestrator.llm import GatewayUnavailable, LLMProvider
from orchestrator.prompts import (
    SynthesisFraming,
    build_decision_messages,
    build_evaluation_messages,
    build_refinement_messages,
    build_synthesis_messages,
    build_validation_messages,
)

logger = get_logger(__name__)

ProgressCallback = Callable[[str], None]

DECISION_TEMPERATURE = 0.1
SYNTHESIS_TEMPERATURE = 0.3
EMPTY_RESPONSE = "I apologize, but I couldn't generate a response."


class _MalformedDecision(Exception):
    """The model kept producing unusable decisions; never leaves ``orchestrate``."""
    pass


class _BudgetExceeded(Exception):
    """A step or tool-call limit was reached; never leaves ``orchestrate``."""
    pass


class RunState(str, Enum):
    DECIDING = "deciding"
    EXECUTING = "executing"
    EVALUATING = "evaluating"
    SYNTHESIZING = "synthesizing"
    DONE = "done"
    ABORTED = "aborted"


class _Run:
    """Mutable state owned by a single orchestration run."""

    def __init__(
        self,
        message: str,
        chat_history: list[ConversationMessage],
        registry: ToolRegistry,
        model: str,
        budget: OrchestrationBudget,
        options: RunOptions
    ) -> None:
        self.id = uuid.uuid4().hex
        self.message = message
        self.chat_history = chat_history
        self.registry = registry
        self.model = model
        self.budget = budget
        self.options = options

        self.log = InternalConversationLog()
        self.executions: list[ToolExecution] = []
        self.pending: list[PlannedCall] = []
        self.state = RunState.DECIDING
        self.framing = SynthesisFraming.COMPLETE
        self.response = ""


class ToolOrchestrator:
    """
    Drives a language model through tool use for one user request.

    Responsibilities:
    - Ask the model whether and which tools to call
    - Execute requested tools within the run's budget
    - Ask the model whether the gathered evidence is sufficient
    - Synthesize the final answer from the whole internal log
    """

    def __init__(
        self,
        llm: LLMProvider,
        assembler: Optional[ResultAssembler] = None,
        progress_callback: Optional[ProgressCallback] = None,
        today: Optional[Callable[[], date]] = None
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            llm: Language-model gateway
            assembler: Result assembler; a default one is created when omitted
            progress_callback: Receives short progress messages for UIs
            today: Returns the current date used in decision prompts
        """
        self.llm = llm
        self.assembler = assembler or ResultAssembler()
        self.progress_callback = progress_callback
        self._today = today or date.today

    def set_progress_callback(self, callback: Optional[ProgressCallback]) -> None:
        self.progress_callback = callback

    def _progress(self, message: str) -> None:
        logger.debug("Progress", message=message)
        if not self.progress_callback:
            return
        try:
            self.progress_callback(message)
        except Exception as e:
            logger.warning("Progress callback failed", message=message, error=str(e))

    async def orchestrate(
        self,
        message: str,
        chat_history: list[ConversationMessage],
        tool_registry: ToolRegistry,
        model: Optional[str] = None,
        budget: Optional[OrchestrationBudget] = None,
        options: Optional[RunOptions] = None
    ) -> OrchestrationResult:
        """
        Answer a user message, calling tools as the model decides.

        Never raises for orchestration failures: budget exhaustion,
        malformed decisions and gateway errors produce a result with
        ``success=False`` and a best-effort partial response.

        Args:
            message: The user's request
            chat_history: Prior user-visible turns, oldest first
            tool_registry: Sealed registry of available tools
            model: Model id; the gateway default when omitted
            budget: Step and tool-call limits for this run
            options: Per-run switches such as development mode

        Returns:
            The assembled orchestration result
        """
        run = _Run(
            message=message,
            chat_history=list(chat_history),
            registry=tool_registry,
            model=model or self.llm.default_model,
            budget=budget or OrchestrationBudget(),
            options=options or RunOptions(),
        )
        with run_context(run.id):
            logger.info(
                "Orchestration started",
                model=run.model,
                use_tools=run.options.use_tools,
                max_steps=run.budget.max_steps,
                max_tool_calls=run.budget.max_tool_calls
            )

            try:
                return await self._run(run)
            except _BudgetExceeded as e:
                return await self._abort(run, ErrorKind.BUDGET_EXCEEDED, str(e))
            except _MalformedDecision as e:
                return await self._abort(run, ErrorKind.MALFORMED_DECISION, str(e))
            except GatewayUnavailable as e:
                return await self._abort(run, ErrorKind.GATEWAY_UNAVAILABLE, str(e))

    async def _run(self, run: _Run) -> OrchestrationResult:
        if not run.options.use_tools or not run.registry.get_available_tools():
            run.framing = SynthesisFraming.DIRECT
            run.state = RunState.SYNTHESIZING

        while run.state != RunState.DONE:
            if run.state == RunState.DECIDING:
                await self._decide(run)
            elif run.state == RunState.EXECUTING:
                await self._execute(run)
            elif run.state == RunState.EVALUATING:
                await self._evaluate(run)
            elif run.state == RunState.SYNTHESIZING:
                await self._synthesize(run)
                run.state = RunState.DONE

        logger.info(
            "Orchestration completed",
            steps_taken=run.log.budgeted_steps,
            tool_calls=len(run.executions),
            framing=run.framing.value
        )

        return self.assembler.assemble(
            response=run.response,
            log=run.log,
            executions=run.executions,
            success=True,
            model=run.model,
            development_mode=run.options.development_mode,
        )

    # Phases

    async def _decide(self, run: _Run) -> None:
        """Ask the model for the next action, retrying unusable answers."""
        self._progress("Deciding next action")
        available = {tool["name"] for tool in run.registry.get_available_tools()}
        retry_note = None
        attempt = 0

        while True:
            self._check_step_budget(run, "decision")

            messages = build_decision_messages(
                run.message,
                run.chat_history,
                run.log,
                run.registry,
                today=self._today(),
                retry_note=retry_note
            )
            response = await self._call_llm(
                run,
                messages,
                tools=run.registry.get_tools_for_llm(),
                temperature=DECISION_TEMPERATURE
            )
            decision = parse_decision(response, available)
            content = self._decision_text(response)

            if decision.outcome != DecisionOutcome.MALFORMED:
                break

            run.log.append(
                StepKind.DECISION,
                content=content,
                rationale="Unusable decision",
                error=decision.reason
            )
            logger.warning(
                "Malformed decision",
                reason=decision.reason,
                attempt=attempt + 1
            )

            if attempt >= run.options.max_decision_retries:
                raise _MalformedDecision(
                    f"No usable decision after {attempt + 1} attempt(s): {decision.reason}"
                )
            attempt += 1
            retry_note = (
                f"Your previous reply could not be used ({decision.reason}). "
                "Reply exactly in one of the two forms above, using only listed tools."
            )

        if decision.outcome == DecisionOutcome.NO_TOOL_NEEDED:
            run.log.append(StepKind.DECISION, content=content, rationale="No tool needed")
            run.state = RunState.SYNTHESIZING
            return

        names = ", ".join(call.name for call in decision.calls)
        run.log.append(StepKind.DECISION, content=content, rationale=f"Call tools: {names}")
        logger.info("Tools requested", tools=names)

        run.pending = list(decision.calls)
        run.state = RunState.EXECUTING

    async def _execute(self, run: _Run) -> None:
        """Execute every pending tool call in order."""
        for call in run.pending:
            if len(run.executions) >= run.budget.max_tool_calls:
                raise _BudgetExceeded(
                    f"Tool call limit of {run.budget.max_tool_calls} reached; "
                    f"'{call.name}' was not executed"
                )
            self._check_step_budget(run, f"tool call '{call.name}'")

            self._progress(f"Executing {call.name}")
            run.log.append(
                StepKind.TOOL_CALL,
                content=f"Calling {call.name}",
                rationale=call.reasoning,
                tool_name=call.name,
                arguments=call.arguments
            )

            started_at = datetime.utcnow()
            start = time.perf_counter()
            result = await self._invoke_tool(run, call)
            duration_ms = (time.perf_counter() - start) * 1000

            run.executions.append(ToolExecution(
                tool=call.name,
                arguments=call.arguments,
                result=result,
                started_at=started_at,
                finished_at=datetime.utcnow(),
                duration_ms=duration_ms
            ))
            run.log.append(
                StepKind.TOOL_RESULT,
                content=result.message or result.error or "",
                tool_name=call.name,
                arguments=call.arguments,
                result=result
            )

            logger.info(
                "Tool executed",
                tool=call.name,
                success=result.success,
                duration_ms=round(duration_ms, 2)
            )

        run.pending = []
        run.state = RunState.EVALUATING

    async def _invoke_tool(self, run: _Run, call: PlannedCall) -> ToolResult:
        """Validate and invoke one tool; failures become failed results."""
        timeout = run.budget.tool_timeout_seconds
        try:
            valid, errors = run.registry.validate_input(call.name, call.arguments)
            if not valid:
                logger.warning("Invalid tool arguments", tool=call.name, errors=errors)
                return ToolResult(
                    success=False,
                    message=f"Failed to execute tool: {call.name}",
                    error="Invalid parameters: " + "; ".join(errors)
                )

            invocation = run.registry.invoke(call.name, call.arguments)
            if timeout:
                return await asyncio.wait_for(invocation, timeout)
            return await invocation
        except asyncio.TimeoutError:
            logger.warning("Tool timed out", tool=call.name, timeout=timeout)
            return ToolResult(
                success=False,
                message=f"Failed to execute tool: {call.name}",
                error=f"Timed out after {timeout}s"
            )
        except ToolNotFound as e:
            return ToolResult(success=False, error=str(e))
        except Exception as e:
            logger.warning(
                "Tool invocation failed",
                tool=call.name,
                error=str(e),
                error_kind=ErrorKind.TOOL_INVOCATION_FAILURE.value
            )
            return ToolResult(
                success=False,
                message=f"Failed to execute tool: {call.name}",
                error=str(e) or type(e).__name__
            )

    async def _evaluate(self, run: _Run) -> None:
        """Ask the model whether the gathered evidence answers the request."""
        self._check_step_budget(run, "evaluation")
        self._progress("Evaluating progress")

        response = await self._call_llm(
            run,
            build_evaluation_messages(run.message, run.log),
            temperature=DECISION_TEMPERATURE
        )
        verdict = parse_evaluation(response.content)
        run.log.append(
            StepKind.EVALUATION,
            content=(response.content or "").strip(),
            rationale=f"Verdict: {verdict.value}"
        )
        logger.info("Evaluation", verdict=verdict.value)

        if verdict == EvaluationVerdict.CONTINUE:
            run.state = RunState.DECIDING
        elif verdict == EvaluationVerdict.STUCK:
            run.framing = SynthesisFraming.STUCK
            run.state = RunState.SYNTHESIZING
        else:
            run.framing = SynthesisFraming.COMPLETE
            run.state = RunState.SYNTHESIZING

    async def _synthesize(self, run: _Run) -> None:
        """Write the final answer, then optionally validate and refine it."""
        self._progress("Synthesizing response")
        draft = await self.synthesize(
            run.message,
            run.chat_history,
            run.log,
            model=run.model,
            framing=run.framing,
            timeout=run.options.llm_timeout_seconds
        )
        run.log.append(StepKind.SYNTHESIS, content=draft, rationale=f"Framing: {run.framing.value}")

        for _ in range(run.options.max_refinements):
            if run.log.budgeted_steps >= run.budget.max_steps:
                logger.info("Refinement skipped, step budget exhausted")
                break

            validation = await self._call_llm(
                run,
                build_validation_messages(run.message, draft),
                temperature=DECISION_TEMPERATURE
            )
            feedback = (validation.content or "").strip()
            run.log.append(StepKind.EVALUATION, content=feedback, rationale="Format validation")

            if is_format_acceptable(feedback):
                break

            self._progress("Refining response")
            refined = await self._call_llm(
                run,
                build_refinement_messages(run.message, run.chat_history, run.log, draft, feedback),
                temperature=SYNTHESIS_TEMPERATURE
            )
            draft = (refined.content or "").strip() or draft
            run.log.append(StepKind.SYNTHESIS, content=draft, rationale="Refined after validation")

        run.response = draft

    async def synthesize(
        self,
        user_message: str,
        chat_history: list[ConversationMessage],
        log: InternalConversationLog,
        model: Optional[str] = None,
        framing: SynthesisFraming = SynthesisFraming.COMPLETE,
        timeout: Optional[float] = None
    ) -> str:
        """
        Produce a final answer from a complete internal log.

        The prompt depends only on its arguments, so the same log and a
        deterministic model give the same answer.

        Raises:
            GatewayUnavailable: If the model call fails
        """
        messages = build_synthesis_messages(user_message, chat_history, log, framing)
        response = await self._complete(
            messages,
            model=model or self.llm.default_model,
            temperature=SYNTHESIS_TEMPERATURE,
            timeout=timeout
        )
        return (response.content or "").strip() or EMPTY_RESPONSE

    async def _abort(self, run: _Run, kind: ErrorKind, reason: str) -> OrchestrationResult:
        """Stop the run and assemble a partial, unsuccessful result."""
        run.state = RunState.ABORTED
        logger.warning(
            "Orchestration aborted",
            error_kind=kind.value,
            reason=reason,
            steps_taken=run.log.budgeted_steps,
            tool_calls=len(run.executions)
        )
        self._progress(f"Stopped: {reason}")

        response = None
        if kind != ErrorKind.GATEWAY_UNAVAILABLE:
            try:
                response = await self.synthesize(
                    run.message,
                    run.chat_history,
                    run.log,
                    model=run.model,
                    framing=SynthesisFraming.PARTIAL,
                    timeout=run.options.llm_timeout_seconds
                )
                run.log.append(StepKind.SYNTHESIS, content=response, rationale="Partial answer")
            except GatewayUnavailable as e:
                logger.warning("Partial synthesis failed", error=str(e))

        if response is None:
            response = self.assembler.fallback_response(run.log, reason)

        return self.assembler.assemble(
            response=response,
            log=run.log,
            executions=run.executions,
            success=False,
            model=run.model,
            development_mode=run.options.development_mode,
            error=reason,
            error_kind=kind,
        )

    # Helpers

    def _check_step_budget(self, run: _Run, action: str) -> None:
        if run.log.budgeted_steps >= run.budget.max_steps:
            raise _BudgetExceeded(
                f"Step limit of {run.budget.max_steps} reached before {action}"
            )

    async def _call_llm(
        self,
        run: _Run,
        messages: list[ConversationMessage],
        tools: Optional[list[dict[str, Any]]] = None,
        temperature: Optional[float] = None
    ) -> LLMResponse:
        return await self._complete(
            messages,
            model=run.model,
            tools=tools,
            temperature=temperature,
            timeout=run.options.llm_timeout_seconds
        )

    async def _complete(
        self,
        messages: list[ConversationMessage],
        model: str,
        tools: Optional[list[dict[str, Any]]] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None
    ) -> LLMResponse:
        """
        Call the gateway with a timeout.

        Raises:
            GatewayUnavailable: On timeout or any provider failure
        """
        try:
            completion = self.llm.complete(
                messages=messages,
                tools=tools,
                model=model,
                temperature=temperature
            )
            if timeout:
                return await asyncio.wait_for(completion, timeout)
            return await completion
        except asyncio.TimeoutError:
            raise GatewayUnavailable(f"Language model did not answer within {timeout}s")
        except GatewayUnavailable:
            raise
        except Exception as e:
            logger.error("Gateway call failed", model=model, error=str(e))
            raise GatewayUnavailable(f"Language model call failed: {e}") from e

    @staticmethod
    def _decision_text(response: LLMResponse) -> str:
        if response.tool_calls and not (response.content or "").strip():
            return json.dumps(response.tool_calls, default=str)
        return (response.content or "").strip()


async def orchestrate(
    message: str,
    chat_history: list[ConversationMessage],
    tool_registry: ToolRegistry,
    model: Optional[str] = None,
    budget: Optional[OrchestrationBudget] = None,
    options: Optional[RunOptions] = None,
    llm: Optional[LLMProvider] = None
) -> OrchestrationResult:
    """
    Run one orchestration with a provider built from application settings.

    Pass ``llm`` to reuse an existing provider.
    """
    if llm is None:
        from shared.config import get_settings
        from orchestrator.llm import create_llm_provider

        llm = create_llm_provider(get_settings().llm)

    return await ToolOrchestrator(llm).orchestrate(
        message,
        chat_history,
        tool_registry,
        model=model,
        budget=budget,
        options=options
    )
