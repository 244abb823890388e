"""Tests for the internal conversation log and result assembly."""

from shared.models import ErrorKind, StepKind, ToolExecution, ToolResult


class TestInternalConversationLog:
    """Tests for InternalConversationLog."""

    def test_positions_strictly_increase(self):
        """Test step positions follow insertion order."""
        from orchestrator.conversation import InternalConversationLog

        log = InternalConversationLog()
        log.append(StepKind.DECISION, "CALL_TOOLS: [...]")
        log.append(StepKind.TOOL_CALL, tool_name="getEvents", arguments={})
        log.append(StepKind.TOOL_RESULT, tool_name="getEvents", result=ToolResult(success=True, data=[]))
        log.append(StepKind.EVALUATION, "COMPLETE: done")

        positions = [step.position for step in log]

        assert positions == [0, 1, 2, 3]
        assert len(log) == 4

    def test_steps_snapshot_is_immutable(self):
        """Test callers cannot mutate the log through its snapshot."""
        from orchestrator.conversation import InternalConversationLog

        log = InternalConversationLog()
        log.append(StepKind.DECISION, "SUFFICIENT_INFO")

        snapshot = log.steps
        log.append(StepKind.SYNTHESIS, "Hello")

        assert isinstance(snapshot, tuple)
        assert len(snapshot) == 1
        assert len(log.steps) == 2

    def test_budgeted_steps(self):
        """Test only decision, evaluation and tool_call steps are budgeted."""
        from orchestrator.conversation import InternalConversationLog

        log = InternalConversationLog()
        log.append(StepKind.DECISION, "x")
        log.append(StepKind.TOOL_CALL, tool_name="getEvents")
        log.append(StepKind.TOOL_RESULT, tool_name="getEvents", result=ToolResult(success=True))
        log.append(StepKind.EVALUATION, "COMPLETE")
        log.append(StepKind.SYNTHESIS, "answer")

        assert log.budgeted_steps == 3
        assert log.count(StepKind.TOOL_RESULT) == 1
        assert log.count() == 5

    def test_format_is_deterministic(self):
        """Test the same steps always render the same text."""
        from orchestrator.conversation import InternalConversationLog

        def build():
            log = InternalConversationLog()
            log.append(StepKind.DECISION, "bad", error="Unknown tool(s): fetchAll")
            log.append(StepKind.TOOL_CALL, tool_name="searchEvents", arguments={"query": "kickoff"})
            log.append(
                StepKind.TOOL_RESULT,
                tool_name="searchEvents",
                result=ToolResult(success=True, data=[{"id": "evt1"}], message="Found 1 events")
            )
            log.append(
                StepKind.TOOL_RESULT,
                tool_name="getEvents",
                result=ToolResult(success=False, error="API Error")
            )
            return log

        first = build().format()

        assert first == build().format()
        assert first.startswith("**INTERNAL CONVERSATION**")
        assert "[0] DECISION (rejected: Unknown tool(s): fetchAll): bad" in first
        assert '[1] TOOL_CALL: searchEvents {"query": "kickoff"}' in first
        assert "searchEvents SUCCEEDED (Found 1 events)" in first
        assert "[3] TOOL_RESULT: getEvents FAILED: API Error" in first

    def test_empty_log_format(self):
        """Test rendering an empty log."""
        from orchestrator.conversation import InternalConversationLog

        assert "(nothing done yet)" in InternalConversationLog().format()

    def test_render_payload_truncates(self):
        """Test long payloads are cut for prompts."""
        from orchestrator.conversation import render_payload

        text = render_payload("x" * 50, limit=10)

        assert text == "x" * 10 + "\n... (truncated)"
        assert render_payload(None) == "(no data)"
        assert render_payload({"a": 1}) == '{\n  "a": 1\n}'


class TestResultAssembler:
    """Tests for ResultAssembler."""

    def build_log(self):
        from orchestrator.conversation import InternalConversationLog

        log = InternalConversationLog()
        log.append(StepKind.DECISION, "CALL_TOOLS")
        log.append(StepKind.TOOL_CALL, tool_name="getEvents", arguments={})
        log.append(
            StepKind.TOOL_RESULT,
            tool_name="getEvents",
            result=ToolResult(success=True, data=[], message="Found 0 events")
        )
        log.append(StepKind.EVALUATION, "COMPLETE")
        log.append(StepKind.SYNTHESIS, "No events.")
        return log

    def test_production_mode_returns_synthesis_only(self):
        """Test only synthesis steps are exposed outside development mode."""
        from orchestrator.assembler import ResultAssembler

        result = ResultAssembler().assemble(
            response="No events.",
            log=self.build_log(),
            executions=[],
            success=True,
            model="gpt-4.1-mini",
        )

        assert [s.kind for s in result.steps] == [StepKind.SYNTHESIS]
        assert result.steps_taken == 3
        assert result.model == "gpt-4.1-mini"

    def test_development_mode_returns_all_steps(self):
        """Test every step is exposed in development mode."""
        from datetime import datetime
        from orchestrator.assembler import ResultAssembler

        now = datetime.utcnow()
        execution = ToolExecution(
            tool="getEvents",
            arguments={},
            result=ToolResult(success=True, data=[]),
            started_at=now,
            finished_at=now
        )

        result = ResultAssembler().assemble(
            response="No events.",
            log=self.build_log(),
            executions=[execution],
            success=True,
            development_mode=True,
        )

        assert len(result.steps) == 5
        assert result.tool_call_count == 1
        assert result.tool_calls[0].tool == "getEvents"

    def test_failure_fields(self):
        """Test error and error kind are carried on failure."""
        from orchestrator.assembler import ResultAssembler

        result = ResultAssembler().assemble(
            response="partial",
            log=self.build_log(),
            executions=[],
            success=False,
            error="Tool call limit of 1 reached",
            error_kind=ErrorKind.BUDGET_EXCEEDED,
        )

        assert not result.success
        assert result.error_kind == ErrorKind.BUDGET_EXCEEDED

    def test_fallback_response_lists_tool_outcomes(self):
        """Test the deterministic partial answer."""
        from orchestrator.assembler import GENERIC_FAILURE, ResultAssembler
        from orchestrator.conversation import InternalConversationLog

        log = self.build_log()
        log.append(StepKind.TOOL_RESULT, tool_name="searchEvents", result=ToolResult(success=False, error="API Error"))

        text = ResultAssembler().fallback_response(log, "Language model call failed")

        assert text.startswith("I wasn't able to finish your request (Language model call failed).")
        assert "- getEvents: Found 0 events" in text
        assert "- searchEvents: failed (API Error)" in text
        assert ResultAssembler().fallback_response(InternalConversationLog(), "x") == GENERIC_FAILURE
