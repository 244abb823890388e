"""Parsing of model output at the orchestrator's decision points.

The model answers a decision prompt with either a ``CALL_TOOLS`` JSON array
or ``SUFFICIENT_INFO``, or with native structured tool calls. Evaluation
prompts are answered with ``COMPLETE:``, ``CONTINUE:`` or ``STUCK:``.
"""

import json
import re
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.models import LLMResponse

CALL_TOOLS_MARKER = "CALL_TOOLS"
SUFFICIENT_INFO_MARKER = "SUFFICIENT_INFO"

_MARKER_RE = re.compile(r"^\W*(CALL_TOOLS|SUFFICIENT_INFO)\b", re.IGNORECASE | re.MULTILINE)
_VERDICT_RE = re.compile(r"^\W*(COMPLETE|CONTINUE|STUCK)\b", re.IGNORECASE | re.MULTILINE)
_FORMAT_OK_RE = re.compile(r"^\W*FORMAT_ACCEPTABLE", re.IGNORECASE)


class DecisionOutcome(str, Enum):
    NO_TOOL_NEEDED = "no_tool_needed"
    TOOL_CALLS = "tool_calls"
    MALFORMED = "malformed"


class PlannedCall(BaseModel):
    """A tool call requested by the model."""
    model_config = ConfigDict(frozen=True)

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)
    reasoning: Optional[str] = None


class Decision(BaseModel):
    """Parsed outcome of a Deciding phase."""
    model_config = ConfigDict(frozen=True)

    outcome: DecisionOutcome
    calls: list[PlannedCall] = Field(default_factory=list)
    reason: Optional[str] = None

    @classmethod
    def malformed(cls, reason: str) -> "Decision":
        return cls(outcome=DecisionOutcome.MALFORMED, reason=reason)


class EvaluationVerdict(str, Enum):
    COMPLETE = "complete"
    CONTINUE = "continue"
    STUCK = "stuck"


def _extract_call_tools(content: str) -> list[Any]:
    """
    Decode the JSON array following the CALL_TOOLS marker.

    Raises:
        ValueError: If no array follows the marker or it is not valid JSON
    """
    marker = re.search(CALL_TOOLS_MARKER, content, re.IGNORECASE)
    start = content.find("[", marker.end()) if marker else -1
    if start == -1:
        raise ValueError("CALL_TOOLS without a JSON array")

    try:
        calls, _ = json.JSONDecoder().raw_decode(content, start)
    except json.JSONDecodeError as e:
        raise ValueError(f"CALL_TOOLS array is not valid JSON: {e.msg}")

    if not isinstance(calls, list):
        raise ValueError("CALL_TOOLS must be a JSON array")
    return calls


def _planned_call(entry: Any) -> PlannedCall:
    if not isinstance(entry, dict) or not isinstance(entry.get("name"), str):
        raise ValueError("Each CALL_TOOLS entry needs a string 'name'")

    arguments = entry.get("parameters", entry.get("arguments", {})) or {}
    if not isinstance(arguments, dict):
        raise ValueError(f"Parameters for '{entry['name']}' must be an object")

    return PlannedCall(name=entry["name"], arguments=arguments, reasoning=entry.get("reasoning"))


def _native_calls(tool_calls: list[dict[str, Any]]) -> list[PlannedCall]:
    calls = []
    for call in tool_calls:
        function = call.get("function", {})
        raw = function.get("arguments") or "{}"
        try:
            arguments = json.loads(raw) if isinstance(raw, str) else raw
        except json.JSONDecodeError:
            raise ValueError(f"Invalid arguments for tool '{function.get('name')}'")
        calls.append(_planned_call({"name": function.get("name"), "parameters": arguments}))
    return calls


def parse_decision(response: LLMResponse, available_tools: set[str]) -> Decision:
    """
    Classify a Deciding-phase response.

    Requests naming a tool outside ``available_tools`` are malformed; the
    orchestrator never substitutes another tool.
    """
    content = (response.content or "").strip()
    # A marker opening a line outranks one mentioned later in the text
    leading = _MARKER_RE.search(content)
    marker = leading.group(1).upper() if leading else None

    try:
        if response.tool_calls:
            calls = _native_calls(response.tool_calls)
        elif marker == SUFFICIENT_INFO_MARKER:
            return Decision(outcome=DecisionOutcome.NO_TOOL_NEEDED, reason=content)
        elif marker == CALL_TOOLS_MARKER or CALL_TOOLS_MARKER in content.upper():
            body = content[leading.start():] if marker == CALL_TOOLS_MARKER else content
            calls = [_planned_call(entry) for entry in _extract_call_tools(body)]
        elif SUFFICIENT_INFO_MARKER in content.upper():
            return Decision(outcome=DecisionOutcome.NO_TOOL_NEEDED, reason=content)
        elif not content:
            return Decision.malformed("Empty decision")
        else:
            return Decision.malformed("Expected CALL_TOOLS or SUFFICIENT_INFO")
    except ValueError as e:
        return Decision.malformed(str(e))

    if not calls:
        return Decision.malformed("CALL_TOOLS listed no tools")

    unknown = [c.name for c in calls if c.name not in available_tools]
    if unknown:
        return Decision.malformed(f"Unknown tool(s): {', '.join(unknown)}")

    return Decision(outcome=DecisionOutcome.TOOL_CALLS, calls=calls)


def parse_evaluation(content: Optional[str]) -> EvaluationVerdict:
    """
    Classify an Evaluating-phase response.

    A leading verdict keyword wins; otherwise any mention of CONTINUE asks
    for more information, and anything else counts as COMPLETE.
    """
    text = content or ""
    match = _VERDICT_RE.search(text)
    if match:
        return EvaluationVerdict(match.group(1).lower())
    if "CONTINUE" in text.upper():
        return EvaluationVerdict.CONTINUE
    return EvaluationVerdict.COMPLETE


def is_format_acceptable(validation: Optional[str]) -> bool:
    return bool(_FORMAT_OK_RE.match((validation or "").strip()))
