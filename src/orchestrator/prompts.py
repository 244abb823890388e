"""Prompt construction for each orchestration phase.

Deciding and Evaluating are separate decision points with separate
prompts; both embed the full internal conversation log so repeated
decisions never lose earlier tool output.
"""

from datetime import date
from enum import Enum
from typing import Optional

from shared.models import ConversationMessage
from shared.schema import describe_parameters
from orchestrator.conversation import InternalConversationLog
from tools.registry import ToolRegistry


SYSTEM_PROMPT = """You are an AI assistant that manages the user's Google Calendar and related services through tools.

Guidelines:
- Never guess; always prefer tool data
- Use calendar tools for anything about meetings, schedules, projects, or dates
- If a tool returns an error, take it into account instead of ignoring it
- Never make up information
"""


class SynthesisFraming(str, Enum):
    """How the final answer should be framed."""
    COMPLETE = "complete"   # enough information was gathered
    STUCK = "stuck"         # no further progress possible
    PARTIAL = "partial"     # run aborted before finishing
    DIRECT = "direct"       # tools were not used for this run


FRAMING_INSTRUCTIONS = {
    SynthesisFraming.COMPLETE: "Answer the user's request using the data gathered above.",
    SynthesisFraming.STUCK: (
        "The request could not be fully completed. Apologize briefly, say what could not be "
        "done and why, and share whatever useful information was gathered."
    ),
    SynthesisFraming.PARTIAL: (
        "Processing stopped before the request was complete. Give a partial answer from the "
        "information gathered so far and state clearly that it may be incomplete."
    ),
    SynthesisFraming.DIRECT: "Answer the user directly; no tools were used.",
}


def format_chat_history(history: list[ConversationMessage]) -> str:
    """Render prior chat turns, oldest first."""
    if not history:
        return "(no previous messages)"
    return "\n".join(
        f"- [{m.timestamp.isoformat()}] {m.role.upper()}: {m.content}"
        for m in history
    )


def tool_inventory(registry: ToolRegistry) -> str:
    """Enabled tools grouped by category with parameter hints."""
    blocks = []
    for category in registry.get_available_categories():
        items = "\n".join(
            f"  - {tool.name}: {tool.description}\n"
            f"    Parameters: {describe_parameters(tool.input_schema)}"
            for tool in registry.get_tools_by_category(category)
        )
        blocks.append(f"**{category.upper()}**:\n{items}")
    return "\n\n".join(blocks) or "(no tools available)"


def decision_rules(registry: ToolRegistry) -> str:
    """Numbered rules adapted to the enabled tool categories."""
    categories = registry.get_available_categories()
    rules = []

    if "calendar" in categories:
        rules.append("Calendar queries: ALWAYS use `searchEvents` or `getEvents` before answering.")
        rules.append("Event creation or changes: MUST call `createEvent`, `updateEvent` or `deleteEvent`.")
    if "passport" in categories:
        rules.append("Passport data operations: use passport tools (`createPassport`, `getPassports`, ...).")
    if "file_search" in categories:
        rules.append("Uploaded files: use `searchFiles` with a natural language query, or `getDocumentByName` for a known file.")
    if "email" in categories:
        rules.append("Mail questions: use `searchEmails` or `getEmail`; only send mail when explicitly asked.")
    if "web" in categories:
        rules.append("Web pages: use `getWebPageContent` or `checkWebsite` for a given URL.")

    rules.append("If unsure which tool yields the required info, choose the cheapest query tool first.")
    rules.append("Do not repeat a call that already succeeded with the same parameters.")
    rules.append("If no tool can help, or the log already holds the answer, reply with SUFFICIENT_INFO.")

    numbered = "\n".join(f"{i}. {rule}" for i, rule in enumerate(rules, start=1))
    return f"**DECISION RULES**\n{numbered}"


DECISION_FORMAT = """Respond in exactly one of these forms:

CALL_TOOLS:
[
  {"name": "searchEvents", "parameters": {"query": "project kickoff", "timeRange": {"start": "2025-08-01T00:00:00Z", "end": "2025-08-31T23:59:59Z"}}, "reasoning": "Need all kickoff meetings in August."}
]

or

SUFFICIENT_INFO: <why no tool call is needed>
"""


def _messages(prompt: str) -> list[ConversationMessage]:
    return [
        ConversationMessage(role="system", content=SYSTEM_PROMPT),
        ConversationMessage(role="user", content=prompt.strip()),
    ]


def build_decision_messages(
    user_message: str,
    chat_history: list[ConversationMessage],
    log: InternalConversationLog,
    registry: ToolRegistry,
    today: date,
    retry_note: Optional[str] = None
) -> list[ConversationMessage]:
    """Prompt for the Deciding phase."""
    note = f"\n\nSYSTEM_NOTE: {retry_note}" if retry_note else ""
    prompt = f"""
Today is {today.strftime("%A, %B %d, %Y")} ({today.isoformat()}).

You are planning the **NEXT TOOL ACTION**.

## CHAT HISTORY
{format_chat_history(chat_history)}

## USER REQUEST
"{user_message}"

## WORK SO FAR
{log.format()}

## TOOLS
{tool_inventory(registry)}

{decision_rules(registry)}

{DECISION_FORMAT}{note}
"""
    return _messages(prompt)


def build_evaluation_messages(
    user_message: str,
    log: InternalConversationLog
) -> list[ConversationMessage]:
    """Prompt for the Evaluating phase."""
    prompt = f"""
## PROGRESS CHECK

User asked: "{user_message}"

{log.format()}

Judge the evidence gathered so far. Respond with one of:
- `COMPLETE: <reasoning>` if there is enough information to answer the user
- `CONTINUE: <what is missing>` if another tool call is needed
- `STUCK: <reasoning>` if the task cannot be completed with the available tools
"""
    return _messages(prompt)


def build_synthesis_messages(
    user_message: str,
    chat_history: list[ConversationMessage],
    log: InternalConversationLog,
    framing: SynthesisFraming = SynthesisFraming.COMPLETE
) -> list[ConversationMessage]:
    """Prompt for the Synthesizing phase, built from the whole log."""
    prompt = f"""
You are composing the **FINAL ANSWER**.

User question: "{user_message}"

Everything decided, called and learned while working on it:
{log.format()}

Chat history for tone reference:
{format_chat_history(chat_history)}

{FRAMING_INSTRUCTIONS[framing]}
Combine the results of every tool call into one coherent answer.
Use markdown; keep it concise but complete.
"""
    return _messages(prompt)


def build_validation_messages(user_message: str, draft: str) -> list[ConversationMessage]:
    """Prompt asking whether a draft answer fits the request."""
    prompt = f"""
## FORMAT VALIDATION
User request: "{user_message}"

Response draft:
{draft}

Does this match the user's intent and required format?
Reply with either `FORMAT_ACCEPTABLE: ok` or `FORMAT_NEEDS_REFINEMENT: <explanation>`.
"""
    return _messages(prompt)


def build_refinement_messages(
    user_message: str,
    chat_history: list[ConversationMessage],
    log: InternalConversationLog,
    draft: str,
    feedback: str
) -> list[ConversationMessage]:
    """Prompt asking for an improved answer after failed validation."""
    prompt = f"""
## REFINE RESPONSE

User: "{user_message}"

Feedback that needs fixing:
{feedback}

Previous draft:
{draft}

{log.format()}

Chat context:
{format_chat_history(chat_history)}

Produce the improved final answer.
"""
    return _messages(prompt)
