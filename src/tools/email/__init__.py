"""Email tools.

Search, read and send mail through an injected ``EmailBackend``. The mail
provider client is an external collaborator; without one the tools stay
registered but disabled.
"""

from typing import Any, Optional, Protocol

from shared.logging import get_logger
from shared.models import ToolDefinition, ToolResult
from shared.schema import create_tool_schema
from tools.base import failure, make_tool, success, unavailable

logger = get_logger(__name__)

CATEGORY = "email"


class EmailBackend(Protocol):
    """Contract the email tools are written against."""

    async def search_emails(self, filters: dict[str, Any]) -> list[dict[str, Any]]: ...

    async def get_email(self, email_id: str) -> Optional[dict[str, Any]]: ...

    async def send_email(self, email_data: dict[str, Any]) -> dict[str, Any]: ...


def build_email_tools(
    backend: Optional[EmailBackend],
    enabled: bool = True
) -> list[ToolDefinition]:
    """Define all email tools bound to a backend."""
    enabled = enabled and backend is not None

    async def search_emails(arguments: dict[str, Any]) -> ToolResult:
        emails = await backend.search_emails(arguments.get("filters") or {})
        return success(emails, f"Found {len(emails)} emails")

    async def get_email(arguments: dict[str, Any]) -> ToolResult:
        email = await backend.get_email(arguments["emailId"])
        if email is None:
            return failure(f"Email '{arguments['emailId']}' not found")
        return success(email)

    async def send_email(arguments: dict[str, Any]) -> ToolResult:
        email_data = arguments["emailData"]
        sent = await backend.send_email(email_data)
        logger.info("Email sent", recipients=len(email_data["to"]))
        return success(sent, f"Email '{email_data['subject']}' sent")

    def bind(executor):
        return executor if enabled else unavailable

    return [
        make_tool(
            name="searchEmails",
            category=CATEGORY,
            description="Search for emails by sender, recipient, subject, body, read state or date range.",
            input_schema=create_tool_schema([
                {"name": "filters", "description": "Search filters for emails", "schema": {
                    "type": "object",
                    "properties": {
                        "from": {"type": "string"},
                        "to": {"type": "string"},
                        "subject": {"type": "string"},
                        "body": {"type": "string"},
                        "hasAttachment": {"type": "boolean"},
                        "isRead": {"type": "boolean"},
                        "dateRange": {
                            "type": "object",
                            "properties": {"start": {"type": "string"}, "end": {"type": "string"}}
                        },
                        "maxResults": {"type": "integer"}
                    }
                }},
            ]),
            executor=bind(search_emails),
            enabled=enabled,
        ),
        make_tool(
            name="getEmail",
            category=CATEGORY,
            description="Get details of a specific email by ID.",
            input_schema=create_tool_schema([
                {"name": "emailId", "type": "string", "description": "ID of the email to retrieve"},
            ]),
            executor=bind(get_email),
            enabled=enabled,
        ),
        make_tool(
            name="sendEmail",
            category=CATEGORY,
            description="Send an email message to recipients.",
            input_schema=create_tool_schema([
                {"name": "emailData", "description": "Email message data", "schema": {
                    "type": "object",
                    "properties": {
                        "to": {"type": "array", "items": {"type": "string"}},
                        "cc": {"type": "array", "items": {"type": "string"}},
                        "bcc": {"type": "array", "items": {"type": "string"}},
                        "subject": {"type": "string"},
                        "body": {"type": "string"},
                        "priority": {"type": "string", "enum": ["low", "normal", "high"]},
                        "isHtml": {"type": "boolean"}
                    },
                    "required": ["to", "subject", "body"]
                }},
            ]),
            executor=bind(send_email),
            enabled=enabled,
        ),
    ]


__all__ = ["EmailBackend", "build_email_tools"]
