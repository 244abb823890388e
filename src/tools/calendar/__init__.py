"""Calendar tools.

Tools for listing, searching, creating, updating and deleting calendar
events. The Google Calendar client lives outside this package; tools talk
to any object implementing ``CalendarBackend``. ``InMemoryCalendarBackend``
serves development mode and tests.
"""

import uuid
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Optional, Protocol

from shared.logging import get_logger
from shared.models import ToolDefinition, ToolResult
from shared.schema import create_tool_schema
from tools.base import TIME_RANGE_SCHEMA, failure, make_tool, success, unavailable

logger = get_logger(__name__)

CATEGORY = "calendar"


class CalendarBackend(Protocol):
    """Contract the calendar tools are written against."""

    async def get_events(
        self,
        time_range: Optional[dict[str, Any]] = None,
        filters: Optional[dict[str, Any]] = None
    ) -> list[dict[str, Any]]: ...

    async def search_events(
        self,
        query: str,
        time_range: Optional[dict[str, Any]] = None
    ) -> list[dict[str, Any]]: ...

    async def create_event(self, event_data: dict[str, Any]) -> dict[str, Any]: ...

    async def update_event(self, event_id: str, changes: dict[str, Any]) -> dict[str, Any]: ...

    async def delete_event(self, event_id: str) -> None: ...


def parse_instant(value: str) -> datetime:
    """
    Parse an ISO date or date-time into an aware datetime.

    Date-only values resolve to midnight UTC; naive date-times are taken
    as UTC.
    """
    if len(value) == 10:
        return datetime.combine(date.fromisoformat(value), time.min, tzinfo=timezone.utc)

    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _range_end(value: str) -> datetime:
    """Exclusive upper bound of a range end; a date-only end covers that whole day."""
    if len(value) == 10:
        return parse_instant(value) + timedelta(days=1)
    return parse_instant(value) + timedelta(microseconds=1)


def _event_bound(boundary: dict[str, Any]) -> Optional[datetime]:
    value = boundary.get("dateTime") or boundary.get("date")
    return parse_instant(value) if value else None


def simplify_event(event: dict[str, Any]) -> dict[str, Any]:
    """Reduce a stored event to the fields the model needs."""
    start = event.get("start", {})
    end = event.get("end", {})
    return {
        "id": event["id"],
        "title": event.get("summary", ""),
        "description": event.get("description"),
        "start": start.get("dateTime") or start.get("date"),
        "end": end.get("dateTime") or end.get("date"),
        "is_all_day": "date" in start and "dateTime" not in start,
        "location": event.get("location"),
        "attendee_count": len(event.get("attendees") or []),
        "status": event.get("status", "confirmed"),
    }


class InMemoryCalendarBackend:
    """
    Calendar backend holding events in memory.

    Events use the Google Calendar resource shape (summary, start/end with
    ``dateTime`` or ``date``, location, attendees).
    """

    def __init__(self, events: Optional[list[dict[str, Any]]] = None) -> None:
        self._events: dict[str, dict[str, Any]] = {}
        for event in events or []:
            stored = dict(event)
            stored.setdefault("id", uuid.uuid4().hex[:12])
            stored.setdefault("status", "confirmed")
            self._events[stored["id"]] = stored

    def _in_range(self, event: dict[str, Any], time_range: Optional[dict[str, Any]]) -> bool:
        if not time_range:
            return True

        start = _event_bound(event.get("start", {}))
        end = _event_bound(event.get("end", {})) or start
        if start is None:
            return False

        if time_range.get("start") and end < parse_instant(time_range["start"]):
            return False
        if time_range.get("end") and start >= _range_end(time_range["end"]):
            return False
        return True

    def _sorted(self, events: list[dict[str, Any]], order_by: str = "startTime") -> list[dict[str, Any]]:
        if order_by == "updated":
            return sorted(events, key=lambda e: e.get("updated", ""), reverse=True)
        return sorted(
            events,
            key=lambda e: _event_bound(e.get("start", {})) or datetime.min.replace(tzinfo=timezone.utc)
        )

    async def get_events(
        self,
        time_range: Optional[dict[str, Any]] = None,
        filters: Optional[dict[str, Any]] = None
    ) -> list[dict[str, Any]]:
        filters = filters or {}
        events = [
            e for e in self._events.values()
            if self._in_range(e, time_range)
            and (filters.get("showDeleted") or e.get("status") != "cancelled")
        ]

        query = (filters.get("query") or "").lower()
        if query:
            events = [e for e in events if _matches(e, query)]

        events = self._sorted(events, filters.get("orderBy", "startTime"))
        return [simplify_event(e) for e in events[: filters.get("maxResults", 100)]]

    async def search_events(
        self,
        query: str,
        time_range: Optional[dict[str, Any]] = None
    ) -> list[dict[str, Any]]:
        return await self.get_events(time_range, {"query": query})

    async def create_event(self, event_data: dict[str, Any]) -> dict[str, Any]:
        event = dict(event_data)
        event["id"] = uuid.uuid4().hex[:12]
        event["status"] = "confirmed"
        event["updated"] = datetime.now(timezone.utc).isoformat()
        self._events[event["id"]] = event
        return simplify_event(event)

    async def update_event(self, event_id: str, changes: dict[str, Any]) -> dict[str, Any]:
        if event_id not in self._events:
            raise KeyError(event_id)
        event = {**self._events[event_id], **changes, "id": event_id}
        event["updated"] = datetime.now(timezone.utc).isoformat()
        self._events[event_id] = event
        return simplify_event(event)

    async def delete_event(self, event_id: str) -> None:
        if event_id not in self._events:
            raise KeyError(event_id)
        del self._events[event_id]


def _matches(event: dict[str, Any], query: str) -> bool:
    haystack = " ".join(
        str(event.get(field) or "") for field in ("summary", "description", "location")
    )
    return query in haystack.lower()


EVENT_BOUNDARY_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "dateTime": {"type": "string", "description": "Date-time (ISO format)"},
        "date": {"type": "string", "description": "Date for all-day events (YYYY-MM-DD)"},
        "timeZone": {"type": "string", "description": "Time zone"}
    }
}

EVENT_PROPERTIES: dict[str, Any] = {
    "summary": {"type": "string", "description": "Event title/summary"},
    "description": {"type": "string", "description": "Event description"},
    "start": {**EVENT_BOUNDARY_SCHEMA, "description": "Event start time"},
    "end": {**EVENT_BOUNDARY_SCHEMA, "description": "Event end time"},
    "location": {"type": "string", "description": "Event location"},
    "attendees": {
        "type": "array",
        "description": "Event attendees",
        "items": {
            "type": "object",
            "properties": {
                "email": {"type": "string"},
                "displayName": {"type": "string"}
            },
            "required": ["email"]
        }
    }
}


def build_calendar_tools(
    backend: Optional[CalendarBackend],
    enabled: bool = True
) -> list[ToolDefinition]:
    """
    Define all calendar tools bound to a backend.

    The tools are disabled when no backend is configured.
    """
    enabled = enabled and backend is not None

    async def get_events(arguments: dict[str, Any]) -> ToolResult:
        events = await backend.get_events(arguments.get("timeRange"), arguments.get("filters"))
        return success(events, f"Found {len(events)} events")

    async def search_events(arguments: dict[str, Any]) -> ToolResult:
        events = await backend.search_events(arguments["query"], arguments.get("timeRange"))
        return success(events, f"Found {len(events)} events matching '{arguments['query']}'")

    async def create_event(arguments: dict[str, Any]) -> ToolResult:
        event = await backend.create_event(arguments["eventData"])
        logger.info("Calendar event created", event_id=event["id"])
        return success(event, f"Created event '{event['title']}'")

    async def update_event(arguments: dict[str, Any]) -> ToolResult:
        try:
            event = await backend.update_event(arguments["eventId"], arguments["changes"])
        except KeyError:
            return failure(f"Event '{arguments['eventId']}' not found")
        return success(event, f"Updated event '{event['title']}'")

    async def delete_event(arguments: dict[str, Any]) -> ToolResult:
        try:
            await backend.delete_event(arguments["eventId"])
        except KeyError:
            return failure(f"Event '{arguments['eventId']}' not found")
        return success({"id": arguments["eventId"]}, "Event deleted")

    def bind(executor):
        return executor if enabled else unavailable

    return [
        make_tool(
            name="getEvents",
            category=CATEGORY,
            description=(
                "Get calendar events within a time range with optional filters. "
                "Returns simplified event objects (id, title, description, start, end, "
                "is_all_day, location, attendee_count, status)."
            ),
            input_schema=create_tool_schema([
                {"name": "timeRange", "schema": TIME_RANGE_SCHEMA,
                 "description": "Time range to search for events", "required": False},
                {"name": "filters", "required": False, "description": "Additional filters for events",
                 "schema": {
                     "type": "object",
                     "properties": {
                         "query": {"type": "string", "description": "Search query to filter events"},
                         "maxResults": {"type": "integer", "description": "Maximum number of results (default: 100)"},
                         "showDeleted": {"type": "boolean", "description": "Whether to include deleted events"},
                         "orderBy": {"type": "string", "enum": ["startTime", "updated"]}
                     }
                 }},
            ]),
            executor=bind(get_events),
            enabled=enabled,
        ),
        make_tool(
            name="searchEvents",
            category=CATEGORY,
            description=(
                "Search calendar events by query string. Use this to find events containing "
                "specific keywords, company names, or project names in title, description, or location."
            ),
            input_schema=create_tool_schema([
                {"name": "query", "type": "string",
                 "description": 'Search query (e.g., company name like "Nespola", project name, keyword)'},
                {"name": "timeRange", "schema": TIME_RANGE_SCHEMA,
                 "description": "Time range to search within", "required": False},
            ]),
            executor=bind(search_events),
            enabled=enabled,
        ),
        make_tool(
            name="createEvent",
            category=CATEGORY,
            description="Create a new calendar event. Use this when the user wants to schedule, add, or create an event.",
            input_schema=create_tool_schema([
                {"name": "eventData", "description": "Event data to create", "schema": {
                    "type": "object",
                    "properties": EVENT_PROPERTIES,
                    "required": ["summary", "start", "end"]
                }},
            ]),
            executor=bind(create_event),
            enabled=enabled,
        ),
        make_tool(
            name="updateEvent",
            category=CATEGORY,
            description="Update an existing calendar event.",
            input_schema=create_tool_schema([
                {"name": "eventId", "type": "string", "description": "ID of the event to update"},
                {"name": "changes", "description": "Changes to apply to the event",
                 "schema": {"type": "object", "properties": EVENT_PROPERTIES}},
            ]),
            executor=bind(update_event),
            enabled=enabled,
        ),
        make_tool(
            name="deleteEvent",
            category=CATEGORY,
            description="Delete a calendar event.",
            input_schema=create_tool_schema([
                {"name": "eventId", "type": "string", "description": "ID of the event to delete"},
            ]),
            executor=bind(delete_event),
            enabled=enabled,
        ),
    ]


__all__ = [
    "CalendarBackend",
    "InMemoryCalendarBackend",
    "build_calendar_tools",
    "parse_instant",
    "simplify_event",
]
