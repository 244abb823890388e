"""Passport tools.

Store and query passport records extracted from uploaded documents.
Extraction itself happens upstream; these tools only persist and look up
records through a ``PassportStore``.
"""

from typing import Any, Optional, Protocol

from shared.logging import get_logger
from shared.models import ToolDefinition, ToolResult
from shared.schema import create_tool_schema
from tools.base import failure, make_tool, success, unavailable

logger = get_logger(__name__)

CATEGORY = "passport"

PASSPORT_FIELDS: dict[str, dict[str, Any]] = {
    "passport_number": {"type": "string"},
    "surname": {"type": "string"},
    "given_names": {"type": "string"},
    "nationality": {"type": "string"},
    "date_of_birth": {"type": "string", "description": "YYYY-MM-DD"},
    "sex": {"type": "string"},
    "place_of_birth": {"type": "string"},
    "date_of_issue": {"type": "string", "description": "YYYY-MM-DD"},
    "date_of_expiry": {"type": "string", "description": "YYYY-MM-DD"},
    "issuing_authority": {"type": "string"},
    "holder_signature_present": {"type": "boolean"},
    "type": {"type": "string"},
    "residence": {"type": "string"},
    "height_cm": {"type": "number"},
    "eye_color": {"type": "string"},
}

REQUIRED_FIELDS = [
    "passport_number",
    "surname",
    "given_names",
    "nationality",
    "date_of_birth",
    "date_of_expiry",
]


class PassportStore(Protocol):
    """Contract the passport tools are written against."""

    async def create(self, record: dict[str, Any]) -> dict[str, Any]: ...

    async def find(self, filters: dict[str, Any]) -> list[dict[str, Any]]: ...

    async def update(self, record_id: int, changes: dict[str, Any]) -> Optional[dict[str, Any]]: ...

    async def delete(self, record_id: int) -> bool: ...


class InMemoryPassportStore:
    """Passport store keeping records in a dict keyed by integer id."""

    def __init__(self) -> None:
        self._records: dict[int, dict[str, Any]] = {}
        self._next_id = 1

    async def create(self, record: dict[str, Any]) -> dict[str, Any]:
        for existing in self._records.values():
            if existing["passport_number"] == record["passport_number"]:
                raise ValueError(f"Passport {record['passport_number']} already exists")

        stored = {**record, "id": self._next_id}
        self._records[self._next_id] = stored
        self._next_id += 1
        return dict(stored)

    async def find(self, filters: dict[str, Any]) -> list[dict[str, Any]]:
        def matches(record: dict[str, Any]) -> bool:
            for key, value in filters.items():
                field = record.get(key)
                if isinstance(value, str) and isinstance(field, str):
                    if value.lower() not in field.lower():
                        return False
                elif field != value:
                    return False
            return True

        return [dict(r) for r in self._records.values() if matches(r)]

    async def update(self, record_id: int, changes: dict[str, Any]) -> Optional[dict[str, Any]]:
        if record_id not in self._records:
            return None
        self._records[record_id].update(changes)
        return dict(self._records[record_id])

    async def delete(self, record_id: int) -> bool:
        return self._records.pop(record_id, None) is not None


def build_passport_tools(
    store: Optional[PassportStore],
    enabled: bool = True
) -> list[ToolDefinition]:
    """Define all passport tools bound to a store."""
    enabled = enabled and store is not None

    async def create_passport(arguments: dict[str, Any]) -> ToolResult:
        try:
            record = await store.create(arguments)
        except ValueError as e:
            return failure(str(e))
        logger.info("Passport stored", record_id=record["id"])
        return success(record, f"Stored passport {record['passport_number']}")

    async def get_passports(arguments: dict[str, Any]) -> ToolResult:
        records = await store.find(arguments)
        return success(records, f"Found {len(records)} passports")

    async def update_passport(arguments: dict[str, Any]) -> ToolResult:
        changes = {k: v for k, v in arguments.items() if k != "id"}
        record = await store.update(arguments["id"], changes)
        if record is None:
            return failure(f"Passport record {arguments['id']} not found")
        return success(record, "Passport updated")

    async def delete_passport(arguments: dict[str, Any]) -> ToolResult:
        if not await store.delete(arguments["id"]):
            return failure(f"Passport record {arguments['id']} not found")
        return success({"id": arguments["id"]}, "Passport deleted")

    def bind(executor):
        return executor if enabled else unavailable

    record_id = {"id": {"type": "integer", "description": "Passport record ID"}}

    return [
        make_tool(
            name="createPassport",
            category=CATEGORY,
            description=(
                "Store extracted passport data in the database. Extraction alone is not "
                "persistence: call this to save a passport."
            ),
            input_schema={
                "type": "object",
                "properties": PASSPORT_FIELDS,
                "required": REQUIRED_FIELDS,
            },
            executor=bind(create_passport),
            enabled=enabled,
        ),
        make_tool(
            name="getPassports",
            category=CATEGORY,
            description="Find stored passports; every field is an optional filter (text fields match partially).",
            input_schema={"type": "object", "properties": PASSPORT_FIELDS},
            executor=bind(get_passports),
            enabled=enabled,
        ),
        make_tool(
            name="updatePassport",
            category=CATEGORY,
            description="Update fields of a stored passport record.",
            input_schema={
                "type": "object",
                "properties": {**record_id, **PASSPORT_FIELDS},
                "required": ["id"],
            },
            executor=bind(update_passport),
            enabled=enabled,
        ),
        make_tool(
            name="deletePassport",
            category=CATEGORY,
            description="Delete a stored passport record.",
            input_schema=create_tool_schema([
                {"name": "id", "type": "integer", "description": "Passport record ID"},
            ]),
            executor=bind(delete_passport),
            enabled=enabled,
        ),
    ]


__all__ = ["PassportStore", "InMemoryPassportStore", "build_passport_tools"]
