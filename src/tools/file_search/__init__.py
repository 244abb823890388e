"""File search tools.

Search the text of files the user uploaded, look one up by name, and
release the search resources afterwards. Text extraction and indexing
happen upstream when files are processed; the tools only query a
``FileSearchBackend``. ``InMemoryFileSearchBackend`` ranks documents by
keyword overlap and serves development mode and tests.
"""

import re
from typing import Any, Optional, Protocol

from shared.logging import get_logger
from shared.models import ToolDefinition, ToolResult
from shared.schema import create_tool_schema
from tools.base import failure, make_tool, success, unavailable

logger = get_logger(__name__)

CATEGORY = "file_search"

NOT_INITIALIZED = "File search has not been initialized. Please upload files first."
SNIPPET_CHARS = 300

_WORD_RE = re.compile(r"\w+")


class FileSearchNotReady(Exception):
    """No files have been loaded into the search backend."""
    pass


class FileSearchBackend(Protocol):
    """Contract the file search tools are written against."""

    async def search(self, query: str, max_results: int = 5) -> dict[str, Any]: ...

    async def get_document(self, name: str) -> Optional[dict[str, Any]]: ...

    async def cleanup(self, delete_disk_files: bool = False) -> dict[str, Any]: ...


class InMemoryFileSearchBackend:
    """
    File search over documents held in memory.

    Documents are dicts with at least ``name`` and ``content`` (the
    extracted text); any other keys are returned as metadata.
    """

    def __init__(self, documents: Optional[list[dict[str, Any]]] = None) -> None:
        self._documents: dict[str, dict[str, Any]] = {}
        if documents:
            self.load(documents)

    @property
    def ready(self) -> bool:
        return bool(self._documents)

    def load(self, documents: list[dict[str, Any]]) -> None:
        """Add documents to the search set, replacing any with the same name."""
        for document in documents:
            self._documents[document["name"]] = dict(document)
        logger.info("Files loaded for search", file_count=len(self._documents))

    async def search(self, query: str, max_results: int = 5) -> dict[str, Any]:
        if not self.ready:
            raise FileSearchNotReady(NOT_INITIALIZED)

        terms = {term.lower() for term in _WORD_RE.findall(query)}
        scored = []
        for document in self._documents.values():
            words = [word.lower() for word in _WORD_RE.findall(document.get("content", ""))]
            score = sum(1 for word in words if word in terms)
            if score:
                scored.append((score, document))

        scored.sort(key=lambda item: item[0], reverse=True)
        return {
            "results": [
                {
                    "name": document["name"],
                    "score": score,
                    "snippet": _snippet(document.get("content", ""), terms),
                }
                for score, document in scored[:max_results]
            ],
            "method": "keyword",
        }

    async def get_document(self, name: str) -> Optional[dict[str, Any]]:
        document = self._documents.get(name)
        return dict(document) if document else None

    async def cleanup(self, delete_disk_files: bool = False) -> dict[str, Any]:
        removed = len(self._documents)
        self._documents.clear()
        # Nothing lives on disk for in-memory documents
        return {"removed": removed, "deleted_disk_files": False}


def _snippet(content: str, terms: set[str]) -> str:
    """Text around the first matching term."""
    lowered = content.lower()
    positions = [lowered.find(term) for term in terms if term in lowered]
    start = max(min(positions) - SNIPPET_CHARS // 3, 0) if positions else 0
    return content[start:start + SNIPPET_CHARS].strip()


def build_file_search_tools(
    backend: Optional[FileSearchBackend],
    enabled: bool = True
) -> list[ToolDefinition]:
    """
    Define all file search tools bound to a backend.

    The tools are disabled when no backend is configured.
    """
    enabled = enabled and backend is not None

    async def search_files(arguments: dict[str, Any]) -> ToolResult:
        try:
            found = await backend.search(arguments["query"], arguments.get("maxResults", 5))
        except FileSearchNotReady as e:
            return failure(str(e))
        return success(
            {"query": arguments["query"], **found},
            f"Found {len(found['results'])} matching files"
        )

    async def get_document_by_name(arguments: dict[str, Any]) -> ToolResult:
        document = await backend.get_document(arguments["name"])
        if document is None:
            return failure(f"Document '{arguments['name']}' not found")
        return success(document, f"Loaded {arguments['name']}")

    async def cleanup_files(arguments: dict[str, Any]) -> ToolResult:
        outcome = await backend.cleanup(arguments.get("deleteDiskFiles", False))
        logger.info("File search cleaned up", **outcome)
        return success(outcome, "File search resources cleaned up")

    def bind(executor):
        return executor if enabled else unavailable

    return [
        make_tool(
            name="searchFiles",
            category=CATEGORY,
            description=(
                "Search the text of uploaded files with a natural language query. "
                "Returns the best matching files with a snippet of each."
            ),
            input_schema=create_tool_schema([
                {"name": "query", "type": "string",
                 "description": 'What to look for (e.g., "passport number and expiry date")'},
                {"name": "maxResults", "type": "integer",
                 "description": "Maximum number of files to return (default: 5)", "required": False},
            ]),
            executor=bind(search_files),
            enabled=enabled,
        ),
        make_tool(
            name="getDocumentByName",
            category=CATEGORY,
            description="Get an uploaded file's extracted text and metadata by its complete file name.",
            input_schema=create_tool_schema([
                {"name": "name", "type": "string",
                 "description": "Complete file name with extension (e.g., passport_francisco.pdf)"},
            ]),
            executor=bind(get_document_by_name),
            enabled=enabled,
        ),
        make_tool(
            name="cleanupFiles",
            category=CATEGORY,
            description="Release file search resources once the uploaded files are no longer needed.",
            input_schema=create_tool_schema([
                {"name": "deleteDiskFiles", "type": "boolean",
                 "description": "Also delete the uploaded files from disk", "required": False},
            ]),
            executor=bind(cleanup_files),
            enabled=enabled,
        ),
    ]


__all__ = [
    "FileSearchBackend",
    "FileSearchNotReady",
    "InMemoryFileSearchBackend",
    "build_file_search_tools",
]
