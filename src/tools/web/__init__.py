"""Web tools.

Fetch page content and check reachability of websites over HTTP.
"""

import html
import re
import time
from typing import Any, Optional, Protocol

import httpx

from shared.logging import get_logger
from shared.models import ToolDefinition, ToolResult
from shared.schema import create_tool_schema
from tools.base import failure, make_tool, success, unavailable

logger = get_logger(__name__)

CATEGORY = "web"

_TITLE_RE = re.compile(r"<title[^>]*>(.*?)</title>", re.IGNORECASE | re.DOTALL)
_DROP_RE = re.compile(r"<(script|style|noscript)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]+>")
_SPACE_RE = re.compile(r"\s+")


def html_to_text(markup: str) -> tuple[Optional[str], str]:
    """Return (title, visible text) of an HTML document."""
    title_match = _TITLE_RE.search(markup)
    title = html.unescape(title_match.group(1).strip()) if title_match else None

    text = _DROP_RE.sub(" ", markup)
    text = _TAG_RE.sub(" ", text)
    text = _SPACE_RE.sub(" ", html.unescape(text)).strip()
    return title, text


class WebBackend(Protocol):
    """Contract the web tools are written against."""

    async def get_page_content(self, url: str) -> dict[str, Any]: ...

    async def check_website(self, url: str) -> dict[str, Any]: ...


class HttpWebBackend:
    """
    Web backend using an httpx async client.

    The client is created lazily and reused for every request.
    """

    def __init__(
        self,
        timeout: float = 15.0,
        max_content_chars: int = 8000,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ) -> None:
        self.timeout = timeout
        self.max_content_chars = max_content_chars
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                transport=self._transport
            )
        return self._client

    async def get_page_content(self, url: str) -> dict[str, Any]:
        client = await self._get_client()
        response = await client.get(url)
        response.raise_for_status()

        content_type = response.headers.get("content-type", "")
        if "html" in content_type:
            title, text = html_to_text(response.text)
        else:
            title, text = None, response.text

        truncated = len(text) > self.max_content_chars
        return {
            "url": str(response.url),
            "status_code": response.status_code,
            "title": title,
            "content": text[: self.max_content_chars],
            "truncated": truncated,
        }

    async def check_website(self, url: str) -> dict[str, Any]:
        client = await self._get_client()
        start = time.perf_counter()
        try:
            response = await client.head(url)
        except httpx.HTTPError as e:
            return {"url": url, "reachable": False, "error": str(e)}

        return {
            "url": url,
            "reachable": response.status_code < 400,
            "status_code": response.status_code,
            "response_time_ms": round((time.perf_counter() - start) * 1000, 1),
        }

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None


def build_web_tools(
    backend: Optional[WebBackend],
    enabled: bool = True
) -> list[ToolDefinition]:
    """Define all web tools bound to a backend."""
    enabled = enabled and backend is not None

    async def get_web_page_content(arguments: dict[str, Any]) -> ToolResult:
        try:
            page = await backend.get_page_content(arguments["url"])
        except httpx.HTTPStatusError as e:
            return failure(f"HTTP {e.response.status_code} fetching {arguments['url']}")
        except httpx.HTTPError as e:
            return failure(f"Failed to fetch {arguments['url']}: {e}")
        return success(page, page.get("title") or page["url"])

    async def check_website(arguments: dict[str, Any]) -> ToolResult:
        status = await backend.check_website(arguments["url"])
        state = "reachable" if status["reachable"] else "unreachable"
        return success(status, f"{arguments['url']} is {state}")

    def bind(executor):
        return executor if enabled else unavailable

    url_schema = create_tool_schema([
        {"name": "url", "type": "string", "description": "Absolute http(s) URL"},
    ])

    return [
        make_tool(
            name="getWebPageContent",
            category=CATEGORY,
            description="Fetch a web page and return its title and readable text content.",
            input_schema=url_schema,
            executor=bind(get_web_page_content),
            enabled=enabled,
        ),
        make_tool(
            name="checkWebsite",
            category=CATEGORY,
            description="Check whether a website is reachable and how fast it responds.",
            input_schema=url_schema,
            executor=bind(check_website),
            enabled=enabled,
        ),
    ]


__all__ = ["WebBackend", "HttpWebBackend", "build_web_tools", "html_to_text"]
