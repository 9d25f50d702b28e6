"""Async Notion API client."""

import asyncio
import json
import logging
import random
from collections.abc import AsyncIterator
from typing import Any

import httpx

from notionforms.config import Settings
from notionforms.exceptions import NotionAPIError, RateLimitError

logger = logging.getLogger(__name__)

NOTION_API_BASE = "https://api.notion.com/v1"
DEFAULT_NOTION_VERSION = "2022-06-28"

# Notion caps page_size at 100 for every paginated endpoint
MAX_PAGE_SIZE = 100

RETRY_BASE_DELAY = 1.0  # seconds
RETRY_JITTER_MAX = 0.5  # seconds


def compute_retry_delay(attempt: int, retry_after: float | None = None) -> float:
    """Exponential backoff with jitter, never shorter than Retry-After."""
    delay = RETRY_BASE_DELAY * (2**attempt)
    if retry_after is not None:
        delay = max(retry_after, delay)
    return delay + random.uniform(0, RETRY_JITTER_MAX)


def _retry_after(response: httpx.Response) -> float | None:
    header = response.headers.get("Retry-After")
    if header is None:
        return None
    try:
        return float(header)
    except ValueError:
        return None


class NotionClient:
    """Async client for the Notion REST API.

    Rate-limited requests (HTTP 429) are retried with exponential backoff;
    any other error status is raised as ``NotionAPIError`` carrying Notion's
    error ``code``.
    """

    def __init__(
        self,
        token: str,
        notion_version: str = DEFAULT_NOTION_VERSION,
        timeout: float = 30.0,
        max_retries: int = 3,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.token = token
        self.notion_version = notion_version
        self.timeout = timeout
        self.max_retries = max_retries
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "NotionClient":
        return cls(
            settings.notion_api_key,
            notion_version=settings.notion_version,
            timeout=settings.request_timeout,
            max_retries=settings.max_retries,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=NOTION_API_BASE,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Notion-Version": self.notion_version,
                    "Content-Type": "application/json",
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        endpoint: str,
        params: dict | None = None,
        json_body: dict | None = None,
    ) -> dict:
        """Make an authenticated API request, retrying when rate limited."""
        content = None
        if json_body is not None:
            try:
                content = json.dumps(json_body, allow_nan=False)
            except ValueError as e:
                # NaN/Infinity from a non-numeric number field
                raise NotionAPIError(400, f"Request body is not valid JSON: {e}", "validation_error") from e

        client = await self._get_client()

        for attempt in range(self.max_retries):
            try:
                response = await client.request(method, endpoint, params=params, content=content)
            except httpx.HTTPError as e:
                raise NotionAPIError(0, f"Request to {endpoint} failed: {e}") from e

            if response.status_code == 429:
                retry_after = _retry_after(response)
                if attempt == self.max_retries - 1:
                    raise RateLimitError(retry_after)
                delay = compute_retry_delay(attempt, retry_after)
                logger.warning(f"Rate limited, waiting {delay:.1f}s (attempt {attempt + 1})")
                await asyncio.sleep(delay)
                continue

            if response.status_code >= 400:
                raise self._error_from_response(response)

            return response.json()

        raise RateLimitError()

    @staticmethod
    def _error_from_response(response: httpx.Response) -> NotionAPIError:
        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        message = body.get("message") or response.text or response.reason_phrase
        return NotionAPIError(response.status_code, message, body.get("code"))

    # ==================== Databases ====================

    async def get_database(self, database_id: str) -> dict:
        """Retrieve a database, including its property schema."""
        return await self._request("GET", f"/databases/{database_id}")

    async def search_databases(self) -> list[dict]:
        """List every database shared with the integration, newest first."""
        databases = []
        cursor = None
        while True:
            body: dict[str, Any] = {
                "filter": {"property": "object", "value": "database"},
                "sort": {"direction": "descending", "timestamp": "last_edited_time"},
                "page_size": MAX_PAGE_SIZE,
            }
            if cursor:
                body["start_cursor"] = cursor
            data = await self._request("POST", "/search", json_body=body)
            databases.extend(data.get("results", []))
            if not data.get("has_more"):
                return databases
            cursor = data.get("next_cursor")

    async def query_database(
        self,
        database_id: str,
        filter: dict | None = None,
        sorts: list[dict] | None = None,
        page_size: int = MAX_PAGE_SIZE,
        start_cursor: str | None = None,
    ) -> dict:
        """Query one page of database results.

        Returns the raw response: ``results``, ``has_more``, ``next_cursor``.
        """
        body: dict[str, Any] = {"page_size": min(page_size, MAX_PAGE_SIZE)}
        if filter:
            body["filter"] = filter
        if sorts:
            body["sorts"] = sorts
        if start_cursor:
            body["start_cursor"] = start_cursor
        return await self._request("POST", f"/databases/{database_id}/query", json_body=body)

    async def query_database_all(
        self,
        database_id: str,
        filter: dict | None = None,
        sorts: list[dict] | None = None,
    ) -> AsyncIterator[dict]:
        """Iterate over every page matching the query (auto-paginates)."""
        cursor = None
        while True:
            data = await self.query_database(
                database_id, filter=filter, sorts=sorts, start_cursor=cursor
            )
            for page in data.get("results", []):
                yield page
            if not data.get("has_more"):
                break
            cursor = data.get("next_cursor")

    # ==================== Pages ====================

    async def get_page(self, page_id: str) -> dict:
        return await self._request("GET", f"/pages/{page_id}")

    async def create_page(self, database_id: str, properties: dict[str, Any]) -> dict:
        """Create a page in a database.

        Args:
            database_id: Parent database
            properties: Property payloads keyed by property name
        """
        return await self._request(
            "POST",
            "/pages",
            json_body={"parent": {"database_id": database_id}, "properties": properties},
        )

    async def update_page(self, page_id: str, properties: dict[str, Any]) -> dict:
        """Update properties of an existing page (keyed by property name)."""
        return await self._request(
            "PATCH", f"/pages/{page_id}", json_body={"properties": properties}
        )

    # ==================== Users ====================

    async def list_users(self) -> list[dict]:
        """List every user in the workspace (people and bots)."""
        users = []
        cursor = None
        while True:
            params: dict[str, Any] = {"page_size": MAX_PAGE_SIZE}
            if cursor:
                params["start_cursor"] = cursor
            data = await self._request("GET", "/users", params=params)
            users.extend(data.get("results", []))
            if not data.get("has_more"):
                return users
            cursor = data.get("next_cursor")

    # ==================== Comments ====================

    async def list_comments(self, page_id: str) -> list[dict]:
        """List the unresolved comments on a page, oldest first."""
        comments = []
        cursor = None
        while True:
            params: dict[str, Any] = {"block_id": page_id, "page_size": MAX_PAGE_SIZE}
            if cursor:
                params["start_cursor"] = cursor
            data = await self._request("GET", "/comments", params=params)
            comments.extend(data.get("results", []))
            if not data.get("has_more"):
                return comments
            cursor = data.get("next_cursor")

    async def create_comment(
        self,
        page_id: str,
        content: str,
        discussion_id: str | None = None,
    ) -> dict:
        """Comment on a page, or reply in an existing discussion thread.

        Notion accepts either a parent page or a discussion id, not both.
        """
        body: dict[str, Any] = {"rich_text": [{"type": "text", "text": {"content": content}}]}
        if discussion_id:
            body["discussion_id"] = discussion_id
        else:
            body["parent"] = {"page_id": page_id}
        return await self._request("POST", "/comments", json_body=body)
