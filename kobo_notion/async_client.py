"""Async HTTP client for the Notion database holding one page per book."""
import asyncio
import random
import httpx
from typing import List, Optional, Dict, Any
import logging

from kobo_notion.parse import parse_page_id, parse_page_ids

logger = logging.getLogger(__name__)

# Notion rejects appends with more children than this
MAX_BLOCKS_PER_APPEND = 100

TITLE_PROPERTY = "Title"
AUTHOR_PROPERTY = "Author"
COMPLETE_PROPERTY = "Highlights"
PAGE_ICON = "📙"


class RemoteCallError(RuntimeError):
    """Raised when a Notion API call fails."""

    def __init__(self, message: str, status: Optional[int] = None, code: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.code = code

    @property
    def retryable(self) -> bool:
        """Rate limits, server errors and transport failures (no status)."""
        return self.status is None or self.status == 429 or self.status >= 500


class AsyncNotionClient:
    """Async client for the page and block endpoints the sync needs."""

    BASE_URL = "https://api.notion.com/v1"

    def __init__(
        self,
        token: str,
        database_id: str,
        notion_version: str = "2022-06-28",
        timeout: int = 30,
        max_retries: int = 0,
        base_backoff: float = 1.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        """
        Initialize async client.

        Args:
            token: Notion integration token
            database_id: Target database id
            notion_version: Value of the Notion-Version header
            timeout: Request timeout in seconds
            max_retries: Extra attempts for transient failures (0 disables retries)
            base_backoff: Base delay for exponential backoff
            transport: Optional transport, used by tests to fake the API
        """
        self.database_id = database_id
        self.max_retries = max_retries
        self.base_backoff = base_backoff

        # Create async HTTP client
        self.client = httpx.AsyncClient(
            base_url=self.BASE_URL,
            timeout=timeout,
            transport=transport,
            headers={
                "Authorization": f"Bearer {token}",
                "Notion-Version": notion_version,
                "Content-Type": "application/json",
            },
        )

    async def create_page(self, title: str, author: str) -> str:
        """
        Create a page for a book in the target database.

        Args:
            title: Book title
            author: Book author (may be empty)

        Returns:
            Id of the new page
        """
        payload = {
            "icon": {"type": "emoji", "emoji": PAGE_ICON},
            "parent": {"type": "database_id", "database_id": self.database_id},
            "properties": {
                TITLE_PROPERTY: {"title": [{"text": {"content": title}}]},
                AUTHOR_PROPERTY: {"rich_text": [{"text": {"content": author}}]},
            },
        }
        response = await self._request("POST", "/pages", payload)
        page_id = parse_page_id(response)
        if not page_id:
            raise RemoteCallError(f"Create page for {title!r} returned no id")
        return page_id

    async def query_pages_by_title(self, title: str) -> List[str]:
        """Ids of pages whose title equals ``title`` exactly."""
        return await self._query({"property": TITLE_PROPERTY, "title": {"equals": title}})

    async def query_incomplete_pages_by_title(self, title: str) -> List[str]:
        """Ids of pages titled ``title`` whose highlights are not yet complete."""
        return await self._query({
            "and": [
                {"property": TITLE_PROPERTY, "title": {"equals": title}},
                {"property": COMPLETE_PROPERTY, "checkbox": {"equals": False}},
            ]
        })

    async def append_blocks(self, page_id: str, blocks: List[Dict[str, Any]]):
        """
        Append child blocks to a page.

        Args:
            page_id: Target page
            blocks: At most 100 blocks; callers chunk larger lists
        """
        if len(blocks) > MAX_BLOCKS_PER_APPEND:
            raise ValueError(
                f"Cannot append {len(blocks)} blocks in one request "
                f"(limit {MAX_BLOCKS_PER_APPEND})"
            )
        await self._request("PATCH", f"/blocks/{page_id}/children", {"children": blocks})

    async def set_complete(self, page_id: str):
        """Tick the page's highlights checkbox."""
        await self._request(
            "PATCH",
            f"/pages/{page_id}",
            {"properties": {COMPLETE_PROPERTY: {"checkbox": True}}},
        )

    async def _query(self, query_filter: Dict[str, Any]) -> List[str]:
        response = await self._request(
            "POST", f"/databases/{self.database_id}/query", {"filter": query_filter}
        )
        return parse_page_ids(response)

    async def _request(self, method: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Send a request, retrying transient failures when retries are enabled.

        Args:
            method: HTTP method
            path: Path below the API base URL
            payload: JSON body

        Returns:
            Response JSON

        Raises:
            RemoteCallError: If the request failed and no attempts are left
        """
        attempts = self.max_retries + 1

        for attempt in range(attempts):
            try:
                return await self._send(method, path, payload)
            except RemoteCallError as e:
                if e.retryable and attempt < attempts - 1:
                    logger.warning(f"{method} {path} failed on attempt {attempt + 1}: {e}")
                    await self._backoff(attempt)
                    continue
                raise

        raise RemoteCallError(f"All {attempts} attempts failed: {method} {path}")

    async def _send(self, method: str, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        logger.debug(f"Notion request: {method} {path}")
        try:
            response = await self.client.request(method, path, json=payload)
        except httpx.TimeoutException as e:
            raise RemoteCallError(f"Timeout: {method} {path}") from e
        except httpx.HTTPError as e:
            raise RemoteCallError(f"Transport error: {method} {path}: {e}") from e

        if response.status_code >= 400:
            code, message = _error_details(response)
            raise RemoteCallError(
                f"Status {response.status_code} for {method} {path}: {message}",
                status=response.status_code,
                code=code,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteCallError(f"Invalid JSON from {method} {path}") from e
        if not isinstance(data, dict):
            raise RemoteCallError(f"Unexpected response format from {method} {path}")
        return data

    async def _backoff(self, attempt: int):
        """
        Sleep with exponential backoff and jitter.

        Args:
            attempt: Current attempt number (0-indexed)
        """
        delay = self.base_backoff * (2 ** attempt)
        total_delay = delay + random.uniform(0, delay)

        logger.info(f"Backing off for {total_delay:.2f} seconds")
        await asyncio.sleep(total_delay)

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()


def _error_details(response: httpx.Response):
    try:
        body = response.json()
    except ValueError:
        return None, response.text
    if not isinstance(body, dict):
        return None, response.text
    return body.get("code"), body.get("message") or response.text
