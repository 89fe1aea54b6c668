"""Sync Kobo highlights into Notion, one page per book."""
from dataclasses import dataclass
from datetime import date
from typing import Any, Awaitable, Dict, List, Optional, Protocol
import logging

from kobo_notion.async_client import RemoteCallError
from kobo_notion.chunking import chunked
from kobo_notion.models import Book, BookOutcome, BookResult, BookState, Highlight
from kobo_notion.parse import heading_block, highlight_blocks
from kobo_notion.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 100


class HighlightSource(Protocol):
    """Read side: the device database."""

    def list_books(self) -> List[Book]:
        ...

    def list_highlights(self, content_id: str) -> List[Highlight]:
        ...


class RemoteStore(Protocol):
    """Write side: the Notion database."""

    async def create_page(self, title: str, author: str) -> str:
        ...

    async def query_pages_by_title(self, title: str) -> List[str]:
        ...

    async def query_incomplete_pages_by_title(self, title: str) -> List[str]:
        ...

    async def append_blocks(self, page_id: str, blocks: List[Dict[str, Any]]) -> None:
        ...

    async def set_complete(self, page_id: str) -> None:
        ...


@dataclass
class CallResult:
    """Outcome of one remote call: either a value or the error it raised."""
    ok: bool
    value: Any = None
    error: Optional[Exception] = None

    @property
    def message(self) -> Optional[str]:
        return str(self.error) if self.error else None


@dataclass
class Resolution:
    state: BookState
    page_id: Optional[str] = None


class SyncEngine:
    """Decide per book whether to create, resume or skip, and export highlights."""

    def __init__(
        self,
        source: HighlightSource,
        store: RemoteStore,
        limiter: Optional[RateLimiter] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        strict_completion: bool = False,
        today: Optional[date] = None
    ):
        """
        Initialize the engine.

        Args:
            source: Where books and highlights are read from
            store: Notion database the pages live in
            limiter: Pause applied after every mutating call
            chunk_size: Highlights per append request
            strict_completion: Only mark a page complete if every append succeeded
            today: Date shown in the export heading (defaults to today)
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be at least 1")
        self.source = source
        self.store = store
        self.limiter = limiter or RateLimiter()
        self.chunk_size = chunk_size
        self.strict_completion = strict_completion
        self.today = today or date.today()

    async def run(self) -> List[BookResult]:
        """
        Sync every book with highlights, one at a time.

        A failure while handling one book is logged and recorded; it never
        stops the books after it. Failing to list the books at all is fatal.

        Returns:
            One result per book, in source order
        """
        books = self.source.list_books()
        results: List[BookResult] = []
        seen_titles = set()

        for book in books:
            if book.title in seen_titles:
                logger.warning(
                    f"Duplicate title {book.title!r} (content id {book.content_id}); "
                    f"it shares one Notion page with the earlier book"
                )
            seen_titles.add(book.title)

            try:
                result = await self.sync_book(book)
            except Exception as e:
                logger.error(f"Error with {book.title}: {e}", exc_info=True)
                result = BookResult(title=book.title, outcome=BookOutcome.FAILED, error=str(e))

            results.append(result)

        return results

    async def resolve(self, book: Book) -> CallResult:
        """
        Find out whether the book already has a page and whether it is complete.

        Returns:
            CallResult whose value is a Resolution when both lookups succeed
        """
        title = book.title

        existing = await self._call(
            self.store.query_pages_by_title(title), "checking Notion for", title
        )
        if not existing.ok:
            return existing
        if not existing.value:
            return CallResult(ok=True, value=Resolution(BookState.NOT_FOUND))

        incomplete = await self._call(
            self.store.query_incomplete_pages_by_title(title), "checking highlight status of", title
        )
        if not incomplete.ok:
            return incomplete
        if incomplete.value:
            return CallResult(ok=True, value=Resolution(BookState.INCOMPLETE, incomplete.value[0]))
        return CallResult(ok=True, value=Resolution(BookState.COMPLETE, existing.value[0]))

    async def sync_book(self, book: Book) -> BookResult:
        """Run the create / resume / skip decision for one book."""
        title = book.title

        resolved = await self.resolve(book)
        if not resolved.ok:
            return BookResult(title=title, outcome=BookOutcome.FAILED, error=resolved.message)
        resolution = resolved.value

        if resolution.state is BookState.COMPLETE:
            logger.info(f"{title} was skipped.")
            return BookResult(
                title=title, outcome=BookOutcome.SKIPPED, page_id=resolution.page_id, completed=True
            )

        if resolution.state is BookState.INCOMPLETE:
            logger.info(f"Resuming export for {title} on page {resolution.page_id}")
            return await self.export_highlights(resolution.page_id, book, BookOutcome.RESUMED)

        created = await self._call(
            self.store.create_page(title, book.author), "creating page for", title, mutating=True
        )
        if not created.ok:
            # Nothing to export onto without a page id
            return BookResult(title=title, outcome=BookOutcome.FAILED, error=created.message)

        logger.info(f"Created new entry for {title} ({created.value})")
        return await self.export_highlights(created.value, book, BookOutcome.CREATED)

    async def export_highlights(
        self,
        page_id: str,
        book: Book,
        outcome: BookOutcome = BookOutcome.RESUMED
    ) -> BookResult:
        """
        Append a dated heading and all highlights of a book, then mark it complete.

        Failed appends are logged and skipped. Unless strict completion is on,
        the page is marked complete even when some chunks failed.

        Args:
            page_id: Page to append to
            book: Book whose highlights are exported
            outcome: Recorded outcome (created or resumed)

        Returns:
            Per-book result with chunk counters
        """
        title = book.title
        result = BookResult(title=title, outcome=outcome, page_id=page_id)

        heading = await self._call(
            self.store.append_blocks(page_id, [heading_block(self.today)]),
            "appending header for", title, mutating=True
        )
        if not heading.ok:
            result.error = heading.message

        highlights = [h for h in self.source.list_highlights(book.content_id) if h.has_text]
        logger.info(f"{len(highlights)} highlights to export for {title}")

        for chunk in chunked(highlights, self.chunk_size):
            appended = await self._call(
                self.store.append_blocks(page_id, highlight_blocks(chunk)),
                "appending blocks for", title, mutating=True
            )
            if appended.ok:
                result.chunks_appended += 1
                result.items_exported += len(chunk)
                logger.info(f"Appended {len(chunk)} highlights for {title}.")
            else:
                result.chunks_failed += 1
                result.error = result.error or appended.message

        if self.strict_completion and (result.chunks_failed or not heading.ok):
            logger.warning(
                f"Not marking {title} complete: {result.chunks_failed} chunk(s) failed"
                f"{'' if heading.ok else ' and the header append failed'}"
            )
            return result

        done = await self._call(
            self.store.set_complete(page_id), "marking highlights complete for", title, mutating=True
        )
        if done.ok:
            result.completed = True
            logger.info(f"All highlights have been processed and uploaded for {title}.")
        else:
            result.error = result.error or done.message

        return result

    async def _call(
        self,
        awaitable: Awaitable[Any],
        action: str,
        title: str,
        mutating: bool = False
    ) -> CallResult:
        """
        Await a remote call and turn its failure into a CallResult.

        Mutating calls are followed by the rate-limit pause whether they
        succeeded or not.
        """
        try:
            value = await awaitable
            return CallResult(ok=True, value=value)
        except (RemoteCallError, ValueError) as e:
            logger.error(f"Error {action} {title}: {e}")
            return CallResult(ok=False, error=e)
        finally:
            if mutating:
                await self.limiter.wait()
