"""Full-text search over the document corpus."""

import asyncio
import threading
import time
from typing import Optional, Set

from loguru import logger

from canvas_store.modules.cache import DocumentCache
from canvas_store.modules.storage.document_store import DocumentStore
from canvas_store.modules.storage.models import Document
from canvas_store.shared.exceptions import (
    SearchCancelledError,
    StorageError,
    ValidationError,
)
from .models import SearchCategory, SearchGroup, SearchResults


def _contains(text: Optional[str], needle: str) -> bool:
    return bool(text) and needle in text.casefold()


def match_categories(document: Document, query: str) -> Set[SearchCategory]:
    """Categories in which a document matches a query, case-insensitively."""
    needle = query.casefold()
    categories = set()

    if _contains(document.title, needle) or _contains(document.subtitle, needle):
        categories.add(SearchCategory.DOCUMENT_NAMES)

    if document.series is not None and _contains(document.series.name, needle):
        categories.add(SearchCategory.SERMON_SERIES)

    if any(_contains(element.content, needle) for element in document.elements):
        categories.add(SearchCategory.DOCUMENT_CONTENT)

    return categories


class SearchEngine:
    """Searches titles, subtitles, series names and element content.

    Every call to ``search`` starts a new generation. The previous generation
    is cancelled: its debounce sleep is interrupted and, if its scan is
    already running in a worker thread, the scan stops at the next candidate.
    Only the current generation's results are ever published to
    ``latest_results``.
    """

    def __init__(
        self,
        store: DocumentStore,
        document_cache: DocumentCache,
        debounce_seconds: float = 0.3,
    ):
        self.store = store
        self.document_cache = document_cache
        self.debounce_seconds = debounce_seconds
        self._generation = 0
        self._task: Optional["asyncio.Task[SearchResults]"] = None
        self._cancel_flag: Optional[threading.Event] = None
        self._latest = SearchResults(query="")

    @property
    def latest_results(self) -> SearchResults:
        """Results of the most recent query that completed while current."""
        return self._latest

    @property
    def generation(self) -> int:
        return self._generation

    async def search(self, query: str) -> SearchResults:
        """Run a debounced search, superseding any search still in flight.

        Raises:
            SearchCancelledError: A newer query superseded this one
        """
        self._generation += 1
        generation = self._generation
        self.cancel()

        if not query:
            self._latest = SearchResults(query=query)
            return self._latest

        cancel_flag = threading.Event()
        self._cancel_flag = cancel_flag
        task = asyncio.ensure_future(self._run(query, generation, cancel_flag))
        self._task = task

        try:
            return await task
        except asyncio.CancelledError:
            if generation != self._generation:
                raise SearchCancelledError(
                    f"Search for {query!r} was superseded",
                    details={"query": query},
                )
            raise

    def cancel(self) -> None:
        """Stop the in-flight search, if any."""
        if self._cancel_flag is not None:
            self._cancel_flag.set()
            self._cancel_flag = None
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def scan(self, query: str, cancel_flag: Optional[threading.Event] = None) -> SearchResults:
        """Scan the corpus synchronously and group the matches.

        Candidates that cannot be read are skipped.

        Raises:
            SearchCancelledError: ``cancel_flag`` was set during the scan
        """
        start_time = time.time()
        results = SearchResults(query=query)
        if not query:
            return results

        grouped = {category: [] for category in SearchCategory}

        for document_id in self.store.enumerate_ids():
            if cancel_flag is not None and cancel_flag.is_set():
                logger.debug(f"Search for {query!r} cancelled mid-scan")
                raise SearchCancelledError(
                    f"Search for {query!r} was cancelled",
                    details={"query": query},
                )

            document = self._candidate(document_id)
            if document is None:
                results.skipped_count += 1
                continue
            results.scanned_count += 1

            for category in match_categories(document, query):
                grouped[category].append(document)

        results.groups = [
            SearchGroup(category=category, documents=documents)
            for category, documents in grouped.items()
            if documents
        ]
        results.search_time_ms = (time.time() - start_time) * 1000

        logger.info(
            f"Search for {query!r}: {results.total_matches} match(es) in "
            f"{results.scanned_count} document(s), {results.skipped_count} skipped"
        )
        return results

    async def _run(self, query: str, generation: int, cancel_flag: threading.Event) -> SearchResults:
        if self.debounce_seconds > 0:
            await asyncio.sleep(self.debounce_seconds)

        try:
            results = await asyncio.to_thread(self.scan, query, cancel_flag)
        except SearchCancelledError:
            raise asyncio.CancelledError()

        if cancel_flag.is_set() or generation != self._generation:
            raise asyncio.CancelledError()

        self._latest = results
        return results

    def _candidate(self, document_id: str) -> Optional[Document]:
        cached = self.document_cache.get(document_id)
        if cached is not None:
            return cached

        try:
            return self.store.read(document_id)
        except (StorageError, ValidationError) as e:
            logger.warning(f"Skipping unreadable document {document_id} in search: {e.message}")
            return None
