"""Loads documents for display: cache, disk, header image, cache."""

import asyncio
from pathlib import Path
from typing import Callable, Dict, Optional

from loguru import logger
from PIL import Image

from canvas_store.modules.cache import DocumentCache, ImageCache, decode_image
from canvas_store.modules.storage.document_store import DocumentStore
from canvas_store.modules.storage.models import Document
from canvas_store.shared.events import EventBus, EventType
from canvas_store.shared.exceptions import ImageUnavailableError, ValidationError


ImageDecoder = Callable[[Path], Image.Image]


class DocumentLoader:
    """Orchestrates loading a document by id.

    A returned document with an expanded header always has its header image
    resident in the image cache already (unless the image itself is missing
    or unreadable), so the header never pops in after the document appears.

    Concurrent loads of the same id share one disk read and one image decode.
    Loads are not cancellable: cancelling a waiting caller leaves the shared
    load running so the caches still end up populated.
    """

    def __init__(
        self,
        store: DocumentStore,
        document_cache: DocumentCache,
        image_cache: ImageCache,
        events: Optional[EventBus] = None,
        image_decoder: ImageDecoder = decode_image,
    ):
        self.store = store
        self.document_cache = document_cache
        self.image_cache = image_cache
        self.events = events
        self.image_decoder = image_decoder
        self._in_flight: Dict[str, "asyncio.Future[Document]"] = {}
        self._versions: Dict[str, int] = {}
        self._running: Dict[str, int] = {}

    def invalidate(self, document_id: str) -> None:
        """Mark any in-flight load of a document as stale.

        Called after a save or delete so that a load which read the record
        earlier cannot overwrite the newer cache entry. Versions are only
        tracked while a load of the id is running.
        """
        if document_id in self._running:
            self._versions[document_id] = self._versions.get(document_id, 0) + 1
        self._in_flight.pop(document_id, None)

    async def load(self, document_id: str) -> Document:
        """Load a document, preferring the cache.

        Raises:
            DocumentNotFoundError: No record exists for the id
            CorruptRecordError: The record does not decode
            StorageIOError: The record could not be read
        """
        cached = self.document_cache.get(document_id)
        if cached is not None:
            await self.preload_header_image(cached)
            self._emit_loaded(document_id)
            return cached

        task = self._in_flight.get(document_id)
        if task is None:
            task = asyncio.ensure_future(self._load_from_store(document_id))
            self._in_flight[document_id] = task
            task.add_done_callback(lambda done: self._forget(document_id, done))
        else:
            logger.debug(f"Joining in-flight load of {document_id}")

        document = await asyncio.shield(task)
        return document.model_copy(deep=True)

    async def preload_header_image(self, document: Document) -> bool:
        """Make sure an expanded header's image is in the image cache.

        Both the composite and the bare filename keys are populated. A missing
        or undecodable image is logged and otherwise ignored.

        Returns:
            True if the header image is resident afterwards
        """
        if not document.is_header_expanded:
            return False

        element = document.header_image()
        if element is None:
            return False

        filename = element.content
        key = ImageCache.composite_key(document.id, filename)
        if self.image_cache.get(key) is not None:
            return True

        try:
            path = self.store.image_path(document.id, filename)
            image = await asyncio.to_thread(self.image_decoder, path)
        except (ImageUnavailableError, ValidationError) as e:
            logger.warning(f"Header image unavailable for {document.id}: {e.message}")
            return False

        # Composite key last: eviction always spares the newest entry
        self.image_cache.put(filename, image)
        self.image_cache.put(key, image, document_id=document.id)
        logger.debug(f"Preloaded header image {filename} for {document.id}")
        return True

    async def _load_from_store(self, document_id: str) -> Document:
        self._running[document_id] = self._running.get(document_id, 0) + 1
        try:
            version = self._versions.get(document_id, 0)
            document = await asyncio.to_thread(self.store.read, document_id)
            await self.preload_header_image(document)

            if self._versions.get(document_id, 0) != version:
                logger.debug(f"Discarding stale load of {document_id}")
                fresh = self.document_cache.get(document_id)
                if fresh is not None:
                    return fresh
            else:
                self.document_cache.put(document_id, document)
        finally:
            self._running[document_id] -= 1
            if not self._running[document_id]:
                del self._running[document_id]
                self._versions.pop(document_id, None)

        logger.info(f"Loaded document {document_id} from disk")
        self._emit_loaded(document_id)
        return document

    def _forget(self, document_id: str, task: "asyncio.Future[Document]") -> None:
        if self._in_flight.get(document_id) is task:
            del self._in_flight[document_id]
        # Mark the exception as retrieved when every waiter has gone away
        if not task.cancelled():
            task.exception()

    def _emit_loaded(self, document_id: str) -> None:
        if self.events is not None:
            self.events.emit(EventType.DOCUMENT_LOADED, document_id=document_id)
