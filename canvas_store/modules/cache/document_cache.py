"""In-memory cache of decoded documents."""

from collections import OrderedDict
from threading import Lock
from typing import Optional

from loguru import logger

from canvas_store.modules.storage.models import Document


class DocumentCache:
    """Thread-safe map from document id to decoded document.

    Values are copied on the way in and on the way out, so a caller editing a
    document it loaded never changes what other readers see. With
    ``max_entries`` set the cache evicts least recently used entries; with 0
    it is unbounded.
    """

    def __init__(self, max_entries: int = 0):
        self.max_entries = max_entries
        self._entries: "OrderedDict[str, Document]" = OrderedDict()
        self._lock = Lock()

    def get(self, document_id: str) -> Optional[Document]:
        with self._lock:
            document = self._entries.get(document_id)
            if document is None:
                logger.debug(f"Document cache miss: {document_id}")
                return None
            self._entries.move_to_end(document_id)
            logger.debug(f"Document cache hit: {document_id}")
            return document.model_copy(deep=True)

    def put(self, document_id: str, document: Document) -> None:
        snapshot = document.model_copy(deep=True)
        with self._lock:
            self._entries[document_id] = snapshot
            self._entries.move_to_end(document_id)
            if self.max_entries > 0:
                while len(self._entries) > self.max_entries:
                    evicted, _ = self._entries.popitem(last=False)
                    logger.debug(f"Evicted document {evicted} from cache")

    def invalidate(self, document_id: str) -> None:
        with self._lock:
            if self._entries.pop(document_id, None) is not None:
                logger.debug(f"Invalidated cached document {document_id}")

    def clear(self) -> None:
        with self._lock:
            logger.info(f"Clearing document cache ({len(self._entries)} entries)")
            self._entries.clear()

    def __contains__(self, document_id: str) -> bool:
        with self._lock:
            return document_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
