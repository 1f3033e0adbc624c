"""In-memory cache of decoded images."""

from collections import OrderedDict
from pathlib import Path
from threading import Lock
from typing import Dict, Optional, Tuple

from loguru import logger
from PIL import Image, UnidentifiedImageError

from canvas_store.shared.exceptions import ImageUnavailableError


def image_cost(image: Image.Image) -> int:
    """Approximate memory footprint of a decoded image in bytes."""
    width, height = image.size
    return width * height * 4


def decode_image(path: Path) -> Image.Image:
    """Read and fully decode an image file.

    Raises:
        ImageUnavailableError: The file is missing or is not a readable image
    """
    try:
        with Image.open(path) as image:
            image.load()
            return image.copy()
    except FileNotFoundError:
        raise ImageUnavailableError(f"Image not found: {path.name}", details={"path": str(path)})
    except (UnidentifiedImageError, OSError) as e:
        raise ImageUnavailableError(f"Could not decode image {path.name}: {e}", details={"path": str(path)})


class ImageCache:
    """Thread-safe LRU cache of decoded images.

    Two key shapes are used: ``"<documentId>_<filename>"`` for a specific
    document, and the bare ``"<filename>"`` shared across contexts. Entries
    put with a ``document_id`` belong to that document and are what
    ``remove_document`` drops.
    Entries are evicted least recently used first once either the count or
    the total cost limit is exceeded.
    """

    def __init__(self, count_limit: int = 100, cost_limit: int = 500 * 1024 * 1024):
        self.count_limit = count_limit
        self.cost_limit = cost_limit
        self._entries: "OrderedDict[str, Tuple[Image.Image, int]]" = OrderedDict()
        self._owners: Dict[str, str] = {}
        self._total_cost = 0
        self._lock = Lock()

    @staticmethod
    def composite_key(document_id: str, filename: str) -> str:
        return f"{document_id}_{filename}"

    def get(self, key: str) -> Optional[Image.Image]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            self._entries.move_to_end(key)
            return entry[0]

    def put(self, key: str, image: Image.Image, document_id: Optional[str] = None) -> None:
        cost = image_cost(image)
        with self._lock:
            previous = self._entries.pop(key, None)
            if previous is not None:
                self._total_cost -= previous[1]
            self._entries[key] = (image, cost)
            self._total_cost += cost
            if document_id is None:
                self._owners.pop(key, None)
            else:
                self._owners[key] = document_id
            self._evict()

    def remove(self, key: str) -> None:
        with self._lock:
            entry = self._entries.pop(key, None)
            self._owners.pop(key, None)
            if entry is not None:
                self._total_cost -= entry[1]

    def remove_document(self, document_id: str, keep: Optional[str] = None) -> int:
        """Drop every entry put on behalf of a document.

        Args:
            document_id: Document whose entries are dropped
            keep: Composite key to leave in place

        Returns:
            Number of entries removed
        """
        with self._lock:
            keys = [k for k, owner in self._owners.items() if owner == document_id and k != keep]
            for key in keys:
                del self._owners[key]
                self._total_cost -= self._entries.pop(key)[1]
        if keys:
            logger.debug(f"Removed {len(keys)} cached image(s) for document {document_id}")
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._owners.clear()
            self._total_cost = 0

    @property
    def total_cost(self) -> int:
        with self._lock:
            return self._total_cost

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict(self) -> None:
        # Caller holds the lock; the newest entry is never evicted
        while len(self._entries) > 1 and (
            (self.count_limit > 0 and len(self._entries) > self.count_limit)
            or (self.cost_limit > 0 and self._total_cost > self.cost_limit)
        ):
            key, (_, cost) = self._entries.popitem(last=False)
            self._owners.pop(key, None)
            self._total_cost -= cost
            logger.debug(f"Evicted image {key} from cache")
