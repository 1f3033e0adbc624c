"""Storage module - handles canvas document persistence and retrieval.

This module provides:
- The canvas record data model and its JSON codec
- File system storage of one record per document, with a trash
- The StorageManager facade consumed by the UI layer
"""

from .codec import DocumentCodec
from .document_store import DocumentStore
from .models import (
    Document,
    DocumentElement,
    DocumentMarker,
    DocumentSeries,
    DocumentVariation,
    DocumentLink,
    DocumentSummary,
    DeletedDocument,
    ElementType,
)

# Note: StorageManager import is conditional to avoid circular dependencies
# Import it directly when needed: from canvas_store.modules.storage.storage_manager import StorageManager

__all__ = [
    "DocumentCodec",
    "DocumentStore",
    "Document",
    "DocumentElement",
    "DocumentMarker",
    "DocumentSeries",
    "DocumentVariation",
    "DocumentLink",
    "DocumentSummary",
    "DeletedDocument",
    "ElementType",
]
