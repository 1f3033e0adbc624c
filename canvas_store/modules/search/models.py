"""Data models for the search module."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from canvas_store.modules.storage.models import Document


class SearchCategory(str, Enum):
    """Result groups, declared in display order."""
    DOCUMENT_NAMES = "Document Names"
    SERMON_SERIES = "Sermon Series"
    DOCUMENT_CONTENT = "Document Content"


class SearchGroup(BaseModel):
    """Documents that matched the query in one way."""
    category: SearchCategory
    documents: List[Document] = Field(default_factory=list)


class SearchResults(BaseModel):
    """Grouped result of one search query."""
    query: str
    groups: List[SearchGroup] = Field(default_factory=list)

    # Scan statistics
    scanned_count: int = 0
    skipped_count: int = 0
    search_time_ms: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.groups

    @property
    def total_matches(self) -> int:
        """Number of distinct matching documents."""
        return len({doc.id for group in self.groups for doc in group.documents})

    def group(self, category: SearchCategory) -> Optional[SearchGroup]:
        for group in self.groups:
            if group.category == category:
                return group
        return None
