"""Debounced, cancellable full-text search across canvas documents."""

from .models import SearchCategory, SearchGroup, SearchResults
from .search_engine import SearchEngine, match_categories

__all__ = [
    "SearchCategory",
    "SearchGroup",
    "SearchResults",
    "SearchEngine",
    "match_categories",
]
