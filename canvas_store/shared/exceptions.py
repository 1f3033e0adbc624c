"""Custom exceptions for the canvas store."""

from typing import Any, Dict, Optional


class CanvasStoreException(Exception):
    """Base exception for all canvas store errors."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class StorageError(CanvasStoreException):
    """Raised when storage operations fail."""
    pass


class DocumentNotFoundError(StorageError):
    """Raised when no record exists for a document id."""
    pass


class CorruptRecordError(StorageError):
    """Raised when a record exists but cannot be decoded."""
    pass


class StorageIOError(StorageError):
    """Raised when the filesystem fails on read, write or directory creation."""
    pass


class ImageUnavailableError(CanvasStoreException):
    """Raised when an image asset is missing or cannot be decoded."""
    pass


class SearchError(CanvasStoreException):
    """Raised when search operations fail."""
    pass


class SearchCancelledError(SearchError):
    """Raised to the caller of a search that a newer query superseded."""
    pass


class FolderError(CanvasStoreException):
    """Raised when folder index operations fail."""
    pass


class FolderNotFoundError(FolderError):
    """Raised when a folder id does not resolve to a folder."""
    pass


class ValidationError(CanvasStoreException):
    """Raised when input validation fails."""
    pass
