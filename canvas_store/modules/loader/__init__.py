"""Document loading with header image preloading."""

from .document_loader import DocumentLoader

__all__ = ["DocumentLoader"]
