"""In-memory caches for decoded documents and images."""

from .document_cache import DocumentCache
from .image_cache import ImageCache, decode_image

__all__ = [
    "DocumentCache",
    "ImageCache",
    "decode_image",
]
