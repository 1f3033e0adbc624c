"""Document persistence, caching and search for canvas documents."""

__version__ = "0.1.0"
