"""Shared exceptions and events for the canvas store."""
