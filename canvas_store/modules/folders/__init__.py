"""Folder hierarchy that references documents by id."""

from .folder_index import FolderIndex
from .models import Folder
from .settings_store import SettingsStore

__all__ = ["FolderIndex", "Folder", "SettingsStore"]
