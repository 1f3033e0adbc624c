"""Hierarchical folder index referencing documents by id."""

from threading import RLock
from typing import Dict, List, Optional, Set, Tuple

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from canvas_store.shared.events import EventBus, EventType
from canvas_store.shared.exceptions import (
    CorruptRecordError,
    FolderNotFoundError,
    ValidationError,
)
from .models import Folder
from .settings_store import SettingsStore


FOLDERS_KEY = "SavedFolders"
FOLDER_DOCUMENTS_KEY = "FolderDocuments"

Arena = Dict[str, Folder]


class FolderIndex:
    """Folder forest kept as an arena of nodes addressed by id.

    The forest and the folder-to-documents map are persisted as two entries
    of the settings store, always written in the same atomic update.
    Deleting folders never touches document storage.

    ``add_folder`` with a parent id that does not resolve raises
    ``FolderNotFoundError``; it does not fall back to the root.
    """

    def __init__(self, settings_store: SettingsStore, events: Optional[EventBus] = None):
        self.settings_store = settings_store
        self.events = events
        self._folders: Arena = {}
        self._root_ids: List[str] = []
        self._loaded = False
        self._lock = RLock()

    # Persistence

    def load(self) -> List[Folder]:
        """Read the forest back from the settings store."""
        with self._lock:
            raw_folders = self.settings_store.get(FOLDERS_KEY, [])
            raw_documents = self.settings_store.get(FOLDER_DOCUMENTS_KEY, {})
            if not isinstance(raw_folders, list) or not isinstance(raw_documents, dict):
                raise CorruptRecordError("Folder settings have an unexpected shape")

            folders: Arena = {}
            for raw in raw_folders:
                try:
                    folder = Folder.model_validate(raw)
                except PydanticValidationError as e:
                    raise CorruptRecordError(
                        f"Stored folder does not match the folder schema: {e.error_count()} error(s)",
                        details={"errors": e.errors(include_url=False)},
                    )
                if folder.id in folders:
                    raise CorruptRecordError(
                        f"Folder id {folder.id} appears more than once",
                        details={"folder_id": folder.id},
                    )
                folders[folder.id] = folder

            for folder_id, document_ids in raw_documents.items():
                if not isinstance(document_ids, list):
                    raise CorruptRecordError(
                        f"Membership of folder {folder_id} is not a list",
                        details={"folder_id": folder_id},
                    )
                if folder_id in folders:
                    folders[folder_id].document_ids = {str(d) for d in document_ids}
                else:
                    logger.warning(f"Dropping membership for unknown folder {folder_id}")

            self._folders, self._root_ids = self._repair(folders)
            self._loaded = True
            logger.info(f"Loaded {len(self._folders)} folder(s)")
            return self._ordered()

    def save(self, folders: List[Folder]) -> None:
        """Replace the whole forest.

        Raises:
            ValidationError: Duplicate ids, unknown parents or a cycle
        """
        with self._lock:
            arena: Arena = {}
            for folder in folders:
                if folder.id in arena:
                    raise ValidationError(f"Folder id {folder.id} appears more than once")
                arena[folder.id] = folder.model_copy(deep=True)

            for folder in arena.values():
                if folder.parent_id is not None and folder.parent_id not in arena:
                    raise FolderNotFoundError(
                        f"Parent folder {folder.parent_id} not found",
                        details={"folder_id": folder.id},
                    )
                if self._has_cycle(arena, folder.id):
                    raise ValidationError(f"Folder {folder.id} is its own ancestor")

            self._commit(*self._repair(arena))

    # Queries

    def list_folders(self) -> List[Folder]:
        """All folders, roots first, each followed by its subtree."""
        with self._lock:
            self._ensure_loaded()
            return self._ordered()

    def get_folder(self, folder_id: str) -> Folder:
        with self._lock:
            self._ensure_loaded()
            return self._require(self._folders, folder_id).model_copy(deep=True)

    def roots(self) -> List[Folder]:
        with self._lock:
            self._ensure_loaded()
            return [self._folders[fid].model_copy(deep=True) for fid in self._root_ids]

    def children(self, folder_id: str) -> List[Folder]:
        with self._lock:
            self._ensure_loaded()
            folder = self._require(self._folders, folder_id)
            return [self._folders[cid].model_copy(deep=True) for cid in folder.subfolder_ids]

    def folders_containing(self, document_id: str) -> List[Folder]:
        with self._lock:
            self._ensure_loaded()
            return [f for f in self._ordered() if document_id in f.document_ids]

    # Mutations

    def add_folder(self, folder: Folder, parent_id: Optional[str] = None) -> Folder:
        """Insert a new, childless folder at the root or under a parent.

        Raises:
            FolderNotFoundError: ``parent_id`` does not resolve
            ValidationError: A folder with the same id already exists
        """
        with self._lock:
            self._ensure_loaded()
            folders, root_ids = self._working_copy()
            if folder.id in folders:
                raise ValidationError(f"Folder {folder.id} already exists")

            new_folder = folder.model_copy(deep=True)
            new_folder.subfolder_ids = []
            new_folder.parent_id = parent_id

            if parent_id is None:
                root_ids.append(new_folder.id)
            else:
                self._require(folders, parent_id).subfolder_ids.append(new_folder.id)
            folders[new_folder.id] = new_folder

            self._commit(folders, root_ids, folder_id=new_folder.id)
            logger.info(f"Added folder {new_folder.name!r} ({new_folder.id})")
            return new_folder.model_copy(deep=True)

    def create_folder(self, name: str, parent_id: Optional[str] = None) -> Folder:
        return self.add_folder(Folder(name=name), parent_id)

    def rename_folder(self, folder_id: str, name: str) -> Folder:
        with self._lock:
            self._ensure_loaded()
            folders, root_ids = self._working_copy()
            folder = self._require(folders, folder_id)
            folder.name = name
            self._commit(folders, root_ids, folder_id=folder_id)
            return folder.model_copy(deep=True)

    def move_folder(self, folder_id: str, new_parent_id: Optional[str]) -> Folder:
        """Re-parent a folder, keeping its subtree.

        Raises:
            ValidationError: The new parent is the folder or one of its descendants
        """
        with self._lock:
            self._ensure_loaded()
            folders, root_ids = self._working_copy()
            folder = self._require(folders, folder_id)

            if new_parent_id is not None:
                self._require(folders, new_parent_id)
                if new_parent_id in self._subtree_ids(folders, folder_id):
                    raise ValidationError(
                        f"Cannot move folder {folder_id} into its own subtree",
                        details={"folder_id": folder_id, "parent_id": new_parent_id},
                    )

            self._detach(folders, root_ids, folder)
            folder.parent_id = new_parent_id
            if new_parent_id is None:
                root_ids.append(folder_id)
            else:
                folders[new_parent_id].subfolder_ids.append(folder_id)

            self._commit(folders, root_ids, folder_id=folder_id)
            return folder.model_copy(deep=True)

    def add_document(self, folder_id: str, document_id: str) -> None:
        with self._lock:
            self._ensure_loaded()
            folders, root_ids = self._working_copy()
            folder = self._require(folders, folder_id)
            if document_id in folder.document_ids:
                return
            folder.document_ids.add(document_id)
            self._commit(folders, root_ids, folder_id=folder_id)

    def remove_document(self, folder_id: str, document_id: str) -> bool:
        with self._lock:
            self._ensure_loaded()
            folders, root_ids = self._working_copy()
            folder = self._require(folders, folder_id)
            if document_id not in folder.document_ids:
                return False
            folder.document_ids.discard(document_id)
            self._commit(folders, root_ids, folder_id=folder_id)
            return True

    def delete_folder(self, folder_id: str) -> List[str]:
        """Remove a folder and its whole subtree.

        Member document ids are dropped with their folders; the documents
        themselves are left alone.

        Returns:
            Ids of every folder removed
        """
        with self._lock:
            self._ensure_loaded()
            folders, root_ids = self._working_copy()
            folder = self._require(folders, folder_id)

            removed = self._subtree_ids(folders, folder_id)
            self._detach(folders, root_ids, folder)
            for removed_id in removed:
                del folders[removed_id]

            self._commit(folders, root_ids, folder_id=folder_id)
            logger.info(f"Deleted folder {folder_id} and {len(removed) - 1} subfolder(s)")
            return removed

    # Internal helpers

    def _ensure_loaded(self) -> None:
        if not self._loaded:
            self.load()

    def _working_copy(self) -> Tuple[Arena, List[str]]:
        folders = {fid: folder.model_copy(deep=True) for fid, folder in self._folders.items()}
        return folders, list(self._root_ids)

    def _commit(self, folders: Arena, root_ids: List[str], folder_id: Optional[str] = None) -> None:
        ordered = self._ordered(folders, root_ids)
        forest = [f.model_dump(by_alias=True, exclude={"document_ids"}) for f in ordered]
        membership = {f.id: sorted(f.document_ids) for f in ordered}

        self.settings_store.set_many({
            FOLDERS_KEY: forest,
            FOLDER_DOCUMENTS_KEY: membership,
        })

        self._folders = folders
        self._root_ids = root_ids
        self._loaded = True

        if self.events is not None:
            self.events.emit(EventType.FOLDERS_UPDATED, folder_id=folder_id)

    def _ordered(self, folders: Optional[Arena] = None, root_ids: Optional[List[str]] = None) -> List[Folder]:
        folders = self._folders if folders is None else folders
        root_ids = self._root_ids if root_ids is None else root_ids

        ordered = []
        stack = list(reversed(root_ids))
        while stack:
            folder = folders[stack.pop()]
            ordered.append(folder.model_copy(deep=True))
            stack.extend(reversed(folder.subfolder_ids))
        return ordered

    @staticmethod
    def _require(folders: Arena, folder_id: str) -> Folder:
        folder = folders.get(folder_id)
        if folder is None:
            raise FolderNotFoundError(f"Folder {folder_id} not found", details={"folder_id": folder_id})
        return folder

    @staticmethod
    def _detach(folders: Arena, root_ids: List[str], folder: Folder) -> None:
        if folder.parent_id is None:
            root_ids.remove(folder.id)
        else:
            folders[folder.parent_id].subfolder_ids.remove(folder.id)

    @staticmethod
    def _subtree_ids(folders: Arena, folder_id: str) -> List[str]:
        ids = []
        stack = [folder_id]
        while stack:
            current = stack.pop()
            ids.append(current)
            stack.extend(folders[current].subfolder_ids)
        return ids

    @staticmethod
    def _has_cycle(folders: Arena, folder_id: str) -> bool:
        seen: Set[str] = set()
        current: Optional[str] = folder_id
        while current is not None:
            if current in seen:
                return True
            seen.add(current)
            parent = folders.get(current)
            current = parent.parent_id if parent is not None else None
        return False

    def _repair(self, folders: Arena) -> Tuple[Arena, List[str]]:
        """Rebuild child lists from parent ids.

        Parent ids are authoritative; existing child lists only provide the
        order. Folders with a missing parent or on a cycle become roots.
        """
        for folder in folders.values():
            if folder.parent_id is not None and (
                folder.parent_id not in folders or self._has_cycle(folders, folder.id)
            ):
                logger.warning(f"Moving folder {folder.id} to the root")
                folder.parent_id = None

        previous_order = {fid: list(f.subfolder_ids) for fid, f in folders.items()}
        for folder in folders.values():
            folder.subfolder_ids = []

        root_ids = []
        for fid, folder in folders.items():
            if folder.parent_id is None:
                root_ids.append(fid)

        for parent_id, order in previous_order.items():
            parent = folders[parent_id]
            for child_id in order:
                child = folders.get(child_id)
                if child is not None and child.parent_id == parent_id and child_id not in parent.subfolder_ids:
                    parent.subfolder_ids.append(child_id)

        for fid, folder in folders.items():
            if folder.parent_id is not None and fid not in folders[folder.parent_id].subfolder_ids:
                folders[folder.parent_id].subfolder_ids.append(fid)

        return folders, root_ids
