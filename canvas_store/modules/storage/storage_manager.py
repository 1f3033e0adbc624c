"""Main storage manager that coordinates records, caches, search and folders."""

import asyncio
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from loguru import logger

from canvas_store.api.config import Settings, get_settings
from canvas_store.modules.cache import DocumentCache, ImageCache, decode_image
from canvas_store.modules.folders.folder_index import FolderIndex
from canvas_store.modules.folders.models import Folder
from canvas_store.modules.folders.settings_store import SettingsStore
from canvas_store.modules.loader.document_loader import DocumentLoader, ImageDecoder
from canvas_store.modules.search.models import SearchResults
from canvas_store.modules.search.search_engine import SearchEngine
from canvas_store.shared.events import EventBus, EventType
from canvas_store.shared.exceptions import StorageError, ValidationError
from .document_store import DocumentStore
from .models import (
    DeletedDocument,
    Document,
    DocumentSummary,
    DocumentVariation,
    new_id,
    utc_now,
)


def _as_utc(value: datetime) -> datetime:
    # Records written without an offset are treated as UTC
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


class StorageManager:
    """The operation surface consumed by the UI layer.

    Caches and the event bus are created per manager unless passed in, so
    separate managers never share state.
    """

    def __init__(
        self,
        storage_dir: Optional[Path] = None,
        settings: Optional[Settings] = None,
        events: Optional[EventBus] = None,
        document_cache: Optional[DocumentCache] = None,
        image_cache: Optional[ImageCache] = None,
        image_decoder: ImageDecoder = decode_image,
        search_debounce_seconds: Optional[float] = None,
    ):
        """Initialize storage manager.

        Args:
            storage_dir: Base directory for storage (uses settings if not provided)
            settings: Settings to use instead of the process-wide ones
            events: Event bus for load, list and folder signals
            document_cache: Cache of decoded documents
            image_cache: Cache of decoded header images
            image_decoder: Function that turns an image path into an image
            search_debounce_seconds: Override of the configured debounce delay
        """
        self.settings = settings or get_settings()
        self.storage_dir = storage_dir or self.settings.storage_dir
        self.storage_dir.mkdir(parents=True, exist_ok=True)

        # Injected caches may be empty, and an empty cache is falsy
        self.events = events if events is not None else EventBus()
        if document_cache is None:
            document_cache = DocumentCache(self.settings.document_cache_size)
        self.document_cache = document_cache
        if image_cache is None:
            image_cache = ImageCache(
                count_limit=self.settings.image_cache_count_limit,
                cost_limit=self.settings.image_cache_cost_limit,
            )
        self.image_cache = image_cache

        self.store = DocumentStore(
            self.storage_dir / self.settings.documents_dirname,
            assets_dir=self.storage_dir,
            record_extension=self.settings.record_extension,
        )
        self.loader = DocumentLoader(
            self.store,
            self.document_cache,
            self.image_cache,
            events=self.events,
            image_decoder=image_decoder,
        )
        if search_debounce_seconds is None:
            search_debounce_seconds = self.settings.search_debounce_seconds
        self.search_engine = SearchEngine(
            self.store,
            self.document_cache,
            debounce_seconds=search_debounce_seconds,
        )
        self.folders = FolderIndex(
            SettingsStore(self.storage_dir / self.settings.settings_filename),
            events=self.events,
        )

        logger.info(f"Storage manager initialized at {self.storage_dir}")

    # Documents

    async def load_document(self, document_id: str) -> Document:
        """Load a document by id, header image included.

        Raises:
            DocumentNotFoundError, CorruptRecordError, StorageIOError
        """
        return await self.loader.load(document_id)

    async def save_document(self, document: Document) -> Document:
        """Persist a document and make it the cached value for its id.

        ``modified_at`` is refreshed on the passed document before writing.

        Returns:
            The document as saved
        """
        document.modified_at = utc_now()
        try:
            await asyncio.to_thread(self.store.write, document)
        except StorageError:
            self.loader.invalidate(document.id)
            self.document_cache.invalidate(document.id)
            raise

        self.loader.invalidate(document.id)
        self.document_cache.put(document.id, document)
        self.image_cache.remove_document(document.id, keep=document.header_image_key())
        self.events.emit(EventType.DOCUMENT_LIST_REFRESH, document_id=document.id)
        return document.model_copy(deep=True)

    async def create_document(self, title: str = "", subtitle: str = "") -> Document:
        """Create and immediately persist a new document with a fresh id."""
        return await self.save_document(Document(id=new_id(), title=title, subtitle=subtitle))

    async def delete_document(self, document_id: str, permanent: bool = False) -> bool:
        """Delete a document and drop its cache entries.

        Args:
            document_id: Document to delete
            permanent: Remove the record and its assets instead of moving
                the record to the trash

        Returns:
            True if a record was deleted, False if none existed
        """
        if permanent:
            deleted = await asyncio.to_thread(self.store.delete, document_id)
        else:
            deleted = await asyncio.to_thread(self.store.move_to_trash, document_id)

        self.loader.invalidate(document_id)
        self.document_cache.invalidate(document_id)
        self.image_cache.remove_document(document_id)

        if deleted:
            self.events.emit(EventType.DOCUMENT_LIST_REFRESH, document_id=document_id)
        return deleted

    async def list_documents(self) -> List[DocumentSummary]:
        """Summaries of every readable document, most recently modified first."""
        return await asyncio.to_thread(self._list_documents)

    def refresh_document_list(self) -> None:
        """Signal that the all-documents view should reload its list."""
        self.events.emit(EventType.DOCUMENT_LIST_REFRESH)

    async def create_variation(
        self,
        document_id: str,
        name: str,
        location: Optional[str] = None,
        service_time: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Document:
        """Copy a document as a variation of itself and record the link.

        Returns:
            The new variation document
        """
        parent = await self.load_document(document_id)
        now = utc_now()

        variation_doc = parent.model_copy(
            deep=True,
            update={
                "id": new_id(),
                "series": None,
                "variations": [],
                "is_variation": True,
                "parent_variation_id": parent.id,
                "created_at": now,
                "modified_at": now,
            },
        )
        parent.variations.append(DocumentVariation(
            name=name,
            document_id=variation_doc.id,
            parent_document_id=parent.id,
            created_at=now,
            location=location,
            service_time=service_time,
            notes=notes,
        ))

        await self.save_document(parent)
        saved = await self.save_document(variation_doc)
        logger.info(f"Created variation {saved.id} of document {parent.id}")
        return saved

    # Trash

    async def list_deleted_documents(self) -> List[DeletedDocument]:
        """Trashed documents, newest deletion first.

        Entries older than the retention period are purged on the way.
        """
        return await asyncio.to_thread(self._list_deleted_documents)

    async def restore_document(self, document_id: str) -> Document:
        document = await asyncio.to_thread(self.store.restore_from_trash, document_id)
        self.loader.invalidate(document_id)
        self.document_cache.invalidate(document_id)
        self.events.emit(EventType.DOCUMENT_LIST_REFRESH, document_id=document_id)
        return document

    async def purge_deleted_document(self, document_id: str) -> bool:
        return await asyncio.to_thread(self.store.purge_from_trash, document_id)

    async def empty_trash(self) -> int:
        purged = 0
        for document_id, _ in await asyncio.to_thread(self.store.list_trash):
            if await self.purge_deleted_document(document_id):
                purged += 1
        logger.info(f"Emptied trash ({purged} document(s))")
        return purged

    # Search

    async def search(self, query: str) -> SearchResults:
        """Debounced search; a newer call supersedes an older one.

        Raises:
            SearchCancelledError: This query was superseded
        """
        return await self.search_engine.search(query)

    # Folders
    #
    # The folder index reads and writes the settings file, so every call
    # runs in a worker thread like the document operations above.

    async def list_folders(self) -> List[Folder]:
        return await asyncio.to_thread(self.folders.list_folders)

    async def add_folder(self, name: str, parent_id: Optional[str] = None) -> Folder:
        return await asyncio.to_thread(self.folders.create_folder, name, parent_id)

    async def rename_folder(self, folder_id: str, name: str) -> Folder:
        return await asyncio.to_thread(self.folders.rename_folder, folder_id, name)

    async def move_folder(self, folder_id: str, parent_id: Optional[str]) -> Folder:
        return await asyncio.to_thread(self.folders.move_folder, folder_id, parent_id)

    async def delete_folder(self, folder_id: str) -> List[str]:
        return await asyncio.to_thread(self.folders.delete_folder, folder_id)

    async def add_document_to_folder(self, folder_id: str, document_id: str) -> None:
        if not document_id:
            raise ValidationError("Document id must not be empty")
        await asyncio.to_thread(self.folders.add_document, folder_id, document_id)

    async def remove_document_from_folder(self, folder_id: str, document_id: str) -> bool:
        return await asyncio.to_thread(self.folders.remove_document, folder_id, document_id)

    async def folders_containing(self, document_id: str) -> List[Folder]:
        return await asyncio.to_thread(self.folders.folders_containing, document_id)

    # Internal helpers

    def _list_documents(self) -> List[DocumentSummary]:
        summaries = []
        for document_id in self.store.enumerate_ids():
            document = self.document_cache.get(document_id)
            if document is None:
                try:
                    document = self.store.read(document_id)
                except StorageError as e:
                    logger.warning(f"Skipping unreadable document {document_id}: {e.message}")
                    continue
            summaries.append(DocumentSummary.from_document(document))

        summaries.sort(key=lambda s: _as_utc(s.modified_at), reverse=True)
        return summaries

    def _list_deleted_documents(self) -> List[DeletedDocument]:
        now = datetime.now(timezone.utc)
        retention = self.settings.trash_retention_days
        deleted = []

        for document_id, deleted_at in self.store.list_trash():
            days_since = (now - deleted_at).days
            if days_since >= retention:
                logger.info(f"Trash retention expired for {document_id}")
                self.store.purge_from_trash(document_id)
                continue

            try:
                document = self.store.read_trashed(document_id)
            except StorageError as e:
                logger.warning(f"Skipping unreadable trashed document {document_id}: {e.message}")
                continue

            deleted.append(DeletedDocument(
                document=document,
                deleted_at=deleted_at,
                days_remaining=retention - days_since,
            ))

        deleted.sort(key=lambda d: d.deleted_at, reverse=True)
        return deleted
