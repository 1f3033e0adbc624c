"""File-backed record store: one canvas file per document."""

import os
import shutil
import tempfile
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from loguru import logger

from canvas_store.shared.exceptions import (
    DocumentNotFoundError,
    StorageIOError,
    ValidationError,
)
from .codec import DocumentCodec
from .models import Document


TRASH_DIRNAME = ".trash"
IMAGES_DIRNAME = "Images"


class DocumentStore:
    """Handles raw record I/O for documents.

    Records live at ``<documents_dir>/<id>.<extension>``. Per-document assets
    live in the sibling directory ``<assets_dir>/<id>/Images``. Nothing here
    touches the in-memory caches.
    """

    def __init__(
        self,
        documents_dir: Path,
        assets_dir: Optional[Path] = None,
        record_extension: str = "canvas",
        codec: Optional[DocumentCodec] = None,
    ):
        """Initialize the document store.

        Args:
            documents_dir: Directory holding the canvas records
            assets_dir: Root of the per-document asset directories
                (defaults to the parent of ``documents_dir``)
            record_extension: File extension of a record, without the dot
            codec: Codec used to encode and decode records
        """
        self.documents_dir = documents_dir
        self.assets_dir = assets_dir or documents_dir.parent
        self.record_extension = record_extension.lstrip(".")
        self.codec = codec or DocumentCodec()
        self.trash_dir = self.documents_dir / TRASH_DIRNAME

    # Paths

    def record_path(self, document_id: str) -> Path:
        self._validate_id(document_id)
        return self.documents_dir / f"{document_id}.{self.record_extension}"

    def trash_path(self, document_id: str) -> Path:
        self._validate_id(document_id)
        return self.trash_dir / f"{document_id}.{self.record_extension}"

    def asset_dir(self, document_id: str) -> Path:
        self._validate_id(document_id)
        return self.assets_dir / document_id

    def image_path(self, document_id: str, filename: str) -> Path:
        if not filename or Path(filename).name != filename:
            raise ValidationError(f"Invalid image filename: {filename!r}")
        return self.asset_dir(document_id) / IMAGES_DIRNAME / filename

    # Records

    def write(self, document: Document) -> Path:
        """Encode a document and write it to its record path.

        The write is atomic: a reader sees either the previous record or the
        new one, never a partial file.

        Returns:
            Path of the written record
        """
        path = self.record_path(document.id)
        data = self.codec.encode(document)

        try:
            self.documents_dir.mkdir(parents=True, exist_ok=True)
            self._atomic_write(path, data)
        except OSError as e:
            logger.error(f"Failed to write document {document.id}: {e}")
            raise StorageIOError(
                f"Failed to write document {document.id}: {e}",
                details={"path": str(path)},
            )

        logger.info(f"Wrote document {document.id} ({len(data)} bytes)")
        return path

    def read(self, document_id: str) -> Document:
        """Read and decode the record for a document id.

        Raises:
            DocumentNotFoundError: No record exists
            CorruptRecordError: The record exists but does not decode
            StorageIOError: The record could not be read
        """
        return self._read_record(self.record_path(document_id), document_id)

    def exists(self, document_id: str) -> bool:
        return self.record_path(document_id).is_file()

    def enumerate_ids(self) -> List[str]:
        """List the ids of all records currently on disk."""
        if not self.documents_dir.is_dir():
            return []

        try:
            return sorted(
                path.stem
                for path in self.documents_dir.glob(f"*.{self.record_extension}")
                if path.is_file() and not path.name.startswith(".")
            )
        except OSError as e:
            raise StorageIOError(f"Failed to list documents: {e}")

    def delete(self, document_id: str, delete_assets: bool = True) -> bool:
        """Remove a record permanently.

        Args:
            document_id: Document to remove
            delete_assets: Whether to remove the document's asset directory too

        Returns:
            True if a record was removed, False if it was already absent
        """
        path = self.record_path(document_id)
        removed = False
        try:
            path.unlink()
            removed = True
            logger.info(f"Deleted document {document_id}")
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageIOError(f"Failed to delete document {document_id}: {e}")

        if delete_assets:
            self._delete_assets(document_id)

        return removed

    # Trash

    def move_to_trash(self, document_id: str) -> bool:
        """Move a record into the trash directory.

        The trashed file's modification time records when it was deleted.

        Returns:
            True if a record was moved, False if there was none
        """
        source = self.record_path(document_id)
        if not source.is_file():
            return False

        destination = self.trash_path(document_id)
        try:
            self.trash_dir.mkdir(parents=True, exist_ok=True)
            os.replace(source, destination)
            now = time.time()
            os.utime(destination, (now, now))
        except OSError as e:
            raise StorageIOError(f"Failed to move document {document_id} to trash: {e}")

        logger.info(f"Moved document {document_id} to trash")
        return True

    def restore_from_trash(self, document_id: str) -> Document:
        """Move a trashed record back into the store.

        Raises:
            DocumentNotFoundError: The id is not in the trash
            ValidationError: A live record with the same id exists
        """
        source = self.trash_path(document_id)
        if not source.is_file():
            raise DocumentNotFoundError(
                f"Document {document_id} is not in the trash",
                details={"document_id": document_id},
            )
        if self.exists(document_id):
            raise ValidationError(
                f"Document {document_id} already exists; restoring would overwrite it",
                details={"document_id": document_id},
            )

        document = self._read_record(source, document_id)
        try:
            os.replace(source, self.record_path(document_id))
        except OSError as e:
            raise StorageIOError(f"Failed to restore document {document_id}: {e}")

        logger.info(f"Restored document {document_id} from trash")
        return document

    def list_trash(self) -> List[Tuple[str, datetime]]:
        """List trashed record ids with their deletion times."""
        if not self.trash_dir.is_dir():
            return []

        entries = []
        for path in self.trash_dir.glob(f"*.{self.record_extension}"):
            if path.name.startswith("."):
                continue
            try:
                deleted_at = datetime.fromtimestamp(path.stat().st_mtime, tz=timezone.utc)
            except OSError as e:
                logger.warning(f"Could not stat trashed record {path.name}: {e}")
                continue
            entries.append((path.stem, deleted_at))
        return entries

    def read_trashed(self, document_id: str) -> Document:
        return self._read_record(self.trash_path(document_id), document_id)

    def purge_from_trash(self, document_id: str) -> bool:
        """Permanently remove a trashed record and its assets."""
        path = self.trash_path(document_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            raise StorageIOError(f"Failed to purge document {document_id}: {e}")

        # Assets stay reachable while a live record with the same id exists
        if not self.exists(document_id):
            self._delete_assets(document_id)

        logger.info(f"Purged document {document_id} from trash")
        return True

    # Internal helpers

    def _read_record(self, path: Path, document_id: str) -> Document:
        try:
            data = path.read_bytes()
        except FileNotFoundError:
            raise DocumentNotFoundError(
                f"Document {document_id} not found",
                details={"document_id": document_id},
            )
        except OSError as e:
            logger.error(f"Failed to read document {document_id}: {e}")
            raise StorageIOError(
                f"Failed to read document {document_id}: {e}",
                details={"path": str(path)},
            )

        document = self.codec.decode(data)
        if document.id != document_id:
            logger.warning(
                f"Record {path.name} carries id {document.id}; using the file name"
            )
            document.id = document_id
        return document

    def _atomic_write(self, path: Path, data: bytes) -> None:
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def _delete_assets(self, document_id: str) -> None:
        asset_dir = self.asset_dir(document_id)
        if not asset_dir.is_dir():
            return
        try:
            shutil.rmtree(asset_dir)
            logger.info(f"Deleted assets for document {document_id}")
        except OSError as e:
            logger.warning(f"Failed to delete assets for {document_id}: {e}")

    @staticmethod
    def _validate_id(document_id: str) -> None:
        if (
            not document_id
            or document_id in (".", "..")
            or "/" in document_id
            or "\\" in document_id
            or document_id.startswith(".")
        ):
            raise ValidationError(
                f"Invalid document id: {document_id!r}",
                details={"document_id": document_id},
            )
