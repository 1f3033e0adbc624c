"""FastAPI router for document and search operations."""

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from loguru import logger

from canvas_store.modules.search.models import SearchResults
from canvas_store.shared.exceptions import SearchCancelledError
from .models import DeletedDocument, Document, DocumentSummary
from .storage_manager import StorageManager

router = APIRouter(tags=["storage"])

# Dependency to get storage manager
_storage_manager = None


def get_storage_manager() -> StorageManager:
    """Get storage manager instance."""
    global _storage_manager
    if _storage_manager is None:
        _storage_manager = StorageManager()
    return _storage_manager


@router.get("/documents", response_model=List[DocumentSummary])
async def list_documents(
    storage: StorageManager = Depends(get_storage_manager),
):
    """List every document, most recently modified first."""
    return await storage.list_documents()


@router.post("/documents", response_model=Document, status_code=201)
async def create_document(
    title: str = Body("", embed=True),
    storage: StorageManager = Depends(get_storage_manager),
):
    """Create an empty document with a fresh id."""
    return await storage.create_document(title=title)


@router.get("/documents/{document_id}", response_model=Document)
async def get_document(
    document_id: str,
    storage: StorageManager = Depends(get_storage_manager),
):
    """Get document by ID."""
    return await storage.load_document(document_id)


@router.put("/documents/{document_id}", response_model=Document)
async def save_document(
    document_id: str,
    document: Document = Body(...),
    storage: StorageManager = Depends(get_storage_manager),
):
    """Save a document under its id."""
    if document.id != document_id:
        raise HTTPException(status_code=400, detail="Document id does not match the path")
    return await storage.save_document(document)


@router.delete("/documents/{document_id}")
async def delete_document(
    document_id: str,
    permanent: bool = Query(False, description="Skip the trash"),
    storage: StorageManager = Depends(get_storage_manager),
):
    """Delete document (to the trash unless permanent)."""
    deleted = await storage.delete_document(document_id, permanent=permanent)
    return {"deleted": deleted}


@router.post("/documents/{document_id}/variations", response_model=Document, status_code=201)
async def create_variation(
    document_id: str,
    name: str = Body(..., embed=True),
    location: Optional[str] = Body(None, embed=True),
    storage: StorageManager = Depends(get_storage_manager),
):
    """Create a variation of a document."""
    return await storage.create_variation(document_id, name, location=location)


@router.get("/trash", response_model=List[DeletedDocument])
async def list_deleted_documents(
    storage: StorageManager = Depends(get_storage_manager),
):
    """List recently deleted documents."""
    return await storage.list_deleted_documents()


@router.post("/trash/{document_id}/restore", response_model=Document)
async def restore_document(
    document_id: str,
    storage: StorageManager = Depends(get_storage_manager),
):
    """Restore a document from the trash."""
    return await storage.restore_document(document_id)


@router.delete("/trash")
async def empty_trash(
    storage: StorageManager = Depends(get_storage_manager),
):
    """Permanently delete everything in the trash."""
    return {"purged": await storage.empty_trash()}


@router.get("/search", response_model=SearchResults)
async def search_documents(
    q: str = Query("", description="Search text"),
    storage: StorageManager = Depends(get_storage_manager),
):
    """Search titles, series and content; newer queries supersede older ones."""
    try:
        return await storage.search(q)
    except SearchCancelledError as e:
        logger.debug(f"Search superseded: {e.message}")
        raise HTTPException(status_code=409, detail=e.message)
