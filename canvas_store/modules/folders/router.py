"""FastAPI router for folder operations."""

from typing import List

from fastapi import APIRouter, Body, Depends

from canvas_store.modules.storage.router import get_storage_manager
from canvas_store.modules.storage.storage_manager import StorageManager
from .models import Folder, FolderCreateRequest, FolderMoveRequest, FolderRenameRequest

router = APIRouter(tags=["folders"])


@router.get("/folders", response_model=List[Folder])
async def list_folders(
    storage: StorageManager = Depends(get_storage_manager),
):
    """List all folders, each followed by its subtree."""
    return await storage.list_folders()


@router.post("/folders", response_model=Folder, status_code=201)
async def add_folder(
    request: FolderCreateRequest = Body(...),
    storage: StorageManager = Depends(get_storage_manager),
):
    """Create a folder at the root or under a parent."""
    return await storage.add_folder(request.name, request.parent_id)


@router.patch("/folders/{folder_id}", response_model=Folder)
async def rename_folder(
    folder_id: str,
    request: FolderRenameRequest = Body(...),
    storage: StorageManager = Depends(get_storage_manager),
):
    """Rename a folder."""
    return await storage.rename_folder(folder_id, request.name)


@router.post("/folders/{folder_id}/move", response_model=Folder)
async def move_folder(
    folder_id: str,
    request: FolderMoveRequest = Body(...),
    storage: StorageManager = Depends(get_storage_manager),
):
    """Move a folder under another parent."""
    return await storage.move_folder(folder_id, request.parent_id)


@router.delete("/folders/{folder_id}")
async def delete_folder(
    folder_id: str,
    storage: StorageManager = Depends(get_storage_manager),
):
    """Delete a folder and its subfolders; documents are kept."""
    return {"deleted_folders": await storage.delete_folder(folder_id)}


@router.put("/folders/{folder_id}/documents/{document_id}")
async def add_document_to_folder(
    folder_id: str,
    document_id: str,
    storage: StorageManager = Depends(get_storage_manager),
):
    """Add a document to a folder."""
    await storage.add_document_to_folder(folder_id, document_id)
    return {"folder_id": folder_id, "document_id": document_id}


@router.delete("/folders/{folder_id}/documents/{document_id}")
async def remove_document_from_folder(
    folder_id: str,
    document_id: str,
    storage: StorageManager = Depends(get_storage_manager),
):
    """Remove a document from a folder."""
    removed = await storage.remove_document_from_folder(folder_id, document_id)
    return {"removed": removed}


@router.get("/documents/{document_id}/folders", response_model=List[Folder])
async def folders_containing(
    document_id: str,
    storage: StorageManager = Depends(get_storage_manager),
):
    """List the folders a document belongs to."""
    return await storage.folders_containing(document_id)
