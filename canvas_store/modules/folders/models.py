"""Data models for the folder index."""

from typing import List, Optional, Set
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class Folder(BaseModel):
    """A node in the folder forest.

    Children are referenced by id. ``document_ids`` records membership only;
    a listed id need not resolve to an existing document.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid4()))
    name: str
    parent_id: Optional[str] = None  # None = root
    subfolder_ids: List[str] = Field(default_factory=list)
    document_ids: Set[str] = Field(default_factory=set)
    is_editing: bool = False

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    @field_serializer("document_ids")
    def _serialize_document_ids(self, document_ids: Set[str]) -> List[str]:
        return sorted(document_ids)


class FolderCreateRequest(BaseModel):
    """Request to create a folder."""
    name: str
    parent_id: Optional[str] = None


class FolderRenameRequest(BaseModel):
    """Request to rename a folder."""
    name: str


class FolderMoveRequest(BaseModel):
    """Request to move a folder under another parent (None = root)."""
    parent_id: Optional[str] = None
