"""Data models for the storage module.

Records are persisted as camelCase JSON. Every field except ``id`` carries a
default so that records written before a field existed still decode.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


CURRENT_SCHEMA_VERSION = 1


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class CanvasModel(BaseModel):
    """Base for everything stored inside a canvas record."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ElementType(str, Enum):
    """Kinds of content blocks in a document."""
    HEADER = "header"
    TITLE = "title"
    HEADER_IMAGE = "headerImage"
    IMAGE = "image"
    TEXT_BLOCK = "textBlock"
    DROPDOWN = "dropdown"
    DATE = "date"
    MULTI_SELECT = "multiSelect"
    CHART = "chart"
    SIGNATURE = "signature"
    TABLE = "table"
    SCRIPTURE = "scripture"


class DocumentElement(CanvasModel):
    """A single content block. For header images ``content`` is a filename."""
    id: str = Field(default_factory=new_id)
    type: ElementType = ElementType.TEXT_BLOCK
    content: str = ""
    placeholder: str = ""
    options: List[str] = Field(default_factory=list)
    date: Optional[datetime] = None


class DocumentMarker(CanvasModel):
    """Tagged position in a document, e.g. a bookmark."""
    id: str = Field(default_factory=new_id)
    title: str = ""
    type: str = ""
    position: int = 0
    metadata: Optional[Dict[str, str]] = None


class DocumentSeries(CanvasModel):
    """Named grouping a document belongs to."""
    id: str = Field(default_factory=new_id)
    name: str = ""

    # Ordered ids of the documents in the series
    documents: List[str] = Field(default_factory=list)
    order: int = 0


class DocumentVariation(CanvasModel):
    """Record of an alternate version of a document."""
    id: str = Field(default_factory=new_id)
    name: str = ""
    document_id: str = ""
    parent_document_id: str = ""
    created_at: datetime = Field(default_factory=utc_now)

    # Presentation details used by calendar and history views
    date_presented: Optional[datetime] = None
    location: Optional[str] = None
    service_time: Optional[str] = None
    notes: Optional[str] = None


class DocumentLink(CanvasModel):
    """External link attached to a document."""
    id: str = Field(default_factory=new_id)
    title: str = ""
    url: str = ""
    created_at: datetime = Field(default_factory=utc_now)


class Document(CanvasModel):
    """The unit of persistence: one canvas record."""
    # Identifiers
    id: str
    schema_version: int = CURRENT_SCHEMA_VERSION

    # Display strings (an empty title is shown as "Untitled" by consumers)
    title: str = ""
    subtitle: str = ""

    # Content, order is significant
    elements: List[DocumentElement] = Field(default_factory=list)

    # Structured metadata
    series: Optional[DocumentSeries] = None
    variations: List[DocumentVariation] = Field(default_factory=list)
    is_variation: bool = False
    parent_variation_id: Optional[str] = None
    markers: List[DocumentMarker] = Field(default_factory=list)
    tags: Optional[List[str]] = None
    links: List[DocumentLink] = Field(default_factory=list)
    summary: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None

    # Timestamps
    created_at: datetime = Field(default_factory=utc_now)
    modified_at: datetime = Field(default_factory=utc_now)

    # Presentation flags carried through for the UI
    is_header_expanded: bool = False
    is_subtitle_visible: bool = True

    def header_image(self) -> Optional[DocumentElement]:
        """First header image element with a filename, if any."""
        for element in self.elements:
            if element.type == ElementType.HEADER_IMAGE and element.content:
                return element
        return None

    def header_image_key(self) -> Optional[str]:
        """Composite image cache key for the header image."""
        element = self.header_image()
        if element is None:
            return None
        return f"{self.id}_{element.content}"


class DocumentSummary(CanvasModel):
    """Lightweight listing entry for the all-documents view."""
    id: str
    title: str
    subtitle: str
    series_name: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    is_variation: bool = False
    created_at: datetime
    modified_at: datetime

    @classmethod
    def from_document(cls, document: Document) -> "DocumentSummary":
        return cls(
            id=document.id,
            title=document.title,
            subtitle=document.subtitle,
            series_name=document.series.name if document.series else None,
            tags=document.tags or [],
            is_variation=document.is_variation,
            created_at=document.created_at,
            modified_at=document.modified_at,
        )


class DeletedDocument(CanvasModel):
    """A document sitting in the trash."""
    document: Document
    deleted_at: datetime
    days_remaining: int
