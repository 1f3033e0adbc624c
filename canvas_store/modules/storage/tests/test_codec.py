"""Tests for the canvas record codec."""

import json
from datetime import datetime, timezone

import pytest

from canvas_store.modules.storage.codec import DocumentCodec
from canvas_store.modules.storage.models import (
    Document,
    DocumentElement,
    DocumentLink,
    DocumentMarker,
    DocumentSeries,
    DocumentVariation,
    ElementType,
)
from canvas_store.shared.exceptions import CorruptRecordError


@pytest.fixture
def codec():
    return DocumentCodec()


@pytest.fixture
def full_document():
    """A document with every optional field filled in."""
    presented = datetime(2024, 5, 12, 10, 30, tzinfo=timezone.utc)
    return Document(
        id="doc-full",
        title="The Good Shepherd",
        subtitle="John 10",
        elements=[
            DocumentElement(type=ElementType.HEADER_IMAGE, content="shepherd.jpg"),
            DocumentElement(type=ElementType.TEXT_BLOCK, content="I am the good shepherd.", placeholder="Start writing"),
            DocumentElement(type=ElementType.SCRIPTURE, content="John 10:11"),
            DocumentElement(type=ElementType.DROPDOWN, options=["a", "b"]),
        ],
        series=DocumentSeries(name="I Am", documents=["doc-full", "doc-2"], order=1),
        variations=[
            DocumentVariation(
                name="Evening",
                document_id="doc-var",
                parent_document_id="doc-full",
                date_presented=presented,
                location="Main campus",
            )
        ],
        markers=[DocumentMarker(title="Point 1", type="bookmark", position=42, metadata={"color": "blue"})],
        tags=["gospels"],
        links=[DocumentLink(title="Notes", url="https://example.com/notes")],
        summary="Jesus as the shepherd",
        metadata={"location": "Main campus", "attendance": 120},
        is_header_expanded=True,
        is_subtitle_visible=False,
    )


class TestDocumentCodec:
    """Test suite for DocumentCodec."""
    
    def test_round_trip(self, codec, full_document):
        """Test that decode inverts encode field for field."""
        decoded = codec.decode(codec.encode(full_document))
        
        assert decoded == full_document
        assert [e.content for e in decoded.elements] == [e.content for e in full_document.elements]
    
    def test_round_trip_minimal(self, codec):
        """Test round trip of a document with defaults only."""
        doc = Document(id="doc-min")
        assert codec.decode(codec.encode(doc)) == doc
    
    def test_encoded_keys_are_camel_case(self, codec, full_document):
        """Test the on-disk key format."""
        payload = json.loads(codec.encode(full_document))
        
        assert payload["isHeaderExpanded"] is True
        assert payload["variations"][0]["datePresented"].startswith("2024-05-12")
        assert payload["elements"][0]["type"] == "headerImage"
    
    def test_missing_optional_fields(self, codec):
        """Test decoding a record written before most fields existed."""
        doc = codec.decode(b'{"id": "old-doc", "title": "Legacy"}')
        
        assert doc.id == "old-doc"
        assert doc.title == "Legacy"
        assert doc.elements == []
        assert doc.is_subtitle_visible is True
    
    def test_unknown_fields_ignored(self, codec):
        """Test decoding a record with fields this version does not know."""
        data = json.dumps({
            "id": "new-doc",
            "schemaVersion": 99,
            "futureFeature": {"enabled": True},
            "elements": [{"type": "textBlock", "content": "Hi", "fontWeight": 700}],
        }).encode()
        
        doc = codec.decode(data)
        
        assert doc.id == "new-doc"
        assert doc.elements[0].content == "Hi"
    
    def test_newer_schema_version_logged(self, codec, caplog):
        """Test that a newer schema version is reported."""
        codec.decode(b'{"id": "new-doc", "schemaVersion": 99}')
        assert "newer than" in caplog.text
    
    @pytest.mark.parametrize("data", [
        b"",
        b"not json",
        b"\xff\xfe\x00",
        b"[1, 2, 3]",
        b'{"title": "no id"}',
        b'{"id": "doc", "elements": "not a list"}',
    ])
    def test_corrupt_records(self, codec, data):
        """Test that undecodable bytes raise CorruptRecordError."""
        with pytest.raises(CorruptRecordError):
            codec.decode(data)
