"""Tests for the document loader."""

import asyncio
import tempfile
import time
from pathlib import Path

import pytest
from PIL import Image

from canvas_store.modules.cache import DocumentCache, ImageCache, decode_image
from canvas_store.modules.loader.document_loader import DocumentLoader
from canvas_store.modules.storage.document_store import DocumentStore
from canvas_store.modules.storage.models import Document, DocumentElement, ElementType
from canvas_store.shared.events import EventBus, EventType
from canvas_store.shared.exceptions import CorruptRecordError, DocumentNotFoundError


class SlowDecoder:
    """Image decoder that records its calls and takes a while."""
    
    def __init__(self, delay=0.05):
        self.delay = delay
        self.calls = []
    
    def __call__(self, path):
        self.calls.append(path)
        time.sleep(self.delay)
        return decode_image(path)


def header_document(doc_id="doc-1", filename="header.png", expanded=True):
    return Document(
        id=doc_id,
        title="With header",
        is_header_expanded=expanded,
        elements=[
            DocumentElement(type=ElementType.HEADER_IMAGE, content=filename),
            DocumentElement(type=ElementType.TEXT_BLOCK, content="Body"),
        ],
    )


class TestDocumentLoader:
    """Test suite for DocumentLoader."""
    
    @pytest.fixture
    def store(self):
        """Create a store in a temporary directory."""
        with tempfile.TemporaryDirectory() as temp_dir:
            yield DocumentStore(Path(temp_dir) / "documents")
    
    @pytest.fixture
    def decoder(self):
        return SlowDecoder()
    
    @pytest.fixture
    def loader(self, store, decoder):
        """Create a loader with fresh caches and an event bus."""
        return DocumentLoader(
            store,
            DocumentCache(),
            ImageCache(),
            events=EventBus(),
            image_decoder=decoder,
        )
    
    def write_image(self, store, doc_id="doc-1", filename="header.png"):
        path = store.image_path(doc_id, filename)
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", (16, 9), color="green").save(path)
        return path
    
    @pytest.mark.asyncio
    async def test_load_from_disk(self, loader, store):
        """Test a cold load populates the document cache."""
        store.write(Document(id="doc-1", title="Cold"))
        
        doc = await loader.load("doc-1")
        
        assert doc.title == "Cold"
        assert loader.document_cache.get("doc-1") == doc
    
    @pytest.mark.asyncio
    async def test_load_prefers_cache(self, loader, store):
        """Test that a cached document is returned without reading disk."""
        loader.document_cache.put("doc-1", Document(id="doc-1", title="Cached"))
        
        doc = await loader.load("doc-1")
        
        assert doc.title == "Cached"
        assert not store.exists("doc-1")
    
    @pytest.mark.asyncio
    async def test_header_image_ready_before_return(self, loader, store, decoder):
        """Test that an expanded header's image is cached when load returns."""
        store.write(header_document())
        self.write_image(store)
        
        await loader.load("doc-1")
        
        assert loader.image_cache.get("doc-1_header.png") is not None
        assert loader.image_cache.get("header.png") is not None
        assert len(decoder.calls) == 1
    
    @pytest.mark.asyncio
    async def test_composite_key_survives_cost_limit(self, store, decoder):
        """Test that the composite key is resident even when only one copy fits."""
        loader = DocumentLoader(
            store, DocumentCache(), ImageCache(cost_limit=1000), image_decoder=decoder
        )
        store.write(header_document())
        path = store.image_path("doc-1", "header.png")
        path.parent.mkdir(parents=True, exist_ok=True)
        Image.new("RGB", (12, 12), color="green").save(path)
        
        await loader.load("doc-1")
        
        assert "doc-1_header.png" in loader.image_cache
        assert loader.image_cache.total_cost <= 1000
    
    @pytest.mark.asyncio
    async def test_header_image_owned_by_document(self, loader, store):
        """Test that the preloaded composite key is dropped with its document."""
        store.write(header_document())
        self.write_image(store)
        
        await loader.load("doc-1")
        
        assert loader.image_cache.remove_document("doc-1") == 1
        assert "header.png" in loader.image_cache
    
    @pytest.mark.asyncio
    async def test_collapsed_header_is_not_preloaded(self, loader, store, decoder):
        """Test that a collapsed header leaves the image cache alone."""
        store.write(header_document(expanded=False))
        self.write_image(store)
        
        await loader.load("doc-1")
        
        assert len(loader.image_cache) == 0
        assert decoder.calls == []
    
    @pytest.mark.asyncio
    async def test_cache_hit_reloads_evicted_image(self, loader, store, decoder):
        """Test that a cache hit still makes sure the header image is resident."""
        self.write_image(store)
        loader.document_cache.put("doc-1", header_document())
        
        await loader.load("doc-1")
        loader.image_cache.clear()
        await loader.load("doc-1")
        
        assert "doc-1_header.png" in loader.image_cache
        assert len(decoder.calls) == 2
    
    @pytest.mark.asyncio
    async def test_missing_image_is_not_fatal(self, loader, store, caplog):
        """Test that a missing header image does not fail the load."""
        store.write(header_document())
        
        doc = await loader.load("doc-1")
        
        assert doc.title == "With header"
        assert len(loader.image_cache) == 0
        assert "Header image unavailable" in caplog.text
    
    @pytest.mark.asyncio
    async def test_not_found(self, loader):
        """Test that loading an unknown id raises and caches nothing."""
        with pytest.raises(DocumentNotFoundError):
            await loader.load("missing")
        
        assert "missing" not in loader.document_cache
        assert loader._in_flight == {}
    
    @pytest.mark.asyncio
    async def test_corrupt(self, loader, store):
        """Test that a corrupt record raises and caches nothing."""
        store.documents_dir.mkdir(parents=True)
        store.record_path("broken").write_bytes(b"{")
        
        with pytest.raises(CorruptRecordError):
            await loader.load("broken")
        
        assert "broken" not in loader.document_cache
    
    @pytest.mark.asyncio
    async def test_retry_after_failure(self, loader, store):
        """Test that a failed load is not remembered."""
        with pytest.raises(DocumentNotFoundError):
            await loader.load("doc-1")
        
        store.write(Document(id="doc-1", title="Appeared"))
        
        assert (await loader.load("doc-1")).title == "Appeared"
    
    @pytest.mark.asyncio
    async def test_concurrent_loads_share_work(self, loader, store, decoder, monkeypatch):
        """Test that concurrent loads of one id read and decode once."""
        store.write(header_document())
        self.write_image(store)
        reads = []
        original_read = store.read
        
        def counting_read(document_id):
            reads.append(document_id)
            time.sleep(0.05)
            return original_read(document_id)
        
        monkeypatch.setattr(store, "read", counting_read)
        
        docs = await asyncio.gather(*(loader.load("doc-1") for _ in range(5)))
        
        assert len(reads) == 1
        assert len(decoder.calls) == 1
        assert all(doc == docs[0] for doc in docs)
        assert len({id(doc) for doc in docs}) == 5
    
    @pytest.mark.asyncio
    async def test_cancelled_waiter_does_not_cancel_load(self, loader, store, decoder):
        """Test that the shared load finishes when one waiter is cancelled."""
        store.write(header_document())
        self.write_image(store)
        decoder.delay = 0.2
        
        first = asyncio.ensure_future(loader.load("doc-1"))
        await asyncio.sleep(0.05)
        first.cancel()
        
        doc = await loader.load("doc-1")
        
        assert first.cancelled()
        assert doc.id == "doc-1"
        assert len(decoder.calls) == 1
        assert "doc-1_header.png" in loader.image_cache
    
    @pytest.mark.asyncio
    async def test_invalidate_discards_stale_load(self, loader, store, monkeypatch):
        """Test that a load started before a save cannot overwrite it."""
        store.write(Document(id="doc-1", title="Old on disk"))
        original_read = store.read
        
        def slow_read(document_id):
            time.sleep(0.1)
            return original_read(document_id)
        
        monkeypatch.setattr(store, "read", slow_read)
        
        pending = asyncio.ensure_future(loader.load("doc-1"))
        await asyncio.sleep(0.02)
        loader.invalidate("doc-1")
        loader.document_cache.put("doc-1", Document(id="doc-1", title="Just saved"))
        
        doc = await pending
        
        assert doc.title == "Just saved"
        assert loader.document_cache.get("doc-1").title == "Just saved"
        assert loader._versions == {}
        assert loader._running == {}
    
    @pytest.mark.asyncio
    async def test_version_tracking_does_not_grow(self, loader, store):
        """Test that invalidating ids with no running load leaves no state."""
        for i in range(20):
            store.write(Document(id=f"doc-{i}"))
            loader.invalidate(f"doc-{i}")
            await loader.load(f"doc-{i}")
            loader.invalidate(f"doc-{i}")
        
        assert loader._versions == {}
        assert loader._running == {}
        assert loader._in_flight == {}
    
    @pytest.mark.asyncio
    async def test_emits_document_loaded(self, loader, store):
        """Test that every successful load emits an event."""
        received = []
        loader.events.subscribe(EventType.DOCUMENT_LOADED, received.append)
        store.write(Document(id="doc-1"))
        
        await loader.load("doc-1")
        await loader.load("doc-1")
        
        assert [e.document_id for e in received] == ["doc-1", "doc-1"]
    
    @pytest.mark.asyncio
    async def test_no_event_on_failure(self, loader):
        """Test that a failed load emits nothing."""
        received = []
        loader.events.subscribe(EventType.DOCUMENT_LOADED, received.append)
        
        with pytest.raises(DocumentNotFoundError):
            await loader.load("missing")
        
        assert received == []
