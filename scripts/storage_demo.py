#!/usr/bin/env python3
"""Demonstration of the canvas store: save, load, search and folders."""

import asyncio
import tempfile
from pathlib import Path

from PIL import Image

from canvas_store.api.config import Settings
from canvas_store.modules.search.models import SearchCategory
from canvas_store.modules.storage.models import (
    Document,
    DocumentElement,
    DocumentSeries,
    ElementType,
)
from canvas_store.modules.storage.storage_manager import StorageManager
from canvas_store.shared.events import EventType


async def demo_storage(storage_dir: Path):
    """Walk through the main operations against a scratch directory."""
    print("\n🎯 Canvas Store Demonstration")
    print("=" * 60)
    
    settings = Settings(storage_dir=storage_dir, log_dir=storage_dir / "logs")
    manager = StorageManager(storage_dir=storage_dir, settings=settings, search_debounce_seconds=0)
    manager.events.subscribe(EventType.DOCUMENT_LOADED, lambda e: print(f"   📣 loaded {e.document_id}"))
    
    # Header image asset
    image_path = manager.store.image_path("advent-1", "candles.png")
    image_path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", (640, 360), color="purple").save(image_path)
    
    documents = [
        Document(
            id="advent-1",
            title="Hope",
            subtitle="Isaiah 9:2-7",
            series=DocumentSeries(name="Advent"),
            is_header_expanded=True,
            elements=[
                DocumentElement(type=ElementType.HEADER_IMAGE, content="candles.png"),
                DocumentElement(content="The people walking in darkness have seen a great light."),
            ],
        ),
        Document(
            id="advent-2",
            title="Peace",
            series=DocumentSeries(name="Advent"),
            elements=[DocumentElement(content="Prince of Peace")],
        ),
        Document(id="lent-1", title="Ashes", elements=[DocumentElement(content="hope beyond the dust")]),
    ]
    
    print("\n💾 Saving documents:")
    for doc in documents:
        await manager.save_document(doc)
        print(f"   ✅ {doc.id} → {manager.store.record_path(doc.id).name}")
    
    print("\n📂 Loading with header preload:")
    manager.document_cache.clear()
    doc = await manager.load_document("advent-1")
    image = manager.image_cache.get(doc.header_image_key())
    print(f"   ✅ {doc.title}: header image {image.size if image else 'missing'}")
    
    print("\n🔍 Searching for 'hope':")
    results = await manager.search("hope")
    for category in SearchCategory:
        group = results.group(category)
        if group:
            print(f"   • {category.value}: {[d.id for d in group.documents]}")
    print(f"   Scanned {results.scanned_count} document(s) in {results.search_time_ms:.1f}ms")
    
    print("\n🗂️  Folders:")
    sermons = await manager.add_folder("Sermons")
    advent = await manager.add_folder("Advent", parent_id=sermons.id)
    await manager.add_document_to_folder(advent.id, "advent-1")
    await manager.add_document_to_folder(advent.id, "advent-2")
    for folder in await manager.list_folders():
        indent = "   " if folder.is_root else "      "
        print(f"{indent}📁 {folder.name} {sorted(folder.document_ids)}")
    
    print("\n🗑️  Trash:")
    await manager.delete_document("lent-1")
    for entry in await manager.list_deleted_documents():
        print(f"   • {entry.document.id} ({entry.days_remaining} days remaining)")
    await manager.restore_document("lent-1")
    print(f"   ✅ Restored, {len(await manager.list_documents())} document(s) listed")
    
    print("\n✅ Canvas store demonstration complete!")


if __name__ == "__main__":
    with tempfile.TemporaryDirectory() as temp_dir:
        asyncio.run(demo_storage(Path(temp_dir)))
