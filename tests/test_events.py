"""Tests for the event bus."""

from canvas_store.shared.events import Event, EventBus, EventType


class TestEventBus:
    """Test suite for EventBus."""
    
    def test_publish_to_subscribers(self):
        """Test delivery to subscribers of the matching type only."""
        bus = EventBus()
        loaded, folders = [], []
        bus.subscribe(EventType.DOCUMENT_LOADED, loaded.append)
        bus.subscribe(EventType.FOLDERS_UPDATED, folders.append)
        
        bus.emit(EventType.DOCUMENT_LOADED, document_id="doc-1")
        
        assert loaded == [Event(type=EventType.DOCUMENT_LOADED, document_id="doc-1")]
        assert folders == []
    
    def test_unsubscribe(self):
        """Test removing a subscription."""
        bus = EventBus()
        received = []
        unsubscribe = bus.subscribe(EventType.DOCUMENT_LIST_REFRESH, received.append)
        
        unsubscribe()
        unsubscribe()
        bus.emit(EventType.DOCUMENT_LIST_REFRESH)
        
        assert received == []
    
    def test_failing_subscriber_does_not_block_others(self, caplog):
        """Test that one subscriber raising leaves the rest unaffected."""
        bus = EventBus()
        received = []
        
        def broken(event):
            raise RuntimeError("subscriber bug")
        
        bus.subscribe(EventType.FOLDERS_UPDATED, broken)
        bus.subscribe(EventType.FOLDERS_UPDATED, received.append)
        
        bus.emit(EventType.FOLDERS_UPDATED, folder_id="f-1")
        
        assert [e.folder_id for e in received] == ["f-1"]
        assert "subscriber bug" in caplog.text
    
    def test_publish_without_subscribers(self):
        """Test that publishing with no subscribers is harmless."""
        EventBus().publish(Event(type=EventType.DOCUMENT_LOADED))
