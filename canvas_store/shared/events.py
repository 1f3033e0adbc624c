"""Typed event channel between the store and its consumers."""

from collections import defaultdict
from enum import Enum
from threading import Lock
from typing import Callable, Dict, List, Optional

from loguru import logger
from pydantic import BaseModel


class EventType(str, Enum):
    """Signals emitted by the store."""
    DOCUMENT_LOADED = "document_loaded"
    DOCUMENT_LIST_REFRESH = "document_list_refresh"
    FOLDERS_UPDATED = "folders_updated"


class Event(BaseModel):
    """Something changed; consumers decide what to do about it."""
    type: EventType
    document_id: Optional[str] = None
    folder_id: Optional[str] = None


Subscriber = Callable[[Event], None]


class EventBus:
    """Observer registry with synchronous, fire-and-forget delivery."""
    
    def __init__(self):
        self._subscribers: Dict[EventType, List[Subscriber]] = defaultdict(list)
        self._lock = Lock()
    
    def subscribe(self, event_type: EventType, callback: Subscriber) -> Callable[[], None]:
        """Register a callback for one event type.
        
        Returns:
            A function that removes the registration again
        """
        with self._lock:
            self._subscribers[event_type].append(callback)
        
        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers[event_type]:
                    self._subscribers[event_type].remove(callback)
        
        return unsubscribe
    
    def publish(self, event: Event) -> None:
        """Deliver an event to every subscriber of its type."""
        with self._lock:
            subscribers = list(self._subscribers[event.type])
        
        logger.debug(f"Publishing {event.type.value} to {len(subscribers)} subscriber(s)")
        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                logger.exception(f"Subscriber for {event.type.value} failed: {e}")
    
    def emit(self, event_type: EventType, **payload) -> None:
        """Shorthand for publishing an event built from keyword arguments."""
        self.publish(Event(type=event_type, **payload))
