"""RAG Tracker event system."""

from ragtracker.events.bus import EventBus
from ragtracker.events.types import EventType

__all__ = ["EventBus", "EventType"]
