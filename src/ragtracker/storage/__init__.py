"""RAG Tracker storage layer."""

from ragtracker.storage.base import StorageBackend
from ragtracker.storage.sqlite_store import SQLiteStore

__all__ = ["SQLiteStore", "StorageBackend"]
