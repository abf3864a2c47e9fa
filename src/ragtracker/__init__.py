"""RAG Tracker: weekly project health reporting."""

__version__ = "0.1.0"
