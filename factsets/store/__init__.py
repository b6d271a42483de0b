"""SQLite persistence for resources, facts, skills and configuration."""

from factsets.store.sqlite_store import SQLiteKnowledgeStore, StoreError

__all__ = ["SQLiteKnowledgeStore", "StoreError"]
