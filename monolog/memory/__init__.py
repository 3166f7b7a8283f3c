"""Persistence backends."""

from .store import InMemoryStorage, PreferenceStorage, SQLiteStorage, Storage

__all__ = ["Storage", "PreferenceStorage", "InMemoryStorage", "SQLiteStorage"]
