"""
Cairn Store - persistence for list items.
"""

from .base import ItemStore
from .sqlite import SQLiteItemStore, parse_sqlite_url


def create_store(url: str) -> ItemStore:
    """Build an item store from a database URL."""
    if url.startswith("sqlite:"):
        return SQLiteItemStore(url)
    raise ValueError(f"Unsupported database URL: {url}")


__all__ = ["ItemStore", "SQLiteItemStore", "create_store", "parse_sqlite_url"]
