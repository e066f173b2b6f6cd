"""
Local durable storage tier.

Invariants:
    - Values are text, serialized by the caller
    - Quota violations raise QuotaExceededError without partial writes
"""

from .store import LocalStorage, MemoryLocalStorage, SqliteLocalStorage

__all__ = ["LocalStorage", "MemoryLocalStorage", "SqliteLocalStorage"]
