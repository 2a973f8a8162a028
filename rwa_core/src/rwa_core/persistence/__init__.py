"""Persistence layer for RWA-Core."""

from rwa_core.persistence.store import (
    MemoryStore,
    RedisStore,
    StateStore,
    StoreConnectionError,
    create_store,
)

__all__ = [
    "StateStore",
    "RedisStore",
    "MemoryStore",
    "StoreConnectionError",
    "create_store",
]
