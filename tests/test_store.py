"""Tests for the persistence layer.

Tests cover:
- MemoryStore key-value, model and counter operations
- Append-only lists with Redis LRANGE semantics
- Atomic multi-model saves and prefix scans
- Store factory fallback
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from rwa_core.assets.models import TokenizationRecord
from rwa_core.ledger import generate_address
from rwa_core.persistence.store import (
    MemoryStore,
    StateStore,
    StoreConnectionError,
    create_store,
)


def _record(asset_id: str = "asset-1") -> TokenizationRecord:
    return TokenizationRecord(
        asset_id=asset_id,
        currency_code="ABC",
        total_supply=Decimal(100),
        available_supply=Decimal(100),
        issuer_address=generate_address(),
        transaction_hash="HASH",
    )


# ==============================================================================
# Memory Store Tests
# ==============================================================================
class TestMemoryStore:
    """Tests for MemoryStore."""

    def test_implements_protocol(self) -> None:
        """MemoryStore satisfies the StateStore protocol."""
        assert isinstance(MemoryStore(), StateStore)

    def test_set_get_delete(self) -> None:
        """Test basic raw value operations."""
        store = MemoryStore()
        store.set("key", "value")
        assert store.get("key") == "value"
        assert store.exists("key")
        store.delete("key")
        assert store.get("key") is None
        assert not store.exists("key")

    def test_model_round_trip(self) -> None:
        """Models are stored as JSON and validated on load."""
        store = MemoryStore()
        record = _record()
        store.save("token:1", record)
        loaded = store.load("token:1", TokenizationRecord)
        assert loaded.model_dump() == record.model_dump()
        assert store.load("missing", TokenizationRecord) is None

    def test_corrupt_model_skipped(self) -> None:
        """Undecodable entries load as None instead of raising."""
        store = MemoryStore()
        store.set("token:bad", "{not json")
        store.save("token:good", _record())
        assert store.load("token:bad", TokenizationRecord) is None
        assert len(store.load_many(["token:bad", "token:good", "token:none"], TokenizationRecord)) == 1

    def test_save_atomic(self) -> None:
        """All models of an atomic save are visible together."""
        store = MemoryStore()
        store.save_atomic({"a": _record("a"), "b": _record("b")})
        assert store.load("a", TokenizationRecord).asset_id == "a"
        assert store.load("b", TokenizationRecord).asset_id == "b"

    def test_increment(self) -> None:
        """Counters start at zero."""
        store = MemoryStore()
        assert store.increment("counter") == 1
        assert store.increment("counter", 5) == 6
        assert store.get("counter") == "6"

    def test_list_range(self) -> None:
        """Lists follow LRANGE semantics (inclusive end, negative from the tail)."""
        store = MemoryStore()
        for item in ("a", "b", "c", "d"):
            store.append("items", item)

        assert store.list_range("items") == ["a", "b", "c", "d"]
        assert store.list_range("items", 1, 2) == ["b", "c"]
        assert store.list_range("items", -2, -1) == ["c", "d"]
        assert store.list_range("items", -10, -1) == ["a", "b", "c", "d"]
        assert store.list_range("missing") == []

    def test_scan(self) -> None:
        """Scan returns keys and lists under a prefix."""
        store = MemoryStore()
        store.set("asset:1", "x")
        store.set("order:1", "y")
        store.append("asset:owner:w", "1")
        assert sorted(store.scan("asset:")) == ["asset:1", "asset:owner:w"]


# ==============================================================================
# Factory Tests
# ==============================================================================
class TestCreateStore:
    """Tests for create_store."""

    def test_memory_when_redis_disabled(self) -> None:
        """use_redis=False always yields a MemoryStore."""
        assert isinstance(create_store(use_redis=False), MemoryStore)

    def test_fallback_when_unreachable(self) -> None:
        """Unreachable Redis falls back to memory when allowed."""
        store = create_store(redis_url="redis://127.0.0.1:1/0", use_redis=True)
        assert isinstance(store, MemoryStore)

    def test_fail_fast_without_fallback(self) -> None:
        """Unreachable Redis raises when fallback is disabled."""
        with pytest.raises(StoreConnectionError):
            create_store(
                redis_url="redis://127.0.0.1:1/0",
                use_redis=True,
                fallback_to_memory=False,
            )
