"""State persistence layer for RWA-Core.

Provides abstraction over storage backends (Redis, in-memory) for
persisting assets, tokenization records, orders and trade histories.

Design Decisions:
- Protocol-based interface: services only see the key-value contract
- Pydantic JSON serialization for all entities
- Append-only lists for per-wallet histories and owner indexes
- Multi-key saves go through save_atomic so an asset and its token record
  never diverge
- Fail-fast on production (Redis required), graceful fallback in dev
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, TypeVar, runtime_checkable

import structlog
from pydantic import BaseModel, ValidationError

if TYPE_CHECKING:
    from collections.abc import Iterable

log = structlog.get_logger()

T = TypeVar("T", bound=BaseModel)


# ==============================================================================
# State Store Protocol
# ==============================================================================
@runtime_checkable
class StateStore(Protocol):
    """Protocol for state persistence backends.

    Implementations must support:
    - Key-value storage for raw strings and Pydantic models
    - Atomic multi-key model saves
    - Append-only lists (histories, indexes)
    - Prefix scans (statistics)
    - Atomic counters
    """

    def save(self, key: str, model: BaseModel, ttl_seconds: int | None = None) -> None:
        """Persist a Pydantic model."""
        ...

    def load(self, key: str, model_cls: type[T]) -> T | None:
        """Load a Pydantic model by key."""
        ...

    def save_atomic(self, models: dict[str, BaseModel]) -> None:
        """Persist several models in one step."""
        ...

    def load_many(self, keys: Iterable[str], model_cls: type[T]) -> list[T]:
        """Load several models, skipping missing or corrupt keys."""
        ...

    def delete(self, key: str) -> None:
        """Delete a key."""
        ...

    def exists(self, key: str) -> bool:
        """Check if key exists."""
        ...

    def get(self, key: str) -> str | None:
        """Get raw string value."""
        ...

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Set raw string value."""
        ...

    def increment(self, key: str, amount: int = 1) -> int:
        """Atomically increment a counter."""
        ...

    def append(self, key: str, value: str) -> int:
        """Append to a list, returning its new length."""
        ...

    def list_range(self, key: str, start: int = 0, end: int = -1) -> list[str]:
        """Read a slice of a list (inclusive end, Redis semantics)."""
        ...

    def scan(self, prefix: str) -> list[str]:
        """List keys starting with prefix."""
        ...


# ==============================================================================
# Custom Exceptions
# ==============================================================================
class StoreConnectionError(Exception):
    """Raised when store connection fails."""


def _decode(key: str, data: str | None, model_cls: type[T]) -> T | None:
    if data is None:
        return None
    try:
        return model_cls.model_validate_json(data)
    except ValidationError as e:
        log.error("Failed to deserialize model", key=key, model=model_cls.__name__, error=str(e))
        return None


# ==============================================================================
# Redis Store
# ==============================================================================
class RedisStore:
    """Redis-backed persistence.

    Features:
    - Connection check on startup
    - MULTI/EXEC pipelines for multi-key saves
    - Redis lists for append-only histories
    - SCAN-based prefix listing

    Attributes:
        redis_url: Redis connection URL.
        client: Redis client instance.
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        connection_timeout: float = 5.0,
        socket_timeout: float = 5.0,
    ) -> None:
        """Initialize Redis connection.

        Args:
            redis_url: Redis connection URL.
            connection_timeout: Connection timeout in seconds.
            socket_timeout: Socket timeout in seconds.

        Raises:
            StoreConnectionError: If Redis is unreachable.
        """
        import redis

        self.redis_url = redis_url

        try:
            self.client: redis.Redis = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=connection_timeout,
                socket_timeout=socket_timeout,
            )
            self.client.ping()
            log.info("Redis connection established", url=redis_url)
        except (redis.ConnectionError, redis.TimeoutError) as exc:
            raise StoreConnectionError(
                f"Cannot connect to Redis at {redis_url}: {exc}"
            ) from exc

    def save(self, key: str, model: BaseModel, ttl_seconds: int | None = None) -> None:
        """Persist a Pydantic model as JSON."""
        self.set(key, model.model_dump_json(), ttl_seconds)

    def load(self, key: str, model_cls: type[T]) -> T | None:
        """Load and deserialize a Pydantic model."""
        return _decode(key, self.get(key), model_cls)

    def load_many(self, keys: Iterable[str], model_cls: type[T]) -> list[T]:
        """Load several models in one round-trip, skipping missing keys."""
        keys = list(keys)
        if not keys:
            return []
        values = self.client.mget(keys)
        loaded = (_decode(k, v, model_cls) for k, v in zip(keys, values))
        return [model for model in loaded if model is not None]

    def save_atomic(self, models: dict[str, BaseModel]) -> None:
        """Save multiple models in a single MULTI/EXEC."""
        pipe = self.client.pipeline(transaction=True)
        for key, model in models.items():
            pipe.set(key, model.model_dump_json())
        pipe.execute()

    def delete(self, key: str) -> None:
        self.client.delete(key)

    def exists(self, key: str) -> bool:
        return bool(self.client.exists(key))

    def get(self, key: str) -> str | None:
        return self.client.get(key)

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        """Set raw string value with optional TTL."""
        if ttl_seconds and ttl_seconds > 0:
            self.client.setex(key, ttl_seconds, value)
        else:
            self.client.set(key, value)

    def increment(self, key: str, amount: int = 1) -> int:
        return int(self.client.incrby(key, amount))

    def append(self, key: str, value: str) -> int:
        return int(self.client.rpush(key, value))

    def list_range(self, key: str, start: int = 0, end: int = -1) -> list[str]:
        return list(self.client.lrange(key, start, end))

    def scan(self, prefix: str) -> list[str]:
        return list(self.client.scan_iter(match=f"{prefix}*"))

    def health_check(self) -> bool:
        """Check if Redis is healthy."""
        import redis

        try:
            return bool(self.client.ping())
        except (redis.ConnectionError, redis.TimeoutError):
            return False


# ==============================================================================
# Memory Store (Development/Testing)
# ==============================================================================
class MemoryStore:
    """In-memory store for development and testing.

    WARNING: Data is lost on restart. Do not use in production.

    All operations are synchronous dict operations; under a single event
    loop each call is atomic with respect to other coroutines.
    """

    def __init__(self) -> None:
        self._data: dict[str, str] = {}
        self._lists: dict[str, list[str]] = {}
        log.warning(
            "MemoryStore initialized - DATA IS VOLATILE",
            hint="Use RedisStore in production",
        )

    def save(self, key: str, model: BaseModel, ttl_seconds: int | None = None) -> None:
        _ = ttl_seconds  # TTL not supported in memory store
        self._data[key] = model.model_dump_json()

    def load(self, key: str, model_cls: type[T]) -> T | None:
        return _decode(key, self._data.get(key), model_cls)

    def load_many(self, keys: Iterable[str], model_cls: type[T]) -> list[T]:
        loaded = (_decode(k, self._data.get(k), model_cls) for k in keys)
        return [model for model in loaded if model is not None]

    def save_atomic(self, models: dict[str, BaseModel]) -> None:
        encoded = {key: model.model_dump_json() for key, model in models.items()}
        self._data.update(encoded)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)
        self._lists.pop(key, None)

    def exists(self, key: str) -> bool:
        return key in self._data or key in self._lists

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str, ttl_seconds: int | None = None) -> None:
        _ = ttl_seconds
        self._data[key] = value

    def increment(self, key: str, amount: int = 1) -> int:
        new_value = int(self._data.get(key, "0")) + amount
        self._data[key] = str(new_value)
        return new_value

    def append(self, key: str, value: str) -> int:
        items = self._lists.setdefault(key, [])
        items.append(value)
        return len(items)

    def list_range(self, key: str, start: int = 0, end: int = -1) -> list[str]:
        items = self._lists.get(key, [])
        # Redis LRANGE: inclusive end, negative indexes count from the tail
        length = len(items)
        if start < 0:
            start = max(0, length + start)
        if end < 0:
            end = length + end
        return items[start : end + 1]

    def scan(self, prefix: str) -> list[str]:
        keys = [k for k in self._data if k.startswith(prefix)]
        keys.extend(k for k in self._lists if k.startswith(prefix))
        return keys

    def health_check(self) -> bool:
        """Always healthy for memory store."""
        return True

    def clear(self) -> None:
        """Clear all data (useful for tests)."""
        self._data.clear()
        self._lists.clear()


# ==============================================================================
# Factory Function
# ==============================================================================
def create_store(
    redis_url: str = "redis://localhost:6379/0",
    use_redis: bool = True,
    fallback_to_memory: bool = True,
) -> RedisStore | MemoryStore:
    """Create a state store instance.

    Args:
        redis_url: Redis connection URL.
        use_redis: Whether to attempt Redis connection.
        fallback_to_memory: If True, use MemoryStore when Redis unavailable.

    Raises:
        StoreConnectionError: If Redis required but unavailable.
    """
    if use_redis:
        try:
            return RedisStore(redis_url=redis_url)
        except StoreConnectionError:
            if not fallback_to_memory:
                raise
            log.warning("Redis unavailable, using MemoryStore", url=redis_url)

    return MemoryStore()
