"""Per-key asyncio locks.

Used for two single-writer disciplines:
- tokenize/redeem are single-flight per asset id
- ledger submissions are serialized per account, so two transactions from
  the same account never autofill the same sequence number

Locks are reference counted and dropped once no task holds or waits on
them, so the map does not grow with every key ever seen.
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

log = structlog.get_logger()


@dataclass
class _Entry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    users: int = 0


class KeyedLock:
    """Mutual exclusion scoped to a string key.

    Example:
        ```python
        locks = KeyedLock("asset")
        async with locks.hold(asset_id):
            ...  # check-then-set is safe here
        ```
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self._entries: dict[str, _Entry] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        entry = self._entries.get(key)
        if entry is None:
            entry = _Entry()
            self._entries[key] = entry
        entry.users += 1

        if entry.lock.locked():
            log.debug("Waiting for keyed lock", lock=self.name, key=key)

        try:
            async with entry.lock:
                yield
        finally:
            entry.users -= 1
            if entry.users == 0:
                self._entries.pop(key, None)

    def is_locked(self, key: str) -> bool:
        entry = self._entries.get(key)
        return entry is not None and entry.lock.locked()

    def __len__(self) -> int:
        return len(self._entries)
