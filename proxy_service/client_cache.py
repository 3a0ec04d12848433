"""
Per-connection-string client cache.

One live backend client per connection string, bounded to ``capacity``
entries. When a new key arrives at a full cache the oldest *inserted*
entry is dropped; reads never refresh an entry's position.

Each entry is either ``Pending`` (a connection attempt in flight) or
``Ready`` (an established client). Concurrent callers for the same key
share the in-flight attempt, so at most one connection is established per
key at a time. A failed attempt removes its placeholder so the next caller
starts over.

The check-evict-insert step in ``acquire`` never awaits, which makes it
atomic under the asyncio event loop.
"""

import asyncio
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Union

from errors import BackendConnectionError, InvalidKeyError, ProxyError
from logger import logger, redact_uri

ACCEPTED_SCHEMES = ("mongodb://", "mongodb+srv://")

Connector = Callable[[str], Awaitable[Any]]


@dataclass
class Pending:
    future: "asyncio.Future[Any]"


@dataclass
class Ready:
    handle: Any


CacheEntry = Union[Pending, Ready]


def validate_key(key: Any) -> str:
    """Cheap syntactic gate on a connection string (not a full URI parser)."""
    if not key or not isinstance(key, str):
        raise InvalidKeyError("Missing mongodbUri")
    if not key.startswith(ACCEPTED_SCHEMES):
        raise InvalidKeyError("mongodbUri must start with mongodb+srv:// or mongodb://")
    return key


class ClientCache:
    """Bounded, insertion-ordered cache of backend clients."""

    def __init__(self, connector: Connector, capacity: int = 50) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self._connector = connector
        self._capacity = capacity
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def keys(self) -> List[str]:
        """Cached keys, oldest first."""
        return list(self._entries)

    async def acquire(self, key: str) -> Any:
        """Return the live client for *key*, connecting on first use.

        Raises ``InvalidKeyError`` for a malformed key and
        ``BackendConnectionError`` when the connection cannot be made.
        """
        validate_key(key)

        entry = self._entries.get(key)
        if isinstance(entry, Pending) and _failed(entry.future):
            # failure already surfaced, settle callback not yet run
            self._discard(key, entry)
            entry = None

        if entry is None:
            entry = self._insert(key)
        elif isinstance(entry, Pending):
            logger.debug("Client cache: joining pending connect for %s", redact_uri(key))

        if isinstance(entry, Ready):
            return entry.handle

        # shield: one cancelled request must not cancel the shared attempt
        return await asyncio.shield(entry.future)

    async def aclose(self) -> None:
        """Close every cached client. Only for process shutdown."""
        entries = list(self._entries.values())
        self._entries.clear()
        for entry in entries:
            if isinstance(entry, Pending):
                entry.future.cancel()
                continue
            close = getattr(entry.handle, "close", None)
            if close is None:
                continue
            try:
                result = close()
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.warning("Client cache: close failed on shutdown: %s", e)

    # ---------------------- INTERNALS ----------------------

    def _insert(self, key: str) -> Pending:
        while len(self._entries) >= self._capacity:
            oldest, _ = self._entries.popitem(last=False)
            logger.info("Client cache: evicted %s", redact_uri(oldest))

        logger.info("Client cache MISS for %s, connecting", redact_uri(key))
        entry = Pending(asyncio.ensure_future(self._establish(key)))
        self._entries[key] = entry
        entry.future.add_done_callback(lambda fut: self._settle(key, entry))
        return entry

    async def _establish(self, key: str) -> Any:
        try:
            return await self._connector(key)
        except ProxyError:
            raise
        except Exception as e:
            raise BackendConnectionError.from_exception(e) from e

    def _settle(self, key: str, entry: Pending) -> None:
        failed = _failed(entry.future)
        # The slot may have been evicted (and even refilled) meanwhile.
        if self._entries.get(key) is not entry:
            return
        if failed:
            self._discard(key, entry)
            if not entry.future.cancelled():
                logger.warning(
                    "Client cache: connect failed for %s: %s",
                    redact_uri(key), entry.future.exception(),
                )
            return
        # resolved in place, insertion position is unchanged
        self._entries[key] = Ready(entry.future.result())

    def _discard(self, key: str, entry: CacheEntry) -> None:
        if self._entries.get(key) is entry:
            del self._entries[key]


def _failed(future: "asyncio.Future[Any]") -> bool:
    return future.done() and (future.cancelled() or future.exception() is not None)
