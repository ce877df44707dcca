"""
Cache of resolved pod metadata, keyed by `namespace:pod_name`.

Entries are never evicted: one fetch-and-merge per pod for the life of the
process. Values handed out by `get` / `get_by_id` are the stored objects
themselves; callers must treat them as read-only.
"""

from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Protocol, Tuple, Union, runtime_checkable

from kubemeta.errors import CacheUnavailable

logger = logging.getLogger(__name__)

Buffer = Union[bytes, bytearray, memoryview]


@runtime_checkable
class KeyedStore(Protocol):
    def get(self, key: str) -> Optional[bytes]: ...

    def put(self, key: str, value: Buffer) -> int: ...

    def get_by_id(self, entry_id: int) -> bytes: ...

    def __len__(self) -> int: ...


class InMemoryKeyedStore:
    """Thread-safe dict-backed store. Ids are slot indexes and stay valid forever."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._ids: Dict[str, int] = {}
        self._values: List[bytes] = []

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            entry_id = self._ids.get(key)
            if entry_id is None:
                return None
            return self._values[entry_id]

    def put(self, key: str, value: Buffer) -> int:
        # Own copy: the caller may reuse or drop its buffer right away.
        stored = bytes(value)
        with self._lock:
            entry_id = self._ids.get(key)
            if entry_id is not None:
                # Concurrent misses on one key: last write wins, id is kept.
                self._values[entry_id] = stored
                return entry_id
            entry_id = len(self._values)
            self._values.append(stored)
            self._ids[key] = entry_id
            return entry_id

    def get_by_id(self, entry_id: int) -> bytes:
        with self._lock:
            if entry_id < 0 or entry_id >= len(self._values):
                raise KeyError(entry_id)
            return self._values[entry_id]

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)


class MetadataCache:
    """
    Process-lifetime metadata cache.

    Create one at startup, pass it to the resolver, and `close()` it at shutdown.
    Any failure of the underlying store is reported as `CacheUnavailable`.
    """

    def __init__(self, store: Optional[KeyedStore] = None) -> None:
        self._store: KeyedStore = store if store is not None else InMemoryKeyedStore()
        self._closed = False

    def _ensure_open(self) -> None:
        if self._closed:
            raise CacheUnavailable("Metadata cache is closed")

    def get(self, key: str) -> Tuple[Optional[bytes], bool]:
        self._ensure_open()
        try:
            value = self._store.get(key)
        except Exception as e:
            raise CacheUnavailable(f"Cache lookup failed for {key}: {e}")
        return value, value is not None

    def put(self, key: str, value: Buffer) -> int:
        self._ensure_open()
        try:
            entry_id = self._store.put(key, value)
        except Exception as e:
            raise CacheUnavailable(f"Cache insert failed for {key}: {e}")
        logger.debug("Cached metadata for %s (id=%s, %d bytes)", key, entry_id, len(value))
        return entry_id

    def get_by_id(self, entry_id: int) -> bytes:
        self._ensure_open()
        try:
            return self._store.get_by_id(entry_id)
        except Exception as e:
            raise CacheUnavailable(f"Cache entry {entry_id} unavailable: {e}")

    def __len__(self) -> int:
        self._ensure_open()
        return len(self._store)

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        self._closed = True
