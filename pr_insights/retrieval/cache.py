"""Response cache with per-entry expiry, kept in requests-cache storage backends.

During a run entries live in memory; when a cache directory is configured they
go to an SQLite file there instead, so a later run picks them up.
"""

from __future__ import annotations

import json
import os
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, MutableMapping, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from requests_cache.backends.base import DictStorage
from requests_cache.backends.sqlite import SQLiteDict

from .config import CACHE_FILENAME, CACHE_TTL_SEC


@dataclass(frozen=True)
class CacheEntry:
    key: str
    value: Any
    stored_at: float
    ttl: float

    def is_valid(self, now: float) -> bool:
        return now - self.stored_at < self.ttl

    def dumps(self) -> str:
        return json.dumps({"value": self.value, "stored_at": self.stored_at, "ttl": self.ttl})

    @classmethod
    def loads(cls, key: str, raw: str) -> "CacheEntry":
        data = json.loads(raw)
        return cls(key=key, value=data["value"], stored_at=float(data["stored_at"]), ttl=float(data["ttl"]))


def make_cache_key(url: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Build a stable key from the endpoint plus its query parameters.

    Parameters already embedded in `url` and those passed separately are merged
    and sorted, so `/pulls?state=all` with `{"page": 2}` and
    `/pulls?page=2&state=all` share a slot.
    """
    parts = urlsplit(url)
    query = parse_qsl(parts.query, keep_blank_values=True)
    for name, value in (params or {}).items():
        if value is None:
            continue
        query.append((str(name), str(value)))
    canonical = urlencode(sorted(query))
    return "GET " + urlunsplit((parts.scheme, parts.netloc, parts.path, canonical, ""))


class CacheStore:
    """Thread-safe key/value store over a requests-cache storage; expired entries vanish on access.

    `storage` is any requests-cache storage mapping (`DictStorage`, `SQLiteDict`, ...).
    Entries are stored as JSON text so every backend can hold them unchanged.
    """

    def __init__(self,
                 ttl: float = CACHE_TTL_SEC,
                 clock: Callable[[], float] = time.time,
                 storage: Optional[MutableMapping[str, Any]] = None) -> None:
        self.ttl = float(ttl)
        self._clock = clock
        self._storage = storage if storage is not None else DictStorage()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._storage)

    def _read(self, key: str) -> Optional[CacheEntry]:
        raw = self._storage.get(key)
        if raw is None:
            return None
        try:
            return CacheEntry.loads(key, raw)
        except (KeyError, TypeError, ValueError):
            del self._storage[key]
            return None

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._read(key)
            if entry is None:
                return None
            if not entry.is_valid(self._clock()):
                del self._storage[key]
                return None
            return entry.value

    def set(self, key: str, value: Any) -> None:
        entry = CacheEntry(key=key, value=value, stored_at=self._clock(), ttl=self.ttl)
        raw = entry.dumps()
        with self._lock:
            self._storage[key] = raw

    def clear(self) -> None:
        with self._lock:
            self._storage.clear()

    def remove_expired(self) -> int:
        """Delete expired or unreadable entries; return how many were dropped."""
        now = self._clock()
        dropped = 0
        with self._lock:
            for key in list(self._storage.keys()):
                entry = self._read(key)
                if entry is None:
                    dropped += 1
                elif not entry.is_valid(now):
                    del self._storage[key]
                    dropped += 1
        return dropped

    def export_entries(self) -> List[Dict[str, Any]]:
        """Return JSON-ready copies of every unexpired entry."""
        now = self._clock()
        with self._lock:
            entries = [self._read(key) for key in list(self._storage.keys())]
        return [
            {"key": e.key, "value": e.value, "stored_at": e.stored_at, "ttl": e.ttl}
            for e in entries
            if e is not None and e.is_valid(now)
        ]

    def import_entries(self, entries: Iterable[Mapping[str, Any]]) -> int:
        """Restore exported entries, skipping expired or malformed ones; return count loaded."""
        now = self._clock()
        loaded: Dict[str, str] = {}
        for raw in entries:
            try:
                entry = CacheEntry(
                    key=str(raw["key"]),
                    value=raw["value"],
                    stored_at=float(raw["stored_at"]),
                    ttl=float(raw.get("ttl", self.ttl)),
                )
            except (KeyError, TypeError, ValueError):
                continue
            if entry.is_valid(now):
                loaded[entry.key] = entry.dumps()
        with self._lock:
            for key, value in loaded.items():
                self._storage[key] = value
        return len(loaded)

    def close(self) -> None:
        close = getattr(self._storage, "close", None)
        if close is not None:
            close()


def cache_file_path(directory: str) -> str:
    return os.path.join(directory, CACHE_FILENAME)


def open_cache(directory: Optional[str] = None,
               ttl: float = CACHE_TTL_SEC,
               clock: Callable[[], float] = time.time) -> CacheStore:
    """Return an in-memory store, or one backed by SQLite in `directory` when given.

    Entries left over from an earlier run are kept unless they have expired.
    """
    if not directory:
        return CacheStore(ttl=ttl, clock=clock)
    os.makedirs(directory, exist_ok=True)
    path = cache_file_path(directory)
    store = CacheStore(ttl=ttl, clock=clock, storage=SQLiteDict(path, table_name="responses", serializer=None))
    dropped = store.remove_expired()
    print(f"[cache] using {path}: {len(store)} entries restored, {dropped} expired")
    return store


def clean_cache(store: CacheStore) -> None:
    """Drop every entry, including those persisted in a cache directory."""
    store.clear()
    print("[cache] cleared")


__all__ = [
    "CacheEntry",
    "CacheStore",
    "make_cache_key",
    "cache_file_path",
    "open_cache",
    "clean_cache",
]
