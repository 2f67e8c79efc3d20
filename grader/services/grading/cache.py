"""
Evaluation Result Cache
=======================

Content-addressed cache of provider evaluations.

Cache Key: SHA-256 of the canonical scoring request (see canonical.py)
Cache Value: the validated provider evaluation as JSON, plus a storedAt stamp

Entries are written once and never updated: a second insert for the same key
is ignored (first writer wins). Every store error is logged as a CacheError
and turned into a miss or a no-op, so a broken cache can slow grading down
but never fail it.

Backends:
- memory: in-process dict guarded by a lock, with hit/miss statistics
- sqlite: one `evaluation_cache` table, shared across processes
- none:   always misses

Usage:
    from grader.services.grading.cache import ResultCache, InMemoryCacheStore

    cache = ResultCache(InMemoryCacheStore(), clock=server_clock.now)
    entry = cache.get(key)
    if entry is None:
        cache.put(key, evaluation.model_dump(mode="json", by_alias=True))
"""

from __future__ import annotations

import json
import sqlite3
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

from dispatch.errors import CacheError
from grader.logging import get_logger

logger = get_logger("ResultCache")


@dataclass(frozen=True)
class CacheEntry:
    """One cached evaluation."""

    key: str
    result: Dict[str, Any]
    stored_at: float


class CacheStore(ABC):
    """Raw key -> (json text, stored_at) storage."""

    name = "abstract"

    @abstractmethod
    def get(self, key: str) -> Optional[Tuple[str, float]]:
        """Return (result_json, stored_at) or None."""

    @abstractmethod
    def put(self, key: str, result_json: str, stored_at: float) -> bool:
        """Insert if absent. Returns True if this call stored the entry."""

    def stats(self) -> Dict[str, Any]:
        return {"backend": self.name}


class InMemoryCacheStore(CacheStore):
    """Lock-protected in-process store."""

    name = "memory"

    def __init__(self):
        self._entries: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()
        self._total_hits = 0
        self._total_misses = 0

    def get(self, key: str) -> Optional[Tuple[str, float]]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._total_misses += 1
            else:
                self._total_hits += 1
            return entry

    def put(self, key: str, result_json: str, stored_at: float) -> bool:
        with self._lock:
            if key in self._entries:
                return False
            self._entries[key] = (result_json, stored_at)
            return True

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> Dict[str, Any]:
        total = self._total_hits + self._total_misses
        return {
            "backend": self.name,
            "size": len(self._entries),
            "total_hits": self._total_hits,
            "total_misses": self._total_misses,
            "hit_rate": self._total_hits / total if total > 0 else 0.0,
        }


class SqliteCacheStore(CacheStore):
    """SQLite-backed store; safe to share between processes."""

    name = "sqlite"

    def __init__(self, db_path: str):
        self.db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path, check_same_thread=False, timeout=10)

    def _init_db(self) -> None:
        conn = self._get_connection()
        try:
            with conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS evaluation_cache (
                        hash TEXT PRIMARY KEY,
                        result TEXT NOT NULL,
                        stored_at REAL NOT NULL
                    )
                """)
        finally:
            conn.close()

    def get(self, key: str) -> Optional[Tuple[str, float]]:
        conn = self._get_connection()
        try:
            row = conn.execute(
                "SELECT result, stored_at FROM evaluation_cache WHERE hash = ?", (key,)
            ).fetchone()
        finally:
            conn.close()
        return (row[0], row[1]) if row else None

    def put(self, key: str, result_json: str, stored_at: float) -> bool:
        conn = self._get_connection()
        try:
            with conn:
                cursor = conn.execute(
                    "INSERT OR IGNORE INTO evaluation_cache (hash, result, stored_at) VALUES (?, ?, ?)",
                    (key, result_json, stored_at),
                )
            return cursor.rowcount == 1
        finally:
            conn.close()

    def stats(self) -> Dict[str, Any]:
        conn = self._get_connection()
        try:
            (count,) = conn.execute("SELECT COUNT(*) FROM evaluation_cache").fetchone()
        finally:
            conn.close()
        return {"backend": self.name, "path": self.db_path, "size": count}


class NullCacheStore(CacheStore):
    """Caching disabled."""

    name = "none"

    def get(self, key: str) -> Optional[Tuple[str, float]]:
        return None

    def put(self, key: str, result_json: str, stored_at: float) -> bool:
        return False


class ResultCache:
    """Failure-tolerant front for a CacheStore."""

    def __init__(self, store: Optional[CacheStore] = None, clock: Callable[[], float] = time.time):
        self.store = store if store is not None else InMemoryCacheStore()
        self.clock = clock

    def get(self, key: str) -> Optional[CacheEntry]:
        """Look up a key. Store failures are logged and reported as a miss."""
        try:
            raw = self.store.get(key)
            if raw is None:
                return None
            result_json, stored_at = raw
            return CacheEntry(key=key, result=json.loads(result_json), stored_at=stored_at)
        except Exception as e:
            logger.warning(f"{CacheError(f'cache read failed for {key[:12]}: {e}')}; treating as miss")
            return None

    def put(self, key: str, result: Dict[str, Any]) -> bool:
        """Store a result once. Store failures are logged and ignored."""
        try:
            stored = self.store.put(
                key,
                json.dumps(result, ensure_ascii=False, separators=(",", ":")),
                self.clock(),
            )
        except Exception as e:
            logger.warning(f"{CacheError(f'cache write failed for {key[:12]}: {e}')}; continuing")
            return False
        if not stored:
            logger.debug(f"Cache entry {key[:12]} already present; keeping the first one")
        return stored

    def stats(self) -> Dict[str, Any]:
        try:
            return self.store.stats()
        except Exception as e:
            logger.warning(f"{CacheError(f'cache stats failed: {e}')}")
            return {"backend": self.store.name, "error": str(e)}


def create_cache_store(backend: str, path: Optional[str] = None) -> CacheStore:
    """Build the store named by GRADER_CACHE_BACKEND."""
    backend = backend.lower()
    if backend == "memory":
        return InMemoryCacheStore()
    if backend == "sqlite":
        return SqliteCacheStore(path or "data/evaluation_cache.db")
    if backend == "none":
        return NullCacheStore()
    raise ValueError(f"Unknown cache backend: {backend}")


__all__ = [
    "CacheEntry",
    "CacheStore",
    "InMemoryCacheStore",
    "NullCacheStore",
    "ResultCache",
    "SqliteCacheStore",
    "create_cache_store",
]
