"""SQLite-based resolution cache."""

import hashlib
import json
import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple, Union

from .models import Resolution, resolution_from_dict

logger = logging.getLogger(__name__)


def cache_key(address: str) -> str:
    """SHA-256 of the lowercased, trimmed address."""
    normalized = (address or "").strip().lower()
    if not normalized:
        return ""
    return "providers:" + hashlib.sha256(normalized.encode("utf-8")).hexdigest()


class ResolutionCache:
    """
    SQLite cache for resolution outcomes (successes and semantic errors).

    Expiry is lazy: stale rows are ignored on read and overwritten on the
    next computation. get_or_compute holds a per-key lock, so a duplicate
    request for an in-flight address waits for that result instead of
    hitting the upstreams again.
    """

    def __init__(self, db_path: Union[str, Path], ttl_seconds: int = 900,
                 clock: Callable[[], float] = time.time):
        self.db_path = Path(db_path)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._conn: Optional[sqlite3.Connection] = None
        self._db_lock = threading.Lock()
        # key -> [lock, holders + waiters]
        self._key_locks: Dict[str, list] = {}
        self._key_locks_guard = threading.Lock()
        self._init_db()

    def _init_db(self):
        if str(self.db_path) != ":memory:":
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self._conn.execute("""
            CREATE TABLE IF NOT EXISTS resolution_cache (
                cache_key TEXT PRIMARY KEY,
                result_json TEXT NOT NULL,
                created_at REAL NOT NULL,
                expires_at REAL NOT NULL
            )
        """)
        self._conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_expires ON resolution_cache(expires_at)
        """)
        self._conn.commit()

    @contextmanager
    def _key_lock(self, key: str):
        with self._key_locks_guard:
            entry = self._key_locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._key_locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._key_locks[key]

    def get(self, address: str) -> Optional[Resolution]:
        """Cached outcome for address, or None if not cached / expired."""
        key = cache_key(address)
        if not key:
            return None
        with self._db_lock:
            row = self._conn.execute(
                "SELECT result_json FROM resolution_cache WHERE cache_key = ? AND expires_at > ?",
                (key, self._clock()),
            ).fetchone()
        if not row:
            return None
        try:
            return resolution_from_dict(json.loads(row[0]))
        except (json.JSONDecodeError, KeyError, ValueError) as e:
            logger.warning(f"Cache: dropping unreadable entry for '{address}': {e}")
            return None

    def put(self, address: str, outcome: Resolution) -> str:
        """Store outcome and return the stored JSON."""
        result_json = json.dumps(outcome.to_dict())
        key = cache_key(address)
        if not key:
            return result_json
        now = self._clock()
        with self._db_lock:
            self._conn.execute(
                "INSERT OR REPLACE INTO resolution_cache (cache_key, result_json, created_at, expires_at) "
                "VALUES (?, ?, ?, ?)",
                (key, result_json, now, now + self.ttl_seconds),
            )
            self._conn.commit()
        return result_json

    def get_or_compute(self, address: str, compute: Callable[[], Resolution]) -> Tuple[Resolution, bool]:
        """
        Returns (outcome, hit). On a miss, compute() runs under the key lock
        and its outcome is stored; the stored form is what gets returned so
        that a first call and later hits serialize identically.
        """
        key = cache_key(address)
        if not key:
            return compute(), False
        with self._key_lock(key):
            cached = self.get(address)
            if cached is not None:
                return cached, True
            result_json = self.put(address, compute())
            return resolution_from_dict(json.loads(result_json)), False

    def invalidate(self, address: str):
        """Remove a cached outcome."""
        key = cache_key(address)
        with self._db_lock:
            self._conn.execute("DELETE FROM resolution_cache WHERE cache_key = ?", (key,))
            self._conn.commit()

    def clear_expired(self):
        """Remove all expired entries."""
        with self._db_lock:
            deleted = self._conn.execute(
                "DELETE FROM resolution_cache WHERE expires_at <= ?", (self._clock(),)
            ).rowcount
            self._conn.commit()
        if deleted:
            logger.info(f"Cache: cleared {deleted} expired entries")

    @property
    def size(self) -> int:
        with self._db_lock:
            row = self._conn.execute("SELECT COUNT(*) FROM resolution_cache").fetchone()
        return row[0] if row else 0

    def close(self):
        with self._db_lock:
            if self._conn:
                self._conn.close()
                self._conn = None
