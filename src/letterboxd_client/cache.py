"""
Key/value caches for fetched pages and films.

Values are JSON-compatible dicts. Entries are immutable once written, so
concurrent readers and writers only ever race to store equivalent data.
A cache that fails to read or write behaves like a miss.
"""
import json
import logging
import random
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Protocol

from .config import (
    CACHE_BACKEND,
    CACHE_PATH,
    FILM_CACHE_KEY_PREFIX,
    PAGE_CACHE_KEY_PREFIX,
    PAGE_CACHE_MAX_HOURS,
    PAGE_CACHE_MIN_HOURS,
)

logger = logging.getLogger(__name__)


class Cache(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl: float) -> None: ...


def page_cache_key(path: str) -> str:
    return f"{PAGE_CACHE_KEY_PREFIX}{path}"


def film_cache_key(slug: str) -> str:
    return f"{FILM_CACHE_KEY_PREFIX}/{slug}"


def random_page_ttl() -> float:
    """Spread page expiry over 24-72 hours so a big crawl does not expire all at once."""
    hours = random.randint(PAGE_CACHE_MIN_HOURS, PAGE_CACHE_MAX_HOURS)
    return hours * 3600.0


class NullCache:
    """Used when caching is disabled: every lookup misses."""

    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any, ttl: float) -> None:
        return None


class MemoryCache:
    """Process-local cache with per-entry expiry."""

    def __init__(self, max_entries: int = 1000):
        self._max_entries = max_entries
        self._lock = threading.Lock()
        self._entries: dict[str, tuple[float, Any]] = {}

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            expires_at, value = entry
            if expires_at < time.time():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: Any, ttl: float) -> None:
        with self._lock:
            if len(self._entries) >= self._max_entries and key not in self._entries:
                # Drop the entry closest to expiry
                oldest = min(self._entries, key=lambda k: self._entries[k][0])
                del self._entries[oldest]
            self._entries[key] = (time.time() + ttl, value)

    def __len__(self) -> int:
        return len(self._entries)


class SQLiteCache:
    """
    File-backed cache in a single SQLite table.

    Each call opens its own short transaction; the connection is shared and
    guarded by a lock, so worker tasks and threads can use it freely.
    """

    def __init__(self, db_path: Path | str = CACHE_PATH):
        self._db_path = Path(db_path)
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None
        self._init_db()

    def _create_connection(self) -> sqlite3.Connection:
        self._db_path.parent.mkdir(exist_ok=True, parents=True)
        conn = sqlite3.connect(self._db_path, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA busy_timeout = 5000")
        conn.execute("PRAGMA journal_mode = WAL")
        conn.execute("PRAGMA synchronous = NORMAL")
        return conn

    @contextmanager
    def _db(self):
        """Yield the connection inside a transaction that commits or rolls back."""
        with self._lock:
            if self._conn is None:
                self._conn = self._create_connection()
            try:
                yield self._conn
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

    def _init_db(self) -> None:
        with self._db() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS cache_entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    expires_at REAL NOT NULL
                )
            """)

    def get(self, key: str) -> Any | None:
        try:
            with self._db() as conn:
                row = conn.execute(
                    "SELECT value, expires_at FROM cache_entries WHERE key = ?", (key,)
                ).fetchone()
                if row is None:
                    return None
                if row["expires_at"] < time.time():
                    conn.execute("DELETE FROM cache_entries WHERE key = ?", (key,))
                    return None
                return json.loads(row["value"])
        except (sqlite3.Error, json.JSONDecodeError) as e:
            logger.warning(f"Cache read failed for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: float) -> None:
        try:
            with self._db() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO cache_entries (key, value, expires_at) VALUES (?, ?, ?)",
                    (key, json.dumps(value), time.time() + ttl),
                )
        except (sqlite3.Error, TypeError, ValueError) as e:
            logger.warning(f"Error writing cache for {key}: {e}")

    def purge_expired(self) -> int:
        """Delete expired rows; returns how many were removed."""
        with self._db() as conn:
            cursor = conn.execute("DELETE FROM cache_entries WHERE expires_at < ?", (time.time(),))
            removed = cursor.rowcount
        if removed:
            logger.info(f"Purged {removed} expired cache entries")
        return removed

    def close(self) -> None:
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None


def cache_from_config(backend: str = CACHE_BACKEND, path: Path | str = CACHE_PATH) -> Cache:
    """Build the cache named by LETTERBOXD_CACHE (none, memory or sqlite)."""
    if backend in ("", "none", "off", "disabled"):
        return NullCache()
    if backend == "memory":
        logger.info("Configuring in-memory cache")
        return MemoryCache()
    if backend == "sqlite":
        logger.info(f"Configuring SQLite cache at {path}")
        return SQLiteCache(path)
    logger.warning(f"Unknown cache backend '{backend}', caching disabled")
    return NullCache()
