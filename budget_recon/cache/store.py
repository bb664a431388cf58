from __future__ import annotations

import hashlib
import json
import logging
import os
import sqlite3
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

from ..models.cache_entry import CacheEntry, CacheInfo, CacheStatus, RefreshLogEntry
from ..models.config_models import CacheConfig

"""Persistent cache for reconciled payloads (DB-API backed).

Backends:
- sqlite (default): stdlib sqlite3 file, ``:memory:`` for tests
- postgres: psycopg2, DSN resolved like the CLI connection
  (DATABASE_URL / PGDSN, then config dsn, then PG* variables)

One entry per cache type per UTC day (id ``<type>_<YYYY-MM-DD>``). Entries
expire ``ttl_days`` after their last save; expiry is checked lazily on load.
A row whose payload does not parse or whose checksum does not match is
deleted on load. Timestamps are stored as fixed-width UTC text so ordering
and comparison work as plain string comparison on both backends.
"""

__all__ = [
    "CacheWriteError",
    "CacheCorruptionError",
    "CacheStore",
    "open_cache_store",
    "resolve_postgres_dsn",
    "DEFAULT_TTL",
    "STALE_AFTER",
]

logger = logging.getLogger(__name__)

DEFAULT_TTL = timedelta(days=7)
STALE_AFTER = timedelta(hours=24)
TS_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"

_SQLITE_DDL = (
    """
    CREATE TABLE IF NOT EXISTS cache_entry (
        id TEXT PRIMARY KEY,
        type TEXT NOT NULL,
        payload TEXT NOT NULL,
        row_count INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        expires_at TEXT NOT NULL,
        source_files TEXT NOT NULL DEFAULT '[]',
        checksum TEXT
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS refresh_log (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        type TEXT NOT NULL,
        refreshed_at TEXT NOT NULL,
        source_files TEXT NOT NULL DEFAULT '[]',
        row_count INTEGER,
        status TEXT NOT NULL,
        error_message TEXT
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_cache_entry_type ON cache_entry(type, updated_at)",
)

_POSTGRES_DDL = (
    _SQLITE_DDL[0],
    """
    CREATE TABLE IF NOT EXISTS refresh_log (
        id SERIAL PRIMARY KEY,
        type TEXT NOT NULL,
        refreshed_at TEXT NOT NULL,
        source_files TEXT NOT NULL DEFAULT '[]',
        row_count INTEGER,
        status TEXT NOT NULL,
        error_message TEXT
    )
    """,
    _SQLITE_DDL[2],
)

_UPSERT = """
    INSERT INTO cache_entry
        (id, type, payload, row_count, created_at, updated_at, expires_at, source_files, checksum)
    VALUES ({p}, {p}, {p}, {p}, {p}, {p}, {p}, {p}, {p})
    ON CONFLICT (id) DO UPDATE SET
        payload = excluded.payload,
        row_count = excluded.row_count,
        updated_at = excluded.updated_at,
        expires_at = excluded.expires_at,
        source_files = excluded.source_files,
        checksum = excluded.checksum
"""

_ENTRY_COLUMNS = "id, type, payload, row_count, created_at, updated_at, expires_at, source_files, checksum"


class CacheWriteError(Exception):
    """Raised when a cache entry could not be persisted."""


class CacheCorruptionError(Exception):
    """A stored cache row whose metadata columns cannot be parsed."""

    def __init__(self, entry_id: str, reason: str) -> None:
        super().__init__(f"cache entry {entry_id} unreadable: {reason}")
        self.entry_id = entry_id


def format_ts(value: datetime) -> str:
    return value.astimezone(UTC).strftime(TS_FORMAT)


def parse_ts(value: str) -> datetime:
    return datetime.strptime(value, TS_FORMAT).replace(tzinfo=UTC)


def checksum_of(payload_text: str) -> str:
    return hashlib.sha256(payload_text.encode("utf-8")).hexdigest()


def _row_count(payload: Any) -> int:
    if isinstance(payload, list):
        return len(payload)
    if isinstance(payload, dict) and isinstance(payload.get("rows"), list):
        return len(payload["rows"])
    return 1


def _is_empty_payload(payload: Any) -> bool:
    return payload is None or payload == []


def _entry_from_row(row: Any) -> CacheEntry:
    """Build a CacheEntry from a ``cache_entry`` row.

    Raises:
        CacheCorruptionError: a timestamp or the source file list cannot be parsed
    """
    try:
        return CacheEntry(
            id=row[0],
            type=row[1],
            payload=row[2],
            row_count=row[3],
            created_at=parse_ts(row[4]),
            updated_at=parse_ts(row[5]),
            expires_at=parse_ts(row[6]),
            source_files=json.loads(row[7] or "[]"),
            checksum=row[8],
        )
    except (TypeError, ValueError) as e:
        raise CacheCorruptionError(str(row[0]), str(e)) from e


class CacheStore:
    """Cache entries plus a refresh audit log on a DB-API connection.

    Statements are serialised with a lock (one shared connection); each save
    commits as one unit.
    """

    def __init__(
        self,
        connection: Any,
        *,
        backend: str = "sqlite",
        ttl: timedelta = DEFAULT_TTL,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._conn = connection
        self.backend = backend
        self.ttl = ttl
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.RLock()
        self._p = "%s" if backend == "postgres" else "?"
        self._ensure_schema()

    @classmethod
    def sqlite(cls, path: str | Path = ":memory:", **kwargs: Any) -> CacheStore:
        path = str(path)
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path, check_same_thread=False, timeout=30.0)
        return cls(conn, backend="sqlite", **kwargs)

    @classmethod
    def postgres(cls, dsn: str, **kwargs: Any) -> CacheStore:
        try:
            import psycopg2  # type: ignore
        except ImportError as e:
            raise RuntimeError(f"psycopg2 not available: {e}") from e
        conn = psycopg2.connect(dsn)
        conn.autocommit = False
        return cls(conn, backend="postgres", **kwargs)

    def _sql(self, text: str) -> str:
        return text.replace("{p}", self._p)

    def _ensure_schema(self) -> None:
        ddl = _POSTGRES_DDL if self.backend == "postgres" else _SQLITE_DDL
        with self._lock:
            cur = self._conn.cursor()
            try:
                for stmt in ddl:
                    cur.execute(stmt)
                self._conn.commit()
            finally:
                cur.close()
        logger.debug("cache schema ready backend=%s", self.backend)

    def now(self) -> datetime:
        return self._clock()

    def entry_id(self, cache_type: str) -> str:
        return f"{cache_type}_{self.now().astimezone(UTC).strftime('%Y-%m-%d')}"

    # ------------------------------------------------------------------ writes

    def save(self, cache_type: str, payload: Any, source_files: list[str] | None = None) -> CacheEntry | None:
        """Serialise and upsert ``payload``; returns the stored entry.

        A None payload is not stored. Storage failures are recorded in
        refresh_log and raised as CacheWriteError.
        """
        if payload is None:
            logger.warning("cache save skipped: empty payload type=%s", cache_type)
            return None
        sources = list(source_files or [])
        try:
            text = json.dumps(payload, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            self._log_refresh(cache_type, sources, None, "failed", f"serialize: {e}")
            logger.error("cache payload not serializable type=%s: %s", cache_type, e)
            raise CacheWriteError(f"payload not serializable: {e}") from e

        now = self.now()
        entry = CacheEntry(
            id=self.entry_id(cache_type),
            type=cache_type,
            payload=text,
            row_count=_row_count(payload),
            created_at=now,
            updated_at=now,
            expires_at=now + self.ttl,
            source_files=sources,
            checksum=checksum_of(text),
        )
        with self._lock:
            cur = self._conn.cursor()
            try:
                cur.execute(
                    self._sql(_UPSERT),
                    (
                        entry.id,
                        entry.type,
                        entry.payload,
                        entry.row_count,
                        format_ts(entry.created_at),
                        format_ts(entry.updated_at),
                        format_ts(entry.expires_at),
                        json.dumps(sources),
                        entry.checksum,
                    ),
                )
                self._insert_refresh_log(cur, cache_type, sources, entry.row_count, "success", None)
                self._conn.commit()
            except Exception as e:
                self._conn.rollback()
                cur.close()
                self._log_refresh_locked(cache_type, sources, entry.row_count, "failed", str(e))
                logger.error("cache write failed id=%s: %s", entry.id, e)
                raise CacheWriteError(f"cache write failed for {entry.id}: {e}") from e
            cur.close()
        logger.info("cache stored id=%s rows=%d", entry.id, entry.row_count)
        return entry

    def _insert_refresh_log(
        self,
        cur: Any,
        cache_type: str,
        sources: list[str],
        row_count: int | None,
        status: str,
        error_message: str | None,
    ) -> None:
        cur.execute(
            self._sql(
                "INSERT INTO refresh_log (type, refreshed_at, source_files, row_count, status, error_message) "
                "VALUES ({p}, {p}, {p}, {p}, {p}, {p})"
            ),
            (cache_type, format_ts(self.now()), json.dumps(sources), row_count, status, error_message),
        )

    def _log_refresh_locked(
        self,
        cache_type: str,
        sources: list[str],
        row_count: int | None,
        status: str,
        error_message: str | None,
    ) -> None:
        # caller holds self._lock; the failure row must not mask the original error
        cur = self._conn.cursor()
        try:
            self._insert_refresh_log(cur, cache_type, sources, row_count, status, error_message)
            self._conn.commit()
        except Exception as e:
            self._conn.rollback()
            logger.error("refresh_log write failed type=%s: %s", cache_type, e)
        finally:
            cur.close()

    def _log_refresh(
        self,
        cache_type: str,
        sources: list[str],
        row_count: int | None,
        status: str,
        error_message: str | None,
    ) -> None:
        with self._lock:
            self._log_refresh_locked(cache_type, sources, row_count, status, error_message)

    def invalidate(self, cache_type: str | None = None) -> int:
        """Delete entries of ``cache_type`` (all entries when None); returns the count."""
        with self._lock:
            cur = self._conn.cursor()
            try:
                if cache_type is None:
                    cur.execute("DELETE FROM cache_entry")
                else:
                    cur.execute(self._sql("DELETE FROM cache_entry WHERE type = {p}"), (cache_type,))
                count = cur.rowcount
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
            finally:
                cur.close()
        logger.info("cache invalidated type=%s entries=%d", cache_type or "*", count)
        return count

    def purge_expired(self) -> int:
        with self._lock:
            cur = self._conn.cursor()
            try:
                cur.execute(
                    self._sql("DELETE FROM cache_entry WHERE expires_at <= {p}"), (format_ts(self.now()),)
                )
                count = cur.rowcount
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
            finally:
                cur.close()
        if count:
            logger.info("purged %d expired cache entries", count)
        return count

    def _delete_entry(self, entry_id: str) -> None:
        with self._lock:
            cur = self._conn.cursor()
            try:
                cur.execute(self._sql("DELETE FROM cache_entry WHERE id = {p}"), (entry_id,))
                self._conn.commit()
            except Exception as e:
                self._conn.rollback()
                logger.error("failed to delete cache entry id=%s: %s", entry_id, e)
            finally:
                cur.close()

    # ------------------------------------------------------------------- reads

    def _fetchone(self, query: str, params: tuple[Any, ...]) -> Any:
        with self._lock:
            cur = self._conn.cursor()
            try:
                cur.execute(self._sql(query), params)
                return cur.fetchone()
            finally:
                cur.close()

    def _fetch_latest(self, cache_type: str, *, valid_only: bool) -> CacheEntry | None:
        query = f"SELECT {_ENTRY_COLUMNS} FROM cache_entry WHERE type = {{p}}"
        params: tuple[Any, ...] = (cache_type,)
        if valid_only:
            query += " AND expires_at > {p}"
            params += (format_ts(self.now()),)
        query += " ORDER BY updated_at DESC LIMIT 1"
        row = self._fetchone(query, params)
        if row is None:
            return None
        return _entry_from_row(row)

    def _decode(self, entry: CacheEntry) -> tuple[bool, Any]:
        if entry.checksum is not None and checksum_of(entry.payload) != entry.checksum:
            return False, None
        try:
            return True, json.loads(entry.payload)
        except (TypeError, ValueError):
            return False, None

    def load(self, cache_type: str) -> Any | None:
        """Return the newest non-expired payload for ``cache_type`` or None."""
        try:
            entry = self._fetch_latest(cache_type, valid_only=True)
        except CacheCorruptionError as e:
            logger.warning("%s; deleting", e)
            self._delete_entry(e.entry_id)
            return None
        except Exception as e:
            logger.error("cache read failed type=%s: %s", cache_type, e)
            return None
        if entry is None:
            return None
        ok, payload = self._decode(entry)
        if not ok:
            logger.warning("cache entry corrupted id=%s; deleting", entry.id)
            self._delete_entry(entry.id)
            return None
        if _is_empty_payload(payload):
            return None
        age = self.now() - entry.updated_at
        if age > STALE_AFTER:
            logger.warning(
                "cache entry id=%s is %.1f hours old", entry.id, age.total_seconds() / 3600
            )
        return payload

    def entry_status(self, cache_type: str) -> CacheStatus:
        try:
            entry = self._fetch_latest(cache_type, valid_only=False)
        except CacheCorruptionError:
            return CacheStatus.CORRUPTED
        if entry is None:
            return CacheStatus.ABSENT
        if entry.expires_at <= self.now():
            return CacheStatus.EXPIRED
        ok, _ = self._decode(entry)
        return CacheStatus.VALID if ok else CacheStatus.CORRUPTED

    def last_refresh(self, cache_type: str | None = None) -> datetime | None:
        query = "SELECT MAX(refreshed_at) FROM refresh_log WHERE status = 'success'"
        params: tuple[Any, ...] = ()
        if cache_type is not None:
            query += " AND type = {p}"
            params = (cache_type,)
        row = self._fetchone(query, params)
        if row is None or row[0] is None:
            return None
        return parse_ts(row[0])

    def info(self, cache_type: str | None = None) -> CacheInfo:
        last = self.last_refresh(cache_type)
        query = "SELECT COUNT(*) FROM cache_entry WHERE expires_at > {p}"
        params: tuple[Any, ...] = (format_ts(self.now()),)
        if cache_type is not None:
            query += " AND type = {p}"
            params += (cache_type,)
        size = int(self._fetchone(query, params)[0])
        next_due = last + self.ttl if last is not None else None
        is_expired = next_due is None or next_due <= self.now()
        return CacheInfo(
            last_refresh=last,
            cache_size=size,
            is_expired=is_expired,
            next_refresh_due=next_due,
        )

    def refresh_log(self, limit: int = 20) -> list[RefreshLogEntry]:
        with self._lock:
            cur = self._conn.cursor()
            try:
                cur.execute(
                    self._sql(
                        "SELECT id, type, refreshed_at, source_files, row_count, status, error_message "
                        "FROM refresh_log ORDER BY id DESC LIMIT {p}"
                    ),
                    (limit,),
                )
                rows = cur.fetchall()
            finally:
                cur.close()
        return [
            RefreshLogEntry(
                id=r[0],
                type=r[1],
                refreshed_at=parse_ts(r[2]),
                source_files=json.loads(r[3] or "[]"),
                row_count=r[4],
                status=r[5],
                error_message=r[6],
            )
            for r in rows
        ]

    def close(self) -> None:
        self._conn.close()


def resolve_postgres_dsn(dsn: str | None = None) -> str:
    """DSN lookup: DATABASE_URL / PGDSN, then config ``dsn``, then PG* variables."""
    direct = os.getenv("DATABASE_URL") or os.getenv("PGDSN") or dsn
    if direct:
        return direct
    host = os.getenv("PGHOST", "localhost")
    port = os.getenv("PGPORT", "5432")
    user = os.getenv("PGUSER", "postgres")
    password = os.getenv("PGPASSWORD", "")
    database = os.getenv("PGDATABASE", "postgres")
    resolved = f"host={host} port={port} user={user} dbname={database}"
    if password:
        resolved += f" password={password}"
    return resolved


def open_cache_store(config: CacheConfig) -> CacheStore:
    ttl = timedelta(days=config.ttl_days)
    if config.backend == "postgres":
        return CacheStore.postgres(resolve_postgres_dsn(config.dsn), ttl=ttl)
    return CacheStore.sqlite(config.path, ttl=ttl)
