from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

"""Cache domain models: CacheEntry, CacheStatus, RefreshLogEntry, CacheInfo.

CacheEntry mirrors one row of the ``cache_entry`` table and RefreshLogEntry one
row of ``refresh_log``. Timestamps are timezone-aware UTC datetimes here; the
store converts them to fixed-width text on the way in and out.
"""

__all__ = [
    "CacheStatus",
    "CacheEntry",
    "RefreshLogEntry",
    "CacheInfo",
]


class CacheStatus(Enum):
    """Lifecycle of a cache entry.

    State transitions: absent → valid → (expired | corrupted) → absent

    - ABSENT: no row stored for the cache type
    - VALID: row present, parseable and not past ``expires_at``
    - EXPIRED: row present but past ``expires_at`` (treated as absent by load)
    - CORRUPTED: row present but payload fails to parse or checksum mismatches

    Only a successful save moves an entry back to VALID.
    """
    ABSENT = "absent"
    VALID = "valid"
    EXPIRED = "expired"
    CORRUPTED = "corrupted"


@dataclass(frozen=True)
class CacheEntry:
    id: str  # "<cache_type>_<YYYY-MM-DD>"
    type: str
    payload: str  # serialized JSON
    row_count: int
    created_at: datetime
    updated_at: datetime
    expires_at: datetime
    source_files: list[str]
    checksum: str | None = None
    status: CacheStatus = CacheStatus.VALID


@dataclass(frozen=True)
class RefreshLogEntry:
    id: int
    type: str
    refreshed_at: datetime
    source_files: list[str]
    row_count: int | None
    status: str  # success | failed
    error_message: str | None = None


@dataclass(frozen=True)
class CacheInfo:
    """Read-only cache summary for diagnostics."""
    last_refresh: datetime | None
    cache_size: int  # number of non-expired entries
    is_expired: bool
    next_refresh_due: datetime | None
