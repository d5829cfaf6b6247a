# fleetcheck/services/kpi_cache.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Optional, Protocol

from sqlalchemy.orm import Session

from fleetcheck.models.kpi_cache import KpiCache
from fleetcheck.schemas.kpi import CachedPeriodicityCompliance, PeriodicityComplianceResult

PERIODICITY_COMPLIANCE_KEY = "periodicity_compliance"
DEFAULT_TTL_MINUTES = 15


@dataclass
class CacheEntry:
    payload: Dict[str, Any]
    cached_at: datetime
    expires_at: datetime


class KpiCacheStore(Protocol):
    """Key-value store for derived KPI snapshots; entries carry their own expiry."""

    def get(self, key: str) -> Optional[CacheEntry]:
        ...

    def set(self, key: str, entry: CacheEntry) -> None:
        ...


class InMemoryKpiCacheStore:
    def __init__(self) -> None:
        self._data: Dict[str, CacheEntry] = {}

    def get(self, key: str) -> Optional[CacheEntry]:
        return self._data.get(key)

    def set(self, key: str, entry: CacheEntry) -> None:
        self._data[key] = entry


class SqlKpiCacheStore:
    """Backed by the kpi_cache table; one row per key, overwritten on set."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get(self, key: str) -> Optional[CacheEntry]:
        row = self.db.query(KpiCache).filter(KpiCache.key == key).first()
        if row is None:
            return None
        return CacheEntry(payload=row.payload, cached_at=row.cached_at, expires_at=row.expires_at)

    def set(self, key: str, entry: CacheEntry) -> None:
        row = self.db.query(KpiCache).filter(KpiCache.key == key).first() or KpiCache(key=key)
        row.payload = entry.payload
        row.cached_at = entry.cached_at
        row.expires_at = entry.expires_at
        self.db.add(row)
        self.db.commit()


def write_compliance_cache(
    store: KpiCacheStore,
    result: PeriodicityComplianceResult,
    now: datetime,
    *,
    ttl_minutes: int = DEFAULT_TTL_MINUTES,
) -> CachedPeriodicityCompliance:
    entry = CacheEntry(
        payload=result.model_dump(mode="json"),
        cached_at=now,
        expires_at=now + timedelta(minutes=ttl_minutes),
    )
    store.set(PERIODICITY_COMPLIANCE_KEY, entry)
    return CachedPeriodicityCompliance(
        **result.model_dump(), cached_at=entry.cached_at, expires_at=entry.expires_at
    )


def read_compliance_cache(store: KpiCacheStore, now: datetime) -> Optional[CachedPeriodicityCompliance]:
    """Cached snapshot if still inside its TTL, else None."""
    entry = store.get(PERIODICITY_COMPLIANCE_KEY)
    if entry is None or entry.expires_at <= now:
        return None
    return CachedPeriodicityCompliance(
        **entry.payload, cached_at=entry.cached_at, expires_at=entry.expires_at
    )
