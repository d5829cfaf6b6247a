# fleetcheck/api/health.py
import time

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fleetcheck import __version__
from fleetcheck.core.timeutils import iso_z, utcnow
from fleetcheck.db.session import get_db
from fleetcheck.services.kpi_cache import PERIODICITY_COMPLIANCE_KEY, SqlKpiCacheStore

router = APIRouter(tags=["health"])

NO_STORE = {"Cache-Control": "no-store"}


def compliance_cache_state(db: Session) -> dict:
    """Whether the scheduled compliance snapshot exists and is still within its TTL."""
    entry = SqlKpiCacheStore(db).get(PERIODICITY_COMPLIANCE_KEY)
    if entry is None:
        return {"state": "missing"}
    now = utcnow()
    return {
        "state": "fresh" if entry.expires_at > now else "stale",
        "cached_at": iso_z(entry.cached_at),
        "age_minutes": round((now - entry.cached_at).total_seconds() / 60.0, 1),
    }


@router.get("/healthz")
def healthz() -> dict:
    return {"ok": True, "service": "fleetcheck", "version": __version__, "ts": iso_z(utcnow())}


@router.get("/readyz")
def readyz(db: Session = Depends(get_db)):
    """
    Ready when the database answers. The compliance snapshot is reported but
    does not gate readiness: it is missing until the first scheduled run.
    """
    t0 = time.perf_counter()
    try:
        db.execute(text("SELECT 1"))
        latency_ms = round((time.perf_counter() - t0) * 1000.0, 2)
        cache = compliance_cache_state(db)
    except SQLAlchemyError as e:
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content={"ok": False, "db": "down", "error": str(e)},
            headers=NO_STORE,
        )
    return JSONResponse(
        status_code=200,
        content={"ok": True, "db": "up", "db_latency_ms": latency_ms, "compliance_cache": cache},
        headers=NO_STORE,
    )
