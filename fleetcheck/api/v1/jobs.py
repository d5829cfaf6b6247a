# fleetcheck/api/v1/jobs.py
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from fleetcheck.core.timeutils import iso_z, utcnow
from fleetcheck.db.session import get_db
from fleetcheck.services.compliance_job import run_periodicity_check
from fleetcheck.services.kpi_cache import SqlKpiCacheStore

router = APIRouter()


@router.post("/jobs/check-periodicity")
def check_periodicity(db: Session = Depends(get_db)) -> dict:
    """Manual trigger for the scheduled compliance check (same code path)."""
    cached = run_periodicity_check(db, SqlKpiCacheStore(db), utcnow())
    return {
        "ok": True,
        "generated_at": iso_z(cached.generated_at),
        "expires_at": iso_z(cached.expires_at),
        "summary": cached.summary.model_dump(),
    }
