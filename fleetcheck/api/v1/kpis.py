# fleetcheck/api/v1/kpis.py
from datetime import datetime
from typing import Optional, Union

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from fleetcheck.api.v1.non_conformities import NcQuery, load_filtered, nc_query
from fleetcheck.core.timeutils import utcnow
from fleetcheck.db.session import get_db
from fleetcheck.schemas.kpi import (
    CachedPeriodicityCompliance,
    NcKpiReport,
    PeriodicityComplianceResult,
    VariableAlertsResult,
    VariablePeriodicityResult,
)
from fleetcheck.services.compliance_job import (
    load_periodicity_compliance,
    load_variable_alerts,
    load_variable_periodicity,
)
from fleetcheck.services.kpi_cache import SqlKpiCacheStore, read_compliance_cache
from fleetcheck.services.nc_filters import parse_filter_date
from fleetcheck.services.nc_kpis import build_nc_kpi_report

router = APIRouter()


@router.get("/kpi/nc", response_model=NcKpiReport)
def nc_dashboard(params: NcQuery = Depends(nc_query), db: Session = Depends(get_db)):
    """NC dashboard over the filtered set (open totals, on-time %, recurrence, series, Pareto)."""
    records = load_filtered(db, params)
    return build_nc_kpi_report(records, utcnow())


@router.get(
    "/kpi/periodicity-compliance",
    response_model=Union[CachedPeriodicityCompliance, PeriodicityComplianceResult],
)
def periodicity_compliance(
    template_id: Optional[str] = Query(None),
    machine_id: Optional[str] = Query(None),
    until: Optional[str] = Query(None, alias="to"),
    fresh: bool = Query(False, description="Skip the cached snapshot."),
    db: Session = Depends(get_db),
):
    """
    Compliance per tracked (template, machine) pair.
    Unfiltered requests are served from the job's cached snapshot while it is fresh.
    """
    now = utcnow()
    until_dt: Optional[datetime] = parse_filter_date(until, end_of_day=True)
    template_id = (template_id or "").strip() or None
    machine_id = (machine_id or "").strip() or None

    if not (fresh or template_id or machine_id or until_dt):
        cached = read_compliance_cache(SqlKpiCacheStore(db), now)
        if cached is not None:
            return cached

    return load_periodicity_compliance(
        db, now, template_id=template_id, machine_id=machine_id, until=until_dt
    )


@router.get("/kpi/variable-periodicity", response_model=VariablePeriodicityResult)
def variable_periodicity(db: Session = Depends(get_db)):
    return load_variable_periodicity(db, utcnow())


@router.get("/kpi/variable-alerts", response_model=VariableAlertsResult)
def variable_alerts(db: Session = Depends(get_db)):
    """Latest triggered alert per (variable, machine, template, question) over the last 30 days."""
    return load_variable_alerts(db, utcnow())
