# fleetcheck/api/v1/non_conformities.py
import logging
import os
from dataclasses import dataclass
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from fleetcheck.core.timeutils import utcnow
from fleetcheck.crud.non_conformity import (
    get_nc as crud_get_nc,
    list_audits as crud_list_audits,
    list_ncs as crud_list_ncs,
    update_nc as crud_update_nc,
)
from fleetcheck.db.session import get_db
from fleetcheck.schemas.non_conformity import (
    NcAuditOut,
    NcDetailOut,
    NcFilters,
    NcPage,
    NcStatus,
    NonConformity,
    NonConformityUpdate,
)
from fleetcheck.schemas.checklist import Severity
from fleetcheck.services.nc_filters import filter_records, parse_filter_date
from fleetcheck.services.nc_lifecycle import apply_nc_update

router = APIRouter()
log = logging.getLogger("fleetcheck.nc")

PAGE_SIZES = (10, 20, 50, 100)


def max_fetch() -> int:
    return int(os.getenv("NC_MAX_FETCH", "500"))


@dataclass
class NcQuery:
    filters: NcFilters
    template_id: Optional[str] = None
    operator_matricula: Optional[str] = None


def nc_query(
    status_f: Optional[NcStatus] = Query(None, alias="status"),
    severity: Optional[Severity] = Query(None),
    asset_id: Optional[str] = Query(None),
    machine_id: Optional[str] = Query(None),
    template_id: Optional[str] = Query(None),
    operator_matricula: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    search: Optional[str] = Query(None),
    date_from: Optional[str] = Query(None),
    from_: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None),
    to: Optional[str] = Query(None),
) -> NcQuery:
    """Shared NC filter params; aliases (machine_id, search, from, to) are accepted too."""
    start = parse_filter_date(date_from or from_)
    end = parse_filter_date(date_to or to, end_of_day=True)
    if start and end and start > end:
        raise HTTPException(status_code=400, detail="Invalid range: date_from must be before date_to")

    text = (q or search or "").strip() or None
    return NcQuery(
        filters=NcFilters(
            statuses=[status_f] if status_f else [],
            severities=[severity] if severity else [],
            asset_id=(asset_id or machine_id or "").strip() or None,
            date_from=start,
            date_to=end,
            query=text,
        ),
        template_id=(template_id or "").strip() or None,
        operator_matricula=(operator_matricula or "").strip() or None,
    )


def load_filtered(db: Session, params: NcQuery) -> List[NonConformity]:
    """Newest-first NCs matching every filter (bounded by NC_MAX_FETCH)."""
    f = params.filters
    rows = crud_list_ncs(
        db,
        statuses=f.statuses,
        severities=f.severities,
        asset_id=f.asset_id,
        template_id=params.template_id,
        operator_matricula=params.operator_matricula,
        date_from=f.date_from,
        date_to=f.date_to,
        limit=max_fetch(),
    )
    return filter_records((NonConformity.model_validate(r) for r in rows), f)


@router.get("/nc", response_model=NcPage)
def list_non_conformities(
    page: int = Query(1, ge=1),
    page_size: int = Query(20),
    params: NcQuery = Depends(nc_query),
    db: Session = Depends(get_db),
):
    if page_size not in PAGE_SIZES:
        raise HTTPException(status_code=400, detail="page_size must be one of 10, 20, 50 or 100")

    records = load_filtered(db, params)
    start = (page - 1) * page_size
    data = records[start:start + page_size]
    return NcPage(
        data=data,
        page=page,
        page_size=page_size,
        total=len(records),
        has_more=start + page_size < len(records),
    )


def _detail(db: Session, row) -> NcDetailOut:
    return NcDetailOut(
        data=NonConformity.model_validate(row),
        audits=[NcAuditOut.model_validate(a) for a in crud_list_audits(db, row.id)],
    )


@router.get("/nc/{nc_id}", response_model=NcDetailOut)
def get_non_conformity(nc_id: str, db: Session = Depends(get_db)):
    row = crud_get_nc(db, nc_id.strip())
    if not row:
        raise HTTPException(status_code=404, detail="Non-conformity not found")
    return _detail(db, row)


@router.patch("/nc/{nc_id}", response_model=NcDetailOut)
def update_non_conformity(nc_id: str, payload: NonConformityUpdate, db: Session = Depends(get_db)):
    """
    Lifecycle update (status, severity, due date, root cause, actions...).
    Closing rules are enforced; every effective change lands in the audit trail.
    """
    row = crud_get_nc(db, nc_id.strip())
    if not row:
        raise HTTPException(status_code=404, detail="Non-conformity not found")

    now = utcnow()
    change = apply_nc_update(NonConformity.model_validate(row), payload, now)
    if not change.changed:
        return _detail(db, row)

    actor = payload.actor
    row = crud_update_nc(
        db,
        row,
        change.updates,
        change.diff,
        by_user_id=actor.id if actor else None,
        by_nome=actor.nome if actor else None,
        at=now,
    )
    log.info("nc %s updated: %s", row.id, ", ".join(sorted(change.diff)))
    return _detail(db, row)
