# fleetcheck/api/v1/templates.py
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fleetcheck.crud.checklist import (
    get_template as crud_get_template,
    update_template_periodicity as crud_update_periodicity,
)
from fleetcheck.db.session import get_db
from fleetcheck.schemas.checklist import (
    ChecklistPeriodicity,
    ChecklistPeriodicityUpdate,
    ChecklistTemplate,
)
from fleetcheck.services.periodicity import apply_periodicity_update

router = APIRouter()
log = logging.getLogger("fleetcheck.templates")


@router.get("/templates/{template_id}", response_model=ChecklistTemplate)
def get_template(template_id: str, db: Session = Depends(get_db)):
    row = crud_get_template(db, template_id)
    if not row:
        raise HTTPException(status_code=404, detail="Template not found")
    return ChecklistTemplate.model_validate(row)


@router.patch("/templates/{template_id}/periodicity", response_model=ChecklistTemplate)
def update_periodicity(
    template_id: str,
    payload: ChecklistPeriodicityUpdate,
    db: Session = Depends(get_db),
):
    """
    Enable/disable periodicity tracking and change its cadence.
    Missing fields keep their stored values.
    """
    row = crud_get_template(db, template_id)
    if not row:
        raise HTTPException(status_code=404, detail="Template not found")

    current = ChecklistPeriodicity.model_validate(row.periodicity) if row.periodicity else None
    periodicity = apply_periodicity_update(current, payload)
    row = crud_update_periodicity(db, row, periodicity)
    log.info(
        "template %s periodicity -> active=%s %sx%s (%s days)",
        template_id,
        periodicity.active,
        periodicity.quantity,
        periodicity.unit,
        periodicity.window_days,
    )
    return ChecklistTemplate.model_validate(row)
