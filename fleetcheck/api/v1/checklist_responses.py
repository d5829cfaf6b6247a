# fleetcheck/api/v1/checklist_responses.py
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from fleetcheck.core.timeutils import utcnow
from fleetcheck.crud.checklist import get_response as crud_get_response
from fleetcheck.crud.non_conformity import list_for_response as crud_list_for_response
from fleetcheck.db.session import get_db
from fleetcheck.schemas.checklist import ChecklistResponseCreate, ChecklistResponseOut
from fleetcheck.services.checklist_intake import submit_checklist_response

router = APIRouter()


def _to_out(row, nc_ids) -> ChecklistResponseOut:
    out = ChecklistResponseOut.model_validate(row)
    out.non_conformity_ids = list(nc_ids)
    return out


@router.post(
    "/checklist-responses",
    response_model=ChecklistResponseOut,
    status_code=status.HTTP_201_CREATED,
)
def create_checklist_response(payload: ChecklistResponseCreate, db: Session = Depends(get_db)):
    """
    Store a checklist submission and raise one NC per failed item / extra finding.
    """
    row, inserted = submit_checklist_response(db, payload, utcnow())
    return _to_out(row, [nc.id for nc in inserted])


@router.get("/checklist-responses/{response_id}", response_model=ChecklistResponseOut)
def get_checklist_response(response_id: str, db: Session = Depends(get_db)):
    row = crud_get_response(db, response_id)
    if not row:
        raise HTTPException(status_code=404, detail="Checklist response not found")
    return _to_out(row, [nc.id for nc in crud_list_for_response(db, response_id)])
