# fleetcheck/crud/checklist.py
from typing import Iterator, List, Optional

import uuid
from datetime import datetime
from sqlalchemy.orm import Session

from fleetcheck.models.checklist_response import ChecklistResponse
from fleetcheck.models.checklist_template import ChecklistTemplate
from fleetcheck.models.machine import Machine
from fleetcheck.schemas.checklist import ChecklistPeriodicity, ChecklistResponseCreate
from fleetcheck.schemas import checklist as schemas

DEFAULT_PAGE_SIZE = 500


# -------- templates --------
def get_template(db: Session, template_id: str) -> Optional[ChecklistTemplate]:
    return db.query(ChecklistTemplate).filter(ChecklistTemplate.id == template_id).first()


def list_templates(db: Session, *, only_active_periodicity: bool = False) -> List[ChecklistTemplate]:
    q = db.query(ChecklistTemplate)
    if only_active_periodicity:
        q = q.filter(ChecklistTemplate.periodicity_active.is_(True))
    return q.order_by(ChecklistTemplate.title.asc(), ChecklistTemplate.id.asc()).all()


def upsert_template(db: Session, payload: schemas.ChecklistTemplate) -> ChecklistTemplate:
    obj = get_template(db, payload.id) or ChecklistTemplate(id=payload.id)
    obj.type = payload.type
    obj.title = payload.title
    obj.version = payload.version
    obj.is_active = payload.is_active
    obj.questions = [q.model_dump(mode="json", exclude_none=True) for q in payload.questions]
    obj.periodicity = payload.periodicity.model_dump(mode="json") if payload.periodicity else None
    obj.periodicity_active = bool(payload.periodicity and payload.periodicity.active)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def update_template_periodicity(
    db: Session, obj: ChecklistTemplate, periodicity: ChecklistPeriodicity
) -> ChecklistTemplate:
    obj.periodicity = periodicity.model_dump(mode="json")
    obj.periodicity_active = periodicity.active
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


# -------- machines --------
def get_machine(db: Session, machine_id: str) -> Optional[Machine]:
    return db.query(Machine).filter(Machine.id == machine_id).first()


def list_machines(db: Session) -> List[Machine]:
    return db.query(Machine).order_by(Machine.tag.asc(), Machine.id.asc()).all()


def upsert_machine(db: Session, payload: schemas.Machine) -> Machine:
    obj = get_machine(db, payload.id) or Machine(id=payload.id)
    obj.tag = payload.tag
    obj.modelo = payload.modelo
    obj.tipo = payload.tipo
    obj.setor = payload.setor
    obj.placa = payload.placa
    obj.fleet_type = payload.fleet_type
    obj.checklists = list(payload.checklists)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


# -------- responses --------
def get_response(db: Session, response_id: str) -> Optional[ChecklistResponse]:
    return db.query(ChecklistResponse).filter(ChecklistResponse.id == response_id).first()


def create_response(
    db: Session, payload: ChecklistResponseCreate, *, created_at: datetime
) -> ChecklistResponse:
    obj = ChecklistResponse(
        id=uuid.uuid4().hex,
        machine_id=payload.machine_id,
        template_id=payload.template_id,
        user_id=payload.user_id,
        operator_matricula=payload.operator_matricula,
        operator_nome=payload.operator_nome,
        created_at=created_at,
        answers=[a.model_dump(mode="json") for a in payload.answers],
        extra_non_conformities=[x.model_dump(mode="json") for x in payload.extra_non_conformities],
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def latest_submission(
    db: Session, template_id: str, machine_id: str, *, until: Optional[datetime] = None
) -> Optional[ChecklistResponse]:
    q = db.query(ChecklistResponse).filter(
        ChecklistResponse.template_id == template_id,
        ChecklistResponse.machine_id == machine_id,
    )
    if until is not None:
        q = q.filter(ChecklistResponse.created_at <= until)
    # Stable pick: tie-breaker by id
    return q.order_by(ChecklistResponse.created_at.desc(), ChecklistResponse.id.desc()).first()


def iter_responses(
    db: Session,
    *,
    template_ids: Optional[List[str]] = None,
    since: Optional[datetime] = None,
    until: Optional[datetime] = None,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Iterator[ChecklistResponse]:
    """
    Walk the response history page by page (created_at, id ascending) so
    callers never hold the whole table in memory.
    """
    q = db.query(ChecklistResponse)
    if template_ids is not None:
        if not template_ids:
            return
        q = q.filter(ChecklistResponse.template_id.in_(template_ids))
    if since is not None:
        q = q.filter(ChecklistResponse.created_at >= since)
    if until is not None:
        q = q.filter(ChecklistResponse.created_at <= until)
    q = q.order_by(ChecklistResponse.created_at.asc(), ChecklistResponse.id.asc())

    offset = 0
    while True:
        page = q.offset(offset).limit(page_size).all()
        if not page:
            return
        yield from page
        if len(page) < page_size:
            return
        offset += page_size
