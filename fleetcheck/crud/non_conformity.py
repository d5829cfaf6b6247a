# fleetcheck/crud/non_conformity.py
from typing import Any, Dict, List, Optional, Sequence, Tuple

import uuid
from datetime import datetime
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from fleetcheck.models.machine import Machine
from fleetcheck.models.nc_audit import NcAudit
from fleetcheck.models.non_conformity import NonConformity
from fleetcheck.schemas.non_conformity import NonConformityCreate
from fleetcheck.services.recurrence import PriorNc

AUDIT_LIMIT = 50


def get_nc(db: Session, nc_id: str) -> Optional[NonConformity]:
    return db.query(NonConformity).filter(NonConformity.id == nc_id).first()


def list_for_response(db: Session, response_id: str) -> List[NonConformity]:
    return (
        db.query(NonConformity)
        .filter(NonConformity.origin_checklist_response_id == response_id)
        .order_by(NonConformity.origin_key.asc())
        .all()
    )


def list_ncs(
    db: Session,
    *,
    statuses: Optional[Sequence[str]] = None,
    severities: Optional[Sequence[str]] = None,
    asset_id: Optional[str] = None,
    template_id: Optional[str] = None,
    operator_matricula: Optional[str] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    limit: int = 500,
) -> List[NonConformity]:
    """
    Coarse SQL pre-filter (newest first, id tie-break). The exact predicate
    is applied afterwards by services.nc_filters on the loaded records.
    """
    q = db.query(NonConformity)
    if statuses:
        q = q.filter(NonConformity.status.in_(list(statuses)))
    if severities:
        q = q.filter(NonConformity.severity.in_(list(severities)))
    if asset_id:
        q = q.filter(
            or_(
                NonConformity.asset_id == asset_id,
                NonConformity.asset_id.in_(select(Machine.id).where(Machine.tag == asset_id)),
            )
        )
    if template_id:
        q = q.filter(NonConformity.linked_template_id == template_id)
    if operator_matricula:
        q = q.filter(NonConformity.operator_matricula == operator_matricula)
    if date_from is not None:
        q = q.filter(NonConformity.created_at >= date_from)
    if date_to is not None:
        q = q.filter(NonConformity.created_at <= date_to)
    return (
        q.order_by(NonConformity.created_at.desc(), NonConformity.id.desc())
         .limit(limit)
         .all()
    )


def recent_for_asset(db: Session, asset_id: str, *, since: datetime) -> List[PriorNc]:
    rows = (
        db.query(
            NonConformity.id,
            NonConformity.created_at,
            NonConformity.normalized_title,
            NonConformity.system_category,
        )
        .filter(NonConformity.asset_id == asset_id, NonConformity.created_at >= since)
        .all()
    )
    return [
        PriorNc(id=r.id, created_at=r.created_at, normalized_title=r.normalized_title, system_category=r.system_category)
        for r in rows
    ]


def create_many(db: Session, records: Sequence[NonConformityCreate]) -> Tuple[List[NonConformity], int]:
    """
    Insert mapper output. Records whose (response, origin_key) already exists
    are skipped, so replaying a submission never duplicates NCs.
    Returns (inserted rows, skipped count).
    """
    if not records:
        return [], 0

    response_ids = {r.origin_checklist_response_id for r in records}
    existing = {
        (row.origin_checklist_response_id, row.origin_key)
        for row in db.query(NonConformity.origin_checklist_response_id, NonConformity.origin_key)
        .filter(NonConformity.origin_checklist_response_id.in_(response_ids))
        .all()
    }

    inserted: List[NonConformity] = []
    skipped = 0
    for rec in records:
        key = (rec.origin_checklist_response_id, rec.origin_key)
        if key in existing:
            skipped += 1
            continue
        existing.add(key)
        data = rec.model_dump(mode="json")
        obj = NonConformity(
            id=uuid.uuid4().hex,
            title=rec.title,
            normalized_title=rec.normalized_title,
            description=rec.description,
            severity=rec.severity,
            severity_rank=rec.severity_rank,
            safety_risk=rec.safety_risk,
            impact_availability=rec.impact_availability,
            status=rec.status,
            due_at=rec.due_at,
            created_at=rec.created_at,
            updated_at=rec.created_at,
            created_by=data["created_by"],
            operator_matricula=rec.created_by.matricula or None,
            linked_asset=data["linked_asset"],
            asset_id=rec.linked_asset.id,
            linked_template_id=rec.linked_template_id,
            source=rec.source,
            origin_checklist_response_id=rec.origin_checklist_response_id,
            origin_question_id=rec.origin_question_id,
            origin_key=rec.origin_key,
            root_cause=rec.root_cause,
            actions=data["actions"],
            recurrence_of_id=rec.recurrence_of_id,
            telemetry_ref=data["telemetry_ref"],
            year_month=rec.year_month,
            system_category=rec.system_category,
        )
        db.add(obj)
        inserted.append(obj)

    db.commit()
    for obj in inserted:
        db.refresh(obj)
    return inserted, skipped


def update_nc(
    db: Session,
    obj: NonConformity,
    updates: Dict[str, Any],
    diff: Dict[str, Any],
    *,
    by_user_id: Optional[str] = None,
    by_nome: Optional[str] = None,
    at: Optional[datetime] = None,
) -> NonConformity:
    """Write changed columns and append the audit row in one transaction."""
    for k, v in updates.items():
        setattr(obj, k, v)
    db.add(obj)
    db.add(
        NcAudit(
            nc_id=obj.id,
            by_user_id=by_user_id or "system",
            by_nome=by_nome,
            at=at or datetime.utcnow(),
            diff=diff,
        )
    )
    db.commit()
    db.refresh(obj)
    return obj


def list_audits(db: Session, nc_id: str, *, limit: int = AUDIT_LIMIT) -> List[NcAudit]:
    return (
        db.query(NcAudit)
        .filter(NcAudit.nc_id == nc_id)
        .order_by(NcAudit.at.desc(), NcAudit.id.desc())
        .limit(limit)
        .all()
    )
