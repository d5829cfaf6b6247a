# fleetcheck/services/checklist_intake.py
from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from fleetcheck.crud import checklist as crud_checklist
from fleetcheck.crud import non_conformity as crud_nc
from fleetcheck.models.checklist_response import ChecklistResponse as ChecklistResponseRow
from fleetcheck.models.non_conformity import NonConformity as NonConformityRow
from fleetcheck.schemas.checklist import (
    ChecklistResponse,
    ChecklistResponseCreate,
    ChecklistTemplate,
    Machine,
)
from fleetcheck.schemas.non_conformity import TelemetrySnapshot
from fleetcheck.services.nc_mapper import map_checklist_response
from fleetcheck.services.recurrence import recurrence_cutoff
from fleetcheck.services.telemetry import fetch_telemetry_snapshot

log = logging.getLogger("fleetcheck.nc")


def _telemetry_enabled() -> bool:
    return os.getenv("TELEMETRY_ENABLED", "1") == "1"


def _recurrence_window_days() -> int:
    return int(os.getenv("NC_RECURRENCE_WINDOW_DAYS", "30"))


def _safe_telemetry(asset_id: str, at: datetime) -> Optional[TelemetrySnapshot]:
    if not _telemetry_enabled():
        return None
    try:
        return fetch_telemetry_snapshot(asset_id, at)
    except Exception:
        # telemetry is best-effort; the NC is raised without it
        log.exception("telemetry lookup failed for asset %s", asset_id)
        return None


def raise_non_conformities(db: Session, response: ChecklistResponse) -> Tuple[List[NonConformityRow], int]:
    """
    Derive NCs from a stored submission and persist them.
    Idempotent per (response, origin_key); returns (inserted, skipped).
    """
    machine_row = crud_checklist.get_machine(db, response.machine_id)
    if machine_row is None:
        log.warning("response %s references unknown machine %s", response.id, response.machine_id)
    machine = Machine.model_validate(machine_row) if machine_row is not None else None

    template_row = crud_checklist.get_template(db, response.template_id)
    if template_row is None:
        log.warning("response %s references unknown template %s", response.id, response.template_id)
        questions = {}
    else:
        template = ChecklistTemplate.model_validate(template_row)
        questions = {q.id: q for q in template.questions}

    recent = crud_nc.recent_for_asset(
        db,
        response.machine_id,
        since=recurrence_cutoff(response.created_at, _recurrence_window_days()),
    )

    has_findings = any(a.response == "nc" for a in response.answers) or any(
        (x.title or "").strip() for x in response.extra_non_conformities
    )
    telemetry = _safe_telemetry(response.machine_id, response.created_at) if has_findings else None

    records = map_checklist_response(response, machine, questions, recent, telemetry)
    inserted, skipped = crud_nc.create_many(db, records)
    if inserted:
        recurrent = sum(1 for r in inserted if r.recurrence_of_id)
        log.info(
            "response %s raised %s NC(s) (%s recurrent, %s already present)",
            response.id,
            len(inserted),
            recurrent,
            skipped,
        )
    return inserted, skipped


def submit_checklist_response(
    db: Session, payload: ChecklistResponseCreate, now: datetime
) -> Tuple[ChecklistResponseRow, List[NonConformityRow]]:
    row = crud_checklist.create_response(db, payload, created_at=payload.created_at or now)
    inserted, _ = raise_non_conformities(db, ChecklistResponse.model_validate(row))
    return row, inserted
