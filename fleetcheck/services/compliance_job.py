# fleetcheck/services/compliance_job.py
from __future__ import annotations

import logging
import os
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from fleetcheck.crud import checklist as crud
from fleetcheck.schemas.checklist import ChecklistResponse, ChecklistTemplate, Machine
from fleetcheck.schemas.kpi import (
    CachedPeriodicityCompliance,
    PeriodicityComplianceResult,
    VariableAlertsResult,
    VariablePeriodicityResult,
)
from fleetcheck.services.kpi_cache import KpiCacheStore, write_compliance_cache
from fleetcheck.services.periodicity import evaluate_periodicity_compliance
from fleetcheck.services.variable_alerts import alert_window_start, evaluate_variable_alerts
from fleetcheck.services.variable_periodicity import evaluate_variable_periodicity

log = logging.getLogger("fleetcheck.jobs")


def _ttl_minutes() -> int:
    return int(os.getenv("KPI_CACHE_TTL_MINUTES", "15"))


def _page_size() -> int:
    return int(os.getenv("RESPONSE_PAGE_SIZE", "500"))


def _load_machines(db: Session) -> List[Machine]:
    return [Machine.model_validate(m) for m in crud.list_machines(db)]


def _warn_orphans(templates: List[ChecklistTemplate], machines: List[Machine]) -> None:
    known = {t.id for t in templates}
    for m in machines:
        for tid in m.checklists:
            if tid not in known:
                log.warning("machine %s lists unknown template %s; skipped", m.id, tid)


def _load_single_pair(
    db: Session, now: datetime, template_id: str, machine_id: str, until: Optional[datetime]
) -> PeriodicityComplianceResult:
    # one indexed lookup instead of streaming the template's history
    template_row = crud.get_template(db, template_id)
    machine_row = crud.get_machine(db, machine_id)
    templates = [ChecklistTemplate.model_validate(template_row)] if template_row else []
    machines = [Machine.model_validate(machine_row)] if machine_row else []
    last = crud.latest_submission(db, template_id, machine_id, until=until or now)
    responses = [ChecklistResponse.model_validate(last)] if last is not None else []
    return evaluate_periodicity_compliance(
        templates,
        machines,
        responses,
        now,
        template_id=template_id,
        machine_id=machine_id,
        until=until,
    )


def load_periodicity_compliance(
    db: Session,
    now: datetime,
    *,
    template_id: Optional[str] = None,
    machine_id: Optional[str] = None,
    until: Optional[datetime] = None,
) -> PeriodicityComplianceResult:
    """Fetch snapshots from the store and run the evaluator over them."""
    if template_id and machine_id:
        return _load_single_pair(db, now, template_id, machine_id, until)

    templates = [
        ChecklistTemplate.model_validate(t)
        for t in crud.list_templates(db, only_active_periodicity=True)
    ]
    machines = _load_machines(db)
    responses = (
        ChecklistResponse.model_validate(r)
        for r in crud.iter_responses(
            db,
            template_ids=[t.id for t in templates],
            until=until or now,
            page_size=_page_size(),
        )
    )
    return evaluate_periodicity_compliance(
        templates,
        machines,
        responses,
        now,
        template_id=template_id,
        machine_id=machine_id,
        until=until,
    )


def load_variable_periodicity(db: Session, now: datetime) -> VariablePeriodicityResult:
    templates = [ChecklistTemplate.model_validate(t) for t in crud.list_templates(db)]
    machines = _load_machines(db)
    _warn_orphans(templates, machines)
    tracked = [
        t.id
        for t in templates
        if any(q.variable and q.variable.periodicity and q.variable.periodicity.active for q in t.questions)
    ]
    responses = (
        ChecklistResponse.model_validate(r)
        for r in crud.iter_responses(db, template_ids=tracked, until=now, page_size=_page_size())
    )
    return evaluate_variable_periodicity(templates, machines, responses, now)


def run_periodicity_check(db: Session, store: KpiCacheStore, now: datetime) -> CachedPeriodicityCompliance:
    """
    Evaluate compliance for every tracked pair and write the snapshot to the
    cache store. Returns what was cached.
    """
    result = load_periodicity_compliance(db, now)
    cached = write_compliance_cache(store, result, now, ttl_minutes=_ttl_minutes())
    s = result.summary
    log.info(
        "periodicity check: tracked=%s compliant=%s non_compliant=%s never_submitted=%s",
        s.total_tracked,
        s.compliant,
        s.non_compliant,
        s.never_submitted,
    )
    return cached


def load_variable_alerts(db: Session, now: datetime) -> VariableAlertsResult:
    templates = [ChecklistTemplate.model_validate(t) for t in crud.list_templates(db)]
    with_rules = [
        t.id for t in templates if any(q.variable and q.variable.alert_rule for q in t.questions)
    ]
    responses = (
        ChecklistResponse.model_validate(r)
        for r in crud.iter_responses(
            db,
            template_ids=with_rules,
            since=alert_window_start(now),
            until=now,
            page_size=_page_size(),
        )
    )
    result = evaluate_variable_alerts(templates, _load_machines(db), responses, now)
    log.debug("variable alerts: %s active", len(result.items))
    return result
