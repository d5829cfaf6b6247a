# fleetcheck/services/periodicity.py
from __future__ import annotations

import math
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from fleetcheck.core.errors import InvalidConfigurationError
from fleetcheck.schemas.checklist import (
    ChecklistPeriodicity,
    ChecklistPeriodicityUpdate,
    ChecklistResponse,
    ChecklistTemplate,
    Machine,
    UNIT_DAYS,
)
from fleetcheck.schemas.kpi import (
    PeriodicityComplianceItem,
    PeriodicityComplianceResult,
    PeriodicityComplianceSummary,
)

VALID_ANCHORS = ("last_submission", "calendar")
SUPPORTED_ANCHOR = "last_submission"

SECONDS_PER_DAY = 86400.0

# non-compliant rows surface first in every listing
STATUS_ORDER = {"non_compliant": 0, "never_submitted": 1, "compliant": 2}


# =========================
# Time-window calculator
# =========================
def compute_window_days(quantity: int, unit: str) -> int:
    """quantity x 1 / 7 / 30 for day / week / month."""
    try:
        return int(quantity) * UNIT_DAYS[unit]
    except KeyError:
        raise InvalidConfigurationError(
            f"Invalid periodicity unit {unit!r} (must be 'day', 'week' or 'month')."
        ) from None


def build_periodicity(
    quantity: int,
    unit: str,
    *,
    anchor: str = SUPPORTED_ANCHOR,
    active: bool = True,
) -> ChecklistPeriodicity:
    """Validate a periodicity configuration and derive its window."""
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidConfigurationError("Periodicity quantity must be an integer.")
    if quantity < 1:
        raise InvalidConfigurationError("Periodicity quantity must be >= 1.")
    if anchor not in VALID_ANCHORS:
        raise InvalidConfigurationError(
            f"Invalid periodicity anchor {anchor!r} (must be 'last_submission' or 'calendar')."
        )
    window_days = compute_window_days(quantity, unit)
    return ChecklistPeriodicity(
        quantity=quantity,
        unit=unit,
        window_days=window_days,
        anchor=anchor,
        active=active,
    )


def normalize_periodicity(periodicity: ChecklistPeriodicity) -> ChecklistPeriodicity:
    """Recompute window_days of a stored periodicity (stored values are never trusted)."""
    return periodicity.model_copy(
        update={"window_days": compute_window_days(periodicity.quantity, periodicity.unit)}
    )


def ensure_supported_anchor(periodicity: ChecklistPeriodicity, *, template_id: str = "") -> None:
    if periodicity.anchor != SUPPORTED_ANCHOR:
        where = f" on template {template_id!r}" if template_id else ""
        raise InvalidConfigurationError(
            f"Periodicity anchor {periodicity.anchor!r}{where} is not supported "
            f"(only 'last_submission')."
        )


def apply_periodicity_update(
    current: Optional[ChecklistPeriodicity],
    payload: ChecklistPeriodicityUpdate,
) -> ChecklistPeriodicity:
    """
    Merge a PATCH payload with the stored periodicity:
      - unit/quantity/anchor default to the stored values (day / 1 / last_submission)
      - numeric quantity is floored and clamped to >= 1
      - an invalid unit or quantity is rejected only when activating
      - an invalid anchor is always rejected; 'calendar' cannot be activated
    """
    unit = current.unit if current else "day"
    quantity = current.quantity if current else 1
    anchor = current.anchor if current else SUPPORTED_ANCHOR

    if payload.unit in UNIT_DAYS:
        unit = payload.unit
    elif payload.active and payload.unit is not None:
        raise InvalidConfigurationError(f"Invalid periodicity unit {payload.unit!r}.")

    q = payload.quantity
    if isinstance(q, (int, float)) and not isinstance(q, bool) and math.isfinite(q):
        quantity = max(1, int(math.floor(q)))
    elif payload.active and q is not None:
        raise InvalidConfigurationError("Invalid periodicity quantity.")

    if payload.anchor in VALID_ANCHORS:
        anchor = payload.anchor
    elif payload.anchor is not None:
        raise InvalidConfigurationError(f"Invalid periodicity anchor {payload.anchor!r}.")

    if payload.active and anchor != SUPPORTED_ANCHOR:
        raise InvalidConfigurationError("Calendar-anchored periodicity is not supported yet.")

    return build_periodicity(quantity, unit, anchor=anchor, active=payload.active)


# =========================
# Compliance evaluator
# =========================
def classify_submission(
    last_submission_at: Optional[datetime],
    window_days: int,
    reference_time: datetime,
) -> str:
    if last_submission_at is None:
        return "never_submitted"
    elapsed_days = (reference_time - last_submission_at).total_seconds() / SECONDS_PER_DAY
    return "compliant" if elapsed_days <= window_days else "non_compliant"


def latest_submissions(
    responses: Iterable[ChecklistResponse],
    *,
    until: Optional[datetime] = None,
) -> Dict[Tuple[str, str], ChecklistResponse]:
    """
    Most recent response per (template_id, machine_id).
    Ties on created_at go to the greater response id so the pick is stable.
    """
    latest: Dict[Tuple[str, str], ChecklistResponse] = {}
    for r in responses:
        if until is not None and r.created_at > until:
            continue
        key = (r.template_id, r.machine_id)
        cur = latest.get(key)
        if cur is None or (r.created_at, r.id) > (cur.created_at, cur.id):
            latest[key] = r
    return latest


def machine_display_name(machine: Machine) -> str:
    if machine.modelo and machine.modelo.strip():
        return machine.modelo
    if machine.tag and machine.tag.strip():
        return machine.tag
    return machine.id


def tracked_pairs(
    templates: Sequence[ChecklistTemplate],
    machines: Sequence[Machine],
    *,
    template_id: Optional[str] = None,
    machine_id: Optional[str] = None,
) -> List[Tuple[ChecklistTemplate, Machine]]:
    """
    (template, machine) pairs under active periodicity.
    A pair is tracked when the machine lists the template, or when both ids
    were requested explicitly.
    """
    active = [t for t in templates if t.periodicity is not None and t.periodicity.active]
    if template_id:
        active = [t for t in active if t.id == template_id]
    scoped = [m for m in machines if not machine_id or m.id == machine_id]

    pairs: List[Tuple[ChecklistTemplate, Machine]] = []
    for machine in scoped:
        assigned = set(machine.checklists or [])
        for template in active:
            explicit = template_id == template.id and machine_id == machine.id
            if template.id in assigned or explicit:
                pairs.append((template, machine))
    return pairs


def summarize(statuses: Iterable[str]) -> PeriodicityComplianceSummary:
    summary = PeriodicityComplianceSummary()
    for st in statuses:
        summary.total_tracked += 1
        if st == "compliant":
            summary.compliant += 1
        elif st == "non_compliant":
            summary.non_compliant += 1
        else:
            summary.never_submitted += 1
    return summary


def evaluate_periodicity_compliance(
    templates: Sequence[ChecklistTemplate],
    machines: Sequence[Machine],
    responses: Iterable[ChecklistResponse],
    now: datetime,
    *,
    template_id: Optional[str] = None,
    machine_id: Optional[str] = None,
    until: Optional[datetime] = None,
) -> PeriodicityComplianceResult:
    """
    One PeriodicityComplianceItem per tracked (template, machine) pair.

    Pure: takes already-fetched snapshots, does not read or write any store.
    Responses for templates/machines missing from the inputs are ignored.
    Raises InvalidConfigurationError for tracked templates whose anchor is not
    'last_submission'.
    """
    reference_time = until or now
    pairs = tracked_pairs(templates, machines, template_id=template_id, machine_id=machine_id)

    windows: Dict[str, ChecklistPeriodicity] = {}
    for template, _machine in pairs:
        if template.id not in windows:
            ensure_supported_anchor(template.periodicity, template_id=template.id)
            windows[template.id] = normalize_periodicity(template.periodicity)

    latest = latest_submissions(responses, until=reference_time)

    items: List[PeriodicityComplianceItem] = []
    for template, machine in pairs:
        periodicity = windows[template.id]
        last = latest.get((template.id, machine.id))
        last_at = last.created_at if last is not None else None
        items.append(
            PeriodicityComplianceItem(
                template_id=template.id,
                template_name=template.title,
                machine_id=machine.id,
                machine_name=machine_display_name(machine),
                last_submission_at=last_at,
                window_days=periodicity.window_days,
                unit=periodicity.unit,
                quantity=periodicity.quantity,
                anchor=periodicity.anchor,
                status=classify_submission(last_at, periodicity.window_days, reference_time),
            )
        )

    items.sort(
        key=lambda i: (
            STATUS_ORDER[i.status],
            i.template_name.lower(),
            (i.machine_name or "").lower(),
            i.machine_id,
        )
    )

    return PeriodicityComplianceResult(
        generated_at=now,
        summary=summarize(i.status for i in items),
        items=items,
    )
