# fleetcheck/services/nc_lifecycle.py
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from fleetcheck.core.errors import NcTransitionError
from fleetcheck.schemas.non_conformity import NcAction, NonConformity, NonConformityUpdate
from fleetcheck.services.nc_mapper import DEFAULT_SEVERITY, compute_due_at, severity_rank

# alta NCs can never be pushed further than this from detection
ALTA_MAX_DUE_DAYS = 2


@dataclass
class NcChange:
    """Column updates to write plus the before/after diff for the audit row."""

    updates: Dict[str, Any] = field(default_factory=dict)
    diff: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return bool(self.diff)


def resolve_due_at(
    created_at: datetime,
    severity: str,
    requested: Optional[datetime] = None,
) -> datetime:
    fallback = compute_due_at(created_at, severity)
    if requested is None or requested < created_at:
        return fallback
    if severity == "alta":
        return min(requested, created_at + timedelta(days=ALTA_MAX_DUE_DAYS))
    return requested


def has_completed_corrective(actions: List[NcAction]) -> bool:
    return any(a.type == "corretiva" and a.completed_at is not None for a in actions)


def has_effective_preventive(actions: List[NcAction]) -> bool:
    return any(a.type == "preventiva" and a.effective is True for a in actions)


def normalize_actions(actions: List[NcAction]) -> List[NcAction]:
    """Drop blank descriptions and give every action a stable id."""
    out: List[NcAction] = []
    for a in actions:
        description = (a.description or "").strip()
        if not description:
            continue
        out.append(a.model_copy(update={"id": a.id or str(uuid.uuid4()), "description": description}))
    return out


def _dump(value: Any) -> Any:
    if isinstance(value, list):
        return [_dump(v) for v in value]
    if hasattr(value, "model_dump"):
        return value.model_dump(mode="json")
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def apply_nc_update(existing: NonConformity, payload: NonConformityUpdate, now: datetime) -> NcChange:
    """
    Validate a PATCH against the current NC and compute what changes.

    Rules:
      - closing ('resolvida') needs at least one completed corrective action
      - closing a recurrent NC also needs a root cause and an effective
        preventive action
      - due_at is re-derived from severity; a requested date before created_at
        falls back to the SLA default and alta is capped at created_at + 2d
      - only fields whose value actually changes are reported

    Raises NcTransitionError when a rule is violated. Nothing is written here.
    """
    severity = payload.severity or existing.severity or DEFAULT_SEVERITY
    status = payload.status or existing.status
    due_at = resolve_due_at(existing.created_at, severity, payload.due_at)

    if payload.root_cause is not None:
        root_cause: Optional[str] = payload.root_cause.strip() or None
    else:
        root_cause = existing.root_cause

    incoming = normalize_actions(payload.actions) if payload.actions is not None else []
    actions = incoming or list(existing.actions)

    if status == "resolvida":
        if not has_completed_corrective(actions):
            raise NcTransitionError("Complete at least one corrective action before closing the NC.")
        if existing.recurrence_of_id:
            if not root_cause:
                raise NcTransitionError("A recurrent NC needs a root cause before it can be closed.")
            if not has_effective_preventive(actions):
                raise NcTransitionError(
                    "A recurrent NC needs at least one preventive action marked effective."
                )

    change = NcChange()

    def apply(key: str, before: Any, after: Any) -> None:
        if _dump(before) != _dump(after):
            # nested parts go to JSON columns; scalars keep their python type
            nested = isinstance(after, list) or hasattr(after, "model_dump")
            change.updates[key] = _dump(after) if nested else after
            change.diff[key] = {"before": _dump(before), "after": _dump(after)}

    apply("status", existing.status, status)
    apply("severity", existing.severity, severity)
    apply("severity_rank", existing.severity_rank, severity_rank(severity))
    apply("due_at", existing.due_at, due_at)
    apply("root_cause", existing.root_cause, root_cause)
    if payload.safety_risk is not None:
        apply("safety_risk", existing.safety_risk, payload.safety_risk)
    if payload.impact_availability is not None:
        apply("impact_availability", existing.impact_availability, payload.impact_availability)
    apply("actions", existing.actions, actions)
    if payload.telemetry_ref is not None:
        apply("telemetry_ref", existing.telemetry_ref, payload.telemetry_ref)

    if change.changed:
        change.updates["updated_at"] = now
    return change
