# fleetcheck/services/nc_mapper.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, List, Mapping, Optional, Sequence

from fleetcheck.schemas.checklist import ChecklistQuestion, ChecklistResponse, Machine
from fleetcheck.schemas.non_conformity import (
    CreatedBy,
    LinkedAsset,
    NonConformityCreate,
    TelemetrySnapshot,
)
from fleetcheck.services.recurrence import PriorNc, find_recurrence, normalize_title

DEFAULT_SEVERITY = "media"

SEVERITY_RANK: Dict[str, int] = {"baixa": 1, "media": 2, "alta": 3}

# SLA (days) from detection to due date
DUE_DAYS: Dict[str, int] = {"baixa": 10, "media": 5, "alta": 2}


# =========================
# Derived fields
# =========================
def severity_rank(severity: Optional[str]) -> int:
    return SEVERITY_RANK.get(severity or DEFAULT_SEVERITY, SEVERITY_RANK[DEFAULT_SEVERITY])


def compute_due_at(created_at: datetime, severity: Optional[str]) -> datetime:
    days = DUE_DAYS.get(severity or DEFAULT_SEVERITY, DUE_DAYS[DEFAULT_SEVERITY])
    return created_at + timedelta(days=days)


def compute_year_month(created_at: datetime) -> str:
    return created_at.strftime("%Y-%m")


def resolve_system_category(question: Optional[ChecklistQuestion]) -> Optional[str]:
    """First non-empty subsystem label on the question (legacy templates use different keys)."""
    if question is None:
        return None
    for value in (
        question.system_category,
        question.system,
        question.category,
        question.group,
        question.section,
    ):
        if value:
            return value
    return None


def linked_asset_for(machine_id: str, machine: Optional[Machine]) -> LinkedAsset:
    if machine is None:
        return LinkedAsset(id=machine_id)
    return LinkedAsset(
        id=machine_id,
        tag=machine.tag or "",
        modelo=machine.modelo,
        tipo=machine.tipo,
        setor=machine.setor,
    )


# =========================
# Mapper
# =========================
def map_checklist_response(
    response: ChecklistResponse,
    machine: Optional[Machine],
    questions: Mapping[str, ChecklistQuestion],
    recent: Sequence[PriorNc],
    telemetry: Optional[TelemetrySnapshot] = None,
) -> List[NonConformityCreate]:
    """
    Explode a checklist submission into the NC records to persist.

      - one record per 'nc' answer (source=checklist_question)
      - one record per extra finding with a non-blank title (source=checklist_extra)
      - 'ok' / 'na' answers produce nothing

    Question NCs take the question's default_severity, else 'media'; extra
    findings take their own severity, else 'media'. Each record is checked
    against `recent` for recurrence. Nothing is persisted here.
    """
    created_at = response.created_at
    asset = linked_asset_for(response.machine_id, machine)
    created_by = CreatedBy(
        id=response.user_id,
        matricula=response.operator_matricula or response.user_id,
        nome=response.operator_nome,
    )

    records: List[NonConformityCreate] = []

    def push(
        *,
        title: str,
        description: Optional[str],
        severity: Optional[str],
        source: str,
        origin_key: str,
        origin_question_id: Optional[str] = None,
        system_category: Optional[str] = None,
        safety_risk: bool = False,
        impact_availability: bool = False,
    ) -> None:
        sev = severity or DEFAULT_SEVERITY
        prior = find_recurrence(title, system_category, created_at, recent)
        records.append(
            NonConformityCreate(
                title=title,
                normalized_title=normalize_title(title),
                description=description,
                severity=sev,
                severity_rank=severity_rank(sev),
                safety_risk=safety_risk,
                impact_availability=impact_availability,
                status="aberta",
                due_at=compute_due_at(created_at, sev),
                created_at=created_at,
                created_by=created_by,
                linked_asset=asset,
                linked_template_id=response.template_id,
                source=source,
                origin_checklist_response_id=response.id,
                origin_question_id=origin_question_id,
                origin_key=origin_key,
                recurrence_of_id=prior.id if prior is not None else None,
                telemetry_ref=telemetry,
                year_month=compute_year_month(created_at),
                system_category=system_category,
            )
        )

    for answer in response.answers:
        if answer.response != "nc":
            continue
        question = questions.get(answer.question_id)
        push(
            title=question.text if question is not None else f"Pergunta {answer.question_id}",
            description=answer.observation,
            severity=question.default_severity if question is not None else None,
            source="checklist_question",
            origin_key=f"q:{answer.question_id}",
            origin_question_id=answer.question_id,
            system_category=resolve_system_category(question),
        )

    for index, extra in enumerate(response.extra_non_conformities):
        title = (extra.title or "").strip()
        if not title:
            continue
        push(
            title=title,
            description=extra.description,
            severity=extra.severity,
            source="checklist_extra",
            origin_key=f"x:{index}",
            safety_risk=extra.safety_risk,
            impact_availability=extra.impact_availability,
        )

    return records
