# fleetcheck/services/variable_periodicity.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from fleetcheck.schemas.checklist import ChecklistResponse, ChecklistTemplate, Machine
from fleetcheck.schemas.kpi import VariablePeriodicityItem, VariablePeriodicityResult
from fleetcheck.services.periodicity import (
    STATUS_ORDER,
    classify_submission,
    ensure_supported_anchor,
    normalize_periodicity,
    summarize,
)


def _has_value(response: ChecklistResponse, question_id: str) -> bool:
    for answer in response.answers:
        if answer.question_id == question_id:
            return answer.variable_value is not None and answer.variable_value != ""
    return False


def evaluate_variable_periodicity(
    templates: Sequence[ChecklistTemplate],
    machines: Sequence[Machine],
    responses: Iterable[ChecklistResponse],
    now: datetime,
) -> VariablePeriodicityResult:
    """
    Per (machine, template, question variable with active periodicity):
    the last response that carries a value for the variable, checked against
    the variable's own window. Only templates listed on the machine count.
    Raises InvalidConfigurationError for a tracked variable whose anchor is
    not 'last_submission'.
    """
    by_id = {t.id: t for t in templates}

    # latest value-carrying submission per (template, machine, question)
    latest: Dict[Tuple[str, str, str], datetime] = {}
    for response in responses:
        if response.created_at > now:
            continue
        template = by_id.get(response.template_id)
        if template is None:
            continue
        for question in template.questions:
            if question.variable is None or not _has_value(response, question.id):
                continue
            key = (template.id, response.machine_id, question.id)
            if key not in latest or response.created_at > latest[key]:
                latest[key] = response.created_at

    items: List[VariablePeriodicityItem] = []
    for machine in machines:
        for template_id in machine.checklists or []:
            template = by_id.get(template_id)
            if template is None:
                continue
            for question in template.questions:
                variable = question.variable
                if variable is None or variable.periodicity is None or not variable.periodicity.active:
                    continue
                ensure_supported_anchor(variable.periodicity, template_id=template.id)
                periodicity = normalize_periodicity(variable.periodicity)
                last: Optional[datetime] = latest.get((template.id, machine.id, question.id))
                items.append(
                    VariablePeriodicityItem(
                        variable_name=variable.name,
                        template_id=template.id,
                        template_name=template.title,
                        question_id=question.id,
                        question_text=question.text,
                        machine_id=machine.id,
                        machine_name=machine.modelo,
                        machine_placa=machine.placa,
                        last_submission_at=last,
                        window_days=periodicity.window_days,
                        unit=periodicity.unit,
                        quantity=periodicity.quantity,
                        anchor=periodicity.anchor,
                        status=classify_submission(last, periodicity.window_days, now),
                    )
                )

    items.sort(
        key=lambda i: (
            STATUS_ORDER[i.status],
            i.variable_name.lower(),
            (i.machine_name or "").lower(),
            i.machine_id,
        )
    )
    return VariablePeriodicityResult(
        generated_at=now,
        summary=summarize(i.status for i in items),
        items=items,
    )
