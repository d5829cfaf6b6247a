# fleetcheck/services/variable_alerts.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Dict, Iterable, List, Sequence, Tuple

from fleetcheck.schemas.checklist import (
    ChecklistQuestion,
    ChecklistResponse,
    ChecklistTemplate,
    Machine,
    VariableAlertRule,
)
from fleetcheck.schemas.kpi import VariableAlertItem, VariableAlertsResult

ALERT_LOOKBACK_DAYS = 30


def alert_triggered(rule: VariableAlertRule, answer: str) -> bool:
    if rule.trigger_condition == "always":
        return True
    return rule.trigger_condition == answer


def alert_window_start(now: datetime, lookback_days: int = ALERT_LOOKBACK_DAYS) -> datetime:
    return now - timedelta(days=lookback_days)


def evaluate_variable_alerts(
    templates: Sequence[ChecklistTemplate],
    machines: Sequence[Machine],
    responses: Iterable[ChecklistResponse],
    now: datetime,
    *,
    lookback_days: int = ALERT_LOOKBACK_DAYS,
) -> VariableAlertsResult:
    """
    Alerts raised by answers whose question variable carries an alert rule.

    Only responses from the last `lookback_days` count. Rules hidden from the
    home page are ignored. One alert is kept per (variable, machine, template,
    question), the most recent one; items come newest first.
    """
    since = alert_window_start(now, lookback_days)
    machines_by_id = {m.id: m for m in machines}
    questions: Dict[str, Dict[str, ChecklistQuestion]] = {
        t.id: {q.id: q for q in t.questions if q.variable and q.variable.alert_rule}
        for t in templates
    }
    templates_by_id = {t.id: t for t in templates}

    latest: Dict[Tuple[str, str, str, str], VariableAlertItem] = {}
    for response in responses:
        if response.created_at < since or response.created_at > now:
            continue
        template = templates_by_id.get(response.template_id)
        machine = machines_by_id.get(response.machine_id)
        if template is None or machine is None:
            continue

        for answer in response.answers:
            question = questions[template.id].get(answer.question_id)
            if question is None:
                continue
            rule = question.variable.alert_rule
            if not rule.show_on_home_page or not alert_triggered(rule, answer.response):
                continue

            key = (question.variable.name, machine.id, template.id, question.id)
            current = latest.get(key)
            if current is not None and (current.response_at, current.response_id) >= (
                response.created_at,
                response.id,
            ):
                continue
            latest[key] = VariableAlertItem(
                variable_name=question.variable.name,
                template_id=template.id,
                template_name=template.title,
                question_id=question.id,
                question_text=question.text,
                machine_id=machine.id,
                machine_name=machine.modelo,
                machine_placa=machine.placa,
                response_id=response.id,
                response_at=response.created_at,
                alert_rule=rule,
            )

    items: List[VariableAlertItem] = sorted(
        latest.values(), key=lambda i: (i.response_at, i.response_id), reverse=True
    )
    return VariableAlertsResult(generated_at=now, items=items)
