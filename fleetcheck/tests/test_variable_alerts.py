import pytest

from fleetcheck.schemas.checklist import (
    ChecklistAnswer,
    ChecklistQuestion,
    QuestionVariable,
    VariableAlertRule,
)
from fleetcheck.services.variable_alerts import alert_triggered, evaluate_variable_alerts

from conftest import dt, machine, response, template

NOW = dt("2024-01-31T12:00:00Z")

QUESTIONS = [
    ChecklistQuestion(
        id="q-press",
        text="Pressao hidraulica",
        variable=QuestionVariable(
            name="pressao",
            type="decimal",
            alert_rule=VariableAlertRule(color="red", message="Pressao fora da faixa", trigger_condition="nc"),
        ),
    ),
    ChecklistQuestion(
        id="q-temp",
        text="Temperatura do motor",
        variable=QuestionVariable(
            name="temperatura",
            alert_rule=VariableAlertRule(message="Verificar", trigger_condition="always", show_on_home_page=False),
        ),
    ),
    ChecklistQuestion(id="q-oleo", text="Nivel de oleo", variable=QuestionVariable(name="oleo")),
]


def _answers(press, temp="ok", oleo="nc"):
    return [
        ChecklistAnswer(question_id="q-press", response=press, variable_value=180),
        ChecklistAnswer(question_id="q-temp", response=temp),
        ChecklistAnswer(question_id="q-oleo", response=oleo),
    ]


@pytest.mark.parametrize(
    "condition,answer,expected",
    [
        ("always", "ok", True),
        ("always", "na", True),
        ("nc", "nc", True),
        ("nc", "ok", False),
        ("ok", "ok", True),
        ("ok", "nc", False),
    ],
)
def test_trigger_condition(condition, answer, expected):
    assert alert_triggered(VariableAlertRule(trigger_condition=condition), answer) is expected


def test_latest_alert_per_variable_and_machine():
    t = template(questions=QUESTIONS)
    machines = [
        machine("m-1", ["tpl-1"], modelo="Escavadeira", placa="ABC1D23"),
        machine("m-2", ["tpl-1"], modelo="Pa carregadeira"),
    ]
    responses = [
        response("r1", "tpl-1", "m-1", "2024-01-20T08:00:00Z", answers=_answers("nc")),
        response("r2", "tpl-1", "m-1", "2024-01-25T08:00:00Z", answers=_answers("nc")),
        # newer but not triggering, so r2 stays the alert
        response("r3", "tpl-1", "m-1", "2024-01-26T08:00:00Z", answers=_answers("ok")),
        # older than the 30-day window
        response("r4", "tpl-1", "m-2", "2023-12-15T08:00:00Z", answers=_answers("nc")),
        response("r5", "tpl-1", "m-2", "2024-01-22T08:00:00Z", answers=_answers("nc")),
        response("r6", "tpl-1", "m-unknown", "2024-01-27T08:00:00Z", answers=_answers("nc")),
        response("r7", "tpl-unknown", "m-1", "2024-01-28T08:00:00Z", answers=_answers("nc")),
    ]

    result = evaluate_variable_alerts([t], machines, responses, NOW)

    assert result.generated_at == NOW
    assert [(i.machine_id, i.response_id) for i in result.items] == [("m-1", "r2"), ("m-2", "r5")]
    first = result.items[0]
    assert first.variable_name == "pressao"
    assert first.question_text == "Pressao hidraulica"
    assert first.machine_placa == "ABC1D23"
    assert first.response_at == dt("2024-01-25T08:00:00Z")
    assert first.alert_rule.message == "Pressao fora da faixa"


def test_hidden_rules_and_future_responses_are_ignored():
    t = template(questions=QUESTIONS)
    responses = [
        response("r1", "tpl-1", "m-1", "2024-01-30T08:00:00Z", answers=_answers("ok", temp="nc")),
        response("r2", "tpl-1", "m-1", "2024-02-02T08:00:00Z", answers=_answers("nc")),
    ]

    result = evaluate_variable_alerts([t], [machine("m-1", ["tpl-1"])], responses, NOW)
    assert result.items == []


def test_lookback_window_is_configurable():
    t = template(questions=QUESTIONS)
    responses = [
        response("r1", "tpl-1", "m-1", "2024-01-20T08:00:00Z", answers=_answers("nc")),
        response("r2", "tpl-1", "m-2", "2024-01-30T08:00:00Z", answers=_answers("nc")),
    ]
    machines = [machine("m-1", ["tpl-1"]), machine("m-2", ["tpl-1"])]

    result = evaluate_variable_alerts([t], machines, responses, NOW, lookback_days=7)
    assert [i.response_id for i in result.items] == ["r2"]
