from fleetcheck.schemas.checklist import ChecklistAnswer, ChecklistQuestion, ExtraNonConformity, Machine
from fleetcheck.services.nc_mapper import (
    SEVERITY_RANK,
    compute_due_at,
    map_checklist_response,
    resolve_system_category,
    severity_rank,
)
from fleetcheck.services.recurrence import PriorNc
from fleetcheck.services.telemetry import fetch_telemetry_snapshot

from conftest import dt, response

MACHINE = Machine(id="asset-seed", tag="TAG-99", modelo="Caminhao teste", tipo="Caminhao", setor="Operacao")

QUESTIONS = {
    "q1": ChecklistQuestion(id="q1", text="Motor apresenta ruidos?", system_category="Motor"),
    "q2": ChecklistQuestion(id="q2", text="Luzes funcionam?", system_category="Eletrico"),
}

RECENT = [PriorNc("prev", dt("2024-03-05T10:00:00Z"), "motor apresenta ruidos", "Motor")]


def _response(**kw):
    return response(
        kw.pop("response_id", "resp-123"),
        "template-1",
        "asset-seed",
        "2024-03-10T08:00:00Z",
        answers=kw.pop(
            "answers",
            [
                ChecklistAnswer(question_id="q1", response="nc", observation="Ruido excessivo"),
                ChecklistAnswer(question_id="q2", response="ok"),
            ],
        ),
        extras=kw.pop(
            "extras",
            [ExtraNonConformity(title="Lampada queimada", severity="baixa", description="Lanterna direita")],
        ),
    )


def test_maps_question_nc_and_extra():
    docs = map_checklist_response(_response(), MACHINE, QUESTIONS, RECENT)

    assert len(docs) == 2
    from_question, from_extra = docs

    assert from_question.source == "checklist_question"
    assert from_question.recurrence_of_id == "prev"
    assert from_question.origin_key == "q:q1"
    assert from_question.origin_question_id == "q1"
    assert from_question.system_category == "Motor"
    assert from_question.description == "Ruido excessivo"
    assert from_question.severity == "media"
    assert from_question.severity_rank == 2

    assert from_extra.source == "checklist_extra"
    assert from_extra.severity == "baixa"
    assert from_extra.origin_key == "x:0"
    assert from_extra.linked_asset.tag == "TAG-99"
    assert from_extra.recurrence_of_id is None


def test_derived_fields():
    docs = map_checklist_response(_response(), MACHINE, QUESTIONS, [])
    created = dt("2024-03-10T08:00:00Z")

    for doc in docs:
        assert doc.status == "aberta"
        assert doc.actions == []
        assert doc.year_month == "2024-03"
        assert doc.created_at == created
        assert doc.origin_checklist_response_id == "resp-123"
        assert doc.linked_template_id == "template-1"
        assert doc.created_by.matricula == "123"
    assert docs[0].due_at == dt("2024-03-15T08:00:00Z")
    assert docs[1].due_at == dt("2024-03-20T08:00:00Z")


def test_ok_and_na_answers_emit_nothing():
    answers = [
        ChecklistAnswer(question_id="q1", response="ok"),
        ChecklistAnswer(question_id="q2", response="na"),
    ]
    assert map_checklist_response(_response(answers=answers, extras=[]), MACHINE, QUESTIONS, []) == []


def test_missing_question_and_blank_extra():
    answers = [ChecklistAnswer(question_id="q9", response="nc")]
    extras = [ExtraNonConformity(title="   "), ExtraNonConformity(title="Retrovisor quebrado")]

    docs = map_checklist_response(_response(answers=answers, extras=extras), None, QUESTIONS, [])

    assert [d.title for d in docs] == ["Pergunta q9", "Retrovisor quebrado"]
    assert docs[0].system_category is None
    assert docs[1].origin_key == "x:1"
    assert docs[1].severity == "media"
    assert docs[0].linked_asset.id == "asset-seed"
    assert docs[0].linked_asset.tag == ""


def test_question_default_severity_is_used():
    questions = {"q1": ChecklistQuestion(id="q1", text="Vazamento hidraulico", default_severity="alta")}
    answers = [ChecklistAnswer(question_id="q1", response="nc")]

    [doc] = map_checklist_response(_response(answers=answers, extras=[]), MACHINE, questions, [])

    assert doc.severity == "alta"
    assert doc.severity_rank == 3
    assert doc.due_at == dt("2024-03-12T08:00:00Z")


def test_telemetry_is_attached():
    snap = fetch_telemetry_snapshot("asset-seed", dt("2024-03-10T08:00:00Z"))
    docs = map_checklist_response(_response(), MACHINE, QUESTIONS, [], telemetry=snap)
    assert all(d.telemetry_ref == snap for d in docs)


def test_severity_rank_table_is_stable():
    assert SEVERITY_RANK == {"baixa": 1, "media": 2, "alta": 3}
    for severity, rank in SEVERITY_RANK.items():
        assert severity_rank(severity) == rank
        assert severity_rank(severity) == severity_rank(severity)
    assert severity_rank(None) == 2


def test_due_at_sla_table():
    created = dt("2024-01-01T00:00:00Z")
    assert compute_due_at(created, "alta") == dt("2024-01-03T00:00:00Z")
    assert compute_due_at(created, "media") == dt("2024-01-06T00:00:00Z")
    assert compute_due_at(created, "baixa") == dt("2024-01-11T00:00:00Z")


def test_system_category_resolution_order():
    q = ChecklistQuestion(id="q", text="t", section="Cabine", group="Interior")
    assert resolve_system_category(q) == "Interior"
    assert resolve_system_category(None) is None


def test_telemetry_snapshot_is_deterministic():
    at = dt("2024-03-10T08:00:00Z")
    a = fetch_telemetry_snapshot("asset-seed", at)
    b = fetch_telemetry_snapshot("asset-seed", at)
    assert a == b
    assert a.window_start == dt("2024-03-09T08:00:00Z")
    assert a.window_end == dt("2024-03-10T14:00:00Z")
