from datetime import timedelta

from fleetcheck.core.timeutils import iso_z, utcnow
from fleetcheck.crud.checklist import get_response, get_template, upsert_machine, upsert_template
from fleetcheck.schemas.checklist import (
    ChecklistPeriodicity,
    ChecklistQuestion,
    ChecklistResponse,
    QuestionVariable,
    VariableAlertRule,
)
from fleetcheck.services.checklist_intake import raise_non_conformities

from conftest import machine, periodicity, template, uid


def _seed_fleet(db, *, periodicity_cfg=None):
    tpl_id = uid("tpl")
    m_id = uid("maq")
    upsert_template(
        db,
        template(
            tpl_id,
            title="Checklist diario",
            periodicity_cfg=periodicity_cfg,
            questions=[
                ChecklistQuestion(id="q1", text="Motor apresenta ruidos?", system_category="Motor"),
                ChecklistQuestion(id="q2", text="Freios", system_category="Freios", default_severity="alta"),
            ],
        ),
    )
    upsert_machine(db, machine(m_id, [tpl_id], modelo="Escavadeira 320", tag=uid("TAG")))
    return tpl_id, m_id


def _submit(client, tpl_id, m_id, created_at="2024-03-10T08:00:00Z", answers=None, extras=None):
    payload = {
        "machine_id": m_id,
        "template_id": tpl_id,
        "user_id": "user-1",
        "operator_matricula": "123",
        "operator_nome": "Operador",
        "created_at": created_at,
        "answers": answers
        if answers is not None
        else [
            {"question_id": "q1", "response": "nc", "observation": "Ruido excessivo"},
            {"question_id": "q2", "response": "ok"},
        ],
        "extra_non_conformities": extras
        if extras is not None
        else [{"title": "Lampada queimada", "severity": "baixa"}],
    }
    return client.post("/api/v1/checklist-responses", json=payload)


def test_submission_raises_non_conformities(client, db):
    tpl_id, m_id = _seed_fleet(db)

    resp = _submit(client, tpl_id, m_id)
    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert len(body["non_conformity_ids"]) == 2

    fetched = client.get(f"/api/v1/checklist-responses/{body['id']}")
    assert fetched.status_code == 200
    assert sorted(fetched.json()["non_conformity_ids"]) == sorted(body["non_conformity_ids"])

    listing = client.get("/api/v1/nc", params={"asset_id": m_id})
    assert listing.status_code == 200
    data = listing.json()
    assert data["total"] == 2
    sources = {nc["source"] for nc in data["data"]}
    assert sources == {"checklist_question", "checklist_extra"}
    question_nc = next(nc for nc in data["data"] if nc["source"] == "checklist_question")
    assert question_nc["system_category"] == "Motor"
    assert question_nc["telemetry_ref"] is not None


def test_replaying_a_submission_does_not_duplicate(client, db):
    tpl_id, m_id = _seed_fleet(db)
    body = _submit(client, tpl_id, m_id).json()

    stored = ChecklistResponse.model_validate(get_response(db, body["id"]))
    inserted, skipped = raise_non_conformities(db, stored)

    assert inserted == []
    assert skipped == 2


def test_second_failure_is_linked_as_recurrence(client, db):
    tpl_id, m_id = _seed_fleet(db)
    first = _submit(client, tpl_id, m_id, created_at="2024-03-05T10:00:00Z", extras=[]).json()
    second = _submit(client, tpl_id, m_id, created_at="2024-03-10T08:00:00Z", extras=[]).json()

    [first_nc] = first["non_conformity_ids"]
    [second_nc] = second["non_conformity_ids"]
    detail = client.get(f"/api/v1/nc/{second_nc}").json()
    assert detail["data"]["recurrence_of_id"] == first_nc

    # different machine, same question: independent history
    _, other_machine = _seed_fleet(db)
    third = _submit(client, tpl_id, other_machine, extras=[]).json()
    detail = client.get(f"/api/v1/nc/{third['non_conformity_ids'][0]}").json()
    assert detail["data"]["recurrence_of_id"] is None


def test_nc_lifecycle_patch_and_audit(client, db):
    tpl_id, m_id = _seed_fleet(db)
    body = _submit(client, tpl_id, m_id, extras=[]).json()
    nc_id = body["non_conformity_ids"][0]

    rejected = client.patch(f"/api/v1/nc/{nc_id}", json={"status": "resolvida"})
    assert rejected.status_code == 400
    assert rejected.json()["error"]["type"] == "nc_transition_error"

    payload = {
        "status": "resolvida",
        "root_cause": "Rolamento gasto",
        "actions": [
            {
                "type": "corretiva",
                "description": "Troca do rolamento",
                "started_at": "2024-03-10T09:00:00Z",
                "completed_at": "2024-03-10T11:00:00Z",
            }
        ],
        "actor": {"id": "u-9", "nome": "Ana"},
    }
    resp = client.patch(f"/api/v1/nc/{nc_id}", json=payload)
    assert resp.status_code == 200, resp.text
    detail = resp.json()
    assert detail["data"]["status"] == "resolvida"
    assert detail["data"]["actions"][0]["id"]
    assert len(detail["audits"]) == 1
    audit = detail["audits"][0]
    assert audit["by_user_id"] == "u-9"
    assert audit["diff"]["status"] == {"before": "aberta", "after": "resolvida"}

    # same payload again: nothing changes, no new audit row
    again = client.patch(f"/api/v1/nc/{nc_id}", json={"status": "resolvida", "root_cause": "Rolamento gasto"})
    assert again.status_code == 200
    assert len(again.json()["audits"]) == 1


def test_unknown_nc_is_404(client):
    resp = client.get("/api/v1/nc/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["ok"] is False
    assert resp.headers.get("X-Request-ID")


def test_nc_listing_validation(client, db):
    tpl_id, m_id = _seed_fleet(db)
    _submit(client, tpl_id, m_id)

    assert client.get("/api/v1/nc", params={"page_size": 15}).status_code == 400
    assert client.get("/api/v1/nc", params={"date_from": "not-a-date"}).status_code == 400
    assert (
        client.get("/api/v1/nc", params={"date_from": "2024-03-11", "date_to": "2024-03-01"}).status_code
        == 400
    )

    page = client.get(
        "/api/v1/nc",
        params={"machine_id": m_id, "page_size": 10, "to": "2024-03-10", "search": "lampada"},
    ).json()
    assert page["total"] == 1
    assert page["has_more"] is False
    assert page["data"][0]["title"] == "Lampada queimada"


def test_nc_dashboard(client, db):
    tpl_id, m_id = _seed_fleet(db)
    _submit(client, tpl_id, m_id)

    resp = client.get("/api/v1/kpi/nc", params={"asset_id": m_id})
    assert resp.status_code == 200
    report = resp.json()
    assert report["open_total"] == 2
    assert report["open_by_severity"] == {"media": 1, "baixa": 1}
    assert report["series"]["daily"][0]["period"] == "2024-03-10"


def test_periodicity_patch(client, db):
    tpl_id, _ = _seed_fleet(db)

    resp = client.patch(
        f"/api/v1/templates/{tpl_id}/periodicity", json={"active": True, "quantity": 2, "unit": "week"}
    )
    assert resp.status_code == 200, resp.text
    p = resp.json()["periodicity"]
    assert (p["quantity"], p["unit"], p["window_days"], p["active"]) == (2, "week", 14, True)

    calendar = client.patch(f"/api/v1/templates/{tpl_id}/periodicity", json={"active": True, "anchor": "calendar"})
    assert calendar.status_code == 400
    assert calendar.json()["error"]["type"] == "invalid_configuration"

    missing = client.patch("/api/v1/templates/nope/periodicity", json={"active": False})
    assert missing.status_code == 404


def test_stored_template_serves_derived_window(client, db):
    tpl_id = uid("tpl")
    stored = ChecklistPeriodicity(quantity=2, unit="week", window_days=1, active=True)
    upsert_template(db, template(tpl_id, periodicity_cfg=stored))

    served = client.get(f"/api/v1/templates/{tpl_id}").json()["periodicity"]
    assert served["window_days"] == 14

    # a row written with a stale window is corrected when read back
    row = get_template(db, tpl_id)
    row.periodicity = {**row.periodicity, "window_days": 3}
    db.commit()
    served = client.get(f"/api/v1/templates/{tpl_id}").json()["periodicity"]
    assert served["window_days"] == 14


def test_periodicity_job_and_compliance_endpoints(client, db):
    tpl_id, m_id = _seed_fleet(db, periodicity_cfg=periodicity(1, "day"))

    live = client.get("/api/v1/kpi/periodicity-compliance", params={"template_id": tpl_id, "machine_id": m_id})
    assert live.status_code == 200
    [item] = live.json()["items"]
    assert item["status"] == "never_submitted"

    job = client.post("/api/v1/jobs/check-periodicity")
    assert job.status_code == 200
    assert job.json()["ok"] is True
    assert job.json()["summary"]["total_tracked"] >= 1

    cached = client.get("/api/v1/kpi/periodicity-compliance")
    assert cached.status_code == 200
    assert "cached_at" in cached.json()
    assert any(i["machine_id"] == m_id for i in cached.json()["items"])

    variables = client.get("/api/v1/kpi/variable-periodicity")
    assert variables.status_code == 200
    assert "summary" in variables.json()


def test_submission_validation_error(client):
    resp = client.post("/api/v1/checklist-responses", json={"template_id": "t", "user_id": "u"})
    assert resp.status_code == 422
    assert resp.json()["error"]["type"] == "validation_error"


def test_health(client):
    assert client.get("/api/healthz").json()["ok"] is True
    ready = client.get("/api/readyz")
    assert ready.status_code == 200
    assert ready.json()["db"] == "up"
    assert ready.json()["compliance_cache"]["state"] in {"missing", "fresh", "stale"}


def test_variable_alerts_endpoint(client, db):
    tpl_id, m_id = uid("tpl"), uid("maq")
    rule = VariableAlertRule(color="amber", message="Pressao baixa", trigger_condition="nc")
    question = ChecklistQuestion(
        id="q-press", text="Pressao dos pneus", variable=QuestionVariable(name="pressao", alert_rule=rule)
    )
    upsert_template(db, template(tpl_id, questions=[question]))
    upsert_machine(db, machine(m_id, [tpl_id], modelo="Caminhao"))

    recent = iso_z(utcnow() - timedelta(days=1))
    answers = [{"question_id": "q-press", "response": "nc", "variable_value": 28}]
    body = _submit(client, tpl_id, m_id, created_at=recent, answers=answers, extras=[]).json()

    resp = client.get("/api/v1/kpi/variable-alerts")
    assert resp.status_code == 200
    [item] = [i for i in resp.json()["items"] if i["machine_id"] == m_id]
    assert item["response_id"] == body["id"]
    assert item["variable_name"] == "pressao"
    assert item["alert_rule"]["message"] == "Pressao baixa"
    assert item["alert_rule"]["show_on_home_page"] is True
