from datetime import timedelta

from fleetcheck.api.health import compliance_cache_state
from fleetcheck.core.timeutils import utcnow
from fleetcheck.crud.checklist import (
    create_response,
    iter_responses,
    latest_submission,
    upsert_machine,
    upsert_template,
)
from fleetcheck.schemas.checklist import ChecklistResponseCreate
from fleetcheck.services.compliance_job import load_periodicity_compliance
from fleetcheck.services.kpi_cache import SqlKpiCacheStore, write_compliance_cache
from fleetcheck.services.periodicity import evaluate_periodicity_compliance

from conftest import dt, machine, periodicity, template, uid


def _store(db, tpl_id, m_id, created_at):
    payload = ChecklistResponseCreate(machine_id=m_id, template_id=tpl_id, user_id="user-1")
    return create_response(db, payload, created_at=dt(created_at))


def test_latest_submission_respects_until(db):
    tpl_id, m_id = uid("tpl"), uid("maq")
    _store(db, tpl_id, m_id, "2024-01-01T08:00:00Z")
    newest = _store(db, tpl_id, m_id, "2024-01-09T08:00:00Z")
    middle = _store(db, tpl_id, m_id, "2024-01-05T08:00:00Z")

    assert latest_submission(db, tpl_id, m_id).id == newest.id
    assert latest_submission(db, tpl_id, m_id, until=dt("2024-01-06T00:00:00Z")).id == middle.id
    assert latest_submission(db, tpl_id, m_id, until=dt("2023-12-31T00:00:00Z")) is None


def test_iter_responses_pages_through_history(db):
    tpl_id, m_id = uid("tpl"), uid("maq")
    for day in range(1, 8):
        _store(db, tpl_id, m_id, f"2024-01-0{day}T08:00:00Z")

    rows = list(iter_responses(db, template_ids=[tpl_id], page_size=3))
    assert len(rows) == 7
    assert [r.created_at for r in rows] == sorted(r.created_at for r in rows)

    bounded = list(iter_responses(db, template_ids=[tpl_id], until=dt("2024-01-03T23:59:59Z"), page_size=2))
    assert len(bounded) == 3

    recent = list(iter_responses(db, template_ids=[tpl_id], since=dt("2024-01-05T08:00:00Z")))
    assert [r.created_at.day for r in recent] == [5, 6, 7]

    assert list(iter_responses(db, template_ids=[])) == []


def test_single_pair_compliance_matches_full_evaluation(db):
    tpl_id, m_id = uid("tpl"), uid("maq")
    upsert_template(db, template(tpl_id, periodicity_cfg=periodicity(2, "day")))
    upsert_machine(db, machine(m_id, [tpl_id], modelo="Trator"))
    now = dt("2024-01-10T12:00:00Z")
    _store(db, tpl_id, m_id, "2024-01-06T08:00:00Z")
    _store(db, tpl_id, m_id, "2024-01-09T08:00:00Z")

    single = load_periodicity_compliance(db, now, template_id=tpl_id, machine_id=m_id)
    [item] = single.items
    assert item.status == "compliant"
    assert item.last_submission_at == dt("2024-01-09T08:00:00Z")
    assert item.machine_name == "Trator"

    bounded = load_periodicity_compliance(
        db, now, template_id=tpl_id, machine_id=m_id, until=dt("2024-01-07T00:00:00Z")
    )
    assert bounded.items[0].last_submission_at == dt("2024-01-06T08:00:00Z")

    assert load_periodicity_compliance(db, now, template_id=tpl_id, machine_id="nope").items == []


def test_readiness_reports_compliance_cache_freshness(db):
    store = SqlKpiCacheStore(db)
    empty = evaluate_periodicity_compliance([], [], [], utcnow())

    write_compliance_cache(store, empty, utcnow() - timedelta(hours=1), ttl_minutes=15)
    assert compliance_cache_state(db)["state"] == "stale"

    write_compliance_cache(store, empty, utcnow(), ttl_minutes=15)
    state = compliance_cache_state(db)
    assert state["state"] == "fresh"
    assert state["cached_at"].endswith("Z")
