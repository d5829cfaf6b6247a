from datetime import timedelta

from fleetcheck.services.kpi_cache import (
    InMemoryKpiCacheStore,
    PERIODICITY_COMPLIANCE_KEY,
    SqlKpiCacheStore,
    read_compliance_cache,
    write_compliance_cache,
)
from fleetcheck.services.periodicity import evaluate_periodicity_compliance

from conftest import dt, machine, periodicity, response, template

NOW = dt("2024-01-10T12:00:00Z")


def _result():
    t = template(periodicity_cfg=periodicity(2, "day"))
    m = machine(checklists=["tpl-1"])
    r = response("r1", "tpl-1", "m-1", "2024-01-09T12:00:00Z")
    return evaluate_periodicity_compliance([t], [m], [r], NOW)


def test_write_sets_ttl_and_read_within_ttl():
    store = InMemoryKpiCacheStore()
    cached = write_compliance_cache(store, _result(), NOW)

    assert cached.cached_at == NOW
    assert cached.expires_at == NOW + timedelta(minutes=15)

    hit = read_compliance_cache(store, NOW + timedelta(minutes=14))
    assert hit is not None
    assert hit.summary.compliant == 1
    assert hit.items[0].machine_id == "m-1"


def test_expired_entry_is_not_served():
    store = InMemoryKpiCacheStore()
    write_compliance_cache(store, _result(), NOW, ttl_minutes=5)
    assert read_compliance_cache(store, NOW + timedelta(minutes=5)) is None
    assert read_compliance_cache(InMemoryKpiCacheStore(), NOW) is None


def test_sql_store_overwrites_single_row(db):
    store = SqlKpiCacheStore(db)
    write_compliance_cache(store, _result(), NOW)
    later = NOW + timedelta(minutes=15)
    write_compliance_cache(store, _result(), later)

    entry = store.get(PERIODICITY_COMPLIANCE_KEY)
    assert entry.cached_at == later
    assert entry.expires_at == later + timedelta(minutes=15)
    assert read_compliance_cache(store, later).generated_at == NOW
