# fleetcheck/services/nc_kpis.py
from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta
from statistics import mean
from typing import Dict, List, Literal, Optional, Sequence

from fleetcheck.schemas.kpi import (
    NcKpiReport,
    NcSeries,
    RootCauseBucket,
    SeverityBySystem,
    SystemBucket,
    TimeSeriesPoint,
)
from fleetcheck.schemas.non_conformity import SEVERITIES, NcAction, NonConformity

Granularity = Literal["day", "week"]

UNCLASSIFIED_SYSTEM = "Nao classificado"
UNDEFINED_ROOT_CAUSE = "Sem causa definida"
UNCLASSIFIED_SEVERITY = "sem_classificacao"


# ---------- small utils ----------
def _pct(part: int, whole: int) -> float:
    return round((part / whole) * 100.0, 1) if whole > 0 else 0.0


def _hours(start: datetime, end: datetime) -> Optional[float]:
    if end < start:
        return None
    return (end - start).total_seconds() / 3600.0


def completed_actions(record: NonConformity) -> List[NcAction]:
    """Actions with both started_at and completed_at, in recorded order."""
    return [a for a in record.actions if a.started_at is not None and a.completed_at is not None]


def resolution_time(record: NonConformity) -> Optional[datetime]:
    """Latest completed_at across fully-recorded actions."""
    done = completed_actions(record)
    if not done:
        return None
    return max(a.completed_at for a in done)


# ---------- headline KPIs ----------
def calc_on_time_percentage(records: Sequence[NonConformity]) -> float:
    """
    % of resolved NCs closed by their due date.
    Only records with status 'resolvida', a due_at and at least one completed
    action count, in the numerator and the denominator alike.
    """
    eligible = 0
    on_time = 0
    for r in records:
        if r.status != "resolvida" or r.due_at is None:
            continue
        resolved_at = resolution_time(r)
        if resolved_at is None:
            continue
        eligible += 1
        if resolved_at <= r.due_at:
            on_time += 1
    return _pct(on_time, eligible)


def calc_recurrence_rate(records: Sequence[NonConformity]) -> float:
    recurrent = sum(1 for r in records if r.recurrence_of_id)
    return _pct(recurrent, len(records))


def _avg_hours(records: Sequence[NonConformity], *, until: str) -> float:
    durations: List[float] = []
    for r in records:
        done = completed_actions(r)
        if not done:
            continue
        first = done[0]
        end = first.started_at if until == "started" else first.completed_at
        d = _hours(r.created_at, end)
        if d is not None:
            durations.append(d)
    return round(mean(durations), 1) if durations else 0.0


def calc_avg_containment_hours(records: Sequence[NonConformity]) -> float:
    """Mean hours from detection to the first completed action starting."""
    return _avg_hours(records, until="started")


def calc_avg_resolution_hours(records: Sequence[NonConformity]) -> float:
    """Mean hours from detection to that same action completing."""
    return _avg_hours(records, until="completed")


# ---------- time series ----------
def format_period(value: datetime, granularity: Granularity) -> str:
    if granularity == "week":
        iso_year, iso_week, _ = value.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    return value.strftime("%Y-%m-%d")


def _period_starts(first: datetime, last: datetime, granularity: Granularity) -> List[str]:
    step = timedelta(days=7 if granularity == "week" else 1)
    cursor = datetime(first.year, first.month, first.day)
    if granularity == "week":
        cursor -= timedelta(days=cursor.weekday())
    keys: List[str] = []
    while cursor <= last:
        keys.append(format_period(cursor, granularity))
        cursor += step
    return keys


def group_by_day_week(
    records: Sequence[NonConformity],
    granularity: Granularity = "day",
    *,
    fill_gaps: bool = False,
) -> List[TimeSeriesPoint]:
    """
    Opened (by created_at) and closed (resolved NCs, by resolution time) per
    calendar day or ISO week. Keys are unique and chronological; with
    fill_gaps the empty periods between the first and last one are included.
    """
    opened: Counter = Counter()
    closed: Counter = Counter()
    stamps: List[datetime] = []

    for r in records:
        opened[format_period(r.created_at, granularity)] += 1
        stamps.append(r.created_at)
        if r.status == "resolvida":
            resolved_at = resolution_time(r)
            if resolved_at is not None:
                closed[format_period(resolved_at, granularity)] += 1
                stamps.append(resolved_at)

    if not stamps:
        return []

    if fill_gaps:
        periods = _period_starts(min(stamps), max(stamps), granularity)
    else:
        periods = sorted(set(opened) | set(closed))

    return [TimeSeriesPoint(period=p, opened=opened[p], closed=closed[p]) for p in periods]


# ---------- breakdowns ----------
def count_opened_by_severity(records: Sequence[NonConformity]) -> Dict[str, int]:
    return dict(Counter(r.severity or UNCLASSIFIED_SEVERITY for r in records))


def group_by_root_cause(records: Sequence[NonConformity]) -> Dict[str, int]:
    return dict(Counter((r.root_cause or "").strip() or UNDEFINED_ROOT_CAUSE for r in records))


def group_by_system(records: Sequence[NonConformity]) -> Dict[str, int]:
    return dict(Counter(r.system_category or UNCLASSIFIED_SYSTEM for r in records))


def root_cause_pareto(records: Sequence[NonConformity], top: int = 5) -> List[RootCauseBucket]:
    """Most frequent root causes among NCs that have one."""
    counts = Counter(r.root_cause.strip() for r in records if r.root_cause and r.root_cause.strip())
    ranked = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))
    return [RootCauseBucket(root_cause=k, value=v) for k, v in ranked[:top]]


def system_breakdown(records: Sequence[NonConformity]) -> List[SystemBucket]:
    """Pareto of subsystems, most problematic first."""
    ranked = sorted(group_by_system(records).items(), key=lambda kv: (-kv[1], kv[0]))
    return [SystemBucket(system=k, value=v) for k, v in ranked]


def severity_by_system(records: Sequence[NonConformity]) -> List[SeverityBySystem]:
    buckets: Dict[str, SeverityBySystem] = {}
    for r in records:
        key = r.system_category or UNCLASSIFIED_SYSTEM
        bucket = buckets.setdefault(key, SeverityBySystem(system=key))
        sev = r.severity if r.severity in SEVERITIES else "media"
        setattr(bucket, sev, getattr(bucket, sev) + 1)
    return list(buckets.values())


# ---------- windows ----------
def _month_bounds(reference: datetime) -> tuple:
    start = datetime(reference.year, reference.month, 1)
    if start.month == 12:
        end = datetime(start.year + 1, 1, 1)
    else:
        end = datetime(start.year, start.month + 1, 1)
    return start, end


def filter_closed_in_month(records: Sequence[NonConformity], reference: datetime) -> List[NonConformity]:
    """Resolved NCs whose resolution falls in the calendar month of `reference`."""
    start, end = _month_bounds(reference)
    out = []
    for r in records:
        if r.status != "resolvida":
            continue
        resolved_at = resolution_time(r)
        if resolved_at is not None and start <= resolved_at < end:
            out.append(r)
    return out


def filter_recent(records: Sequence[NonConformity], now: datetime, days: int = 30) -> List[NonConformity]:
    threshold = now - timedelta(days=days)
    return [r for r in records if r.created_at >= threshold]


# ---------- public API ----------
def build_nc_kpi_report(records: Sequence[NonConformity], now: datetime) -> NcKpiReport:
    """
    Dashboard snapshot over an already-scoped NC set.
    On-time % looks at NCs closed this month; recurrence at the last 30 days.
    """
    open_records = [r for r in records if r.status != "resolvida"]
    return NcKpiReport(
        open_total=len(open_records),
        open_by_severity=count_opened_by_severity(open_records),
        on_time_percentage=calc_on_time_percentage(filter_closed_in_month(records, now)),
        recurrence_30d=calc_recurrence_rate(filter_recent(records, now, 30)),
        avg_containment_hours=calc_avg_containment_hours(records),
        avg_resolution_hours=calc_avg_resolution_hours(records),
        series=NcSeries(
            daily=group_by_day_week(records, "day"),
            weekly=group_by_day_week(records, "week"),
        ),
        root_cause_pareto=root_cause_pareto(records),
        system_breakdown=system_breakdown(records),
        severity_by_system=severity_by_system(records),
    )
