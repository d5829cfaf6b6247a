# fleetcheck/services/nc_filters.py
from __future__ import annotations

from datetime import datetime, time
from typing import Iterable, List, Optional

from fleetcheck.core.errors import InvalidConfigurationError
from fleetcheck.core.timeutils import parse_dt
from fleetcheck.schemas.non_conformity import NcFilters, NonConformity


def parse_filter_date(value: Optional[str], *, end_of_day: bool = False) -> Optional[datetime]:
    """
    'YYYY-MM-DD' or a full ISO timestamp. A bare date used as an upper bound
    means the end of that day (23:59:59.999999).
    Raises InvalidConfigurationError on unparseable input.
    """
    if value is None or not value.strip():
        return None
    raw = value.strip()
    parsed = parse_dt(raw)
    if parsed is None:
        raise InvalidConfigurationError(f"Invalid date {value!r}.")
    if end_of_day and len(raw) == 10:
        parsed = datetime.combine(parsed.date(), time.max)
    return parsed


def matches_filters(record: NonConformity, filters: NcFilters) -> bool:
    """
    Pure AND across the provided dimensions; empty dimensions match everything.
      - statuses / severities: allow-lists
      - asset_id: linked asset id (or its tag)
      - date_from / date_to: inclusive bounds on created_at
      - query: case-insensitive substring of title or description
    """
    if filters.statuses and record.status not in filters.statuses:
        return False

    if filters.severities and (not record.severity or record.severity not in filters.severities):
        return False

    if filters.asset_id:
        asset = record.linked_asset
        if asset.id != filters.asset_id and asset.tag != filters.asset_id:
            return False

    if filters.date_from is not None and record.created_at < filters.date_from:
        return False

    if filters.date_to is not None and record.created_at > filters.date_to:
        return False

    if filters.query:
        needle = filters.query.lower()
        in_title = needle in (record.title or "").lower()
        in_description = record.description is not None and needle in record.description.lower()
        if not (in_title or in_description):
            return False

    return True


def filter_records(records: Iterable[NonConformity], filters: NcFilters) -> List[NonConformity]:
    return [r for r in records if matches_filters(r, filters)]
