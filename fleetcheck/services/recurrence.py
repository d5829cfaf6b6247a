# fleetcheck/services/recurrence.py
from __future__ import annotations

import re
import unicodedata
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, Optional

DEFAULT_WINDOW_DAYS = 30

_COMBINING_MARKS = re.compile("[\u0300-\u036f]")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True)
class PriorNc:
    """Slim view of an existing NC, enough to decide recurrence."""

    id: str
    created_at: datetime
    normalized_title: str
    system_category: Optional[str] = None


def normalize_title(value: Optional[str]) -> str:
    """'Vibração  anormal!' -> 'vibracao anormal'"""
    text = unicodedata.normalize("NFD", value or "")
    text = _COMBINING_MARKS.sub("", text).lower()
    return _NON_ALNUM.sub(" ", text).strip()


def _category_key(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def recurrence_cutoff(created_at: datetime, window_days: int = DEFAULT_WINDOW_DAYS) -> datetime:
    """Oldest created_at worth loading for a candidate raised at created_at."""
    return created_at - timedelta(days=window_days)


def find_recurrence(
    title: str,
    system_category: Optional[str],
    created_at: datetime,
    recent: Iterable[PriorNc],
) -> Optional[PriorNc]:
    """
    Latest prior NC with the same normalised title and the same subsystem.

    Only records created strictly before the candidate qualify, so following
    recurrence_of_id always walks back in time and can never loop.
    Two missing categories count as the same category.
    """
    wanted_title = normalize_title(title)
    wanted_category = _category_key(system_category)

    best: Optional[PriorNc] = None
    for prior in recent:
        if prior.created_at >= created_at:
            continue
        if normalize_title(prior.normalized_title) != wanted_title:
            continue
        if _category_key(prior.system_category) != wanted_category:
            continue
        if best is None or (prior.created_at, prior.id) > (best.created_at, best.id):
            best = prior
    return best
