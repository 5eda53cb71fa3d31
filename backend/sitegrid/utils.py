from __future__ import annotations

import datetime as dt
from typing import Any, Iterable, List, Optional


def normalize_skill(value: Any) -> Optional[str]:
    """Return a canonical skill/specialty label: trimmed, single-spaced, lower case."""
    if value is None:
        return None
    text = " ".join(str(value).split())
    if not text:
        return None
    return text.lower()


def normalize_skill_list(values: Optional[Iterable[Any]]) -> List[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = values.split(",")
    seen: set[str] = set()
    normalized: List[str] = []
    for value in values:
        candidate = normalize_skill(value)
        if not candidate or candidate in seen:
            continue
        normalized.append(candidate)
        seen.add(candidate)
    return normalized


def week_start(day: dt.date) -> dt.date:
    """Sunday that opens the calendar week containing ``day``."""
    return day - dt.timedelta(days=(day.weekday() + 1) % 7)
