"""Gantt timeline grid math.

Everything here is a pure function of task fields and ``datetime`` values so
the API layer, the exports and the tests share one implementation. Dates are
promoted to naive midnight datetimes; aware datetimes are converted to UTC.
"""

from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

VIEW_MODES: Tuple[str, ...] = ("days", "weeks", "months")

COLUMN_WIDTHS: Dict[str, int] = {"days": 96, "weeks": 128, "months": 160}

HOURS_PER_DAY = 8
ROW_HEIGHT = 60
TASK_BAR_HEIGHT = 24

CRITICAL_CATEGORIES = {"foundation", "framing", "electrical", "plumbing"}

VALID = "valid"
WARNING = "warning"
INVALID = "invalid"
_SEVERITY = {VALID: 0, WARNING: 1, INVALID: 2}

ONE_DAY = dt.timedelta(days=1)
ONE_WEEK = dt.timedelta(days=7)
ONE_HOUR = dt.timedelta(hours=1)
DRAG_BUFFER = dt.timedelta(days=1)


@dataclass(frozen=True)
class TimelineUnit:
    key: int
    label: str
    is_weekend: bool
    start: dt.datetime


@dataclass(frozen=True)
class TaskGridPosition:
    start_column_index: int
    column_span: int

    def pixel_left(self, view_mode: str) -> int:
        return self.start_column_index * get_column_width(view_mode)

    def pixel_width(self, view_mode: str) -> int:
        return self.column_span * get_column_width(view_mode)


@dataclass
class DragValidationResult:
    is_valid: bool
    validity: str
    messages: List[str] = field(default_factory=list)


def read_field(task: Any, name: str) -> Any:
    if isinstance(task, dict):
        return task.get(name)
    return getattr(task, name, None)


def as_datetime(value: Any) -> Optional[dt.datetime]:
    if value is None:
        return None
    if isinstance(value, dt.datetime):
        if value.tzinfo is not None:
            return value.astimezone(dt.timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, dt.date):
        return dt.datetime.combine(value, dt.time.min)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        return as_datetime(dt.datetime.fromisoformat(text))
    raise TypeError(f"Unsupported date value: {value!r}")


def _coerce_datetime(value: Any) -> Optional[dt.datetime]:
    try:
        return as_datetime(value)
    except (TypeError, ValueError):
        return None


def _midnight(value: dt.datetime) -> dt.datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def _today(today: Any = None) -> dt.datetime:
    base = as_datetime(today) if today is not None else dt.datetime.now()
    return _midnight(base)


def _sunday_of(value: dt.datetime) -> dt.datetime:
    return _midnight(value) - dt.timedelta(days=(value.weekday() + 1) % 7)


def _first_of_month(value: dt.datetime) -> dt.datetime:
    return _midnight(value).replace(day=1)


def _add_months(value: dt.datetime, months: int) -> dt.datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    days_in_month = [31, 29 if _is_leap(year) else 28, 31, 30, 31, 30, 31, 31, 30, 31, 30, 31]
    return value.replace(year=year, month=month, day=min(value.day, days_in_month[month - 1]))


def _is_leap(year: int) -> bool:
    return year % 4 == 0 and (year % 100 != 0 or year % 400 == 0)


def _epoch_ms(value: dt.datetime) -> int:
    return int(value.replace(tzinfo=dt.timezone.utc).timestamp() * 1000)


def _check_view_mode(view_mode: str) -> None:
    if view_mode not in VIEW_MODES:
        raise ValueError(f"Unknown view mode: {view_mode}")


def _escalate(current: str, candidate: str) -> str:
    return candidate if _SEVERITY[candidate] > _SEVERITY[current] else current


def get_column_width(view_mode: str) -> int:
    _check_view_mode(view_mode)
    return COLUMN_WIDTHS[view_mode]


def unit_end(unit: TimelineUnit, view_mode: str) -> dt.datetime:
    """Exclusive end of the period a unit stands for."""
    if view_mode == "days":
        return unit.start + ONE_DAY
    if view_mode == "weeks":
        return unit.start + ONE_WEEK
    return _add_months(unit.start, 1)


def generate_timeline_units(start: Any, end: Any, view_mode: str) -> List[TimelineUnit]:
    """Ordered grid columns covering ``[start, end]`` for the given view mode.

    Day columns start at midnight of ``start``; week columns are Sunday
    aligned; month columns start on the first of the month. The cursor stops
    once it passes ``end``.
    """
    _check_view_mode(view_mode)
    start_dt = as_datetime(start)
    end_dt = as_datetime(end)
    if start_dt is None or end_dt is None:
        raise ValueError("Timeline start and end are required")

    units: List[TimelineUnit] = []
    if end_dt < start_dt:
        return units
    if view_mode == "days":
        cursor = _midnight(start_dt)
        while cursor <= end_dt:
            units.append(
                TimelineUnit(
                    key=_epoch_ms(cursor),
                    label=f"{cursor:%b} {cursor.day}",
                    is_weekend=cursor.weekday() >= 5,
                    start=cursor,
                )
            )
            cursor += ONE_DAY
    elif view_mode == "weeks":
        cursor = _sunday_of(start_dt)
        while cursor <= end_dt:
            units.append(
                TimelineUnit(key=_epoch_ms(cursor), label=f"{cursor:%b} {cursor.day}", is_weekend=False, start=cursor)
            )
            cursor += ONE_WEEK
    else:
        cursor = _first_of_month(start_dt)
        while cursor <= end_dt:
            units.append(
                TimelineUnit(key=_epoch_ms(cursor), label=f"{cursor:%b %Y}", is_weekend=False, start=cursor)
            )
            cursor = _add_months(cursor, 1)
    return units


def _unit_contains(unit: TimelineUnit, target: dt.datetime, view_mode: str) -> bool:
    if view_mode == "days":
        return unit.start.date() == target.date()
    if view_mode == "weeks":
        return unit.start <= target < unit.start + ONE_WEEK
    return unit.start.year == target.year and unit.start.month == target.month


def get_column_index_for_date(date: Any, units: Sequence[TimelineUnit], view_mode: str) -> int:
    _check_view_mode(view_mode)
    if not units:
        return 0
    target = as_datetime(date)
    if target is None:
        return 0
    for index, unit in enumerate(units):
        if _unit_contains(unit, target, view_mode):
            return index
    if target < units[0].start:
        return 0
    return len(units) - 1


def calculate_duration_in_units(start: Any, end: Any, view_mode: str) -> int:
    _check_view_mode(view_mode)
    start_dt = as_datetime(start)
    end_dt = as_datetime(end)
    delta = (end_dt - start_dt).total_seconds()
    if view_mode == "days":
        return math.ceil(delta / ONE_DAY.total_seconds())
    if view_mode == "weeks":
        return math.ceil(delta / ONE_WEEK.total_seconds())
    months = (end_dt.year - start_dt.year) * 12 + (end_dt.month - start_dt.month)
    return max(1, months)


def calculate_task_dates_from_estimate(
    task: Any, today: Any = None, hours_per_day: float = HOURS_PER_DAY
) -> Tuple[dt.datetime, dt.datetime]:
    """Displayed ``(start, end)`` for a task with possibly partial scheduling data.

    Explicit start and due dates win; otherwise one explicit date plus the
    estimate (``ceil(hours / hours_per_day)`` days) fills the gap; otherwise
    the task is shown from today to tomorrow. ``start <= end`` always holds.
    """
    start = as_datetime(read_field(task, "start_date"))
    due = as_datetime(read_field(task, "due_date"))
    hours = read_field(task, "estimated_hours")
    estimate_days = math.ceil(hours / hours_per_day) if hours and hours > 0 else None

    if start is not None and due is not None:
        return start, max(start, due)
    if start is not None and estimate_days is not None:
        return start, start + dt.timedelta(days=estimate_days)
    if due is not None and estimate_days is not None:
        return due - dt.timedelta(days=estimate_days), due
    base = _today(today)
    return base, base + ONE_DAY


def get_task_grid_position(
    task: Any,
    timeline_start: Any,
    timeline_end: Any,
    view_mode: str,
    units: Optional[Sequence[TimelineUnit]] = None,
    today: Any = None,
) -> TaskGridPosition:
    calculated_start, calculated_end = calculate_task_dates_from_estimate(task, today=today)
    if units is None:
        units = generate_timeline_units(timeline_start, timeline_end, view_mode)
    if not units:
        return TaskGridPosition(start_column_index=0, column_span=1)
    start_index = get_column_index_for_date(calculated_start, units, view_mode)
    span = calculate_duration_in_units(calculated_start, calculated_end, view_mode)
    span = max(1, min(span, len(units) - start_index))
    return TaskGridPosition(start_column_index=start_index, column_span=span)


def validate_task_drag(
    task: Any,
    new_start_date: Any,
    timeline_start: Any,
    timeline_end: Any,
    all_tasks: Iterable[Any] = (),
    today: Any = None,
) -> DragValidationResult:
    """Check a proposed drop date for ``task`` and explain every issue found.

    Only unusable inputs return early; otherwise all matching conditions
    contribute a message and the most severe validity wins.
    """
    new_start = _coerce_datetime(new_start_date)
    if new_start is None:
        return DragValidationResult(is_valid=False, validity=INVALID, messages=["Invalid drop date"])
    bounds_start = _coerce_datetime(timeline_start)
    bounds_end = _coerce_datetime(timeline_end)
    if bounds_start is None or bounds_end is None or bounds_start > bounds_end:
        return DragValidationResult(is_valid=False, validity=INVALID, messages=["Invalid timeline bounds"])

    messages: List[str] = []
    validity = VALID

    if new_start < bounds_start - DRAG_BUFFER or new_start > bounds_end + DRAG_BUFFER:
        messages.append("Task cannot be moved outside the project timeline")
        validity = _escalate(validity, INVALID)

    if new_start.weekday() >= 5:
        messages.append("Task scheduled on weekend")
        validity = _escalate(validity, WARNING)

    current_start, current_end = calculate_task_dates_from_estimate(task, today=today)
    duration = current_end - current_start
    new_end = new_start + duration

    if new_end > bounds_end + DRAG_BUFFER:
        messages.append("Task duration would extend beyond project timeline")
        validity = _escalate(validity, INVALID)

    if duration < ONE_HOUR:
        messages.append("Task duration is shorter than one hour")
        validity = _escalate(validity, WARNING)

    assignee = _assignee_key(task)
    if assignee is not None:
        task_id = read_field(task, "id")
        for other in all_tasks:
            if read_field(other, "id") == task_id or _assignee_key(other) != assignee:
                continue
            other_start = _coerce_datetime(read_field(other, "start_date"))
            other_end = _coerce_datetime(read_field(other, "due_date"))
            if other_start is None or other_end is None:
                continue
            if new_start <= other_end and new_end >= other_start:
                messages.append(f'Would overlap with "{read_field(other, "title")}"')
                validity = _escalate(validity, WARNING)

    if read_field(task, "priority") == "critical" and new_start < current_start:
        messages.append("Moving critical task earlier may affect project timeline")
        validity = _escalate(validity, WARNING)

    if validity == VALID and not messages:
        days = math.ceil(duration.total_seconds() / ONE_DAY.total_seconds())
        plural = "" if days == 1 else "s"
        messages.append(f"Move task to {new_start:%Y-%m-%d} ({days} day{plural})")

    return DragValidationResult(is_valid=validity != INVALID, validity=validity, messages=messages)


def _assignee_key(task: Any) -> Optional[Tuple[str, Any]]:
    assignee_id = read_field(task, "assignee_id")
    if assignee_id is not None:
        return ("profile", assignee_id)
    stakeholder_id = read_field(task, "assigned_stakeholder_id")
    if stakeholder_id is not None:
        return ("stakeholder", stakeholder_id)
    return None


def get_snap_date(date: Any, view_mode: str) -> dt.datetime:
    """Snap a drag position: 6-hour steps for days, whole days for weeks, Mondays for months."""
    _check_view_mode(view_mode)
    value = as_datetime(date)
    if view_mode == "days":
        snapped_hours = math.floor(value.hour / 6 + 0.5) * 6
        return _midnight(value) + dt.timedelta(hours=snapped_hours)
    if view_mode == "weeks":
        return _midnight(value)
    return _midnight(value) - dt.timedelta(days=value.weekday())


def calculate_timeline_bounds(tasks: Iterable[Any], today: Any = None) -> Tuple[dt.datetime, dt.datetime]:
    dates: List[dt.datetime] = []
    for task in tasks:
        for name in ("start_date", "due_date"):
            value = _coerce_datetime(read_field(task, name))
            if value is not None:
                dates.append(value)
    if not dates:
        first = _first_of_month(_today(today))
        return first, _add_months(first, 3) - ONE_DAY
    return min(dates) - ONE_WEEK, max(dates) + ONE_WEEK


def calculate_timeline_position(date: Any, timeline_start: Any, timeline_end: Any) -> float:
    """Percentage offset of ``date`` across the timeline, clamped to 0..100."""
    start = as_datetime(timeline_start)
    end = as_datetime(timeline_end)
    target = as_datetime(date)
    day_seconds = ONE_DAY.total_seconds()
    total_days = math.ceil((end - start).total_seconds() / day_seconds)
    if total_days <= 0:
        return 0.0
    days_from_start = math.ceil((target - start).total_seconds() / day_seconds)
    return max(0.0, min(100.0, days_from_start / total_days * 100))


def get_today_indicator_position(
    units: Sequence[TimelineUnit], view_mode: str, today: Any = None
) -> Optional[float]:
    if not units:
        return None
    now = as_datetime(today) if today is not None else dt.datetime.now()
    if now < units[0].start or now >= unit_end(units[-1], view_mode):
        return None
    width = get_column_width(view_mode)
    return get_column_index_for_date(now, units, view_mode) * width + width / 2


def identify_critical_tasks(tasks: Iterable[Any], today: Any = None) -> List[Any]:
    """Heuristic critical path: critical priority, key trades, or one-day tasks."""
    critical: List[Any] = []
    for task in tasks:
        start, end = calculate_task_dates_from_estimate(task, today=today)
        duration_days = math.ceil((end - start).total_seconds() / ONE_DAY.total_seconds())
        category = (read_field(task, "category") or "").lower()
        if read_field(task, "priority") == "critical" or category in CRITICAL_CATEGORIES or duration_days <= 1:
            critical.append(task)
    return critical


def _format_coordinate(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def build_arrow_path(from_x: float, from_y: float, to_x: float, to_y: float, dependency_type: str) -> str:
    """SVG path data for a dependency arrow.

    Connection points shift 5px toward the bar edge the dependency type
    refers to; rows at nearly the same height get a straight line.
    """
    start_x, end_x = from_x, to_x
    if dependency_type == "finish-to-start":
        start_x, end_x = from_x + 5, to_x - 5
    elif dependency_type == "start-to-start":
        start_x, end_x = from_x - 5, to_x - 5
    elif dependency_type == "finish-to-finish":
        start_x, end_x = from_x + 5, to_x + 5
    elif dependency_type == "start-to-finish":
        start_x, end_x = from_x - 5, to_x + 5
    f = _format_coordinate
    if abs(to_y - from_y) < 10:
        return f"M {f(start_x)} {f(from_y)} L {f(end_x)} {f(to_y)}"
    return (
        f"M {f(start_x)} {f(from_y)} "
        f"C {f(start_x + 20)} {f(from_y)}, {f(end_x - 20)} {f(to_y)}, {f(end_x)} {f(to_y)}"
    )


def validate_view_mode(tasks: Sequence[Any], timeline_start: Any, timeline_end: Any, view_mode: str, today: Any = None) -> Dict[str, Any]:
    """Grid consistency report shown by the Gantt debug overlay."""
    issues: List[str] = []
    units = generate_timeline_units(timeline_start, timeline_end, view_mode)
    empty_stats = {"total_tasks": 0, "tasks_with_issues": 0, "average_column_span": 0.0, "average_start_column": 0.0}
    if not units:
        return {"is_valid": False, "issues": ["No timeline units generated"], "stats": empty_stats}

    column_width = get_column_width(view_mode)
    tasks_with_issues = 0
    total_span = 0
    total_start = 0
    for task in tasks:
        task_issues: List[str] = []
        start, end = calculate_task_dates_from_estimate(task, today=today)
        if start >= end:
            task_issues.append("Invalid date range: start >= end")
        position = get_task_grid_position(task, timeline_start, timeline_end, view_mode, units=units, today=today)
        if position.start_column_index < 0:
            task_issues.append(f"Negative start column: {position.start_column_index}")
        if position.column_span <= 0:
            task_issues.append(f"Invalid column span: {position.column_span}")
        if position.start_column_index >= len(units):
            task_issues.append(f"Start column beyond timeline: {position.start_column_index} >= {len(units)}")
        if position.column_span * column_width <= 0:
            task_issues.append(f"Invalid task width: {position.column_span * column_width}px")
        total_span += position.column_span
        total_start += position.start_column_index
        if task_issues:
            tasks_with_issues += 1
            title = str(read_field(task, "title") or "")[:30]
            issues.append(f'Task "{title}": {", ".join(task_issues)}')

    start_dt = as_datetime(timeline_start)
    end_dt = as_datetime(timeline_end)
    if units[0].start > start_dt:
        issues.append(f"First timeline unit ({units[0].start.isoformat()}) is after timeline start ({start_dt.isoformat()})")
    last_end = unit_end(units[-1], view_mode)
    if last_end <= end_dt:
        issues.append(f"Last timeline unit ends ({last_end.isoformat()}) before timeline end ({end_dt.isoformat()})")

    count = len(tasks)
    return {
        "is_valid": not issues,
        "issues": issues,
        "stats": {
            "total_tasks": count,
            "tasks_with_issues": tasks_with_issues,
            "average_column_span": total_span / count if count else 0.0,
            "average_start_column": total_start / count if count else 0.0,
        },
    }


def apply_task_filters(
    tasks: Iterable[Any],
    search: Optional[str] = None,
    statuses: Optional[Iterable[str]] = None,
    priorities: Optional[Iterable[str]] = None,
    categories: Optional[Iterable[str]] = None,
) -> List[Any]:
    query = (search or "").strip().lower()
    status_set = set(statuses or [])
    priority_set = set(priorities or [])
    category_set = {category.lower() for category in categories or []}
    filtered: List[Any] = []
    for task in tasks:
        if query:
            haystack = " ".join(
                str(read_field(task, name) or "") for name in ("title", "description", "category")
            ).lower()
            if query not in haystack:
                continue
        if status_set and read_field(task, "status") not in status_set:
            continue
        if priority_set and read_field(task, "priority") not in priority_set:
            continue
        if category_set and (read_field(task, "category") or "").lower() not in category_set:
            continue
        filtered.append(task)
    return filtered


@dataclass
class Milestone:
    id: str
    project_id: Any
    title: str
    description: str
    due_date: dt.datetime
    status: str
    linked_task_ids: List[Any] = field(default_factory=list)


@dataclass
class MilestoneMarker:
    milestone: Milestone
    x_position: float
    y_position: float


MIDPOINT_FALLBACK = dt.timedelta(days=30)
COMPLETION_FALLBACK = dt.timedelta(days=60)


def derive_project_milestones(project: Any, tasks: Iterable[Any] = (), today: Any = None) -> List[Milestone]:
    """Project start, mid-point review and completion milestones.

    Dates come from the project record, falling back to today plus 30 or 60
    days when the project has no end date. The start milestone links the tasks
    that begin first and the completion milestone the tasks that finish last.
    """
    now = _today(today)
    project_id = read_field(project, "id")
    name = read_field(project, "name")
    start = as_datetime(read_field(project, "start_date"))
    end = as_datetime(read_field(project, "end_date"))

    first_ids: List[Any] = []
    last_ids: List[Any] = []
    spans = [(read_field(task, "id"),) + calculate_task_dates_from_estimate(task, today=today) for task in tasks]
    if spans:
        earliest = min(span[1] for span in spans)
        latest = max(span[2] for span in spans)
        first_ids = [span[0] for span in spans if span[1] == earliest]
        last_ids = [span[0] for span in spans if span[2] == latest]

    if end is not None:
        base = start or now
        midpoint = base + (end - base) / 2
    else:
        midpoint = now + MIDPOINT_FALLBACK

    if read_field(project, "status") == "completed":
        completion_status = "completed"
    elif end is not None and end < now:
        completion_status = "overdue"
    else:
        completion_status = "pending"

    return [
        Milestone(
            id=f"{project_id}-start",
            project_id=project_id,
            title=f"{name} - Project Start",
            description="Project kick-off and initial setup",
            due_date=start or now,
            status="completed" if start is not None and start <= now else "pending",
            linked_task_ids=first_ids,
        ),
        Milestone(
            id=f"{project_id}-midpoint",
            project_id=project_id,
            title=f"{name} - Mid-point Review",
            description="Project progress review and adjustments",
            due_date=midpoint,
            status="completed" if (read_field(project, "progress") or 0) >= 50 else "in-progress",
        ),
        Milestone(
            id=f"{project_id}-end",
            project_id=project_id,
            title=f"{name} - Project Completion",
            description="Final deliverables and project closure",
            due_date=end or now + COMPLETION_FALLBACK,
            status=completion_status,
            linked_task_ids=last_ids,
        ),
    ]


def position_milestones(
    milestones: Iterable[Milestone], tasks: Sequence[Any], timeline_start: Any, timeline_end: Any
) -> List[MilestoneMarker]:
    """Markers for milestones inside the timeline, placed on the average row of their linked tasks."""
    start = as_datetime(timeline_start)
    end = as_datetime(timeline_end)
    total = end - start
    rows = {read_field(task, "id"): index for index, task in enumerate(tasks)}
    markers: List[MilestoneMarker] = []
    for milestone in milestones:
        if milestone.due_date < start or milestone.due_date > end:
            continue
        x_position = 0.0 if total <= dt.timedelta(0) else (milestone.due_date - start) / total * 100
        indices = [rows[task_id] for task_id in milestone.linked_task_ids if task_id in rows]
        average_row = sum(indices) / len(indices) if indices else 0
        markers.append(
            MilestoneMarker(
                milestone=milestone,
                x_position=max(0.0, min(100.0, x_position)),
                y_position=average_row * ROW_HEIGHT + ROW_HEIGHT / 2,
            )
        )
    return markers
