"""Heuristic resource conflict detection over already loaded records.

Nothing here is transactional: callers pass in a snapshot of allocations and
get back the overlaps visible in that snapshot.
"""

from __future__ import annotations

import datetime as dt
from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .timeline import as_datetime, read_field

DEFAULT_WEEKLY_CAPACITY = 40.0
ACTIVE_PROJECT_STATUSES = {"active", "planning"}
SEVERITY_ORDER = {"critical": 0, "high": 1, "medium": 2, "low": 3}


@dataclass
class ResourceConflict:
    id: str
    type: str
    severity: str
    title: str
    description: str
    affected_projects: List[str] = field(default_factory=list)
    suggested_action: str = ""
    due_date: Optional[dt.date] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def date_ranges_overlap(first_start: Any, first_end: Any, second_start: Any, second_end: Any) -> bool:
    """Inclusive overlap of two date ranges."""
    return as_datetime(first_start) <= as_datetime(second_end) and as_datetime(second_start) <= as_datetime(first_end)


def find_equipment_conflicts(
    allocations: Iterable[Any],
    equipment_id: Any,
    start_date: Any,
    end_date: Any,
    exclude_allocation_id: Any = None,
) -> List[Any]:
    conflicts: List[Any] = []
    for allocation in allocations:
        if read_field(allocation, "equipment_id") != equipment_id:
            continue
        if exclude_allocation_id is not None and read_field(allocation, "id") == exclude_allocation_id:
            continue
        if date_ranges_overlap(
            start_date, end_date, read_field(allocation, "start_date"), read_field(allocation, "end_date")
        ):
            conflicts.append(allocation)
    return conflicts


def maintenance_due_within(equipment: Iterable[Any], today: dt.date, window_days: int) -> List[Any]:
    cutoff = today + dt.timedelta(days=window_days)
    due = [
        item
        for item in equipment
        if read_field(item, "maintenance_due") is not None and read_field(item, "maintenance_due") <= cutoff
    ]
    return sorted(due, key=lambda item: read_field(item, "maintenance_due"))


def summarize_member_allocations(
    allocations: Iterable[Any],
    projects: Iterable[Any],
    capacity_hours: float = DEFAULT_WEEKLY_CAPACITY,
) -> List[Dict[str, Any]]:
    """Per member, per week totals across active and planning projects.

    Members are keyed by ``user_id`` when present, otherwise by name. A week
    is over-allocated once its allocated hours exceed ``capacity_hours``.
    """
    project_map = {
        read_field(project, "id"): project
        for project in projects
        if read_field(project, "status") in ACTIVE_PROJECT_STATUSES
    }
    summaries: "OrderedDict[Tuple[Any, dt.date], Dict[str, Any]]" = OrderedDict()
    for allocation in allocations:
        project = project_map.get(read_field(allocation, "project_id"))
        if project is None:
            continue
        week = read_field(allocation, "week_start_date")
        for member in read_field(allocation, "members") or []:
            member_key = read_field(member, "user_id") or read_field(member, "name")
            key = (member_key, week)
            summary = summaries.get(key)
            if summary is None:
                summary = {
                    "member_id": member_key,
                    "member_name": read_field(member, "name"),
                    "week_start": week,
                    "total_hours": 0.0,
                    "total_allocated": 0.0,
                    "utilization_rate": 0.0,
                    "over_allocated": False,
                    "availability": read_field(member, "availability"),
                    "projects": [],
                }
                summaries[key] = summary
            hours_allocated = float(read_field(member, "hours_allocated") or 0)
            hours_used = float(read_field(member, "hours_used") or 0)
            summary["total_hours"] += hours_used
            summary["total_allocated"] += hours_allocated
            summary["projects"].append(
                {
                    "project_id": read_field(project, "id"),
                    "project_name": read_field(project, "name"),
                    "hours_allocated": hours_allocated,
                    "hours_used": hours_used,
                    "percentage": hours_allocated / capacity_hours * 100 if capacity_hours else 0.0,
                    "status": read_field(project, "status"),
                }
            )

    for summary in summaries.values():
        allocated = summary["total_allocated"]
        summary["over_allocated"] = allocated > capacity_hours
        summary["utilization_rate"] = summary["total_hours"] / allocated * 100 if allocated > 0 else 0.0
    return list(summaries.values())


def _project_name(project_map: Dict[Any, Any], project_id: Any) -> str:
    project = project_map.get(project_id)
    if project is None:
        return f"Project {project_id}"
    return read_field(project, "name")


def equipment_double_bookings(
    allocations: Sequence[Any], equipment: Iterable[Any], projects: Iterable[Any]
) -> List[ResourceConflict]:
    equipment_map = {read_field(item, "id"): item for item in equipment}
    project_map = {read_field(project, "id"): project for project in projects}
    conflicts: List[ResourceConflict] = []
    ordered = sorted(allocations, key=lambda item: (read_field(item, "equipment_id"), read_field(item, "start_date")))
    for index, first in enumerate(ordered):
        for second in ordered[index + 1 :]:
            if read_field(second, "equipment_id") != read_field(first, "equipment_id"):
                break
            if not date_ranges_overlap(
                read_field(first, "start_date"),
                read_field(first, "end_date"),
                read_field(second, "start_date"),
                read_field(second, "end_date"),
            ):
                continue
            item = equipment_map.get(read_field(first, "equipment_id"))
            name = read_field(item, "name") if item is not None else f"Equipment {read_field(first, 'equipment_id')}"
            overlap_start = max(read_field(first, "start_date"), read_field(second, "start_date"))
            overlap_end = min(read_field(first, "end_date"), read_field(second, "end_date"))
            affected = [
                _project_name(project_map, read_field(first, "project_id")),
                _project_name(project_map, read_field(second, "project_id")),
            ]
            conflicts.append(
                ResourceConflict(
                    id=f"equipment-{read_field(first, 'id')}-{read_field(second, 'id')}",
                    type="equipment",
                    severity="high",
                    title=f"{name} Double Booking",
                    description=(
                        f"{name} is scheduled for both {affected[0]} and {affected[1]} "
                        f"from {overlap_start.isoformat()} to {overlap_end.isoformat()}"
                    ),
                    affected_projects=list(dict.fromkeys(affected)),
                    suggested_action="Reschedule one project or arrange backup equipment",
                    due_date=overlap_start,
                )
            )
    return conflicts


def personnel_overallocations(
    summaries: Iterable[Dict[str, Any]], capacity_hours: float = DEFAULT_WEEKLY_CAPACITY
) -> List[ResourceConflict]:
    conflicts: List[ResourceConflict] = []
    for summary in summaries:
        if not summary["over_allocated"]:
            continue
        allocated = summary["total_allocated"]
        ratio = allocated / capacity_hours * 100 if capacity_hours else 0.0
        project_names = [entry["project_name"] for entry in summary["projects"]]
        conflicts.append(
            ResourceConflict(
                id=f"personnel-{summary['member_id']}-{summary['week_start']}",
                type="personnel",
                severity="critical" if ratio > 120 else "high",
                title=f"{summary['member_name']} Overallocation",
                description=(
                    f"{summary['member_name']} is allocated {allocated:g}h in the week of "
                    f"{summary['week_start']} across {len(project_names)} project(s), {ratio:.0f}% of capacity"
                ),
                affected_projects=list(dict.fromkeys(project_names)),
                suggested_action="Reassign secondary resources or extend timeline",
                due_date=summary["week_start"],
            )
        )
    return conflicts


def maintenance_overlaps(
    allocations: Iterable[Any], equipment: Iterable[Any], projects: Iterable[Any]
) -> List[ResourceConflict]:
    project_map = {read_field(project, "id"): project for project in projects}
    by_equipment: Dict[Any, List[Any]] = {}
    for allocation in allocations:
        by_equipment.setdefault(read_field(allocation, "equipment_id"), []).append(allocation)
    conflicts: List[ResourceConflict] = []
    for item in equipment:
        due = read_field(item, "maintenance_due")
        if due is None:
            continue
        for allocation in by_equipment.get(read_field(item, "id"), []):
            if not date_ranges_overlap(due, due, read_field(allocation, "start_date"), read_field(allocation, "end_date")):
                continue
            project_name = _project_name(project_map, read_field(allocation, "project_id"))
            conflicts.append(
                ResourceConflict(
                    id=f"maintenance-{read_field(item, 'id')}-{read_field(allocation, 'id')}",
                    type="equipment",
                    severity="low",
                    title=f"{read_field(item, 'name')} Maintenance Overlap",
                    description=(
                        f"{read_field(item, 'name')} maintenance is due on {due.isoformat()} "
                        f"while allocated to {project_name}"
                    ),
                    affected_projects=[project_name],
                    suggested_action="Move maintenance to a weekend or arrange backup equipment",
                    due_date=due,
                )
            )
    return conflicts


def schedule_overlaps(tasks: Sequence[Any], projects: Iterable[Any]) -> List[ResourceConflict]:
    """Tasks sharing an assignee whose explicit date ranges overlap."""
    project_map = {read_field(project, "id"): project for project in projects}
    dated = [
        task
        for task in tasks
        if read_field(task, "assignee_id") is not None
        and read_field(task, "start_date") is not None
        and read_field(task, "due_date") is not None
        and read_field(task, "status") != "completed"
    ]
    conflicts: List[ResourceConflict] = []
    for index, first in enumerate(dated):
        for second in dated[index + 1 :]:
            if read_field(first, "assignee_id") != read_field(second, "assignee_id"):
                continue
            if not date_ranges_overlap(
                read_field(first, "start_date"),
                read_field(first, "due_date"),
                read_field(second, "start_date"),
                read_field(second, "due_date"),
            ):
                continue
            names = [
                _project_name(project_map, read_field(first, "project_id")),
                _project_name(project_map, read_field(second, "project_id")),
            ]
            conflicts.append(
                ResourceConflict(
                    id=f"schedule-{read_field(first, 'id')}-{read_field(second, 'id')}",
                    type="schedule",
                    severity="medium",
                    title=f"{read_field(first, 'title')} / {read_field(second, 'title')}",
                    description=(
                        f'"{read_field(first, "title")}" and "{read_field(second, "title")}" '
                        "are scheduled for the same assignee at the same time"
                    ),
                    affected_projects=list(dict.fromkeys(names)),
                    suggested_action="Coordinate the schedule or reassign one of the tasks",
                    due_date=as_datetime(max(read_field(first, "start_date"), read_field(second, "start_date"))).date(),
                )
            )
    return conflicts


def detect_resource_conflicts(
    projects: Sequence[Any],
    equipment: Sequence[Any],
    equipment_allocations: Sequence[Any],
    resource_allocations: Sequence[Any],
    tasks: Sequence[Any] = (),
    capacity_hours: float = DEFAULT_WEEKLY_CAPACITY,
) -> Dict[str, Any]:
    summaries = summarize_member_allocations(resource_allocations, projects, capacity_hours)
    conflicts: List[ResourceConflict] = []
    conflicts.extend(equipment_double_bookings(equipment_allocations, equipment, projects))
    conflicts.extend(personnel_overallocations(summaries, capacity_hours))
    conflicts.extend(maintenance_overlaps(equipment_allocations, equipment, projects))
    conflicts.extend(schedule_overlaps(tasks, projects))
    conflicts.sort(key=lambda conflict: (SEVERITY_ORDER[conflict.severity], conflict.id))
    return {
        "conflicts": [conflict.to_dict() for conflict in conflicts],
        "total": len(conflicts),
        "critical": sum(1 for conflict in conflicts if conflict.severity == "critical"),
        "high": sum(1 for conflict in conflicts if conflict.severity == "high"),
    }