"""Task dependency rules and arrow geometry.

Cycle checks run against the dependency list passed in, never against the
database, so the result only reflects that snapshot.
"""

from __future__ import annotations

import datetime as dt
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Set, Tuple

from .timeline import (
    ROW_HEIGHT,
    TASK_BAR_HEIGHT,
    TimelineUnit,
    read_field,
    build_arrow_path,
    calculate_task_dates_from_estimate,
    generate_timeline_units,
    get_task_grid_position,
    get_column_width,
    identify_critical_tasks,
)

DEPENDENCY_TYPES = ("finish-to-start", "start-to-start", "finish-to-finish", "start-to-finish")

_EXHAUSTED = object()


@dataclass
class DependencyValidationResult:
    is_valid: bool
    conflicts: List[str] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class DependencyArrow:
    id: Any
    predecessor_id: Any
    successor_id: Any
    dependency_type: str
    path: str
    is_on_critical_path: bool
    has_conflict: bool


def _successor_index(dependencies: Iterable[Any]) -> Dict[Any, List[Any]]:
    index: Dict[Any, List[Any]] = defaultdict(list)
    for dependency in dependencies:
        index[read_field(dependency, "predecessor_id")].append(read_field(dependency, "successor_id"))
    return index


def would_create_cycle(predecessor_id: Any, successor_id: Any, dependencies: Iterable[Any]) -> bool:
    """True if adding ``predecessor_id -> successor_id`` closes a loop.

    Walks depth-first from the successor along stored edges. Reaching the
    predecessor, or revisiting a node already on the current path, rejects
    the edge. Nodes whose subtree was fully explored are not walked twice.
    """
    if predecessor_id == successor_id:
        return True
    successors = _successor_index(dependencies)
    on_path: Set[Any] = {successor_id}
    cleared: Set[Any] = set()
    stack: List[Tuple[Any, Iterator[Any]]] = [(successor_id, iter(successors.get(successor_id, ())))]
    while stack:
        node, pending = stack[-1]
        next_id = next(pending, _EXHAUSTED)
        if next_id is _EXHAUSTED:
            stack.pop()
            on_path.discard(node)
            cleared.add(node)
            continue
        if next_id == predecessor_id or next_id in on_path:
            return True
        if next_id in cleared:
            continue
        on_path.add(next_id)
        stack.append((next_id, iter(successors.get(next_id, ()))))
    return False


def validate_dependency(
    predecessor_id: Any,
    successor_id: Any,
    dependencies: Sequence[Any],
    tasks: Iterable[Any] = (),
    dependency_type: str = "finish-to-start",
    today: Any = None,
) -> DependencyValidationResult:
    if predecessor_id == successor_id:
        return DependencyValidationResult(is_valid=False, conflicts=["A task cannot depend on itself"])

    conflicts: List[str] = []
    suggestions: List[str] = []
    if dependency_type not in DEPENDENCY_TYPES:
        conflicts.append(f"Unknown dependency type: {dependency_type}")

    if would_create_cycle(predecessor_id, successor_id, dependencies):
        conflicts.append("This dependency would create a circular dependency")
        suggestions.append("Consider breaking the dependency chain or using a different dependency type")

    for dependency in dependencies:
        if (
            read_field(dependency, "predecessor_id") == predecessor_id
            and read_field(dependency, "successor_id") == successor_id
            and read_field(dependency, "dependency_type") == dependency_type
        ):
            conflicts.append("This dependency already exists")
            break

    task_map = {read_field(task, "id"): task for task in tasks}
    predecessor = task_map.get(predecessor_id)
    successor = task_map.get(successor_id)
    if predecessor is not None and successor is not None and dependency_type == "finish-to-start":
        _, predecessor_end = calculate_task_dates_from_estimate(predecessor, today=today)
        successor_start, _ = calculate_task_dates_from_estimate(successor, today=today)
        if predecessor_end > successor_start:
            suggestions.append("Consider adjusting task dates to respect the dependency sequence")

    return DependencyValidationResult(is_valid=not conflicts, conflicts=conflicts, suggestions=suggestions)


def task_dependency_map(task_id: Any, dependencies: Iterable[Any]) -> Dict[str, List[Any]]:
    predecessors: List[Any] = []
    successors: List[Any] = []
    for dependency in dependencies:
        if read_field(dependency, "successor_id") == task_id:
            predecessors.append(dependency)
        if read_field(dependency, "predecessor_id") == task_id:
            successors.append(dependency)
    return {"predecessors": predecessors, "successors": successors}


def is_sequence_violated(predecessor: Any, successor: Any, dependency_type: str, lag_days: int = 0, today: Any = None) -> bool:
    """Whether the scheduled dates break the ordering the dependency type asks for."""
    pred_start, pred_end = calculate_task_dates_from_estimate(predecessor, today=today)
    succ_start, succ_end = calculate_task_dates_from_estimate(successor, today=today)
    lag = dt.timedelta(days=lag_days or 0)
    if dependency_type == "start-to-start":
        return pred_start + lag > succ_start
    if dependency_type == "finish-to-finish":
        return pred_end + lag > succ_end
    if dependency_type == "start-to-finish":
        return pred_start + lag > succ_end
    return pred_end + lag > succ_start


def build_dependency_arrows(
    tasks: Sequence[Any],
    dependencies: Iterable[Any],
    timeline_start: Any,
    timeline_end: Any,
    view_mode: str,
    units: Optional[Sequence[TimelineUnit]] = None,
    today: Any = None,
) -> List[DependencyArrow]:
    """Arrow geometry for every dependency whose both ends are in ``tasks``.

    Rows are laid out in the order of ``tasks``; arrows leave the edge of the
    predecessor bar and enter the successor bar at mid height.
    """
    if units is None:
        units = generate_timeline_units(timeline_start, timeline_end, view_mode)
    column_width = get_column_width(view_mode)
    rows = {read_field(task, "id"): index for index, task in enumerate(tasks)}
    task_map = {read_field(task, "id"): task for task in tasks}
    critical_ids = {read_field(task, "id") for task in identify_critical_tasks(tasks, today=today)}
    bar_offset = (ROW_HEIGHT - TASK_BAR_HEIGHT) / 2 + TASK_BAR_HEIGHT / 2

    arrows: List[DependencyArrow] = []
    for dependency in dependencies:
        predecessor_id = read_field(dependency, "predecessor_id")
        successor_id = read_field(dependency, "successor_id")
        if predecessor_id not in task_map or successor_id not in task_map:
            continue
        dependency_type = read_field(dependency, "dependency_type") or "finish-to-start"
        predecessor = task_map[predecessor_id]
        successor = task_map[successor_id]
        pred_pos = get_task_grid_position(predecessor, timeline_start, timeline_end, view_mode, units=units, today=today)
        succ_pos = get_task_grid_position(successor, timeline_start, timeline_end, view_mode, units=units, today=today)

        pred_left = pred_pos.start_column_index * column_width
        pred_right = pred_left + pred_pos.column_span * column_width
        succ_left = succ_pos.start_column_index * column_width
        succ_right = succ_left + succ_pos.column_span * column_width
        from_x = pred_left if dependency_type in ("start-to-start", "start-to-finish") else pred_right
        to_x = succ_right if dependency_type in ("finish-to-finish", "start-to-finish") else succ_left
        from_y = rows[predecessor_id] * ROW_HEIGHT + bar_offset
        to_y = rows[successor_id] * ROW_HEIGHT + bar_offset

        arrows.append(
            DependencyArrow(
                id=read_field(dependency, "id"),
                predecessor_id=predecessor_id,
                successor_id=successor_id,
                dependency_type=dependency_type,
                path=build_arrow_path(from_x, from_y, to_x, to_y, dependency_type),
                is_on_critical_path=predecessor_id in critical_ids and successor_id in critical_ids,
                has_conflict=is_sequence_violated(
                    predecessor, successor, dependency_type, read_field(dependency, "lag_days") or 0, today=today
                ),
            )
        )
    return arrows
