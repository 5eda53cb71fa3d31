from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Iterable, List, Optional, Tuple

import structlog
from fastapi import HTTPException, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from . import conflicts as conflict_rules
from . import crm
from .config import settings
from .dependency_graph import build_dependency_arrows, validate_dependency
from .models import (
    ContactInteraction,
    Equipment,
    EquipmentAllocation,
    Profile,
    Project,
    ResourceAllocation,
    Stakeholder,
    StakeholderAssignment,
    Task,
    TaskDependency,
    TaskStakeholderAssignment,
    TeamMember,
)
from .realtime import SubscriptionManager
from .state import PERSISTED_KEYS, RuntimeState
from .timeline import (
    DragValidationResult,
    Milestone,
    apply_task_filters,
    as_datetime,
    calculate_task_dates_from_estimate,
    calculate_timeline_bounds,
    derive_project_milestones,
    generate_timeline_units,
    get_column_width,
    get_snap_date,
    get_task_grid_position,
    get_today_indicator_position,
    identify_critical_tasks,
    position_milestones,
    validate_task_drag,
    validate_view_mode,
)
from .utils import normalize_skill_list, week_start

logger = structlog.get_logger()

UNAVAILABLE_EQUIPMENT_STATUSES = {"out-of-service"}
MAINTENANCE_SCHEDULE_DAYS = 30


def _today(today: Optional[dt.date] = None) -> dt.date:
    return today or dt.date.today()


def _publish(feed: Optional[SubscriptionManager], table: str, action: str, record_id: Any, **payload: Any) -> None:
    if feed is not None:
        feed.publish(table, action, record_id, payload)


def _apply_changes(record: Any, changes: Dict[str, Any]) -> None:
    for key, value in changes.items():
        setattr(record, key, value)


def _get_or_404(db: Session, model: Any, record_id: int, label: str) -> Any:
    record = db.get(model, record_id)
    if not record:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} not found")
    return record


def _stakeholder_name(stakeholder: Stakeholder) -> str:
    return stakeholder.company_name or stakeholder.contact_person or f"Stakeholder {stakeholder.id}"


# Projects


def list_projects(db: Session, project_status: Optional[str] = None) -> List[Project]:
    query = db.query(Project)
    if project_status:
        query = query.filter(Project.status == project_status)
    return query.order_by(Project.start_date.asc(), Project.id.asc()).all()


def get_project(db: Session, project_id: int) -> Project:
    return _get_or_404(db, Project, project_id, "Project")


def create_project(db: Session, feed: Optional[SubscriptionManager], data: Dict[str, Any]) -> Project:
    project = Project(**data)
    db.add(project)
    db.commit()
    db.refresh(project)
    logger.info("project_created", project_id=project.id)
    _publish(feed, "projects", "INSERT", project.id)
    return project


def update_project(db: Session, feed: Optional[SubscriptionManager], project_id: int, changes: Dict[str, Any]) -> Project:
    project = get_project(db, project_id)
    start = changes.get("start_date", project.start_date)
    end = changes.get("end_date", project.end_date)
    if start and end and end < start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must not be before start date")
    _apply_changes(project, changes)
    db.add(project)
    db.commit()
    db.refresh(project)
    _publish(feed, "projects", "UPDATE", project.id)
    return project


def delete_project(db: Session, feed: Optional[SubscriptionManager], project_id: int) -> None:
    project = get_project(db, project_id)
    if db.query(Task).filter(Task.project_id == project_id).count():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Project still has tasks")
    db.query(EquipmentAllocation).filter(EquipmentAllocation.project_id == project_id).delete()
    for allocation in db.query(ResourceAllocation).filter(ResourceAllocation.project_id == project_id).all():
        db.delete(allocation)
    db.delete(project)
    db.commit()
    _publish(feed, "projects", "DELETE", project_id)


# Profiles


def list_profiles(db: Session) -> List[Profile]:
    return db.query(Profile).order_by(Profile.full_name.asc()).all()


def create_profile(db: Session, feed: Optional[SubscriptionManager], data: Dict[str, Any]) -> Profile:
    email = data.get("email")
    if email and db.query(Profile).filter(Profile.email == email).first():
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="A profile with this email already exists")
    profile = Profile(**{**data, "skills": normalize_skill_list(data.get("skills"))})
    db.add(profile)
    db.commit()
    db.refresh(profile)
    _publish(feed, "profiles", "INSERT", profile.id)
    return profile


# Tasks


def _check_task_references(db: Session, data: Dict[str, Any]) -> None:
    if data.get("assignee_id") is not None:
        _get_or_404(db, Profile, data["assignee_id"], "Assignee")
    if data.get("assigned_stakeholder_id") is not None:
        _get_or_404(db, Stakeholder, data["assigned_stakeholder_id"], "Stakeholder")


def _normalize_task_dates(data: Dict[str, Any]) -> Dict[str, Any]:
    normalized = dict(data)
    for name in ("start_date", "due_date"):
        if normalized.get(name) is not None:
            normalized[name] = as_datetime(normalized[name])
    return normalized


def project_tasks(db: Session, project_id: int) -> List[Task]:
    return db.query(Task).filter(Task.project_id == project_id).order_by(Task.id.asc()).all()


def list_tasks(
    db: Session,
    project_id: int,
    search: Optional[str] = None,
    statuses: Optional[Iterable[str]] = None,
    priorities: Optional[Iterable[str]] = None,
    categories: Optional[Iterable[str]] = None,
) -> List[Task]:
    get_project(db, project_id)
    return apply_task_filters(
        project_tasks(db, project_id),
        search=search,
        statuses=statuses,
        priorities=priorities,
        categories=categories,
    )


def get_task(db: Session, task_id: int) -> Task:
    return _get_or_404(db, Task, task_id, "Task")


def create_task(db: Session, feed: Optional[SubscriptionManager], data: Dict[str, Any]) -> Task:
    get_project(db, data["project_id"])
    _check_task_references(db, data)
    data = _normalize_task_dates(data)
    task = Task(**{**data, "required_skills": normalize_skill_list(data.get("required_skills"))})
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info("task_created", task_id=task.id, project_id=task.project_id)
    _publish(feed, "tasks", "INSERT", task.id, project_id=task.project_id)
    return task


def update_task(db: Session, feed: Optional[SubscriptionManager], task_id: int, changes: Dict[str, Any]) -> Task:
    task = get_task(db, task_id)
    _check_task_references(db, changes)
    changes = _normalize_task_dates(changes)
    start = changes.get("start_date", task.start_date)
    due = changes.get("due_date", task.due_date)
    if start and due and due < start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Due date must not be before start date")
    if "required_skills" in changes:
        changes = {**changes, "required_skills": normalize_skill_list(changes["required_skills"])}
    _apply_changes(task, changes)
    db.add(task)
    db.commit()
    db.refresh(task)
    _publish(feed, "tasks", "UPDATE", task.id, project_id=task.project_id)
    return task


def move_task(
    db: Session,
    feed: Optional[SubscriptionManager],
    task_id: int,
    new_start_date: dt.datetime,
    timeline_start: Optional[dt.datetime] = None,
    timeline_end: Optional[dt.datetime] = None,
    view_mode: str = "days",
    snap: bool = False,
    dry_run: bool = False,
    today: Optional[dt.date] = None,
) -> Dict[str, Any]:
    """Validate a drag of ``task_id`` to ``new_start_date`` and reschedule it unless invalid.

    The original duration is kept. Without explicit bounds the timeline
    bounds of the task's project are used.
    """
    task = get_task(db, task_id)
    siblings = project_tasks(db, task.project_id)
    if timeline_start is None or timeline_end is None:
        timeline_start, timeline_end = calculate_timeline_bounds(siblings, today=today)
    else:
        timeline_start, timeline_end = as_datetime(timeline_start), as_datetime(timeline_end)
    new_start_date = as_datetime(new_start_date)
    if snap:
        new_start_date = get_snap_date(new_start_date, view_mode)

    result: DragValidationResult = validate_task_drag(
        task, new_start_date, timeline_start, timeline_end, all_tasks=siblings, today=today
    )
    validation = {"is_valid": result.is_valid, "validity": result.validity, "messages": result.messages}
    if dry_run:
        return {"applied": False, "new_start_date": new_start_date, "validation": validation, "task": task}
    if not result.is_valid:
        logger.info("task_move_rejected", task_id=task.id, messages=result.messages)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": "; ".join(result.messages), "validation": validation},
        )

    current_start, current_end = calculate_task_dates_from_estimate(task, today=today)
    duration = current_end - current_start
    task.start_date = new_start_date
    task.due_date = new_start_date + duration
    db.add(task)
    db.commit()
    db.refresh(task)
    logger.info("task_moved", task_id=task.id, validity=result.validity, start_date=task.start_date.isoformat())
    _publish(feed, "tasks", "UPDATE", task.id, project_id=task.project_id)
    return {"applied": True, "new_start_date": new_start_date, "validation": validation, "task": task}


# Gantt


def _resolve_bounds(
    tasks: List[Task],
    timeline_start: Optional[dt.datetime],
    timeline_end: Optional[dt.datetime],
    today: Optional[dt.date],
) -> Tuple[dt.datetime, dt.datetime]:
    if timeline_start is not None and timeline_end is not None:
        timeline_start, timeline_end = as_datetime(timeline_start), as_datetime(timeline_end)
        if timeline_end < timeline_start:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Timeline end must not be before timeline start"
            )
        return timeline_start, timeline_end
    return calculate_timeline_bounds(tasks, today=today)


def build_gantt(
    db: Session,
    project_id: int,
    view_mode: str = "days",
    timeline_start: Optional[dt.datetime] = None,
    timeline_end: Optional[dt.datetime] = None,
    today: Optional[dt.date] = None,
) -> Dict[str, Any]:
    project = get_project(db, project_id)
    tasks = project_tasks(db, project_id)
    start, end = _resolve_bounds(tasks, timeline_start, timeline_end, today)
    units = generate_timeline_units(start, end, view_mode)
    column_width = get_column_width(view_mode)
    critical_ids = [task.id for task in identify_critical_tasks(tasks, today=today)]
    rows: List[Dict[str, Any]] = []
    for task in tasks:
        calculated_start, calculated_end = calculate_task_dates_from_estimate(task, today=today)
        position = get_task_grid_position(task, start, end, view_mode, units=units, today=today)
        rows.append(
            {
                "task": task,
                "calculated_start": calculated_start,
                "calculated_end": calculated_end,
                "start_column_index": position.start_column_index,
                "column_span": position.column_span,
                "left": position.pixel_left(view_mode),
                "width": position.pixel_width(view_mode),
                "is_critical": task.id in critical_ids,
            }
        )
    arrows = build_dependency_arrows(
        tasks, project_dependencies(db, project_id), start, end, view_mode, units=units, today=today
    )
    return {
        "project_id": project_id,
        "view_mode": view_mode,
        "timeline_start": start,
        "timeline_end": end,
        "column_width": column_width,
        "units": units,
        "tasks": rows,
        "arrows": arrows,
        "critical_task_ids": critical_ids,
        "today_position": get_today_indicator_position(units, view_mode, today=today),
        "milestones": position_milestones(derive_project_milestones(project, tasks, today=today), tasks, start, end),
    }


def project_milestones(db: Session, project_id: int, today: Optional[dt.date] = None) -> List[Milestone]:
    project = get_project(db, project_id)
    return derive_project_milestones(project, project_tasks(db, project_id), today=today)


def gantt_debug_report(
    db: Session,
    state: RuntimeState,
    project_id: int,
    view_mode: str = "days",
    timeline_start: Optional[dt.datetime] = None,
    timeline_end: Optional[dt.datetime] = None,
    today: Optional[dt.date] = None,
) -> Dict[str, Any]:
    snapshot = state.snapshot()
    if not snapshot["gantt_debug_mode"]:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Gantt debug mode is disabled")
    get_project(db, project_id)
    tasks = project_tasks(db, project_id)
    start, end = _resolve_bounds(tasks, timeline_start, timeline_end, today)
    report = validate_view_mode(tasks, start, end, view_mode, today=today)
    report["unit_count"] = len(generate_timeline_units(start, end, view_mode))
    report["preferences"] = snapshot["gantt_debug_preferences"]
    return report


# Dependencies


def project_dependencies(db: Session, project_id: int) -> List[TaskDependency]:
    task_ids = db.query(Task.id).filter(Task.project_id == project_id)
    return (
        db.query(TaskDependency)
        .filter(or_(TaskDependency.predecessor_id.in_(task_ids), TaskDependency.successor_id.in_(task_ids)))
        .order_by(TaskDependency.id.asc())
        .all()
    )


def check_dependency(
    db: Session, data: Dict[str, Any], project_id: Optional[int] = None, today: Optional[dt.date] = None
):
    predecessor = _get_or_404(db, Task, data["predecessor_id"], "Predecessor task")
    successor = _get_or_404(db, Task, data["successor_id"], "Successor task")
    if predecessor.project_id != successor.project_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Dependent tasks must belong to the same project"
        )
    if project_id is not None and predecessor.project_id != project_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Dependent tasks must belong to this project"
        )
    return validate_dependency(
        predecessor.id,
        successor.id,
        project_dependencies(db, predecessor.project_id),
        tasks=[predecessor, successor],
        dependency_type=data.get("dependency_type", "finish-to-start"),
        today=today,
    )


def create_dependency(
    db: Session, feed: Optional[SubscriptionManager], data: Dict[str, Any], project_id: Optional[int] = None
) -> TaskDependency:
    result = check_dependency(db, data, project_id=project_id)
    if not result.is_valid:
        logger.info("dependency_rejected", conflicts=result.conflicts, **data)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=", ".join(result.conflicts))
    dependency = TaskDependency(**data)
    db.add(dependency)
    db.commit()
    db.refresh(dependency)
    _publish(feed, "task_dependencies", "INSERT", dependency.id)
    return dependency


def delete_dependency(db: Session, feed: Optional[SubscriptionManager], dependency_id: int) -> None:
    dependency = _get_or_404(db, TaskDependency, dependency_id, "Dependency")
    db.delete(dependency)
    db.commit()
    _publish(feed, "task_dependencies", "DELETE", dependency_id)


# Equipment


def list_equipment(
    db: Session,
    equipment_status: Optional[str] = None,
    project_id: Optional[int] = None,
    equipment_type: Optional[str] = None,
) -> List[Equipment]:
    query = db.query(Equipment)
    if equipment_status:
        query = query.filter(Equipment.status == equipment_status)
    if project_id is not None:
        query = query.filter(Equipment.project_id == project_id)
    if equipment_type:
        query = query.filter(Equipment.type == equipment_type)
    return query.order_by(Equipment.name.asc()).all()


def get_equipment(db: Session, equipment_id: int) -> Equipment:
    return _get_or_404(db, Equipment, equipment_id, "Equipment")


def _check_operator(db: Session, operator_type: Optional[str], operator_id: Optional[int]) -> None:
    if operator_id is None:
        return
    if operator_type is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Operator type is required with an operator")
    if operator_type == "stakeholder":
        _get_or_404(db, Stakeholder, operator_id, "Operator")
    else:
        _get_or_404(db, Profile, operator_id, "Operator")


def create_equipment(db: Session, feed: Optional[SubscriptionManager], data: Dict[str, Any]) -> Equipment:
    if data.get("project_id") is not None:
        get_project(db, data["project_id"])
    _check_operator(db, data.get("operator_type"), data.get("operator_id"))
    equipment = Equipment(**data)
    db.add(equipment)
    db.commit()
    db.refresh(equipment)
    _publish(feed, "equipment", "INSERT", equipment.id)
    return equipment


def update_equipment(db: Session, feed: Optional[SubscriptionManager], equipment_id: int, changes: Dict[str, Any]) -> Equipment:
    equipment = get_equipment(db, equipment_id)
    if changes.get("project_id") is not None:
        get_project(db, changes["project_id"])
    _check_operator(
        db,
        changes.get("operator_type", equipment.operator_type),
        changes.get("operator_id", equipment.operator_id),
    )
    _apply_changes(equipment, changes)
    db.add(equipment)
    db.commit()
    db.refresh(equipment)
    _publish(feed, "equipment", "UPDATE", equipment.id)
    return equipment


def delete_equipment(db: Session, feed: Optional[SubscriptionManager], equipment_id: int) -> None:
    equipment = get_equipment(db, equipment_id)
    db.delete(equipment)
    db.commit()
    _publish(feed, "equipment", "DELETE", equipment_id)


def equipment_maintenance_due(db: Session, today: Optional[dt.date] = None, window_days: Optional[int] = None) -> List[Equipment]:
    window = settings.maintenance_window_days if window_days is None else window_days
    return conflict_rules.maintenance_due_within(
        db.query(Equipment).filter(Equipment.maintenance_due.isnot(None)).all(), _today(today), window
    )


def list_equipment_allocations(db: Session, equipment_id: int) -> List[EquipmentAllocation]:
    get_equipment(db, equipment_id)
    return (
        db.query(EquipmentAllocation)
        .filter(EquipmentAllocation.equipment_id == equipment_id)
        .order_by(EquipmentAllocation.start_date.asc())
        .all()
    )


def find_allocation_conflicts(
    db: Session,
    equipment_id: int,
    start_date: dt.date,
    end_date: dt.date,
    exclude_allocation_id: Optional[int] = None,
) -> List[EquipmentAllocation]:
    candidates = (
        db.query(EquipmentAllocation)
        .filter(
            EquipmentAllocation.equipment_id == equipment_id,
            EquipmentAllocation.start_date <= end_date,
            EquipmentAllocation.end_date >= start_date,
        )
        .order_by(EquipmentAllocation.start_date.asc())
        .all()
    )
    return conflict_rules.find_equipment_conflicts(candidates, equipment_id, start_date, end_date, exclude_allocation_id)


def _raise_allocation_conflict(db: Session, found: List[EquipmentAllocation]) -> None:
    first = found[0]
    project = db.get(Project, first.project_id)
    name = project.name if project else f"Project {first.project_id}"
    raise HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=(
            f"Equipment is already allocated to {name} from {first.start_date.isoformat()} "
            f"to {first.end_date.isoformat()}"
        ),
    )


def create_equipment_allocation(
    db: Session, feed: Optional[SubscriptionManager], data: Dict[str, Any]
) -> EquipmentAllocation:
    equipment = get_equipment(db, data["equipment_id"])
    get_project(db, data["project_id"])
    if equipment.status in UNAVAILABLE_EQUIPMENT_STATUSES:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Equipment is out of service")
    _check_operator(db, data.get("operator_type"), data.get("operator_id"))
    found = find_allocation_conflicts(db, equipment.id, data["start_date"], data["end_date"])
    if found:
        logger.info("equipment_conflict", equipment_id=equipment.id, conflicts=[item.id for item in found])
        _raise_allocation_conflict(db, found)
    allocation = EquipmentAllocation(**data)
    db.add(allocation)
    db.commit()
    db.refresh(allocation)
    _publish(feed, "equipment_allocations", "INSERT", allocation.id, equipment_id=equipment.id)
    return allocation


def update_equipment_allocation(
    db: Session, feed: Optional[SubscriptionManager], allocation_id: int, changes: Dict[str, Any]
) -> EquipmentAllocation:
    allocation = _get_or_404(db, EquipmentAllocation, allocation_id, "Allocation")
    start = changes.get("start_date") or allocation.start_date
    end = changes.get("end_date") or allocation.end_date
    if end < start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must not be before start date")
    if changes.get("project_id") is not None:
        get_project(db, changes["project_id"])
    found = find_allocation_conflicts(db, allocation.equipment_id, start, end, exclude_allocation_id=allocation.id)
    if found:
        _raise_allocation_conflict(db, found)
    _apply_changes(allocation, {key: value for key, value in changes.items() if value is not None or key == "notes"})
    db.add(allocation)
    db.commit()
    db.refresh(allocation)
    _publish(feed, "equipment_allocations", "UPDATE", allocation.id, equipment_id=allocation.equipment_id)
    return allocation


def delete_equipment_allocation(db: Session, feed: Optional[SubscriptionManager], allocation_id: int) -> None:
    allocation = _get_or_404(db, EquipmentAllocation, allocation_id, "Allocation")
    equipment_id = allocation.equipment_id
    db.delete(allocation)
    db.commit()
    _publish(feed, "equipment_allocations", "DELETE", allocation_id, equipment_id=equipment_id)


# Equipment conflict resolution and bulk actions


def _save_equipment(db: Session, feed: Optional[SubscriptionManager], items: List[Equipment]) -> List[Equipment]:
    for item in items:
        db.add(item)
    db.commit()
    for item in items:
        db.refresh(item)
        _publish(feed, "equipment", "UPDATE", item.id)
    return items


def _available_substitute(db: Session, equipment: Equipment, substitute_id: int, label: str) -> Equipment:
    substitute = _get_or_404(db, Equipment, substitute_id, label)
    if substitute.id == equipment.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{label} must be a different item")
    if substitute.status != "available":
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"{label} is not available")
    return substitute


def _swap_in(substitute: Equipment, equipment: Equipment, released_status: str) -> None:
    substitute.project_id = equipment.project_id
    substitute.status = "in-use"
    equipment.project_id = None
    equipment.status = released_status


def resolve_equipment_conflict(
    db: Session, feed: Optional[SubscriptionManager], equipment_id: int, data: Dict[str, Any]
) -> Dict[str, Any]:
    """Resolve a double booking of ``equipment_id``.

    ``reassign`` moves the equipment to another project, ``alternative`` puts
    an available item on the equipment's project and frees the original, and
    ``reschedule`` moves one of its allocations to new dates.
    """
    equipment = get_equipment(db, equipment_id)
    resolution = data["resolution"]
    if resolution == "reschedule":
        allocation = _get_or_404(db, EquipmentAllocation, data["allocation_id"], "Allocation")
        if allocation.equipment_id != equipment.id:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST, detail="Allocation does not belong to this equipment"
            )
        allocation = update_equipment_allocation(
            db, feed, allocation.id, {"start_date": data["start_date"], "end_date": data["end_date"]}
        )
        logger.info("equipment_conflict_resolved", equipment_id=equipment.id, resolution=resolution)
        return {"resolution": resolution, "equipment": [equipment], "allocation": allocation}

    changed = [equipment]
    if resolution == "reassign":
        get_project(db, data["target_project_id"])
        equipment.project_id = data["target_project_id"]
    else:
        substitute = _available_substitute(db, equipment, data["alternative_equipment_id"], "Alternative equipment")
        _swap_in(substitute, equipment, "available")
        changed.append(substitute)
    _save_equipment(db, feed, changed)
    logger.info("equipment_conflict_resolved", equipment_id=equipment.id, resolution=resolution)
    return {"resolution": resolution, "equipment": changed, "allocation": None}


def resolve_maintenance_conflict(
    db: Session, feed: Optional[SubscriptionManager], equipment_id: int, data: Dict[str, Any]
) -> Dict[str, Any]:
    """Move the maintenance date, or swap in a backup and send the equipment to maintenance."""
    equipment = get_equipment(db, equipment_id)
    resolution = data["resolution"]
    changed = [equipment]
    if resolution == "reschedule":
        equipment.maintenance_due = data["new_maintenance_date"]
    else:
        substitute = _available_substitute(db, equipment, data["backup_equipment_id"], "Backup equipment")
        _swap_in(substitute, equipment, "maintenance")
        changed.append(substitute)
    _save_equipment(db, feed, changed)
    logger.info("maintenance_conflict_resolved", equipment_id=equipment.id, resolution=resolution)
    return {"resolution": resolution, "equipment": changed, "allocation": None}


def bulk_equipment_action(
    db: Session,
    feed: Optional[SubscriptionManager],
    equipment_ids: Iterable[int],
    action: str,
    new_status: Optional[str] = None,
    today: Optional[dt.date] = None,
) -> Dict[str, Any]:
    wanted = list(dict.fromkeys(equipment_ids))
    found = {item.id: item for item in db.query(Equipment).filter(Equipment.id.in_(wanted)).all()}
    missing = [str(equipment_id) for equipment_id in wanted if equipment_id not in found]
    if missing:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Equipment not found: {', '.join(missing)}"
        )
    items = [found[equipment_id] for equipment_id in wanted]
    for item in items:
        if action == "update_status":
            item.status = new_status
        elif action == "release_all":
            item.project_id = None
            item.status = "available"
            item.operator_type = None
            item.operator_id = None
        elif action == "schedule_maintenance":
            item.maintenance_due = _today(today) + dt.timedelta(days=MAINTENANCE_SCHEDULE_DAYS)
            item.status = "maintenance"
        else:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Unknown bulk action: {action}")
    _save_equipment(db, feed, items)
    logger.info("equipment_bulk_action", action=action, count=len(items))
    return {"action": action, "updated": len(items), "equipment": items}


# Resource allocations


def list_resource_allocations(
    db: Session, project_id: Optional[int] = None, week: Optional[dt.date] = None
) -> List[ResourceAllocation]:
    query = db.query(ResourceAllocation)
    if project_id is not None:
        query = query.filter(ResourceAllocation.project_id == project_id)
    if week is not None:
        query = query.filter(ResourceAllocation.week_start_date == week_start(week))
    return query.order_by(ResourceAllocation.week_start_date.asc(), ResourceAllocation.id.asc()).all()


def create_resource_allocation(
    db: Session, feed: Optional[SubscriptionManager], data: Dict[str, Any]
) -> ResourceAllocation:
    get_project(db, data["project_id"])
    members = data.pop("members", [])
    allocation = ResourceAllocation(**{**data, "week_start_date": week_start(data["week_start_date"])})
    for member in members:
        if member.get("user_id") is not None:
            _get_or_404(db, Profile, member["user_id"], "Profile")
        allocation.members.append(TeamMember(**{**member, "skills": normalize_skill_list(member.get("skills"))}))
    db.add(allocation)
    db.commit()
    db.refresh(allocation)
    logger.info("resource_allocation_created", allocation_id=allocation.id, members=len(allocation.members))
    _publish(feed, "resource_allocations", "INSERT", allocation.id, project_id=allocation.project_id)
    return allocation


def delete_resource_allocation(db: Session, feed: Optional[SubscriptionManager], allocation_id: int) -> None:
    allocation = _get_or_404(db, ResourceAllocation, allocation_id, "Resource allocation")
    db.delete(allocation)
    db.commit()
    _publish(feed, "resource_allocations", "DELETE", allocation_id)


def member_utilization(db: Session, state: RuntimeState, week: Optional[dt.date] = None) -> List[Dict[str, Any]]:
    return conflict_rules.summarize_member_allocations(
        list_resource_allocations(db, week=week),
        db.query(Project).all(),
        state.snapshot()["weekly_capacity_hours"],
    )


def resource_conflicts(db: Session, state: RuntimeState) -> Dict[str, Any]:
    return conflict_rules.detect_resource_conflicts(
        projects=db.query(Project).all(),
        equipment=db.query(Equipment).all(),
        equipment_allocations=db.query(EquipmentAllocation).all(),
        resource_allocations=db.query(ResourceAllocation).all(),
        tasks=db.query(Task).filter(Task.assignee_id.isnot(None)).all(),
        capacity_hours=state.snapshot()["weekly_capacity_hours"],
    )


# Stakeholders


def list_stakeholders(
    db: Session,
    stakeholder_type: Optional[str] = None,
    stakeholder_status: Optional[str] = None,
    lead_status: Optional[str] = None,
    search: Optional[str] = None,
    specialty: Optional[str] = None,
) -> List[Stakeholder]:
    query = db.query(Stakeholder)
    if stakeholder_type:
        query = query.filter(Stakeholder.stakeholder_type == stakeholder_type)
    if stakeholder_status:
        query = query.filter(Stakeholder.status == stakeholder_status)
    if lead_status:
        query = query.filter(Stakeholder.lead_status == lead_status)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            or_(
                Stakeholder.company_name.ilike(pattern),
                Stakeholder.contact_person.ilike(pattern),
                Stakeholder.email.ilike(pattern),
            )
        )
    stakeholders = query.order_by(Stakeholder.company_name.asc(), Stakeholder.id.asc()).all()
    if specialty:
        wanted = normalize_skill_list([specialty])
        stakeholders = [item for item in stakeholders if set(wanted) & set(item.specialties or [])]
    return stakeholders


def get_stakeholder(db: Session, stakeholder_id: int) -> Stakeholder:
    return _get_or_404(db, Stakeholder, stakeholder_id, "Stakeholder")


def create_stakeholder(db: Session, feed: Optional[SubscriptionManager], data: Dict[str, Any]) -> Stakeholder:
    stakeholder = Stakeholder(**{**data, "specialties": normalize_skill_list(data.get("specialties"))})
    if stakeholder.stakeholder_type == "client" and stakeholder.lead_status is None:
        stakeholder.lead_status = "new"
    db.add(stakeholder)
    db.commit()
    db.refresh(stakeholder)
    logger.info("stakeholder_created", stakeholder_id=stakeholder.id, stakeholder_type=stakeholder.stakeholder_type)
    _publish(feed, "stakeholders", "INSERT", stakeholder.id)
    return stakeholder


def update_stakeholder(
    db: Session, feed: Optional[SubscriptionManager], stakeholder_id: int, changes: Dict[str, Any]
) -> Stakeholder:
    stakeholder = get_stakeholder(db, stakeholder_id)
    company = changes.get("company_name", stakeholder.company_name)
    contact = changes.get("contact_person", stakeholder.contact_person)
    if not (company or "").strip() and not (contact or "").strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Either a company name or a contact person is required"
        )
    if "specialties" in changes:
        changes = {**changes, "specialties": normalize_skill_list(changes["specialties"])}
    _apply_changes(stakeholder, changes)
    db.add(stakeholder)
    db.commit()
    db.refresh(stakeholder)
    _publish(feed, "stakeholders", "UPDATE", stakeholder.id)
    return stakeholder


def delete_stakeholder(db: Session, feed: Optional[SubscriptionManager], stakeholder_id: int) -> None:
    stakeholder = get_stakeholder(db, stakeholder_id)
    db.query(Task).filter(Task.assigned_stakeholder_id == stakeholder_id).update(
        {Task.assigned_stakeholder_id: None}, synchronize_session=False
    )
    db.query(TaskStakeholderAssignment).filter(TaskStakeholderAssignment.stakeholder_id == stakeholder_id).delete()
    db.delete(stakeholder)
    db.commit()
    _publish(feed, "stakeholders", "DELETE", stakeholder_id)


def lead_pipeline(db: Session) -> List[Dict[str, Any]]:
    clients = list_stakeholders(db, stakeholder_type="client")
    return crm.build_lead_pipeline(clients)


def update_lead_status(
    db: Session, feed: Optional[SubscriptionManager], stakeholder_id: int, lead_status: str, lead_score: Optional[int]
) -> Stakeholder:
    stakeholder = get_stakeholder(db, stakeholder_id)
    previous = stakeholder.lead_status
    stakeholder.lead_status = lead_status
    if lead_score is not None:
        stakeholder.lead_score = lead_score
    db.add(stakeholder)
    db.commit()
    db.refresh(stakeholder)
    logger.info("lead_status_changed", stakeholder_id=stakeholder.id, previous=previous, current=lead_status)
    _publish(feed, "stakeholders", "UPDATE", stakeholder.id, lead_status=lead_status)
    return stakeholder


def stakeholder_performance(db: Session, stakeholder_id: int) -> Dict[str, Any]:
    stakeholder = get_stakeholder(db, stakeholder_id)
    return crm.stakeholder_performance(stakeholder, stakeholder.assignments, stakeholder.interactions)


# Stakeholder assignments


def _assignment_cost(hours: Optional[float], rate: Optional[float]) -> float:
    return round((hours or 0) * (rate or 0), 2)


def list_stakeholder_assignments(
    db: Session,
    stakeholder_id: Optional[int] = None,
    project_id: Optional[int] = None,
    task_id: Optional[int] = None,
) -> List[StakeholderAssignment]:
    query = db.query(StakeholderAssignment)
    if stakeholder_id is not None:
        query = query.filter(StakeholderAssignment.stakeholder_id == stakeholder_id)
    if project_id is not None:
        query = query.filter(StakeholderAssignment.project_id == project_id)
    if task_id is not None:
        query = query.filter(StakeholderAssignment.task_id == task_id)
    return query.order_by(StakeholderAssignment.start_date.asc(), StakeholderAssignment.id.asc()).all()


def create_stakeholder_assignment(
    db: Session, feed: Optional[SubscriptionManager], data: Dict[str, Any]
) -> StakeholderAssignment:
    get_stakeholder(db, data["stakeholder_id"])
    if data.get("project_id") is not None:
        get_project(db, data["project_id"])
    if data.get("task_id") is not None:
        task = get_task(db, data["task_id"])
        data = {**data, "project_id": data.get("project_id") or task.project_id}
    if data.get("equipment_id") is not None:
        get_equipment(db, data["equipment_id"])
    assignment = StakeholderAssignment(
        **data, total_cost=_assignment_cost(data.get("total_hours"), data.get("hourly_rate"))
    )
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    _publish(feed, "stakeholder_assignments", "INSERT", assignment.id, stakeholder_id=assignment.stakeholder_id)
    return assignment


def update_stakeholder_assignment(
    db: Session, feed: Optional[SubscriptionManager], assignment_id: int, changes: Dict[str, Any]
) -> StakeholderAssignment:
    assignment = _get_or_404(db, StakeholderAssignment, assignment_id, "Assignment")
    start = changes.get("start_date", assignment.start_date)
    end = changes.get("end_date", assignment.end_date)
    if start and end and end < start:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must not be before start date")
    _apply_changes(assignment, changes)
    assignment.total_cost = _assignment_cost(assignment.total_hours, assignment.hourly_rate)
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    _publish(feed, "stakeholder_assignments", "UPDATE", assignment.id, stakeholder_id=assignment.stakeholder_id)
    return assignment


def delete_stakeholder_assignment(db: Session, feed: Optional[SubscriptionManager], assignment_id: int) -> None:
    assignment = _get_or_404(db, StakeholderAssignment, assignment_id, "Assignment")
    db.delete(assignment)
    db.commit()
    _publish(feed, "stakeholder_assignments", "DELETE", assignment_id)


def assign_stakeholder_to_task(
    db: Session, feed: Optional[SubscriptionManager], task_id: int, stakeholder_id: int, role: Optional[str]
) -> TaskStakeholderAssignment:
    get_task(db, task_id)
    get_stakeholder(db, stakeholder_id)
    existing = (
        db.query(TaskStakeholderAssignment)
        .filter(
            TaskStakeholderAssignment.task_id == task_id,
            TaskStakeholderAssignment.stakeholder_id == stakeholder_id,
        )
        .first()
    )
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Stakeholder is already assigned to this task")
    link = TaskStakeholderAssignment(task_id=task_id, stakeholder_id=stakeholder_id, role=role)
    db.add(link)
    db.commit()
    db.refresh(link)
    _publish(feed, "task_stakeholder_assignments", "INSERT", link.id, task_id=task_id)
    return link


def list_task_stakeholders(db: Session, task_id: int) -> List[TaskStakeholderAssignment]:
    task = get_task(db, task_id)
    return list(task.stakeholder_links)


# Interactions


def list_interactions(db: Session, stakeholder_id: int) -> List[ContactInteraction]:
    get_stakeholder(db, stakeholder_id)
    return (
        db.query(ContactInteraction)
        .filter(ContactInteraction.stakeholder_id == stakeholder_id)
        .order_by(ContactInteraction.interaction_date.desc(), ContactInteraction.id.desc())
        .all()
    )


def create_interaction(
    db: Session, feed: Optional[SubscriptionManager], stakeholder_id: int, data: Dict[str, Any]
) -> ContactInteraction:
    stakeholder = get_stakeholder(db, stakeholder_id)
    interaction = ContactInteraction(stakeholder_id=stakeholder_id, **data)
    db.add(interaction)
    crm.apply_contact_dates(stakeholder, interaction.interaction_date)
    db.add(stakeholder)
    db.commit()
    db.refresh(interaction)
    logger.info("interaction_logged", stakeholder_id=stakeholder_id, interaction_type=interaction.interaction_type)
    _publish(feed, "contact_interactions", "INSERT", interaction.id, stakeholder_id=stakeholder_id)
    return interaction


def update_interaction(
    db: Session, feed: Optional[SubscriptionManager], interaction_id: int, changes: Dict[str, Any]
) -> ContactInteraction:
    interaction = _get_or_404(db, ContactInteraction, interaction_id, "Interaction")
    required = changes.get("follow_up_required", interaction.follow_up_required)
    follow_up_date = changes.get("follow_up_date", interaction.follow_up_date)
    if required and follow_up_date is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A follow-up date is required when a follow-up is scheduled",
        )
    _apply_changes(interaction, changes)
    db.add(interaction)
    db.commit()
    db.refresh(interaction)
    _publish(feed, "contact_interactions", "UPDATE", interaction.id, stakeholder_id=interaction.stakeholder_id)
    return interaction


def complete_follow_up(db: Session, feed: Optional[SubscriptionManager], interaction_id: int) -> ContactInteraction:
    return update_interaction(db, feed, interaction_id, {"follow_up_required": False, "follow_up_date": None})


def delete_interaction(db: Session, feed: Optional[SubscriptionManager], interaction_id: int) -> None:
    interaction = _get_or_404(db, ContactInteraction, interaction_id, "Interaction")
    stakeholder_id = interaction.stakeholder_id
    db.delete(interaction)
    db.commit()
    _publish(feed, "contact_interactions", "DELETE", interaction_id, stakeholder_id=stakeholder_id)


def list_follow_ups(db: Session, today: Optional[dt.date] = None, include_overdue: bool = False) -> List[Dict[str, Any]]:
    current = _today(today)
    interactions = (
        db.query(ContactInteraction)
        .filter(ContactInteraction.follow_up_required.is_(True), ContactInteraction.follow_up_date.isnot(None))
        .all()
    )
    return [
        {
            "interaction": interaction,
            "stakeholder_name": _stakeholder_name(interaction.stakeholder),
            "urgency": crm.follow_up_urgency(interaction.follow_up_date, current),
        }
        for interaction in crm.upcoming_follow_ups(interactions, current, include_overdue=include_overdue)
    ]


# Settings


def update_runtime_settings(db: Session, state: RuntimeState, updates: dict) -> dict:
    normalized = {key: value for key, value in updates.items() if value is not None}
    state.apply(normalized)
    state.persist(db, {key: normalized[key] for key in normalized if key in PERSISTED_KEYS})
    logger.info("settings_updated", keys=sorted(normalized))
    return state.snapshot()
