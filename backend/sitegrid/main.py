from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import List, Optional

import structlog
from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from . import models
from .config import settings
from .database import db_session, engine, get_db
from .errors import register_exception_handlers
from .exports import MEDIA_TYPES, export_project_plan, resolve_export_file
from .log_config import configure_logging
from .middleware import RequestLoggingMiddleware
from .realtime import CHANNEL_TABLES, SubscriptionManager
from .schemas import (
    DependencyCreateRequest,
    DependencyResponse,
    ConflictResolutionResponse,
    DependencyValidationResponse,
    EquipmentAllocationCreateRequest,
    EquipmentAllocationResponse,
    EquipmentAllocationUpdateRequest,
    EquipmentBulkActionRequest,
    EquipmentBulkActionResponse,
    EquipmentConflictCheckRequest,
    EquipmentConflictCheckResponse,
    EquipmentConflictResolutionRequest,
    EquipmentCreateRequest,
    EquipmentResponse,
    EquipmentUpdateRequest,
    ExportRequest,
    ExportResponse,
    FollowUpResponse,
    GanttDebugResponse,
    GanttResponse,
    InteractionCreateRequest,
    InteractionResponse,
    InteractionUpdateRequest,
    LeadStatusUpdateRequest,
    MaintenanceConflictResolutionRequest,
    MemberUtilizationResponse,
    MilestoneResponse,
    PipelineStageResponse,
    ProfileCreateRequest,
    ProfileResponse,
    ProjectCreateRequest,
    ProjectResponse,
    ProjectUpdateRequest,
    RealtimeChannelsResponse,
    RealtimeEventsResponse,
    ResourceAllocationCreateRequest,
    ResourceAllocationResponse,
    ResourceConflictSummary,
    SettingsResponse,
    SettingsUpdateRequest,
    StakeholderAssignmentCreateRequest,
    StakeholderAssignmentResponse,
    StakeholderAssignmentUpdateRequest,
    StakeholderCreateRequest,
    StakeholderPerformanceResponse,
    StakeholderResponse,
    StakeholderUpdateRequest,
    TaskCreateRequest,
    TaskMoveRequest,
    TaskMoveResponse,
    TaskResponse,
    TaskStakeholderAssignRequest,
    TaskStakeholderResponse,
    TaskUpdateRequest,
    ViewMode,
)
from .services import (
    assign_stakeholder_to_task,
    build_gantt,
    bulk_equipment_action,
    check_dependency,
    complete_follow_up,
    create_dependency,
    create_equipment,
    create_equipment_allocation,
    create_interaction,
    create_profile,
    create_project,
    create_resource_allocation,
    create_stakeholder,
    create_stakeholder_assignment,
    create_task,
    delete_dependency,
    delete_equipment,
    delete_equipment_allocation,
    delete_interaction,
    delete_project,
    delete_resource_allocation,
    delete_stakeholder,
    delete_stakeholder_assignment,
    equipment_maintenance_due,
    find_allocation_conflicts,
    gantt_debug_report,
    get_equipment,
    get_project,
    get_stakeholder,
    get_task,
    lead_pipeline,
    list_equipment,
    list_equipment_allocations,
    list_follow_ups,
    list_interactions,
    list_profiles,
    list_projects,
    list_resource_allocations,
    list_stakeholder_assignments,
    list_stakeholders,
    list_task_stakeholders,
    list_tasks,
    member_utilization,
    move_task,
    project_dependencies,
    project_milestones,
    resolve_equipment_conflict,
    resolve_maintenance_conflict,
    resource_conflicts,
    stakeholder_performance,
    update_equipment,
    update_equipment_allocation,
    update_interaction,
    update_lead_status,
    update_project,
    update_runtime_settings,
    update_stakeholder,
    update_stakeholder_assignment,
    update_task,
)
from .state import RuntimeState

configure_logging()
logger = structlog.get_logger()

models.Base.metadata.create_all(bind=engine)

runtime_state = RuntimeState(settings)
with db_session() as session:
    try:
        runtime_state.load_from_db(session)
    except Exception as exc:
        logger.warning("settings_load_failed", error=str(exc))

app = FastAPI(title=settings.app_name)
app.state.runtime_state = runtime_state
app.state.realtime = SubscriptionManager(buffer_size=settings.realtime_buffer_size)
register_exception_handlers(app)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _settings_response(snapshot: dict) -> SettingsResponse:
    return SettingsResponse(
        environment=settings.environment,
        timezone=settings.timezone,
        storage=settings.storage_backend,
        gantt_debug_mode=snapshot["gantt_debug_mode"],
        gantt_debug_preferences=snapshot["gantt_debug_preferences"],
        stakeholder_view=snapshot["stakeholder_view"],
        weekly_capacity_hours=snapshot["weekly_capacity_hours"],
    )


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


# Projects


@app.get("/projects", response_model=list[ProjectResponse])
def projects_index(
    project_status: Optional[str] = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
) -> list[ProjectResponse]:
    return list_projects(db, project_status)


@app.post("/projects", response_model=ProjectResponse, status_code=status.HTTP_201_CREATED)
def projects_create(payload: ProjectCreateRequest, request: Request, db: Session = Depends(get_db)) -> ProjectResponse:
    return create_project(db, request.app.state.realtime, payload.model_dump())


@app.get("/projects/{project_id}", response_model=ProjectResponse)
def projects_show(project_id: int, db: Session = Depends(get_db)) -> ProjectResponse:
    return get_project(db, project_id)


@app.patch("/projects/{project_id}", response_model=ProjectResponse)
def projects_update(
    project_id: int, payload: ProjectUpdateRequest, request: Request, db: Session = Depends(get_db)
) -> ProjectResponse:
    return update_project(db, request.app.state.realtime, project_id, payload.model_dump(exclude_unset=True))


@app.delete("/projects/{project_id}", status_code=status.HTTP_204_NO_CONTENT)
def projects_delete(project_id: int, request: Request, db: Session = Depends(get_db)) -> Response:
    delete_project(db, request.app.state.realtime, project_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/projects/{project_id}/tasks", response_model=list[TaskResponse])
def projects_tasks(
    project_id: int,
    search: Optional[str] = None,
    statuses: Optional[List[str]] = Query(default=None, alias="status"),
    priorities: Optional[List[str]] = Query(default=None, alias="priority"),
    categories: Optional[List[str]] = Query(default=None, alias="category"),
    db: Session = Depends(get_db),
) -> list[TaskResponse]:
    return list_tasks(db, project_id, search, statuses, priorities, categories)


# Gantt


@app.get("/projects/{project_id}/gantt", response_model=GanttResponse)
def projects_gantt(
    project_id: int,
    view_mode: ViewMode = "days",
    timeline_start: Optional[dt.datetime] = None,
    timeline_end: Optional[dt.datetime] = None,
    db: Session = Depends(get_db),
) -> GanttResponse:
    return build_gantt(db, project_id, view_mode, timeline_start, timeline_end)


@app.get("/projects/{project_id}/milestones", response_model=list[MilestoneResponse])
def projects_milestones(project_id: int, db: Session = Depends(get_db)) -> list[MilestoneResponse]:
    return project_milestones(db, project_id)


@app.get("/projects/{project_id}/gantt/debug", response_model=GanttDebugResponse)
def projects_gantt_debug(
    project_id: int,
    request: Request,
    view_mode: ViewMode = "days",
    timeline_start: Optional[dt.datetime] = None,
    timeline_end: Optional[dt.datetime] = None,
    db: Session = Depends(get_db),
) -> GanttDebugResponse:
    state: RuntimeState = request.app.state.runtime_state
    return gantt_debug_report(db, state, project_id, view_mode, timeline_start, timeline_end)


# Tasks


@app.post("/tasks", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
def tasks_create(payload: TaskCreateRequest, request: Request, db: Session = Depends(get_db)) -> TaskResponse:
    return create_task(db, request.app.state.realtime, payload.model_dump())


@app.get("/tasks/{task_id}", response_model=TaskResponse)
def tasks_show(task_id: int, db: Session = Depends(get_db)) -> TaskResponse:
    return get_task(db, task_id)


@app.patch("/tasks/{task_id}", response_model=TaskResponse)
def tasks_update(task_id: int, payload: TaskUpdateRequest, request: Request, db: Session = Depends(get_db)) -> TaskResponse:
    return update_task(db, request.app.state.realtime, task_id, payload.model_dump(exclude_unset=True))


@app.post("/tasks/{task_id}/move", response_model=TaskMoveResponse)
def tasks_move(task_id: int, payload: TaskMoveRequest, request: Request, db: Session = Depends(get_db)) -> TaskMoveResponse:
    return move_task(
        db,
        request.app.state.realtime,
        task_id,
        payload.new_start_date,
        payload.timeline_start,
        payload.timeline_end,
        payload.view_mode,
        snap=payload.snap,
        dry_run=payload.dry_run,
    )


@app.get("/tasks/{task_id}/stakeholders", response_model=list[TaskStakeholderResponse])
def tasks_stakeholders(task_id: int, db: Session = Depends(get_db)) -> list[TaskStakeholderResponse]:
    return list_task_stakeholders(db, task_id)


@app.post(
    "/tasks/{task_id}/stakeholders",
    response_model=TaskStakeholderResponse,
    status_code=status.HTTP_201_CREATED,
)
def tasks_assign_stakeholder(
    task_id: int, payload: TaskStakeholderAssignRequest, request: Request, db: Session = Depends(get_db)
) -> TaskStakeholderResponse:
    return assign_stakeholder_to_task(db, request.app.state.realtime, task_id, payload.stakeholder_id, payload.role)


# Dependencies


@app.get("/projects/{project_id}/dependencies", response_model=list[DependencyResponse])
def dependencies_index(project_id: int, db: Session = Depends(get_db)) -> list[DependencyResponse]:
    get_project(db, project_id)
    return project_dependencies(db, project_id)


@app.post(
    "/projects/{project_id}/dependencies",
    response_model=DependencyResponse,
    status_code=status.HTTP_201_CREATED,
)
def dependencies_create(
    project_id: int, payload: DependencyCreateRequest, request: Request, db: Session = Depends(get_db)
) -> DependencyResponse:
    get_project(db, project_id)
    return create_dependency(db, request.app.state.realtime, payload.model_dump(), project_id=project_id)


@app.post("/dependencies/validate", response_model=DependencyValidationResponse)
def dependencies_validate(payload: DependencyCreateRequest, db: Session = Depends(get_db)) -> DependencyValidationResponse:
    result = check_dependency(db, payload.model_dump())
    return DependencyValidationResponse(
        is_valid=result.is_valid, conflicts=result.conflicts, suggestions=result.suggestions
    )


@app.delete("/dependencies/{dependency_id}", status_code=status.HTTP_204_NO_CONTENT)
def dependencies_delete(dependency_id: int, request: Request, db: Session = Depends(get_db)) -> Response:
    delete_dependency(db, request.app.state.realtime, dependency_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Equipment


@app.get("/equipment", response_model=list[EquipmentResponse])
def equipment_index(
    equipment_status: Optional[str] = Query(default=None, alias="status"),
    project_id: Optional[int] = None,
    equipment_type: Optional[str] = Query(default=None, alias="type"),
    db: Session = Depends(get_db),
) -> list[EquipmentResponse]:
    return list_equipment(db, equipment_status, project_id, equipment_type)


@app.get("/equipment/maintenance-due", response_model=list[EquipmentResponse])
def equipment_maintenance(
    within_days: Optional[int] = Query(default=None, ge=0), db: Session = Depends(get_db)
) -> list[EquipmentResponse]:
    return equipment_maintenance_due(db, window_days=within_days)


@app.post("/equipment/bulk", response_model=EquipmentBulkActionResponse)
def equipment_bulk(
    payload: EquipmentBulkActionRequest, request: Request, db: Session = Depends(get_db)
) -> EquipmentBulkActionResponse:
    return bulk_equipment_action(
        db, request.app.state.realtime, payload.equipment_ids, payload.action, new_status=payload.status
    )


@app.post("/equipment", response_model=EquipmentResponse, status_code=status.HTTP_201_CREATED)
def equipment_create(payload: EquipmentCreateRequest, request: Request, db: Session = Depends(get_db)) -> EquipmentResponse:
    return create_equipment(db, request.app.state.realtime, payload.model_dump())


@app.get("/equipment/{equipment_id}", response_model=EquipmentResponse)
def equipment_show(equipment_id: int, db: Session = Depends(get_db)) -> EquipmentResponse:
    return get_equipment(db, equipment_id)


@app.patch("/equipment/{equipment_id}", response_model=EquipmentResponse)
def equipment_update(
    equipment_id: int, payload: EquipmentUpdateRequest, request: Request, db: Session = Depends(get_db)
) -> EquipmentResponse:
    return update_equipment(db, request.app.state.realtime, equipment_id, payload.model_dump(exclude_unset=True))


@app.delete("/equipment/{equipment_id}", status_code=status.HTTP_204_NO_CONTENT)
def equipment_delete(equipment_id: int, request: Request, db: Session = Depends(get_db)) -> Response:
    delete_equipment(db, request.app.state.realtime, equipment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/equipment/{equipment_id}/allocations", response_model=list[EquipmentAllocationResponse])
def equipment_allocations(equipment_id: int, db: Session = Depends(get_db)) -> list[EquipmentAllocationResponse]:
    return list_equipment_allocations(db, equipment_id)


@app.post("/equipment/{equipment_id}/resolve-conflict", response_model=ConflictResolutionResponse)
def equipment_resolve_conflict(
    equipment_id: int, payload: EquipmentConflictResolutionRequest, request: Request, db: Session = Depends(get_db)
) -> ConflictResolutionResponse:
    return resolve_equipment_conflict(db, request.app.state.realtime, equipment_id, payload.model_dump())


@app.post("/equipment/{equipment_id}/resolve-maintenance", response_model=ConflictResolutionResponse)
def equipment_resolve_maintenance(
    equipment_id: int, payload: MaintenanceConflictResolutionRequest, request: Request, db: Session = Depends(get_db)
) -> ConflictResolutionResponse:
    return resolve_maintenance_conflict(db, request.app.state.realtime, equipment_id, payload.model_dump())


@app.post("/equipment-allocations/check", response_model=EquipmentConflictCheckResponse)
def equipment_allocations_check(
    payload: EquipmentConflictCheckRequest, db: Session = Depends(get_db)
) -> EquipmentConflictCheckResponse:
    get_equipment(db, payload.equipment_id)
    found = find_allocation_conflicts(
        db, payload.equipment_id, payload.start_date, payload.end_date, payload.exclude_allocation_id
    )
    return EquipmentConflictCheckResponse(
        has_conflicts=bool(found),
        conflicts=[EquipmentAllocationResponse.model_validate(item) for item in found],
    )


@app.post(
    "/equipment-allocations",
    response_model=EquipmentAllocationResponse,
    status_code=status.HTTP_201_CREATED,
)
def equipment_allocations_create(
    payload: EquipmentAllocationCreateRequest, request: Request, db: Session = Depends(get_db)
) -> EquipmentAllocationResponse:
    return create_equipment_allocation(db, request.app.state.realtime, payload.model_dump())


@app.patch("/equipment-allocations/{allocation_id}", response_model=EquipmentAllocationResponse)
def equipment_allocations_update(
    allocation_id: int,
    payload: EquipmentAllocationUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> EquipmentAllocationResponse:
    return update_equipment_allocation(
        db, request.app.state.realtime, allocation_id, payload.model_dump(exclude_unset=True)
    )


@app.delete("/equipment-allocations/{allocation_id}", status_code=status.HTTP_204_NO_CONTENT)
def equipment_allocations_delete(allocation_id: int, request: Request, db: Session = Depends(get_db)) -> Response:
    delete_equipment_allocation(db, request.app.state.realtime, allocation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Resources


@app.get("/resource-allocations", response_model=list[ResourceAllocationResponse])
def resource_allocations_index(
    project_id: Optional[int] = None,
    week: Optional[dt.date] = None,
    db: Session = Depends(get_db),
) -> list[ResourceAllocationResponse]:
    return list_resource_allocations(db, project_id, week)


@app.post(
    "/resource-allocations",
    response_model=ResourceAllocationResponse,
    status_code=status.HTTP_201_CREATED,
)
def resource_allocations_create(
    payload: ResourceAllocationCreateRequest, request: Request, db: Session = Depends(get_db)
) -> ResourceAllocationResponse:
    return create_resource_allocation(db, request.app.state.realtime, payload.model_dump())


@app.delete("/resource-allocations/{allocation_id}", status_code=status.HTTP_204_NO_CONTENT)
def resource_allocations_delete(allocation_id: int, request: Request, db: Session = Depends(get_db)) -> Response:
    delete_resource_allocation(db, request.app.state.realtime, allocation_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/resources/utilization", response_model=list[MemberUtilizationResponse])
def resources_utilization(
    request: Request, week: Optional[dt.date] = None, db: Session = Depends(get_db)
) -> list[MemberUtilizationResponse]:
    state: RuntimeState = request.app.state.runtime_state
    return member_utilization(db, state, week)


@app.get("/resources/conflicts", response_model=ResourceConflictSummary)
def resources_conflicts(request: Request, db: Session = Depends(get_db)) -> ResourceConflictSummary:
    state: RuntimeState = request.app.state.runtime_state
    return resource_conflicts(db, state)


# Stakeholders


@app.get("/stakeholders", response_model=list[StakeholderResponse])
def stakeholders_index(
    stakeholder_type: Optional[str] = Query(default=None, alias="type"),
    stakeholder_status: Optional[str] = Query(default=None, alias="status"),
    lead_status: Optional[str] = None,
    search: Optional[str] = None,
    specialty: Optional[str] = None,
    db: Session = Depends(get_db),
) -> list[StakeholderResponse]:
    return list_stakeholders(db, stakeholder_type, stakeholder_status, lead_status, search, specialty)


@app.get("/stakeholders/pipeline", response_model=list[PipelineStageResponse])
def stakeholders_pipeline(db: Session = Depends(get_db)) -> list[PipelineStageResponse]:
    return lead_pipeline(db)


@app.post("/stakeholders", response_model=StakeholderResponse, status_code=status.HTTP_201_CREATED)
def stakeholders_create(
    payload: StakeholderCreateRequest, request: Request, db: Session = Depends(get_db)
) -> StakeholderResponse:
    return create_stakeholder(db, request.app.state.realtime, payload.model_dump())


@app.get("/stakeholders/{stakeholder_id}", response_model=StakeholderResponse)
def stakeholders_show(stakeholder_id: int, db: Session = Depends(get_db)) -> StakeholderResponse:
    return get_stakeholder(db, stakeholder_id)


@app.patch("/stakeholders/{stakeholder_id}", response_model=StakeholderResponse)
def stakeholders_update(
    stakeholder_id: int, payload: StakeholderUpdateRequest, request: Request, db: Session = Depends(get_db)
) -> StakeholderResponse:
    return update_stakeholder(db, request.app.state.realtime, stakeholder_id, payload.model_dump(exclude_unset=True))


@app.delete("/stakeholders/{stakeholder_id}", status_code=status.HTTP_204_NO_CONTENT)
def stakeholders_delete(stakeholder_id: int, request: Request, db: Session = Depends(get_db)) -> Response:
    delete_stakeholder(db, request.app.state.realtime, stakeholder_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.put("/stakeholders/{stakeholder_id}/lead-status", response_model=StakeholderResponse)
def stakeholders_lead_status(
    stakeholder_id: int, payload: LeadStatusUpdateRequest, request: Request, db: Session = Depends(get_db)
) -> StakeholderResponse:
    return update_lead_status(db, request.app.state.realtime, stakeholder_id, payload.lead_status, payload.lead_score)


@app.get("/stakeholders/{stakeholder_id}/performance", response_model=StakeholderPerformanceResponse)
def stakeholders_performance(stakeholder_id: int, db: Session = Depends(get_db)) -> StakeholderPerformanceResponse:
    return stakeholder_performance(db, stakeholder_id)


@app.get("/stakeholders/{stakeholder_id}/interactions", response_model=list[InteractionResponse])
def stakeholders_interactions(stakeholder_id: int, db: Session = Depends(get_db)) -> list[InteractionResponse]:
    return list_interactions(db, stakeholder_id)


@app.post(
    "/stakeholders/{stakeholder_id}/interactions",
    response_model=InteractionResponse,
    status_code=status.HTTP_201_CREATED,
)
def stakeholders_log_interaction(
    stakeholder_id: int, payload: InteractionCreateRequest, request: Request, db: Session = Depends(get_db)
) -> InteractionResponse:
    return create_interaction(db, request.app.state.realtime, stakeholder_id, payload.model_dump())


@app.get("/stakeholder-assignments", response_model=list[StakeholderAssignmentResponse])
def stakeholder_assignments_index(
    stakeholder_id: Optional[int] = None,
    project_id: Optional[int] = None,
    task_id: Optional[int] = None,
    db: Session = Depends(get_db),
) -> list[StakeholderAssignmentResponse]:
    return list_stakeholder_assignments(db, stakeholder_id, project_id, task_id)


@app.post(
    "/stakeholder-assignments",
    response_model=StakeholderAssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
def stakeholder_assignments_create(
    payload: StakeholderAssignmentCreateRequest, request: Request, db: Session = Depends(get_db)
) -> StakeholderAssignmentResponse:
    return create_stakeholder_assignment(db, request.app.state.realtime, payload.model_dump())


@app.patch("/stakeholder-assignments/{assignment_id}", response_model=StakeholderAssignmentResponse)
def stakeholder_assignments_update(
    assignment_id: int,
    payload: StakeholderAssignmentUpdateRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> StakeholderAssignmentResponse:
    return update_stakeholder_assignment(
        db, request.app.state.realtime, assignment_id, payload.model_dump(exclude_unset=True)
    )


@app.delete("/stakeholder-assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
def stakeholder_assignments_delete(assignment_id: int, request: Request, db: Session = Depends(get_db)) -> Response:
    delete_stakeholder_assignment(db, request.app.state.realtime, assignment_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Interactions


@app.get("/interactions/follow-ups", response_model=list[FollowUpResponse])
def interactions_follow_ups(include_overdue: bool = False, db: Session = Depends(get_db)) -> list[FollowUpResponse]:
    return list_follow_ups(db, include_overdue=include_overdue)


@app.patch("/interactions/{interaction_id}", response_model=InteractionResponse)
def interactions_update(
    interaction_id: int, payload: InteractionUpdateRequest, request: Request, db: Session = Depends(get_db)
) -> InteractionResponse:
    return update_interaction(db, request.app.state.realtime, interaction_id, payload.model_dump(exclude_unset=True))


@app.post("/interactions/{interaction_id}/complete-follow-up", response_model=InteractionResponse)
def interactions_complete_follow_up(
    interaction_id: int, request: Request, db: Session = Depends(get_db)
) -> InteractionResponse:
    return complete_follow_up(db, request.app.state.realtime, interaction_id)


@app.delete("/interactions/{interaction_id}", status_code=status.HTTP_204_NO_CONTENT)
def interactions_delete(interaction_id: int, request: Request, db: Session = Depends(get_db)) -> Response:
    delete_interaction(db, request.app.state.realtime, interaction_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Profiles


@app.get("/profiles", response_model=list[ProfileResponse])
def profiles_index(db: Session = Depends(get_db)) -> list[ProfileResponse]:
    return list_profiles(db)


@app.post("/profiles", response_model=ProfileResponse, status_code=status.HTTP_201_CREATED)
def profiles_create(payload: ProfileCreateRequest, request: Request, db: Session = Depends(get_db)) -> ProfileResponse:
    return create_profile(db, request.app.state.realtime, payload.model_dump())


# Settings


@app.get("/settings", response_model=SettingsResponse)
def read_settings(request: Request) -> SettingsResponse:
    state: RuntimeState = request.app.state.runtime_state
    return _settings_response(state.snapshot())


@app.put("/settings", response_model=SettingsResponse)
def write_settings(payload: SettingsUpdateRequest, request: Request, db: Session = Depends(get_db)) -> SettingsResponse:
    state: RuntimeState = request.app.state.runtime_state
    updates = payload.model_dump(exclude_unset=True)
    snapshot = update_runtime_settings(db, state, updates)
    return _settings_response(snapshot)


# Realtime


@app.get("/realtime/channels", response_model=RealtimeChannelsResponse)
def realtime_channels(request: Request) -> RealtimeChannelsResponse:
    feed: SubscriptionManager = request.app.state.realtime
    return RealtimeChannelsResponse(stats=feed.get_stats(), channels=feed.get_subscription_info())


@app.get("/realtime/{channel}/events", response_model=RealtimeEventsResponse)
def realtime_events(channel: str, request: Request, since: int = Query(default=0, ge=0)) -> RealtimeEventsResponse:
    if channel not in CHANNEL_TABLES:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown channel")
    feed: SubscriptionManager = request.app.state.realtime
    return feed.events_since(channel, since)


# Exports


@app.post(
    "/projects/{project_id}/exports",
    response_model=ExportResponse,
    status_code=status.HTTP_201_CREATED,
)
def projects_export(project_id: int, payload: ExportRequest, db: Session = Depends(get_db)) -> ExportResponse:
    return export_project_plan(db, project_id, payload.format, payload.view_mode)


@app.get("/exports/{export_id}")
def download_export(export_id: int, db: Session = Depends(get_db)) -> Response:
    export = resolve_export_file(db, export_id)
    path = Path(export.path)
    return FileResponse(path, media_type=MEDIA_TYPES[export.format], filename=path.name)
