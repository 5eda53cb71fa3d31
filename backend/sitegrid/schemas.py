from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional, Union

from typing_extensions import Literal

from pydantic import BaseModel, ConfigDict, Field, model_serializer, model_validator

from .timeline import as_datetime

ProjectStatus = Literal["planning", "active", "on-hold", "completed", "cancelled"]
TaskStatus = Literal["not-started", "in-progress", "completed", "blocked"]
TaskPriority = Literal["low", "medium", "high", "critical"]
TaskType = Literal["regular", "punch_list"]
DependencyType = Literal["finish-to-start", "start-to-start", "finish-to-finish", "start-to-finish"]
EquipmentStatus = Literal["available", "in-use", "maintenance", "out-of-service"]
OperatorType = Literal["stakeholder", "employee"]
BulkEquipmentAction = Literal["update_status", "release_all", "schedule_maintenance"]
StakeholderType = Literal["subcontractor", "employee", "vendor", "client"]
StakeholderStatus = Literal["active", "inactive", "pending", "suspended"]
LeadStatus = Literal["new", "contacted", "qualified", "proposal_sent", "negotiating", "won", "lost"]
InteractionType = Literal["call", "email", "meeting", "site_visit", "proposal", "follow_up"]
ViewMode = Literal["days", "weeks", "months"]
StakeholderView = Literal["grid", "list", "pipeline"]
Validity = Literal["valid", "warning", "invalid"]


def _serialize_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    else:
        value = value.astimezone(dt.timezone.utc)
    return value.isoformat()


def _check_range(start: Any, end: Any, message: str) -> None:
    if start is None or end is None:
        return
    if isinstance(start, dt.datetime) or isinstance(end, dt.datetime):
        start, end = as_datetime(start), as_datetime(end)
    if end < start:
        raise ValueError(message)


class ProjectCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    status: ProjectStatus = "planning"
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    budget: Optional[float] = Field(default=None, ge=0)
    progress: int = Field(default=0, ge=0, le=100)

    @model_validator(mode="after")
    def _validate_range(self) -> "ProjectCreateRequest":
        _check_range(self.start_date, self.end_date, "End date must not be before start date")
        return self


class ProjectUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[ProjectStatus] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    budget: Optional[float] = Field(default=None, ge=0)
    progress: Optional[int] = Field(default=None, ge=0, le=100)

    @model_validator(mode="after")
    def _validate_range(self) -> "ProjectUpdateRequest":
        _check_range(self.start_date, self.end_date, "End date must not be before start date")
        return self


class ProjectResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    description: Optional[str]
    status: str
    start_date: Optional[dt.date]
    end_date: Optional[dt.date]
    budget: Optional[float]
    progress: int


class ProfileCreateRequest(BaseModel):
    full_name: str = Field(min_length=1)
    email: Optional[str] = None
    role: str = "field_worker"
    skills: List[str] = Field(default_factory=list)


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    full_name: str
    email: Optional[str]
    role: str
    skills: List[str]


class TaskCreateRequest(BaseModel):
    project_id: int
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    status: TaskStatus = "not-started"
    priority: TaskPriority = "medium"
    category: Optional[str] = None
    task_type: TaskType = "regular"
    start_date: Optional[dt.datetime] = None
    due_date: Optional[dt.datetime] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    actual_hours: Optional[float] = Field(default=None, ge=0)
    progress: int = Field(default=0, ge=0, le=100)
    assignee_id: Optional[int] = None
    assigned_stakeholder_id: Optional[int] = None
    required_skills: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _validate_range(self) -> "TaskCreateRequest":
        _check_range(self.start_date, self.due_date, "Due date must not be before start date")
        return self


class TaskUpdateRequest(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    category: Optional[str] = None
    task_type: Optional[TaskType] = None
    start_date: Optional[dt.datetime] = None
    due_date: Optional[dt.datetime] = None
    estimated_hours: Optional[float] = Field(default=None, ge=0)
    actual_hours: Optional[float] = Field(default=None, ge=0)
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    assignee_id: Optional[int] = None
    assigned_stakeholder_id: Optional[int] = None
    required_skills: Optional[List[str]] = None

    @model_validator(mode="after")
    def _validate_range(self) -> "TaskUpdateRequest":
        _check_range(self.start_date, self.due_date, "Due date must not be before start date")
        return self


class TaskResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    project_id: int
    title: str
    description: Optional[str]
    status: str
    priority: str
    category: Optional[str]
    task_type: str
    start_date: Optional[dt.datetime]
    due_date: Optional[dt.datetime]
    estimated_hours: Optional[float]
    actual_hours: Optional[float]
    progress: int
    assignee_id: Optional[int]
    assigned_stakeholder_id: Optional[int]
    required_skills: List[str]


class TaskMoveRequest(BaseModel):
    new_start_date: dt.datetime
    timeline_start: Optional[dt.datetime] = None
    timeline_end: Optional[dt.datetime] = None
    view_mode: ViewMode = "days"
    snap: bool = False
    dry_run: bool = False

    @model_validator(mode="after")
    def _validate_bounds(self) -> "TaskMoveRequest":
        if (self.timeline_start is None) != (self.timeline_end is None):
            raise ValueError("Timeline start and end must be given together")
        return self


class DragValidationResponse(BaseModel):
    is_valid: bool
    validity: Validity
    messages: List[str]


class TaskMoveResponse(BaseModel):
    applied: bool
    new_start_date: dt.datetime
    validation: DragValidationResponse
    task: TaskResponse


class DependencyCreateRequest(BaseModel):
    predecessor_id: int
    successor_id: int
    dependency_type: DependencyType = "finish-to-start"
    lag_days: int = Field(default=0, ge=0)


class DependencyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    predecessor_id: int
    successor_id: int
    dependency_type: str
    lag_days: int


class DependencyValidationResponse(BaseModel):
    is_valid: bool
    conflicts: List[str]
    suggestions: List[str]


class TimelineUnitResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    key: int
    label: str
    is_weekend: bool
    start: dt.datetime


class GanttTaskResponse(BaseModel):
    task: TaskResponse
    calculated_start: dt.datetime
    calculated_end: dt.datetime
    start_column_index: int
    column_span: int
    left: int
    width: int
    is_critical: bool


class DependencyArrowResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    predecessor_id: int
    successor_id: int
    dependency_type: str
    path: str
    is_on_critical_path: bool
    has_conflict: bool


class MilestoneResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    project_id: int
    title: str
    description: str
    due_date: dt.datetime
    status: Literal["pending", "in-progress", "completed", "overdue"]
    linked_task_ids: List[int]


class MilestoneMarkerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    milestone: MilestoneResponse
    x_position: float
    y_position: float


class GanttResponse(BaseModel):
    project_id: int
    view_mode: ViewMode
    timeline_start: dt.datetime
    timeline_end: dt.datetime
    column_width: int
    units: List[TimelineUnitResponse]
    tasks: List[GanttTaskResponse]
    arrows: List[DependencyArrowResponse]
    critical_task_ids: List[int]
    today_position: Optional[float] = None
    milestones: List[MilestoneMarkerResponse] = Field(default_factory=list)


class GanttDebugStats(BaseModel):
    total_tasks: int
    tasks_with_issues: int
    average_column_span: float
    average_start_column: float


class GanttDebugResponse(BaseModel):
    is_valid: bool
    issues: List[str]
    stats: GanttDebugStats
    unit_count: int
    preferences: Dict[str, bool]


class EquipmentCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    type: str = Field(min_length=1)
    status: EquipmentStatus = "available"
    project_id: Optional[int] = None
    operator_type: Optional[OperatorType] = None
    operator_id: Optional[int] = None
    serial_number: Optional[str] = None
    maintenance_due: Optional[dt.date] = None
    last_maintenance_date: Optional[dt.date] = None
    notes: Optional[str] = None


class EquipmentUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    type: Optional[str] = None
    status: Optional[EquipmentStatus] = None
    project_id: Optional[int] = None
    operator_type: Optional[OperatorType] = None
    operator_id: Optional[int] = None
    serial_number: Optional[str] = None
    maintenance_due: Optional[dt.date] = None
    last_maintenance_date: Optional[dt.date] = None
    notes: Optional[str] = None


class EquipmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    type: str
    status: str
    project_id: Optional[int]
    operator_type: Optional[str]
    operator_id: Optional[int]
    serial_number: Optional[str]
    maintenance_due: Optional[dt.date]
    last_maintenance_date: Optional[dt.date]
    notes: Optional[str]


class EquipmentBulkActionRequest(BaseModel):
    equipment_ids: List[int] = Field(min_length=1)
    action: BulkEquipmentAction
    status: Optional[EquipmentStatus] = None

    @model_validator(mode="after")
    def _validate_status(self) -> "EquipmentBulkActionRequest":
        if self.action == "update_status" and self.status is None:
            raise ValueError("A new status is required to update equipment status")
        return self


class EquipmentBulkActionResponse(BaseModel):
    action: BulkEquipmentAction
    updated: int
    equipment: List[EquipmentResponse]


class EquipmentConflictResolutionRequest(BaseModel):
    resolution: Literal["reassign", "alternative", "reschedule"]
    target_project_id: Optional[int] = None
    alternative_equipment_id: Optional[int] = None
    allocation_id: Optional[int] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None

    @model_validator(mode="after")
    def _validate_resolution(self) -> "EquipmentConflictResolutionRequest":
        if self.resolution == "reassign" and self.target_project_id is None:
            raise ValueError("Target project is required to reassign equipment")
        if self.resolution == "alternative" and self.alternative_equipment_id is None:
            raise ValueError("Alternative equipment is required")
        if self.resolution == "reschedule":
            if self.allocation_id is None or self.start_date is None or self.end_date is None:
                raise ValueError("Allocation and new dates are required to reschedule")
            _check_range(self.start_date, self.end_date, "End date must not be before start date")
        return self


class MaintenanceConflictResolutionRequest(BaseModel):
    resolution: Literal["reschedule", "backup"]
    new_maintenance_date: Optional[dt.date] = None
    backup_equipment_id: Optional[int] = None

    @model_validator(mode="after")
    def _validate_resolution(self) -> "MaintenanceConflictResolutionRequest":
        if self.resolution == "reschedule" and self.new_maintenance_date is None:
            raise ValueError("New maintenance date is required")
        if self.resolution == "backup" and self.backup_equipment_id is None:
            raise ValueError("Backup equipment is required")
        return self


class EquipmentAllocationCreateRequest(BaseModel):
    equipment_id: int
    project_id: int
    start_date: dt.date
    end_date: dt.date
    operator_type: Optional[OperatorType] = None
    operator_id: Optional[int] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _validate_range(self) -> "EquipmentAllocationCreateRequest":
        _check_range(self.start_date, self.end_date, "End date must not be before start date")
        return self


class EquipmentAllocationUpdateRequest(BaseModel):
    project_id: Optional[int] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    operator_type: Optional[OperatorType] = None
    operator_id: Optional[int] = None
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _validate_range(self) -> "EquipmentAllocationUpdateRequest":
        _check_range(self.start_date, self.end_date, "End date must not be before start date")
        return self


class EquipmentAllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    equipment_id: int
    project_id: int
    start_date: dt.date
    end_date: dt.date
    operator_type: Optional[str]
    operator_id: Optional[int]
    notes: Optional[str]


class ConflictResolutionResponse(BaseModel):
    resolution: str
    equipment: List[EquipmentResponse]
    allocation: Optional[EquipmentAllocationResponse] = None


class EquipmentConflictCheckRequest(BaseModel):
    equipment_id: int
    start_date: dt.date
    end_date: dt.date
    exclude_allocation_id: Optional[int] = None

    @model_validator(mode="after")
    def _validate_range(self) -> "EquipmentConflictCheckRequest":
        _check_range(self.start_date, self.end_date, "End date must not be before start date")
        return self


class EquipmentConflictCheckResponse(BaseModel):
    has_conflicts: bool
    conflicts: List[EquipmentAllocationResponse]


class TeamMemberPayload(BaseModel):
    user_id: Optional[int] = None
    name: str = Field(min_length=1)
    role: Optional[str] = None
    hours_allocated: float = Field(default=0, ge=0)
    hours_used: float = Field(default=0, ge=0)
    cost_per_hour: float = Field(default=0, ge=0)
    availability: int = Field(default=100, ge=0, le=100)
    skills: List[str] = Field(default_factory=list)


class TeamMemberResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    user_id: Optional[int]
    name: str
    role: Optional[str]
    hours_allocated: float
    hours_used: float
    cost_per_hour: float
    availability: int
    skills: List[str]


class ResourceAllocationCreateRequest(BaseModel):
    project_id: int
    team_name: str = Field(min_length=1)
    week_start_date: dt.date
    total_budget: float = Field(default=0, ge=0)
    total_used: float = Field(default=0, ge=0)
    allocation_type: Literal["weekly", "daily"] = "weekly"
    members: List[TeamMemberPayload] = Field(default_factory=list)


class ResourceAllocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    project_id: int
    team_name: str
    week_start_date: dt.date
    total_budget: float
    total_used: float
    allocation_type: str
    members: List[TeamMemberResponse]


class MemberProjectAllocation(BaseModel):
    project_id: int
    project_name: str
    hours_allocated: float
    hours_used: float
    percentage: float
    status: str


class MemberUtilizationResponse(BaseModel):
    member_id: Union[int, str]
    member_name: str
    week_start: dt.date
    total_hours: float
    total_allocated: float
    utilization_rate: float
    over_allocated: bool
    availability: Optional[int]
    projects: List[MemberProjectAllocation]


class ResourceConflictResponse(BaseModel):
    id: str
    type: Literal["equipment", "personnel", "schedule"]
    severity: Literal["low", "medium", "high", "critical"]
    title: str
    description: str
    affected_projects: List[str]
    suggested_action: str
    due_date: Optional[dt.date] = None


class ResourceConflictSummary(BaseModel):
    conflicts: List[ResourceConflictResponse]
    total: int
    critical: int
    high: int


class StakeholderCreateRequest(BaseModel):
    stakeholder_type: StakeholderType
    company_name: Optional[str] = None
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    specialties: List[str] = Field(default_factory=list)
    license_number: Optional[str] = None
    insurance_expiry: Optional[dt.date] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    status: StakeholderStatus = "active"
    crew_size: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    lead_status: Optional[LeadStatus] = None
    lead_score: Optional[int] = Field(default=None, ge=0, le=100)
    customer_lifetime_value: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _validate_name(self) -> "StakeholderCreateRequest":
        if not (self.company_name or "").strip() and not (self.contact_person or "").strip():
            raise ValueError("Either a company name or a contact person is required")
        return self


class StakeholderUpdateRequest(BaseModel):
    stakeholder_type: Optional[StakeholderType] = None
    company_name: Optional[str] = None
    contact_person: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    street_address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    specialties: Optional[List[str]] = None
    license_number: Optional[str] = None
    insurance_expiry: Optional[dt.date] = None
    rating: Optional[float] = Field(default=None, ge=0, le=5)
    status: Optional[StakeholderStatus] = None
    crew_size: Optional[int] = Field(default=None, ge=0)
    notes: Optional[str] = None
    lead_score: Optional[int] = Field(default=None, ge=0, le=100)
    customer_lifetime_value: Optional[float] = Field(default=None, ge=0)


class StakeholderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    stakeholder_type: str
    company_name: Optional[str]
    contact_person: Optional[str]
    email: Optional[str]
    phone: Optional[str]
    street_address: Optional[str]
    city: Optional[str]
    state: Optional[str]
    zip_code: Optional[str]
    specialties: List[str]
    license_number: Optional[str]
    insurance_expiry: Optional[dt.date]
    rating: Optional[float]
    status: str
    crew_size: Optional[int]
    notes: Optional[str]
    lead_status: Optional[str]
    lead_score: Optional[int]
    customer_lifetime_value: Optional[float]
    first_contact_date: Optional[dt.date]
    last_contact_date: Optional[dt.date]


class LeadStatusUpdateRequest(BaseModel):
    lead_status: LeadStatus
    lead_score: Optional[int] = Field(default=None, ge=0, le=100)


class PipelineStageResponse(BaseModel):
    status: LeadStatus
    label: str
    count: int
    total_value: float
    stakeholders: List[StakeholderResponse]


class StakeholderPerformanceResponse(BaseModel):
    stakeholder_id: int
    rating: Optional[float]
    total_assignments: int
    completed_assignments: int
    active_assignments: int
    completion_rate: float
    project_count: int
    total_hours: float
    total_cost: float
    average_hourly_rate: Optional[float]
    interaction_count: int
    last_contact_date: Optional[dt.date]


class StakeholderAssignmentCreateRequest(BaseModel):
    stakeholder_id: int
    project_id: Optional[int] = None
    task_id: Optional[int] = None
    equipment_id: Optional[int] = None
    role: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)
    status: str = "assigned"
    total_hours: float = Field(default=0, ge=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _validate_range(self) -> "StakeholderAssignmentCreateRequest":
        _check_range(self.start_date, self.end_date, "End date must not be before start date")
        return self


class StakeholderAssignmentUpdateRequest(BaseModel):
    role: Optional[str] = None
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    hourly_rate: Optional[float] = Field(default=None, ge=0)
    status: Optional[str] = None
    total_hours: Optional[float] = Field(default=None, ge=0)
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _validate_range(self) -> "StakeholderAssignmentUpdateRequest":
        _check_range(self.start_date, self.end_date, "End date must not be before start date")
        return self


class StakeholderAssignmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    stakeholder_id: int
    project_id: Optional[int]
    task_id: Optional[int]
    equipment_id: Optional[int]
    role: Optional[str]
    start_date: Optional[dt.date]
    end_date: Optional[dt.date]
    hourly_rate: Optional[float]
    status: str
    total_hours: float
    total_cost: float
    notes: Optional[str]


class TaskStakeholderAssignRequest(BaseModel):
    stakeholder_id: int
    role: Optional[str] = None


class TaskStakeholderResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    task_id: int
    stakeholder_id: int
    role: Optional[str]


class InteractionCreateRequest(BaseModel):
    interaction_type: InteractionType
    interaction_date: dt.date
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    subject: Optional[str] = None
    notes: Optional[str] = None
    outcome: Optional[str] = None
    follow_up_required: bool = False
    follow_up_date: Optional[dt.date] = None

    @model_validator(mode="after")
    def _validate_follow_up(self) -> "InteractionCreateRequest":
        if self.follow_up_required and self.follow_up_date is None:
            raise ValueError("A follow-up date is required when a follow-up is scheduled")
        return self


class InteractionUpdateRequest(BaseModel):
    interaction_type: Optional[InteractionType] = None
    interaction_date: Optional[dt.date] = None
    duration_minutes: Optional[int] = Field(default=None, ge=0)
    subject: Optional[str] = None
    notes: Optional[str] = None
    outcome: Optional[str] = None
    follow_up_required: Optional[bool] = None
    follow_up_date: Optional[dt.date] = None


class InteractionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    stakeholder_id: int
    interaction_type: str
    interaction_date: dt.date
    duration_minutes: Optional[int]
    subject: Optional[str]
    notes: Optional[str]
    outcome: Optional[str]
    follow_up_required: bool
    follow_up_date: Optional[dt.date]


class FollowUpResponse(BaseModel):
    interaction: InteractionResponse
    stakeholder_name: str
    urgency: Literal["overdue", "today", "soon", "upcoming"]


class GanttDebugPreferences(BaseModel):
    show_column_info: bool = True
    show_task_details: bool = True
    show_grid_lines: bool = True
    show_performance_metrics: bool = False
    show_scroll_info: bool = False


class SettingsResponse(BaseModel):
    environment: str
    timezone: str
    storage: str
    gantt_debug_mode: bool
    gantt_debug_preferences: GanttDebugPreferences
    stakeholder_view: StakeholderView
    weekly_capacity_hours: float


class SettingsUpdateRequest(BaseModel):
    gantt_debug_mode: Optional[bool] = None
    gantt_debug_preferences: Optional[Dict[str, bool]] = None
    stakeholder_view: Optional[StakeholderView] = None
    weekly_capacity_hours: Optional[float] = Field(default=None, gt=0, le=168)


class RealtimeEvent(BaseModel):
    seq: int
    table: str
    action: Literal["INSERT", "UPDATE", "DELETE"]
    record_id: Optional[int]
    payload: Dict[str, Any]
    timestamp: int


class RealtimeEventsResponse(BaseModel):
    channel: str
    latest_seq: int
    events: List[RealtimeEvent]


class RealtimeChannelsResponse(BaseModel):
    stats: Dict[str, int]
    channels: Dict[str, Dict[str, Any]]


class ExportRequest(BaseModel):
    format: Literal["pdf", "xlsx"]
    view_mode: ViewMode = "weeks"


class ExportResponse(BaseModel):
    id: int
    project_id: int
    format: str
    view: str
    checksum: str
    created_at: dt.datetime
    path: str

    model_config = ConfigDict(from_attributes=True)

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "format": self.format,
            "view": self.view,
            "checksum": self.checksum,
            "created_at": _serialize_datetime(self.created_at),
            "path": self.path,
        }
