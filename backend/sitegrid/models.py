from __future__ import annotations

import datetime as dt

from sqlalchemy import Boolean, Column, Date, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.sqlite import JSON as SQLiteJSON
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class Project(Base):
    __tablename__ = "projects"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="planning", index=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    budget = Column(Float, nullable=True)
    progress = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    tasks = relationship("Task", back_populates="project", order_by="Task.id")


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(Integer, primary_key=True)
    full_name = Column(String(200), nullable=False)
    email = Column(String(200), nullable=True, unique=True)
    role = Column(String(50), nullable=False, default="field_worker")
    skills = Column(SQLiteJSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Integer, primary_key=True, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default="not-started", index=True)
    priority = Column(String(20), nullable=False, default="medium", index=True)
    category = Column(String(100), nullable=True)
    task_type = Column(String(20), nullable=False, default="regular")
    start_date = Column(DateTime, nullable=True)
    due_date = Column(DateTime, nullable=True)
    estimated_hours = Column(Float, nullable=True)
    actual_hours = Column(Float, nullable=True)
    progress = Column(Integer, nullable=False, default=0)
    assignee_id = Column(Integer, ForeignKey("profiles.id"), nullable=True, index=True)
    assigned_stakeholder_id = Column(Integer, ForeignKey("stakeholders.id"), nullable=True, index=True)
    required_skills = Column(SQLiteJSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    project = relationship("Project", back_populates="tasks")
    stakeholder_links = relationship(
        "TaskStakeholderAssignment", back_populates="task", cascade="all, delete-orphan"
    )


class TaskDependency(Base):
    __tablename__ = "task_dependencies"

    id = Column(Integer, primary_key=True)
    predecessor_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    successor_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    dependency_type = Column(String(20), nullable=False, default="finish-to-start")
    lag_days = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Equipment(Base):
    __tablename__ = "equipment"

    id = Column(Integer, primary_key=True)
    name = Column(String(200), nullable=False)
    type = Column(String(100), nullable=False)
    status = Column(String(20), nullable=False, default="available", index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    operator_type = Column(String(20), nullable=True)
    operator_id = Column(Integer, nullable=True)
    serial_number = Column(String(100), nullable=True)
    maintenance_due = Column(Date, nullable=True, index=True)
    last_maintenance_date = Column(Date, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    allocations = relationship(
        "EquipmentAllocation",
        back_populates="equipment",
        cascade="all, delete-orphan",
        order_by="EquipmentAllocation.start_date",
    )


class EquipmentAllocation(Base):
    __tablename__ = "equipment_allocations"

    id = Column(Integer, primary_key=True)
    equipment_id = Column(Integer, ForeignKey("equipment.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    operator_type = Column(String(20), nullable=True)
    operator_id = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    equipment = relationship("Equipment", back_populates="allocations")


class ResourceAllocation(Base):
    __tablename__ = "resource_allocations"

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False, index=True)
    team_name = Column(String(200), nullable=False)
    week_start_date = Column(Date, nullable=False, index=True)
    total_budget = Column(Float, nullable=False, default=0)
    total_used = Column(Float, nullable=False, default=0)
    allocation_type = Column(String(20), nullable=False, default="weekly")
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    members = relationship(
        "TeamMember",
        back_populates="allocation",
        cascade="all, delete-orphan",
        order_by="TeamMember.id",
    )


class TeamMember(Base):
    __tablename__ = "team_members"

    id = Column(Integer, primary_key=True)
    allocation_id = Column(Integer, ForeignKey("resource_allocations.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("profiles.id"), nullable=True, index=True)
    name = Column(String(200), nullable=False)
    role = Column(String(100), nullable=True)
    hours_allocated = Column(Float, nullable=False, default=0)
    hours_used = Column(Float, nullable=False, default=0)
    cost_per_hour = Column(Float, nullable=False, default=0)
    availability = Column(Integer, nullable=False, default=100)
    skills = Column(SQLiteJSON, nullable=False, default=list)

    allocation = relationship("ResourceAllocation", back_populates="members")


class Stakeholder(Base):
    __tablename__ = "stakeholders"

    id = Column(Integer, primary_key=True)
    stakeholder_type = Column(String(20), nullable=False, index=True)
    company_name = Column(String(200), nullable=True)
    contact_person = Column(String(200), nullable=True)
    email = Column(String(200), nullable=True)
    phone = Column(String(50), nullable=True)
    street_address = Column(String(200), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    zip_code = Column(String(20), nullable=True)
    specialties = Column(SQLiteJSON, nullable=False, default=list)
    license_number = Column(String(100), nullable=True)
    insurance_expiry = Column(Date, nullable=True)
    rating = Column(Float, nullable=True)
    status = Column(String(20), nullable=False, default="active", index=True)
    crew_size = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
    lead_status = Column(String(20), nullable=True, index=True)
    lead_score = Column(Integer, nullable=True)
    customer_lifetime_value = Column(Float, nullable=True)
    first_contact_date = Column(Date, nullable=True)
    last_contact_date = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    interactions = relationship(
        "ContactInteraction",
        back_populates="stakeholder",
        cascade="all, delete-orphan",
        order_by="ContactInteraction.interaction_date.desc()",
    )
    assignments = relationship(
        "StakeholderAssignment", back_populates="stakeholder", cascade="all, delete-orphan"
    )


class StakeholderAssignment(Base):
    __tablename__ = "stakeholder_assignments"

    id = Column(Integer, primary_key=True)
    stakeholder_id = Column(Integer, ForeignKey("stakeholders.id"), nullable=False, index=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=True, index=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=True, index=True)
    equipment_id = Column(Integer, ForeignKey("equipment.id"), nullable=True)
    role = Column(String(100), nullable=True)
    start_date = Column(Date, nullable=True)
    end_date = Column(Date, nullable=True)
    hourly_rate = Column(Float, nullable=True)
    status = Column(String(20), nullable=False, default="assigned", index=True)
    total_hours = Column(Float, nullable=False, default=0)
    total_cost = Column(Float, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    stakeholder = relationship("Stakeholder", back_populates="assignments")


class TaskStakeholderAssignment(Base):
    __tablename__ = "task_stakeholder_assignments"

    id = Column(Integer, primary_key=True)
    task_id = Column(Integer, ForeignKey("tasks.id"), nullable=False, index=True)
    stakeholder_id = Column(Integer, ForeignKey("stakeholders.id"), nullable=False, index=True)
    role = Column(String(100), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    task = relationship("Task", back_populates="stakeholder_links")
    stakeholder = relationship("Stakeholder")


class ContactInteraction(Base):
    __tablename__ = "contact_interactions"

    id = Column(Integer, primary_key=True)
    stakeholder_id = Column(Integer, ForeignKey("stakeholders.id"), nullable=False, index=True)
    interaction_type = Column(String(20), nullable=False)
    interaction_date = Column(Date, nullable=False, index=True)
    duration_minutes = Column(Integer, nullable=True)
    subject = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)
    outcome = Column(String(200), nullable=True)
    follow_up_required = Column(Boolean, nullable=False, default=False)
    follow_up_date = Column(Date, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    stakeholder = relationship("Stakeholder", back_populates="interactions")


class ExportRecord(Base):
    __tablename__ = "exports"

    id = Column(Integer, primary_key=True)
    project_id = Column(Integer, ForeignKey("projects.id"), nullable=False)
    format = Column(String(10), nullable=False)
    view = Column(String(50), nullable=False, default="gantt")
    path = Column(String(255), nullable=False)
    checksum = Column(String(128), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class AppSetting(Base):
    __tablename__ = "app_settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
