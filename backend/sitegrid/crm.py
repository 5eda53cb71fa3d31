"""Stakeholder CRM rules: lead pipeline, contact dates, follow-ups and performance."""

from __future__ import annotations

import datetime as dt
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .timeline import read_field

LEAD_STAGES: List[Tuple[str, str]] = [
    ("new", "New Leads"),
    ("contacted", "Contacted"),
    ("qualified", "Qualified"),
    ("proposal_sent", "Proposal Sent"),
    ("negotiating", "Negotiating"),
    ("won", "Won"),
    ("lost", "Lost"),
]
LEAD_STATUSES = [status for status, _ in LEAD_STAGES]

INTERACTION_TYPES = ("call", "email", "meeting", "site_visit", "proposal", "follow_up")

COMPLETED_ASSIGNMENT_STATUSES = {"completed"}
ACTIVE_ASSIGNMENT_STATUSES = {"assigned", "active", "in-progress"}


def build_lead_pipeline(stakeholders: Iterable[Any]) -> List[Dict[str, Any]]:
    """Group stakeholders into the fixed lead stages; a missing status counts as ``new``."""
    stages: Dict[str, Dict[str, Any]] = {
        status: {"status": status, "label": label, "count": 0, "total_value": 0.0, "stakeholders": []}
        for status, label in LEAD_STAGES
    }
    for stakeholder in stakeholders:
        status = read_field(stakeholder, "lead_status") or "new"
        stage = stages.get(status)
        if stage is None:
            continue
        stage["count"] += 1
        stage["total_value"] += float(read_field(stakeholder, "customer_lifetime_value") or 0)
        stage["stakeholders"].append(stakeholder)
    return [stages[status] for status in LEAD_STATUSES]


def apply_contact_dates(stakeholder: Any, interaction_date: dt.date) -> None:
    """Record an interaction on the stakeholder; contact dates only ever widen."""
    if stakeholder.first_contact_date is None or interaction_date < stakeholder.first_contact_date:
        stakeholder.first_contact_date = interaction_date
    if stakeholder.last_contact_date is None or interaction_date > stakeholder.last_contact_date:
        stakeholder.last_contact_date = interaction_date


def follow_up_urgency(follow_up_date: dt.date, today: dt.date) -> str:
    days = (follow_up_date - today).days
    if days < 0:
        return "overdue"
    if days == 0:
        return "today"
    if days <= 3:
        return "soon"
    return "upcoming"


def upcoming_follow_ups(interactions: Iterable[Any], today: dt.date, include_overdue: bool = False) -> List[Any]:
    pending = [
        interaction
        for interaction in interactions
        if read_field(interaction, "follow_up_required")
        and read_field(interaction, "follow_up_date") is not None
        and (include_overdue or read_field(interaction, "follow_up_date") >= today)
    ]
    return sorted(pending, key=lambda interaction: read_field(interaction, "follow_up_date"))


def stakeholder_performance(
    stakeholder: Any, assignments: Iterable[Any], interactions: Optional[Iterable[Any]] = None
) -> Dict[str, Any]:
    assignments = list(assignments)
    interactions = list(interactions or [])
    completed = sum(1 for item in assignments if read_field(item, "status") in COMPLETED_ASSIGNMENT_STATUSES)
    active = sum(1 for item in assignments if read_field(item, "status") in ACTIVE_ASSIGNMENT_STATUSES)
    total_hours = sum(float(read_field(item, "total_hours") or 0) for item in assignments)
    total_cost = sum(float(read_field(item, "total_cost") or 0) for item in assignments)
    rates = [float(read_field(item, "hourly_rate")) for item in assignments if read_field(item, "hourly_rate")]
    projects = {read_field(item, "project_id") for item in assignments if read_field(item, "project_id") is not None}
    return {
        "stakeholder_id": read_field(stakeholder, "id"),
        "rating": read_field(stakeholder, "rating"),
        "total_assignments": len(assignments),
        "completed_assignments": completed,
        "active_assignments": active,
        "completion_rate": completed / len(assignments) * 100 if assignments else 0.0,
        "project_count": len(projects),
        "total_hours": total_hours,
        "total_cost": total_cost,
        "average_hourly_rate": sum(rates) / len(rates) if rates else None,
        "interaction_count": len(interactions),
        "last_contact_date": read_field(stakeholder, "last_contact_date"),
    }
