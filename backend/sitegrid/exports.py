from __future__ import annotations

import datetime as dt
import hashlib
from pathlib import Path
from typing import Any, Dict, List, Optional

import structlog
from fastapi import HTTPException, status
from openpyxl import Workbook
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import cm
from reportlab.pdfgen import canvas
from sqlalchemy.orm import Session

from .config import settings
from .models import EquipmentAllocation, ExportRecord, Project, ResourceAllocation
from .services import build_gantt, get_project

logger = structlog.get_logger()

EXPORT_FORMATS = {"pdf", "xlsx"}
MEDIA_TYPES = {
    "pdf": "application/pdf",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
}


def _format_date(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, dt.datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    return value.isoformat()


def _task_rows(gantt: Dict[str, Any]) -> List[List[Any]]:
    rows = []
    for row in gantt["tasks"]:
        task = row["task"]
        rows.append(
            [
                task.title,
                task.status,
                task.priority,
                task.category or "",
                _format_date(row["calculated_start"]),
                _format_date(row["calculated_end"]),
                row["start_column_index"],
                row["column_span"],
                "yes" if row["is_critical"] else "",
            ]
        )
    return rows


TASK_HEADERS = ["Task", "Status", "Priority", "Category", "Start", "End", "Column", "Span", "Critical"]


def _write_pdf(
    path: Path,
    title: str,
    project: Project,
    gantt: Dict[str, Any],
    allocations: List[EquipmentAllocation],
) -> None:
    pdf = canvas.Canvas(str(path), pagesize=A4)
    width, height = A4
    y = height - 2 * cm

    def line(text: str, step: float = 0.7) -> None:
        nonlocal y
        pdf.drawString(2 * cm, y, text)
        y -= step * cm
        if y < 2 * cm:
            pdf.showPage()
            y = height - 2 * cm
            pdf.setFont("Helvetica", 10)

    pdf.setTitle(title)
    pdf.setFont("Helvetica-Bold", 16)
    line(title, 1.0)
    pdf.setFont("Helvetica", 11)
    line(f"Status: {project.status} | Progress: {project.progress}%")
    line(f"Period: {_format_date(project.start_date) or '-'} to {_format_date(project.end_date) or '-'}")
    line(
        f"Timeline: {_format_date(gantt['timeline_start'])} to {_format_date(gantt['timeline_end'])} "
        f"({len(gantt['units'])} {gantt['view_mode']})",
        1.0,
    )
    pdf.setFont("Helvetica-Bold", 12)
    line("Tasks", 0.8)
    pdf.setFont("Helvetica", 10)
    for row in gantt["tasks"]:
        task = row["task"]
        marker = " [critical]" if row["is_critical"] else ""
        line(
            f"{task.title}{marker} | {task.status} | {_format_date(row['calculated_start'])} - "
            f"{_format_date(row['calculated_end'])}"
        )
    if allocations:
        y -= 0.3 * cm
        pdf.setFont("Helvetica-Bold", 12)
        line("Equipment", 0.8)
        pdf.setFont("Helvetica", 10)
        for allocation in allocations:
            line(
                f"{allocation.equipment.name} | {_format_date(allocation.start_date)} - "
                f"{_format_date(allocation.end_date)}"
            )
    pdf.save()


def _write_xlsx(
    path: Path,
    project: Project,
    gantt: Dict[str, Any],
    allocations: List[EquipmentAllocation],
    resources: List[ResourceAllocation],
) -> None:
    wb = Workbook()
    ws = wb.active
    ws.title = "Project"
    ws.append(["Name", project.name])
    ws.append(["Status", project.status])
    ws.append(["Start", _format_date(project.start_date)])
    ws.append(["End", _format_date(project.end_date)])
    ws.append(["Budget", project.budget or 0])
    ws.append(["Progress", project.progress])
    ws.append(["Tasks", len(gantt["tasks"])])
    ws.append(["Critical tasks", len(gantt["critical_task_ids"])])

    tasks = wb.create_sheet("Tasks")
    tasks.append(TASK_HEADERS)
    for row in _task_rows(gantt):
        tasks.append(row)

    equipment = wb.create_sheet("Equipment")
    equipment.append(["Equipment", "Type", "Start", "End", "Notes"])
    for allocation in allocations:
        equipment.append(
            [
                allocation.equipment.name,
                allocation.equipment.type,
                _format_date(allocation.start_date),
                _format_date(allocation.end_date),
                allocation.notes or "",
            ]
        )

    team = wb.create_sheet("Resources")
    team.append(["Week", "Team", "Member", "Role", "Allocated (h)", "Used (h)", "Cost/h"])
    for allocation in resources:
        for member in allocation.members:
            team.append(
                [
                    _format_date(allocation.week_start_date),
                    allocation.team_name,
                    member.name,
                    member.role or "",
                    member.hours_allocated,
                    member.hours_used,
                    member.cost_per_hour,
                ]
            )
    wb.save(path)


def export_project_plan(
    db: Session,
    project_id: int,
    export_format: str,
    view_mode: str = "weeks",
    today: Optional[dt.date] = None,
) -> ExportRecord:
    if export_format not in EXPORT_FORMATS:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Unsupported export format")
    project = get_project(db, project_id)
    gantt = build_gantt(db, project_id, view_mode, today=today)
    allocations = (
        db.query(EquipmentAllocation)
        .filter(EquipmentAllocation.project_id == project_id)
        .order_by(EquipmentAllocation.start_date.asc())
        .all()
    )

    filename = f"plan_{project_id}_{view_mode}_{int(dt.datetime.now().timestamp() * 1000)}.{export_format}"
    path = settings.export_dir / filename
    if export_format == "pdf":
        _write_pdf(path, f"SiteGrid plan: {project.name}", project, gantt, allocations)
    else:
        resources = (
            db.query(ResourceAllocation)
            .filter(ResourceAllocation.project_id == project_id)
            .order_by(ResourceAllocation.week_start_date.asc())
            .all()
        )
        _write_xlsx(path, project, gantt, allocations, resources)

    export = ExportRecord(
        project_id=project_id,
        format=export_format,
        view=view_mode,
        path=str(path),
        checksum=_checksum_file(path),
    )
    db.add(export)
    db.commit()
    db.refresh(export)
    logger.info("export_created", export_id=export.id, project_id=project_id, format=export_format)
    return export


def resolve_export_file(db: Session, export_id: int) -> ExportRecord:
    export = db.get(ExportRecord, export_id)
    if not export:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Export not found")
    if not Path(export.path).exists():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Export file missing")
    return export


def _checksum_file(path: Path) -> str:
    digest = hashlib.sha256()
    with path.open("rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            digest.update(chunk)
    return digest.hexdigest()
