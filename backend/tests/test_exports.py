from __future__ import annotations

import hashlib
from pathlib import Path

from fastapi.testclient import TestClient
from openpyxl import load_workbook


def _seed(client: TestClient, project: dict, make_task) -> None:
    make_task("Excavate", "2025-01-06T00:00:00", "2025-01-10T00:00:00")
    make_task("Pour footing", "2025-01-13T00:00:00", "2025-01-15T00:00:00", category="Foundation")
    equipment = client.post("/equipment", json={"name": "Mini Excavator", "type": "excavator"}).json()
    client.post(
        "/equipment-allocations",
        json={"equipment_id": equipment["id"], "project_id": project["id"], "start_date": "2025-01-06", "end_date": "2025-01-10"},
    )
    client.post(
        "/resource-allocations",
        json={
            "project_id": project["id"],
            "team_name": "Site crew",
            "week_start_date": "2025-01-05",
            "members": [{"name": "Dana", "role": "foreman", "hours_allocated": 40, "cost_per_hour": 55}],
        },
    )


def test_xlsx_export(client: TestClient, project, make_task, tmp_path: Path):
    _seed(client, project, make_task)

    response = client.post(f"/projects/{project['id']}/exports", json={"format": "xlsx"})

    assert response.status_code == 201
    export = response.json()
    assert export["view"] == "weeks"
    path = Path(export["path"])
    assert path.parent == tmp_path
    assert export["checksum"] == hashlib.sha256(path.read_bytes()).hexdigest()

    workbook = load_workbook(path)
    assert workbook.sheetnames == ["Project", "Tasks", "Equipment", "Resources"]
    tasks = list(workbook["Tasks"].iter_rows(values_only=True))
    assert tasks[0][0] == "Task"
    assert [row[0] for row in tasks[1:]] == ["Excavate", "Pour footing"]
    assert tasks[2][-1] == "yes"
    assert list(workbook["Equipment"].iter_rows(values_only=True))[1][0] == "Mini Excavator"
    assert list(workbook["Resources"].iter_rows(values_only=True))[1][2] == "Dana"


def test_pdf_export_and_download(client: TestClient, project, make_task):
    _seed(client, project, make_task)

    export = client.post(f"/projects/{project['id']}/exports", json={"format": "pdf", "view_mode": "days"}).json()
    response = client.get(f"/exports/{export['id']}")

    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF")


def test_export_errors(client: TestClient, project):
    assert client.post(f"/projects/{project['id']}/exports", json={"format": "csv"}).status_code == 422
    assert client.post("/projects/9999/exports", json={"format": "pdf"}).status_code == 404
    assert client.get("/exports/9999").status_code == 404
