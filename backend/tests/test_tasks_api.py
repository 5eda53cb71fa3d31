from __future__ import annotations

from fastapi.testclient import TestClient

BOUNDS = {"timeline_start": "2025-01-01T00:00:00", "timeline_end": "2025-01-31T00:00:00"}


def test_create_and_fetch_task(client: TestClient, make_task):
    task = make_task(
        "Pour footing", "2025-01-07T00:00:00", "2025-01-09T00:00:00", category="Foundation", required_skills=["Concrete "]
    )

    response = client.get(f"/tasks/{task['id']}")

    assert response.status_code == 200
    body = response.json()
    assert body["title"] == "Pour footing"
    assert body["status"] == "not-started"
    assert body["start_date"] == "2025-01-07T00:00:00"
    assert body["required_skills"] == ["concrete"]


def test_task_with_reversed_dates_is_a_validation_error(client: TestClient, project):
    response = client.post(
        "/tasks",
        json={
            "project_id": project["id"],
            "title": "Backwards",
            "start_date": "2025-01-09T00:00:00",
            "due_date": "2025-01-07T00:00:00",
        },
    )

    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "validation_error"
    assert body["title"] == "Error"
    assert "Due date must not be before start date" in body["message"]


def test_mixed_aware_and_naive_dates_are_compared_in_utc(client: TestClient, project):
    created = client.post(
        "/tasks",
        json={
            "project_id": project["id"],
            "title": "Set trusses",
            "start_date": "2025-01-06T08:00:00Z",
            "due_date": "2025-01-07T08:00:00",
        },
    )
    assert created.status_code == 201, created.text
    assert created.json()["start_date"] == "2025-01-06T08:00:00"

    backwards = client.post(
        "/tasks",
        json={
            "project_id": project["id"],
            "title": "Set trusses",
            "start_date": "2025-01-07T08:00:00",
            "due_date": "2025-01-07T09:00:00+02:00",
        },
    )
    assert backwards.status_code == 422
    assert "Due date must not be before start date" in backwards.json()["message"]

    patched = client.patch(f"/tasks/{created.json()['id']}", json={"due_date": "2025-01-08T10:00:00+02:00"})
    assert patched.status_code == 200
    assert patched.json()["due_date"] == "2025-01-08T08:00:00"

    gantt = client.get(
        f"/projects/{project['id']}/gantt",
        params={"view_mode": "days", "timeline_start": "2025-01-06T00:00:00Z", "timeline_end": "2025-01-31T00:00:00"},
    )
    assert gantt.status_code == 200
    assert gantt.json()["timeline_start"] == "2025-01-06T00:00:00"


def test_task_for_unknown_project_is_an_operation_error(client: TestClient):
    response = client.post("/tasks", json={"project_id": 9999, "title": "Orphan"})

    assert response.status_code == 404
    assert response.json() == {
        "error": "operation_error",
        "title": "Error",
        "message": "Project not found",
        "detail": "Project not found",
    }


def test_unknown_route_uses_error_envelope(client: TestClient):
    response = client.get("/nowhere")

    assert response.status_code == 404
    assert response.json()["error"] == "operation_error"


def test_patch_task_rejects_due_before_existing_start(client: TestClient, make_task):
    task = make_task("Frame walls", "2025-01-07T00:00:00", "2025-01-09T00:00:00")

    response = client.patch(f"/tasks/{task['id']}", json={"due_date": "2025-01-05T00:00:00"})

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"

    response = client.patch(f"/tasks/{task['id']}", json={"status": "in-progress", "progress": 40})
    assert response.status_code == 200
    assert response.json()["progress"] == 40


def test_project_task_filters(client: TestClient, project, make_task):
    make_task("Pour footing", "2025-01-07T00:00:00", "2025-01-09T00:00:00", category="Foundation", priority="high")
    make_task("Hang drywall", "2025-01-13T00:00:00", "2025-01-15T00:00:00", category="Interior", status="in-progress")
    make_task("Pour slab", "2025-01-20T00:00:00", "2025-01-22T00:00:00", category="Foundation", status="completed")

    def titles(**params):
        response = client.get(f"/projects/{project['id']}/tasks", params=params)
        assert response.status_code == 200
        return [task["title"] for task in response.json()]

    assert titles() == ["Pour footing", "Hang drywall", "Pour slab"]
    assert titles(search="pour") == ["Pour footing", "Pour slab"]
    assert titles(status=["in-progress", "completed"]) == ["Hang drywall", "Pour slab"]
    assert titles(category="foundation", priority="high") == ["Pour footing"]


def test_move_task_keeps_duration(client: TestClient, make_task):
    task = make_task("Frame walls", "2025-01-07T00:00:00", "2025-01-09T00:00:00")

    response = client.post(f"/tasks/{task['id']}/move", json={"new_start_date": "2025-01-14T00:00:00", **BOUNDS})

    assert response.status_code == 200
    body = response.json()
    assert body["applied"] is True
    assert body["validation"] == {
        "is_valid": True,
        "validity": "valid",
        "messages": ["Move task to 2025-01-14 (2 days)"],
    }
    assert body["task"]["start_date"] == "2025-01-14T00:00:00"
    assert body["task"]["due_date"] == "2025-01-16T00:00:00"


def test_dry_run_reports_weekend_without_saving(client: TestClient, make_task):
    task = make_task("Frame walls", "2025-01-07T00:00:00", "2025-01-09T00:00:00")

    response = client.post(
        f"/tasks/{task['id']}/move",
        json={"new_start_date": "2025-01-11T08:00:00", "dry_run": True, **BOUNDS},
    )

    body = response.json()
    assert body["applied"] is False
    assert body["validation"]["validity"] == "warning"
    assert any("weekend" in message for message in body["validation"]["messages"])
    assert client.get(f"/tasks/{task['id']}").json()["start_date"] == "2025-01-07T00:00:00"


def test_invalid_move_is_rejected(client: TestClient, make_task):
    task = make_task("Frame walls", "2025-01-07T00:00:00", "2025-01-09T00:00:00")

    response = client.post(f"/tasks/{task['id']}/move", json={"new_start_date": "2025-01-30T08:00:00", **BOUNDS})

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "operation_error"
    assert "Task duration would extend beyond project timeline" in body["message"]
    assert body["detail"]["validation"]["validity"] == "invalid"
    assert client.get(f"/tasks/{task['id']}").json()["start_date"] == "2025-01-07T00:00:00"


def test_move_with_snap_and_project_bounds(client: TestClient, make_task):
    task = make_task("Frame walls", "2025-01-07T00:00:00", "2025-01-09T00:00:00")
    make_task("Roofing", "2025-01-20T00:00:00", "2025-01-24T00:00:00")

    response = client.post(
        f"/tasks/{task['id']}/move", json={"new_start_date": "2025-01-14T10:20:00", "snap": True}
    )

    assert response.status_code == 200
    assert response.json()["new_start_date"] == "2025-01-14T12:00:00"
    assert response.json()["task"]["due_date"] == "2025-01-16T12:00:00"


def test_move_with_only_one_bound_is_a_validation_error(client: TestClient, make_task):
    task = make_task("Frame walls", "2025-01-07T00:00:00", "2025-01-09T00:00:00")

    response = client.post(
        f"/tasks/{task['id']}/move",
        json={"new_start_date": "2025-01-14T00:00:00", "timeline_start": "2025-01-01T00:00:00"},
    )

    assert response.status_code == 422


def test_gantt_layout(client: TestClient, project, make_task):
    first = make_task("Excavate", "2025-01-06T00:00:00", "2025-01-10T00:00:00")
    second = make_task("Pour footing", "2025-01-08T00:00:00", "2025-01-14T00:00:00", category="Foundation")
    dependency = client.post(
        f"/projects/{project['id']}/dependencies",
        json={"predecessor_id": first["id"], "successor_id": second["id"]},
    ).json()

    response = client.get(
        f"/projects/{project['id']}/gantt",
        params={"view_mode": "days", "timeline_start": "2025-01-06T00:00:00", "timeline_end": "2025-01-31T00:00:00"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["column_width"] == 96
    assert len(body["units"]) == 26
    assert body["units"][0]["label"] == "Jan 6"
    rows = {row["task"]["id"]: row for row in body["tasks"]}
    assert (rows[first["id"]]["start_column_index"], rows[first["id"]]["column_span"]) == (0, 4)
    assert (rows[second["id"]]["left"], rows[second["id"]]["width"]) == (192, 576)
    assert body["critical_task_ids"] == [second["id"]]
    assert len(body["arrows"]) == 1
    arrow = body["arrows"][0]
    assert arrow["id"] == dependency["id"]
    assert arrow["has_conflict"] is True
    assert arrow["path"] == "M 389 30 C 409 30, 167 90, 187 90"


def test_gantt_weeks_without_bounds_uses_task_dates(client: TestClient, project, make_task):
    make_task("Excavate", "2025-01-06T00:00:00", "2025-01-10T00:00:00")

    body = client.get(f"/projects/{project['id']}/gantt", params={"view_mode": "weeks"}).json()

    assert body["timeline_start"] == "2024-12-30T00:00:00"
    assert body["timeline_end"] == "2025-01-17T00:00:00"
    assert [unit["label"] for unit in body["units"]] == ["Dec 29", "Jan 5", "Jan 12"]
    assert [marker["milestone"]["id"] for marker in body["milestones"]] == [f"{project['id']}-start"]


def test_project_milestones(client: TestClient, project, make_task):
    task = make_task("Excavate", "2025-01-06T00:00:00", "2025-01-10T00:00:00")

    milestones = client.get(f"/projects/{project['id']}/milestones").json()

    assert [m["title"] for m in milestones] == [
        "Riverside Duplex - Project Start",
        "Riverside Duplex - Mid-point Review",
        "Riverside Duplex - Project Completion",
    ]
    assert [m["status"] for m in milestones] == ["completed", "in-progress", "overdue"]
    assert milestones[1]["due_date"] == "2025-04-01T00:00:00"
    assert milestones[0]["linked_task_ids"] == [task["id"]]

    body = client.get(
        f"/projects/{project['id']}/gantt",
        params={"view_mode": "months", "timeline_start": "2025-01-01T00:00:00", "timeline_end": "2025-07-31T00:00:00"},
    ).json()
    markers = body["milestones"]
    assert [marker["milestone"]["id"] for marker in markers] == [m["id"] for m in milestones]
    assert markers[0]["x_position"] == 0
    assert markers[0]["y_position"] == 30

    assert client.get("/projects/9999/milestones").status_code == 404


def test_gantt_debug_requires_debug_mode(client: TestClient, project, make_task):
    make_task("Excavate", "2025-01-06T00:00:00", "2025-01-10T00:00:00")
    url = f"/projects/{project['id']}/gantt/debug"

    assert client.get(url).status_code == 404

    client.put("/settings", json={"gantt_debug_mode": True})
    response = client.get(url, params={"view_mode": "months"})

    assert response.status_code == 200
    body = response.json()
    assert body["is_valid"] is True
    assert body["stats"]["total_tasks"] == 1
    assert body["unit_count"] == 2
    assert body["preferences"]["show_grid_lines"] is True


def test_dependency_cycle_is_rejected(client: TestClient, project, make_task):
    a = make_task("A", "2025-01-06T00:00:00", "2025-01-07T00:00:00")
    b = make_task("B", "2025-01-08T00:00:00", "2025-01-09T00:00:00")
    c = make_task("C", "2025-01-10T00:00:00", "2025-01-11T00:00:00")
    url = f"/projects/{project['id']}/dependencies"

    assert client.post(url, json={"predecessor_id": a["id"], "successor_id": b["id"]}).status_code == 201
    assert client.post(url, json={"predecessor_id": b["id"], "successor_id": c["id"]}).status_code == 201

    response = client.post(url, json={"predecessor_id": c["id"], "successor_id": a["id"]})
    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"
    assert "circular" in response.json()["message"]

    check = client.post("/dependencies/validate", json={"predecessor_id": b["id"], "successor_id": a["id"]}).json()
    assert check["is_valid"] is False
    assert check["suggestions"]

    duplicate = client.post(url, json={"predecessor_id": a["id"], "successor_id": b["id"]})
    assert duplicate.json()["message"] == "This dependency already exists"

    listed = client.get(url).json()
    assert [(dep["predecessor_id"], dep["successor_id"]) for dep in listed] == [(a["id"], b["id"]), (b["id"], c["id"])]

    assert client.delete(f"/dependencies/{listed[0]['id']}").status_code == 204
    assert client.post(url, json={"predecessor_id": c["id"], "successor_id": a["id"]}).status_code == 201


def test_self_dependency_is_rejected(client: TestClient, project, make_task):
    a = make_task("A", "2025-01-06T00:00:00", "2025-01-07T00:00:00")

    response = client.post(
        f"/projects/{project['id']}/dependencies", json={"predecessor_id": a["id"], "successor_id": a["id"]}
    )

    assert response.status_code == 400
    assert response.json()["message"] == "A task cannot depend on itself"


def test_dependency_across_projects_is_rejected(client: TestClient, project, make_task):
    a = make_task("A", "2025-01-06T00:00:00", "2025-01-07T00:00:00")
    other = client.post("/projects", json={"name": "Elsewhere"}).json()
    b = client.post("/tasks", json={"project_id": other["id"], "title": "B"}).json()

    response = client.post("/dependencies/validate", json={"predecessor_id": a["id"], "successor_id": b["id"]})

    assert response.status_code == 400


def test_dependency_must_belong_to_the_project_in_the_path(client: TestClient, project, make_task):
    a = make_task("A", "2025-01-06T00:00:00", "2025-01-07T00:00:00")
    b = make_task("B", "2025-01-08T00:00:00", "2025-01-09T00:00:00")
    other = client.post("/projects", json={"name": "Oak Street Remodel"}).json()

    response = client.post(
        f"/projects/{other['id']}/dependencies", json={"predecessor_id": a["id"], "successor_id": b["id"]}
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Dependent tasks must belong to this project"
    assert client.get(f"/projects/{project['id']}/dependencies").json() == []


def test_project_crud(client: TestClient, project):
    response = client.patch(f"/projects/{project['id']}", json={"progress": 25, "status": "on-hold"})
    assert response.status_code == 200
    assert response.json()["status"] == "on-hold"

    assert [p["id"] for p in client.get("/projects", params={"status": "on-hold"}).json()] == [project["id"]]

    client.post("/tasks", json={"project_id": project["id"], "title": "Keep"})
    assert client.delete(f"/projects/{project['id']}").status_code == 409

    empty = client.post("/projects", json={"name": "Empty lot"}).json()
    assert client.delete(f"/projects/{empty['id']}").status_code == 204
    assert client.get(f"/projects/{empty['id']}").status_code == 404
