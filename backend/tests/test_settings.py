from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from sitegrid.config import settings
from sitegrid.models import AppSetting
from sitegrid.state import RuntimeState


def test_default_settings(client: TestClient):
    body = client.get("/settings").json()

    assert body["gantt_debug_mode"] is False
    assert body["stakeholder_view"] == "grid"
    assert body["weekly_capacity_hours"] == 40
    assert body["gantt_debug_preferences"] == {
        "show_column_info": True,
        "show_task_details": True,
        "show_grid_lines": True,
        "show_performance_metrics": False,
        "show_scroll_info": False,
    }


def test_update_merges_preferences_and_persists(client: TestClient, session: Session):
    response = client.put(
        "/settings",
        json={
            "gantt_debug_mode": True,
            "gantt_debug_preferences": {"show_scroll_info": True},
            "stakeholder_view": "pipeline",
        },
    )

    assert response.status_code == 200
    body = response.json()
    assert body["gantt_debug_mode"] is True
    assert body["stakeholder_view"] == "pipeline"
    assert body["gantt_debug_preferences"]["show_scroll_info"] is True
    assert body["gantt_debug_preferences"]["show_grid_lines"] is True

    stored = {record.key: record.value for record in session.query(AppSetting).all()}
    assert stored["gantt_debug_mode"] == "true"
    assert stored["stakeholder_view"] == "pipeline"
    assert "weekly_capacity_hours" not in stored

    restored = RuntimeState(settings)
    restored.load_from_db(session)
    assert restored.snapshot()["gantt_debug_preferences"]["show_scroll_info"] is True
    assert restored.snapshot()["stakeholder_view"] == "pipeline"


def test_invalid_settings_are_rejected(client: TestClient):
    assert client.put("/settings", json={"stakeholder_view": "kanban"}).status_code == 422
    assert client.put("/settings", json={"weekly_capacity_hours": 0}).status_code == 422
    assert client.get("/settings").json()["stakeholder_view"] == "grid"


def test_healthz(client: TestClient):
    response = client.get("/healthz")

    assert response.json() == {"status": "ok"}
    assert response.headers["X-Request-ID"]
