from __future__ import annotations

import datetime as dt
import tempfile
from pathlib import Path
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from sitegrid import models
from sitegrid.config import settings
from sitegrid.database import get_db
from sitegrid.main import app
from sitegrid.realtime import SubscriptionManager
from sitegrid.state import RuntimeState


@pytest.fixture(scope="session")
def temp_db_path() -> Generator[Path, None, None]:
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "test.db"
        yield path


@pytest.fixture(scope="session")
def engine(temp_db_path: Path):
    url = f"sqlite:///{temp_db_path}"
    engine = create_engine(url, connect_args={"check_same_thread": False}, future=True)
    models.Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    connection = engine.connect()
    transaction = connection.begin()
    SessionTesting = sessionmaker(bind=connection, autoflush=False, autocommit=False, future=True)
    session = SessionTesting()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture(scope="function")
def client(session: Session, tmp_path: Path, monkeypatch) -> Generator[TestClient, None, None]:
    def override_get_db():
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr(settings, "export_dir", tmp_path)
    app.dependency_overrides[get_db] = override_get_db
    app.state.runtime_state = RuntimeState(settings)
    app.state.realtime = SubscriptionManager(buffer_size=settings.realtime_buffer_size)
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def monday() -> dt.datetime:
    return dt.datetime(2025, 1, 6, 8, 0)


@pytest.fixture()
def project(client: TestClient) -> dict:
    response = client.post(
        "/projects",
        json={"name": "Riverside Duplex", "status": "active", "start_date": "2025-01-01", "end_date": "2025-06-30"},
    )
    assert response.status_code == 201
    return response.json()


@pytest.fixture()
def make_task(client: TestClient, project: dict):
    def _make(title: str, start: str, due: str, **extra) -> dict:
        payload = {"project_id": project["id"], "title": title, "start_date": start, "due_date": due}
        payload.update(extra)
        response = client.post("/tasks", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _make
