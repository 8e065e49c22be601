from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from kanban_api.main import create_app
from kanban_api.repositories import InMemoryTaskStore
from kanban_api.settings import Settings


class FakeClock:
    """Monotonic clock advancing one millisecond per reading."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 9, 0, tzinfo=timezone.utc)) -> None:
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(milliseconds=1)
        return self.current


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> InMemoryTaskStore:
    return InMemoryTaskStore(clock=clock)


@pytest.fixture()
def tasks_path(tmp_path: Path) -> Path:
    return tmp_path / "data" / "tasks.json"


@pytest.fixture()
def settings(tasks_path: Path) -> Settings:
    return Settings(
        tasks_json_path=str(tasks_path),
        host="127.0.0.1",
        port=8080,
        allowed_origins=["http://localhost:5173"],
        log_level="INFO",
        log_file=None,
    )


@pytest.fixture()
def client(settings: Settings) -> TestClient:
    """API client over a fresh app persisting into tmp_path."""
    return TestClient(create_app(settings))
