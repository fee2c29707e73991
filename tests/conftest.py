"""Shared fixtures for the availability engine tests."""

import json
from unittest.mock import MagicMock

import pytest
import requests

from src.availability.config import SchedulingConfig
from src.availability.models import Person, PersonKind

STUDENT_HEADER = (
    "Timestamp,Email address,Class,Full name,"
    "Monday,Tuesday,Wednesday,Thursday,Friday,Saturday,Sunday,Reason"
)
TEACHER_HEADER = (
    "Timestamp,Email address,Teacher name,"
    "Monday,Tuesday,Wednesday,Thursday,Friday,Saturday,Sunday,Notes"
)


def _day_cells(days: dict[int, str]) -> list[str]:
    return [f'"{days[i]}"' if days.get(i) else "" for i in range(7)]


def student_line(email: str, name: str = "Alice", days: dict[int, str] | None = None) -> str:
    """Build a student data line; days maps weekday index (0=Monday) to cell text."""
    cells = ["2025-01-06 09:00", email, "A1", name, *_day_cells(days or {}), ""]
    return ",".join(cells)


def teacher_line(email: str, name: str = "Bob", days: dict[int, str] | None = None) -> str:
    cells = ["2025-01-06 09:00", email, name, *_day_cells(days or {}), ""]
    return ",".join(cells)


def make_response(status: int = 200, payload=None, url: str = "http://api.test") -> requests.Response:
    resp = requests.Response()
    resp.status_code = status
    resp._content = json.dumps(payload).encode() if payload is not None else b""
    resp.url = url
    return resp


@pytest.fixture
def make_person():
    """Factory for Person records with internal busy slots."""

    def _make(
        person_id: str = "p1",
        busy: set[int] | None = None,
        kind: PersonKind = PersonKind.STUDENT,
        key: str | None = "__default__",
        name: str = "",
    ) -> Person:
        if key == "__default__":
            key = f"{person_id}@example.com"
        return Person(
            id=person_id,
            kind=kind,
            name=name or person_id,
            key=key,
            busy_slots=frozenset(busy or set()),
        )

    return _make


@pytest.fixture
def config() -> SchedulingConfig:
    return SchedulingConfig(
        api_base_url="http://api.test/",
        api_token="secret-token",
        week_id="week-1",
        read_retry_attempts=3,
    )


@pytest.fixture
def session() -> MagicMock:
    mock = MagicMock()
    mock.headers = {}
    return mock
