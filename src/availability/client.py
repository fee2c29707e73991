"""Schedule/Roster API client.

Reads roster listings and the lesson schedule, and sends batch busy-schedule
writes. All payloads use 1-based slot numbers (1..42); conversion to internal
slots happens here via the models' from_api helpers, exactly once.

Responses are wrapped in a {"data": ...} envelope.

Idempotent GETs are retried on TransientError. The batch write is NOT retried:
it replaces each person's whole set, so replaying it against a stale read
could undo another operator's edit.
"""

from typing import Any

import requests
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from src.availability.config import SchedulingConfig, get_config
from src.availability.errors import (
    AuthenticationError,
    PermanentError,
    RateLimitError,
    ScheduleWriteError,
    SchedulingError,
    TransientError,
)
from src.availability.logging import get_logger
from src.availability.models import BatchPayload, LessonEntry, Person, PersonKind, WeekInfo

log = get_logger(__name__)

BATCH_UPDATE_PATH = "/schedule/batch-order"


def _classify(resp: requests.Response) -> SchedulingError | None:
    """Map an HTTP status to the error hierarchy, or None on success."""
    if resp.status_code < 400:
        return None
    message = f"{resp.request.method if resp.request else 'HTTP'} {resp.url}: {resp.status_code}"
    if resp.status_code in (401, 403):
        return AuthenticationError(message)
    if resp.status_code == 429:
        return RateLimitError(message)
    if resp.status_code >= 500:
        return TransientError(message)
    return PermanentError(f"{message} {resp.text[:200]}")


class ScheduleApiClient:
    """Thin wrapper over the Schedule/Roster HTTP API."""

    def __init__(
        self,
        config: SchedulingConfig | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.config = config or get_config()
        self.base_url = self.config.api_base_url.rstrip("/")
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})
        if self.config.api_token:
            self.session.headers.update(
                {"Authorization": f"Bearer {self.config.api_token}"}
            )

    # -----------------------------------------------------------------------
    # Transport
    # -----------------------------------------------------------------------
    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """GET with retry on transient failures. Returns the envelope's data."""
        params = {k: v for k, v in (params or {}).items() if v not in (None, "")}

        @retry(
            stop=stop_after_attempt(max(1, self.config.read_retry_attempts)),
            wait=wait_exponential(multiplier=0.5, max=8),
            retry=retry_if_exception_type(TransientError),
            reraise=True,
        )
        def _attempt() -> Any:
            try:
                resp = self.session.get(
                    f"{self.base_url}{path}",
                    params=params,
                    timeout=self.config.request_timeout_seconds,
                )
            except (requests.Timeout, requests.ConnectionError) as e:
                log.warning("api_read_transport_error", path=path, error=str(e))
                raise TransientError(f"GET {path} failed: {e}") from e

            error = _classify(resp)
            if error is not None:
                log.warning("api_read_failed", path=path, status=resp.status_code)
                raise error
            try:
                body = resp.json()
            except requests.JSONDecodeError as e:
                log.warning("api_read_not_json", path=path, status=resp.status_code)
                raise PermanentError(f"GET {path}: response is not JSON") from e
            if not isinstance(body, dict):
                raise PermanentError(f"GET {path}: expected a {{\"data\": ...}} envelope")
            return body.get("data")

        return _attempt()

    # -----------------------------------------------------------------------
    # Reads
    # -----------------------------------------------------------------------
    def list_students(self, search: str | None = None) -> list[Person]:
        """Student roster with each profile's busy schedule."""
        data = self._get("/students", {"search": search}) or {}
        users = data.get("users", []) if isinstance(data, dict) else data
        people = []
        for user in users:
            profile = user.get("profile") or {}
            people.append(
                Person.from_api(
                    id=str(profile.get("id") or user["id"]),
                    kind=PersonKind.STUDENT,
                    name=profile.get("fullname", ""),
                    key=profile.get("email") or user.get("username"),
                    busy_schedule_arr=profile.get("busyScheduleArr"),
                )
            )
        log.info("students_loaded", count=len(people), search=search)
        return people

    def list_teachers(
        self, search: str | None = None, week_id: str | None = None
    ) -> list[Person]:
        """Teacher roster. The external key is the linked user's email."""
        data = self._get("/teachers", {"search": search, "weekId": week_id}) or []
        people = [
            Person.from_api(
                id=str(t["id"]),
                kind=PersonKind.TEACHER,
                name=t.get("name", ""),
                key=t.get("email") or t.get("username"),
                busy_schedule_arr=t.get("registeredBusySchedule"),
            )
            for t in data
        ]
        log.info("teachers_loaded", count=len(people), search=search, week_id=week_id)
        return people

    def list_schedules(self, week_id: str | None = None) -> list[LessonEntry]:
        """Lessons assigned for the week, one entry per (lesson, slot)."""
        data = self._get("/schedules", {"weekId": week_id}) or []
        lessons = [
            LessonEntry(
                schedule_time=item["schedule_time"],
                teacher_id=item.get("teacher_id"),
                class_id=item.get("class_id"),
                class_name=item.get("class_name", ""),
                lesson=item.get("lesson"),
                is_makeup=item.get("is_makeup", False),
                student_ids=[
                    str(s["id"]) for s in item.get("students") or [] if s.get("id")
                ],
            )
            for item in data
        ]
        log.info("schedules_loaded", count=len(lessons), week_id=week_id)
        return lessons

    def list_weeks(self) -> list[WeekInfo]:
        data = self._get("/weeks") or []
        return [WeekInfo(id=w["id"], start_date=w["startDate"][:10]) for w in data]

    # -----------------------------------------------------------------------
    # Write
    # -----------------------------------------------------------------------
    def batch_update(self, payload: BatchPayload) -> dict:
        """Replace each listed person's busy set. Single attempt, no retry.

        Raises:
            ScheduleWriteError: On transport failure, any non-2xx response, or
                a success status whose body is not JSON.
        """
        body = payload.model_dump(mode="json")
        if not body.get("week_id"):
            body["week_id"] = self.config.week_id or None

        log.info("batch_update_started", people=len(payload.data), week_id=body["week_id"])
        try:
            resp = self.session.post(
                f"{self.base_url}{BATCH_UPDATE_PATH}",
                json=body,
                timeout=self.config.request_timeout_seconds,
            )
        except requests.RequestException as e:
            log.error("batch_update_transport_error", error=str(e))
            raise ScheduleWriteError(f"Batch update failed: {e}") from e

        if resp.status_code >= 400:
            log.error("batch_update_failed", status=resp.status_code, body=resp.text[:200])
            raise ScheduleWriteError(
                f"Batch update rejected: {resp.status_code}", status_code=resp.status_code
            )

        if not resp.content:
            log.info("batch_update_succeeded", people=len(payload.data))
            return {}
        # Outcome unknown, treated as a failed write
        try:
            result = resp.json()
        except requests.JSONDecodeError as e:
            log.error("batch_update_not_json", status=resp.status_code, body=resp.text[:200])
            raise ScheduleWriteError(
                "Batch update returned a non-JSON response", status_code=resp.status_code
            ) from e

        log.info("batch_update_succeeded", people=len(payload.data))
        return result
