"""Pydantic models for availability data.

All data structures use Pydantic v2 for validation, serialization, and type safety.
Slot sets held by these models use internal numbering (0..41); conversion to the
API's 1..42 numbering happens only in from_api()/to_payload() helpers.
"""

from datetime import date
from enum import Enum

from pydantic import BaseModel, Field, field_validator

from src.availability.calendar import SLOT_COUNT, is_valid_slot, to_external, to_internal


class PersonKind(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"

    @property
    def payload_type(self) -> str:
        """Discriminator the batch endpoint expects for this kind."""
        return "user" if self is PersonKind.STUDENT else "teacher"


class Person(BaseModel):
    """A student or teacher with self-declared busy slots.

    busy_slots is self-declared unavailability only. Slots consumed by assigned
    lessons are tracked separately in matrix.Occupancy.
    """

    id: str
    kind: PersonKind
    name: str = ""
    key: str | None = None  # Email (or username) used as the external key for writes
    busy_slots: frozenset[int] = frozenset()

    model_config = {"frozen": True}

    @field_validator("busy_slots")
    @classmethod
    def _check_slots(cls, value: frozenset[int]) -> frozenset[int]:
        bad = [s for s in value if not is_valid_slot(s)]
        if bad:
            raise ValueError(f"busy_slots out of range: {sorted(bad)}")
        return value

    @property
    def is_fully_declared(self) -> bool:
        """All 42 slots marked busy - the "incomplete responder" classification."""
        return len(self.busy_slots) == SLOT_COUNT

    @classmethod
    def from_api(
        cls,
        *,
        id: str,
        kind: PersonKind,
        name: str = "",
        key: str | None = None,
        busy_schedule_arr: list[int] | None = None,
    ) -> "Person":
        """Build a Person from a roster listing's 1-based busy array."""
        return cls(
            id=id,
            kind=kind,
            name=name,
            key=key or None,
            busy_slots=frozenset(to_internal(n) for n in busy_schedule_arr or []),
        )


class ImportRow(BaseModel):
    """One record of a bulk busy-schedule import.

    A row with any errors is shown in the preview but never written.
    """

    line_number: int = 0  # 1-based position among non-blank lines, 0 for header errors
    email: str = ""
    display_name: str = ""
    class_name: str = ""
    busy_slots: list[int] = Field(default_factory=list)  # internal, ascending
    errors: list[str] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def busy_schedule_arr(self) -> list[int]:
        return [to_external(s) for s in self.busy_slots]


class BatchMutation(BaseModel):
    """Full-replacement write of one person's busy set.

    busy_schedule_arr is already in the API's 1-based numbering.
    """

    key: str
    busy_schedule_arr: list[int]
    type: str  # "user" | "teacher"

    @classmethod
    def build(cls, key: str, slots: set[int] | frozenset[int], kind: PersonKind) -> "BatchMutation":
        return cls(
            key=key,
            busy_schedule_arr=sorted(to_external(s) for s in slots),
            type=kind.payload_type,
        )


class BatchPayload(BaseModel):
    """Body of the batch write request."""

    data: list[BatchMutation]
    week_id: str | None = None

    @property
    def keys(self) -> set[str]:
        return {m.key for m in self.data}


class LessonEntry(BaseModel):
    """A lesson from the schedule listing, occupying one slot."""

    schedule_time: int  # 1-based, as the API sends it
    teacher_id: str | None = None
    class_id: str | None = None
    class_name: str = ""
    lesson: int | None = None
    is_makeup: bool = False
    student_ids: list[str] = Field(default_factory=list)

    @property
    def slot(self) -> int:
        return to_internal(self.schedule_time)


class WeekInfo(BaseModel):
    """A schedulable week known to the API."""

    id: str
    start_date: date
