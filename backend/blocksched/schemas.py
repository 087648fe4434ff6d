from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from .time_utils import Day, TimeInterval, format_clock, normalize_day, parse_clock

UNSPECIFIED_YEAR = "Unspecified AY"
UNSPECIFIED_SEMESTER = "Unspecified Semester"
UNASSIGNED_BLOCK = "Unassigned"

ASSIGNMENT_HEADERS = [
    "Academic Year",
    "Semester",
    "Block",
    "Subject Code",
    "Subject Description",
    "Instructor",
    "Instructor Email",
]


class ScheduleTimes(BaseModel):
    day: Day
    start_time: str = Field(..., alias="startTime")
    end_time: str = Field(..., alias="endTime")

    @field_validator("day", mode="before")
    @classmethod
    def normalize_day_value(cls, value):
        return normalize_day(value)

    @field_validator("start_time", "end_time", mode="before")
    @classmethod
    def normalize_clock_value(cls, value):
        return format_clock(parse_clock(str(value)))

    @model_validator(mode="after")
    def check_range(self):
        if parse_clock(self.start_time) >= parse_clock(self.end_time):
            raise ValueError("End time must be later than start time")
        return self

    def interval(self) -> TimeInterval:
        return TimeInterval(self.day, parse_clock(self.start_time), parse_clock(self.end_time))

    class Config:
        populate_by_name = True


class ScheduleEntry(ScheduleTimes):
    id: Optional[int] = None
    block_id: int = Field(..., alias="blockId")
    block_name: Optional[str] = Field(None, alias="blockName")
    subject_code: str = Field(..., alias="subjectCode")
    description: str = ""
    instructor_id: Optional[int] = Field(None, alias="instructorId")
    instructor_name: Optional[str] = Field(None, alias="instructorName")
    room: Optional[str] = None

    class Config:
        from_attributes = True
        populate_by_name = True


class ScheduleEntryUpdate(ScheduleTimes):
    instructor_id: Optional[int] = Field(None, alias="instructorId")
    room: Optional[str] = None
    expected_version: Optional[int] = Field(None, alias="expectedVersion")


class ScheduleEntryCreate(ScheduleEntryUpdate):
    block_id: int = Field(..., alias="blockId")
    subject_id: int = Field(..., alias="subjectId")


class MutationResponse(BaseModel):
    entry: Optional[ScheduleEntry] = None
    version: int


class SnapshotVersion(BaseModel):
    version: int


class ConflictKind(str, Enum):
    INSTRUCTOR = "instructor"
    ROOM = "room"
    BLOCK = "block"


class ConflictResult(BaseModel):
    ok: bool
    kind: Optional[ConflictKind] = None
    reason: Optional[str] = None
    conflicting_entry_id: Optional[int] = Field(None, alias="conflictingEntryId")

    class Config:
        populate_by_name = True

    @classmethod
    def passed(cls) -> "ConflictResult":
        return cls(ok=True)

    @classmethod
    def failed(cls, kind: ConflictKind, reason: str, entry_id: Optional[int]) -> "ConflictResult":
        return cls(ok=False, kind=kind, reason=reason, conflicting_entry_id=entry_id)


class ConflictSummary(BaseModel):
    entry_id: int
    conflicts_with: List[int]
    conflict_type: ConflictKind


class ConflictReport(BaseModel):
    conflicts: List[ConflictSummary]


class Block(BaseModel):
    id: int
    name: str
    year: str = ""
    capacity: int = 0
    enrolled: int = 0

    class Config:
        from_attributes = True


class BlockCreate(BaseModel):
    name: str
    year: str = ""
    capacity: int = 0
    enrolled: int = 0


class Subject(BaseModel):
    id: int
    code: str
    description: str = ""

    class Config:
        from_attributes = True


class SubjectCreate(BaseModel):
    code: str
    description: str = ""


class Instructor(BaseModel):
    id: int
    name: str
    email: Optional[str] = None
    subjects: List[str] = []

    class Config:
        from_attributes = True


class InstructorCreate(BaseModel):
    name: str
    email: Optional[str] = None
    subjects: List[str] = []


class TeachingAssignment(BaseModel):
    id: str
    academic_year: str = Field(UNSPECIFIED_YEAR, alias="academicYear")
    semester: str = UNSPECIFIED_SEMESTER
    block: str = UNASSIGNED_BLOCK
    subject_code: str = Field(..., alias="subjectCode")
    subject_description: str = Field("", alias="subjectDescription")
    instructor_id: Optional[int] = Field(None, alias="instructorId")
    instructor_name: str = Field("TBA", alias="instructorName")
    instructor_email: Optional[str] = Field(None, alias="instructorEmail")

    class Config:
        populate_by_name = True
