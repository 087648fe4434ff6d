from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Mapping, Optional, Sequence

from .identity import TBA, KnownInstructor, NamedInstructor, name_key, resolve_instructor_ref
from .schemas import (
    UNSPECIFIED_SEMESTER,
    UNSPECIFIED_YEAR,
    Instructor,
    ScheduleEntry,
    TeachingAssignment,
)

SIGNATURE_SEPARATOR = "\n"


def term_or_default(academic_year: Optional[str], semester: Optional[str]) -> tuple[str, str]:
    year = (academic_year or "").strip() or UNSPECIFIED_YEAR
    term = (semester or "").strip() or UNSPECIFIED_SEMESTER
    return year, term


def assignment_id(academic_year: str, semester: str, block: str, subject_code: str, suffix) -> str:
    return "|".join([academic_year, semester, block, subject_code, str(suffix)])


class InstructorDirectory:
    def __init__(self, instructors: Iterable[Instructor]):
        self._by_id: dict[int, Instructor] = {}
        self._by_name: dict[str, Instructor] = {}
        for instructor in instructors:
            self._by_id.setdefault(instructor.id, instructor)
            self._by_name.setdefault(name_key(instructor.name), instructor)

    def resolve(self, entry: ScheduleEntry) -> Optional[Instructor]:
        ref = resolve_instructor_ref(entry.instructor_id, entry.instructor_name)
        if isinstance(ref, KnownInstructor) and ref.id in self._by_id:
            return self._by_id[ref.id]
        if isinstance(ref, (KnownInstructor, NamedInstructor)) and ref.name:
            return self._by_name.get(name_key(ref.name))
        return None


def derive(
    schedules_by_block: Mapping[str, Sequence[ScheduleEntry]],
    academic_year: Optional[str],
    semester: Optional[str],
    instructors: Iterable[Instructor],
) -> list[TeachingAssignment]:
    """Flatten per-block schedules into teaching assignments for one term.

    Ids are ``year|semester|block|subjectCode|index`` where index is the
    entry's position in its block's list, so the same snapshot always yields
    the same ids in the same order.
    """
    year, term = term_or_default(academic_year, semester)
    directory = InstructorDirectory(instructors)
    assignments: list[TeachingAssignment] = []
    for block, entries in schedules_by_block.items():
        for index, entry in enumerate(entries):
            code = (entry.subject_code or "").strip()
            if not code:
                continue
            instructor = directory.resolve(entry)
            assignments.append(
                TeachingAssignment(
                    id=assignment_id(year, term, block, code, index),
                    academic_year=year,
                    semester=term,
                    block=block,
                    subject_code=code,
                    subject_description=entry.description or code,
                    instructor_id=instructor.id if instructor else None,
                    instructor_name=instructor.name if instructor else TBA,
                    instructor_email=instructor.email if instructor else None,
                )
            )
    return assignments


@dataclass
class ReconcileResult:
    merged: list[TeachingAssignment] = field(default_factory=list)
    changed: bool = False
    signature: str = ""


def merge_by_id(
    first: Iterable[TeachingAssignment], second: Iterable[TeachingAssignment]
) -> list[TeachingAssignment]:
    merged: dict[str, TeachingAssignment] = {}
    for record in first:
        merged[record.id] = record
    for record in second:
        merged[record.id] = record
    return list(merged.values())


def sort_assignments(records: Iterable[TeachingAssignment]) -> list[TeachingAssignment]:
    ordered = sorted(records, key=lambda r: (r.semester, r.block, r.subject_code, r.id))
    # stable, so the ascending keys above survive within each year
    return sorted(ordered, key=lambda r: r.academic_year, reverse=True)


def signature(records: Iterable[TeachingAssignment]) -> str:
    return SIGNATURE_SEPARATOR.join(record.id for record in records)


def reconcile(
    previous: Sequence[TeachingAssignment],
    incoming: Sequence[TeachingAssignment],
    history: Sequence[TeachingAssignment],
    last_signature: Optional[str] = None,
) -> ReconcileResult:
    combined = merge_by_id(previous, incoming)
    merged = sort_assignments(merge_by_id(history, combined))
    new_signature = signature(merged)
    return ReconcileResult(merged=merged, changed=new_signature != last_signature, signature=new_signature)
