from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

TBA = "TBA"

_WHITESPACE_RE = re.compile(r"\s+")


def is_tba(value: str | None) -> bool:
    if value is None:
        return True
    cleaned = value.strip().lower()
    return cleaned in {"", "tba"}


def name_key(value: str) -> str:
    return value.strip().casefold()


@dataclass(frozen=True)
class KnownInstructor:
    id: int
    name: Optional[str] = None


@dataclass(frozen=True)
class NamedInstructor:
    name: str


@dataclass(frozen=True)
class Unassigned:
    pass


InstructorRef = Union[KnownInstructor, NamedInstructor, Unassigned]

UNASSIGNED = Unassigned()


def resolve_instructor_ref(instructor_id, instructor_name: str | None) -> InstructorRef:
    """Classify raw instructor fields once so comparisons never re-inspect them.

    A positive integer id wins; a non-TBA name without an id becomes a
    name-only reference; anything else is unassigned.
    """
    name = None if is_tba(instructor_name) else instructor_name.strip()
    try:
        numeric_id = int(instructor_id) if instructor_id is not None else None
    except (TypeError, ValueError):
        numeric_id = None
    if numeric_id is not None and numeric_id > 0:
        return KnownInstructor(numeric_id, name)
    if name:
        return NamedInstructor(name)
    return UNASSIGNED


def same_instructor(a: InstructorRef, b: InstructorRef) -> bool:
    if isinstance(a, Unassigned) or isinstance(b, Unassigned):
        return False
    if isinstance(a, KnownInstructor) and isinstance(b, KnownInstructor):
        return a.id == b.id
    if a.name is None or b.name is None:
        return False
    return name_key(a.name) == name_key(b.name)


def describe_instructor(ref: InstructorRef) -> str:
    if isinstance(ref, Unassigned):
        return TBA
    if ref.name:
        return ref.name
    return f"instructor #{ref.id}"


def room_key(room: str | None) -> str | None:
    if is_tba(room):
        return None
    return _WHITESPACE_RE.sub(" ", room.strip()).casefold()
