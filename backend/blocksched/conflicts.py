from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from .identity import (
    InstructorRef,
    describe_instructor,
    resolve_instructor_ref,
    room_key,
    same_instructor,
)
from .schemas import ConflictKind, ConflictResult, ScheduleEntry
from .time_utils import TimeInterval


@dataclass(frozen=True)
class _Placement:
    entry: ScheduleEntry
    interval: TimeInterval
    instructor: InstructorRef
    room: Optional[str]

    @classmethod
    def of(cls, entry: ScheduleEntry) -> "_Placement":
        return cls(
            entry=entry,
            interval=entry.interval(),
            instructor=resolve_instructor_ref(entry.instructor_id, entry.instructor_name),
            room=room_key(entry.room),
        )


@dataclass(frozen=True)
class ConflictRecord:
    entry_id: Optional[int]
    conflicts_with: Optional[int]
    kind: ConflictKind
    reason: str


def _block_label(entry: ScheduleEntry) -> str:
    return entry.block_name or f"block #{entry.block_id}"


def _clashes(candidate: _Placement, other: _Placement) -> Iterable[tuple[ConflictKind, str]]:
    if not candidate.interval.overlaps(other.interval):
        return
    theirs = other.entry
    when = other.interval.label()
    if same_instructor(candidate.instructor, other.instructor):
        yield ConflictKind.INSTRUCTOR, (
            f"{describe_instructor(other.instructor)} already teaches {theirs.subject_code} "
            f"for {_block_label(theirs)} on {when}"
        )
    if candidate.room is not None and candidate.room == other.room:
        yield ConflictKind.ROOM, (
            f"Room {theirs.room.strip()} is already used by {theirs.subject_code} "
            f"for {_block_label(theirs)} on {when}"
        )
    if candidate.entry.block_id == theirs.block_id:
        yield ConflictKind.BLOCK, (
            f"{_block_label(theirs)} already has {theirs.subject_code} scheduled on {when}"
        )


def _others(candidate: ScheduleEntry, all_entries: Sequence[ScheduleEntry], exclude_id) -> Iterable[_Placement]:
    for other in all_entries:
        if other.id is not None and (other.id == exclude_id or other.id == candidate.id):
            continue
        yield _Placement.of(other)


def validate(
    candidate: ScheduleEntry,
    all_entries: Sequence[ScheduleEntry],
    exclude_id: Optional[int] = None,
) -> ConflictResult:
    """Check one proposed placement against the whole institution snapshot.

    Returns the first instructor, room or block collision found in snapshot
    order; ``exclude_id`` drops the pre-edit copy of an entry being modified.
    """
    placement = _Placement.of(candidate)
    for other in _others(candidate, all_entries, exclude_id):
        for kind, reason in _clashes(placement, other):
            return ConflictResult.failed(kind, reason, other.entry.id)
    return ConflictResult.passed()


def validate_all(
    candidate: ScheduleEntry,
    all_entries: Sequence[ScheduleEntry],
    exclude_id: Optional[int] = None,
) -> list[ConflictResult]:
    placement = _Placement.of(candidate)
    return [
        ConflictResult.failed(kind, reason, other.entry.id)
        for other in _others(candidate, all_entries, exclude_id)
        for kind, reason in _clashes(placement, other)
    ]


def find_conflicts(all_entries: Sequence[ScheduleEntry]) -> list[ConflictRecord]:
    placements = [_Placement.of(entry) for entry in all_entries]
    conflicts: list[ConflictRecord] = []
    for idx, entry in enumerate(placements):
        for other_idx, other in enumerate(placements):
            if idx == other_idx:
                continue
            for kind, reason in _clashes(entry, other):
                conflicts.append(ConflictRecord(entry.entry.id, other.entry.id, kind, reason))
    return conflicts
