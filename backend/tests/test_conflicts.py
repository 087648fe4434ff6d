from __future__ import annotations

from blocksched import conflicts
from blocksched.schemas import ConflictKind, ScheduleEntry

ACT_1A = 1
ACT_1B = 2


def make_entry(entry_id, block_id, subject, start, end, day="Monday", instructor=None, instructor_id=None, room=None):
    return ScheduleEntry(
        id=entry_id,
        block_id=block_id,
        block_name="ACT 1-A" if block_id == ACT_1A else "ACT 1-B",
        subject_code=subject,
        description=subject,
        day=day,
        start_time=start,
        end_time=end,
        instructor_id=instructor_id,
        instructor_name=instructor,
        room=room,
    )


def turing_entry():
    return make_entry(1, ACT_1A, "IT 101", "09:00", "10:30", instructor="Dr. Alan Turing")


def test_instructor_conflict_across_blocks():
    candidate = make_entry(None, ACT_1B, "IT 201", "09:30", "11:00", instructor="Dr. Alan Turing")
    result = conflicts.validate(candidate, [turing_entry()])
    assert result.ok is False
    assert result.kind == ConflictKind.INSTRUCTOR
    assert result.conflicting_entry_id == 1
    assert "IT 101" in result.reason
    assert "ACT 1-A" in result.reason
    assert "Dr. Alan Turing" in result.reason


def test_tba_instructor_is_accepted():
    candidate = make_entry(None, ACT_1B, "IT 201", "09:30", "11:00", instructor="TBA")
    assert conflicts.validate(candidate, [turing_entry()]).ok is True


def test_block_conflict_with_unassigned_instructor():
    candidate = make_entry(None, ACT_1A, "IT 102", "10:00", "11:00", instructor="TBA")
    result = conflicts.validate(candidate, [turing_entry()])
    assert result.ok is False
    assert result.kind == ConflictKind.BLOCK


def test_touching_boundaries_do_not_conflict():
    existing = make_entry(1, ACT_1A, "IT 101", "09:00", "10:00", instructor="Dr. Ada", room="R101")
    candidate = make_entry(None, ACT_1A, "IT 102", "10:00", "11:00", instructor="Dr. Ada", room="R101")
    assert conflicts.validate(candidate, [existing]).ok is True


def test_different_days_never_conflict():
    candidate = make_entry(None, ACT_1A, "IT 102", "09:00", "10:30", day="Tuesday", instructor="Dr. Alan Turing")
    assert conflicts.validate(candidate, [turing_entry()]).ok is True


def test_conflict_is_symmetric():
    a = make_entry(1, ACT_1A, "IT 101", "08:00", "09:30", instructor="Dr. Ada")
    b = make_entry(2, ACT_1B, "IT 201", "09:00", "10:00", instructor="dr. ada")
    forward = conflicts.validate(a, [b])
    backward = conflicts.validate(b, [a])
    assert forward.kind == backward.kind == ConflictKind.INSTRUCTOR


def test_absent_instructors_never_conflict():
    a = make_entry(1, ACT_1A, "IT 101", "08:00", "09:30")
    b = make_entry(None, ACT_1B, "IT 101", "08:00", "09:30", instructor="tba")
    assert conflicts.validate(b, [a]).ok is True


def test_instructor_ids_take_precedence_over_names():
    existing = make_entry(1, ACT_1A, "IT 101", "08:00", "09:30", instructor="J. Smith", instructor_id=7)
    same_name_other_person = make_entry(None, ACT_1B, "IT 201", "08:00", "09:30", instructor="J. Smith", instructor_id=8)
    assert conflicts.validate(same_name_other_person, [existing]).ok is True
    same_id = make_entry(None, ACT_1B, "IT 201", "08:00", "09:30", instructor_id=7)
    assert conflicts.validate(same_id, [existing]).kind == ConflictKind.INSTRUCTOR


def test_instructor_names_match_exactly_apart_from_case():
    existing = make_entry(1, ACT_1A, "IT 101", "08:00", "09:30", instructor="Dr. Ada")
    spaced = make_entry(None, ACT_1B, "IT 201", "08:00", "09:30", instructor="Dr.  Ada")
    assert conflicts.validate(spaced, [existing]).ok is True
    padded = make_entry(None, ACT_1B, "IT 201", "08:00", "09:30", instructor="  DR. ADA ")
    assert conflicts.validate(padded, [existing]).kind == ConflictKind.INSTRUCTOR


def test_room_conflict_uses_normalized_room():
    existing = make_entry(1, ACT_1A, "IT 101", "13:00", "14:30", room="Lab  1")
    candidate = make_entry(None, ACT_1B, "IT 201", "14:00", "15:00", room=" lab 1 ")
    result = conflicts.validate(candidate, [existing])
    assert result.kind == ConflictKind.ROOM
    assert "Lab  1" in result.reason


def test_tba_rooms_never_conflict():
    existing = make_entry(1, ACT_1A, "IT 101", "13:00", "14:30", room="TBA")
    candidate = make_entry(None, ACT_1B, "IT 201", "13:00", "14:30", room="TBA")
    assert conflicts.validate(candidate, [existing]).ok is True


def test_edit_excludes_its_own_previous_copy():
    original = turing_entry()
    edited = make_entry(1, ACT_1A, "IT 101", "09:30", "11:00", instructor="Dr. Alan Turing")
    assert conflicts.validate(edited, [original], exclude_id=1).ok is True


def test_first_conflict_in_snapshot_order_is_reported():
    room_clash = make_entry(5, ACT_1B, "IT 205", "09:00", "10:00", room="R101")
    instructor_clash = make_entry(6, ACT_1B, "IT 206", "09:00", "10:00", instructor="Dr. Ada")
    candidate = make_entry(None, ACT_1A, "IT 101", "09:00", "10:00", instructor="Dr. Ada", room="R101")
    result = conflicts.validate(candidate, [room_clash, instructor_clash])
    assert result.kind == ConflictKind.ROOM
    assert result.conflicting_entry_id == 5

    everything = conflicts.validate_all(candidate, [room_clash, instructor_clash])
    assert [r.kind for r in everything] == [ConflictKind.ROOM, ConflictKind.INSTRUCTOR]


def test_find_conflicts_reports_both_directions():
    a = make_entry(1, ACT_1A, "IT 101", "07:00", "08:00", instructor="Dr. Ada", room="R101")
    b = make_entry(2, ACT_1B, "IT 102", "07:30", "08:30", instructor="Dr. Ada", room="R101")
    found = {(c.entry_id, c.conflicts_with, c.kind) for c in conflicts.find_conflicts([a, b])}
    assert (1, 2, ConflictKind.ROOM) in found
    assert (1, 2, ConflictKind.INSTRUCTOR) in found
    assert (2, 1, ConflictKind.INSTRUCTOR) in found
    assert all(kind != ConflictKind.BLOCK for _, _, kind in found)
