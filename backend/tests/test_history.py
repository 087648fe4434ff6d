from __future__ import annotations

import json
import logging

from blocksched.history import DatabaseSlot, FileSlot, HistoryStore, sanitize_record
from blocksched.schemas import TeachingAssignment

KEY = "teaching_assignments_history_v1"


class BrokenSlot:
    def read(self, key):
        raise OSError("disk unavailable")

    def write(self, key, value):
        raise OSError("disk full")


def record(record_id="2024-2025|1st Semester|ACT 1-A|IT 101|0"):
    return TeachingAssignment(
        id=record_id,
        academic_year="2024-2025",
        semester="1st Semester",
        block="ACT 1-A",
        subject_code="IT 101",
        subject_description="Intro to Computing",
        instructor_id=10,
        instructor_name="Dr. Alan Turing",
        instructor_email="turing@example.edu",
    )


def test_file_slot_round_trip(tmp_path):
    store = HistoryStore(FileSlot(tmp_path / "history"), KEY)
    assert store.load() == []
    assert store.save([record()]) is True
    assert (tmp_path / "history" / f"{KEY}.json").exists()
    assert store.load() == [record()]


def test_database_slot_round_trip(session_factory):
    store = HistoryStore(DatabaseSlot(session_factory), KEY)
    assert store.load() == []
    store.save([record()])
    store.save([record(), record("other")])
    assert [r.id for r in store.load()] == [record().id, "other"]


def test_load_sanitizes_records(tmp_path):
    slot = FileSlot(tmp_path)
    slot.write(KEY, json.dumps([
        {"subjectCode": "   ", "id": "dropped"},
        "not a record",
        {"subjectCode": "IT 102", "instructorEmail": "hopper@example.edu", "instructorId": "11"},
        {"subjectCode": "IT 103", "academicYear": "2023-2024", "block": "ACT 2-A", "instructorId": -4},
    ]))
    loaded = HistoryStore(slot, KEY).load()
    assert len(loaded) == 2
    first, second = loaded
    assert first.id == "Unspecified AY|Unspecified Semester|Unassigned|IT 102|hopper@example.edu"
    assert first.instructor_id == 11
    assert first.instructor_name == "TBA"
    assert first.subject_description == "IT 102"
    assert second.id == "2023-2024|Unspecified Semester|ACT 2-A|IT 103|TBA"
    assert second.instructor_id is None
    assert second.instructor_email is None


def test_sanitize_keeps_existing_id():
    raw = record().model_dump(by_alias=True)
    assert sanitize_record(raw) == record()


def test_unreadable_payloads_degrade_to_empty(tmp_path):
    slot = FileSlot(tmp_path)
    store = HistoryStore(slot, KEY)
    slot.write(KEY, "{not json")
    assert store.load() == []
    slot.write(KEY, json.dumps({"subjectCode": "IT 101"}))
    assert store.load() == []
    assert HistoryStore(BrokenSlot(), KEY).load() == []


def test_save_failure_is_logged_not_raised(caplog):
    store = HistoryStore(BrokenSlot(), KEY)
    with caplog.at_level(logging.WARNING, logger="blocksched.history"):
        assert store.save([record()]) is False
    assert "Failed to persist" in caplog.text
