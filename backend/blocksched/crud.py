from __future__ import annotations

from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import models
from .exceptions import ResourceNotFoundError, StaleSnapshotError
from .identity import is_tba
from .schemas import (
    BlockCreate,
    InstructorCreate,
    ScheduleEntryCreate,
    ScheduleEntryUpdate,
    SubjectCreate,
)

SNAPSHOT_VERSION_KEY = "schedule_snapshot_version"
ROOM_MAX_LENGTH = 100


def clean_room(room: Optional[str]) -> Optional[str]:
    if is_tba(room):
        return None
    return room.strip()[:ROOM_MAX_LENGTH]


def get_snapshot_version(db: Session) -> int:
    record = db.get(models.KeyValueRecord, SNAPSHOT_VERSION_KEY)
    if record is None:
        return 0
    try:
        return int(record.value)
    except ValueError:
        return 0


def bump_snapshot_version(db: Session, observed: int) -> int:
    """Move the snapshot version from ``observed`` to ``observed + 1`` and commit.

    The write only matches the row still holding ``observed``, so a writer in
    another process that committed first turns this commit into a
    ``StaleSnapshotError`` instead of a second booking.
    """
    version = observed + 1
    if observed == 0 and db.get(models.KeyValueRecord, SNAPSHOT_VERSION_KEY) is None:
        db.add(models.KeyValueRecord(key=SNAPSHOT_VERSION_KEY, value=str(version)))
    else:
        result = db.execute(
            update(models.KeyValueRecord)
            .where(
                models.KeyValueRecord.key == SNAPSHOT_VERSION_KEY,
                models.KeyValueRecord.value == str(observed),
            )
            .values(value=str(version))
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            db.rollback()
            raise StaleSnapshotError(observed, get_snapshot_version(db))
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise StaleSnapshotError(observed, get_snapshot_version(db))
    return version


def get_block(db: Session, block_id: int) -> models.Block:
    block = db.get(models.Block, block_id)
    if block is None:
        raise ResourceNotFoundError("Block", block_id)
    return block


def get_subject(db: Session, subject_id: int) -> models.Subject:
    subject = db.get(models.Subject, subject_id)
    if subject is None:
        raise ResourceNotFoundError("Subject", subject_id)
    return subject


def resolve_instructor(db: Session, instructor_id: Optional[int]) -> Optional[models.Instructor]:
    if instructor_id is None or instructor_id <= 0:
        return None
    instructor = db.get(models.Instructor, instructor_id)
    if instructor is None:
        raise ResourceNotFoundError("Instructor", instructor_id)
    return instructor


def create_schedule_entry(
    db: Session, entry: ScheduleEntryCreate, observed_version: int
) -> models.ScheduleEntry:
    block = get_block(db, entry.block_id)
    subject = get_subject(db, entry.subject_id)
    instructor = resolve_instructor(db, entry.instructor_id)
    model = models.ScheduleEntry(
        block_id=block.id,
        subject_id=subject.id,
        instructor_id=instructor.id if instructor else None,
        day=entry.day.value,
        start_time=entry.start_time,
        end_time=entry.end_time,
        room=clean_room(entry.room),
    )
    db.add(model)
    bump_snapshot_version(db, observed_version)
    db.refresh(model)
    return model


def update_schedule_entry(
    db: Session, entry_id: int, entry: ScheduleEntryUpdate, observed_version: int
) -> models.ScheduleEntry:
    model = get_schedule_entry(db, entry_id)
    if model is None:
        raise ResourceNotFoundError("Schedule entry", entry_id)
    instructor = resolve_instructor(db, entry.instructor_id)
    model.instructor_id = instructor.id if instructor else None
    model.day = entry.day.value
    model.start_time = entry.start_time
    model.end_time = entry.end_time
    model.room = clean_room(entry.room)
    bump_snapshot_version(db, observed_version)
    db.refresh(model)
    return model


def delete_schedule_entry(db: Session, entry_id: int, observed_version: int) -> None:
    model = get_schedule_entry(db, entry_id)
    if model is None:
        raise ResourceNotFoundError("Schedule entry", entry_id)
    db.delete(model)
    bump_snapshot_version(db, observed_version)


def list_schedule_entries(db: Session) -> list[models.ScheduleEntry]:
    return list(db.scalars(select(models.ScheduleEntry).order_by(models.ScheduleEntry.id)))


def get_schedule_entry(db: Session, entry_id: int) -> models.ScheduleEntry | None:
    return db.get(models.ScheduleEntry, entry_id)


def create_block(db: Session, payload: BlockCreate) -> models.Block:
    instance = models.Block(**payload.model_dump())
    db.add(instance)
    db.commit()
    db.refresh(instance)
    return instance


def list_blocks(db: Session) -> list[models.Block]:
    return list(db.scalars(select(models.Block).order_by(models.Block.name)))


def create_subject(db: Session, payload: SubjectCreate) -> models.Subject:
    instance = models.Subject(code=payload.code.strip(), description=payload.description)
    db.add(instance)
    db.commit()
    db.refresh(instance)
    return instance


def list_subjects(db: Session) -> list[models.Subject]:
    return list(db.scalars(select(models.Subject).order_by(models.Subject.code)))


def create_instructor(db: Session, payload: InstructorCreate) -> models.Instructor:
    instance = models.Instructor(
        name=payload.name.strip(),
        email=payload.email,
        subject_codes=",".join(code.strip() for code in payload.subjects if code.strip()),
    )
    db.add(instance)
    db.commit()
    db.refresh(instance)
    return instance


def list_instructors(db: Session) -> list[models.Instructor]:
    return list(db.scalars(select(models.Instructor).order_by(models.Instructor.name)))


def eligible_instructors(db: Session, subject_code: str) -> list[models.Instructor]:
    target = subject_code.strip().lower()
    return [
        instructor
        for instructor in list_instructors(db)
        if target in {code.lower() for code in instructor.subjects}
    ]
