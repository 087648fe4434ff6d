from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from . import assignments, conflicts, crud, models
from .config import Settings
from .exceptions import ResourceNotFoundError, SchedulingError, StaleSnapshotError
from .history import HistoryStore
from .schemas import (
    ConflictResult,
    Instructor,
    ScheduleEntry,
    ScheduleEntryCreate,
    ScheduleEntryUpdate,
    ScheduleTimes,
    TeachingAssignment,
)

logger = logging.getLogger(__name__)


@dataclass
class MutationOutcome:
    entry: Optional[ScheduleEntry]
    conflict: ConflictResult
    version: int

    @property
    def committed(self) -> bool:
        return self.conflict.ok


def snapshot(db: Session) -> list[ScheduleEntry]:
    return [ScheduleEntry.model_validate(model) for model in crud.list_schedule_entries(db)]


def schedules_by_block(db: Session) -> dict[str, list[ScheduleEntry]]:
    grouped: dict[str, list[ScheduleEntry]] = {block.name: [] for block in crud.list_blocks(db)}
    for entry in snapshot(db):
        grouped.setdefault(entry.block_name, []).append(entry)
    return {name: entries for name, entries in grouped.items() if entries}


def instructor_directory(db: Session) -> list[Instructor]:
    return [Instructor.model_validate(model) for model in crud.list_instructors(db)]


class ScheduleService:
    """Serialises every schedule mutation of one scheduling domain.

    Each add, edit or delete holds the writer lock from the snapshot read
    through the commit, so two requests can never both validate against the
    same stale snapshot. Callers that read the schedule earlier may also
    send the snapshot version they saw; a mismatch is rejected before any
    validation runs.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._lock = threading.Lock()

    def current_version(self, db: Session) -> int:
        return crud.get_snapshot_version(db)

    def _check_version(self, db: Session, expected: Optional[int]) -> int:
        current = crud.get_snapshot_version(db)
        if expected is not None and expected != current:
            raise StaleSnapshotError(expected, current)
        return current

    def _check_eligibility(self, instructor: Optional[models.Instructor], subject: models.Subject) -> None:
        if not self.settings.enforce_subject_eligibility or instructor is None:
            return
        allowed = {code.lower() for code in instructor.subjects}
        if allowed and subject.code.lower() not in allowed:
            raise SchedulingError(
                f"{instructor.name} is not assigned to teach {subject.code}",
                details={"instructorId": instructor.id, "subjectCode": subject.code},
            )

    def _candidate(
        self,
        db: Session,
        block: models.Block,
        subject: models.Subject,
        times: ScheduleTimes,
        instructor_id: Optional[int],
        room: Optional[str],
        entry_id: Optional[int] = None,
    ) -> ScheduleEntry:
        instructor = crud.resolve_instructor(db, instructor_id)
        self._check_eligibility(instructor, subject)
        return ScheduleEntry(
            id=entry_id,
            block_id=block.id,
            block_name=block.name,
            subject_code=subject.code,
            description=subject.description,
            day=times.day,
            start_time=times.start_time,
            end_time=times.end_time,
            instructor_id=instructor.id if instructor else None,
            instructor_name=instructor.name if instructor else None,
            room=crud.clean_room(room),
        )

    def _create_candidate(self, db: Session, payload: ScheduleEntryCreate) -> ScheduleEntry:
        block = crud.get_block(db, payload.block_id)
        subject = crud.get_subject(db, payload.subject_id)
        return self._candidate(db, block, subject, payload, payload.instructor_id, payload.room)

    def _update_candidate(self, db: Session, entry_id: int, payload: ScheduleEntryUpdate) -> ScheduleEntry:
        model = crud.get_schedule_entry(db, entry_id)
        if model is None:
            raise ResourceNotFoundError("Schedule entry", entry_id)
        return self._candidate(
            db, model.block, model.subject, payload, payload.instructor_id, payload.room, entry_id
        )

    def create(self, db: Session, payload: ScheduleEntryCreate) -> MutationOutcome:
        with self._lock:
            version = self._check_version(db, payload.expected_version)
            candidate = self._create_candidate(db, payload)
            result = conflicts.validate(candidate, snapshot(db))
            if not result.ok:
                logger.info("Rejected schedule for %s: %s", candidate.subject_code, result.reason)
                return MutationOutcome(None, result, version)
            model = crud.create_schedule_entry(db, payload, version)
            entry = ScheduleEntry.model_validate(model)
            version = crud.get_snapshot_version(db)
            logger.info("Created schedule entry %s (snapshot version %d)", entry.id, version)
            return MutationOutcome(entry, result, version)

    def update(self, db: Session, entry_id: int, payload: ScheduleEntryUpdate) -> MutationOutcome:
        with self._lock:
            version = self._check_version(db, payload.expected_version)
            candidate = self._update_candidate(db, entry_id, payload)
            result = conflicts.validate(candidate, snapshot(db), exclude_id=entry_id)
            if not result.ok:
                logger.info("Rejected edit of schedule entry %s: %s", entry_id, result.reason)
                return MutationOutcome(None, result, version)
            model = crud.update_schedule_entry(db, entry_id, payload, version)
            entry = ScheduleEntry.model_validate(model)
            version = crud.get_snapshot_version(db)
            logger.info("Updated schedule entry %s (snapshot version %d)", entry_id, version)
            return MutationOutcome(entry, result, version)

    def delete(self, db: Session, entry_id: int, expected_version: Optional[int] = None) -> int:
        with self._lock:
            observed = self._check_version(db, expected_version)
            crud.delete_schedule_entry(db, entry_id, observed)
            version = crud.get_snapshot_version(db)
            logger.info("Deleted schedule entry %s (snapshot version %d)", entry_id, version)
            return version

    def dry_run(
        self,
        db: Session,
        payload: ScheduleEntryCreate,
        exclude_id: Optional[int] = None,
        exhaustive: bool = False,
    ) -> list[ConflictResult]:
        candidate = self._create_candidate(db, payload)
        entries = snapshot(db)
        if exhaustive:
            return conflicts.validate_all(candidate, entries, exclude_id=exclude_id)
        return [conflicts.validate(candidate, entries, exclude_id=exclude_id)]


class AssignmentBook:
    """In-memory authority for teaching assignments, backed by a HistoryStore.

    History is loaded once. ``last_signature`` always describes what was last
    written successfully, so a failed save makes the next reconciliation
    report a change and try again.
    """

    def __init__(self, store: HistoryStore, settings: Settings):
        self.store = store
        self.settings = settings
        self._lock = threading.Lock()
        self._save_lock = threading.Lock()
        self._loaded = False
        self._current: list[TeachingAssignment] = []
        self.last_signature: Optional[str] = None

    def _ensure_loaded(self) -> None:
        if self._loaded:
            return
        # recomputed ids of legacy records can collide; the last one wins
        self._current = assignments.sort_assignments(assignments.merge_by_id([], self.store.load()))
        self.last_signature = assignments.signature(self._current)
        self._loaded = True
        logger.info("Loaded %d assignment history records", len(self._current))

    def refresh(
        self,
        db: Session,
        academic_year: Optional[str] = None,
        semester: Optional[str] = None,
    ) -> assignments.ReconcileResult:
        year = academic_year if academic_year is not None else self.settings.academic_year
        term = semester if semester is not None else self.settings.semester
        incoming = assignments.derive(schedules_by_block(db), year, term, instructor_directory(db))
        with self._lock:
            self._ensure_loaded()
            result = assignments.reconcile(self._current, incoming, self._current, self.last_signature)
            self._current = result.merged
        return result

    def persist(self) -> bool:
        with self._save_lock:
            with self._lock:
                self._ensure_loaded()
                records = list(self._current)
                current_signature = assignments.signature(records)
                if current_signature == self.last_signature:
                    return True
            saved = self.store.save(records)
            if saved:
                with self._lock:
                    self.last_signature = current_signature
            return saved

    def records(
        self, academic_year: Optional[str] = None, semester: Optional[str] = None
    ) -> list[TeachingAssignment]:
        with self._lock:
            self._ensure_loaded()
            records = list(self._current)
        if academic_year:
            records = [record for record in records if record.academic_year == academic_year]
        if semester:
            records = [record for record in records if record.semester == semester]
        return records
