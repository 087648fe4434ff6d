from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Callable, Optional, Protocol, Sequence

from sqlalchemy.orm import Session

from . import models
from .assignments import assignment_id
from .config import Settings
from .identity import TBA
from .schemas import UNASSIGNED_BLOCK, UNSPECIFIED_SEMESTER, UNSPECIFIED_YEAR, TeachingAssignment

logger = logging.getLogger(__name__)


class KeyValueSlot(Protocol):
    def read(self, key: str) -> Optional[str]: ...

    def write(self, key: str, value: str) -> None: ...


class DatabaseSlot:
    """Stores values in the ``kv_slots`` table, one short-lived session per call."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def read(self, key: str) -> Optional[str]:
        with self._session_factory() as db:
            record = db.get(models.KeyValueRecord, key)
            return record.value if record is not None else None

    def write(self, key: str, value: str) -> None:
        with self._session_factory() as db:
            record = db.get(models.KeyValueRecord, key)
            if record is None:
                db.add(models.KeyValueRecord(key=key, value=value))
            else:
                record.value = value
            db.commit()


class FileSlot:
    """Stores each key as ``<key>.json`` inside a directory."""

    def __init__(self, directory: str | Path):
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self._directory / f"{key}.json"

    def read(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def write(self, key: str, value: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        path = self._path(key)
        temp_path = path.with_suffix(".tmp")
        temp_path.write_text(value, encoding="utf-8")
        temp_path.replace(path)


def _text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _positive_int(value) -> Optional[int]:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def sanitize_record(raw) -> Optional[TeachingAssignment]:
    if not isinstance(raw, dict):
        return None
    subject_code = _text(raw.get("subjectCode"))
    if not subject_code:
        return None
    academic_year = _text(raw.get("academicYear")) or UNSPECIFIED_YEAR
    semester = _text(raw.get("semester")) or UNSPECIFIED_SEMESTER
    block = _text(raw.get("block")) or UNASSIGNED_BLOCK
    instructor_name = _text(raw.get("instructorName")) or TBA
    instructor_email = _text(raw.get("instructorEmail")) or None
    record_id = _text(raw.get("id"))
    if not record_id:
        record_id = assignment_id(
            academic_year, semester, block, subject_code, instructor_email or instructor_name
        )
    return TeachingAssignment(
        id=record_id,
        academic_year=academic_year,
        semester=semester,
        block=block,
        subject_code=subject_code,
        subject_description=_text(raw.get("subjectDescription")) or subject_code,
        instructor_id=_positive_int(raw.get("instructorId")),
        instructor_name=instructor_name,
        instructor_email=instructor_email,
    )


class HistoryStore:
    def __init__(self, slot: KeyValueSlot, key: str = "teaching_assignments_history_v1"):
        self.slot = slot
        self.key = key

    def load(self) -> list[TeachingAssignment]:
        try:
            payload = self.slot.read(self.key)
        except Exception:
            logger.warning("Unable to read assignment history from %s", self.key, exc_info=True)
            return []
        if not payload:
            return []
        try:
            parsed = json.loads(payload)
        except ValueError:
            logger.warning("Assignment history under %s is not valid JSON; starting empty", self.key)
            return []
        if not isinstance(parsed, list):
            logger.warning("Assignment history under %s is not a list; starting empty", self.key)
            return []
        records = []
        for raw in parsed:
            record = sanitize_record(raw)
            if record is None:
                logger.debug("Skipping malformed history record: %r", raw)
                continue
            records.append(record)
        return records

    def save(self, records: Sequence[TeachingAssignment]) -> bool:
        try:
            payload = json.dumps([record.model_dump(by_alias=True) for record in records])
            self.slot.write(self.key, payload)
        except Exception:
            logger.warning("Failed to persist %d assignment history records", len(records), exc_info=True)
            return False
        logger.info("Persisted %d assignment history records to %s", len(records), self.key)
        return True


def build_history_store(settings: Settings, session_factory: Callable[[], Session]) -> HistoryStore:
    if settings.history_backend == "file":
        slot: KeyValueSlot = FileSlot(settings.history_dir)
    else:
        slot = DatabaseSlot(session_factory)
    return HistoryStore(slot, settings.history_key)
