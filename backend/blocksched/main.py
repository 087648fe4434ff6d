from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from . import conflicts, crud, models, reports, schemas
from .config import get_settings
from .db import SessionLocal, engine
from .exceptions import AppError
from .history import build_history_store
from .identity import name_key, room_key
from .scheduling import AssignmentBook, ScheduleService, snapshot

logger = logging.getLogger(__name__)

settings = get_settings()


async def app_error_handler(request: Request, exc: AppError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "details": exc.details},
    )


app = FastAPI(title=settings.project_name)
app.add_exception_handler(AppError, app_error_handler)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


models.Base.metadata.create_all(bind=engine)

_schedule_service = ScheduleService(settings)
_assignment_book: Optional[AssignmentBook] = None


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_schedule_service() -> ScheduleService:
    return _schedule_service


def get_assignment_book() -> AssignmentBook:
    global _assignment_book
    if _assignment_book is None:
        _assignment_book = AssignmentBook(build_history_store(settings, SessionLocal), settings)
    return _assignment_book


def conflict_response(result: schemas.ConflictResult) -> JSONResponse:
    return JSONResponse(status_code=409, content=result.model_dump(by_alias=True, mode="json"))


def reconcile_assignments(db: Session, book: AssignmentBook, background_tasks: BackgroundTasks) -> None:
    result = book.refresh(db)
    if result.changed:
        logger.debug("Assignment signature changed; scheduling history save")
        background_tasks.add_task(book.persist)


@app.get("/schedule", response_model=List[schemas.ScheduleEntry])
def list_schedule(
    block: str | None = None,
    instructor: str | None = None,
    room: str | None = None,
    db: Session = Depends(get_db),
):
    entries = snapshot(db)
    if block:
        entries = [entry for entry in entries if entry.block_name == block]
    if instructor:
        entries = [
            entry for entry in entries
            if entry.instructor_name and name_key(entry.instructor_name) == name_key(instructor)
        ]
    if room:
        entries = [entry for entry in entries if room_key(entry.room) == room_key(room)]
    return entries


@app.get("/schedule/version", response_model=schemas.SnapshotVersion)
def get_schedule_version(
    db: Session = Depends(get_db), service: ScheduleService = Depends(get_schedule_service)
):
    return schemas.SnapshotVersion(version=service.current_version(db))


@app.get("/schedule/{entry_id}", response_model=schemas.ScheduleEntry)
def get_schedule(entry_id: int, db: Session = Depends(get_db)):
    entry = crud.get_schedule_entry(db, entry_id)
    if not entry:
        raise HTTPException(status_code=404, detail="Not found")
    return entry


@app.post("/schedule/validate", response_model=List[schemas.ConflictResult])
def validate_schedule(
    payload: schemas.ScheduleEntryCreate,
    exclude_id: int | None = None,
    exhaustive: bool = False,
    db: Session = Depends(get_db),
    service: ScheduleService = Depends(get_schedule_service),
):
    return service.dry_run(db, payload, exclude_id=exclude_id, exhaustive=exhaustive)


@app.post("/schedule", response_model=schemas.MutationResponse)
def create_schedule(
    payload: schemas.ScheduleEntryCreate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    service: ScheduleService = Depends(get_schedule_service),
    book: AssignmentBook = Depends(get_assignment_book),
):
    outcome = service.create(db, payload)
    if not outcome.committed:
        return conflict_response(outcome.conflict)
    reconcile_assignments(db, book, background_tasks)
    return schemas.MutationResponse(entry=outcome.entry, version=outcome.version)


@app.put("/schedule/{entry_id}", response_model=schemas.MutationResponse)
def update_schedule(
    entry_id: int,
    payload: schemas.ScheduleEntryUpdate,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    service: ScheduleService = Depends(get_schedule_service),
    book: AssignmentBook = Depends(get_assignment_book),
):
    outcome = service.update(db, entry_id, payload)
    if not outcome.committed:
        return conflict_response(outcome.conflict)
    reconcile_assignments(db, book, background_tasks)
    return schemas.MutationResponse(entry=outcome.entry, version=outcome.version)


@app.delete("/schedule/{entry_id}")
def delete_schedule(
    entry_id: int,
    background_tasks: BackgroundTasks,
    expected_version: int | None = None,
    db: Session = Depends(get_db),
    service: ScheduleService = Depends(get_schedule_service),
    book: AssignmentBook = Depends(get_assignment_book),
):
    version = service.delete(db, entry_id, expected_version)
    reconcile_assignments(db, book, background_tasks)
    return {"ok": True, "version": version}


@app.get("/conflicts", response_model=schemas.ConflictReport)
def list_conflicts(db: Session = Depends(get_db)):
    grouped = {}
    for conflict in conflicts.find_conflicts(snapshot(db)):
        grouped.setdefault((conflict.entry_id, conflict.kind), []).append(conflict.conflicts_with)
    response = [
        schemas.ConflictSummary(
            entry_id=entry_id,
            conflicts_with=conflict_ids,
            conflict_type=conflict_type,
        )
        for (entry_id, conflict_type), conflict_ids in grouped.items()
    ]
    return schemas.ConflictReport(conflicts=response)


@app.get("/blocks", response_model=List[schemas.Block])
def list_blocks(db: Session = Depends(get_db)):
    return crud.list_blocks(db)


@app.post("/blocks", response_model=schemas.Block)
def create_block(payload: schemas.BlockCreate, db: Session = Depends(get_db)):
    return crud.create_block(db, payload)


@app.get("/subjects", response_model=List[schemas.Subject])
def list_subjects(db: Session = Depends(get_db)):
    return crud.list_subjects(db)


@app.post("/subjects", response_model=schemas.Subject)
def create_subject(payload: schemas.SubjectCreate, db: Session = Depends(get_db)):
    return crud.create_subject(db, payload)


@app.get("/subjects/{code}/instructors", response_model=List[schemas.Instructor])
def list_eligible_instructors(code: str, db: Session = Depends(get_db)):
    return crud.eligible_instructors(db, code)


@app.get("/instructors", response_model=List[schemas.Instructor])
def list_instructors(db: Session = Depends(get_db)):
    return crud.list_instructors(db)


@app.post("/instructors", response_model=schemas.Instructor)
def create_instructor(payload: schemas.InstructorCreate, db: Session = Depends(get_db)):
    return crud.create_instructor(db, payload)


@app.get("/assignments", response_model=List[schemas.TeachingAssignment])
def list_assignments(
    academic_year: str | None = None,
    semester: str | None = None,
    book: AssignmentBook = Depends(get_assignment_book),
):
    return book.records(academic_year, semester)


@app.post("/assignments/refresh", response_model=List[schemas.TeachingAssignment])
def refresh_assignments(
    background_tasks: BackgroundTasks,
    academic_year: str | None = None,
    semester: str | None = None,
    db: Session = Depends(get_db),
    book: AssignmentBook = Depends(get_assignment_book),
):
    result = book.refresh(db, academic_year, semester)
    if result.changed:
        background_tasks.add_task(book.persist)
    return result.merged


@app.get("/reports/assignments.csv")
def export_assignments_csv(book: AssignmentBook = Depends(get_assignment_book)):
    rows = reports.build_assignment_rows(book.records())
    return Response(reports.write_csv(rows), media_type="text/csv")


@app.get("/reports/assignments.xlsx")
def export_assignments_xlsx(book: AssignmentBook = Depends(get_assignment_book)):
    rows = reports.build_assignment_rows(book.records())
    content = reports.write_xlsx(rows, title="Assignments")
    return Response(
        content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    )


def filter_entries(entries: list[schemas.ScheduleEntry], group: str, filter_value: str | None):
    if group not in {"block", "instructor", "room"}:
        raise HTTPException(status_code=400, detail="Invalid group")
    if not filter_value:
        return entries
    if group == "block":
        return [e for e in entries if e.block_name == filter_value]
    if group == "instructor":
        return [e for e in entries if e.instructor_name and name_key(e.instructor_name) == name_key(filter_value)]
    return [e for e in entries if room_key(e.room) == room_key(filter_value)]


@app.get("/reports/timetable/{group}.csv")
def export_timetable_csv(group: str, filter_value: str | None = None, db: Session = Depends(get_db)):
    entries = filter_entries(snapshot(db), group, filter_value)
    rows = reports.build_timetable_grid(entries)
    return Response(reports.write_csv(rows), media_type="text/csv")
