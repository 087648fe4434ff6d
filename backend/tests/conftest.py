import os

os.environ.setdefault("BLOCKSCHED_DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from blocksched import models
from blocksched.config import Settings
from blocksched.history import DatabaseSlot, HistoryStore
from blocksched.main import app, get_assignment_book, get_db, get_schedule_service
from blocksched.scheduling import AssignmentBook, ScheduleService


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    models.Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def settings():
    return Settings(academic_year="2024-2025", semester="1st Semester")


@pytest.fixture()
def assignment_book(session_factory, settings):
    return AssignmentBook(HistoryStore(DatabaseSlot(session_factory), settings.history_key), settings)


@pytest.fixture()
def client(session_factory, settings, assignment_book):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    service = ScheduleService(settings)
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_schedule_service] = lambda: service
    app.dependency_overrides[get_assignment_book] = lambda: assignment_book

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
