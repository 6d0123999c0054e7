import os
import tempfile
from datetime import datetime
from pathlib import Path

import pytest

# the engine is built from the environment at import time, so point it at a
# throwaway SQLite file before anything from the package is imported
_DB_DIR = Path(tempfile.mkdtemp(prefix="coursemanager-tests-"))
os.environ["DATABASE_URL"] = f"sqlite:///{_DB_DIR / 'test.db'}"
os.environ["ENV"] = "dev"

from sqlmodel import SQLModel, Session  # noqa: E402
from coursemanager.database import engine, create_db_and_tables  # noqa: E402
from coursemanager import services  # noqa: E402

# fixed clock for services: 2030-01-01 00:00 UTC
NOW = datetime(2030, 1, 1)


@pytest.fixture(autouse=True)
def reset_db():
    """Ensure an empty schema for every test."""
    SQLModel.metadata.drop_all(engine)
    create_db_and_tables()
    yield


@pytest.fixture
def session():
    with Session(engine) as s:
        yield s


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make(is_organizer=False, age=30, **kwargs):
        counter["n"] += 1
        fields = {
            "firstname": "Anna",
            "surname": f"Nowak{counter['n']}",
            "age": age,
            "email": f"user{counter['n']}@example.com",
            "password": "secret",
            "is_organizer": is_organizer,
        }
        fields.update(kwargs)
        return services.UserService(session).register(**fields)
    return _make


@pytest.fixture
def organizer(make_user):
    return make_user(is_organizer=True, firstname="Jan", surname="Kowalski")


@pytest.fixture
def classroom(session):
    return services.ClassroomService(session).create("Room 101")


@pytest.fixture
def event_service(session):
    return services.EventService(session, now=lambda: NOW)


@pytest.fixture
def event_request(organizer, classroom):
    """Build an event request dict for `EventService.create_event`."""
    def _request(start, end, **overrides):
        req = {
            "name": "Python basics",
            "start_datetime": start,
            "end_datetime": end,
            "max_participants": 10,
            "min_age": None,
            "info": None,
            "organizer_id": organizer.id,
            "classroom_id": classroom.id,
            "tag_ids": [],
        }
        req.update(overrides)
        return req
    return _request
