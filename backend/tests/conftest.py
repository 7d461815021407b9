"""Shared fixtures: in-memory database per test, temp object storage, API client."""

import os
import sys
import tempfile
from datetime import timedelta

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Settings are read at import time, so the environment goes first
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["PASSWORD_RESET_DEV_LINKS"] = "true"
os.environ["UPLOAD_DIR"] = tempfile.mkdtemp(prefix="practicum-uploads-")

import pytest

import practicum.models  # noqa: F401  (registers every table)
from practicum.clock import utcnow
from practicum.database import Base, SessionLocal, engine
from practicum.middleware.auth import hash_password
from practicum.models.observation import ObservationPeriod, StudentEnrollment
from practicum.models.user import User
from practicum.rubric import QUESTION_KEYS
from practicum.services.storage import LocalObjectStorage

PASSWORD = "secret-pass"


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def storage(tmp_path):
    return LocalObjectStorage(str(tmp_path / "objects"), "/files")


@pytest.fixture
def client(db, storage):
    from fastapi.testclient import TestClient

    from practicum.main import app
    from practicum.services.storage import get_storage

    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def answers(value=4, **overrides):
    """A complete q1..q26 answer map."""
    data = {key: value for key in QUESTION_KEYS}
    data.update(overrides)
    return data


def make_user(db, user_id, role="student", year=None, password=None, **fields):
    user = User(
        id=user_id,
        username=fields.pop("username", user_id),
        password_hash=hash_password(password) if password else "not-a-hash",
        role=role,
        year=year,
        first_name=fields.pop("first_name", "First"),
        last_name=fields.pop("last_name", user_id),
        **fields,
    )
    db.add(user)
    db.commit()
    return user


def make_period(
    db,
    student_ids=(),
    started_days_ago=0,
    year_level=1,
    academic_year="2568",
    status="active",
    length_days=60,
    name=None,
):
    start = utcnow() - timedelta(days=started_days_ago, hours=1)
    period = ObservationPeriod(
        name=name or f"Period {academic_year}/{year_level}",
        academic_year=academic_year,
        year_level=year_level,
        start_date=start,
        end_date=start + timedelta(days=length_days),
        status=status,
    )
    db.add(period)
    db.flush()
    for student_id in student_ids:
        db.add(StudentEnrollment(observation_id=period.id, student_id=student_id, status="active"))
    db.commit()
    return period


def school_form(name="Ban Nong School", **overrides):
    data = {
        "name": name,
        "affiliation": "Primary Education Office 1",
        "address": "12 Moo 3",
        "districtArea": "Area 1",
        "subdistrict": "Nong Bua",
        "amphoe": "Mueang",
        "province": "Nakhon Sawan",
        "postcode": "60000",
        "gradeLevels": ["P1", "P2", "P3"],
        "principal": "Somchai Jaidee",
        "studentCount": 320,
        "teacherCount": 18,
        "staffCount": 4,
        "phone": "056000000",
        "email": "office@bannong.ac.th",
    }
    data.update(overrides)
    return data


def login(client, username, password=PASSWORD, remember_me=False):
    response = client.post(
        "/api/auth/login",
        json={"studentId": username, "password": password, "rememberMe": remember_me},
    )
    assert response.status_code == 200, response.text
    return response
