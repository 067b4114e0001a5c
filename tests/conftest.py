# -*- coding: utf-8 -*-
"""Shared fixtures: sample spreadsheets, an isolated store and a running service."""
import pytest
from fastapi.testclient import TestClient

from routine_core.bookings import BookingLedger
from routine_core.store import PublicationStore


ADMIN_EMAIL = "admin@example.edu"
ADMIN_PASSWORD = "s3cret-pass"

ROUTINE_CSV = (
    "Day,Time Slot,Room,Batch,Course Code,Teacher\n"
    "Sunday,08:30 - 10:00,701,61_A,CSE101,ABC - Alice Brown\n"
    "Sunday,11:30-01:00,702,61_A1,CSE102L,XYZ - Xavier Young\n"
    "Sunday,08:30-10:00,703,62_B,MAT201,XYZ - Xavier Young\n"
    "Monday,10:00-11:30,701,61_A,CSE101,ABC - Alice Brown\n"
    "Sunday,02:30-04:00,701,62_B,CSE101,ABC\n"
    "Day,Time Slot,Room,Batch,Course Code,Teacher\n"
    "Friday,,704,,,\n"
).encode("utf-8")

TIF_CSV = (
    "Initial,Teacher Name,Designation,Mobile,Email,Day Off\n"
    'abc,Alice Brown,Lecturer,01711000000,alice@uni.edu,"Friday, Saturday"\n'
    "XYZ,Xavier Young,Assistant Professor,01811000000,xavier@uni.edu,Tuesday\n"
).encode("utf-8")


def student_booking(**overrides):
    booking = {
        "date": "2024-06-16",
        "slot": "08:30-10:00",
        "room": "702",
        "userType": "student",
        "student": {
            "name": "Rahim Uddin",
            "studentId": "221-15-0001",
            "batchSection": "61_A",
            "mobile": "01900000000",
            "course": "CSE101",
            "courseTeacherInitial": "ABC",
            "email": "rahim@student.uni.edu",
        },
        "comment": "Makeup class",
    }
    booking.update(overrides)
    return booking


@pytest.fixture
def routine_csv() -> bytes:
    return ROUTINE_CSV


@pytest.fixture
def tif_csv() -> bytes:
    return TIF_CSV


@pytest.fixture
def store(tmp_path) -> PublicationStore:
    return PublicationStore(tmp_path / "data")


@pytest.fixture
def ledger(store) -> BookingLedger:
    return BookingLedger(store)


@pytest.fixture
def portal_env(tmp_path, monkeypatch):
    monkeypatch.setenv("PORTAL_DATA_DIR", str(tmp_path / "portal"))
    monkeypatch.setenv("PORTAL_ADMIN_EMAIL", ADMIN_EMAIL)
    monkeypatch.setenv("PORTAL_ADMIN_PASSWORD", ADMIN_PASSWORD)
    monkeypatch.setenv("PORTAL_JWT_SECRET", "test-secret")
    monkeypatch.delenv("PORTAL_ADMIN_PASSWORD_HASH", raising=False)
    monkeypatch.delenv("PORTAL_COOKIE_SECURE", raising=False)
    monkeypatch.delenv("PORTAL_ENV", raising=False)
    monkeypatch.delenv("PORTAL_REJECT_DOUBLE_APPROVAL", raising=False)
    monkeypatch.delenv("PORTAL_ADMIN_TOKEN", raising=False)


@pytest.fixture
def client(portal_env):
    from services.portal_service.app import app

    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_client(client):
    response = client.post("/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200, response.text
    return client
