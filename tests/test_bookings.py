# -*- coding: utf-8 -*-
"""Tests for the booking ledger."""
import logging

import pytest

from conftest import student_booking
from routine_core.bookings import (
    BookingConflict,
    BookingLedger,
    BookingNotFound,
    BookingValidationError,
    InvalidTransition,
    filter_bookings,
    group_by_date,
    sort_newest_first,
    status_counts,
)
from routine_core.models import Booking, ClassRow
from routine_core.routine import empty_rooms


def teacher_booking(**overrides):
    booking = {
        "date": "2024-06-16",
        "slot": "10:00-11:30",
        "room": "703",
        "user_type": "teacher",
        "teacher": {"name": "Alice Brown", "initial": "ABC", "mobile": "01711000000",
                    "email": "alice@uni.edu", "course": "CSE101", "batch_section": "61_A"},
    }
    booking.update(overrides)
    return booking


def test_create_records_requested_booking(ledger):
    booking = ledger.create(student_booking())
    assert booking.status == "requested"
    assert booking.day == "Sunday", "day is derived from the date"
    assert len(booking.id) == 32
    assert booking.created_at and booking.created_at == booking.updated_at
    assert booking.student.student_id == "221-15-0001"
    assert booking.teacher is None
    assert ledger.get(booking.id) is booking


def test_create_accepts_snake_case_teacher_booking(ledger):
    booking = ledger.create(teacher_booking())
    assert booking.user_type == "teacher"
    assert booking.teacher.batch_section == "61_A"
    assert booking.person is booking.teacher


@pytest.mark.parametrize("overrides, message", [
    ({"date": ""}, "date is required"),
    ({"date": "16/06/2024"}, "YYYY-MM-DD"),
    ({"slot": ""}, "slot"),
    ({"room": "  "}, "room"),
    ({"userType": "guest"}, "userType"),
    ({"student": {"name": ""}}, "name"),
    ({"userType": "teacher"}, "teacher details"),
])
def test_create_rejects_invalid_submissions(ledger, overrides, message):
    with pytest.raises(BookingValidationError, match=message):
        ledger.create(student_booking(**overrides))
    assert ledger.list_all() == []


def test_create_normalizes_slot_and_derives_day(ledger):
    booking = ledger.create(student_booking(slot=" 08:30 - 10:00 ", day="Monday"))
    assert booking.slot == "08:30-10:00"
    assert booking.day == "Sunday", "day always follows the date"


def test_create_rejects_unknown_slot(ledger):
    with pytest.raises(BookingValidationError, match="unknown slot"):
        ledger.create(student_booking(slot="07:00-08:30"))
    assert ledger.list_all() == []


def test_approved_booking_blocks_room_for_spaced_slot(ledger):
    rows = [
        ClassRow("Sunday", "08:30-10:00", "701", "61_A", "CSE101", "ABC"),
        ClassRow("Sunday", "10:00-11:30", "702", "61_A", "CSE102", "ABC"),
    ]
    booking = ledger.create(student_booking(slot="08:30 - 10:00", room="702"))
    assert empty_rooms(rows, "Sunday", "08:30-10:00", ledger.list_by_date("2024-06-16")) == [
        {"room": "702", "pending": True},
    ]
    ledger.update_status(booking.id, "approved")
    assert empty_rooms(rows, "Sunday", "08:30-10:00", ledger.list_by_date("2024-06-16")) == []


def test_public_projection_hides_contact_details(ledger):
    kept = ledger.create(student_booking())
    ledger.create(teacher_booking())
    declined = ledger.create(student_booking(room="701"))
    ledger.update_status(declined.id, "declined")
    ledger.create(student_booking(date="2024-06-17"))

    public = ledger.list_public_by_date("2024-06-16")
    assert len(public) == 2
    student_view = next(p for p in public if p["userType"] == "student")
    assert student_view == {
        "room": kept.room,
        "slot": kept.slot,
        "status": "requested",
        "userType": "student",
        "student": {"batchSection": "61_A", "course": "CSE101", "courseTeacherInitial": "ABC"},
    }
    teacher_view = next(p for p in public if p["userType"] == "teacher")
    assert teacher_view["teacher"] == {"initial": "ABC", "batchSection": "61_A", "course": "CSE101"}
    for text in ("rahim@student.uni.edu", "01900000000", "Rahim", "alice@uni.edu", "01711000000"):
        assert text not in repr(public)


def test_update_status_transitions(ledger):
    booking = ledger.create(student_booking())
    assert ledger.update_status(booking.id, "approved").status == "approved"
    # Re-applying the same status is allowed
    assert ledger.update_status(booking.id, "approved").status == "approved"
    with pytest.raises(InvalidTransition):
        ledger.update_status(booking.id, "declined")
    with pytest.raises(BookingNotFound):
        ledger.update_status("missing", "approved")
    with pytest.raises(BookingValidationError):
        ledger.update_status(booking.id, "requested")


def test_cancel_from_requested(ledger):
    booking = ledger.create(student_booking())
    assert ledger.update_status(booking.id, "cancelled").status == "cancelled"
    with pytest.raises(InvalidTransition):
        ledger.update_status(booking.id, "approved")


def test_ledger_persists_to_store(store):
    first = BookingLedger(store)
    booking = first.create(student_booking())
    first.update_status(booking.id, "approved")

    reloaded = BookingLedger(store).get(booking.id)
    assert reloaded is not None
    assert reloaded.status == "approved"
    assert reloaded.student.email == "rahim@student.uni.edu"


def test_double_approval_is_logged_by_default(ledger, caplog):
    a = ledger.create(student_booking())
    b = ledger.create(teacher_booking(slot="08:30-10:00", room="702"))
    ledger.update_status(a.id, "approved")
    with caplog.at_level(logging.WARNING, logger="routine_core.bookings"):
        ledger.update_status(b.id, "approved")
    assert ledger.get(b.id).status == "approved"
    assert "already holds room 702" in caplog.text


def test_double_approval_can_be_rejected(store):
    ledger = BookingLedger(store, reject_double_approval=True)
    a = ledger.create(student_booking())
    b = ledger.create(student_booking())
    ledger.update_status(a.id, "approved")
    with pytest.raises(BookingConflict):
        ledger.update_status(b.id, "approved")
    assert ledger.get(b.id).status == "requested"


def _booking(id, date, created_at="", status="requested", **kwargs):
    return Booking(id=id, date=date, day="", slot="08:30-10:00", room="701",
                   user_type="student", status=status, created_at=created_at, **kwargs)


def test_sort_newest_first_falls_back_to_date():
    bookings = [
        _booking("old", "2024-06-20", "2024-06-01T08:00:00+00:00"),
        _booking("new", "2024-06-10", "2024-06-05T08:00:00+00:00"),
        _booking("legacy", "2024-06-03"),
    ]
    assert [b.id for b in sort_newest_first(bookings)] == ["new", "legacy", "old"]


def test_filter_counts_and_grouping(ledger):
    a = ledger.create(student_booking())
    b = ledger.create(teacher_booking(date="2024-06-15"))
    ledger.update_status(b.id, "approved")
    bookings = ledger.list_all()

    assert [x.id for x in filter_bookings(bookings, "approved")] == [b.id]
    assert [x.id for x in filter_bookings(bookings, "all", "01900000000")] == [a.id]
    assert [x.id for x in filter_bookings(bookings, None, "makeup")] == [a.id]
    assert filter_bookings(bookings, "declined") == []
    assert [x.id for x in filter_bookings(bookings, "requested")] == [a.id], "approved bookings leave the queue"
    assert status_counts(bookings) == {"all": 2, "requested": 1, "approved": 1, "declined": 0, "cancelled": 0}
    assert [(d, [x.id for x in group]) for d, group in group_by_date(bookings)] == [
        ("2024-06-15", [b.id]),
        ("2024-06-16", [a.id]),
    ]
