# -*- coding: utf-8 -*-
"""Tests for routine normalization and the routine queries."""
import io

import pandas as pd
import pytest

from routine_core.models import Booking, ClassRow
from routine_core.routine import (
    PORTAL_DAYS,
    SLOTS,
    batch_matcher,
    batch_options,
    classes_for_batch,
    classes_for_teacher,
    day_timeline,
    empty_rooms,
    extract_version,
    normalize_batch_query,
    normalize_routine,
    parse_routine_file,
    parse_teacher_field,
    teacher_initial_only,
    weekly_matrix,
)
from routine_core.sheet_utils import SheetParseError


def _rows():
    return [
        ClassRow("Sunday", "08:30-10:00", "701", "61_A", "CSE101", "ABC - Alice Brown"),
        ClassRow("Sunday", "11:30-01:00", "702", "61_A1", "CSE102L", "XYZ - Xavier Young"),
        ClassRow("Sunday", "08:30-10:00", "703", "62_B", "MAT201", "XYZ"),
        ClassRow("Sunday", "10:00-11:30", "703", "62_B", "MAT202", "ABCD - Other Person"),
        ClassRow("Monday", "10:00-11:30", "701", "61_A", "CSE101", "abc"),
    ]


def test_normalize_routine_maps_headers_in_any_order():
    """Headers are matched by alias regardless of column order."""
    records = [
        {"Room": " 701 ", "Time Slot": "08:30 – 10:00", "Day": "sun", "Batch": "61_A",
         "Course Code": "CSE101", "Teacher": "ABC - Alice Brown"},
    ]
    rows = normalize_routine(records)
    assert rows == [ClassRow("Sunday", "08:30-10:00", "701", "61_A", "CSE101", "ABC - Alice Brown")]


def test_normalize_routine_drops_incomplete_and_header_rows():
    records = [
        {"Day": "Sunday", "Slot": "", "Room": "702"},
        {"Day": "", "Slot": "08:30-10:00", "Room": "702"},
        {"Day": "Day", "Slot": "Slot", "Room": "Room"},
        {"Day": "Monday", "Slot": "10:00-11:30", "Room": ""},
    ]
    rows = normalize_routine(records)
    assert len(rows) == 1
    assert rows[0].day == "Monday"
    assert rows[0].room == ""
    assert rows[0].batch == "", "absent cells default to empty strings"


def test_normalize_routine_requires_slot_column():
    with pytest.raises(SheetParseError, match="slot"):
        normalize_routine([{"Day": "Sunday", "Room": "701"}])


def test_parse_routine_file_orders_by_day_slot_and_room():
    csv = (
        "Day,Slot,Room\n"
        "Monday,10:00-11:30,701\n"
        "Saturday,10:00-11:30,701\n"
        "Sunday,09:00-10:00,701\n"
        "Saturday,08:30-10:00,701\n"
        "Sunday,08:30-10:00,702\n"
        "Sunday,08:30-10:00,701\n"
    ).encode("utf-8")
    rows = parse_routine_file(csv, "routine.csv")
    assert [(r.day, r.slot, r.room) for r in rows] == [
        ("Saturday", "08:30-10:00", "701"),
        ("Saturday", "10:00-11:30", "701"),
        ("Sunday", "08:30-10:00", "701"),
        ("Sunday", "08:30-10:00", "702"),
        ("Sunday", "09:00-10:00", "701"),  # unknown slots sort last
        ("Monday", "10:00-11:30", "701"),
    ]


def test_parse_routine_file_reads_csv_fixture(routine_csv):
    rows = parse_routine_file(routine_csv, "routine_v2.csv")
    assert len(rows) == 5
    assert all(r.day and r.slot for r in rows)
    assert {r.room for r in rows} == {"701", "702", "703"}


def test_parse_routine_file_uses_weekday_sheet_names():
    """A workbook with one sheet per weekday needs no day column."""
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        pd.DataFrame([{"Slot": "10:00-11:30", "Room": "701", "Batch": "61_A"}]).to_excel(
            writer, sheet_name="Monday", index=False)
        pd.DataFrame([{"Slot": "08:30-10:00", "Room": "702", "Batch": "62_B"}]).to_excel(
            writer, sheet_name="Sunday", index=False)
        pd.DataFrame([{"Remark": "Routine subject to change"}]).to_excel(
            writer, sheet_name="Notes", index=False)
    rows = parse_routine_file(buf.getvalue(), "routine.xlsx")
    assert [(r.day, r.room) for r in rows] == [("Sunday", "702"), ("Monday", "701")]


def test_parse_routine_file_rejects_unreadable_content():
    with pytest.raises(SheetParseError):
        parse_routine_file(b"not a workbook", "routine.xlsx")
    with pytest.raises(SheetParseError):
        parse_routine_file(b"Room,Batch\n701,61_A\n", "routine.csv")


def test_parse_teacher_field():
    ref = parse_teacher_field("  abc - Alice Brown ")
    assert (ref.initial, ref.name, ref.initial_only) == ("ABC", "Alice Brown", False)
    ref = parse_teacher_field("xyz")
    assert (ref.initial, ref.name, ref.initial_only) == ("XYZ", "", True)
    assert teacher_initial_only("ABC - Alice - Senior") == "ABC"


def test_batch_query_folds_lab_sections():
    assert normalize_batch_query("61_a1") == "61_A"
    assert normalize_batch_query("61_A") == "61_A"
    assert normalize_batch_query(" 62_b ") == "62_B"


def test_batch_options_include_base_batches():
    rows = [ClassRow(batch=b) for b in ("61_A1", "61_A2", "62_B", "10_C", "")]
    assert batch_options(rows) == ["10_C", "61_A", "61_A1", "61_A2", "62_B"]
    assert batch_options(rows, "61") == ["61_A", "61_A1", "61_A2"]
    assert batch_options(rows, limit=2) == ["10_C", "61_A"]


def test_classes_for_batch_matches_lab_sections():
    found = classes_for_batch(_rows(), "61_A1", "Sunday")
    assert [(r.room, r.batch) for r in found] == [("701", "61_A"), ("702", "61_A1")]
    assert classes_for_batch(_rows(), "61_A", "Sunday", slot="11:30-01:00")[0].room == "702"
    assert classes_for_batch(_rows(), "", "Sunday") == []


def test_classes_for_teacher_is_exact_on_initial():
    found = classes_for_teacher(_rows(), "abc", "Sunday")
    assert [r.course for r in found] == ["CSE101"], "ABCD must not match ABC"
    assert [r.day for r in classes_for_teacher(_rows(), "ABC - Alice Brown", "Monday")] == ["Monday"]


def test_weekly_matrix_covers_portal_days_and_slots():
    matrix = weekly_matrix(_rows(), batch_matcher("62_B"))
    assert list(matrix) == list(PORTAL_DAYS)
    assert all(len(cells) == len(SLOTS) for cells in matrix.values())
    sunday = matrix["Sunday"]
    assert [r.course for r in sunday[0]] == ["MAT201"]
    assert [r.course for r in sunday[1]] == ["MAT202"]
    assert matrix["Saturday"] == [[] for _ in SLOTS]


def test_day_timeline_inserts_breaks_between_distant_slots():
    classes = [
        ClassRow("Sunday", "08:30-10:00", "701"),
        ClassRow("Sunday", "10:00-11:30", "701"),
        ClassRow("Sunday", "02:30-04:00", "702"),
    ]
    timeline = day_timeline(classes)
    assert [e["kind"] for e in timeline] == ["class", "class", "break", "class"]
    assert timeline[2] == {"kind": "break", "from": "11:30", "to": "02:30"}


def test_empty_rooms_accounts_for_bookings():
    rows = _rows()
    bookings = [
        Booking(id="1", date="2024-06-16", day="Sunday", slot="08:30-10:00", room="702",
                user_type="student", status="requested"),
        Booking(id="2", date="2024-06-16", day="Sunday", slot="10:00-11:30", room="702",
                user_type="student", status="approved"),
        Booking(id="3", date="2024-06-16", day="Sunday", slot="08:30-10:00", room="702",
                user_type="student", status="declined"),
    ]
    assert empty_rooms(rows, "Sunday", "08:30-10:00", bookings) == [{"room": "702", "pending": True}]
    assert empty_rooms(rows, "Sunday", "10:00-11:30", bookings) == [{"room": "701", "pending": False}]
    assert empty_rooms(rows, "Saturday", "08:30-10:00") == [
        {"room": "701", "pending": False},
        {"room": "702", "pending": False},
        {"room": "703", "pending": False},
    ]


def test_empty_rooms_folds_slot_spacing():
    rows = _rows()
    bookings = [
        Booking(id="1", date="2024-06-16", day="Sunday", slot="08:30 - 10:00", room="702",
                user_type="student", status="approved"),
    ]
    assert empty_rooms(rows, "Sunday", "08:30 – 10:00", bookings) == [], "spaced and en-dash slots match"


def test_extract_version():
    assert extract_version("routine_v3.xlsx") == "v3"
    assert extract_version("Routine V12 final.xlsx") == "v12"
    assert extract_version("review.xlsx") is None
    assert extract_version("routine_v3.xlsx", "Spring-2") == "Spring-2"
    assert extract_version(None) is None
