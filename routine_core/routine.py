# -*- coding: utf-8 -*-
"""
Class routine normalization and queries.

Uploaded routine sheets are turned into ``ClassRow`` lists here, and the
student, teacher and empty-room views query those lists.
"""
from __future__ import annotations

import logging
import re
import typing as t

from .dates import PORTAL_DAYS, WEEKDAYS, canonical_weekday
from .models import Booking, ClassRow, TeacherRef
from .sheet_utils import SheetParseError, SheetRecords, match_columns, normalize_header, read_sheets


logger = logging.getLogger(__name__)

SLOTS: tuple[str, ...] = (
    "08:30-10:00",
    "10:00-11:30",
    "11:30-01:00",
    "01:00-02:30",
    "02:30-04:00",
    "04:00-05:30",
)

ROUTINE_COLUMNS: dict[str, tuple[str, ...]] = {
    "day": ("day", "days", "day of week", "weekday"),
    "slot": ("slot", "time", "time slot", "timeslot", "slot time", "period"),
    "room": ("room", "room no", "room number", "classroom", "class room"),
    "batch": ("batch", "section", "batch section", "batch sec"),
    "course": ("course", "course code", "subject", "course title"),
    "teacher": ("teacher", "teacher initial", "faculty", "instructor", "course teacher"),
}

_LAB_SECTION_RE = re.compile(r"^(\d+_[A-Z])\d$")
_VERSION_RE = re.compile(r"(?:^|[\W_])v(\d+)(?:[\W_]|$)", re.IGNORECASE)


def normalize_slot(value: str) -> str:
    """Drop whitespace and unify dashes: "08:30 – 10:00" -> "08:30-10:00"."""
    return re.sub(r"\s+", "", value or "").replace("–", "-").replace("—", "-")


def slot_index(slot: str) -> int:
    """Position in SLOTS; unknown slots sort after every known one."""
    try:
        return SLOTS.index(slot)
    except ValueError:
        return len(SLOTS)


def slot_range(slot: str) -> tuple[str, str]:
    parts = re.split(r"-|–|—", re.sub(r"\s+", "", slot or ""))
    start = parts[0] if parts and parts[0] else slot
    end = parts[1] if len(parts) > 1 else ""
    return start, end


def day_index(day: str) -> int:
    if day in PORTAL_DAYS:
        return PORTAL_DAYS.index(day)
    if day in WEEKDAYS:
        return len(PORTAL_DAYS)
    return len(PORTAL_DAYS) + 1


def is_routine_entry(row: ClassRow) -> bool:
    """A row is a genuine class only when both slot and day are filled in."""
    return bool(row.slot.strip()) and bool(row.day.strip())


def _is_header_repeat(day: str, slot: str) -> bool:
    return (
        normalize_header(day) in ROUTINE_COLUMNS["day"]
        or normalize_header(slot) in ROUTINE_COLUMNS["slot"]
    )


def normalize_routine(records: SheetRecords, default_day: str = "") -> list[ClassRow]:
    """
    Convert header-keyed sheet records into class rows.

    :param records: Rows as produced by ``read_sheets``.
    :param default_day: Day used when the sheet has no day column (a
        workbook with one sheet per weekday).
    :return: Genuine class rows, absent cells defaulted to "".
    """
    if not records:
        return []
    columns = match_columns(records[0].keys(), ROUTINE_COLUMNS)
    if "slot" not in columns or ("day" not in columns and not default_day):
        missing = [c for c in ("day", "slot") if c not in columns]
        raise SheetParseError(f"Missing required columns: {', '.join(missing)}")

    rows: list[ClassRow] = []
    for record in records:
        values = {name: record.get(header, "") or "" for name, header in columns.items()}
        raw_day = values.get("day", "") or default_day
        raw_slot = values.get("slot", "")
        if _is_header_repeat(raw_day, raw_slot):
            continue
        row = ClassRow(
            day=canonical_weekday(raw_day) or raw_day.strip(),
            slot=normalize_slot(raw_slot),
            room=values.get("room", "").strip(),
            batch=values.get("batch", "").strip(),
            course=values.get("course", "").strip(),
            teacher=values.get("teacher", "").strip(),
        )
        if is_routine_entry(row):
            rows.append(row)
    return rows


def sort_rows(rows: t.Iterable[ClassRow]) -> list[ClassRow]:
    return sorted(rows, key=lambda r: (day_index(r.day), slot_index(r.slot), r.room))


def parse_routine_file(content: bytes, filename: str) -> list[ClassRow]:
    """
    Parse an uploaded routine workbook or CSV into ordered class rows.

    Sheets without any recognizable routine columns are skipped, unless no
    sheet qualifies, in which case the error of the first sheet is raised.
    """
    rows: list[ClassRow] = []
    first_error: t.Optional[SheetParseError] = None
    parsed_any = False
    for sheet_name, records in read_sheets(content, filename):
        if not records:
            continue
        try:
            rows.extend(normalize_routine(records, default_day=canonical_weekday(sheet_name) or ""))
            parsed_any = True
        except SheetParseError as e:
            logger.info("Skipping sheet %r of %s: %s", sheet_name, filename, e)
            first_error = first_error or e
    if not parsed_any:
        raise first_error or SheetParseError(f"No routine rows found in {filename}")
    logger.info("Parsed %d class rows from %s", len(rows), filename)
    return sort_rows(rows)


def rows_from_payload(data: t.Any) -> list[ClassRow]:
    """Class rows of a published document; anything but a list means nothing is published."""
    if not isinstance(data, list):
        return []
    return [ClassRow.from_dict(item) for item in data if isinstance(item, dict)]


# ---------------------------------------------------------------------------
# Teacher field
# ---------------------------------------------------------------------------

def parse_teacher_field(text: str) -> TeacherRef:
    """
    Parse a routine teacher field.

    Grammar: ``INITIAL [" - " NAME]``. The initial is everything before the
    first " - ", stripped and upper-cased. Fields without the delimiter are
    taken as an initial on its own.
    """
    text = (text or "").strip()
    if " - " in text:
        initial, name = text.split(" - ", 1)
        return TeacherRef(initial=initial.strip().upper(), name=name.strip(), initial_only=False)
    return TeacherRef(initial=text.upper(), initial_only=True)


def teacher_initial_only(text: str) -> str:
    return parse_teacher_field(text).initial


# ---------------------------------------------------------------------------
# Student view
# ---------------------------------------------------------------------------

def normalize_batch_query(query: str) -> str:
    """Fold a lab sub-section onto its base batch: "61_A1" -> "61_A"."""
    text = (query or "").strip().upper()
    m = _LAB_SECTION_RE.match(text)
    return m.group(1) if m else text


def _natural_key(value: str) -> list[t.Any]:
    return [int(p) if p.isdigit() else p.lower() for p in re.split(r"(\d+)", value)]


def batch_options(rows: t.Iterable[ClassRow], query: str = "", limit: int = 12) -> list[str]:
    """Batch suggestions, including base batches of lab sub-sections."""
    found = {r.batch.strip() for r in rows if r.batch.strip()}
    for batch in list(found):
        m = _LAB_SECTION_RE.match(batch)
        if m:
            found.add(m.group(1))
    options = sorted(found, key=_natural_key)
    needle = (query or "").strip().lower()
    if needle:
        options = [b for b in options if needle in b.lower()]
    return options[:limit]


def classes_for_batch(rows: t.Iterable[ClassRow], batch: str, day: str, slot: str = "") -> list[ClassRow]:
    needle = normalize_batch_query(batch)
    if not needle or not day:
        return []
    found = [
        r for r in rows
        if r.day == day
        and (not slot or r.slot == slot)
        and needle in r.batch.upper()
        and is_routine_entry(r)
    ]
    return sorted(found, key=lambda r: slot_index(r.slot))


def classes_for_teacher(rows: t.Iterable[ClassRow], initial: str, day: str, slot: str = "") -> list[ClassRow]:
    wanted = teacher_initial_only(initial)
    if not wanted or not day:
        return []
    found = [
        r for r in rows
        if r.day == day
        and (not slot or r.slot == slot)
        and teacher_initial_only(r.teacher) == wanted
        and is_routine_entry(r)
    ]
    return sorted(found, key=lambda r: slot_index(r.slot))


def weekly_matrix(
        rows: t.Iterable[ClassRow],
        predicate: t.Callable[[ClassRow], bool],
) -> dict[str, list[list[ClassRow]]]:
    """Portal day -> one list of matching rows per slot, in SLOTS order."""
    selected = [r for r in rows if is_routine_entry(r) and predicate(r)]
    return {
        day: [[r for r in selected if r.day == day and r.slot == s] for s in SLOTS]
        for day in PORTAL_DAYS
    }


def batch_matcher(batch: str) -> t.Callable[[ClassRow], bool]:
    needle = normalize_batch_query(batch)
    return lambda r: bool(needle) and needle in r.batch.upper()


def teacher_matcher(initial: str) -> t.Callable[[ClassRow], bool]:
    wanted = teacher_initial_only(initial)
    return lambda r: bool(wanted) and teacher_initial_only(r.teacher) == wanted


def day_timeline(classes: list[ClassRow]) -> list[dict[str, t.Any]]:
    """
    Interleave a day's classes with breaks.

    A break entry is inserted between two consecutive classes whose slots
    are more than one slot apart.
    """
    out: list[dict[str, t.Any]] = []
    for i, row in enumerate(classes):
        out.append({"kind": "class", "row": row})
        if i + 1 >= len(classes):
            break
        nxt = classes[i + 1]
        if slot_index(nxt.slot) - slot_index(row.slot) > 1:
            out.append({"kind": "break", "from": slot_range(row.slot)[1], "to": slot_range(nxt.slot)[0]})
    return out


# ---------------------------------------------------------------------------
# Empty rooms
# ---------------------------------------------------------------------------

def all_rooms(rows: t.Iterable[ClassRow]) -> list[str]:
    return sorted({r.room for r in rows if r.room}, key=_natural_key)


def empty_rooms(
        rows: list[ClassRow],
        day: str,
        slot: str,
        bookings: t.Iterable[Booking] = (),
) -> list[dict[str, t.Any]]:
    """
    Rooms with no class at (day, slot).

    Rooms holding an approved booking for the slot are left out; rooms with
    a pending request stay in the list flagged ``pending``.
    """
    slot = normalize_slot(slot)
    occupied = {r.room for r in rows if r.day == day and r.slot == slot and is_routine_entry(r)}
    approved: set[str] = set()
    pending: set[str] = set()
    for booking in bookings:
        if normalize_slot(booking.slot) != slot:
            continue
        if booking.status == "approved":
            approved.add(booking.room)
        elif booking.status == "requested":
            pending.add(booking.room)
    return [
        {"room": room, "pending": room in pending}
        for room in all_rooms(rows)
        if room not in occupied and room not in approved
    ]


def extract_version(file_name: t.Optional[str], meta_version: t.Optional[str] = None) -> t.Optional[str]:
    """Explicit version wins; otherwise a ``v<digits>`` token in the file name."""
    if meta_version:
        return meta_version
    if not file_name:
        return None
    m = _VERSION_RE.search(file_name)
    return f"v{m.group(1)}" if m else None
