# -*- coding: utf-8 -*-
"""
Teacher directory built from the teacher-info (TIF) spreadsheet.
"""
from __future__ import annotations

import logging
import re
import typing as t

from .dates import canonical_weekday
from .models import ClassRow, TeacherInfo
from .routine import parse_teacher_field
from .sheet_utils import SheetParseError, SheetRecords, match_columns, normalize_header, read_sheets


logger = logging.getLogger(__name__)

TEACHER_COLUMNS: dict[str, tuple[str, ...]] = {
    "name": ("name", "teacher name", "full name", "teacher"),
    "initial": ("initial", "initials", "teacher initial", "short name"),
    "designation": ("designation", "title", "position"),
    "mobile": ("mobile", "mobile no", "mobile number", "phone", "contact", "contact no"),
    "email": ("email", "e mail", "email address", "mail"),
    "office_desk": ("office desk", "desk", "office", "office room", "desk no"),
}

_DAY_OFF_MARKERS = ("day off", "off day", "dayoff", "offday")
_DAY_SPLIT_RE = re.compile(r",|/|&|;|\band\b", re.IGNORECASE)


def _is_day_off_header(header: str) -> bool:
    norm = normalize_header(header)
    return any(marker in norm for marker in _DAY_OFF_MARKERS)


def split_days(value: str) -> list[str]:
    """Split a day-off cell into canonical weekday names, keeping unknown text as given."""
    days: list[str] = []
    for piece in _DAY_SPLIT_RE.split(value or ""):
        piece = piece.strip()
        if piece:
            days.append(canonical_weekday(piece) or piece)
    return days


def build_directory(records: SheetRecords) -> list[TeacherInfo]:
    """
    Convert TIF sheet records into directory entries.

    :param records: Rows as produced by ``read_sheets``.
    :return: One entry per row that has an initial or a name.
    """
    if not records:
        return []
    headers = list(records[0].keys())
    columns = match_columns(headers, TEACHER_COLUMNS)
    if "initial" not in columns:
        raise SheetParseError("Missing required column: initial")
    day_off_headers = [h for h in headers if _is_day_off_header(h) and h not in columns.values()]

    directory: list[TeacherInfo] = []
    for record in records:
        values = {name: (record.get(header, "") or "").strip() for name, header in columns.items()}
        if not values.get("initial") and not values.get("name"):
            continue
        day_off: list[str] = []
        for header in day_off_headers:
            for day in split_days(record.get(header, "")):
                if day not in day_off:
                    day_off.append(day)
        directory.append(TeacherInfo(
            name=values.get("name", ""),
            initial=values.get("initial", "").upper(),
            designation=values.get("designation", ""),
            mobile=values.get("mobile", ""),
            email=values.get("email", ""),
            office_desk=values.get("office_desk", ""),
            day_off=day_off,
        ))
    return directory


def parse_teacher_info_file(content: bytes, filename: str) -> list[TeacherInfo]:
    """Parse an uploaded TIF workbook or CSV; every sheet with an initial column contributes."""
    directory: list[TeacherInfo] = []
    parsed_any = False
    for sheet_name, records in read_sheets(content, filename):
        if not records:
            continue
        try:
            directory.extend(build_directory(records))
            parsed_any = True
        except SheetParseError:
            logger.info("Skipping sheet %r of %s: no initial column", sheet_name, filename)
    if not parsed_any:
        raise SheetParseError("Teacher info sheet has no initial column. Check column headers.")
    logger.info("Parsed %d teacher entries from %s", len(directory), filename)
    return directory


def directory_from_payload(data: t.Any) -> list[TeacherInfo]:
    if not isinstance(data, list):
        return []
    return [TeacherInfo.from_dict(item) for item in data if isinstance(item, dict)]


def find_by_initial(directory: t.Iterable[TeacherInfo], query: str) -> t.Optional[TeacherInfo]:
    """
    Exact, case-insensitive lookup by initial.

    The query may be a full routine teacher field ("ABC - Name"); only the
    initial part takes part in the comparison.
    """
    wanted = parse_teacher_field(query).initial
    if not wanted:
        return None
    for teacher in directory:
        if parse_teacher_field(teacher.initial).initial == wanted:
            return teacher
    return None


def day_off_list(teacher: t.Optional[TeacherInfo]) -> list[str]:
    if teacher is None:
        return []
    return list(teacher.day_off)


def initial_options(
        directory: t.Iterable[TeacherInfo],
        rows: t.Iterable[ClassRow] = (),
) -> list[dict[str, str]]:
    """Picker options; falls back to initials found in the routine when no directory is published."""
    directory = list(directory)
    if directory:
        options = [
            {"initial": teacher.initial.strip(), "name": teacher.name}
            for teacher in directory
            if teacher.initial.strip()
        ]
        return sorted(options, key=lambda o: o["initial"])
    found = {parse_teacher_field(r.teacher).initial for r in rows}
    return [{"initial": ini, "name": ""} for ini in sorted(i for i in found if i)]


def search_teachers(options: list[dict[str, str]], query: str, limit: int = 20) -> list[dict[str, str]]:
    """Substring filter on initial or name, for the initial picker search box."""
    needle = (query or "").strip().lower()
    if not needle:
        return options[:limit]
    return [
        o for o in options
        if needle in o["initial"].lower() or needle in (o.get("name") or "").lower()
    ][:limit]
