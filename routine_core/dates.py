"""
Calendar helpers anchored to the institution's time zone.

Dates are carried internally as ISO ``YYYY-MM-DD`` strings and shown to
users as ``dd/mm/yyyy``. The week helpers build the Saturday-first day
strip used by the empty-room and booking views.
"""
from __future__ import annotations

import os
import re
import typing as t
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta

import pytz


DEFAULT_TIMEZONE = os.getenv("PORTAL_TIMEZONE", "Asia/Dhaka")

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
PORTAL_DAYS = ("Saturday", "Sunday", "Monday", "Tuesday", "Wednesday", "Thursday")
SHORT_DAYS = {day: day[:3] for day in WEEKDAYS}

_DISPLAY_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def today_iso(timezone: str = DEFAULT_TIMEZONE, now: t.Optional[datetime] = None) -> str:
    """Today's calendar date in ``timezone`` as ISO."""
    tz = pytz.timezone(timezone)
    current = now.astimezone(tz) if now is not None else datetime.now(tz)
    return current.date().isoformat()


def parse_iso(iso: str) -> date:
    return date.fromisoformat(iso)


def is_iso_date(value: str) -> bool:
    if not isinstance(value, str) or not re.fullmatch(r"\d{4}-\d{2}-\d{2}", value):
        return False
    try:
        parse_iso(value)
    except ValueError:
        return False
    return True


def weekday_from_iso(iso: str) -> str:
    return WEEKDAYS[parse_iso(iso).weekday()]


def canonical_weekday(value: str) -> t.Optional[str]:
    """Map "sun", "SUNDAY", "Sun." to "Sunday"; None when not a weekday."""
    text = re.sub(r"[^a-z]", "", (value or "").lower())
    if len(text) < 3:
        return None
    for day in WEEKDAYS:
        if day.lower().startswith(text) or text.startswith(day.lower()):
            return day
    return None


def iso_to_display(iso: str) -> str:
    """dd/mm/yyyy, for display only."""
    d = parse_iso(iso)
    return f"{d.day:02d}/{d.month:02d}/{d.year:04d}"


def display_to_iso(text: str) -> t.Optional[str]:
    """
    Parse ``dd/mm/yyyy`` (single-digit day and month allowed) into ISO.

    The parsed date is formatted back and compared with the zero-padded
    input; anything that does not round-trip returns None.
    """
    m = _DISPLAY_RE.match((text or "").strip())
    if not m:
        return None
    try:
        iso = date(int(m.group(3)), int(m.group(2)), int(m.group(1))).isoformat()
    except ValueError:
        return None
    expected = f"{m.group(1).zfill(2)}/{m.group(2).zfill(2)}/{m.group(3)}"
    return iso if iso_to_display(iso) == expected else None


def parse_date_input(text: str) -> t.Optional[str]:
    """Accept either ISO or dd/mm/yyyy input."""
    text = (text or "").strip()
    if is_iso_date(text):
        return text
    return display_to_iso(text)


@dataclass
class DateSelection:
    """
    A date field: the canonical ISO value plus the text the user is editing.

    ``commit_display`` is called when the user leaves the field. Input that
    does not round-trip is rejected and the text reverts to the last valid
    value; the canonical date never changes on rejection.
    """
    iso: str
    display: str = field(default="")

    def __post_init__(self) -> None:
        if not self.display:
            self.display = iso_to_display(self.iso)

    def pick(self, iso: str) -> None:
        self.iso = iso
        self.display = iso_to_display(iso)

    def commit_display(self, text: str) -> bool:
        parsed = display_to_iso(text)
        if parsed is None:
            self.display = iso_to_display(self.iso)
            return False
        self.pick(parsed)
        return True

    @property
    def weekday(self) -> str:
        return weekday_from_iso(self.iso)


def add_days(iso: str, n: int) -> str:
    return (parse_iso(iso) + timedelta(days=n)).isoformat()


def start_of_week_saturday(iso: str) -> str:
    d = parse_iso(iso)
    # date.weekday(): Monday=0 .. Saturday=5
    delta = (d.weekday() - 5) % 7
    return (d - timedelta(days=delta)).isoformat()


def week_window(anchor_iso: str) -> list[str]:
    """
    The seven days of the anchor's Saturday-first week, with every day that
    falls before the anchor pushed forward by one week.

    The result is chronological and starts at the anchor.
    """
    start = start_of_week_saturday(anchor_iso)
    days = []
    for i in range(7):
        iso = add_days(start, i)
        if iso < anchor_iso:
            iso = add_days(iso, 7)
        days.append(iso)
    return sorted(days)


def portal_window(anchor_iso: str) -> list[str]:
    """``week_window`` without Friday."""
    return [iso for iso in week_window(anchor_iso) if weekday_from_iso(iso) != "Friday"]


def date_for_weekday(anchor_iso: str, weekday: str) -> t.Optional[str]:
    """The date inside the anchor's window that falls on ``weekday``."""
    for iso in week_window(anchor_iso):
        if weekday_from_iso(iso) == weekday:
            return iso
    return None


def week_tiles(anchor_iso: str, selected_iso: t.Optional[str] = None) -> list[dict[str, t.Any]]:
    """Day strip entries for display."""
    tiles = []
    for iso in week_window(anchor_iso):
        weekday = weekday_from_iso(iso)
        tiles.append({
            "date": iso,
            "weekday": weekday,
            "short": SHORT_DAYS[weekday],
            "dayNumber": iso[8:10],
            "display": iso_to_display(iso),
            "selected": iso == selected_iso,
        })
    return tiles


def upcoming_dates(start_iso: str, n: int = 6) -> list[str]:
    return [add_days(start_iso, i) for i in range(n)]


def portal_day_chips(today: str) -> list[dict[str, t.Any]]:
    """For each portal day, the next date on or after ``today`` that falls on it."""
    chips = []
    base = parse_iso(today)
    for day in PORTAL_DAYS:
        delta = (WEEKDAYS.index(day) - base.weekday()) % 7
        d = base + timedelta(days=delta)
        chips.append({"day": day, "short": SHORT_DAYS[day], "date": d.isoformat(), "dayNumber": d.day})
    return chips


def default_portal_day(today: str) -> str:
    weekday = weekday_from_iso(today)
    return weekday if weekday in PORTAL_DAYS else "Saturday"
