"""Table builders for the portal command line."""
from __future__ import annotations

import typing as t

from rich.table import Table

from routine_core.dates import iso_to_display, is_iso_date
from routine_core.models import Booking
from routine_core.routine import SLOTS


STATUS_STYLES = {
    "requested": "yellow",
    "approved": "green",
    "declined": "red",
    "cancelled": "dim",
}


def display_date(iso: str) -> str:
    """dd/mm/yyyy for valid ISO dates, anything else unchanged."""
    return iso_to_display(iso) if is_iso_date(iso) else iso


def classes_table(title: str, rows: list[dict[str, t.Any]]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Slot", style="yellow")
    table.add_column("Course", style="white")
    table.add_column("Batch", style="cyan")
    table.add_column("Room", style="green")
    table.add_column("Teacher", style="white")
    for row in rows:
        table.add_row(row.get("slot", ""), row.get("course", ""), row.get("batch", ""),
                      row.get("room", ""), row.get("teacher", ""))
    return table


def week_table(title: str, week: dict[str, list[list[dict[str, t.Any]]]], show: str = "batch") -> Table:
    """
    Weekly matrix: one row per portal day, one column per slot.

    :param show: Second line of each cell, ``batch`` for teachers or
        ``teacher`` for batches.
    """
    table = Table(title=title, show_header=True, header_style="bold magenta", show_lines=True)
    table.add_column("Day", style="cyan")
    for slot in SLOTS:
        table.add_column(slot, style="white")
    for day, cells in week.items():
        rendered = []
        for cell in cells:
            rendered.append("\n".join(
                f"{c.get('course', '')}\n[dim]{c.get(show, '')} · {c.get('room', '')}[/dim]" for c in cell
            ))
        table.add_row(day, *rendered)
    return table


def bookings_table(title: str, bookings: t.Iterable[Booking]) -> Table:
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Id", style="dim", no_wrap=True)
    table.add_column("Date", style="yellow")
    table.add_column("Slot", style="yellow")
    table.add_column("Room", style="green")
    table.add_column("By", style="white")
    table.add_column("Contact", style="white")
    table.add_column("Status")
    for booking in bookings:
        person = booking.person
        if booking.user_type == "student" and booking.student is not None:
            who = f"{booking.student.name} ({booking.student.batch_section})"
        elif booking.teacher is not None:
            who = f"{booking.teacher.name} ({booking.teacher.initial})"
        else:
            who = booking.user_type
        style = STATUS_STYLES.get(booking.status, "white")
        table.add_row(
            booking.id,
            f"{display_date(booking.date)} {booking.day[:3]}",
            booking.slot,
            booking.room,
            who,
            " / ".join(v for v in (person.mobile, person.email) if v) if person else "",
            f"[{style}]{booking.status}[/{style}]",
        )
    return table
