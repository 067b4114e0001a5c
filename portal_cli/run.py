# -*- coding: utf-8 -*-
"""
Command line client for the routine portal service.

Public commands look up the published routine and submit bookings;
administrator commands need a session token from ``login`` (passed with
``--token`` or the PORTAL_ADMIN_TOKEN environment variable).
"""
import sys
import typing as t

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from mcp_wrappers.portal.mcp_service import (
    PortalServiceError,
    _batch_options,
    _create_booking,
    _empty_rooms,
    _get_published,
    _list_bookings,
    _list_public_bookings,
    _login,
    _publish,
    _search_teachers,
    _student_routine,
    _teacher_routine,
    _upcoming_bookings,
    _update_booking_status,
    _upload_file,
    _week_window,
)
from portal_cli.utils import bookings_table, classes_table, display_date, week_table
from routine_core.dates import parse_date_input, today_iso
from routine_core.models import ClassRow
from routine_core.routine import SLOTS, extract_version, sort_rows


console = Console()

token_option = click.option(
    "--token",
    envvar="PORTAL_ADMIN_TOKEN",
    default=None,
    help="Admin session token (defaults to PORTAL_ADMIN_TOKEN).",
)


def fail(message: str) -> t.NoReturn:
    console.print(f"[red]Error:[/red] {message}", file=sys.stderr)
    raise SystemExit(1)


def call(fn: t.Callable[..., t.Any], *args: t.Any, **kwargs: t.Any) -> t.Any:
    """Run a portal call, turning service errors into a CLI error."""
    try:
        return fn(*args, **kwargs)
    except PortalServiceError as e:
        fail(str(e))


def resolve_date(value: t.Optional[str]) -> str:
    """Accept dd/mm/yyyy (or ISO) input; today when omitted."""
    if not value:
        return today_iso()
    iso = parse_date_input(value)
    if iso is None:
        fail(f"Invalid date '{value}'. Use dd/mm/yyyy.")
    return iso


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
def cli() -> None:
    """Class routine and room booking portal."""


# -----------------------------
# Routine lookups
# -----------------------------

@cli.command()
def routine() -> None:
    """Show the whole published routine."""
    published = call(_get_published, "routine")
    rows = sort_rows(ClassRow.from_dict(item) for item in published.get("data") or [])
    meta = published.get("meta") or {}
    if not rows:
        console.print("[yellow]No routine is published yet.[/yellow]")
        return
    version = extract_version(meta.get("fileName"), meta.get("version"))
    subtitle = " · ".join(v for v in (meta.get("fileName"), version, meta.get("effectiveFrom")) if v)
    table = Table(title="Published routine", caption=subtitle or None, header_style="bold magenta")
    for column in ("Day", "Slot", "Room", "Batch", "Course", "Teacher"):
        table.add_column(column)
    for row in rows:
        table.add_row(row.day, row.slot, row.room, row.batch, row.course, row.teacher)
    console.print(table)


@cli.command()
@click.argument("batch")
@click.option("--day", default="", help="Weekday (defaults to today).")
@click.option("--slot", type=click.Choice(SLOTS), default=None, help="Only this slot.")
@click.option("--week", is_flag=True, help="Show the whole week.")
def student(batch: str, day: str, slot: t.Optional[str], week: bool) -> None:
    """Classes of BATCH, e.g. 61_A (lab sections like 61_A1 fold onto 61_A)."""
    result = call(_student_routine, batch, day, slot or "", week)
    if week:
        console.print(week_table(f"Week of {batch.upper()}", result.get("week") or {}, show="teacher"))
        return
    if not result.get("data"):
        suggestions = call(_batch_options, batch)
        console.print(f"[yellow]No classes for {batch} on {result.get('day')}.[/yellow]")
        if suggestions:
            console.print(f"[dim]Batches: {', '.join(suggestions)}[/dim]")
        return
    console.print(classes_table(f"{batch.upper()} · {result.get('day')}", result["data"]))


@cli.command()
@click.argument("initial")
@click.option("--day", default="", help="Weekday (defaults to today).")
@click.option("--slot", type=click.Choice(SLOTS), default=None, help="Only this slot.")
@click.option("--week", is_flag=True, help="Show the whole week.")
def teacher(initial: str, day: str, slot: t.Optional[str], week: bool) -> None:
    """Classes of the teacher with INITIAL."""
    result = call(_teacher_routine, initial, day, slot or "", week)
    info = result.get("teacher")
    if info:
        lines = [f"[bold]{info.get('name') or info.get('initial')}[/bold] ({info.get('initial')})"]
        for label, key in (("Designation", "designation"), ("Mobile", "mobile"),
                           ("Email", "email"), ("Office desk", "officeDesk")):
            if info.get(key):
                lines.append(f"{label}: {info[key]}")
        if result.get("dayOff"):
            lines.append(f"Day off: {', '.join(result['dayOff'])}")
        console.print(Panel("\n".join(lines), border_style="blue"))
    elif not result.get("data") and not week:
        options = call(_search_teachers, initial, 5)
        if options:
            console.print(f"[dim]Did you mean: {', '.join(o['initial'] for o in options)}[/dim]")

    if week:
        console.print(week_table(f"Week of {result.get('initial')}", result.get("week") or {}, show="batch"))
        return
    if not result.get("data"):
        console.print(f"[yellow]No classes for {result.get('initial')} on {result.get('day')}.[/yellow]")
        return
    console.print(classes_table(f"{result.get('initial')} · {result.get('day')}", result["data"]))
    breaks = [e for e in result.get("timeline") or [] if e.get("kind") == "break"]
    for entry in breaks:
        console.print(f"[dim]Break {entry.get('from')} - {entry.get('to')}[/dim]")


@cli.command("empty-rooms")
@click.option("--date", "date_text", default=None, help="dd/mm/yyyy (defaults to today).")
@click.option("--slot", type=click.Choice(SLOTS), required=True)
def empty_rooms(date_text: t.Optional[str], slot: str) -> None:
    """Rooms free at a date and slot."""
    iso = resolve_date(date_text)
    result = call(_empty_rooms, iso, slot)
    rooms = result.get("data") or []
    if not rooms:
        console.print("[yellow]No empty rooms.[/yellow]")
        return
    table = Table(title=f"Empty rooms · {display_date(iso)} {result.get('day')} {slot}", header_style="bold magenta")
    table.add_column("Room", style="green")
    table.add_column("Note", style="yellow")
    for room in rooms:
        table.add_row(room["room"], "pending request" if room.get("pending") else "")
    console.print(table)


@cli.command()
@click.option("--anchor", default=None, help="First day, dd/mm/yyyy (defaults to today).")
def week(anchor: t.Optional[str]) -> None:
    """The seven-day date strip."""
    tiles = call(_week_window, resolve_date(anchor))
    console.print("  ".join(f"[cyan]{tile['short']}[/cyan] {tile['display']}" for tile in tiles))


# -----------------------------
# Bookings
# -----------------------------

@cli.command()
@click.option("--date", "date_text", default=None, help="dd/mm/yyyy (defaults to today).")
@click.option("--slot", type=click.Choice(SLOTS), required=True)
@click.option("--room", required=True)
@click.option("--as", "user_type", type=click.Choice(["student", "teacher"]), default="student")
@click.option("--name", required=True)
@click.option("--id", "person_id", default="", help="Student or teacher id.")
@click.option("--batch", default="", help="Batch and section.")
@click.option("--course", default="")
@click.option("--initial", default="", help="Teacher initial (for a student: the course teacher's).")
@click.option("--mobile", default="")
@click.option("--email", default="")
@click.option("--comment", default="")
def book(date_text, slot, room, user_type, name, person_id, batch, course, initial, mobile, email, comment) -> None:
    """Request a room booking."""
    if user_type == "student":
        person = {"name": name, "studentId": person_id, "batchSection": batch, "course": course,
                  "courseTeacherInitial": initial, "mobile": mobile, "email": email}
    else:
        person = {"name": name, "teacherId": person_id, "initial": initial, "course": course,
                  "batchSection": batch, "mobile": mobile, "email": email}
    booking = call(_create_booking, {
        "date": resolve_date(date_text),
        "slot": slot,
        "room": room,
        "userType": user_type,
        user_type: person,
        "comment": comment,
    })
    console.print(f"[green]✓ Booking requested[/green] {booking.id} · {display_date(booking.date)} {booking.slot} room {booking.room}")


@cli.command()
@click.option("--date", "date_text", default=None, help="dd/mm/yyyy; all bookings when omitted (admin).")
@click.option("--status", type=click.Choice(["all", "requested", "approved", "declined", "cancelled"]), default="all")
@click.option("--search", "query", default="", help="Free-text search.")
@click.option("--public", is_flag=True, help="Show the public view of one date.")
@click.option("--upcoming", is_flag=True, help="Today and the next five days (admin).")
@token_option
def bookings(date_text, status, query, public, upcoming, token) -> None:
    """List bookings."""
    if public:
        iso = resolve_date(date_text)
        rows = call(_list_public_bookings, iso)
        table = Table(title=f"Bookings · {display_date(iso)}", header_style="bold magenta")
        for column in ("Slot", "Room", "Status", "For"):
            table.add_column(column)
        for row in rows:
            person = row.get("student") or row.get("teacher") or {}
            label = " ".join(v for v in (person.get("batchSection"), person.get("course"),
                                         person.get("initial") or person.get("courseTeacherInitial")) if v)
            table.add_row(row["slot"], row["room"], row["status"], label)
        console.print(table)
        return

    if upcoming:
        result = call(_upcoming_bookings, token, 6, status, query)
        counts = result.get("counts") or {}
        console.print(" ".join(f"{name}: [bold]{count}[/bold]" for name, count in counts.items()))
        console.print(bookings_table("Upcoming bookings", result["data"]))
        return

    iso = resolve_date(date_text) if date_text else ""
    found = call(_list_bookings, token, iso, status, query)
    console.print(bookings_table(f"Bookings {display_date(iso)}".strip(), found))


def _review(booking_id: str, status: str, token: t.Optional[str]) -> None:
    booking = call(_update_booking_status, booking_id, status, token)
    console.print(f"[green]✓[/green] Booking {booking.id} is now [bold]{booking.status}[/bold]")


@cli.command()
@click.argument("booking_id")
@token_option
def approve(booking_id: str, token: t.Optional[str]) -> None:
    """Approve a booking (admin)."""
    _review(booking_id, "approved", token)


@cli.command()
@click.argument("booking_id")
@token_option
def decline(booking_id: str, token: t.Optional[str]) -> None:
    """Decline a booking (admin)."""
    _review(booking_id, "declined", token)


@cli.command()
@click.argument("booking_id")
@token_option
def cancel(booking_id: str, token: t.Optional[str]) -> None:
    """Cancel a booking (admin)."""
    _review(booking_id, "cancelled", token)


# -----------------------------
# Administration
# -----------------------------

@cli.command()
@click.option("--email", prompt=True)
@click.option("--password", prompt=True, hide_input=True)
def login(email: str, password: str) -> None:
    """Log in and print the session token."""
    token = call(_login, email, password)
    console.print("[green]✓ Logged in.[/green] Export the token to use admin commands:")
    click.echo(f"export PORTAL_ADMIN_TOKEN={token}")


@cli.command()
@click.argument("kind", type=click.Choice(["routine", "tif"]))
@click.argument("path_or_url")
@click.option("--version", "version", default="", help="Version tag, e.g. v3.")
@click.option("--effective-from", default="", help="Date the routine takes effect.")
@token_option
def upload(kind: str, path_or_url: str, version: str, effective_from: str, token: t.Optional[str]) -> None:
    """Upload and publish a routine or teacher-info (tif) spreadsheet (admin)."""
    result = call(_upload_file, kind, path_or_url, token, version, effective_from)
    console.print(f"[green]✓ Saved[/green] {result.get('key')}")
    if result.get("warn"):
        console.print(f"[yellow]{result['warn']}[/yellow] {result.get('error', '')}")


@cli.command()
@token_option
def publish(token: t.Optional[str]) -> None:
    """Re-parse and publish the latest uploads (admin)."""
    published = call(_publish, token)
    for kind, done in published.items():
        mark = "[green]✓[/green]" if done else "[dim]-[/dim]"
        console.print(f"{mark} {kind}")


if __name__ == "__main__":
    cli()
