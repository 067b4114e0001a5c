# -*- coding: utf-8 -*-
"""
Room booking ledger.

Bookings are created by public submissions in the "requested" state and
reviewed by an administrator, who moves them to a terminal state.
"""
from __future__ import annotations

import logging
import typing as t
import uuid
from datetime import datetime, timezone

from .dates import is_iso_date, weekday_from_iso
from .models import (
    BOOKING_STATUSES,
    TERMINAL_STATUSES,
    USER_TYPES,
    Booking,
    StudentContact,
    TeacherContact,
    known_kwargs,
)
from .routine import SLOTS, normalize_slot
from .store import BOOKINGS_KEY, PublicationStore, utc_now_iso


logger = logging.getLogger(__name__)

REVIEW_STATUSES: tuple[str, ...] = ("approved", "declined", "cancelled")


class BookingValidationError(ValueError):
    """A booking submission or status update is missing or has invalid fields."""


class BookingNotFound(KeyError):
    """No booking with the given id."""


class InvalidTransition(ValueError):
    """A booking in a terminal state cannot move to another state."""


class BookingConflict(ValueError):
    """Another approved booking already holds the room for that date and slot."""


def _text(value: t.Any) -> str:
    return "" if value is None else str(value).strip()


class BookingLedger:
    """
    Bookings keyed by id, persisted as one JSON document in a PublicationStore.

    :param store: Storage for ``bookings.json``.
    :param reject_double_approval: Refuse to approve a booking when the
        same (date, slot, room) already has an approved booking. When off,
        such approvals only log a warning.
    """

    def __init__(self, store: PublicationStore, reject_double_approval: bool = False) -> None:
        self.store = store
        self.reject_double_approval = reject_double_approval
        self._bookings: dict[str, Booking] = {}
        for item in store.get_json(BOOKINGS_KEY) or []:
            booking = Booking.from_dict(item)
            self._bookings[booking.id] = booking

    def _save(self) -> None:
        self.store.set_json(BOOKINGS_KEY, [b.to_dict() for b in self._bookings.values()])

    def create(self, data: t.Mapping[str, t.Any]) -> Booking:
        """
        Validate a submission and record it as "requested".

        :param data: Submission fields (camelCase or snake_case): date, day,
            slot, room, userType, the matching student/teacher record and an
            optional comment. ``day`` is always derived from ``date`` and the
            slot is folded to its canonical "HH:MM-HH:MM" form.
        :return: The stored booking.
        """
        fields = known_kwargs(Booking, data or {})
        date = _text(fields.get("date"))
        if not date:
            raise BookingValidationError("date is required")
        if not is_iso_date(date):
            raise BookingValidationError("date must be YYYY-MM-DD")
        day = weekday_from_iso(date)
        slot = normalize_slot(_text(fields.get("slot")))
        room = _text(fields.get("room"))
        user_type = _text(fields.get("user_type"))
        missing = [name for name, value in (("slot", slot), ("room", room), ("userType", user_type)) if not value]
        if missing:
            raise BookingValidationError(f"{', '.join(missing)} required")
        if user_type not in USER_TYPES:
            raise BookingValidationError("userType must be 'student' or 'teacher'")
        if slot not in SLOTS:
            raise BookingValidationError(f"unknown slot: {slot}")

        person = fields.get(user_type)
        if not isinstance(person, t.Mapping) or not _text(person.get("name")):
            raise BookingValidationError(f"{user_type} details with a name are required")
        if user_type == "student":
            student = StudentContact(**{k: _text(v) for k, v in known_kwargs(StudentContact, person).items()})
            teacher = None
        else:
            student = None
            teacher = TeacherContact(**{k: _text(v) for k, v in known_kwargs(TeacherContact, person).items()})

        now = utc_now_iso()
        booking = Booking(
            id=uuid.uuid4().hex,
            date=date,
            day=day,
            slot=slot,
            room=room,
            user_type=user_type,
            status="requested",
            student=student,
            teacher=teacher,
            comment=_text(fields.get("comment")),
            created_at=now,
            updated_at=now,
        )
        self._bookings[booking.id] = booking
        self._save()
        logger.info("Booking %s requested: %s %s room %s (%s)", booking.id, date, slot, room, user_type)
        return booking

    def get(self, booking_id: str) -> t.Optional[Booking]:
        return self._bookings.get(booking_id)

    def list_by_date(self, date: str) -> list[Booking]:
        return [b for b in self._bookings.values() if b.date == date]

    def list_public_by_date(self, date: str) -> list[dict[str, t.Any]]:
        """Condensed projection of the date's requested and approved bookings."""
        return [
            b.to_public_dict()
            for b in self._bookings.values()
            if b.date == date and b.status in ("requested", "approved")
        ]

    def list_all(self) -> list[Booking]:
        return list(self._bookings.values())

    def update_status(self, booking_id: str, status: str) -> Booking:
        """
        Review a booking.

        Re-applying the current status rewrites it unchanged. A booking that
        already reached a terminal status cannot move to a different one.
        """
        if status not in REVIEW_STATUSES:
            raise BookingValidationError(f"status must be one of {', '.join(REVIEW_STATUSES)}")
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise BookingNotFound(booking_id)
        if booking.status != status and booking.status in TERMINAL_STATUSES:
            raise InvalidTransition(f"booking is already {booking.status}")
        if status == "approved" and booking.status != "approved":
            self._check_double_approval(booking)

        booking.status = status
        booking.updated_at = utc_now_iso()
        self._save()
        logger.info("Booking %s %s", booking_id, status)
        return booking

    def _check_double_approval(self, booking: Booking) -> None:
        clash = [
            other for other in self._bookings.values()
            if other.id != booking.id
            and other.status == "approved"
            and (other.date, other.slot, other.room) == (booking.date, booking.slot, booking.room)
        ]
        if not clash:
            return
        if self.reject_double_approval:
            raise BookingConflict(
                f"room {booking.room} is already approved for {booking.date} {booking.slot}"
            )
        logger.warning(
            "Booking %s approved while %s already holds room %s on %s %s",
            booking.id, clash[0].id, booking.room, booking.date, booking.slot,
        )


# ---------------------------------------------------------------------------
# Admin list helpers
# ---------------------------------------------------------------------------

def _recency(booking: Booking) -> float:
    for value in (booking.created_at, booking.date):
        if not value:
            continue
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            continue
        # Date-only values are read as UTC midnight
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp()
    return 0.0


def sort_newest_first(bookings: t.Iterable[Booking]) -> list[Booking]:
    """Newest first by createdAt, falling back to the booking date."""
    return sorted(bookings, key=_recency, reverse=True)


def _haystack(booking: Booking) -> str:
    parts = [booking.room, booking.slot, booking.day, booking.date, booking.user_type, booking.comment]
    for person in (booking.student, booking.teacher):
        if person is not None:
            parts.extend(v for v in vars(person).values() if v)
    return " ".join(p for p in parts if p).lower()


def filter_bookings(
        bookings: t.Iterable[Booking],
        status: t.Optional[str] = None,
        query: t.Optional[str] = None,
) -> list[Booking]:
    """Status tab filter plus free-text search over every visible field."""
    needle = (query or "").strip().lower()
    out = []
    for booking in bookings:
        if status and status != "all" and booking.status != status:
            continue
        if needle and needle not in _haystack(booking):
            continue
        out.append(booking)
    return out


def status_counts(bookings: t.Iterable[Booking]) -> dict[str, int]:
    counts = {"all": 0, **{s: 0 for s in BOOKING_STATUSES}}
    for booking in bookings:
        counts["all"] += 1
        counts[booking.status] = counts.get(booking.status, 0) + 1
    return counts


def group_by_date(bookings: t.Iterable[Booking]) -> list[tuple[str, list[Booking]]]:
    groups: dict[str, list[Booking]] = {}
    for booking in bookings:
        groups.setdefault(booking.date, []).append(booking)
    return [(date, groups[date]) for date in sorted(groups)]
