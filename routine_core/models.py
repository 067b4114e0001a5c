"""
Data models for the routine portal.

This module contains the dataclasses used to represent published class
routines, the teacher directory, upload metadata and room bookings.
JSON documents use camelCase keys; ``to_dict``/``from_dict`` convert.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
import typing as t

from pydantic.alias_generators import to_camel, to_snake


BookingStatus = t.Literal["requested", "approved", "declined", "cancelled"]
UserType = t.Literal["student", "teacher"]

BOOKING_STATUSES: tuple[str, ...] = ("requested", "approved", "declined", "cancelled")
TERMINAL_STATUSES: tuple[str, ...] = ("approved", "declined", "cancelled")
USER_TYPES: tuple[str, ...] = ("student", "teacher")
UPLOAD_KINDS: tuple[str, ...] = ("routine", "tif")


def camel_dict(obj: t.Any) -> dict[str, t.Any]:
    """Dump a dataclass to a dict with camelCase keys (recursively)."""
    return _camelize(asdict(obj))


def _camelize(value: t.Any) -> t.Any:
    if isinstance(value, dict):
        return {to_camel(k): _camelize(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_camelize(v) for v in value]
    return value


def known_kwargs(cls: type, data: t.Mapping[str, t.Any]) -> dict[str, t.Any]:
    """Pick the keys of ``data`` (camelCase or snake_case) that ``cls`` declares."""
    names = {f.name for f in fields(cls)}
    out: dict[str, t.Any] = {}
    for key, value in (data or {}).items():
        name = to_snake(key)
        if name in names:
            out[name] = value
    return out


@dataclass
class ClassRow:
    """One scheduled class occurrence from a published routine."""
    day: str = ""
    slot: str = ""
    room: str = ""
    batch: str = ""
    course: str = ""
    teacher: str = ""  # "INITIAL - Full Name" or just "INITIAL"

    def to_dict(self) -> dict[str, t.Any]:
        return camel_dict(self)

    @classmethod
    def from_dict(cls, data: t.Mapping[str, t.Any]) -> ClassRow:
        kwargs = {k: "" if v is None else str(v) for k, v in known_kwargs(cls, data).items()}
        return cls(**kwargs)


@dataclass
class TeacherInfo:
    """A teacher directory entry, looked up by initial."""
    name: str = ""
    initial: str = ""
    designation: str = ""
    mobile: str = ""
    email: str = ""
    office_desk: str = ""
    day_off: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, t.Any]:
        return camel_dict(self)

    @classmethod
    def from_dict(cls, data: t.Mapping[str, t.Any]) -> TeacherInfo:
        kwargs = known_kwargs(cls, data)
        day_off = kwargs.pop("day_off", None) or []
        if isinstance(day_off, str):
            day_off = [day_off]
        info = cls(**{k: "" if v is None else str(v) for k, v in kwargs.items()})
        info.day_off = [str(d) for d in day_off]
        return info


@dataclass
class TeacherRef:
    """Parsed form of a routine teacher field."""
    initial: str
    name: str = ""
    initial_only: bool = True


@dataclass
class StudentContact:
    """Person record attached to a student booking."""
    name: str = ""
    student_id: str = ""
    batch_section: str = ""
    mobile: str = ""
    course: str = ""
    course_teacher_initial: str = ""
    email: str = ""


@dataclass
class TeacherContact:
    """Person record attached to a teacher booking."""
    name: str = ""
    teacher_id: str = ""
    initial: str = ""
    mobile: str = ""
    course: str = ""
    batch_section: str = ""
    email: str = ""


@dataclass
class Booking:
    """A room reservation request."""
    id: str
    date: str  # "YYYY-MM-DD"
    day: str
    slot: str
    room: str
    user_type: UserType
    status: BookingStatus = "requested"
    student: t.Optional[StudentContact] = None
    teacher: t.Optional[TeacherContact] = None
    comment: str = ""
    created_at: str = ""
    updated_at: str = ""

    @property
    def person(self) -> t.Optional[StudentContact | TeacherContact]:
        return self.student if self.user_type == "student" else self.teacher

    def to_dict(self) -> dict[str, t.Any]:
        data = camel_dict(self)
        # Only the record matching userType is part of the document
        if self.student is None:
            data.pop("student")
        if self.teacher is None:
            data.pop("teacher")
        return data

    def to_public_dict(self) -> dict[str, t.Any]:
        """Condensed projection used for availability display."""
        data: dict[str, t.Any] = {
            "room": self.room,
            "slot": self.slot,
            "status": self.status,
            "userType": self.user_type,
        }
        if self.student is not None:
            data["student"] = {
                "batchSection": self.student.batch_section,
                "course": self.student.course,
                "courseTeacherInitial": self.student.course_teacher_initial,
            }
        if self.teacher is not None:
            data["teacher"] = {
                "initial": self.teacher.initial,
                "batchSection": self.teacher.batch_section,
                "course": self.teacher.course,
            }
        return data

    @classmethod
    def from_dict(cls, data: t.Mapping[str, t.Any]) -> Booking:
        kwargs = known_kwargs(cls, data)
        student = kwargs.pop("student", None)
        teacher = kwargs.pop("teacher", None)
        booking = cls(**kwargs)
        if student:
            booking.student = StudentContact(**known_kwargs(StudentContact, student))
        if teacher:
            booking.teacher = TeacherContact(**known_kwargs(TeacherContact, teacher))
        return booking


@dataclass
class UploadMeta:
    """Version/effective-date tag attached to an upload."""
    version: t.Optional[str] = None
    effective_from: t.Optional[str] = None

    def to_dict(self) -> dict[str, t.Any]:
        return {k: v for k, v in camel_dict(self).items() if v}

    @classmethod
    def from_dict(cls, data: t.Optional[t.Mapping[str, t.Any]]) -> UploadMeta:
        return cls(**known_kwargs(cls, data or {}))


@dataclass
class UploadedFile:
    """The single raw upload kept for a kind."""
    kind: str
    key: str  # "uploads/<kind>/<file name>"
    file_name: str
    size: int = 0
    uploaded_at: str = ""
    url: t.Optional[str] = None

    def to_dict(self) -> dict[str, t.Any]:
        return camel_dict(self)


@dataclass
class PublishedPayload:
    """Envelope of a published routine or teacher directory."""
    data: list[dict[str, t.Any]] = field(default_factory=list)
    meta: dict[str, t.Any] = field(default_factory=dict)
    updated_at: t.Optional[str] = None

    def to_dict(self) -> dict[str, t.Any]:
        return {"data": self.data, "meta": self.meta, "updatedAt": self.updated_at}

    @classmethod
    def from_dict(cls, data: t.Optional[t.Mapping[str, t.Any]]) -> PublishedPayload:
        """Read a stored document; a missing or non-list ``data`` means nothing is published."""
        data = data or {}
        rows = data.get("data")
        return cls(
            data=list(rows) if isinstance(rows, list) else [],
            meta=dict(data.get("meta") or {}),
            updated_at=data.get("updatedAt"),
        )
