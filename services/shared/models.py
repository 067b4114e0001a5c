"""
Shared Pydantic models for REST API serialization.

This module contains Pydantic equivalents of the dataclass models in
routine_core, with camelCase aliases so that every service and client sees
the same JSON shapes.
"""
from __future__ import annotations

import typing as t
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


# Type literals for commonly used values
BookingStatus = t.Literal["requested", "approved", "declined", "cancelled"]
UserType = t.Literal["student", "teacher"]


class CamelModel(BaseModel):
    """Base model: snake_case attributes, camelCase JSON."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Routine Models
class ClassRow(CamelModel):
    """One scheduled class occurrence."""
    day: str = ""
    slot: str = ""
    room: str = ""
    batch: str = ""
    course: str = ""
    teacher: str = ""


class TeacherInfo(CamelModel):
    """A teacher directory entry."""
    name: str = ""
    initial: str = ""
    designation: str = ""
    mobile: str = ""
    email: str = ""
    office_desk: str = ""
    day_off: list[str] = Field(default_factory=list)


class TimelineEntry(CamelModel):
    """A class, or a break between two classes, in a day timeline."""
    kind: t.Literal["class", "break"]
    row: t.Optional[ClassRow] = None
    from_time: t.Optional[str] = Field(default=None, alias="from")
    to_time: t.Optional[str] = Field(default=None, alias="to")


class StudentRoutineResponse(CamelModel):
    """Classes of one batch on one day, or the batch's week."""
    batch: str
    day: t.Optional[str] = None
    data: list[ClassRow] = Field(default_factory=list)
    week: t.Optional[dict[str, list[list[ClassRow]]]] = None


class TeacherRoutineResponse(CamelModel):
    """Classes of one teacher, the matched directory entry and the day timeline."""
    initial: str
    day: t.Optional[str] = None
    teacher: t.Optional[TeacherInfo] = None
    day_off: list[str] = Field(default_factory=list)
    data: list[ClassRow] = Field(default_factory=list)
    timeline: list[TimelineEntry] = Field(default_factory=list)
    week: t.Optional[dict[str, list[list[ClassRow]]]] = None


class EmptyRoom(CamelModel):
    """A room with no class in the requested slot."""
    room: str
    pending: bool = False


class EmptyRoomsResponse(CamelModel):
    """Free rooms for a date and slot."""
    date: str
    day: str
    slot: str
    data: list[EmptyRoom] = Field(default_factory=list)


class WeekTile(CamelModel):
    """One day of the week strip."""
    date: str
    weekday: str
    short: str
    day_number: str
    display: str
    selected: bool = False


class WeekWindowResponse(CamelModel):
    """Day strip anchored at ``anchor``."""
    anchor: str
    data: list[WeekTile] = Field(default_factory=list)


# Booking Models
class StudentContact(CamelModel):
    """Student identity attached to a booking."""
    name: str = ""
    student_id: str = ""
    batch_section: str = ""
    mobile: str = ""
    course: str = ""
    course_teacher_initial: str = ""
    email: str = ""


class TeacherContact(CamelModel):
    """Teacher identity attached to a booking."""
    name: str = ""
    teacher_id: str = ""
    initial: str = ""
    mobile: str = ""
    course: str = ""
    batch_section: str = ""
    email: str = ""


class Booking(CamelModel):
    """A room booking with every field, for administrators."""
    id: str
    date: str
    day: str
    slot: str
    room: str
    status: BookingStatus
    user_type: UserType
    student: t.Optional[StudentContact] = None
    teacher: t.Optional[TeacherContact] = None
    comment: str = ""
    created_at: t.Optional[str] = None
    updated_at: t.Optional[str] = None


class PublicStudent(CamelModel):
    """Student fields safe to show publicly."""
    batch_section: t.Optional[str] = None
    course: t.Optional[str] = None
    course_teacher_initial: t.Optional[str] = None


class PublicTeacher(CamelModel):
    """Teacher fields safe to show publicly."""
    initial: t.Optional[str] = None
    batch_section: t.Optional[str] = None
    course: t.Optional[str] = None


class PublicBooking(CamelModel):
    """Condensed booking used for room availability."""
    room: str
    slot: str
    status: BookingStatus
    user_type: UserType
    student: t.Optional[PublicStudent] = None
    teacher: t.Optional[PublicTeacher] = None


# Request/Response Models for API endpoints
class LoginRequest(BaseModel):
    """Request model for admin login."""
    email: str = ""
    password: str = ""


class PublishRequest(BaseModel):
    """Request model for publishing; arrays given here are published as-is."""
    routine: t.Optional[list[dict[str, t.Any]]] = None
    tif: t.Optional[list[dict[str, t.Any]]] = None


class CreateBookingRequest(CamelModel):
    """Request model for a booking submission; required fields are checked by the ledger."""
    date: str = ""
    day: str = ""
    slot: str = ""
    room: str = ""
    user_type: str = ""
    student: t.Optional[dict[str, t.Any]] = None
    teacher: t.Optional[dict[str, t.Any]] = None
    comment: str = ""


class UpdateBookingStatusRequest(BaseModel):
    """Request model for reviewing a booking."""
    status: t.Optional[str] = None


class BookingResponse(BaseModel):
    """Single booking wrapper."""
    data: Booking


class BookingListResponse(BaseModel):
    """Booking list wrapper."""
    data: list[Booking] = Field(default_factory=list)


class PublicBookingListResponse(BaseModel):
    """Public booking list wrapper."""
    data: list[PublicBooking] = Field(default_factory=list)


class UpcomingBookingsResponse(BaseModel):
    """Bookings of the next few days with per-status counts."""
    dates: list[str] = Field(default_factory=list)
    counts: dict[str, int] = Field(default_factory=dict)
    data: list[Booking] = Field(default_factory=list)
