"""
FastAPI service for the routine portal.

Administrators upload and publish routine and teacher-info spreadsheets and
review room bookings; everyone else reads the published routine, searches
classes by batch or teacher, finds empty rooms and submits booking requests.
"""
from __future__ import annotations

import asyncio
import logging
import typing as t
from contextlib import asynccontextmanager
from pathlib import PurePosixPath
from urllib.parse import urlparse

from fastapi import Depends, FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from routine_core import dates
from routine_core.bookings import (
    BookingConflict,
    BookingLedger,
    BookingNotFound,
    BookingValidationError,
    InvalidTransition,
    filter_bookings,
    sort_newest_first,
    status_counts,
)
from routine_core.models import UPLOAD_KINDS, UploadMeta
from routine_core.publisher import (
    clear_kind,
    clear_published,
    handle_upload,
    publish_all,
    read_published,
)
from routine_core.routine import (
    batch_matcher,
    batch_options,
    classes_for_batch,
    classes_for_teacher,
    day_timeline,
    empty_rooms,
    normalize_slot,
    rows_from_payload,
    teacher_initial_only,
    teacher_matcher,
    weekly_matrix,
)
from routine_core.sheet_utils import SheetParseError, load_upload
from routine_core.store import PUBLISHED_KEYS, ROUTINE_KEY, TIF_KEY, PublicationStore
from routine_core.teachers import (
    day_off_list,
    directory_from_payload,
    find_by_initial,
    initial_options,
    search_teachers,
)
from services.shared.auth import (
    ADMIN_COOKIE,
    AdminDirectory,
    AuthError,
    cookie_options,
    create_session_token,
    verify_session_token,
)
from services.shared.config import configure_logging, load_settings
from services.shared.models import (
    Booking as PydanticBooking,
    BookingListResponse,
    BookingResponse,
    ClassRow as PydanticClassRow,
    CreateBookingRequest,
    EmptyRoomsResponse,
    LoginRequest,
    PublicBooking,
    PublicBookingListResponse,
    PublishRequest,
    StudentRoutineResponse,
    TeacherInfo as PydanticTeacherInfo,
    TeacherRoutineResponse,
    TimelineEntry,
    UpcomingBookingsResponse,
    UpdateBookingStatusRequest,
    WeekWindowResponse,
)


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Load settings and open the data directory on startup."""
    settings = load_settings()
    configure_logging(settings.log_level)
    store = PublicationStore(settings.data_dir, settings.uploads_base_url)
    app.state.settings = settings
    app.state.store = store
    app.state.ledger = BookingLedger(store, reject_double_approval=settings.reject_double_approval)
    app.state.admins = AdminDirectory(settings)
    logger.info("Routine portal serving data from %s", settings.data_dir)

    yield


app = FastAPI(
    title="Routine Portal Service",
    description="REST API for routine publishing, routine lookup and room booking",
    version="1.0.0",
    lifespan=lifespan,
)


# -----------------------------
# Error rendering
# -----------------------------

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"ok": False, "error": str(exc.detail)}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    message = errors[0].get("msg", "invalid request") if errors else "invalid request"
    return JSONResponse({"ok": False, "error": f"invalid body: {message}"}, status_code=400)


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"ok": False, "error": "internal error"}, status_code=500)


# -----------------------------
# Dependencies
# -----------------------------

def get_store(request: Request) -> PublicationStore:
    return request.app.state.store


def get_ledger(request: Request) -> BookingLedger:
    return request.app.state.ledger


def require_admin(request: Request) -> dict[str, t.Any]:
    """Validate the session cookie; 401 when absent or invalid."""
    try:
        return verify_session_token(request.cookies.get(ADMIN_COOKIE), request.app.state.settings.jwt_secret)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e))


def _today(request: Request) -> str:
    return dates.today_iso(request.app.state.settings.timezone)


def _check_kind(kind: str) -> str:
    if kind not in UPLOAD_KINDS:
        raise HTTPException(status_code=400, detail="kind must be 'routine' or 'tif'")
    return kind


def _date_param(value: t.Optional[str], request: Request) -> str:
    if not value:
        return _today(request)
    iso = dates.parse_date_input(value)
    if iso is None:
        raise HTTPException(status_code=400, detail="date must be YYYY-MM-DD or dd/mm/yyyy")
    return iso


def _day_param(value: t.Optional[str], request: Request) -> str:
    if not value:
        return dates.default_portal_day(_today(request))
    day = dates.canonical_weekday(value)
    if day is None:
        raise HTTPException(status_code=400, detail=f"unknown day: {value}")
    return day


def _routine_rows(store: PublicationStore):
    return rows_from_payload((store.get_json(ROUTINE_KEY) or {}).get("data"))


def _directory(store: PublicationStore):
    return directory_from_payload((store.get_json(TIF_KEY) or {}).get("data"))


def _row_models(rows) -> list[PydanticClassRow]:
    return [PydanticClassRow.model_validate(r.to_dict()) for r in rows]


def _week_models(matrix) -> dict[str, list[list[PydanticClassRow]]]:
    return {day: [_row_models(cell) for cell in cells] for day, cells in matrix.items()}


@app.get("/health")
async def health_check():
    """Health check endpoint for container orchestration."""
    return {"status": "healthy", "service": "routine-portal-service"}


# -----------------------------
# Authentication
# -----------------------------

@app.post("/auth/login")
async def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Check admin credentials and set the session cookie."""
    email = body.email.strip().lower()
    if not email or not body.password:
        raise HTTPException(status_code=400, detail="Email and password required.")
    admin = request.app.state.admins.authenticate(email, body.password)
    if admin is None:
        logger.warning("Failed admin login for %s", email)
        raise HTTPException(status_code=401, detail="Invalid credentials.")

    settings = request.app.state.settings
    token = create_session_token(admin, settings.jwt_secret, settings.session_hours)
    response = JSONResponse({"ok": True})
    response.set_cookie(value=token, **cookie_options(settings))
    logger.info("Admin %s logged in", email)
    return response


@app.api_route("/auth/logout", methods=["GET", "POST"])
async def logout() -> JSONResponse:
    """Expire the session cookie."""
    response = JSONResponse({"ok": True})
    response.delete_cookie(ADMIN_COOKIE, path="/")
    return response


@app.get("/auth/me")
async def me(admin: dict = Depends(require_admin)):
    return {"ok": True, "user": {"email": admin.get("email"), "username": admin.get("username")}}


# -----------------------------
# Raw uploads
# -----------------------------

@app.get("/files")
async def get_file(kind: str = "", store: PublicationStore = Depends(get_store), admin: dict = Depends(require_admin)):
    """Current raw upload of a kind."""
    item = store.get_single(_check_kind(kind))
    return {"ok": True, "item": item.to_dict() if item else None}


@app.delete("/files")
async def delete_file(kind: str = "", store: PublicationStore = Depends(get_store), admin: dict = Depends(require_admin)):
    """Remove the raw upload, its metadata and the published document of a kind."""
    clear_kind(store, _check_kind(kind))
    return {"ok": True}


@app.post("/files")
async def upload_file(
        admin: dict = Depends(require_admin),
        store: PublicationStore = Depends(get_store),
        kind: str = Form(""),
        file: t.Optional[UploadFile] = File(None),
        url: str = Form(""),
        version: str = Form(""),
        effective_from: str = Form("", alias="effectiveFrom"),
):
    """
    Save a routine or teacher-info upload and publish it.

    The file is sent as multipart ``file``, or fetched from ``url``. A parse
    failure still saves the raw file and is reported as ``warn``/``error``.
    """
    _check_kind(kind)
    if file is not None and file.filename:
        filename = file.filename
        content = await file.read()
    elif url.strip():
        filename = PurePosixPath(urlparse(url.strip()).path).name or f"{kind}.xlsx"
        try:
            content = await asyncio.to_thread(load_upload, url.strip())
        except Exception as e:
            raise HTTPException(status_code=400, detail=f"Could not download {url}: {e}")
    else:
        raise HTTPException(status_code=400, detail="file missing")

    meta = UploadMeta(version=version.strip() or None, effective_from=effective_from.strip() or None)
    return handle_upload(store, kind, filename, content, meta)


# -----------------------------
# Publishing
# -----------------------------

@app.post("/publish")
async def publish_documents(
        body: t.Optional[PublishRequest] = None,
        store: PublicationStore = Depends(get_store),
        admin: dict = Depends(require_admin),
):
    """Publish arrays from the body, or re-parse the latest uploads."""
    try:
        published = publish_all(store, body.model_dump(exclude_none=True) if body else None)
    except (SheetParseError, OSError) as e:
        logger.warning("Publish failed: %s", e)
        raise HTTPException(status_code=500, detail=str(e))
    return {"ok": True, "published": published}


@app.get("/publish")
async def publish_status(store: PublicationStore = Depends(get_store), admin: dict = Depends(require_admin)):
    return {"ok": True, **{kind: store.exists(key) for kind, key in PUBLISHED_KEYS.items()}}


@app.delete("/publish")
async def unpublish(store: PublicationStore = Depends(get_store), admin: dict = Depends(require_admin)):
    clear_published(store)
    return {"ok": True}


@app.get("/published/{name}")
async def get_published(name: str, store: PublicationStore = Depends(get_store)):
    """Published routine or teacher directory, with the current upload's file name."""
    if name not in PUBLISHED_KEYS:
        raise HTTPException(status_code=404, detail="Not found")
    return read_published(store, name)


# -----------------------------
# Routine lookups
# -----------------------------

@app.get("/routine/batches")
async def list_batches(q: str = "", store: PublicationStore = Depends(get_store)):
    return {"data": batch_options(_routine_rows(store), q)}


@app.get("/routine/student", response_model=StudentRoutineResponse)
async def student_routine(
        request: Request,
        batch: str = "",
        day: str = "",
        slot: str = "",
        week: bool = False,
        store: PublicationStore = Depends(get_store),
) -> StudentRoutineResponse:
    """Classes of a batch on a day, or the batch's whole week."""
    if not batch.strip():
        raise HTTPException(status_code=400, detail="batch required")
    rows = _routine_rows(store)
    if week:
        return StudentRoutineResponse(batch=batch, week=_week_models(weekly_matrix(rows, batch_matcher(batch))))
    portal_day = _day_param(day, request)
    return StudentRoutineResponse(
        batch=batch,
        day=portal_day,
        data=_row_models(classes_for_batch(rows, batch, portal_day, slot)),
    )


@app.get("/routine/teacher", response_model=TeacherRoutineResponse)
async def teacher_routine(
        request: Request,
        initial: str = "",
        day: str = "",
        slot: str = "",
        week: bool = False,
        store: PublicationStore = Depends(get_store),
) -> TeacherRoutineResponse:
    """Classes of a teacher, matched against the published teacher directory."""
    if not initial.strip():
        raise HTTPException(status_code=400, detail="initial required")
    rows = _routine_rows(store)
    teacher = find_by_initial(_directory(store), initial)
    exact = teacher_initial_only(teacher.initial if teacher else initial)
    response = TeacherRoutineResponse(
        initial=exact,
        teacher=PydanticTeacherInfo.model_validate(teacher.to_dict()) if teacher else None,
        day_off=day_off_list(teacher),
    )
    if week:
        response.week = _week_models(weekly_matrix(rows, teacher_matcher(exact)))
        return response

    response.day = _day_param(day, request)
    classes = classes_for_teacher(rows, exact, response.day, slot)
    response.data = _row_models(classes)
    response.timeline = [
        TimelineEntry(
            kind=entry["kind"],
            row=PydanticClassRow.model_validate(entry["row"].to_dict()) if entry["kind"] == "class" else None,
            from_time=entry.get("from"),
            to_time=entry.get("to"),
        )
        for entry in day_timeline(classes)
    ]
    return response


@app.get("/teachers/search")
async def teacher_search(q: str = "", limit: int = 20, store: PublicationStore = Depends(get_store)):
    """Options for the initial picker, filtered by initial or name."""
    options = initial_options(_directory(store), _routine_rows(store))
    return {"data": search_teachers(options, q, limit)}


@app.get("/rooms/empty", response_model=EmptyRoomsResponse)
async def find_empty_rooms(
        request: Request,
        date: str = "",
        slot: str = "",
        store: PublicationStore = Depends(get_store),
        ledger: BookingLedger = Depends(get_ledger),
) -> EmptyRoomsResponse:
    """Rooms without a class at the date's weekday and slot, minus approved bookings."""
    if not slot.strip():
        raise HTTPException(status_code=400, detail="slot required")
    iso = _date_param(date, request)
    day = dates.weekday_from_iso(iso)
    slot = normalize_slot(slot)
    rooms = empty_rooms(_routine_rows(store), day, slot, ledger.list_by_date(iso))
    return EmptyRoomsResponse(date=iso, day=day, slot=slot, data=rooms)


@app.get("/calendar/week", response_model=WeekWindowResponse)
async def week_window(request: Request, anchor: str = "", selected: str = "") -> WeekWindowResponse:
    """Seven-day strip starting at the anchor (today by default)."""
    anchor_iso = _date_param(anchor, request)
    selected_iso = dates.parse_date_input(selected) if selected else anchor_iso
    return WeekWindowResponse(anchor=anchor_iso, data=dates.week_tiles(anchor_iso, selected_iso))


# -----------------------------
# Bookings
# -----------------------------

def _booking_models(bookings) -> list[PydanticBooking]:
    return [PydanticBooking.model_validate(b.to_dict()) for b in bookings]


@app.get("/bookings")
async def list_bookings(
        request: Request,
        public: str = "",
        date: str = "",
        status: str = "",
        q: str = "",
        ledger: BookingLedger = Depends(get_ledger),
):
    """
    Public mode (``public=1``) returns the condensed requested/approved
    bookings of one date. Otherwise, for administrators: the date's
    bookings, or every booking newest-first.
    """
    if public == "1":
        if not date:
            raise HTTPException(status_code=400, detail="date required for public mode")
        rows = ledger.list_public_by_date(date)
        return PublicBookingListResponse(data=[PublicBooking.model_validate(r) for r in rows])

    require_admin(request)
    bookings = ledger.list_by_date(date) if date else sort_newest_first(ledger.list_all())
    return BookingListResponse(data=_booking_models(filter_bookings(bookings, status or None, q)))


@app.get("/bookings/upcoming", response_model=UpcomingBookingsResponse)
async def upcoming_bookings(
        request: Request,
        days: int = 6,
        status: str = "",
        q: str = "",
        ledger: BookingLedger = Depends(get_ledger),
        admin: dict = Depends(require_admin),
) -> UpcomingBookingsResponse:
    """Bookings from today through the next ``days - 1`` days, newest first."""
    window = dates.upcoming_dates(_today(request), max(1, min(days, 31)))
    bookings = sort_newest_first(b for d in window for b in ledger.list_by_date(d))
    return UpcomingBookingsResponse(
        dates=window,
        counts=status_counts(bookings),
        data=_booking_models(filter_bookings(bookings, status or None, q)),
    )


@app.post("/bookings", status_code=201, response_model=BookingResponse)
async def create_booking(body: CreateBookingRequest, ledger: BookingLedger = Depends(get_ledger)) -> BookingResponse:
    """Submit a booking request."""
    try:
        booking = ledger.create(body.model_dump(by_alias=True))
    except BookingValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return BookingResponse(data=PydanticBooking.model_validate(booking.to_dict()))


@app.patch("/bookings/{booking_id}", response_model=BookingResponse)
async def update_booking_status(
        booking_id: str,
        body: UpdateBookingStatusRequest,
        ledger: BookingLedger = Depends(get_ledger),
        admin: dict = Depends(require_admin),
) -> BookingResponse:
    """Approve, decline or cancel a booking."""
    if not body.status:
        raise HTTPException(status_code=400, detail="status required")
    try:
        booking = ledger.update_status(booking_id, body.status)
    except BookingValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except BookingNotFound:
        raise HTTPException(status_code=404, detail="not found")
    except (InvalidTransition, BookingConflict) as e:
        raise HTTPException(status_code=409, detail=str(e))
    logger.info("Booking %s set to %s by %s", booking_id, body.status, admin.get("email"))
    return BookingResponse(data=PydanticBooking.model_validate(booking.to_dict()))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8010)
