"""
MCP wrapper for the routine portal service.

This module exposes the portal's read-only routine queries, booking
submission and the administrator operations as MCP tools that make HTTP
calls to the portal service. Booking responses are converted back into the
routine_core dataclasses.
"""
from __future__ import annotations

import os
import typing as t
from pathlib import Path
from urllib.parse import urlparse

import httpx
from fastmcp import FastMCP

from routine_core.models import Booking
from services.shared.auth import ADMIN_COOKIE
from services.shared.models import (
    Booking as PydanticBooking,
    CreateBookingRequest,
    UpdateBookingStatusRequest,
)


mcp = FastMCP("RoutinePortalMCPWrapper")

# Service URL - configurable via environment variable
PORTAL_SERVICE_URL = os.getenv("PORTAL_SERVICE_URL", "http://localhost:8010")

# Timeout settings (in seconds)
STANDARD_TIMEOUT = 30.0  # lookups and booking operations
UPLOAD_TIMEOUT = 120.0  # uploads are parsed and published before the response


class PortalServiceError(RuntimeError):
    """A failed call to the portal service; ``status_code`` is None for transport errors."""

    def __init__(self, message: str, status_code: t.Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def _client(timeout: float = STANDARD_TIMEOUT) -> httpx.Client:
    return httpx.Client(base_url=PORTAL_SERVICE_URL, timeout=timeout)


def _admin_headers(token: t.Optional[str]) -> dict[str, str]:
    token = token or os.getenv("PORTAL_ADMIN_TOKEN")
    if not token:
        raise PortalServiceError("Admin token required: log in first or set PORTAL_ADMIN_TOKEN", 401)
    return {"Cookie": f"{ADMIN_COOKIE}={token}"}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return response.text


def _request(method: str, path: str, timeout: float = STANDARD_TIMEOUT, **kwargs: t.Any) -> httpx.Response:
    """Send a request to the portal service and raise PortalServiceError on failure."""
    try:
        with _client(timeout=timeout) as client:
            response = client.request(method, path, **kwargs)
            response.raise_for_status()
        return response
    except httpx.TimeoutException:
        raise PortalServiceError(f"{method} {path} timed out after {timeout} seconds")
    except httpx.HTTPStatusError as e:
        raise PortalServiceError(
            f"HTTP error from portal service: {e.response.status_code} {_error_message(e.response)}",
            e.response.status_code,
        )
    except httpx.HTTPError as e:
        raise PortalServiceError(f"Error calling portal service: {str(e)}")


def _booking_from_json(item: dict[str, t.Any]) -> Booking:
    """Validate a booking document and convert it to the dataclass."""
    pydantic_booking = PydanticBooking.model_validate(item)
    return Booking.from_dict(pydantic_booking.model_dump(by_alias=True, exclude_none=True))


# -----------------------------
# Public lookups
# -----------------------------

def _get_published(name: str = "routine") -> dict[str, t.Any]:
    """Published routine (``routine``) or teacher directory (``tif``)."""
    return _request("GET", f"/published/{name}").json()


def _student_routine(batch: str, day: str = "", slot: str = "", week: bool = False) -> dict[str, t.Any]:
    params = {"batch": batch, "day": day, "slot": slot}
    if week:
        params["week"] = "true"
    return _request("GET", "/routine/student", params=params).json()


def _teacher_routine(initial: str, day: str = "", slot: str = "", week: bool = False) -> dict[str, t.Any]:
    params = {"initial": initial, "day": day, "slot": slot}
    if week:
        params["week"] = "true"
    return _request("GET", "/routine/teacher", params=params).json()


def _batch_options(query: str = "") -> list[str]:
    return _request("GET", "/routine/batches", params={"q": query}).json()["data"]


def _search_teachers(query: str = "", limit: int = 20) -> list[dict[str, str]]:
    return _request("GET", "/teachers/search", params={"q": query, "limit": limit}).json()["data"]


def _empty_rooms(date: str, slot: str) -> dict[str, t.Any]:
    """Free rooms for a date (YYYY-MM-DD or dd/mm/yyyy) and slot."""
    return _request("GET", "/rooms/empty", params={"date": date, "slot": slot}).json()


def _week_window(anchor: str = "", selected: str = "") -> list[dict[str, t.Any]]:
    return _request("GET", "/calendar/week", params={"anchor": anchor, "selected": selected}).json()["data"]


# -----------------------------
# Bookings
# -----------------------------

def _create_booking(booking: t.Mapping[str, t.Any]) -> Booking:
    """Submit a booking request; fields may be camelCase or snake_case."""
    request = CreateBookingRequest.model_validate(dict(booking))
    response = _request("POST", "/bookings", json=request.model_dump(by_alias=True, exclude_none=True))
    return _booking_from_json(response.json()["data"])


def _list_public_bookings(date: str) -> list[dict[str, t.Any]]:
    """Condensed requested/approved bookings of one date."""
    return _request("GET", "/bookings", params={"public": "1", "date": date}).json()["data"]


def _list_bookings(
        token: t.Optional[str] = None,
        date: str = "",
        status: str = "",
        query: str = "",
) -> list[Booking]:
    params = {"date": date, "status": status, "q": query}
    response = _request("GET", "/bookings", params=params, headers=_admin_headers(token))
    return [_booking_from_json(item) for item in response.json()["data"]]


def _upcoming_bookings(
        token: t.Optional[str] = None,
        days: int = 6,
        status: str = "",
        query: str = "",
) -> dict[str, t.Any]:
    """Bookings of today and the following days with per-status counts."""
    params = {"days": days, "status": status, "q": query}
    body = _request("GET", "/bookings/upcoming", params=params, headers=_admin_headers(token)).json()
    body["data"] = [_booking_from_json(item) for item in body.get("data") or []]
    return body


def _update_booking_status(booking_id: str, status: str, token: t.Optional[str] = None) -> Booking:
    request = UpdateBookingStatusRequest(status=status)
    response = _request(
        "PATCH",
        f"/bookings/{booking_id}",
        json=request.model_dump(),
        headers=_admin_headers(token),
    )
    return _booking_from_json(response.json()["data"])


# -----------------------------
# Administration
# -----------------------------

def _login(email: str, password: str) -> str:
    """Log in and return the session token carried by the admin cookie."""
    response = _request("POST", "/auth/login", json={"email": email, "password": password})
    token = response.cookies.get(ADMIN_COOKIE)
    if not token:
        raise PortalServiceError("Login succeeded but no session cookie was returned")
    return token


def _upload_file(
        kind: str,
        path_or_url: str,
        token: t.Optional[str] = None,
        version: str = "",
        effective_from: str = "",
) -> dict[str, t.Any]:
    """
    Upload a routine or teacher-info spreadsheet and publish it.

    Local files are sent as multipart data; http(s) URLs are passed to the
    service, which downloads them.
    """
    data = {"kind": kind, "version": version, "effectiveFrom": effective_from}
    headers = _admin_headers(token)
    if urlparse(path_or_url).scheme in ("http", "https"):
        data["url"] = path_or_url
        return _request("POST", "/files", timeout=UPLOAD_TIMEOUT, data=data, headers=headers).json()

    path = Path(path_or_url)
    if not path.is_file():
        raise PortalServiceError(f"File not found: {path_or_url}")
    files = {"file": (path.name, path.read_bytes())}
    return _request("POST", "/files", timeout=UPLOAD_TIMEOUT, data=data, files=files, headers=headers).json()


def _publish(token: t.Optional[str] = None) -> dict[str, bool]:
    """Re-parse and publish the latest uploads of both kinds."""
    response = _request("POST", "/publish", timeout=UPLOAD_TIMEOUT, headers=_admin_headers(token))
    return response.json()["published"]


# -----------------------------
# MCP tools
# -----------------------------

@mcp.tool()
def student_routine(batch: str, day: str = "", slot: str = "", week: bool = False) -> dict[str, t.Any]:
    """Classes of a batch (e.g. 61_A) on a day, or the whole week."""
    return _student_routine(batch, day, slot, week)


@mcp.tool()
def teacher_routine(initial: str, day: str = "", slot: str = "", week: bool = False) -> dict[str, t.Any]:
    """Classes of a teacher by initial, with directory entry and day timeline."""
    return _teacher_routine(initial, day, slot, week)


@mcp.tool()
def empty_rooms(date: str, slot: str) -> dict[str, t.Any]:
    """Rooms free at a date and slot."""
    return _empty_rooms(date, slot)


@mcp.tool()
def create_booking(booking: dict[str, t.Any]) -> Booking:
    """Submits a room booking request."""
    return _create_booking(booking)


if __name__ == "__main__":
    mcp.run()
