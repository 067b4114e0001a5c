"""
MCP Gateway Server - single entry point for the routine portal.

This server imports the raw functions of the portal MCP wrapper and
registers them with one FastMCP instance: the public routine lookups and
booking submission, plus the administrator's booking review. Every tool
call is routed to the portal service via HTTP.
"""
from __future__ import annotations

import typing as t

from fastmcp import FastMCP

# Import the raw functions from the MCP wrapper (not the decorated versions)
from mcp_wrappers.portal.mcp_service import (
    _batch_options, _create_booking, _empty_rooms, _get_published,
    _list_bookings, _list_public_bookings, _search_teachers,
    _student_routine, _teacher_routine, _upcoming_bookings,
    _update_booking_status, _week_window,
    PORTAL_SERVICE_URL,
)

from routine_core.models import Booking

# Create the unified MCP server
mcp = FastMCP("RoutinePortalGateway")


def get_service_status() -> dict[str, str]:
    """Configured service URL, for debugging and service discovery."""
    return {
        "portal_service": PORTAL_SERVICE_URL,
        "gateway_status": "running",
    }


# Routine lookups
@mcp.tool()
def get_published(name: str = "routine") -> dict[str, t.Any]:
    """Returns the published routine ("routine") or teacher directory ("tif") with its metadata."""
    return _get_published(name)


@mcp.tool()
def student_routine(batch: str, day: str = "", slot: str = "", week: bool = False) -> dict[str, t.Any]:
    """Classes of a batch (e.g. 61_A, lab sections like 61_A1 fold onto 61_A) on a day, or the whole week."""
    return _student_routine(batch, day, slot, week)


@mcp.tool()
def teacher_routine(initial: str, day: str = "", slot: str = "", week: bool = False) -> dict[str, t.Any]:
    """Classes of a teacher by initial, with the directory entry, day-off list and day timeline."""
    return _teacher_routine(initial, day, slot, week)


@mcp.tool()
def batch_options(query: str = "") -> list[str]:
    """Suggests batch names matching the query."""
    return _batch_options(query)


@mcp.tool()
def search_teachers(query: str = "", limit: int = 20) -> list[dict[str, str]]:
    """Finds teachers by initial or name."""
    return _search_teachers(query, limit)


@mcp.tool()
def empty_rooms(date: str, slot: str) -> dict[str, t.Any]:
    """Rooms without a class or approved booking at a date and slot."""
    return _empty_rooms(date, slot)


@mcp.tool()
def week_window(anchor: str = "") -> list[dict[str, t.Any]]:
    """Seven-day strip starting at the anchor date (today by default)."""
    return _week_window(anchor)


# Bookings
@mcp.tool()
def create_booking(booking: dict[str, t.Any]) -> Booking:
    """Submits a room booking request (date, slot, room, userType and the student or teacher record)."""
    return _create_booking(booking)


@mcp.tool()
def list_public_bookings(date: str) -> list[dict[str, t.Any]]:
    """Requested and approved bookings of a date, without contact details."""
    return _list_public_bookings(date)


@mcp.tool()
def list_bookings(date: str = "", status: str = "", query: str = "") -> list[Booking]:
    """Lists bookings with every field (administrator token required)."""
    return _list_bookings(None, date, status, query)


@mcp.tool()
def upcoming_bookings(days: int = 6, status: str = "") -> dict[str, t.Any]:
    """Bookings of today and the following days with per-status counts (administrator token required)."""
    return _upcoming_bookings(None, days, status)


@mcp.tool()
def review_booking(booking_id: str, status: str) -> Booking:
    """Approves, declines or cancels a booking (administrator token required)."""
    return _update_booking_status(booking_id, status)


@mcp.tool()
def get_gateway_info() -> dict[str, str]:
    """
    Get information about the MCP Gateway and the portal service.

    This tool provides status information about the gateway and the URL of
    the portal service it connects to.
    """
    return get_service_status()


@mcp.tool()
def list_available_tools() -> dict[str, list[str]]:
    """List all available tools organized by area."""
    return {
        "routine": [
            "get_published - Published routine or teacher directory",
            "student_routine - Classes of a batch on a day or week",
            "teacher_routine - Classes of a teacher on a day or week",
            "batch_options - Batch suggestions",
            "search_teachers - Teacher picker search",
            "empty_rooms - Free rooms for a date and slot",
            "week_window - Seven-day date strip",
        ],
        "bookings": [
            "create_booking - Submit a booking request",
            "list_public_bookings - Public bookings of a date",
            "list_bookings - All bookings (admin)",
            "upcoming_bookings - Bookings of the coming days (admin)",
            "review_booking - Approve, decline or cancel (admin)",
        ],
        "gateway_tools": [
            "get_gateway_info - Get gateway and service status information",
            "list_available_tools - List all available tools",
        ],
    }


if __name__ == "__main__":
    print("Starting Routine Portal MCP Gateway")
    status = get_service_status()
    print(f"  portal_service: {status['portal_service']}")
    for area, tool_list in list_available_tools().items():
        print(f"\n{area}:")
        for tool in tool_list:
            print(f"    - {tool}")
    mcp.run()
