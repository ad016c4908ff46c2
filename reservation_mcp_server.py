from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from mcp.server.fastmcp import FastMCP

from chauffeur_booking import BookingService, build_service
from chauffeur_booking.models import SERVICE_TYPES
from chauffeur_booking.parsing import parse_booking_request, parse_date, parse_time

mcp = FastMCP(
    "Chauffeur Booking MCP Server",
    instructions="Check vehicle availability and manage chauffeur reservations.",
    json_response=True,
)

DATA_DIR = Path(__file__).parent / "data"
SERVICE: BookingService = build_service(os.environ.get("CHAUFFEUR_BOOKING_CONFIG"), data_dir=DATA_DIR)


@mcp.resource("booking://vehicles")
async def list_vehicles() -> list[dict[str, Any]]:
    """List the fleet with passenger capacities."""
    return [resource.to_dict() for resource in SERVICE.list_resources()]


@mcp.resource("booking://service-types")
async def list_service_types() -> dict[int, str]:
    """List the bookable service types."""
    return dict(SERVICE_TYPES)


@mcp.tool()
def query_availability(date: str, party_size: int, duration_minutes: int | None = None) -> list[dict[str, Any]]:
    """Return the slot grid for a day with availability for the given party size."""
    slots = SERVICE.query_availability(parse_date(date), party_size, duration_minutes)
    return [slot.to_dict() for slot in slots]


@mcp.tool()
def list_reservations(
    start_date: str | None = None,
    end_date: str | None = None,
    resource_id: int | None = None,
) -> list[dict[str, Any]]:
    """Return reservations between two ISO dates (inclusive), optionally for one vehicle."""
    start = parse_date(start_date) if start_date else None
    end = parse_date(end_date) if end_date else None
    return [record.to_dict() for record in SERVICE.list_reservations(start, end, resource_id=resource_id)]


@mcp.tool()
def vehicle_schedule(date: str) -> dict[str, list[dict[str, Any]]]:
    """Return each vehicle's active reservations for one day."""
    schedule = SERVICE.resource_schedule(parse_date(date))
    return {str(resource_id): [record.to_dict() for record in records] for resource_id, records in schedule.items()}


@mcp.tool()
def commit_reservation(
    date: str,
    start_time: str,
    party_size: int,
    duration_minutes: int | None = None,
    customer_name: str | None = None,
    customer_email: str | None = None,
) -> dict[str, Any]:
    """Book a vehicle for the given date and start time."""
    created = SERVICE.commit_reservation(
        parse_date(date),
        parse_time(start_time),
        duration_minutes,
        party_size,
        customer_name=customer_name,
        customer_email=customer_email,
    )
    return created.to_dict()


@mcp.tool()
def reserve_from_text(text: str, party_size: int = 1) -> dict[str, Any]:
    """Book from a one-line request such as '2024-06-01 10:00 for 4 passengers'."""
    parsed = parse_booking_request(text)
    created = SERVICE.commit_reservation(
        parsed.day,
        parsed.start_time,
        parsed.duration_minutes,
        parsed.party_size or party_size,
        special_requests=text,
    )
    return created.to_dict()


@mcp.tool()
def cancel_reservation(reservation_id: str) -> dict[str, str]:
    """Cancel a reservation by id."""
    SERVICE.cancel_reservation(reservation_id)
    return {"reservation_id": reservation_id, "status": "cancelled"}


def main() -> None:
    mcp.run()


if __name__ == "__main__":
    main()
