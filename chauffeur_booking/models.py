from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import Any

DEFAULT_DURATION_MINUTES = 150

SERVICE_TYPES: dict[int, str] = {
    1: "Airport Transfer",
    2: "City to City",
    3: "Business Travel",
    4: "Wedding Service",
    5: "Luxury Tour",
}

DETAIL_FIELDS = (
    "service_type",
    "customer_name",
    "customer_email",
    "customer_phone",
    "special_requests",
    "pickup_location",
    "dropoff_location",
    "flight_number",
)


class ReservationStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Resource:
    resource_id: int
    capacity: int
    active: bool = True
    name: str | None = None

    def __post_init__(self) -> None:
        if self.capacity < 1:
            raise ValueError("Resource capacity must be at least 1.")

    def to_dict(self) -> dict[str, Any]:
        return {
            "resource_id": self.resource_id,
            "capacity": self.capacity,
            "active": self.active,
            "name": self.name,
        }

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Resource":
        return Resource(
            resource_id=int(data.get("resource_id", data.get("id"))),
            capacity=int(data["capacity"]),
            active=bool(data.get("active", True)),
            name=(str(data["name"]) if data.get("name") is not None else None),
        )


@dataclass(frozen=True)
class Reservation:
    reservation_id: str
    resource_id: int | None
    booking_date: date
    start_time: time
    party_size: int
    duration_minutes: int = DEFAULT_DURATION_MINUTES
    status: ReservationStatus = ReservationStatus.PENDING
    version: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    service_type: int | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    special_requests: str | None = None
    pickup_location: str | None = None
    dropoff_location: str | None = None
    flight_number: str | None = None

    @property
    def start(self) -> datetime:
        return datetime.combine(self.booking_date, self.start_time)

    @property
    def end(self) -> datetime:
        return self.start + timedelta(minutes=self.duration_minutes)

    @property
    def is_active(self) -> bool:
        return self.status != ReservationStatus.CANCELLED

    @property
    def service_label(self) -> str | None:
        if self.service_type is None:
            return None
        return SERVICE_TYPES.get(self.service_type, "Chauffeur Service")

    def overlaps(self, start: datetime, end: datetime) -> bool:
        # Half-open windows: a booking ending at 12:30 leaves a 12:30 start free.
        return self.start < end and start < self.end

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "reservation_id": self.reservation_id,
            "resource_id": self.resource_id,
            "booking_date": self.booking_date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M"),
            "duration_minutes": self.duration_minutes,
            "party_size": self.party_size,
            "status": self.status.value,
            "version": self.version,
            "created_at": self.created_at.isoformat(timespec="seconds") if self.created_at else None,
            "updated_at": self.updated_at.isoformat(timespec="seconds") if self.updated_at else None,
        }
        for field_name in DETAIL_FIELDS:
            value = getattr(self, field_name)
            if value is not None:
                payload[field_name] = value
        return payload

    @staticmethod
    def from_dict(data: dict[str, Any]) -> "Reservation":
        details = {name: data.get(name) for name in DETAIL_FIELDS if data.get(name) is not None}
        if "service_type" in details:
            details["service_type"] = int(details["service_type"])
        resource_id = data.get("resource_id")
        return Reservation(
            reservation_id=str(data["reservation_id"]),
            resource_id=(int(resource_id) if resource_id is not None else None),
            booking_date=coerce_date(data["booking_date"]),
            start_time=parse_time_value(data["start_time"]),
            duration_minutes=int(data.get("duration_minutes", DEFAULT_DURATION_MINUTES)),
            party_size=int(data["party_size"]),
            status=ReservationStatus(str(data.get("status", ReservationStatus.PENDING.value))),
            version=int(data.get("version", 0)),
            created_at=_parse_optional_datetime(data.get("created_at")),
            updated_at=_parse_optional_datetime(data.get("updated_at")),
            **details,
        )


@dataclass(frozen=True)
class SlotAvailability:
    time: time
    available: bool
    matching_resource_capacity: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "time": self.time.strftime("%H:%M"),
            "available": self.available,
            "matching_resource_capacity": self.matching_resource_capacity,
        }


def coerce_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


def parse_time_value(value: Any) -> time:
    # YAML 1.1 reads an unquoted 20:00 as the sexagesimal integer 1200.
    if isinstance(value, time):
        return value
    if isinstance(value, int):
        return time(value // 60, value % 60)
    return time.fromisoformat(str(value))


def _parse_optional_datetime(value: Any) -> datetime | None:
    if value is None:
        return None
    return datetime.fromisoformat(str(value))
