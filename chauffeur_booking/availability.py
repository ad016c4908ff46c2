from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Iterable

import holidays as pyholidays

from .config import Settings
from .errors import InvalidRangeError
from .models import Reservation, Resource, SlotAvailability
from .resources import ResourceRegistry
from .slots import generate_slots
from .store import ReservationStore

_HOLIDAY_CACHE: dict[tuple[str, int], set[date]] = {}


class AvailabilityEngine:
    """Read-only, point-in-time availability of the fleet for one day.

    A query never holds anything; the resolver repeats the same computation
    against the store inside its transaction before it writes.
    """

    def __init__(self, registry: ResourceRegistry, store: ReservationStore, settings: Settings | None = None) -> None:
        self.registry = registry
        self.store = store
        self.settings = settings or Settings()

    def query_availability(
        self,
        day: date,
        party_size: int,
        duration_minutes: int | None = None,
    ) -> list[SlotAvailability]:
        duration = self.resolve_duration(duration_minutes)
        validate_party_size(party_size)

        grid = generate_slots(
            day,
            self.settings.granularity_minutes,
            self.settings.open_time,
            self.settings.close_time,
            duration,
        )

        eligible = self.eligible_resources(party_size)
        if not eligible or not self.is_open_on(day):
            return [SlotAvailability(time=slot, available=False) for slot in grid]

        reservations = self.store.reservations_on(day)
        results: list[SlotAvailability] = []
        for slot in grid:
            free = free_resources(eligible, reservations, day, slot, duration)
            results.append(
                SlotAvailability(
                    time=slot,
                    available=bool(free),
                    matching_resource_capacity=(free[0].capacity if free else None),
                )
            )
        return results

    def eligible_resources(self, party_size: int) -> list[Resource]:
        """Active resources that can seat ``party_size``, tightest fit first."""
        eligible = [resource for resource in self.registry.list_active_resources() if resource.capacity >= party_size]
        return sorted(eligible, key=lambda resource: (resource.capacity, resource.resource_id))

    def is_open_on(self, day: date) -> bool:
        if day in self.settings.closed_dates:
            return False
        if self.settings.holiday_country:
            return not _is_public_holiday(self.settings.holiday_country, day)
        return True

    def resolve_duration(self, duration_minutes: int | None) -> int:
        duration = self.settings.default_duration_minutes if duration_minutes is None else duration_minutes
        if duration <= 0:
            raise InvalidRangeError("duration_minutes must be greater than zero")
        return duration


def free_resources(
    resources: Iterable[Resource],
    reservations: Iterable[Reservation],
    day: date,
    start_time: time,
    duration_minutes: int,
    exclude_reservation_id: str | None = None,
) -> list[Resource]:
    """Return the resources in ``resources`` with no active reservation overlapping the request.

    Input order is preserved, so passing tightest-fit ordering yields the
    preferred binding first. ``exclude_reservation_id`` ignores one
    reservation, letting an amendment not conflict with itself.
    """
    start = datetime.combine(day, start_time)
    end = start + timedelta(minutes=duration_minutes)

    busy = {
        record.resource_id
        for record in reservations
        if record.is_active
        and record.booking_date == day
        and record.reservation_id != exclude_reservation_id
        and record.overlaps(start, end)
    }
    return [resource for resource in resources if resource.resource_id not in busy]


def validate_party_size(party_size: int) -> None:
    if party_size < 1:
        raise InvalidRangeError("party_size must be at least 1")


def _is_public_holiday(country: str, target_date: date) -> bool:
    key = (country, target_date.year)
    if key not in _HOLIDAY_CACHE:
        holiday_map = pyholidays.country_holidays(country, years=[target_date.year])
        _HOLIDAY_CACHE[key] = set(holiday_map.keys())
    return target_date in _HOLIDAY_CACHE[key]
