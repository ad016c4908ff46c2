from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime, time
import logging
from typing import Any, Callable, Mapping, TypeVar
from uuid import uuid4

from .availability import AvailabilityEngine, free_resources, validate_party_size
from .errors import ConcurrentWriteError, InvalidRangeError, NoAvailabilityError, NotFoundError
from .models import DETAIL_FIELDS, Reservation, ReservationStatus, Resource, coerce_date, parse_time_value
from .slots import fits_opening_hours
from .store import ReservationUnit

logger = logging.getLogger(__name__)

SCHEDULING_FIELDS = ("booking_date", "start_time", "duration_minutes", "party_size")
CHANGE_ALIASES = {"date": "booking_date"}

T = TypeVar("T")


class ConflictResolver:
    """Binds requests to exactly one free resource inside a store transaction."""

    def __init__(self, engine: AvailabilityEngine, clock: Callable[[], datetime] | None = None) -> None:
        self.engine = engine
        self.store = engine.store
        self.clock: Callable[[], datetime] = clock or datetime.now

    def commit_reservation(
        self,
        day: date,
        start_time: time,
        duration_minutes: int | None = None,
        party_size: int = 1,
        **details: Any,
    ) -> Reservation:
        duration = self.engine.resolve_duration(duration_minutes)
        validate_party_size(party_size)
        details = _normalize_details(details)

        def attempt(unit: ReservationUnit) -> Reservation:
            resource = self._bind(unit, day, start_time, duration, party_size)
            reservation = Reservation(
                reservation_id=str(uuid4()),
                resource_id=resource.resource_id,
                booking_date=day,
                start_time=start_time,
                duration_minutes=duration,
                party_size=party_size,
                status=ReservationStatus.CONFIRMED,
                created_at=unit.now,
                updated_at=unit.now,
                **details,
            )
            return unit.add(reservation)

        created = self._run(attempt)
        logger.info(
            "Committed reservation %s on resource %s at %s",
            created.reservation_id,
            created.resource_id,
            created.start.isoformat(timespec="minutes"),
        )
        return created

    def amend_reservation(self, reservation_id: str, changes: Mapping[str, Any]) -> Reservation:
        """Apply ``changes`` to a reservation, re-binding it when its schedule changes.

        The reservation's own interval never counts as a conflict, and it stays
        on its current vehicle while that vehicle still fits and is free. When
        no free resource fits the new schedule the stored reservation is left as
        it was.
        """
        normalized = _normalize_changes(changes)

        def attempt(unit: ReservationUnit) -> Reservation:
            current = unit.get(reservation_id)
            if current is None or not current.is_active:
                raise NotFoundError(f"reservation {reservation_id} not found")

            prospective = replace(current, **normalized, updated_at=unit.now)
            if not any(name in normalized for name in SCHEDULING_FIELDS):
                return unit.update(prospective)

            resource = self._bind(
                unit,
                prospective.booking_date,
                prospective.start_time,
                prospective.duration_minutes,
                prospective.party_size,
                exclude_reservation_id=current.reservation_id,
                preferred_resource_id=current.resource_id,
            )
            return unit.update(replace(prospective, resource_id=resource.resource_id))

        amended = self._run(attempt)
        logger.info("Amended reservation %s (resource %s)", amended.reservation_id, amended.resource_id)
        return amended

    def cancel_reservation(self, reservation_id: str) -> None:
        """Cancel a reservation, freeing its slot.

        Cancelling an unknown or already-cancelled reservation raises
        NotFoundError.
        """

        def attempt(unit: ReservationUnit) -> Reservation:
            current = unit.get(reservation_id)
            if current is None or not current.is_active:
                raise NotFoundError(f"reservation {reservation_id} not found")
            return unit.update(replace(current, status=ReservationStatus.CANCELLED, updated_at=unit.now))

        self._run(attempt)
        logger.info("Cancelled reservation %s", reservation_id)

    def delete_reservation(self, reservation_id: str) -> Reservation:
        def attempt(unit: ReservationUnit) -> Reservation:
            if unit.get(reservation_id) is None:
                raise NotFoundError(f"reservation {reservation_id} not found")
            return unit.remove(reservation_id)

        deleted = self._run(attempt)
        logger.info("Deleted reservation %s", reservation_id)
        return deleted

    def _bind(
        self,
        unit: ReservationUnit,
        day: date,
        start_time: time,
        duration_minutes: int,
        party_size: int,
        exclude_reservation_id: str | None = None,
        preferred_resource_id: int | None = None,
    ) -> Resource:
        settings = self.engine.settings
        if not fits_opening_hours(start_time, duration_minutes, settings.open_time, settings.close_time):
            raise NoAvailabilityError("Requested time is outside opening hours.")
        if not self.engine.is_open_on(day):
            raise NoAvailabilityError(f"No service on {day.isoformat()}.")

        eligible = self.engine.eligible_resources(party_size)
        if not eligible:
            raise NoAvailabilityError(f"No vehicle can carry a party of {party_size}.")

        free = free_resources(
            eligible,
            unit.reservations_on(day),
            day,
            start_time,
            duration_minutes,
            exclude_reservation_id=exclude_reservation_id,
        )
        if not free:
            raise NoAvailabilityError(
                f"No vehicle is free on {day.isoformat()} at {start_time.strftime('%H:%M')} for {duration_minutes} minutes."
            )
        for resource in free:
            if resource.resource_id == preferred_resource_id:
                return resource
        return free[0]

    def _run(self, operation: Callable[[ReservationUnit], T]) -> T:
        max_attempts = self.engine.settings.max_write_attempts
        attempt = 1
        while True:
            try:
                with self.store.transaction(now=self.clock()) as unit:
                    return operation(unit)
            except ConcurrentWriteError:
                if attempt >= max_attempts:
                    raise
                logger.warning("Concurrent write detected, re-checking availability (attempt %s/%s)", attempt, max_attempts)
                attempt += 1


def _normalize_details(details: Mapping[str, Any]) -> dict[str, Any]:
    unknown = sorted(set(details) - set(DETAIL_FIELDS))
    if unknown:
        raise ValueError(f"Unknown reservation fields: {', '.join(unknown)}")
    normalized = {name: value for name, value in details.items() if value is not None}
    if "service_type" in normalized:
        normalized["service_type"] = int(normalized["service_type"])
    return normalized


def _normalize_changes(changes: Mapping[str, Any]) -> dict[str, Any]:
    normalized: dict[str, Any] = {}
    details: dict[str, Any] = {}
    for raw_name, value in changes.items():
        name = CHANGE_ALIASES.get(raw_name, raw_name)
        if name == "booking_date":
            normalized[name] = coerce_date(value)
        elif name == "start_time":
            normalized[name] = parse_time_value(value)
        elif name == "duration_minutes":
            normalized[name] = int(value)
            if normalized[name] <= 0:
                raise InvalidRangeError("duration_minutes must be greater than zero")
        elif name == "party_size":
            normalized[name] = int(value)
            validate_party_size(normalized[name])
        else:
            details[name] = value

    unknown = sorted(set(details) - set(DETAIL_FIELDS))
    if unknown:
        raise ValueError(f"Unknown reservation fields: {', '.join(unknown)}")
    if "service_type" in details and details["service_type"] is not None:
        details["service_type"] = int(details["service_type"])
    normalized.update(details)
    return normalized
