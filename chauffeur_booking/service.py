from __future__ import annotations

from contextlib import contextmanager
from datetime import date, datetime, time
import logging
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Mapping

from .availability import AvailabilityEngine
from .config import Settings, load_settings
from .errors import NotFoundError, PersistenceError
from .models import Reservation, Resource, SlotAvailability
from .notifications import NotificationDispatcher, Notifier
from .resolver import ConflictResolver
from .resources import ResourceRegistry
from .store import ReservationStore, YamlReservationStore

logger = logging.getLogger(__name__)


class BookingService:
    """The operations the intake wizard and the operator views call."""

    def __init__(
        self,
        registry: ResourceRegistry,
        store: ReservationStore,
        settings: Settings | None = None,
        dispatcher: NotificationDispatcher | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings or Settings()
        self.registry = registry
        self.store = store
        self.engine = AvailabilityEngine(registry, store, self.settings)
        self.resolver = ConflictResolver(self.engine, clock=clock)
        self.dispatcher = dispatcher

    def query_availability(
        self,
        day: date,
        party_size: int,
        duration_minutes: int | None = None,
    ) -> list[SlotAvailability]:
        with _persistence_guard("query availability"):
            return self.engine.query_availability(day, party_size, duration_minutes)

    def commit_reservation(
        self,
        day: date,
        start_time: time,
        duration_minutes: int | None = None,
        party_size: int = 1,
        **details: Any,
    ) -> Reservation:
        with _persistence_guard("commit reservation"):
            created = self.resolver.commit_reservation(day, start_time, duration_minutes, party_size, **details)

        if self.dispatcher is not None:
            self.dispatcher.dispatch(created)
        return created

    def amend_reservation(self, reservation_id: str, changes: Mapping[str, Any]) -> Reservation:
        with _persistence_guard("amend reservation"):
            return self.resolver.amend_reservation(reservation_id, changes)

    def cancel_reservation(self, reservation_id: str) -> None:
        with _persistence_guard("cancel reservation"):
            self.resolver.cancel_reservation(reservation_id)

    def delete_reservation(self, reservation_id: str) -> Reservation:
        with _persistence_guard("delete reservation"):
            return self.resolver.delete_reservation(reservation_id)

    def get_reservation(self, reservation_id: str) -> Reservation | None:
        with _persistence_guard("load reservation"):
            return self.store.get(reservation_id)

    def list_reservations(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        include_cancelled: bool = True,
        resource_id: int | None = None,
    ) -> list[Reservation]:
        with _persistence_guard("list reservations"):
            return self.store.list_reservations(
                start_date,
                end_date,
                include_cancelled=include_cancelled,
                resource_id=resource_id,
            )

    def resource_schedule(self, day: date) -> dict[int, list[Reservation]]:
        """Active reservations on ``day`` grouped by vehicle, including idle vehicles."""
        with _persistence_guard("load resource schedule"):
            records = self.store.reservations_on(day)
        schedule: dict[int, list[Reservation]] = {resource.resource_id: [] for resource in self.registry.list_resources()}
        for record in records:
            if record.resource_id is not None:
                schedule.setdefault(record.resource_id, []).append(record)
        return schedule

    def next_reservation(self, resource_id: int, after: datetime) -> Reservation | None:
        if self.registry.get(resource_id) is None:
            raise NotFoundError(f"resource {resource_id} not found")
        with _persistence_guard("load next reservation"):
            return self.store.next_reservation(resource_id, after)

    def list_resources(self) -> list[Resource]:
        return self.registry.list_resources()

    def close(self) -> None:
        if self.dispatcher is not None:
            self.dispatcher.shutdown(wait=True)


def build_service(
    config_path: str | Path | None = None,
    data_dir: str | Path | None = None,
    notifiers: Iterable[Notifier] = (),
    clock: Callable[[], datetime] | None = None,
) -> BookingService:
    """Wire a service from a YAML config file with a YAML-backed store."""
    loaded = load_settings(config_path)
    settings = loaded.settings
    store = YamlReservationStore(data_dir or settings.data_dir, lock_timeout_seconds=settings.lock_timeout_seconds)
    notifier_list = list(notifiers)
    dispatcher = NotificationDispatcher(notifier_list) if notifier_list else None
    return BookingService(ResourceRegistry(loaded.resources), store, settings, dispatcher=dispatcher, clock=clock)


@contextmanager
def _persistence_guard(operation: str) -> Iterator[None]:
    try:
        yield
    except PersistenceError:
        logger.exception("Storage failure during %s", operation)
        raise
