import unittest
from dataclasses import replace
from datetime import date, datetime, time

from chauffeur_booking import (
    AvailabilityEngine,
    InMemoryReservationStore,
    InvalidRangeError,
    Reservation,
    ReservationStatus,
    Resource,
    ResourceRegistry,
    Settings,
    free_resources,
)
from chauffeur_booking.resolver import ConflictResolver


class TestQueryAvailability(unittest.TestCase):
    def setUp(self) -> None:
        self.registry = ResourceRegistry([Resource(1, 4)])
        self.store = InMemoryReservationStore()
        self.engine = AvailabilityEngine(self.registry, self.store, Settings())
        self.resolver = ConflictResolver(self.engine)

    def test_empty_schedule_is_fully_available(self) -> None:
        slots = self.engine.query_availability(date(2024, 6, 1), party_size=2, duration_minutes=150)

        self.assertEqual(len(slots), 20)
        self.assertEqual(slots[0].time, time(8, 0))
        self.assertEqual(slots[-1].time, time(17, 30))
        self.assertTrue(all(slot.available for slot in slots))
        self.assertTrue(all(slot.matching_resource_capacity == 4 for slot in slots))

    def test_existing_reservation_blocks_overlapping_slots(self) -> None:
        self.resolver.commit_reservation(date(2024, 6, 1), time(10, 0), 150, 4)

        slots = {slot.time: slot for slot in self.engine.query_availability(date(2024, 6, 1), 2, 150)}

        # [t, t+150) overlaps [10:00, 12:30) for 07:30 < t < 12:30
        self.assertFalse(slots[time(8, 0)].available)
        self.assertFalse(slots[time(10, 0)].available)
        self.assertFalse(slots[time(12, 0)].available)
        self.assertTrue(slots[time(12, 30)].available)
        self.assertIsNone(slots[time(10, 0)].matching_resource_capacity)

    def test_other_dates_are_unaffected(self) -> None:
        self.resolver.commit_reservation(date(2024, 6, 1), time(10, 0), 150, 4)

        slots = self.engine.query_availability(date(2024, 6, 2), 2, 150)

        self.assertTrue(all(slot.available for slot in slots))

    def test_party_larger_than_fleet_is_never_available(self) -> None:
        slots = self.engine.query_availability(date(2024, 6, 1), party_size=5, duration_minutes=150)

        self.assertEqual(len(slots), 20)
        self.assertFalse(any(slot.available for slot in slots))

    def test_retired_resources_are_not_eligible(self) -> None:
        self.registry.retire_resource(1)

        slots = self.engine.query_availability(date(2024, 6, 1), 1, 150)

        self.assertFalse(any(slot.available for slot in slots))

    def test_capacity_change_applies_to_next_query(self) -> None:
        self.registry.set_capacity(1, 2)

        slots = self.engine.query_availability(date(2024, 6, 1), 3, 150)

        self.assertFalse(any(slot.available for slot in slots))

    def test_cancelled_reservation_frees_its_slots(self) -> None:
        created = self.resolver.commit_reservation(date(2024, 6, 1), time(10, 0), 150, 4)
        self.resolver.cancel_reservation(created.reservation_id)

        slots = self.engine.query_availability(date(2024, 6, 1), 2, 150)

        self.assertTrue(all(slot.available for slot in slots))

    def test_default_duration_is_used_when_omitted(self) -> None:
        slots = self.engine.query_availability(date(2024, 6, 1), 2)

        self.assertEqual(slots[-1].time, time(17, 30))

    def test_invalid_request_parameters_raise(self) -> None:
        with self.assertRaises(InvalidRangeError):
            self.engine.query_availability(date(2024, 6, 1), 0, 150)
        with self.assertRaises(InvalidRangeError):
            self.engine.query_availability(date(2024, 6, 1), 2, 0)


class TestTightestFitHint(unittest.TestCase):
    def test_reports_smallest_free_capacity(self) -> None:
        registry = ResourceRegistry([Resource(1, 2), Resource(2, 4), Resource(3, 7)])
        engine = AvailabilityEngine(registry, InMemoryReservationStore())

        slots = engine.query_availability(date(2024, 6, 1), 3, 150)

        self.assertTrue(all(slot.matching_resource_capacity == 4 for slot in slots))

    def test_hint_moves_to_next_capacity_when_tightest_is_busy(self) -> None:
        registry = ResourceRegistry([Resource(1, 2), Resource(2, 4), Resource(3, 7)])
        store = InMemoryReservationStore()
        engine = AvailabilityEngine(registry, store)
        ConflictResolver(engine).commit_reservation(date(2024, 6, 1), time(10, 0), 150, 3)

        slots = {slot.time: slot for slot in engine.query_availability(date(2024, 6, 1), 3, 150)}

        self.assertEqual(slots[time(10, 0)].matching_resource_capacity, 7)
        self.assertEqual(slots[time(14, 0)].matching_resource_capacity, 4)

    def test_eligible_resources_are_ordered_by_capacity_then_id(self) -> None:
        registry = ResourceRegistry([Resource(5, 4), Resource(2, 4), Resource(1, 8), Resource(3, 2)])
        engine = AvailabilityEngine(registry, InMemoryReservationStore())

        eligible = engine.eligible_resources(3)

        self.assertEqual([resource.resource_id for resource in eligible], [2, 5, 1])


class TestClosedDays(unittest.TestCase):
    def test_configured_closed_date_has_no_availability(self) -> None:
        settings = Settings(closed_dates=frozenset({date(2024, 6, 1)}))
        engine = AvailabilityEngine(ResourceRegistry([Resource(1, 4)]), InMemoryReservationStore(), settings)

        closed = engine.query_availability(date(2024, 6, 1), 2, 150)
        open_day = engine.query_availability(date(2024, 6, 2), 2, 150)

        self.assertEqual(len(closed), 20)
        self.assertFalse(any(slot.available for slot in closed))
        self.assertTrue(all(slot.available for slot in open_day))

    def test_public_holiday_is_closed_when_country_configured(self) -> None:
        settings = Settings(holiday_country="GB")
        engine = AvailabilityEngine(ResourceRegistry([Resource(1, 4)]), InMemoryReservationStore(), settings)

        self.assertFalse(engine.is_open_on(date(2024, 12, 25)))
        self.assertTrue(engine.is_open_on(date(2024, 6, 1)))


class TestFreeResources(unittest.TestCase):
    def setUp(self) -> None:
        self.day = date(2024, 6, 1)
        self.fleet = [Resource(1, 4), Resource(2, 4), Resource(3, 7)]
        self.booked = Reservation(
            reservation_id="r-1",
            resource_id=1,
            booking_date=self.day,
            start_time=time(10, 0),
            party_size=2,
            status=ReservationStatus.CONFIRMED,
        )

    def test_reservation_window_is_half_open(self) -> None:
        self.assertTrue(self.booked.overlaps(datetime(2024, 6, 1, 12, 0), datetime(2024, 6, 1, 14, 0)))
        self.assertTrue(self.booked.overlaps(datetime(2024, 6, 1, 10, 30), datetime(2024, 6, 1, 11, 0)))
        self.assertFalse(self.booked.overlaps(datetime(2024, 6, 1, 12, 30), datetime(2024, 6, 1, 15, 0)))
        self.assertFalse(self.booked.overlaps(datetime(2024, 6, 1, 8, 0), datetime(2024, 6, 1, 10, 0)))

    def test_busy_vehicle_is_dropped_and_order_is_kept(self) -> None:
        free = free_resources(self.fleet, [self.booked], self.day, time(11, 0), 60)

        self.assertEqual([resource.resource_id for resource in free], [2, 3])

    def test_back_to_back_request_keeps_vehicle_free(self) -> None:
        free = free_resources(self.fleet, [self.booked], self.day, time(12, 30), 150)

        self.assertEqual([resource.resource_id for resource in free], [1, 2, 3])

    def test_cancelled_other_day_and_excluded_bookings_are_ignored(self) -> None:
        cancelled = replace(self.booked, reservation_id="r-2", status=ReservationStatus.CANCELLED)
        other_day = replace(self.booked, reservation_id="r-3", booking_date=date(2024, 6, 2))

        free = free_resources(
            self.fleet,
            [self.booked, cancelled, other_day],
            self.day,
            time(10, 0),
            150,
            exclude_reservation_id="r-1",
        )

        self.assertEqual([resource.resource_id for resource in free], [1, 2, 3])


if __name__ == "__main__":
    unittest.main()
