import unittest
from datetime import date, time

from chauffeur_booking import InvalidRangeError, generate_slots
from chauffeur_booking.slots import fits_opening_hours


class TestGenerateSlots(unittest.TestCase):
    def test_grid_leaves_room_for_full_duration(self) -> None:
        slots = generate_slots(date(2024, 6, 1), 30, time(8, 0), time(20, 0), 150)

        self.assertEqual(slots[0], time(8, 0))
        self.assertEqual(slots[-1], time(17, 30))
        self.assertEqual(len(slots), 20)

    def test_slots_are_spaced_by_granularity(self) -> None:
        slots = generate_slots(date(2024, 6, 1), 45, time(9, 0), time(12, 0), 60)

        self.assertEqual(slots, [time(9, 0), time(9, 45), time(10, 30)])

    def test_last_slot_may_end_exactly_at_close(self) -> None:
        slots = generate_slots(date(2024, 6, 1), 60, time(8, 0), time(11, 0), 60)

        self.assertEqual(slots[-1], time(10, 0))

    def test_duration_longer_than_opening_hours_yields_empty_grid(self) -> None:
        self.assertEqual(generate_slots(date(2024, 6, 1), 30, time(8, 0), time(9, 0), 150), [])

    def test_is_deterministic(self) -> None:
        first = generate_slots(date(2024, 6, 1), 15, time(6, 0), time(23, 0), 90)
        second = generate_slots(date(2024, 6, 1), 15, time(6, 0), time(23, 0), 90)

        self.assertEqual(first, second)

    def test_invalid_parameters_raise(self) -> None:
        with self.assertRaises(InvalidRangeError):
            generate_slots(date(2024, 6, 1), 30, time(20, 0), time(8, 0))
        with self.assertRaises(InvalidRangeError):
            generate_slots(date(2024, 6, 1), 30, time(8, 0), time(8, 0))
        with self.assertRaises(InvalidRangeError):
            generate_slots(date(2024, 6, 1), 0, time(8, 0), time(20, 0))
        with self.assertRaises(InvalidRangeError):
            generate_slots(date(2024, 6, 1), -15, time(8, 0), time(20, 0))

    def test_invalid_range_error_is_a_value_error(self) -> None:
        with self.assertRaises(ValueError):
            generate_slots(date(2024, 6, 1), 0, time(8, 0), time(20, 0))


class TestFitsOpeningHours(unittest.TestCase):
    def test_inside_and_outside_hours(self) -> None:
        self.assertTrue(fits_opening_hours(time(17, 30), 150, time(8, 0), time(20, 0)))
        self.assertFalse(fits_opening_hours(time(18, 0), 150, time(8, 0), time(20, 0)))
        self.assertFalse(fits_opening_hours(time(7, 30), 60, time(8, 0), time(20, 0)))


if __name__ == "__main__":
    unittest.main()
