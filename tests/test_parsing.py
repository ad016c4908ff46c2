import unittest
from datetime import date, time

from chauffeur_booking.parsing import parse_booking_request, parse_date, parse_time


class TestParseDate(unittest.TestCase):
    def test_iso_and_slash_formats(self) -> None:
        self.assertEqual(parse_date("2024-06-01"), date(2024, 6, 1))
        self.assertEqual(parse_date("pickup on 2024/6/1 please"), date(2024, 6, 1))

    def test_relative_days_use_reference_date(self) -> None:
        reference = date(2024, 5, 31)
        self.assertEqual(parse_date("today", reference), reference)
        self.assertEqual(parse_date("Tomorrow morning", reference), date(2024, 6, 1))

    def test_rejects_missing_or_invalid_dates(self) -> None:
        for text in ("", "   ", "next week", "2024-13-01"):
            with self.subTest(text=text):
                with self.assertRaises(ValueError):
                    parse_date(text)


class TestParseTime(unittest.TestCase):
    def test_24_hour_clock(self) -> None:
        self.assertEqual(parse_time("10:00"), time(10, 0))
        self.assertEqual(parse_time("at 7:45"), time(7, 45))

    def test_12_hour_clock(self) -> None:
        self.assertEqual(parse_time("2:30 PM"), time(14, 30))
        self.assertEqual(parse_time("9am"), time(9, 0))
        self.assertEqual(parse_time("12 am"), time(0, 0))
        self.assertEqual(parse_time("12:15pm"), time(12, 15))

    def test_bare_numbers_are_not_times(self) -> None:
        with self.assertRaises(ValueError):
            parse_time("4 passengers")

    def test_out_of_range_12_hour_value(self) -> None:
        with self.assertRaises(ValueError):
            parse_time("13pm")


class TestParseBookingRequest(unittest.TestCase):
    def test_full_request(self) -> None:
        parsed = parse_booking_request("2024-06-01 10:00 for 4 passengers, 3 hours")

        self.assertEqual(parsed.day, date(2024, 6, 1))
        self.assertEqual(parsed.start_time, time(10, 0))
        self.assertEqual(parsed.party_size, 4)
        self.assertEqual(parsed.duration_minutes, 180)

    def test_optional_parts_default_to_none(self) -> None:
        parsed = parse_booking_request("tomorrow 2:30 pm", reference_date=date(2024, 5, 31))

        self.assertEqual(parsed.day, date(2024, 6, 1))
        self.assertEqual(parsed.start_time, time(14, 30))
        self.assertIsNone(parsed.party_size)
        self.assertIsNone(parsed.duration_minutes)

    def test_hours_and_minutes_duration(self) -> None:
        parsed = parse_booking_request("2024-06-01 09:30 2 pax 1h 30min")

        self.assertEqual(parsed.party_size, 2)
        self.assertEqual(parsed.duration_minutes, 90)
        self.assertEqual(parsed.start_time, time(9, 30))

    def test_missing_time_raises(self) -> None:
        with self.assertRaises(ValueError):
            parse_booking_request("2024-06-01 for 3 people")


if __name__ == "__main__":
    unittest.main()
