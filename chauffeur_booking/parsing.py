import re
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

_DATE_RE = re.compile(r"(?P<date>\d{4}[/-]\d{1,2}[/-]\d{1,2})")
_RELATIVE_DATE_RE = re.compile(r"\b(?P<day>today|tomorrow)\b", re.IGNORECASE)
_TIME_RE = re.compile(r"(?<![\d/-])(?P<hour>[01]?\d|2[0-3])(?::(?P<minute>[0-5]\d))?\s*(?P<ampm>am|pm)?(?![\d/-])", re.IGNORECASE)
_PARTY_RE = re.compile(r"(?P<size>\d+)\s*(?:passengers?|pax|people|persons?|guests?)\b", re.IGNORECASE)
_DURATION_RE = re.compile(
    r"(?:(?P<hours>\d+)\s*(?:h|hours?|hrs?))?\s*(?:(?P<minutes>\d+)\s*(?:m|min|mins|minutes?))?\b",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ParsedBookingRequest:
    day: date
    start_time: time
    party_size: int | None
    duration_minutes: int | None
    raw_text: str


def parse_date(text: str, reference_date: date | None = None) -> date:
    """Parse ``YYYY-MM-DD``, ``YYYY/MM/DD``, ``today`` or ``tomorrow``."""
    if not text or not text.strip():
        raise ValueError("date text must not be empty")

    match = _DATE_RE.search(text)
    if match:
        normalized = match.group("date").replace("/", "-")
        return datetime.strptime(normalized, "%Y-%m-%d").date()

    relative = _RELATIVE_DATE_RE.search(text)
    if relative:
        base = reference_date or date.today()
        return base + timedelta(days=1 if relative.group("day").lower() == "tomorrow" else 0)

    raise ValueError("Could not find a date in text. Expected format: YYYY-MM-DD, 'today' or 'tomorrow'")


def parse_time(text: str) -> time:
    """Parse ``HH:MM`` (24h) or a 12-hour clock value such as ``2:30 PM`` or ``9am``."""
    if not text or not text.strip():
        raise ValueError("time text must not be empty")

    for match in _TIME_RE.finditer(text):
        if match.group("minute") is None and match.group("ampm") is None:
            continue
        return _time_from_match(match)
    raise ValueError("Could not find a time in text. Expected format: HH:MM or h:MM AM/PM")


def parse_booking_request(text: str, reference_date: date | None = None) -> ParsedBookingRequest:
    """Parse a one-line request such as ``2024-06-01 10:00 for 4 passengers, 3 hours``."""
    if not text or not text.strip():
        raise ValueError("text must not be empty")

    day = parse_date(text, reference_date)
    remainder = _DATE_RE.sub(" ", text)

    party_match = _PARTY_RE.search(remainder)
    party_size = int(party_match.group("size")) if party_match else None
    if party_match:
        remainder = remainder.replace(party_match.group(0), " ")

    duration_minutes = None
    for match in _DURATION_RE.finditer(remainder):
        if match.group("hours") is None and match.group("minutes") is None:
            continue
        duration_minutes = int(match.group("hours") or 0) * 60 + int(match.group("minutes") or 0)
        remainder = remainder.replace(match.group(0), " ")
        break

    if duration_minutes is not None and duration_minutes <= 0:
        raise ValueError("duration must be greater than zero")

    return ParsedBookingRequest(
        day=day,
        start_time=parse_time(remainder),
        party_size=party_size,
        duration_minutes=duration_minutes,
        raw_text=text,
    )


def _time_from_match(match: re.Match[str]) -> time:
    hour = int(match.group("hour"))
    minute = int(match.group("minute") or 0)
    ampm = (match.group("ampm") or "").lower()

    if ampm:
        if hour < 1 or hour > 12:
            raise ValueError("12-hour clock values must be between 1 and 12")
        if ampm == "pm" and hour < 12:
            hour += 12
        if ampm == "am" and hour == 12:
            hour = 0
    return time(hour, minute)
