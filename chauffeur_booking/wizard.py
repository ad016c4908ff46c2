from __future__ import annotations

from datetime import date, time
from enum import Enum
import logging
from typing import Any

from .errors import NoAvailabilityError
from .models import DETAIL_FIELDS, Reservation, SlotAvailability
from .parsing import parse_date, parse_time
from .service import BookingService

logger = logging.getLogger(__name__)


class WizardState(str, Enum):
    COLLECTING_DATE = "collecting_date"
    COLLECTING_SERVICE = "collecting_service"
    COLLECTING_TIME = "collecting_time"
    COLLECTING_DETAILS = "collecting_details"
    CONFIRMED = "confirmed"


# state -> (fields required to leave it, next state)
TRANSITIONS: dict[WizardState, tuple[tuple[str, ...], WizardState]] = {
    WizardState.COLLECTING_DATE: (("booking_date",), WizardState.COLLECTING_SERVICE),
    WizardState.COLLECTING_SERVICE: (("party_size",), WizardState.COLLECTING_TIME),
    WizardState.COLLECTING_TIME: (("start_time",), WizardState.COLLECTING_DETAILS),
    WizardState.COLLECTING_DETAILS: (("customer_name", "customer_email"), WizardState.CONFIRMED),
}

PREVIOUS_STATE: dict[WizardState, WizardState] = {
    WizardState.COLLECTING_SERVICE: WizardState.COLLECTING_DATE,
    WizardState.COLLECTING_TIME: WizardState.COLLECTING_SERVICE,
    WizardState.COLLECTING_DETAILS: WizardState.COLLECTING_TIME,
}

FORM_FIELDS = ("booking_date", "party_size", "start_time", "duration_minutes", *DETAIL_FIELDS)


class WizardError(ValueError):
    pass


class BookingWizard:
    """Step-by-step intake of one booking.

    The wizard holds only its own form. Availability is looked up at the time
    step and the reservation is committed when the details step is left.
    """

    def __init__(
        self,
        service: BookingService,
        duration_minutes: int | None = None,
        reference_date: date | None = None,
    ) -> None:
        self.service = service
        self.reference_date = reference_date
        self.state = WizardState.COLLECTING_DATE
        self.form: dict[str, Any] = {"duration_minutes": duration_minutes}
        self.reservation: Reservation | None = None

    def update(self, **fields: Any) -> None:
        if self.state == WizardState.CONFIRMED:
            raise WizardError("Booking is already confirmed.")

        unknown = sorted(set(fields) - set(FORM_FIELDS))
        if unknown:
            raise WizardError(f"Unknown booking fields: {', '.join(unknown)}")

        for name, value in fields.items():
            if name == "booking_date" and isinstance(value, str):
                value = parse_date(value, self.reference_date)
            elif name == "start_time" and isinstance(value, str):
                value = parse_time(value)
            elif name in ("party_size", "duration_minutes", "service_type") and value is not None:
                value = int(value)
            self.form[name] = value

        # A new date or party size invalidates a previously picked slot.
        if ("booking_date" in fields or "party_size" in fields) and "start_time" not in fields:
            self.form.pop("start_time", None)

    def missing_fields(self) -> list[str]:
        if self.state == WizardState.CONFIRMED:
            return []
        required, _ = TRANSITIONS[self.state]
        return [name for name in required if self.form.get(name) in (None, "")]

    def can_proceed(self) -> bool:
        return self.state != WizardState.CONFIRMED and not self.missing_fields()

    def available_times(self) -> list[SlotAvailability]:
        if self.state != WizardState.COLLECTING_TIME:
            raise WizardError("Available times are only offered at the time step.")
        return self.service.query_availability(
            self.form["booking_date"],
            self.form["party_size"],
            self.form.get("duration_minutes"),
        )

    def advance(self) -> WizardState:
        if self.state == WizardState.CONFIRMED:
            raise WizardError("Booking is already confirmed.")

        missing = self.missing_fields()
        if missing:
            raise WizardError(f"Missing required fields: {', '.join(missing)}")

        _, next_state = TRANSITIONS[self.state]
        if next_state == WizardState.CONFIRMED:
            self.reservation = self._confirm()
        self.state = next_state
        return self.state

    def back(self) -> WizardState:
        previous = PREVIOUS_STATE.get(self.state)
        if previous is None:
            raise WizardError(f"Cannot go back from {self.state.value}.")
        self.state = previous
        return self.state

    def _confirm(self) -> Reservation:
        details = {name: self.form.get(name) for name in DETAIL_FIELDS}
        booking_date: date = self.form["booking_date"]
        start_time: time = self.form["start_time"]
        try:
            return self.service.commit_reservation(
                booking_date,
                start_time,
                self.form.get("duration_minutes"),
                self.form["party_size"],
                **details,
            )
        except NoAvailabilityError:
            logger.info("Slot %s on %s was taken before confirmation", start_time, booking_date)
            self.form.pop("start_time", None)
            self.state = WizardState.COLLECTING_TIME
            raise
