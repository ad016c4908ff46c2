from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
import logging
from typing import Any, Iterable, Protocol

import requests

from .models import Reservation

logger = logging.getLogger(__name__)

DEFAULT_BUSINESS_NAME = "Bond Chauffeur"
TO_BE_CONFIRMED = "To be confirmed with customer"


class Notifier(Protocol):
    def notify(self, reservation: Reservation) -> None:
        ...


class NotificationDispatcher:
    """Runs notifiers on a background pool after a reservation is committed.

    A notifier failure is logged and never reaches the caller that made the
    reservation.
    """

    def __init__(self, notifiers: Iterable[Notifier] = (), max_workers: int = 2) -> None:
        self.notifiers = list(notifiers)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="booking-notify")

    def dispatch(self, reservation: Reservation) -> list[Future[None]]:
        futures: list[Future[None]] = []
        for notifier in self.notifiers:
            try:
                futures.append(self._executor.submit(_deliver, notifier, reservation))
            except RuntimeError:
                logger.exception("Notification pool is shut down; dropped notification for %s", reservation.reservation_id)
        return futures

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)


def _deliver(notifier: Notifier, reservation: Reservation) -> None:
    try:
        notifier.notify(reservation)
    except Exception:
        logger.exception("Notifier %s failed for reservation %s", type(notifier).__name__, reservation.reservation_id)
    else:
        logger.info("Notifier %s delivered reservation %s", type(notifier).__name__, reservation.reservation_id)


class WebhookNotifier:
    """Posts the CRM sync payload for each committed reservation as JSON."""

    def __init__(
        self,
        url: str,
        business_name: str = DEFAULT_BUSINESS_NAME,
        business_id: str | None = None,
        timeout: float = 10.0,
        session: requests.Session | None = None,
    ) -> None:
        self.url = url
        self.business_name = business_name
        self.business_id = business_id
        self.timeout = timeout
        self.session = session or requests.Session()

    def notify(self, reservation: Reservation) -> None:
        payload = build_crm_payload(reservation, business_name=self.business_name, business_id=self.business_id)
        response = self.session.post(self.url, json=payload, timeout=self.timeout)
        response.raise_for_status()


def build_crm_payload(
    reservation: Reservation,
    business_name: str = DEFAULT_BUSINESS_NAME,
    business_id: str | None = None,
) -> dict[str, Any]:
    return {
        "name": reservation.customer_name or "",
        "email": reservation.customer_email or "",
        "phone": reservation.customer_phone or "",
        "business_id": business_id or "",
        "business_name": business_name,
        "booking_id": reservation.reservation_id,
        "booking_date": reservation.booking_date.isoformat(),
        "start_time": reservation.start_time.strftime("%H:%M"),
        "party_size": reservation.party_size,
        "service_type": reservation.service_label or "",
        "special_requests": reservation.special_requests or "",
    }


def build_email_params(reservation: Reservation, business_name: str = DEFAULT_BUSINESS_NAME) -> dict[str, Any]:
    """Template parameters for the booking confirmation e-mail."""
    return {
        "service": f"{business_name} Service",
        "service_type": reservation.service_label or "Chauffeur Service",
        "date": reservation.booking_date.isoformat(),
        "formatted_date": f"{reservation.booking_date.strftime('%A, %B %d, %Y')} at {reservation.start_time.strftime('%H:%M')}",
        "time": reservation.start_time.strftime("%H:%M"),
        "name": reservation.customer_name or "",
        "email": reservation.customer_email or "",
        "phone": reservation.customer_phone or "Not provided",
        "pickup": reservation.pickup_location or TO_BE_CONFIRMED,
        "dropoff": reservation.dropoff_location or TO_BE_CONFIRMED,
        "passengers": reservation.party_size,
        "special": reservation.special_requests or "None",
        "flight": reservation.flight_number or TO_BE_CONFIRMED,
    }
