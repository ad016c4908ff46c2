from __future__ import annotations


class ReservationError(Exception):
    """Base class for every error raised by the reservation core."""


class InvalidRangeError(ReservationError, ValueError):
    """Bad grid or request parameters. A caller bug, not retryable as-is."""


class NoAvailabilityError(ReservationError):
    """No eligible resource is free for the requested slot."""


class NotFoundError(ReservationError, LookupError):
    """Unknown reservation id, or the reservation is already cancelled."""


class PersistenceError(ReservationError, RuntimeError):
    """Storage failure. The store is left unchanged; retry after backoff."""


class ConcurrentWriteError(PersistenceError):
    """The stored data changed between the transaction's read and its write."""
