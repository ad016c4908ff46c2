from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import contextmanager, nullcontext
from dataclasses import replace
from datetime import date, datetime
import logging
from pathlib import Path
import shutil
import threading
from typing import Any, ContextManager, Iterator, NoReturn

from filelock import FileLock, Timeout
import yaml

from .config import LOCK_TIMEOUT_SECONDS
from .errors import ConcurrentWriteError, PersistenceError
from .models import Reservation

logger = logging.getLogger(__name__)


class ReservationUnit:
    """Working copy of the store inside one transaction.

    Mutations only touch this copy. The store writes it back when the
    transaction block exits cleanly and discards it otherwise.
    """

    def __init__(self, records: dict[str, Reservation], sequence: int, now: datetime) -> None:
        self._records = dict(records)
        self.base_sequence = sequence
        self.sequence = sequence
        self.now = now
        self.events: list[tuple[str, dict[str, Any]]] = []

    @property
    def dirty(self) -> bool:
        return self.sequence != self.base_sequence

    @property
    def records(self) -> dict[str, Reservation]:
        return dict(self._records)

    def get(self, reservation_id: str) -> Reservation | None:
        return self._records.get(reservation_id)

    def reservations_on(self, day: date, *, include_cancelled: bool = False) -> list[Reservation]:
        return [
            record
            for record in self._records.values()
            if record.booking_date == day and (include_cancelled or record.is_active)
        ]

    def add(self, reservation: Reservation) -> Reservation:
        if reservation.reservation_id in self._records:
            raise ValueError(f"reservation {reservation.reservation_id} already exists")
        stored = replace(reservation, version=self._next_version())
        self._records[stored.reservation_id] = stored
        self.events.append(("RESERVATION_CREATED", _event_payload(stored)))
        return stored

    def update(self, reservation: Reservation) -> Reservation:
        current = self._records.get(reservation.reservation_id)
        if current is None:
            raise KeyError(reservation.reservation_id)
        stored = replace(reservation, version=self._next_version())
        self._records[stored.reservation_id] = stored
        cancelled_now = current.is_active and not stored.is_active
        self.events.append(("RESERVATION_CANCELLED" if cancelled_now else "RESERVATION_UPDATED", _event_payload(stored)))
        return stored

    def remove(self, reservation_id: str) -> Reservation:
        removed = self._records.pop(reservation_id)
        self._next_version()
        self.events.append(("RESERVATION_DELETED", _event_payload(removed)))
        return removed

    def _next_version(self) -> int:
        self.sequence += 1
        return self.sequence


class ReservationStore(ABC):
    """Durable set of reservations with an atomic check-then-write unit."""

    def __init__(self, lock_timeout_seconds: float = LOCK_TIMEOUT_SECONDS) -> None:
        self._lock = threading.RLock()
        self.lock_timeout_seconds = lock_timeout_seconds

    @contextmanager
    def transaction(self, now: datetime | None = None) -> Iterator[ReservationUnit]:
        with self._locked():
            records, sequence = self._load()
            unit = ReservationUnit(records, sequence, now or datetime.now())
            yield unit
            if unit.dirty:
                self._flush(unit.records, unit.sequence, expected_sequence=sequence)
                for event_type, payload in unit.events:
                    try:
                        self._log_event(event_type, payload, unit.now)
                    except PersistenceError:
                        logger.exception("Failed to record %s event", event_type)

    def get(self, reservation_id: str) -> Reservation | None:
        with self._locked():
            records, _ = self._load()
        return records.get(reservation_id)

    def list_reservations(
        self,
        start_date: date | None = None,
        end_date: date | None = None,
        *,
        include_cancelled: bool = True,
        resource_id: int | None = None,
    ) -> list[Reservation]:
        """Return reservations whose date lies in the inclusive range, ordered by start.

        ``resource_id`` narrows the result to the reservations bound to one vehicle.
        """
        with self._locked():
            records, _ = self._load()

        selected = [
            record
            for record in records.values()
            if (start_date is None or record.booking_date >= start_date)
            and (end_date is None or record.booking_date <= end_date)
            and (include_cancelled or record.is_active)
            and (resource_id is None or record.resource_id == resource_id)
        ]
        selected.sort(key=lambda record: (record.start, record.resource_id or 0, record.reservation_id))
        return selected

    def reservations_on(self, day: date) -> list[Reservation]:
        return self.list_reservations(day, day, include_cancelled=False)

    def next_reservation(self, resource_id: int, after: datetime) -> Reservation | None:
        """Earliest active reservation on ``resource_id`` starting at or after ``after``."""
        upcoming = [
            record
            for record in self.list_reservations(after.date(), None, include_cancelled=False, resource_id=resource_id)
            if record.start >= after
        ]
        return upcoming[0] if upcoming else None

    @contextmanager
    def _locked(self) -> Iterator[None]:
        if not self._lock.acquire(timeout=self.lock_timeout_seconds):
            raise PersistenceError("Timed out waiting for the reservation store lock.")
        try:
            with self._exclusive_access():
                yield
        finally:
            self._lock.release()

    def _exclusive_access(self) -> ContextManager[None]:
        """Hook for a lock shared with other store instances; in-process stores need none."""
        return nullcontext()

    @abstractmethod
    def _load(self) -> tuple[dict[str, Reservation], int]:
        """Return every stored reservation keyed by id, plus the current sequence number."""

    @abstractmethod
    def _flush(self, records: dict[str, Reservation], sequence: int, expected_sequence: int) -> None:
        """Persist ``records`` unless the stored sequence moved past ``expected_sequence``."""

    @abstractmethod
    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        ...


class InMemoryReservationStore(ReservationStore):
    def __init__(self, lock_timeout_seconds: float = LOCK_TIMEOUT_SECONDS) -> None:
        super().__init__(lock_timeout_seconds)
        self._records: dict[str, Reservation] = {}
        self._sequence = 0
        self.events: list[dict[str, Any]] = []

    def _load(self) -> tuple[dict[str, Reservation], int]:
        return dict(self._records), self._sequence

    def _flush(self, records: dict[str, Reservation], sequence: int, expected_sequence: int) -> None:
        if self._sequence != expected_sequence:
            raise ConcurrentWriteError("Reservation data changed during the transaction.")
        self._records = dict(records)
        self._sequence = sequence

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now()).isoformat(timespec="seconds")
        self.events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})


class YamlReservationStore(ReservationStore):
    """Reservation store backed by YAML files in ``base_dir``.

    ``reservations.yaml`` holds ``{sequence, reservations}`` and is rewritten
    through a temp file and an atomic replace. ``reservation_events.yaml`` is
    the append-only audit log. Every instance pointed at the same directory,
    in this process or another, serializes on ``reservations.lock``.
    """

    def __init__(self, base_dir: str | Path = "data", lock_timeout_seconds: float = LOCK_TIMEOUT_SECONDS) -> None:
        super().__init__(lock_timeout_seconds)
        self.base_dir = Path(base_dir)
        self.data_file = self.base_dir / "reservations.yaml"
        self.log_file = self.base_dir / "reservation_events.yaml"
        self.lock_file = self.base_dir / "reservations.lock"
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as error:
            raise PersistenceError(f"Failed to initialise reservation data directory: {self.base_dir}") from error
        self._file_lock = FileLock(str(self.lock_file), timeout=lock_timeout_seconds)
        with self._locked():
            self._ensure_files()

    def _ensure_files(self) -> None:
        try:
            if not self.data_file.exists():
                self._write_yaml(self.data_file, _empty_document())
            if not self.log_file.exists():
                self.log_file.write_text("[]\n", encoding="utf-8")
        except OSError as error:
            raise PersistenceError(f"Failed to initialise reservation data directory: {self.base_dir}") from error

    @contextmanager
    def _exclusive_access(self) -> Iterator[None]:
        try:
            self._file_lock.acquire()
        except Timeout as error:
            raise PersistenceError(f"Timed out waiting for the reservation data lock: {self.lock_file}") from error
        try:
            yield
        finally:
            self._file_lock.release()

    def _load(self) -> tuple[dict[str, Reservation], int]:
        document = self._read_document()
        records: dict[str, Reservation] = {}
        for index, row in enumerate(document["reservations"]):
            try:
                record = Reservation.from_dict(row)
            except (KeyError, TypeError, ValueError) as error:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {"file": str(self.data_file.name), "index": index, "reason": str(error)},
                )
                continue
            records[record.reservation_id] = record
        return records, document["sequence"]

    def _flush(self, records: dict[str, Reservation], sequence: int, expected_sequence: int) -> None:
        stored_sequence = self._read_document()["sequence"]
        if stored_sequence != expected_sequence:
            raise ConcurrentWriteError(
                f"Reservation data changed during the transaction (expected sequence {expected_sequence}, found {stored_sequence})."
            )

        rows = [record.to_dict() for record in sorted(records.values(), key=lambda record: record.version)]
        self._write_yaml(self.data_file, {"sequence": sequence, "reservations": rows})

    def _read_document(self) -> dict[str, Any]:
        try:
            payload = yaml.safe_load(self.data_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return _empty_document()
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            self._reject_corrupted_data(error)

        if payload is None:
            return _empty_document()
        if not isinstance(payload, dict) or not isinstance(payload.get("reservations") or [], list):
            self._reject_corrupted_data(ValueError("top-level YAML is not a reservation document"))
        try:
            sequence = int(payload.get("sequence", 0))
        except (TypeError, ValueError) as error:
            self._reject_corrupted_data(error)

        rows: list[dict[str, Any]] = []
        for index, row in enumerate(payload.get("reservations") or []):
            if isinstance(row, dict):
                rows.append(row)
            else:
                self._log_event(
                    "YAML_ROW_SKIPPED",
                    {"file": str(self.data_file.name), "index": index, "reason": "row is not a mapping"},
                )
        return {"sequence": sequence, "reservations": rows}

    def _reject_corrupted_data(self, error: Exception) -> NoReturn:
        # The data file is left in place; resetting it would drop committed bookings.
        backup_path = self._backup(self.data_file)
        logger.error("Reservation data file %s is unreadable: %s", self.data_file, error)
        self._log_event(
            "YAML_CORRUPTED",
            {
                "file": str(self.data_file.name),
                "backup": backup_path.name if backup_path else None,
                "reason": str(error),
            },
        )
        raise PersistenceError(f"Reservation data file is unreadable: {self.data_file}") from error

    def _read_log(self) -> list[dict[str, Any]]:
        try:
            events = yaml.safe_load(self.log_file.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as error:
            self._recover_corrupted_log(error)
            return self._read_log()
        return events if isinstance(events, list) else []

    def _recover_corrupted_log(self, error: Exception) -> None:
        backup_path = self._backup(self.log_file)
        logger.error("Recovered corrupted YAML file %s: %s", self.log_file, error)
        self._write_yaml(self.log_file, [])
        self._log_event(
            "YAML_RECOVERED",
            {
                "file": str(self.log_file.name),
                "backup": backup_path.name if backup_path else None,
                "reason": str(error),
            },
        )

    def _backup(self, path: Path) -> Path | None:
        timestamp = datetime.now().strftime("%Y%m%d%H%M%S")
        backup_path = path.with_name(f"{path.stem}.corrupt.{timestamp}{path.suffix}")
        try:
            shutil.copy2(path, backup_path)
        except OSError:
            logger.warning("Could not back up corrupted file %s", path)
            return None
        return backup_path

    def _write_yaml(self, path: Path, payload: Any) -> None:
        temp_path = path.with_suffix(path.suffix + ".tmp")
        try:
            temp_path.write_text(yaml.safe_dump(payload, allow_unicode=True, sort_keys=False), encoding="utf-8")
            temp_path.replace(path)
        except OSError as error:
            raise PersistenceError(f"Failed to write YAML file: {path}") from error
        finally:
            if temp_path.exists():
                temp_path.unlink(missing_ok=True)

    def _log_event(self, event_type: str, payload: dict[str, Any], event_time: datetime | None = None) -> None:
        timestamp = (event_time or datetime.now()).isoformat(timespec="seconds")
        events = self._read_log()
        events.append({"event_time": timestamp, "event_type": event_type, "payload": payload})
        self._write_yaml(self.log_file, events)

    def read_events(self) -> list[dict[str, Any]]:
        with self._locked():
            return self._read_log()


def _empty_document() -> dict[str, Any]:
    return {"sequence": 0, "reservations": []}


def _event_payload(record: Reservation) -> dict[str, Any]:
    return {
        "reservation_id": record.reservation_id,
        "resource_id": record.resource_id,
        "booking_date": record.booking_date.isoformat(),
        "start_time": record.start_time.strftime("%H:%M"),
        "duration_minutes": record.duration_minutes,
        "party_size": record.party_size,
        "status": record.status.value,
        "version": record.version,
    }

