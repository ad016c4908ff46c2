from __future__ import annotations

from datetime import date, datetime
import logging
from pathlib import Path
from typing import Any, Callable

from flask import Flask, jsonify, request

from .errors import InvalidRangeError, NoAvailabilityError, NotFoundError, PersistenceError
from .models import DETAIL_FIELDS, Reservation
from .parsing import parse_date, parse_time
from .service import BookingService, build_service

logger = logging.getLogger(__name__)

RETRY_MESSAGE = "The booking system is temporarily unavailable. Please try again."


def create_app(
    service: BookingService | None = None,
    config_path: str | Path | None = None,
    now_provider: Callable[[], datetime] | None = None,
) -> Flask:
    app = Flask(__name__)
    booking_service = service or build_service(config_path, clock=now_provider)
    clock: Callable[[], datetime] = now_provider or datetime.now
    app.config["BOOKING_SERVICE"] = booking_service

    @app.after_request
    def add_cors_headers(response: Any) -> Any:
        response.headers["Access-Control-Allow-Origin"] = "*"
        response.headers["Access-Control-Allow-Methods"] = "GET,POST,OPTIONS"
        response.headers["Access-Control-Allow-Headers"] = "Content-Type"
        return response

    @app.errorhandler(NotFoundError)
    def handle_not_found(error: NotFoundError) -> Any:
        return jsonify({"ok": False, "message": str(error)}), 404

    @app.errorhandler(NoAvailabilityError)
    def handle_no_availability(error: NoAvailabilityError) -> Any:
        return jsonify({"ok": False, "message": str(error), "retryable": True}), 409

    @app.errorhandler(InvalidRangeError)
    def handle_invalid_range(error: InvalidRangeError) -> Any:
        return jsonify({"ok": False, "message": str(error)}), 400

    @app.errorhandler(ValueError)
    def handle_value_error(error: ValueError) -> Any:
        return jsonify({"ok": False, "message": str(error)}), 400

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(error: PersistenceError) -> Any:
        logger.error("Persistence failure while handling %s %s: %s", request.method, request.path, error)
        return jsonify({"ok": False, "message": RETRY_MESSAGE, "retryable": True}), 503

    @app.get("/api/resources")
    def list_resources() -> Any:
        return jsonify({"ok": True, "resources": [resource.to_dict() for resource in booking_service.list_resources()]})

    @app.get("/api/resources/schedule")
    def get_resource_schedule() -> Any:
        try:
            day = parse_date(str(request.args.get("date", "today")), clock().date())
        except ValueError as error:
            return jsonify({"ok": False, "message": str(error)}), 400

        schedule = booking_service.resource_schedule(day)
        rows = [
            {
                "resource": resource.to_dict(),
                "reservations": [_serialize_reservation(record) for record in schedule.get(resource.resource_id, [])],
            }
            for resource in booking_service.list_resources()
        ]
        return jsonify({"ok": True, "date": day.isoformat(), "resources": rows})

    @app.get("/api/resources/<int:resource_id>/next")
    def get_next_reservation(resource_id: int) -> Any:
        upcoming = booking_service.next_reservation(resource_id, clock())
        return jsonify(
            {
                "ok": True,
                "resource_id": resource_id,
                "reservation": _serialize_reservation(upcoming) if upcoming else None,
            }
        )

    @app.get("/api/availability")
    def get_availability() -> Any:
        try:
            day = parse_date(str(request.args.get("date", "")), clock().date())
            party_size = int(request.args.get("party_size", "1"))
            duration = _optional_int(request.args.get("duration"))
        except ValueError as error:
            return jsonify({"ok": False, "message": str(error)}), 400

        slots = booking_service.query_availability(day, party_size, duration)
        return jsonify(
            {
                "ok": True,
                "date": day.isoformat(),
                "party_size": party_size,
                "slots": [slot.to_dict() for slot in slots],
            }
        )

    @app.get("/api/reservations")
    def list_reservations() -> Any:
        try:
            start = _optional_date(request.args.get("start"))
            end = _optional_date(request.args.get("end"))
            resource_id = _optional_int(request.args.get("resource_id"))
        except ValueError as error:
            return jsonify({"ok": False, "message": str(error)}), 400

        include_cancelled = str(request.args.get("include_cancelled", "true")).lower() != "false"
        records = booking_service.list_reservations(
            start,
            end,
            include_cancelled=include_cancelled,
            resource_id=resource_id,
        )
        return jsonify({"ok": True, "reservations": [_serialize_reservation(record) for record in records]})

    @app.post("/api/reservations")
    def commit_reservation() -> Any:
        payload = request.get_json(silent=True) or {}
        try:
            day = parse_date(str(payload.get("date", "")), clock().date())
            start_time = parse_time(str(payload.get("start_time", "")))
            party_size = int(payload.get("party_size", 0))
            duration = _optional_int(payload.get("duration_minutes"))
            details = {name: payload[name] for name in DETAIL_FIELDS if payload.get(name) not in (None, "")}
        except (TypeError, ValueError) as error:
            return jsonify({"ok": False, "message": str(error)}), 400

        created = booking_service.commit_reservation(day, start_time, duration, party_size, **details)
        return jsonify({"ok": True, "reservation": _serialize_reservation(created)}), 201

    @app.post("/api/reservations/<reservation_id>/amend")
    def amend_reservation(reservation_id: str) -> Any:
        payload = request.get_json(silent=True) or {}
        changes: dict[str, Any] = {}
        try:
            if payload.get("date"):
                changes["booking_date"] = parse_date(str(payload["date"]), clock().date())
            if payload.get("start_time"):
                changes["start_time"] = parse_time(str(payload["start_time"]))
            for name in ("duration_minutes", "party_size"):
                if payload.get(name) is not None:
                    changes[name] = int(payload[name])
            for name in DETAIL_FIELDS:
                if name in payload:
                    changes[name] = payload[name]
        except (TypeError, ValueError) as error:
            return jsonify({"ok": False, "message": str(error)}), 400

        if not changes:
            return jsonify({"ok": False, "message": "No changes were provided."}), 400

        amended = booking_service.amend_reservation(reservation_id, changes)
        return jsonify({"ok": True, "reservation": _serialize_reservation(amended)})

    @app.post("/api/reservations/<reservation_id>/cancel")
    def cancel_reservation(reservation_id: str) -> Any:
        booking_service.cancel_reservation(reservation_id)
        return jsonify({"ok": True, "reservation_id": reservation_id})

    @app.post("/api/reservations/<reservation_id>/delete")
    def delete_reservation(reservation_id: str) -> Any:
        deleted = booking_service.delete_reservation(reservation_id)
        return jsonify({"ok": True, "reservation": _serialize_reservation(deleted)})

    return app


def _serialize_reservation(record: Reservation) -> dict[str, Any]:
    payload = record.to_dict()
    payload["end_time"] = record.end.strftime("%H:%M")
    payload["service_label"] = record.service_label
    return payload


def _optional_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    return int(value)


def _optional_date(value: str | None) -> date | None:
    if not value:
        return None
    return date.fromisoformat(value)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    app = create_app()
    app.run(host="127.0.0.1", port=5000, debug=False)
