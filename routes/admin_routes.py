from flask import Blueprint, current_app, g, jsonify, request

from identity import admin_required
from schemas import (
    booking_status_schema,
    hall_create_schema,
    hall_update_schema,
    load_request,
    movie_create_schema,
    movie_update_schema,
    session_create_schema,
    session_update_schema,
)
from services import bookings, catalog

admin_bp = Blueprint("admin_api", __name__, url_prefix="/api/admin")


def _audit(action, **fields):
    details = " ".join(f"{key}={value}" for key, value in fields.items())
    current_app.logger.info("admin %s admin_id=%s %s", action, g.current_user.id, details)


# Movies

@admin_bp.route("/movies", methods=["POST"])
@admin_required
def create_movie():
    payload = load_request(movie_create_schema, request.get_json(silent=True))
    movie = catalog.create_movie(payload)
    _audit("create_movie", movie_id=movie.id)
    return jsonify(movie.to_dict()), 201


@admin_bp.route("/movies/<id:movie_id>", methods=["PUT"])
@admin_required
def update_movie(movie_id):
    updates = load_request(movie_update_schema, request.get_json(silent=True))
    movie = catalog.update_movie(movie_id, updates)
    return jsonify(movie.to_dict())


@admin_bp.route("/movies/<id:movie_id>", methods=["DELETE"])
@admin_required
def delete_movie(movie_id):
    catalog.delete_movie(movie_id)
    _audit("delete_movie", movie_id=movie_id)
    return "", 204


# Halls

@admin_bp.route("/halls", methods=["POST"])
@admin_required
def create_hall():
    payload = load_request(hall_create_schema, request.get_json(silent=True))
    hall = catalog.create_hall(payload["name"], payload["rows"], payload["cols"])
    _audit("create_hall", hall_id=hall.id, seats=hall.rows * hall.cols)
    return jsonify(hall.to_dict()), 201


@admin_bp.route("/halls/<id:hall_id>", methods=["PUT"])
@admin_required
def update_hall(hall_id):
    updates = load_request(hall_update_schema, request.get_json(silent=True))
    hall = catalog.update_hall(hall_id, updates)
    return jsonify(hall.to_dict())


@admin_bp.route("/halls/<id:hall_id>", methods=["DELETE"])
@admin_required
def delete_hall(hall_id):
    catalog.delete_hall(hall_id)
    _audit("delete_hall", hall_id=hall_id)
    return "", 204


# Sessions

@admin_bp.route("/sessions", methods=["POST"])
@admin_required
def create_session():
    payload = load_request(session_create_schema, request.get_json(silent=True))
    session = catalog.create_session(
        payload["movie_id"], payload["hall_id"], payload["start_time"], payload["base_price"]
    )
    _audit("create_session", session_id=session.id)
    return jsonify(session.to_dict()), 201


@admin_bp.route("/sessions/<id:session_id>", methods=["PUT"])
@admin_required
def update_session(session_id):
    updates = load_request(session_update_schema, request.get_json(silent=True))
    session = catalog.update_session(session_id, updates)
    return jsonify(session.to_dict())


@admin_bp.route("/sessions/<id:session_id>", methods=["DELETE"])
@admin_required
def delete_session(session_id):
    catalog.delete_session(session_id)
    _audit("delete_session", session_id=session_id)
    return "", 204


# Bookings

@admin_bp.route("/bookings/<id:booking_id>/status", methods=["PATCH"])
@admin_required
def update_booking_status(booking_id):
    payload = load_request(booking_status_schema, request.get_json(silent=True))
    booking = bookings.set_booking_status(booking_id, payload["status"])
    _audit("set_booking_status", booking_id=booking_id, status=booking.status)
    return jsonify(booking.to_dict())
