from flask import Blueprint, Response, current_app, jsonify, request

from identity import auth_required, current_user_id
from schemas import booking_create_schema, load_request
from services import bookings, tickets
from services.reservations import reserve

booking_bp = Blueprint("booking_api", __name__, url_prefix="/api/bookings")


@booking_bp.route("", methods=["POST"])
@auth_required
def post_booking():
    payload = load_request(booking_create_schema, request.get_json(silent=True))

    booking = reserve(
        current_user_id(),
        payload["session_id"],
        payload["seat_ids"],
        payload["payment_method"],
    )
    current_app.logger.info(
        "booking confirmed booking_id=%s session_id=%s seats=%d",
        booking.id, booking.session_id, len(booking.seats),
    )
    return jsonify(booking.to_dict()), 201


@booking_bp.route("/mine", methods=["GET"])
@auth_required
def list_my_bookings():
    return jsonify([booking.to_dict() for booking in bookings.list_user_bookings(current_user_id())])


@booking_bp.route("/<id:booking_id>/cancel", methods=["PATCH"])
@auth_required
def cancel_booking(booking_id):
    booking = bookings.cancel_booking(current_user_id(), booking_id)
    return jsonify(booking.to_dict())


@booking_bp.route("/<id:booking_id>/qr", methods=["GET"])
@auth_required
def booking_qr(booking_id):
    booking = bookings.get_booking_for_user(current_user_id(), booking_id)
    return Response(tickets.render_qr(booking), mimetype="image/png")


@booking_bp.route("/<id:booking_id>/ticket", methods=["GET"])
@auth_required
def booking_ticket(booking_id):
    booking = bookings.get_booking_for_user(current_user_id(), booking_id)
    pdf = tickets.render_ticket(booking, current_app.config.get("TICKET_TIMEZONE", "UTC"))
    return Response(
        pdf,
        mimetype="application/pdf",
        headers={"Content-Disposition": f"attachment; filename=booking-{booking.id}.pdf"},
    )
