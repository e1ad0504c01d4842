from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from errors import BadRequest, Conflict, Forbidden, NotFound, Unauthorized
from models import BOOKING_CANCELLED, BOOKING_CONFIRMED, BOOKING_STATUSES, Booking, Session, User, db
from services.availability import held_seat_ids


def booking_query():
    """Bookings with session, movie, hall and seats joined in one statement."""
    return Booking.query.options(
        joinedload(Booking.session).joinedload(Session.movie),
        joinedload(Booking.session).joinedload(Session.hall),
        joinedload(Booking.seats),
    )


def load_booking(booking_id):
    return booking_query().filter(Booking.id == booking_id).first()


def list_user_bookings(user_id):
    return (
        booking_query()
        .filter(Booking.user_id == user_id)
        .order_by(Booking.created_at.desc(), Booking.id.desc())
        .all()
    )


def get_booking_for_user(user_id, booking_id):
    booking = load_booking(booking_id)
    if booking is None:
        raise NotFound("booking not found")
    user = db.session.get(User, user_id)
    if user is None:
        raise Unauthorized("user not found")
    if booking.user_id != user.id and not user.is_admin:
        raise Forbidden("access denied")
    return booking


def cancel_booking(user_id, booking_id):
    booking = Booking.query.filter_by(id=booking_id, user_id=user_id).first()
    if booking is None:
        raise NotFound("booking not found")
    if booking.status == BOOKING_CANCELLED:
        raise BadRequest("booking already cancelled")

    booking.set_status(BOOKING_CANCELLED)
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    return load_booking(booking_id)


def set_booking_status(booking_id, status):
    if status not in BOOKING_STATUSES:
        raise BadRequest("status must be confirmed or cancelled")

    booking = db.session.get(Booking, booking_id)
    if booking is None:
        raise NotFound("booking not found")

    if status == BOOKING_CONFIRMED and booking.status != BOOKING_CONFIRMED:
        if any(booking_seat.seat.hall_id != booking.session.hall_id for booking_seat in booking.booking_seats):
            raise Conflict("seats do not belong to the session's hall")
        seat_ids = [booking_seat.seat_id for booking_seat in booking.booking_seats]
        if held_seat_ids(booking.session_id, seat_ids, exclude_booking_id=booking.id):
            raise Conflict("seats already booked")

    booking.set_status(status)
    try:
        db.session.commit()
    except IntegrityError:
        # another confirmation won the seats between the check and the commit
        db.session.rollback()
        raise Conflict("seats already booked")
    except Exception:
        db.session.rollback()
        raise
    return load_booking(booking_id)
