from models import BOOKING_CONFIRMED, Booking, BookingSeat, db


def _confirmed_seat_query(session_id):
    return (
        db.session.query(BookingSeat.seat_id)
        .join(Booking, Booking.id == BookingSeat.booking_id)
        .filter(Booking.session_id == session_id, Booking.status == BOOKING_CONFIRMED)
    )


def booked_seat_ids(session_id):
    """Seat ids held by confirmed bookings on a session.

    A session that does not exist simply has no booked seats.
    """
    rows = _confirmed_seat_query(session_id).order_by(BookingSeat.seat_id).all()
    return [seat_id for (seat_id,) in rows]


def held_seat_ids(session_id, seat_ids, exclude_booking_id=None):
    """The subset of ``seat_ids`` already claimed on the session."""
    query = _confirmed_seat_query(session_id).filter(BookingSeat.seat_id.in_(list(seat_ids)))
    if exclude_booking_id is not None:
        query = query.filter(Booking.id != exclude_booking_id)
    return {seat_id for (seat_id,) in query.all()}
