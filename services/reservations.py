"""Seat reservation engine.

Turns a request for specific seats on a session into a confirmed booking,
or fails without writing anything. The partial unique index on
``booking_seats(session_id, seat_id) WHERE status = 'confirmed'`` decides
who wins when two reservations race; the availability check inside the
transaction only lets the common case fail early without a write.
"""
import time

from flask import current_app
from sqlalchemy.exc import DBAPIError, IntegrityError

from errors import BadRequest, Conflict, NotFound, ServiceError
from models import BOOKING_CONFIRMED, Booking, BookingSeat, Seat, Session, db, utcnow
from services.availability import held_seat_ids
from services.bookings import load_booking

MAX_ATTEMPTS = 3
BACKOFF_SECONDS = 0.05

# PostgreSQL serialization_failure and deadlock_detected
RETRYABLE_SQLSTATES = {"40001", "40P01"}


def is_serialization_failure(exc):
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code in RETRYABLE_SQLSTATES:
        return True
    return "database is locked" in str(orig).lower()


def _begin_transaction():
    # Isolation can only be chosen when the session procures its connection.
    db.session.rollback()
    if db.session.get_bind().dialect.name == "postgresql":
        db.session.connection(execution_options={"isolation_level": "SERIALIZABLE"})


def _validate(seat_ids, payment_method):
    seat_ids = list(seat_ids or [])
    if not seat_ids:
        raise BadRequest("session_id, seat_ids, payment_method are required")
    if len(set(seat_ids)) != len(seat_ids):
        raise BadRequest("seat_ids must not contain duplicates")
    payment_method = (payment_method or "").strip()
    if not payment_method:
        raise BadRequest("session_id, seat_ids, payment_method are required")
    return seat_ids, payment_method


def _reserve_once(user_id, session_id, seat_ids, payment_method):
    _begin_transaction()

    session = db.session.get(Session, session_id)
    if session is None:
        raise NotFound("session not found")

    seats = Seat.query.filter(Seat.hall_id == session.hall_id, Seat.id.in_(seat_ids)).all()
    if len(seats) != len(seat_ids):
        raise BadRequest("some seats are invalid for this hall")

    if held_seat_ids(session.id, seat_ids):
        raise Conflict("seats already booked")

    booking = Booking(
        user_id=user_id,
        session_id=session.id,
        status=BOOKING_CONFIRMED,
        total_price=session.base_price * len(seat_ids),
        payment_method=payment_method,
        created_at=utcnow(),
    )
    booking.booking_seats = [
        BookingSeat(seat_id=seat.id, session_id=session.id, status=BOOKING_CONFIRMED)
        for seat in seats
    ]
    db.session.add(booking)
    db.session.flush()
    booking_id = booking.id
    db.session.commit()
    return booking_id


def reserve(user_id, session_id, seat_ids, payment_method):
    """Book ``seat_ids`` on ``session_id`` for ``user_id``.

    Returns the committed booking with its session, movie, hall and seats
    loaded. Raises ``BadRequest`` for seats outside the session's hall,
    ``NotFound`` for an unknown session and ``Conflict`` when any seat is
    already held by a confirmed booking. A unique violation is never
    retried; serialization failures are retried with exponential backoff
    and reported as ``Conflict`` once the attempts run out.
    """
    seat_ids, payment_method = _validate(seat_ids, payment_method)

    for attempt in range(1, MAX_ATTEMPTS + 1):
        try:
            booking_id = _reserve_once(user_id, session_id, seat_ids, payment_method)
        except ServiceError:
            db.session.rollback()
            raise
        except IntegrityError:
            db.session.rollback()
            raise Conflict("seats already booked")
        except DBAPIError as exc:
            db.session.rollback()
            if not is_serialization_failure(exc):
                raise
            if attempt == MAX_ATTEMPTS:
                current_app.logger.warning(
                    "reservation gave up session_id=%s seat_ids=%s attempts=%d",
                    session_id, seat_ids, attempt,
                )
                raise Conflict("seats already booked")
            delay = BACKOFF_SECONDS * 2 ** (attempt - 1)
            current_app.logger.warning(
                "reservation retry session_id=%s attempt=%d delay=%.2fs",
                session_id, attempt, delay,
            )
            time.sleep(delay)
            continue
        return load_booking(booking_id)
