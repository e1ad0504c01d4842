from sqlalchemy.orm import joinedload

from errors import BadRequest, Conflict, NotFound
from models import Booking, Hall, Movie, Seat, Session, db


def _commit():
    try:
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def _require_updates(updates):
    if not updates:
        raise BadRequest("no fields to update")


def seat_grid(hall):
    return [
        Seat(row=row, number=number)
        for row in range(1, hall.rows + 1)
        for number in range(1, hall.cols + 1)
    ]


# Movies

def list_movies():
    return Movie.query.order_by(Movie.created_at.desc(), Movie.id.desc()).all()


def get_movie(movie_id):
    movie = db.session.get(Movie, movie_id)
    if movie is None:
        raise NotFound("movie not found")
    return movie


def create_movie(fields):
    movie = Movie(**fields)
    db.session.add(movie)
    _commit()
    return movie


def update_movie(movie_id, updates):
    _require_updates(updates)
    movie = get_movie(movie_id)
    for field, value in updates.items():
        setattr(movie, field, value)
    _commit()
    return movie


def delete_movie(movie_id):
    movie = get_movie(movie_id)
    if Session.query.filter_by(movie_id=movie.id).count() > 0:
        raise Conflict("movie has sessions")
    db.session.delete(movie)
    _commit()


# Halls

def list_halls():
    return Hall.query.order_by(Hall.created_at.desc(), Hall.id.desc()).all()


def get_hall(hall_id):
    hall = db.session.get(Hall, hall_id)
    if hall is None:
        raise NotFound("hall not found")
    return hall


def list_seats(hall_id):
    return Seat.query.filter_by(hall_id=hall_id).order_by(Seat.row.asc(), Seat.number.asc()).all()


def create_hall(name, rows, cols):
    """Create a hall together with its full rows x cols seat grid."""
    hall = Hall(name=name, rows=rows, cols=cols)
    hall.seats = seat_grid(hall)
    db.session.add(hall)
    _commit()
    return hall


def update_hall(hall_id, updates):
    # rows and cols are fixed once the seat grid exists
    _require_updates(updates)
    hall = get_hall(hall_id)
    hall.name = updates["name"]
    _commit()
    return hall


def delete_hall(hall_id):
    hall = get_hall(hall_id)
    if Session.query.filter_by(hall_id=hall.id).count() > 0:
        raise Conflict("hall has sessions")
    db.session.delete(hall)
    _commit()


# Sessions

def session_query():
    return Session.query.options(joinedload(Session.movie), joinedload(Session.hall))


def list_sessions(movie_id=None):
    query = session_query()
    if movie_id is not None:
        query = query.filter(Session.movie_id == movie_id)
    return query.order_by(Session.start_time.asc(), Session.id.asc()).all()


def get_session(session_id):
    session = session_query().filter(Session.id == session_id).first()
    if session is None:
        raise NotFound("session not found")
    return session


def _session_bookings(session_id):
    # cancelled bookings still pin their seats to the session's hall
    return Booking.query.filter_by(session_id=session_id)


def create_session(movie_id, hall_id, start_time, base_price):
    get_movie(movie_id)
    get_hall(hall_id)
    session = Session(movie_id=movie_id, hall_id=hall_id, start_time=start_time, base_price=base_price)
    db.session.add(session)
    _commit()
    return get_session(session.id)


def update_session(session_id, updates):
    """Apply a partial update; base price changes never touch existing bookings."""
    _require_updates(updates)
    session = get_session(session_id)
    if "movie_id" in updates:
        get_movie(updates["movie_id"])
    if "hall_id" in updates and updates["hall_id"] != session.hall_id:
        get_hall(updates["hall_id"])
        if _session_bookings(session.id).count() > 0:
            raise Conflict("session has bookings")
    for field, value in updates.items():
        setattr(session, field, value)
    _commit()
    return get_session(session_id)


def delete_session(session_id):
    """Remove a session nobody has booked; bookings are kept, cancelled or not."""
    session = db.session.get(Session, session_id)
    if session is None:
        raise NotFound("session not found")
    if _session_bookings(session.id).count() > 0:
        raise Conflict("session has bookings")
    db.session.delete(session)
    _commit()
