from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import text

db = SQLAlchemy()

BOOKING_CONFIRMED = "confirmed"
BOOKING_CANCELLED = "cancelled"
BOOKING_STATUSES = (BOOKING_CONFIRMED, BOOKING_CANCELLED)


def utcnow():
    return datetime.now(timezone.utc)


def as_utc(value):
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def isoformat(value):
    value = as_utc(value)
    if value is None:
        return None
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    is_admin = db.Column(db.Boolean, nullable=False, default=False)
    avatar_url = db.Column(db.String(300), nullable=False, default="")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "is_admin": self.is_admin,
            "avatar_url": self.avatar_url,
            "created_at": isoformat(self.created_at),
        }


class Movie(db.Model):
    __tablename__ = 'movies'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    title_en = db.Column(db.String(255), nullable=False, default="")
    title_kk = db.Column(db.String(255), nullable=False, default="")
    description = db.Column(db.Text, nullable=False, default="")
    description_en = db.Column(db.Text, nullable=False, default="")
    description_kk = db.Column(db.Text, nullable=False, default="")
    duration_mins = db.Column(db.Integer, nullable=False)
    poster_url = db.Column(db.String(500), nullable=False, default="")
    country = db.Column(db.String(120), nullable=False, default="")
    country_en = db.Column(db.String(120), nullable=False, default="")
    country_kk = db.Column(db.String(120), nullable=False, default="")
    genres = db.Column(db.String(255), nullable=False, default="")
    genres_en = db.Column(db.String(255), nullable=False, default="")
    genres_kk = db.Column(db.String(255), nullable=False, default="")
    release_year = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    TEXT_FIELDS = (
        "title", "title_en", "title_kk",
        "description", "description_en", "description_kk",
        "poster_url",
        "country", "country_en", "country_kk",
        "genres", "genres_en", "genres_kk",
    )

    def to_dict(self):
        data = {"id": self.id}
        for field in self.TEXT_FIELDS:
            data[field] = getattr(self, field)
        data["duration_mins"] = self.duration_mins
        data["release_year"] = self.release_year
        data["created_at"] = isoformat(self.created_at)
        return data


class Hall(db.Model):
    __tablename__ = 'halls'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    rows = db.Column(db.Integer, nullable=False)
    cols = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    seats = db.relationship("Seat", back_populates="hall", cascade="all, delete-orphan")

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "rows": self.rows,
            "cols": self.cols,
            "created_at": isoformat(self.created_at),
        }


class Seat(db.Model):
    __tablename__ = 'seats'
    __table_args__ = (
        db.UniqueConstraint("hall_id", "row", "number", name="uq_seats_hall_row_number"),
    )
    id = db.Column(db.Integer, primary_key=True)
    hall_id = db.Column(db.Integer, db.ForeignKey("halls.id"), nullable=False, index=True)
    row = db.Column(db.Integer, nullable=False)
    number = db.Column(db.Integer, nullable=False)

    hall = db.relationship("Hall", back_populates="seats")

    @property
    def label(self):
        return f"R{self.row}-S{self.number}"

    def to_dict(self):
        return {"id": self.id, "hall_id": self.hall_id, "row": self.row, "number": self.number}


class Session(db.Model):
    """A single showing of a movie in a hall."""

    __tablename__ = 'sessions'
    id = db.Column(db.Integer, primary_key=True)
    movie_id = db.Column(db.Integer, db.ForeignKey("movies.id"), nullable=False, index=True)
    hall_id = db.Column(db.Integer, db.ForeignKey("halls.id"), nullable=False, index=True)
    start_time = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    base_price = db.Column(db.Integer, nullable=False)

    movie = db.relationship("Movie")
    hall = db.relationship("Hall")

    def to_dict(self):
        return {
            "id": self.id,
            "movie_id": self.movie_id,
            "hall_id": self.hall_id,
            "start_time": isoformat(self.start_time),
            "base_price": self.base_price,
            "movie": self.movie.to_dict() if self.movie else None,
            "hall": self.hall.to_dict() if self.hall else None,
        }


class Booking(db.Model):
    __tablename__ = 'bookings'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    session_id = db.Column(db.Integer, db.ForeignKey("sessions.id"), nullable=False, index=True)
    status = db.Column(db.String(20), nullable=False, default=BOOKING_CONFIRMED)
    total_price = db.Column(db.Integer, nullable=False)
    payment_method = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    session = db.relationship("Session")
    booking_seats = db.relationship("BookingSeat", back_populates="booking", cascade="all, delete-orphan")
    seats = db.relationship("Seat", secondary="booking_seats", viewonly=True)

    def set_status(self, status):
        """Change the status and keep the per-seat mirrors in step."""
        self.status = status
        for booking_seat in self.booking_seats:
            booking_seat.status = status

    def to_dict(self):
        seats = sorted(self.seats, key=lambda seat: (seat.row, seat.number))
        return {
            "id": self.id,
            "user_id": self.user_id,
            "session_id": self.session_id,
            "status": self.status,
            "total_price": self.total_price,
            "payment_method": self.payment_method,
            "created_at": isoformat(self.created_at),
            "session": self.session.to_dict() if self.session else None,
            "seats": [seat.to_dict() for seat in seats],
        }


class BookingSeat(db.Model):
    __tablename__ = 'booking_seats'
    __table_args__ = (
        # At most one confirmed claim on a seat per session. Cancelling a
        # booking flips the mirrored status and frees the slot.
        db.Index(
            "uq_booking_seats_confirmed_seat",
            "session_id",
            "seat_id",
            unique=True,
            postgresql_where=text("status = 'confirmed'"),
            sqlite_where=text("status = 'confirmed'"),
        ),
    )
    booking_id = db.Column(db.Integer, db.ForeignKey("bookings.id"), primary_key=True)
    seat_id = db.Column(db.Integer, db.ForeignKey("seats.id"), primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("sessions.id"), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=BOOKING_CONFIRMED)

    booking = db.relationship("Booking", back_populates="booking_seats")
    seat = db.relationship("Seat")
