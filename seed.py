from datetime import datetime, timedelta, timezone

import click
from flask import current_app
from flask.cli import with_appcontext

from identity import hash_password
from models import Hall, Movie, Seat, Session, User, db
from services.catalog import seat_grid

DEMO_HALLS = [
    ("Зал A", 8, 12),
    ("Зал B", 10, 14),
    ("Зал C", 7, 10),
    ("Зал D", 9, 12),
]

DEMO_MOVIES = [
    {
        "title": "Северный ветер",
        "title_en": "North Wind",
        "title_kk": "Солтүстік жел",
        "description": "Семейная драма о возвращении в родной посёлок на краю степи.",
        "description_en": "A family drama about coming home to a village at the edge of the steppe.",
        "description_kk": "Дала шетіндегі туған ауылға оралу туралы отбасылық драма.",
        "duration_mins": 112,
        "poster_url": "https://images.unsplash.com/photo-1478720568477-152d9b164e26?auto=format&fit=crop&w=600&q=80",
        "country": "Казахстан",
        "country_en": "Kazakhstan",
        "country_kk": "Қазақстан",
        "genres": "Драма",
        "genres_en": "Drama",
        "genres_kk": "Драма",
        "release_year": 2023,
    },
    {
        "title": "Сигнал из глубины",
        "title_en": "Signal from the Deep",
        "title_kk": "Тереңнен келген сигнал",
        "description": "Экипаж исследовательской станции принимает сигнал, которого не должно быть.",
        "description_en": "A research station crew picks up a signal that should not exist.",
        "description_kk": "Зерттеу станциясының экипажы болмауға тиіс сигналды қабылдайды.",
        "duration_mins": 126,
        "poster_url": "https://images.unsplash.com/photo-1446776811953-b23d57bd21aa?auto=format&fit=crop&w=600&q=80",
        "country": "США",
        "country_en": "USA",
        "country_kk": "АҚШ",
        "genres": "Фантастика, Триллер",
        "genres_en": "Sci-fi, Thriller",
        "genres_kk": "Ғылыми фантастика, Триллер",
        "release_year": 2024,
    },
    {
        "title": "Последний трамвай",
        "title_en": "The Last Tram",
        "title_kk": "Соңғы трамвай",
        "description": "Лёгкая комедия о ночном городе и случайных попутчиках.",
        "description_en": "A light comedy about the city at night and chance companions.",
        "description_kk": "Түнгі қала мен кездейсоқ жолсеріктер туралы жеңіл комедия.",
        "duration_mins": 95,
        "poster_url": "https://images.unsplash.com/photo-1500530855697-b586d89ba3ee?auto=format&fit=crop&w=600&q=80",
        "country": "Франция",
        "country_en": "France",
        "country_kk": "Франция",
        "genres": "Комедия",
        "genres_en": "Comedy",
        "genres_kk": "Комедия",
        "release_year": 2022,
    },
]

DEMO_START_HOURS = [6, 9, 12, 15, 18, 21, 23]

SCHEDULE_HALLS = [
    ("Hall A", 10, 14),
    ("Hall B", 8, 12),
    ("Hall C", 7, 10),
    ("Hall D", 9, 12),
    ("Hall E", 11, 16),
    ("Hall F", 6, 9),
    ("Hall G", 12, 18),
    ("Hall H", 10, 15),
    ("Hall I", 8, 11),
    ("Hall J", 14, 20),
]

DAY_START_HOUR = 6
DAY_END_HOUR = 23
BREAK_BETWEEN_SHOWS = timedelta(minutes=20)
DEFAULT_DURATION_MINS = 100


def _today_utc():
    now = datetime.now(timezone.utc)
    return datetime(now.year, now.month, now.day, tzinfo=timezone.utc)


def seed_admin(config):
    """Create the bootstrap admin, or promote an existing account with that email."""
    email = (config.get("ADMIN_EMAIL") or "").strip().lower()
    password = (config.get("ADMIN_PASSWORD") or "").strip()
    if not email or not password:
        return None

    existing = User.query.filter_by(email=email).first()
    if existing:
        if not existing.is_admin:
            existing.is_admin = True
            db.session.commit()
            current_app.logger.info("promoted existing user to admin email=%s", email)
        return existing

    admin = User(
        name=(config.get("ADMIN_NAME") or "").strip() or "Admin",
        email=email,
        password_hash=hash_password(password),
        is_admin=True,
    )
    db.session.add(admin)
    db.session.commit()
    current_app.logger.info("admin user created email=%s", email)
    return admin


def seed_demo_data():
    """Populate halls, movies and a week of sessions on an empty catalog."""
    if Movie.query.count() > 0:
        return False

    halls = []
    for name, rows, cols in DEMO_HALLS:
        hall = Hall(name=name, rows=rows, cols=cols)
        hall.seats = seat_grid(hall)
        halls.append(hall)
    movies = [Movie(**fields) for fields in DEMO_MOVIES]
    db.session.add_all(halls + movies)
    db.session.flush()

    today = _today_utc()
    sessions = []
    for day in range(7):
        base_date = today + timedelta(days=day)
        for hall_index, hall in enumerate(halls):
            for time_index, hour in enumerate(DEMO_START_HOURS):
                movie = movies[(day + hall_index + time_index) % len(movies)]
                sessions.append(Session(
                    movie_id=movie.id,
                    hall_id=hall.id,
                    start_time=base_date + timedelta(hours=hour),
                    base_price=400 + time_index * 30 + hall_index * 20,
                ))
    db.session.add_all(sessions)
    db.session.commit()
    current_app.logger.info(
        "demo data seeded halls=%d movies=%d sessions=%d", len(halls), len(movies), len(sessions)
    )
    return True


def calc_base_price(start_time, hall_index):
    price = 420 + hall_index * 20
    hour = start_time.hour
    if hour >= 18:
        price += 120
    elif hour >= 12:
        price += 60
    if hour < 9:
        price -= 40
    return max(price, 300)


def _ensure_schedule_halls():
    halls = []
    for name, rows, cols in SCHEDULE_HALLS:
        hall = Hall.query.filter_by(name=name).first()
        if hall is None:
            hall = Hall(name=name, rows=rows, cols=cols)
            db.session.add(hall)
            db.session.flush()
        if Seat.query.filter_by(hall_id=hall.id).count() == 0:
            hall.seats = seat_grid(hall)
        halls.append(hall)
    db.session.flush()
    return halls


def seed_schedule(days=7):
    """Fill every hall's day with back-to-back showings.

    Each day runs from 06:00 to 23:00 (hall starts staggered by ten
    minutes). Every movie is shown at least once a day before the
    remaining slots rotate through the catalog. Slots that already hold a
    session are left alone. Returns the number of sessions added.
    """
    halls = _ensure_schedule_halls()
    movies = Movie.query.order_by(Movie.id.asc()).all()
    if not movies:
        raise click.ClickException("no movies found")

    existing = {
        (hall_id, start_time.replace(tzinfo=None))
        for hall_id, start_time in db.session.query(Session.hall_id, Session.start_time)
    }
    new_sessions = []

    def place(cursors, movie):
        hall_index = min(range(len(cursors)), key=lambda index: cursors[index])
        start_time = cursors[hall_index]
        hall = halls[hall_index]
        # compare as naive UTC; SQLite drops the offset
        key = (hall.id, start_time.replace(tzinfo=None))
        if key not in existing:
            existing.add(key)
            new_sessions.append(Session(
                movie_id=movie.id,
                hall_id=hall.id,
                start_time=start_time,
                base_price=calc_base_price(start_time, hall_index),
            ))
        duration = movie.duration_mins if movie.duration_mins > 0 else DEFAULT_DURATION_MINS
        cursors[hall_index] = start_time + timedelta(minutes=duration) + BREAK_BETWEEN_SHOWS

    next_movie = 0
    today = _today_utc()
    for day in range(days):
        base_date = today + timedelta(days=day)
        day_start = base_date + timedelta(hours=DAY_START_HOUR)
        day_end = base_date + timedelta(hours=DAY_END_HOUR)
        cursors = [day_start + timedelta(minutes=index * 10) for index in range(len(halls))]

        for movie in movies:
            if min(cursors) > day_end:
                break
            place(cursors, movie)

        while min(cursors) <= day_end:
            place(cursors, movies[next_movie % len(movies)])
            next_movie += 1

    db.session.add_all(new_sessions)
    db.session.commit()
    current_app.logger.info("schedule seeded sessions=%d halls=%d", len(new_sessions), len(halls))
    return len(new_sessions)


@click.command("seed-schedule")
@click.option("--days", default=7, show_default=True, help="Number of days to schedule from today.")
@with_appcontext
def seed_schedule_command(days):
    added = seed_schedule(days)
    if added:
        click.echo(f"Added {added} sessions.")
    else:
        click.echo("No new sessions to add.")


if __name__ == "__main__":
    from app import create_app

    # create_app already seeds the admin and the demo catalog
    app = create_app({"SEED": True})
    with app.app_context():
        seed_schedule()
    print("Seeding complete!")
