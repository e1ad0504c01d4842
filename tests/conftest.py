import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app import create_app
from models import db

JWT_SECRET = "test-jwt-secret-0123456789abcdef0123456789"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass"
SESSION_START = "2030-01-01T12:00:00Z"


def auth_header(token):
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def app(tmp_path):
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'unit.db'}",
        "JWT_SECRET_KEY": JWT_SECRET,
        "BCRYPT_ROUNDS": 4,
        "SEED": False,
        "ADMIN_EMAIL": ADMIN_EMAIL,
        "ADMIN_PASSWORD": ADMIN_PASSWORD,
        "ADMIN_NAME": "Admin",
        "UPLOAD_FOLDER": str(tmp_path / "uploads"),
        "TICKET_TIMEZONE": "UTC",
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def admin_headers(client):
    response = client.post("/api/auth/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200, response.get_json()
    return auth_header(response.get_json()["token"])


@pytest.fixture()
def register_user(client):
    """Register an account and return ``(user, headers)``."""

    def _register(email, password="secret123", name="Test User"):
        response = client.post(
            "/api/auth/register", json={"name": name, "email": email, "password": password}
        )
        assert response.status_code == 201, response.get_json()
        body = response.get_json()
        return body["user"], auth_header(body["token"])

    return _register


@pytest.fixture()
def showing(client, admin_headers):
    """Hall H1 (2x2), movie M1 and session S1 at 2030-01-01 12:00 UTC for 500."""
    hall = client.post(
        "/api/admin/halls", json={"name": "H1", "rows": 2, "cols": 2}, headers=admin_headers
    ).get_json()
    movie = client.post(
        "/api/admin/movies", json={"title": "M1", "duration_mins": 100}, headers=admin_headers
    ).get_json()
    session = client.post(
        "/api/admin/sessions",
        json={"movie_id": movie["id"], "hall_id": hall["id"], "start_time": SESSION_START, "base_price": 500},
        headers=admin_headers,
    ).get_json()
    seats = client.get(f"/api/halls/{hall['id']}/seats").get_json()
    return {
        "hall": hall,
        "movie": movie,
        "session": session,
        "seat_ids": [seat["id"] for seat in seats],
    }
