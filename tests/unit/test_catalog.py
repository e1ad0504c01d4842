from models import Booking, Seat


def _create_movie(client, headers, **fields):
    payload = {"title": "Movie", "duration_mins": 90}
    payload.update(fields)
    response = client.post("/api/admin/movies", json=payload, headers=headers)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def _create_hall(client, headers, name="Hall", rows=3, cols=4):
    response = client.post("/api/admin/halls", json={"name": name, "rows": rows, "cols": cols}, headers=headers)
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def _book(client, headers, session_id, seat_ids):
    response = client.post(
        "/api/bookings",
        json={"session_id": session_id, "seat_ids": seat_ids, "payment_method": "card"},
        headers=headers,
    )
    assert response.status_code == 201, response.get_json()
    return response.get_json()


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.get_json() == {"status": "ok"}


def test_unknown_route_is_json_404(client):
    response = client.get("/api/nothing-here")
    assert response.status_code == 404
    assert "error" in response.get_json()


# admin endpoints need a token, and an admin one
def test_admin_endpoints_require_admin(client, register_user):
    response = client.post("/api/admin/movies", json={"title": "X", "duration_mins": 90})
    assert response.status_code == 401

    _, headers = register_user("plain@example.com")
    response = client.post("/api/admin/movies", json={"title": "X", "duration_mins": 90}, headers=headers)
    assert response.status_code == 403
    assert response.get_json()["error"] == "admin access required"


def test_create_hall_builds_full_seat_grid(client, admin_headers, app):
    hall = _create_hall(client, admin_headers, rows=3, cols=4)
    seats = client.get(f"/api/halls/{hall['id']}/seats").get_json()

    assert len(seats) == 12
    assert [(seat["row"], seat["number"]) for seat in seats] == [
        (row, number) for row in range(1, 4) for number in range(1, 5)
    ]
    with app.app_context():
        assert Seat.query.filter_by(hall_id=hall["id"]).count() == 12


def test_create_hall_validation(client, admin_headers):
    response = client.post("/api/admin/halls", json={"name": "Bad", "rows": 0, "cols": 5}, headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "name, rows, cols are required"

    response = client.post("/api/admin/halls", json={"name": " ", "rows": 2, "cols": 2}, headers=admin_headers)
    assert response.status_code == 400


def test_update_hall_changes_name_only(client, admin_headers):
    hall = _create_hall(client, admin_headers, name="Old", rows=2, cols=2)
    response = client.put(
        f"/api/admin/halls/{hall['id']}", json={"name": "New", "rows": 9, "cols": 9}, headers=admin_headers
    )
    assert response.status_code == 200
    body = response.get_json()
    assert body["name"] == "New"
    assert (body["rows"], body["cols"]) == (2, 2)
    assert len(client.get(f"/api/halls/{hall['id']}/seats").get_json()) == 4

    response = client.put(f"/api/admin/halls/{hall['id']}", json={"name": "  "}, headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "no fields to update"


def test_delete_hall_without_sessions_removes_seats(client, admin_headers, app):
    hall = _create_hall(client, admin_headers)
    response = client.delete(f"/api/admin/halls/{hall['id']}", headers=admin_headers)
    assert response.status_code == 204
    assert client.get(f"/api/halls/{hall['id']}/seats").get_json() == []
    with app.app_context():
        assert Seat.query.filter_by(hall_id=hall["id"]).count() == 0


def test_movie_create_defaults_and_get(client, admin_headers):
    movie = _create_movie(client, admin_headers, title="  Dune  ", duration_mins=155)
    assert movie["title"] == "Dune"
    assert movie["title_en"] == ""
    assert movie["release_year"] == 0

    response = client.get(f"/api/movies/{movie['id']}")
    assert response.status_code == 200
    assert response.get_json()["duration_mins"] == 155

    assert client.get("/api/movies/9999").status_code == 404


def test_movie_create_requires_title_and_duration(client, admin_headers):
    response = client.post("/api/admin/movies", json={"title": "No length"}, headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "title and duration_mins are required"

    response = client.post("/api/admin/movies", json={"title": " ", "duration_mins": 90}, headers=admin_headers)
    assert response.status_code == 400


def test_list_movies_newest_first(client, admin_headers):
    first = _create_movie(client, admin_headers, title="First")
    second = _create_movie(client, admin_headers, title="Second")
    titles = [movie["id"] for movie in client.get("/api/movies").get_json()]
    assert titles == [second["id"], first["id"]]


# blank strings and non-positive numbers count as not supplied
def test_movie_partial_update(client, admin_headers):
    movie = _create_movie(client, admin_headers, title="Original", genres="Drama", duration_mins=100)
    response = client.put(
        f"/api/admin/movies/{movie['id']}",
        json={"title": "  ", "genres": "Comedy", "duration_mins": 0, "release_year": 2021},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.get_json()
    assert body["title"] == "Original"
    assert body["genres"] == "Comedy"
    assert body["duration_mins"] == 100
    assert body["release_year"] == 2021


def test_movie_update_with_nothing_to_change(client, admin_headers):
    movie = _create_movie(client, admin_headers)
    response = client.put(f"/api/admin/movies/{movie['id']}", json={"title": ""}, headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()["error"] == "no fields to update"

    response = client.put("/api/admin/movies/9999", json={"title": "Ghost"}, headers=admin_headers)
    assert response.status_code == 404


def test_delete_movie_and_hall_with_sessions_conflict(client, admin_headers, showing):
    movie_id = showing["movie"]["id"]
    hall_id = showing["hall"]["id"]

    response = client.delete(f"/api/admin/movies/{movie_id}", headers=admin_headers)
    assert response.status_code == 409
    assert response.get_json()["error"] == "movie has sessions"
    assert client.get(f"/api/movies/{movie_id}").status_code == 200

    response = client.delete(f"/api/admin/halls/{hall_id}", headers=admin_headers)
    assert response.status_code == 409
    assert response.get_json()["error"] == "hall has sessions"
    assert len(client.get(f"/api/halls/{hall_id}/seats").get_json()) == 4


def test_delete_movie_without_sessions(client, admin_headers):
    movie = _create_movie(client, admin_headers)
    assert client.delete(f"/api/admin/movies/{movie['id']}", headers=admin_headers).status_code == 204
    assert client.get(f"/api/movies/{movie['id']}").status_code == 404


def test_create_session_normalizes_start_time_to_utc(client, admin_headers):
    movie = _create_movie(client, admin_headers)
    hall = _create_hall(client, admin_headers)
    response = client.post(
        "/api/admin/sessions",
        json={
            "movie_id": movie["id"],
            "hall_id": hall["id"],
            "start_time": "2030-05-01T18:30:00+06:00",
            "base_price": 700,
        },
        headers=admin_headers,
    )
    assert response.status_code == 201
    body = response.get_json()
    assert body["start_time"] == "2030-05-01T12:30:00Z"
    assert body["movie"]["id"] == movie["id"]
    assert body["hall"]["id"] == hall["id"]


def test_create_session_rejects_bad_start_time(client, admin_headers):
    movie = _create_movie(client, admin_headers)
    hall = _create_hall(client, admin_headers)
    for start_time in ("tomorrow evening", "2030-05-01T18:30:00"):
        response = client.post(
            "/api/admin/sessions",
            json={"movie_id": movie["id"], "hall_id": hall["id"], "start_time": start_time, "base_price": 700},
            headers=admin_headers,
        )
        assert response.status_code == 400
        assert response.get_json()["error"] == "start_time must be RFC3339"


def test_create_session_unknown_movie_or_hall(client, admin_headers):
    hall = _create_hall(client, admin_headers)
    response = client.post(
        "/api/admin/sessions",
        json={"movie_id": 9999, "hall_id": hall["id"], "start_time": "2030-01-01T10:00:00Z", "base_price": 500},
        headers=admin_headers,
    )
    assert response.status_code == 404
    assert response.get_json()["error"] == "movie not found"


def test_list_sessions_filters_by_movie_and_orders_by_start(client, admin_headers):
    hall = _create_hall(client, admin_headers)
    movie_a = _create_movie(client, admin_headers, title="A")
    movie_b = _create_movie(client, admin_headers, title="B")
    for movie, start_time in (
        (movie_a, "2030-01-02T10:00:00Z"),
        (movie_b, "2030-01-01T10:00:00Z"),
        (movie_a, "2030-01-01T08:00:00Z"),
    ):
        client.post(
            "/api/admin/sessions",
            json={"movie_id": movie["id"], "hall_id": hall["id"], "start_time": start_time, "base_price": 500},
            headers=admin_headers,
        )

    all_sessions = client.get("/api/sessions").get_json()
    assert [session["start_time"] for session in all_sessions] == [
        "2030-01-01T08:00:00Z",
        "2030-01-01T10:00:00Z",
        "2030-01-02T10:00:00Z",
    ]

    only_a = client.get(f"/api/sessions?movie_id={movie_a['id']}").get_json()
    assert [session["movie_id"] for session in only_a] == [movie_a["id"], movie_a["id"]]

    # a non-numeric filter is ignored
    assert len(client.get("/api/sessions?movie_id=abc").get_json()) == 3


def test_get_session_and_availability_for_unknown_session(client):
    assert client.get("/api/sessions/9999").status_code == 404
    response = client.get("/api/sessions/9999/availability")
    assert response.status_code == 200
    assert response.get_json() == {"booked_seat_ids": []}


# repricing a session never touches bookings already made
def test_update_session_price_keeps_existing_totals(client, admin_headers, register_user, showing):
    _, headers = register_user("price@example.com")
    booking = _book(client, headers, showing["session"]["id"], showing["seat_ids"][:2])
    assert booking["total_price"] == 1000

    response = client.put(
        f"/api/admin/sessions/{showing['session']['id']}", json={"base_price": 800}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.get_json()["base_price"] == 800

    mine = client.get("/api/bookings/mine", headers=headers).get_json()
    assert mine[0]["total_price"] == 1000


def test_update_session_partial_fields(client, admin_headers, showing):
    session_id = showing["session"]["id"]
    response = client.put(
        f"/api/admin/sessions/{session_id}",
        json={"start_time": "", "base_price": 0, "movie_id": 0},
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.get_json()["error"] == "no fields to update"

    response = client.put(
        f"/api/admin/sessions/{session_id}",
        json={"start_time": "2030-02-01T09:00:00Z"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    body = response.get_json()
    assert body["start_time"] == "2030-02-01T09:00:00Z"
    assert body["base_price"] == 500


def test_update_session_hall_change_blocked_by_bookings(client, admin_headers, register_user, showing):
    other_hall = _create_hall(client, admin_headers, name="Other", rows=1, cols=1)
    _, headers = register_user("hallmove@example.com")
    _book(client, headers, showing["session"]["id"], showing["seat_ids"][:1])

    response = client.put(
        f"/api/admin/sessions/{showing['session']['id']}",
        json={"hall_id": other_hall["id"]},
        headers=admin_headers,
    )
    assert response.status_code == 409
    assert client.get(f"/api/sessions/{showing['session']['id']}").get_json()["hall_id"] == showing["hall"]["id"]


def test_delete_session_with_confirmed_booking_conflict(client, admin_headers, register_user, showing):
    _, headers = register_user("keep@example.com")
    _book(client, headers, showing["session"]["id"], showing["seat_ids"][:1])
    session_id = showing["session"]["id"]

    response = client.delete(f"/api/admin/sessions/{session_id}", headers=admin_headers)
    assert response.status_code == 409
    assert response.get_json()["error"] == "session has bookings"
    assert client.get(f"/api/sessions/{session_id}").status_code == 200


# a cancelled booking still keeps its session alive
def test_delete_session_keeps_cancelled_bookings(client, admin_headers, register_user, showing, app):
    _, headers = register_user("history@example.com")
    booking = _book(client, headers, showing["session"]["id"], showing["seat_ids"][:1])
    session_id = showing["session"]["id"]
    client.patch(f"/api/bookings/{booking['id']}/cancel", headers=headers)

    response = client.delete(f"/api/admin/sessions/{session_id}", headers=admin_headers)

    assert response.status_code == 409
    assert response.get_json()["error"] == "session has bookings"
    assert client.get(f"/api/sessions/{session_id}").status_code == 200
    mine = client.get("/api/bookings/mine", headers=headers).get_json()
    assert [(item["id"], item["status"]) for item in mine] == [(booking["id"], "cancelled")]
    with app.app_context():
        assert Booking.query.filter_by(session_id=session_id).count() == 1


def test_delete_session_without_bookings(client, admin_headers, showing):
    session_id = showing["session"]["id"]
    assert client.delete(f"/api/admin/sessions/{session_id}", headers=admin_headers).status_code == 204
    assert client.get(f"/api/sessions/{session_id}").status_code == 404
    assert client.delete(f"/api/admin/sessions/{session_id}", headers=admin_headers).status_code == 404


# moving a session would strand the seats of cancelled bookings in the old hall
def test_update_session_hall_change_blocked_by_cancelled_booking(client, admin_headers, register_user, showing):
    other_hall = _create_hall(client, admin_headers, name="H2", rows=2, cols=2)
    _, headers = register_user("moved@example.com")
    booking = _book(client, headers, showing["session"]["id"], showing["seat_ids"][:2])
    client.patch(f"/api/bookings/{booking['id']}/cancel", headers=headers)

    response = client.put(
        f"/api/admin/sessions/{showing['session']['id']}",
        json={"hall_id": other_hall["id"]},
        headers=admin_headers,
    )
    assert response.status_code == 409

    response = client.patch(
        f"/api/admin/bookings/{booking['id']}/status", json={"status": "confirmed"}, headers=admin_headers
    )
    assert response.status_code == 200
    body = response.get_json()
    assert body["session"]["hall_id"] == showing["hall"]["id"]
    assert {seat["hall_id"] for seat in body["seats"]} == {showing["hall"]["id"]}


def test_update_session_hall_change_without_bookings(client, admin_headers, showing):
    other_hall = _create_hall(client, admin_headers, name="H2", rows=1, cols=1)
    response = client.put(
        f"/api/admin/sessions/{showing['session']['id']}",
        json={"hall_id": other_hall["id"]},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.get_json()["hall_id"] == other_hall["id"]


def test_out_of_range_ids(client, admin_headers, showing):
    too_big = 10 ** 20
    assert client.get(f"/api/movies/{too_big}").status_code == 404
    assert client.get(f"/api/sessions/{too_big}/availability").status_code == 404
    assert client.delete(f"/api/admin/halls/{too_big}", headers=admin_headers).status_code == 404

    response = client.post(
        "/api/admin/sessions",
        json={
            "movie_id": too_big,
            "hall_id": showing["hall"]["id"],
            "start_time": "2030-01-01T10:00:00Z",
            "base_price": 500,
        },
        headers=admin_headers,
    )
    assert response.status_code == 400
    assert response.get_json()["error"] == "number is too large"

    response = client.put(
        f"/api/admin/sessions/{showing['session']['id']}", json={"base_price": too_big}, headers=admin_headers
    )
    assert response.status_code == 400

    # an unusable filter is ignored like a non-numeric one
    assert len(client.get(f"/api/sessions?movie_id={too_big}").get_json()) == 1


def test_text_fields_longer_than_their_columns(client, admin_headers):
    response = client.post("/api/admin/movies", json={"title": "x" * 256, "duration_mins": 90}, headers=admin_headers)
    assert response.status_code == 400
    assert response.get_json()["errors"][0]["field"] == "title"

    response = client.post("/api/admin/halls", json={"name": "h" * 121, "rows": 1, "cols": 1}, headers=admin_headers)
    assert response.status_code == 400
