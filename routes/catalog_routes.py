from flask import Blueprint, jsonify, request

from schemas import MAX_INT
from services import catalog
from services.availability import booked_seat_ids

catalog_bp = Blueprint("catalog", __name__, url_prefix="/api")


def _id_arg(value):
    number = int(value)
    if not 1 <= number <= MAX_INT:
        raise ValueError(value)
    return number


@catalog_bp.route("/movies", methods=["GET"])
def list_movies():
    return jsonify([movie.to_dict() for movie in catalog.list_movies()])


@catalog_bp.route("/movies/<id:movie_id>", methods=["GET"])
def get_movie(movie_id):
    return jsonify(catalog.get_movie(movie_id).to_dict())


@catalog_bp.route("/halls", methods=["GET"])
def list_halls():
    return jsonify([hall.to_dict() for hall in catalog.list_halls()])


@catalog_bp.route("/halls/<id:hall_id>/seats", methods=["GET"])
def list_seats(hall_id):
    return jsonify([seat.to_dict() for seat in catalog.list_seats(hall_id)])


@catalog_bp.route("/sessions", methods=["GET"])
def list_sessions():
    # a malformed or out-of-range movie_id is ignored rather than rejected
    movie_id = request.args.get("movie_id", type=_id_arg)
    return jsonify([session.to_dict() for session in catalog.list_sessions(movie_id)])


@catalog_bp.route("/sessions/<id:session_id>", methods=["GET"])
def get_session(session_id):
    return jsonify(catalog.get_session(session_id).to_dict())


@catalog_bp.route("/sessions/<id:session_id>/availability", methods=["GET"])
def session_availability(session_id):
    return jsonify({"booked_seat_ids": booked_seat_ids(session_id)})
