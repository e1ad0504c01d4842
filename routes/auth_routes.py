import os
import time

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy.exc import IntegrityError

from errors import BadRequest, Conflict, NotFound, Unauthorized
from identity import (
    auth_required,
    create_token,
    current_user_id,
    hash_password,
    load_current_user,
    verify_password,
)
from models import User, db
from schemas import load_request, login_schema, password_change_schema, profile_schema, register_schema

auth_bp = Blueprint("auth", __name__, url_prefix="/api")

AVATAR_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp"}


@auth_bp.route("/auth/register", methods=["POST"])
def register():
    payload = load_request(register_schema, request.get_json(silent=True))

    if User.query.filter_by(email=payload["email"]).first():
        raise Conflict("email already registered")

    user = User(
        name=payload["name"],
        email=payload["email"],
        password_hash=hash_password(payload["password"]),
        is_admin=False,
    )
    try:
        db.session.add(user)
        db.session.commit()
    except IntegrityError:
        # lost a race with a concurrent registration for the same email
        db.session.rollback()
        raise Conflict("email already registered")

    return jsonify({"token": create_token(user), "user": user.to_dict()}), 201


@auth_bp.route("/auth/login", methods=["POST"])
def login():
    payload = load_request(login_schema, request.get_json(silent=True))

    user = User.query.filter_by(email=payload["email"]).first()
    if not user or not verify_password(payload["password"], user.password_hash):
        raise Unauthorized("invalid credentials")

    return jsonify({"token": create_token(user), "user": user.to_dict()})


@auth_bp.route("/me", methods=["GET"])
@auth_required
def me():
    user = db.session.get(User, current_user_id())
    if not user:
        raise NotFound("user not found")
    return jsonify(user.to_dict())


@auth_bp.route("/me", methods=["PATCH"])
@auth_required
def update_me():
    payload = load_request(profile_schema, request.get_json(silent=True))

    user = db.session.get(User, current_user_id())
    if not user:
        raise NotFound("user not found")
    user.name = payload["name"]
    db.session.commit()
    return jsonify(user.to_dict())


@auth_bp.route("/me/password", methods=["PATCH"])
@auth_required
def change_password():
    payload = load_request(password_change_schema, request.get_json(silent=True))

    user = load_current_user()
    if not verify_password(payload["current_password"], user.password_hash):
        raise Unauthorized("invalid credentials")

    user.password_hash = hash_password(payload["new_password"])
    db.session.commit()
    return jsonify({"status": "ok"})


@auth_bp.route("/me/avatar", methods=["POST"])
@auth_required
def upload_avatar():
    user_id = current_user_id()
    file = request.files.get("avatar")
    if not file or not file.filename:
        raise BadRequest("avatar file is required")

    ext = os.path.splitext(file.filename)[1].lower()
    if ext not in AVATAR_EXTENSIONS:
        raise BadRequest("unsupported file type")

    user = db.session.get(User, user_id)
    if not user:
        raise NotFound("user not found")

    upload_dir = os.path.join(current_app.config["UPLOAD_FOLDER"], "avatars")
    os.makedirs(upload_dir, exist_ok=True)
    filename = f"u{user_id}-{time.time_ns()}{ext}"
    file.save(os.path.join(upload_dir, filename))

    previous = user.avatar_url
    user.avatar_url = f"/uploads/avatars/{filename}"
    db.session.commit()

    if previous.startswith("/uploads/avatars/"):
        old_path = os.path.join(upload_dir, os.path.basename(previous))
        if os.path.exists(old_path):
            try:
                os.remove(old_path)
            except OSError as exc:
                current_app.logger.warning("could not remove old avatar path=%s error=%s", old_path, exc)

    return jsonify(user.to_dict())
