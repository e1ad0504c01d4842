from functools import wraps

import bcrypt
from flask import current_app, g, jsonify
from flask_jwt_extended import (
    JWTManager,
    create_access_token,
    get_jwt_identity,
    verify_jwt_in_request,
)

from errors import Forbidden, Unauthorized
from models import User, db

jwt = JWTManager()


def hash_password(password):
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    hashed = bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=rounds))
    return hashed.decode("utf-8")


def verify_password(entered_password, stored_hash):
    if not stored_hash:
        return False
    try:
        return bcrypt.checkpw(entered_password.encode("utf-8"), stored_hash.encode("utf-8"))
    except ValueError:
        # malformed stored hash, or a password bcrypt refuses to process
        return False


def create_token(user):
    return create_access_token(identity=str(user.id), additional_claims={"user_id": user.id})


def current_user_id():
    return int(get_jwt_identity())


def load_current_user():
    """Fetch the token's user; the row is looked up on every request."""
    user = db.session.get(User, current_user_id())
    if user is None:
        raise Unauthorized("user not found")
    return user


def auth_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        return fn(*args, **kwargs)

    return wrapper


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        verify_jwt_in_request()
        user = load_current_user()
        if not user.is_admin:
            raise Forbidden("admin access required")
        g.current_user = user
        return fn(*args, **kwargs)

    return wrapper


def _unauthorized(message):
    return jsonify({"error": message}), 401


@jwt.unauthorized_loader
def missing_token(reason):
    return _unauthorized("missing token")


@jwt.invalid_token_loader
def invalid_token(reason):
    return _unauthorized("invalid token")


@jwt.expired_token_loader
def expired_token(jwt_header, jwt_payload):
    return _unauthorized("invalid token")
