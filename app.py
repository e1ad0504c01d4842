import logging
import os
import time

from flask import Flask, current_app, g, jsonify, request, send_from_directory
from flask_cors import CORS
from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException
from werkzeug.routing import IntegerConverter

from config import load_config
from errors import ServiceError
from identity import jwt
from models import db
from routes.admin_routes import admin_bp
from routes.auth_routes import auth_bp
from routes.booking_routes import booking_bp
from routes.catalog_routes import catalog_bp
from schemas import MAX_INT, validation_errors
from seed import seed_admin, seed_demo_data, seed_schedule_command


class IdConverter(IntegerConverter):
    """``<id:...>`` path segment; ids outside the column range never match."""

    def __init__(self, map, *args, **kwargs):
        kwargs.setdefault("min", 1)
        kwargs.setdefault("max", MAX_INT)
        super().__init__(map, *args, **kwargs)


def create_app(test_config=None):
    app = Flask(__name__)
    app.config.update(load_config())
    if test_config:
        app.config.update(test_config)

    if not app.config.get("SQLALCHEMY_DATABASE_URI"):
        raise RuntimeError("DATABASE_URL is required")
    if not app.config.get("JWT_SECRET_KEY"):
        raise RuntimeError("JWT_SECRET is required")

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))

    db.init_app(app)
    jwt.init_app(app)

    origins = app.config["CORS_ORIGINS"]
    CORS(
        app,
        origins=origins,
        supports_credentials="*" not in origins,
        methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type"],
        max_age=43200,
    )

    app.url_map.converters["id"] = IdConverter
    app.register_blueprint(auth_bp)
    app.register_blueprint(catalog_bp)
    app.register_blueprint(booking_bp)
    app.register_blueprint(admin_bp)

    register_error_handlers(app)
    register_request_logging(app)

    @app.route("/api/health")
    def health():
        return jsonify({"status": "ok"})

    @app.route("/uploads/<path:filename>")
    def uploaded_file(filename):
        return send_from_directory(os.path.abspath(current_app.config["UPLOAD_FOLDER"]), filename)

    app.cli.add_command(seed_schedule_command)

    with app.app_context():
        db.create_all()
        seed_admin(app.config)
        if app.config.get("SEED"):
            seed_demo_data()

    return app


def register_error_handlers(app):
    @app.errorhandler(ServiceError)
    def handle_service_error(exc):
        return jsonify({"error": exc.message}), exc.status_code

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc):
        errors = validation_errors(exc)
        message = errors[0]["msg"] if errors else "invalid request"
        return jsonify({"error": message, "errors": errors}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({"error": exc.description or exc.name}), exc.code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc):
        db.session.rollback()
        app.logger.exception("database error path=%s", request.path)
        return jsonify({"error": "internal server error"}), 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc):
        db.session.rollback()
        app.logger.exception("unhandled error path=%s", request.path)
        return jsonify({"error": "internal server error"}), 500


def register_request_logging(app):
    @app.before_request
    def start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def log_request(response):
        started = g.pop("request_started", None)
        latency_ms = (time.perf_counter() - started) * 1000 if started is not None else 0.0
        level = logging.WARNING if response.status_code >= 500 else logging.INFO
        app.logger.log(
            level,
            "request method=%s path=%s status=%s latency_ms=%.1f ip=%s",
            request.method,
            request.path,
            response.status_code,
            latency_ms,
            request.remote_addr,
        )
        return response


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=app.config["PORT"])
