import os
from datetime import timedelta

from dotenv import load_dotenv

DEFAULT_CORS_ORIGINS = ["http://localhost:5173", "http://127.0.0.1:5173"]


def _env_flag(name):
    return os.getenv(name, "").strip().lower() in ("true", "1", "yes")


def _database_url():
    url = os.getenv("DATABASE_URL", "").strip()
    # Heroku-style URLs are not accepted by SQLAlchemy 1.4+
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql://", 1)
    return url


def parse_origins(raw):
    """Split a comma separated CORS_ORIGIN value, falling back to the dev origins."""
    if not raw or not raw.strip():
        return list(DEFAULT_CORS_ORIGINS)
    origins = [part.strip() for part in raw.split(",") if part.strip()]
    return origins or [DEFAULT_CORS_ORIGINS[0]]


def load_config():
    load_dotenv()

    return {
        "SQLALCHEMY_DATABASE_URI": _database_url(),
        "SQLALCHEMY_TRACK_MODIFICATIONS": False,
        "JWT_SECRET_KEY": os.getenv("JWT_SECRET", ""),
        "JWT_ALGORITHM": "HS256",
        "JWT_DECODE_ALGORITHMS": ["HS256"],
        "JWT_TOKEN_LOCATION": ["headers"],
        "JWT_ACCESS_TOKEN_EXPIRES": timedelta(days=7),
        "JWT_ERROR_MESSAGE_KEY": "error",
        "PORT": int(os.getenv("PORT") or 8080),
        "CORS_ORIGINS": parse_origins(os.getenv("CORS_ORIGIN", "")),
        "SEED": _env_flag("SEED"),
        "ADMIN_EMAIL": os.getenv("ADMIN_EMAIL", ""),
        "ADMIN_PASSWORD": os.getenv("ADMIN_PASSWORD", ""),
        "ADMIN_NAME": os.getenv("ADMIN_NAME", ""),
        "UPLOAD_FOLDER": os.getenv("UPLOAD_FOLDER", "uploads"),
        "BCRYPT_ROUNDS": int(os.getenv("BCRYPT_ROUNDS") or 12),
        "TICKET_TIMEZONE": os.getenv("TICKET_TIMEZONE", "UTC"),
        "LOG_LEVEL": os.getenv("LOG_LEVEL", "INFO").upper(),
        "MAX_CONTENT_LENGTH": 8 * 1024 * 1024,
    }
