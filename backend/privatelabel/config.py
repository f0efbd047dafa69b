# backend/privatelabel/config.py
from __future__ import annotations
import os


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/privatelabel.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///privatelabel.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL")
    LOG_REDACT_PII = _env_bool("LOG_REDACT_PII", True)

    # Outbound mail (Flask-Mail)
    MAIL_SERVER = os.environ.get("MAIL_SERVER", "localhost")
    MAIL_PORT = _env_int("MAIL_PORT", 587)
    MAIL_USE_TLS = _env_bool("MAIL_USE_TLS", True)
    MAIL_USE_SSL = _env_bool("MAIL_USE_SSL", False)
    MAIL_USERNAME = os.environ.get("MAIL_USERNAME")
    MAIL_PASSWORD = os.environ.get("MAIL_PASSWORD")
    MAIL_DEFAULT_SENDER = os.environ.get(
        "MAIL_DEFAULT_SENDER", "Private Label <noreply@privatelabel.local>"
    )
    MAIL_SUPPRESS_SEND = _env_bool("MAIL_SUPPRESS_SEND", False)

    # Links in store-facing emails point at the frontend
    FRONTEND_URL = os.environ.get("FRONTEND_URL", "http://localhost:5173")
    CORS_ALLOWED_ORIGINS = {
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:4173",
        "http://127.0.0.1:4173",
    }

    # Label artwork storage
    MEDIA_ROOT = os.environ.get("MEDIA_ROOT")  # defaults to <instance>/media
    MEDIA_URL_PREFIX = os.environ.get("MEDIA_URL_PREFIX", "/media")
    MEDIA_ALLOWED_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "pdf"}
    MAX_LABEL_IMAGES = _env_int("MAX_LABEL_IMAGES", 5)

    # Production scheduling
    PRODUCTION_LEAD_DAYS = _env_int("PRODUCTION_LEAD_DAYS", 14)
    REMINDER_LEAD_DAYS = _env_int("REMINDER_LEAD_DAYS", 7)
    LABEL_APPROVAL_TOKEN_TTL_HOURS = _env_int("LABEL_APPROVAL_TOKEN_TTL_HOURS", 168)

    # Side-effect dispatch: after_response | worker | manual
    OUTBOX_DISPATCH_MODE = os.environ.get("OUTBOX_DISPATCH_MODE", "after_response")
    OUTBOX_MAX_ATTEMPTS = _env_int("OUTBOX_MAX_ATTEMPTS", 5)
    OUTBOX_BATCH_SIZE = _env_int("OUTBOX_BATCH_SIZE", 50)

    # Daily sweep fire time (UTC)
    DAILY_JOBS_HOUR = _env_int("DAILY_JOBS_HOUR", 0)
    DAILY_JOBS_MINUTE = _env_int("DAILY_JOBS_MINUTE", 0)
