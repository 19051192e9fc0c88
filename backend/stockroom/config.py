# backend/stockroom/config.py
from __future__ import annotations
import os


def _split_csv(value: str | None) -> set[str]:
    if not value:
        return set()
    return {part.strip() for part in value.split(",") if part.strip()}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/stockroom.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///stockroom.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    CORS_ALLOWED_ORIGINS = _split_csv(os.environ.get("CORS_ALLOWED_ORIGINS")) or {
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:8080",
    }

    SESSION_ABSOLUTE_TIMEOUT_HOURS = int(os.environ.get("SESSION_ABSOLUTE_TIMEOUT_HOURS", "24"))
    SESSION_IDLE_TIMEOUT_HOURS = int(os.environ.get("SESSION_IDLE_TIMEOUT_HOURS", "2"))

    # External forecast / promotion generators (opaque JSON services)
    INSIGHTS_FORECAST_URL = os.environ.get("INSIGHTS_FORECAST_URL")
    INSIGHTS_PROMOTION_URL = os.environ.get("INSIGHTS_PROMOTION_URL")
    INSIGHTS_API_KEY = os.environ.get("INSIGHTS_API_KEY")
    INSIGHTS_TIMEOUT_SECONDS = float(os.environ.get("INSIGHTS_TIMEOUT_SECONDS", "30"))
