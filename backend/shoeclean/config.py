# shoeclean/config.py
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/shoeclean.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",  # optional alternative location
        "sqlite:///shoeclean.sqlite3",  # default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # When set, every /api route except tracking and health needs an "apikey" header
    SHOECLEAN_API_KEY = os.environ.get("SHOECLEAN_API_KEY")

    # Browser dashboards allowed to call the API
    CORS_ALLOWED_ORIGINS = frozenset(
        origin.strip()
        for origin in os.environ.get(
            "SHOECLEAN_CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:4173,http://127.0.0.1:4173",
        ).split(",")
        if origin.strip()
    )

    # Change journal rows kept by "flask changes prune" when no --keep is given
    CHANGE_EVENTS_RETENTION = int(os.environ.get("SHOECLEAN_CHANGE_RETENTION", "5000"))


@dataclass
class ClientConfig:
    """Settings for the dashboard-side core (entity store and remote client)."""

    api_url: str = field(default_factory=lambda: os.environ.get("SHOECLEAN_API_URL", "http://127.0.0.1:5000"))
    api_key: str | None = field(default_factory=lambda: os.environ.get("SHOECLEAN_API_KEY"))
    session_file: str = field(
        default_factory=lambda: os.environ.get("SHOECLEAN_SESSION_FILE", "data/session.json")
    )
    poll_interval: float = field(
        default_factory=lambda: float(os.environ.get("SHOECLEAN_POLL_INTERVAL", "2"))
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.environ.get("SHOECLEAN_REQUEST_TIMEOUT", "30"))
    )
    allow_plaintext_passwords: bool = field(
        default_factory=lambda: _env_bool("SHOECLEAN_ALLOW_PLAINTEXT_PASSWORDS")
    )
    bcrypt_rounds: int = field(
        default_factory=lambda: int(os.environ.get("SHOECLEAN_BCRYPT_ROUNDS", "12"))
    )
    log_level: str = field(default_factory=lambda: os.environ.get("SHOECLEAN_LOG_LEVEL", "INFO"))


def configure_logging(level_name: str = "INFO") -> None:
    """Install a basic handler once; later calls only adjust the level."""
    level = getattr(logging, str(level_name).upper(), logging.INFO)
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=level, format="[%(levelname)s] %(name)s: %(message)s")
    else:
        root.setLevel(level)
