"""
Service configuration read from environment variables.

Settings are loaded once at service start-up; every variable has a default
suitable for local development.
"""
from __future__ import annotations

import logging
import os
import typing as t
from dataclasses import dataclass


def _flag(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Settings:
    """Portal service settings."""
    data_dir: str = "./data"
    uploads_base_url: t.Optional[str] = None
    jwt_secret: str = "dev-secret-change-me"
    admin_email: str = ""
    admin_username: str = "admin"
    admin_password_hash: str = ""
    admin_password: str = ""
    cookie_secure: bool = False
    session_hours: int = 8
    timezone: str = "Asia/Dhaka"
    reject_double_approval: bool = False
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Build Settings from the current environment."""
    return Settings(
        data_dir=os.getenv("PORTAL_DATA_DIR", "./data"),
        uploads_base_url=os.getenv("PORTAL_UPLOADS_BASE_URL") or None,
        jwt_secret=os.getenv("PORTAL_JWT_SECRET", "dev-secret-change-me"),
        admin_email=os.getenv("PORTAL_ADMIN_EMAIL", "").strip().lower(),
        admin_username=os.getenv("PORTAL_ADMIN_USERNAME", "admin"),
        admin_password_hash=os.getenv("PORTAL_ADMIN_PASSWORD_HASH", ""),
        admin_password=os.getenv("PORTAL_ADMIN_PASSWORD", ""),
        cookie_secure=_flag("PORTAL_COOKIE_SECURE", os.getenv("PORTAL_ENV") == "production"),
        session_hours=int(os.getenv("PORTAL_SESSION_HOURS", "8")),
        timezone=os.getenv("PORTAL_TIMEZONE", "Asia/Dhaka"),
        reject_double_approval=_flag("PORTAL_REJECT_DOUBLE_APPROVAL"),
        log_level=os.getenv("PORTAL_LOG_LEVEL", "INFO"),
    )


def configure_logging(level: str = "INFO") -> None:
    """Route every module logger to stderr with a single format."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
