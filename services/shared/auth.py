"""
Admin authentication: password verification and the signed session cookie.

The session is an HS256 JWT stored in an HTTP-only cookie and checked on
every admin-only operation.
"""
from __future__ import annotations

import typing as t
from datetime import datetime, timedelta, timezone

import jwt
from passlib.context import CryptContext

from services.shared.config import Settings


ADMIN_COOKIE = "ra_admin_token"
ALGORITHM = "HS256"

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class AuthError(Exception):
    """Missing, expired or invalid admin session."""


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password:
        return False
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        return False


class AdminDirectory:
    """The configured administrator accounts, keyed by lower-cased email."""

    def __init__(self, settings: Settings) -> None:
        self._admins: dict[str, dict[str, str]] = {}
        password_hash = settings.admin_password_hash
        if not password_hash and settings.admin_password:
            password_hash = get_password_hash(settings.admin_password)
        if settings.admin_email and password_hash:
            self._admins[settings.admin_email.lower()] = {
                "email": settings.admin_email.lower(),
                "username": settings.admin_username,
                "password_hash": password_hash,
            }

    def authenticate(self, email: str, password: str) -> t.Optional[dict[str, str]]:
        admin = self._admins.get((email or "").strip().lower())
        if admin is None or not verify_password(password, admin["password_hash"]):
            return None
        return admin


def create_session_token(admin: t.Mapping[str, str], secret: str, hours: int = 8) -> str:
    expire = datetime.now(timezone.utc) + timedelta(hours=hours)
    claims = {
        "sub": admin["email"],
        "email": admin["email"],
        "username": admin.get("username", ""),
        "exp": expire,
    }
    return jwt.encode(claims, secret, algorithm=ALGORITHM)


def verify_session_token(token: t.Optional[str], secret: str) -> dict[str, t.Any]:
    """Decode a session token; raises AuthError when absent, expired or tampered with."""
    if not token:
        raise AuthError("Unauthorized")
    try:
        payload = jwt.decode(token, secret, algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise AuthError("Session expired")
    except jwt.InvalidTokenError:
        raise AuthError("Unauthorized")
    if not payload.get("email"):
        raise AuthError("Unauthorized")
    return payload


def cookie_options(settings: Settings) -> dict[str, t.Any]:
    return {
        "key": ADMIN_COOKIE,
        "httponly": True,
        "samesite": "lax",
        "secure": settings.cookie_secure,
        "path": "/",
        "max_age": settings.session_hours * 60 * 60,
    }
