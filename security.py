# security.py
"""Password hashing and the JWT carried in the auth cookie."""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from fastapi import Response

from config import COOKIE_NAME, DEV_MODE, JWT_ALGORITHM, JWT_MAX_AGE, JWT_SECRET
from models.user import Role, parse_role


# =============================================================================
# Passwords
# =============================================================================

def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=10)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Stored value is not a bcrypt hash
        return False


# =============================================================================
# Session token (JWT in cookie)
# =============================================================================

@dataclass(frozen=True)
class AuthUser:
    """The authenticated caller as carried by the cookie."""

    id: str
    email: str
    role: Role


def create_token(user_id: str, email: str, role: Role | str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "id": str(user_id),
        "email": email,
        "role": role.value if isinstance(role, Role) else str(role),
        "iat": now,
        "exp": now + timedelta(seconds=JWT_MAX_AGE),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> AuthUser | None:
    """Verified caller, or None for a missing, expired or tampered token."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None
    role = parse_role(payload.get("role"))
    if not payload.get("id") or role is None:
        return None
    return AuthUser(id=str(payload["id"]), email=payload.get("email", ""), role=role)


def set_auth_cookie(response: Response, token: str):
    response.set_cookie(
        key=COOKIE_NAME,
        value=token,
        max_age=JWT_MAX_AGE,
        path="/",
        httponly=True,
        samesite="lax",
        secure=not DEV_MODE,  # HTTPS only outside development
    )


def clear_auth_cookie(response: Response):
    response.delete_cookie(key=COOKIE_NAME, path="/")
