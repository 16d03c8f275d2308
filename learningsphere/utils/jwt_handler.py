"""
JWT Token Handler Utilities
"""
import os
from datetime import datetime, timedelta
from typing import Tuple, Optional, Dict, Any
import jwt
from flask import current_app, has_app_context


JWT_ALGORITHM = "HS256"
REFRESH_TOKEN_EXPIRE_DAYS = 7


def _setting(name: str, default: str) -> str:
    """Read a JWT setting from the app config, falling back to the environment"""
    if has_app_context() and current_app.config.get(name):
        return current_app.config[name]
    return os.getenv(name, default)


def _access_secret() -> str:
    return _setting("JWT_SECRET", "your-super-secret-key-min-32-chars-here")


def _refresh_secret() -> str:
    return _setting("REFRESH_TOKEN_SECRET", "your-refresh-secret-min-32-chars")


def _access_expire_hours() -> int:
    return int(_setting("JWT_EXPIRATION_HOURS", "24"))


def _access_token(user_id: str, role: str, now: datetime) -> str:
    payload = {
        "user_id": user_id,
        "role": role,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(hours=_access_expire_hours())
    }
    return jwt.encode(payload, _access_secret(), algorithm=JWT_ALGORITHM)


def create_tokens(user_id: str, role: str) -> Tuple[str, str]:
    """
    Create access and refresh tokens for a user.

    Args:
        user_id: The user's UUID string
        role: User role (learner, tutor, admin)

    Returns:
        Tuple of (access_token, refresh_token)
    """
    now = datetime.utcnow()

    refresh_payload = {
        "user_id": user_id,
        "type": "refresh",
        "iat": now,
        "exp": now + timedelta(days=REFRESH_TOKEN_EXPIRE_DAYS)
    }

    access_token = _access_token(user_id, role, now)
    refresh_token = jwt.encode(refresh_payload, _refresh_secret(), algorithm=JWT_ALGORITHM)

    return access_token, refresh_token


def verify_token(token: str, token_type: str = "access") -> Dict[str, Any]:
    """
    Verify and decode a JWT token.

    Raises:
        jwt.ExpiredSignatureError: Token has expired
        jwt.InvalidTokenError: Token is invalid or of the wrong type
    """
    secret = _access_secret() if token_type == "access" else _refresh_secret()

    payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])

    if payload.get("type") != token_type:
        raise jwt.InvalidTokenError(f"Invalid token type. Expected {token_type}")

    return payload


def refresh_access_token(refresh_token: str, role: str) -> Optional[str]:
    """
    Generate a new access token from a valid refresh token.

    The caller resolves the role from the user record, since refresh
    tokens do not carry it.
    """
    try:
        payload = verify_token(refresh_token, token_type="refresh")
    except jwt.PyJWTError:
        return None

    user_id = payload.get("user_id")
    if not user_id:
        return None

    return _access_token(user_id, role, datetime.utcnow())
