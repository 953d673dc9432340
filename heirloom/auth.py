"""
Bearer tokens issued after a successful login.
"""

from __future__ import annotations

from datetime import timedelta

from jose import JWTError, jwt

from heirloom.config import Settings
from heirloom.db import utcnow
from heirloom.errors import AuthenticationError
from heirloom.users import UserRecord


def issue_token(user: UserRecord, settings: Settings) -> str:
    now = utcnow()
    claims = {
        "sub": user.id,
        "email": user.email,
        "name": user.name,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(days=settings.jwt_expires_days)).timestamp()),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings) -> str:
    """Return the user id carried by a valid token."""
    try:
        claims = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except JWTError as exc:
        raise AuthenticationError("Invalid or expired token") from exc
    user_id = claims.get("sub")
    if not user_id:
        raise AuthenticationError("Invalid token: missing subject")
    return user_id
