"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
- Access token: short-lived (15min), presented as a Bearer credential
- Refresh token: long-lived (7 days), signed with its own secret and
  also stored on the user row so it can be revoked and rotated

Every token carries a random jti, so two tokens minted for the same
user in the same second still differ. Rotation depends on that.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from userhub.config import settings

ACCESS = "access"
REFRESH = "refresh"


class TokenError(Exception):
    """Raised when token verification fails."""


def _encode(user_id: str, token_type: str, expires: timedelta, secret: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "type": token_type,
        "exp": now + expires,
        "iat": now,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(payload, secret, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: str, expires_minutes: Optional[int] = None) -> str:
    """Create a JWT access token."""
    return _encode(
        user_id,
        ACCESS,
        timedelta(minutes=expires_minutes or settings.access_token_expire_minutes),
        settings.jwt_secret,
    )


def create_refresh_token(user_id: str, expires_days: Optional[int] = None) -> str:
    """Create a JWT refresh token."""
    return _encode(
        user_id,
        REFRESH,
        timedelta(days=expires_days or settings.refresh_token_expire_days),
        settings.jwt_refresh_secret,
    )


def _decode(token: str, secret: str, token_type: str) -> str:
    try:
        payload = jwt.decode(
            token,
            secret,
            algorithms=[settings.jwt_algorithm],
            options={"require": ["sub", "exp", "type"]},
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if payload["type"] != token_type:
        raise TokenError(f"Expected {token_type} token, got {payload['type']}")
    return payload["sub"]


def verify_access_token(token: str) -> str:
    """Verify an access token and return the user id it was issued for.

    Raises TokenError on bad signature, expiry, or wrong token type.
    """
    return _decode(token, settings.jwt_secret, ACCESS)


def verify_refresh_token(token: str) -> str:
    """Verify a refresh token cryptographically and return its user id.

    Does not look at the stored token; AuthService.refresh does that.
    """
    return _decode(token, settings.jwt_refresh_secret, REFRESH)
