"""Verification of access tokens issued by the auth platform.

Sessions are created and refreshed elsewhere; this service only checks the
HS256 signature, expiry and audience, and reads the user id from ``sub``.
"""

from __future__ import annotations

import uuid
from typing import Any

import jwt

from hibilog.config import get_settings
from hibilog.errors import ConfigurationError


def verify_token(token: str) -> dict[str, Any]:
    """Decode and verify a bearer token. Raises ``jwt.InvalidTokenError``."""
    settings = get_settings()
    if not settings.jwt_secret:
        raise ConfigurationError("JWT secret is not configured")
    return jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        options={"require": ["sub", "exp"]},
    )


def user_id_from_claims(payload: dict[str, Any]) -> uuid.UUID:
    """Extract the user UUID from verified claims."""
    try:
        return uuid.UUID(str(payload["sub"]))
    except (KeyError, ValueError) as e:
        raise jwt.InvalidTokenError("Token subject is not a user id") from e
