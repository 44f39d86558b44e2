"""FastAPI authentication dependencies."""

from __future__ import annotations

import uuid

import jwt
from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from hibilog.auth.jwt import user_id_from_claims, verify_token

_bearer = HTTPBearer()


async def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
) -> uuid.UUID:
    """Verify the bearer JWT and return the caller's user id. Raises 401 on failure."""
    try:
        payload = verify_token(credentials.credentials)
        return user_id_from_claims(payload)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e
