"""JWT token creation and validation for RAG Tracker callers."""

from __future__ import annotations

import logging
import time
from typing import Any

import jwt

from ragtracker.auth.permissions import Caller
from ragtracker.models.user import VALID_ROLES

logger = logging.getLogger(__name__)


class TokenExpiredError(Exception):
    """Raised when a JWT token has expired."""


class TokenInvalidError(Exception):
    """Raised when a JWT token is invalid."""


def create_token(user_id: str, role: str, secret: str, exp_minutes: int = 60) -> str:
    """Create a signed token carrying the user's id and role."""
    now = int(time.time())
    payload = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": now + (exp_minutes * 60),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def verify_token(token: str, secret: str) -> dict[str, Any]:
    """Verify and decode a JWT token."""
    try:
        return jwt.decode(token, secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError as e:
        logger.warning("Token expired: %s", e)
        raise TokenExpiredError("Token has expired") from e
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token: %s", e)
        raise TokenInvalidError("Token is invalid") from e


def caller_from_token(token: str, secret: str) -> Caller:
    """Decode a token into a Caller. The role is re-checked against the user record later."""
    payload = verify_token(token, secret)
    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or role not in VALID_ROLES:
        raise TokenInvalidError("Token missing user or role")
    return Caller(id=user_id, role=role)
