"""
JWT helpers

Tokens are issued by the auth service; this app only needs to mint them
for tests/tools and to verify incoming bearer tokens.
"""
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from app.core.config import settings
from app.logging_config import get_logger

logger = get_logger(__name__)


def create_access_token(
    user_id: str,
    email: Optional[str] = None,
    role: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a signed access token for a user id"""
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    payload: Dict[str, Any] = {
        "sub": str(user_id),
        "type": "access",
        "iat": now,
        "exp": expire,
    }
    if email:
        payload["email"] = email
    if role:
        payload["role"] = role
    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """Decode and verify a token. Returns None if invalid or expired."""
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired token")
        return None
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected invalid token: {e}")
        return None


def get_user_from_token(token: str, expected_type: str = "access") -> Optional[str]:
    """
    Extract the user id from a token.

    Args:
        token: Encoded JWT
        expected_type: Token type claim that must match ("access")

    Returns:
        User id string, or None if the token is invalid or of the wrong type
    """
    payload = decode_token(token)
    if payload is None:
        return None
    if payload.get("type") != expected_type:
        return None
    return payload.get("sub")
