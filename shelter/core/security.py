"""Session token helpers (JWT in cookie or bearer header)."""

from datetime import datetime, timedelta, timezone
from uuid import UUID

import jwt

from shelter.core.config import settings


def create_session_token(user_id: UUID, org_id: UUID) -> str:
    """
    Create signed session JWT.

    The token carries identity and tenant only. Role is never embedded;
    it is resolved from Membership on every request.
    """
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "org_id": str(org_id),
        "iat": now,
        "exp": now + timedelta(hours=settings.JWT_EXPIRES_HOURS),
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm="HS256")


def decode_session_token(token: str) -> dict:
    """
    Decode and verify session JWT.

    Tries current secret first, then previous (for rotation support).

    Raises:
        jwt.InvalidTokenError: If token invalid with all secrets
    """
    last_error = None
    for secret in settings.jwt_secrets:
        try:
            return jwt.decode(token, secret, algorithms=["HS256"])
        except jwt.InvalidTokenError as e:
            last_error = e
            continue
    raise last_error  # type: ignore
