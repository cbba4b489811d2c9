"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from shelter.core.errors import NotAMember, PermissionDenied
from shelter.core.policies import get_policy
from shelter.core.security import decode_session_token
from shelter.db.enums import Role
from shelter.db.session import SessionLocal
from shelter.schemas.auth import UserSession


# Cookie and header names
COOKIE_NAME = "shelter_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _read_token(request: Request) -> str | None:
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    scheme, _, credentials = auth_header.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


def get_current_session(
    request: Request,
    db: Session = Depends(get_db),
) -> UserSession:
    """
    Get full session context: user_id, org_id, role.

    This is the PRIMARY auth dependency for most endpoints. The token names
    the user and the organization; the role always comes from the active
    Membership, never from the token or the client.

    Raises:
        HTTPException 401: Not authenticated
        NotAMember: No active membership in the token's organization
    """
    from shelter.db.models import User
    from shelter.services import membership_service

    token = _read_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
        user_id = UUID(payload["sub"])
        org_id = UUID(payload["org_id"])
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    membership = membership_service.get_membership_for_org(db, org_id, user.id)
    if membership is None:
        raise NotAMember()

    # Unknown stored role grants nothing
    role = Role(membership.role) if Role.has_value(membership.role) else Role.READONLY

    request.state.user_id = user.id
    request.state.org_id = org_id

    return UserSession(
        user_id=user.id,
        org_id=org_id,
        role=role,
        email=user.email,
        display_name=user.display_name,
    )


def require_permission(resource: str, action: str | None = None):
    """
    Dependency factory for policy-based authorization.

    Looks up the minimum role for (resource, action) in POLICIES and
    compares ranks.

    Usage:
        @router.post("/", dependencies=[Depends(require_permission("animals", "intake"))])
    """
    required = get_policy(resource).required_role(action)

    def dependency(session: UserSession = Depends(get_current_session)) -> UserSession:
        if session.role.rank < required.rank:
            raise PermissionDenied(
                f"Role '{session.role.value}' not authorized for {resource}"
                + (f".{action}" if action else "")
            )
        return session

    return dependency


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'",
        )
