"""
Session Management Module
=========================

Issues and verifies the session created after a successful login.

The session record is signed as a JWT and stored in the Starlette signed
session cookie. API clients may also present the same JWT as a Bearer token.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

import jwt
from fastapi import HTTPException, Request, status
from jwt.exceptions import ExpiredSignatureError, InvalidTokenError
from pydantic import ValidationError

from rolegate.config import get_settings
from rolegate.models import ResolvedRoles, Role, SessionRecord

logger = logging.getLogger(__name__)

SESSION_KEY = "user_session"
JWT_ISSUER = "rolegate"


# =============================================================================
# Exceptions
# =============================================================================

class SessionError(Exception):
    """Base exception for session errors"""
    pass


# =============================================================================
# Token Creation
# =============================================================================

def create_session_jwt(record: SessionRecord) -> str:
    """
    Sign a session record as a JWT.

    Args:
        record: Session to sign

    Returns:
        Encoded JWT string

    Raises:
        SessionError: If signing fails
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)

    payload: Dict[str, Any] = record.model_dump(mode="json")
    payload.update({
        "sub": record.identity_email,
        "iat": now,
        "exp": now + timedelta(minutes=settings.SESSION_JWT_EXPIRY_MINUTES),
        "iss": JWT_ISSUER,
    })

    try:
        return jwt.encode(payload, settings.SESSION_SECRET, algorithm=settings.SESSION_JWT_ALGORITHM)
    except Exception as e:
        logger.error("Failed to create session JWT: %s", e, exc_info=True)
        raise SessionError(f"Failed to create session JWT: {e}") from e


def issue_session(request: Request, email: str, resolved: ResolvedRoles) -> SessionRecord:
    """
    Create the session for a freshly authenticated user.

    Args:
        request: Current request (must carry the session middleware scope)
        email: Authenticated identity's email
        resolved: Output of role resolution

    Returns:
        The issued SessionRecord
    """
    record = SessionRecord(
        identity_email=email,
        roles=resolved.roles,
        userRole=resolved.userRole,
        loggedInAt=int(datetime.now(timezone.utc).timestamp() * 1000),
    )
    token = create_session_jwt(record)

    # Start from an empty session so pre-login keys never survive the login
    request.session.clear()
    request.session[SESSION_KEY] = token

    logger.info(
        "Issued session for %s with role %s",
        email,
        record.userRole.name,
    )
    return record


# =============================================================================
# Token Verification
# =============================================================================

def verify_session_jwt(token: str) -> SessionRecord:
    """
    Verify a session JWT and rebuild the session record.

    Raises:
        HTTPException: 401 if the token is missing, expired or invalid
    """
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    settings = get_settings()

    try:
        decoded = jwt.decode(
            token,
            settings.SESSION_SECRET,
            algorithms=[settings.SESSION_JWT_ALGORITHM],
            issuer=JWT_ISSUER,
            options={"require": ["exp", "iat", "sub"]},
        )
        return SessionRecord.model_validate(decoded)
    except ExpiredSignatureError:
        logger.info("Session expired")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Session has expired",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except (InvalidTokenError, ValidationError) as e:
        logger.warning("Invalid session token: %s", e)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid session",
            headers={"WWW-Authenticate": "Bearer"},
        )


def extract_token_from_header(authorization: Optional[str]) -> Optional[str]:
    """
    Extract a Bearer token from an Authorization header.

    Returns:
        The token, or None when the header is absent

    Raises:
        HTTPException: If the header is present but malformed
    """
    if not authorization:
        return None

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header format. Expected: 'Bearer <token>'",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return parts[1]


def read_session(request: Request) -> Optional[SessionRecord]:
    """Return the cookie session of a request, or None when absent/invalid."""
    token = request.session.get(SESSION_KEY)
    if not token:
        return None
    try:
        return verify_session_jwt(token)
    except HTTPException:
        request.session.pop(SESSION_KEY, None)
        return None


def clear_session(request: Request) -> None:
    """Delete the session (logout)."""
    request.session.clear()


# =============================================================================
# FastAPI Dependencies
# =============================================================================

async def get_current_session(request: Request) -> SessionRecord:
    """
    FastAPI dependency returning the authenticated session.

    A Bearer token takes precedence over the session cookie. Other
    Authorization schemes (e.g. Basic added by a proxy) are ignored.

    Raises:
        HTTPException: 401 if no valid session is present
    """
    authorization = request.headers.get("Authorization") or ""
    scheme = authorization.strip().partition(" ")[0]
    if scheme.lower() == "bearer":
        return verify_session_jwt(extract_token_from_header(authorization))

    record = read_session(request)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return record


def require_role(minimum: Role) -> Callable[..., Any]:
    """
    Build a dependency that rejects sessions below ``minimum``.

    Usage:
        @router.get("/admin-only", dependencies=[Depends(require_role(Role.ADMIN))])
    """
    async def dependency(request: Request) -> SessionRecord:
        record = await get_current_session(request)
        if record.userRole < minimum:
            logger.warning(
                "Access denied for %s: %s < %s",
                record.identity_email,
                record.userRole.name,
                minimum.name,
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role",
            )
        return record

    return dependency


__all__ = [
    "SESSION_KEY",
    "SessionError",
    "create_session_jwt",
    "issue_session",
    "verify_session_jwt",
    "extract_token_from_header",
    "read_session",
    "clear_session",
    "get_current_session",
    "require_role",
]
