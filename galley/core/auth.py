"""
Auth utilities for the Galley API.

Validates Supabase access tokens (HS256, shared JWT secret) and extracts the
user id from the `sub` claim. Falls back to the X-User-Id header for service
callers and tests.
"""
from fastapi import Header, Request
from typing import Optional
import hashlib
import logging

import jwt

from galley.core.config import settings
from galley.core.errors import UnauthorizedError

logger = logging.getLogger(__name__)


def verify_supabase_jwt(token: str) -> Optional[str]:
    """
    Verify a Supabase access token and extract user_id.

    Returns None when no JWT secret is configured or when the token carries no
    `sub` claim (the anon key is a JWT without a user).

    Raises:
        UnauthorizedError: Invalid or expired token
    """
    if not settings.SUPABASE_JWT_SECRET:
        logger.debug("No SUPABASE_JWT_SECRET configured, skipping JWT validation")
        return None

    options = {"verify_signature": True, "verify_exp": True}
    if not settings.SUPABASE_JWT_AUDIENCE:
        options["verify_aud"] = False

    try:
        payload = jwt.decode(
            token,
            settings.SUPABASE_JWT_SECRET,
            algorithms=["HS256"],
            audience=settings.SUPABASE_JWT_AUDIENCE or None,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Invalid token: {e}")
        raise UnauthorizedError("Invalid token")

    return payload.get("sub") or None


def resolve_user_id(authorization: Optional[str], x_user_id: Optional[str]) -> Optional[str]:
    """Shared by HTTP and WebSocket auth: Bearer JWT first, then X-User-Id."""
    if authorization and authorization.startswith("Bearer "):
        user_id = verify_supabase_jwt(authorization[7:])
        if user_id:
            return user_id
    if x_user_id and x_user_id.strip():
        return x_user_id.strip()
    return None


async def get_current_user_id(
    request: Request,
    x_user_id: Optional[str] = Header(None, description="Service callers and tests"),
) -> str:
    """
    Extract current user ID from request context.

    Priority:
    1. Supabase JWT from Authorization header
    2. X-User-Id header
    3. Raise 401 Unauthorized
    """
    user_id = resolve_user_id(request.headers.get("Authorization", ""), x_user_id)
    if user_id:
        request.state.user_id = user_id
        return user_id

    raise UnauthorizedError("Missing Authorization (Bearer JWT) or X-User-Id header")


def require_admin(request: Request) -> str:
    """Check the X-Admin-Key header against ADMIN_KEY and return an actor id."""
    expected_key = settings.ADMIN_KEY
    header_key = request.headers.get("X-Admin-Key", "").strip()
    if not expected_key or not header_key or header_key != expected_key:
        raise UnauthorizedError("Admin key required")
    key_hash = hashlib.sha256(header_key.encode()).hexdigest()[:16]
    return f"admin:{key_hash}"
