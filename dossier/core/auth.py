"""Bearer-token authentication against Supabase Auth."""

import logging
from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dossier.core.config import get_settings

logger = logging.getLogger(__name__)

# HTTP Bearer scheme for Authorization header
security = HTTPBearer(auto_error=False)


class AuthContext:
    """Context object containing authenticated user info."""

    def __init__(self, user_id: str, token: str, email: Optional[str] = None):
        self.user_id = user_id
        self.token = token
        self.email = email


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Optional[AuthContext]:
    """
    Validate the bearer token with Supabase Auth.

    Returns None if no valid auth is present (including when Supabase is not
    configured, since tokens cannot be verified without it).
    """
    if not credentials:
        return None

    if not get_settings().supabase_configured:
        logger.warning("Bearer token received but Supabase is not configured")
        return None

    token = credentials.credentials

    try:
        from dossier.db.supabase_client import get_supabase

        # Validates the JWT signature and expiration
        auth_response = get_supabase().auth.get_user(token)
    except Exception as e:
        logger.warning(f"Auth error: {e}")
        return None

    if not auth_response or not auth_response.user:
        return None

    return AuthContext(
        user_id=str(auth_response.user.id),
        token=token,
        email=getattr(auth_response.user, "email", None),
    )


async def require_auth(
    auth: Optional[AuthContext] = Depends(get_current_user),
) -> AuthContext:
    """Require authentication. Raises 401 if not authenticated."""
    if not auth:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Unauthorized"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return auth


def resolve_user_id(auth: AuthContext, requested_user_id: Optional[str]) -> str:
    """Return the effective user id; a user id other than the session's is a 403."""
    user_id = requested_user_id or auth.user_id
    if user_id != auth.user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail={"error": "Forbidden"})
    return user_id
