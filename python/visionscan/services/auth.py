"""
Supabase JWT verification for FastAPI.

The browser client signs in with Supabase Auth and sends the access token
as a Bearer header; the server verifies it with the project's JWT secret.
"""

from fastapi import Security, Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from typing import Optional

from visionscan.core.config import settings
from visionscan.core.exceptions import AuthenticationError, InvalidTokenError, NotConfiguredError
from visionscan.core.logging import get_logger

logger = get_logger(__name__)

# === Security schemes ===
security = HTTPBearer(auto_error=False)

ALGORITHM = "HS256"


async def verify_supabase_token(token: str) -> dict:
    """
    Verify Supabase JWT token and return user data.

    Args:
        token: JWT token from Supabase Auth

    Returns:
        dict with user info: {id, email, role, aud}

    Raises:
        InvalidTokenError: token is invalid, expired or has no subject
        NotConfiguredError: SUPABASE_JWT_SECRET is not set
    """
    if not settings.supabase_jwt_secret:
        logger.error("SUPABASE_JWT_SECRET not configured!")
        raise NotConfiguredError("Authentication")

    try:
        payload = jwt.decode(
            token,
            settings.supabase_jwt_secret,
            algorithms=[ALGORITHM],
            options={"verify_aud": False}  # Supabase doesn't always set aud
        )
    except JWTError as e:
        logger.warning(f"Supabase JWT verification failed: {e}")
        raise InvalidTokenError()

    user_id = payload.get("sub")
    if not user_id:
        raise InvalidTokenError()

    return {
        "id": user_id,
        "email": payload.get("email"),
        "role": payload.get("role", "authenticated"),
        "aud": payload.get("aud"),
    }


async def get_supabase_user_optional(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[dict]:
    """
    Current user if a valid token was provided, None otherwise.
    For endpoints that work for both authenticated and anonymous users.
    """
    if credentials is None:
        return None

    try:
        return await verify_supabase_token(credentials.credentials)
    except InvalidTokenError:
        return None


async def require_auth(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security)
) -> dict:
    """
    Require valid Supabase authentication.

    Raises:
        AuthenticationError: no Bearer token
        InvalidTokenError: token rejected
    """
    if credentials is None:
        raise AuthenticationError()
    return await verify_supabase_token(credentials.credentials)
