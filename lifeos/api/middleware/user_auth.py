"""
User identity for the LifeOS API.

With AUTH_REQUIRED=false (local use) the caller names itself with the
X-User-ID header, falling back to "default". With AUTH_REQUIRED=true a
Supabase access token is required and verified against the project's
/auth/v1/user endpoint.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

import httpx
from cachetools import TTLCache
from fastapi import HTTPException, Request, status

from lifeos.config import AUTH_TOKEN_CACHE_MAX_SIZE, AUTH_TOKEN_CACHE_TTL_SECONDS
from lifeos.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_USER_ID = "default"
USER_ID_HEADER = "X-User-ID"


@dataclass
class AuthenticatedUser:
    """A user resolved from a request."""

    id: str
    email: str | None = None
    name: str | None = None

    def __str__(self) -> str:
        return f"User({self.id}, {self.email})"


# Verified tokens expire after 10 minutes so revoked sessions stop working
_token_cache: TTLCache[str, AuthenticatedUser] = TTLCache(
    maxsize=AUTH_TOKEN_CACHE_MAX_SIZE, ttl=AUTH_TOKEN_CACHE_TTL_SECONDS
)


def auth_required() -> bool:
    return os.getenv("AUTH_REQUIRED", "false").lower() in ("true", "1", "yes")


def _supabase_settings() -> tuple[str, str]:
    url = os.getenv("SUPABASE_URL", "").rstrip("/")
    key = os.getenv("SUPABASE_ANON_KEY", "")
    if not url or not key:
        logger.error("AUTH_REQUIRED is set but SUPABASE_URL / SUPABASE_ANON_KEY are missing")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server misconfiguration: authentication provider not set",
        )
    return url, key


async def verify_supabase_token(token: str) -> AuthenticatedUser:
    """
    Verify a Supabase access token and return the user it belongs to.

    Raises:
        HTTPException: 401 for an invalid token, 503 when Supabase is unreachable
    """
    if token in _token_cache:
        return _token_cache[token]

    url, anon_key = _supabase_settings()

    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(
                f"{url}/auth/v1/user",
                headers={"Authorization": f"Bearer {token}", "apikey": anon_key},
                timeout=10.0,
            )
        except httpx.TimeoutException:
            logger.warning("Token validation timed out")
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Authentication service unavailable",
            ) from None
        except httpx.RequestError as e:
            logger.error("Token validation request failed: %s", e)
            raise HTTPException(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                detail="Authentication service unavailable",
            ) from e

    if response.status_code != 200:
        logger.warning("Invalid token (status %d)", response.status_code)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    payload = response.json()
    user_id = payload.get("id")
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Failed to retrieve user information",
            headers={"WWW-Authenticate": "Bearer"},
        )

    metadata = payload.get("user_metadata") or {}
    user = AuthenticatedUser(
        id=user_id,
        email=payload.get("email"),
        name=metadata.get("full_name") or metadata.get("name"),
    )
    _token_cache[token] = user

    logger.info("Authenticated user: %s (cache size: %d)", user, len(_token_cache))
    return user


def _extract_bearer_token(authorization: str | None) -> str:
    """Extract token from Authorization header."""
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing authorization header",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    return parts[1]


async def get_current_user(request: Request) -> AuthenticatedUser:
    """
    FastAPI dependency resolving the caller.

    Usage:
        @router.get("/endpoint")
        async def endpoint(user: AuthenticatedUser = Depends(get_current_user)):
            ...
    """
    if not auth_required():
        user_id = (request.headers.get(USER_ID_HEADER) or "").strip() or DEFAULT_USER_ID
        return AuthenticatedUser(id=user_id)

    token = _extract_bearer_token(request.headers.get("Authorization"))
    return await verify_supabase_token(token)


def clear_token_cache() -> None:
    """Clear the token cache. Useful for testing."""
    _token_cache.clear()
