"""Bearer-token authentication for the engine's HTTP surface.

Sessions are issued by the surrounding application; this module only checks
the HS256 JWT it receives and extracts the user id from the ``sub`` claim.
"""

from __future__ import annotations

import inspect
import logging
import os
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Tuple

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from monsterden import config

logger = logging.getLogger(__name__)

SECRET_KEY = os.getenv("JWT_SECRET")
_testing = os.getenv("TESTING")
if not SECRET_KEY:
    if (
        config.disable_auth
        or _testing
        or (os.getenv("APP_ENV") or (config.app_env or "")).lower()
        not in {"production", "aws"}
    ):
        logger.warning("JWT_SECRET not set; using ephemeral secret for development")
        SECRET_KEY = secrets.token_urlsafe(32)
    else:
        raise RuntimeError("JWT_SECRET environment variable is required")
ALGORITHM = "HS256"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="token", auto_error=False)

DEFAULT_TOKEN_EXPIRE_MINUTES = 60


def create_access_token(user_id: str, expires_delta: timedelta | None = None) -> str:
    """Create a session JWT for ``user_id``."""

    expire = datetime.now(timezone.utc) + (
        expires_delta if expires_delta is not None else timedelta(minutes=DEFAULT_TOKEN_EXPIRE_MINUTES)
    )
    payload = {"sub": user_id, "exp": expire}
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[str]:
    try:
        payload = jwt.decode(
            token,
            SECRET_KEY,
            algorithms=[ALGORITHM],
            options={"require": ["exp"]},
        )
        return payload.get("sub")
    except jwt.ExpiredSignatureError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired",
        ) from exc
    except jwt.PyJWTError:
        return None


def _user_from_token(token: str | None) -> str:
    user_id = decode_token(token) if token else None
    if not user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
        )
    return user_id


async def get_current_user(token: str | None = Depends(oauth2_scheme)) -> str:
    """Return the authenticated user extracted from the bearer token."""

    return _user_from_token(token)


async def resolve_current_user_override(request: Request) -> Tuple[bool, Any]:
    """Return the app's override result for :func:`get_current_user`, if any.

    FastAPI applies ``dependency_overrides`` only to the dependency that was
    overridden, so helpers that call :func:`get_current_user` indirectly look
    the override up themselves.
    """

    app = getattr(request, "app", None)
    overrides = getattr(app, "dependency_overrides", None) or {}
    override = overrides.get(get_current_user)
    if override is None:
        return False, None
    result = override()
    if inspect.isawaitable(result):
        result = await result
    return True, result


async def get_active_user(
    request: Request, token: str | None = Depends(oauth2_scheme)
) -> str | None:
    """Return the active user, or ``None`` when auth is disabled and no token is sent.

    A token supplied while auth is disabled is still validated.
    """

    has_override, override_result = await resolve_current_user_override(request)
    if has_override:
        return override_result

    if config.disable_auth and not token:
        return None

    return _user_from_token(token)


async def require_active_user(current: str | None = Depends(get_active_user)) -> str:
    """Resolve the acting user, falling back to the demo identity when auth is off."""

    if current:
        return current

    if config.disable_auth:
        return config.demo_identity()

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required"
    )


__all__ = [
    "SECRET_KEY",
    "ALGORITHM",
    "oauth2_scheme",
    "create_access_token",
    "decode_token",
    "get_current_user",
    "resolve_current_user_override",
    "get_active_user",
    "require_active_user",
]
