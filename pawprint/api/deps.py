"""
pawprint.api.deps — FastAPI dependency injection
=================================================
"""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine, select
from sqlalchemy.orm import Session

from pawprint.config import PawprintConfig, load_config
from pawprint.database.engine import create_db_engine
from pawprint.database.models import User
from pawprint.engine.catalog import CatalogProvider, get_default_catalog

_WEAK_SECRETS = frozenset({
    "pawprint-dev-secret-change-me",
    "change-me",
    "secret",
    "dev",
    "",
})

_MIN_SECRET_LENGTH = 32

JWT_ALGORITHM = "HS256"


def _load_jwt_secret() -> str:
    """Load and validate JWT_SECRET from the environment.

    Raises RuntimeError at import time if the secret is missing, blank,
    too short (< 32 chars), or a known weak default.
    """
    secret = os.getenv("JWT_SECRET", "")
    if not secret:
        raise RuntimeError(
            "JWT_SECRET environment variable is not set. "
            "Generate one with: python -c \"import secrets; print(secrets.token_urlsafe(64))\""
        )
    if secret in _WEAK_SECRETS:
        raise RuntimeError(
            f"JWT_SECRET is set to a known weak default ('{secret}'). "
            "Please set a strong, unique secret."
        )
    if len(secret) < _MIN_SECRET_LENGTH:
        raise RuntimeError(
            f"JWT_SECRET is too short ({len(secret)} chars). "
            f"Minimum length is {_MIN_SECRET_LENGTH} characters."
        )
    return secret


JWT_SECRET: str = _load_jwt_secret()


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_config() -> PawprintConfig:
    return load_config()


def get_catalog() -> CatalogProvider:
    return get_default_catalog()


def get_current_user(
    authorization: Annotated[str | None, Header()] = None,
) -> dict:
    """Validate the Bearer JWT and return its payload. Raises 401 if invalid.

    The payload carries ``sub`` (user id) and optionally ``email``.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    if not payload.get("sub"):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    payload["sub"] = str(payload["sub"])
    return payload


def get_current_admin(
    user: dict = Depends(get_current_user),
    engine: Engine = Depends(get_engine),
    cfg: PawprintConfig = Depends(get_config),
) -> dict:
    """Require an admin: allow-listed email or ``users.is_admin``. Raises 403."""
    if cfg.is_admin_email(user.get("email")):
        return user
    with Session(engine) as session:
        is_admin = session.scalar(select(User.is_admin).where(User.id == user["sub"]))
    if not is_admin:
        raise HTTPException(status.HTTP_403_FORBIDDEN, "Not admin")
    return user
