"""
kudos.api.deps — FastAPI dependency injection
==============================================

Identity arrives as a signed JWT from the identity provider.  Claims used:
``sub`` (user id), ``name``, ``avatar_url`` and ``is_reviewer``.  Every
authenticated request mirrors those claims into the ``users`` table.
"""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt.exceptions import InvalidTokenError
from sqlalchemy import Engine

from kudos.config import DEFAULT_CONFIG, KudosConfig, load_config
from kudos.database.engine import create_db_engine
from kudos.services.identity_service import Caller, sync_user

logger = logging.getLogger(__name__)

_WEAK_SECRETS = frozenset({
    "kudos-dev-secret-change-me",
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
def get_config() -> KudosConfig:
    path = Path(os.getenv("KUDOS_CONFIG", "config.yaml"))
    if not path.exists():
        logger.warning("%s not found; using built-in defaults", path)
        return DEFAULT_CONFIG
    return load_config(path)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine(get_config())


def decode_caller(token: str) -> Caller:
    """Turn a bearer token into a :class:`Caller`.  Raises 401 if invalid."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")
    user_id = payload.get("sub")
    if not user_id:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token has no subject")
    return Caller(
        user_id=str(user_id),
        display_name=payload.get("name") or str(user_id),
        avatar_url=payload.get("avatar_url"),
        is_reviewer=bool(payload.get("is_reviewer", False)),
    )


def get_caller(
    authorization: Annotated[str | None, Header()] = None,
    engine: Engine = Depends(get_engine),
) -> Caller:
    """Validate the JWT, mirror its claims and return the caller."""
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Missing token")
    caller = decode_caller(authorization.split(" ", 1)[1])
    sync_user(engine, caller)
    return caller
