# marketplace/auth.py
"""Shared authentication dependencies."""

import logging
import secrets

from fastapi import Header, HTTPException

from marketplace.config import get_settings

logger = logging.getLogger(__name__)


def _matches(provided: str | None, expected: str | None) -> bool:
    return bool(provided and expected and secrets.compare_digest(provided, expected))


def require_admin_key(
    x_api_key: str | None = Header(default=None, alias="X-API-Key"),
) -> None:
    """Validate admin API key. Fails closed if ADMIN_API_KEY is not set."""
    expected_key = get_settings().ADMIN_API_KEY

    if not expected_key:
        raise HTTPException(
            status_code=500,
            detail="Server misconfiguration: admin authentication not configured",
        )

    if not _matches(x_api_key, expected_key):
        raise HTTPException(
            status_code=401,
            detail="Invalid or missing API key",
        )


def require_cron_secret(
    authorization: str | None = Header(default=None),
) -> str:
    """
    Validate the scheduler's bearer credential.

    Accepts CRON_SECRET, or ADMIN_API_KEY so operators can fire the same
    endpoint by hand. Returns who was authorized ("cron" or "admin").
    """
    settings = get_settings()

    if not settings.CRON_SECRET and not settings.ADMIN_API_KEY:
        raise HTTPException(
            status_code=500,
            detail="Server misconfiguration: cron authentication not configured",
        )

    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() == "bearer":
        token = token.strip()
        if _matches(token, settings.CRON_SECRET):
            return "cron"
        if _matches(token, settings.ADMIN_API_KEY):
            return "admin"

    logger.warning(
        "Unauthorized cron trigger attempt",
        extra={"event": "cron_unauthorized"},
    )
    raise HTTPException(
        status_code=401,
        detail="Unauthorized",
        headers={"WWW-Authenticate": "Bearer"},
    )
