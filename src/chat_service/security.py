"""
Request guards applied to every chat route.

``enforce_rate_limit`` runs before ``require_api_key``: the rate limit key is
the literal ``X-API-Key`` header, so a wrong key is throttled exactly like a
valid one before authentication gets to reject it.
"""
from __future__ import annotations

import logging
import secrets

from fastapi import Header, HTTPException, Request

from chat_service.http_errors import RateLimitExceeded, unauthorized
from chat_service.logging_setup import mask_key
from chat_service.rate_limit import RateLimiter
from chat_service.settings import Settings

API_KEY_HEADER = "X-API-Key"

logger = logging.getLogger("chat_service.security")


def enforce_rate_limit(request: Request, x_api_key: str | None = Header(default=None, alias=API_KEY_HEADER)) -> None:
    if not x_api_key:
        # Left to require_api_key.
        return

    limiter: RateLimiter = request.app.state.rate_limiter
    if limiter.allow(x_api_key):
        return

    logger.warning(f"Rate limit exceeded for API key: {mask_key(x_api_key)} path={request.url.path}")
    raise RateLimitExceeded(retry_after_seconds=limiter.retry_after(x_api_key))


def require_api_key(request: Request, x_api_key: str | None = Header(default=None, alias=API_KEY_HEADER)) -> str:
    settings: Settings = request.app.state.settings
    if not settings.api_key:
        raise HTTPException(status_code=500, detail="API key not configured")

    if not x_api_key:
        logger.warning(f"Missing API key for request: {request.url.path}")
        raise unauthorized("API key is required")

    if not secrets.compare_digest(x_api_key.encode("utf-8"), settings.api_key.encode("utf-8")):
        logger.warning(f"Invalid API key for request: {request.url.path}")
        raise unauthorized("Invalid API key")

    return x_api_key
