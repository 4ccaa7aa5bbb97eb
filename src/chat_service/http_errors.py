from __future__ import annotations

import math

from fastapi import HTTPException, status


def not_found(entity: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{entity} not found")


def unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def conflict(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=detail)


class RateLimitExceeded(HTTPException):
    def __init__(self, retry_after_seconds: float | None = None) -> None:
        headers = None
        if retry_after_seconds is not None and math.isfinite(retry_after_seconds):
            headers = {"Retry-After": str(max(math.ceil(retry_after_seconds), 1))}
        super().__init__(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Rate limit exceeded. Please try again later.",
            headers=headers,
        )
