from __future__ import annotations

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError

from chat_service.http_errors import conflict


def map_integrity_error(exc: IntegrityError, default_detail: str = "conflict") -> HTTPException:
    message = str(getattr(exc, "orig", exc))
    detail = default_detail

    if "foreign key" in message.lower():
        detail = "chat session no longer exists"

    return conflict(detail)
