from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Path, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from chat_service import service
from chat_service.db import get_db
from chat_service.http_errors import not_found
from chat_service.models import ChatSession
from chat_service.schemas import (
    ApiResponse,
    MessageCreate,
    MessageOut,
    MessagePage,
    SessionCreate,
    SessionOut,
    SessionPatch,
)

from ._common import map_integrity_error

router = APIRouter(prefix="/sessions", tags=["chat"])

# Ids are signed 64-bit, page numbers 32-bit.
MAX_ID = 2**63 - 1
MAX_PAGE = 2**31 - 1

UserId = Annotated[str, Query(alias="userId", min_length=1, max_length=255, pattern=r"^\s*\S[\s\S]*$")]
SessionId = Annotated[int, Path(ge=1, le=MAX_ID)]
Page = Annotated[int, Query(ge=0, le=MAX_PAGE)]


async def _owned_session(db: AsyncSession, session_id: int, user_id: str) -> ChatSession:
    session = await service.get_session(db, session_id, user_id)
    if session is None:
        raise not_found("chat session")
    return session


@router.post("", response_model=ApiResponse[SessionOut], status_code=status.HTTP_201_CREATED)
async def create_session(payload: SessionCreate, db: AsyncSession = Depends(get_db)) -> ApiResponse[SessionOut]:
    session = await service.create_session(db, user_id=payload.user_id, title=payload.title)
    await db.commit()
    return ApiResponse[SessionOut](data=SessionOut.model_validate(session), message="Chat session created successfully")


@router.get("", response_model=ApiResponse[list[SessionOut]])
async def list_sessions(user_id: UserId, db: AsyncSession = Depends(get_db)) -> ApiResponse[list[SessionOut]]:
    sessions = await service.list_sessions(db, user_id)
    return ApiResponse[list[SessionOut]](data=[SessionOut.model_validate(s) for s in sessions])


@router.get("/favorites", response_model=ApiResponse[list[SessionOut]])
async def list_favorite_sessions(
    user_id: UserId, db: AsyncSession = Depends(get_db)
) -> ApiResponse[list[SessionOut]]:
    sessions = await service.list_sessions(db, user_id, favorites_only=True)
    return ApiResponse[list[SessionOut]](data=[SessionOut.model_validate(s) for s in sessions])


@router.get("/{session_id}", response_model=ApiResponse[SessionOut])
async def get_session(
    session_id: SessionId, user_id: UserId, db: AsyncSession = Depends(get_db)
) -> ApiResponse[SessionOut]:
    session = await _owned_session(db, session_id, user_id)
    return ApiResponse[SessionOut](data=SessionOut.model_validate(session))


@router.patch("/{session_id}", response_model=ApiResponse[SessionOut])
async def patch_session(
    session_id: SessionId, payload: SessionPatch, user_id: UserId, db: AsyncSession = Depends(get_db)
) -> ApiResponse[SessionOut]:
    session = await _owned_session(db, session_id, user_id)
    session = await service.update_session(db, session, title=payload.title, favorite=payload.favorite)
    await db.commit()
    return ApiResponse[SessionOut](data=SessionOut.model_validate(session), message="Session updated successfully")


@router.delete("/{session_id}", response_model=ApiResponse[None])
async def delete_session(session_id: SessionId, user_id: UserId, db: AsyncSession = Depends(get_db)) -> ApiResponse[None]:
    session = await _owned_session(db, session_id, user_id)
    await service.delete_session(db, session)
    await db.commit()
    return ApiResponse[None](message="Session deleted successfully")


@router.post("/{session_id}/messages", response_model=ApiResponse[MessageOut], status_code=status.HTTP_201_CREATED)
async def add_message(
    session_id: SessionId, payload: MessageCreate, user_id: UserId, db: AsyncSession = Depends(get_db)
) -> ApiResponse[MessageOut]:
    session = await _owned_session(db, session_id, user_id)
    try:
        message = await service.add_message(
            db, session, sender=payload.sender, content=payload.content, context=payload.context
        )
        await db.commit()
    except IntegrityError as exc:
        await db.rollback()
        raise map_integrity_error(exc)

    return ApiResponse[MessageOut](data=MessageOut.model_validate(message), message="Message added successfully")


@router.get("/{session_id}/messages", response_model=ApiResponse[list[MessageOut]])
async def list_messages(
    session_id: SessionId, user_id: UserId, db: AsyncSession = Depends(get_db)
) -> ApiResponse[list[MessageOut]]:
    await _owned_session(db, session_id, user_id)
    messages = await service.list_messages(db, session_id)
    return ApiResponse[list[MessageOut]](data=[MessageOut.model_validate(m) for m in messages])


@router.get("/{session_id}/messages/paginated", response_model=ApiResponse[MessagePage])
async def list_messages_paginated(
    session_id: SessionId,
    user_id: UserId,
    page: Page = 0,
    size: int = 20,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[MessagePage]:
    size = min(max(size, 1), 100)

    await _owned_session(db, session_id, user_id)
    result = await service.list_messages_page(db, session_id, page=page, size=size)
    body = MessagePage(
        content=[MessageOut.model_validate(m) for m in result.items],
        page=result.page,
        size=result.size,
        total_elements=result.total,
        total_pages=result.total_pages,
        first=result.is_first,
        last=result.is_last,
    )
    return ApiResponse[MessagePage](data=body)
