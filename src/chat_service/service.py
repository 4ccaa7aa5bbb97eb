from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from chat_service.models import ChatMessage, ChatSession, MessageSender

logger = logging.getLogger("chat_service.service")


@dataclass(frozen=True)
class MessagePageResult:
    items: list[ChatMessage]
    page: int
    size: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.size) if self.size else 0

    @property
    def is_first(self) -> bool:
        return self.page == 0

    @property
    def is_last(self) -> bool:
        return self.page + 1 >= self.total_pages


async def create_session(db: AsyncSession, *, user_id: str, title: str) -> ChatSession:
    logger.info(f"Creating chat session for user={user_id}")
    session = ChatSession(user_id=user_id, title=title, favorite=False)
    db.add(session)
    await db.flush()
    await db.refresh(session)
    logger.info(f"Chat session created id={session.id}")
    return session


async def get_session(db: AsyncSession, session_id: int, user_id: str) -> ChatSession | None:
    return await db.scalar(select(ChatSession).where(ChatSession.id == session_id, ChatSession.user_id == user_id))


async def list_sessions(db: AsyncSession, user_id: str, *, favorites_only: bool = False) -> list[ChatSession]:
    stmt = select(ChatSession).where(ChatSession.user_id == user_id)
    if favorites_only:
        stmt = stmt.where(ChatSession.favorite.is_(True))
    stmt = stmt.order_by(ChatSession.updated_at.desc(), ChatSession.id.desc())

    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_session(
    db: AsyncSession, session: ChatSession, *, title: str | None = None, favorite: bool | None = None
) -> ChatSession:
    if title is not None and title.strip() != "":
        session.title = title
        logger.info(f"Session {session.id} title updated")

    if favorite is not None:
        session.favorite = favorite
        logger.info(f"Session {session.id} favorite={favorite}")

    await db.flush()
    await db.refresh(session)
    return session


async def delete_session(db: AsyncSession, session: ChatSession) -> None:
    logger.info(f"Deleting session {session.id} for user={session.user_id}")
    await db.delete(session)
    await db.flush()


async def add_message(
    db: AsyncSession,
    session: ChatSession,
    *,
    sender: MessageSender | str,
    content: str,
    context: str | None = None,
) -> ChatMessage:
    message = ChatMessage(
        session_id=session.id,
        sender=MessageSender(sender).value,
        content=content,
        context=context,
    )
    db.add(message)
    await db.flush()
    await db.refresh(message)
    logger.info(f"Message {message.id} added to session {session.id}")
    return message


async def list_messages(db: AsyncSession, session_id: int) -> list[ChatMessage]:
    result = await db.execute(
        select(ChatMessage)
        .where(ChatMessage.session_id == session_id)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
    )
    return list(result.scalars().all())


async def list_messages_page(db: AsyncSession, session_id: int, *, page: int, size: int) -> MessagePageResult:
    total = await db.scalar(select(func.count(ChatMessage.id)).where(ChatMessage.session_id == session_id)) or 0
    offset = page * size
    if offset >= total:
        return MessagePageResult(items=[], page=page, size=size, total=total)

    result = await db.execute(
        select(ChatMessage)
        .where(ChatMessage.session_id == session_id)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
        .limit(size)
        .offset(offset)
    )
    return MessagePageResult(items=list(result.scalars().all()), page=page, size=size, total=total)
