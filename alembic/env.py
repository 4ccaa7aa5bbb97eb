from __future__ import annotations

import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy.engine import Connection

from chat_service.db import create_engine
from chat_service.models import Base
from chat_service.settings import settings

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def _configure_and_run(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=Base.metadata, render_as_batch=True)
    with context.begin_transaction():
        context.run_migrations()


async def _run_async() -> None:
    # Same async engine (asyncpg / aiosqlite) the service itself uses.
    engine = create_engine(settings.database_url)
    async with engine.connect() as connection:
        await connection.run_sync(_configure_and_run)
    await engine.dispose()


if context.is_offline_mode():
    context.configure(url=settings.database_url, target_metadata=Base.metadata, literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()
else:
    asyncio.run(_run_async())
