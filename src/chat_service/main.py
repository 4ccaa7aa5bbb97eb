from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import ORJSONResponse

from chat_service.db import create_engine, create_schema, create_sessionmaker
from chat_service.logging_setup import configure_logging
from chat_service.rate_limit import RateLimiter
from chat_service.routers import health, sessions
from chat_service.security import enforce_rate_limit, require_api_key
from chat_service.settings import Settings, settings as default_settings

logger = logging.getLogger("chat_service.main")


def build_rate_limiter(settings: Settings) -> RateLimiter:
    return RateLimiter.per_window(
        settings.rate_limit_capacity,
        settings.rate_limit_window_seconds,
        strategy=settings.rate_limit_strategy,
        max_keys=settings.rate_limit_max_keys,
    )


def create_app(settings: Settings | None = None, *, rate_limiter: RateLimiter | None = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(settings.log_level)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        engine = create_engine(settings.database_url)
        if settings.create_schema:
            await create_schema(engine)
        app.state.engine = engine
        app.state.sessionmaker = create_sessionmaker(engine)
        logger.info(f"{settings.service_name} started")
        yield
        await engine.dispose()

    app = FastAPI(
        title="chat-service",
        version="0.1.0",
        description="Chat sessions and messages",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.rate_limiter = rate_limiter or build_rate_limiter(settings)

    # Rate limiting runs before authentication.
    guards = [Depends(enforce_rate_limit), Depends(require_api_key)]

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(sessions.router, prefix="/api/v1/chat", dependencies=guards)
    return app


app = create_app()


def main() -> None:
    uvicorn.run(
        "chat_service.main:app",
        host=default_settings.host,
        port=default_settings.port,
        reload=False,
        log_level=default_settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
