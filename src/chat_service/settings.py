from __future__ import annotations

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="CHAT_", env_file=".env", extra="ignore")

    service_name: str = "chat-service"
    database_url: str = "sqlite+aiosqlite:///./chat.db"
    create_schema: bool = True

    api_key: str = ""

    rate_limit_capacity: int = Field(default=100, gt=0)
    rate_limit_window_seconds: float = Field(default=60.0, gt=0)
    rate_limit_strategy: Literal["interval", "greedy"] = "interval"
    rate_limit_max_keys: int | None = Field(default=None, gt=0)

    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000


settings = Settings()
