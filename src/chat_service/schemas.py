from __future__ import annotations

from datetime import datetime
from typing import Annotated, Generic, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from chat_service.models import MessageSender

T = TypeVar("T")


class APIModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )


def _reject_blank(value: str) -> str:
    if value.strip() == "":
        raise ValueError("must not be blank")
    return value


NonBlankStr = Annotated[str, AfterValidator(_reject_blank)]


class ApiResponse(APIModel, Generic[T]):
    success: bool = True
    message: str | None = None
    data: T | None = None


# --- Sessions ---
class SessionCreate(APIModel):
    user_id: NonBlankStr = Field(min_length=1, max_length=255)
    title: NonBlankStr = Field(min_length=1, max_length=255)


class SessionPatch(APIModel):
    title: str | None = Field(default=None, max_length=255)
    favorite: bool | None = None


class SessionOut(APIModel):
    id: int
    user_id: str
    title: str
    favorite: bool
    created_at: datetime
    updated_at: datetime
    message_count: int = 0


# --- Messages ---
class MessageCreate(APIModel):
    sender: MessageSender
    content: NonBlankStr = Field(min_length=1)
    context: str | None = None


class MessageOut(APIModel):
    id: int
    sender: str
    content: str
    context: str | None
    created_at: datetime


class MessagePage(APIModel):
    content: list[MessageOut]
    page: int
    size: int
    total_elements: int
    total_pages: int
    first: bool
    last: bool


class HealthOut(APIModel):
    status: str = "ok"
    service: str
