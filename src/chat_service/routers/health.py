from __future__ import annotations

from fastapi import APIRouter, Request

from chat_service.schemas import HealthOut

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthOut)
async def health(request: Request) -> HealthOut:
    return HealthOut(service=request.app.state.settings.service_name)
