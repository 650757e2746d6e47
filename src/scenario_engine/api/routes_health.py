"""Health check endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from scenario_engine.api.dependencies import get_settings
from scenario_engine.config.settings import Settings
from scenario_engine.generation.provider_factory import is_provider_available
from scenario_engine.models.schemas import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health(settings: Settings = Depends(get_settings)) -> HealthResponse:
    return HealthResponse(
        status="ok",
        provider=settings.llm_provider,
        provider_available=is_provider_available(settings.llm_provider, settings),
        fallback_provider=settings.fallback_provider_name,
    )
