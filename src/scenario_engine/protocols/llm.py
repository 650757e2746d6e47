"""Protocol for text-generation providers."""

from __future__ import annotations

from typing import Protocol

from scenario_engine.config.settings import Settings
from scenario_engine.models.domain import (
    ChatMessage,
    GenerationOptions,
    GenerationProfile,
    ProviderResult,
)


class LLMProvider(Protocol):
    name: str

    @classmethod
    def is_available(cls, settings: Settings) -> bool:
        """Cheap static check: credentials present or binary on PATH."""
        ...

    async def generate(
        self, messages: list[ChatMessage], options: GenerationOptions
    ) -> ProviderResult: ...

    def primary_profile(self) -> GenerationProfile: ...

    def fallback_profile(self) -> GenerationProfile: ...
