"""OpenAI chat-completions provider."""

from __future__ import annotations

import openai
from openai import AsyncOpenAI

from scenario_engine.config.constants import JSON_ONLY_SUFFIX
from scenario_engine.config.settings import Settings
from scenario_engine.exceptions import (
    GenerationError,
    ProviderTransportError,
    ProviderUnavailableError,
)
from scenario_engine.generation.retry import call_with_retry
from scenario_engine.models.domain import (
    ChatMessage,
    GenerationOptions,
    GenerationProfile,
    ProviderResult,
    TokenUsage,
)
from scenario_engine.observability.logger import get_logger

logger = get_logger("openai")

_TRANSIENT_ERRORS = (
    openai.APIConnectionError,
    openai.RateLimitError,
    openai.InternalServerError,
)


class OpenAIProvider:
    name = "openai"

    def __init__(self, settings: Settings) -> None:
        if not self.is_available(settings):
            raise ProviderUnavailableError("OpenAI requires openai_api_key")
        self._settings = settings
        self._client = AsyncOpenAI(api_key=settings.openai_api_key)
        self._model = settings.openai_model

    @classmethod
    def is_available(cls, settings: Settings) -> bool:
        return bool(settings.openai_api_key)

    def primary_profile(self) -> GenerationProfile:
        return GenerationProfile(
            name="primary",
            model=self._model,
            temperature=self._settings.openai_temperature,
            max_tokens=self._settings.openai_max_tokens,
        )

    def fallback_profile(self) -> GenerationProfile:
        return GenerationProfile(
            name="fallback",
            model=self._model,
            temperature=0.0,
            max_tokens=self._settings.openai_max_tokens,
            system_prompt_suffix=JSON_ONLY_SUFFIX,
        )

    async def generate(
        self, messages: list[ChatMessage], options: GenerationOptions
    ) -> ProviderResult:
        return await call_with_retry(
            lambda: self._generate_once(messages, options), self._settings, self.name
        )

    async def _generate_once(
        self, messages: list[ChatMessage], options: GenerationOptions
    ) -> ProviderResult:
        kwargs: dict = {}
        if options.json_mode:
            kwargs["response_format"] = {"type": "json_object"}
        try:
            response = await self._client.chat.completions.create(
                model=options.model or self._model,
                messages=[{"role": m.role, "content": m.content} for m in messages],
                temperature=options.temperature,
                max_tokens=options.max_tokens,
                **kwargs,
            )
        except _TRANSIENT_ERRORS as e:
            raise ProviderTransportError(f"OpenAI request failed: {e}") from e
        except openai.OpenAIError as e:
            raise GenerationError(f"OpenAI generation failed: {e}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise GenerationError("Empty response from OpenAI")

        usage = TokenUsage()
        if response.usage is not None:
            usage = TokenUsage(
                prompt_tokens=response.usage.prompt_tokens,
                completion_tokens=response.usage.completion_tokens,
                total_tokens=response.usage.total_tokens,
            )
        return ProviderResult(content=content, model=response.model, usage=usage)
