"""Google Gemini provider using the google-genai SDK."""

from __future__ import annotations

from google import genai
from google.genai import errors, types

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

logger = get_logger("gemini")

_TRANSIENT_CODES = {408, 429}


class GeminiProvider:
    name = "gemini"

    def __init__(self, settings: Settings) -> None:
        if not self.is_available(settings):
            raise ProviderUnavailableError("Gemini requires google_api_key")
        self._settings = settings
        self._client = genai.Client(api_key=settings.google_api_key)
        self._model = settings.gemini_model

    @classmethod
    def is_available(cls, settings: Settings) -> bool:
        return bool(settings.google_api_key)

    def primary_profile(self) -> GenerationProfile:
        return GenerationProfile(
            name="primary",
            model=self._model,
            temperature=self._settings.gemini_temperature,
            max_tokens=self._settings.gemini_max_tokens,
        )

    def fallback_profile(self) -> GenerationProfile:
        return GenerationProfile(
            name="fallback",
            model=self._model,
            temperature=0.0,
            max_tokens=self._settings.gemini_max_tokens,
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
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        contents = "\n\n".join(m.content for m in messages if m.role != "system")
        model = options.model or self._model
        try:
            config = types.GenerateContentConfig(
                temperature=options.temperature,
                max_output_tokens=options.max_tokens,
            )
            if system:
                config.system_instruction = system
            if options.json_mode:
                config.response_mime_type = "application/json"

            response = await self._client.aio.models.generate_content(
                model=model,
                contents=contents,
                config=config,
            )
        except errors.APIError as e:
            if isinstance(e, errors.ServerError) or e.code in _TRANSIENT_CODES:
                raise ProviderTransportError(f"Gemini request failed: {e}") from e
            raise GenerationError(f"Gemini generation failed: {e}") from e
        except Exception as e:
            raise ProviderTransportError(f"Gemini request failed: {e}") from e

        usage = TokenUsage()
        meta = response.usage_metadata
        if meta is not None:
            usage = TokenUsage(
                prompt_tokens=meta.prompt_token_count,
                completion_tokens=meta.candidates_token_count,
                total_tokens=meta.total_token_count,
            )
        return ProviderResult(content=response.text or "", model=model, usage=usage)
