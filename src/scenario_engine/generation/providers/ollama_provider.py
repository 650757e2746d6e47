"""Ollama provider over its HTTP chat API."""

from __future__ import annotations

import httpx

from scenario_engine.config.constants import JSON_ONLY_SUFFIX
from scenario_engine.config.settings import Settings
from scenario_engine.exceptions import GenerationError, ProviderTransportError
from scenario_engine.generation.retry import call_with_retry
from scenario_engine.models.domain import (
    ChatMessage,
    GenerationOptions,
    GenerationProfile,
    ProviderResult,
    TokenUsage,
)
from scenario_engine.observability.logger import get_logger

logger = get_logger("ollama")


class OllamaProvider:
    name = "ollama"

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._base_url = settings.ollama_base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.provider_timeout_s)
        )

    @classmethod
    def is_available(cls, settings: Settings) -> bool:
        # Local server; reachability is only known at call time
        return True

    def primary_profile(self) -> GenerationProfile:
        return GenerationProfile(
            name="primary",
            model=self._settings.ollama_model_primary,
            temperature=self._settings.ollama_temperature_primary,
            max_tokens=self._settings.ollama_max_tokens,
        )

    def fallback_profile(self) -> GenerationProfile:
        return GenerationProfile(
            name="fallback",
            model=self._settings.ollama_model_fallback or self._settings.ollama_model_primary,
            temperature=self._settings.ollama_temperature_fallback,
            max_tokens=self._settings.ollama_max_tokens,
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
        model = options.model or self._settings.ollama_model_primary
        payload: dict = {
            "model": model,
            "messages": [{"role": m.role, "content": m.content} for m in messages],
            "stream": False,
            "options": {"temperature": options.temperature, "num_predict": options.max_tokens},
        }
        if options.json_mode:
            payload["format"] = "json"

        try:
            response = await self._client.post(f"{self._base_url}/api/chat", json=payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code >= 500 or e.response.status_code == 429:
                raise ProviderTransportError(f"Ollama request failed: {e}") from e
            raise GenerationError(f"Ollama generation failed: {e}") from e
        except httpx.HTTPError as e:
            raise ProviderTransportError(f"Ollama request failed: {e}") from e

        data = response.json()
        content = (data.get("message") or {}).get("content") or ""
        if not content:
            raise GenerationError("Empty response from Ollama")

        prompt_tokens = data.get("prompt_eval_count")
        completion_tokens = data.get("eval_count")
        total = (
            prompt_tokens + completion_tokens
            if prompt_tokens is not None and completion_tokens is not None
            else None
        )
        return ProviderResult(
            content=content,
            model=data.get("model", model),
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=total,
            ),
        )

    async def aclose(self) -> None:
        await self._client.aclose()
