"""Provider selection by name, falling back to Ollama when unusable."""

from __future__ import annotations

from scenario_engine.config.settings import Settings
from scenario_engine.generation.providers.claude_cli_provider import ClaudeCliProvider
from scenario_engine.generation.providers.gemini_provider import GeminiProvider
from scenario_engine.generation.providers.ollama_provider import OllamaProvider
from scenario_engine.generation.providers.openai_provider import OpenAIProvider
from scenario_engine.observability.logger import get_logger
from scenario_engine.protocols.llm import LLMProvider

logger = get_logger("provider_factory")

PROVIDERS: dict[str, type] = {
    "ollama": OllamaProvider,
    "openai": OpenAIProvider,
    "gemini": GeminiProvider,
    "claude": ClaudeCliProvider,
}


def create_provider(name: str, settings: Settings) -> LLMProvider:
    key = (name or "ollama").lower()
    provider_cls = PROVIDERS.get(key)
    if provider_cls is None:
        logger.warning("unknown_provider_defaulting", requested=name, provider="ollama")
        return OllamaProvider(settings)
    if not provider_cls.is_available(settings):
        logger.warning("provider_unavailable_defaulting", requested=key, provider="ollama")
        return OllamaProvider(settings)
    logger.info("provider_created", provider=key)
    return provider_cls(settings)


def create_fallback_provider(settings: Settings) -> LLMProvider:
    return create_provider(settings.fallback_provider_name, settings)


def is_provider_available(name: str, settings: Settings) -> bool:
    provider_cls = PROVIDERS.get((name or "").lower())
    return provider_cls is not None and provider_cls.is_available(settings)
