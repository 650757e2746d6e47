"""Generation client: one primary attempt, then an optional stricter fallback.

Attempts never raise. Every failure mode (call error, timeout, empty content,
unparseable JSON, zero decodable scenarios) becomes a failed GenerationAttempt.
"""

from __future__ import annotations

import asyncio
import time

from scenario_engine.config.settings import Settings
from scenario_engine.exceptions import GenerationError
from scenario_engine.generation.json_repair import parse_json_with_repair
from scenario_engine.generation.retry import retry_budget_s
from scenario_engine.generation.scenario_decoder import decode_scenarios
from scenario_engine.models.domain import (
    GenerationAttempt,
    GenerationOptions,
    GenerationOutcome,
    GenerationProfile,
    PromptMessages,
)
from scenario_engine.observability.logger import get_logger
from scenario_engine.observability.metrics import log_generation_attempt
from scenario_engine.protocols.llm import LLMProvider

logger = get_logger("generation_client")


class GenerationClient:
    def __init__(
        self,
        primary: LLMProvider,
        fallback: LLMProvider | None,
        settings: Settings,
    ) -> None:
        self._primary = primary
        self._fallback = fallback or primary
        self._settings = settings

    @property
    def provider_name(self) -> str:
        return self._primary.name

    async def generate_scenarios(
        self,
        messages: PromptMessages,
        max_tokens: int | None = None,
        trace_id: str = "",
    ) -> GenerationOutcome:
        primary_profile = self._primary.primary_profile()
        primary = await self._attempt(
            self._primary, messages, primary_profile, max_tokens, trace_id
        )
        outcome = GenerationOutcome(primary=primary)

        if self._settings.fallback_enabled and (not primary.success or not primary.scenarios):
            logger.info("primary_unusable_trying_fallback", provider=self._fallback.name)
            fallback_profile = self._fallback.fallback_profile()
            outcome.fallback = await self._attempt(
                self._fallback, messages, fallback_profile, max_tokens, trace_id
            )
            if outcome.final_attempt is primary:
                logger.warning("fallback_unusable_using_primary")

        logger.info(
            "generation_completed",
            primary_success=primary.success,
            primary_scenarios=len(primary.scenarios),
            fallback_attempted=outcome.fallback is not None,
            fallback_success=outcome.fallback.success if outcome.fallback else None,
            final_scenarios=len(outcome.scenarios),
        )
        return outcome

    async def _attempt(
        self,
        provider: LLMProvider,
        messages: PromptMessages,
        profile: GenerationProfile,
        max_tokens: int | None,
        trace_id: str,
    ) -> GenerationAttempt:
        start = time.perf_counter()
        options = GenerationOptions(
            temperature=profile.temperature,
            max_tokens=max_tokens or profile.max_tokens,
            model=profile.model,
            json_mode=profile.json_mode,
        )
        chat = messages.to_messages(profile.system_prompt_suffix)

        def _failed(error: str) -> GenerationAttempt:
            return GenerationAttempt(
                profile=profile,
                provider=provider.name,
                success=False,
                scenarios=[],
                duration_ms=(time.perf_counter() - start) * 1000,
                error=error,
            )

        # Providers bound each transport call; this caps the whole retry chain
        budget_s = retry_budget_s(self._settings)
        try:
            result = await asyncio.wait_for(provider.generate(chat, options), timeout=budget_s)
        except asyncio.TimeoutError:
            attempt = _failed(f"timed out after {budget_s:.1f}s")
            self._record(attempt, trace_id)
            return attempt
        except GenerationError as e:
            attempt = _failed(str(e))
            self._record(attempt, trace_id)
            return attempt
        except Exception as e:
            logger.exception("provider_call_crashed", provider=provider.name)
            attempt = _failed(f"{type(e).__name__}: {e}")
            self._record(attempt, trace_id)
            return attempt

        if not result.content.strip():
            attempt = _failed("Empty response")
        else:
            try:
                parsed = parse_json_with_repair(result.content)
            except GenerationError as e:
                attempt = _failed(str(e))
            else:
                scenarios = decode_scenarios(parsed)
                if scenarios:
                    attempt = GenerationAttempt(
                        profile=profile,
                        provider=provider.name,
                        success=True,
                        scenarios=scenarios,
                        duration_ms=(time.perf_counter() - start) * 1000,
                        model=result.model,
                        usage=result.usage,
                    )
                else:
                    attempt = _failed("No scenarios returned")
        if not attempt.success:
            attempt.model = result.model
            attempt.usage = result.usage
        self._record(attempt, trace_id)
        return attempt

    @staticmethod
    def _record(attempt: GenerationAttempt, trace_id: str) -> None:
        log_generation_attempt(
            trace_id=trace_id,
            provider=attempt.provider,
            profile=attempt.profile.name,
            success=attempt.success,
            scenarios=len(attempt.scenarios),
            duration_ms=attempt.duration_ms,
            error=attempt.error,
            usage=attempt.usage,
        )
