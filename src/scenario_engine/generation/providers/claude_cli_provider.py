"""Claude provider driven through the `claude` CLI in print mode.

The prompt goes over stdin; the CLI's JSON envelope carries the result text
and token usage.
"""

from __future__ import annotations

import asyncio
import json
import shutil

from scenario_engine.config.constants import JSON_ONLY_SUFFIX
from scenario_engine.config.settings import Settings
from scenario_engine.exceptions import (
    GenerationError,
    ProviderTransportError,
    ProviderUnavailableError,
)
from scenario_engine.generation.json_repair import extract_markdown_json
from scenario_engine.generation.retry import call_with_retry
from scenario_engine.models.domain import (
    ChatMessage,
    GenerationOptions,
    GenerationProfile,
    ProviderResult,
    TokenUsage,
)
from scenario_engine.observability.logger import get_logger

logger = get_logger("claude_cli")


class ClaudeCliProvider:
    name = "claude"

    def __init__(self, settings: Settings) -> None:
        if not self.is_available(settings):
            raise ProviderUnavailableError(
                f"Claude CLI not found: {settings.claude_cli_path}"
            )
        self._settings = settings
        self._cli_path = settings.claude_cli_path

    @classmethod
    def is_available(cls, settings: Settings) -> bool:
        return shutil.which(settings.claude_cli_path) is not None

    def primary_profile(self) -> GenerationProfile:
        return GenerationProfile(
            name="primary",
            model=self._settings.claude_model,
            temperature=self._settings.claude_temperature,
            max_tokens=self._settings.claude_max_tokens,
        )

    def fallback_profile(self) -> GenerationProfile:
        return GenerationProfile(
            name="fallback",
            model=self._settings.claude_model,
            temperature=0.0,
            max_tokens=self._settings.claude_max_tokens,
            system_prompt_suffix=JSON_ONLY_SUFFIX,
        )

    async def generate(
        self, messages: list[ChatMessage], options: GenerationOptions
    ) -> ProviderResult:
        return await call_with_retry(
            lambda: self._generate_once(messages, options), self._settings, self.name
        )

    def build_args(self, system: str, model: str) -> list[str]:
        args = [
            "--print",
            "--output-format",
            "json",
            "--model",
            model,
            "--no-session-persistence",
        ]
        if system:
            args += ["--system-prompt", system]
        return args

    async def _generate_once(
        self, messages: list[ChatMessage], options: GenerationOptions
    ) -> ProviderResult:
        system = "\n\n".join(m.content for m in messages if m.role == "system")
        prompt = "\n\n".join(m.content for m in messages if m.role != "system")
        if options.json_mode:
            prompt += JSON_ONLY_SUFFIX
        model = options.model or self._settings.claude_model

        try:
            proc = await asyncio.create_subprocess_exec(
                self._cli_path,
                *self.build_args(system, model),
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise GenerationError(f"Failed to spawn Claude CLI: {e}") from e

        # The per-attempt timeout in call_with_retry cancels us here
        try:
            stdout, stderr = await proc.communicate(prompt.encode("utf-8"))
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
            raise

        out = stdout.decode("utf-8", errors="replace")
        if proc.returncode != 0 or not out:
            err = stderr.decode("utf-8", errors="replace") or out
            raise ProviderTransportError(f"Claude CLI exited with code {proc.returncode}: {err}")

        return self.parse_cli_output(out, model, options.json_mode)

    @staticmethod
    def parse_cli_output(out: str, model: str, json_mode: bool = True) -> ProviderResult:
        try:
            envelope = json.loads(out)
        except json.JSONDecodeError as e:
            raise GenerationError(f"Failed to parse Claude CLI output: {e}") from e

        if envelope.get("is_error") or envelope.get("subtype") != "success":
            raise GenerationError(f"Claude CLI returned error: {envelope.get('result')}")

        content = envelope.get("result") or ""
        if json_mode:
            content = extract_markdown_json(content)

        raw_usage = envelope.get("usage") or {}
        prompt_tokens = (raw_usage.get("input_tokens") or 0) + (
            raw_usage.get("cache_read_input_tokens") or 0
        )
        completion_tokens = raw_usage.get("output_tokens") or 0
        return ProviderResult(
            content=content,
            model=model,
            usage=TokenUsage(
                prompt_tokens=prompt_tokens,
                completion_tokens=completion_tokens,
                total_tokens=prompt_tokens + completion_tokens,
            ),
        )
