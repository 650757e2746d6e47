"""Central configuration via Pydantic Settings.

A single Settings object is built at startup and passed into every component.
Tests construct Settings(...) directly instead of mutating the environment.
"""

from __future__ import annotations

from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Provider selection
    llm_provider: str = "ollama"
    llm_fallback_provider: str = ""  # empty -> same as llm_provider
    fallback_enabled: bool = True

    # API Keys
    openai_api_key: str = ""
    google_api_key: str = ""

    # OpenAI
    openai_model: str = "gpt-4-turbo"
    openai_temperature: float = 0.2
    openai_max_tokens: int = 3000

    # Gemini
    gemini_model: str = "gemini-2.0-flash"
    gemini_temperature: float = 0.2
    gemini_max_tokens: int = 4096

    # Ollama
    ollama_base_url: str = "http://localhost:11434"
    ollama_model_primary: str = "llama2"
    ollama_model_fallback: str = ""  # empty -> primary model
    ollama_temperature_primary: float = 0.3
    ollama_temperature_fallback: float = 0.0
    ollama_max_tokens: int = 3000

    # Claude CLI
    claude_cli_path: str = "claude"
    claude_model: str = "sonnet"
    claude_temperature: float = 0.2
    claude_max_tokens: int = 4096

    # Provider call policy
    provider_timeout_s: float = 120.0
    provider_max_retries: int = 3
    provider_retry_base_s: float = 2.0

    # Chunking
    chars_per_token: int = 4
    chunk_target_tokens: int = 1500
    chunk_max_tokens: int = 2000
    chunk_overlap_tokens: int = 100
    token_estimator: Literal["chars", "tiktoken"] = "chars"

    # Relevance selection
    max_context_tokens: int = 8000
    min_relevance_score: float = 0.1
    max_chunks_per_request: int = 10
    keyword_match_threshold: float = 0.7
    relevance_text_prefix_chars: int = 2000
    relevance_w_heading: float = 0.4
    relevance_w_content: float = 0.6
    relevance_w_keyword: float = 0.6
    relevance_w_text: float = 0.4
    max_requirements_for_context: int = 20

    # Deduplication
    dedup_similarity_threshold: float = 0.85

    # Scheduling
    batch_max_parallel_jobs: int = 3

    # Aggregation
    min_pages_per_module_scenario: int = 3
    min_modules_per_project_scenario: int = 3
    module_max_tokens: int = 3000
    project_max_tokens: int = 4096
    max_integration_tests: int = 10
    max_project_tests: int = 10

    # Page-level validation
    min_step_length: int = 10
    new_concept_check_enabled: bool = False
    new_concept_threshold: float = 0.3

    # Storage paths
    sqlite_db_path: str = "data/scenario_engine.db"
    reports_dir: str = "data/deduplications"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    model_config = {"env_file": ".env", "env_prefix": "SCENARIO_"}

    @property
    def max_direct_context_chars(self) -> int:
        return self.max_context_tokens * self.chars_per_token

    @property
    def fallback_provider_name(self) -> str:
        return self.llm_fallback_provider or self.llm_provider
