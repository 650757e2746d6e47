"""Custom exception hierarchy for the scenario engine."""


class ScenarioEngineError(Exception):
    """Base exception for all scenario engine errors."""


class ConfigurationError(ScenarioEngineError):
    """Error in system configuration."""


class ChunkingError(ScenarioEngineError):
    """Error during reference document chunking."""


class GenerationError(ScenarioEngineError):
    """Error during scenario generation."""


class ProviderUnavailableError(GenerationError):
    """Provider cannot be used (missing credentials or binary)."""


class ProviderTransportError(GenerationError):
    """Transient provider failure (network, rate limit, 5xx). Retried."""


class MalformedOutputError(GenerationError):
    """Provider output could not be parsed, even after repair."""


class StorageError(ScenarioEngineError):
    """Error reading or writing persisted records."""


class RecordNotFoundError(StorageError):
    """A job, batch, or chunk set does not exist."""


class PipelineError(ScenarioEngineError):
    """Fatal error outside the scope of a single sub-job."""
