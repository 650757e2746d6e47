"""FastAPI application factory with lifespan management."""

from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI

from scenario_engine.api.middleware import RequestTimingMiddleware
from scenario_engine.api.routes_batch import router as batch_router
from scenario_engine.api.routes_health import router as health_router
from scenario_engine.api.routes_levels import router as levels_router
from scenario_engine.chunking.document_chunker import DocumentChunker
from scenario_engine.chunking.tokens import create_token_counter
from scenario_engine.config.settings import Settings
from scenario_engine.dedup.deduplicator import DedupReportWriter, ScenarioDeduplicator
from scenario_engine.generation.client import GenerationClient
from scenario_engine.generation.provider_factory import create_fallback_provider, create_provider
from scenario_engine.observability.logger import get_logger, setup_logging
from scenario_engine.pipeline.aggregator import HierarchicalAggregator
from scenario_engine.pipeline.batch_orchestrator import BatchOrchestrator
from scenario_engine.pipeline.manual_context import ManualContextResolver
from scenario_engine.pipeline.page_level import PageLevelGenerator
from scenario_engine.pipeline.scenario_validator import ScenarioValidator
from scenario_engine.protocols.llm import LLMProvider
from scenario_engine.scoring.relevance import RelevanceScorer
from scenario_engine.storage.sqlite_chunk_store import SQLiteChunkStore
from scenario_engine.storage.sqlite_job_store import SQLiteJobStore

logger = get_logger("app")


def create_app(
    settings: Settings | None = None,
    primary_provider: LLMProvider | None = None,
    fallback_provider: LLMProvider | None = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        cfg = settings or Settings()
        setup_logging()

        # Storage
        job_store = SQLiteJobStore(cfg.sqlite_db_path)
        await job_store.initialize()
        chunk_store = SQLiteChunkStore(cfg.sqlite_db_path)
        await chunk_store.initialize()

        # Providers
        primary = primary_provider or create_provider(cfg.llm_provider, cfg)
        fallback = fallback_provider or create_fallback_provider(cfg)
        client = GenerationClient(primary=primary, fallback=fallback, settings=cfg)

        # Manual context
        chunker = DocumentChunker(cfg, create_token_counter(cfg))
        scorer = RelevanceScorer(cfg)
        manual_resolver = ManualContextResolver(cfg, chunker, scorer, chunk_store)

        # Pipeline
        deduplicator = ScenarioDeduplicator(cfg, DedupReportWriter(cfg.reports_dir))
        page_generator = PageLevelGenerator(client, manual_resolver, ScenarioValidator(cfg))
        aggregator = HierarchicalAggregator(cfg, job_store, client, deduplicator, manual_resolver)
        orchestrator = BatchOrchestrator(cfg, job_store, page_generator, aggregator, deduplicator)

        app.state.settings = cfg
        app.state.job_store = job_store
        app.state.chunk_store = chunk_store
        app.state.aggregator = aggregator
        app.state.orchestrator = orchestrator

        logger.info(
            "startup_complete",
            provider=primary.name,
            fallback_provider=fallback.name,
            fallback_enabled=cfg.fallback_enabled,
            max_parallel=cfg.batch_max_parallel_jobs,
        )

        yield

        for provider in {id(primary): primary, id(fallback): fallback}.values():
            close = getattr(provider, "aclose", None)
            if close is not None:
                await close()
        logger.info("shutdown_complete")

    app = FastAPI(
        title="Scenario Engine",
        version="1.0.0",
        description="QA scenario generation and hierarchical aggregation",
        lifespan=lifespan,
    )
    app.add_middleware(RequestTimingMiddleware)
    app.include_router(health_router, tags=["health"])
    app.include_router(batch_router, tags=["batches"])
    app.include_router(levels_router, tags=["levels"])
    return app
