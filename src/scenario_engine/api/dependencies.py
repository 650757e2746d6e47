"""FastAPI dependency injection helpers."""

from __future__ import annotations

from fastapi import Request

from scenario_engine.config.settings import Settings
from scenario_engine.pipeline.aggregator import HierarchicalAggregator
from scenario_engine.pipeline.batch_orchestrator import BatchOrchestrator
from scenario_engine.storage.sqlite_job_store import SQLiteJobStore


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_orchestrator(request: Request) -> BatchOrchestrator:
    return request.app.state.orchestrator


def get_aggregator(request: Request) -> HierarchicalAggregator:
    return request.app.state.aggregator


def get_job_store(request: Request) -> SQLiteJobStore:
    return request.app.state.job_store
