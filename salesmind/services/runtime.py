"""Process-wide service instances shared by controllers and lifecycle hooks."""

from __future__ import annotations

from salesmind.config.settings import settings
from salesmind.database import SessionFactory
from salesmind.services.gemini_client import GeminiClient
from salesmind.services.processing import ProcessingOrchestrator
from salesmind.services.result_cache import ResultCache
from salesmind.services.storage import FileStore


def get_file_store() -> FileStore:
    """Return the default audio file store."""

    return _FILE_STORE


def get_feedback_cache() -> ResultCache:
    """Return the cache of feedback responses keyed by recording id."""

    return _FEEDBACK_CACHE


def get_gemini_client() -> GeminiClient:
    return _GEMINI_CLIENT


def get_processing_orchestrator() -> ProcessingOrchestrator:
    """Return the default recording processing orchestrator."""

    return _ORCHESTRATOR


_FILE_STORE = FileStore(
    settings.storage.upload_dir,
    max_file_size=settings.storage.max_file_size_bytes,
    retention_days=settings.storage.retention_days,
)
_FEEDBACK_CACHE: ResultCache = ResultCache(settings.pipeline.feedback_cache_ttl_seconds)
_GEMINI_CLIENT = GeminiClient(settings.gemini)
_ORCHESTRATOR = ProcessingOrchestrator(
    SessionFactory,
    _GEMINI_CLIENT,
    workers=settings.pipeline.workers,
    result_cache=_FEEDBACK_CACHE,
)


__all__ = [
    "get_feedback_cache",
    "get_file_store",
    "get_gemini_client",
    "get_processing_orchestrator",
]
