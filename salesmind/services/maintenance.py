"""Periodic housekeeping: expired cache entries and old audio files."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from fastapi.concurrency import run_in_threadpool

from salesmind.services.result_cache import ResultCache
from salesmind.services.storage import FileStore

logger = logging.getLogger(__name__)


class MaintenanceScheduler:
    """Run cache eviction and file retention cleanup on fixed intervals."""

    def __init__(
        self,
        cache: ResultCache,
        file_store: FileStore,
        *,
        cache_interval_seconds: float,
        cleanup_interval_seconds: float,
    ) -> None:
        self._cache = cache
        self._file_store = file_store
        self._cache_interval = cache_interval_seconds
        self._cleanup_interval = cleanup_interval_seconds
        self._tasks: list[asyncio.Task[None]] = []

    @property
    def is_running(self) -> bool:
        return bool(self._tasks)

    def start(self) -> None:
        if self.is_running:
            return
        self._tasks = [
            asyncio.create_task(
                self._every(self._cache_interval, self.evict_cache),
                name="cache-eviction",
            ),
            asyncio.create_task(
                self._every(self._cleanup_interval, self.cleanup_files),
                name="audio-cleanup",
            ),
        ]

    async def stop(self) -> None:
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

    async def evict_cache(self) -> int:
        removed = self._cache.evict_expired()
        if removed:
            logger.info("Evicted %s expired cache entries", removed)
        return removed

    async def cleanup_files(self) -> int:
        return await run_in_threadpool(self._file_store.cleanup_old_files)

    @staticmethod
    async def _every(interval: float, job: Callable[[], Awaitable[int]]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await job()
            except Exception:
                logger.exception("Maintenance job %s failed", getattr(job, "__name__", job))


__all__ = ["MaintenanceScheduler"]
