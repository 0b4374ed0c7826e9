"""Adaptive batch scheduler for per-file checks.

Files are processed in batches sized from available memory; inside a batch at
most ``max_concurrency`` checks run at once, each in a worker thread.
"""

from __future__ import annotations

import asyncio
from typing import Callable

import structlog

from depsweep.config import EngineSettings
from depsweep.engine.cache import EngineCaches, MemoryMonitor, PerformanceMonitor

log = structlog.get_logger("depsweep.batching")

FileProgress = Callable[[int, int], None]


def compute_batch_size(available_bytes: int, settings: EngineSettings) -> int:
    """More free memory means larger batches, within [batch_min, batch_max]."""
    by_memory = max(0, available_bytes) // settings.batch_bytes_per_file
    return min(settings.batch_max, max(settings.batch_min, by_memory))


class BatchScheduler:
    """Runs a per-file predicate over many files with bounded concurrency.

    ``batch_size`` pins the batch size (tests use it to vary batching);
    otherwise it is recomputed before every batch.
    """

    def __init__(
        self,
        settings: EngineSettings,
        caches: EngineCaches,
        memory: MemoryMonitor | None = None,
        perf: PerformanceMonitor | None = None,
        batch_size: int | None = None,
    ) -> None:
        self.settings = settings
        self.caches = caches
        self.memory = memory or MemoryMonitor(
            settings.memory_threshold_bytes, settings.memory_cooldown
        )
        self.perf = perf or PerformanceMonitor()
        self.batch_size = batch_size
        self.batches_run = 0

    def relieve_memory_pressure(self) -> bool:
        """Clear every cache if the memory monitor reports pressure."""
        if not self.memory.check():
            return False
        self.caches.clear_all()
        log.info("cache.cleared_under_pressure", triggers=self.memory.triggers)
        return True

    def next_batch_size(self) -> int:
        if self.batch_size is not None:
            return max(1, self.batch_size)
        return compute_batch_size(self.memory.available_bytes(), self.settings)

    async def filter_files(
        self,
        files: list[str],
        predicate: Callable[[str], bool],
        on_progress: FileProgress | None = None,
    ) -> list[str]:
        """Return the files for which *predicate* is true, in input order."""
        total = len(files)
        matched: list[str] = []
        sem = asyncio.Semaphore(self.settings.max_concurrency)

        async def _check_one(file: str) -> bool:
            async with sem:
                try:
                    return await asyncio.to_thread(predicate, file)
                except Exception as exc:
                    log.warning("batching.check_failed", file=file, error=str(exc))
                    return False

        done = 0
        with self.perf.measure("filter_files"):
            while done < total:
                self.relieve_memory_pressure()
                batch = files[done : done + self.next_batch_size()]
                results = await asyncio.gather(*(_check_one(f) for f in batch))
                matched.extend(f for f, used in zip(batch, results) if used)
                done += len(batch)
                self.batches_run += 1
                if on_progress is not None:
                    on_progress(done, total)
        return matched

    async def any_file(self, files: list[str], predicate: Callable[[str], bool]) -> bool:
        """True as soon as one batch contains a file satisfying *predicate*."""
        done = 0
        while done < len(files):
            batch = files[done : done + self.next_batch_size()]
            if await self.filter_files(batch, predicate):
                return True
            done += len(batch)
        return False
