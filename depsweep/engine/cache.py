"""Run-scoped caches and resource monitors.

Every cache is a ``cachetools.TTLCache`` (least-recently-used eviction plus a
time-to-live) guarded by a lock, because scanner work runs in worker threads.
One ``EngineCaches`` is built per analysis run and handed to every component.
"""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from typing import Any, Callable, Iterator

import psutil
import structlog
from cachetools import TTLCache

from depsweep.config import EngineSettings
from depsweep.locator import is_binary_file

log = structlog.get_logger("depsweep.cache")

_MISSING = object()


class AnalysisCache:
    """Bounded, time-limited memo with hit/miss accounting."""

    def __init__(
        self,
        name: str,
        maxsize: int,
        ttl: float,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._data: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl, timer=timer)
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            value = self._data.get(key, _MISSING)
            if value is _MISSING:
                self.misses += 1
                return default
            self.hits += 1
            return value

    def set(self, key: str, value: Any) -> None:
        # Concurrent writers for one key store the same value; last write wins
        with self._lock:
            self._data[key] = value

    def clear(self) -> None:
        with self._lock:
            self._data.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def stats(self) -> dict[str, Any]:
        return {
            "size": len(self),
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hit_rate, 4),
        }


class FileReader:
    """Cached text reads and binary sniffing for source files."""

    def __init__(
        self,
        maxsize: int,
        ttl: float,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        self._contents = AnalysisCache("file_contents", maxsize, ttl, timer)
        self._binary = AnalysisCache("file_binary", maxsize, ttl, timer)

    def read_text(self, path: str) -> str:
        """Return the file's text; undecodable bytes become U+FFFD. Raises OSError."""
        cached = self._contents.get(path)
        if cached is not None:
            return cached
        with open(path, encoding="utf-8", errors="replace") as fh:
            content = fh.read()
        self._contents.set(path, content)
        return content

    def is_binary(self, path: str) -> bool:
        cached = self._binary.get(path)
        if cached is not None:
            return cached
        result = is_binary_file(path)
        self._binary.set(path, result)
        return result

    def clear(self) -> None:
        self._contents.clear()
        self._binary.clear()

    def stats(self) -> dict[str, Any]:
        return self._contents.stats()


class EngineCaches:
    """All caches for one analysis run.

    - ``dependency_info``: ``projectRoot:dependency`` -> DependencyRecord
    - ``file_results``: ``dependency:filePath`` -> bool
    - ``sightings``: ``filePath`` -> parsed reference sightings (or None)
    - ``files``: raw file contents and binary flags
    """

    def __init__(
        self,
        settings: EngineSettings | None = None,
        timer: Callable[[], float] = time.monotonic,
    ) -> None:
        s = settings or EngineSettings()
        self.dependency_info = AnalysisCache("dependency_info", s.cache_size, s.cache_ttl, timer)
        self.file_results = AnalysisCache("file_results", s.cache_size, s.cache_ttl, timer)
        self.sightings = AnalysisCache("sightings", s.file_cache_size, s.file_cache_ttl, timer)
        self.files = FileReader(s.file_cache_size, s.file_cache_ttl, timer)

    def clear_all(self) -> None:
        self.dependency_info.clear()
        self.file_results.clear()
        self.sightings.clear()
        self.files.clear()

    def stats(self) -> dict[str, Any]:
        return {
            "dependency_info": self.dependency_info.stats(),
            "file_results": self.file_results.stats(),
            "sightings": self.sightings.stats(),
            "files": self.files.stats(),
        }


def _process_rss() -> int:
    return psutil.Process().memory_info().rss


def _available_memory() -> int:
    return psutil.virtual_memory().available


class MemoryMonitor:
    """Detects memory pressure, with a cooldown between triggers."""

    def __init__(
        self,
        threshold_bytes: int,
        cooldown: float,
        usage_probe: Callable[[], int] = _process_rss,
        available_probe: Callable[[], int] = _available_memory,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.threshold_bytes = threshold_bytes
        self.cooldown = cooldown
        self._usage_probe = usage_probe
        self._available_probe = available_probe
        self._clock = clock
        self._last_trigger: float | None = None
        self.triggers = 0

    def available_bytes(self) -> int:
        return self._available_probe()

    def check(self) -> bool:
        """True when usage is over the threshold and the cooldown has elapsed."""
        used = self._usage_probe()
        if used <= self.threshold_bytes:
            return False
        now = self._clock()
        if self._last_trigger is not None and now - self._last_trigger < self.cooldown:
            return False
        self._last_trigger = now
        self.triggers += 1
        log.debug("cache.memory_pressure", used=used, threshold=self.threshold_bytes)
        return True


class PerformanceMonitor:
    """Accumulates wall-clock timings per named operation."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._started: dict[str, float] = {}
        self._totals: dict[str, float] = {}
        self._counts: dict[str, int] = {}

    def start_timer(self, name: str) -> None:
        with self._lock:
            self._started[name] = time.perf_counter()

    def end_timer(self, name: str) -> float | None:
        with self._lock:
            started = self._started.pop(name, None)
            if started is None:
                return None
            elapsed = time.perf_counter() - started
            self._record(name, elapsed)
            return elapsed

    @contextmanager
    def measure(self, name: str) -> Iterator[None]:
        started = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - started
            with self._lock:
                self._record(name, elapsed)

    def _record(self, name: str, elapsed: float) -> None:
        self._totals[name] = self._totals.get(name, 0.0) + elapsed
        self._counts[name] = self._counts.get(name, 0) + 1

    def get_metrics(self) -> dict[str, dict[str, float]]:
        with self._lock:
            return {
                name: {
                    "count": self._counts[name],
                    "total": round(total, 4),
                    "average": round(total / self._counts[name], 6),
                }
                for name, total in self._totals.items()
            }
