"""Engine settings — environment-driven knobs for caching, batching and memory."""

from __future__ import annotations

import os
from dataclasses import dataclass

import structlog

log = structlog.get_logger("depsweep.config")

_MIB = 1024 * 1024


def _env_int(key: str, default: int) -> int:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        log.warning("config.invalid_value", key=key, value=raw, default=default)
        return default
    if value <= 0:
        log.warning("config.invalid_value", key=key, value=raw, default=default)
        return default
    return value


def _env_float(key: str, default: float) -> float:
    raw = os.environ.get(key)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        log.warning("config.invalid_value", key=key, value=raw, default=default)
        return default
    if value <= 0:
        log.warning("config.invalid_value", key=key, value=raw, default=default)
        return default
    return value


@dataclass
class EngineSettings:
    """Tunables for one analysis run."""

    max_concurrency: int = 10
    batch_min: int = 20
    batch_max: int = 200
    batch_bytes_per_file: int = 25 * _MIB
    cache_size: int = 2000
    cache_ttl: float = 300.0
    file_cache_size: int = 500
    file_cache_ttl: float = 60.0
    memory_threshold_mb: int = 100
    memory_cooldown: float = 30.0

    def __post_init__(self) -> None:
        if self.batch_min > self.batch_max:
            self.batch_min = self.batch_max

    @property
    def memory_threshold_bytes(self) -> int:
        return self.memory_threshold_mb * _MIB

    @classmethod
    def from_env(cls) -> EngineSettings:
        """Build settings from ``DEPSWEEP_*`` environment variables."""
        return cls(
            max_concurrency=_env_int("DEPSWEEP_MAX_CONCURRENCY", 10),
            batch_min=_env_int("DEPSWEEP_BATCH_MIN", 20),
            batch_max=_env_int("DEPSWEEP_BATCH_MAX", 200),
            batch_bytes_per_file=_env_int("DEPSWEEP_BATCH_BYTES_PER_FILE", 25 * _MIB),
            cache_size=_env_int("DEPSWEEP_CACHE_SIZE", 2000),
            cache_ttl=_env_float("DEPSWEEP_CACHE_TTL", 300.0),
            file_cache_size=_env_int("DEPSWEEP_FILE_CACHE_SIZE", 500),
            file_cache_ttl=_env_float("DEPSWEEP_FILE_CACHE_TTL", 60.0),
            memory_threshold_mb=_env_int("DEPSWEEP_MEMORY_THRESHOLD_MB", 100),
            memory_cooldown=_env_float("DEPSWEEP_MEMORY_COOLDOWN", 30.0),
        )
