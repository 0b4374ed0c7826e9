"""Progress tracking for the depsweep analysis pipeline."""

from __future__ import annotations

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator

logger = logging.getLogger(__name__)

PIPELINE_PHASES = (
    "resolve_manifest",
    "collect_files",
    "build_context",
    "build_graph",
    "analyze",
    "closure",
)

DependencyCallback = Callable[[str, int, int], None]


@dataclass
class PhaseProgress:
    phase: str
    status: str = "pending"  # "pending" | "running" | "completed" | "failed" | "skipped"
    start_time: float | None = None
    end_time: float | None = None
    detail: str = ""
    error: str | None = None

    @property
    def duration(self) -> float | None:
        if self.start_time is not None and self.end_time is not None:
            return round(self.end_time - self.start_time, 3)
        return None


class ProgressTracker:
    """Record pipeline phases and per-dependency progress for one analysis run.

    Phase callbacks receive the PhaseProgress on every transition; dependency
    callbacks receive ``(dependency, index, total)`` with a 1-based index.
    Callback failures are logged and never interrupt the run.
    """

    def __init__(self) -> None:
        self.phases: list[PhaseProgress] = []
        self._by_name: dict[str, PhaseProgress] = {}
        self.callbacks: list[Callable[[PhaseProgress], None]] = []
        self.dependency_callbacks: list[DependencyCallback] = []
        self.dependencies_done = 0

    def start_phase(self, phase: str) -> None:
        p = PhaseProgress(phase=phase, status="running", start_time=time.monotonic())
        self.phases.append(p)
        self._by_name[phase] = p
        self._notify(p)

    def complete_phase(self, phase: str, detail: str = "") -> None:
        p = self._by_name.get(phase)
        if p is None or p.status != "running":
            return
        p.status = "completed"
        p.end_time = time.monotonic()
        p.detail = detail
        self._notify(p)

    def fail_phase(self, phase: str, error: str) -> None:
        p = self._by_name.get(phase)
        if p is None or p.status != "running":
            return
        p.status = "failed"
        p.end_time = time.monotonic()
        p.error = error
        self._notify(p)

    def skip_phase(self, phase: str, reason: str) -> None:
        p = PhaseProgress(phase=phase, status="skipped", detail=reason)
        self.phases.append(p)
        self._by_name[phase] = p
        self._notify(p)

    @contextmanager
    def track(self, phase: str) -> Iterator[PhaseProgress]:
        """Run a block as *phase*; set ``.detail`` on the yielded progress to report it.

        An exception escaping the block marks the phase failed and re-raises.
        """
        self.start_phase(phase)
        p = self._by_name[phase]
        try:
            yield p
        except BaseException as exc:
            self.fail_phase(phase, str(exc) or type(exc).__name__)
            raise
        self.complete_phase(phase, detail=p.detail)

    def dependency_done(self, dependency: str, index: int, total: int) -> None:
        self.dependencies_done += 1
        for cb in self.dependency_callbacks:
            try:
                cb(dependency, index, total)
            except Exception:
                logger.debug("Dependency progress callback error for %s", dependency, exc_info=True)

    def get_summary(self) -> dict[str, Any]:
        total_duration = sum(p.duration or 0 for p in self.phases)
        return {
            "phases": [
                {
                    "phase": p.phase,
                    "status": p.status,
                    "duration": p.duration,
                    "detail": p.detail,
                    "error": p.error,
                }
                for p in self.phases
            ],
            "dependencies_done": self.dependencies_done,
            "total_duration": round(total_duration, 3),
        }

    def _notify(self, p: PhaseProgress) -> None:
        for cb in self.callbacks:
            try:
                cb(p)
            except Exception:
                logger.debug("Progress callback error for phase %s", p.phase, exc_info=True)
