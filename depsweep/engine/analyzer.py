"""Dependency usage analyzer — per-dependency state machine, closure and run entry points."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from functools import partial
from pathlib import Path
from typing import Iterable, Mapping

import structlog

from depsweep.config import EngineSettings
from depsweep.engine.batching import BatchScheduler
from depsweep.engine.cache import EngineCaches, PerformanceMonitor
from depsweep.engine.file_scanner import FileScanner
from depsweep.engine.graph import (
    RequirerIndex,
    build_dependency_graph,
    detect_framework,
    is_framework_dev_dependency,
    types_package_requirers,
)
from depsweep.engine.matching import TYPES_PREFIX, normalize_types_package
from depsweep.engine.sightings import is_typescript_file
from depsweep.locator import get_source_files
from depsweep.manifest import (
    build_project_context,
    find_closest_manifest,
    load_manifest,
    load_ts_config,
    sort_dependencies,
)
from depsweep.models import (
    AnalysisResult,
    DependencyRecord,
    DependencyState,
    ProjectContext,
    UnusedReport,
)
from depsweep.progress import DependencyCallback, ProgressTracker
from depsweep.protected import is_protected

log = structlog.get_logger("depsweep.analyzer")


def _copy_record(record: DependencyRecord) -> DependencyRecord:
    return replace(
        record,
        used_in_files=set(record.used_in_files),
        required_by_packages=set(record.required_by_packages),
    )


class DependencyAnalyzer:
    """Collects usage facts for each declared dependency of one project.

    Each dependency moves PENDING -> SCANNING_FILES -> USED | UNUSED_CANDIDATE.
    File scanning and the graph lookup for one dependency run concurrently.
    """

    def __init__(
        self,
        context: ProjectContext,
        dependencies: list[str],
        files: list[str],
        caches: EngineCaches,
        scheduler: BatchScheduler,
        ts_config: dict | None = None,
    ) -> None:
        self.context = context
        self.dependencies = list(dependencies)
        self.top_level = set(dependencies)
        self.files = list(files)
        self.caches = caches
        self.scheduler = scheduler
        self.ts_config = ts_config
        self.scanner = FileScanner(context, caches)
        self.requirers = RequirerIndex(context.dependency_graph, self.top_level)
        self.framework = detect_framework(context.manifest)
        self.ts_files = [f for f in self.files if is_typescript_file(f)]

    def _cache_key(self, dependency: str) -> str:
        return f"{self.context.project_root}:{dependency}"

    async def analyze(self, dependency: str) -> DependencyRecord:
        key = self._cache_key(dependency)
        cached = self.caches.dependency_info.get(key)
        if cached is not None:
            return _copy_record(cached)

        record = DependencyRecord(name=dependency)
        record.state = DependencyState.SCANNING_FILES

        if self.framework is not None and is_framework_dev_dependency(dependency, self.framework):
            record.required_by_packages.add(self.framework.core_package)
            log.debug(
                "analyzer.framework_dependency",
                dependency=dependency,
                framework=self.framework.name,
            )
        elif dependency.startswith(TYPES_PREFIX):
            await self._analyze_types_package(record)
        else:
            await self._analyze_regular(record)

        record.settle()
        self.caches.dependency_info.set(key, _copy_record(record))
        log.debug(
            "analyzer.dependency_done",
            dependency=dependency,
            state=record.state.value,
            files=len(record.used_in_files),
            required_by=sorted(record.required_by_packages),
        )
        return record

    async def _analyze_regular(self, record: DependencyRecord) -> None:
        dependency = record.name
        used_files, requirers = await asyncio.gather(
            self.scheduler.filter_files(
                self.files, partial(self.scanner.is_dependency_used_in_file, dependency)
            ),
            asyncio.to_thread(self.requirers.requirers_of, dependency),
        )
        record.used_in_files.update(used_files)
        record.required_by_packages.update(requirers)
        record.has_sub_dependency_usage = await self._sub_dependency_usage(dependency)

    async def _analyze_types_package(self, record: DependencyRecord) -> None:
        dependency = record.name
        record.required_by_packages.update(
            types_package_requirers(
                dependency, self.top_level, bool(self.ts_files), self.ts_config
            )
        )
        # e.g. @types/express pulls in @types/serve-static
        record.required_by_packages.update(
            await asyncio.to_thread(self.requirers.requirers_of, dependency)
        )
        base = normalize_types_package(dependency)
        if base == "node" and self.ts_files:
            return

        def _uses_types(file: str) -> bool:
            return self.scanner.is_dependency_used_in_file(
                dependency, file
            ) or self.scanner.is_dependency_used_in_file(base, file)

        record.used_in_files.update(await self.scheduler.filter_files(self.ts_files, _uses_types))

    async def _sub_dependency_usage(self, dependency: str) -> bool:
        for sub in sorted(self.context.dependency_graph.get(dependency, ())):
            if await self.scheduler.any_file(
                self.files, partial(self.scanner.is_dependency_used_in_file, sub)
            ):
                return True
        return False


def finalize_unused_dependencies(
    unused: Iterable[str],
    records: Mapping[str, DependencyRecord],
    dependencies: Iterable[str],
) -> list[str]:
    """Fixed point: a dependency with no file usage whose every requirer is
    unused becomes unused too. Repeats until an iteration changes nothing.
    """
    result = set(unused)
    candidates = list(dependencies)
    changed = True
    while changed:
        changed = False
        for dep in candidates:
            if dep in result:
                continue
            record = records.get(dep)
            if record is None or record.used_in_files:
                continue
            if record.required_by_packages <= result:
                result.add(dep)
                changed = True
    return sort_dependencies(result)


def build_unused_report(
    unused: Iterable[str],
    safe: Iterable[str] = (),
    aggressive: bool = False,
) -> UnusedReport:
    """Split the closure output into removable, safe-listed and protected names."""
    safe_names = set(safe)
    report = UnusedReport()
    for dep in sort_dependencies(set(unused)):
        if dep in safe_names:
            report.safe.append(dep)
        elif not aggressive and is_protected(dep):
            report.protected.append(dep)
        else:
            report.removable.append(dep)
    return report


async def analyze_project(
    start_dir: str | Path,
    *,
    ignore_patterns: Iterable[str] = (),
    safe: Iterable[str] = (),
    aggressive: bool = False,
    settings: EngineSettings | None = None,
    caches: EngineCaches | None = None,
    tracker: ProgressTracker | None = None,
    on_progress: DependencyCallback | None = None,
    batch_size: int | None = None,
) -> AnalysisResult:
    """Run the full pipeline for the project containing *start_dir*.

    Raises:
        ManifestNotFoundError: no package.json at or above *start_dir*.
        InvalidManifestError: the project manifest is unreadable.
    """
    settings = settings or EngineSettings.from_env()
    caches = caches or EngineCaches(settings)
    tracker = tracker or ProgressTracker()
    if on_progress is not None:
        tracker.dependency_callbacks.append(on_progress)
    perf = PerformanceMonitor()

    with tracker.track("resolve_manifest") as phase:
        manifest_path = find_closest_manifest(start_dir)
        dependencies = load_manifest(manifest_path).declared_dependencies()
        phase.detail = manifest_path
    project_root = str(Path(manifest_path).parent)
    log.info("analyzer.start", root=project_root, dependencies=len(dependencies))

    with tracker.track("collect_files") as phase, perf.measure("collect_files"):
        files = await asyncio.to_thread(get_source_files, project_root, list(ignore_patterns))
        phase.detail = f"{len(files)} files"

    with tracker.track("build_context"), perf.measure("build_context"):
        context = await asyncio.to_thread(build_project_context, manifest_path, files)

    with tracker.track("build_graph") as phase, perf.measure("build_graph"):
        context.dependency_graph = await asyncio.to_thread(build_dependency_graph, project_root)
        phase.detail = f"{len(context.dependency_graph)} installed packages"

    scheduler = BatchScheduler(settings, caches, perf=perf, batch_size=batch_size)
    analyzer = DependencyAnalyzer(
        context,
        dependencies,
        files,
        caches=caches,
        scheduler=scheduler,
        ts_config=load_ts_config(project_root),
    )

    records: dict[str, DependencyRecord] = {}
    with tracker.track("analyze") as phase:
        total = len(dependencies)
        for index, dep in enumerate(dependencies, start=1):
            with perf.measure("analyze_dependency"):
                records[dep] = await analyzer.analyze(dep)
            tracker.dependency_done(dep, index, total)
        phase.detail = f"{total} dependencies"

    with tracker.track("closure") as phase:
        initial = [d for d in dependencies if not records[d].is_used]
        unused = finalize_unused_dependencies(initial, records, dependencies)
        phase.detail = f"{len(initial)} direct, {len(unused) - len(initial)} transitive"

    report = build_unused_report(unused, safe, aggressive)
    log.info(
        "analyzer.done",
        root=project_root,
        unused=len(unused),
        removable=len(report.removable),
    )
    return AnalysisResult(
        project_root=project_root,
        manifest_path=manifest_path,
        dependencies=dependencies,
        records=records,
        unused=unused,
        report=report,
        source_file_count=len(files),
        stats={
            "caches": caches.stats(),
            "timings": perf.get_metrics(),
            "batches": scheduler.batches_run,
            "memory_pressure_events": scheduler.memory.triggers,
            "progress": tracker.get_summary(),
        },
    )


def run_analysis(start_dir: str | Path, **kwargs) -> AnalysisResult:
    """Synchronous wrapper around :func:`analyze_project`."""
    return asyncio.run(analyze_project(start_dir, **kwargs))
