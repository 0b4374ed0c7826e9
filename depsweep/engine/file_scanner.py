"""Per-file usage scanner — is a dependency referenced by one file?"""

from __future__ import annotations

from pathlib import Path

import structlog

from depsweep.engine.cache import EngineCaches
from depsweep.engine.matching import (
    dynamic_import_pattern,
    matches_import_source,
    raw_content_matches,
    scan_for_dependency,
    scripts_reference,
)
from depsweep.engine.sightings import ReferenceSighting, collect_sightings
from depsweep.models import ProjectContext

log = structlog.get_logger("depsweep.scanner")


def _precheck_needle(dependency: str) -> str:
    # Every later tier can only match text that contains the bare package name
    if dependency.startswith("@"):
        return dependency.partition("/")[2] or dependency
    return dependency


class FileScanner:
    """Answers "is *dependency* referenced in *file*" for one project context.

    Tiers, first match wins:
      1. the project manifest's string values
      2. the pre-parsed config entry for the file
      3. build-script tokens
      4. literal substring pre-check (a miss ends the scan)
      5. dynamic ``import("...")`` literal
      6. syntax-tree sightings
      7. raw-text match for known naming families

    Read and parse failures make the file count as "not used"; nothing raises.
    """

    def __init__(self, context: ProjectContext, caches: EngineCaches) -> None:
        self.context = context
        self.caches = caches
        self._root = Path(context.project_root)
        self._manifest_path = str(Path(context.manifest_path))

    def is_dependency_used_in_file(self, dependency: str, file_path: str) -> bool:
        key = f"{dependency}:{file_path}"
        cached = self.caches.file_results.get(key)
        if cached is not None:
            return cached
        result = self._scan(dependency, file_path)
        self.caches.file_results.set(key, result)
        return result

    def files_using(self, dependency: str, files: list[str]) -> list[str]:
        return [f for f in files if self.is_dependency_used_in_file(dependency, f)]

    # ── tiers ──

    def _config_key(self, file_path: str) -> str | None:
        try:
            return Path(file_path).relative_to(self._root).as_posix()
        except ValueError:
            return None

    def _matches_context(self, dependency: str, file_path: str) -> bool:
        if file_path == self._manifest_path and scan_for_dependency(
            self.context.manifest, dependency
        ):
            return True

        key = self._config_key(file_path)
        if key is not None and key != "package.json":
            config = self.context.configs.get(key)
            if isinstance(config, str):
                if dependency in config:
                    return True
            elif config is not None and scan_for_dependency(config, dependency):
                return True

        return scripts_reference(self.context.scripts, dependency)

    def _sightings(self, content: str, file_path: str) -> tuple[ReferenceSighting, ...]:
        cached = self.caches.sightings.get(file_path)
        if cached is not None:
            return cached
        try:
            found = collect_sightings(content, file_path)
        except ValueError as exc:
            log.debug("scanner.parse_failed", file=file_path, error=str(exc))
            found = None
        sightings = tuple(found or ())
        self.caches.sightings.set(file_path, sightings)
        return sightings

    def _scan(self, dependency: str, file_path: str) -> bool:
        if self._matches_context(dependency, file_path):
            return True

        files = self.caches.files
        if files.is_binary(file_path):
            return False
        try:
            content = files.read_text(file_path)
        except OSError as exc:
            log.debug("scanner.read_failed", file=file_path, error=str(exc))
            return False

        if _precheck_needle(dependency) not in content:
            return False

        if dynamic_import_pattern(dependency).search(content):
            return True

        for sighting in self._sightings(content, file_path):
            if matches_import_source(sighting.source, dependency):
                log.debug(
                    "scanner.sighting_matched",
                    dependency=dependency,
                    file=file_path,
                    kind=sighting.kind,
                    line=sighting.line,
                )
                return True

        return raw_content_matches(content, dependency)
