"""Dependency graph builder — installed-package adjacency and transitive requirers."""

from __future__ import annotations

import json
import os
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import structlog

from depsweep.engine.matching import normalize_types_package, types_base_name

log = structlog.get_logger("depsweep.graph")

NODE_MODULES = "node_modules"
_REQUIREMENT_SECTIONS = ("dependencies", "peerDependencies", "optionalDependencies")


@dataclass(frozen=True)
class FrameworkInfo:
    name: str
    core_package: str
    dev_dependencies: tuple[str, ...]  # exact names or name prefixes


FRAMEWORKS: tuple[FrameworkInfo, ...] = (
    FrameworkInfo(
        "angular",
        "@angular/core",
        (
            "@angular-builders/",
            "@angular-devkit/",
            "@angular/cli",
            "@webcomponents/custom-elements",
        ),
    ),
    FrameworkInfo(
        "react",
        "react",
        ("react-scripts", "@testing-library/react", "react-app-rewired"),
    ),
    FrameworkInfo("vue", "vue", ("@vue/cli-service", "@vue/cli-plugin-")),
)


def detect_framework(manifest: dict[str, Any]) -> FrameworkInfo | None:
    """First framework whose core package is a runtime or dev dependency."""
    declared: set[str] = set()
    for section in ("dependencies", "devDependencies"):
        value = manifest.get(section)
        if isinstance(value, dict):
            declared.update(value)
    for framework in FRAMEWORKS:
        if framework.core_package in declared:
            return framework
    return None


def is_framework_dev_dependency(dependency: str, framework: FrameworkInfo) -> bool:
    return any(dependency == p or dependency.startswith(p) for p in framework.dev_dependencies)


# ── installed packages ───────────────────────────────────────────────────


def list_installed_packages(project_root: str | Path) -> list[str]:
    """Package names under node_modules, one level into ``@scope`` dirs."""
    modules = Path(project_root) / NODE_MODULES
    packages: list[str] = []
    try:
        with os.scandir(modules) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError:
        return packages

    for entry in entries:
        if not entry.is_dir() or entry.name.startswith("."):
            continue
        if entry.name.startswith("@"):
            try:
                with os.scandir(entry.path) as it:
                    scoped = sorted(it, key=lambda e: e.name)
            except OSError:
                continue
            packages.extend(f"{entry.name}/{sub.name}" for sub in scoped if sub.is_dir())
        else:
            packages.append(entry.name)
    return packages


def read_package_requirements(package_dir: str | Path) -> set[str] | None:
    """Names an installed package requires; None when its manifest is unusable."""
    path = Path(package_dir) / "package.json"
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        log.debug("graph.manifest_skipped", path=str(path), error=str(exc))
        return None
    if not isinstance(data, dict):
        log.debug("graph.manifest_skipped", path=str(path), error="not an object")
        return None

    required: set[str] = set()
    for section in _REQUIREMENT_SECTIONS:
        value = data.get(section)
        if isinstance(value, dict):
            required.update(str(name) for name in value)
    return required


def build_dependency_graph(project_root: str | Path) -> dict[str, set[str]]:
    """Adjacency mapping ``installed package -> packages it requires``."""
    modules = Path(project_root) / NODE_MODULES
    graph: dict[str, set[str]] = {}
    skipped = 0
    for package in list_installed_packages(project_root):
        required = read_package_requirements(modules / package)
        if required is None:
            skipped += 1
            continue
        graph[package] = required
    log.debug("graph.built", root=str(project_root), packages=len(graph), skipped=skipped)
    return graph


# ── transitive requirers ─────────────────────────────────────────────────


class RequirerIndex:
    """Reverse view of the dependency graph for "who requires X" queries."""

    def __init__(self, graph: dict[str, set[str]], top_level: Iterable[str]) -> None:
        self.top_level = set(top_level)
        self._required_by: dict[str, set[str]] = {}
        for package, requirements in graph.items():
            for name in requirements:
                self._required_by.setdefault(name, set()).add(package)

    def direct_requirers(self, name: str) -> set[str]:
        return set(self._required_by.get(name, ()))

    def requirers_of(self, target: str) -> set[str]:
        """Top-level dependencies that require *target*, directly or through
        non-top-level installed packages.

        Breadth-first over a visited set, so cycles terminate. Top-level
        requirers are collected but not expanded further; *target* is never
        its own requirer.
        """
        found: set[str] = set()
        visited = {target}
        queue = deque([target])
        while queue:
            current = queue.popleft()
            for parent in self._required_by.get(current, ()):
                if parent == target:
                    continue
                if parent in self.top_level:
                    found.add(parent)
                elif parent not in visited:
                    visited.add(parent)
                    queue.append(parent)
        return found


def find_top_level_dependents(
    graph: dict[str, set[str]], target: str, top_level: Iterable[str]
) -> set[str]:
    return RequirerIndex(graph, top_level).requirers_of(target)


# ── @types packages ──────────────────────────────────────────────────────


def types_package_requirers(
    dependency: str,
    top_level: set[str],
    has_ts_files: bool,
    ts_config: dict[str, Any] | None,
) -> set[str]:
    """Implicit requirers of an ``@types/*`` package.

    - ``@types/node`` in a project with TypeScript sources -> ``typescript``
    - the described package is itself declared -> that package
    - tsconfig ``compilerOptions.types`` / ``typeRoots`` names it -> ``typescript``
    """
    base = normalize_types_package(dependency)
    if base == "node" and has_ts_files:
        return {"typescript"}

    requirers: set[str] = set()
    if base in top_level and base != dependency:
        requirers.add(base)

    if ts_config:
        options = ts_config.get("compilerOptions")
        if isinstance(options, dict):
            names = {base, types_base_name(dependency)}
            types = options.get("types")
            roots = options.get("typeRoots")
            if isinstance(types, list) and names.intersection(t for t in types if isinstance(t, str)):
                requirers.add("typescript")
            elif isinstance(roots, list) and any(
                isinstance(r, str) and any(n in r for n in names) for r in roots
            ):
                requirers.add("typescript")
    return requirers
