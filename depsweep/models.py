"""Data models for the dependency usage engine."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any


class DependencyState(str, enum.Enum):
    """Lifecycle of one declared dependency during a run."""

    PENDING = "pending"
    SCANNING_FILES = "scanning_files"
    USED = "used"
    UNUSED_CANDIDATE = "unused_candidate"


@dataclass
class DependencyRecord:
    """Usage facts collected for one declared dependency."""

    name: str
    used_in_files: set[str] = field(default_factory=set)
    required_by_packages: set[str] = field(default_factory=set)
    has_sub_dependency_usage: bool = False
    state: DependencyState = DependencyState.PENDING

    @property
    def is_used(self) -> bool:
        return bool(self.used_in_files) or bool(self.required_by_packages)

    def settle(self) -> None:
        """Move out of SCANNING_FILES into USED or UNUSED_CANDIDATE."""
        self.state = DependencyState.USED if self.is_used else DependencyState.UNUSED_CANDIDATE


@dataclass
class ProjectContext:
    """Read-only snapshot of the project under analysis.

    ``dependency_graph`` is the only field populated after construction
    (once per run, by the graph builder).
    """

    project_root: str
    manifest_path: str
    scripts: dict[str, str] = field(default_factory=dict)
    configs: dict[str, Any] = field(default_factory=dict)  # {"package.json": {...}, ".eslintrc": "..."}
    dependency_graph: dict[str, set[str]] = field(default_factory=dict)

    @property
    def manifest(self) -> dict[str, Any]:
        data = self.configs.get("package.json")
        return data if isinstance(data, dict) else {}


@dataclass
class WorkspaceInfo:
    """Workspace declaration of a candidate monorepo root."""

    root: str  # path to the root package.json
    packages: list[str] = field(default_factory=list)  # POSIX paths relative to the root dir


@dataclass
class UnusedReport:
    """Final caller-facing verdict after closure and safe-list filtering."""

    removable: list[str] = field(default_factory=list)
    safe: list[str] = field(default_factory=list)
    protected: list[str] = field(default_factory=list)


@dataclass
class AnalysisResult:
    """Outcome of a full analysis run."""

    project_root: str
    manifest_path: str
    dependencies: list[str]
    records: dict[str, DependencyRecord]
    unused: list[str]
    report: UnusedReport
    source_file_count: int = 0
    stats: dict[str, Any] = field(default_factory=dict)
