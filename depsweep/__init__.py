"""depsweep: find declared npm dependencies that a project never uses."""

from depsweep.core.logging import configure_default_logging
from depsweep.engine.analyzer import (
    analyze_project,
    build_unused_report,
    finalize_unused_dependencies,
    run_analysis,
)
from depsweep.exceptions import DepSweepError, InvalidManifestError, ManifestNotFoundError
from depsweep.models import AnalysisResult, DependencyRecord, UnusedReport

__version__ = "0.1.0"

configure_default_logging()

__all__ = [
    "AnalysisResult",
    "DepSweepError",
    "DependencyRecord",
    "InvalidManifestError",
    "ManifestNotFoundError",
    "UnusedReport",
    "analyze_project",
    "build_unused_report",
    "finalize_unused_dependencies",
    "run_analysis",
]
