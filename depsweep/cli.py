"""CLI entry point: depsweep.

Usage:
    depsweep                          # analyze the project containing the cwd
    depsweep path/to/project -v       # per-dependency usage details
    depsweep -s lodash -i "legacy/*"  # keep lodash, skip files under legacy/
    depsweep --json --stats           # machine-readable report with diagnostics
"""

from __future__ import annotations

import json
import sys
from typing import Any

import click

from depsweep.core.logging import setup_logging
from depsweep.engine.analyzer import run_analysis
from depsweep.exceptions import DepSweepError
from depsweep.models import AnalysisResult
from depsweep.protected import protection_reason


def _result_to_dict(result: AnalysisResult, include_stats: bool) -> dict[str, Any]:
    data: dict[str, Any] = {
        "project_root": result.project_root,
        "manifest": result.manifest_path,
        "source_files": result.source_file_count,
        "unused": result.unused,
        "removable": result.report.removable,
        "safe": result.report.safe,
        "protected": {dep: protection_reason(dep) for dep in result.report.protected},
        "dependencies": {
            name: {
                "state": record.state.value,
                "used_in_files": sorted(record.used_in_files),
                "required_by": sorted(record.required_by_packages),
                "has_sub_dependency_usage": record.has_sub_dependency_usage,
            }
            for name, record in result.records.items()
        },
    }
    if include_stats:
        data["stats"] = result.stats
    return data


def _print_report(result: AnalysisResult, verbose: bool) -> None:
    if verbose:
        click.echo(click.style("Dependency usage:", bold=True))
        for name in result.dependencies:
            record = result.records[name]
            line = f"  {name}: {len(record.used_in_files)} file(s)"
            if record.required_by_packages:
                line += f", required by {', '.join(sorted(record.required_by_packages))}"
            click.echo(line)
        click.echo()

    report = result.report
    if not report.removable and not report.safe and not report.protected:
        click.echo(click.style("No unused dependencies found.", fg="green"))
        return

    click.echo(click.style("Unused dependencies:", bold=True))
    for dep in report.removable:
        click.echo(click.style(f"- {dep}", fg="yellow"))
    for dep in report.safe:
        click.echo(click.style(f"- {dep} [safe]", fg="blue"))
    for dep in report.protected:
        click.echo(click.style(f"- {dep} [protected: {protection_reason(dep)}]", fg="blue"))


def _print_stats(result: AnalysisResult) -> None:
    click.echo()
    click.echo(click.style("Diagnostics:", bold=True))
    for name, cache in result.stats.get("caches", {}).items():
        click.echo(f"  cache {name}: hit rate {cache['hit_rate']:.1%} ({cache['hits']} hits)")
    for name, timing in result.stats.get("timings", {}).items():
        click.echo(f"  {name}: {timing['total']:.3f}s over {timing['count']} call(s)")


@click.command()
@click.argument("path", default=".", type=click.Path(exists=True, file_okay=False))
@click.option("-v", "--verbose", is_flag=True, help="Debug logging and per-dependency usage")
@click.option("-s", "--safe", multiple=True, metavar="NAME", help="Never report this dependency")
@click.option("-i", "--ignore", multiple=True, metavar="GLOB", help="Skip files matching this glob")
@click.option("-a", "--aggressive", is_flag=True, help="Also report protected dependencies")
@click.option("--json", "as_json", is_flag=True, help="Emit a JSON report")
@click.option("--stats", is_flag=True, help="Include cache and timing diagnostics")
def main(
    path: str,
    verbose: bool,
    safe: tuple[str, ...],
    ignore: tuple[str, ...],
    aggressive: bool,
    as_json: bool,
    stats: bool,
) -> None:
    """Find declared npm dependencies that a project never uses."""
    setup_logging("DEBUG" if verbose else None)

    try:
        result = run_analysis(
            path,
            ignore_patterns=ignore,
            safe=safe,
            aggressive=aggressive,
        )
    except DepSweepError as exc:
        click.echo(click.style(f"Error: {exc}", fg="red"), err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(_result_to_dict(result, stats), indent=2))
        return

    _print_report(result, verbose)
    if stats:
        _print_stats(result)


if __name__ == "__main__":
    main()
