"""Source file locator — enumerate candidate files under a project root."""

from __future__ import annotations

import fnmatch
import os
from pathlib import Path

import structlog

log = structlog.get_logger("depsweep.locator")

# Directory and file patterns that never hold project usage evidence
DEFAULT_IGNORE_PATTERNS: list[str] = [
    "node_modules",
    "dist",
    "coverage",
    "build",
    ".git",
    ".svn",
    ".hg",
    "*.log",
    "*.lock",
    "package-lock.json",
    "npm-shrinkwrap.json",
    "pnpm-lock.yaml",
    "bun.lockb",
]

_BINARY_SNIFF_BYTES = 8192
# Bytes that legitimately occur in text files
_TEXT_CONTROL_BYTES = {7, 8, 9, 10, 12, 13, 27}


def load_gitignore_patterns(root: Path) -> list[str]:
    """Read ignore patterns from the root .gitignore (negations are skipped)."""
    gitignore = root / ".gitignore"
    try:
        lines = gitignore.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError:
        return []

    patterns: list[str] = []
    for line in lines:
        line = line.strip()
        if not line or line.startswith("#") or line.startswith("!"):
            continue
        patterns.append(line.lstrip("/").rstrip("/"))
    return [p for p in patterns if p]


def should_ignore(rel_path: str, patterns: list[str]) -> bool:
    """Match *rel_path* (POSIX, root-relative) against gitignore-style patterns.

    A pattern matches if it matches any single path component or the whole
    relative path.
    """
    parts = rel_path.split("/")
    for pattern in patterns:
        clean = pattern.rstrip("/")
        if not clean:
            continue
        if fnmatch.fnmatch(rel_path, clean):
            return True
        if "/" not in clean and any(fnmatch.fnmatch(part, clean) for part in parts):
            return True
    return False


def is_binary_file(path: str | Path) -> bool:
    """Heuristic binary sniff: NUL byte, or >30% non-text control bytes.

    Unreadable files are reported as binary so callers skip them.
    """
    try:
        with open(path, "rb") as fh:
            chunk = fh.read(_BINARY_SNIFF_BYTES)
    except OSError:
        return True

    if not chunk:
        return False
    if b"\x00" in chunk:
        return True

    suspicious = sum(1 for b in chunk if b < 32 and b not in _TEXT_CONTROL_BYTES)
    return suspicious / len(chunk) > 0.3


def get_source_files(
    project_dir: str | Path,
    ignore_patterns: list[str] | tuple[str, ...] = (),
) -> list[str]:
    """Collect absolute paths of every non-ignored, non-binary file under *project_dir*.

    Unreadable subdirectories are silently skipped (``os.walk`` drops them).
    """
    root = Path(project_dir).resolve()
    patterns = [*DEFAULT_IGNORE_PATTERNS, *load_gitignore_patterns(root), *ignore_patterns]

    files: list[str] = []
    for dirpath, dirnames, filenames in os.walk(root):
        rel_dir = Path(dirpath).relative_to(root).as_posix()
        prefix = "" if rel_dir == "." else f"{rel_dir}/"

        # Prune ignored directories in place so os.walk never descends
        dirnames[:] = [d for d in dirnames if not should_ignore(prefix + d, patterns)]

        for name in filenames:
            if should_ignore(prefix + name, patterns):
                continue
            full = Path(dirpath) / name
            if not full.is_file():
                continue
            if is_binary_file(full):
                log.debug("locator.binary_skipped", file=str(full))
                continue
            files.append(str(full))

    files.sort()
    log.debug("locator.collected", root=str(root), count=len(files))
    return files
