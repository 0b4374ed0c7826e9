"""Pure matching rules shared by the per-file scanner.

Nothing here touches the filesystem: every function takes strings or parsed
values and answers "does this reference the dependency?".
"""

from __future__ import annotations

import re
from fnmatch import fnmatchcase
from functools import lru_cache
from typing import Any, Mapping

from depsweep.engine.patterns import matches_naming_pattern

TYPES_PREFIX = "@types/"

# Families whose members are often referenced by bare name in raw text
# (config strings, CLI flags) rather than through an import statement
RAW_CONTENT_FAMILIES: dict[str, tuple[str, ...]] = {
    "webpack": ("webpack", "webpack.*", "webpack-*"),
    "babel": ("babel", "babel.*", "babel-*", "@babel/*"),
    "eslint": ("eslint", "eslint.*", "eslint-*", "@eslint/*"),
    "jest": ("jest", "jest.*", "jest-*", "@jest/*"),
    "typescript": ("typescript", "ts-*", "@typescript-*"),
    "bundler": (
        "rollup", "rollup.*", "rollup-*",
        "esbuild", "esbuild.*", "@esbuild/*",
        "vite", "vite.*", "@vitejs/*",
    ),
}

_SEPARATORS = "/@-"


def _strip_scope(name: str) -> str:
    if name.startswith("@"):
        parts = name.split("/")
        return parts[1] if len(parts) > 1 else ""
    return name


def types_base_name(dependency: str) -> str:
    """``@types/foo`` -> ``foo``; the name unchanged otherwise."""
    return dependency[len(TYPES_PREFIX):] if dependency.startswith(TYPES_PREFIX) else dependency


def normalize_types_package(dependency: str) -> str:
    """Map a DefinitelyTyped name to the package it describes.

    ``@types/babel__traverse`` -> ``@babel/traverse``; ``@types/node`` -> ``node``.
    """
    base = types_base_name(dependency)
    if "__" in base:
        return "@" + base.replace("__", "/")
    return base


def matches_import_source(source: str, dependency: str) -> bool:
    """Does an import/require source string refer to *dependency*?

    Matches the exact name, a subpath (``lodash/debounce``), the unscoped name
    on both sides, and for ``@types/x`` the bare ``x`` module.
    """
    if not source:
        return False
    if source == dependency or source.startswith(f"{dependency}/"):
        return True

    dep_bare = _strip_scope(dependency)
    source_bare = _strip_scope(source)
    if dep_bare and (source_bare == dep_bare or source_bare.startswith(f"{dep_bare}/")):
        return True

    if dependency.startswith(TYPES_PREFIX):
        base = types_base_name(dependency)
        if source == base or source.startswith(f"{base}/"):
            return True
    return False


def _separator_tolerant(dependency: str) -> str:
    return "".join(f"[{re.escape(_SEPARATORS)}]" if ch in _SEPARATORS else re.escape(ch) for ch in dependency)


@lru_cache(maxsize=4096)
def dynamic_import_pattern(dependency: str) -> re.Pattern[str]:
    """``import("dep")``-style call with a literal argument, separators interchangeable."""
    return re.compile(
        r"import\s*\(\s*['\"]" + _separator_tolerant(dependency) + r"['\"]\s*\)",
        re.IGNORECASE,
    )


def raw_content_family(dependency: str) -> str | None:
    """Name of the naming-convention family *dependency* belongs to, if any."""
    for family, globs in RAW_CONTENT_FAMILIES.items():
        if any(fnmatchcase(dependency, g) for g in globs):
            return family
    return None


@lru_cache(maxsize=4096)
def raw_content_pattern(dependency: str) -> re.Pattern[str]:
    """Word-boundary occurrence of the name; a longer package name does not count."""
    return re.compile(
        r"(?<![\w@/.-])" + _separator_tolerant(dependency) + r"(?![\w-])",
        re.IGNORECASE,
    )


def raw_content_matches(content: str, dependency: str) -> bool:
    """Raw-text fallback, only for names in a known family."""
    if raw_content_family(dependency) is None:
        return False
    return raw_content_pattern(dependency).search(content) is not None


def scan_for_dependency(value: Any, dependency: str) -> bool:
    """Recursively search string values of a parsed structure for *dependency*.

    Mapping keys are not inspected: in a manifest they are the declarations
    themselves.
    """
    if isinstance(value, str):
        return dependency in value or matches_naming_pattern(value, dependency)
    if isinstance(value, Mapping):
        return any(scan_for_dependency(v, dependency) for v in value.values())
    if isinstance(value, (list, tuple)):
        return any(scan_for_dependency(v, dependency) for v in value)
    return False


def scripts_reference(scripts: Mapping[str, str], dependency: str) -> bool:
    """Is *dependency* a whitespace-delimited token of any script command?"""
    return any(dependency in command.split() for command in scripts.values())

