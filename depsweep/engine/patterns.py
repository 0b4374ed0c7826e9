"""Pattern matcher — naming-convention regexes derived from a dependency name."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache


@dataclass(frozen=True)
class NamingPattern:
    """One family of naming conventions a package name may appear under."""

    kind: str  # "exact" | "prefix" | "suffix" | "combined" | "regex"
    match: str = ""
    variations: tuple[str, ...] = field(default_factory=tuple)
    flags: int = 0


COMMON_PATTERNS: tuple[NamingPattern, ...] = (
    NamingPattern("exact"),
    NamingPattern("prefix", "@"),
    NamingPattern("prefix", "@types/"),
    NamingPattern("prefix", "@storybook/"),
    NamingPattern("prefix", "@testing-library/"),
    NamingPattern(
        "suffix", "config", ("rc", "settings", "configuration", "setup", "options")
    ),
    NamingPattern(
        "suffix", "plugin", ("plugins", "extension", "extensions", "addon", "addons")
    ),
    NamingPattern("suffix", "preset", ("presets", "recommended", "standard", "defaults")),
    NamingPattern("combined", "", ("cli", "core", "utils", "tools", "helper", "helpers")),
    # Framework integrations: foo-react, foo/vue
    NamingPattern("regex", r"[/-](react|vue|svelte|angular|node)$", flags=re.IGNORECASE),
    # Role nouns: foo-loader, foo-parsers
    NamingPattern(
        "regex",
        r"[/-](loader|parser|transformer|formatter|linter|compiler)s?$",
        flags=re.IGNORECASE,
    ),
)


@lru_cache(maxsize=4096)
def generate_pattern_matcher(dependency: str) -> tuple[re.Pattern[str], ...]:
    """Compile the naming-convention patterns for *dependency*.

    The result is a pure function of the name, so it is memoized.
    """
    dep = re.escape(dependency)
    patterns: list[re.Pattern[str]] = []

    for pattern in COMMON_PATTERNS:
        if pattern.kind == "exact":
            patterns.append(re.compile(rf"^{dep}$"))
        elif pattern.kind == "prefix":
            patterns.append(re.compile(rf"^{re.escape(pattern.match)}{dep}(/.*)?$"))
        elif pattern.kind == "suffix":
            for suffix in (pattern.match, *pattern.variations):
                patterns.append(re.compile(rf"^{dep}[-./]{suffix}$"))
                patterns.append(re.compile(rf"^{dep}[-./]{suffix}s$"))
        elif pattern.kind == "combined":
            for part in (pattern.match, *pattern.variations):
                patterns.append(re.compile(rf"^{dep}[-./]{part}$"))
                patterns.append(re.compile(rf"^{part}[-./]{dep}$"))
        elif pattern.kind == "regex":
            patterns.append(re.compile(rf"^{dep}{pattern.match}", pattern.flags))

    return tuple(patterns)


def matches_naming_pattern(value: str, dependency: str) -> bool:
    """True if *value* is *dependency* under one of its naming conventions."""
    return any(p.search(value) for p in generate_pattern_matcher(dependency))
