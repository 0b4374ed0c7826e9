"""Syntax-tree walk that turns a source file into a list of reference sightings.

A sighting is any place the code names a module by string literal: static
imports, re-exports, ``require()`` calls, dynamic ``import()`` calls, type-only
imports, ``import x = require()`` module references and the
``export v from "mod"`` re-export form. Matching sightings
against a dependency name is done separately (see ``matching``).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path

import tree_sitter_typescript as tsts
from tree_sitter import Language, Node, Parser

logger = logging.getLogger(__name__)

_TYPESCRIPT = Language(tsts.language_typescript())
# The TSX grammar is a superset of JavaScript + JSX
_TSX = Language(tsts.language_tsx())

_GRAMMAR_BY_EXTENSION: dict[str, Language] = {
    ".ts": _TYPESCRIPT,
    ".mts": _TYPESCRIPT,
    ".cts": _TYPESCRIPT,
    ".tsx": _TSX,
    ".js": _TSX,
    ".jsx": _TSX,
    ".mjs": _TSX,
    ".cjs": _TSX,
}

SOURCE_EXTENSIONS = frozenset(_GRAMMAR_BY_EXTENSION)
TYPESCRIPT_EXTENSIONS = frozenset({".ts", ".tsx", ".mts", ".cts"})

# `export v from "mod"` (optionally `, * as ns` or `, { a }`): valid ECMAScript
# proposal syntax the grammar reports as an error
_IDENT = r"[A-Za-z_\$][\w\$]*"
_DEFAULT_FROM_RE = re.compile(
    rf"^[ \t]*export[ \t]+(?!default\b)(?!type\b){_IDENT}\s*"
    rf"(?:,\s*(?:\*\s*as\s+{_IDENT}|\{{[^}}]*\}}))?"
    r"\s+from\s*(?P<quote>['\"])(?P<source>[^'\"\n]+)(?P=quote)",
    re.MULTILINE,
)


@dataclass(frozen=True)
class ReferenceSighting:
    kind: str  # "import" | "type_import" | "reexport" | "require" | "dynamic_import" | "external_module_reference"
    source: str
    line: int  # 1-based
    column: int  # 0-based


def grammar_for(path: str | Path) -> Language | None:
    return _GRAMMAR_BY_EXTENSION.get(Path(path).suffix.lower())


def is_typescript_file(path: str | Path) -> bool:
    return Path(path).suffix.lower() in TYPESCRIPT_EXTENSIONS


def _string_value(node: Node | None) -> str | None:
    if node is None or node.type != "string":
        return None
    text = node.text.decode("utf-8", errors="replace")
    return text[1:-1] if len(text) >= 2 else None


def _first_string_argument(call: Node) -> Node | None:
    args = call.child_by_field_name("arguments")
    if args is None:
        return None
    named = args.named_children
    # Only a literal first argument counts: require(`x${y}`) is dynamic
    if named and named[0].type == "string":
        return named[0]
    return None


def _sighting(kind: str, string_node: Node) -> ReferenceSighting | None:
    value = _string_value(string_node)
    if value is None:
        return None
    row, col = string_node.start_point
    return ReferenceSighting(kind=kind, source=value, line=row + 1, column=col)


def _classify(node: Node) -> ReferenceSighting | None:
    t = node.type

    if t == "import_statement":
        source = node.child_by_field_name("source")
        if source is None:
            # import x = require("y") carries its source on the clause
            return None
        kind = "type_import" if any(c.type == "type" for c in node.children) else "import"
        return _sighting(kind, source)

    if t == "import_require_clause":
        source = node.child_by_field_name("source")
        if source is None:
            source = next((c for c in node.named_children if c.type == "string"), None)
        return _sighting("external_module_reference", source)

    if t == "export_statement":
        source = node.child_by_field_name("source")
        return _sighting("reexport", source) if source is not None else None

    if t == "call_expression":
        func = node.child_by_field_name("function")
        if func is None:
            return None
        if func.type == "import":
            arg = _first_string_argument(node)
            return _sighting("dynamic_import", arg) if arg is not None else None
        if func.type == "identifier" and func.text == b"require":
            arg = _first_string_argument(node)
            return _sighting("require", arg) if arg is not None else None
        return None

    # Type positions: `typeof import("x")`, `import("x").Foo`
    if any(c.type == "import" for c in node.children):
        for child in node.named_children:
            if child.type == "string":
                return _sighting("type_import", child)
    return None


def _position(content: str, offset: int) -> tuple[int, int]:
    line_start = content.rfind("\n", 0, offset) + 1
    return content.count("\n", 0, offset) + 1, offset - line_start


def _extract_default_from_reexports(content: str) -> tuple[str, list[ReferenceSighting]]:
    """Pull out ``export v from "mod"`` statements before parsing.

    Returns the content with those statements blanked (newlines kept, so line
    and column positions of everything else are unchanged) and one
    ``reexport`` sighting per statement.
    """
    found: list[ReferenceSighting] = []
    chunks: list[str] = []
    last = 0
    for match in _DEFAULT_FROM_RE.finditer(content):
        line, column = _position(content, match.start("quote"))
        found.append(ReferenceSighting("reexport", match.group("source"), line, column))
        chunks.append(content[last : match.start()])
        chunks.append(re.sub(r"[^\n]", " ", match.group(0)))
        last = match.end()
    if not found:
        return content, found
    chunks.append(content[last:])
    return "".join(chunks), found


def collect_sightings(content: str, path: str | Path) -> list[ReferenceSighting] | None:
    """Parse *content* and return every module reference in source order.

    Returns None when the file is not an ECMAScript-family source or the
    parse produced error nodes; callers fall back to raw-text matching.
    """
    grammar = grammar_for(path)
    if grammar is None:
        return None

    content, sightings = _extract_default_from_reexports(content)
    parser = Parser(grammar)
    tree = parser.parse(content.encode("utf-8", errors="replace"))
    root = tree.root_node
    if root.has_error:
        logger.debug("Syntax errors in %s, skipping structural match", path)
        return None

    stack: list[Node] = [root]
    while stack:
        node = stack.pop()
        found = _classify(node)
        if found is not None:
            sightings.append(found)
        # Reverse so children are visited in source order
        stack.extend(reversed(node.children))
    sightings.sort(key=lambda s: (s.line, s.column))
    return sightings
