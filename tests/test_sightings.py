"""Tests for the syntax-tree reference walk (tree-sitter)."""

from __future__ import annotations

from depsweep.engine.sightings import (
    collect_sightings,
    grammar_for,
    is_typescript_file,
)


def _sources(content: str, path: str = "src/index.js") -> list[str]:
    sightings = collect_sightings(content, path)
    assert sightings is not None
    return [s.source for s in sightings]


class TestCollectSightings:
    def test_static_import(self):
        sightings = collect_sightings('import _ from "lodash";\n', "a.js")
        assert sightings is not None
        assert len(sightings) == 1
        s = sightings[0]
        assert (s.kind, s.source, s.line) == ("import", "lodash", 1)

    def test_side_effect_import(self):
        assert _sources("import 'core-js/stable';\n") == ["core-js/stable"]

    def test_require_call(self):
        sightings = collect_sightings("const _ = require('lodash');\n", "a.cjs")
        assert sightings is not None
        assert [(s.kind, s.source) for s in sightings] == [("require", "lodash")]

    def test_dynamic_import(self):
        sightings = collect_sightings("async function f() { await import('chalk'); }\n", "a.mjs")
        assert sightings is not None
        assert [(s.kind, s.source) for s in sightings] == [("dynamic_import", "chalk")]

    def test_reexports(self):
        content = "export * from 'pkg-a';\nexport { b } from 'pkg-b';\nexport const c = 1;\n"
        assert _sources(content) == ["pkg-a", "pkg-b"]

    def test_source_order_and_lines(self):
        content = "import a from 'a';\n\nconst b = require('b');\nimport('c');\n"
        sightings = collect_sightings(content, "x.js")
        assert sightings is not None
        assert [(s.source, s.line) for s in sightings] == [("a", 1), ("b", 3), ("c", 4)]

    def test_non_literal_require_ignored(self):
        content = "const name = 'x';\nrequire(name);\nrequire(`tpl-${name}`);\n"
        assert _sources(content) == []

    def test_other_calls_ignored(self):
        assert _sources("load('lodash');\nobj.require('lodash');\n") == []

    def test_typescript_type_import(self):
        content = "import type { Options } from 'typed-pkg';\nexport const x: number = 1;\n"
        assert _sources(content, "a.ts") == ["typed-pkg"]

    def test_typescript_import_equals_require(self):
        content = "import fs = require('fs-extra');\n"
        sightings = collect_sightings(content, "a.ts")
        assert sightings is not None
        assert [s.source for s in sightings] == ["fs-extra"]
        assert sightings[0].kind == "external_module_reference"

    def test_jsx(self):
        content = "import React from 'react';\nexport const App = () => <div className='a'>hi</div>;\n"
        assert _sources(content, "App.jsx") == ["react"]

    def test_tsx(self):
        content = (
            "import { useState } from 'react';\n"
            "export function C(props: { n: number }) { return <span>{props.n}</span>; }\n"
        )
        assert _sources(content, "C.tsx") == ["react"]


class TestParseFailures:
    def test_truncated_file(self):
        content = "import _ from 'lodash';\nconst x = (\n"
        assert collect_sightings(content, "broken.js") is None

    def test_truncated_file_with_default_reexport(self):
        content = "export v from 'mod';\nimport _ from 'lodash';\nconst x = (\n"
        assert collect_sightings(content, "broken.js") is None

    def test_unsupported_extension(self):
        assert collect_sightings('{"a": "lodash"}', "data.json") is None


class TestGrammarSelection:
    def test_known_extensions(self):
        for name in ("a.js", "a.jsx", "a.mjs", "a.cjs", "a.ts", "a.tsx", "a.mts", "a.cts"):
            assert grammar_for(name) is not None

    def test_unknown_extension(self):
        assert grammar_for("README.md") is None

    def test_typescript_detection(self):
        assert is_typescript_file("src/a.ts")
        assert is_typescript_file("src/A.TSX")
        assert not is_typescript_file("src/a.js")


class TestDefaultFromReexport:
    def test_default_reexport_keeps_other_imports(self):
        content = "export v from 'mod';\nimport _ from 'lodash';\nexport default _;\n"
        sightings = collect_sightings(content, "src/index.js")
        assert sightings is not None
        assert [(s.kind, s.source, s.line) for s in sightings] == [
            ("reexport", "mod", 1),
            ("import", "lodash", 2),
        ]
        assert sightings[0].column == 14

    def test_combined_with_namespace_and_named(self):
        content = (
            "import a from 'a';\n"
            "export v, * as ns from \"mod-ns\";\n"
            "export w, { x, y } from 'mod-named';\n"
        )
        assert _sources(content, "index.ts") == ["a", "mod-ns", "mod-named"]

    def test_ordinary_exports_are_untouched(self):
        content = "export const v = 1;\nexport default v;\n"
        assert _sources(content) == []
