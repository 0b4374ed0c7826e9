"""Tests for the pure matching rules."""

from __future__ import annotations

import pytest

from depsweep.engine.matching import (
    dynamic_import_pattern,
    matches_import_source,
    normalize_types_package,
    raw_content_family,
    raw_content_matches,
    scan_for_dependency,
    scripts_reference,
)


class TestMatchesImportSource:
    @pytest.mark.parametrize(
        "source,dependency",
        [
            ("lodash", "lodash"),
            ("lodash/debounce", "lodash"),
            ("@scope/pkg", "@scope/pkg"),
            ("@scope/pkg/sub", "@scope/pkg"),
            ("@other/pkg", "@scope/pkg"),
            ("pkg/sub", "@scope/pkg"),
            ("node", "@types/node"),
            ("node/fs", "@types/node"),
        ],
    )
    def test_matches(self, source: str, dependency: str):
        assert matches_import_source(source, dependency)

    @pytest.mark.parametrize(
        "source,dependency",
        [
            ("lodash-es", "lodash"),
            ("lodash2", "lodash"),
            ("./lodash", "lodash"),
            ("", "lodash"),
            ("@scope", "@scope/pkg"),
            ("react-dom", "react"),
        ],
    )
    def test_does_not_match(self, source: str, dependency: str):
        assert not matches_import_source(source, dependency)


class TestNormalizeTypesPackage:
    def test_plain(self):
        assert normalize_types_package("@types/node") == "node"

    def test_scoped(self):
        assert normalize_types_package("@types/babel__traverse") == "@babel/traverse"

    def test_not_a_types_package(self):
        assert normalize_types_package("lodash") == "lodash"


class TestDynamicImportPattern:
    def test_literal_argument(self):
        assert dynamic_import_pattern("chalk").search("const c = await import('chalk');")

    def test_whitespace_and_double_quotes(self):
        assert dynamic_import_pattern("chalk").search('import (\n  "chalk" )')

    def test_separator_variation(self):
        assert dynamic_import_pattern("@scope/pkg").search("import('@scope-pkg')")

    def test_subpath_is_not_a_literal_match(self):
        assert not dynamic_import_pattern("chalk").search("import('chalk/source')")

    def test_regex_metacharacters(self):
        assert not dynamic_import_pattern("a.b").search("import('axb')")


class TestRawContent:
    @pytest.mark.parametrize(
        "dependency,family",
        [
            ("webpack", "webpack"),
            ("webpack-cli", "webpack"),
            ("@babel/core", "babel"),
            ("eslint-plugin-react", "eslint"),
            ("jest.config", "jest"),
            ("ts-node", "typescript"),
            ("@typescript-eslint/parser", "typescript"),
            ("@vitejs/plugin-react", "bundler"),
            ("lodash", None),
            ("webpackish", None),
        ],
    )
    def test_family(self, dependency: str, family: str | None):
        assert raw_content_family(dependency) == family

    def test_word_boundary_match(self):
        assert raw_content_matches("npx webpack --mode production", "webpack")

    def test_longer_name_does_not_count(self):
        assert not raw_content_matches("npx webpack-cli serve", "webpack")

    def test_case_insensitive(self):
        assert raw_content_matches("Powered by Webpack.", "webpack")

    def test_outside_families_never_matches(self):
        assert not raw_content_matches("we use lodash here", "lodash")


class TestScanForDependency:
    def test_nested_values(self):
        config = {"overrides": [{"extends": ["plugin:react/recommended", "prettier"]}]}
        assert scan_for_dependency(config, "prettier")

    def test_substring_of_value(self):
        assert scan_for_dependency({"test": "jest --coverage"}, "jest")

    def test_keys_are_not_values(self):
        assert not scan_for_dependency({"dependencies": {"lodash": "^4.17.21"}}, "lodash")

    def test_naming_convention_value(self):
        assert scan_for_dependency({"plugins": ["Eslint-Loader"]}, "eslint")

    def test_scalars(self):
        assert not scan_for_dependency(None, "x")
        assert not scan_for_dependency(42, "x")
        assert scan_for_dependency("x-cli", "x")


class TestScriptsReference:
    def test_token(self):
        assert scripts_reference({"test": "jest --coverage"}, "jest")

    def test_substring_is_not_a_token(self):
        assert not scripts_reference({"test": "jest-runner run"}, "jest")

    def test_empty(self):
        assert not scripts_reference({}, "jest")
