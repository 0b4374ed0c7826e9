"""Tests for manifest loading, workspace resolution and config pre-parsing."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from depsweep.exceptions import InvalidManifestError, ManifestNotFoundError
from depsweep.manifest import (
    PackageManifest,
    build_project_context,
    find_closest_manifest,
    get_dependencies,
    get_workspace_info,
    is_config_file,
    load_manifest,
    load_ts_config,
    parse_config_file,
    sort_dependencies,
)


class TestPackageManifest:
    def test_aliases_and_defaults(self):
        m = PackageManifest.model_validate(
            {"name": "demo", "devDependencies": {"jest": "^29"}, "private": True}
        )
        assert m.dev_dependencies == {"jest": "^29"}
        assert m.dependencies == {}
        assert m.workspaces is None

    def test_workspaces_list(self):
        m = PackageManifest.model_validate({"workspaces": ["packages/*"]})
        assert m.workspaces == ["packages/*"]

    def test_workspaces_object_form(self):
        m = PackageManifest.model_validate({"workspaces": {"packages": ["apps/*", "libs/*"]}})
        assert m.workspaces == ["apps/*", "libs/*"]

    def test_malformed_sections_do_not_fail(self):
        m = PackageManifest.model_validate(
            {
                "name": 42,
                "dependencies": ["not", "a", "mapping"],
                "scripts": {"build": "tsc", "bad": {"nested": True}},
                "optionalDependencies": {"fsevents": 2},
            }
        )
        assert m.name is None
        assert m.dependencies == {}
        assert m.scripts == {"build": "tsc"}
        assert m.optional_dependencies == {"fsevents": "2"}

    def test_declared_dependencies_union_sorted(self):
        m = PackageManifest.model_validate(
            {
                "dependencies": {"react": "^18", "@babel/runtime": "^7"},
                "devDependencies": {"babel-loader": "^9", "react": "^18"},
                "peerDependencies": {"Zod": "^3"},
            }
        )
        assert m.declared_dependencies() == ["babel-loader", "@babel/runtime", "react", "Zod"]


class TestSortDependencies:
    def test_ignores_leading_at(self):
        assert sort_dependencies(["webpack", "@types/node", "axios"]) == [
            "axios",
            "@types/node",
            "webpack",
        ]

    def test_case_insensitive(self):
        assert sort_dependencies(["b", "A", "c"]) == ["A", "b", "c"]


class TestLoadManifest:
    def test_invalid_json(self, tmp_path: Path):
        p = tmp_path / "package.json"
        p.write_text("{ not json")
        with pytest.raises(InvalidManifestError) as exc_info:
            load_manifest(p)
        assert exc_info.value.path == str(p)

    def test_non_object(self, tmp_path: Path):
        p = tmp_path / "package.json"
        p.write_text("[1, 2]")
        with pytest.raises(InvalidManifestError):
            load_manifest(p)

    def test_get_dependencies(self, npm_project):
        path = npm_project.manifest(
            dependencies={"lodash": "^4"}, devDependencies={"jest": "^29"}
        )
        assert get_dependencies(path) == ["jest", "lodash"]


class TestWorkspaceInfo:
    def test_not_a_workspace(self, npm_project):
        path = npm_project.manifest()
        assert get_workspace_info(path) is None

    def test_missing_file(self, tmp_path: Path):
        assert get_workspace_info(tmp_path / "package.json") is None

    def test_unreadable_manifest_is_not_a_workspace(self, tmp_path: Path):
        p = tmp_path / "package.json"
        p.write_text("garbage")
        assert get_workspace_info(p) is None

    def test_resolves_globs_to_directories(self, npm_project):
        path = npm_project.manifest(workspaces=["packages/*", "!packages/skip"])
        npm_project.manifest("packages/a", name="a")
        npm_project.manifest("packages/b", name="b")
        npm_project.write("packages/README.md", "docs")
        info = get_workspace_info(path)
        assert info is not None
        assert info.root == str(path)
        assert info.packages == ["packages/a", "packages/b"]


class TestFindClosestManifest:
    def test_nearest_manifest(self, npm_project):
        path = npm_project.manifest()
        start = npm_project.root / "src" / "deep"
        start.mkdir(parents=True)
        assert find_closest_manifest(start) == str(path.resolve())

    def test_workspace_member_resolves_to_root(self, npm_project):
        root_manifest = npm_project.manifest(workspaces=["packages/*"])
        npm_project.manifest("packages/app", name="app")
        start = npm_project.root / "packages" / "app" / "src"
        start.mkdir(parents=True)
        assert find_closest_manifest(start) == str(root_manifest.resolve())

    def test_workspace_object_form(self, npm_project):
        root_manifest = npm_project.manifest(workspaces={"packages": ["apps/*"]})
        npm_project.manifest("apps/web", name="web")
        assert find_closest_manifest(npm_project.root / "apps" / "web") == str(
            root_manifest.resolve()
        )

    def test_non_member_keeps_own_manifest(self, npm_project):
        npm_project.manifest(workspaces=["packages/*"])
        npm_project.manifest("packages/app", name="app")
        tool = npm_project.manifest("tools/script", name="script")
        assert find_closest_manifest(npm_project.root / "tools" / "script") == str(
            tool.resolve()
        )

    def test_no_manifest_is_fatal(self, tmp_path: Path):
        start = tmp_path / "empty"
        start.mkdir()
        with pytest.raises(ManifestNotFoundError) as exc_info:
            find_closest_manifest(start)
        assert "No package.json found" in str(exc_info.value)


class TestConfigFiles:
    @pytest.mark.parametrize(
        "name",
        [
            "webpack.config.js",
            ".eslintrc",
            ".babelrc.json",
            "package.json",
            "jest.config.ts",
            "tsconfig.json",
            "app.rc.yaml",
        ],
    )
    def test_is_config_file(self, name: str):
        assert is_config_file(f"/project/{name}")

    @pytest.mark.parametrize("name", ["index.js", "README.md", "styles.css"])
    def test_not_config_file(self, name: str):
        assert not is_config_file(f"/project/{name}")

    def test_parse_json(self, tmp_path: Path):
        f = tmp_path / ".babelrc.json"
        f.write_text('{"presets": ["@babel/preset-env"]}')
        assert parse_config_file(f) == {"presets": ["@babel/preset-env"]}

    def test_parse_yaml(self, tmp_path: Path):
        f = tmp_path / ".eslintrc.yml"
        f.write_text("extends:\n  - prettier\n")
        assert parse_config_file(f) == {"extends": ["prettier"]}

    def test_js_is_raw_text(self, tmp_path: Path):
        f = tmp_path / "webpack.config.js"
        f.write_text("module.exports = {}")
        assert parse_config_file(f) == "module.exports = {}"

    def test_extensionless_json_or_text(self, tmp_path: Path):
        f = tmp_path / ".eslintrc"
        f.write_text('{"extends": "airbnb"}')
        assert parse_config_file(f) == {"extends": "airbnb"}
        f.write_text("extends: airbnb")
        assert parse_config_file(f) == "extends: airbnb"

    def test_malformed_json_degrades_to_text(self, tmp_path: Path):
        f = tmp_path / "settings.config.json"
        f.write_text("{ broken")
        assert parse_config_file(f) == "{ broken"


class TestTsConfig:
    def test_reads_tsconfig(self, tmp_path: Path):
        (tmp_path / "tsconfig.json").write_text(json.dumps({"compilerOptions": {"types": ["node"]}}))
        assert load_ts_config(tmp_path) == {"compilerOptions": {"types": ["node"]}}

    def test_missing_or_invalid(self, tmp_path: Path):
        assert load_ts_config(tmp_path) is None
        (tmp_path / "tsconfig.json").write_text("{ // comments are not JSON")
        assert load_ts_config(tmp_path) is None


class TestBuildProjectContext:
    def test_snapshot(self, npm_project):
        path = npm_project.manifest(
            scripts={"test": "jest --coverage"}, dependencies={"lodash": "^4"}
        )
        babelrc = npm_project.write(".babelrc", '{"presets": ["@babel/preset-env"]}')
        index = npm_project.write("src/index.js", "require('lodash')")

        ctx = build_project_context(path, [str(path), str(babelrc), str(index)])

        assert ctx.project_root == str(npm_project.root.resolve())
        assert ctx.manifest_path == str(path.resolve())
        assert ctx.scripts == {"test": "jest --coverage"}
        assert ctx.configs[".babelrc"] == {"presets": ["@babel/preset-env"]}
        assert ctx.manifest["dependencies"] == {"lodash": "^4"}
        assert "src/index.js" not in ctx.configs
        assert ctx.dependency_graph == {}
