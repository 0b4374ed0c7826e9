"""Shared fixtures for depsweep tests: miniature npm projects on disk."""

from __future__ import annotations

import json
from pathlib import Path

import pytest


class NpmProject:
    """Builds a package.json, source files and a node_modules tree under *root*."""

    def __init__(self, root: Path):
        self.root = root

    def manifest(self, rel_dir: str = ".", **fields) -> Path:
        path = self.root / rel_dir / "package.json"
        path.parent.mkdir(parents=True, exist_ok=True)
        data = {"name": fields.pop("name", "demo"), "version": "1.0.0"}
        data.update(fields)
        path.write_text(json.dumps(data, indent=2))
        return path

    def write(self, rel_path: str, content: str | bytes) -> Path:
        path = self.root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content)
        return path

    def install(self, name: str, dependencies: list[str] = (), **sections) -> Path:
        """Create node_modules/<name>/package.json requiring *dependencies*."""
        data: dict = {"name": name, "version": "1.0.0"}
        if dependencies:
            data["dependencies"] = {d: "*" for d in dependencies}
        for key, names in sections.items():
            data[key] = {d: "*" for d in names}
        return self.write(f"node_modules/{name}/package.json", json.dumps(data))


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest.fixture
def npm_project(tmp_path: Path) -> NpmProject:
    return NpmProject(tmp_path / "project")
