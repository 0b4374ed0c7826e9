"""Manifest & workspace resolver — locate package.json, detect monorepo roots, build ProjectContext."""

from __future__ import annotations

import json
import re
from pathlib import Path, PurePosixPath
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from depsweep.exceptions import InvalidManifestError, ManifestNotFoundError
from depsweep.models import ProjectContext, WorkspaceInfo

log = structlog.get_logger("depsweep.manifest")

PACKAGE_JSON = "package.json"
TSCONFIG_JSON = "tsconfig.json"

_CONFIG_NAME_RE = re.compile(r"\.(config|rc)(\.|\b)")
_RAW_TEXT_EXTENSIONS = {".js", ".cjs", ".mjs", ".ts", ".cts", ".mts"}


class PackageManifest(BaseModel):
    """The subset of package.json the engine relies on; unknown keys are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    name: str | None = None
    version: str | None = None
    dependencies: dict[str, str] = Field(default_factory=dict)
    dev_dependencies: dict[str, str] = Field(default_factory=dict, alias="devDependencies")
    peer_dependencies: dict[str, str] = Field(default_factory=dict, alias="peerDependencies")
    optional_dependencies: dict[str, str] = Field(
        default_factory=dict, alias="optionalDependencies"
    )
    scripts: dict[str, str] = Field(default_factory=dict)
    workspaces: list[str] | None = None

    @field_validator("name", "version", mode="before")
    @classmethod
    def _optional_string(cls, v: Any) -> str | None:
        return v if isinstance(v, str) else None

    @field_validator(
        "dependencies",
        "dev_dependencies",
        "peer_dependencies",
        "optional_dependencies",
        mode="before",
    )
    @classmethod
    def _dependency_mapping(cls, v: Any) -> dict[str, str]:
        # Version ranges are informational; keep every declared name
        if not isinstance(v, dict):
            return {}
        return {str(k): v if isinstance(v, str) else str(v) for k, v in v.items()}

    @field_validator("scripts", mode="before")
    @classmethod
    def _script_mapping(cls, v: Any) -> dict[str, str]:
        if not isinstance(v, dict):
            return {}
        return {str(k): cmd for k, cmd in v.items() if isinstance(cmd, str)}

    @field_validator("workspaces", mode="before")
    @classmethod
    def _normalize_workspaces(cls, v: Any) -> list[str] | None:
        # Both ["packages/*"] and {"packages": ["packages/*"]} are accepted
        if isinstance(v, dict):
            v = v.get("packages")
        if not isinstance(v, list):
            return None
        return [p for p in v if isinstance(p, str)]

    def declared_dependencies(self) -> list[str]:
        """All names from every dependency section, de-duplicated and sorted."""
        names: set[str] = set()
        for section in (
            self.dependencies,
            self.dev_dependencies,
            self.peer_dependencies,
            self.optional_dependencies,
        ):
            names.update(section)
        return sort_dependencies(names)


def _sort_key(name: str) -> tuple[str, str]:
    bare = name[1:] if name.startswith("@") else name
    return (bare.casefold(), name)


def sort_dependencies(names) -> list[str]:
    """Sort package names case-insensitively, ignoring a leading ``@`` scope marker."""
    return sorted(names, key=_sort_key)


# ── manifest loading ─────────────────────────────────────────────────────


def read_manifest_data(path: str | Path) -> dict[str, Any]:
    """Read a package.json as a raw dict. Raises InvalidManifestError."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError) as exc:
        raise InvalidManifestError(str(path), f"unreadable: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise InvalidManifestError(str(path), f"invalid JSON: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise InvalidManifestError(str(path), "top-level value is not an object")
    return data


def load_manifest(path: str | Path) -> PackageManifest:
    """Load and validate the project manifest. Raises InvalidManifestError."""
    data = read_manifest_data(path)
    try:
        return PackageManifest.model_validate(data)
    except ValidationError as exc:
        raise InvalidManifestError(str(path), str(exc)) from exc


def get_dependencies(path: str | Path) -> list[str]:
    """Declared dependency names of the manifest at *path*."""
    return load_manifest(path).declared_dependencies()


# ── workspace resolution ─────────────────────────────────────────────────


def _find_up(start: Path, filename: str) -> Path | None:
    current = start
    while True:
        candidate = current / filename
        if candidate.is_file():
            return candidate
        if current.parent == current:
            return None
        current = current.parent


def resolve_workspace_globs(root_dir: Path, patterns: list[str]) -> list[str]:
    """Expand workspace globs to existing directories, relative to *root_dir*."""
    packages: list[str] = []
    for pattern in patterns:
        clean = pattern.strip()
        if not clean or clean.startswith("!"):
            continue
        if clean.startswith("./"):
            clean = clean[2:]
        clean = clean.rstrip("/")
        if not clean:
            continue
        try:
            hits = sorted(root_dir.glob(clean))
        except (ValueError, NotImplementedError, OSError):
            log.debug("resolver.bad_workspace_glob", pattern=pattern, root=str(root_dir))
            continue
        for hit in hits:
            if not hit.is_dir():
                continue
            rel = hit.relative_to(root_dir).as_posix()
            if "node_modules" in rel.split("/"):
                continue
            if rel not in packages:
                packages.append(rel)
    return packages


def get_workspace_info(package_json_path: str | Path) -> WorkspaceInfo | None:
    """Return workspace info if the manifest declares workspaces, else None.

    Any read/parse failure means "not a workspace root".
    """
    path = Path(package_json_path)
    if not path.is_file():
        return None
    try:
        manifest = load_manifest(path)
    except InvalidManifestError as exc:
        log.debug("resolver.workspace_manifest_unreadable", path=str(path), error=str(exc))
        return None
    if not manifest.workspaces:
        return None

    packages = resolve_workspace_globs(path.parent, manifest.workspaces)
    return WorkspaceInfo(root=str(path), packages=packages)


def is_workspace_member(member_dir: Path, info: WorkspaceInfo) -> bool:
    """Path-prefix containment, in either direction, against the workspace package dirs."""
    root_dir = Path(info.root).parent
    try:
        rel_parts = member_dir.relative_to(root_dir).parts
    except ValueError:
        return False
    if not rel_parts:
        return False

    for pkg in info.packages:
        pkg_parts = PurePosixPath(pkg).parts
        if not pkg_parts:
            continue
        if rel_parts[: len(pkg_parts)] == pkg_parts or pkg_parts[: len(rel_parts)] == rel_parts:
            return True
    return False


def find_closest_manifest(start_dir: str | Path) -> str:
    """Locate the effective analysis manifest for *start_dir*.

    Search order:
      1. Nearest package.json at or above *start_dir*.
      2. If an ancestor package.json declares workspaces that contain the
         directory found in (1), that ancestor becomes the analysis root.

    Raises:
        ManifestNotFoundError: no package.json anywhere up to the filesystem root.
    """
    start = Path(start_dir).resolve()
    manifest = _find_up(start, PACKAGE_JSON)
    if manifest is None:
        raise ManifestNotFoundError(str(start))

    manifest_dir = manifest.parent
    current = manifest_dir
    while current.parent != current:
        parent = current.parent
        info = get_workspace_info(parent / PACKAGE_JSON)
        if info is not None and is_workspace_member(manifest_dir, info):
            log.info("resolver.workspace_root", root=info.root, member=str(manifest))
            return info.root
        current = parent

    return str(manifest)


# ── configuration files ──────────────────────────────────────────────────


def is_config_file(file_path: str | Path) -> bool:
    filename = Path(file_path).name.lower()
    return (
        "config" in filename
        or filename.startswith(".")
        or filename == PACKAGE_JSON
        or bool(_CONFIG_NAME_RE.search(filename))
    )


def parse_config_file(file_path: str | Path) -> Any:
    """Parse a config file by extension; malformed content degrades to raw text.

    Raises OSError when the file cannot be read.
    """
    path = Path(file_path)
    content = path.read_text(encoding="utf-8", errors="replace")
    ext = path.suffix.lower()

    if ext in _RAW_TEXT_EXTENSIONS:
        return content
    if ext in (".yaml", ".yml"):
        try:
            return yaml.safe_load(content)
        except yaml.YAMLError:
            return content
    try:
        return json.loads(content)
    except json.JSONDecodeError:
        return content


def load_ts_config(project_root: str | Path) -> dict[str, Any] | None:
    """Parsed tsconfig.json at the project root, or None when absent/unreadable."""
    path = Path(project_root) / TSCONFIG_JSON
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return None
    return data if isinstance(data, dict) else None


def build_project_context(manifest_path: str | Path, files: list[str]) -> ProjectContext:
    """Snapshot scripts and pre-parsed config files for one analysis run."""
    manifest_file = Path(manifest_path).resolve()
    project_root = manifest_file.parent
    raw = read_manifest_data(manifest_file)
    manifest = load_manifest(manifest_file)

    configs: dict[str, Any] = {}
    for file in files:
        if not is_config_file(file):
            continue
        try:
            rel = Path(file).resolve().relative_to(project_root).as_posix()
        except ValueError:
            continue
        if rel == PACKAGE_JSON:
            continue
        try:
            configs[rel] = parse_config_file(file)
        except OSError as exc:
            log.debug("context.config_unreadable", file=file, error=str(exc))

    configs[PACKAGE_JSON] = raw
    return ProjectContext(
        project_root=str(project_root),
        manifest_path=str(manifest_file),
        scripts=dict(manifest.scripts),
        configs=configs,
    )
