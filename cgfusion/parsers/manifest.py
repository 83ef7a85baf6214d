"""Cargo.toml reader for challenge and local library packages."""

from __future__ import annotations

from pathlib import Path

from ..errors import MetadataError
from .models import DependencyInfo, PackageInfo, TargetInfo

# ── TOML loading (stdlib 3.11+, tomli fallback for 3.10) ─────────────

_tomllib = None


def _load_toml(path: Path) -> dict:
    """Load a TOML file, using stdlib tomllib or tomli fallback."""
    global _tomllib
    if _tomllib is None:
        try:
            import tomllib as _tl
        except ModuleNotFoundError:
            try:
                import tomli as _tl  # type: ignore[no-redef]
            except ImportError:
                raise ImportError(
                    "TOML parsing requires Python 3.11+ or the 'tomli' package. "
                    "Install with: pip install tomli"
                ) from None
        _tomllib = _tl
    with open(path, "rb") as f:
        try:
            return _tomllib.load(f)
        except _tomllib.TOMLDecodeError as err:
            raise MetadataError(f"Invalid TOML in {path}: {err}") from err


# ── Cargo.toml ────────────────────────────────────────────────────────


class CargoTomlReader:
    """Reads Cargo.toml for Rust packages and workspaces."""

    manifest_filename = "Cargo.toml"

    def read(self, manifest_path: Path) -> PackageInfo:
        manifest_path = Path(manifest_path).resolve()
        if manifest_path.is_dir():
            manifest_path = manifest_path / self.manifest_filename
        if not manifest_path.is_file():
            raise MetadataError(f"Manifest not found: {manifest_path}")
        project_root = manifest_path.parent
        data = _load_toml(manifest_path)
        package = data.get("package")
        if package is None:
            raise MetadataError(f"No [package] section in {manifest_path}")
        name = package.get("name")
        if not name:
            raise MetadataError(f"Package without name in {manifest_path}")

        info = PackageInfo(
            name=name,
            manifest_path=manifest_path,
            root=project_root,
            version=_plain_value(package.get("version")),
            edition=_plain_value(package.get("edition")),
        )
        info.bins = _bin_targets(data, info)
        info.lib = _lib_target(data, info)

        # Workspace members
        workspace = data.get("workspace", {})
        for member_glob in workspace.get("members", []):
            for member_dir in sorted(project_root.glob(member_glob)):
                member_manifest = member_dir / self.manifest_filename
                if member_manifest.is_file() and member_manifest != manifest_path:
                    info.workspace_members.append(member_manifest.resolve())

        # Dependencies; dev-dependencies never reach the fused binary
        for dep_name, spec in data.get("dependencies", {}).items():
            info.dependencies.append(_parse_cargo_dep(dep_name, spec, project_root))
        for dep_name, spec in data.get("dev-dependencies", {}).items():
            dep = _parse_cargo_dep(dep_name, spec, project_root)
            dep.is_dev = True
            info.dependencies.append(dep)

        return info


def read_package(manifest_path: Path) -> PackageInfo:
    """Read the package described by ``manifest_path``."""
    return CargoTomlReader().read(manifest_path)


# ── Helpers ───────────────────────────────────────────────────────────


def _plain_value(value) -> str | None:
    # `version.workspace = true` and friends carry no value of their own
    return value if isinstance(value, str) else None


def _bin_targets(data: dict, info: PackageInfo) -> list[TargetInfo]:
    """Collect bin targets: src/main.rs, src/bin/*.rs and [[bin]] entries."""
    targets: dict[str, TargetInfo] = {}
    src_dir = info.root / "src"
    main_rs = src_dir / "main.rs"
    if main_rs.is_file():
        targets[info.name] = TargetInfo(name=info.name, path=main_rs, kind="bin")
    bin_dir = src_dir / "bin"
    if bin_dir.is_dir():
        for path in sorted(bin_dir.glob("*.rs")):
            targets[path.stem] = TargetInfo(name=path.stem, path=path, kind="bin")
        for path in sorted(bin_dir.glob("*/main.rs")):
            targets[path.parent.name] = TargetInfo(
                name=path.parent.name, path=path, kind="bin")
    for entry in data.get("bin", []):
        name = entry.get("name")
        if not name:
            continue
        path = entry.get("path")
        path = info.root / path if path else bin_dir / f"{name}.rs"
        targets[name] = TargetInfo(name=name, path=path.resolve(), kind="bin")
    return list(targets.values())


def _lib_target(data: dict, info: PackageInfo) -> TargetInfo | None:
    lib = data.get("lib", {})
    path = lib.get("path")
    path = info.root / path if path else info.root / "src" / "lib.rs"
    if not path.is_file():
        return None
    name = lib.get("name") or info.name
    return TargetInfo(name=name.replace("-", "_"), path=path.resolve(), kind="lib")


def _parse_cargo_dep(name: str, spec, project_root: Path) -> DependencyInfo:
    """Parse a single Cargo.toml dependency entry."""
    if isinstance(spec, str):
        return DependencyInfo(name=name, version_spec=spec)
    if isinstance(spec, dict):
        path = spec.get("path")
        return DependencyInfo(
            name=name,
            version_spec=spec.get("version"),
            path=(project_root / path).resolve() if path else None,
            package=spec.get("package"),
        )
    return DependencyInfo(name=name)
