"""Attach local packages and classify external crates against the platform."""

from __future__ import annotations

from pathlib import Path

from ..challenge_tree import (
    BinCrate, EdgeType, ExternalSupportedPackage, ExternalUnsupportedPackage,
    LibCrate, LocalPackage, ROOT,
)
from ..errors import (
    ChallengeTreeError, MetadataError, UndeclaredDependencyError,
    UnsupportedDependencyError,
)
from ..parsers import PackageInfo, read_package
from .data import FusionData, Stage
from .src_files import SrcFilesStage

_PLATFORM_LABELS = {"codingame": "Codingame", "other": "Target platform"}


class DependenciesStage(Stage):
    """First stage: read manifests and build the package part of the tree."""

    def add_challenge_dependencies(self) -> SrcFilesStage:
        data = self._consume()
        options = data.options
        tree = data.tree
        if len(tree):
            raise ChallengeTreeError("Challenge tree must be empty before adding packages.")

        challenge = read_package(options.manifest_path)
        root = tree.add_node(LocalPackage(
            name=challenge.name,
            manifest_path=challenge.manifest_path,
            root=challenge.root,
            metadata=challenge,
            is_challenge=True,
        ))
        if root != ROOT:
            raise ChallengeTreeError(f"Challenge package must be node {ROOT}, got {root}.")

        target = challenge.bin_target(options.input)
        if target is None:
            available = ", ".join(t.name for t in challenge.bins) or "none"
            raise MetadataError(
                f"No binary target '{options.input}' in package '{challenge.name}' "
                f"(available: {available})."
            )
        bin_crate = tree.add_node(BinCrate(name=challenge.name, path=target.path))
        tree.add_edge(root, bin_crate, EdgeType.CRATE)
        if challenge.lib is not None:
            lib_crate = tree.add_node(LibCrate(name=challenge.lib.name, path=challenge.lib.path))
            tree.add_edge(root, lib_crate, EdgeType.CRATE)

        if options.verbose:
            print(f"Adding dependencies of challenge '{challenge.name}'...")
        _DependencyLinker(data).link_challenge(challenge)
        if options.verbose:
            local = sum(1 for _ in tree.iter_local_packages()) - 1
            print(f"  {local} local package(s), "
                  f"{len(tree.children(ROOT, EdgeType.DEPENDENCY)) - local} "
                  f"direct external dependencies")
        return SrcFilesStage(data)


class _DependencyLinker:
    """Walks path dependencies and workspace members of local packages."""

    def __init__(self, data: FusionData):
        self.data = data
        self.tree = data.tree
        self.options = data.options
        self._local: dict[Path, int] = {data.tree.node(ROOT).manifest_path: ROOT}
        self._external: dict[str, int] = {}

    def link_challenge(self, challenge: PackageInfo) -> None:
        # all direct dependencies of the challenge are known before any
        # local library is checked against them
        new_packages = []
        for dep in challenge.dependencies:
            if dep.is_dev:
                continue
            if dep.is_local:
                added = self._add_local(ROOT, dep.path / "Cargo.toml")
                if added is not None:
                    new_packages.append(added)
            else:
                self._add_external(ROOT, challenge.name, dep.name)
        for member in challenge.workspace_members:
            added = self._add_local(ROOT, member, member=True)
            if added is not None:
                new_packages.append(added)
        for index, info in new_packages:
            self._link_library(index, info)

    def _link_library(self, package: int, info: PackageInfo) -> None:
        for dep in info.dependencies:
            if dep.is_dev:
                continue
            if dep.is_local:
                added = self._add_local(package, dep.path / "Cargo.toml")
            else:
                self._add_external(package, info.name, dep.name)
                added = None
            if added is not None:
                self._link_library(*added)
        for member in info.workspace_members:
            added = self._add_local(package, member, member=True)
            if added is not None:
                self._link_library(*added)

    def _add_local(self, parent: int, manifest: Path,
                   member: bool = False) -> tuple[int, PackageInfo] | None:
        """Link a local package; returns (index, info) if it is new to the tree."""
        manifest = manifest.resolve()
        existing = self._local.get(manifest)
        if existing is not None:
            self.tree.add_edge_once(parent, existing, EdgeType.DEPENDENCY)
            return None
        info = read_package(manifest)
        if info.lib is None and member:
            if self.options.verbose:
                print(f"  Skipping workspace member '{info.name}' without library target")
            return None
        if info.lib is None:
            raise MetadataError(
                f"Local dependency '{info.name}' ({manifest}) has no library target."
            )
        index = self.tree.add_node(LocalPackage(
            name=info.name, manifest_path=info.manifest_path,
            root=info.root, metadata=info,
        ))
        self._local[manifest] = index
        self.tree.add_edge(parent, index, EdgeType.DEPENDENCY)
        lib_crate = self.tree.add_node(LibCrate(name=info.lib.name, path=info.lib.path))
        self.tree.add_edge(index, lib_crate, EdgeType.CRATE)
        if self.options.verbose:
            print(f"  Found local library '{info.lib.name}' at {info.root}")
        return index, info

    def _add_external(self, parent: int, package_name: str, dep_name: str) -> None:
        supported = dep_name in self.options.supported_crates
        platform = _PLATFORM_LABELS[self.options.platform]
        if parent == ROOT:
            if not supported:
                raise UnsupportedDependencyError(dep_name, package_name, platform)
            self._link_external(parent, dep_name, ExternalSupportedPackage)
            return
        if dep_name in self._external and \
                self.tree.has_edge(ROOT, self._external[dep_name], EdgeType.DEPENDENCY):
            self._link_external(parent, dep_name, ExternalSupportedPackage)
            return
        if supported:
            if not self.options.force:
                raise UndeclaredDependencyError(dep_name, package_name)
            print(f"  Warning: '{dep_name}' used by '{package_name}' is not a "
                  f"dependency of the challenge (forced)")
            self._link_external(parent, dep_name, ExternalSupportedPackage)
        else:
            if not self.options.force:
                raise UnsupportedDependencyError(dep_name, package_name, platform)
            print(f"  Warning: {platform} does not support '{dep_name}' used by "
                  f"'{package_name}' (forced)")
            self._link_external(parent, dep_name, ExternalUnsupportedPackage)

    def _link_external(self, parent: int, name: str, kind: type) -> None:
        index = self._external.get(name)
        if index is None:
            index = self.tree.add_node(kind(name))
            self._external[name] = index
        self.tree.add_edge_once(parent, index, EdgeType.DEPENDENCY)
