"""Resolve paths written in the challenge to the nodes they denote.

A path's first segment is looked up by a module namespace walk from the
module enclosing the referencing node, so nearer declarations shadow outer
ones.  ``crate``, ``self``, ``super`` and ``Self`` are handled explicitly,
names of local library crates lead to their crate, and declared external
dependencies (plus ``std``, ``core`` and ``alloc``) end resolution as an
external package.  Use items met on the way are followed to their targets.
Use declarations inside a function body bind names for that item only and
are tried before the module namespace.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..errors import UnresolvedPathError
from ..parsers.models import UsePath
from .models import (
    EdgeType, ExternalSupportedPackage, ExternalUnsupportedPackage,
    SynImplItem, SynItem, TYPE_KINDS,
)
from .tree import ChallengeTree
from .walkers import BfsModuleNameSpace

BUILTIN_CRATES = frozenset({"std", "core", "alloc"})


class ResolutionKind(Enum):
    LOCAL_ITEM = "local item"
    EXTERNAL_PACKAGE = "external package"
    UNRESOLVED = "unresolved"


@dataclass
class Resolution:
    kind: ResolutionKind
    target: int | None = None           # leaf node of a local item
    traversed: list[int] = field(default_factory=list)  # nodes passed, target included
    variant: str | None = None          # enum variant named after the target enum
    external_path: list[str] | None = None

    @property
    def is_local(self) -> bool:
        return self.kind is ResolutionKind.LOCAL_ITEM

    @property
    def is_external(self) -> bool:
        return self.kind is ResolutionKind.EXTERNAL_PACKAGE

    @property
    def is_unresolved(self) -> bool:
        return self.kind is ResolutionKind.UNRESOLVED


def _unresolved(traversed: list[int]) -> Resolution:
    return Resolution(ResolutionKind.UNRESOLVED, traversed=traversed)


class PathResolver:
    """Resolves paths over one challenge tree."""

    def __init__(self, tree: ChallengeTree):
        self.tree = tree
        # use items currently being followed; breaks cycles and self lookups
        self._resolving: set[int] = set()

    # ── Public API ─────────────────────────────────────────────────────

    def resolve(self, node: int, segments: list[str]) -> Resolution:
        """Resolve ``segments`` as written at ``node``."""
        scope = node if self.tree.is_crate_or_module(node) else self.tree.module_of(node)
        return self._resolve_segments(scope, node, list(segments))

    def resolve_use(self, use_index: int, name: str | None = None) -> Resolution:
        """Resolve the path of a use item; for globs the module the glob imports from."""
        info = self.tree.syn_item(use_index).info
        path = info.use_paths[0]
        if name is not None:
            for candidate in info.use_paths:
                if candidate.imported_name == name:
                    path = candidate
                    break
        segments = list(path.segments)
        if segments and segments[-1] == "self" and len(segments) > 1:
            segments.pop()
        if use_index in self._resolving or not segments:
            return _unresolved([])
        self._resolving.add(use_index)
        try:
            return self._resolve_segments(self.tree.module_of(use_index), use_index, segments)
        finally:
            self._resolving.discard(use_index)

    def external_names(self, scope: int) -> set[str]:
        """Names of external crates usable from the crate holding ``scope``."""
        names = set(BUILTIN_CRATES)
        package = self.tree.package_of(self.tree.crate_of(scope))
        for dependency in self.tree.children(package, EdgeType.DEPENDENCY):
            data = self.tree.node(dependency)
            if isinstance(data, (ExternalSupportedPackage, ExternalUnsupportedPackage)):
                names.add(data.name.replace("-", "_"))
        return names

    def lib_crate_named(self, name: str) -> int | None:
        for index, crate in self.tree.iter_lib_crates():
            if crate.name == name:
                return index
        return None

    # ── Lookup ─────────────────────────────────────────────────────────

    def _matches(self, index: int, name: str) -> bool:
        data = self.tree.node(index)
        if not isinstance(data, SynItem):
            return False
        if data.is_use:
            if index in self._resolving:
                return False
            return any(p.imported_name == name for p in data.info.use_paths)
        if data.kind in ("impl", "macro", "extern_crate", "foreign_mod"):
            return False
        return data.name == name

    def lookup_in_namespace(self, scope: int, name: str) -> int | None:
        """Nearest item called ``name`` in the namespace of module ``scope``.

        Associated items of inherent impls are part of the namespace walk,
        but a bare name never denotes one, so they are skipped here.
        """
        for index in BfsModuleNameSpace(self.tree, scope):
            if index == scope or isinstance(self.tree.node(index), SynImplItem):
                continue
            if self._matches(index, name):
                return index
        return None

    def _lookup_child(self, container: int, name: str) -> tuple[int | None, str | None]:
        """Find ``name`` inside ``container``; returns (node, enum variant)."""
        tree = self.tree
        if tree.is_crate_or_module(container):
            if name == "self":
                return container, None
            if name == "super":
                return tree.parent_module(container), None
            for child in tree.children(container, EdgeType.SYN):
                if self._matches(child, name):
                    return child, None
            if tree.is_crate(container):
                for index in tree.iter_syn_items(container):
                    data = tree.node(index)
                    if isinstance(data, SynItem) and data.kind == "macro_rules" \
                            and data.info.macro_export and data.name == name:
                        return index, None
                # the fused crate holds every library crate as a top level module
                return self.lib_crate_named(name), None
            return None, None
        data = tree.node(container)
        if not isinstance(data, SynItem):
            return None, None
        if data.kind == "enum" and name in data.info.variants:
            return container, name
        if data.kind == "trait":
            for child in tree.children(container, EdgeType.SYN):
                if tree.name_of(child) == name:
                    return child, None
            return None, None
        if data.kind in TYPE_KINDS:
            impl_blocks = tree.impl_blocks_of(container)
            impl_blocks.sort(key=lambda i: not tree.is_inherent_impl_block(i))
            for impl_block in impl_blocks:
                for child in tree.children(impl_block, EdgeType.SYN):
                    if tree.name_of(child) == name:
                        return child, None
            if data.kind == "type" and data.info.aliased_type:
                aliased = self.resolve(container, data.info.aliased_type)
                if aliased.is_local and aliased.target != container:
                    return self._lookup_child(aliased.target, name)
        return None, None

    def _self_target(self, node: int) -> int | None:
        """Target of ``Self`` at ``node``: the impl's self type or the trait."""
        tree = self.tree
        candidates = [node, *tree.syn_ancestors(node)]
        for index in candidates:
            data = tree.node(index)
            if type(data) is not SynItem:
                continue
            if data.kind == "trait":
                return index
            if data.kind == "impl":
                for type_index in tree.parents(index, EdgeType.IMPLEMENTATION):
                    if tree.node(type_index).kind != "trait":
                        return type_index
                if data.info.self_type is None or index in self._resolving:
                    return None
                self._resolving.add(index)
                try:
                    resolved = self.resolve(index, data.info.self_type)
                finally:
                    self._resolving.discard(index)
                return resolved.target if resolved.is_local else None
        return None

    def _local_uses(self, node: int) -> list[UsePath]:
        data = self.tree.node(node)
        if not isinstance(data, SynItem) or data.is_use:
            return []
        return data.info.local_uses

    def _through_local_use(self, scope: int, node: int,
                           segments: list[str]) -> Resolution | None:
        """Resolve through a use written inside the body of ``node``."""
        for path in reversed(self._local_uses(node)):
            if path.imported_name != segments[0]:
                continue
            target = list(path.segments)
            if target[-1] == "self" and len(target) > 1:
                target.pop()
            # module scope as node: the use path itself is not subject to local uses
            return self._resolve_segments(scope, scope, target + segments[1:])
        return None

    def _through_local_glob(self, scope: int, node: int,
                            segments: list[str]) -> Resolution | None:
        for path in self._local_uses(node):
            if not path.is_glob:
                continue
            resolution = self._resolve_segments(scope, scope, path.segments + segments)
            if resolution.is_local:
                return resolution
        return None

    # ── Resolution ─────────────────────────────────────────────────────

    def _resolve_segments(self, scope: int, node: int, segments: list[str]) -> Resolution:
        tree = self.tree
        traversed: list[int] = []
        if not segments:
            return _unresolved(traversed)
        first = segments[0]
        if first in ("crate", "$crate"):
            current = tree.crate_of(scope)
        elif first == "self":
            current = scope
        elif first == "super":
            current = tree.parent_module(scope)
        elif first == "Self":
            current = self._self_target(node)
        else:
            local = self._through_local_use(scope, node, segments)
            if local is not None:
                return local
            current = self.lookup_in_namespace(scope, first)
            if current is None:
                current = self.lib_crate_named(first)
            if current is None:
                local = self._through_local_glob(scope, node, segments)
                if local is not None:
                    return local
                if first in self.external_names(scope):
                    return Resolution(ResolutionKind.EXTERNAL_PACKAGE,
                                      traversed=traversed, external_path=segments)
                return _unresolved(traversed)
        if current is None:
            return _unresolved(traversed)
        traversed.append(current)
        current_name = first
        variant = None

        for position in range(1, len(segments) + 1):
            if tree.is_use(current):
                followed = self.resolve_use(current, current_name)
                traversed.extend(followed.traversed)
                if followed.is_external:
                    return Resolution(
                        ResolutionKind.EXTERNAL_PACKAGE, traversed=traversed,
                        external_path=followed.external_path + segments[position:],
                    )
                if followed.is_unresolved:
                    return _unresolved(traversed)
                current = followed.target
                variant = followed.variant
            if position == len(segments):
                break
            if variant is not None:
                return _unresolved(traversed)
            name = segments[position]
            child, variant = self._lookup_child(current, name)
            if child is None:
                return _unresolved(traversed)
            if child not in traversed:
                traversed.append(child)
            current = child
            current_name = name
        return Resolution(ResolutionKind.LOCAL_ITEM, target=current,
                          traversed=traversed, variant=variant)


def resolve_path(tree: ChallengeTree, node: int, segments: list[str]) -> Resolution:
    """Resolve ``segments`` as written at ``node``."""
    return PathResolver(tree).resolve(node, segments)


def resolve_path_strict(tree: ChallengeTree, node: int, segments: list[str]) -> Resolution:
    """Like :func:`resolve_path`, raising :class:`UnresolvedPathError` when unresolved."""
    resolution = resolve_path(tree, node, segments)
    if resolution.is_unresolved:
        raise UnresolvedPathError("::".join(segments), tree.verbose_name(node))
    return resolution
