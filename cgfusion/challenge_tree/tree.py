"""The challenge tree: a typed multigraph over packages, crates and items.

Backed by ``rustworkx.PyDiGraph``.  Node indices stay valid when other
nodes are removed; an index freed by a removal may be handed out again by a
later insertion, so anything keyed by index must be dropped together with
the node (see :meth:`ChallengeTree.remove_node`).
"""

from __future__ import annotations

from typing import Callable, Iterator

import rustworkx as rx

from ..errors import NodeIndexError, UnexpectedNodeTypeError
from .models import (
    EdgeType, LocalPackage, ExternalSupportedPackage, ExternalUnsupportedPackage,
    BinCrate, LibCrate, SourceFile, SynItem, SynImplItem, SynTraitItem,
)

ROOT = 0


class ChallengeTree:
    """Graph of the challenge; the challenge package is always node 0."""

    def __init__(self):
        self._graph = rx.PyDiGraph(multigraph=True)
        self._removal_hooks: list[Callable[[int], None]] = []

    # ── Basic graph operations ─────────────────────────────────────────

    def add_node(self, data) -> int:
        return self._graph.add_node(data)

    def add_edge(self, source: int, target: int, edge_type: EdgeType) -> int:
        self._check(source)
        self._check(target)
        return self._graph.add_edge(source, target, edge_type)

    def add_edge_once(self, source: int, target: int, edge_type: EdgeType) -> bool:
        """Add an edge unless the same typed edge exists; True if added."""
        if self.has_edge(source, target, edge_type):
            return False
        self.add_edge(source, target, edge_type)
        return True

    def has_edge(self, source: int, target: int, edge_type: EdgeType) -> bool:
        return any(t == target and e is edge_type
                   for _, t, e in self._graph.out_edges(source))

    def on_remove(self, hook: Callable[[int], None]) -> None:
        """Register a callback run with the index of every removed node."""
        self._removal_hooks.append(hook)

    def remove_node(self, index: int):
        """Remove a node and its edges; returns the node data."""
        data = self.node(index)
        self._graph.remove_node(index)
        for hook in self._removal_hooks:
            hook(index)
        return data

    def node(self, index: int):
        try:
            return self._graph[index]
        except IndexError:
            raise NodeIndexError(index) from None

    def __contains__(self, index: int) -> bool:
        try:
            self._graph[index]
        except IndexError:
            return False
        return True

    def __len__(self) -> int:
        return self._graph.num_nodes()

    def node_indices(self) -> list[int]:
        return list(self._graph.node_indices())

    def _check(self, index: int) -> None:
        if index not in self:
            raise NodeIndexError(index)

    def children(self, index: int, edge_type: EdgeType) -> list[int]:
        """Targets of ``edge_type`` edges leaving ``index``, in index order."""
        self._check(index)
        return sorted({t for _, t, e in self._graph.out_edges(index) if e is edge_type})

    def parents(self, index: int, edge_type: EdgeType) -> list[int]:
        self._check(index)
        return sorted({s for s, _, e in self._graph.in_edges(index) if e is edge_type})

    def parent(self, index: int, edge_type: EdgeType = EdgeType.SYN) -> int | None:
        parents = self.parents(index, edge_type)
        return parents[0] if parents else None

    # ── Typed access ───────────────────────────────────────────────────

    def syn_item(self, index: int) -> SynItem:
        data = self.node(index)
        if not isinstance(data, SynItem):
            raise UnexpectedNodeTypeError(index, "syn item", type(data).__name__)
        return data

    def local_package(self, index: int) -> LocalPackage:
        data = self.node(index)
        if not isinstance(data, LocalPackage):
            raise UnexpectedNodeTypeError(index, "local package", type(data).__name__)
        return data

    def is_crate(self, index: int) -> bool:
        return isinstance(self.node(index), (BinCrate, LibCrate))

    def is_crate_or_module(self, index: int) -> bool:
        data = self.node(index)
        return isinstance(data, (BinCrate, LibCrate)) or (
            isinstance(data, SynItem) and data.is_module)

    def is_external(self, index: int) -> bool:
        return isinstance(self.node(index), (ExternalSupportedPackage, ExternalUnsupportedPackage))

    def is_use(self, index: int) -> bool:
        data = self.node(index)
        return isinstance(data, SynItem) and data.is_use

    def is_impl_block(self, index: int) -> bool:
        data = self.node(index)
        return type(data) is SynItem and data.kind == "impl"

    def is_inherent_impl_block(self, index: int) -> bool:
        return self.is_impl_block(index) and self.syn_item(index).info.trait_path is None

    def is_trait(self, index: int) -> bool:
        data = self.node(index)
        return type(data) is SynItem and data.kind == "trait"

    def is_impl_or_trait_item(self, index: int) -> bool:
        return isinstance(self.node(index), (SynImplItem, SynTraitItem))

    # ── Navigation ─────────────────────────────────────────────────────

    def iter_nodes_of(self, kind: type) -> Iterator[tuple[int, object]]:
        for index in self.node_indices():
            data = self._graph[index]
            if isinstance(data, kind):
                yield index, data

    def iter_local_packages(self) -> Iterator[tuple[int, LocalPackage]]:
        return self.iter_nodes_of(LocalPackage)

    def iter_crates(self) -> Iterator[tuple[int, BinCrate | LibCrate]]:
        """Bin crate of the challenge first, then library crates."""
        crates = list(self.iter_nodes_of((BinCrate, LibCrate)))
        crates.sort(key=lambda c: (not isinstance(c[1], BinCrate), c[0]))
        return iter(crates)

    def iter_lib_crates(self) -> Iterator[tuple[int, LibCrate]]:
        return self.iter_nodes_of(LibCrate)

    def challenge_bin_crate(self) -> int:
        for index in self.children(ROOT, EdgeType.CRATE):
            if isinstance(self.node(index), BinCrate):
                return index
        raise NodeIndexError(ROOT)

    def iter_syn_items(self, container: int) -> Iterator[int]:
        """All items below ``container`` following Syn edges, depth first."""
        stack = list(reversed(self.children(container, EdgeType.SYN)))
        while stack:
            index = stack.pop()
            yield index
            stack.extend(reversed(self.children(index, EdgeType.SYN)))

    def syn_ancestors(self, index: int) -> Iterator[int]:
        parent = self.parent(index, EdgeType.SYN)
        while parent is not None:
            yield parent
            parent = self.parent(parent, EdgeType.SYN)

    def module_of(self, index: int) -> int:
        """The crate or module whose namespace holds ``index``."""
        for ancestor in self.syn_ancestors(index):
            if self.is_crate_or_module(ancestor):
                return ancestor
        raise UnexpectedNodeTypeError(index, "item inside a crate", type(self.node(index)).__name__)

    def crate_of(self, index: int) -> int:
        if self.is_crate(index):
            return index
        for ancestor in self.syn_ancestors(index):
            if self.is_crate(ancestor):
                return ancestor
        raise UnexpectedNodeTypeError(index, "item inside a crate", type(self.node(index)).__name__)

    def package_of(self, crate: int) -> int:
        package = self.parent(crate, EdgeType.CRATE)
        if package is None:
            raise UnexpectedNodeTypeError(crate, "crate of a package", type(self.node(crate)).__name__)
        return package

    def parent_module(self, module: int) -> int | None:
        """Enclosing module of a module; None for a crate root."""
        if self.is_crate(module):
            return None
        return self.module_of(module)

    def is_descendant_or_same_module(self, index: int, module: int) -> bool:
        if index == module:
            return True
        return module in self.syn_ancestors(index)

    def impl_blocks_of(self, index: int) -> list[int]:
        return self.children(index, EdgeType.IMPLEMENTATION)

    def name_of(self, index: int) -> str:
        data = self.node(index)
        if isinstance(data, SynItem):
            return data.name or ""
        return getattr(data, "name", "")

    def verbose_name(self, index: int) -> str:
        data = self.node(index)
        if isinstance(data, SynImplItem):
            impl_block = self.parent(index, EdgeType.SYN)
            if impl_block is not None:
                return f"{self.verbose_name(impl_block)}::{data.verbose_name}"
        return data.verbose_name

    def canonical_path(self, index: int) -> list[str]:
        """Path of an item from the root of the fused crate.

        The challenge binary is the fused crate root; every library crate
        becomes module ``crate::<lib>``.
        """
        data = self.node(index)
        if isinstance(data, SynItem) and data.kind == "macro_rules" and data.info.macro_export:
            # exported macros live at the root of the fused crate
            return ["crate", data.name]
        segments: list[str] = []
        current = index
        while not self.is_crate(current):
            data = self.syn_item(current)
            if data.name is None:
                raise UnexpectedNodeTypeError(index, "named item", data.verbose_name)
            segments.append(data.name)
            current = self.parent(current, EdgeType.SYN)
            if current is None:
                raise UnexpectedNodeTypeError(index, "item inside a crate", data.verbose_name)
        crate = self.node(current)
        if isinstance(crate, LibCrate):
            segments.append(crate.name)
        segments.append("crate")
        segments.reverse()
        return segments

    def source_file_of(self, module: int) -> SourceFile | None:
        files = self.children(module, EdgeType.MODULE)
        return self.node(files[0]) if files else None

    # ── Required by challenge ──────────────────────────────────────────

    def is_required(self, index: int) -> bool:
        if index == ROOT:
            return True
        return bool(self.parents(index, EdgeType.REQUIRED_BY_CHALLENGE))

    def mark_required(self, index: int) -> bool:
        """Mark ``index`` as required by the challenge; True if newly marked."""
        if self.is_required(index):
            return False
        self.add_edge(ROOT, index, EdgeType.REQUIRED_BY_CHALLENGE)
        return True
