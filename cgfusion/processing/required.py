"""Mark everything the challenge binary needs, starting from ``main``."""

from __future__ import annotations

from collections import deque

from ..challenge_tree import EdgeType, PathResolver, Resolution, SynItem
from ..challenge_tree.models import TYPE_KINDS
from ..errors import EntryPointError
from .data import FusionData, Stage
from .impl_dialog import ImplDialogStage


class RequiredStage(Stage):
    """Sixth stage: add RequiredByChallenge edges from the challenge package."""

    def link_required_by_challenge(self) -> ImplDialogStage:
        data = self._consume()
        propagator = RequiredPropagator(data)
        propagator.seed()
        propagator.run()
        if data.options.verbose:
            required = sum(1 for i in data.tree.node_indices() if data.tree.is_required(i))
            print(f"Marked {required} node(s) as required by challenge")
        return ImplDialogStage(data, propagator)


class RequiredPropagator:
    """Fixed point over the reachability rules.

    Every node is expanded once; :meth:`require` queues newly required
    nodes, so the propagator can be resumed after decisions of the impl
    dialog added more nodes.
    """

    def __init__(self, data: FusionData):
        self.data = data
        self.tree = data.tree
        self.resolver = PathResolver(data.tree)
        self._queue: deque[int] = deque()
        self._expanded: set[int] = set()

    def seed(self) -> None:
        tree = self.tree
        bin_crate = tree.challenge_bin_crate()
        items = tree.children(bin_crate, EdgeType.SYN)
        if not any(tree.syn_item(i).kind == "fn" and tree.syn_item(i).name == "main"
                   for i in items):
            raise EntryPointError(
                f"No 'main' function in {tree.verbose_name(bin_crate)}."
            )
        self.require(bin_crate)
        for index in items:
            if not tree.is_use(index):
                self.require(index)

    def require(self, index: int) -> None:
        self.tree.mark_required(index)
        if index not in self._expanded:
            self._queue.append(index)

    def resume(self) -> None:
        """Queue every required node not expanded yet, then run."""
        for index in self.tree.node_indices():
            if self.tree.is_required(index) and index not in self._expanded:
                self._queue.append(index)
        self.run()

    def run(self) -> None:
        while self._queue:
            index = self._queue.popleft()
            if index in self._expanded or index not in self.tree:
                continue
            self._expanded.add(index)
            self._expand(index)

    # ── Rules ──────────────────────────────────────────────────────────

    def _expand(self, index: int) -> None:
        tree = self.tree
        if tree.is_crate(index):
            self.require(tree.package_of(index))
            self._expand_module(index)
            return
        data = tree.node(index)
        if not isinstance(data, SynItem):
            return
        for ancestor in tree.syn_ancestors(index):
            self.require(ancestor)
        if data.is_use:
            self._require_resolution(self.resolver.resolve_use(index), index)
            return
        if data.is_module:
            self._expand_module(index)
        for reference in data.info.references:
            self._require_resolution(self.resolver.resolve(index, reference.segments), index)
        for call in data.info.method_calls:
            if call.receiver == "self":
                self._require_self_method(index, call.name)
        if tree.is_impl_block(index):
            self._expand_impl_block(index)
        elif tree.is_trait(index):
            for item in tree.children(index, EdgeType.SYN):
                self.require(item)
            self._check_trait_impls(index)
        elif data.kind in TYPE_KINDS and type(data) is SynItem:
            self._check_trait_impls(index)

    def _require_resolution(self, resolution: Resolution, origin: int) -> None:
        for node in resolution.traversed:
            if node != origin:
                self.require(node)
        if resolution.is_external and resolution.external_path:
            crate_name = resolution.external_path[0]
            package = self.tree.package_of(self.tree.crate_of(origin))
            for dependency in self.tree.children(package, EdgeType.DEPENDENCY):
                if self.tree.is_external(dependency) and \
                        self.tree.name_of(dependency).replace("-", "_") == crate_name:
                    self.require(dependency)

    def _expand_module(self, module: int) -> None:
        """Items of a required module that are needed wherever they are used."""
        tree = self.tree
        for child in tree.children(module, EdgeType.SYN):
            data = tree.syn_item(child)
            if data.kind == "macro":
                self.require(child)
            elif data.is_use:
                resolution = self.resolver.resolve_use(child)
                if resolution.is_external:
                    self.require(child)
                elif resolution.is_local and (
                        tree.is_trait(resolution.target)
                        or data.info.use_paths[0].is_glob):
                    self.require(child)

    def _expand_impl_block(self, impl_block: int) -> None:
        tree = self.tree
        for owner in tree.parents(impl_block, EdgeType.IMPLEMENTATION):
            self.require(owner)
        if tree.syn_item(impl_block).info.is_trait_impl:
            for item in tree.children(impl_block, EdgeType.SYN):
                self.require(item)

    def _check_trait_impls(self, owner: int) -> None:
        """Require trait impls whose local trait and self type are both required."""
        tree = self.tree
        for impl_block in tree.impl_blocks_of(owner):
            if tree.is_required(impl_block) or not tree.syn_item(impl_block).info.is_trait_impl:
                continue
            owners = tree.parents(impl_block, EdgeType.IMPLEMENTATION)
            has_trait = any(tree.is_trait(o) for o in owners)
            has_type = any(not tree.is_trait(o) for o in owners)
            if has_trait and has_type and all(tree.is_required(o) for o in owners):
                self.require(impl_block)

    def _require_self_method(self, node: int, name: str) -> None:
        """``self.name(...)`` inside an impl or trait requires the matching items."""
        tree = self.tree
        for ancestor in tree.syn_ancestors(node):
            if tree.is_trait(ancestor):
                for item in tree.children(ancestor, EdgeType.SYN):
                    if tree.name_of(item) == name:
                        self.require(item)
                return
            if tree.is_impl_block(ancestor):
                types = [o for o in tree.parents(ancestor, EdgeType.IMPLEMENTATION)
                         if not tree.is_trait(o)]
                impl_blocks = [b for t in types for b in tree.impl_blocks_of(t)] or [ancestor]
                for impl_block in impl_blocks:
                    for item in tree.children(impl_block, EdgeType.SYN):
                        if tree.name_of(item) == name:
                            self.require(item)
                return
