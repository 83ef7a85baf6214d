"""Link impl blocks to the local types and traits they implement."""

from __future__ import annotations

from ..challenge_tree import EdgeType, PathResolver
from ..challenge_tree.models import TYPE_KINDS
from .data import Stage
from .required import RequiredStage


class ImplLinkingStage(Stage):
    """Fifth stage: add Implementation edges type -> impl and trait -> impl."""

    def link_impl_blocks(self) -> RequiredStage:
        data = self._consume()
        tree = data.tree
        resolver = PathResolver(tree)
        linked = 0
        for crate, _ in tree.iter_crates():
            for index in list(tree.iter_syn_items(crate)):
                if not tree.is_impl_block(index):
                    continue
                info = tree.syn_item(index).info
                if info.self_type is not None:
                    target = self._local_item(resolver, index, info.self_type, TYPE_KINDS)
                    if target is not None:
                        linked += tree.add_edge_once(target, index, EdgeType.IMPLEMENTATION)
                    elif data.options.verbose:
                        print(f"  No local type for '{tree.verbose_name(index)}'")
                if info.trait_path is not None:
                    target = self._local_item(resolver, index, info.trait_path, {"trait"})
                    if target is not None:
                        linked += tree.add_edge_once(target, index, EdgeType.IMPLEMENTATION)
        if data.options.verbose:
            print(f"Linked {linked} impl block(s) to local types and traits")
        return RequiredStage(data)

    @staticmethod
    def _local_item(resolver: PathResolver, impl_block: int, segments: list[str],
                    kinds) -> int | None:
        resolution = resolver.resolve(impl_block, segments)
        if not resolution.is_local or resolution.variant is not None:
            return None
        data = resolver.tree.node(resolution.target)
        if getattr(data, "kind", None) not in kinds:
            return None
        return resolution.target
