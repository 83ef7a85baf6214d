"""Rewrite use items that reach an external crate through local re-exports."""

from __future__ import annotations

from ..challenge_tree import PathResolver
from ..parsers import UsePath
from .data import Stage
from .impl_linking import ImplLinkingStage


class ExternalUseStage(Stage):
    """Fourth stage: external uses name their crate directly.

    ``use super::fmt;`` where the parent module holds ``use std::fmt;``
    becomes ``use std::fmt;``, so the use keeps working wherever the item
    ends up in the fused file.
    """

    def expand_external_use_statements(self) -> ImplLinkingStage:
        data = self._consume()
        tree = data.tree
        resolver = PathResolver(tree)
        rewritten = 0
        for crate, _ in tree.iter_crates():
            for index in list(tree.iter_syn_items(crate)):
                if not tree.is_use(index):
                    continue
                info = tree.syn_item(index).info
                path = info.use_paths[0]
                if not path.segments or path.segments[0] in resolver.external_names(index):
                    continue
                resolution = resolver.resolve_use(index)
                if not resolution.is_external:
                    continue
                new_path = UsePath(list(resolution.external_path), path.kind, path.rename)
                if path.kind == "name" and new_path.imported_name != path.imported_name:
                    # keep the name the module imported
                    new_path = UsePath(new_path.segments, "rename", path.imported_name)
                if data.options.verbose:
                    print(f"Rewriting external use '{path.render()}' of "
                          f"{tree.verbose_name(tree.module_of(index))} to '{new_path.render()}'")
                info.use_paths = [new_path]
                prefix = "" if info.visibility == "private" else f"{info.visibility} "
                info.text = f"{prefix}use {new_path.render()};"
                rewritten += 1
        if data.options.verbose:
            print(f"  {rewritten} external use statement(s) rewritten")
        return ImplLinkingStage(data)
