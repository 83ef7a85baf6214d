"""Expand use groups and globs and link use items to their targets."""

from __future__ import annotations

from collections import deque

from ..challenge_tree import EdgeType, PathResolver, SynItem
from ..errors import MaxAttemptsExpandingUseStatementError, UseStatementsCouldNotBeParsedError
from ..parsers import ItemInfo, UsePath
from .data import FusionData, Stage
from .external_use import ExternalUseStage

# Items that never bind a name a glob could import.
_UNNAMED_KINDS = frozenset({"impl", "macro", "macro_rules", "extern_crate", "foreign_mod"})


def use_text(visibility: str, path: UsePath) -> str:
    prefix = "" if visibility == "private" else f"{visibility} "
    return f"{prefix}use {path.render()};"


def new_use_item(template: ItemInfo, path: UsePath) -> ItemInfo:
    """A single path use item carrying the visibility and attributes of ``template``."""
    return ItemInfo(
        kind="use",
        name=None,
        text=use_text(template.visibility, path),
        line_number=template.line_number,
        end_line=template.end_line,
        visibility=template.visibility,
        attributes=list(template.attributes),
        docs=list(template.docs),
        use_paths=[path],
    )


class UsageStage(Stage):
    """Third stage: every use statement ends as a single, linked path."""

    def expand_use_statements(self) -> ExternalUseStage:
        data = self._consume()
        UseExpander(data).expand()
        return ExternalUseStage(data)


class UseExpander:
    """Rewrites use items of the whole tree.

    Running it again on an expanded tree changes nothing.
    """

    def __init__(self, data: FusionData):
        self.data = data
        self.tree = data.tree
        self.resolver = PathResolver(data.tree)
        self.verbose = data.options.verbose

    def _use_items(self) -> list[int]:
        return [
            index
            for crate, _ in self.tree.iter_crates()
            for index in self.tree.iter_syn_items(crate)
            if self.tree.is_use(index)
        ]

    def _statement(self, use_index: int) -> str:
        return " ".join(self.tree.syn_item(use_index).info.text.split())

    def expand(self) -> None:
        for use_index in self._use_items():
            info = self.tree.syn_item(use_index).info
            if info.is_use_group or len(info.use_paths) > 1:
                self._expand_group(use_index)
        self._expand_globs()
        self._link_uses()

    # ── Groups ─────────────────────────────────────────────────────────

    def _replace(self, use_index: int, paths: list[UsePath]) -> list[int]:
        """Replace a use item by one use item per path, keeping its position."""
        module = self.tree.module_of(use_index)
        template = self.tree.syn_item(use_index).info
        new_indices = []
        for path in paths:
            index = self.tree.add_node(SynItem(new_use_item(template, path)))
            self.tree.add_edge(module, index, EdgeType.SYN)
            new_indices.append(index)
        # new items take the position of the old one before it is forgotten
        self.data.replace_in_item_order(module, use_index, new_indices)
        self.tree.remove_node(use_index)
        return new_indices

    def _expand_group(self, use_index: int) -> None:
        info = self.tree.syn_item(use_index).info
        if self.verbose:
            module = self.tree.verbose_name(self.tree.module_of(use_index))
            print(f"Expanding use group statement of {module}:\n  {self._statement(use_index)}")
        self._replace(use_index, info.use_paths)

    # ── Globs ──────────────────────────────────────────────────────────

    def _is_visible(self, item: int, importer: int) -> bool:
        """Whether ``item`` may be imported by a glob in module ``importer``."""
        owner = self.tree.module_of(item)
        if self.tree.is_descendant_or_same_module(importer, owner):
            return True
        visibility = self.tree.syn_item(item).info.visibility
        if visibility == "pub":
            return True
        if visibility == "pub(crate)" or visibility.startswith("pub(in"):
            return self.tree.crate_of(item) == self.tree.crate_of(importer)
        if visibility == "pub(super)":
            parent = self.tree.parent_module(owner)
            return parent is not None and self.tree.is_descendant_or_same_module(importer, parent)
        return False

    def _expand_globs(self) -> None:
        queue = deque(
            index for index in self._use_items()
            if self.tree.syn_item(index).info.use_paths[0].is_glob
        )
        attempts: dict[int, int] = {}
        max_attempts = self.data.options.glob_expansion_max_attempts
        while queue:
            use_index = queue.popleft()
            if not self._expand_glob(use_index):
                continue
            attempts[use_index] = attempts.get(use_index, 0) + 1
            if attempts[use_index] >= max_attempts:
                raise MaxAttemptsExpandingUseStatementError(
                    self._statement(use_index),
                    self.tree.verbose_name(self.tree.module_of(use_index)),
                )
            queue.append(use_index)

    def _keeps_glob(self, use_index: int) -> bool | None:
        """True for globs that stay as they are (external or enum globs).

        None while the glob's path does not resolve yet.
        """
        resolution = self.resolver.resolve_use(use_index)
        if resolution.is_unresolved:
            return None
        if resolution.is_external:
            return True
        return not self.tree.is_crate_or_module(resolution.target)

    def _expand_glob(self, use_index: int) -> bool:
        """Expand one glob; returns True if expansion is blocked for now."""
        tree = self.tree
        module = tree.module_of(use_index)
        glob = tree.syn_item(use_index).info
        resolution = self.resolver.resolve_use(use_index)
        if resolution.is_unresolved:
            return True
        if resolution.is_external:
            return False
        target = resolution.target
        if not tree.is_crate_or_module(target):
            # enum glob: keep it, with a canonical prefix
            path = UsePath(tree.canonical_path(target), "glob")
            glob.use_paths = [path]
            glob.text = use_text(glob.visibility, path)
            return False
        if target == module:
            tree.remove_node(use_index)
            return False

        names: list[str] = []
        for child in self.data.ordered_children(target):
            data = tree.node(child)
            if not isinstance(data, SynItem) or not self._is_visible(child, module):
                continue
            if data.is_use:
                path = data.info.use_paths[0]
                resolved = self.resolver.resolve_use(child)
                if path.is_glob:
                    if resolved.is_local and resolved.target == module:
                        continue
                    keeps = self._keeps_glob(child)
                    if keeps is None or not keeps:
                        # expand the other glob first
                        return True
                    print(f"  Warning: use glob '{self._statement(use_index)}' in "
                          f"{tree.verbose_name(module)} ignores glob "
                          f"'{self._statement(child)}' of {tree.verbose_name(target)}")
                    continue
                if resolved.is_unresolved:
                    return True
                if resolved.is_local and tree.parent(resolved.target) == module:
                    continue
                name = path.imported_name
            else:
                if data.kind in _UNNAMED_KINDS:
                    continue
                name = data.name
            if name and name not in names:
                names.append(name)

        # names declared or imported by the owning module shadow glob imports
        taken = set()
        for child in tree.children(module, EdgeType.SYN):
            if child == use_index:
                continue
            data = tree.node(child)
            if data.is_use:
                taken.update(p.imported_name for p in data.info.use_paths if p.imported_name)
            elif data.name:
                taken.add(data.name)
        names = [n for n in names if n not in taken]

        if self.verbose:
            if names:
                print(f"Expanding use glob statement of {tree.verbose_name(module)}:\n"
                      f"  {self._statement(use_index)}")
            else:
                print(f"No visible items for use glob statement of "
                      f"{tree.verbose_name(module)}:\n  {self._statement(use_index)}")
        prefix = tree.canonical_path(target)
        self._replace(use_index, [UsePath(prefix + [n]) for n in names])
        return False

    # ── Names ──────────────────────────────────────────────────────────

    def _link_uses(self) -> None:
        unresolved = []
        for use_index in self._use_items():
            info = self.tree.syn_item(use_index).info
            path = info.use_paths[0]
            if path.is_glob:
                if self._keeps_glob(use_index) is None:
                    unresolved.append(self._statement(use_index))
                continue
            resolution = self.resolver.resolve_use(use_index)
            if resolution.is_unresolved:
                unresolved.append(self._statement(use_index))
                continue
            if resolution.is_external:
                continue
            target = resolution.target
            canonical = self.tree.canonical_path(target)
            if resolution.variant is not None:
                canonical.append(resolution.variant)
            if canonical != path.segments:
                path.segments = canonical
                info.text = use_text(info.visibility, path)
            self.tree.add_edge_once(use_index, target, EdgeType.USE)
        if unresolved:
            raise UseStatementsCouldNotBeParsedError(unresolved)
