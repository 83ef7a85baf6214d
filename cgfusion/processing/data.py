"""State shared by the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from ..challenge_tree import ChallengeTree, EdgeType, PathResolver, Resolution
from ..config import FusionOptions
from ..errors import StageConsumedError


@dataclass
class FusionData:
    """The tree and side tables of one run, owned by exactly one stage at a time."""
    options: FusionOptions
    tree: ChallengeTree = field(default_factory=ChallengeTree)
    # container (crate, mod, impl, trait) -> its Syn children in declaration order
    item_order: dict[int, list[int]] = field(default_factory=dict)

    def __post_init__(self):
        self.tree.on_remove(self._forget)

    def _forget(self, index: int) -> None:
        self.item_order.pop(index, None)
        for order in self.item_order.values():
            if index in order:
                order.remove(index)

    def ordered_children(self, container: int) -> list[int]:
        """Syn children of ``container`` in declaration order."""
        order = self.item_order.get(container)
        if order is None:
            return self.tree.children(container, EdgeType.SYN)
        return list(order)

    def replace_in_item_order(self, container: int, old: int, new: list[int]) -> None:
        order = self.item_order.setdefault(container, [])
        if old in order:
            position = order.index(old)
            order[position:position + 1] = new
        else:
            order.extend(new)


class Stage:
    """One step of the fusion pipeline.

    A stage hands its :class:`FusionData` to the next stage exactly once;
    afterwards every use raises :class:`StageConsumedError`.
    """

    def __init__(self, data: FusionData):
        self._data: FusionData | None = data

    @property
    def data(self) -> FusionData:
        if self._data is None:
            raise StageConsumedError(type(self).__name__)
        return self._data

    @property
    def tree(self) -> ChallengeTree:
        return self.data.tree

    @property
    def options(self) -> FusionOptions:
        return self.data.options

    def _consume(self) -> FusionData:
        data = self.data
        self._data = None
        return data

    # ── Query surface ──────────────────────────────────────────────────

    def is_required(self, node: int) -> bool:
        return self.tree.is_required(node)

    def resolve_path(self, node: int, segments: list[str] | str) -> Resolution:
        if isinstance(segments, str):
            segments = segments.split("::")
        return PathResolver(self.tree).resolve(node, segments)

    def iter_children(self, node: int, edge_type: EdgeType) -> Iterator[int]:
        if edge_type is EdgeType.SYN:
            return iter(self.data.ordered_children(node))
        return iter(self.tree.children(node, edge_type))
