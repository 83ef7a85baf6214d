"""Breadth-first walkers over the challenge tree.

Walkers are single-use iterators: once exhausted, construct a new one to
walk again.
"""

from __future__ import annotations

from collections import deque

from .models import EdgeType
from .tree import ChallengeTree


class BfsByEdgeType:
    """Breadth-first walk from ``start`` along edges of one type.

    Yields the start node first; every node is yielded at most once.
    """

    def __init__(self, tree: ChallengeTree, start: int, edge_type: EdgeType):
        self.tree = tree
        self.edge_type = edge_type
        self._queue: deque[int] = deque([start])
        self._discovered: set[int] = {start}

    def _expand(self, index: int) -> bool:
        return True

    def __iter__(self):
        return self

    def __next__(self) -> int:
        if not self._queue:
            raise StopIteration
        index = self._queue.popleft()
        if self._expand(index):
            for child in self.tree.children(index, self.edge_type):
                if child not in self._discovered:
                    self._discovered.add(child)
                    self._queue.append(child)
        return index


class BfsModuleNameSpace(BfsByEdgeType):
    """Breadth-first walk over the names visible inside a module.

    Syn successors are expanded only from the start module itself and from
    inherent impl blocks, so nested modules, traits and trait impls are
    visited but never entered.
    """

    def __init__(self, tree: ChallengeTree, start: int):
        super().__init__(tree, start, EdgeType.SYN)
        self.start = start

    def _expand(self, index: int) -> bool:
        return index == self.start or self.tree.is_inherent_impl_block(index)
