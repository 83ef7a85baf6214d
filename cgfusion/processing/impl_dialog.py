"""Decide about impl items reachability could not settle.

Methods called on values (``go.unused()``) and trait impls of local types
are not found by path resolution.  They end up here as candidates, and are
decided by the run options, by an interactive oracle, or by the caller
through :meth:`ImplDialogStage.decide`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable

from ..challenge_tree import EdgeType, SynItem
from ..challenge_tree.models import TYPE_KINDS
from ..config import normalize_impl_name
from ..errors import PendingDecisionsError, UserCanceledDialogError
from .data import FusionData, Stage
from .forge import FusedChallenge


class Decision(Enum):
    INCLUDE_ITEM = "include item"
    EXCLUDE_ITEM = "exclude item"
    INCLUDE_ALL_ITEMS_OF_IMPL_BLOCK = "include all items of impl block"
    EXCLUDE_ALL_ITEMS_OF_IMPL_BLOCK = "exclude all items of impl block"
    QUIT = "quit"


@dataclass
class Candidate:
    """An impl item, or a whole trait impl block, waiting for a decision."""
    index: int
    name: str                  # item name, or the impl block name for blocks
    impl_block: int
    impl_block_name: str
    is_impl_block: bool = False
    possible_usage: list[str] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        if self.is_impl_block:
            return self.impl_block_name
        return f"{self.name}@{self.impl_block_name}"


Oracle = Callable[[Candidate], Decision]


class ImplDialogStage(Stage):
    """Seventh stage: settle every pending impl candidate, then fuse."""

    def __init__(self, data: FusionData, propagator=None):
        super().__init__(data)
        if propagator is None:
            from .required import RequiredPropagator
            propagator = RequiredPropagator(data)
        self._propagator = propagator
        self._excluded: set[int] = set()

    # ── Candidates ─────────────────────────────────────────────────────

    def _owners(self) -> list[int]:
        """Required local types and traits, the owners of impl blocks."""
        tree = self.tree
        owners = []
        for index in tree.node_indices():
            data = tree.node(index)
            if type(data) is SynItem and (data.kind in TYPE_KINDS or data.kind == "trait") \
                    and tree.is_required(index):
                owners.append(index)
        return owners

    def pending(self) -> list[Candidate]:
        """Undecided candidates, in tree order."""
        tree = self.tree
        candidates = []
        seen = set()
        for owner in self._owners():
            for impl_block in tree.impl_blocks_of(owner):
                if impl_block in self._excluded:
                    continue
                info = tree.syn_item(impl_block).info
                block_name = tree.verbose_name(impl_block)
                if info.is_trait_impl:
                    if not tree.is_required(impl_block) and impl_block not in seen:
                        seen.add(impl_block)
                        candidates.append(Candidate(
                            index=impl_block, name=block_name, impl_block=impl_block,
                            impl_block_name=block_name, is_impl_block=True,
                            possible_usage=self._possible_usage(
                                [tree.name_of(i) for i in tree.children(impl_block, EdgeType.SYN)]),
                        ))
                    continue
                for item in self.data.ordered_children(impl_block):
                    if tree.is_required(item) or item in self._excluded or item in seen:
                        continue
                    seen.add(item)
                    name = tree.name_of(item)
                    candidates.append(Candidate(
                        index=item, name=name, impl_block=impl_block,
                        impl_block_name=block_name,
                        possible_usage=self._possible_usage([name]),
                    ))
        return candidates

    def _possible_usage(self, names: list[str]) -> list[str]:
        """Required items whose code mentions one of ``names``."""
        tree = self.tree
        names = {n for n in names if n}
        usage = []
        for index in tree.node_indices():
            data = tree.node(index)
            if not isinstance(data, SynItem) or data.is_module or data.kind == "impl":
                continue
            if tree.is_required(index) and names & data.info.identifiers:
                usage.append(tree.verbose_name(index))
        return usage

    # ── Decisions ──────────────────────────────────────────────────────

    def decide(self, candidate: Candidate, decision: Decision) -> None:
        tree = self.tree
        if decision is Decision.QUIT:
            raise UserCanceledDialogError()
        if decision is Decision.INCLUDE_ITEM:
            self._propagator.require(candidate.index)
        elif decision is Decision.EXCLUDE_ITEM:
            self._excluded.add(candidate.index)
        elif decision is Decision.INCLUDE_ALL_ITEMS_OF_IMPL_BLOCK:
            self._propagator.require(candidate.impl_block)
            for item in tree.children(candidate.impl_block, EdgeType.SYN):
                self._propagator.require(item)
        elif decision is Decision.EXCLUDE_ALL_ITEMS_OF_IMPL_BLOCK:
            self._excluded.add(candidate.impl_block)
            self._excluded.update(tree.children(candidate.impl_block, EdgeType.SYN))
        if self.options.verbose:
            print(f"  {decision.value}: {candidate.display_name}")
        self._propagator.resume()

    def _decision_from_options(self, candidate: Candidate) -> Decision | None:
        options = self.options
        block = normalize_impl_name(candidate.impl_block_name)
        if candidate.is_impl_block:
            item_keys = {f"*@{block}"}
        else:
            name = normalize_impl_name(candidate.name)
            item_keys = {name, f"{name}@{block}", f"*@{block}"}
        include = {normalize_impl_name(n) for n in options.include_impl_items}
        exclude = {normalize_impl_name(n) for n in options.exclude_impl_items}
        include_blocks = {normalize_impl_name(n) for n in options.include_impl_blocks}
        exclude_blocks = {normalize_impl_name(n) for n in options.exclude_impl_blocks}
        if item_keys & include or block in include_blocks:
            return Decision.INCLUDE_ITEM
        if item_keys & exclude or block in exclude_blocks:
            return Decision.EXCLUDE_ITEM
        if options.process_all_impl_items is True:
            return Decision.INCLUDE_ITEM
        if options.process_all_impl_items is False:
            return Decision.EXCLUDE_ITEM
        return None

    def resolve_with_options(self) -> list[Candidate]:
        """Decide every candidate the options cover; returns what is left."""
        undecided: set[int] = set()
        while True:
            progress = False
            for candidate in self.pending():
                if candidate.index in undecided:
                    continue
                decision = self._decision_from_options(candidate)
                if decision is None:
                    undecided.add(candidate.index)
                    continue
                self.decide(candidate, decision)
                progress = True
                # including items may change the candidates
                break
            if not progress:
                return self.pending()

    def run(self, oracle: Oracle | None = None) -> FusedChallenge:
        """Apply the options, ask ``oracle`` about the rest, then fuse."""
        remaining = self.resolve_with_options()
        if oracle is not None:
            while remaining:
                candidate = remaining[0]
                self.decide(candidate, oracle(candidate))
                remaining = self.pending()
        return self.finish()

    def finish(self) -> FusedChallenge:
        pending = self.pending()
        if pending:
            raise PendingDecisionsError([c.display_name for c in pending])
        return FusedChallenge(self._consume())
