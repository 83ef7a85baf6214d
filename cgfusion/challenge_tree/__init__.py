"""Typed graph of a challenge: packages, crates, modules and items."""

from .models import (
    EdgeType, LocalPackage, ExternalSupportedPackage, ExternalUnsupportedPackage,
    BinCrate, LibCrate, SourceFile, SynItem, SynImplItem, SynTraitItem,
    impl_block_name,
)
from .tree import ChallengeTree, ROOT
from .walkers import BfsByEdgeType, BfsModuleNameSpace
from .resolver import (
    PathResolver, Resolution, ResolutionKind, resolve_path, resolve_path_strict,
)

__all__ = [
    "EdgeType", "LocalPackage", "ExternalSupportedPackage", "ExternalUnsupportedPackage",
    "BinCrate", "LibCrate", "SourceFile", "SynItem", "SynImplItem", "SynTraitItem",
    "impl_block_name",
    "ChallengeTree", "ROOT",
    "BfsByEdgeType", "BfsModuleNameSpace",
    "PathResolver", "Resolution", "ResolutionKind", "resolve_path", "resolve_path_strict",
]
