"""The fusion pipeline.

Each stage consumes its predecessor::

    fused = (new_fusion(options)
             .add_challenge_dependencies()
             .add_src_files()
             .expand_use_statements()
             .expand_external_use_statements()
             .link_impl_blocks()
             .link_required_by_challenge()
             .run(oracle))
    print(fused.render())
"""

from __future__ import annotations

from ..config import FusionOptions
from .data import FusionData, Stage
from .dependencies import DependenciesStage
from .src_files import SrcFilesStage
from .usage import UsageStage, UseExpander
from .external_use import ExternalUseStage
from .impl_linking import ImplLinkingStage
from .required import RequiredStage, RequiredPropagator
from .impl_dialog import Candidate, Decision, ImplDialogStage, Oracle
from .forge import FusedChallenge


def new_fusion(options: FusionOptions) -> DependenciesStage:
    """First stage of a run over an empty challenge tree."""
    return DependenciesStage(FusionData(options.with_impl_config()))


def run(options: FusionOptions, oracle: Oracle | None = None) -> FusedChallenge:
    """Run every stage; undecided impl items are asked from ``oracle``."""
    return (
        new_fusion(options)
        .add_challenge_dependencies()
        .add_src_files()
        .expand_use_statements()
        .expand_external_use_statements()
        .link_impl_blocks()
        .link_required_by_challenge()
        .run(oracle)
    )


__all__ = [
    "FusionData", "Stage",
    "DependenciesStage", "SrcFilesStage", "UsageStage", "UseExpander",
    "ExternalUseStage", "ImplLinkingStage", "RequiredStage", "RequiredPropagator",
    "Candidate", "Decision", "ImplDialogStage", "Oracle", "FusedChallenge",
    "new_fusion", "run",
]
