"""cgfusion - fuse a Rust challenge binary and its local libraries into one file."""

__version__ = "0.1.0"

from .config import FusionOptions, load_impl_config
from .errors import CgFusionError
from .processing import Candidate, Decision, FusedChallenge, new_fusion, run

__all__ = [
    "__version__",
    "FusionOptions",
    "load_impl_config",
    "CgFusionError",
    "Candidate",
    "Decision",
    "FusedChallenge",
    "new_fusion",
    "run",
]
