"""Run options and the impl item config file."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from pathlib import Path

from .errors import MetadataError
from .parsers.manifest import _load_toml

# Crates available on CodinGame's Rust runner.
CODINGAME_SUPPORTED_CRATES: tuple[str, ...] = (
    "chrono", "itertools", "libc", "rand", "regex", "time",
)

PLATFORMS = ("codingame", "other")


@dataclass
class FusionOptions:
    """Options of one fusion run.

    ``input`` names the binary target; ``"main"`` selects ``src/main.rs``.
    Impl item names are ``name``, ``name@<impl block>`` or ``*@<impl block>``.
    """
    manifest_path: Path = Path("Cargo.toml")
    input: str = "main"
    platform: str = "codingame"
    other_supported_crates: list[str] = field(default_factory=list)
    force: bool = False
    glob_expansion_max_attempts: int = 5
    process_all_impl_items: bool | None = None
    include_impl_items: list[str] = field(default_factory=list)
    exclude_impl_items: list[str] = field(default_factory=list)
    include_impl_blocks: list[str] = field(default_factory=list)
    exclude_impl_blocks: list[str] = field(default_factory=list)
    impl_item_toml: Path | None = None
    strip_doc_comments: bool = False
    verbose: bool = False

    def __post_init__(self):
        self.manifest_path = Path(self.manifest_path)
        if self.platform not in PLATFORMS:
            raise ValueError(
                f"Unknown platform '{self.platform}', expected one of {PLATFORMS}"
            )
        if self.glob_expansion_max_attempts < 1:
            raise ValueError("glob_expansion_max_attempts must be at least 1")

    @property
    def supported_crates(self) -> tuple[str, ...]:
        if self.platform == "codingame":
            return CODINGAME_SUPPORTED_CRATES
        return tuple(self.other_supported_crates)

    def with_impl_config(self) -> FusionOptions:
        """Return a copy with the entries of ``impl_item_toml`` merged in."""
        if self.impl_item_toml is None:
            return self
        config = load_impl_config(self.impl_item_toml)
        return replace(
            self,
            include_impl_items=self.include_impl_items + config.include_impl_items,
            exclude_impl_items=self.exclude_impl_items + config.exclude_impl_items,
            include_impl_blocks=self.include_impl_blocks + config.include_impl_blocks,
            exclude_impl_blocks=self.exclude_impl_blocks + config.exclude_impl_blocks,
        )


@dataclass
class ImplConfig:
    include_impl_items: list[str] = field(default_factory=list)
    exclude_impl_items: list[str] = field(default_factory=list)
    include_impl_blocks: list[str] = field(default_factory=list)
    exclude_impl_blocks: list[str] = field(default_factory=list)


def load_impl_config(path: Path) -> ImplConfig:
    """Read ``[impl_items]`` and ``[impl_blocks]`` include/exclude lists."""
    path = Path(path)
    if not path.is_file():
        raise MetadataError(f"Impl item config not found: {path}")
    data = _load_toml(path)
    items = data.get("impl_items", {})
    blocks = data.get("impl_blocks", {})
    return ImplConfig(
        include_impl_items=list(items.get("include", [])),
        exclude_impl_items=list(items.get("exclude", [])),
        include_impl_blocks=list(blocks.get("include", [])),
        exclude_impl_blocks=list(blocks.get("exclude", [])),
    )


def normalize_impl_name(name: str) -> str:
    """Drop all whitespace, so names compare independent of formatting."""
    return "".join(name.split())
