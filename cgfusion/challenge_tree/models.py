"""Node and edge types of the challenge tree."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from ..parsers.models import ItemInfo, PackageInfo


class EdgeType(Enum):
    DEPENDENCY = "Dependency"                 # package -> package
    CRATE = "Crate"                           # package -> bin/lib crate
    SYN = "Syn"                               # container -> item
    MODULE = "Module"                         # crate or mod item -> source file
    USE = "Use"                               # use item -> item it names
    IMPLEMENTATION = "Implementation"         # type or trait -> impl block
    REQUIRED_BY_CHALLENGE = "RequiredByChallenge"


# Labels used in verbose names, e.g. "Go (Struct)".
KIND_LABELS = {
    "fn": "Fn",
    "struct": "Struct",
    "enum": "Enum",
    "union": "Union",
    "trait": "Trait",
    "impl": "Impl",
    "const": "Const",
    "static": "Static",
    "type": "Type",
    "use": "Use",
    "mod": "Mod",
    "macro_rules": "Macro",
    "macro": "Macro Call",
    "extern_crate": "Extern Crate",
    "foreign_mod": "Foreign Mod",
}

# Items that introduce a type other items can implement.
TYPE_KINDS = frozenset({"struct", "enum", "union", "type"})


@dataclass
class LocalPackage:
    name: str
    manifest_path: Path
    root: Path
    metadata: PackageInfo
    is_challenge: bool = False

    @property
    def verbose_name(self) -> str:
        return f"{self.name} (local package)"


@dataclass
class ExternalSupportedPackage:
    name: str

    @property
    def verbose_name(self) -> str:
        return f"{self.name} (supported package)"


@dataclass
class ExternalUnsupportedPackage:
    name: str

    @property
    def verbose_name(self) -> str:
        return f"{self.name} (unsupported package)"


@dataclass
class BinCrate:
    name: str
    path: Path

    @property
    def verbose_name(self) -> str:
        return f"{self.name} (binary crate)"


@dataclass
class LibCrate:
    name: str
    path: Path

    @property
    def verbose_name(self) -> str:
        return f"{self.name} (library crate)"


@dataclass
class SourceFile:
    path: Path
    inner_attributes: list[str] = field(default_factory=list)
    inner_docs: list[str] = field(default_factory=list)
    shebang: str | None = None

    @property
    def verbose_name(self) -> str:
        return f"{self.path.name} (source file)"


@dataclass
class SynItem:
    """A parsed item living in a crate or module."""
    info: ItemInfo

    @property
    def kind(self) -> str:
        return self.info.kind

    @property
    def name(self) -> str | None:
        return self.info.name

    @property
    def is_module(self) -> bool:
        return self.info.kind == "mod"

    @property
    def is_use(self) -> bool:
        return self.info.kind == "use"

    @property
    def verbose_name(self) -> str:
        if self.info.kind == "impl":
            return impl_block_name(self.info)
        if self.info.kind == "use" and len(self.info.use_paths) == 1:
            name = self.info.use_paths[0].imported_name or self.info.use_paths[0].render()
            return f"{name} (Use)"
        label = KIND_LABELS.get(self.info.kind, self.info.kind)
        return f"{self.info.name or '<unnamed>'} ({label})"


@dataclass
class SynImplItem(SynItem):
    """An item inside an impl block."""

    @property
    def verbose_name(self) -> str:
        label = KIND_LABELS.get(self.info.kind, self.info.kind)
        return f"{self.info.name or '<unnamed>'} (Impl {label})"


@dataclass
class SynTraitItem(SynItem):
    """An item inside a trait declaration."""

    @property
    def verbose_name(self) -> str:
        label = KIND_LABELS.get(self.info.kind, self.info.kind)
        return f"{self.info.name or '<unnamed>'} (Trait {label})"


CrateNode = BinCrate | LibCrate
PackageNode = LocalPackage | ExternalSupportedPackage | ExternalUnsupportedPackage


def impl_block_name(info: ItemInfo) -> str:
    """Readable name of an impl block, e.g. ``impl<T: Copy> Display for Go<T>``."""
    text = info.header if info.header is not None else info.text
    text = text.strip()
    if text.endswith("{"):
        text = text[:-1]
    return " ".join(text.split())
