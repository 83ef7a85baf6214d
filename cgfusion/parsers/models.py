"""Data models for parsed Rust items."""

from dataclasses import dataclass, field
from pathlib import Path


@dataclass
class Reference:
    """A path written in the code of an item, e.g. ``crate::a::Foo``."""
    segments: list[str]
    start: int                 # byte offset relative to the owning item text
    end: int

    @property
    def path(self) -> str:
        return "::".join(self.segments)


@dataclass
class MethodCall:
    receiver: str              # source text of the receiver, e.g. "self"
    name: str


@dataclass
class UsePath:
    """One flat path of a use declaration."""
    segments: list[str]
    kind: str = "name"         # "name" | "rename" | "glob"
    rename: str | None = None

    @property
    def is_glob(self) -> bool:
        return self.kind == "glob"

    @property
    def imported_name(self) -> str | None:
        """Name the path binds in the owning module (None for globs and `_`)."""
        if self.kind == "glob":
            return None
        if self.kind == "rename":
            return None if self.rename == "_" else self.rename
        if self.segments and self.segments[-1] == "self" and len(self.segments) > 1:
            return self.segments[-2]
        return self.segments[-1] if self.segments else None

    def render(self) -> str:
        path = "::".join(self.segments)
        if self.kind == "glob":
            return f"{path}::*" if path else "*"
        if self.kind == "rename":
            return f"{path} as {self.rename}"
        return path


@dataclass
class ItemInfo:
    """A single parsed item: fn, struct, enum, impl, use, mod and so on.

    ``text`` is the item's own source text; outer attributes and doc
    comments are kept apart in ``attributes`` and ``docs``.  Containers
    (impl, trait, inline mod) keep their nested items in ``items`` and the
    text before their body in ``header``.
    """
    kind: str                  # "fn" | "struct" | "enum" | "union" | "trait" | "impl" | "const"
                               # | "static" | "type" | "use" | "mod" | "macro_rules" | "macro"
                               # | "extern_crate" | "foreign_mod"
    name: str | None
    text: str
    line_number: int
    end_line: int
    visibility: str = "private"  # "pub" | "pub(crate)" | "pub(super)" | "pub(in ...)" | "private"
    attributes: list[str] = field(default_factory=list)
    docs: list[str] = field(default_factory=list)
    references: list[Reference] = field(default_factory=list)
    method_calls: list[MethodCall] = field(default_factory=list)
    identifiers: set[str] = field(default_factory=set)
    # containers
    header: str | None = None
    items: list["ItemInfo"] = field(default_factory=list)
    has_body: bool = False     # mod with inline body
    # use declarations
    use_paths: list[UsePath] = field(default_factory=list)
    is_use_group: bool = False
    local_uses: list[UsePath] = field(default_factory=list)  # uses inside fn bodies
    # impl blocks
    self_type: list[str] | None = None
    trait_path: list[str] | None = None
    type_parameters: str | None = None
    generic_names: list[str] = field(default_factory=list)
    # enums, type aliases, macros
    variants: list[str] = field(default_factory=list)
    aliased_type: list[str] | None = None
    macro_export: bool = False

    @property
    def is_trait_impl(self) -> bool:
        return self.kind == "impl" and self.trait_path is not None

    @property
    def path_attribute(self) -> str | None:
        """Value of ``#[path = "..."]`` on a module declaration."""
        for attr in self.attributes:
            inner = attr.strip()[2:-1].strip()
            if inner.startswith("path") and "=" in inner:
                key, _, value = inner.partition("=")
                if key.strip() == "path":
                    return value.strip().strip('"')
        return None


@dataclass
class ParseResult:
    """Items of one source file plus its file level attributes."""
    path: Path
    items: list[ItemInfo] = field(default_factory=list)
    inner_attributes: list[str] = field(default_factory=list)
    inner_docs: list[str] = field(default_factory=list)
    shebang: str | None = None


# ── Package metadata ──────────────────────────────────────────────────


@dataclass
class DependencyInfo:
    name: str
    version_spec: str | None = None
    path: Path | None = None       # local path dependency, absolute
    package: str | None = None     # renamed dependency: `foo = { package = "bar" }`
    is_dev: bool = False

    @property
    def is_local(self) -> bool:
        return self.path is not None


@dataclass
class TargetInfo:
    """A bin or lib target of a package."""
    name: str
    path: Path
    kind: str                  # "bin" | "lib"


@dataclass
class PackageInfo:
    """Everything cgfusion reads from one Cargo.toml."""
    name: str
    manifest_path: Path
    root: Path
    version: str | None = None
    edition: str | None = None
    dependencies: list[DependencyInfo] = field(default_factory=list)
    bins: list[TargetInfo] = field(default_factory=list)
    lib: TargetInfo | None = None
    workspace_members: list[Path] = field(default_factory=list)  # member manifest paths

    def bin_target(self, name: str) -> TargetInfo | None:
        """Return the bin target called ``name``; ``"main"`` means src/main.rs."""
        if name == "main":
            for target in self.bins:
                if target.path == self.root / "src" / "main.rs":
                    return target
        for target in self.bins:
            if target.name == name:
                return target
        return None
