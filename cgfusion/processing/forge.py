"""Render the required items of all crates as one source file.

The challenge binary becomes the root of the fused crate, and every local
library crate becomes a ``pub mod <lib> { ... }`` block after it.  Paths
written in library code are rewritten so they still point to the same
items from inside that module.
"""

from __future__ import annotations

from ..challenge_tree import EdgeType, LibCrate, PathResolver, SynItem
from ..parsers import Reference
from .data import FusionData, Stage


class FusedChallenge(Stage):
    """Final stage: read only access to the fused result."""

    def __init__(self, data: FusionData):
        super().__init__(data)
        self._resolver = PathResolver(data.tree)
        self._lib_names = {crate.name for _, crate in data.tree.iter_lib_crates()}

    def retained_items(self) -> list[int]:
        """Required items in output order: bin crate first, then library crates."""
        retained = []
        for crate, _ in self.tree.iter_crates():
            if self.is_required(crate):
                self._collect(crate, retained)
        return retained

    def _collect(self, container: int, retained: list[int]) -> None:
        for index in self.data.ordered_children(container):
            if self.is_required(index):
                retained.append(index)
                self._collect(index, retained)

    # ── Rendering ──────────────────────────────────────────────────────

    def render(self) -> str:
        tree = self.tree
        lines: list[str] = []
        bin_crate = tree.challenge_bin_crate()
        source_file = tree.source_file_of(bin_crate)
        if source_file is not None:
            if source_file.shebang:
                lines.append(source_file.shebang)
            lines.extend(source_file.inner_docs)
            lines.extend(source_file.inner_attributes)
        if lines:
            lines.append("")
        self._render_children(bin_crate, None, lines, top_level=True)

        for crate, data in tree.iter_crates():
            if crate == bin_crate or not isinstance(data, LibCrate) or not self.is_required(crate):
                continue
            if lines and lines[-1] != "":
                lines.append("")
            lines.append(f"pub mod {data.name} {{")
            source_file = tree.source_file_of(crate)
            if source_file is not None:
                lines.extend(source_file.inner_docs)
                lines.extend(source_file.inner_attributes)
            self._render_children(crate, data.name, lines)
            lines.append("}")
        return "\n".join(lines).rstrip() + "\n"

    def _render_children(self, container: int, lib: str | None, lines: list[str],
                         top_level: bool = False) -> None:
        previous_kind = None
        for index in self.data.ordered_children(container):
            if not self.is_required(index):
                continue
            rendered = self._render_item(index, lib, top_level)
            if rendered is None:
                continue
            kind = self.tree.syn_item(index).kind
            if previous_kind is not None and (kind != "use" or previous_kind != "use"):
                lines.append("")
            lines.append(rendered)
            previous_kind = kind

    def _render_item(self, index: int, lib: str | None, top_level: bool) -> str | None:
        tree = self.tree
        data = tree.syn_item(index)
        info = data.info
        prefix = list(info.docs)
        prefix.extend(a for a in info.attributes
                      if not (data.is_module and _is_path_attribute(a)))

        if data.is_use:
            path = info.use_paths[0]
            if top_level and lib is None and not path.is_glob \
                    and len(path.segments) == 2 and path.segments[0] == "crate" \
                    and path.segments[1] in self._lib_names \
                    and path.imported_name == path.segments[1]:
                return None
            body = info.text
        elif data.kind == "extern_crate" and info.name in self._lib_names:
            return None
        elif data.is_module:
            visibility = "" if info.visibility == "private" else f"{info.visibility} "
            inner = [f"{visibility}mod {info.name} {{"]
            if not info.has_body:
                source_file = tree.source_file_of(index)
                if source_file is not None:
                    inner.extend(source_file.inner_docs)
                    inner.extend(source_file.inner_attributes)
            self._render_children(index, lib, inner)
            inner.append("}")
            body = "\n".join(inner)
        elif data.kind in ("impl", "trait") and info.header is not None:
            header = self._rewrite(index, info.header, info.references, lib)
            inner = [header.rstrip() + " {"]
            self._render_children(index, lib, inner)
            inner.append("}")
            body = "\n".join(inner)
        else:
            body = self._rewrite(index, info.text, info.references, lib)
        return "\n".join(prefix + [body])

    def _rewrite(self, node: int, text: str, references: list[Reference],
                 lib: str | None) -> str:
        """Apply path edits at the byte offsets of ``references``."""
        raw = text.encode("utf8")
        edits: dict[int, tuple[int, str]] = {}
        for reference in references:
            if reference.start in edits or reference.end > len(raw):
                continue
            edit = self._edit_for(node, raw, reference, lib)
            if edit is not None:
                edits[reference.start] = edit
        for start in sorted(edits, reverse=True):
            end, replacement = edits[start]
            raw = raw[:start] + replacement.encode("utf8") + raw[end:]
        return raw.decode("utf8")

    def _edit_for(self, node: int, raw: bytes, reference: Reference,
                  lib: str | None) -> tuple[int, str] | None:
        first = reference.segments[0]
        start = reference.start
        if raw[start:start + len(first)] != first.encode("utf8"):
            return None
        if first not in ("crate", "$crate") and first not in self._lib_names:
            return None
        if len(reference.segments) > 1:
            resolution = self._resolver.resolve(node, reference.segments)
            if resolution.is_local:
                target = self.tree.node(resolution.target)
                if isinstance(target, SynItem) and target.kind == "macro_rules" \
                        and target.info.macro_export:
                    root = "$crate" if first == "$crate" else "crate"
                    return reference.end, f"{root}::{target.name}"
        if first in ("crate", "$crate"):
            if lib is None:
                return None
            return start + len(first), f"{first}::{lib}"
        leading = self._resolver.resolve(node, [first])
        if leading.is_local and isinstance(self.tree.node(leading.target), LibCrate):
            return start + len(first), f"crate::{first}"
        return None


def _is_path_attribute(attribute: str) -> bool:
    inner = "".join(attribute.split())
    return inner.startswith("#[path=")
