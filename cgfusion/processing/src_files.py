"""Parse the source files of every crate into the challenge tree."""

from __future__ import annotations

from pathlib import Path

from ..challenge_tree import EdgeType, SourceFile, SynImplItem, SynItem, SynTraitItem
from ..errors import ParsingError
from ..parsers import ItemInfo, RustParser
from .data import FusionData, Stage
from .usage import UsageStage


def _is_test_only(info: ItemInfo) -> bool:
    return any("".join(a.split()) == "#[cfg(test)]" for a in info.attributes)


class SrcFilesStage(Stage):
    """Second stage: add source file, module and item nodes."""

    def add_src_files(self) -> UsageStage:
        data = self._consume()
        parser = RustParser(strip_doc_comments=data.options.strip_doc_comments)
        builder = _ModuleBuilder(data, parser)
        for crate_index, crate in data.tree.iter_crates():
            if data.options.verbose:
                print(f"Adding source files of {crate.verbose_name}...")
            builder.add_file(crate_index, crate.path)
        if data.options.verbose:
            print(f"  Parsed {builder.file_count} source files")
        return UsageStage(data)


class _ModuleBuilder:

    def __init__(self, data: FusionData, parser: RustParser):
        self.data = data
        self.tree = data.tree
        self.parser = parser
        self.file_count = 0

    def add_file(self, module: int, path: Path) -> None:
        """Parse ``path`` and add its items below ``module`` (a crate or mod item)."""
        result = self.parser.parse_file(path)
        self.file_count += 1
        file_index = self.tree.add_node(SourceFile(
            path=path,
            inner_attributes=result.inner_attributes,
            inner_docs=result.inner_docs,
            shebang=result.shebang,
        ))
        self.tree.add_edge(module, file_index, EdgeType.MODULE)
        # crate roots, mod.rs and #[path] files own their directory
        if self.tree.is_crate(module) or path.name == "mod.rs" \
                or self.tree.syn_item(module).info.path_attribute is not None:
            module_dir = path.parent
        else:
            module_dir = path.parent / path.stem
        self._add_items(module, result.items, module_dir, path, inline=False)

    def _add_items(self, container: int, items: list[ItemInfo], module_dir: Path,
                   filepath: Path, inline: bool) -> None:
        order = []
        for info in items:
            if _is_test_only(info):
                continue
            index = self.tree.add_node(SynItem(info))
            self.tree.add_edge(container, index, EdgeType.SYN)
            order.append(index)
            if info.kind == "mod":
                if info.has_body:
                    self._add_items(index, info.items, module_dir / info.name,
                                    filepath, inline=True)
                else:
                    base = module_dir if inline else filepath.parent
                    self.add_file(index, self._module_file(info, module_dir, base, filepath))
            elif info.kind in ("impl", "trait"):
                kind = SynImplItem if info.kind == "impl" else SynTraitItem
                sub_order = []
                for sub_info in info.items:
                    if _is_test_only(sub_info):
                        continue
                    sub_index = self.tree.add_node(kind(sub_info))
                    self.tree.add_edge(index, sub_index, EdgeType.SYN)
                    sub_order.append(sub_index)
                self.data.item_order[index] = sub_order
        self.data.item_order[container] = order

    def _module_file(self, info: ItemInfo, module_dir: Path, base: Path,
                     filepath: Path) -> Path:
        path_attribute = info.path_attribute
        if path_attribute is not None:
            candidates = [(base / path_attribute).resolve()]
        else:
            candidates = [module_dir / f"{info.name}.rs", module_dir / info.name / "mod.rs"]
        for candidate in candidates:
            if candidate.is_file():
                return candidate
        raise ParsingError(
            filepath,
            f"file of module '{info.name}' not found (looked for "
            + ", ".join(str(c) for c in candidates) + ")",
            info.line_number,
        )
