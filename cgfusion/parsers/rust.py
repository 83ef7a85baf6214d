"""Rust source parser using tree-sitter-rust."""

from pathlib import Path
from tree_sitter import Language, Parser
import tree_sitter_rust as ts_rust

from ..errors import ParsingError
from .base import SourceParser, node_text, get_type_parameters, find_syntax_error
from .models import ItemInfo, MethodCall, ParseResult, Reference, UsePath

RUST_LANGUAGE = Language(ts_rust.language())

_ITEM_KINDS: dict[str, str] = {
    "function_item": "fn",
    "function_signature_item": "fn",
    "struct_item": "struct",
    "enum_item": "enum",
    "union_item": "union",
    "trait_item": "trait",
    "impl_item": "impl",
    "const_item": "const",
    "static_item": "static",
    "type_item": "type",
    "associated_type": "type",
    "use_declaration": "use",
    "mod_item": "mod",
    "macro_definition": "macro_rules",
    "macro_invocation": "macro",
    "extern_crate_declaration": "extern_crate",
    "foreign_mod_item": "foreign_mod",
}

# Named nodes between items that carry no item of their own.
_NON_ITEMS = frozenset({
    "attribute_item", "inner_attribute_item", "line_comment", "block_comment",
    "empty_statement", "shebang",
})

_PATH_NODES = frozenset({
    "scoped_identifier", "scoped_type_identifier",
    "generic_type", "generic_type_with_turbofish",
})
_SEGMENT_NODES = frozenset({
    "identifier", "type_identifier", "self", "super", "crate", "metavariable",
})

# Subtrees that never hold item references.
_SKIPPED_NODES = frozenset({
    "lifetime", "label", "attribute_item", "inner_attribute_item",
    "line_comment", "block_comment", "string_literal", "raw_string_literal",
    "char_literal",
})

# Identifiers directly below these nodes bind a name instead of naming an item.
_PATTERN_PARENTS = frozenset({
    "tuple_pattern", "ref_pattern", "mut_pattern", "captured_pattern",
    "or_pattern", "slice_pattern", "closure_parameters", "reference_pattern",
    "type_parameters", "const_parameter", "optional_type_parameter",
})
_PATTERN_FIELD_PARENTS = frozenset({
    "let_declaration", "parameter", "for_expression", "match_pattern",
    "let_condition",
})
_DECLARATIONS = frozenset({
    "function_item", "function_signature_item", "struct_item", "enum_item",
    "union_item", "trait_item", "const_item", "static_item", "type_item",
    "associated_type", "mod_item", "macro_definition", "enum_variant",
    "field_declaration", "type_parameter",
})


class RustParser(SourceParser):
    """Parses Rust files into :class:`ItemInfo` trees.

    A file with any syntax tree-sitter could not understand (ERROR or
    MISSING nodes) is rejected with :class:`ParsingError`.  With
    ``strip_doc_comments`` the doc comments and ``#[doc]`` attributes are
    blanked out of the source before items are extracted.
    """

    @property
    def language_name(self) -> str:
        return "rust"

    @property
    def file_extensions(self) -> list[str]:
        return [".rs"]

    def __init__(self, strip_doc_comments: bool = False):
        self._parser = Parser(RUST_LANGUAGE)
        self.strip_doc_comments = strip_doc_comments

    # ── Helpers ─────────────────────────────────────────────────────────

    def _get_visibility(self, node, source: bytes) -> str:
        for child in node.children:
            if child.type == "visibility_modifier":
                text = "".join(node_text(child, source).split())
                if text == "crate":
                    return "pub(crate)"
                return text
        return "private"

    @staticmethod
    def _is_outer_doc(text: str) -> bool:
        if text.startswith("///"):
            return not text.startswith("////")
        if text.startswith("/**"):
            return not (text.startswith("/***") or text == "/**/")
        return False

    @staticmethod
    def _is_inner_doc(text: str) -> bool:
        return text.startswith("//!") or text.startswith("/*!")

    def _get_docs_and_attributes(self, node, source: bytes) -> tuple[list[str], list[str]]:
        """Walk backward through siblings to collect doc comments and #[...] attributes."""
        docs: list[str] = []
        attrs: list[str] = []
        sibling = node.prev_named_sibling
        while sibling is not None:
            if sibling.type == "attribute_item":
                attrs.insert(0, node_text(sibling, source))
            elif sibling.type in ("line_comment", "block_comment"):
                text = node_text(sibling, source).rstrip("\n")
                if self._is_outer_doc(text.strip()):
                    docs.insert(0, text.strip())
            else:
                break
            sibling = sibling.prev_named_sibling
        return docs, attrs

    def _get_name(self, node, source: bytes) -> str | None:
        if node.type == "extern_crate_declaration":
            alias = node.child_by_field_name("alias")
            if alias is not None:
                return node_text(alias, source)
        name = node.child_by_field_name("name")
        if name is None:
            return None
        return node_text(name, source)

    def _path_segments(self, node, source: bytes) -> list[str] | None:
        """Return the segments of a path node, generic arguments dropped.

        Qualified paths like ``<T as Trait>::X`` have no plain segments and
        give None.
        """
        if node is None:
            return None
        if node.type in _SEGMENT_NODES:
            return [node_text(node, source)]
        if node.type in ("scoped_identifier", "scoped_type_identifier"):
            name = node.child_by_field_name("name")
            if name is None:
                return None
            path = node.child_by_field_name("path")
            head: list[str] | None = []
            if path is not None:
                head = self._path_segments(path, source)
                if head is None:
                    return None
            return head + [node_text(name, source)]
        if node.type in ("generic_type", "generic_type_with_turbofish"):
            return self._path_segments(node.child_by_field_name("type"), source)
        return None

    def _type_path(self, node, source: bytes) -> list[str] | None:
        """Path of a type, looking through references and pointers."""
        if node is None:
            return None
        if node.type in ("reference_type", "pointer_type"):
            return self._type_path(node.child_by_field_name("type"), source)
        if node.type in ("type_identifier", "scoped_type_identifier", "generic_type"):
            return self._path_segments(node, source)
        return None

    def _generic_names(self, node, source: bytes) -> list[str]:
        names = []
        params = node.child_by_field_name("type_parameters")
        if params is None:
            return names
        for child in params.named_children:
            if child.type == "type_identifier":
                names.append(node_text(child, source))
            elif child.type == "constrained_type_parameter":
                left = child.child_by_field_name("left")
                if left is not None and left.type == "type_identifier":
                    names.append(node_text(left, source))
            elif child.type in ("type_parameter", "optional_type_parameter", "const_parameter"):
                name = child.child_by_field_name("name")
                if name is not None and name.type in ("type_identifier", "identifier"):
                    names.append(node_text(name, source))
        return names

    def _is_binding(self, node) -> bool:
        parent = node.parent
        if parent is None:
            return False
        if parent.type in _PATTERN_PARENTS:
            return True
        if parent.type == "constrained_type_parameter":
            return parent.child_by_field_name("left") == node
        if parent.type in _PATTERN_FIELD_PARENTS:
            return parent.child_by_field_name("pattern") == node
        if parent.type == "field_pattern":
            return True
        if parent.type in _DECLARATIONS:
            return parent.child_by_field_name("name") == node
        return False

    # ── References ──────────────────────────────────────────────────────

    def _collect_references(self, nodes, source: bytes, base: int,
                            info: ItemInfo, filepath: Path) -> None:
        """Record paths, identifiers and method calls written below ``nodes``."""

        def add(segments, node):
            info.references.append(Reference(
                segments=segments,
                start=node.start_byte - base,
                end=node.end_byte - base,
            ))

        def walk_path_arguments(node):
            for child in node.children:
                if child.type in ("type_arguments", "bracketed_type"):
                    walk(child)
                elif child.type in _PATH_NODES:
                    walk_path_arguments(child)

        def walk(node):
            t = node.type
            if t in _SKIPPED_NODES:
                return
            if t in _PATH_NODES:
                segments = self._path_segments(node, source)
                if segments:
                    add(segments, node)
                    info.identifiers.update(segments)
                walk_path_arguments(node)
                return
            if t in ("identifier", "type_identifier"):
                name = node_text(node, source)
                info.identifiers.add(name)
                if not self._is_binding(node):
                    add([name], node)
                return
            if t == "field_identifier":
                info.identifiers.add(node_text(node, source))
                return
            if t == "call_expression":
                function = node.child_by_field_name("function")
                if function is not None and function.type == "field_expression":
                    value = function.child_by_field_name("value")
                    field = function.child_by_field_name("field")
                    if value is not None and field is not None:
                        info.method_calls.append(MethodCall(
                            receiver=node_text(value, source),
                            name=node_text(field, source),
                        ))
            if t == "macro_invocation":
                macro = node.child_by_field_name("macro")
                segments = self._path_segments(macro, source)
                if segments:
                    add(segments, macro)
                    info.identifiers.update(segments)
                for child in node.children:
                    if child.type == "token_tree":
                        self._scan_token_tree(child, source, base, info)
                return
            if t == "token_tree":
                self._scan_token_tree(node, source, base, info)
                return
            if t == "use_declaration":
                # a use inside a block binds names for the rest of the item
                argument = node.child_by_field_name("argument")
                if argument is not None:
                    info.local_uses.extend(self._use_paths(argument, [], source, filepath))
            for child in node.children:
                walk(child)

        for node in nodes:
            walk(node)

    def _scan_token_tree(self, tree, source: bytes, base: int, info: ItemInfo) -> None:
        """Find ``a::b::c`` token sequences inside macro arguments and bodies."""
        current: list[str] = []
        start = end = 0
        separated = False
        previous = None

        def flush():
            nonlocal current, separated
            if current:
                info.references.append(Reference(segments=current, start=start, end=end))
            current = []
            separated = False

        for child in tree.children:
            ct = child.type
            if ct == "token_tree":
                flush()
                self._scan_token_tree(child, source, base, info)
            elif ct in _SEGMENT_NODES or ct == "primitive_type":
                text = node_text(child, source)
                if ct == "metavariable" and text != "$crate":
                    flush()
                elif previous is not None and previous.type == "." and not current:
                    # method or field after `.`
                    info.identifiers.add(text)
                    info.method_calls.append(MethodCall(receiver="", name=text))
                elif current and separated:
                    current.append(text)
                    end = child.end_byte - base
                    separated = False
                    info.identifiers.add(text)
                else:
                    flush()
                    current = [text]
                    start = child.start_byte - base
                    end = child.end_byte - base
                    info.identifiers.add(text)
            elif ct == "::" and current and not separated:
                separated = True
            else:
                flush()
            previous = child
        flush()

    # ── Items ───────────────────────────────────────────────────────────

    def _parse_use(self, node, source: bytes, info: ItemInfo, filepath: Path) -> None:
        argument = node.child_by_field_name("argument")
        if argument is None:
            raise ParsingError(filepath, "use declaration without path",
                               node.start_point[0] + 1, node.start_point[1] + 1)
        info.is_use_group = argument.type in ("scoped_use_list", "use_list")
        info.use_paths = self._use_paths(argument, [], source, filepath)

    def _use_paths(self, node, prefix: list[str], source: bytes,
                   filepath: Path) -> list[UsePath]:
        t = node.type
        if t in _SEGMENT_NODES or t == "scoped_identifier":
            segments = self._path_segments(node, source)
            if segments is not None:
                return [UsePath(prefix + segments)]
        elif t == "use_as_clause":
            segments = self._path_segments(node.child_by_field_name("path"), source)
            alias = node.child_by_field_name("alias")
            if segments is not None and alias is not None:
                return [UsePath(prefix + segments, "rename", node_text(alias, source))]
        elif t == "use_wildcard":
            segments: list[str] | None = []
            for child in node.named_children:
                segments = self._path_segments(child, source)
                break
            if segments is not None:
                return [UsePath(prefix + segments, "glob")]
        elif t == "scoped_use_list":
            path = node.child_by_field_name("path")
            head = self._path_segments(path, source) if path is not None else []
            use_list = node.child_by_field_name("list")
            if head is not None and use_list is not None:
                return self._use_paths(use_list, prefix + head, source, filepath)
        elif t == "use_list":
            paths = []
            for child in node.named_children:
                if child.type in ("line_comment", "block_comment"):
                    continue
                paths.extend(self._use_paths(child, prefix, source, filepath))
            return paths
        raise ParsingError(filepath, f"unsupported use tree '{node_text(node, source)}'",
                           node.start_point[0] + 1, node.start_point[1] + 1)

    def _parse_item(self, node, kind: str, source: bytes, filepath: Path) -> ItemInfo:
        text = node_text(node, source)
        next_sibling = node.next_sibling
        if kind == "macro" and next_sibling is not None and next_sibling.type == ";":
            text += ";"
        docs, attrs = self._get_docs_and_attributes(node, source)
        info = ItemInfo(
            kind=kind,
            name=self._get_name(node, source),
            text=text,
            line_number=node.start_point[0] + 1,
            end_line=node.end_point[0] + 1,
            visibility=self._get_visibility(node, source),
            attributes=attrs,
            docs=docs,
        )
        base = node.start_byte
        name_node = node.child_by_field_name("name")
        others = [c for c in node.children if c != name_node]

        if kind == "use":
            self._parse_use(node, source, info, filepath)
        elif kind in ("impl", "trait", "mod", "foreign_mod"):
            body = node.child_by_field_name("body")
            header_nodes = [c for c in others if c != body]
            if body is not None:
                info.header = source[node.start_byte:body.start_byte].decode("utf8")
                info.has_body = True
                info.items = self._parse_items(body, source, filepath)
            if kind == "impl":
                info.type_parameters = get_type_parameters(node, source)
                info.generic_names = self._generic_names(node, source)
                info.trait_path = self._path_segments(node.child_by_field_name("trait"), source)
                self_type = self._type_path(node.child_by_field_name("type"), source)
                if self_type is not None and len(self_type) == 1 \
                        and self_type[0] in info.generic_names:
                    self_type = None
                info.self_type = self_type
            elif kind == "trait":
                info.type_parameters = get_type_parameters(node, source)
            if kind != "mod":
                self._collect_references(header_nodes, source, base, info, filepath)
        elif kind == "macro_rules":
            info.macro_export = any("macro_export" in a for a in attrs)
            for rule in node.named_children:
                if rule.type == "macro_rule":
                    right = rule.child_by_field_name("right")
                    if right is not None:
                        self._scan_token_tree(right, source, base, info)
        elif kind == "extern_crate":
            pass
        else:
            if kind == "enum":
                body = node.child_by_field_name("body")
                if body is not None:
                    for variant in body.named_children:
                        if variant.type == "enum_variant":
                            variant_name = variant.child_by_field_name("name")
                            if variant_name is not None:
                                info.variants.append(node_text(variant_name, source))
            elif kind == "type":
                info.aliased_type = self._type_path(node.child_by_field_name("type"), source)
            if kind in ("fn", "struct", "enum", "union", "type"):
                info.type_parameters = get_type_parameters(node, source)
            self._collect_references(others, source, base, info, filepath)
        return info

    def _parse_items(self, container, source: bytes, filepath: Path) -> list[ItemInfo]:
        """Parse all item-level children of a node (file, mod, impl or trait body)."""
        items = []
        for child in container.named_children:
            node = child
            if child.type == "expression_statement" and child.named_child_count == 1 \
                    and child.named_children[0].type == "macro_invocation":
                node = child.named_children[0]
            kind = _ITEM_KINDS.get(node.type)
            if kind is None:
                if child.type in _NON_ITEMS:
                    continue
                raise ParsingError(filepath, f"unsupported item '{child.type}'",
                                   child.start_point[0] + 1, child.start_point[1] + 1)
            items.append(self._parse_item(node, kind, source, filepath))
        return items

    def _blank_doc_comments(self, root, source: bytes) -> bytes:
        """Replace doc comments and #[doc] attributes with spaces, keeping offsets."""
        spans = []

        def walk(node):
            if node.type in ("line_comment", "block_comment"):
                text = node_text(node, source).strip()
                if self._is_outer_doc(text) or self._is_inner_doc(text):
                    spans.append((node.start_byte, node.end_byte))
                return
            if node.type in ("attribute_item", "inner_attribute_item"):
                inner = "".join(node_text(node, source).split())
                if inner.startswith("#[doc") or inner.startswith("#![doc"):
                    spans.append((node.start_byte, node.end_byte))
                return
            for child in node.children:
                walk(child)

        walk(root)
        blanked = bytearray(source)
        for start, end in spans:
            for i in range(start, end):
                if blanked[i] != 0x0A:
                    blanked[i] = 0x20
        return bytes(blanked)

    def parse_source(self, filepath: Path, source: bytes) -> ParseResult:
        shebang = None
        if source.startswith(b"#!") and not source.startswith(b"#!["):
            line_end = source.find(b"\n")
            line_end = len(source) if line_end == -1 else line_end
            shebang = source[:line_end].decode("utf8")
            source = b" " * line_end + source[line_end:]

        tree = self._parser.parse(source)
        root = tree.root_node
        error = find_syntax_error(root)
        if error is not None:
            reason = "missing syntax" if error.is_missing else "unparsable syntax"
            snippet = node_text(error, source).strip().split("\n", 1)[0][:60]
            if snippet:
                reason += f" near '{snippet}'"
            raise ParsingError(filepath, reason,
                               error.start_point[0] + 1, error.start_point[1] + 1)

        if self.strip_doc_comments:
            source = self._blank_doc_comments(root, source)
            root = self._parser.parse(source).root_node

        result = ParseResult(path=filepath, shebang=shebang)
        for child in root.named_children:
            if child.type == "inner_attribute_item":
                result.inner_attributes.append(node_text(child, source))
            elif child.type in ("line_comment", "block_comment"):
                text = node_text(child, source).strip()
                if self._is_inner_doc(text):
                    result.inner_docs.append(text)
        result.items = self._parse_items(root, source, filepath)
        return result
