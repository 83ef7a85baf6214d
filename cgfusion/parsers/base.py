"""Abstract base class for source parsers and shared tree-sitter helpers."""

from abc import ABC, abstractmethod
from pathlib import Path

from ..errors import ParsingError
from .models import ParseResult


class SourceParser(ABC):
    """Base class that source parsers extend."""

    @property
    @abstractmethod
    def language_name(self) -> str:
        """Return the language identifier (e.g. 'rust')."""
        ...

    @property
    @abstractmethod
    def file_extensions(self) -> list[str]:
        """Return list of file extensions this parser handles (e.g. ['.rs'])."""
        ...

    @abstractmethod
    def parse_source(self, filepath: Path, source: bytes) -> ParseResult:
        """Parse source bytes that were read from ``filepath``."""
        ...

    def parse_file(self, filepath: Path) -> ParseResult:
        """Read and parse a single source file."""
        if filepath.suffix not in self.file_extensions:
            raise ParsingError(filepath, f"not a {self.language_name} source file")
        try:
            source = filepath.read_bytes()
        except OSError as err:
            raise ParsingError(filepath, f"cannot read file ({err})") from err
        return self.parse_source(filepath, source)


# ── Shared helpers ─────────────────────────────────────────────────────


def node_text(node, source: bytes) -> str:
    """Extract the text of a tree-sitter node."""
    return source[node.start_byte:node.end_byte].decode("utf8")


def get_type_parameters(node, source: bytes,
                        node_type: str = "type_parameters") -> str | None:
    """Extract generic type parameters from a declaration node.

    Returns the inner text with angle brackets stripped, or None if the
    node has no type parameters.
    """
    for child in node.children:
        if child.type == node_type:
            text = node_text(child, source)
            # Strip surrounding < > if present
            if text.startswith("<") and text.endswith(">"):
                text = text[1:-1].strip()
            return text if text else None
    return None


def find_syntax_error(node):
    """Return the first ERROR or MISSING node below ``node``, or None.

    Only subtrees flagged with ``has_error`` are entered.
    """
    if node.type == "ERROR" or node.is_missing:
        return node
    if not node.has_error:
        return None
    for child in node.children:
        found = find_syntax_error(child)
        if found is not None:
            return found
    return node
