"""Rust source and Cargo manifest parsers."""

from .models import (
    Reference, MethodCall, UsePath, ItemInfo, ParseResult,
    DependencyInfo, TargetInfo, PackageInfo,
)
from .base import SourceParser
from .rust import RustParser
from .manifest import CargoTomlReader, read_package

__all__ = [
    "Reference", "MethodCall", "UsePath", "ItemInfo", "ParseResult",
    "DependencyInfo", "TargetInfo", "PackageInfo",
    "SourceParser", "RustParser",
    "CargoTomlReader", "read_package",
]
