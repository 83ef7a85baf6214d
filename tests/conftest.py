"""Shared fixtures for the cgfusion test suite."""

import importlib.util
import textwrap
from pathlib import Path

import pytest


def pytest_ignore_collect(collection_path, config):  # noqa: ARG001
    """Skip test modules when tree-sitter or rustworkx is not installed."""
    if collection_path.name.startswith("test_") and collection_path.suffix == ".py":
        for module in ("tree_sitter", "tree_sitter_rust", "rustworkx"):
            if importlib.util.find_spec(module) is None:
                return True
    return None


def write_files(root: Path, files: dict[str, str]) -> Path:
    """Write ``{relative path: content}`` below ``root``; content is dedented."""
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf8")
    return root


def manifest(name: str, dependencies: str = "", extra: str = "") -> str:
    return (
        f'[package]\nname = "{name}"\nversion = "0.1.0"\nedition = "2021"\n\n'
        f"[dependencies]\n{textwrap.dedent(dependencies).strip()}\n{extra}"
    )


# Challenge "chal" using the local library "mylib".
GO_WORKSPACE = {
    "chal/Cargo.toml": manifest("chal", 'mylib = { path = "../mylib" }'),
    "chal/src/main.rs": """
        use mylib::Go;

        fn main() {
            let go = Go::new(3);
            println!("{}", go.value());
        }
    """,
    "mylib/Cargo.toml": manifest("mylib"),
    "mylib/src/lib.rs": """
        //! Helpers for the Go challenge.
        pub mod inner;
        pub use inner::Go;

        pub trait Show {
            fn show(&self) -> String;
        }

        pub fn unrelated() -> u32 {
            7
        }
    """,
    "mylib/src/inner.rs": """
        use std::fmt;
        use crate::Show;

        pub struct Go {
            v: u32,
        }

        impl Go {
            pub fn new(v: u32) -> Self {
                Go { v }
            }

            pub fn value(&self) -> u32 {
                self.v
            }

            pub fn unused(&self) -> u32 {
                0
            }
        }

        impl fmt::Display for Go {
            fn fmt(&self, f: &mut fmt::Formatter) -> fmt::Result {
                write!(f, "{}", self.v)
            }
        }

        impl Show for Go {
            fn show(&self) -> String {
                format!("Go({})", self.v)
            }
        }
    """,
}


@pytest.fixture
def go_workspace(tmp_path):
    """Challenge with one local library; returns the challenge manifest path."""
    write_files(tmp_path, GO_WORKSPACE)
    return tmp_path / "chal" / "Cargo.toml"


@pytest.fixture
def workspace(tmp_path):
    """Factory: ``workspace(files)`` writes files and returns the temp root."""
    def _make(files: dict[str, str]) -> Path:
        return write_files(tmp_path, files)
    return _make


def single_crate(main_rs: str, name: str = "chal") -> dict[str, str]:
    """Files of a challenge without dependencies."""
    return {f"{name}/Cargo.toml": manifest(name), f"{name}/src/main.rs": main_rs}


_STAGES = (
    "add_challenge_dependencies",
    "add_src_files",
    "expand_use_statements",
    "expand_external_use_statements",
    "link_impl_blocks",
    "link_required_by_challenge",
)


def run_until(manifest_path: Path, last: str, **options):
    """Run the pipeline up to and including stage method ``last``; returns the next stage."""
    from cgfusion import FusionOptions, new_fusion

    stage = new_fusion(FusionOptions(manifest_path=manifest_path, **options))
    for method in _STAGES:
        stage = getattr(stage, method)()
        if method == last:
            return stage
    raise ValueError(f"Unknown stage method: {last}")


def find_item(tree, name: str, kind: str | None = None) -> int:
    """Index of the single Syn item called ``name`` (optionally of ``kind``)."""
    from cgfusion.challenge_tree import SynItem

    found = [
        index for index, data in tree.iter_nodes_of(SynItem)
        if data.name == name and (kind is None or data.kind == kind)
    ]
    assert len(found) == 1, f"expected one item '{name}', found {len(found)}"
    return found[0]


def find_impl(tree, block_name: str) -> int:
    from cgfusion.challenge_tree import SynItem

    for index, data in tree.iter_nodes_of(SynItem):
        if data.kind == "impl" and tree.verbose_name(index) == block_name:
            return index
    raise AssertionError(f"no impl block '{block_name}'")
