"""Tests for use group and glob expansion and use linking."""

import pytest

ts = pytest.importorskip("tree_sitter", reason="requires tree-sitter")

from cgfusion.challenge_tree import EdgeType  # noqa: E402
from cgfusion.errors import (  # noqa: E402
    MaxAttemptsExpandingUseStatementError, UseStatementsCouldNotBeParsedError,
)
from cgfusion.processing import UseExpander  # noqa: E402

from conftest import find_item, run_until, single_crate  # noqa: E402


def _uses(stage, container):
    tree = stage.tree
    return [
        tree.syn_item(i).info.use_paths[0].render()
        for i in stage.iter_children(container, EdgeType.SYN)
        if tree.is_use(i)
    ]


def _expand(workspace, main_rs, **options):
    root = workspace(single_crate(main_rs))
    return run_until(root / "chal" / "Cargo.toml", "expand_use_statements", **options)


class TestGroups:

    def test_group_is_split_in_place(self, workspace):
        stage = _expand(workspace, """
            mod a {
                pub struct X;
                pub struct Y;
            }
            use a::{X, Y as Z};
            fn main() {}
        """)
        tree = stage.tree
        bin_crate = tree.challenge_bin_crate()
        assert _uses(stage, bin_crate) == ["crate::a::X", "crate::a::Y as Z"]
        kinds = [tree.syn_item(i).kind for i in stage.iter_children(bin_crate, EdgeType.SYN)]
        assert kinds == ["mod", "use", "use", "fn"]

    def test_group_keeps_visibility(self, workspace):
        stage = _expand(workspace, """
            mod a {
                pub struct X;
                pub struct Y;
            }
            pub use a::{X, Y};
            fn main() {}
        """)
        tree = stage.tree
        bin_crate = tree.challenge_bin_crate()
        texts = [tree.syn_item(i).info.text
                 for i in stage.iter_children(bin_crate, EdgeType.SYN) if tree.is_use(i)]
        assert texts == ["pub use crate::a::X;", "pub use crate::a::Y;"]


class TestGlobs:

    def test_glob_imports_visible_items(self, workspace):
        stage = _expand(workspace, """
            mod a {
                pub struct X;
                pub fn f() {}
                fn private() {}
                pub(crate) const C: u8 = 1;
                impl X {}
            }
            use a::*;
            fn main() {}
        """)
        bin_crate = stage.tree.challenge_bin_crate()
        assert _uses(stage, bin_crate) == ["crate::a::X", "crate::a::f", "crate::a::C"]

    def test_glob_is_expanded_in_place(self, workspace):
        stage = _expand(workspace, """
            mod a {
                pub struct X;
                pub struct Y;
            }
            use a::*;
            fn main() {}
        """)
        tree = stage.tree
        bin_crate = tree.challenge_bin_crate()
        items = [(tree.syn_item(i).kind, tree.syn_item(i).info.text)
                 for i in stage.iter_children(bin_crate, EdgeType.SYN)]
        assert items[0][0] == "mod"
        assert items[1:] == [
            ("use", "use crate::a::X;"), ("use", "use crate::a::Y;"), ("fn", "fn main() {}"),
        ]

    def test_child_module_sees_private_items(self, workspace):
        stage = _expand(workspace, """
            fn helper() {}
            mod a {
                use super::*;
            }
            fn main() {}
        """)
        a = find_item(stage.tree, "a", "mod")
        assert _uses(stage, a) == ["crate::helper", "crate::a", "crate::main"]

    def test_declared_names_shadow_glob(self, workspace):
        stage = _expand(workspace, """
            mod a {
                pub struct X;
                pub struct Y;
            }
            use a::*;
            struct X;
            fn main() {}
        """)
        bin_crate = stage.tree.challenge_bin_crate()
        assert _uses(stage, bin_crate) == ["crate::a::Y"]

    def test_chained_globs(self, workspace):
        stage = _expand(workspace, """
            mod a {
                pub use crate::b::*;
            }
            mod b {
                pub struct Deep;
            }
            use a::*;
            fn main() {}
        """)
        bin_crate = stage.tree.challenge_bin_crate()
        assert _uses(stage, bin_crate) == ["crate::b::Deep"]
        a = find_item(stage.tree, "a", "mod")
        assert _uses(stage, a) == ["crate::b::Deep"]

    def test_enum_glob_is_kept(self, workspace):
        stage = _expand(workspace, """
            mod a {
                pub enum Dir { North, South }
            }
            use a::Dir::*;
            fn main() {}
        """)
        bin_crate = stage.tree.challenge_bin_crate()
        assert _uses(stage, bin_crate) == ["crate::a::Dir::*"]

    def test_external_glob_is_kept(self, workspace):
        stage = _expand(workspace, """
            use std::collections::*;
            fn main() {}
        """)
        bin_crate = stage.tree.challenge_bin_crate()
        assert _uses(stage, bin_crate) == ["std::collections::*"]

    def test_cyclic_globs_hit_max_attempts(self, workspace):
        with pytest.raises(MaxAttemptsExpandingUseStatementError) as exc:
            _expand(workspace, """
                mod a {
                    pub use crate::b::*;
                }
                mod b {
                    pub use crate::c::*;
                }
                mod c {
                    pub use crate::a::*;
                }
                fn main() {}
            """, glob_expansion_max_attempts=3)
        assert "::*" in exc.value.statement


class TestLinking:

    def test_reexport_is_rewritten_to_definition(self, go_workspace):
        stage = run_until(go_workspace, "expand_use_statements")
        tree = stage.tree
        bin_crate = tree.challenge_bin_crate()
        assert _uses(stage, bin_crate) == ["crate::mylib::inner::Go"]
        use = next(i for i in stage.iter_children(bin_crate, EdgeType.SYN) if tree.is_use(i))
        assert tree.children(use, EdgeType.USE) == [find_item(tree, "Go", "struct")]

    def test_enum_variant_use(self, workspace):
        stage = _expand(workspace, """
            enum Dir { North, South }
            mod a {
                use super::Dir::North;
            }
            fn main() {}
        """)
        tree = stage.tree
        a = find_item(tree, "a", "mod")
        assert _uses(stage, a) == ["crate::Dir::North"]
        (use,) = tree.children(a, EdgeType.SYN)
        assert tree.children(use, EdgeType.USE) == [find_item(tree, "Dir")]

    def test_expansion_is_idempotent(self, go_workspace):
        stage = run_until(go_workspace, "expand_use_statements")
        tree = stage.tree
        before = {i: tree.children(i, EdgeType.USE) for i in tree.node_indices()}
        texts = {i: tree.node(i).info.text for i in tree.node_indices() if tree.is_use(i)}
        UseExpander(stage.data).expand()
        assert {i: tree.children(i, EdgeType.USE) for i in tree.node_indices()} == before
        assert {i: tree.node(i).info.text for i in tree.node_indices() if tree.is_use(i)} == texts

    def test_unresolvable_use(self, workspace):
        with pytest.raises(UseStatementsCouldNotBeParsedError) as exc:
            _expand(workspace, """
                use nowhere::Thing;
                fn main() {}
            """)
        assert exc.value.statements == ["use nowhere::Thing;"]


class TestExternalUse:

    def test_reexported_external_is_rewritten(self, workspace):
        root = workspace(single_crate("""
            use std::fmt;
            mod a {
                use super::fmt;
                use super::fmt::Display as Show;
            }
            fn main() {}
        """))
        stage = run_until(root / "chal" / "Cargo.toml", "expand_external_use_statements")
        a = find_item(stage.tree, "a", "mod")
        assert _uses(stage, a) == ["std::fmt", "std::fmt::Display as Show"]
