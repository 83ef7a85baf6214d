"""Tests for the challenge tree, its walkers and node bookkeeping."""

import pytest

rx = pytest.importorskip("rustworkx", reason="requires rustworkx")

from cgfusion.challenge_tree import (  # noqa: E402
    BfsByEdgeType, BfsModuleNameSpace, BinCrate, ChallengeTree, EdgeType,
    SynItem, ROOT,
)
from cgfusion.errors import NodeIndexError, UnexpectedNodeTypeError  # noqa: E402

from conftest import find_impl, find_item, run_until, single_crate  # noqa: E402

NAMESPACE_MAIN = """
    mod outer {
        pub fn visible() {}

        pub mod nested {
            pub fn hidden() {}
        }

        pub trait Tr {
            fn trait_item(&self);
        }

        pub struct S;

        impl S {
            pub fn inherent(&self) {}
        }

        impl Tr for S {
            fn trait_item(&self) {}
        }
    }

    fn main() {}
"""


class TestGraphBasics:

    def test_missing_node(self):
        tree = ChallengeTree()
        with pytest.raises(NodeIndexError):
            tree.node(3)
        assert 3 not in tree

    def test_add_edge_once(self):
        tree = ChallengeTree()
        a = tree.add_node(BinCrate("a", None))
        b = tree.add_node(BinCrate("b", None))
        assert tree.add_edge_once(a, b, EdgeType.USE)
        assert not tree.add_edge_once(a, b, EdgeType.USE)
        assert tree.add_edge_once(a, b, EdgeType.SYN)
        assert tree.children(a, EdgeType.USE) == [b]

    def test_remove_node_runs_hooks(self):
        tree = ChallengeTree()
        removed = []
        tree.on_remove(removed.append)
        a = tree.add_node(BinCrate("a", None))
        data = tree.remove_node(a)
        assert data.name == "a"
        assert removed == [a]
        assert a not in tree

    def test_typed_access_checks_type(self):
        tree = ChallengeTree()
        index = tree.add_node(BinCrate("a", None))
        with pytest.raises(UnexpectedNodeTypeError):
            tree.syn_item(index)


class TestWalkers:

    def test_bfs_by_edge_type_yields_start_first(self, workspace):
        root = workspace(single_crate(NAMESPACE_MAIN))
        stage = run_until(root / "chal" / "Cargo.toml", "add_src_files")
        tree = stage.tree
        bin_crate = tree.challenge_bin_crate()
        visited = list(BfsByEdgeType(tree, ROOT, EdgeType.CRATE))
        assert visited == [ROOT, bin_crate]

    def test_namespace_walk_stays_inside_module(self, workspace):
        root = workspace(single_crate(NAMESPACE_MAIN))
        stage = run_until(root / "chal" / "Cargo.toml", "link_impl_blocks")
        tree = stage.tree
        outer = find_item(tree, "outer", "mod")
        names = {tree.name_of(i) for i in BfsModuleNameSpace(tree, outer) if i != outer}
        # items of the module and of inherent impls are visible
        assert {"visible", "nested", "Tr", "S", "inherent"} <= names
        # nested modules, traits and trait impls are not entered
        assert "hidden" not in names
        assert "trait_item" not in names
        assert find_impl(tree, "impl Tr for S") in set(BfsModuleNameSpace(tree, outer))


class TestNavigation:

    def test_canonical_path_and_module_of(self, go_workspace):
        stage = run_until(go_workspace, "add_src_files")
        tree = stage.tree
        go = find_item(tree, "Go", "struct")
        assert tree.canonical_path(go) == ["crate", "mylib", "inner", "Go"]
        inner = find_item(tree, "inner", "mod")
        assert tree.module_of(go) == inner
        assert tree.parent_module(inner) == tree.crate_of(go)
        assert tree.is_descendant_or_same_module(go, tree.crate_of(go))

    def test_verbose_names(self, go_workspace):
        stage = run_until(go_workspace, "add_src_files")
        tree = stage.tree
        assert tree.verbose_name(ROOT) == "chal (local package)"
        assert tree.verbose_name(find_item(tree, "Go", "struct")) == "Go (Struct)"
        new = find_item(tree, "new")
        assert tree.verbose_name(new) == "impl Go::new (Impl Fn)"

    def test_source_files_hang_below_modules(self, go_workspace):
        stage = run_until(go_workspace, "add_src_files")
        tree = stage.tree
        inner = find_item(tree, "inner", "mod")
        assert tree.source_file_of(inner).path.name == "inner.rs"
        for index, crate in tree.iter_crates():
            assert tree.source_file_of(index).path == crate.path

    def test_item_order_follows_source(self, go_workspace):
        stage = run_until(go_workspace, "add_src_files")
        tree = stage.tree
        lib = next(i for i, _ in tree.iter_lib_crates())
        kinds = [tree.syn_item(i).kind for i in stage.iter_children(lib, EdgeType.SYN)]
        assert kinds == ["mod", "use", "trait", "fn"]
        assert all(isinstance(tree.node(i), SynItem)
                   for i in stage.iter_children(lib, EdgeType.SYN))
