"""Tests for path resolution over the challenge tree."""

import pytest

ts = pytest.importorskip("tree_sitter", reason="requires tree-sitter")

from cgfusion.challenge_tree import resolve_path, resolve_path_strict  # noqa: E402
from cgfusion.errors import UnresolvedPathError  # noqa: E402

from conftest import find_item, manifest, run_until, single_crate  # noqa: E402

RESOLVER_MAIN = """
    use std::collections::HashMap;

    pub struct Thing;

    pub enum Dir {
        North,
        South,
    }

    type Alias = Thing;

    impl Thing {
        pub fn make() -> Self {
            Thing
        }
    }

    mod a {
        pub struct Thing;

        pub fn local() -> Thing {
            Thing
        }

        pub mod b {
            pub fn up() -> super::Thing {
                super::Thing
            }
        }
    }

    fn main() {}
"""


@pytest.fixture
def stage(workspace):
    root = workspace(single_crate(RESOLVER_MAIN))
    return run_until(root / "chal" / "Cargo.toml", "link_impl_blocks")


def _things(tree):
    from cgfusion.challenge_tree import SynItem
    return sorted(i for i, d in tree.iter_nodes_of(SynItem) if d.name == "Thing")


class TestLocalResolution:

    def test_nearer_declaration_shadows_outer(self, stage):
        tree = stage.tree
        outer_thing, inner_thing = _things(tree)
        local = find_item(tree, "local")
        resolution = resolve_path(tree, local, ["Thing"])
        assert resolution.is_local
        assert resolution.target == inner_thing

        main = find_item(tree, "main")
        assert resolve_path(tree, main, ["Thing"]).target == outer_thing

    def test_super_and_crate(self, stage):
        tree = stage.tree
        outer_thing, inner_thing = _things(tree)
        up = find_item(tree, "up")
        assert resolve_path(tree, up, ["super", "Thing"]).target == inner_thing
        assert resolve_path(tree, up, ["crate", "Thing"]).target == outer_thing
        assert resolve_path(tree, up, ["crate", "a", "b", "up"]).target == up

    def test_self_type_inside_impl(self, stage):
        tree = stage.tree
        outer_thing, _ = _things(tree)
        make = find_item(tree, "make")
        resolution = resolve_path(tree, make, ["Self"])
        assert resolution.target == outer_thing
        assert resolve_path(tree, make, ["Self", "make"]).target == make

    def test_associated_item_through_type(self, stage):
        tree = stage.tree
        outer_thing, _ = _things(tree)
        main = find_item(tree, "main")
        resolution = resolve_path(tree, main, ["Thing", "make"])
        assert resolution.target == find_item(tree, "make")
        assert resolution.traversed == [outer_thing, resolution.target]

    def test_enum_variant(self, stage):
        tree = stage.tree
        main = find_item(tree, "main")
        resolution = resolve_path(tree, main, ["Dir", "South"])
        assert resolution.target == find_item(tree, "Dir")
        assert resolution.variant == "South"

    def test_type_alias_is_followed(self, stage):
        tree = stage.tree
        main = find_item(tree, "main")
        resolution = resolve_path(tree, main, ["Alias", "make"])
        assert resolution.target == find_item(tree, "make")

    def test_stage_query_accepts_string_paths(self, stage):
        main = find_item(stage.tree, "main")
        assert stage.resolve_path(main, "crate::a::local").target == find_item(stage.tree, "local")


class TestExternalAndUnresolved:

    def test_external_through_use(self, stage):
        tree = stage.tree
        main = find_item(tree, "main")
        resolution = resolve_path(tree, main, ["HashMap", "new"])
        assert resolution.is_external
        assert resolution.external_path == ["std", "collections", "HashMap", "new"]

    def test_builtin_crate(self, stage):
        main = find_item(stage.tree, "main")
        assert resolve_path(stage.tree, main, ["core", "mem", "swap"]).is_external

    def test_unknown_path(self, stage):
        tree = stage.tree
        main = find_item(tree, "main")
        assert resolve_path(tree, main, ["nowhere", "x"]).is_unresolved
        with pytest.raises(UnresolvedPathError, match="nowhere::x"):
            resolve_path_strict(tree, main, ["nowhere", "x"])


class TestLibraryCrates:

    def test_lib_name_and_fused_root_path(self, go_workspace):
        stage = run_until(go_workspace, "link_impl_blocks")
        tree = stage.tree
        go = find_item(tree, "Go", "struct")
        main = find_item(tree, "main")
        assert resolve_path(tree, main, ["mylib", "Go"]).target == go
        assert resolve_path(tree, main, ["crate", "mylib", "inner", "Go"]).target == go
        # library code may use the fused layout as well
        from cgfusion.challenge_tree import SynImplItem
        show_impl_item = next(i for i, d in tree.iter_nodes_of(SynImplItem) if d.name == "show")
        assert resolve_path(tree, show_impl_item, ["crate", "mylib", "Show"]).is_local

    def test_undeclared_external_crate(self, workspace):
        root = workspace({
            "chal/Cargo.toml": manifest("chal", 'rand = "0.8"'),
            "chal/src/main.rs": "fn main() {}\n",
        })
        stage = run_until(root / "chal" / "Cargo.toml", "link_impl_blocks")
        main = find_item(stage.tree, "main")
        assert resolve_path(stage.tree, main, ["rand", "random"]).is_external
        assert resolve_path(stage.tree, main, ["regex", "Regex"]).is_unresolved
