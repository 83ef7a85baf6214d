"""Tests for the Cargo.toml reader."""

import pytest

from cgfusion.errors import MetadataError
from cgfusion.parsers import read_package

from conftest import manifest, write_files


class TestTargets:
    """Bin and lib targets."""

    def test_main_and_lib(self, tmp_path):
        write_files(tmp_path, {
            "Cargo.toml": manifest("my-chal"),
            "src/main.rs": "fn main() {}\n",
            "src/lib.rs": "pub fn f() {}\n",
        })
        info = read_package(tmp_path / "Cargo.toml")
        assert info.name == "my-chal"
        assert info.version == "0.1.0"
        assert info.edition == "2021"
        assert [t.name for t in info.bins] == ["my-chal"]
        assert info.lib.name == "my_chal"
        assert info.bin_target("main").path == info.root / "src" / "main.rs"

    def test_src_bin_targets(self, tmp_path):
        write_files(tmp_path, {
            "Cargo.toml": manifest("chal"),
            "src/bin/alpha.rs": "fn main() {}\n",
            "src/bin/beta/main.rs": "fn main() {}\n",
        })
        info = read_package(tmp_path / "Cargo.toml")
        assert sorted(t.name for t in info.bins) == ["alpha", "beta"]
        assert info.bin_target("main") is None
        assert info.bin_target("beta").path.name == "main.rs"
        assert info.lib is None

    def test_explicit_bin_and_lib_paths(self, tmp_path):
        write_files(tmp_path, {
            "Cargo.toml": manifest("chal", extra=(
                '\n[lib]\nname = "helpers"\npath = "code/helpers.rs"\n'
                '\n[[bin]]\nname = "solve"\npath = "code/solve.rs"\n'
            )),
            "code/helpers.rs": "",
            "code/solve.rs": "fn main() {}\n",
        })
        info = read_package(tmp_path / "Cargo.toml")
        assert info.lib.name == "helpers"
        assert info.lib.path == (tmp_path / "code" / "helpers.rs").resolve()
        assert info.bin_target("solve").path == (tmp_path / "code" / "solve.rs").resolve()


class TestDependencies:
    """Dependency tables."""

    def test_path_version_and_dev_dependencies(self, tmp_path):
        write_files(tmp_path, {
            "chal/Cargo.toml": manifest(
                "chal",
                'rand = "0.8"\nmylib = { path = "../mylib" }',
                extra='\n[dev-dependencies]\nproptest = "1"\n',
            ),
        })
        info = read_package(tmp_path / "chal" / "Cargo.toml")
        deps = {d.name: d for d in info.dependencies}
        assert deps["rand"].version_spec == "0.8"
        assert not deps["rand"].is_local
        assert deps["mylib"].path == (tmp_path / "mylib").resolve()
        assert deps["proptest"].is_dev

    def test_workspace_members(self, tmp_path):
        write_files(tmp_path, {
            "Cargo.toml": manifest("chal", extra='\n[workspace]\nmembers = ["libs/*"]\n'),
            "libs/a/Cargo.toml": manifest("a"),
            "libs/b/Cargo.toml": manifest("b"),
        })
        info = read_package(tmp_path / "Cargo.toml")
        assert [m.parent.name for m in info.workspace_members] == ["a", "b"]


class TestErrors:

    def test_missing_manifest(self, tmp_path):
        with pytest.raises(MetadataError, match="Manifest not found"):
            read_package(tmp_path / "Cargo.toml")

    def test_missing_package_section(self, tmp_path):
        write_files(tmp_path, {"Cargo.toml": '[workspace]\nmembers = []\n'})
        with pytest.raises(MetadataError, match=r"\[package\]"):
            read_package(tmp_path / "Cargo.toml")

    def test_invalid_toml(self, tmp_path):
        write_files(tmp_path, {"Cargo.toml": "[package\nname = 1\n"})
        with pytest.raises(MetadataError, match="Invalid TOML"):
            read_package(tmp_path / "Cargo.toml")
