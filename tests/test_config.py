"""Tests for run options and the impl item config file."""

import pytest

from cgfusion.config import (
    CODINGAME_SUPPORTED_CRATES, FusionOptions, load_impl_config, normalize_impl_name,
)
from cgfusion.errors import MetadataError

from conftest import write_files


class TestFusionOptions:

    def test_defaults(self):
        options = FusionOptions()
        assert options.input == "main"
        assert options.glob_expansion_max_attempts == 5
        assert options.process_all_impl_items is None
        assert options.supported_crates == CODINGAME_SUPPORTED_CRATES

    def test_other_platform_uses_given_crates(self):
        options = FusionOptions(platform="other", other_supported_crates=["serde"])
        assert options.supported_crates == ("serde",)

    def test_unknown_platform(self):
        with pytest.raises(ValueError, match="Unknown platform"):
            FusionOptions(platform="leetcode")

    def test_max_attempts_must_be_positive(self):
        with pytest.raises(ValueError):
            FusionOptions(glob_expansion_max_attempts=0)


class TestImplConfig:

    def test_load_and_merge(self, tmp_path):
        write_files(tmp_path, {"impl.toml": """
            [impl_items]
            include = ["value@impl Go"]
            exclude = ["unused"]

            [impl_blocks]
            include = ["impl fmt::Display for Go"]
        """})
        config = load_impl_config(tmp_path / "impl.toml")
        assert config.include_impl_items == ["value@impl Go"]
        assert config.exclude_impl_items == ["unused"]
        assert config.include_impl_blocks == ["impl fmt::Display for Go"]
        assert config.exclude_impl_blocks == []

        options = FusionOptions(exclude_impl_items=["other"], impl_item_toml=tmp_path / "impl.toml")
        merged = options.with_impl_config()
        assert merged.exclude_impl_items == ["other", "unused"]
        assert options.exclude_impl_items == ["other"]

    def test_missing_config_file(self, tmp_path):
        with pytest.raises(MetadataError):
            load_impl_config(tmp_path / "nope.toml")

    def test_normalize_impl_name(self):
        assert normalize_impl_name("impl <T> Display  for Go<T>") == "impl<T>DisplayforGo<T>"
