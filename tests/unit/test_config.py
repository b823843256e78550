"""Unit tests for config.py - YAML configuration with environment overrides."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from req_tracker.config import ReqTrackerConfig, get_config, load_yaml_config, save_config
from req_tracker.scanner import DEFAULT_TEST_GLOB


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("REQ_TRACKER_TEST_GLOB", "REQ_TRACKER_TEST_RUNNER", "REQ_TRACKER_SCAN_WORKERS"):
        monkeypatch.delenv(name, raising=False)


class TestReqTrackerConfig:
    """Tests for ReqTrackerConfig defaults and validation."""

    def test_defaults(self) -> None:
        """Test default values."""
        config = ReqTrackerConfig()
        assert config.test_glob == DEFAULT_TEST_GLOB
        assert config.test_runner == "bun test"
        assert config.scan_workers == 1

    @pytest.mark.parametrize("workers", [0, 33])
    def test_scan_workers_bounds(self, workers: int) -> None:
        """Test scan_workers outside 1..32 is rejected."""
        with pytest.raises(ValidationError):
            ReqTrackerConfig(scan_workers=workers)

    def test_empty_glob_rejected(self) -> None:
        """Test an empty test glob is rejected."""
        with pytest.raises(ValidationError):
            ReqTrackerConfig(test_glob="")

    @pytest.mark.parametrize("glob", ["/abs/**/*.test.ts", "../other/*.test.ts"])
    def test_glob_outside_root_rejected(self, glob: str) -> None:
        """Test absolute and parent-relative globs are rejected."""
        with pytest.raises(ValidationError, match="relative to the project root"):
            ReqTrackerConfig(test_glob=glob)

    def test_unknown_keys_ignored(self) -> None:
        """Test extra keys in the config file do not fail validation."""
        config = ReqTrackerConfig(**{"test_glob": "**/*.spec.ts", "legacy_option": True})
        assert config.test_glob == "**/*.spec.ts"


class TestConfigFile:
    """Tests for loading and saving config.yml."""

    def test_missing_file_gives_empty_dict(self, tmp_path: Path) -> None:
        """Test load_yaml_config on a missing file."""
        assert load_yaml_config(tmp_path / "config.yml") == {}

    def test_non_mapping_file_gives_empty_dict(self, tmp_path: Path) -> None:
        """Test a YAML list is not treated as configuration."""
        path = tmp_path / "config.yml"
        path.write_text("- a\n- b\n")
        assert load_yaml_config(path) == {}

    def test_save_then_get_round_trip(self, tmp_path: Path) -> None:
        """Test saved values are read back by get_config."""
        save_config(tmp_path, ReqTrackerConfig(test_glob="**/*.spec.ts", scan_workers=4))
        config = get_config(tmp_path)
        assert config.test_glob == "**/*.spec.ts"
        assert config.scan_workers == 4
        text = (tmp_path / ".requirements" / "config.yml").read_text()
        assert text.startswith("test_glob:")

    def test_environment_overrides_file(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test REQ_TRACKER_* variables win over config.yml."""
        save_config(tmp_path, ReqTrackerConfig(test_glob="**/*.spec.ts", scan_workers=2))
        monkeypatch.setenv("REQ_TRACKER_TEST_GLOB", "**/*.test.js")
        monkeypatch.setenv("REQ_TRACKER_SCAN_WORKERS", "8")
        config = get_config(tmp_path)
        assert config.test_glob == "**/*.test.js"
        assert config.scan_workers == 8

    def test_invalid_file_value_raises(self, tmp_path: Path) -> None:
        """Test a bad value in config.yml surfaces as ValidationError."""
        path = tmp_path / ".requirements" / "config.yml"
        path.parent.mkdir()
        path.write_text("scan_workers: 100\n")
        with pytest.raises(ValidationError):
            get_config(tmp_path)
