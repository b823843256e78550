"""Configuration for req-tracker.

Settings are read from ``.requirements/config.yml`` and may be overridden by
environment variables with the ``REQ_TRACKER_`` prefix.

Environment Variables:
    REQ_TRACKER_TEST_GLOB: Glob selecting test files
    REQ_TRACKER_TEST_RUNNER: Command used to run tests (informational)
    REQ_TRACKER_SCAN_WORKERS: Reader threads for a fresh scan

Example:
    >>> config = get_config(Path("."))
    >>> config.test_glob
    '**/*.test.{ts,js,tsx,jsx}'
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict
from typing_extensions import Self

from req_tracker.scanner import DEFAULT_TEST_GLOB
from req_tracker.store import config_path


class ReqTrackerConfig(BaseSettings):
    """Project configuration.

    Values passed to the constructor (normally read from the YAML file) are
    defaults; environment variables take precedence over them.
    """

    model_config = SettingsConfigDict(
        env_prefix="REQ_TRACKER_",
        extra="ignore",
    )

    test_glob: str = Field(
        default=DEFAULT_TEST_GLOB,
        min_length=1,
        description="Glob selecting test files, relative to the project root",
    )
    test_runner: str = Field(
        default="bun test",
        description="Command used to run the test suite",
    )
    scan_workers: int = Field(
        default=1,
        ge=1,
        le=32,
        description="Reader threads used for a fresh scan",
    )

    @model_validator(mode="after")
    def validate_test_glob(self) -> Self:
        """Validate that the test glob is relative to the project root."""
        if self.test_glob.startswith("/") or self.test_glob.startswith(".."):
            msg = f"test_glob must be relative to the project root: {self.test_glob!r}"
            raise ValueError(msg)
        return self

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # Environment first, so it overrides values from config.yml
        return env_settings, init_settings, dotenv_settings, file_secret_settings


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load configuration values from a YAML file.

    Args:
        path: Path to the YAML configuration file.

    Returns:
        Dictionary of configuration values, or empty dict if file doesn't exist.
    """
    if not path.exists():
        return {}

    with path.open(encoding="utf-8") as f:
        data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}


def get_config(root: Path) -> ReqTrackerConfig:
    """Load configuration for a project root.

    Args:
        root: Project root.

    Returns:
        Validated ReqTrackerConfig instance.

    Raises:
        pydantic.ValidationError: If a configured value is invalid.
    """
    return ReqTrackerConfig(**load_yaml_config(config_path(root)))


def save_config(root: Path, config: ReqTrackerConfig) -> None:
    """Write the configuration file, creating the directory if needed."""
    path = config_path(root)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump(config.model_dump(), default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )


__all__ = ["ReqTrackerConfig", "get_config", "load_yaml_config", "save_config"]
