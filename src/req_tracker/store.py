"""Requirement store.

Requirements live as YAML documents under ``.requirements/`` in the project
root, one ``REQ_*.yml`` file per requirement at any depth. The same
directory holds the configuration, the test cache and the ignored-test list:

    .requirements/
    ├── config.yml
    ├── cache.json
    ├── ignored-tests.yml
    └── auth/
        └── REQ_login.yml

Every write replaces the whole document.
"""

from __future__ import annotations

import os
import posixpath
import re
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any

import structlog
import yaml
from pydantic import ValidationError

from req_tracker.errors import (
    InvalidRequirementPathError,
    NotInitializedError,
    RequirementExistsError,
    RequirementNotFoundError,
    RequirementValidationError,
)
from req_tracker.models import IgnoredTest, ParsedRequirement, Requirement

logger = structlog.get_logger(__name__)

REQUIREMENTS_DIR = ".requirements"
CONFIG_FILE = "config.yml"
CACHE_FILE = "cache.json"
IGNORED_TESTS_FILE = "ignored-tests.yml"
REQUIREMENT_FILE_PATTERN = re.compile(r"^REQ_[^/]+\.yml$")

_STATUS_MESSAGE = 'Missing or invalid "status" field. Must be "planned" or "done".'


def requirements_dir(root: Path) -> Path:
    """Return the requirements directory for a project root."""
    return root / REQUIREMENTS_DIR


def config_path(root: Path) -> Path:
    """Return the configuration file path."""
    return requirements_dir(root) / CONFIG_FILE


def cache_path(root: Path) -> Path:
    """Return the test cache file path."""
    return requirements_dir(root) / CACHE_FILE


def ignored_tests_path(root: Path) -> Path:
    """Return the ignored-test list path."""
    return requirements_dir(root) / IGNORED_TESTS_FILE


def normalize_requirement_path(req_path: str) -> str:
    """Return req_path normalized relative to the requirements directory.

    Raises:
        InvalidRequirementPathError: If the file name is not ``REQ_*.yml`` or
            the path is absolute or escapes the requirements directory.
    """
    normalized = posixpath.normpath(req_path)
    if (
        PurePosixPath(normalized).is_absolute()
        or normalized == ".."
        or normalized.startswith("../")
        or not REQUIREMENT_FILE_PATTERN.match(PurePosixPath(normalized).name)
    ):
        raise InvalidRequirementPathError(req_path)
    return normalized


def is_valid_requirement_path(req_path: str) -> bool:
    """Return True if req_path names a ``REQ_*.yml`` file inside the directory."""
    try:
        normalize_requirement_path(req_path)
    except InvalidRequirementPathError:
        return False
    return True


def _dump_yaml(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True),
        encoding="utf-8",
    )


def _requirement_document(requirement: Requirement) -> dict[str, Any]:
    data = requirement.model_dump(mode="json", by_alias=True)
    for key in ("gherkin", "aiAssessment"):
        if data.get(key) is None:
            data.pop(key, None)
    return data


def _validation_message(error: ValidationError) -> str:
    for detail in error.errors():
        if detail["loc"] and detail["loc"][0] == "status":
            return _STATUS_MESSAGE
    return str(error)


@dataclass
class LoadResult:
    """Requirements loaded from the store, plus per-file validation errors."""

    requirements: list[ParsedRequirement] = field(default_factory=list)
    errors: list[RequirementValidationError] = field(default_factory=list)


class RequirementStore:
    """Read and write requirement documents under a project root.

    Example:
        >>> store = RequirementStore(Path("."))
        >>> store.load("auth/REQ_login.yml").data.status
        'done'
    """

    def __init__(self, root: Path) -> None:
        self.root = root
        self.directory = requirements_dir(root)

    def exists(self) -> bool:
        """Return True if the requirements directory exists."""
        return self.directory.is_dir()

    def ensure_initialized(self) -> None:
        """Raise NotInitializedError unless the requirements directory exists."""
        if not self.exists():
            raise NotInitializedError(self.root)

    def create(self) -> None:
        """Create the requirements directory."""
        self.directory.mkdir(parents=True, exist_ok=True)

    def load(self, req_path: str) -> ParsedRequirement:
        """Load one requirement.

        Args:
            req_path: Path relative to the requirements directory.

        Returns:
            The parsed requirement.

        Raises:
            InvalidRequirementPathError: If the name is not REQ_*.yml or the
                path escapes the requirements directory.
            RequirementNotFoundError: If the file does not exist.
            RequirementValidationError: If the document is invalid.
        """
        req_path = normalize_requirement_path(req_path)
        full_path = self.directory / req_path
        try:
            raw = full_path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise RequirementNotFoundError(req_path) from e

        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise RequirementValidationError(req_path, f"Invalid YAML: {e}") from e
        if not isinstance(data, dict):
            raise RequirementValidationError(req_path, _STATUS_MESSAGE)
        if data.get("tests") is None:
            data["tests"] = []

        try:
            requirement = Requirement.model_validate(data)
        except ValidationError as e:
            raise RequirementValidationError(req_path, _validation_message(e)) from e
        return ParsedRequirement(path=req_path, data=requirement)

    def save(self, req_path: str, requirement: Requirement) -> None:
        """Write one requirement, replacing the file.

        Raises:
            InvalidRequirementPathError: If the name is not REQ_*.yml or the
                path escapes the requirements directory.
        """
        req_path = normalize_requirement_path(req_path)
        _dump_yaml(self.directory / req_path, _requirement_document(requirement))
        logger.debug("store.requirement_saved", requirement=req_path)

    def requirement_exists(self, req_path: str) -> bool:
        """Return True if the requirement file exists.

        Raises:
            InvalidRequirementPathError: If req_path is not a valid requirement path.
        """
        return (self.directory / normalize_requirement_path(req_path)).is_file()

    def move(self, source: str, dest: str) -> None:
        """Move a requirement file, creating the destination directory.

        Raises:
            InvalidRequirementPathError: If either path is invalid.
            RequirementNotFoundError: If source does not exist.
            RequirementExistsError: If dest already exists.
        """
        source = normalize_requirement_path(source)
        dest = normalize_requirement_path(dest)
        if not self.requirement_exists(source):
            raise RequirementNotFoundError(source)
        if self.requirement_exists(dest):
            raise RequirementExistsError(dest)
        target = self.directory / dest
        target.parent.mkdir(parents=True, exist_ok=True)
        os.replace(self.directory / source, target)
        logger.debug("store.requirement_moved", source=source, dest=dest)

    def load_all(self, path_filter: str | None = None) -> LoadResult:
        """Load every requirement, optionally restricted to a path prefix.

        Invalid documents are collected in ``errors`` instead of aborting.

        Args:
            path_filter: Prefix such as ``auth/`` or ``auth/REQ_login.yml``.

        Returns:
            LoadResult with requirements sorted by path.
        """
        result = LoadResult()
        if not self.exists():
            return result

        for file in sorted(self.directory.rglob("REQ_*.yml")):
            if not file.is_file():
                continue
            req_path = file.relative_to(self.directory).as_posix()
            if path_filter and not req_path.startswith(path_filter):
                continue
            try:
                result.requirements.append(self.load(req_path))
            except RequirementValidationError as e:
                logger.warning("store.requirement_invalid", requirement=req_path, error=str(e))
                result.errors.append(e)

        result.requirements.sort(key=lambda r: r.path)
        return result


class IgnoredTestStore:
    """Read and write the ignored-test list."""

    def __init__(self, root: Path) -> None:
        self.path = ignored_tests_path(root)

    def load(self) -> list[IgnoredTest]:
        """Return the ignored tests; a missing or empty file gives []."""
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return []
        if not isinstance(data, dict):
            return []
        return [IgnoredTest.model_validate(item) for item in data.get("tests") or []]

    def save(self, tests: list[IgnoredTest]) -> None:
        """Replace the ignored-test list."""
        _dump_yaml(
            self.path,
            {"tests": [t.model_dump(mode="json", by_alias=True) for t in tests]},
        )


__all__ = [
    "CACHE_FILE",
    "CONFIG_FILE",
    "IGNORED_TESTS_FILE",
    "REQUIREMENTS_DIR",
    "IgnoredTestStore",
    "LoadResult",
    "RequirementStore",
    "cache_path",
    "config_path",
    "ignored_tests_path",
    "is_valid_requirement_path",
    "normalize_requirement_path",
    "requirements_dir",
]
