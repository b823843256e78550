"""Shared pytest configuration and fixtures for req-tracker tests.

Provides:
- Logging reset between tests (the CLI reconfigures structlog per invocation)
- Project fixtures: an initialized project root with helpers to write test
  files and requirement documents
- A click CliRunner
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from pathlib import Path
from typing import Any

import pytest
import structlog
import yaml
from click.testing import CliRunner

FIXTURES_DIR = Path(__file__).parent / "fixtures"

SAMPLE_TEST_FILE = """\
import { expect, it } from "bun:test";

it("adds numbers", () => {
  expect(1 + 2).toBe(3);
});

it("subtracts numbers", () => {
  expect(3 - 2).toBe(1);
});
"""


@pytest.fixture(autouse=True)
def _reset_structlog() -> Generator[None, None, None]:
    """Restore structlog defaults after each test."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def advanced_patterns_source() -> str:
    """Return the text of the fixture file covering every declaration style."""
    return (FIXTURES_DIR / "advanced_patterns.test.ts").read_text(encoding="utf-8")


@pytest.fixture
def write_source(tmp_path: Path) -> Callable[[str, str], Path]:
    """Return a helper that writes a source file relative to tmp_path."""

    def _write(relative: str, content: str) -> Path:
        path = tmp_path / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def project(tmp_path: Path, write_source: Callable[[str, str], Path]) -> Path:
    """Create an initialized project with one test file.

    Layout:
        .requirements/config.yml
        src/math.test.ts  (tests "adds numbers" and "subtracts numbers")
    """
    from req_tracker.operations import init_project

    init_project(tmp_path)
    write_source("src/math.test.ts", SAMPLE_TEST_FILE)
    return tmp_path


@pytest.fixture
def write_requirement(project: Path) -> Callable[..., Path]:
    """Return a helper that writes a requirement YAML document."""

    def _write(req_path: str, status: str = "done", **fields: Any) -> Path:
        path = project / ".requirements" / req_path
        path.parent.mkdir(parents=True, exist_ok=True)
        data: dict[str, Any] = {"status": status, **fields}
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
        return path

    return _write
