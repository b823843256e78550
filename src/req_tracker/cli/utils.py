"""CLI utility functions and error handling.

This module provides shared utilities for the req-tracker CLI, including:
- Exit code constants and the error-to-exit-code mapping
- Output helpers for consistent stderr/stdout usage
- Logging setup for the ``--verbose`` flag

Errors are printed as plain text to stderr with a non-zero exit code so the
commands can be used from scripts and CI.

Example:
    from req_tracker.cli.utils import handle_errors

    with handle_errors():
        link_test(root, req_path, spec)
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING

import click
import structlog
from pydantic import ValidationError

from req_tracker.errors import (
    CacheWriteError,
    InvalidRequirementPathError,
    InvalidTestPathError,
    InvalidTestSpecError,
    NotInitializedError,
    ReqTrackerError,
    RequirementNotFoundError,
    RequirementValidationError,
    ScanRootNotFoundError,
    TestNotFoundError,
    TestNotIgnoredError,
)

if TYPE_CHECKING:
    from typing import NoReturn


class ExitCode(IntEnum):
    """Standard exit codes for CLI commands."""

    SUCCESS = 0
    """Command completed successfully."""

    GENERAL_ERROR = 1
    """General error (catch-all for failures)."""

    USAGE_ERROR = 2
    """Invalid usage (bad arguments, malformed test spec or path)."""

    FILE_NOT_FOUND = 3
    """Project, requirement or test not found."""

    PERMISSION_ERROR = 4
    """Permission denied writing project files."""

    VALIDATION_ERROR = 5
    """Requirement or configuration validation failed."""


_EXIT_CODES: tuple[tuple[type[Exception], ExitCode], ...] = (
    (NotInitializedError, ExitCode.FILE_NOT_FOUND),
    (RequirementNotFoundError, ExitCode.FILE_NOT_FOUND),
    (TestNotFoundError, ExitCode.FILE_NOT_FOUND),
    (TestNotIgnoredError, ExitCode.FILE_NOT_FOUND),
    (ScanRootNotFoundError, ExitCode.FILE_NOT_FOUND),
    (InvalidTestSpecError, ExitCode.USAGE_ERROR),
    (InvalidTestPathError, ExitCode.USAGE_ERROR),
    (InvalidRequirementPathError, ExitCode.USAGE_ERROR),
    (RequirementValidationError, ExitCode.VALIDATION_ERROR),
    (CacheWriteError, ExitCode.PERMISSION_ERROR),
)


def exit_code_for(exc: Exception) -> ExitCode:
    """Return the exit code for an exception raised by an operation."""
    for exc_type, code in _EXIT_CODES:
        if isinstance(exc, exc_type):
            return code
    if isinstance(exc, ValidationError):
        return ExitCode.VALIDATION_ERROR
    return ExitCode.GENERAL_ERROR


def _emit(label: str, message: str, context: dict[str, str | int | bool | None]) -> None:
    details = ", ".join(f"{k}={v}" for k, v in context.items() if v is not None)
    click.echo(f"{label}: {message} ({details})" if details else f"{label}: {message}", err=True)


def error(message: str, **context: str | int | bool | None) -> None:
    """Print ``Error: message (key=value, ...)`` to stderr.

    handle_errors passes the requirement path as context, so a failed link
    prints ``Error: Requirement not found: REQ_x.yml (requirement=REQ_x.yml)``.
    """
    _emit("Error", message, context)


def error_exit(
    message: str,
    exit_code: ExitCode = ExitCode.GENERAL_ERROR,
    **context: str | int | bool | None,
) -> NoReturn:
    """Print an error line and exit with exit_code."""
    error(message, **context)
    sys.exit(exit_code)


def warn(message: str, **context: str | int | bool | None) -> None:
    """Print a ``Warning:`` line to stderr; check uses it for invalid requirement files."""
    _emit("Warning", message, context)


def success(message: str) -> None:
    """Print a result message to stdout."""
    click.echo(message)


def info(message: str) -> None:
    """Print an informational message to stderr.

    Used for progress and status lines that should not be captured by
    stdout redirection.
    """
    click.echo(message, err=True)


@contextmanager
def handle_errors(**context: str | int | bool | None) -> Iterator[None]:
    """Turn req-tracker and validation errors into an error exit.

    Args:
        **context: Context included in the error line.

    Raises:
        SystemExit: When the wrapped block raises a handled error.
    """
    try:
        yield
    except (ReqTrackerError, ValidationError) as e:
        error_exit(str(e), exit_code_for(e), **context)
    except PermissionError as e:
        error_exit(f"Permission denied: {e.filename}", ExitCode.PERMISSION_ERROR, **context)


def configure_logging(verbose: bool) -> None:
    """Route structlog output to stderr at WARNING, or DEBUG when verbose."""
    level = logging.DEBUG if verbose else logging.WARNING
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=False,
    )


def get_root(ctx: click.Context) -> Path:
    """Return the project root stored by the root command group."""
    root: Path = ctx.obj["root"]
    return root


__all__ = [
    "ExitCode",
    "configure_logging",
    "error",
    "error_exit",
    "exit_code_for",
    "get_root",
    "handle_errors",
    "info",
    "success",
    "warn",
]
