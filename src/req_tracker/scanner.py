"""File scanner.

Walks a project tree, selects files matching a glob, and runs extraction on
each one. Dependency directories are pruned from the walk. Per-file errors
(unreadable or undecodable files) are logged and the file is skipped; only a
missing root aborts the scan.

Example:
    >>> from pathlib import Path
    >>> records = scan(Path("."), "**/*.test.ts")
    >>> [r.key for r in records][:1]
    ['src/math.test.ts:adds numbers']
"""

from __future__ import annotations

import os
import posixpath
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path, PurePosixPath

import structlog

from req_tracker.errors import InvalidTestPathError, ScanRootNotFoundError, UnreadableFileError
from req_tracker.extraction.builder import extract_tests
from req_tracker.globbing import GlobMatcher
from req_tracker.models import TestRecord

logger = structlog.get_logger(__name__)

DEFAULT_TEST_GLOB = "**/*.test.{ts,js,tsx,jsx}"
"""Default pattern for test files."""

EXCLUDED_DIRS: frozenset[str] = frozenset(
    {
        "node_modules",
        "bower_components",
        "jspm_packages",
        ".venv",
        "venv",
        "site-packages",
        "__pycache__",
        ".git",
    }
)
"""Directory names never descended into."""


def _check_root(root: Path) -> None:
    if not root.is_dir():
        raise ScanRootNotFoundError(root)


def iter_matching_files(root: Path, pattern: str) -> Iterator[str]:
    """Yield relative POSIX paths of files under root that match pattern.

    Args:
        root: Scan root.
        pattern: Glob pattern relative to root.

    Yields:
        Matching paths in sorted order.

    Raises:
        ScanRootNotFoundError: If root is not a directory.
    """
    _check_root(root)
    glob = GlobMatcher(pattern)
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if d not in EXCLUDED_DIRS)
        rel_dir = Path(dirpath).relative_to(root)
        for name in sorted(filenames):
            relative = (rel_dir / name).as_posix()
            if glob.matches(relative):
                yield relative


def read_source(path: Path) -> str:
    """Read a source file as UTF-8.

    Raises:
        UnreadableFileError: On permission, I/O or decoding failure.
    """
    try:
        return path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise UnreadableFileError(path, e) from e


def _scan_file(root: Path, relative: str) -> list[TestRecord]:
    try:
        text = read_source(root / relative)
    except UnreadableFileError as e:
        logger.warning("scanner.file_unreadable", file=relative, error=str(e.cause))
        return []
    return extract_tests(text, relative)


def scan(root: Path, pattern: str = DEFAULT_TEST_GLOB, *, max_workers: int = 1) -> list[TestRecord]:
    """Extract every test from files matching pattern under root.

    Files are read in a thread pool when max_workers is greater than one.
    The result is sorted by (file, identifier) regardless of worker count.

    Args:
        root: Scan root.
        pattern: Glob pattern relative to root.
        max_workers: Number of reader threads.

    Returns:
        Sorted test records.

    Raises:
        ScanRootNotFoundError: If root is not a directory.
    """
    files = list(iter_matching_files(root, pattern))
    log = logger.bind(root=str(root), pattern=pattern, files=len(files))

    if max_workers > 1 and len(files) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            per_file = list(executor.map(lambda rel: _scan_file(root, rel), files))
    else:
        per_file = [_scan_file(root, rel) for rel in files]

    records = [record for batch in per_file for record in batch]
    records.sort(key=lambda r: (r.file, r.identifier))
    log.debug("scanner.scan_completed", tests=len(records))
    return records


def normalize_test_path(root: Path, file: str) -> str:
    """Return file as a normalized POSIX path relative to root.

    ``./src/a.test.ts`` and ``src/x/../a.test.ts`` both become
    ``src/a.test.ts``, the form used as the file part of scan keys. An
    absolute path is accepted when it lies under root.

    Raises:
        InvalidTestPathError: If the path is empty or resolves outside root.
    """
    candidate = file
    if PurePosixPath(file).is_absolute():
        try:
            candidate = Path(file).resolve().relative_to(root.resolve()).as_posix()
        except ValueError as e:
            raise InvalidTestPathError(file, "outside the project root") from e

    normalized = posixpath.normpath(candidate)
    if normalized == "." or normalized == ".." or normalized.startswith("../"):
        raise InvalidTestPathError(file, "outside the project root")
    return normalized


def check_test_path(relative: str, pattern: str) -> None:
    """Check that a normalized relative path is one a scan can produce.

    Raises:
        InvalidTestPathError: If the path lies in an excluded directory or
            does not match pattern.
    """
    if any(part in EXCLUDED_DIRS for part in relative.split("/")[:-1]):
        raise InvalidTestPathError(relative, "inside an excluded directory")
    if not GlobMatcher(pattern).matches(relative):
        raise InvalidTestPathError(relative, f"does not match the test glob {pattern!r}")


def find_test(root: Path, file: str, identifier: str) -> TestRecord | None:
    """Re-extract one file and return the named test, if present.

    Args:
        root: Scan root.
        file: Test file path relative to root; normalized first.
        identifier: Test name.

    Returns:
        The matching record, or None if the file or test does not exist.

    Raises:
        ScanRootNotFoundError: If root is not a directory.
        InvalidTestPathError: If file resolves outside root.
    """
    _check_root(root)
    relative = normalize_test_path(root, file)
    if not (root / relative).is_file():
        return None
    for record in _scan_file(root, relative):
        if record.identifier == identifier:
            return record
    return None


__all__ = [
    "DEFAULT_TEST_GLOB",
    "EXCLUDED_DIRS",
    "check_test_path",
    "find_test",
    "iter_matching_files",
    "normalize_test_path",
    "read_source",
    "scan",
]
