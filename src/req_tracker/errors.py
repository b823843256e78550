"""Exception hierarchy for req-tracker.

All custom exceptions inherit from ReqTrackerError. Per-item errors
(one bad match, one unreadable file) are caught inside the pipeline and
degrade to "treat as absent"; the fatal errors propagate to the caller.

Exception Hierarchy:
    ReqTrackerError (base)
    ├── ExtractionError
    │   ├── MalformedTestBodyError  # No balanced close before end of file
    │   └── UnreadableFileError     # Permissions or encoding
    ├── CacheError
    │   ├── CacheSchemaMismatchError # Persisted cache unusable, rebuild
    │   └── CacheWriteError          # Cache could not be persisted (fatal)
    ├── ScanRootNotFoundError        # Scan root missing (fatal)
    ├── BodiesUnavailableError       # Bodies requested from a cache hit
    └── StoreError
        ├── NotInitializedError
        ├── RequirementNotFoundError
        ├── RequirementValidationError
        ├── InvalidRequirementPathError
        ├── InvalidTestSpecError
        ├── InvalidTestPathError
        ├── RequirementExistsError
        ├── TestNotFoundError
        └── TestNotIgnoredError

Example:
    >>> from req_tracker.errors import MalformedTestBodyError
    >>> raise MalformedTestBodyError(42)
    Traceback (most recent call last):
        ...
    MalformedTestBodyError: Unbalanced test body starting at offset 42
"""

from __future__ import annotations

from pathlib import Path


class ReqTrackerError(Exception):
    """Base exception for all req-tracker errors."""


# =============================================================================
# Extraction
# =============================================================================


class ExtractionError(ReqTrackerError):
    """Base for errors raised while extracting tests from source text."""


class MalformedTestBodyError(ExtractionError):
    """Raised when a callback body has no balanced close before end of file.

    Attributes:
        offset: Offset in the source text where extraction started.
        reason: Short description of what was wrong.
    """

    def __init__(self, offset: int, reason: str | None = None) -> None:
        self.offset = offset
        self.reason = reason
        message = f"Unbalanced test body starting at offset {offset}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class UnreadableFileError(ExtractionError):
    """Raised when a source file cannot be read or decoded.

    Attributes:
        path: The file that could not be read.
    """

    def __init__(self, path: Path | str, cause: Exception | None = None) -> None:
        self.path = Path(path)
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Cannot read {self.path}{detail}")


# =============================================================================
# Cache
# =============================================================================


class CacheError(ReqTrackerError):
    """Base for test cache errors."""


class CacheSchemaMismatchError(CacheError):
    """Raised when a persisted cache document cannot be used.

    Covers both a schema version mismatch and a document that does not
    validate. Callers treat it as a cache miss.

    Attributes:
        found_version: Version in the document, if one could be read.
        expected_version: Version this release writes.
    """

    def __init__(
        self,
        found_version: object,
        expected_version: int,
        message: str | None = None,
    ) -> None:
        self.found_version = found_version
        self.expected_version = expected_version
        super().__init__(
            message
            or f"Cache schema version {found_version!r} does not match {expected_version}"
        )


class CacheWriteError(CacheError):
    """Raised when the cache document cannot be written.

    Attributes:
        path: Target cache file.
    """

    def __init__(self, path: Path, cause: Exception | None = None) -> None:
        self.path = path
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Cannot write test cache {path}{detail}")


# =============================================================================
# Scanning
# =============================================================================


class ScanRootNotFoundError(ReqTrackerError):
    """Raised when the scan root does not exist or is not a directory."""

    def __init__(self, root: Path) -> None:
        self.root = root
        super().__init__(f"Scan root not found: {root}")


class BodiesUnavailableError(ReqTrackerError):
    """Raised when test bodies are requested from a cache-backed scan.

    A cache hit only carries fingerprints. Request a fresh scan when
    body content is needed.
    """

    def __init__(self) -> None:
        super().__init__(
            "Test bodies are not available from a cached scan; request a fresh scan"
        )


# =============================================================================
# Store and operations
# =============================================================================


class StoreError(ReqTrackerError):
    """Base for requirement store and operation errors."""


class NotInitializedError(StoreError):
    """Raised when the requirements directory does not exist."""

    def __init__(self, root: Path) -> None:
        self.root = root
        super().__init__(f"Not initialized: no requirements directory under {root}")


class RequirementNotFoundError(StoreError):
    """Raised when a requirement file does not exist."""

    def __init__(self, req_path: str) -> None:
        self.req_path = req_path
        super().__init__(f"Requirement not found: {req_path}")


class RequirementValidationError(StoreError):
    """Raised when a requirement document fails validation.

    Attributes:
        req_path: Requirement path relative to the requirements directory.
    """

    def __init__(self, req_path: str, message: str) -> None:
        self.req_path = req_path
        super().__init__(f"{req_path}: {message}")


class InvalidRequirementPathError(StoreError):
    """Raised when a requirement path is not a REQ_*.yml file inside the directory."""

    def __init__(self, req_path: str) -> None:
        self.req_path = req_path
        super().__init__(f"Invalid requirement path: {req_path}")


class InvalidTestSpecError(StoreError):
    """Raised when a test spec is not in file:identifier form."""

    def __init__(self, spec: str) -> None:
        self.spec = spec
        super().__init__(f"Invalid test spec {spec!r}; use file:identifier")


class InvalidTestPathError(StoreError):
    """Raised when a test file path can never appear in a scan.

    Attributes:
        file: The path as given.
        reason: Why it was rejected.
    """

    def __init__(self, file: str, reason: str) -> None:
        self.file = file
        self.reason = reason
        super().__init__(f"Invalid test file {file!r}: {reason}")


class RequirementExistsError(StoreError):
    """Raised when creating or moving onto a requirement that already exists."""

    def __init__(self, req_path: str) -> None:
        self.req_path = req_path
        super().__init__(f"Requirement already exists: {req_path}")


class TestNotFoundError(StoreError):
    """Raised when a test is not present in the live scan."""

    __test__ = False

    def __init__(self, file: str, identifier: str) -> None:
        self.file = file
        self.identifier = identifier
        super().__init__(f"Test not found in codebase: {file}:{identifier}")


class TestNotIgnoredError(StoreError):
    """Raised when removing a test that is not on the ignored list."""

    __test__ = False

    def __init__(self, file: str, identifier: str) -> None:
        self.file = file
        self.identifier = identifier
        super().__init__(f"Test not found in ignored list: {file}:{identifier}")


__all__ = [
    "BodiesUnavailableError",
    "CacheError",
    "CacheSchemaMismatchError",
    "CacheWriteError",
    "ExtractionError",
    "InvalidRequirementPathError",
    "InvalidTestPathError",
    "InvalidTestSpecError",
    "MalformedTestBodyError",
    "NotInitializedError",
    "ReqTrackerError",
    "RequirementExistsError",
    "RequirementNotFoundError",
    "RequirementValidationError",
    "ScanRootNotFoundError",
    "StoreError",
    "TestNotFoundError",
    "TestNotIgnoredError",
    "UnreadableFileError",
]
