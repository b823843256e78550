"""Data models for req-tracker.

Provides Pydantic models for:
- Extraction: TestFingerprint, TestRecord, ScanResult
- Cache: TestCache
- Requirement records: TestLink, Assessment, Requirement, ParsedRequirement
- Orphan handling: IgnoredTest
- Verification: VerificationStatus

On-disk documents keep their camelCase keys (``generatedAt``, ``fileMtimes``,
``aiAssessment``, ``ignoredAt``) through field aliases; Python code uses the
snake_case attribute names.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

from req_tracker.errors import BodiesUnavailableError

CACHE_VERSION = 1
"""Schema version written into every test cache document."""

Sha256Hex = Annotated[str, Field(pattern=r"^[0-9a-f]{64}$")]
"""Lowercase hex SHA-256 digest (64 characters)."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def make_test_key(file: str, identifier: str) -> str:
    """Build the ``file:identifier`` key used by caches and link lookups.

    Args:
        file: Test file path relative to the project root.
        identifier: Test name as written in the declaration.

    Returns:
        The joined key.
    """
    return f"{file}:{identifier}"


def split_test_key(key: str) -> tuple[str, str]:
    """Split a ``file:identifier`` key at the first colon.

    Args:
        key: Key produced by make_test_key.

    Returns:
        Tuple of (file, identifier).

    Raises:
        ValueError: If the key contains no colon.
    """
    file, sep, identifier = key.partition(":")
    if not sep:
        msg = f"Invalid test key format: {key}"
        raise ValueError(msg)
    return file, identifier


# =============================================================================
# Extraction Models
# =============================================================================


class TestFingerprint(BaseModel):
    """Identity and content hash of one discovered test.

    Attributes:
        file: Path relative to the scan root, POSIX separators.
        identifier: Test name; templated names keep their raw interpolation text.
        hash: SHA-256 hex digest of the test body.
    """

    __test__ = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    file: str = Field(..., min_length=1, description="Relative test file path")
    identifier: str = Field(..., min_length=1, description="Test name")
    hash: Sha256Hex = Field(..., description="SHA-256 of the test body")

    @property
    def key(self) -> str:
        """Return the ``file:identifier`` key."""
        return make_test_key(self.file, self.identifier)


class TestRecord(TestFingerprint):
    """A fingerprint together with the exact body it was computed from."""

    __test__ = False

    body: str = Field(..., description="Exact source text of the callback body")


@dataclass(frozen=True)
class ScanResult:
    """Outcome of a cache-aware scan.

    A fresh scan carries full TestRecord objects. A cache hit carries only
    fingerprints, because bodies are never persisted; callers that need
    body text must call records(), which refuses on a cache hit.

    Attributes:
        tests: Discovered tests sorted by (file, identifier).
        from_cache: True when the tests were rebuilt from the cache.
    """

    tests: list[TestFingerprint]
    from_cache: bool

    @property
    def bodies_available(self) -> bool:
        """Whether every test in the result carries its body."""
        return not self.from_cache

    def records(self) -> list[TestRecord]:
        """Return the tests with their bodies.

        Raises:
            BodiesUnavailableError: If the result came from the cache.
        """
        if self.from_cache:
            raise BodiesUnavailableError()
        return [t for t in self.tests if isinstance(t, TestRecord)]

    def hash_map(self) -> dict[str, str]:
        """Map ``file:identifier`` keys to live hashes."""
        return {t.key: t.hash for t in self.tests}


# =============================================================================
# Cache Model
# =============================================================================


class TestCache(BaseModel):
    """Persisted fingerprint cache.

    Always rebuilt wholesale on a miss and never patched in place.

    Attributes:
        version: Schema version, compared against CACHE_VERSION.
        generated_at: When the cache was built.
        file_mtimes: Relative file path to modification time (ns since epoch).
        tests: ``file:identifier`` key to body hash.
    """

    __test__ = False

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: int = Field(..., description="Cache schema version")
    generated_at: datetime = Field(..., alias="generatedAt")
    file_mtimes: dict[str, int] = Field(default_factory=dict, alias="fileMtimes")
    tests: dict[str, Sha256Hex] = Field(default_factory=dict)


# =============================================================================
# Requirement Models
# =============================================================================


class TestLink(BaseModel):
    """A test linked to a requirement, with the hash captured at link time."""

    __test__ = False

    model_config = ConfigDict(extra="allow")

    file: str = Field(..., min_length=1)
    identifier: str = Field(..., min_length=1)
    hash: str = Field(..., description="Body hash when last synced")

    @property
    def key(self) -> str:
        """Return the ``file:identifier`` key."""
        return make_test_key(self.file, self.identifier)


class Assessment(BaseModel):
    """Judgement that a requirement's linked tests cover it."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    sufficient: bool
    notes: str = ""
    assessed_at: datetime = Field(default_factory=_utcnow, alias="assessedAt")


class Requirement(BaseModel):
    """A requirement record.

    Only the fields the verification pipeline needs are modelled. Other keys
    (priority, dependencies, scenarios, ...) survive a load/save round trip
    untouched.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    status: Literal["planned", "done"]
    gherkin: str | None = None
    tests: list[TestLink] = Field(default_factory=list)
    assessment: Assessment | None = Field(default=None, alias="aiAssessment")

    def linked_keys(self) -> set[str]:
        """Return the ``file:identifier`` keys of all linked tests."""
        return {link.key for link in self.tests}


class ParsedRequirement(BaseModel):
    """A requirement together with its path under the requirements directory."""

    path: str = Field(..., description="Path relative to the requirements directory")
    data: Requirement


class IgnoredTest(BaseModel):
    """A test deliberately excluded from orphan reporting."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    file: str = Field(..., min_length=1)
    identifier: str = Field(..., min_length=1)
    reason: str = ""
    ignored_at: datetime = Field(default_factory=_utcnow, alias="ignoredAt")

    @property
    def key(self) -> str:
        """Return the ``file:identifier`` key."""
        return make_test_key(self.file, self.identifier)


class VerificationStatus(str, Enum):
    """Derived verification state of a requirement, computed per check."""

    NOT_APPLICABLE = "n/a"
    UNVERIFIED = "unverified"
    VERIFIED = "verified"
    STALE = "stale"


__all__ = [
    "CACHE_VERSION",
    "Assessment",
    "IgnoredTest",
    "ParsedRequirement",
    "Requirement",
    "ScanResult",
    "Sha256Hex",
    "TestCache",
    "TestFingerprint",
    "TestLink",
    "TestRecord",
    "VerificationStatus",
    "make_test_key",
    "split_test_key",
]
