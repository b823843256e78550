"""Test fingerprint cache.

The cache stores, for one scan, the modification time of every file that
matched the test glob and the hash of every extracted test. It is valid
only while the matching file set and every modification time are unchanged;
otherwise it is rebuilt from a fresh scan and replaced wholesale.

A cache hit carries fingerprints only. Test bodies are never persisted, so
callers that need bodies must force a fresh scan (see ScanResult.records).

Example:
    >>> manager = CacheManager(Path("."), "**/*.test.ts", Path(".requirements/cache.json"))
    >>> result = manager.get_tests()
    >>> result.from_cache
    False
"""

from __future__ import annotations

import json
import os
import tempfile
from collections.abc import Iterable
from datetime import datetime, timezone
from pathlib import Path

import structlog
from pydantic import ValidationError

from req_tracker.errors import CacheSchemaMismatchError, CacheWriteError
from req_tracker.models import (
    CACHE_VERSION,
    ScanResult,
    TestCache,
    TestFingerprint,
    make_test_key,
    split_test_key,
)
from req_tracker.scanner import DEFAULT_TEST_GLOB, iter_matching_files, scan

logger = structlog.get_logger(__name__)


def collect_mtimes(root: Path, pattern: str) -> dict[str, int]:
    """Map every file matching pattern to its modification time in ns.

    A file that disappears between listing and stat is left out.
    """
    mtimes: dict[str, int] = {}
    for relative in iter_matching_files(root, pattern):
        try:
            mtimes[relative] = (root / relative).stat().st_mtime_ns
        except OSError:
            continue
    return mtimes


def is_cache_valid(cache: TestCache, root: Path, pattern: str) -> bool:
    """Return True if the cache still describes the files under root.

    The cache is valid when its version is current, the matching file set
    equals the cached file set exactly, and every modification time equals
    the cached value.
    """
    if cache.version != CACHE_VERSION:
        return False
    return collect_mtimes(root, pattern) == cache.file_mtimes


def build_cache(tests: Iterable[TestFingerprint], mtimes: dict[str, int]) -> TestCache:
    """Build a cache document from a scan.

    Entries are sorted so that equal scans give byte-identical documents
    apart from generated_at.
    """
    ordered = sorted(tests, key=lambda t: (t.file, t.identifier))
    return TestCache(
        version=CACHE_VERSION,
        generated_at=datetime.now(timezone.utc),
        file_mtimes=dict(sorted(mtimes.items())),
        tests={make_test_key(t.file, t.identifier): t.hash for t in ordered},
    )


def cache_to_tests(cache: TestCache) -> list[TestFingerprint]:
    """Rebuild fingerprints from a cache, sorted by (file, identifier)."""
    tests = []
    for key, digest in cache.tests.items():
        file, identifier = split_test_key(key)
        tests.append(TestFingerprint(file=file, identifier=identifier, hash=digest))
    tests.sort(key=lambda t: (t.file, t.identifier))
    return tests


class CacheManager:
    """Cache-aware access to the test scan for one command invocation.

    Holds no state beyond its constructor arguments; build one per command.

    Attributes:
        root: Scan root.
        test_glob: Glob selecting test files.
        cache_path: Location of the cache document.
        max_workers: Reader threads for a fresh scan.
    """

    def __init__(
        self,
        root: Path,
        test_glob: str = DEFAULT_TEST_GLOB,
        cache_path: Path | None = None,
        *,
        max_workers: int = 1,
    ) -> None:
        self.root = root
        self.test_glob = test_glob
        self.cache_path = cache_path or root / ".requirements" / "cache.json"
        self.max_workers = max_workers

    def load(self) -> TestCache | None:
        """Load the cache document.

        Returns:
            The cache, or None if no cache file exists.

        Raises:
            CacheSchemaMismatchError: If the document has another schema
                version or does not validate.
        """
        try:
            raw = self.cache_path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise CacheSchemaMismatchError(
                None, CACHE_VERSION, f"Cannot read cache {self.cache_path}: {e}"
            ) from e

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise CacheSchemaMismatchError(
                None, CACHE_VERSION, f"Cache {self.cache_path} is not valid JSON: {e}"
            ) from e

        found = data.get("version") if isinstance(data, dict) else None
        if found != CACHE_VERSION:
            raise CacheSchemaMismatchError(found, CACHE_VERSION)

        try:
            return TestCache.model_validate(data)
        except ValidationError as e:
            raise CacheSchemaMismatchError(
                found, CACHE_VERSION, f"Cache {self.cache_path} failed validation: {e}"
            ) from e

    def save(self, cache: TestCache) -> None:
        """Replace the cache document atomically.

        Raises:
            CacheWriteError: If the document cannot be written.
        """
        payload = json.dumps(cache.model_dump(mode="json", by_alias=True), indent=2, sort_keys=True)
        tmp_name: str | None = None
        try:
            self.cache_path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.cache_path.parent,
                prefix=".cache-",
                suffix=".json",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                handle.write(payload + "\n")
            os.replace(tmp_name, self.cache_path)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise CacheWriteError(self.cache_path, e) from e

    def get_tests(self, force_fresh: bool = False) -> ScanResult:
        """Return the current tests, from the cache when it is still valid.

        Args:
            force_fresh: Ignore any cache and scan. Required when test
                bodies are needed.

        Returns:
            ScanResult; from_cache tells whether bodies are available.

        Raises:
            ScanRootNotFoundError: If the root does not exist.
            CacheWriteError: If a rebuilt cache cannot be persisted.
        """
        log = logger.bind(root=str(self.root), pattern=self.test_glob)

        if not force_fresh:
            cache: TestCache | None = None
            try:
                cache = self.load()
            except CacheSchemaMismatchError as e:
                log.info("cache.schema_mismatch", error=str(e))

            if cache is not None and is_cache_valid(cache, self.root, self.test_glob):
                log.debug("cache.hit", tests=len(cache.tests))
                return ScanResult(tests=cache_to_tests(cache), from_cache=True)

        mtimes = collect_mtimes(self.root, self.test_glob)
        records = scan(self.root, self.test_glob, max_workers=self.max_workers)
        self.save(build_cache(records, mtimes))
        log.info("cache.rebuilt", tests=len(records), files=len(mtimes), forced=force_fresh)
        return ScanResult(tests=list(records), from_cache=False)


__all__ = [
    "CacheManager",
    "build_cache",
    "cache_to_tests",
    "collect_mtimes",
    "is_cache_valid",
]
