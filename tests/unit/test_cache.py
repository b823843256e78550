"""Unit tests for cache.py - fingerprint cache validity and reuse.

Tests for:
- build_cache / is_cache_valid round trip
- Invalidation by modification time, file addition and file removal
- CacheManager load/save and the lossy cache-hit contract
"""

from __future__ import annotations

import json
import os
from collections.abc import Callable
from pathlib import Path

import pytest

from req_tracker.cache import (
    CacheManager,
    build_cache,
    cache_to_tests,
    collect_mtimes,
    is_cache_valid,
)
from req_tracker.errors import BodiesUnavailableError, CacheSchemaMismatchError, CacheWriteError
from req_tracker.models import CACHE_VERSION, TestRecord
from req_tracker.scanner import scan

PATTERN = "**/*.test.ts"


def _bump_mtime(path: Path) -> None:
    stat = path.stat()
    os.utime(path, ns=(stat.st_atime_ns, stat.st_mtime_ns + 5_000_000_000))


@pytest.fixture
def tree(tmp_path: Path, write_source: Callable[[str, str], Path]) -> Path:
    """Create two test files under tmp_path."""
    write_source("a.test.ts", 'it("a", () => { a(); });\n')
    write_source("src/b.test.ts", 'it("b", () => { b(); });\nit("c", () => { c(); });\n')
    return tmp_path


@pytest.fixture
def manager(tree: Path) -> CacheManager:
    """Provide a CacheManager writing under tree/.requirements."""
    return CacheManager(tree, PATTERN, tree / ".requirements" / "cache.json")


class TestCacheFunctions:
    """Tests for the free cache functions."""

    def test_build_cache_fields(self, tree: Path) -> None:
        """Test build_cache records version, mtimes and sorted keys."""
        cache = build_cache(scan(tree, PATTERN), collect_mtimes(tree, PATTERN))
        assert cache.version == CACHE_VERSION
        assert set(cache.file_mtimes) == {"a.test.ts", "src/b.test.ts"}
        assert list(cache.tests) == ["a.test.ts:a", "src/b.test.ts:b", "src/b.test.ts:c"]
        assert cache.generated_at.tzinfo is not None

    def test_round_trip_is_valid(self, tree: Path) -> None:
        """Test a freshly built cache is valid against the same tree."""
        cache = build_cache(scan(tree, PATTERN), collect_mtimes(tree, PATTERN))
        assert is_cache_valid(cache, tree, PATTERN) is True

    def test_touching_a_file_invalidates(self, tree: Path) -> None:
        """Test a changed modification time invalidates the cache."""
        cache = build_cache(scan(tree, PATTERN), collect_mtimes(tree, PATTERN))
        _bump_mtime(tree / "src" / "b.test.ts")
        assert is_cache_valid(cache, tree, PATTERN) is False

    def test_adding_a_file_invalidates(
        self, tree: Path, write_source: Callable[[str, str], Path]
    ) -> None:
        """Test a new matching file invalidates the cache."""
        cache = build_cache(scan(tree, PATTERN), collect_mtimes(tree, PATTERN))
        write_source("new.test.ts", 'it("n", () => {});\n')
        assert is_cache_valid(cache, tree, PATTERN) is False

    def test_removing_a_file_invalidates(self, tree: Path) -> None:
        """Test a deleted matching file invalidates the cache."""
        cache = build_cache(scan(tree, PATTERN), collect_mtimes(tree, PATTERN))
        (tree / "a.test.ts").unlink()
        assert is_cache_valid(cache, tree, PATTERN) is False

    def test_non_matching_file_does_not_invalidate(
        self, tree: Path, write_source: Callable[[str, str], Path]
    ) -> None:
        """Test files outside the glob do not affect validity."""
        cache = build_cache(scan(tree, PATTERN), collect_mtimes(tree, PATTERN))
        write_source("README.md", "# readme\n")
        assert is_cache_valid(cache, tree, PATTERN) is True

    def test_version_mismatch_is_invalid(self, tree: Path) -> None:
        """Test a cache from another schema version is invalid."""
        cache = build_cache(scan(tree, PATTERN), collect_mtimes(tree, PATTERN))
        stale = cache.model_copy(update={"version": CACHE_VERSION + 1})
        assert is_cache_valid(stale, tree, PATTERN) is False

    def test_cache_to_tests_splits_at_first_colon(self, tree: Path) -> None:
        """Test identifiers containing colons survive the key round trip."""
        record = TestRecord(file="a.test.ts", identifier="x: y", body="{}", hash="0" * 64)
        cache = build_cache([record], {})
        [test] = cache_to_tests(cache)
        assert (test.file, test.identifier) == ("a.test.ts", "x: y")


class TestCacheManager:
    """Tests for CacheManager."""

    def test_first_call_scans_and_persists(self, manager: CacheManager) -> None:
        """Test a missing cache triggers a scan and writes the document."""
        result = manager.get_tests()
        assert result.from_cache is False
        assert manager.cache_path.exists()
        data = json.loads(manager.cache_path.read_text())
        assert set(data) == {"version", "generatedAt", "fileMtimes", "tests"}
        assert data["version"] == CACHE_VERSION

    def test_second_call_hits_cache_with_same_fingerprints(self, manager: CacheManager) -> None:
        """Test an unchanged tree is served from the cache with identical hashes."""
        fresh = manager.get_tests()
        cached = manager.get_tests()
        again = manager.get_tests()
        assert cached.from_cache is True
        assert cached.hash_map() == fresh.hash_map() == again.hash_map()

    def test_cache_hit_refuses_bodies(self, manager: CacheManager) -> None:
        """Test bodies are unavailable from a cache hit."""
        manager.get_tests()
        cached = manager.get_tests()
        assert cached.bodies_available is False
        with pytest.raises(BodiesUnavailableError):
            cached.records()

    def test_force_fresh_returns_bodies(self, manager: CacheManager) -> None:
        """Test force_fresh bypasses a valid cache and returns bodies."""
        manager.get_tests()
        fresh = manager.get_tests(force_fresh=True)
        assert fresh.from_cache is False
        assert [r.body for r in fresh.records()] == ["{ a(); }", "{ b(); }", "{ c(); }"]

    def test_modified_file_triggers_rebuild(self, manager: CacheManager, tree: Path) -> None:
        """Test an edited file is rescanned and the new hash is reported."""
        before = manager.get_tests().hash_map()
        target = tree / "a.test.ts"
        target.write_text('it("a", () => { changed(); });\n')
        _bump_mtime(target)
        after = manager.get_tests()
        assert after.from_cache is False
        assert after.hash_map()["a.test.ts:a"] != before["a.test.ts:a"]

    def test_corrupt_cache_is_rebuilt(self, manager: CacheManager) -> None:
        """Test an unparseable cache document is treated as a miss."""
        manager.cache_path.parent.mkdir(parents=True, exist_ok=True)
        manager.cache_path.write_text("{not json")
        assert manager.get_tests().from_cache is False
        assert manager.load() is not None

    def test_load_raises_on_version_mismatch(self, manager: CacheManager) -> None:
        """Test load reports a schema mismatch."""
        manager.cache_path.parent.mkdir(parents=True, exist_ok=True)
        manager.cache_path.write_text(json.dumps({"version": 99, "tests": {}}))
        with pytest.raises(CacheSchemaMismatchError) as exc_info:
            manager.load()
        assert exc_info.value.found_version == 99

    def test_load_missing_returns_none(self, manager: CacheManager) -> None:
        """Test a missing cache file loads as None."""
        assert manager.load() is None

    def test_unwritable_cache_is_fatal(self, tree: Path) -> None:
        """Test a cache path that cannot be written raises CacheWriteError."""
        blocker = tree / "blocker"
        blocker.write_text("a file, not a directory")
        manager = CacheManager(tree, PATTERN, blocker / "cache.json")
        with pytest.raises(CacheWriteError):
            manager.get_tests()

    def test_document_is_deterministic(self, manager: CacheManager) -> None:
        """Test two fresh builds differ only in generatedAt."""
        manager.get_tests(force_fresh=True)
        first = json.loads(manager.cache_path.read_text())
        manager.get_tests(force_fresh=True)
        second = json.loads(manager.cache_path.read_text())
        first.pop("generatedAt")
        second.pop("generatedAt")
        assert first == second
