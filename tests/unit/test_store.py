"""Unit tests for store.py - requirement and ignored-test documents."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest
import yaml

from req_tracker.errors import (
    InvalidRequirementPathError,
    RequirementExistsError,
    RequirementNotFoundError,
    RequirementValidationError,
)
from req_tracker.models import Assessment, IgnoredTest, Requirement, TestLink
from req_tracker.store import (
    IgnoredTestStore,
    RequirementStore,
    is_valid_requirement_path,
    normalize_requirement_path,
)


class TestRequirementPaths:
    """Tests for requirement path validation."""

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("REQ_login.yml", True),
            ("auth/session/REQ_refresh.yml", True),
            ("auth/login.yml", False),
            ("REQ_login.yaml", False),
            ("REQ_/", False),
            ("../REQ_login.yml", False),
            ("/abs/REQ_login.yml", False),
            ("auth/../../REQ_login.yml", False),
            ("./auth/REQ_login.yml", True),
        ],
    )
    def test_is_valid_requirement_path(self, path: str, expected: bool) -> None:
        """Test only REQ_*.yml names inside the directory are accepted."""
        assert is_valid_requirement_path(path) is expected

    def test_normalize_requirement_path(self) -> None:
        """Test . and inner .. segments are collapsed."""
        assert normalize_requirement_path("./auth/x/../REQ_login.yml") == "auth/REQ_login.yml"


class TestRequirementStore:
    """Tests for RequirementStore."""

    def test_load_minimal_requirement(
        self, project: Path, write_requirement: Callable[..., Path]
    ) -> None:
        """Test a requirement without tests loads with an empty list."""
        write_requirement("auth/REQ_login.yml", gherkin="Given a user")
        parsed = RequirementStore(project).load("auth/REQ_login.yml")
        assert parsed.path == "auth/REQ_login.yml"
        assert parsed.data.status == "done"
        assert parsed.data.tests == []
        assert parsed.data.gherkin == "Given a user"

    def test_missing_status_is_invalid(
        self, project: Path, write_requirement: Callable[..., Path]
    ) -> None:
        """Test a requirement without a valid status fails validation."""
        write_requirement("REQ_bad.yml", status="maybe")
        with pytest.raises(RequirementValidationError, match="status"):
            RequirementStore(project).load("REQ_bad.yml")

    def test_missing_file_raises_not_found(self, project: Path) -> None:
        """Test loading an absent requirement raises."""
        with pytest.raises(RequirementNotFoundError):
            RequirementStore(project).load("REQ_missing.yml")

    def test_invalid_path_raises(self, project: Path) -> None:
        """Test a non-REQ file name is rejected on load and save."""
        store = RequirementStore(project)
        with pytest.raises(InvalidRequirementPathError):
            store.load("notes.yml")
        with pytest.raises(InvalidRequirementPathError):
            store.save("notes.yml", Requirement(status="planned"))

    def test_round_trip_preserves_unknown_fields(
        self, project: Path, write_requirement: Callable[..., Path]
    ) -> None:
        """Test fields outside the verification model survive load and save."""
        write_requirement(
            "REQ_keep.yml",
            priority="high",
            dependencies=["REQ_other.yml"],
            scenarios=[{"name": "happy path"}],
        )
        store = RequirementStore(project)
        parsed = store.load("REQ_keep.yml")
        store.save("REQ_keep.yml", parsed.data)

        raw = yaml.safe_load((project / ".requirements" / "REQ_keep.yml").read_text())
        assert raw["priority"] == "high"
        assert raw["dependencies"] == ["REQ_other.yml"]
        assert raw["scenarios"] == [{"name": "happy path"}]

    def test_save_uses_on_disk_key_names(self, project: Path) -> None:
        """Test assessments are written as aiAssessment with assessedAt."""
        store = RequirementStore(project)
        requirement = Requirement(
            status="done",
            tests=[TestLink(file="a.ts", identifier="x", hash="f" * 64)],
            assessment=Assessment(sufficient=False, notes="thin"),
        )
        store.save("deep/REQ_new.yml", requirement)

        raw = yaml.safe_load((project / ".requirements" / "deep" / "REQ_new.yml").read_text())
        assert raw["tests"] == [{"file": "a.ts", "identifier": "x", "hash": "f" * 64}]
        assert raw["aiAssessment"]["sufficient"] is False
        assert "assessedAt" in raw["aiAssessment"]
        assert "gherkin" not in raw

    def test_cleared_assessment_is_not_written(
        self, project: Path, write_requirement: Callable[..., Path]
    ) -> None:
        """Test a requirement without assessment has no aiAssessment key."""
        write_requirement("REQ_a.yml", aiAssessment={"sufficient": True, "notes": ""})
        store = RequirementStore(project)
        parsed = store.load("REQ_a.yml")
        assert parsed.data.assessment is not None
        store.save("REQ_a.yml", parsed.data.model_copy(update={"assessment": None}))
        raw = yaml.safe_load((project / ".requirements" / "REQ_a.yml").read_text())
        assert "aiAssessment" not in raw

    def test_load_all_sorts_and_collects_errors(
        self, project: Path, write_requirement: Callable[..., Path]
    ) -> None:
        """Test load_all returns sorted requirements and per-file errors."""
        write_requirement("b/REQ_two.yml")
        write_requirement("a/REQ_one.yml", status="planned")
        write_requirement("a/REQ_broken.yml", status="unknown")
        (project / ".requirements" / "a" / "notes.yml").write_text("status: done\n")

        result = RequirementStore(project).load_all()
        assert [r.path for r in result.requirements] == ["a/REQ_one.yml", "b/REQ_two.yml"]
        assert [e.req_path for e in result.errors] == ["a/REQ_broken.yml"]

    def test_load_all_with_path_filter(
        self, project: Path, write_requirement: Callable[..., Path]
    ) -> None:
        """Test a path prefix limits the loaded requirements."""
        write_requirement("auth/REQ_login.yml")
        write_requirement("billing/REQ_pay.yml")
        result = RequirementStore(project).load_all("auth/")
        assert [r.path for r in result.requirements] == ["auth/REQ_login.yml"]

    def test_exists_and_create(self, tmp_path: Path) -> None:
        """Test exists reflects the requirements directory."""
        store = RequirementStore(tmp_path)
        assert store.exists() is False
        store.create()
        assert store.exists() is True


    def test_save_outside_directory_rejected(self, project: Path) -> None:
        """Test a path escaping the requirements directory is never written."""
        with pytest.raises(InvalidRequirementPathError):
            RequirementStore(project).save("../REQ_escape.yml", Requirement(status="planned"))
        assert not (project / "REQ_escape.yml").exists()

    def test_move_creates_directories(
        self, project: Path, write_requirement: Callable[..., Path]
    ) -> None:
        """Test move creates the destination directory and refuses to overwrite."""
        write_requirement("REQ_a.yml")
        write_requirement("REQ_b.yml")
        store = RequirementStore(project)
        store.move("REQ_a.yml", "deep/nested/REQ_a.yml")
        assert store.requirement_exists("deep/nested/REQ_a.yml")
        assert not store.requirement_exists("REQ_a.yml")
        with pytest.raises(RequirementExistsError):
            store.move("REQ_b.yml", "deep/nested/REQ_a.yml")
        with pytest.raises(RequirementNotFoundError):
            store.move("REQ_a.yml", "REQ_c.yml")


class TestIgnoredTestStore:
    """Tests for IgnoredTestStore."""

    def test_missing_file_is_empty(self, tmp_path: Path) -> None:
        """Test a missing ignored-test file loads as an empty list."""
        assert IgnoredTestStore(tmp_path).load() == []

    def test_empty_file_is_empty(self, project: Path) -> None:
        """Test an empty ignored-test file loads as an empty list."""
        (project / ".requirements" / "ignored-tests.yml").write_text("")
        assert IgnoredTestStore(project).load() == []

    def test_round_trip(self, project: Path) -> None:
        """Test saved entries load back with their reason."""
        store = IgnoredTestStore(project)
        store.save([IgnoredTest(file="a.ts", identifier="helper", reason="fixture")])
        [item] = store.load()
        assert (item.file, item.identifier, item.reason) == ("a.ts", "helper", "fixture")
        raw = yaml.safe_load((project / ".requirements" / "ignored-tests.yml").read_text())
        assert "ignoredAt" in raw["tests"][0]
