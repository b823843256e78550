"""Operations behind the req-tracker commands.

Each operation takes the project root, performs one unit of work against
the requirement store and the test scan, and returns a pydantic result.
Nothing here prints; the command layer renders results and maps errors to
exit codes.

Operations:
    init_project: Create the requirements directory and configuration
    link_test / unlink_test: Manage a requirement's linked tests
    assess_requirement: Record an assessment of a requirement's tests
    ignore_test / unignore_test: Manage the ignored-test list
    add_requirement: Create a requirement file
    set_status: Show or change a requirement's implementation status
    move_requirement / rename_requirement: Relocate a requirement file
    check: Run a check pass and persist resynced requirements
    scan_tests: Return the current tests
"""

from __future__ import annotations

import posixpath
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Literal

import structlog
from pydantic import BaseModel, ConfigDict, Field

from req_tracker.cache import CacheManager
from req_tracker.config import ReqTrackerConfig, get_config, save_config
from req_tracker.correlator import CheckReport, correlate
from req_tracker.errors import (
    InvalidRequirementPathError,
    InvalidTestSpecError,
    RequirementExistsError,
    TestNotFoundError,
    TestNotIgnoredError,
)
from req_tracker.models import Assessment, IgnoredTest, Requirement, ScanResult, TestLink
from req_tracker.scanner import check_test_path, find_test, normalize_test_path
from req_tracker.store import (
    IgnoredTestStore,
    RequirementStore,
    cache_path,
    normalize_requirement_path,
)

logger = structlog.get_logger(__name__)


# =============================================================================
# Result Models
# =============================================================================


class InitResult(BaseModel):
    """Result of init_project."""

    model_config = ConfigDict(frozen=True)

    created: bool = Field(..., description="False if the project was already initialized")
    config: ReqTrackerConfig


class LinkResult(BaseModel):
    """Result of link_test."""

    model_config = ConfigDict(frozen=True)

    requirement: str
    file: str
    identifier: str
    hash: str | None = None
    already_linked: bool = False
    assessment_cleared: bool = False


class UnlinkResult(BaseModel):
    """Result of unlink_test."""

    model_config = ConfigDict(frozen=True)

    requirement: str
    file: str
    identifier: str
    not_linked: bool = False
    assessment_cleared: bool = False


class AssessResult(BaseModel):
    """Result of assess_requirement."""

    model_config = ConfigDict(frozen=True)

    requirement: str
    assessment: Assessment


class IgnoreResult(BaseModel):
    """Result of ignore_test and unignore_test."""

    model_config = ConfigDict(frozen=True)

    file: str
    identifier: str
    already_ignored: bool = False


RequirementStatus = Literal["planned", "done"]


class AddResult(BaseModel):
    """Result of add_requirement."""

    model_config = ConfigDict(frozen=True)

    requirement: str
    status: RequirementStatus
    overwritten: bool = False


class StatusResult(BaseModel):
    """Result of set_status.

    Attributes:
        requirement: Normalized requirement path.
        previous: Status before the call.
        status: Status after the call.
        changed: Whether the file was rewritten.
        untested: Set when the requirement is done but links no tests.
    """

    model_config = ConfigDict(frozen=True)

    requirement: str
    previous: RequirementStatus
    status: RequirementStatus
    changed: bool = False
    untested: bool = False


class MoveResult(BaseModel):
    """Result of move_requirement and rename_requirement."""

    model_config = ConfigDict(frozen=True)

    source: str
    dest: str
    updated_dependents: list[str] = Field(default_factory=list)


class CheckOutcome(BaseModel):
    """Result of check.

    Attributes:
        report: The check pass report.
        from_cache: Whether the scan was served from the cache.
        load_errors: Messages for requirement files that failed validation.
    """

    report: CheckReport
    from_cache: bool
    load_errors: list[str] = Field(default_factory=list)


# =============================================================================
# Helpers
# =============================================================================


def parse_test_spec(spec: str) -> tuple[str, str]:
    """Split a ``file:identifier`` spec at the first colon.

    Raises:
        InvalidTestSpecError: If either part is empty or there is no colon.
    """
    file, sep, identifier = spec.partition(":")
    if not sep or not file or not identifier:
        raise InvalidTestSpecError(spec)
    return file, identifier


def _resolve_test_spec(root: Path, test_spec: str, *, check_glob: bool = False) -> tuple[str, str]:
    file, identifier = parse_test_spec(test_spec)
    file = normalize_test_path(root, file)
    if check_glob:
        check_test_path(file, get_config(root).test_glob)
    return file, identifier


def _open_store(root: Path) -> RequirementStore:
    store = RequirementStore(root)
    store.ensure_initialized()
    return store


def _cache_manager(root: Path, config: ReqTrackerConfig) -> CacheManager:
    return CacheManager(
        root,
        config.test_glob,
        cache_path(root),
        max_workers=config.scan_workers,
    )


# =============================================================================
# Operations
# =============================================================================


def init_project(
    root: Path,
    *,
    test_glob: str | None = None,
    test_runner: str | None = None,
    force: bool = False,
) -> InitResult:
    """Create the requirements directory and write a configuration file.

    An existing configuration is kept unless force is set.
    """
    store = RequirementStore(root)
    if store.exists() and not force:
        return InitResult(created=False, config=get_config(root))

    store.create()
    values: dict[str, str] = {}
    if test_glob:
        values["test_glob"] = test_glob
    if test_runner:
        values["test_runner"] = test_runner
    config = ReqTrackerConfig(**values)
    save_config(root, config)
    logger.info("operations.initialized", root=str(root))
    return InitResult(created=True, config=config)


def link_test(root: Path, req_path: str, test_spec: str) -> LinkResult:
    """Link a test to a requirement at its current body hash.

    Any stored assessment is cleared, because the set of tests changed.

    Args:
        root: Project root.
        req_path: Requirement path relative to the requirements directory.
        test_spec: ``file:identifier``.

    Returns:
        LinkResult; already_linked is set when nothing changed.

    Raises:
        NotInitializedError: If the project is not initialized.
        InvalidTestSpecError: If test_spec is malformed.
        InvalidTestPathError: If the file is outside the root, inside an
            excluded directory or not matched by the test glob.
        RequirementNotFoundError: If the requirement does not exist.
        TestNotFoundError: If the test is not in the codebase.
    """
    store = _open_store(root)
    file, identifier = _resolve_test_spec(root, test_spec, check_glob=True)
    parsed = store.load(req_path)
    requirement = parsed.data

    if any(link.file == file and link.identifier == identifier for link in requirement.tests):
        return LinkResult(
            requirement=req_path, file=file, identifier=identifier, already_linked=True
        )

    record = find_test(root, file, identifier)
    if record is None:
        raise TestNotFoundError(file, identifier)

    cleared = requirement.assessment is not None
    updated = requirement.model_copy(
        update={
            "tests": [
                *requirement.tests,
                TestLink(file=file, identifier=identifier, hash=record.hash),
            ],
            "assessment": None,
        }
    )
    store.save(req_path, updated)
    logger.info("operations.test_linked", requirement=req_path, test=record.key)
    return LinkResult(
        requirement=req_path,
        file=file,
        identifier=identifier,
        hash=record.hash,
        assessment_cleared=cleared,
    )


def unlink_test(root: Path, req_path: str, test_spec: str) -> UnlinkResult:
    """Remove a linked test from a requirement and clear its assessment.

    Raises:
        NotInitializedError: If the project is not initialized.
        InvalidTestSpecError: If test_spec is malformed.
        RequirementNotFoundError: If the requirement does not exist.
    """
    store = _open_store(root)
    file, identifier = _resolve_test_spec(root, test_spec)
    requirement = store.load(req_path).data

    remaining = [
        link
        for link in requirement.tests
        if not (link.file == file and link.identifier == identifier)
    ]
    if len(remaining) == len(requirement.tests):
        return UnlinkResult(requirement=req_path, file=file, identifier=identifier, not_linked=True)

    cleared = requirement.assessment is not None
    store.save(req_path, requirement.model_copy(update={"tests": remaining, "assessment": None}))
    logger.info("operations.test_unlinked", requirement=req_path, test=f"{file}:{identifier}")
    return UnlinkResult(
        requirement=req_path,
        file=file,
        identifier=identifier,
        assessment_cleared=cleared,
    )


def assess_requirement(root: Path, req_path: str, sufficient: bool, notes: str = "") -> AssessResult:
    """Store an assessment of whether a requirement's tests are sufficient.

    Raises:
        NotInitializedError: If the project is not initialized.
        RequirementNotFoundError: If the requirement does not exist.
    """
    store = _open_store(root)
    requirement = store.load(req_path).data
    assessment = Assessment(
        sufficient=sufficient,
        notes=notes,
        assessed_at=datetime.now(timezone.utc),
    )
    store.save(req_path, requirement.model_copy(update={"assessment": assessment}))
    logger.info("operations.requirement_assessed", requirement=req_path, sufficient=sufficient)
    return AssessResult(requirement=req_path, assessment=assessment)


def ignore_test(root: Path, test_spec: str, reason: str) -> IgnoreResult:
    """Exclude a test from orphan reporting.

    Raises:
        NotInitializedError: If the project is not initialized.
        InvalidTestSpecError: If test_spec is malformed.
        InvalidTestPathError: If the file is not one a scan would report.
        TestNotFoundError: If the test is not in the codebase.
    """
    _open_store(root)
    file, identifier = _resolve_test_spec(root, test_spec, check_glob=True)
    ignored_store = IgnoredTestStore(root)
    ignored = ignored_store.load()

    if any(item.file == file and item.identifier == identifier for item in ignored):
        return IgnoreResult(file=file, identifier=identifier, already_ignored=True)

    if find_test(root, file, identifier) is None:
        raise TestNotFoundError(file, identifier)

    ignored.append(IgnoredTest(file=file, identifier=identifier, reason=reason))
    ignored_store.save(ignored)
    logger.info("operations.test_ignored", test=f"{file}:{identifier}", reason=reason)
    return IgnoreResult(file=file, identifier=identifier)


def unignore_test(root: Path, test_spec: str) -> IgnoreResult:
    """Return a test to orphan reporting.

    Raises:
        NotInitializedError: If the project is not initialized.
        InvalidTestSpecError: If test_spec is malformed.
        TestNotIgnoredError: If the test is not on the ignored list.
    """
    _open_store(root)
    file, identifier = _resolve_test_spec(root, test_spec)
    ignored_store = IgnoredTestStore(root)
    ignored = ignored_store.load()

    remaining = [
        item for item in ignored if not (item.file == file and item.identifier == identifier)
    ]
    if len(remaining) == len(ignored):
        raise TestNotIgnoredError(file, identifier)

    ignored_store.save(remaining)
    logger.info("operations.test_unignored", test=f"{file}:{identifier}")
    return IgnoreResult(file=file, identifier=identifier)


def add_requirement(
    root: Path,
    req_path: str,
    *,
    gherkin: str | None = None,
    status: RequirementStatus = "planned",
    force: bool = False,
) -> AddResult:
    """Create a requirement file with no linked tests.

    Raises:
        NotInitializedError: If the project is not initialized.
        InvalidRequirementPathError: If req_path is not a valid requirement path.
        RequirementExistsError: If the file exists and force is not set.
    """
    store = _open_store(root)
    req_path = normalize_requirement_path(req_path)
    exists = store.requirement_exists(req_path)
    if exists and not force:
        raise RequirementExistsError(req_path)

    store.save(req_path, Requirement(status=status, gherkin=gherkin))
    logger.info("operations.requirement_added", requirement=req_path, overwritten=exists)
    return AddResult(requirement=req_path, status=status, overwritten=exists)


def set_status(
    root: Path, req_path: str, status: RequirementStatus | None = None
) -> StatusResult:
    """Return a requirement's status, changing it first when status is given.

    Raises:
        NotInitializedError: If the project is not initialized.
        RequirementNotFoundError: If the requirement does not exist.
        pydantic.ValidationError: If status is not ``planned`` or ``done``.
    """
    store = _open_store(root)
    parsed = store.load(req_path)
    requirement = parsed.data
    previous = requirement.status

    if status is None or status == previous:
        return StatusResult(
            requirement=parsed.path,
            previous=previous,
            status=previous,
            untested=previous == "done" and not requirement.tests,
        )

    updated = Requirement.model_validate(
        {**requirement.model_dump(by_alias=True), "status": status}
    )
    store.save(parsed.path, updated)
    logger.info("operations.status_changed", requirement=parsed.path, status=status)
    return StatusResult(
        requirement=parsed.path,
        previous=previous,
        status=updated.status,
        changed=True,
        untested=updated.status == "done" and not updated.tests,
    )


def _repoint_dependencies(store: RequirementStore, source: str, dest: str) -> list[str]:
    """Rewrite ``dependencies`` entries naming source to name dest.

    Entries may be plain paths or mappings with a ``path`` key.
    """
    updated: list[str] = []
    for parsed in store.load_all().requirements:
        dependencies = (parsed.data.model_extra or {}).get("dependencies")
        if not isinstance(dependencies, list):
            continue

        changed = False
        rewritten: list[Any] = []
        for dep in dependencies:
            if isinstance(dep, dict) and dep.get("path") == source:
                dep = {**dep, "path": dest}
                changed = True
            elif dep == source:
                dep = dest
                changed = True
            rewritten.append(dep)

        if changed:
            store.save(parsed.path, parsed.data.model_copy(update={"dependencies": rewritten}))
            updated.append(parsed.path)
    return updated


def move_requirement(root: Path, source: str, dest: str) -> MoveResult:
    """Move a requirement file and update requirements that depend on it.

    Raises:
        NotInitializedError: If the project is not initialized.
        InvalidRequirementPathError: If either path is invalid.
        RequirementNotFoundError: If source does not exist.
        RequirementExistsError: If dest already exists.
    """
    store = _open_store(root)
    source = normalize_requirement_path(source)
    dest = normalize_requirement_path(dest)
    store.move(source, dest)
    dependents = _repoint_dependencies(store, source, dest)
    logger.info(
        "operations.requirement_moved", source=source, dest=dest, dependents=len(dependents)
    )
    return MoveResult(source=source, dest=dest, updated_dependents=dependents)


def rename_requirement(root: Path, req_path: str, new_name: str) -> MoveResult:
    """Rename a requirement file within its directory.

    ``REQ_`` and ``.yml`` are added to new_name when missing, so ``logout``
    becomes ``REQ_logout.yml``.

    Raises:
        InvalidRequirementPathError: If new_name contains a directory part.
        RequirementNotFoundError: If the requirement does not exist.
        RequirementExistsError: If the new name is taken.
    """
    if "/" in new_name or "\\" in new_name:
        raise InvalidRequirementPathError(new_name)
    if not new_name.startswith("REQ_"):
        new_name = f"REQ_{new_name}"
    if not new_name.endswith(".yml"):
        new_name = f"{new_name}.yml"
    source = normalize_requirement_path(req_path)
    return move_requirement(root, source, posixpath.join(posixpath.dirname(source), new_name))


def scan_tests(root: Path, *, force_fresh: bool = False) -> ScanResult:
    """Return the current tests, using the cache unless force_fresh is set.

    Raises:
        NotInitializedError: If the project is not initialized.
        CacheWriteError: If a rebuilt cache cannot be persisted.
    """
    _open_store(root)
    return _cache_manager(root, get_config(root)).get_tests(force_fresh=force_fresh)


def check(
    root: Path,
    *,
    path_filter: str | None = None,
    force_fresh: bool = False,
    resync: bool = True,
) -> CheckOutcome:
    """Run a check pass and persist requirements changed by resync.

    Args:
        root: Project root.
        path_filter: Requirement path prefix to report on.
        force_fresh: Ignore the cache.
        resync: Resync stale hashes and clear assessments.

    Returns:
        CheckOutcome with the report.

    Raises:
        NotInitializedError: If the project is not initialized.
        CacheWriteError: If a rebuilt cache cannot be persisted.
    """
    store = _open_store(root)
    config = get_config(root)
    scan = _cache_manager(root, config).get_tests(force_fresh=force_fresh)
    loaded = store.load_all()
    ignored = IgnoredTestStore(root).load()

    report = correlate(
        loaded.requirements,
        scan,
        ignored,
        resync=resync,
        path_filter=path_filter,
    )
    for parsed in report.updated:
        store.save(parsed.path, parsed.data)

    errors = [
        str(e) for e in loaded.errors if not path_filter or e.req_path.startswith(path_filter)
    ]
    return CheckOutcome(report=report, from_cache=scan.from_cache, load_errors=errors)


__all__ = [
    "AddResult",
    "AssessResult",
    "CheckOutcome",
    "IgnoreResult",
    "InitResult",
    "LinkResult",
    "MoveResult",
    "RequirementStatus",
    "StatusResult",
    "UnlinkResult",
    "add_requirement",
    "assess_requirement",
    "check",
    "ignore_test",
    "init_project",
    "link_test",
    "move_requirement",
    "parse_test_spec",
    "rename_requirement",
    "scan_tests",
    "set_status",
    "unignore_test",
    "unlink_test",
]
