"""Requirement correlator and verification state machine.

Compares each requirement's linked test hashes against the live scan and
derives a verification status:

    n/a         no linked tests
    unverified  linked tests, no stored assessment
    verified    assessment stored and every linked hash matches its live hash
    stale       assessment stored and at least one linked hash differs

A check pass resyncs mismatched hashes to the live value and clears the
assessment in the same pass, so with resync enabled a stale requirement is
reported as unverified together with a StaleAssessmentEvent. With resync
disabled nothing is changed and stale is reported as is.

A linked test that no longer exists in the live scan is not a mismatch; it
is reported separately as missing.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass

import structlog
from pydantic import BaseModel, ConfigDict, Field

from req_tracker.models import (
    IgnoredTest,
    ParsedRequirement,
    Requirement,
    ScanResult,
    TestLink,
    VerificationStatus,
)

logger = structlog.get_logger(__name__)


# =============================================================================
# Report Models
# =============================================================================


class StaleLink(BaseModel):
    """A linked test whose stored hash differed from the live hash."""

    model_config = ConfigDict(frozen=True)

    file: str
    identifier: str
    old_hash: str
    new_hash: str


class StaleAssessmentEvent(BaseModel):
    """Emitted when a check pass clears an assessment after tests changed.

    Not a failure: it tells the caller that a previously verified
    requirement needs a new assessment.
    """

    model_config = ConfigDict(frozen=True)

    requirement: str = Field(..., description="Requirement path")
    stale_links: list[StaleLink]
    assessment_cleared: bool


class OrphanTest(BaseModel):
    """A live test linked to no requirement and not ignored."""

    model_config = ConfigDict(frozen=True)

    file: str
    identifier: str


class RequirementCheck(BaseModel):
    """Per-requirement result of a check pass."""

    model_config = ConfigDict(frozen=True)

    path: str
    status: str = Field(..., description="planned or done")
    verification: VerificationStatus
    test_count: int
    stale_tests: list[str] = Field(default_factory=list)
    missing_tests: list[str] = Field(default_factory=list)


class CheckSummary(BaseModel):
    """Aggregate counts for a check pass.

    untested, tested and the verification counts include only requirements
    whose status is done.
    """

    model_config = ConfigDict(frozen=True)

    total_requirements: int = 0
    planned: int = 0
    done: int = 0
    untested: int = 0
    tested: int = 0
    unverified: int = 0
    verified: int = 0
    stale: int = 0
    orphaned_test_count: int = 0
    missing_test_count: int = 0


class CheckReport(BaseModel):
    """Result of one check pass.

    Attributes:
        requirements: Per-requirement entries, in input order.
        orphans: Orphaned tests sorted by (file, identifier).
        stale_events: One event per requirement whose hashes were resynced.
        updated: Requirements changed by resync; the caller persists them.
        summary: Aggregate counts.
    """

    requirements: list[RequirementCheck] = Field(default_factory=list)
    orphans: list[OrphanTest] = Field(default_factory=list)
    stale_events: list[StaleAssessmentEvent] = Field(default_factory=list)
    updated: list[ParsedRequirement] = Field(default_factory=list, exclude=True)
    summary: CheckSummary = Field(default_factory=CheckSummary)


@dataclass(frozen=True)
class ResyncOutcome:
    """Result of resyncing one requirement.

    Attributes:
        requirement: The requirement after resync (the input when unchanged).
        changed: True if any hash or the assessment was modified.
        event: Set when an assessment was cleared.
    """

    requirement: Requirement
    changed: bool
    event: StaleAssessmentEvent | None = None


# =============================================================================
# State Functions
# =============================================================================


def find_stale_links(links: Iterable[TestLink], live_hashes: dict[str, str]) -> list[StaleLink]:
    """Return links whose stored hash differs from a live hash.

    Links absent from live_hashes are not stale.
    """
    stale: list[StaleLink] = []
    for link in links:
        live = live_hashes.get(link.key)
        if live is not None and live != link.hash:
            stale.append(
                StaleLink(
                    file=link.file,
                    identifier=link.identifier,
                    old_hash=link.hash,
                    new_hash=live,
                )
            )
    return stale


def find_missing_links(links: Iterable[TestLink], live_hashes: dict[str, str]) -> list[str]:
    """Return keys of linked tests that are absent from the live scan."""
    return [link.key for link in links if link.key not in live_hashes]


def verification_status(
    links: Sequence[TestLink],
    live_hashes: dict[str, str],
    has_assessment: bool,
) -> VerificationStatus:
    """Derive the verification status of one requirement.

    Args:
        links: The requirement's linked tests.
        live_hashes: ``file:identifier`` to hash from the current scan.
        has_assessment: Whether an assessment is stored.

    Returns:
        The derived status.
    """
    if not links:
        return VerificationStatus.NOT_APPLICABLE
    if not has_assessment:
        return VerificationStatus.UNVERIFIED
    if find_stale_links(links, live_hashes):
        return VerificationStatus.STALE
    return VerificationStatus.VERIFIED


def resync_requirement(
    path: str,
    requirement: Requirement,
    live_hashes: dict[str, str],
) -> ResyncOutcome:
    """Update mismatched link hashes and clear a now-invalid assessment.

    Args:
        path: Requirement path, recorded on the event.
        requirement: Requirement to resync; it is not modified.
        live_hashes: ``file:identifier`` to hash from the current scan.

    Returns:
        ResyncOutcome with the updated copy.
    """
    stale = find_stale_links(requirement.tests, live_hashes)
    if not stale:
        return ResyncOutcome(requirement=requirement, changed=False)

    tests = [
        link.model_copy(update={"hash": live_hashes[link.key]})
        if link.key in live_hashes
        else link
        for link in requirement.tests
    ]
    had_assessment = requirement.assessment is not None
    updated = requirement.model_copy(update={"tests": tests, "assessment": None})

    event = None
    if had_assessment:
        event = StaleAssessmentEvent(
            requirement=path,
            stale_links=stale,
            assessment_cleared=True,
        )
    return ResyncOutcome(requirement=updated, changed=True, event=event)


def find_orphans(
    scan: ScanResult,
    requirements: Iterable[ParsedRequirement],
    ignored: Iterable[IgnoredTest],
) -> list[OrphanTest]:
    """Return live tests linked to no requirement and not ignored."""
    excluded: set[str] = set()
    for req in requirements:
        excluded |= req.data.linked_keys()
    excluded |= {item.key for item in ignored}

    return [
        OrphanTest(file=t.file, identifier=t.identifier)
        for t in sorted(scan.tests, key=lambda t: (t.file, t.identifier))
        if t.key not in excluded
    ]


# =============================================================================
# Check Pass
# =============================================================================


def correlate(
    requirements: Sequence[ParsedRequirement],
    scan: ScanResult,
    ignored: Sequence[IgnoredTest] = (),
    *,
    resync: bool = True,
    path_filter: str | None = None,
) -> CheckReport:
    """Run one check pass over the requirements.

    Orphans are computed against every requirement given. When path_filter
    is set, only requirements whose path starts with it are reported and
    resynced.

    Args:
        requirements: All loaded requirements.
        scan: Live scan result (fingerprints are enough).
        ignored: Ignored tests.
        resync: Resync stale hashes and clear assessments in this pass.
        path_filter: Requirement path prefix to report on.

    Returns:
        The check report; ``updated`` lists requirements to persist.
    """
    live_hashes = scan.hash_map()
    entries: list[RequirementCheck] = []
    events: list[StaleAssessmentEvent] = []
    updated: list[ParsedRequirement] = []
    counts = {
        "planned": 0,
        "done": 0,
        "untested": 0,
        "tested": 0,
        "unverified": 0,
        "verified": 0,
        "stale": 0,
        "missing_test_count": 0,
    }

    for parsed in requirements:
        if path_filter and not parsed.path.startswith(path_filter):
            continue
        req = parsed.data
        stale_keys = [
            f"{s.file}:{s.identifier}" for s in find_stale_links(req.tests, live_hashes)
        ]
        missing = find_missing_links(req.tests, live_hashes)
        status = verification_status(req.tests, live_hashes, req.assessment is not None)

        if resync and stale_keys:
            outcome = resync_requirement(parsed.path, req, live_hashes)
            req = outcome.requirement
            updated.append(ParsedRequirement(path=parsed.path, data=req))
            if outcome.event is not None:
                events.append(outcome.event)
                logger.info(
                    "correlator.assessment_cleared",
                    requirement=parsed.path,
                    stale_tests=stale_keys,
                )
            status = verification_status(req.tests, live_hashes, req.assessment is not None)

        entries.append(
            RequirementCheck(
                path=parsed.path,
                status=req.status,
                verification=status,
                test_count=len(req.tests),
                stale_tests=stale_keys,
                missing_tests=missing,
            )
        )

        counts[req.status] += 1
        counts["missing_test_count"] += len(missing)
        if req.status == "done":
            if req.tests:
                counts["tested"] += 1
                if status is not VerificationStatus.NOT_APPLICABLE:
                    counts[status.value] += 1
            else:
                counts["untested"] += 1

    orphans = find_orphans(scan, requirements, ignored)
    summary = CheckSummary(
        total_requirements=len(entries),
        orphaned_test_count=len(orphans),
        **counts,
    )
    logger.debug(
        "correlator.check_completed",
        requirements=len(entries),
        orphans=len(orphans),
        resynced=len(updated),
    )
    return CheckReport(
        requirements=entries,
        orphans=orphans,
        stale_events=events,
        updated=updated,
        summary=summary,
    )


__all__ = [
    "CheckReport",
    "CheckSummary",
    "OrphanTest",
    "RequirementCheck",
    "ResyncOutcome",
    "StaleAssessmentEvent",
    "StaleLink",
    "correlate",
    "find_missing_links",
    "find_orphans",
    "find_stale_links",
    "resync_requirement",
    "verification_status",
]
