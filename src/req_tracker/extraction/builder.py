"""Test record builder.

Turns matcher output into fingerprinted TestRecord objects for one file.
All matchers feed a single seen-set keyed by ``(file, identifier)``; the
first matcher in priority order to claim a key wins and later matches for
the same key are discarded, even when their body differs.

Example:
    >>> records = extract_tests('it("adds", () => { expect(1).toBe(1); });', "a.test.ts")
    >>> records[0].identifier
    'adds'
"""

from __future__ import annotations

import hashlib
from collections.abc import Sequence

import structlog

from req_tracker.errors import MalformedTestBodyError
from req_tracker.extraction.body import extract_body
from req_tracker.extraction.matchers import DEFAULT_MATCHERS, Matcher
from req_tracker.models import TestRecord

logger = structlog.get_logger(__name__)


def compute_hash(body: str) -> str:
    """Return the SHA-256 hex digest of the UTF-8 body bytes."""
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


def extract_tests(
    text: str,
    file: str,
    matchers: Sequence[Matcher] = DEFAULT_MATCHERS,
) -> list[TestRecord]:
    """Extract every test declared in one file's text.

    A match whose body cannot be balanced is skipped and does not claim its
    key, so a later matcher may still supply that test.

    Args:
        text: Full file content.
        file: Path recorded on each TestRecord (relative, POSIX form).
        matchers: Matchers in priority order.

    Returns:
        Records in matcher priority order, then source order.
    """
    seen: set[tuple[str, str]] = set()
    records: list[TestRecord] = []

    for matcher in matchers:
        for match in matcher.find_matches(text):
            key = (file, match.identifier)
            if key in seen:
                continue
            try:
                body = extract_body(text, match.body_start)
            except MalformedTestBodyError as e:
                logger.debug(
                    "extraction.malformed_body",
                    file=file,
                    identifier=match.identifier,
                    matcher=matcher.name,
                    offset=e.offset,
                    reason=e.reason,
                )
                continue
            seen.add(key)
            records.append(
                TestRecord(
                    file=file,
                    identifier=match.identifier,
                    body=body,
                    hash=compute_hash(body),
                )
            )

    return records


__all__ = ["compute_hash", "extract_tests"]
