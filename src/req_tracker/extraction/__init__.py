"""Extraction of test declarations from source text.

Matchers find declarations, the body extractor finds each callback's exact
extent, and the builder fingerprints and deduplicates the results.
"""

from __future__ import annotations

from req_tracker.extraction.body import (
    extract_body,
    find_body_end,
    find_body_span,
    find_matching_delimiter,
)
from req_tracker.extraction.builder import compute_hash, extract_tests
from req_tracker.extraction.matchers import (
    DEFAULT_MATCHERS,
    Match,
    Matcher,
    ModifierMatcher,
    PlainMatcher,
    TabularMatcher,
    TemplatedNameMatcher,
)

__all__ = [
    "DEFAULT_MATCHERS",
    "Match",
    "Matcher",
    "ModifierMatcher",
    "PlainMatcher",
    "TabularMatcher",
    "TemplatedNameMatcher",
    "compute_hash",
    "extract_body",
    "extract_tests",
    "find_body_end",
    "find_body_span",
    "find_matching_delimiter",
]
