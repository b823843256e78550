"""req-tracker - requirement traceability for test suites.

Links requirements to the test declarations that exercise them, fingerprints
each test body, and reports when a linked test has changed since its last
assessment.
"""

from __future__ import annotations

__version__ = "0.1.0"
