"""Command-line interface for req-tracker.

Example:
    $ req-tracker --help
    $ req-tracker check auth/

Exit Codes:
    0: Success (check exits 0 whatever the coverage)
    1: General error
    2: Usage error (invalid arguments, malformed FILE:IDENTIFIER, bad path)
    3: Not found (project, requirement or test)
    4: Permission error
    5: Validation error
"""

from __future__ import annotations

from req_tracker.cli.main import cli, main
from req_tracker.cli.utils import ExitCode

__all__ = ["ExitCode", "cli", "main"]
