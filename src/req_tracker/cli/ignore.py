"""Ignored-test commands."""

from __future__ import annotations

import click

from req_tracker.cli.utils import get_root, handle_errors, info, success
from req_tracker.operations import ignore_test, unignore_test


@click.command(name="ignore-test", help="Exclude a test (FILE:IDENTIFIER) from orphan reports.")
@click.argument("test_spec", metavar="FILE:IDENTIFIER")
@click.option("--reason", required=True, help="Why the test needs no requirement.")
@click.pass_context
def ignore_test_command(ctx: click.Context, test_spec: str, reason: str) -> None:
    """Add a test to the ignored list."""
    with handle_errors():
        result = ignore_test(get_root(ctx), test_spec, reason)

    if result.already_ignored:
        info(f"Already ignored: {result.file}:{result.identifier}")
        return
    success(f"Ignored {result.file}:{result.identifier}")


@click.command(name="unignore-test", help="Return a test to orphan reports.")
@click.argument("test_spec", metavar="FILE:IDENTIFIER")
@click.pass_context
def unignore_test_command(ctx: click.Context, test_spec: str) -> None:
    """Remove a test from the ignored list."""
    with handle_errors():
        result = unignore_test(get_root(ctx), test_spec)

    success(f"No longer ignored: {result.file}:{result.identifier}")
