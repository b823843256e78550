"""Requirement commands: link, unlink and assess."""

from __future__ import annotations

import click

from req_tracker.cli.utils import get_root, handle_errors, info, success
from req_tracker.operations import assess_requirement, link_test, unlink_test


@click.command(name="link", help="Link a test (FILE:IDENTIFIER) to a requirement.")
@click.argument("requirement")
@click.argument("test_spec", metavar="FILE:IDENTIFIER")
@click.pass_context
def link_command(ctx: click.Context, requirement: str, test_spec: str) -> None:
    """Link a test to a requirement at its current body hash."""
    with handle_errors(requirement=requirement):
        result = link_test(get_root(ctx), requirement, test_spec)

    if result.already_linked:
        info(f"Test already linked to {requirement}")
        return
    success(f"Linked {result.file}:{result.identifier} to {requirement}")
    if result.assessment_cleared:
        info("Assessment cleared; reassess the requirement.")


@click.command(name="unlink", help="Remove a linked test from a requirement.")
@click.argument("requirement")
@click.argument("test_spec", metavar="FILE:IDENTIFIER")
@click.pass_context
def unlink_command(ctx: click.Context, requirement: str, test_spec: str) -> None:
    """Remove a linked test from a requirement."""
    with handle_errors(requirement=requirement):
        result = unlink_test(get_root(ctx), requirement, test_spec)

    if result.not_linked:
        info(f"Test is not linked to {requirement}")
        return
    success(f"Unlinked {result.file}:{result.identifier} from {requirement}")
    if result.assessment_cleared:
        info("Assessment cleared; reassess the requirement.")


@click.command(name="assess", help="Record whether a requirement's tests are sufficient.")
@click.argument("requirement")
@click.option(
    "--sufficient/--insufficient",
    default=None,
    help="Whether the linked tests cover the requirement.",
)
@click.option("--notes", default="", help="Assessment notes.")
@click.pass_context
def assess_command(
    ctx: click.Context, requirement: str, sufficient: bool | None, notes: str
) -> None:
    """Store an assessment for a requirement."""
    if sufficient is None:
        raise click.UsageError("Specify --sufficient or --insufficient.", ctx=ctx)
    with handle_errors(requirement=requirement):
        result = assess_requirement(get_root(ctx), requirement, sufficient, notes)

    verdict = "sufficient" if result.assessment.sufficient else "insufficient"
    success(f"Assessed {requirement}: {verdict}")
