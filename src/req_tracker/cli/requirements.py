"""Requirement file commands: add, status, move and rename."""

from __future__ import annotations

import click

from req_tracker.cli.utils import get_root, handle_errors, info, success, warn
from req_tracker.operations import (
    MoveResult,
    add_requirement,
    move_requirement,
    rename_requirement,
    set_status,
)


def _report_move(result: MoveResult) -> None:
    success(f"Moved {result.source} -> {result.dest}")
    for path in result.updated_dependents:
        info(f"  Updated dependency in {path}")


@click.command(name="add", help="Create a requirement file (PATH must end in REQ_*.yml).")
@click.argument("requirement")
@click.option("--gherkin", default=None, help="Scenario text stored with the requirement.")
@click.option(
    "--status",
    type=click.Choice(["planned", "done"]),
    default="planned",
    show_default=True,
    help="Initial implementation status.",
)
@click.option("--force", is_flag=True, help="Overwrite an existing requirement.")
@click.pass_context
def add_command(
    ctx: click.Context, requirement: str, gherkin: str | None, status: str, force: bool
) -> None:
    """Create a requirement with no linked tests."""
    with handle_errors(requirement=requirement):
        result = add_requirement(
            get_root(ctx), requirement, gherkin=gherkin, status=status, force=force
        )

    if result.overwritten:
        info(f"Overwrote existing requirement {result.requirement}")
    success(f"Created {result.requirement} [{result.status}]")


@click.command(name="status", help="Show or set a requirement's status (planned or done).")
@click.argument("requirement")
@click.argument("status", required=False, type=click.Choice(["planned", "done"]))
@click.pass_context
def status_command(ctx: click.Context, requirement: str, status: str | None) -> None:
    """Print the requirement's status, updating it when STATUS is given."""
    with handle_errors(requirement=requirement):
        result = set_status(get_root(ctx), requirement, status)

    if result.untested:
        warn(f"{result.requirement} is done but has no linked tests")
    if status is None:
        success(f"{result.requirement}: {result.status}")
    elif result.changed:
        success(f"{result.requirement}: {result.previous} -> {result.status}")
    else:
        success(f"{result.requirement} is already {result.status}")


@click.command(name="move", help="Move a requirement file to a new path.")
@click.argument("source")
@click.argument("dest")
@click.pass_context
def move_command(ctx: click.Context, source: str, dest: str) -> None:
    """Move a requirement and repoint dependencies on it."""
    with handle_errors(requirement=source):
        result = move_requirement(get_root(ctx), source, dest)
    _report_move(result)


@click.command(name="rename", help="Rename a requirement file within its directory.")
@click.argument("requirement")
@click.argument("new_name")
@click.pass_context
def rename_command(ctx: click.Context, requirement: str, new_name: str) -> None:
    """Rename a requirement; REQ_ and .yml are added when missing."""
    with handle_errors(requirement=requirement):
        result = rename_requirement(get_root(ctx), requirement, new_name)
    _report_move(result)
