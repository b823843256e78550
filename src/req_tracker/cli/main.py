"""Main entry point for the req-tracker CLI.

Commands:
    req-tracker init: Create the requirements directory and configuration
    req-tracker scan: List discovered tests
    req-tracker check: Verification status and orphaned tests
    req-tracker link / unlink: Manage a requirement's linked tests
    req-tracker assess: Record an assessment
    req-tracker add / status: Create a requirement or change its status
    req-tracker move / rename: Relocate a requirement file
    req-tracker ignore-test / unignore-test: Manage the ignored-test list

Example:
    $ req-tracker init
    $ req-tracker link auth/REQ_login.yml "src/auth.test.ts:logs in"
    $ req-tracker check --json
"""

from __future__ import annotations

import sys
from importlib.metadata import PackageNotFoundError
from importlib.metadata import version as get_version
from pathlib import Path

import click

from req_tracker.cli.check import check_command
from req_tracker.cli.ignore import ignore_test_command, unignore_test_command
from req_tracker.cli.links import assess_command, link_command, unlink_command
from req_tracker.cli.project import init_command, scan_command
from req_tracker.cli.requirements import (
    add_command,
    move_command,
    rename_command,
    status_command,
)
from req_tracker.cli.utils import configure_logging


def _get_version() -> str:
    """Return the installed package version, or 'unknown'."""
    try:
        return get_version("req-tracker")
    except PackageNotFoundError:
        return "unknown"


@click.group(
    name="req-tracker",
    help="req-tracker - link requirements to tests and detect changed tests.",
    epilog="Use 'req-tracker <command> --help' for command-specific help.",
    context_settings={
        "help_option_names": ["-h", "--help"],
    },
)
@click.version_option(
    version=_get_version(),
    prog_name="req-tracker",
    message="%(prog)s %(version)s",
)
@click.option(
    "--cwd",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Project root.",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging on stderr.")
@click.pass_context
def cli(ctx: click.Context, cwd: Path, verbose: bool) -> None:
    """Root command group for the req-tracker CLI."""
    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["root"] = cwd.resolve()


cli.add_command(init_command)
cli.add_command(scan_command)
cli.add_command(check_command)
cli.add_command(link_command)
cli.add_command(unlink_command)
cli.add_command(assess_command)
cli.add_command(add_command)
cli.add_command(status_command)
cli.add_command(move_command)
cli.add_command(rename_command)
cli.add_command(ignore_test_command)
cli.add_command(unignore_test_command)


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the req-tracker CLI.

    Args:
        argv: Command-line arguments (uses sys.argv if None).
    """
    try:
        cli(args=argv, standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        click.echo("Aborted!", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
