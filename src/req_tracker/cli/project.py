"""Project commands: init and scan."""

from __future__ import annotations

import json

import click

from req_tracker.cli.utils import get_root, handle_errors, info, success
from req_tracker.operations import init_project, scan_tests


@click.command(name="init", help="Create the .requirements directory and configuration.")
@click.option("--test-glob", default=None, help="Glob selecting test files.")
@click.option("--test-runner", default=None, help="Command used to run tests.")
@click.option("--force", is_flag=True, help="Overwrite an existing configuration.")
@click.pass_context
def init_command(
    ctx: click.Context,
    test_glob: str | None,
    test_runner: str | None,
    force: bool,
) -> None:
    """Initialize requirement tracking in the project root."""
    root = get_root(ctx)
    with handle_errors(root=str(root)):
        result = init_project(root, test_glob=test_glob, test_runner=test_runner, force=force)

    if not result.created:
        info("Already initialized; use --force to rewrite the configuration.")
        return
    success(f"Initialized requirements in {root / '.requirements'}")
    success(f"  test glob:   {result.config.test_glob}")
    success(f"  test runner: {result.config.test_runner}")


@click.command(name="scan", help="List the tests discovered in the project.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option("--no-cache", is_flag=True, help="Ignore the cache and rescan.")
@click.pass_context
def scan_command(ctx: click.Context, as_json: bool, no_cache: bool) -> None:
    """Print every discovered test with its body hash."""
    root = get_root(ctx)
    with handle_errors():
        result = scan_tests(root, force_fresh=no_cache)

    if as_json:
        payload = {
            "fromCache": result.from_cache,
            "tests": [t.model_dump(include={"file", "identifier", "hash"}) for t in result.tests],
        }
        click.echo(json.dumps(payload, indent=2))
        return

    for test in result.tests:
        success(f"{test.hash[:12]}  {test.key}")
    source = "cache" if result.from_cache else "fresh scan"
    info(f"{len(result.tests)} tests ({source})")
