"""Check command.

Runs a check pass: scans tests (through the cache), resyncs changed test
hashes into requirements, and reports verification status, stale
assessments that were cleared, missing linked tests and orphaned tests.

The command exits 0 whatever the coverage; it only fails on errors.
"""

from __future__ import annotations

import click

from req_tracker.cli.utils import get_root, handle_errors, success, warn
from req_tracker.correlator import CheckReport
from req_tracker.models import VerificationStatus
from req_tracker.operations import check

MAX_ORPHANS_SHOWN = 20
"""Orphaned tests listed in text output before truncating."""


def _render_report(report: CheckReport, from_cache: bool) -> list[str]:
    summary = report.summary
    source = "cache" if from_cache else "fresh scan"
    lines = [
        "=== Requirements Check ===",
        "",
        f"Requirements: {summary.total_requirements} "
        f"(planned {summary.planned}, done {summary.done})",
        f"Done requirements: tested {summary.tested}, untested {summary.untested}",
        f"Verification: verified {summary.verified}, unverified {summary.unverified}, "
        f"stale {summary.stale}",
        f"Tests source: {source}",
    ]

    if report.stale_events:
        lines += ["", "--- Assessments Cleared (tests changed) ---"]
        for event in report.stale_events:
            lines.append(f"  {event.requirement}")
            for link in event.stale_links:
                lines.append(f"    {link.file}:{link.identifier}")

    needing_attention = [
        entry
        for entry in report.requirements
        if entry.status == "done"
        and entry.verification in (VerificationStatus.UNVERIFIED, VerificationStatus.STALE)
    ]
    if needing_attention:
        lines += ["", "--- Needs Assessment ---"]
        for entry in needing_attention:
            lines.append(f"  {entry.path} [{entry.verification.value}]")

    missing = [entry for entry in report.requirements if entry.missing_tests]
    if missing:
        lines += ["", "--- Linked Tests Not Found ---"]
        for entry in missing:
            for key in entry.missing_tests:
                lines.append(f"  {entry.path}: {key}")

    if report.orphans:
        lines += ["", f"--- Orphaned Tests ({len(report.orphans)}) ---"]
        for orphan in report.orphans[:MAX_ORPHANS_SHOWN]:
            lines.append(f"  {orphan.file}:{orphan.identifier}")
        hidden = len(report.orphans) - MAX_ORPHANS_SHOWN
        if hidden > 0:
            lines.append(f"  ... and {hidden} more")

    return lines


@click.command(name="check", help="Check requirement verification and orphaned tests.")
@click.argument("path", required=False)
@click.option("--json", "as_json", is_flag=True, help="Output the report as JSON.")
@click.option("--no-cache", is_flag=True, help="Ignore the cache and rescan.")
@click.option(
    "--no-resync",
    is_flag=True,
    help="Report stale requirements without updating hashes or clearing assessments.",
)
@click.pass_context
def check_command(
    ctx: click.Context,
    path: str | None,
    as_json: bool,
    no_cache: bool,
    no_resync: bool,
) -> None:
    """Run a check pass over all requirements, or those under PATH."""
    with handle_errors():
        outcome = check(
            get_root(ctx),
            path_filter=path,
            force_fresh=no_cache,
            resync=not no_resync,
        )

    for message in outcome.load_errors:
        warn(message)

    if as_json:
        click.echo(outcome.model_dump_json(indent=2))
        return

    for line in _render_report(outcome.report, outcome.from_cache):
        success(line)
