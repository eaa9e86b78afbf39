"""
Console reporter — renders run progress and summaries with click.

Everything here writes to stdout; diagnostics stay on the logging
handlers (stderr).
"""

from __future__ import annotations

import click

from dek.core.models.item import Item
from dek.core.models.outcome import ItemOutcome, RunReport
from dek.core.models.requirement import Requirement

# status → (icon, colour)
_STYLES: dict[str, tuple[str, str]] = {
    "planned": ("•", "cyan"),
    "skipped": ("⊘", "bright_black"),
    "satisfied": ("✓", "green"),
    "missing": ("✗", "yellow"),
    "changed": ("✓", "green"),
    "failed": ("✗", "red"),
    "issue": ("!", "yellow"),
}


class ConsoleProgress:
    """Shows a running command's output lines (only when verbose)."""

    def __init__(self, show: bool = False):
        self.show = show
        self.last_line = ""

    def update(self, line: str) -> None:
        line = line.strip()
        if not line:
            return
        self.last_line = line
        if self.show:
            click.secho(f"      {line}", dim=True)


class ConsoleReporter:
    """RunReporter that prints one line per item and a closing summary."""

    def __init__(self, quiet: bool = False, verbose: bool = False):
        self.quiet = quiet
        self.verbose = verbose

    def no_items(self) -> None:
        click.echo("  No items")

    def resolving(self, requirements: list[Requirement]) -> None:
        if not self.quiet:
            click.secho(f"Resolving {len(requirements)} requirement(s)...", fg="cyan")

    def start(self, item: Item) -> ConsoleProgress:
        if not self.quiet:
            click.secho(f"→ {item}", fg="cyan")
        return ConsoleProgress(show=self.verbose)

    def outcome(self, outcome: ItemOutcome) -> None:
        if self.quiet and outcome.status not in ("failed", "issue"):
            return
        icon, colour = _STYLES[outcome.status]
        click.secho(f"{icon} ", fg=colour, nl=False)
        label = str(outcome)
        if outcome.status == "skipped":
            click.secho(f"{label} (skipped: {outcome.detail or 'run_if'})", fg="bright_black")
        elif outcome.detail:
            click.echo(f"{label} - {outcome.detail}")
        else:
            click.echo(label)

    def summary(self, report: RunReport) -> None:
        elapsed = f"{report.elapsed_s:.1f}s"
        click.echo()
        if report.mode == "plan":
            click.secho(
                f"Plan: {report.planned} items, {report.skipped} skipped",
                bold=True,
            )
        elif report.mode == "check":
            colour = "green" if report.missing == 0 else "yellow"
            click.secho(
                f"Check: {report.total} total, {report.satisfied} satisfied, "
                f"{report.missing} missing, {report.skipped} skipped ({elapsed})",
                fg=colour, bold=True,
            )
        else:
            colour = "red" if report.failed else ("yellow" if report.issues else "green")
            click.secho(
                f"Summary: {report.total} total, {report.skipped} skipped, "
                f"{report.changed} changed, {report.failed} failed, "
                f"{report.issues} issues ({elapsed})",
                fg=colour, bold=True,
            )
