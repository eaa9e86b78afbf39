"""
dek — CLI entrypoint.

Usage:
    dek apply
    dek -C ./dek check base
    dek install apt.htop cargo.bat
    dek state os
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

import click

from dek import __version__
from dek.core.engine.runner import Mode
from dek.core.errors import DekError
from dek.core.observability.logging_config import setup_logging
from dek.core.system.paths import ensure_user_path


@click.group()
@click.version_option(version=__version__, prog_name="dek")
@click.option("--verbose", "-v", is_flag=True, help="Show command output and info logs.")
@click.option("--quiet", "-q", is_flag=True, help="Only report failures and issues.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-C",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Config file or directory (default: dek.yml, dek.yaml or dek/).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """dek — declarative environment configuration."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("DEK_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("DEK_LOG_FILE"),
        log_file_level=os.environ.get("DEK_LOG_FILE_LEVEL"),
    )
    ensure_user_path()


def _reporter(ctx: click.Context):
    from dek.ui.console import ConsoleReporter

    return ConsoleReporter(
        quiet=ctx.obj.get("quiet", False),
        verbose=ctx.obj.get("verbose", False) or ctx.obj.get("debug", False),
    )


def _fail(error: DekError) -> None:
    click.secho(f"✗ {error}", fg="red", err=True)
    sys.exit(1)


def _run(ctx: click.Context, mode: Mode, configs: tuple[str, ...]) -> None:
    from dek.core.use_cases.run import run_mode

    try:
        report = run_mode(
            mode,
            config_path=ctx.obj.get("config_path"),
            only=configs,
            reporter=_reporter(ctx),
        )
    except DekError as e:
        _fail(e)
        return

    if report.exit_code:
        sys.exit(report.exit_code)


# ── Reconcile ───────────────────────────────────────────────────


@cli.command()
@click.argument("configs", nargs=-1)
@click.pass_context
def plan(ctx: click.Context, configs: tuple[str, ...]) -> None:
    """List what would be processed, without checking anything."""
    _run(ctx, Mode.PLAN, configs)


@cli.command()
@click.argument("configs", nargs=-1)
@click.pass_context
def check(ctx: click.Context, configs: tuple[str, ...]) -> None:
    """Report which items are satisfied and which are missing."""
    _run(ctx, Mode.CHECK, configs)


@cli.command()
@click.argument("configs", nargs=-1)
@click.pass_context
def apply(ctx: click.Context, configs: tuple[str, ...]) -> None:
    """Bring the system into the configured state."""
    _run(ctx, Mode.APPLY, configs)


@cli.command()
@click.argument("specs", nargs=-1, required=True)
@click.pass_context
def install(ctx: click.Context, specs: tuple[str, ...]) -> None:
    """Install packages directly, e.g. apt.htop cargo.bat."""
    from dek.core.use_cases.run import run_inline

    try:
        report = run_inline(specs, reporter=_reporter(ctx))
    except DekError as e:
        _fail(e)
        return

    if report.exit_code:
        sys.exit(report.exit_code)


# ── Sub-command modules ─────────────────────────────────────────

from dek.ui.cli.state import state  # noqa: E402

cli.add_command(state)


if __name__ == "__main__":
    cli()
