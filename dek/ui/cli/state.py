"""
CLI command for state probes.

Thin wrapper over ``dek.core.use_cases.state``.
"""

from __future__ import annotations

import json
import sys

import click

from dek.core.errors import DekError


@click.command()
@click.argument("name", required=False)
@click.argument("args", nargs=-1)
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def state(ctx: click.Context, name: str | None, args: tuple[str, ...], as_json: bool) -> None:
    """Evaluate state probes.

    \b
    dek state                   all probes
    dek state os arch.short     selected values
    dek state os is linux       exit 0 if equal
    dek state os isnot linux    exit 0 if different
    dek state os get a b dflt   print value if allowed, else dflt
    """
    from dek.core.use_cases.state import query_state

    try:
        answer = query_state(name, args, config_path=ctx.obj.get("config_path"))
    except DekError as e:
        click.secho(f"✗ {e}", fg="red", err=True)
        sys.exit(1)

    if answer.operator:
        if answer.output is not None:
            click.echo(answer.output, nl=False)
        sys.exit(answer.exit_code)

    if as_json:
        click.echo(json.dumps(answer.to_dict(), indent=2))
        return

    if answer.queried and len(answer.values) == 1:
        click.echo(next(iter(answer.values.values())))
        return

    width = max((len(label) for label in answer.values), default=0)
    for label, value in answer.values.items():
        lines = value.splitlines() or [""]
        click.secho(f"  {label:>{width}}  ", fg="cyan", nl=False)
        click.secho(lines[0], bold=True)
        for line in lines[1:]:
            click.secho(f"{'':{width + 4}}{line}", bold=True)
