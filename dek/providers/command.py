"""
Command provider — arbitrary check/apply shell scripts.

Params:
    check:   script that exits 0 when the desired state holds
    apply:   script that establishes it
    confirm: ask before applying
"""

from __future__ import annotations

import logging
from collections.abc import Callable

import click

from dek.core.errors import ItemSkipped, ProviderError
from dek.core.models.item import CheckResult, Item
from dek.core.system.process import ProgressSink, run_shell
from dek.providers.base import Provider

logger = logging.getLogger(__name__)


def _script(item: Item, which: str) -> str:
    script = item.param(which)
    if not script:
        raise ProviderError(f"Command '{item.key}' missing {which} script")
    return script


class CommandProvider(Provider):
    """Runs the check script quietly; the apply script owns the terminal."""

    def __init__(self, confirm: Callable[[str], bool] | None = None):
        self._confirm = confirm or (lambda prompt: click.confirm(prompt, default=False))

    @property
    def name(self) -> str:
        return "command"

    def check(self, item: Item) -> CheckResult:
        result = run_shell(_script(item, "check"), quiet=True)
        if result.returncode == 0:
            return CheckResult.satisfied()
        return CheckResult.missing(f"check failed (exit {result.returncode})")

    def apply(self, item: Item) -> None:
        script = _script(item, "apply")
        if item.param("confirm") and not self._confirm(f"Apply {item.key}?"):
            raise ItemSkipped("declined")

        result = run_shell(script, inherit=True)
        if result.returncode != 0:
            raise ProviderError(f"apply failed (exit {result.returncode})")

    def apply_live(self, item: Item, progress: ProgressSink) -> None:
        # Interactive scripts need the real terminal, not the progress sink
        self.apply(item)
