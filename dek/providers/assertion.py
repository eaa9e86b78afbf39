"""
Assertion provider — check-only facts about the system.

The item key is a shell command. Params:
    mode:    "check" (default): the command must exit 0, and its output
             must match the optional ``stdout``/``stderr`` regexes.
             "foreach": every non-empty output line is an issue.
    message: reported instead of the generated detail.

Failures are reported as issues by the runner; apply is never called.
"""

from __future__ import annotations

import re

from dek.core.errors import ProviderError
from dek.core.models.item import CheckResult, Item
from dek.core.system.process import run_shell
from dek.providers.base import Provider


def _search(pattern: str, text: str, stream: str) -> bool:
    try:
        return re.search(pattern, text) is not None
    except re.error as e:
        raise ProviderError(f"Invalid {stream} regex '{pattern}': {e}") from e


class AssertProvider(Provider):
    @property
    def name(self) -> str:
        return "assert"

    def is_check_only(self) -> bool:
        return True

    def check(self, item: Item) -> CheckResult:
        result = run_shell(item.key)
        message = item.param("message")

        if item.param("mode", "check") == "foreach":
            lines = [line for line in result.stdout.splitlines() if line]
            if not lines:
                return CheckResult.satisfied()
            return CheckResult.missing(", ".join(lines))

        if result.returncode != 0:
            return CheckResult.missing(
                message or f"exit {result.returncode}: {result.stderr.strip()}"
            )

        for stream, text in (("stdout", result.stdout), ("stderr", result.stderr)):
            pattern = item.param(stream)
            if pattern and not _search(pattern, text, stream):
                return CheckResult.missing(
                    message or f"{stream} '{text.strip()}' doesn't match '{pattern}'"
                )
        return CheckResult.satisfied()

    def apply(self, item: Item) -> None:
        pass
