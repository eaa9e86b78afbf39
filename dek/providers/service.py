"""
systemd service provider.

Item key is the unit name. Params:
    state:   "active" (default) to require the unit running
    enabled: true to require it enabled at boot
    scope:   "system" (default, mutations via sudo) or "user"
"""

from __future__ import annotations

import subprocess

from dek.core.errors import ProviderError
from dek.core.models.item import CheckResult, Item
from dek.core.system.process import (
    NullProgress,
    ProgressSink,
    run_cmd,
    run_cmd_live,
    run_sudo_live,
    stderr_tail,
)
from dek.providers.base import Provider


def _settings(item: Item) -> tuple[str, bool, bool]:
    state = str(item.param("state", "active"))
    enabled = bool(item.param("enabled", False))
    user = item.param("scope", "system") == "user"
    return state, enabled, user


def _systemctl(args: list[str], user: bool) -> subprocess.CompletedProcess[str]:
    """Read-only systemctl query; never needs sudo."""
    if user:
        return run_cmd("systemctl", ["--user", *args])
    return run_cmd("systemctl", args)


def _systemctl_mutate(
    args: list[str],
    user: bool,
    progress: ProgressSink,
) -> subprocess.CompletedProcess[str]:
    if user:
        return run_cmd_live("systemctl", ["--user", *args], progress)
    return run_sudo_live("systemctl", args, progress)


class SystemdProvider(Provider):
    @property
    def name(self) -> str:
        return "service"

    def needs_sudo(self) -> bool:
        return True

    def check(self, item: Item) -> CheckResult:
        state, enabled, user = _settings(item)
        unit = item.key

        if _systemctl(["cat", unit], user).returncode != 0:
            return CheckResult.missing(f"service '{unit}' not found")
        if enabled and _systemctl(["is-enabled", unit], user).returncode != 0:
            return CheckResult.missing(f"service '{unit}' not enabled")
        if state == "active" and _systemctl(["is-active", unit], user).returncode != 0:
            return CheckResult.missing(f"service '{unit}' not active")
        return CheckResult.satisfied()

    def apply(self, item: Item) -> None:
        self.apply_live(item, NullProgress())

    def apply_live(self, item: Item, progress: ProgressSink) -> None:
        state, enabled, user = _settings(item)
        if enabled:
            self._raise(_systemctl_mutate(["enable", item.key], user, progress), "enable")
        if state == "active":
            self._raise(_systemctl_mutate(["start", item.key], user, progress), "start")

    @staticmethod
    def _raise(result: subprocess.CompletedProcess[str], verb: str) -> None:
        if result.returncode != 0:
            raise ProviderError(f"systemctl {verb} failed: {stderr_tail(result)}")
