"""
Mock provider — test double for runner and CLI tests.

Keeps an in-memory "installed" set so that apply followed by check
behaves like a real provider. Every call is recorded.
"""

from __future__ import annotations

from dek.core.errors import ProviderError
from dek.core.models.item import CheckResult, Item
from dek.core.models.requirement import Requirement
from dek.providers.base import Provider


class MockProvider(Provider):
    """Configurable provider for tests.

    By default nothing is installed, every apply succeeds and marks the
    item's key as installed.
    """

    def __init__(
        self,
        kind: str = "mock",
        installed: set[str] | None = None,
        requirements: list[Requirement] | None = None,
        check_only: bool = False,
        sudo: bool = False,
    ):
        self._kind = kind
        self.installed: set[str] = set(installed or ())
        self._requirements = list(requirements or [])
        self._check_only = check_only
        self._sudo = sudo
        self._apply_failures: dict[str, str] = {}
        self._check_failures: dict[str, str] = {}
        self.check_calls: list[Item] = []
        self.apply_calls: list[Item] = []

    @property
    def name(self) -> str:
        return self._kind

    @property
    def call_count(self) -> int:
        """Total number of check and apply calls."""
        return len(self.check_calls) + len(self.apply_calls)

    def set_failure(self, key: str, error: str = "Mock failure") -> None:
        """Make apply fail for ``key``."""
        self._apply_failures[key] = error

    def set_check_error(self, key: str, error: str = "Mock check error") -> None:
        """Make check raise for ``key``."""
        self._check_failures[key] = error

    def check(self, item: Item) -> CheckResult:
        self.check_calls.append(item)
        if item.key in self._check_failures:
            raise ProviderError(self._check_failures[item.key])
        if item.key in self.installed:
            return CheckResult.satisfied()
        return CheckResult.missing(f"'{item.key}' not installed")

    def apply(self, item: Item) -> None:
        self.apply_calls.append(item)
        if item.key in self._apply_failures:
            raise ProviderError(self._apply_failures[item.key])
        self.installed.add(item.key)

    def requires(self) -> list[Requirement]:
        return list(self._requirements)

    def is_check_only(self) -> bool:
        return self._check_only

    def needs_sudo(self) -> bool:
        return self._sudo

    def reset(self) -> None:
        """Clear call logs and configured failures."""
        self.check_calls.clear()
        self.apply_calls.clear()
        self._apply_failures.clear()
        self._check_failures.clear()
