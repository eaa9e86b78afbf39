"""
Provider base — the contract between the runner and a resource kind.

The runner only talks to providers through this interface. A provider
answers two questions about an Item: is it already in place (``check``)
and how to put it in place (``apply``). ``apply`` must leave the
resource so that an immediately following ``check`` is satisfied.

To create a new provider:
    1. Subclass Provider
    2. Implement name, check, apply
    3. Add it to the registry's builtin list
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from dek.core.models.item import CheckResult, Item
from dek.core.models.requirement import Requirement
from dek.core.system.process import ProgressSink


class Provider(ABC):
    """Abstract base class for all providers.

    ``check`` and ``apply`` raise ``ProviderError`` (or let ``OSError``
    escape) on failure; the runner turns those into failed outcomes.
    ``apply`` raises ``ItemSkipped`` to leave an item untouched, which
    records a skipped outcome and keeps its cache_key unset.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """The kind string this provider handles (e.g. 'package.apt')."""

    @abstractmethod
    def check(self, item: Item) -> CheckResult:
        """Report whether the item's desired state is already present."""

    @abstractmethod
    def apply(self, item: Item) -> None:
        """Bring the item's resource into the desired state."""

    def apply_live(self, item: Item, progress: ProgressSink) -> None:
        """Apply with output lines forwarded to ``progress``.

        Defaults to ``apply``; providers that shell out override it.
        """
        self.apply(item)

    def requires(self) -> list[Requirement]:
        """Binaries that must exist before this provider can run."""
        return []

    def is_check_only(self) -> bool:
        """Check-only providers report issues instead of applying."""
        return False

    def needs_sudo(self) -> bool:
        return False

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"
