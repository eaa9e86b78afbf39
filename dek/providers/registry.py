"""
Provider registry — the closed set of kinds a run may use.

Built once per process. Lookup is an exact-match dict built at
construction, while ``providers`` keeps the registration order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from dek.core.errors import UnknownProviderError
from dek.core.persistence.cache import FileCache
from dek.providers.base import Provider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Ordered, immutable collection of providers keyed by kind."""

    def __init__(self, providers: Iterable[Provider]):
        self._providers: tuple[Provider, ...] = tuple(providers)
        self._by_kind: dict[str, Provider] = {}
        for provider in self._providers:
            if provider.name in self._by_kind:
                logger.warning("Duplicate provider for kind %s; keeping the first", provider.name)
                continue
            self._by_kind[provider.name] = provider

    @classmethod
    def default(cls, cache: FileCache | None = None) -> ProviderRegistry:
        """Registry of every builtin provider in its canonical order."""
        from dek.providers import assertion, command, file, package, script, service, shell

        cache = cache or FileCache()
        return cls([
            package.OsProvider(),
            package.AptProvider(),
            package.PacmanProvider(),
            package.CargoProvider(),
            package.GoProvider(),
            package.WebiProvider(),
            package.NpmProvider(),
            package.PipProvider(),
            package.PipxProvider(),
            service.SystemdProvider(),
            file.CopyProvider(),
            file.FetchProvider(cache),
            file.SymlinkProvider(),
            file.EnsureLineProvider(),
            file.FileLineProvider(),
            file.TemplateProvider(),
            shell.AliasProvider(),
            shell.EnvProvider(),
            command.CommandProvider(),
            script.ScriptProvider(),
            assertion.AssertProvider(),
        ])

    @property
    def providers(self) -> tuple[Provider, ...]:
        return self._providers

    def kinds(self) -> list[str]:
        return [p.name for p in self._providers]

    def get(self, kind: str) -> Provider | None:
        return self._by_kind.get(kind)

    def require(self, kind: str) -> Provider:
        """Look up a provider, raising UnknownProviderError if absent."""
        provider = self._by_kind.get(kind)
        if provider is None:
            raise UnknownProviderError(kind)
        return provider

    def __contains__(self, kind: object) -> bool:
        return kind in self._by_kind

    def __len__(self) -> int:
        return len(self._providers)
