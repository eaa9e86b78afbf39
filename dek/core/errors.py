"""
Error taxonomy for the reconciliation runtime.

Structural and requirement errors are fatal: they abort a run before
any mutation. Provider errors are per-item and recovered by the
runner, which records them as failed outcomes and moves on.
"""

from __future__ import annotations


class DekError(Exception):
    """Base class for all dek errors."""


class ConfigError(DekError):
    """Raised when configuration is invalid or missing."""


class StructuralError(DekError):
    """A malformed run: unknown kinds, bad probe graphs."""


class UnknownProviderError(StructuralError):
    """An item names a kind that no registered provider handles."""

    def __init__(self, kind: str):
        super().__init__(f"Unknown provider: {kind}")
        self.kind = kind


class UnknownProbeDependencyError(StructuralError):
    """A probe depends on a probe name that does not exist."""

    def __init__(self, probe: str, dependency: str):
        super().__init__(f"State '{probe}' depends on unknown state '{dependency}'")
        self.probe = probe
        self.dependency = dependency


class ProbeCycleError(StructuralError):
    """The probe dependency graph contains a cycle."""

    def __init__(self, remaining: list[str]):
        names = ", ".join(remaining)
        super().__init__(f"Cycle detected in state dependencies: {names}")
        self.remaining = remaining


class RequirementError(DekError):
    """A prerequisite binary could not be installed."""


class ProviderError(DekError):
    """A provider failed to check or apply a single item."""


class QueryError(DekError):
    """A state query named an unknown probe or variant."""


class ItemSkipped(DekError):
    """A provider chose not to apply an item, e.g. a declined prompt."""
