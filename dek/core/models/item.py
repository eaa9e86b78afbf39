"""
Item and CheckResult models — the reconciliation contract.

Items are desired-state assertions built fresh on every run from
configuration. Providers answer ``check`` with a CheckResult and the
runner decides whether ``apply`` is needed. Items are frozen: nothing
downstream of the config layer may change one.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class Item(BaseModel):
    """A single desired-state assertion to reconcile.

    ``kind`` selects the provider, ``key`` identifies the resource
    within that kind (package name, file path, service name) and
    ``value`` carries the primary desired value, if the kind has one.
    Structured options live in ``params``.
    """

    model_config = ConfigDict(frozen=True)

    kind: str
    key: str
    value: str | None = None
    gate: str | None = None          # shell predicate (run_if)
    cache_key: str | None = None     # opaque fingerprint for skipping
    params: dict[str, Any] = Field(default_factory=dict)

    @property
    def id(self) -> str:
        """Stable identity used as the state-cache key."""
        return f"{self.kind}:{self.key}"

    def param(self, name: str, default: Any = None) -> Any:
        return self.params.get(name, default)

    def __str__(self) -> str:
        return f"[{self.kind}] {self.key}"


class CheckResult(BaseModel):
    """Outcome of a provider check: satisfied, or missing with a detail."""

    model_config = ConfigDict(frozen=True)

    status: Literal["satisfied", "missing"]
    detail: str = ""

    @property
    def is_satisfied(self) -> bool:
        return self.status == "satisfied"

    @classmethod
    def satisfied(cls) -> CheckResult:
        return cls(status="satisfied")

    @classmethod
    def missing(cls, detail: str) -> CheckResult:
        return cls(status="missing", detail=detail)

    def __str__(self) -> str:
        if self.is_satisfied:
            return "satisfied"
        return f"missing: {self.detail}"
