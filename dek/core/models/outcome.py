"""
ItemOutcome and RunReport — the per-run classification.

Every item processed by the runner ends up with exactly one outcome.
The report derives all of its counters from the outcome list, so the
summary can always be audited back to individual items.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal

from pydantic import BaseModel

from dek.core.models.item import Item

OutcomeStatus = Literal[
    "planned",     # plan mode: would be processed
    "skipped",     # gate predicate failed or apply declined
    "satisfied",   # check passed (and cache fresh), nothing to do
    "missing",     # check mode: check failed
    "changed",     # apply succeeded
    "failed",      # apply (or apply-mode check) raised
    "issue",       # check-only provider reported a problem
]


class ItemOutcome(BaseModel):
    """What happened to one item during a run."""

    kind: str
    key: str
    status: OutcomeStatus
    detail: str = ""

    @classmethod
    def of(cls, item: Item, status: OutcomeStatus, detail: str = "") -> ItemOutcome:
        return cls(kind=item.kind, key=item.key, status=status, detail=detail)

    def __str__(self) -> str:
        return f"[{self.kind}] {self.key}"


@dataclass
class RunReport:
    """Result of one Plan/Check/Apply run."""

    mode: str = "apply"
    outcomes: list[ItemOutcome] = field(default_factory=list)
    elapsed_s: float = 0.0

    def add(self, outcome: ItemOutcome) -> ItemOutcome:
        self.outcomes.append(outcome)
        return outcome

    def count(self, status: OutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def total(self) -> int:
        """Items that took part in the run (everything not gated out)."""
        return len(self.outcomes) - self.skipped

    @property
    def planned(self) -> int:
        return self.count("planned")

    @property
    def skipped(self) -> int:
        return self.count("skipped")

    @property
    def satisfied(self) -> int:
        return self.count("satisfied")

    @property
    def missing(self) -> int:
        return self.count("missing")

    @property
    def changed(self) -> int:
        return self.count("changed")

    @property
    def failed(self) -> int:
        return self.count("failed")

    @property
    def issues(self) -> int:
        return self.count("issue")

    @property
    def exit_code(self) -> int:
        return 1 if self.failed > 0 else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "mode": self.mode,
            "total": self.total,
            "skipped": self.skipped,
            "satisfied": self.satisfied,
            "missing": self.missing,
            "changed": self.changed,
            "failed": self.failed,
            "issues": self.issues,
            "outcomes": [o.model_dump(mode="json") for o in self.outcomes],
        }
