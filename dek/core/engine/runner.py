"""
Runner — the Plan/Check/Apply reconciliation loop.

The runner takes an ordered list of Items and classifies every one of
them into exactly one outcome. It never mutates an Item.

Flow (apply):
    validate kinds → resolve requirements → sudo -v → per item:
    gate → check → (cache fresh? satisfied) → (check-only? issue) → apply

Provider failures are per-item: recorded as ``failed`` and the loop
moves on. Structural and requirement errors abort the whole run.
"""

from __future__ import annotations

import logging
import subprocess
import time
from collections.abc import Callable, Sequence
from enum import StrEnum
from typing import Protocol

from dek.core.engine.requirements import RequirementResolver, collect_requirements
from dek.core.errors import DekError, ItemSkipped
from dek.core.models.item import Item
from dek.core.models.outcome import ItemOutcome, RunReport
from dek.core.models.requirement import Requirement
from dek.core.persistence.cache import FileCache
from dek.core.system.process import (
    NullProgress,
    ProgressSink,
    evaluate_gate,
    is_root,
    preauthenticate_sudo,
)
from dek.providers.base import Provider
from dek.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

# Errors a provider may raise that count against the item, not the run
ITEM_ERRORS = (DekError, OSError, subprocess.SubprocessError, UnicodeDecodeError)


class Mode(StrEnum):
    PLAN = "plan"
    CHECK = "check"
    APPLY = "apply"


class RunReporter(Protocol):
    """Receives run progress for display."""

    def no_items(self) -> None: ...

    def resolving(self, requirements: list[Requirement]) -> None: ...

    def start(self, item: Item) -> ProgressSink: ...

    def outcome(self, outcome: ItemOutcome) -> None: ...

    def summary(self, report: RunReport) -> None: ...


class NullReporter:
    """Reporter that displays nothing."""

    def no_items(self) -> None:
        pass

    def resolving(self, requirements: list[Requirement]) -> None:
        pass

    def start(self, item: Item) -> ProgressSink:
        return NullProgress()

    def outcome(self, outcome: ItemOutcome) -> None:
        pass

    def summary(self, report: RunReport) -> None:
        pass


class Runner:
    """Runs one mode over a list of items.

    Args:
        mode: Plan, Check or Apply.
        registry: Providers available to this run.
        resolver: Installs provider requirements (apply only).
        cache: Stores cache_key fingerprints of applied items.
        reporter: Display sink for outcomes and the summary.
        gate: Evaluates ``run_if`` predicates.
        authenticate: Pre-caches sudo credentials.
    """

    def __init__(
        self,
        mode: Mode,
        registry: ProviderRegistry,
        resolver: RequirementResolver | None = None,
        cache: FileCache | None = None,
        reporter: RunReporter | None = None,
        gate: Callable[[str], bool] = evaluate_gate,
        authenticate: Callable[[], bool] = preauthenticate_sudo,
    ):
        self.mode = Mode(mode)
        self.registry = registry
        self.resolver = resolver or RequirementResolver()
        self.cache = cache or FileCache()
        self.reporter: RunReporter = reporter or NullReporter()
        self._gate = gate
        self._authenticate = authenticate

    def run(self, items: Sequence[Item]) -> RunReport:
        """Process ``items`` in order and return the report.

        Raises:
            UnknownProviderError: An item's kind is not registered.
            RequirementError: A prerequisite could not be installed.
        """
        report = RunReport(mode=self.mode.value)
        if not items:
            self.reporter.no_items()
            return report

        providers = self._providers_for(items)
        start = time.monotonic()

        if self.mode is Mode.PLAN:
            for item in items:
                self._record(report, self._plan_item(item))
        elif self.mode is Mode.CHECK:
            for item in items:
                self._record(report, self._check_item(item, providers[item.kind]))
        else:
            self._prepare_apply(list(providers.values()))
            for item in items:
                self._record(report, self._apply_item(item, providers[item.kind]))

        report.elapsed_s = time.monotonic() - start
        self.reporter.summary(report)
        logger.info(
            "%s finished: %d items, %d changed, %d failed",
            self.mode.value, report.total, report.changed, report.failed,
        )
        return report

    # ── Setup ───────────────────────────────────────────────────

    def _providers_for(self, items: Sequence[Item]) -> dict[str, Provider]:
        """Resolve every distinct kind up front, in first-seen order."""
        providers: dict[str, Provider] = {}
        for item in items:
            if item.kind not in providers:
                providers[item.kind] = self.registry.require(item.kind)
        return providers

    def _prepare_apply(self, providers: list[Provider]) -> None:
        requirements = collect_requirements(providers)
        if requirements:
            self.reporter.resolving(requirements)
            self.resolver.resolve(requirements)

        if not is_root() and any(p.needs_sudo() for p in providers):
            if not self._authenticate():
                logger.warning("sudo authentication failed; privileged items may fail")

    # ── Per-item ────────────────────────────────────────────────

    def _record(self, report: RunReport, outcome: ItemOutcome) -> None:
        report.add(outcome)
        self.reporter.outcome(outcome)

    def _gated_out(self, item: Item) -> bool:
        return item.gate is not None and not self._gate(item.gate)

    def _plan_item(self, item: Item) -> ItemOutcome:
        if self._gated_out(item):
            return ItemOutcome.of(item, "skipped", "run_if")
        return ItemOutcome.of(item, "planned")

    def _check_item(self, item: Item, provider: Provider) -> ItemOutcome:
        if self._gated_out(item):
            return ItemOutcome.of(item, "skipped", "run_if")
        try:
            result = provider.check(item)
        except ITEM_ERRORS as e:
            logger.debug("Check raised for %s: %s", item.id, e)
            return ItemOutcome.of(item, "missing", str(e))
        if result.is_satisfied:
            return ItemOutcome.of(item, "satisfied")
        return ItemOutcome.of(item, "missing", result.detail)

    def _apply_item(self, item: Item, provider: Provider) -> ItemOutcome:
        if self._gated_out(item):
            return ItemOutcome.of(item, "skipped", "run_if")

        try:
            result = provider.check(item)
        except ITEM_ERRORS as e:
            logger.error("Check failed for %s: %s", item.id, e)
            return ItemOutcome.of(item, "failed", str(e))

        if result.is_satisfied and self._cache_fresh(item):
            return ItemOutcome.of(item, "satisfied")

        if provider.is_check_only():
            if result.is_satisfied:
                return ItemOutcome.of(item, "satisfied")
            return ItemOutcome.of(item, "issue", result.detail)

        progress = self.reporter.start(item)
        try:
            provider.apply_live(item, progress)
        except ItemSkipped as e:
            logger.info("Skipped %s: %s", item.id, e)
            return ItemOutcome.of(item, "skipped", str(e))
        except ITEM_ERRORS as e:
            logger.error("Apply failed for %s: %s", item.id, e)
            return ItemOutcome.of(item, "failed", str(e))

        if item.cache_key is not None:
            self._store_fingerprint(item)
        return ItemOutcome.of(item, "changed")

    # ── Cache fingerprints ──────────────────────────────────────

    def _cache_fresh(self, item: Item) -> bool:
        """Whether the stored fingerprint matches; unreadable counts as stale."""
        if item.cache_key is None:
            return True
        try:
            return self.cache.is_current(item.id, item.cache_key)
        except OSError as e:
            logger.warning("Cannot read cache state for %s: %s", item.id, e)
            return False

    def _store_fingerprint(self, item: Item) -> None:
        """Record the applied cache_key. A write failure is logged, not raised."""
        try:
            self.cache.set_state(item.id, item.cache_key or "")
        except OSError as e:
            logger.warning("Cannot record cache_key for %s: %s", item.id, e)
