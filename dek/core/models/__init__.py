"""
Domain models for the reconciliation runtime.

    from dek.core.models import Item, CheckResult, Requirement, ProbeDefinition
"""

from dek.core.models.item import CheckResult, Item
from dek.core.models.outcome import ItemOutcome, RunReport
from dek.core.models.probe import ProbeDefinition, ProbeResult, RewriteRule
from dek.core.models.requirement import InstallMethod, InstallStrategy, Requirement

__all__ = [
    "CheckResult",
    "InstallMethod",
    "InstallStrategy",
    "Item",
    "ItemOutcome",
    "ProbeDefinition",
    "ProbeResult",
    "Requirement",
    "RewriteRule",
    "RunReport",
]
