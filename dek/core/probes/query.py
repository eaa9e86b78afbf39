"""
State queries — addressing probe results from the command line.

    os              raw value
    os.raw          raw value
    os.original     value before rewrite (raw if no rule fired)
    os.<template>   a named template

Operators compare or filter a single addressed value:

    os is linux            exit 0 if equal, else 1
    os isnot linux         exit 0 if different, else 1
    os get a b c default   print the value if allowed, else the default
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass

from dek.core.errors import QueryError
from dek.core.models.probe import ProbeResult

OPERATORS = ("is", "isnot", "get")


@dataclass(frozen=True)
class StateQuery:
    name: str
    variant: str | None = None

    @classmethod
    def parse(cls, text: str) -> StateQuery:
        name, sep, variant = text.partition(".")
        return cls(name, variant if sep else None)

    @property
    def label(self) -> str:
        if self.variant is None:
            return self.name
        return f"{self.name}.{self.variant}"


@dataclass(frozen=True)
class OperatorResult:
    exit_code: int
    output: str | None = None


def lookup(results: Mapping[str, ProbeResult], query: StateQuery) -> str:
    """Resolve a query against evaluated results.

    Raises:
        QueryError: Unknown probe name or variant.
    """
    result = results.get(query.name)
    if result is None:
        raise QueryError(f"Unknown state probe: {query.name}")
    value = result.value(query.variant)
    if value is None:
        raise QueryError(f"Unknown variant '{query.variant}' for state '{query.name}'")
    return value


def is_operator(args: Sequence[str]) -> bool:
    return bool(args) and args[0] in OPERATORS


def apply_operator(value: str, args: Sequence[str]) -> OperatorResult:
    """Apply ``args[0]`` (is / isnot / get) with its operands to ``value``."""
    op, operands = args[0], list(args[1:])

    if op in ("is", "isnot"):
        if not operands:
            raise QueryError(f"Missing value after '{op}'")
        equal = value == operands[0]
        matched = equal if op == "is" else not equal
        return OperatorResult(0 if matched else 1)

    if op == "get":
        if len(operands) < 2:
            raise QueryError("Usage: dek state <name> get <val>... <default>")
        allowed, fallback = operands[:-1], operands[-1]
        return OperatorResult(0, value if value in allowed else fallback)

    raise QueryError(f"Unknown operator: {op}")
