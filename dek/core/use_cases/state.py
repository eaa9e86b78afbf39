"""
State use case — evaluate probes and answer a query.

Three shapes of query:
    dek state                      every probe
    dek state os arch.short        the named values
    dek state os is linux          an operator on one value
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from dek.core.config.loader import init_lib, load_config, resolve_config_path
from dek.core.errors import ConfigError
from dek.core.models.probe import ProbeResult
from dek.core.persistence.cache import FileCache
from dek.core.probes.evaluator import ProbeEvaluator
from dek.core.probes.query import StateQuery, apply_operator, is_operator, lookup

logger = logging.getLogger(__name__)


@dataclass
class StateAnswer:
    """What a state query produced.

    ``values`` maps labels to text for listing queries. Operator
    queries set ``operator`` and carry ``output`` and ``exit_code``.
    """

    values: dict[str, str] = field(default_factory=dict)
    results: dict[str, ProbeResult] = field(default_factory=dict)
    queried: bool = False
    operator: bool = False
    output: str | None = None
    exit_code: int = 0

    def to_dict(self) -> dict[str, Any]:
        if self.queried:
            return dict(self.values)
        return {name: r.to_dict() for name, r in self.results.items()}


def query_state(
    name: str | None = None,
    args: Sequence[str] = (),
    config_path: Path | None = None,
    cache: FileCache | None = None,
) -> StateAnswer:
    """Evaluate the config's probes and resolve the query.

    Raises:
        ConfigError: No probes defined.
        QueryError: Unknown probe, variant or operator misuse.
        StructuralError: Unknown dependency or cycle.
    """
    path = resolve_config_path(config_path)
    init_lib(path)
    config = load_config(path)
    if not config.state:
        raise ConfigError("No state probes defined in config")

    results = ProbeEvaluator(cache).evaluate(config.state)

    if name is not None and is_operator(args):
        value = lookup(results, StateQuery.parse(name))
        outcome = apply_operator(value, args)
        return StateAnswer(output=outcome.output, exit_code=outcome.exit_code, operator=True)

    queries = [StateQuery.parse(q) for q in ([name] if name else []) + list(args)]
    if not queries:
        values = {n: r.raw for n, r in results.items()}
        return StateAnswer(values=values, results=results)

    values = {q.label: lookup(results, q) for q in queries}
    return StateAnswer(values=values, results=results, queried=True)
