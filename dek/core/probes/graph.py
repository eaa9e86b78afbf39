"""
Probe graph — dependency validation and Kahn layering.

Probes are addressed by their index in the definition list; names are
only used to resolve ``deps`` into edges once, up front.

Layer 0 holds every probe with no dependencies. After a layer is
processed each dependent's unresolved count is decremented and those
reaching zero form the next layer. Probes within one layer never
depend on each other, so a layer may be evaluated concurrently.
"""

from __future__ import annotations

from collections.abc import Sequence

from dek.core.errors import ProbeCycleError, StructuralError, UnknownProbeDependencyError
from dek.core.models.probe import ProbeDefinition


def layer_probes(definitions: Sequence[ProbeDefinition]) -> list[list[int]]:
    """Group probe indices into evaluation layers.

    Raises:
        UnknownProbeDependencyError: A dep names no defined probe.
        ProbeCycleError: The remaining probes form a cycle.
    """
    index: dict[str, int] = {}
    for i, definition in enumerate(definitions):
        if definition.name in index:
            raise StructuralError(f"Duplicate state probe: {definition.name}")
        index[definition.name] = i

    for definition in definitions:
        for dep in definition.deps:
            if dep not in index:
                raise UnknownProbeDependencyError(definition.name, dep)

    n = len(definitions)
    in_degree = [len(set(d.deps)) for d in definitions]
    dependents: list[list[int]] = [[] for _ in range(n)]
    for i, definition in enumerate(definitions):
        for dep in set(definition.deps):
            dependents[index[dep]].append(i)

    layers: list[list[int]] = []
    ready = [i for i in range(n) if in_degree[i] == 0]
    processed = 0

    while ready:
        layers.append(ready)
        processed += len(ready)
        next_ready: list[int] = []
        for i in ready:
            for dependent in dependents[i]:
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    next_ready.append(dependent)
        ready = sorted(next_ready)

    if processed != n:
        remaining = [definitions[i].name for i in range(n) if in_degree[i] > 0]
        raise ProbeCycleError(remaining)
    return layers


def transitive_closure(
    definitions: Sequence[ProbeDefinition],
    needed: Sequence[str],
) -> list[ProbeDefinition]:
    """The probes in ``needed`` plus everything they depend on, in definition order."""
    by_name = {d.name: d for d in definitions}
    required: set[str] = set()
    stack = list(needed)
    while stack:
        name = stack.pop()
        if name in required:
            continue
        required.add(name)
        definition = by_name.get(name)
        if definition is not None:
            stack.extend(definition.deps)
    return [d for d in definitions if d.name in required]
