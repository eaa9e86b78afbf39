"""
Probes — named system facts evaluated over a dependency graph.

    from dek.core.probes import ProbeEvaluator

    results = ProbeEvaluator(cache).evaluate(definitions)
    results["os"].raw
"""

from dek.core.probes.evaluator import ProbeEvaluator
from dek.core.probes.graph import layer_probes

__all__ = ["ProbeEvaluator", "layer_probes"]
