"""
Probe evaluator — computes ProbeResults layer by layer.

Single probe pipeline:
    command (TTL-cached) → expr → rewrite rules → JSON parse → templates

A failing command yields empty text; a failing expression or named
template yields empty text for that value. Only structural errors
(unknown dependency, cycle) and cache I/O errors abort a pass, and the
structural checks run before any command is spawned.
"""

from __future__ import annotations

import concurrent.futures
import json
import logging
import re
import subprocess
from collections.abc import Mapping, Sequence
from typing import Any

from dek.core.models.probe import ProbeDefinition, ProbeResult
from dek.core.persistence.cache import FileCache
from dek.core.probes.graph import layer_probes, transitive_closure
from dek.core.probes.render import (
    RENDER_ERRORS,
    dependency_context,
    render_lenient,
    render_strict,
)
from dek.core.system.durations import parse_duration
from dek.core.system.process import shell_command

logger = logging.getLogger(__name__)

# Worker threads of a parallel layer are named dek-probe_0, dek-probe_1, ...
THREAD_PREFIX = "dek-probe"


def probe_cache_key(name: str) -> str:
    return f"state-probe:{name}"


def _try_json(text: str) -> Any:
    try:
        return json.loads(text)
    except ValueError:
        return None


class ProbeEvaluator:
    """Evaluates probe definitions against the local system.

    Args:
        cache: Holds TTL-cached command output.
    """

    def __init__(self, cache: FileCache | None = None):
        self.cache = cache or FileCache()

    def evaluate(self, definitions: Sequence[ProbeDefinition]) -> dict[str, ProbeResult]:
        """Evaluate every probe; results keep definition order."""
        layers = layer_probes(definitions)
        results: dict[str, ProbeResult] = {}

        for layer in layers:
            if len(layer) == 1:
                definition = definitions[layer[0]]
                results[definition.name] = self.evaluate_one(definition, results)
                continue

            with concurrent.futures.ThreadPoolExecutor(
                max_workers=len(layer), thread_name_prefix=THREAD_PREFIX
            ) as pool:
                futures = [
                    pool.submit(self.evaluate_one, definitions[i], results)
                    for i in layer
                ]
                layer_results = [f.result() for f in futures]
            for result in layer_results:
                results[result.name] = result

        return {d.name: results[d.name] for d in definitions}

    def evaluate_subset(
        self,
        definitions: Sequence[ProbeDefinition],
        needed: Sequence[str],
    ) -> dict[str, ProbeResult]:
        """Evaluate only ``needed`` and their transitive dependencies."""
        return self.evaluate(transitive_closure(definitions, needed))

    # ── Single probe ────────────────────────────────────────────

    def evaluate_one(
        self,
        definition: ProbeDefinition,
        resolved: Mapping[str, ProbeResult],
    ) -> ProbeResult:
        """Evaluate one probe whose dependencies are all in ``resolved``."""
        deps = {name: resolved[name] for name in definition.deps}
        output = self._command_output(definition) if definition.cmd else ""

        if definition.expr is not None:
            raw_input: Any = output
            if definition.parse_json:
                parsed_input = _try_json(output)
                if parsed_input is not None:
                    raw_input = parsed_input
            context = {"raw": raw_input, **dependency_context(deps)}
            before_rewrite = render_lenient(definition.expr, context)
        else:
            before_rewrite = output

        raw = before_rewrite
        original: str | None = None
        for rule in definition.rewrite:
            try:
                matched = re.search(rule.pattern, raw) is not None
            except re.error as e:
                logger.warning("Bad rewrite pattern in %s: %s", definition.name, e)
                continue
            if matched:
                original = before_rewrite
                raw = rule.value
                break

        parsed = _try_json(raw) if definition.parse_json else None

        templates: dict[str, str] = {}
        if definition.templates:
            context = {
                "raw": parsed if parsed is not None else raw,
                "original": original if original is not None else raw,
                **dependency_context(deps),
            }
            for tmpl_name, source in definition.templates.items():
                try:
                    templates[tmpl_name] = render_strict(source, context)
                except RENDER_ERRORS as e:
                    logger.debug("Template %s.%s failed: %s", definition.name, tmpl_name, e)
                    templates[tmpl_name] = ""

        return ProbeResult(
            name=definition.name,
            raw=raw,
            parsed=parsed,
            original=original,
            templates=templates,
        )

    def _command_output(self, definition: ProbeDefinition) -> str:
        max_age = None
        if definition.ttl:
            try:
                max_age = parse_duration(definition.ttl)
            except ValueError:
                logger.warning("Ignoring bad ttl for %s: %s", definition.name, definition.ttl)

        key = probe_cache_key(definition.name)
        if max_age is not None:
            cached = self.cache.get(key, max_age)
            if cached is not None:
                return cached.decode("utf-8", errors="replace")

        output = run_probe_command(definition.cmd or "", definition.timeout)
        if max_age is not None:
            self.cache.set(key, output.encode("utf-8"))
        return output


def run_probe_command(script: str, timeout: float | None = None) -> str:
    """Trimmed stdout of ``script``; empty if it cannot run or times out."""
    try:
        result = subprocess.run(
            shell_command(script),
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug("Probe command failed (%s): %s", script, e)
        return ""
    return result.stdout.decode("utf-8", errors="replace").strip()
