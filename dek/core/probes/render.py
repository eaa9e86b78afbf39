"""
Template rendering for probes and file templates.

Two Jinja2 environments: a lenient one for probe expressions, where a
missing name renders as empty text, and a strict one for named probe
templates and template files, where a missing name is an error.

Dependencies appear in the render context as ``ProbeValue`` objects:
``{{ os }}`` renders the raw value, ``{{ os.raw }}``, ``{{ os.original }}``
and ``{{ os.<template> }}`` address the individual variants.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

import jinja2

from dek.core.models.probe import ProbeResult


def fromjson(text: str) -> Any:
    """Jinja filter: parse a JSON string."""
    return json.loads(text)


def _environment(undefined: type[jinja2.Undefined]) -> jinja2.Environment:
    env = jinja2.Environment(undefined=undefined, keep_trailing_newline=True)
    env.filters["fromjson"] = fromjson
    return env


LENIENT = _environment(jinja2.ChainableUndefined)
STRICT = _environment(jinja2.StrictUndefined)

# Failures a template can raise while rendering
RENDER_ERRORS = (jinja2.TemplateError, ArithmeticError, TypeError, ValueError, LookupError)


class ProbeValue(str):
    """A probe result as seen from a template.

    Behaves as its raw text; variants are reachable as attributes.
    """

    def __new__(cls, result: ProbeResult) -> ProbeValue:
        obj = super().__new__(cls, result.raw)
        obj._result = result
        return obj

    @property
    def raw(self) -> Any:
        return self._result.raw_value

    @property
    def original(self) -> str:
        return self._result.original_text

    def __getattr__(self, name: str) -> str:
        if name.startswith("_"):
            raise AttributeError(name)
        try:
            return self._result.templates[name]
        except KeyError:
            raise AttributeError(name) from None


def context_name(probe_name: str) -> str:
    """Probe names may contain '-', which is not a valid template identifier."""
    return probe_name.replace("-", "_")


def dependency_context(results: Mapping[str, ProbeResult]) -> dict[str, ProbeValue]:
    return {context_name(name): ProbeValue(result) for name, result in results.items()}


def render_lenient(source: str, context: Mapping[str, Any]) -> str:
    """Render an expression; any error yields empty text."""
    try:
        return LENIENT.from_string(source).render(context)
    except RENDER_ERRORS:
        return ""


def render_strict(source: str, context: Mapping[str, Any]) -> str:
    """Render a template, raising on undefined names or bad syntax."""
    return STRICT.from_string(source).render(context)
