"""
Probe models — named facts about the target system.

A ProbeDefinition says how to compute a fact: an optional shell
command, an optional expression over the command output and other
probes, rewrite rules, and named sub-templates. A ProbeResult is the
immutable snapshot produced by one evaluation pass.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class RewriteRule(BaseModel):
    """Replace the raw value with ``value`` when ``pattern`` matches."""

    pattern: str
    value: str


class ProbeDefinition(BaseModel):
    """How to compute one named probe."""

    model_config = ConfigDict(populate_by_name=True)

    name: str
    cmd: str | None = Field(default=None, alias="command")
    deps: list[str] = Field(default_factory=list)
    expr: str | None = None
    templates: dict[str, str] = Field(default_factory=dict)
    rewrite: list[RewriteRule] = Field(default_factory=list)
    ttl: str | None = None
    parse_json: bool = Field(default=False, alias="json")
    timeout: float | None = None


@dataclass(frozen=True)
class ProbeResult:
    """Evaluated value of a probe.

    ``raw`` is always text. ``parsed`` holds the decoded JSON value when
    the probe is flagged ``json`` and the text parsed. ``original`` is
    set only when a rewrite rule fired.
    """

    name: str
    raw: str
    parsed: Any = None
    original: str | None = None
    templates: dict[str, str] = field(default_factory=dict)

    @property
    def raw_value(self) -> Any:
        """Parsed JSON when available, raw text otherwise."""
        return self.parsed if self.parsed is not None else self.raw

    @property
    def original_text(self) -> str:
        return self.original if self.original is not None else self.raw

    def value(self, variant: str | None = None) -> str | None:
        """Resolve an addressing variant; None if the variant is unknown."""
        if variant is None or variant == "raw":
            return self.raw
        if variant == "original":
            return self.original_text
        return self.templates.get(variant)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"raw": self.raw_value}
        if self.original is not None:
            data["original"] = self.original
        data.update(self.templates)
        return data

