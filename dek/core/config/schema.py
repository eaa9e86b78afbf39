"""
Config schema — Pydantic models for dek.yml.

Every section is optional. Sections are translated into Items by
``dek.core.config.items``; probe definitions under ``state`` are used
as-is by the probe evaluator.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from dek.core.models.probe import ProbeDefinition


class PackageList(BaseModel):
    """Packages for one manager. A bare list is accepted as ``items``."""

    items: list[str] = Field(default_factory=list)
    run_if: str | None = None

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_list(cls, data: Any) -> Any:
        if isinstance(data, list):
            return {"items": data}
        return data


class PackageConfig(BaseModel):
    os: PackageList | None = None
    apt: PackageList | None = None
    pacman: PackageList | None = None
    cargo: PackageList | None = None
    go: PackageList | None = None
    npm: PackageList | None = None
    pip: PackageList | None = None
    pipx: PackageList | None = None
    webi: PackageList | None = None


class ServiceConfig(BaseModel):
    name: str
    state: str = "active"
    enabled: bool = False
    scope: Literal["system", "user"] = "system"
    run_if: str | None = None


class FileLineConfig(BaseModel):
    path: str
    line: str
    original: str | None = None
    original_regex: str | None = None
    mode: Literal["replace", "below"] = "replace"
    run_if: str | None = None


class TemplateConfig(BaseModel):
    src: str
    dest: str
    run_if: str | None = None


class FetchConfig(BaseModel):
    url: str
    dest: str
    ttl: str | None = None
    run_if: str | None = None


class FileConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    copy_: dict[str, str] = Field(default_factory=dict, alias="copy")
    symlink: dict[str, str] = Field(default_factory=dict)
    ensure_line: dict[str, list[str]] = Field(default_factory=dict)
    line: list[FileLineConfig] = Field(default_factory=list)
    template: list[TemplateConfig] = Field(default_factory=list)
    fetch: list[FetchConfig] = Field(default_factory=list)


class CommandConfig(BaseModel):
    name: str
    check: str
    apply: str
    confirm: bool = False
    run_if: str | None = None
    cache_key: str | None = None


class AssertConfig(BaseModel):
    """Exactly one of ``check`` or ``foreach``."""

    check: str | None = None
    foreach: str | None = None
    stdout: str | None = None
    stderr: str | None = None
    message: str | None = None
    run_if: str | None = None

    @model_validator(mode="after")
    def _one_command(self) -> AssertConfig:
        if (self.check is None) == (self.foreach is None):
            raise ValueError("assert needs exactly one of 'check' or 'foreach'")
        return self

    @property
    def mode(self) -> str:
        return "foreach" if self.foreach is not None else "check"

    @property
    def command(self) -> str:
        return self.foreach if self.foreach is not None else self.check or ""


class Config(BaseModel):
    """Root of a dek configuration (one file, or a merged directory)."""

    model_config = ConfigDict(populate_by_name=True)

    package: PackageConfig = Field(default_factory=PackageConfig)
    service: list[ServiceConfig] = Field(default_factory=list)
    file: FileConfig = Field(default_factory=FileConfig)
    alias: dict[str, str] = Field(default_factory=dict)
    env: dict[str, str] = Field(default_factory=dict)
    command: list[CommandConfig] = Field(default_factory=list)
    script: dict[str, str] = Field(default_factory=dict)
    assertions: list[AssertConfig] = Field(default_factory=list, alias="assert")
    state: list[ProbeDefinition] = Field(default_factory=list)
