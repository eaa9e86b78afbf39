"""
Requirement model — a prerequisite binary and how to install it.

Providers declare requirements; the resolver installs whatever is
missing before the apply loop starts. Both types are frozen so that
identity (binary, install) can be used for deduplication.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class InstallStrategy(StrEnum):
    """Closed set of ways a prerequisite can be installed."""

    RUSTUP = "rustup"                  # curl https://sh.rustup.rs | sh
    CARGO_BINSTALL = "cargo-binstall"  # pre-compiled installer script
    CARGO = "cargo"                    # cargo install <pkg>
    SYSTEM = "system"                  # detected system package manager
    GO = "go"                          # go install <pkg>
    NPM = "npm"                        # npm install -g <pkg>
    PIP = "pip"                        # pip install --user <pkg>
    WEBI = "webi"                      # curl https://webi.sh/<pkg> | sh


@dataclass(frozen=True)
class InstallMethod:
    """An install strategy plus the package it installs (if any)."""

    strategy: InstallStrategy
    package: str = ""

    @classmethod
    def rustup(cls) -> InstallMethod:
        return cls(InstallStrategy.RUSTUP)

    @classmethod
    def cargo_binstall(cls) -> InstallMethod:
        return cls(InstallStrategy.CARGO_BINSTALL)

    @classmethod
    def cargo(cls, package: str) -> InstallMethod:
        return cls(InstallStrategy.CARGO, package)

    @classmethod
    def system(cls, package: str) -> InstallMethod:
        return cls(InstallStrategy.SYSTEM, package)

    @classmethod
    def go(cls, package: str) -> InstallMethod:
        return cls(InstallStrategy.GO, package)

    @classmethod
    def npm(cls, package: str) -> InstallMethod:
        return cls(InstallStrategy.NPM, package)

    @classmethod
    def pip(cls, package: str) -> InstallMethod:
        return cls(InstallStrategy.PIP, package)

    @classmethod
    def webi(cls, package: str) -> InstallMethod:
        return cls(InstallStrategy.WEBI, package)

    def __str__(self) -> str:
        if self.package:
            return f"{self.strategy.value}:{self.package}"
        return self.strategy.value


@dataclass(frozen=True)
class Requirement:
    """A binary that must be resolvable on PATH before a provider runs."""

    binary: str
    install: InstallMethod

    def __str__(self) -> str:
        return f"{self.binary} ({self.install})"
