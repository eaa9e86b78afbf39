"""
Requirement resolution — install the tools providers need, once per run.

Requirements are collected from the distinct providers taking part in
a run, deduplicated by identity (first-seen order kept) and satisfied
sequentially before any item is applied. A requirement that is still
unresolvable after its install step aborts the run.

Installing prepends the installer's bin directories to PATH so that
every process spawned later in this run finds the new binary.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from dek.core.errors import DekError, RequirementError
from dek.core.models.requirement import InstallStrategy, Requirement
from dek.core.system.package_manager import SysPkgManager, run_install_script
from dek.core.system.paths import CARGO_BIN, WEBI_BINS, expand_path, prepend_path
from dek.core.system.process import command_exists, run_cmd, stderr_tail
from dek.providers.base import Provider

logger = logging.getLogger(__name__)

RUSTUP_URL = "https://sh.rustup.rs"
CARGO_BINSTALL_URL = (
    "https://raw.githubusercontent.com/cargo-bins/cargo-binstall/main/"
    "install-from-binstall-release.sh"
)


def collect_requirements(providers: Iterable[Provider]) -> list[Requirement]:
    """Union of ``requires()`` across providers, deduplicated in order."""
    seen: set[Requirement] = set()
    unique: list[Requirement] = []
    for provider in providers:
        for req in provider.requires():
            if req not in seen:
                seen.add(req)
                unique.append(req)
    return unique


def _run_checked(cmd: str, args: list[str]) -> None:
    result = run_cmd(cmd, args)
    if result.returncode != 0:
        raise RequirementError(f"{cmd} {' '.join(args)} failed: {stderr_tail(result)}")


def install_requirement(req: Requirement) -> None:
    """Run the install strategy for ``req`` and extend PATH accordingly."""
    method = req.install
    strategy = method.strategy

    if strategy is InstallStrategy.RUSTUP:
        run_install_script(RUSTUP_URL, ["-y"])
        prepend_path(CARGO_BIN)
    elif strategy is InstallStrategy.CARGO_BINSTALL:
        run_install_script(CARGO_BINSTALL_URL)
        prepend_path(CARGO_BIN)
    elif strategy is InstallStrategy.CARGO:
        cargo = "cargo" if command_exists("cargo") else str(expand_path(CARGO_BIN) / "cargo")
        _run_checked(cargo, ["install", method.package])
        prepend_path(CARGO_BIN)
    elif strategy is InstallStrategy.SYSTEM:
        pm = SysPkgManager.detect()
        if pm is None:
            raise RequirementError("No supported package manager")
        pm.install(method.package)
    elif strategy is InstallStrategy.GO:
        _run_checked("go", ["install", method.package])
    elif strategy is InstallStrategy.NPM:
        _run_checked("npm", ["install", "-g", method.package])
    elif strategy is InstallStrategy.PIP:
        pip = "pip3" if command_exists("pip3") else "pip"
        _run_checked(pip, ["install", "--user", method.package])
        prepend_path("~/.local/bin")
    elif strategy is InstallStrategy.WEBI:
        run_install_script(f"https://webi.sh/{method.package}")
        prepend_path(*WEBI_BINS)


class RequirementResolver:
    """Makes sure each requirement's binary is resolvable.

    Args:
        installer: Runs an install strategy. Swappable for tests.
        exists: Tells whether a binary is resolvable.
        notify: Called before each actual install (for user output).
    """

    def __init__(
        self,
        installer: Callable[[Requirement], None] = install_requirement,
        exists: Callable[[str], bool] = command_exists,
        notify: Callable[[Requirement], None] | None = None,
    ):
        self._installer = installer
        self._exists = exists
        self._notify = notify

    def is_satisfied(self, req: Requirement) -> bool:
        return self._exists(req.binary)

    def satisfy(self, req: Requirement) -> bool:
        """Install ``req`` if needed. Returns True if an install ran.

        Raises:
            RequirementError: The binary is still missing afterwards.
        """
        if self.is_satisfied(req):
            return False

        logger.info("Installing requirement %s", req)
        if self._notify:
            self._notify(req)
        try:
            self._installer(req)
        except RequirementError:
            raise
        except (DekError, OSError) as e:
            raise RequirementError(f"Failed to install {req.binary}: {e}") from e

        if not self.is_satisfied(req):
            raise RequirementError(f"Failed to install {req.binary}")
        return True

    def resolve(self, requirements: Iterable[Requirement]) -> list[Requirement]:
        """Satisfy requirements in order; returns the ones that were installed."""
        seen: set[Requirement] = set()
        installed: list[Requirement] = []
        for req in requirements:
            if req in seen:
                continue
            seen.add(req)
            if self.satisfy(req):
                installed.append(req)
        return installed
