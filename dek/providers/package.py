"""
Package providers — one kind per package manager.

Item key is a package spec: ``name`` or ``package:binary`` when the
binary on PATH differs from the package name (``ripgrep:rg``).
"""

from __future__ import annotations

import logging
import subprocess

from dek.core.errors import ProviderError
from dek.core.models.item import CheckResult, Item
from dek.core.models.requirement import InstallMethod, Requirement
from dek.core.system.package_manager import SysPkgManager, install_with_yay, run_install_script
from dek.core.system.paths import WEBI_BINS, prepend_path
from dek.core.system.process import (
    ProgressSink,
    command_exists,
    run_cmd,
    run_cmd_live,
    run_cmd_ok,
    run_sudo,
    run_sudo_live,
    stderr_tail,
)
from dek.providers.base import Provider

logger = logging.getLogger(__name__)


def parse_spec(spec: str) -> tuple[str, str]:
    """Split ``pkg:bin`` into (package, binary); binary defaults to package."""
    pkg, sep, binary = spec.partition(":")
    if sep:
        return pkg, binary
    return spec, spec


def go_bin_from_path(module: str) -> str:
    """Binary name of a go module path: last segment without ``@version``."""
    return module.split("@", 1)[0].rsplit("/", 1)[-1]


def go_parse_spec(spec: str) -> tuple[str, str]:
    pkg, sep, binary = spec.partition(":")
    if sep:
        return pkg, binary
    return spec, go_bin_from_path(spec)


def _dpkg_installed(package: str) -> bool:
    result = run_cmd("dpkg-query", ["-W", "-f=${Status}", package])
    return "install ok installed" in result.stdout


def _raise_on_failure(result: subprocess.CompletedProcess[str], what: str) -> None:
    if result.returncode != 0:
        raise ProviderError(f"{what} failed: {stderr_tail(result)}")


class _CommandPackageProvider(Provider):
    """Shared apply flow for providers that install with one command."""

    install_cmd: str = ""
    install_args: tuple[str, ...] = ()
    label: str = "package"

    def install_argv(self, package: str) -> tuple[str, list[str]]:
        return self.install_cmd, [*self.install_args, package]

    def is_installed(self, package: str) -> bool:
        raise NotImplementedError

    def check(self, item: Item) -> CheckResult:
        pkg, _ = parse_spec(item.key)
        if self.is_installed(pkg):
            return CheckResult.satisfied()
        return CheckResult.missing(f"{self.label} '{pkg}' not installed")

    def apply(self, item: Item) -> None:
        pkg, _ = parse_spec(item.key)
        cmd, args = self.install_argv(pkg)
        _raise_on_failure(run_cmd(cmd, args), f"{cmd} install")

    def apply_live(self, item: Item, progress: ProgressSink) -> None:
        pkg, _ = parse_spec(item.key)
        cmd, args = self.install_argv(pkg)
        _raise_on_failure(run_cmd_live(cmd, args, progress), f"{cmd} install")


# ── System package managers ─────────────────────────────────────


class OsProvider(Provider):
    """Installs through whichever system package manager is present.

    With no supported manager the item is handed to webi.
    """

    @property
    def name(self) -> str:
        return "package.os"

    def needs_sudo(self) -> bool:
        return True

    def check(self, item: Item) -> CheckResult:
        pm = SysPkgManager.detect()
        if pm is None:
            return WebiProvider().check(item)

        pkg, _ = parse_spec(item.key)
        if pm is SysPkgManager.PACMAN:
            installed = run_cmd_ok("pacman", ["-Q", pkg])
        elif pm is SysPkgManager.APT:
            installed = _dpkg_installed(pkg)
        else:
            installed = run_cmd_ok("brew", ["list", pkg])

        if installed:
            return CheckResult.satisfied()
        return CheckResult.missing(f"package '{pkg}' not installed")

    def apply(self, item: Item) -> None:
        pm = SysPkgManager.detect()
        if pm is None:
            WebiProvider().apply(item)
            return
        pkg, _ = parse_spec(item.key)
        pm.install(pkg)

    def apply_live(self, item: Item, progress: ProgressSink) -> None:
        pm = SysPkgManager.detect()
        if pm is None:
            WebiProvider().apply(item)
            return
        pkg, _ = parse_spec(item.key)
        pm.install_live(pkg, progress)


class AptProvider(Provider):
    @property
    def name(self) -> str:
        return "package.apt"

    def needs_sudo(self) -> bool:
        return True

    def check(self, item: Item) -> CheckResult:
        pkg, _ = parse_spec(item.key)
        if _dpkg_installed(pkg):
            return CheckResult.satisfied()
        return CheckResult.missing(f"package '{pkg}' not installed")

    def apply(self, item: Item) -> None:
        pkg, _ = parse_spec(item.key)
        _raise_on_failure(run_sudo("apt-get", ["install", "-y", pkg]), "apt-get install")

    def apply_live(self, item: Item, progress: ProgressSink) -> None:
        pkg, _ = parse_spec(item.key)
        result = run_sudo_live("apt-get", ["install", "-y", pkg], progress)
        _raise_on_failure(result, "apt-get install")


class PacmanProvider(Provider):
    """pacman, falling back to yay for packages only in the AUR."""

    @property
    def name(self) -> str:
        return "package.pacman"

    def needs_sudo(self) -> bool:
        return True

    def check(self, item: Item) -> CheckResult:
        pkg, _ = parse_spec(item.key)
        if run_cmd_ok("pacman", ["-Q", pkg]):
            return CheckResult.satisfied()
        return CheckResult.missing(f"package '{pkg}' not installed")

    def apply(self, item: Item) -> None:
        pkg, _ = parse_spec(item.key)
        if run_sudo("pacman", ["-S", "--noconfirm", pkg]).returncode != 0:
            install_with_yay(pkg)

    def apply_live(self, item: Item, progress: ProgressSink) -> None:
        pkg, _ = parse_spec(item.key)
        result = run_sudo_live("pacman", ["-S", "--noconfirm", pkg], progress)
        if result.returncode != 0:
            install_with_yay(pkg, progress)


# ── Language package managers ───────────────────────────────────


class CargoProvider(_CommandPackageProvider):
    """cargo crates; tries a pre-built ``cargo binstall`` before compiling."""

    label = "cargo package"

    @property
    def name(self) -> str:
        return "package.cargo"

    def requires(self) -> list[Requirement]:
        return [
            Requirement("cargo", InstallMethod.rustup()),
            Requirement("cargo-binstall", InstallMethod.cargo_binstall()),
        ]

    def is_installed(self, package: str) -> bool:
        # `cargo install --list` prints "name vX.Y.Z:" per installed crate
        try:
            result = run_cmd("cargo", ["install", "--list"])
        except ProviderError:
            return False
        return any(line.startswith(f"{package} ") for line in result.stdout.splitlines())

    def apply(self, item: Item) -> None:
        pkg, _ = parse_spec(item.key)
        if run_cmd("cargo", ["binstall", "-y", pkg]).returncode == 0:
            return
        _raise_on_failure(run_cmd("cargo", ["install", pkg]), "cargo install")

    def apply_live(self, item: Item, progress: ProgressSink) -> None:
        pkg, _ = parse_spec(item.key)
        if run_cmd_live("cargo", ["binstall", "-y", pkg], progress).returncode == 0:
            return
        _raise_on_failure(run_cmd_live("cargo", ["install", pkg], progress), "cargo install")


class GoProvider(Provider):
    """go modules; the key is a module path, optionally ``module:binary``."""

    @property
    def name(self) -> str:
        return "package.go"

    def requires(self) -> list[Requirement]:
        return [Requirement("go", InstallMethod.webi("golang"))]

    def check(self, item: Item) -> CheckResult:
        _, binary = go_parse_spec(item.key)
        if command_exists(binary):
            return CheckResult.satisfied()
        return CheckResult.missing(f"'{binary}' not in PATH")

    def apply(self, item: Item) -> None:
        module, _ = go_parse_spec(item.key)
        _raise_on_failure(run_cmd("go", ["install", module]), "go install")

    def apply_live(self, item: Item, progress: ProgressSink) -> None:
        module, _ = go_parse_spec(item.key)
        _raise_on_failure(run_cmd_live("go", ["install", module], progress), "go install")


class WebiProvider(Provider):
    """Installers from webinstall.dev; satisfied when the binary is on PATH."""

    @property
    def name(self) -> str:
        return "package.webi"

    def check(self, item: Item) -> CheckResult:
        _, binary = parse_spec(item.key)
        if command_exists(binary):
            return CheckResult.satisfied()
        return CheckResult.missing(f"'{binary}' not in PATH")

    def apply(self, item: Item) -> None:
        pkg, _ = parse_spec(item.key)
        run_install_script(f"https://webi.sh/{pkg}")
        prepend_path(*WEBI_BINS)


class NpmProvider(_CommandPackageProvider):
    install_cmd = "npm"
    install_args = ("install", "-g")
    label = "npm package"

    @property
    def name(self) -> str:
        return "package.npm"

    def requires(self) -> list[Requirement]:
        return [Requirement("npm", InstallMethod.webi("node"))]

    def is_installed(self, package: str) -> bool:
        return run_cmd_ok("npm", ["list", "-g", package, "--depth=0"])


class PipProvider(_CommandPackageProvider):
    label = "pip package"

    @property
    def name(self) -> str:
        return "package.pip"

    def requires(self) -> list[Requirement]:
        return [Requirement("pip3", InstallMethod.webi("python"))]

    def install_argv(self, package: str) -> tuple[str, list[str]]:
        pip = "pip3" if command_exists("pip3") else "pip"
        return pip, ["install", "--user", package]

    def is_installed(self, package: str) -> bool:
        return run_cmd_ok("pip3", ["show", package]) or run_cmd_ok("pip", ["show", package])


class PipxProvider(_CommandPackageProvider):
    install_cmd = "pipx"
    install_args = ("install",)
    label = "pipx package"

    @property
    def name(self) -> str:
        return "package.pipx"

    def requires(self) -> list[Requirement]:
        return [Requirement("pipx", InstallMethod.pip("pipx"))]

    def is_installed(self, package: str) -> bool:
        # `pipx list --short` prints "name version" per line
        try:
            result = run_cmd("pipx", ["list", "--short"])
        except ProviderError:
            return False
        return any(
            line.split()[:1] == [package] for line in result.stdout.splitlines()
        )
