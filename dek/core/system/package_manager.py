"""
System package manager detection and installs.

Used by the ``package.os`` provider and by the requirement resolver's
``system`` strategy. Detection order is pacman, apt-get, brew.
"""

from __future__ import annotations

import logging
import shutil
import subprocess
import urllib.request
from enum import StrEnum
from pathlib import Path

from dek.core.errors import ProviderError
from dek.core.system.process import (
    ProgressSink,
    command_exists,
    run_cmd,
    run_cmd_live,
    run_sudo,
    run_sudo_live,
    stderr_tail,
)

logger = logging.getLogger(__name__)

APT_LISTS = Path("/var/lib/apt/lists")
YAY_BUILD_DIR = Path("/tmp/dek-yay-install")


class SysPkgManager(StrEnum):
    """The system package managers dek knows how to drive."""

    PACMAN = "pacman"
    APT = "apt"
    BREW = "brew"

    @classmethod
    def detect(cls) -> SysPkgManager | None:
        if command_exists("pacman"):
            return cls.PACMAN
        if command_exists("apt-get"):
            return cls.APT
        if command_exists("brew"):
            return cls.BREW
        return None

    def install(self, package: str) -> None:
        """Install ``package``, raising ProviderError on failure."""
        if self is SysPkgManager.PACMAN:
            result = run_sudo("pacman", ["-S", "--noconfirm", package])
            if result.returncode != 0:
                install_with_yay(package)
            return

        if self is SysPkgManager.APT:
            if not _apt_lists_present():
                update = run_sudo("apt-get", ["update", "-qq"])
                if update.returncode != 0:
                    raise ProviderError("apt-get update failed")
            result = run_sudo("apt-get", ["install", "-y", package])
        else:
            result = run_cmd("brew", ["install", package])

        if result.returncode != 0:
            raise ProviderError(f"Failed to install '{package}': {stderr_tail(result)}")

    def install_live(self, package: str, progress: ProgressSink) -> None:
        """Like ``install`` but streams output to ``progress``."""
        if self is SysPkgManager.PACMAN:
            result = run_sudo_live("pacman", ["-S", "--noconfirm", package], progress)
            if result.returncode != 0:
                install_with_yay(package, progress)
            return

        if self is SysPkgManager.APT:
            result = run_sudo_live("apt-get", ["install", "-y", package], progress)
        else:
            result = run_cmd_live("brew", ["install", package], progress)

        if result.returncode != 0:
            raise ProviderError(f"Failed to install '{package}': {stderr_tail(result)}")


def _apt_lists_present() -> bool:
    """Fresh containers ship without package lists; apt needs an update first."""
    if not APT_LISTS.is_dir():
        return False
    return any("_Packages" in p.name for p in APT_LISTS.iterdir())


def install_with_yay(package: str, progress: ProgressSink | None = None) -> None:
    """Install an AUR package through yay, bootstrapping yay if needed."""
    if not command_exists("yay"):
        _install_yay()
    if progress is not None:
        result = run_cmd_live("yay", ["-S", "--noconfirm", package], progress)
    else:
        result = run_cmd("yay", ["-S", "--noconfirm", package])
    if result.returncode != 0:
        raise ProviderError(f"Failed to install '{package}' via yay: {stderr_tail(result)}")


def _install_yay() -> None:
    logger.info("Installing yay from AUR")
    run_sudo("pacman", ["-S", "--needed", "--noconfirm", "git", "base-devel"])

    shutil.rmtree(YAY_BUILD_DIR, ignore_errors=True)
    clone = run_cmd("git", ["clone", "https://aur.archlinux.org/yay.git", str(YAY_BUILD_DIR)])
    if clone.returncode != 0:
        raise ProviderError("Failed to clone yay from AUR")

    build = subprocess.run(["makepkg", "-si", "--noconfirm"], cwd=YAY_BUILD_DIR)
    if build.returncode != 0:
        raise ProviderError("Failed to build/install yay")
    shutil.rmtree(YAY_BUILD_DIR, ignore_errors=True)


def run_install_script(url: str, args: list[str] | None = None, timeout: int = 60) -> None:
    """Download an install script and pipe it to ``sh -s --``.

    Raises:
        ProviderError: If the download or the script fails.
    """
    logger.info("Running install script %s", url)
    try:
        req = urllib.request.Request(url, headers={"User-Agent": "dek"})
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            script = resp.read()
    except OSError as e:
        raise ProviderError(f"Failed to download: {url}: {e}") from e

    result = subprocess.run(["sh", "-s", "--", *(args or [])], input=script)
    if result.returncode != 0:
        raise ProviderError(f"Install script failed: {url}")
