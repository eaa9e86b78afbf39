"""
Path helpers, including mutation of the process-wide executable search path.

``prepend_path`` and ``ensure_user_path`` change ``os.environ["PATH"]`` for
the remainder of the process. They run at CLI startup, in the requirement
resolver and in providers during the sequential apply loop, never from
probe worker threads, so child processes spawned afterwards
see newly installed binaries.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

# Directories installers commonly drop binaries into
CARGO_BIN = "~/.cargo/bin"
WEBI_BINS = ("~/.local/bin", "~/.local/opt/go/bin", "~/go/bin")
USER_BINS = (CARGO_BIN, *WEBI_BINS, "~/.npm-global/bin")


def expand_path(path: str | Path) -> Path:
    """Expand a leading ``~`` to the user's home directory."""
    return Path(path).expanduser()


def prepend_path(*dirs: str | Path) -> None:
    """Put ``dirs`` at the front of PATH, skipping ones already present."""
    current = os.environ.get("PATH", "")
    parts = current.split(os.pathsep) if current else []
    for d in reversed(dirs):
        entry = str(expand_path(d))
        if entry not in parts:
            parts.insert(0, entry)
            logger.debug("Added %s to PATH", entry)
    os.environ["PATH"] = os.pathsep.join(parts)


def ensure_user_path() -> None:
    """Append existing per-user bin directories missing from PATH.

    Non-interactive shells (ssh, cron) often skip the rc files that would
    add them, which hides binaries installed by an earlier run.
    """
    current = os.environ.get("PATH", "")
    parts = current.split(os.pathsep) if current else []
    for d in USER_BINS:
        entry = str(expand_path(d))
        if entry not in parts and Path(entry).is_dir():
            parts.append(entry)
            logger.debug("Appended %s to PATH", entry)
    os.environ["PATH"] = os.pathsep.join(parts)


def detect_shell_rc() -> Path:
    """The rc file of the user's login shell (bash by default)."""
    shell = os.environ.get("SHELL", "")
    if "zsh" in shell:
        return expand_path("~/.zshrc")
    if "fish" in shell:
        return expand_path("~/.config/fish/config.fish")
    return expand_path("~/.bashrc")


def resolve_source_path(src: str, base_dir: Path) -> str:
    """Resolve a config-relative source path; absolute and ~ paths pass through."""
    if src.startswith("/") or src.startswith("~"):
        return src
    return str(base_dir / src)
