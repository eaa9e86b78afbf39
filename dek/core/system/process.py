"""
Process execution — the single place dek spawns external commands.

Everything that shells out (providers, gates, probes, requirement
installers) goes through these helpers, so sudo handling, the shared
shell library (DEK_LIB) and live output streaming behave the same
everywhere.

No timeout is applied to provider commands: package installs and
builds can legitimately run for a long time. Callers that want a
bound (probe commands) pass ``timeout`` explicitly.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import threading
from typing import IO, Protocol

from dek.core.errors import ProviderError

logger = logging.getLogger(__name__)

# Env var naming a shell file that is sourced before every script
LIB_ENV = "DEK_LIB"


class ProgressSink(Protocol):
    """Receives output lines from a live-running command."""

    def update(self, line: str) -> None: ...


class NullProgress:
    """Progress sink that discards everything."""

    def update(self, line: str) -> None:
        pass


def is_root() -> bool:
    return os.geteuid() == 0


def command_exists(name: str) -> bool:
    """Whether ``name`` resolves on the current PATH."""
    return shutil.which(name) is not None


def shell_command(script: str) -> list[str]:
    """Build an argv that runs ``script`` through a shell.

    When DEK_LIB is set the library is sourced first, using bash since
    shared function files usually rely on bash syntax.
    """
    lib = os.environ.get(LIB_ENV)
    if lib:
        return ["bash", "-c", f". {shlex.quote(lib)}\n{script}"]
    return ["sh", "-c", script]


def run_cmd(cmd: str, args: list[str], cwd: str | None = None) -> subprocess.CompletedProcess[str]:
    """Run a command and capture its output.

    Raises:
        ProviderError: If the command cannot be started at all.
    """
    argv = [cmd, *args]
    logger.debug("Running: %s", " ".join(argv))
    try:
        return subprocess.run(argv, capture_output=True, text=True, cwd=cwd)
    except OSError as e:
        raise ProviderError(f"Failed to run: {' '.join(argv)}: {e}") from e


def run_cmd_ok(cmd: str, args: list[str]) -> bool:
    """Run a command and report whether it exited 0 (False if it can't start)."""
    try:
        result = subprocess.run(
            [cmd, *args],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
    except OSError:
        return False
    return result.returncode == 0


def run_sudo(cmd: str, args: list[str]) -> subprocess.CompletedProcess[str]:
    """Run a command with sudo, or directly when already root."""
    if is_root():
        return run_cmd(cmd, args)
    return run_cmd("sudo", [cmd, *args])


def run_shell(
    script: str,
    *,
    quiet: bool = False,
    inherit: bool = False,
    timeout: float | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run a shell script.

    Args:
        script: Script text for ``sh -c``.
        quiet: Discard stdout and stderr.
        inherit: Let the script write straight to the terminal.
        timeout: Optional bound in seconds.
    """
    argv = shell_command(script)
    logger.debug("Shell: %s", script)
    if quiet:
        return subprocess.run(
            argv, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL,
            text=True, timeout=timeout,
        )
    if inherit:
        return subprocess.run(argv, text=True, timeout=timeout)
    return subprocess.run(argv, capture_output=True, text=True, timeout=timeout)


def evaluate_gate(script: str) -> bool:
    """Evaluate a gating predicate; any failure to run counts as false."""
    try:
        return run_shell(script, quiet=True).returncode == 0
    except OSError as e:
        logger.warning("Gate could not run (%s): %s", script, e)
        return False


def _pump(stream: IO[str], progress: ProgressSink, sink: list[str]) -> None:
    for line in stream:
        line = line.rstrip("\n")
        progress.update(line)
        sink.append(line)


def run_live(
    argv: list[str],
    progress: ProgressSink,
    cwd: str | None = None,
) -> subprocess.CompletedProcess[str]:
    """Run a command, forwarding each output line to ``progress``.

    stdout and stderr are both streamed; stderr is read on a helper
    thread so neither pipe can fill up and stall the child.
    """
    logger.debug("Running (live): %s", " ".join(argv))
    try:
        proc = subprocess.Popen(
            argv,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            cwd=cwd,
        )
    except OSError as e:
        raise ProviderError(f"Failed to run: {' '.join(argv)}: {e}") from e

    out_lines: list[str] = []
    err_lines: list[str] = []
    assert proc.stdout is not None and proc.stderr is not None
    err_thread = threading.Thread(
        target=_pump, args=(proc.stderr, progress, err_lines), daemon=True,
    )
    err_thread.start()
    _pump(proc.stdout, progress, out_lines)
    returncode = proc.wait()
    err_thread.join()

    return subprocess.CompletedProcess(
        argv,
        returncode,
        stdout="\n".join(out_lines),
        stderr="\n".join(err_lines),
    )


def run_cmd_live(
    cmd: str,
    args: list[str],
    progress: ProgressSink,
    cwd: str | None = None,
) -> subprocess.CompletedProcess[str]:
    return run_live([cmd, *args], progress, cwd=cwd)


def run_sudo_live(
    cmd: str,
    args: list[str],
    progress: ProgressSink,
) -> subprocess.CompletedProcess[str]:
    """Live variant of ``run_sudo``; assumes credentials were pre-cached."""
    if is_root():
        return run_cmd_live(cmd, args, progress)
    return run_cmd_live("sudo", [cmd, *args], progress)


def preauthenticate_sudo() -> bool:
    """Prompt for sudo once so later commands don't interleave prompts."""
    if is_root():
        return True
    try:
        result = subprocess.run(["sudo", "-v"])
    except OSError as e:
        logger.warning("Failed to authenticate sudo: %s", e)
        return False
    return result.returncode == 0


def stderr_tail(result: subprocess.CompletedProcess[str], limit: int = 2000) -> str:
    """Last part of a command's stderr, for error details."""
    text = (result.stderr or "").strip()
    return text[-limit:]
