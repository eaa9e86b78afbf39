"""
Shell alias and environment providers.

Definitions live in dek-managed files (``~/.dek_aliases``,
``~/.dek_env``) that are sourced from the user's shell rc file.
Applying an item rewrites its line in the managed file and makes sure
the rc file sources it.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from dek.core.models.item import CheckResult, Item
from dek.core.system.paths import detect_shell_rc, expand_path
from dek.providers.base import Provider


@dataclass(frozen=True)
class ShellVarFile:
    """Layout of one dek-managed shell file."""

    label: str
    path: str
    header: str
    format_line: Callable[[str, str], str]
    format_prefix: Callable[[str], str]

    @property
    def source_line(self) -> str:
        return f"[ -f {self.path} ] && source {self.path}"

    def resolved(self) -> Path:
        return expand_path(self.path)


ALIASES = ShellVarFile(
    label="alias",
    path="~/.dek_aliases",
    header="# dek-managed aliases\n",
    format_line=lambda k, v: f"alias {k}='{v}'",
    format_prefix=lambda k: f"alias {k}=",
)

ENVIRONMENT = ShellVarFile(
    label="env",
    path="~/.dek_env",
    header="# dek-managed environment variables\n",
    format_line=lambda k, v: f'export {k}="{v}"',
    format_prefix=lambda k: f"export {k}=",
)


def ensure_sourced(line: str, rc_path: Path | None = None) -> None:
    """Append ``line`` to the shell rc file unless already present."""
    rc = rc_path or detect_shell_rc()
    content = rc.read_text(encoding="utf-8") if rc.exists() else ""
    if line in content.splitlines():
        return
    if content and not content.endswith("\n"):
        content += "\n"
    rc.parent.mkdir(parents=True, exist_ok=True)
    rc.write_text(content + line + "\n", encoding="utf-8")


class _ShellVarProvider(Provider):
    managed: ShellVarFile

    @property
    def name(self) -> str:
        return self.managed.label

    def check(self, item: Item) -> CheckResult:
        path = self.managed.resolved()
        if not path.exists():
            return CheckResult.missing(f"{self.managed.label} file '{path}' does not exist")

        expected = self.managed.format_line(item.key, item.value or "")
        if expected in path.read_text(encoding="utf-8").splitlines():
            return CheckResult.satisfied()
        return CheckResult.missing(
            f"{self.managed.label} '{item.key}' not defined or has different value"
        )

    def apply(self, item: Item) -> None:
        path = self.managed.resolved()
        content = path.read_text(encoding="utf-8") if path.exists() else self.managed.header

        prefix = self.managed.format_prefix(item.key)
        kept = [line for line in content.splitlines() if not line.startswith(prefix)]
        kept.append(self.managed.format_line(item.key, item.value or ""))

        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(kept) + "\n", encoding="utf-8")
        ensure_sourced(self.managed.source_line)


class AliasProvider(_ShellVarProvider):
    managed = ALIASES


class EnvProvider(_ShellVarProvider):
    managed = ENVIRONMENT
