"""Script provider — installs executables into ~/.local/bin."""

from __future__ import annotations

from pathlib import Path

from dek.core.errors import ProviderError
from dek.core.models.item import CheckResult, Item
from dek.core.system.paths import expand_path
from dek.providers.base import Provider

SCRIPT_DIR = "~/.local/bin"


class ScriptProvider(Provider):
    """Key is the command name, value the script content."""

    def __init__(self, target_dir: str | Path = SCRIPT_DIR):
        self._target_dir = target_dir

    @property
    def name(self) -> str:
        return "script"

    def target_path(self, name: str) -> Path:
        return expand_path(self._target_dir) / name

    def check(self, item: Item) -> CheckResult:
        target = self.target_path(item.key)
        if not target.exists():
            return CheckResult.missing(f"'{target}' not installed")
        if item.value is not None and target.read_text(encoding="utf-8") != item.value:
            return CheckResult.missing("content differs")
        return CheckResult.satisfied()

    def apply(self, item: Item) -> None:
        if item.value is None:
            raise ProviderError(f"Script '{item.key}' missing content")
        target = self.target_path(item.key)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text(item.value, encoding="utf-8")
        target.chmod(0o755)
