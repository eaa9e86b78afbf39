"""
File providers — copy, fetch, symlink, line edits and rendered templates.

Paths accept a leading ``~``. Parent directories are created on apply.
Read and write errors surface as OSError, which the runner records as
a failed item.
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import urllib.request
from datetime import timedelta
from pathlib import Path

from dek.core.errors import ProviderError
from dek.core.models.item import CheckResult, Item
from dek.core.persistence.cache import FileCache
from dek.core.system.durations import parse_duration
from dek.core.system.paths import expand_path
from dek.providers.base import Provider

logger = logging.getLogger(__name__)

FETCH_TIMEOUT = 60


def _destination(item: Item) -> Path:
    if not item.value:
        raise ProviderError(f"{item.kind}: destination not specified for '{item.key}'")
    return expand_path(item.value)


def _append_line(content: str, line: str) -> str:
    if content and not content.endswith("\n"):
        content += "\n"
    return content + line + "\n"


# ── Copy ────────────────────────────────────────────────────────


class CopyProvider(Provider):
    """Key is the source file, value the destination; compared byte for byte."""

    @property
    def name(self) -> str:
        return "file.copy"

    def check(self, item: Item) -> CheckResult:
        dst = _destination(item)
        if not dst.exists():
            return CheckResult.missing(f"destination '{dst}' does not exist")
        if expand_path(item.key).read_bytes() == dst.read_bytes():
            return CheckResult.satisfied()
        return CheckResult.missing(f"contents differ for '{dst}'")

    def apply(self, item: Item) -> None:
        dst = _destination(item)
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(expand_path(item.key), dst)


# ── Fetch ───────────────────────────────────────────────────────


def fetch_url(url: str, cache: FileCache, max_age: timedelta | None = None) -> bytes:
    """Download ``url`` through the url cache namespace."""
    cached = cache.get(url, max_age)
    if cached is not None:
        return cached

    logger.info("Fetching %s", url)
    try:
        req = urllib.request.Request(url, headers={"User-Agent": "dek"})
        with urllib.request.urlopen(req, timeout=FETCH_TIMEOUT) as resp:
            data = resp.read()
    except OSError as e:
        raise ProviderError(f"Failed to download: {url}: {e}") from e

    cache.set(url, data)
    return data


class FetchProvider(Provider):
    """Key is a URL, value the destination. Param ``ttl`` bounds cache age."""

    def __init__(self, cache: FileCache | None = None):
        self._cache = cache or FileCache()

    @property
    def name(self) -> str:
        return "file.fetch"

    def _max_age(self, item: Item) -> timedelta | None:
        ttl = item.param("ttl")
        if not ttl:
            return None
        try:
            return parse_duration(str(ttl))
        except ValueError as e:
            raise ProviderError(f"file.fetch: {e}") from e

    def check(self, item: Item) -> CheckResult:
        dst = _destination(item)
        if not dst.exists():
            return CheckResult.missing(f"destination '{dst}' does not exist")
        if fetch_url(item.key, self._cache, self._max_age(item)) == dst.read_bytes():
            return CheckResult.satisfied()
        return CheckResult.missing(f"contents differ for '{dst}'")

    def apply(self, item: Item) -> None:
        dst = _destination(item)
        dst.parent.mkdir(parents=True, exist_ok=True)
        dst.write_bytes(fetch_url(item.key, self._cache, self._max_age(item)))


# ── Symlink ─────────────────────────────────────────────────────


class SymlinkProvider(Provider):
    """Key is the link target, value the link path."""

    @property
    def name(self) -> str:
        return "file.symlink"

    def check(self, item: Item) -> CheckResult:
        target = expand_path(item.key)
        link = _destination(item)
        if not link.is_symlink():
            return CheckResult.missing(f"'{link}' is not a symlink")
        current = Path(os.readlink(link))
        if current == target:
            return CheckResult.satisfied()
        return CheckResult.missing(f"symlink points to '{current}', expected '{target}'")

    def apply(self, item: Item) -> None:
        target = expand_path(item.key)
        link = _destination(item)
        link.parent.mkdir(parents=True, exist_ok=True)

        if link.is_symlink() or link.exists():
            if link.is_dir() and not link.is_symlink():
                raise ProviderError(f"cannot replace directory '{link}' with symlink")
            link.unlink()
        link.symlink_to(target)


# ── Line edits ──────────────────────────────────────────────────


class EnsureLineProvider(Provider):
    """Key is a file, value newline-separated lines that must appear in it."""

    @property
    def name(self) -> str:
        return "file.ensure_line"

    def check(self, item: Item) -> CheckResult:
        path = expand_path(item.key)
        if not path.exists():
            return CheckResult.missing(f"file '{path}' does not exist")
        content = path.read_text(encoding="utf-8")
        missing = [line for line in (item.value or "").splitlines() if line not in content]
        if not missing:
            return CheckResult.satisfied()
        return CheckResult.missing(f"{len(missing)} line(s) missing in '{path}'")

    def apply(self, item: Item) -> None:
        path = expand_path(item.key)
        path.parent.mkdir(parents=True, exist_ok=True)
        original = path.read_text(encoding="utf-8") if path.exists() else ""

        content = original
        for line in (item.value or "").splitlines():
            if line not in content:
                content = _append_line(content, line)
        if content != original:
            path.write_text(content, encoding="utf-8")


class FileLineProvider(Provider):
    """Ensure one line, optionally replacing or following an existing one.

    Params:
        original:       existing line to match (compared trimmed)
        original_regex: regex matched against each line instead
        mode:           "replace" (default) or "below"

    Without a match the line is appended.
    """

    @property
    def name(self) -> str:
        return "file.line"

    def check(self, item: Item) -> CheckResult:
        path = expand_path(item.key)
        if not path.exists():
            return CheckResult.missing(f"file '{path}' does not exist")
        if (item.value or "") in path.read_text(encoding="utf-8"):
            return CheckResult.satisfied()
        return CheckResult.missing(f"line missing in '{path}'")

    def apply(self, item: Item) -> None:
        path = expand_path(item.key)
        line = item.value or ""
        path.parent.mkdir(parents=True, exist_ok=True)
        content = path.read_text(encoding="utf-8") if path.exists() else ""
        if line in content:
            return

        matches = self._matcher(item)
        if matches is None:
            path.write_text(_append_line(content, line), encoding="utf-8")
            return

        below = item.param("mode", "replace") == "below"
        new_lines: list[str] = []
        found = False
        for existing in content.splitlines():
            if not found and matches(existing):
                found = True
                if below:
                    new_lines.append(existing)
                new_lines.append(line)
            else:
                new_lines.append(existing)

        if found:
            content = "\n".join(new_lines) + "\n"
        else:
            content = _append_line(content, line)
        path.write_text(content, encoding="utf-8")

    @staticmethod
    def _matcher(item: Item):
        pattern = item.param("original_regex")
        if pattern:
            try:
                regex = re.compile(pattern)
            except re.error as e:
                raise ProviderError(f"Invalid original_regex '{pattern}': {e}") from e
            return lambda text: regex.search(text) is not None

        original = item.param("original")
        if original:
            wanted = original.strip()
            return lambda text: text.strip() == wanted
        return None


# ── Template ────────────────────────────────────────────────────


class TemplateProvider(Provider):
    """Key is the destination, value the already-rendered content."""

    @property
    def name(self) -> str:
        return "file.template"

    def check(self, item: Item) -> CheckResult:
        dst = expand_path(item.key)
        if not dst.exists():
            return CheckResult.missing(f"destination '{dst}' does not exist")
        if dst.read_text(encoding="utf-8") == (item.value or ""):
            return CheckResult.satisfied()
        return CheckResult.missing(f"contents differ for '{dst}'")

    def apply(self, item: Item) -> None:
        dst = expand_path(item.key)
        dst.parent.mkdir(parents=True, exist_ok=True)
        dst.write_text(item.value or "", encoding="utf-8")
