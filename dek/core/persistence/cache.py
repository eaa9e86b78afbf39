"""
File cache — content-addressed storage under the user cache directory.

Layout::

    <base>/url/<md5(key)>     fetched URL bodies, probe TTL values
    <base>/state/<md5(id)>    last-applied cache_key per item

The base directory is ``$DEK_CACHE_DIR``, else ``$XDG_CACHE_HOME/dek``,
else ``~/.cache/dek``. Writes are atomic (temp file, then rename) so a
crash mid-write never leaves a truncated entry behind.

I/O errors propagate to the caller; a missing entry is just a miss.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import time
from datetime import timedelta
from pathlib import Path

logger = logging.getLogger(__name__)

CACHE_DIR_ENV = "DEK_CACHE_DIR"


def default_cache_dir() -> Path:
    override = os.environ.get(CACHE_DIR_ENV)
    if override:
        return Path(override).expanduser()
    xdg = os.environ.get("XDG_CACHE_HOME")
    if xdg:
        return Path(xdg) / "dek"
    return Path.home() / ".cache" / "dek"


def _hash(key: str) -> str:
    return hashlib.md5(key.encode("utf-8")).hexdigest()


class FileCache:
    """Small key/value cache with optional freshness checks."""

    def __init__(self, base_dir: Path | None = None):
        self.base_dir = base_dir or default_cache_dir()

    @property
    def url_dir(self) -> Path:
        return self.base_dir / "url"

    @property
    def state_dir(self) -> Path:
        return self.base_dir / "state"

    # ── Keyed blobs ─────────────────────────────────────────────

    def get(self, key: str, max_age: timedelta | None = None) -> bytes | None:
        """Return the cached bytes for ``key``.

        Args:
            key: Cache key (a URL or ``state-probe:<name>``).
            max_age: If given, entries older than this count as a miss.
        """
        path = self.url_dir / _hash(key)
        if not path.is_file():
            return None
        if max_age is not None:
            age = time.time() - path.stat().st_mtime
            if age > max_age.total_seconds():
                logger.debug("Cache entry for %s expired (%.0fs old)", key, age)
                return None
        return path.read_bytes()

    def set(self, key: str, data: bytes) -> None:
        self._write(self.url_dir / _hash(key), data)

    # ── Item state ──────────────────────────────────────────────

    def get_state(self, item_id: str) -> str | None:
        """The cache_key recorded when ``item_id`` was last applied."""
        path = self.state_dir / _hash(item_id)
        if not path.is_file():
            return None
        return path.read_text(encoding="utf-8")

    def set_state(self, item_id: str, value: str) -> None:
        self._write(self.state_dir / _hash(item_id), value.encode("utf-8"))

    def is_current(self, item_id: str, cache_key: str) -> bool:
        return self.get_state(item_id) == cache_key

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".cache_", suffix=".tmp")
        tmp = Path(tmp_path)
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            tmp.replace(path)
        except Exception:
            tmp.unlink(missing_ok=True)
            raise
        logger.debug("Cached %d bytes at %s", len(data), path)
