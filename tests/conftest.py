"""
Shared test fixtures and configuration.
"""

import os
from pathlib import Path

import pytest

from dek.core.persistence.cache import FileCache


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep every test away from the real cache, home and shell library."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("SHELL", "/bin/bash")
    monkeypatch.setenv("DEK_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.delenv("DEK_LIB", raising=False)
    monkeypatch.delenv("XDG_CACHE_HOME", raising=False)
    # PATH is mutated by requirement installs and CLI startup
    monkeypatch.setenv("PATH", os.environ.get("PATH", ""))
    return home


@pytest.fixture
def home(isolated_env: Path) -> Path:
    """The temporary HOME directory."""
    return isolated_env


@pytest.fixture
def cache(tmp_path: Path) -> FileCache:
    """A file cache rooted in a temporary directory."""
    return FileCache(tmp_path / "cache")
