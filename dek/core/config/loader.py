"""
Configuration loader — reads dek.yml (or a dek/ directory) into a Config.

A directory is loaded file by file in sorted order and merged:
mappings are updated key by key, lists are concatenated, scalars are
replaced by the later file. Passing file stems limits a directory load
to those files.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from dek.core.config.schema import Config
from dek.core.errors import ConfigError
from dek.core.system.process import LIB_ENV

logger = logging.getLogger(__name__)

CONFIG_FILES = ("dek.yml", "dek.yaml")
CONFIG_DIR = "dek"
CONFIG_SUFFIXES = (".yml", ".yaml")
LIB_FILE = Path("data") / "functions.sh"


def find_config(start_dir: Path | None = None) -> Path | None:
    """Locate the default config in ``start_dir`` (default: cwd)."""
    base = start_dir or Path.cwd()
    for name in CONFIG_FILES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    directory = base / CONFIG_DIR
    if directory.is_dir():
        return directory
    return None


def resolve_config_path(path: Path | None) -> Path:
    """The explicit path if given, else the discovered default.

    Raises:
        ConfigError: Nothing found, or the path does not exist.
    """
    if path is None:
        found = find_config()
        if found is None:
            raise ConfigError(
                "No dek.yml or dek/ directory found. Specify one with -C PATH."
            )
        return found
    if not path.exists():
        raise ConfigError(f"Config not found: {path}")
    return path


def base_dir(config_path: Path) -> Path:
    """Directory that relative source paths resolve against."""
    return config_path if config_path.is_dir() else config_path.parent


def init_lib(config_path: Path) -> Path | None:
    """Export DEK_LIB when the config ships a shared shell library."""
    lib = base_dir(config_path) / LIB_FILE
    if lib.is_file():
        os.environ[LIB_ENV] = str(lib.resolve())
        logger.debug("Using shell library %s", lib)
        return lib
    return None


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def merge_data(base: dict[str, Any], other: dict[str, Any]) -> dict[str, Any]:
    """Merge ``other`` into a copy of ``base``."""
    merged = dict(base)
    for key, value in other.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = merge_data(current, value)
        elif isinstance(current, list) and isinstance(value, list):
            merged[key] = current + value
        else:
            merged[key] = value
    return merged


def config_files(directory: Path, only: Sequence[str] = ()) -> list[Path]:
    """YAML files of a config directory, sorted, optionally filtered by stem."""
    files = sorted(
        p for p in directory.iterdir()
        if p.is_file() and p.suffix in CONFIG_SUFFIXES
    )
    if only:
        wanted = set(only)
        unknown = wanted - {p.stem for p in files}
        if unknown:
            raise ConfigError(f"No config named: {', '.join(sorted(unknown))}")
        files = [p for p in files if p.stem in wanted]
    return files


def load_config(path: Path, only: Sequence[str] = ()) -> Config:
    """Load and validate a config file or directory.

    Raises:
        ConfigError: Unreadable, malformed, or schema-invalid config.
    """
    if path.is_dir():
        data: dict[str, Any] = {}
        for file in config_files(path, only):
            logger.debug("Loading %s", file)
            data = merge_data(data, _read_yaml(file))
    else:
        data = _read_yaml(path)

    try:
        config = Config.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded config from %s", path)
    return config
