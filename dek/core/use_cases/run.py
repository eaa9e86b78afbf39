"""
Run use cases — plan/check/apply a config, or install packages inline.

Both load what they need, build Items and hand them to a Runner. The
resulting RunReport is returned; raising is left to the Runner and the
config layer (DekError subclasses).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from pathlib import Path

from dek.core.config.items import collect_items
from dek.core.config.loader import base_dir, init_lib, load_config, resolve_config_path
from dek.core.engine.requirements import RequirementResolver
from dek.core.engine.runner import Mode, Runner, RunReporter
from dek.core.errors import ConfigError
from dek.core.models.item import Item
from dek.core.models.outcome import RunReport
from dek.core.persistence.cache import FileCache
from dek.core.probes.evaluator import ProbeEvaluator
from dek.providers.registry import ProviderRegistry

logger = logging.getLogger(__name__)

# Inline install prefixes and the kinds they map to
INLINE_KINDS = {
    "os": "package.os",
    "apt": "package.apt",
    "pacman": "package.pacman",
    "cargo": "package.cargo",
    "go": "package.go",
    "npm": "package.npm",
    "pip": "package.pip",
    "webi": "package.webi",
}


def run_mode(
    mode: Mode,
    config_path: Path | None = None,
    only: Sequence[str] = (),
    registry: ProviderRegistry | None = None,
    cache: FileCache | None = None,
    reporter: RunReporter | None = None,
    resolver: RequirementResolver | None = None,
) -> RunReport:
    """Load the config and run it in ``mode``.

    Args:
        mode: Plan, Check or Apply.
        config_path: Explicit config file/directory; discovered if None.
        only: Config file stems to limit a directory config to.
        registry: Provider registry (default: all builtin providers).
        cache: File cache (default: user cache directory).
        reporter: Display sink.
        resolver: Requirement resolver (default: real installers).
    """
    path = resolve_config_path(config_path)
    init_lib(path)
    config = load_config(path, only)

    cache = cache or FileCache()
    items = collect_items(config, base_dir(path), ProbeEvaluator(cache))
    logger.info("Running %s on %d items from %s", mode, len(items), path)

    runner = Runner(
        mode,
        registry or ProviderRegistry.default(cache),
        resolver=resolver,
        cache=cache,
        reporter=reporter,
    )
    return runner.run(items)


def parse_provider_spec(spec: str) -> Item:
    """Turn ``provider.package`` (e.g. ``cargo.bat``) into an Item.

    Raises:
        ConfigError: Malformed spec or unknown provider prefix.
    """
    provider, sep, package = spec.partition(".")
    if not sep or not package:
        raise ConfigError(f"Invalid spec '{spec}'. Use provider.package (e.g., cargo.bat)")
    kind = INLINE_KINDS.get(provider)
    if kind is None:
        raise ConfigError(
            f"Unknown provider '{provider}'. Use: {', '.join(INLINE_KINDS)}"
        )
    return Item(kind=kind, key=package)


def run_inline(
    specs: Sequence[str],
    registry: ProviderRegistry | None = None,
    cache: FileCache | None = None,
    reporter: RunReporter | None = None,
    resolver: RequirementResolver | None = None,
) -> RunReport:
    """Apply packages given on the command line, without a config."""
    items = [parse_provider_spec(spec) for spec in specs]
    cache = cache or FileCache()
    runner = Runner(
        Mode.APPLY,
        registry or ProviderRegistry.default(cache),
        resolver=resolver,
        cache=cache,
        reporter=reporter,
    )
    return runner.run(items)
