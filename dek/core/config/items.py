"""
Item collection — translate a Config into the ordered Item list.

Order: packages, services, files, aliases, env, commands, scripts,
assertions. Within a section, config order is kept.

Template files are rendered here, against only the state probes they
reference, so the runner sees an ordinary ``file.template`` item whose
value is the final content.
"""

from __future__ import annotations

import logging
from pathlib import Path

import jinja2
from jinja2 import meta

from dek.core.config.schema import Config, TemplateConfig
from dek.core.errors import ConfigError
from dek.core.models.item import Item
from dek.core.probes.evaluator import ProbeEvaluator
from dek.core.probes.render import RENDER_ERRORS, STRICT, context_name, dependency_context
from dek.core.system.paths import expand_path, resolve_source_path

logger = logging.getLogger(__name__)

PACKAGE_KINDS = ("os", "apt", "pacman", "cargo", "go", "npm", "pip", "pipx", "webi")


def collect_items(
    config: Config,
    base_dir: Path,
    evaluator: ProbeEvaluator | None = None,
) -> list[Item]:
    """Build the run's items from ``config``.

    Raises:
        ConfigError: A referenced script or template cannot be read or rendered.
    """
    items: list[Item] = []
    items.extend(_packages(config))
    items.extend(_services(config))
    items.extend(_files(config, base_dir, evaluator))

    for name, command in config.alias.items():
        items.append(Item(kind="alias", key=name, value=command))
    for name, value in config.env.items():
        items.append(Item(kind="env", key=name, value=value))

    for cmd in config.command:
        items.append(Item(
            kind="command",
            key=cmd.name,
            gate=cmd.run_if,
            cache_key=cmd.cache_key,
            params={"check": cmd.check, "apply": cmd.apply, "confirm": cmd.confirm},
        ))

    for name, rel_path in config.script.items():
        path = Path(resolve_source_path(rel_path, base_dir)).expanduser()
        try:
            content = path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"Cannot read script '{name}' from {path}: {e}") from e
        items.append(Item(kind="script", key=name, value=content))

    for check in config.assertions:
        items.append(Item(
            kind="assert",
            key=check.command,
            gate=check.run_if,
            params={
                "mode": check.mode,
                "stdout": check.stdout,
                "stderr": check.stderr,
                "message": check.message,
            },
        ))

    logger.debug("Collected %d items", len(items))
    return items


def _packages(config: Config) -> list[Item]:
    items = []
    for manager in PACKAGE_KINDS:
        packages = getattr(config.package, manager)
        if packages is None:
            continue
        for spec in packages.items:
            items.append(Item(kind=f"package.{manager}", key=spec, gate=packages.run_if))
    return items


def _services(config: Config) -> list[Item]:
    return [
        Item(
            kind="service",
            key=svc.name,
            gate=svc.run_if,
            params={"state": svc.state, "enabled": svc.enabled, "scope": svc.scope},
        )
        for svc in config.service
    ]


def _files(config: Config, base_dir: Path, evaluator: ProbeEvaluator | None) -> list[Item]:
    files = config.file
    items: list[Item] = []

    for src, dst in files.copy_.items():
        items.append(Item(kind="file.copy", key=resolve_source_path(src, base_dir), value=dst))
    for src, dst in files.symlink.items():
        items.append(Item(kind="file.symlink", key=resolve_source_path(src, base_dir), value=dst))
    for path, lines in files.ensure_line.items():
        items.append(Item(kind="file.ensure_line", key=path, value="\n".join(lines)))

    for entry in files.line:
        items.append(Item(
            kind="file.line",
            key=entry.path,
            value=entry.line,
            gate=entry.run_if,
            params={
                "original": entry.original,
                "original_regex": entry.original_regex,
                "mode": entry.mode,
            },
        ))

    for tmpl in files.template:
        items.append(Item(
            kind="file.template",
            key=tmpl.dest,
            value=render_template_file(tmpl, config, base_dir, evaluator),
            gate=tmpl.run_if,
        ))

    for fetch in files.fetch:
        items.append(Item(
            kind="file.fetch",
            key=fetch.url,
            value=fetch.dest,
            gate=fetch.run_if,
            params={"ttl": fetch.ttl},
        ))
    return items


def render_template_file(
    tmpl: TemplateConfig,
    config: Config,
    base_dir: Path,
    evaluator: ProbeEvaluator | None = None,
) -> str:
    """Render a template file with the state probes it references."""
    path = expand_path(resolve_source_path(tmpl.src, base_dir))
    try:
        source = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read template {path}: {e}") from e

    try:
        referenced = meta.find_undeclared_variables(STRICT.parse(source))
    except jinja2.TemplateSyntaxError as e:
        raise ConfigError(f"Invalid template {path}: {e}") from e

    by_context_name = {context_name(d.name): d.name for d in config.state}
    needed = [by_context_name[v] for v in sorted(referenced) if v in by_context_name]

    results = {}
    if needed:
        evaluator = evaluator or ProbeEvaluator()
        results = evaluator.evaluate_subset(config.state, needed)

    try:
        return STRICT.from_string(source).render(dependency_context(results))
    except RENDER_ERRORS as e:
        raise ConfigError(f"Failed to render template {path}: {e}") from e
