"""
Manifest loader — reads hostconverge.yml into a ResourceGraph.

This is the primary entry point for loading declared state. It reads
YAML, interpolates variables, inlines file sources, validates against
the Pydantic resource models, and returns a typed graph.

Manifest shape::

    name: vancord
    vars:
      DOMAIN: chat.example.com
      WWW_ROOT: /var/www/vancord
    resources:
      - id: nginx
        kind: Package
        name: nginx
      - id: site-conf
        kind: File
        path: /etc/nginx/sites-available/vancord
        source: templates/nginx.conf      # relative to the manifest
        template: true                    # interpolate ${VARS} in it
        depends_on: [nginx]

Variables are explicit: ``${NAME}`` in any string value of a resource
is replaced from ``vars`` (overridden by ``--set NAME=VALUE``). An
unknown name is an error; ``$${`` produces a literal ``${``. Nothing
is read from the process environment.
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from hostconverge.core.errors import HostConvergeError
from hostconverge.core.models.resource import ResourceGraph

logger = logging.getLogger(__name__)

# Default manifest filename
MANIFEST_FILE = "hostconverge.yml"

_VAR = re.compile(r"\$\$\{|\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


class ConfigError(HostConvergeError):
    """Raised when the manifest is missing, unreadable or invalid."""


def find_manifest_file(start_dir: Path | None = None) -> Path | None:
    """Search for hostconverge.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to hostconverge.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / MANIFEST_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def parse_overrides(pairs: list[str] | tuple[str, ...]) -> dict[str, str]:
    """Parse ``NAME=VALUE`` strings from the command line."""
    overrides: dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        if not sep or not name.strip():
            raise ConfigError(f"Invalid --set value {pair!r}; expected NAME=VALUE")
        overrides[name.strip()] = value
    return overrides


def interpolate(text: str, variables: dict[str, str], where: str = "") -> str:
    """Replace ``${NAME}`` with ``variables[NAME]``.

    Raises:
        ConfigError: On a name that is not defined.
    """

    def _sub(m: re.Match) -> str:
        if m.group(0) == "$${":
            return "${"
        name = m.group(1)
        if name not in variables:
            location = f" in {where}" if where else ""
            raise ConfigError(f"Undefined variable ${{{name}}}{location}")
        return variables[name]

    return _VAR.sub(_sub, text)


def _interpolate_value(value: Any, variables: dict[str, str], where: str) -> Any:
    if isinstance(value, str):
        return interpolate(value, variables, where)
    if isinstance(value, list):
        return [_interpolate_value(v, variables, where) for v in value]
    if isinstance(value, dict):
        return {k: _interpolate_value(v, variables, f"{where}.{k}") for k, v in value.items()}
    return value


def _prepare_resource(raw: Any, index: int, variables: dict[str, str], base_dir: Path) -> dict:
    if not isinstance(raw, dict):
        raise ConfigError(f"resources[{index}] must be a mapping, got {type(raw).__name__}")

    item = dict(raw)
    where = f"resource '{item.get('id', index)}'"
    source = item.pop("source", None)
    template = item.pop("template", source is None)

    if source is not None:
        if item.get("kind") != "File":
            raise ConfigError(f"{where}: 'source' is only valid for File resources")
        if "content" in item:
            raise ConfigError(f"{where}: give either 'content' or 'source', not both")
        source_path = base_dir / interpolate(str(source), variables, where)
        try:
            item["content"] = source_path.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigError(f"{where}: cannot read source {source_path}: {e}") from e

    content = item.pop("content", None)
    item = _interpolate_value(item, variables, where)
    if content is not None:
        item["content"] = interpolate(content, variables, f"{where}.content") if template else content
    return item


def load_manifest(
    path: Path | None = None,
    overrides: dict[str, str] | None = None,
) -> ResourceGraph:
    """Load and validate a manifest.

    Args:
        path: Explicit path to hostconverge.yml. If None, searches upward.
        overrides: Variables that replace (or add to) the manifest's ``vars``.

    Returns:
        Validated ResourceGraph, resources in declaration order.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if path is None:
        path = find_manifest_file()

    if path is None:
        raise ConfigError(f"No {MANIFEST_FILE} found. Specify one with --config.")

    if not path.is_file():
        raise ConfigError(f"Manifest not found: {path}")

    logger.debug("Loading manifest from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    raw_vars = data.get("vars") or {}
    if not isinstance(raw_vars, dict):
        raise ConfigError(f"'vars' must be a mapping in {path}")
    variables = {str(k): "" if v is None else str(v) for k, v in raw_vars.items()}
    variables.update(overrides or {})

    raw_resources = data.get("resources") or []
    if not isinstance(raw_resources, list):
        raise ConfigError(f"'resources' must be a list in {path}")

    base_dir = path.parent.resolve()
    resources = [
        _prepare_resource(item, i, variables, base_dir)
        for i, item in enumerate(raw_resources)
    ]

    try:
        graph = ResourceGraph.model_validate(
            {"name": str(data.get("name") or path.parent.name), "resources": resources}
        )
    except ValidationError as e:
        raise ConfigError(f"Invalid manifest {path}: {e}") from e

    for command in graph.commands_without_predicate():
        logger.warning(
            "Command '%s' has no 'creates' or 'unless' predicate: it will run on every apply",
            command.id,
        )

    logger.info("Loaded manifest '%s' with %d resources", graph.name, len(graph.resources))
    return graph
