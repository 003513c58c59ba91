"""Project configuration: ``.layerkit/config.yml`` plus ``go.mod``."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import yaml

from layerkit.integration.detector import DEFAULT_EXCLUDE, LayerKind, default_layer_rules
from layerkit.integration.entrypoint import ENTRYPOINT_CANDIDATES

if TYPE_CHECKING:
    from pathlib import Path

    from layerkit.integration.detector import LayerRule

logger = logging.getLogger(__name__)

CONFIG_PATH = ".layerkit/config.yml"
DEFAULT_MODULE = "myproject"
DATABASES = ("postgres", "mysql", "mongodb", "sqlite")

_MODULE_RE = re.compile(r"^module\s+(\S+)", re.MULTILINE)


@dataclass(frozen=True)
class ProjectConfig:
    """Settings for one target project.  Every key has a default."""

    module: str = DEFAULT_MODULE
    database: str = "postgres"
    source_root: str = "internal"
    container_path: str = "internal/di/container.go"
    entrypoints: tuple[str, ...] = ENTRYPOINT_CANDIDATES
    exclude: frozenset[str] = DEFAULT_EXCLUDE
    directories: dict[str, str] = field(default_factory=dict)

    def layer_rules(self) -> list[LayerRule]:
        """Default layer rules with per-layer directory overrides applied."""
        rules = default_layer_rules(self.source_root)
        if not self.directories:
            return rules
        return [
            rule.with_directory(self.directories[rule.layer.value])
            if rule.layer.value in self.directories
            else rule
            for rule in rules
        ]


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def read_module_name(project_root: Path) -> str | None:
    """Return the ``module`` declared in ``go.mod``, or *None*."""
    go_mod = project_root / "go.mod"
    if not go_mod.is_file():
        return None
    try:
        text = go_mod.read_text(encoding="utf-8")
    except OSError:
        logger.warning("Failed to read %s", go_mod)
        return None
    match = _MODULE_RE.search(text)
    return match.group(1) if match else None


def _read_yaml(config_path: Path) -> dict[str, Any]:
    if not config_path.is_file():
        return {}
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError):
        logger.warning("Failed to read %s, using defaults", config_path)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring %s: expected a mapping at top level", config_path)
        return {}
    return data


def load_config(project_root: Path) -> ProjectConfig:
    """Load configuration for *project_root*.

    Missing keys take defaults.  The module name comes from the config file,
    then ``go.mod``, then falls back to ``myproject``.
    """
    data = _read_yaml(project_root / CONFIG_PATH)
    kwargs: dict[str, Any] = {}

    for key in ("source_root", "container_path"):
        value = data.get(key)
        if isinstance(value, str):
            kwargs[key] = value.strip("/")
    if "source_root" in kwargs and "container_path" not in kwargs:
        kwargs["container_path"] = "/".join(p for p in (kwargs["source_root"], "di/container.go") if p)

    database = data.get("database")
    if isinstance(database, str):
        if database.lower() in DATABASES:
            kwargs["database"] = database.lower()
        else:
            logger.warning("Unknown database %r in config, using postgres", database)

    entrypoints = data.get("entrypoints")
    if isinstance(entrypoints, list) and entrypoints:
        kwargs["entrypoints"] = tuple(str(p) for p in entrypoints)

    detection = data.get("detection")
    if isinstance(detection, dict):
        exclude = detection.get("exclude")
        if isinstance(exclude, list):
            kwargs["exclude"] = frozenset(str(name).lower() for name in exclude)
        directories = detection.get("directories")
        if isinstance(directories, dict):
            known = {kind.value for kind in LayerKind}
            overrides: dict[str, str] = {}
            for layer, directory in directories.items():
                if layer not in known:
                    logger.warning("Unknown layer %r in detection.directories", layer)
                    continue
                overrides[layer] = str(directory).strip("/")
            kwargs["directories"] = overrides

    module = data.get("module")
    kwargs["module"] = module if isinstance(module, str) and module else (
        read_module_name(project_root) or DEFAULT_MODULE
    )

    config = ProjectConfig(**kwargs)
    logger.debug("Loaded config for %s: %s", project_root, config)
    return config
