"""Feature detection: infer which features exist in which architectural layers.

Detection never touches the disk directly.  It runs against a
:class:`ProjectSnapshot` (directory listings plus, where needed, file
contents), so :func:`detect_features` is a pure function of its snapshot.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Protocol

from layerkit.errors import DetectionBlacklistConflict
from layerkit.naming import normalize

if TYPE_CHECKING:
    from collections.abc import Iterable, Iterator, Mapping, Sequence
    from pathlib import Path

logger = logging.getLogger(__name__)


class LayerKind(enum.Enum):
    """Architectural tier a generated file belongs to."""

    DOMAIN = "domain"
    USE_CASE = "usecase"
    REPOSITORY_INTERFACE = "repository_interface"
    REPOSITORY_IMPL = "repository_impl"
    HANDLER_HTTP = "handler_http"
    HANDLER_GRPC = "handler_grpc"
    HANDLER_CLI = "handler_cli"
    HANDLER_WORKER = "handler_worker"
    HANDLER_SOAP = "handler_soap"


HANDLER_LAYERS = frozenset(
    {
        LayerKind.HANDLER_HTTP,
        LayerKind.HANDLER_GRPC,
        LayerKind.HANDLER_CLI,
        LayerKind.HANDLER_WORKER,
        LayerKind.HANDLER_SOAP,
    }
)

# Stems reserved for shared, non-feature files.
DEFAULT_EXCLUDE = frozenset(
    {
        "errors",
        "validations",
        "validation",
        "common",
        "messages",
        "constants",
        "dto",
        "interfaces",
        "routes",
        "middleware",
        "seeds",
        "mocks",
    }
)

_STRUCT_RE = re.compile(r"^type\s+([A-Za-z_][A-Za-z0-9_]*)\s+struct\b", re.MULTILINE)
_REPO_INTERFACE_RE = re.compile(
    r"^type\s+([A-Za-z_][A-Za-z0-9_]*)Repository\s+interface\b", re.MULTILINE
)

# ---------------------------------------------------------------------------
# Snapshots
# ---------------------------------------------------------------------------


class ProjectSnapshot(Protocol):
    """Read-only view of a project: file names per directory, and contents."""

    def list_files(self, directory: str) -> list[str]: ...

    def read_text(self, path: str) -> str | None: ...


class DirectorySnapshot:
    """Snapshot backed by a real project directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def list_files(self, directory: str) -> list[str]:
        path = self.root / directory if directory else self.root
        if not path.is_dir():
            return []
        return sorted(p.name for p in path.iterdir() if p.is_file())

    def read_text(self, path: str) -> str | None:
        try:
            return (self.root / path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            logger.debug("Could not read %s", path)
            return None


class MemorySnapshot:
    """Snapshot over an in-memory ``{relative_path: content_or_None}`` mapping."""

    def __init__(self, files: Mapping[str, str | None]) -> None:
        self._files = {path.strip("/"): content for path, content in files.items()}

    def list_files(self, directory: str) -> list[str]:
        directory = directory.strip("/")
        names = []
        for path in self._files:
            parent, _, name = path.rpartition("/")
            if parent == directory:
                names.append(name)
        return sorted(names)

    def read_text(self, path: str) -> str | None:
        return self._files.get(path.strip("/"))


# ---------------------------------------------------------------------------
# Layer rules
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LayerRule:
    """How to recover feature names from one layer directory.

    File-name rules strip one of *prefixes*, one of *suffixes* and the
    *extension* from each file name.  An empty string in *prefixes* or
    *suffixes* means the affix is optional.  When *content_pattern* is set,
    names are read from the contents of *content_files* instead.
    """

    layer: LayerKind
    directory: str
    suffixes: tuple[str, ...] = ("",)
    prefixes: tuple[str, ...] = ("",)
    extension: str = ".go"
    ignore_suffixes: tuple[str, ...] = ()
    content_files: tuple[str, ...] = ()
    content_pattern: re.Pattern[str] | None = None

    def with_directory(self, directory: str) -> LayerRule:
        return replace(self, directory=directory)


def _strip_affix(stem: str, affixes: tuple[str, ...], *, prefix: bool) -> tuple[str, str] | None:
    # Longest affix first; an empty affix means "optional".
    for affix in sorted(affixes, key=len, reverse=True):
        if not affix:
            return stem, ""
        if prefix and stem.startswith(affix):
            return stem[len(affix):], affix
        if not prefix and stem.endswith(affix):
            return stem[: -len(affix)], affix
    return None


def strip_feature_name(filename: str, rule: LayerRule) -> tuple[str, bool] | None:
    """Recover a candidate feature name from *filename* under *rule*.

    Returns ``(name, stripped)`` where *stripped* tells whether a non-empty
    prefix or suffix was removed, or *None* when the file does not follow
    the layer's naming convention.
    """
    if not filename.endswith(rule.extension):
        return None
    stem = filename[: -len(rule.extension)] if rule.extension else filename
    if any(stem.endswith(s) for s in rule.ignore_suffixes):
        return None
    after_prefix = _strip_affix(stem, rule.prefixes, prefix=True)
    if after_prefix is None:
        return None
    after_suffix = _strip_affix(after_prefix[0], rule.suffixes, prefix=False)
    if after_suffix is None:
        return None
    name = after_suffix[0].strip("_")
    if not name:
        return None
    return name, bool(after_prefix[1] or after_suffix[1])


def _join(root: str, directory: str) -> str:
    return "/".join(part for part in (root.strip("/"), directory.strip("/")) if part)


def default_layer_rules(source_root: str = "internal") -> list[LayerRule]:
    """Layer layout produced by the generator, relative to *source_root*."""
    return [
        LayerRule(
            LayerKind.DOMAIN,
            _join(source_root, "domain"),
            ignore_suffixes=("_seeds", "_test", "_mock"),
        ),
        LayerRule(
            LayerKind.USE_CASE,
            _join(source_root, "usecase"),
            suffixes=("_usecase", "_service"),
            ignore_suffixes=("_test",),
        ),
        LayerRule(
            LayerKind.REPOSITORY_INTERFACE,
            _join(source_root, "repository"),
            content_files=("interfaces.go",),
            content_pattern=_REPO_INTERFACE_RE,
        ),
        LayerRule(
            LayerKind.REPOSITORY_IMPL,
            _join(source_root, "repository"),
            prefixes=("postgres_", "mysql_", "mongo_", "sqlite_"),
            suffixes=("_repository", "_repo"),
            ignore_suffixes=("_test",),
        ),
        LayerRule(
            LayerKind.HANDLER_HTTP,
            _join(source_root, "handler/http"),
            suffixes=("_handler",),
            ignore_suffixes=("_test",),
        ),
        LayerRule(
            LayerKind.HANDLER_GRPC,
            _join(source_root, "handler/grpc"),
            suffixes=("_server",),
            ignore_suffixes=("_test",),
        ),
        LayerRule(
            LayerKind.HANDLER_CLI,
            _join(source_root, "handler/cli"),
            suffixes=("_commands",),
        ),
        LayerRule(
            LayerKind.HANDLER_WORKER,
            _join(source_root, "handler/worker"),
            suffixes=("_worker",),
        ),
        LayerRule(
            LayerKind.HANDLER_SOAP,
            _join(source_root, "handler/soap"),
            suffixes=("_client",),
        ),
    ]


# ---------------------------------------------------------------------------
# Inventory
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FeatureRecord:
    """A feature and the layers it was found in."""

    name: str
    layers: frozenset[LayerKind]

    @property
    def key(self) -> str:
        return normalize(self.name)

    @property
    def is_complete(self) -> bool:
        """Complete = domain entity plus at least one handler layer."""
        return LayerKind.DOMAIN in self.layers and bool(self.layers & HANDLER_LAYERS)

    @property
    def has_http_handler(self) -> bool:
        return LayerKind.HANDLER_HTTP in self.layers

    def missing_layers(self) -> list[str]:
        missing: list[str] = []
        if LayerKind.DOMAIN not in self.layers:
            missing.append(LayerKind.DOMAIN.value)
        if not self.layers & HANDLER_LAYERS:
            missing.append("handler")
        return missing


@dataclass(frozen=True)
class ProjectInventory:
    """Features keyed by normalized name.  Iterates alphabetically."""

    features: Mapping[str, FeatureRecord] = field(default_factory=dict)
    notices: tuple[DetectionBlacklistConflict, ...] = ()

    def get(self, name: str) -> FeatureRecord | None:
        return self.features.get(normalize(name))

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and normalize(name) in self.features

    def __iter__(self) -> Iterator[FeatureRecord]:
        return iter(self.features[key] for key in sorted(self.features))

    def __len__(self) -> int:
        return len(self.features)

    def names(self) -> list[str]:
        return [record.name for record in self]

    def complete(self) -> list[FeatureRecord]:
        return [record for record in self if record.is_complete]

    def partial(self) -> list[FeatureRecord]:
        return [record for record in self if not record.is_complete]

    def only(self, names: Iterable[str]) -> tuple[ProjectInventory, list[str]]:
        """Restrict to *names*; also return the names that were not detected."""
        kept: dict[str, FeatureRecord] = {}
        missing: list[str] = []
        for name in names:
            record = self.get(name)
            if record is None:
                missing.append(name)
            else:
                kept[record.key] = record
        return ProjectInventory(kept, self.notices), missing


# ---------------------------------------------------------------------------
# Detection
# ---------------------------------------------------------------------------


def _display_name(stem_name: str, content: str | None) -> str:
    """Prefer the casing of a matching ``type X struct`` declaration."""
    if content:
        for match in _STRUCT_RE.finditer(content):
            if normalize(match.group(1)) == normalize(stem_name):
                return match.group(1)
    return stem_name


def _candidates(
    snapshot: ProjectSnapshot,
    rule: LayerRule,
) -> Iterator[tuple[str, bool, str]]:
    """Yield ``(name, stripped, source_path)`` for one layer rule."""
    files = snapshot.list_files(rule.directory)
    if rule.content_pattern is not None:
        for filename in files:
            if filename not in rule.content_files:
                continue
            path = _join(rule.directory, filename)
            content = snapshot.read_text(path)
            if content is None:
                continue
            for match in rule.content_pattern.finditer(content):
                yield match.group(1), True, path
        return

    for filename in files:
        recovered = strip_feature_name(filename, rule)
        if recovered is None:
            continue
        name, stripped = recovered
        path = _join(rule.directory, filename)
        if rule.layer is LayerKind.DOMAIN:
            name = _display_name(name, snapshot.read_text(path))
        yield name, stripped, path


def detect_features(
    snapshot: ProjectSnapshot,
    *,
    rules: Sequence[LayerRule] | None = None,
    exclude: Iterable[str] | None = None,
) -> ProjectInventory:
    """Scan *snapshot* and build a fresh :class:`ProjectInventory`.

    Layers are scanned in rule order and files alphabetically within each
    directory; the first casing seen for a feature becomes its display name.
    """
    layer_rules = list(rules) if rules is not None else default_layer_rules()
    excluded = {normalize(name) for name in (exclude if exclude is not None else DEFAULT_EXCLUDE)}

    names: dict[str, str] = {}
    layers: dict[str, set[LayerKind]] = {}
    notices: list[DetectionBlacklistConflict] = []

    for rule in layer_rules:
        for name, stripped, path in _candidates(snapshot, rule):
            key = normalize(name)
            if key in excluded:
                if stripped:
                    notice = DetectionBlacklistConflict(
                        f"reserved name used by a {rule.layer.value} file", token=path
                    )
                    notices.append(notice)
                    logger.info("Skipping %s: %s", path, notice)
                continue
            if key not in names:
                names[key] = name
                layers[key] = set()
            layers[key].add(rule.layer)

    features = {key: FeatureRecord(names[key], frozenset(layers[key])) for key in names}
    logger.debug("Detected %d feature(s): %s", len(features), ", ".join(sorted(features)))
    return ProjectInventory(features, tuple(notices))
