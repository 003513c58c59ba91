"""One integration run: detect, load shared files, merge, write."""

from __future__ import annotations

import difflib
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from layerkit.config import load_config
from layerkit.errors import ContainerWriteFailure, EntrypointWriteFailure, SharedFileUnrecognized
from layerkit.integration.container import ContainerModel, parse_container
from layerkit.integration.detector import DirectorySnapshot, ProjectInventory, detect_features
from layerkit.integration.entrypoint import EntrypointModel, parse_entrypoint
from layerkit.integration.merger import (
    IntegrationReport,
    UnrecognizedFile,
    merge,
    withdraw,
)
from layerkit.integration.writer import atomic_write

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from layerkit.config import ProjectConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileChange:
    """Planned (or applied) new content for one shared file."""

    path: str
    before: str | None
    after: str

    @property
    def created(self) -> bool:
        return self.before is None

    def diff(self) -> str:
        return "".join(
            difflib.unified_diff(
                (self.before or "").splitlines(keepends=True),
                self.after.splitlines(keepends=True),
                fromfile="/dev/null" if self.created else f"a/{self.path}",
                tofile=f"b/{self.path}",
            )
        )


@dataclass
class IntegrationRun:
    """Everything a caller needs to report on one run."""

    inventory: ProjectInventory
    report: IntegrationReport
    module: str
    changes: list[FileChange] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Loading shared files
# ---------------------------------------------------------------------------


def _read(path: Path) -> str | None:
    """File text with its line endings intact, or *None* when absent or blank.

    Raises :class:`UnicodeDecodeError` for files that are not UTF-8.
    """
    if not path.is_file():
        return None
    text = path.read_bytes().decode("utf-8")
    return text if text.strip() else None


def _undecodable(relative: str, path: Path, exc: UnicodeDecodeError) -> UnrecognizedFile:
    logger.warning("%s is not valid UTF-8: %s", relative, exc)
    error = SharedFileUnrecognized(
        f"file is not valid UTF-8 (byte {exc.start})",
        token=relative,
        hint="re-save the file as UTF-8 or apply the snippets manually",
    )
    return UnrecognizedFile(relative, path.read_bytes().decode("utf-8", errors="replace"), error)


def _match_newlines(text: str, before: str | None) -> str:
    """Render *text* with CRLF endings when *before* uses CRLF throughout."""
    if not before or "\r\n" not in before or before.count("\n") != before.count("\r\n"):
        return text
    return text.replace("\r\n", "\n").replace("\n", "\r\n")


def load_container(
    project_root: Path, config: ProjectConfig
) -> tuple[ContainerModel | UnrecognizedFile | None, str | None]:
    """Parse the container file; ``(None, None)`` when there is none yet."""
    path = project_root / config.container_path
    try:
        text = _read(path)
    except UnicodeDecodeError as exc:
        return _undecodable(config.container_path, path, exc), None
    if text is None:
        return None, None
    try:
        return parse_container(text), text
    except SharedFileUnrecognized as exc:
        logger.warning("Container %s not recognized: %s", config.container_path, exc)
        return UnrecognizedFile(config.container_path, text, exc), text


def find_entrypoint(project_root: Path, config: ProjectConfig) -> str:
    """Relative path of the first existing entrypoint, else the first candidate."""
    for candidate in config.entrypoints:
        if (project_root / candidate).is_file():
            return candidate
    return config.entrypoints[0]


def load_entrypoint(
    project_root: Path, relative: str
) -> tuple[EntrypointModel | UnrecognizedFile | None, str | None]:
    path = project_root / relative
    try:
        text = _read(path)
    except UnicodeDecodeError as exc:
        return _undecodable(relative, path, exc), None
    if text is None:
        return None, None
    try:
        return parse_entrypoint(text), text
    except SharedFileUnrecognized as exc:
        logger.warning("Entrypoint %s not recognized: %s", relative, exc)
        return UnrecognizedFile(relative, text, exc), text


# ---------------------------------------------------------------------------
# Run
# ---------------------------------------------------------------------------


def integrate(
    project_root: Path,
    *,
    features: Sequence[str] | None = None,
    config: ProjectConfig | None = None,
    dry_run: bool = False,
) -> IntegrationRun:
    """Integrate detected features of the project at *project_root*.

    Each shared file is written at most once, atomically, and only when a
    feature actually changed it.  With *dry_run* nothing is written and the
    planned changes are returned instead.
    """
    cfg = config if config is not None else load_config(project_root)
    inventory = detect_features(
        DirectorySnapshot(project_root), rules=cfg.layer_rules(), exclude=cfg.exclude
    )

    container, container_before = load_container(project_root, cfg)
    entrypoint_path = find_entrypoint(project_root, cfg)
    entrypoint, entrypoint_before = load_entrypoint(project_root, entrypoint_path)

    result = merge(
        inventory,
        container,
        entrypoint,
        order=features,
        database=cfg.database,
        module=cfg.module,
    )
    report = result.report
    report.dry_run = dry_run
    run = IntegrationRun(inventory, report, cfg.module)

    bound = [o for o in report.outcomes if o.bound_now]
    if bound and isinstance(result.container, ContainerModel):
        change = FileChange(
            cfg.container_path,
            container_before,
            _match_newlines(result.container.render(), container_before),
        )
        run.changes.append(change)
        if not dry_run:
            try:
                atomic_write(project_root / change.path, change.after)
                logger.info("Updated %s (%d binding(s) added)", change.path, len(bound))
            except OSError as exc:
                logger.error("Failed to write %s: %s", change.path, exc)
                run.changes.remove(change)
                entry = result.entrypoint
                if isinstance(entry, EntrypointModel):
                    result = result._replace(entrypoint=withdraw(entry, bound))
                for outcome in bound:
                    outcome.bound_now = outcome.registered_now = False
                    outcome.fail(ContainerWriteFailure(str(exc), token=outcome.feature))

    registered = [o for o in report.outcomes if o.registered_now]
    if registered and isinstance(result.entrypoint, EntrypointModel):
        change = FileChange(
            entrypoint_path,
            entrypoint_before,
            _match_newlines(result.entrypoint.render(), entrypoint_before),
        )
        run.changes.append(change)
        if not dry_run:
            try:
                atomic_write(project_root / change.path, change.after)
                logger.info("Updated %s (%d route block(s) added)", change.path, len(registered))
            except OSError as exc:
                logger.error("Failed to write %s: %s", change.path, exc)
                run.changes.remove(change)
                for outcome in registered:
                    outcome.registered_now = False
                    outcome.fail(EntrypointWriteFailure(str(exc), token=outcome.feature))

    logger.debug(
        "Integration finished: %d integrated, %d partial, %d failed",
        len(report.integrated),
        len(report.partial),
        len(report.failed),
    )
    return run
