"""Merge detected features into the container and entrypoint models.

``merge`` is pure: it takes parsed models and returns new ones plus a
report.  Each feature walks its own small state machine and a failure in
one feature never changes what happens to another.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, NamedTuple

from layerkit.errors import IntegrationError, LayerkitError, PartialIntegration, SharedFileUnrecognized
from layerkit.integration.container import (
    Binding,
    ContainerModel,
    bound_features,
    build_binding,
    empty_container,
)
from layerkit.integration.entrypoint import (
    EntrypointModel,
    RouteBlock,
    build_route_block,
    empty_entrypoint,
    is_marked,
    route_markers,
)
from layerkit.naming import normalize

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from layerkit.integration.detector import FeatureRecord, ProjectInventory

logger = logging.getLogger(__name__)


class FeatureState(enum.Enum):
    DETECTED = "detected"
    ALREADY_INTEGRATED = "already_integrated"
    NEEDS_CONTAINER_BINDING = "needs_container_binding"
    BOUND = "bound"
    NEEDS_ROUTE_REGISTRATION = "needs_route_registration"
    REGISTERED = "registered"
    PARTIAL = "partial"
    FAILED = "failed"


INTEGRATED_STATES = frozenset({FeatureState.ALREADY_INTEGRATED, FeatureState.BOUND, FeatureState.REGISTERED})


@dataclass(frozen=True)
class UnrecognizedFile:
    """A shared file that exists but could not be parsed.  Never rewritten."""

    path: str
    text: str
    error: SharedFileUnrecognized


@dataclass
class FeatureOutcome:
    """What happened to one feature during a merge."""

    feature: str
    path: list[FeatureState] = field(default_factory=lambda: [FeatureState.DETECTED])
    error: LayerkitError | None = None
    binding: Binding | None = None
    route: RouteBlock | None = None
    bound_now: bool = False
    registered_now: bool = False

    @property
    def state(self) -> FeatureState:
        return self.path[-1]

    @property
    def integrated(self) -> bool:
        return self.state in INTEGRATED_STATES

    @property
    def changed(self) -> bool:
        return self.bound_now or self.registered_now

    def advance(self, state: FeatureState) -> None:
        self.path.append(state)

    def fail(self, error: LayerkitError) -> None:
        self.error = error
        self.path.append(FeatureState.FAILED)

    def partial(self, error: LayerkitError) -> None:
        self.error = error
        self.path.append(FeatureState.PARTIAL)


@dataclass
class IntegrationReport:
    """Per-feature outcomes of one merge run, in processing order."""

    outcomes: list[FeatureOutcome] = field(default_factory=list)
    notices: tuple[LayerkitError, ...] = ()
    dry_run: bool = False

    def get(self, feature: str) -> FeatureOutcome | None:
        key = normalize(feature)
        for outcome in self.outcomes:
            if normalize(outcome.feature) == key:
                return outcome
        return None

    @property
    def integrated(self) -> list[FeatureOutcome]:
        return [o for o in self.outcomes if o.integrated]

    @property
    def partial(self) -> list[FeatureOutcome]:
        return [o for o in self.outcomes if o.state is FeatureState.PARTIAL]

    @property
    def failed(self) -> list[FeatureOutcome]:
        return [o for o in self.outcomes if o.state is FeatureState.FAILED]

    @property
    def ok(self) -> bool:
        """A run succeeds when at least one feature integrated, or there was nothing to do."""
        return bool(self.integrated) or not self.outcomes


class MergeResult(NamedTuple):
    container: ContainerModel | UnrecognizedFile
    entrypoint: EntrypointModel | UnrecognizedFile
    report: IntegrationReport


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def _select(
    inventory: ProjectInventory,
    order: Sequence[str] | None,
) -> list[tuple[str, FeatureRecord | None]]:
    """Pair each requested name with its record (``None`` when not detected)."""
    if order is None:
        return [(record.name, record) for record in inventory]
    selected: list[tuple[str, FeatureRecord | None]] = []
    seen: set[str] = set()
    for name in order:
        key = normalize(name)
        if key in seen:
            continue
        seen.add(key)
        selected.append((name, inventory.get(name)))
    return selected


def _merge_feature(
    record: FeatureRecord,
    container: ContainerModel | UnrecognizedFile,
    entrypoint: EntrypointModel | UnrecognizedFile,
    outcome: FeatureOutcome,
    *,
    database: str,
) -> None:
    if not record.is_complete:
        missing = ", ".join(record.missing_layers())
        outcome.fail(
            IntegrationError(
                f"feature is missing layers ({missing})",
                token=record.name,
                hint=f"generate the {missing} layer(s) first",
            )
        )
        return

    needs_route = record.has_http_handler
    container_var = entrypoint.container_var if isinstance(entrypoint, EntrypointModel) else "container"
    outcome.binding = build_binding(record.name, database=database, http_handler=needs_route)
    if needs_route:
        outcome.route = build_route_block(record.name, container_var=container_var)

    if isinstance(container, ContainerModel):
        is_bound = record.name in container
    else:
        is_bound = record.key in bound_features(container.text)
    if isinstance(entrypoint, EntrypointModel):
        is_routed = entrypoint.is_registered(record.name)
    else:
        is_routed = is_marked(record.name, route_markers(entrypoint.text))

    if is_bound and (is_routed or not needs_route):
        outcome.advance(FeatureState.ALREADY_INTEGRATED)
        return

    if not is_bound:
        outcome.advance(FeatureState.NEEDS_CONTAINER_BINDING)
        if isinstance(container, UnrecognizedFile):
            outcome.partial(
                PartialIntegration(
                    f"container file {container.path} was not recognized",
                    token=record.name,
                    hint="add the container binding and routes by hand",
                )
            )
            return
        outcome.bound_now = True
    outcome.advance(FeatureState.BOUND)

    if not needs_route or is_routed:
        return

    outcome.advance(FeatureState.NEEDS_ROUTE_REGISTRATION)
    if isinstance(entrypoint, UnrecognizedFile):
        outcome.partial(
            PartialIntegration(
                f"entrypoint file {entrypoint.path} was not recognized",
                token=record.name,
                hint="register the routes by hand",
            )
        )
        return
    outcome.registered_now = True
    outcome.advance(FeatureState.REGISTERED)


def merge(
    inventory: ProjectInventory,
    container: ContainerModel | UnrecognizedFile | None,
    entrypoint: EntrypointModel | UnrecognizedFile | None,
    *,
    order: Sequence[str] | None = None,
    database: str = "postgres",
    module: str = "myproject",
) -> MergeResult:
    """Merge every feature of *inventory* into the shared-file models.

    ``None`` models mean the file does not exist yet; a skeleton is
    synthesized from *module*.  Features are processed alphabetically unless
    *order* names them explicitly.  Already-present bindings and routes are
    never added twice, so merging the result again changes nothing.
    """
    if container is None:
        container = empty_container(module)
    if entrypoint is None:
        entrypoint = empty_entrypoint(module)

    report = IntegrationReport(notices=tuple(inventory.notices))
    for name, record in _select(inventory, order):
        if record is None:
            outcome = FeatureOutcome(name)
            outcome.fail(
                IntegrationError("feature not detected", token=name, hint="generate the feature first")
            )
            report.outcomes.append(outcome)
            continue
        outcome = FeatureOutcome(record.name)
        try:
            _merge_feature(record, container, entrypoint, outcome, database=database)
        except LayerkitError as exc:
            outcome.fail(exc)
        logger.debug("%s: %s", record.name, " -> ".join(s.value for s in outcome.path))
        report.outcomes.append(outcome)

    new_bindings = [o.binding for o in report.outcomes if o.bound_now and o.binding is not None]
    new_routes = [o.route for o in report.outcomes if o.registered_now and o.route is not None]
    if isinstance(container, ContainerModel) and new_bindings:
        container = container.with_bindings(new_bindings)
    if isinstance(entrypoint, EntrypointModel) and new_routes:
        entrypoint = entrypoint.with_blocks(new_routes)

    return MergeResult(container, entrypoint, report)


def withdraw(entrypoint: EntrypointModel, outcomes: Iterable[FeatureOutcome]) -> EntrypointModel:
    """Drop the route blocks that *outcomes* added in this run."""
    return entrypoint.without_blocks(o.feature for o in outcomes if o.registered_now)
