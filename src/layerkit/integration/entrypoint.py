"""Structural model of the application entrypoint (``main.go``).

The entrypoint is split at the insertion anchor (the line that starts the
HTTP server).  Route blocks directly above the anchor are recognized
individually; everything else is kept as opaque ``head`` / ``tail`` text.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from layerkit.errors import SharedFileUnrecognized
from layerkit.naming import normalize, pluralize, route_resource, to_camel, to_pascal, validate_entity_name

if TYPE_CHECKING:
    from collections.abc import Iterable

logger = logging.getLogger(__name__)

ENTRYPOINT_CANDIDATES = ("main.go", "cmd/server/main.go", "cmd/main.go")

INSERTION_ANCHORS = (
    "// Setup HTTP server",
    "server := &http.Server{",
    'log.Printf("Server starting',
    "log.Fatal(http.ListenAndServe",
)

_CONTAINER_RE = re.compile(r"^[ \t]*(\w+)\s*:?=\s*di\.NewContainer\(", re.MULTILINE)
_ROUTE_PATH_RE = re.compile(r'"/api/v1/([A-Za-z0-9_\-]+)')
_BLOCK_TEMPLATE = (
    r"(?m)(?:^[ \t]*\r?\n)*"
    r"^\t// (\w+) routes[ \t]*\r?\n"
    r"\t\w+ := {var}\.(\w+)Handler\(\)[ \t]*\r?\n"
    r"(?:\trouter\.HandleFunc\([^\n]*\n)*"
    r"\Z"
)


@dataclass(frozen=True)
class RouteBlock:
    """One feature's route registrations, kept as the exact source text."""

    feature: str
    text: str

    @property
    def key(self) -> str:
        return normalize(self.feature)


@dataclass(frozen=True)
class EntrypointModel:
    """Parsed entrypoint: ``head`` + route ``blocks`` + ``gap`` + ``tail``.

    ``tail`` starts at the insertion anchor line.  ``registered_elsewhere``
    holds normalized names of features whose routes are registered outside
    the recognized block run.
    """

    head: str
    blocks: tuple[RouteBlock, ...] = ()
    gap: str = ""
    tail: str = ""
    container_var: str = "container"
    registered_elsewhere: frozenset[str] = field(default_factory=frozenset)
    synthesized: bool = False

    def is_registered(self, feature: str) -> bool:
        return is_marked(feature, set(self.registered_elsewhere) | {b.key for b in self.blocks})

    def features(self) -> list[str]:
        return [b.feature for b in self.blocks]

    def with_blocks(self, extra: Iterable[RouteBlock]) -> EntrypointModel:
        merged = list(self.blocks)
        for block in extra:
            if self.is_registered(block.feature) or block.key in {b.key for b in merged}:
                continue
            merged.append(block)
        return replace(self, blocks=tuple(merged))

    def without_blocks(self, features: Iterable[str]) -> EntrypointModel:
        drop = {normalize(f) for f in features}
        return replace(self, blocks=tuple(b for b in self.blocks if b.key not in drop))

    def render(self) -> str:
        return self.head + "".join(b.text for b in self.blocks) + self.gap + self.tail


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _find_anchor(text: str, start: int) -> int:
    """Offset of the start of the first anchor line at or after *start*, or -1."""
    best = -1
    for anchor in INSERTION_ANCHORS:
        idx = text.find(anchor, start)
        if idx < 0:
            continue
        line_start = text.rfind("\n", 0, idx) + 1
        if text[line_start:idx].strip():
            continue
        if best < 0 or line_start < best:
            best = line_start
    return best


def route_markers(text: str, container_var: str = "container") -> set[str]:
    """Normalized feature names whose handler or API path appears in *text*."""
    found: set[str] = set()
    for match in re.finditer(rf"\b{re.escape(container_var)}\.(\w+)Handler\(\)", text):
        found.add(normalize(match.group(1)))
    for match in _ROUTE_PATH_RE.finditer(text):
        found.add(normalize(match.group(1)))
    return found


def is_marked(feature: str, markers: set[str]) -> bool:
    key = normalize(feature)
    return bool({key, route_resource(feature), key + "s"} & markers)


def parse_entrypoint(text: str) -> EntrypointModel:
    """Parse entrypoint source into an :class:`EntrypointModel`.

    Raises
    ------
    SharedFileUnrecognized
        No ``di.NewContainer(`` call or no insertion anchor after it.
    """
    container = _CONTAINER_RE.search(text)
    if container is None:
        raise SharedFileUnrecognized(
            "entrypoint does not set up the DI container",
            token="di.NewContainer(",
            hint="add 'container := di.NewContainer(db)' to main() or paste the snippets manually",
        )
    container_var = container.group(1)
    anchor = _find_anchor(text, container.end())
    if anchor < 0:
        raise SharedFileUnrecognized(
            "entrypoint has no route insertion point",
            token="// Setup HTTP server",
            hint="add a '// Setup HTTP server' comment where routes should be inserted",
        )

    before, tail = text[:anchor], text[anchor:]
    # the gap is the run of blank lines just above the anchor
    newline = before.find("\n", len(before.rstrip(" \t\r\n")))
    cut = newline + 1 if newline >= 0 else len(before)
    region, gap = before[:cut], before[cut:]

    block_re = re.compile(_BLOCK_TEMPLATE.replace("{var}", re.escape(container_var)))
    blocks: list[RouteBlock] = []
    while True:
        match = block_re.search(region)
        if match is None or match.start() < container.end():
            break
        blocks.insert(0, RouteBlock(to_pascal(match.group(1)), match.group(0)))
        region = region[: match.start()]

    block_keys = {b.key for b in blocks}
    elsewhere = route_markers(region + tail, container_var)
    registered = frozenset(m for m in elsewhere if m not in block_keys)
    model = EntrypointModel(
        head=region,
        blocks=tuple(blocks),
        gap=gap,
        tail=tail,
        container_var=container_var,
        registered_elsewhere=registered,
    )
    if model.render() != text:
        raise SharedFileUnrecognized("entrypoint could not be reproduced", token="main.go")
    logger.debug("Parsed entrypoint with %d route block(s)", len(blocks))
    return model


# ---------------------------------------------------------------------------
# Rendering new content
# ---------------------------------------------------------------------------


def build_route_block(feature: str, *, container_var: str = "container") -> RouteBlock:
    """Render the CRUD route registrations for *feature*."""
    name = validate_entity_name(to_pascal(feature))
    var = to_camel(name) + "Handler"
    path = f"/api/v1/{route_resource(name)}"
    text = (
        f"\n\t// {name} routes\n"
        f"\t{var} := {container_var}.{name}Handler()\n"
        f'\trouter.HandleFunc("{path}", {var}.Create{name}).Methods("POST")\n'
        f'\trouter.HandleFunc("{path}/{{id}}", {var}.Get{name}).Methods("GET")\n'
        f'\trouter.HandleFunc("{path}/{{id}}", {var}.Update{name}).Methods("PUT")\n'
        f'\trouter.HandleFunc("{path}/{{id}}", {var}.Delete{name}).Methods("DELETE")\n'
        f'\trouter.HandleFunc("{path}", {var}.List{pluralize(name)}).Methods("GET")\n'
    )
    return RouteBlock(name, text)


_SKELETON = """package main

import (
\t"context"
\t"log"
\t"net/http"
\t"os"
\t"os/signal"
\t"syscall"
\t"time"

\t"github.com/gorilla/mux"

\t"{module}/internal/di"
\t"{module}/pkg/config"
\t"{module}/pkg/logger"
)

func main() {{
\t// Load configuration
\tcfg := config.Load()

\t// Initialize logger
\tlogger.Init()

\t// Connect to database
\tdb, err := config.ConnectDatabase(cfg)
\tif err != nil {{
\t\tlog.Fatalf("Database connection failed: %v", err)
\t}}

\t// Setup DI container
\tcontainer := di.NewContainer(db)

\t// Setup router
\trouter := mux.NewRouter()

\t// Health check endpoints
\trouter.HandleFunc("/health", func(w http.ResponseWriter, r *http.Request) {{
\t\tw.WriteHeader(http.StatusOK)
\t}}).Methods("GET")

\t// Setup HTTP server
\tserver := &http.Server{{
\t\tAddr:         ":" + cfg.Port,
\t\tHandler:      router,
\t\tReadTimeout:  15 * time.Second,
\t\tWriteTimeout: 15 * time.Second,
\t}}

\tgo func() {{
\t\tlog.Printf("Server starting on port %s", cfg.Port)
\t\tif err := server.ListenAndServe(); err != nil && err != http.ErrServerClosed {{
\t\t\tlog.Fatalf("Server startup failed: %v", err)
\t\t}}
\t}}()

\t// Wait for interrupt signal to gracefully shutdown
\tquit := make(chan os.Signal, 1)
\tsignal.Notify(quit, syscall.SIGINT, syscall.SIGTERM)
\t<-quit

\tctx, cancel := context.WithTimeout(context.Background(), 30*time.Second)
\tdefer cancel()
\tif err := server.Shutdown(ctx); err != nil {{
\t\tlog.Printf("Server forced to shutdown: %v", err)
\t}}
\tlog.Println("Server exited")
}}
"""


def entrypoint_skeleton(module: str) -> str:
    return _SKELETON.format(module=module)


def empty_entrypoint(module: str) -> EntrypointModel:
    """Model for a project with no entrypoint yet."""
    return replace(parse_entrypoint(entrypoint_skeleton(module)), synthesized=True)
