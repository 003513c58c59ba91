"""Structural model of the dependency-injection container (``container.go``).

The container file is parsed into a *frame* of opaque text chunks with
:class:`Section` placeholders, a list of per-feature :class:`Binding` s
that fill the placeholders, and an opaque tail after the getters.  A file
is recognized only when rendering the parsed model reproduces it byte for
byte, so merging into a recognized file can never rewrite manual content.
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Union

from layerkit.errors import SharedFileUnrecognized
from layerkit.naming import normalize, to_camel, to_pascal, validate_entity_name

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

logger = logging.getLogger(__name__)


class Section(enum.Enum):
    """Places in the container file that hold one line group per feature."""

    REPOSITORY_FIELDS = "repository_fields"
    USECASE_FIELDS = "usecase_fields"
    HANDLER_FIELDS = "handler_fields"
    SETUP_REPOSITORIES = "setup_repositories"
    SETUP_USECASES = "setup_usecases"
    SETUP_HANDLERS = "setup_handlers"
    GETTERS = "getters"


Chunk = Union[str, Section]

# Anchor lines in file order.  A section anchor is followed by its body
# lines and then blank lines; a plain anchor by opaque text up to the
# next anchor.
_LAYOUT: tuple[tuple[str, Section | None], ...] = (
    ("type Container struct {", None),
    ("\t// Repositories", Section.REPOSITORY_FIELDS),
    ("\t// Use Cases", Section.USECASE_FIELDS),
    ("\t// Handlers", Section.HANDLER_FIELDS),
    ("}", None),
    ("func (c *Container) setupRepositories() {", Section.SETUP_REPOSITORIES),
    ("}", None),
    ("func (c *Container) setupUseCases() {", Section.SETUP_USECASES),
    ("}", None),
    ("func (c *Container) setupHandlers() {", Section.SETUP_HANDLERS),
    ("}", None),
    ("// Getters", Section.GETTERS),
)

# Each pattern captures the text that identifies the feature.
_SECTION_LINE_RE: dict[Section, re.Pattern[str]] = {
    Section.REPOSITORY_FIELDS: re.compile(r"\t\w+\s+repository\.(\w+)Repository\s*"),
    Section.USECASE_FIELDS: re.compile(r"\t\w+\s+usecase\.(\w+)UseCase\s*"),
    Section.HANDLER_FIELDS: re.compile(r"\t\w+\s+\*http\.(\w+)Handler\s*"),
    Section.SETUP_REPOSITORIES: re.compile(r"\tc\.(\w+)Repo\s*=\s*\S.*"),
    Section.SETUP_USECASES: re.compile(r"\tc\.(\w+)UC\s*=\s*\S.*"),
    Section.SETUP_HANDLERS: re.compile(r"\tc\.(\w+)Handler\s*=\s*\S.*"),
}

_GETTER_RE = re.compile(r"func \(c \*Container\) (\w+?)(?:Handler|UseCase|Repository)\(\) .*\{\s*")
_GETTER_RETURN_RE = re.compile(r"\treturn c\.\w+\s*")
_GETTER_ANYWHERE_RE = re.compile(r"func \(c \*Container\) \w+(?:Handler|UseCase|Repository)\(\)")

_REPOSITORY_CONSTRUCTORS = {
    "postgres": "Postgres",
    "mysql": "MySQL",
    "mongodb": "Mongo",
    "sqlite": "SQLite",
}


@dataclass(frozen=True)
class Binding:
    """All container lines belonging to one feature, grouped by section."""

    feature: str
    lines: Mapping[Section, tuple[str, ...]] = field(default_factory=dict)

    @property
    def key(self) -> str:
        return normalize(self.feature)

    def section_text(self, section: Section) -> str:
        return "".join(self.lines.get(section, ()))

    def snippet(self) -> str:
        """Human-readable rendering for manual integration instructions."""
        parts: list[str] = []
        for section in Section:
            text = self.section_text(section).strip("\n")
            if text:
                parts.append(f"// {section.value}\n{text}")
        return "\n\n".join(parts)


@dataclass(frozen=True)
class ContainerModel:
    """Parsed container: frame + bindings + opaque tail."""

    frame: tuple[Chunk, ...]
    bindings: tuple[Binding, ...] = ()
    tail: str = ""

    def get(self, feature: str) -> Binding | None:
        key = normalize(feature)
        for binding in self.bindings:
            if binding.key == key:
                return binding
        return None

    def __contains__(self, feature: object) -> bool:
        return isinstance(feature, str) and self.get(feature) is not None

    def features(self) -> list[str]:
        return [b.feature for b in self.bindings]

    def with_bindings(self, extra: Iterable[Binding]) -> ContainerModel:
        """Return a copy with *extra* appended; existing bindings stay as they are."""
        merged = list(self.bindings)
        for binding in extra:
            if binding.key in {b.key for b in merged}:
                continue
            merged.append(binding)
        return ContainerModel(self.frame, tuple(merged), self.tail)

    def render(self) -> str:
        out: list[str] = []
        for chunk in self.frame:
            if isinstance(chunk, Section):
                out.extend(b.section_text(chunk) for b in self.bindings)
            else:
                out.append(chunk)
        out.append(self.tail)
        return "".join(out)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _line_body(line: str) -> str:
    return line.rstrip("\r\n")


def _find_anchor(lines: list[str], start: int, anchor: str) -> int:
    for index in range(start, len(lines)):
        if _line_body(lines[index]) == anchor:
            return index
    return -1


def _parse_getters(lines: list[str], start: int) -> tuple[list[tuple[str, str]], int]:
    """Consume getter blocks (optionally preceded by one blank line)."""
    blocks: list[tuple[str, str]] = []
    pos = start
    while pos < len(lines):
        head = pos
        if not _line_body(lines[head]).strip():
            head += 1
        if head + 2 >= len(lines):
            break
        match = _GETTER_RE.fullmatch(_line_body(lines[head]))
        if (
            match is None
            or not _GETTER_RETURN_RE.fullmatch(_line_body(lines[head + 1]))
            or _line_body(lines[head + 2]).rstrip() != "}"
        ):
            break
        blocks.append((match.group(1), "".join(lines[pos : head + 3])))
        pos = head + 3
    return blocks, pos


def parse_container(text: str) -> ContainerModel:
    """Parse container source into a :class:`ContainerModel`.

    Raises
    ------
    SharedFileUnrecognized
        The text does not follow the generated layout closely enough to be
        re-rendered byte for byte.
    """
    lines = text.splitlines(keepends=True)
    frame: list[Chunk] = []
    order: list[str] = []
    display: dict[str, str] = {}
    grouped: dict[str, dict[Section, list[str]]] = {}

    def _record(name: str, section: Section, line: str) -> None:
        key = normalize(name)
        if key not in grouped:
            order.append(key)
            display[key] = to_pascal(name)
            grouped[key] = {}
        grouped[key].setdefault(section, []).append(line)

    pos = 0
    opaque_start = 0
    after_section = False
    for anchor, section in _LAYOUT:
        index = _find_anchor(lines, pos, anchor)
        if index < 0:
            raise SharedFileUnrecognized("container layout anchor not found", token=anchor.strip())
        if after_section and index != pos:
            raise SharedFileUnrecognized(
                "unrecognized line in container section", token=_line_body(lines[pos]).strip()
            )
        after_section = section is not None
        frame.append("".join(lines[opaque_start : index + 1]))
        pos = index + 1

        if section is Section.GETTERS:
            frame.append(section)
            blocks, pos = _parse_getters(lines, pos)
            for name, block in blocks:
                _record(name, section, block)
            opaque_start = pos
            break

        if section is not None:
            frame.append(section)
            pattern = _SECTION_LINE_RE[section]
            while pos < len(lines):
                match = pattern.fullmatch(_line_body(lines[pos]))
                if match is None:
                    break
                _record(match.group(1), section, lines[pos])
                pos += 1
            gap_start = pos
            while pos < len(lines) and not _line_body(lines[pos]).strip():
                pos += 1
            frame.append("".join(lines[gap_start:pos]))
            opaque_start = pos
        else:
            opaque_start = pos

    tail = "".join(lines[opaque_start:])
    if _GETTER_ANYWHERE_RE.search(tail):
        raise SharedFileUnrecognized("container getter outside the getters block", token="// Getters")

    bindings = tuple(
        Binding(display[key], {s: tuple(v) for s, v in grouped[key].items()}) for key in order
    )
    model = ContainerModel(tuple(c for c in frame if c != ""), bindings, tail)
    if model.render() != text:
        raise SharedFileUnrecognized(
            "container bindings are not grouped consistently",
            token="container.go",
            hint="keep each feature's lines in the same order in every section",
        )
    logger.debug("Parsed container with %d binding(s)", len(bindings))
    return model


# ---------------------------------------------------------------------------
# Rendering new content
# ---------------------------------------------------------------------------

_SKELETON = """package di

import (
\t"gorm.io/gorm"

\t"{module}/internal/handler/http"
\t"{module}/internal/repository"
\t"{module}/internal/usecase"
)

type Container struct {{
\tdb *gorm.DB

\t// Repositories

\t// Use Cases

\t// Handlers
}}

func NewContainer(db *gorm.DB) *Container {{
\tc := &Container{{db: db}}
\tc.setupRepositories()
\tc.setupUseCases()
\tc.setupHandlers()
\treturn c
}}

func (c *Container) setupRepositories() {{
}}

func (c *Container) setupUseCases() {{
}}

func (c *Container) setupHandlers() {{
}}

// Getters
"""


def container_skeleton(module: str) -> str:
    return _SKELETON.format(module=module)


def empty_container(module: str) -> ContainerModel:
    """Model for a project that has no container file yet."""
    return parse_container(container_skeleton(module))


def build_binding(feature: str, *, database: str = "postgres", http_handler: bool = True) -> Binding:
    """Render the container lines wiring repository, use case and HTTP handler."""
    name = validate_entity_name(to_pascal(feature))
    var = to_camel(name)
    db_prefix = _REPOSITORY_CONSTRUCTORS.get(database, "Postgres")

    lines: dict[Section, tuple[str, ...]] = {
        Section.REPOSITORY_FIELDS: (f"\t{var}Repo repository.{name}Repository\n",),
        Section.USECASE_FIELDS: (f"\t{var}UC usecase.{name}UseCase\n",),
        Section.SETUP_REPOSITORIES: (
            f"\tc.{var}Repo = repository.New{db_prefix}{name}Repository(c.db)\n",
        ),
        Section.SETUP_USECASES: (f"\tc.{var}UC = usecase.New{name}Service(c.{var}Repo)\n",),
    }
    getters = [
        f"\nfunc (c *Container) {name}UseCase() usecase.{name}UseCase {{\n\treturn c.{var}UC\n}}\n",
        f"\nfunc (c *Container) {name}Repository() repository.{name}Repository {{\n"
        f"\treturn c.{var}Repo\n}}\n",
    ]
    if http_handler:
        lines[Section.HANDLER_FIELDS] = (f"\t{var}Handler *http.{name}Handler\n",)
        lines[Section.SETUP_HANDLERS] = (f"\tc.{var}Handler = http.New{name}Handler(c.{var}UC)\n",)
        getters.insert(
            0, f"\nfunc (c *Container) {name}Handler() *http.{name}Handler {{\n\treturn c.{var}Handler\n}}\n"
        )
    lines[Section.GETTERS] = tuple(getters)
    return Binding(name, lines)


_REPOSITORY_MEMBER_RE = re.compile(r"^[ \t]*\w+[ \t]+repository\.(\w+)Repository\b", re.MULTILINE)


def bound_features(text: str) -> set[str]:
    """Normalized names of features declared as ``name repository.XRepository`` members.

    Used for containers that could not be parsed.
    """
    return {normalize(m.group(1)) for m in _REPOSITORY_MEMBER_RE.finditer(text)}
