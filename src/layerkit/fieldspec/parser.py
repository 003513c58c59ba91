"""Field-specification parser: ``name:string,age:int`` -> ordered FieldSpecs."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from layerkit.errors import DuplicateFieldName, MalformedFieldSpec, ReservedFieldName
from layerkit.fieldspec.types import parse_type_expr, resolve_type

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from layerkit.fieldspec.types import SemanticType, TypeRegistry

logger = logging.getLogger(__name__)

MAX_FIELD_NAME_LENGTH = 50

_NAME_RE = re.compile(r"[A-Za-z][A-Za-z0-9_]*")

_GO_KEYWORDS = frozenset(
    {
        "break", "case", "chan", "const", "continue", "default", "defer", "else",
        "fallthrough", "for", "func", "go", "goto", "if", "import", "interface",
        "map", "package", "range", "return", "select", "struct", "switch", "type", "var",
    }
)

# Members the entity composer always generates, plus Go builtins.
_CONFLICTING_NAMES = frozenset(
    {
        "id", "string", "int", "bool", "true", "false", "nil", "len", "cap",
        "make", "new", "delete", "copy", "append", "panic", "recover", "print",
        "println", "error",
    }
)


@dataclass(frozen=True)
class FieldSpec:
    """One field of a generated struct, in user-specified order."""

    name: str
    type_token: str
    resolved_type: SemanticType
    is_pointer: bool = False
    is_slice: bool = False

    @property
    def exported_name(self) -> str:
        """Go field name: the identifier with its first letter upper-cased."""
        return self.name[:1].upper() + self.name[1:]

    def render(self) -> str:
        return f"{self.name}:{self.type_token}"


def _split_token(token: str) -> tuple[str, str]:
    if ":" not in token:
        raise MalformedFieldSpec("field token lacks ':' separator", token=token)
    name, _, type_text = token.partition(":")
    name = name.strip()
    type_text = type_text.strip()
    if not name:
        raise MalformedFieldSpec("field name is empty", token=token)
    if not type_text:
        raise MalformedFieldSpec("field type is empty", token=token)
    if ":" in type_text:
        raise MalformedFieldSpec("field token has more than one ':'", token=token)
    if not _NAME_RE.fullmatch(name) or len(name) > MAX_FIELD_NAME_LENGTH:
        raise MalformedFieldSpec(
            "invalid field name",
            token=name,
            hint=(
                "names start with a letter, use only letters, digits and '_', "
                f"and are at most {MAX_FIELD_NAME_LENGTH} characters"
            ),
        )
    return name, type_text


def parse_field(token: str, registry: TypeRegistry | None = None) -> FieldSpec:
    """Parse a single ``name:typeExpr`` token."""
    name, type_text = _split_token(token)
    expr = parse_type_expr(type_text)
    return FieldSpec(
        name=name,
        type_token=str(expr),
        resolved_type=resolve_type(expr, registry),
        is_pointer=expr.is_pointer,
        is_slice=expr.is_slice,
    )


def parse_fields(spec: str, registry: TypeRegistry | None = None) -> list[FieldSpec]:
    """Parse a comma-separated field specification.

    Either the whole specification parses or an error is raised; no partial
    list is ever returned.

    Raises
    ------
    MalformedFieldSpec
        Blank specification, empty token (``a:int,,b:int`` or a trailing
        comma), missing ``:``, empty name/type, or an invalid type expression.
    DuplicateFieldName
        A name (compared case-insensitively) appears twice.
    UnknownBaseType
        The base type is neither registered nor a valid custom type name.
    """
    if not spec.strip():
        raise MalformedFieldSpec("field specification is empty", token=spec)

    fields: list[FieldSpec] = []
    seen: set[str] = set()
    for position, token in enumerate(spec.split(","), start=1):
        if not token.strip():
            raise MalformedFieldSpec(
                f"empty field token at position {position}",
                token=spec,
                hint="remove consecutive or trailing commas",
            )
        field = parse_field(token, registry)
        key = field.name.lower()
        if key in seen:
            raise DuplicateFieldName("duplicate field name", token=field.name)
        seen.add(key)
        fields.append(field)

    logger.debug("Parsed %d field(s) from %r", len(fields), spec)
    return fields


def render_fields(fields: Iterable[FieldSpec]) -> str:
    """Render FieldSpecs back into the canonical specification string."""
    return ",".join(field.render() for field in fields)


def canonical_form(spec: str) -> str:
    """Canonical spelling of a specification: tokens stripped of whitespace."""
    return ",".join(
        f"{name.strip()}:{type_text.strip()}"
        for name, _, type_text in (token.partition(":") for token in spec.split(","))
    )


def check_reserved_names(fields: Sequence[FieldSpec]) -> None:
    """Reject Go keywords and names that clash with generated members."""
    for field in fields:
        lower = field.name.lower()
        if lower in _GO_KEYWORDS:
            raise ReservedFieldName("field name is a Go keyword", token=field.name)
        if lower in _CONFLICTING_NAMES:
            raise ReservedFieldName("field name conflicts with a generated member", token=field.name)
