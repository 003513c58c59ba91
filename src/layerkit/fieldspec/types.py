"""Type resolution: classify type expressions into semantic type categories.

A type expression is the part after ``:`` in a field token, for example
``string``, ``*time.Time`` or ``[]*Address``.  Resolution looks the base
type up in a :class:`TypeRegistry` (case-insensitive) and wraps the result
in :class:`Optional` / :class:`Collection` according to the modifiers.
Unknown base types fall back to :class:`Custom` when they look like a
user-defined Go type name.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Union

from layerkit.errors import MalformedFieldSpec, UnknownBaseType

# ---------------------------------------------------------------------------
# Semantic type variants
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Primitive:
    """A Go builtin scalar type (``string``, ``int64``, ``bool`` ...)."""

    kind: str

    def go_type(self) -> str:
        return self.kind


@dataclass(frozen=True)
class Temporal:
    """A point in time (``time.Time``)."""

    def go_type(self) -> str:
        return "time.Time"


@dataclass(frozen=True)
class Custom:
    """A user-defined type the resolver does not validate."""

    name: str

    def go_type(self) -> str:
        return self.name


@dataclass(frozen=True)
class Collection:
    """A slice of *element*."""

    element: SemanticType

    def go_type(self) -> str:
        return "[]" + self.element.go_type()


@dataclass(frozen=True)
class Optional:
    """A nullable (pointer) *inner* value."""

    inner: SemanticType

    def go_type(self) -> str:
        return "*" + self.inner.go_type()


SemanticType = Union[Primitive, Temporal, Custom, Collection, Optional]

TEMPORAL = Temporal()

# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_PRIMITIVE_KINDS = (
    "string",
    "bool",
    "byte",
    "rune",
    "int",
    "int8",
    "int16",
    "int32",
    "int64",
    "uint",
    "uint8",
    "uint16",
    "uint32",
    "uint64",
    "float32",
    "float64",
    "any",
)


class TypeRegistry:
    """Table of known base types keyed by lowercase token."""

    def __init__(self, entries: dict[str, SemanticType] | None = None) -> None:
        self._entries: dict[str, SemanticType] = {}
        for token, semantic in (entries or {}).items():
            self.register(token, semantic)

    def register(self, token: str, semantic: SemanticType) -> None:
        self._entries[token.strip().lower()] = semantic

    def lookup(self, token: str) -> SemanticType | None:
        return self._entries.get(token.lower())

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and token.lower() in self._entries

    def tokens(self) -> list[str]:
        return sorted(self._entries)

    def copy(self) -> TypeRegistry:
        return TypeRegistry(dict(self._entries))


def default_registry() -> TypeRegistry:
    """Build the registry of Go primitives plus ``time.Time``."""
    entries: dict[str, SemanticType] = {kind: Primitive(kind) for kind in _PRIMITIVE_KINDS}
    entries["time.time"] = TEMPORAL
    return TypeRegistry(entries)


DEFAULT_REGISTRY = default_registry()

# ---------------------------------------------------------------------------
# Type expressions
# ---------------------------------------------------------------------------

_BASE_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*(?:\.[A-Za-z_][A-Za-z0-9_]*)?")
# Optional lowercase package qualifier, capitalized type name.
_CUSTOM_RE = re.compile(r"(?:[a-z][a-z0-9_]*\.)?[A-Z][A-Za-z0-9_]*")


@dataclass(frozen=True)
class TypeExpr:
    """A syntactically valid type expression, split into modifiers and base."""

    base: str
    is_slice: bool = False
    is_pointer: bool = False

    def __str__(self) -> str:
        return ("[]" if self.is_slice else "") + ("*" if self.is_pointer else "") + self.base


def parse_type_expr(text: str) -> TypeExpr:
    """Split *text* into ``[]``, ``*`` and the base type.

    Only ``[]`` followed by ``*`` is accepted as a modifier sequence:
    ``[]*T`` is a slice of pointers, while ``*[]T`` is rejected as
    ambiguous and nested or doubled modifiers are rejected outright.
    """
    expr = text.strip()
    if not expr:
        raise MalformedFieldSpec("empty type expression", token=text)
    if any(ch.isspace() for ch in expr):
        raise MalformedFieldSpec("whitespace inside type expression", token=expr)

    rest = expr
    is_slice = rest.startswith("[]")
    if is_slice:
        rest = rest[2:]
    is_pointer = rest.startswith("*")
    if is_pointer:
        rest = rest[1:]

    if rest.startswith("[]"):
        if is_pointer:
            raise MalformedFieldSpec(
                "pointer-to-slice type is ambiguous",
                token=expr,
                hint="use a plain slice ([]T) or a slice of pointers ([]*T)",
            )
        raise MalformedFieldSpec("nested slices are not supported", token=expr)
    if rest.startswith("*"):
        raise MalformedFieldSpec("multiple pointer levels are not supported", token=expr)
    if not _BASE_RE.fullmatch(rest):
        raise MalformedFieldSpec("invalid base type", token=expr)

    return TypeExpr(base=rest, is_slice=is_slice, is_pointer=is_pointer)


def resolve_base(base: str, registry: TypeRegistry | None = None) -> SemanticType:
    """Resolve a bare base-type token (no modifiers)."""
    reg = registry if registry is not None else DEFAULT_REGISTRY
    known = reg.lookup(base)
    if known is not None:
        return known
    if _CUSTOM_RE.fullmatch(base):
        return Custom(base)
    raise UnknownBaseType("unknown base type", token=base)


def resolve_type(
    expr: str | TypeExpr,
    registry: TypeRegistry | None = None,
) -> SemanticType:
    """Return the :data:`SemanticType` for a type expression.

    >>> resolve_type("*time.Time")
    Optional(inner=Temporal())
    >>> resolve_type("[]string")
    Collection(element=Primitive(kind='string'))
    """
    parsed = parse_type_expr(expr) if isinstance(expr, str) else expr
    semantic: SemanticType = resolve_base(parsed.base, registry)
    if parsed.is_pointer:
        semantic = Optional(semantic)
    if parsed.is_slice:
        semantic = Collection(semantic)
    return semantic


def unwrap(semantic: SemanticType) -> SemanticType:
    """Strip Optional/Collection wrappers down to the base category."""
    while isinstance(semantic, (Optional, Collection)):
        semantic = semantic.inner if isinstance(semantic, Optional) else semantic.element
    return semantic
