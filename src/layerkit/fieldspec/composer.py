"""Artifact composers: turn FieldSpecs into Go source text.

Composers are the consumers of the parser output.  The parsed fields carry
no generation flags; every composer reads :class:`GenerationOptions` on its
own.  :class:`EntityComposer` renders the domain entity struct.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol

from layerkit.fieldspec.types import Custom, Primitive, Temporal, unwrap
from layerkit.naming import validate_entity_name

if TYPE_CHECKING:
    from collections.abc import Sequence

    from layerkit.fieldspec.parser import FieldSpec


@dataclass(frozen=True)
class GenerationOptions:
    """Optional-artifact flags passed through to composers.

    :class:`EntityComposer` reads ``validation``, ``timestamps``, ``soft_delete``
    and ``business_rules``.  The remaining flags belong to the repository,
    use-case and handler composers and leave the entity untouched.
    """

    validation: bool = False
    timestamps: bool = False
    soft_delete: bool = False
    business_rules: bool = False
    transactions: bool = False
    cache: bool = False
    swagger: bool = False
    middleware: bool = False
    async_: bool = False
    dto_validation: bool = False


class ArtifactComposer(Protocol):
    """Renders one or more files for an entity; keys are project-relative paths."""

    def compose(
        self,
        entity: str,
        fields: Sequence[FieldSpec],
        options: GenerationOptions,
    ) -> dict[str, str]: ...


# Column types keyed by base kind; strings are refined by field name.
_GORM_BY_KIND = {
    "int": "type:integer;not null;default:0",
    "int32": "type:integer;not null;default:0",
    "int64": "type:bigint;not null;default:0",
    "uint": "type:integer;not null;default:0",
    "uint64": "type:bigint;not null;default:0",
    "float32": "type:decimal(10,2);not null;default:0",
    "float64": "type:decimal(10,2);not null;default:0",
    "bool": "type:boolean;not null;default:false",
}

_NUMERIC_KINDS = frozenset({"int", "int8", "int16", "int32", "int64", "float32", "float64"})


def gorm_tag(field: FieldSpec) -> str:
    """Pick a gorm column tag from the field's semantic type and name."""
    if field.is_slice:
        return "serializer:json"
    base = unwrap(field.resolved_type)
    nullable = field.is_pointer
    if isinstance(base, Temporal):
        return "type:timestamp" if nullable else "type:timestamp;not null"
    if isinstance(base, Custom):
        return "embedded"
    if isinstance(base, Primitive) and base.kind == "string":
        name = field.exported_name
        if name == "Email":
            return "type:varchar(255);uniqueIndex;not null"
        if name in ("Title", "Name"):
            return "type:varchar(255);not null"
        if name == "Description":
            return "type:text"
        return "type:varchar(255)"
    if isinstance(base, Primitive) and base.kind in _GORM_BY_KIND:
        tag = _GORM_BY_KIND[base.kind]
        return tag.replace(";not null", "") if nullable else tag
    return "" if nullable else "not null"


def _json_name(field: FieldSpec) -> str:
    return field.name[:1].lower() + field.name[1:]


class EntityComposer:
    """Renders ``internal/domain/<entity>.go``."""

    def __init__(self, source_root: str = "internal") -> None:
        self.source_root = source_root

    def compose(
        self,
        entity: str,
        fields: Sequence[FieldSpec],
        options: GenerationOptions,
    ) -> dict[str, str]:
        validate_entity_name(entity)
        receiver = entity[0].lower()

        needs_time = (
            options.timestamps
            or options.soft_delete
            or any(isinstance(unwrap(f.resolved_type), Temporal) for f in fields)
        )
        needs_strings = options.business_rules and any(
            f.exported_name == "Email" and f.resolved_type == Primitive("string") for f in fields
        )
        needs_errors = options.validation and any(self._validation_check(f) for f in fields)

        imports = [
            name
            for name, wanted in (("errors", needs_errors), ("strings", needs_strings), ("time", needs_time))
            if wanted
        ]

        out: list[str] = ["package domain", ""]
        if imports:
            out.append("import (")
            out.extend(f'\t"{name}"' for name in imports)
            out.append(")")
            out.append("")

        out.append(f"type {entity} struct {{")
        out.append('\tID uint `json:"id" gorm:"primaryKey;autoIncrement"`')
        for field in fields:
            tag = gorm_tag(field)
            gorm = f' gorm:"{tag}"' if tag else ""
            out.append(
                f'\t{field.exported_name} {field.resolved_type.go_type()} `json:"{_json_name(field)}"{gorm}`'
            )
        if options.timestamps:
            out.append('\tCreatedAt time.Time `json:"created_at" gorm:"autoCreateTime"`')
            out.append('\tUpdatedAt time.Time `json:"updated_at" gorm:"autoUpdateTime"`')
        if options.soft_delete:
            out.append('\tDeletedAt *time.Time `json:"deleted_at,omitempty" gorm:"index"`')
        out.append("}")
        out.append("")

        if options.validation:
            out.append(f"func ({receiver} *{entity}) Validate() error {{")
            for field in fields:
                check = self._validation_check(field)
                if check is None:
                    continue
                out.append(f"\tif {receiver}.{field.exported_name} {check} {{")
                out.append(f'\t\treturn errors.New("invalid {entity.lower()} {_json_name(field)}")')
                out.append("\t}")
            out.append("\treturn nil")
            out.append("}")
            out.append("")

        if options.business_rules:
            out.extend(self._business_rules(entity, receiver, fields))

        if options.soft_delete:
            out.extend(
                [
                    f"func ({receiver} *{entity}) SoftDelete() {{",
                    "\tnow := time.Now()",
                    f"\t{receiver}.DeletedAt = &now",
                    "}",
                    "",
                    f"func ({receiver} *{entity}) IsDeleted() bool {{",
                    f"\treturn {receiver}.DeletedAt != nil",
                    "}",
                    "",
                ]
            )

        filename = f"domain/{entity.lower()}.go"
        path = f"{self.source_root}/{filename}" if self.source_root else filename
        return {path: "\n".join(out).rstrip("\n") + "\n"}

    @staticmethod
    def _validation_check(field: FieldSpec) -> str | None:
        if field.is_pointer or field.is_slice:
            return None
        base = field.resolved_type
        if isinstance(base, Primitive) and base.kind == "string":
            return '== ""'
        if isinstance(base, Primitive) and base.kind in _NUMERIC_KINDS:
            return "< 0"
        return None

    @staticmethod
    def _business_rules(entity: str, receiver: str, fields: Sequence[FieldSpec]) -> list[str]:
        rules = {
            "Age": ("IsAdult", f"{receiver}.Age >= 18", _NUMERIC_KINDS),
            "Price": ("IsExpensive", f"{receiver}.Price > 1000.0", _NUMERIC_KINDS),
            "Email": ("HasValidEmail", f'strings.Contains({receiver}.Email, "@")', {"string"}),
            "Status": ("IsActive", f'{receiver}.Status == "active"', {"string"}),
        }
        out: list[str] = []
        for field in fields:
            rule = rules.get(field.exported_name)
            base = field.resolved_type
            if rule is None or not isinstance(base, Primitive) or base.kind not in rule[2]:
                continue
            method, expr, _kinds = rule
            out.extend([f"func ({receiver} *{entity}) {method}() bool {{", f"\treturn {expr}", "}", ""])
        return out
