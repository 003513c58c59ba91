"""Field specifications: parsing, type resolution and composition."""

from layerkit.fieldspec.composer import ArtifactComposer, EntityComposer, GenerationOptions
from layerkit.fieldspec.parser import (
    FieldSpec,
    canonical_form,
    check_reserved_names,
    parse_field,
    parse_fields,
    render_fields,
)
from layerkit.fieldspec.types import (
    DEFAULT_REGISTRY,
    TEMPORAL,
    Collection,
    Custom,
    Optional,
    Primitive,
    SemanticType,
    Temporal,
    TypeExpr,
    TypeRegistry,
    default_registry,
    parse_type_expr,
    resolve_type,
)

__all__ = [
    "DEFAULT_REGISTRY",
    "TEMPORAL",
    "ArtifactComposer",
    "Collection",
    "Custom",
    "EntityComposer",
    "FieldSpec",
    "GenerationOptions",
    "Optional",
    "Primitive",
    "SemanticType",
    "Temporal",
    "TypeExpr",
    "TypeRegistry",
    "canonical_form",
    "check_reserved_names",
    "default_registry",
    "parse_field",
    "parse_fields",
    "parse_type_expr",
    "render_fields",
    "resolve_type",
]
