"""Name normalization shared by the detector, composers and snippet renderers."""

from __future__ import annotations

import re

from layerkit.errors import InvalidFeatureName

MAX_ENTITY_NAME_LENGTH = 50

_ENTITY_RE = re.compile(r"[A-Z][A-Za-z0-9]*")
_WORD_SPLIT_RE = re.compile(r"[_\-\s]+")


def normalize(name: str) -> str:
    """Matching key for a feature name: lowercase, separators removed."""
    return _WORD_SPLIT_RE.sub("", name).lower()


def to_pascal(name: str) -> str:
    """``user`` -> ``User``, ``order_item`` -> ``OrderItem``, ``TestFeature`` unchanged."""
    parts = [p for p in _WORD_SPLIT_RE.split(name.strip()) if p]
    return "".join(p[:1].upper() + p[1:] for p in parts)


def to_camel(name: str) -> str:
    """``OrderItem`` -> ``orderItem``."""
    pascal = to_pascal(name)
    return pascal[:1].lower() + pascal[1:]


def pluralize(word: str) -> str:
    lower = word.lower()
    if re.search(r"[^aeiou]y$", lower):
        return word[:-1] + "ies"
    if re.search(r"(s|x|z|ch|sh)$", lower):
        return word + "es"
    return word + "s"


def route_resource(feature: str) -> str:
    """URL path segment for a feature: ``OrderItem`` -> ``orderitems``."""
    return pluralize(normalize(feature))


def validate_entity_name(name: str) -> str:
    """Return *name* if it is a usable Go type name, else raise InvalidFeatureName."""
    if not name:
        raise InvalidFeatureName("entity name is empty", token=name)
    if len(name) > MAX_ENTITY_NAME_LENGTH:
        raise InvalidFeatureName(
            f"entity name is longer than {MAX_ENTITY_NAME_LENGTH} characters", token=name
        )
    if not _ENTITY_RE.fullmatch(name):
        raise InvalidFeatureName("invalid entity name", token=name)
    return name
