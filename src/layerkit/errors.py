"""Error taxonomy shared by the parser, detector and integration engine."""

from __future__ import annotations


class LayerkitError(Exception):
    """Base class for all layerkit errors.

    Every error names the offending token (a field token, type expression,
    feature name or file path) and carries a remediation hint.
    """

    default_hint = ""

    def __init__(self, message: str, *, token: str | None = None, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.token = token
        self.hint = hint if hint is not None else self.default_hint

    def __str__(self) -> str:
        text = self.message
        if self.token is not None:
            text = f"{text}: '{self.token}'"
        if self.hint:
            text = f"{text} ({self.hint})"
        return text


# ---------------------------------------------------------------------------
# Field specification
# ---------------------------------------------------------------------------


class FieldSpecError(LayerkitError):
    """Raised when a field specification cannot be turned into FieldSpecs."""


class MalformedFieldSpec(FieldSpecError):
    default_hint = "expected comma-separated 'name:type' tokens, e.g. name:string,age:int"


class DuplicateFieldName(FieldSpecError):
    default_hint = "each field name may appear only once"


class UnknownBaseType(FieldSpecError):
    default_hint = "use a Go primitive, time.Time, or a capitalized custom type such as Address"


class ReservedFieldName(FieldSpecError):
    default_hint = "pick a different name; this one is a Go keyword or generated member"


class InvalidFeatureName(LayerkitError):
    default_hint = "feature names start with an upper-case letter and contain only letters and digits"


# ---------------------------------------------------------------------------
# Detection and integration
# ---------------------------------------------------------------------------


class DetectionBlacklistConflict(LayerkitError):
    """Informational: a feature-shaped file uses a reserved (excluded) name."""

    default_hint = "rename the file or remove the name from detection.exclude"


class IntegrationError(LayerkitError):
    """Raised for feature-scoped integration problems."""


class PartialIntegration(IntegrationError):
    default_hint = "apply the printed snippets by hand"


class SharedFileUnrecognized(IntegrationError):
    default_hint = "the file was left untouched; apply the printed snippets by hand"


class ContainerWriteFailure(IntegrationError):
    default_hint = "check permissions on the container file and re-run integrate"


class EntrypointWriteFailure(IntegrationError):
    default_hint = "check permissions on the entrypoint file and re-run integrate"
