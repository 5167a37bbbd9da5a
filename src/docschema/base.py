"""Base exceptions and sentinels for docschema.

Two families of failures are kept apart:

- SchemaError and its subclasses mean the annotated source is broken.
  They are raised while parsing and abort building the schema.
- ValidationError means a value did not match a schema. It is only raised
  when the caller asks for it; the validator always produces a
  ValidationResult first.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import SourceLocation, ValidationResult


class _Undefined:
    """Marker for a value that is absent (a missing key, attribute or argument).

    Distinct from None, which stands for an explicit null. Has no instance
    ``__dict__``, so it never reads as a plain object.
    """

    __slots__ = ()

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "undefined"

    def __bool__(self) -> bool:
        return False

    def __reduce__(self) -> str:
        return "UNDEFINED"


UNDEFINED = _Undefined()


class DocSchemaError(Exception):
    """Base exception for docschema operations."""

    pass


class SchemaError(DocSchemaError):
    """Raised when an annotation comment cannot be turned into a schema.

    The extractor fills in ``location`` for errors raised while a comment
    block is being parsed, so the message points at the offending block.
    """

    def __init__(self, message: str, location: SourceLocation | None = None):
        super().__init__(message)
        self.message = message
        self.location = location

    def __str__(self) -> str:
        if self.location is None:
            return self.message
        return f"{self.message} ({self.location})"


class AnnotationSyntaxError(SchemaError):
    """Raised for malformed syntax inside a type expression (e.g. a lone '/')."""

    pass


class SourceReadError(DocSchemaError):
    """Raised when a source file cannot be read."""

    def __init__(self, message: str, path: str):
        super().__init__(message)
        self.path = path


class SettingsError(DocSchemaError):
    """Raised when settings cannot be built from the given values."""

    pass


class ValidationError(DocSchemaError):
    """Raised by the throwing validation wrappers when a value does not match.

    The full diagnostic is available as ``result``; the most used fields are
    mirrored as attributes.
    """

    def __init__(self, result: ValidationResult):
        super().__init__(result.message)
        self.result = result
        self.kind = result.kind
        self.expected_type = result.expected_type
        self.value = result.value
        self.value_path = list(result.value_path)
        self.tag = result.tag
        self.filter = result.filter
