"""Runtime schemas from JSDoc-style annotation comments."""

from docschema.base import (
    UNDEFINED,
    AnnotationSyntaxError,
    DocSchemaError,
    SchemaError,
    SettingsError,
    SourceReadError,
    ValidationError,
)
from docschema.cache import AstCache
from docschema.models import Ast, AstElements, ParsedType, Scope, Tag, ValidationResult
from docschema.parser import DocSchemaParser, find_ast_for_line
from docschema.settings import DocSchemaSettings
from docschema.typeparser import parse_type
from docschema.validators import DocSchemaValidator, TypedefRegistry, check_types

__all__ = [
    "UNDEFINED",
    "AnnotationSyntaxError",
    "Ast",
    "AstCache",
    "AstElements",
    "DocSchemaError",
    "DocSchemaParser",
    "DocSchemaSettings",
    "DocSchemaValidator",
    "ParsedType",
    "SchemaError",
    "Scope",
    "SettingsError",
    "SourceReadError",
    "Tag",
    "TypedefRegistry",
    "ValidationError",
    "ValidationResult",
    "check_types",
    "find_ast_for_line",
    "parse_type",
]
