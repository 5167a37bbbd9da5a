"""Data models for annotation parsing and validation."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .base import UNDEFINED

# filter name -> (expected value, custom error message)
Filters = dict[str, tuple[Any, str]]


@dataclass(frozen=True)
class SourceLocation:
    """Where a comment block sits in its source."""

    file: str
    start_line: int
    end_line: int

    def __str__(self) -> str:
        lines = f"lines {self.start_line}-{self.end_line}"
        return f"{self.file}, {lines}" if self.file else lines


@dataclass(frozen=True)
class CommentRecord:
    """One annotation comment block found in source text."""

    text: str  # Raw comment, including /** and */
    index: int  # Offset of the comment in the source
    start_line: int  # 1-based
    end_line: int  # 1-based
    line_after_comment: str  # First non-blank line of code below, or ""


# --- Parsed types -----------------------------------------------------------


@dataclass(frozen=True)
class ParsedType:
    """Base for every node produced by the type expression parser."""

    type_expression: str  # Raw text this node was parsed from

    @property
    def category(self) -> str | None:
        """Filter category ("array", "number", "string") or None."""
        return None


@dataclass(frozen=True)
class AnyType(ParsedType):
    """``*``, ``any``, and every expression the parser does not recognise."""


@dataclass(frozen=True)
class LiteralType(ParsedType):
    """A literal value such as ``true``, ``42`` or ``'on'``."""

    kind: str  # "boolean" | "number" | "string"
    value: bool | float | str

    @property
    def category(self) -> str | None:
        return self.kind if self.kind in ("number", "string") else None


@dataclass(frozen=True)
class PrimitiveType(ParsedType):
    """A primitive name matched by runtime kind: string, number, bigint, boolean, symbol."""

    name: str

    @property
    def category(self) -> str | None:
        return self.name if self.name in ("number", "string") else None


@dataclass(frozen=True)
class NullType(ParsedType):
    """``null``, matched by identity with None."""


@dataclass(frozen=True)
class UndefinedType(ParsedType):
    """``undefined``, matched by identity with UNDEFINED."""


@dataclass(frozen=True)
class ArrayType(ParsedType):
    """``Array<T>``, ``Array.<T>``, ``T[]`` or ``(A|B)[]``."""

    types: tuple[ParsedType, ...]

    @property
    def category(self) -> str | None:
        return "array"


@dataclass(frozen=True)
class ObjectField:
    """One member of an object or tuple literal."""

    key: str
    types: tuple[ParsedType, ...]
    description: str = ""
    filters: Filters = field(default_factory=dict)

    @property
    def optional(self) -> bool:
        return any(isinstance(t, UndefinedType) for t in self.types)


@dataclass(frozen=True)
class TupleType(ParsedType):
    """``[A, B]``: positional element types."""

    items: tuple[ObjectField, ...]

    @property
    def category(self) -> str | None:
        return "array"


@dataclass(frozen=True)
class MapType(ParsedType):
    """``Object<K, V>``, ``Object.<K, V>`` or ``Record<K, V>``."""

    key_types: tuple[ParsedType, ...]
    value_types: tuple[ParsedType, ...]


@dataclass(frozen=True)
class ObjectLiteralType(ParsedType):
    """``{key: Type, other?: Type}``."""

    fields: tuple[ObjectField, ...]


@dataclass(frozen=True)
class TypedefRef(ParsedType):
    """A bare identifier resolved against the typedef registries."""

    name: str


# --- Tags and ASTs ----------------------------------------------------------


@dataclass(frozen=True)
class Tag:
    """One parsed annotation tag, e.g. ``@param {string} [name=x] - Description``."""

    name: str  # Tag kind: "param", "type", "typedef", ...
    type_expression: str = ""
    types: tuple[ParsedType, ...] = ()
    tag_name: str = ""  # Own identifier, e.g. the parameter name
    description: str = ""
    filters: Filters = field(default_factory=dict)
    optional: bool = False
    default_value: str | None = None
    destructured: tuple[str, str] | None = None  # (owner name, property name)
    id: int = 0  # Positional argument index


@dataclass(frozen=True)
class Scope:
    """Visibility markers of a comment block."""

    private: bool = False
    protected: bool = False
    public: bool = True


@dataclass
class AstElements:
    """Tag slots of one comment block."""

    description: str = ""
    scope: Scope = field(default_factory=Scope)
    param: list[Tag] = field(default_factory=list)
    property: list[Tag] = field(default_factory=list)
    imports: list[Tag] = field(default_factory=list)
    type: Tag | None = None
    enum: Tag | None = None
    typedef: Tag | None = None
    callback: Tag | None = None
    returns: Tag | None = None
    yields: Tag | None = None
    strict: bool = False


@dataclass(eq=False)
class Ast:
    """One fully parsed comment block plus the typedef registries it can see.

    ``local_typedefs`` is shared by every block of the same parse call.
    ``ambient_typedefs`` and ``imported_typedefs`` are filled in by
    ``DocSchemaParser.parse_file`` before the blocks are returned.
    """

    elements: AstElements
    file: str = ""
    start_line: int = 0
    end_line: int = 0
    line_after_comment: str = ""
    local_typedefs: list[Ast] = field(default_factory=list, repr=False)
    ambient_typedefs: list[Ast] = field(default_factory=list, repr=False)
    imported_typedefs: list[Ast] = field(default_factory=list, repr=False)

    @property
    def strict(self) -> bool:
        return self.elements.strict

    @property
    def typedef_tag(self) -> Tag | None:
        """The @typedef or @callback tag that names this block, if any."""
        return self.elements.typedef or self.elements.callback


# --- Validation results -----------------------------------------------------


@dataclass(frozen=True)
class FailedFilter:
    """The filter that rejected a value."""

    name: str
    value: Any


@dataclass
class ValidationResult:
    """Outcome of one validation call."""

    passed: bool = True
    kind: str = ""  # "" | "type" | "filter" | "strict"
    expected_type: str = ""
    value: Any = UNDEFINED
    value_path: list[str | int] = field(default_factory=list)
    message: str = ""
    tag: str = ""
    filter: FailedFilter | None = None
