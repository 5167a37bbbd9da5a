"""Validation of runtime values against parsed annotation tags.

The engine works on ParsedType trees and fills a ValidationResult that is
created per top-level call, so validations running in parallel never share
state. DocSchemaValidator wraps the engine for whole comment blocks.
"""

from __future__ import annotations

import datetime
import enum
import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any, Callable

from .base import UNDEFINED, SchemaError, ValidationError
from .filters import run_filters
from .models import (
    AnyType,
    ArrayType,
    Ast,
    Filters,
    LiteralType,
    MapType,
    NullType,
    ObjectLiteralType,
    ParsedType,
    PrimitiveType,
    SourceLocation,
    Tag,
    TupleType,
    TypedefRef,
    UndefinedType,
    ValidationResult,
)
from .settings import DocSchemaSettings

log = logging.getLogger(__name__)

SINGLE_TAG_SLOTS = ("type", "enum", "typedef", "callback", "returns", "yields")
PROPERTY_TAG_SLOTS = ("param", "property")


# --- Runtime value model ----------------------------------------------------


def is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def is_array(value: Any) -> bool:
    return isinstance(value, (list, tuple))


def is_object(value: Any) -> bool:
    """Mappings and plain instances count as objects; classes and UNDEFINED do not."""
    if value is UNDEFINED:
        return False
    if isinstance(value, Mapping):
        return True
    return hasattr(value, "__dict__") and not isinstance(value, type)


def object_keys(value: Any) -> list[Any]:
    if isinstance(value, Mapping):
        return list(value.keys())
    return [key for key in vars(value) if not key.startswith("_")]


def get_member(value: Any, key: Any) -> Any:
    """Read a key, attribute or index; absent members read as UNDEFINED."""
    if isinstance(value, Mapping):
        return value.get(key, UNDEFINED)
    if is_array(value):
        if isinstance(key, int) and 0 <= key < len(value):
            return value[key]
        return UNDEFINED
    if is_object(value) and isinstance(key, str):
        return getattr(value, key, UNDEFINED)
    return UNDEFINED


_PRIMITIVE_CHECKS: dict[str, Callable[[Any], bool]] = {
    "string": lambda value: isinstance(value, str),
    "number": is_number,
    "bigint": lambda value: isinstance(value, int) and not isinstance(value, bool),
    "boolean": lambda value: isinstance(value, bool),
    "symbol": lambda value: isinstance(value, enum.Enum),
}

# Built-in constructor names that have no registry entry
_NOMINAL_CHECKS: dict[str, Callable[[Any], bool]] = {
    "Function": callable,
    "Date": lambda value: isinstance(value, datetime.date),
    "RegExp": lambda value: isinstance(value, re.Pattern),
    "Map": lambda value: isinstance(value, Mapping),
    "Set": lambda value: isinstance(value, (set, frozenset)),
}


def _typeof(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    if is_number(value):
        return "number"
    if isinstance(value, str):
        return "string"
    if callable(value):
        return "function"
    return "object"


def describe_value(value: Any) -> str:
    """Describe a value for error messages ("value is null", "type is string")."""
    if value is None:
        return "value is null"
    if value is UNDEFINED:
        return "value is undefined"
    if isinstance(value, (bool, int, float, str, list, tuple, dict)):
        return f"type is {_typeof(value)}"
    return f"value is an instance of {type(value).__name__}"


def format_path(path: Sequence[str | int]) -> str:
    parts: list[str] = []
    for key in path:
        if isinstance(key, int):
            parts.append(f"[{key}]")
        else:
            parts.append(f".{key}" if parts else str(key))
    return "".join(parts)


# --- Typedef registries -----------------------------------------------------


class TypedefRegistry:
    """Ordered tiers of typedef blocks searched by name.

    The tiers of one block are local, then ambient, then imported. When
    validation descends into a typedef from another file, that block's tiers
    are appended after the current ones.
    """

    def __init__(self, *tiers: Sequence[Ast]):
        self._tiers: tuple[Sequence[Ast], ...] = tiers

    @classmethod
    def for_ast(cls, ast: Ast) -> TypedefRegistry:
        return cls(ast.local_typedefs, ast.ambient_typedefs, ast.imported_typedefs)

    def resolve(self, name: str) -> Ast | None:
        for tier in self._tiers:
            for candidate in tier:
                tag = candidate.typedef_tag
                if tag is not None and tag.tag_name == name:
                    return candidate
        return None

    def chain(self, ast: Ast) -> TypedefRegistry:
        """This registry followed by the tiers of ``ast`` not already present."""
        known = {id(tier) for tier in self._tiers}
        extra = [
            tier
            for tier in (ast.local_typedefs, ast.ambient_typedefs, ast.imported_typedefs)
            if id(tier) not in known
        ]
        if not extra:
            return self
        return TypedefRegistry(*self._tiers, *extra)


# --- Engine -----------------------------------------------------------------


class _TypeChecker:
    """Matches values against ParsedType lists and records the first failure.

    One instance serves one top-level validation call.
    """

    def __init__(self, registry: TypedefRegistry, result: ValidationResult):
        self.registry = registry
        self.result = result
        self._resolving: set[tuple[int, int]] = set()

    # Failure bookkeeping

    def _snapshot(self) -> tuple:
        r = self.result
        return (r.kind, r.expected_type, r.value, list(r.value_path), r.message, r.filter)

    def _restore(self, snapshot: tuple) -> None:
        r = self.result
        r.kind, r.expected_type, r.value, path, r.message, r.filter = snapshot
        r.value_path[:] = path

    def fail(self, kind: str, expected_type: str, value: Any, message: str = "") -> bool:
        self.result.kind = kind
        self.result.expected_type = expected_type
        self.result.value = value
        self.result.message = message
        return False

    def fail_strict(self, extra_keys: Sequence[Any]) -> bool:
        keys = ", ".join(f'"{key}"' for key in extra_keys)
        noun = "key" if len(extra_keys) == 1 else "keys"
        message = f"Unexpected {noun} {keys} in strict schema"
        if self.result.value_path:
            message += f" at {format_path(self.result.value_path)}"
        return self.fail("strict", "", UNDEFINED, message)

    # Matching

    def check(
        self,
        types: Sequence[ParsedType],
        value: Any,
        filters: Filters | None = None,
        strict: bool = False,
    ) -> bool:
        """Check a value against union alternatives, then apply filters.

        The first structurally matching alternative wins. When none match,
        the failure of the first alternative is reported.
        """
        if not types:
            types = (AnyType("*"),)

        start = self._snapshot()
        first_failure = None

        for parsed in types:
            if self._match(parsed, value, strict):
                self._restore(start)
                if filters and parsed.category is not None:
                    failed = run_filters(parsed.category, filters, value)
                    if failed is not None:
                        failed_filter, message = failed
                        self.fail("filter", parsed.type_expression, value, message)
                        self.result.filter = failed_filter
                        return False
                return True

            if first_failure is None:
                first_failure = self._snapshot()
            self._restore(start)

        self._restore(first_failure)
        if not self.result.kind:
            self.fail("type", types[0].type_expression, value)
        return False

    def _match(self, parsed: ParsedType, value: Any, strict: bool) -> bool:
        if isinstance(parsed, AnyType):
            return True
        if isinstance(parsed, NullType):
            return value is None
        if isinstance(parsed, UndefinedType):
            return value is UNDEFINED
        if isinstance(parsed, LiteralType):
            return _PRIMITIVE_CHECKS[parsed.kind](value) and value == parsed.value
        if isinstance(parsed, PrimitiveType):
            return _PRIMITIVE_CHECKS[parsed.name](value)
        if isinstance(parsed, ArrayType):
            return self._match_array(parsed, value)
        if isinstance(parsed, TupleType):
            return self._match_tuple(parsed, value)
        if isinstance(parsed, MapType):
            return self._match_map(parsed, value)
        if isinstance(parsed, ObjectLiteralType):
            return self._match_object(parsed, value, strict)
        if isinstance(parsed, TypedefRef):
            return self._match_typedef(parsed, value, strict)
        raise SchemaError(f"Unsupported parsed type {type(parsed).__name__}")

    def _descend(self, key: str | int, types: Sequence[ParsedType], value: Any,
                 filters: Filters | None = None) -> bool:
        path = self.result.value_path
        path.append(key)
        if not self.check(types, value, filters):
            return False
        path.pop()
        return True

    def _match_array(self, parsed: ArrayType, value: Any) -> bool:
        if not is_array(value):
            return False
        return all(self._descend(i, parsed.types, item) for i, item in enumerate(value))

    def _match_tuple(self, parsed: TupleType, value: Any) -> bool:
        if not is_array(value):
            return False
        for index, item in enumerate(parsed.items):
            if not self._descend(index, item.types, get_member(value, index), item.filters):
                return False
        return True

    def _match_map(self, parsed: MapType, value: Any) -> bool:
        if not is_object(value):
            return False
        for key in object_keys(value):
            path = self.result.value_path
            path.append(key)
            if not self.check(parsed.key_types, str(key)):
                return False
            if not self.check(parsed.value_types, get_member(value, key)):
                return False
            path.pop()
        return True

    def _match_object(self, parsed: ObjectLiteralType, value: Any, strict: bool) -> bool:
        if not is_object(value):
            return False
        for item in parsed.fields:
            if not self._descend(item.key, item.types, get_member(value, item.key), item.filters):
                return False
        if strict:
            declared = {item.key for item in parsed.fields}
            extra = [key for key in object_keys(value) if key not in declared]
            if extra:
                return self.fail_strict(extra)
        return True

    def _match_typedef(self, parsed: TypedefRef, value: Any, strict: bool) -> bool:
        target = self.registry.resolve(parsed.name)
        if target is None:
            nominal = _NOMINAL_CHECKS.get(parsed.name)
            if nominal is not None:
                return nominal(value)
            return type(value).__name__ == parsed.name

        marker = (id(target), id(value))
        if marker in self._resolving:
            log.debug("Typedef %s refers back to itself", parsed.name)
            return self.fail(
                "type",
                parsed.type_expression,
                value,
                f"Typedef {parsed.name} refers back to itself while validating the same value",
            )

        self._resolving.add(marker)
        registry = self.registry
        self.registry = registry.chain(target)
        try:
            return self.check_block(target, value, strict or target.strict)
        finally:
            self.registry = registry
            self._resolving.discard(marker)

    def check_block(self, ast: Ast, value: Any, strict: bool) -> bool:
        """Check a value against a @typedef or @callback block."""
        elements = ast.elements
        if elements.callback is not None:
            return callable(value)

        if elements.property:
            return self.check_properties(elements.property, value, strict)

        tag = elements.typedef
        if tag is None:
            raise SchemaError("The AST you are trying to use is not a typedef")
        # "@typedef Name" followed by "@type {...}" declares the type separately
        if not tag.type_expression and elements.type is not None:
            tag = elements.type
        return self.check(tag.types, value, tag.filters, strict)

    def check_properties(self, tags: Sequence[Tag], value: Any, strict: bool) -> bool:
        """Check a value property by property against @param/@property tags."""
        if not is_object(value):
            return False

        path = self.result.value_path
        for tag in tags:
            if tag.destructured:
                keys = tag.destructured
                member = get_member(get_member(value, keys[0]), keys[1])
            else:
                keys = (tag.tag_name,)
                member = get_member(value, tag.tag_name)

            if tag.optional and member is UNDEFINED:
                continue

            path.extend(keys)
            if not self.check(tag.types, member, tag.filters):
                return False
            del path[-len(keys) :]

        if strict:
            declared = {tag.destructured[0] if tag.destructured else tag.tag_name for tag in tags}
            extra = [key for key in object_keys(value) if key not in declared]
            if extra:
                return self.fail_strict(extra)
        return True


def check_types(
    types: Sequence[ParsedType],
    value: Any,
    registry: TypedefRegistry | None = None,
    filters: Filters | None = None,
    result: ValidationResult | None = None,
) -> bool:
    """Check one value against a list of union alternatives.

    Args:
        types: Parsed alternatives, e.g. ``tag.types``
        value: Runtime value
        registry: Typedefs that bare names resolve against
        filters: Filters applied to the matching alternative
        result: Receives the failure details; a fresh one is used if omitted

    Returns:
        True if the value matches.
    """
    result = result if result is not None else ValidationResult()
    checker = _TypeChecker(registry or TypedefRegistry(), result)
    passed = checker.check(types, value, filters)
    result.passed = passed
    return passed


# --- Wrappers ---------------------------------------------------------------


def _default_message(what: str, result: ValidationResult, base_depth: int = 0) -> str:
    message = (
        f"Expected {what} to be of type {result.expected_type},"
        f" but the actual {describe_value(result.value)}"
    )
    if len(result.value_path) > base_depth:
        message += f" at {format_path(result.value_path)}"
    return message


class DocSchemaValidator:
    """Validates values against parsed comment blocks.

    Every method returns a fresh ValidationResult. Methods taking
    ``throw_on_error`` raise ValidationError instead when it is True.
    """

    def __init__(self, settings: DocSchemaSettings | None = None):
        self.settings = settings or DocSchemaSettings()

    def _is_strict(self, ast: Ast) -> bool:
        return ast.strict or self.settings.force_strict

    def _finish(self, result: ValidationResult, what: str, base_depth: int,
                throw_on_error: bool) -> ValidationResult:
        if not result.passed:
            if not result.message:
                result.message = _default_message(what, result, base_depth)
            if throw_on_error:
                raise ValidationError(result)
        return result

    def validate_function_arguments(
        self, ast: Ast, args: Sequence[Any], throw_on_error: bool = True
    ) -> ValidationResult:
        """Validate positional arguments against the @param tags of a block.

        Destructured tags (``@param {string} input.name``) read the property
        of the argument they belong to. With @strict, passing more arguments
        than declared fails.
        """
        result = ValidationResult(tag="param")
        checker = _TypeChecker(TypedefRegistry.for_ast(ast), result)
        params = ast.elements.param

        for tag in params:
            arg = args[tag.id] if tag.id < len(args) else UNDEFINED
            if tag.destructured:
                arg = get_member(arg, tag.destructured[1])
            if tag.optional and arg is UNDEFINED:
                continue

            if tag.destructured:
                result.value_path.append(tag.destructured[1])
            if not checker.check(tag.types, arg, tag.filters):
                result.passed = False
                return self._finish(result, "argument", 0, throw_on_error)
            result.value_path.clear()

        if self._is_strict(ast):
            declared = max((tag.id for tag in params), default=-1) + 1
            if len(args) > declared:
                checker.fail(
                    "strict",
                    "",
                    UNDEFINED,
                    f"Expected at most {declared} arguments, but got {len(args)}",
                )
                result.passed = False

        return self._finish(result, "argument", 0, throw_on_error)

    def validate_params(
        self, name: str, ast: Ast, value: Any, throw_on_error: bool = True
    ) -> ValidationResult:
        """Validate an object whose keys are the names of @param or @property tags."""
        if name not in PROPERTY_TAG_SLOTS:
            raise SchemaError(f"Cannot validate {name!r} tags as an object")

        result = ValidationResult(tag=name)
        checker = _TypeChecker(TypedefRegistry.for_ast(ast), result)
        tags = getattr(ast.elements, name)

        if not is_object(value):
            checker.fail("type", "Object", value)
            result.passed = False
            return self._finish(result, "value", 0, throw_on_error)

        if not checker.check_properties(tags, value, self._is_strict(ast)):
            result.passed = False
            what = f'"{result.value_path[0]}"' if result.value_path else "value"
            return self._finish(result, what, 1, throw_on_error)

        return result

    def validate_tag(
        self, tag_name: str, ast: Ast, value: Any, throw_on_error: bool = True
    ) -> ValidationResult:
        """Validate a value against one single-valued tag (@type, @enum, @returns...).

        A block without that tag only accepts UNDEFINED.
        """
        if tag_name not in SINGLE_TAG_SLOTS:
            raise SchemaError("The AST you are trying to use is not valid")

        result = ValidationResult(tag=tag_name)
        tag = getattr(ast.elements, tag_name)

        if tag is None:
            if value is not UNDEFINED:
                result.passed = False
                result.kind = "type"
                result.expected_type = "undefined"
                result.value = value
            return self._finish(result, "value", 0, throw_on_error)

        checker = _TypeChecker(TypedefRegistry.for_ast(ast), result)
        if not checker.check(tag.types, value, tag.filters, self._is_strict(ast)):
            result.passed = False
        return self._finish(result, "value", 0, throw_on_error)

    def validate_typedef(
        self, ast: Ast, value: Any, throw_on_error: bool = True
    ) -> ValidationResult:
        """Validate a value against a @typedef or @callback block."""
        if ast.typedef_tag is None:
            raise SchemaError("The AST you are trying to use is not a typedef")

        result = ValidationResult(tag="typedef" if ast.elements.typedef else "callback")
        checker = _TypeChecker(TypedefRegistry.for_ast(ast), result)
        if not checker.check_block(ast, value, self._is_strict(ast)):
            result.passed = False
            if not result.kind:
                checker.fail("type", ast.typedef_tag.type_expression or "Object", value)
        return self._finish(result, "value", 0, throw_on_error)

    def _validate_block(self, ast: Ast, value: Any, throw_on_error: bool) -> ValidationResult:
        elements = ast.elements
        for tag_name in ("enum", "type"):
            if getattr(elements, tag_name) is not None:
                return self.validate_tag(tag_name, ast, value, throw_on_error)
        if elements.typedef is not None:
            return self.validate_typedef(ast, value, throw_on_error)
        if elements.param:
            return self.validate_params("param", ast, value, throw_on_error)
        raise SchemaError(
            "A schema needs one of the tags @enum, @type, @typedef or @param",
            SourceLocation(ast.file, ast.start_line, ast.end_line),
        )

    def check(self, ast: Ast, value: Any) -> ValidationResult:
        """Validate a value against a schema block without raising on bad data.

        The block's @enum, @type, @typedef or @param tags are used, in that
        order of preference.

        Raises:
            SchemaError: If the block has none of those tags.
        """
        return self._validate_block(ast, value, throw_on_error=False)

    def validate(self, ast: Ast, value: Any) -> Any:
        """Like check(), but raise ValidationError on failure.

        Returns:
            The validated value, unchanged.
        """
        self._validate_block(ast, value, throw_on_error=True)
        return value

    def approves(self, ast: Ast, value: Any) -> bool:
        return self._validate_block(ast, value, throw_on_error=False).passed
