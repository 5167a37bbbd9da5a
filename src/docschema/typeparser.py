"""Type expression parser.

Turns the text between the braces of a tag (``{Array<string>|null}``) into a
list of ParsedType alternatives. Unknown syntax never raises; it degrades to
an AnyType that keeps the original expression.
"""

from __future__ import annotations

import logging
import re
from typing import Callable

from .filters import parse_filters
from .models import (
    AnyType,
    ArrayType,
    LiteralType,
    MapType,
    NullType,
    ObjectField,
    ObjectLiteralType,
    ParsedType,
    PrimitiveType,
    TupleType,
    TypedefRef,
    UndefinedType,
)
from .scanner import (
    NUMBER_LITERAL,
    QUOTES,
    dequote,
    find_closing_quote,
    isolate_leading_comment,
    isolate_trailing_comment,
    remove_wrapping_braces,
    split_top_level,
)

log = logging.getLogger(__name__)

# Lowercased shorthand -> canonical expression
COMMON_MISTAKE_FIXES = {
    "": "*",
    "any": "*",
    "[]": "*[]",
    "array": "*[]",
    "{}": "Object<*,*>",
    "object": "Object<*,*>",
}

UNION_SEPARATORS = ("|", "&")

PRIMITIVE_TYPES = ("string", "number", "bigint", "boolean", "undefined", "symbol", "null")

_ARRAY_GENERIC = re.compile(r"array\.?<(.+)>", re.IGNORECASE | re.DOTALL)
_ARRAY_SUFFIX = re.compile(r"((?=[^(]).+(?<=[^)]))\[\]|\((.*)\)\[\]", re.DOTALL)
_MAP_GENERIC = re.compile(r"(?:object|record)\.?<(.+)>", re.IGNORECASE | re.DOTALL)
_IDENTIFIER = re.compile(r"\w+")

Matcher = Callable[[str, str], "ParsedType | None"]


def fix_common_mistakes(expression: str) -> str:
    """Rewrite shorthand like ``array`` or ``{}`` to the canonical form."""
    expression = expression.strip()
    return COMMON_MISTAKE_FIXES.get(expression.lower(), expression)


# --- Simple matchers --------------------------------------------------------
# Every matcher receives the expression with one layer of wrapping
# parentheses removed (``clean``) and the expression as written.


def _match_any(clean: str, expression: str) -> ParsedType | None:
    if clean in ("", "*", "any"):
        return AnyType(expression)
    return None


def _match_boolean(clean: str, expression: str) -> ParsedType | None:
    if clean in ("true", "false"):
        return LiteralType(expression, "boolean", clean == "true")
    return None


def _match_number(clean: str, expression: str) -> ParsedType | None:
    if NUMBER_LITERAL.fullmatch(clean):
        return LiteralType(expression, "number", float(clean))
    return None


def _match_string(clean: str, expression: str) -> ParsedType | None:
    if not clean or clean[0] not in QUOTES:
        return None
    if find_closing_quote(clean) != len(clean) - 1:
        return None
    return LiteralType(expression, "string", clean[1:-1])


def _match_primitive(clean: str, expression: str) -> ParsedType | None:
    name = clean.lower()
    if name not in PRIMITIVE_TYPES:
        return None
    if name == "null":
        return NullType(expression)
    if name == "undefined":
        return UndefinedType(expression)
    return PrimitiveType(expression, name)


# --- Complex matchers -------------------------------------------------------


def _match_array(clean: str, expression: str) -> ParsedType | None:
    match = _ARRAY_GENERIC.fullmatch(clean)
    if match is None:
        return None
    return ArrayType(expression, tuple(parse_type(match.group(1))))


def _match_array_suffix(clean: str, expression: str) -> ParsedType | None:
    match = _ARRAY_SUFFIX.fullmatch(clean)
    if match is None:
        return None
    element = match.group(1) if match.group(1) is not None else match.group(2)
    return ArrayType(expression, tuple(parse_type(element)))


def _match_literal(clean: str, expression: str) -> ParsedType | None:
    if len(clean) < 2:
        return None
    if clean[0] == "{" and clean[-1] == "}":
        return ObjectLiteralType(expression, tuple(_parse_fields(clean[1:-1], keyed=True)))
    if clean[0] == "[" and clean[-1] == "]":
        return TupleType(expression, tuple(_parse_fields(clean[1:-1], keyed=False)))
    return None


def _match_map(clean: str, expression: str) -> ParsedType | None:
    match = _MAP_GENERIC.fullmatch(clean)
    if match is None:
        return None
    pair = split_top_level(match.group(1), (",",))
    key_expression = pair[0] if pair[0] else "*"
    value_expression = pair[1] if len(pair) > 1 and pair[1] else "*"
    return MapType(
        expression,
        tuple(parse_type(key_expression)),
        tuple(parse_type(value_expression)),
    )


def _match_typedef(clean: str, expression: str) -> ParsedType | None:
    if _IDENTIFIER.fullmatch(clean):
        return TypedefRef(expression, clean)
    return None


# Priority order: first match wins
MATCHERS: tuple[Matcher, ...] = (
    _match_any,
    _match_boolean,
    _match_number,
    _match_string,
    _match_primitive,
    _match_array,
    _match_array_suffix,
    _match_literal,
    _match_map,
    _match_typedef,
)


def _parse_fields(body: str, keyed: bool) -> list[ObjectField]:
    """Parse the members of an object literal (keyed) or tuple literal.

    A // comment placed after a comma ends up at the start of the next
    member, so a leading comment documents the previous field. A trailing
    comment documents the field it follows.
    """
    fields: list[ObjectField] = []

    for member in split_top_level(body.strip(), (",",)):
        leading, content = isolate_leading_comment(member)

        if fields and leading:
            previous = fields[-1]
            description, filters = parse_filters(leading, previous.types)
            fields[-1] = ObjectField(previous.key, previous.types, description, filters)

        if not content:
            continue

        if keyed:
            pair = split_top_level(content, (":",))
            key = dequote(pair[0].replace(" ", ""))
            type_text = ":".join(pair[1:]) if len(pair) > 1 else ""
        else:
            key = str(len(fields))
            type_text = content

        type_text, trailing = isolate_trailing_comment(type_text)
        types = parse_type(type_text)

        if keyed and key.endswith("?"):
            key = key[:-1]
            types = types + [UndefinedType("undefined")]

        description, filters = parse_filters(trailing, types)
        fields.append(ObjectField(key, tuple(types), description, filters))

    return fields


def parse_type(expression: str) -> list[ParsedType]:
    """Parse a type expression into its union alternatives.

    ``|`` and ``&`` both separate alternatives. Alternatives keep source
    order; a parenthesised union inside a union is flattened into it.

    Args:
        expression: Type text without the surrounding tag braces

    Returns:
        At least one ParsedType.

    Raises:
        SchemaError: If an object literal field carries a bad filter literal.
    """
    expression = fix_common_mistakes(expression)
    members = split_top_level(expression, UNION_SEPARATORS)

    if len(members) > 1:
        types: list[ParsedType] = []
        for member in members:
            if member:
                types.extend(parse_type(member))
        return types or [AnyType(expression)]

    clean = remove_wrapping_braces(expression)
    for matcher in MATCHERS:
        parsed = matcher(clean, expression)
        if parsed is not None:
            return [parsed]

    log.debug("Type expression %r not recognised, accepting any value", expression)
    return [AnyType(expression)]
