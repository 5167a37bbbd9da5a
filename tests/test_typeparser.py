"""Tests for the type expression parser."""

import logging

import pytest
from docschema.base import SchemaError
from docschema.models import (
    AnyType,
    ArrayType,
    LiteralType,
    MapType,
    NullType,
    ObjectLiteralType,
    PrimitiveType,
    TupleType,
    TypedefRef,
    UndefinedType,
)
from docschema.typeparser import parse_type


class TestSimpleTypes:
    """Primitive names, literals and the any type."""

    @pytest.mark.parametrize("name", ["string", "number", "bigint", "boolean", "symbol"])
    def test_primitive(self, name):
        assert parse_type(name) == [PrimitiveType(name, name)]

    def test_primitive_is_case_insensitive(self):
        assert parse_type("String") == [PrimitiveType("String", "string")]

    def test_null_and_undefined(self):
        assert parse_type("null") == [NullType("null")]
        assert parse_type("undefined") == [UndefinedType("undefined")]

    @pytest.mark.parametrize("expression", ["*", "any", "", "  "])
    def test_any(self, expression):
        assert parse_type(expression) == [AnyType("*")]

    def test_boolean_literal(self):
        assert parse_type("true") == [LiteralType("true", "boolean", True)]
        assert parse_type("false") == [LiteralType("false", "boolean", False)]

    def test_number_literal(self):
        assert parse_type("42") == [LiteralType("42", "number", 42.0)]
        assert parse_type("-1.5") == [LiteralType("-1.5", "number", -1.5)]

    @pytest.mark.parametrize(
        "expression,value", [(".5", 0.5), ("1e3", 1000.0), ("-2.5E-1", -0.25)]
    )
    def test_number_literal_forms(self, expression, value):
        assert parse_type(expression) == [LiteralType(expression, "number", value)]

    def test_string_literal(self):
        assert parse_type("'on'") == [LiteralType("'on'", "string", "on")]
        assert parse_type('"off"') == [LiteralType('"off"', "string", "off")]

    def test_typedef_reference(self):
        assert parse_type("MyType") == [TypedefRef("MyType", "MyType")]


class TestUnions:
    """| and & both separate alternatives."""

    def test_alternatives_in_source_order(self):
        assert parse_type("A|B|C") == parse_type("A") + parse_type("B") + parse_type("C")

    def test_ampersand_is_a_union(self):
        assert parse_type("string & number") == [
            PrimitiveType("string", "string"),
            PrimitiveType("number", "number"),
        ]

    def test_nested_parenthesised_union_is_flattened(self):
        types = parse_type("(string|null)|number")
        assert [type(t) for t in types] == [PrimitiveType, NullType, PrimitiveType]

    def test_parsing_is_deterministic(self):
        expression = "{a: number, // A { min: 1 }\n b?: Array<string|null>} | Record<string, Foo>"
        assert parse_type(expression) == parse_type(expression)


class TestArraysAndMaps:
    """Array, tuple and key/value map forms."""

    def test_generic_array(self):
        [parsed] = parse_type("Array.<number>")
        assert isinstance(parsed, ArrayType)
        assert parsed.types == (PrimitiveType("number", "number"),)

    def test_generic_array_with_union(self):
        [parsed] = parse_type("Array<string|number>")
        assert [t.name for t in parsed.types] == ["string", "number"]

    def test_suffix_array(self):
        [parsed] = parse_type("string[]")
        assert parsed.types == (PrimitiveType("string", "string"),)

    def test_parenthesised_suffix_array(self):
        [parsed] = parse_type("(string|number)[]")
        assert isinstance(parsed, ArrayType)
        assert len(parsed.types) == 2

    def test_nested_suffix_array(self):
        [parsed] = parse_type("string[][]")
        assert isinstance(parsed.types[0], ArrayType)

    @pytest.mark.parametrize("shorthand", ["array", "Array", "[]"])
    def test_array_shorthand(self, shorthand):
        assert parse_type(shorthand) == [ArrayType("*[]", (AnyType("*"),))]

    def test_map(self):
        [parsed] = parse_type("Object.<string, number>")
        assert isinstance(parsed, MapType)
        assert parsed.key_types == (PrimitiveType("string", "string"),)
        assert parsed.value_types == (PrimitiveType("number", "number"),)

    def test_record_without_value_type(self):
        [parsed] = parse_type("Record<string>")
        assert parsed.value_types == (AnyType("*"),)

    @pytest.mark.parametrize("shorthand", ["{}", "object", "Object"])
    def test_object_shorthand(self, shorthand):
        assert parse_type(shorthand) == [
            MapType("Object<*,*>", (AnyType("*"),), (AnyType("*"),))
        ]

    def test_tuple(self):
        [parsed] = parse_type("[number, string]")
        assert isinstance(parsed, TupleType)
        assert [item.key for item in parsed.items] == ["0", "1"]
        assert parsed.items[1].types == (PrimitiveType("string", "string"),)
        assert parsed.category == "array"


class TestObjectLiterals:
    """Inline object literals with descriptions and filters."""

    def test_fields(self):
        [parsed] = parse_type("{a: number, b?: string}")
        assert isinstance(parsed, ObjectLiteralType)
        first, second = parsed.fields
        assert first.key == "a"
        assert not first.optional
        assert second.key == "b"
        assert second.optional
        assert second.types == (PrimitiveType("string", "string"), UndefinedType("undefined"))

    def test_quoted_keys(self):
        [parsed] = parse_type("{'first-name': string}")
        assert parsed.fields[0].key == "first-name"

    def test_comment_after_comma_documents_previous_field(self):
        [parsed] = parse_type(
            "{\n  a: number, // First field { min: 1 }\n  b: string // Second field\n}"
        )
        first, second = parsed.fields
        assert first.description == "First field"
        assert first.filters == {"min": (1, "")}
        assert second.description == "Second field"
        assert second.filters == {}

    def test_nested_literal(self):
        [parsed] = parse_type("{outer: {inner: boolean}}")
        [inner] = parsed.fields[0].types
        assert isinstance(inner, ObjectLiteralType)
        assert inner.fields[0].key == "inner"

    def test_invalid_field_filter_raises(self):
        with pytest.raises(SchemaError, match="not a valid filter"):
            parse_type("{a: number // { unknown: 1 }\n}")


def test_unknown_syntax_degrades_to_any(caplog):
    caplog.set_level(logging.DEBUG, logger="docschema.typeparser")
    assert parse_type("Foo<Bar>") == [AnyType("Foo<Bar>")]
    assert "not recognised" in caplog.text


def test_string_literal_field_containing_slashes(validator, schema):
    [parsed] = parse_type("{scheme: 'http://'}")
    [field] = parsed.fields
    assert field.types == (LiteralType("'http://'", "string", "http://"),)
    assert field.description == ""

    ast = schema("/** @type {{scheme: 'http://'}} */")
    assert validator.approves(ast, {"scheme": "http://"})
    assert not validator.approves(ast, {"scheme": 42})
