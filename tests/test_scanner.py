"""Tests for the string scanning helpers."""

import pytest
from docschema.base import AnnotationSyntaxError
from docschema.scanner import (
    dequote,
    find_closing_bracket,
    find_closing_quote,
    isolate_leading_comment,
    isolate_trailing_comment,
    remove_wrapping_braces,
    split_top_level,
)


def test_closing_bracket_nested():
    assert find_closing_bracket("(a(b)c)") == 6


def test_closing_bracket_offset_is_relative():
    assert find_closing_bracket("x(a)", 1) == 2


def test_closing_bracket_counts_same_kind_only():
    assert find_closing_bracket("{(}") == 2


def test_closing_bracket_not_found():
    assert find_closing_bracket("(ab") == 0
    assert find_closing_bracket("abc") == 0
    assert find_closing_bracket("", 3) == 0


def test_closing_quote_skips_escaped():
    assert find_closing_quote("'it\\'s' rest") == 6


def test_closing_quote_unterminated():
    assert find_closing_quote("'abc") == 0
    assert find_closing_quote("abc") == 0


def test_remove_wrapping_braces():
    assert remove_wrapping_braces(" (a|b) ") == "a|b"
    assert remove_wrapping_braces("(a)[]") == "(a)[]"
    assert remove_wrapping_braces("(a)|(b)") == "(a)|(b)"


def test_dequote():
    assert dequote("'./types.js'") == "./types.js"
    assert dequote('"x"') == "x"
    assert dequote("plain") == "plain"


def test_split_union():
    assert split_top_level("string|number") == ["string", "number"]


def test_split_does_not_enter_brackets():
    assert split_top_level("Object.<string, number>", (",",)) == ["Object.<string, number>"]
    assert split_top_level("string, number", (",",)) == ["string", "number"]


def test_split_strips_wrapping_parentheses():
    assert split_top_level("(a|b)") == ["a", "b"]


def test_split_does_not_enter_quotes():
    assert split_top_level("'a|b'|c") == ["'a|b'", "c"]


def test_split_skips_line_comments():
    expression = "a: number // x, y\nb: string"
    assert split_top_level(expression, (",",)) == [expression]


def test_split_multiple_separators():
    assert split_top_level("a|b&c", ("|", "&")) == ["a", "b", "c"]


def test_split_always_returns_one_member():
    assert split_top_level("") == [""]


def test_leading_comment_multiline():
    comment, rest = isolate_leading_comment("// first\n// second\nkey: string")
    assert comment == "first second"
    assert rest == "key: string"


def test_leading_comment_absent():
    assert isolate_leading_comment("  key: string") == ("", "key: string")


def test_leading_single_slash_is_syntax_error():
    with pytest.raises(AnnotationSyntaxError):
        isolate_leading_comment("/ bad")


def test_trailing_comment():
    assert isolate_trailing_comment("number // The count") == ("number", "The count")


def test_trailing_comment_after_brackets():
    assert isolate_trailing_comment("{a: 1} // x") == ("{a: 1}", "x")


def test_trailing_comment_absent():
    assert isolate_trailing_comment(" number ") == ("number", "")


def test_trailing_comment_skips_quotes():
    assert isolate_trailing_comment("'http://' // The scheme") == ("'http://'", "The scheme")
    assert isolate_trailing_comment('"a//b"') == ('"a//b"', "")


def test_trailing_comment_after_generic():
    assert isolate_trailing_comment("Array<'x//y'> // z") == ("Array<'x//y'>", "z")
