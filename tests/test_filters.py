"""Tests for filter literal parsing and the runtime filter checks."""

import re

import pytest
from docschema.base import SchemaError
from docschema.filters import parse_filters, read_filter_literal, run_filters
from docschema.models import FailedFilter
from docschema.typeparser import parse_type


class TestFilterLiteral:
    """The limited-grammar reader for {...} filter objects."""

    def test_values(self):
        literal = read_filter_literal(
            "{min: 1, max: [3, 'Too many'], ratio: -0.5, url: true, startsWith: \"x\",}"
        )
        assert literal == {
            "min": 1,
            "max": (3, "Too many"),
            "ratio": -0.5,
            "url": True,
            "startsWith": "x",
        }

    def test_quoted_keys_and_escapes(self):
        literal = read_filter_literal("{'includes': 'it\\'s'}")
        assert literal == {"includes": "it's"}

    def test_regex_with_flags(self):
        pattern = read_filter_literal("{pattern: /^a[/]b/i}")["pattern"]
        assert isinstance(pattern, re.Pattern)
        assert pattern.flags & re.IGNORECASE
        assert pattern.search("A/B")

    def test_regex_named_groups(self):
        pattern = read_filter_literal(r"{pattern: /(?<year>\d{4})/}")["pattern"]
        assert pattern.groupindex == {"year": 1}

    def test_empty_object(self):
        assert read_filter_literal("{}") == {}

    @pytest.mark.parametrize(
        "text",
        [
            "{min: }",
            "{min: alert(1)}",
            "{min 1}",
            "{min: 1",
            "{min: 1} extra",
            "{pattern: /abc}",
            "{max: [3, 4]}",
        ],
    )
    def test_malformed(self, text):
        with pytest.raises(SchemaError):
            read_filter_literal(text)


class TestParseFilters:
    """Splitting a description tail into description and filters."""

    def test_description_and_filters(self):
        description, filters = parse_filters(
            "- Description {min: 1,max: 3}", parse_type("string")
        )
        assert description == "Description"
        assert filters == {"min": (1, ""), "max": (3, "")}

    def test_filters_in_the_middle(self):
        description, filters = parse_filters("Description {min: 1} three", parse_type("string"))
        assert description == "Description three"
        assert filters == {"min": (1, "")}

    def test_multiline_text_is_flattened(self):
        description, _ = parse_filters("- this is\nmultiline\ndescription", parse_type("string"))
        assert description == "this is multiline description"

    def test_without_filters(self):
        assert parse_filters("no filters here", parse_type("string")) == ("no filters here", {})
        assert parse_filters("", parse_type("string")) == ("", {})

    def test_unknown_filter(self):
        with pytest.raises(SchemaError, match='"foo" is not a valid filter for numbers'):
            parse_filters("{foo: 1}", parse_type("number"))

    def test_wrong_value_kind(self):
        with pytest.raises(SchemaError, match="has wrong type"):
            parse_filters("{min: 'a'}", parse_type("string"))

    def test_filters_need_a_filterable_type(self):
        with pytest.raises(SchemaError, match="Filters only work on"):
            parse_filters("{min: 1}", parse_type("boolean"))

    def test_every_alternative_is_checked(self):
        with pytest.raises(SchemaError):
            parse_filters("{int: true}", parse_type("number|string"))

    def test_null_and_undefined_alternatives_are_exempt(self):
        _, filters = parse_filters("{min: 1}", parse_type("number|null|undefined"))
        assert filters == {"min": (1, "")}

    def test_zero_step(self):
        with pytest.raises(SchemaError, match="step"):
            parse_filters("{step: 0}", parse_type("number"))


class TestRunFilters:
    """Runtime checks and their default messages."""

    def test_passing_filters(self):
        assert run_filters("array", {"min": (2, "")}, [1, 2]) is None

    def test_array_min(self):
        failed, message = run_filters("array", {"min": (2, "")}, [1])
        assert failed == FailedFilter("min", 2)
        assert message == 'Expected array "[1]" to have 2 or more elements'

    def test_long_array_is_shortened(self):
        _, message = run_filters("array", {"length": (1, "")}, list(range(20)))
        assert message == (
            'Expected array "[0,1,2,3,4,5,6,7,8,9,10,11, ...]" to have exactly 1 elements'
        )

    def test_number_min(self):
        _, message = run_filters("number", {"min": (5, "")}, 3)
        assert message == "Expected number 3 to be 5 or higher"

    def test_string_min(self):
        _, message = run_filters("string", {"min": (3, "")}, "ab")
        assert message == 'Expected string "ab" to be at least 3 characters long'

    def test_custom_message(self):
        _, message = run_filters("number", {"min": (3, "Minimum is 3")}, 1)
        assert message == "Minimum is 3"

    def test_first_failure_wins(self):
        failed, _ = run_filters("number", {"min": (5, ""), "int": (True, "")}, 1.5)
        assert failed.name == "min"

    @pytest.mark.parametrize(
        "filters,value,passes",
        [
            ({"max": (3, "")}, 3, True),
            ({"max": (3, "")}, 4, False),
            ({"gt": (3, "")}, 3, False),
            ({"lt": (3, "")}, 2.5, True),
            ({"step": (0.5, "")}, 1.5, True),
            ({"step": (2, "")}, 3, False),
            ({"int": (True, "")}, 2.0, True),
            ({"int": (True, "")}, 1.5, False),
            ({"int": (False, "")}, 1.5, True),
            ({"finite": (True, "")}, float("inf"), False),
            ({"safeInt": (True, "")}, 2**53, False),
            ({"safeInt": (True, "")}, 2**53 - 1, True),
        ],
    )
    def test_number_filters(self, filters, value, passes):
        assert (run_filters("number", filters, value) is None) is passes

    @pytest.mark.parametrize(
        "name,value,passes",
        [
            ("email", "user@example.com", True),
            ("email", "user@@example", False),
            ("uuid", "123e4567-e89b-12d3-a456-426614174000", True),
            ("uuid", "123e4567", False),
            ("ulid", "01ARZ3NDEKTSV4RRFFQ69G5FAV", True),
            ("cuid", "cjld2cjxh0000qzrmn831i7rn", True),
            ("cuid2", "tz4a98xxat96iws9zmbrgj3a", True),
            ("cuid2", "1abc", False),
            ("ip", "192.168.0.1", True),
            ("ip", "::1", True),
            ("ip", "999.1.1.1", False),
            ("ipv4", "::1", False),
            ("ipv6", "::1", True),
            ("url", "https://example.com/path", True),
            ("url", "not a url", False),
        ],
    )
    def test_string_formats(self, name, value, passes):
        assert (run_filters("string", {name: (True, "")}, value) is None) is passes

    def test_string_format_negated(self):
        _, message = run_filters("string", {"email": (False, "")}, "user@example.com")
        assert message == 'Expected string "user@example.com" to not be email'

    def test_string_contents(self):
        filters = {
            "startsWith": ("ab", ""),
            "endsWith": ("yz", ""),
            "includes": ("m", ""),
            "excludes": ("q", ""),
        }
        assert run_filters("string", filters, "abmyz") is None
        _, message = run_filters("string", filters, "abqmyz")
        assert message == 'Expected string "abqmyz" not to include "q"'

    def test_pattern_searches(self):
        filters = {"pattern": (re.compile(r"\d+"), "")}
        assert run_filters("string", filters, "abc123") is None
        _, message = run_filters("string", filters, "abc")
        assert message == 'Expected string "abc" to respect the regex pattern /\\d+/'
