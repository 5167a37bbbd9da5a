"""Filter literals: parsing, allow-lists and runtime checks.

A filter literal is the ``{...}`` object that may follow a tag or an object
literal field, for example::

    @param {string} name - User name { min: 2, max: [64, 'Name is too long'] }

Filters are parsed with a small literal reader (numbers, strings, booleans,
regular expression literals and ``[value, "message"]`` pairs); nothing in the
text is ever executed.
"""

from __future__ import annotations

import ipaddress
import math
import re
from typing import Any, Callable, Sequence

from pydantic import AnyUrl, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .base import SchemaError
from .models import FailedFilter, Filters, NullType, ParsedType, UndefinedType
from .scanner import NUMBER_LITERAL, QUOTES, find_closing_bracket

# category -> filter name -> expected kind of the filter value
FILTER_KINDS: dict[str, dict[str, str]] = {
    "array": {
        "min": "number",
        "max": "number",
        "length": "number",
    },
    "number": {
        "min": "number",
        "max": "number",
        "gte": "number",
        "lte": "number",
        "gt": "number",
        "lt": "number",
        "step": "number",
        "int": "boolean",
        "finite": "boolean",
        "safeInt": "boolean",
    },
    "string": {
        "min": "number",
        "max": "number",
        "length": "number",
        "startsWith": "string",
        "endsWith": "string",
        "includes": "string",
        "excludes": "string",
        "pattern": "regex",
        "url": "boolean",
        "ip": "boolean",
        "ipv4": "boolean",
        "ipv6": "boolean",
        "email": "boolean",
        "cuid": "boolean",
        "cuid2": "boolean",
        "ulid": "boolean",
        "uuid": "boolean",
    },
}

_IDENTIFIER = re.compile(r"[A-Za-z_$][\w$]*")
_ESCAPES = {"n": "\n", "r": "\r", "t": "\t", "0": "\0"}
_REGEX_FLAGS = {"i": re.IGNORECASE, "m": re.MULTILINE, "s": re.DOTALL}
_IGNORED_REGEX_FLAGS = frozenset("guyd")


# --- Literal reader ---------------------------------------------------------


class _LiteralReader:
    """Recursive descent reader for filter object literals."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def read(self) -> dict[str, Any]:
        result = self._object()
        self._skip_whitespace()
        if self.pos != len(self.text):
            self._fail("unexpected text after the closing brace")
        return result

    def _fail(self, reason: str) -> None:
        raise SchemaError(
            f"Invalid filter literal {self.text!r}: {reason} at position {self.pos}"
        )

    def _skip_whitespace(self) -> None:
        while self.pos < len(self.text) and self.text[self.pos].isspace():
            self.pos += 1

    def _peek(self) -> str:
        self._skip_whitespace()
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _expect(self, char: str) -> None:
        if self._peek() != char:
            self._fail(f"expected {char!r}")
        self.pos += 1

    def _object(self) -> dict[str, Any]:
        self._expect("{")
        result: dict[str, Any] = {}
        while self._peek() != "}":
            key = self._key()
            self._expect(":")
            result[key] = self._value(allow_pair=True)
            if self._peek() == ",":
                self.pos += 1
            elif self._peek() != "}":
                self._fail("expected ',' or '}'")
        self.pos += 1
        return result

    def _key(self) -> str:
        if self._peek() in QUOTES:
            return self._string()
        match = _IDENTIFIER.match(self.text, self.pos)
        if not match:
            self._fail("expected a filter name")
        self.pos = match.end()
        return match.group(0)

    def _value(self, allow_pair: bool = False) -> Any:
        char = self._peek()
        if char in QUOTES:
            return self._string()
        if char == "/":
            return self._regex()
        if char == "[" and allow_pair:
            return self._pair()
        for word, value in (("true", True), ("false", False)):
            if self.text.startswith(word, self.pos):
                self.pos += len(word)
                return value
        match = NUMBER_LITERAL.match(self.text, self.pos)
        if match:
            self.pos = match.end()
            return _to_number(match.group(0))
        self._fail("expected a number, string, boolean, regex or [value, message]")

    def _pair(self) -> tuple[Any, str]:
        self._expect("[")
        value = self._value()
        message = ""
        if self._peek() == ",":
            self.pos += 1
            if self._peek() not in ("]", ""):
                if self._peek() not in QUOTES:
                    self._fail("the custom message must be a string")
                message = self._string()
                if self._peek() == ",":
                    self.pos += 1
        self._expect("]")
        return value, message

    def _string(self) -> str:
        quote = self.text[self.pos]
        chars: list[str] = []
        self.pos += 1
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char == "\\" and self.pos + 1 < len(self.text):
                following = self.text[self.pos + 1]
                chars.append(_ESCAPES.get(following, following))
                self.pos += 2
                continue
            if char == quote:
                self.pos += 1
                return "".join(chars)
            chars.append(char)
            self.pos += 1
        self._fail("unterminated string")

    def _regex(self) -> re.Pattern[str]:
        start = self.pos
        self.pos += 1
        in_class = False
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char == "\\":
                self.pos += 2
                continue
            if char == "[":
                in_class = True
            elif char == "]":
                in_class = False
            elif char == "/" and not in_class:
                break
            self.pos += 1
        else:
            self._fail("unterminated regular expression")

        source = self.text[start + 1 : self.pos]
        self.pos += 1
        flags_start = self.pos
        while self.pos < len(self.text) and self.text[self.pos].isalpha():
            self.pos += 1
        return _compile_regex(source, self.text[flags_start : self.pos])


def _to_number(text: str) -> int | float:
    if text.endswith("Infinity"):
        return -math.inf if text.startswith("-") else math.inf
    if any(c in text for c in ".eE"):
        return float(text)
    return int(text)


def _compile_regex(source: str, flags: str) -> re.Pattern[str]:
    """Compile a JavaScript-style regex literal body with its flags."""
    compiled_flags = 0
    for flag in flags:
        if flag in _REGEX_FLAGS:
            compiled_flags |= _REGEX_FLAGS[flag]
        elif flag not in _IGNORED_REGEX_FLAGS:
            raise SchemaError(f"Unknown regular expression flag {flag!r} in /{source}/{flags}")
    # Named groups are spelled (?<name>...) in JavaScript
    source = re.sub(r"\(\?<(?=[A-Za-z_])", "(?P<", source)
    try:
        return re.compile(source, compiled_flags)
    except re.error as e:
        raise SchemaError(f"Invalid regular expression /{source}/{flags}: {e}") from e


def read_filter_literal(text: str) -> dict[str, Any]:
    """Read a ``{...}`` filter literal into a plain dict.

    ``[value, "message"]`` pairs become tuples; everything else is returned
    as the bare value.

    Raises:
        SchemaError: If the literal is malformed.
    """
    return _LiteralReader(text.strip()).read()


# --- Parse-time checks ------------------------------------------------------


def _is_kind(value: Any, kind: str) -> bool:
    if kind == "number":
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if kind == "boolean":
        return isinstance(value, bool)
    if kind == "string":
        return isinstance(value, str)
    if kind == "regex":
        return isinstance(value, re.Pattern)
    return False


def _kind_name(value: Any) -> str:
    for kind in ("boolean", "number", "string", "regex"):
        if _is_kind(value, kind):
            return kind
    return type(value).__name__


def check_filters_allowed(parsed_type: ParsedType, filters: Filters, literal: str = "") -> None:
    """Validate filter names and value kinds against the type's allow-list.

    null and undefined alternatives are skipped: they only mark a value as
    nullable or optional, and filters never run against them.

    Raises:
        SchemaError: If the type takes no filters, a filter name is unknown,
            or a filter value has the wrong kind.
    """
    if not filters or isinstance(parsed_type, (NullType, UndefinedType)):
        return

    category = parsed_type.category
    if category is None:
        raise SchemaError(
            f"Type {parsed_type.type_expression!r} doesn't work when filters are used."
            " Filters only work on array, number or string types."
        )

    allowed = FILTER_KINDS[category]
    for name, (value, _) in filters.items():
        if name not in allowed:
            valid = ", ".join(f'"{key}"' for key in allowed)
            raise SchemaError(
                f'"{name}" is not a valid filter for {category}s. Use any of these: {valid}.'
            )
        expected_kind = allowed[name]
        if not _is_kind(value, expected_kind):
            raise SchemaError(
                f'The value of "{name}" has wrong type. The type is {_kind_name(value)},'
                f" but it must be {expected_kind}. In {literal or filters}"
            )
        if name == "step" and value == 0:
            raise SchemaError(f'The value of "step" must not be 0. In {literal or filters}')


def _flatten_description(text: str) -> str:
    text = re.sub(r"^\s*-?\s*", "", text, count=1)
    return text.replace("\r", "").replace("\n", " ")


def parse_filters(text: str, types: Sequence[ParsedType]) -> tuple[str, Filters]:
    """Split a description tail into its description and its filters.

    Args:
        text: Free text after the tag name (or after a field's // marker)
        types: Already parsed types of the owning tag or field

    Returns:
        (description, filters) where every filter is normalised to a
        (value, custom message) tuple.

    Raises:
        SchemaError: If the filter literal is malformed or not allowed for
            one of the types.
    """
    if not text:
        return "", {}

    description = _flatten_description(text)
    open_position = description.find("{")
    if open_position == -1:
        return description.strip(), {}

    close_offset = find_closing_bracket(description, open_position)
    if close_offset == 0:
        return description.strip(), {}

    end = open_position + close_offset + 1
    literal = description[open_position:end]
    parts = (description[:open_position].strip(), description[end:].strip())
    description = " ".join(part for part in parts if part)

    filters: Filters = {}
    for name, value in read_filter_literal(literal).items():
        filters[name] = value if isinstance(value, tuple) else (value, "")

    for parsed_type in types:
        check_filters_allowed(parsed_type, filters, literal)

    return description, filters


# --- Runtime checks ---------------------------------------------------------

# A checker returns None when the value passes, or the default failure message
Checker = Callable[[Any, Any], "str | None"]

_CHECKERS: dict[str, dict[str, Checker]] = {"array": {}, "number": {}, "string": {}}

_STRING_FORMATS = {
    "email": re.compile(
        r"(?!\.)(?!.*\.\.)([A-Z0-9_+-\.]*)[A-Z0-9_+-]@([A-Z0-9][A-Z0-9\-]*\.)+[A-Z]{2,}",
        re.IGNORECASE,
    ),
    "cuid": re.compile(r"c[^\s-]{8,}", re.IGNORECASE),
    "cuid2": re.compile(r"[a-z][a-z0-9]*"),
    "ulid": re.compile(r"[0-9A-HJKMNP-TV-Z]{26}"),
    "uuid": re.compile(
        r"[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}", re.IGNORECASE
    ),
}

_URL_ADAPTER = TypeAdapter(AnyUrl)

MAX_SAFE_INTEGER = 2**53 - 1


def _register(category: str, *names: str) -> Callable[[Checker], Checker]:
    """Register a checker for one or more filter names of a category."""

    def decorator(func: Checker) -> Checker:
        for name in names:
            _CHECKERS[category][name] = func
        return func

    return decorator


def _number(value: float) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _array(value: Sequence[Any], max_symbols: int = 30) -> str:
    text = ",".join(str(item) for item in value)
    if len(text) > max_symbols:
        text = f"{text[: max_symbols - 4]} ..."
    return f"[{text}]"


def _toggle(label: str, matches: bool, value: str, expected: bool) -> str | None:
    if expected and not matches:
        return f'Expected string "{value}" to be {label}'
    if not expected and matches:
        return f'Expected string "{value}" to not be {label}'
    return None


def _is_url(value: str) -> bool:
    try:
        _URL_ADAPTER.validate_python(value)
    except PydanticValidationError:
        return False
    return True


def _is_ip(value: str, version: int | None = None) -> bool:
    try:
        address = ipaddress.ip_address(value)
    except ValueError:
        return False
    return version is None or address.version == version


@_register("array", "min")
def _array_min(value, expected):
    if len(value) < expected:
        return f'Expected array "{_array(value)}" to have {_number(expected)} or more elements'
    return None


@_register("array", "max")
def _array_max(value, expected):
    if len(value) > expected:
        return f'Expected array "{_array(value)}" to have {_number(expected)} or less elements'
    return None


@_register("array", "length")
def _array_length(value, expected):
    if len(value) != expected:
        return f'Expected array "{_array(value)}" to have exactly {_number(expected)} elements'
    return None


@_register("number", "min", "gte")
def _number_min(value, expected):
    if value < expected:
        return f"Expected number {_number(value)} to be {_number(expected)} or higher"
    return None


@_register("number", "max", "lte")
def _number_max(value, expected):
    if value > expected:
        return f"Expected number {_number(value)} to be {_number(expected)} or lower"
    return None


@_register("number", "gt")
def _number_gt(value, expected):
    if value <= expected:
        return f"Expected number {_number(value)} to be higher than {_number(expected)}"
    return None


@_register("number", "lt")
def _number_lt(value, expected):
    if value >= expected:
        return f"Expected number {_number(value)} to be lower than {_number(expected)}"
    return None


@_register("number", "step")
def _number_step(value, expected):
    if value % expected != 0:
        return f"Expected number {_number(value)} to be multiple of {_number(expected)}"
    return None


def _is_integer(value: float) -> bool:
    return isinstance(value, int) or (math.isfinite(value) and value.is_integer())


@_register("number", "int")
def _number_int(value, expected):
    is_integer = _is_integer(value)
    if expected and not is_integer:
        return f"Expected number {_number(value)} to be integer"
    if not expected and is_integer:
        return f"Expected number {_number(value)} not to be integer"
    return None


@_register("number", "finite")
def _number_finite(value, expected):
    is_finite = math.isfinite(value)
    if expected and not is_finite:
        return f"Expected number {_number(value)} to be finite"
    if not expected and is_finite:
        return f"Expected number {_number(value)} not to be finite"
    return None


@_register("number", "safeInt")
def _number_safe_int(value, expected):
    if not _is_integer(value):
        return f"Expected number {_number(value)} to be integer"
    is_safe = -MAX_SAFE_INTEGER <= value <= MAX_SAFE_INTEGER
    if expected and not is_safe:
        return f"Expected number {_number(value)} to be safe"
    if not expected and is_safe:
        return f"Expected number {_number(value)} not to be safe"
    return None


@_register("string", "min")
def _string_min(value, expected):
    if len(value) < expected:
        return f'Expected string "{value}" to be at least {_number(expected)} characters long'
    return None


@_register("string", "max")
def _string_max(value, expected):
    if len(value) > expected:
        return f'Expected string "{value}" to be max {_number(expected)} characters long'
    return None


@_register("string", "length")
def _string_length(value, expected):
    if len(value) != expected:
        return f'Expected string "{value}" to be exactly {_number(expected)} characters long'
    return None


@_register("string", "startsWith")
def _string_starts_with(value, expected):
    if not value.startswith(expected):
        return f'Expected string "{value}" to start with "{expected}"'
    return None


@_register("string", "endsWith")
def _string_ends_with(value, expected):
    if not value.endswith(expected):
        return f'Expected string "{value}" to end with "{expected}"'
    return None


@_register("string", "includes")
def _string_includes(value, expected):
    if expected not in value:
        return f'Expected string "{value}" to include "{expected}"'
    return None


@_register("string", "excludes")
def _string_excludes(value, expected):
    if expected in value:
        return f'Expected string "{value}" not to include "{expected}"'
    return None


@_register("string", "pattern")
def _string_pattern(value, expected):
    if expected.search(value) is None:
        return f'Expected string "{value}" to respect the regex pattern /{expected.pattern}/'
    return None


@_register("string", "url")
def _string_url(value, expected):
    return _toggle("URL", _is_url(value), value, expected)


@_register("string", "ip")
def _string_ip(value, expected):
    return _toggle("IP address", _is_ip(value), value, expected)


@_register("string", "ipv4")
def _string_ipv4(value, expected):
    return _toggle("ipv4", _is_ip(value, 4), value, expected)


@_register("string", "ipv6")
def _string_ipv6(value, expected):
    return _toggle("ipv6", _is_ip(value, 6), value, expected)


def _format_checker(name: str) -> Checker:
    pattern = _STRING_FORMATS[name]

    def check(value, expected):
        return _toggle(name, pattern.fullmatch(value) is not None, value, expected)

    return check


for _name in _STRING_FORMATS:
    _register("string", _name)(_format_checker(_name))


def run_filters(category: str, filters: Filters, value: Any) -> tuple[FailedFilter, str] | None:
    """Apply filters of one category to a value that matched that category.

    Filters run in declaration order and stop at the first failure.

    Returns:
        None when every filter passes, otherwise the failed filter and the
        error message (the custom message when one was given).

    Raises:
        SchemaError: If a filter is not registered for the category. Parsing
            rejects such filters, so this only happens for hand-built tags.
    """
    checkers = _CHECKERS[category]
    for name, (expected, custom_message) in filters.items():
        checker = checkers.get(name)
        if checker is None:
            raise SchemaError(f'"{name}" is not a valid filter for {category}s')
        message = checker(value, expected)
        if message is not None:
            return FailedFilter(name, expected), custom_message or message
    return None
