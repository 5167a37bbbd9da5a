"""Annotation comment extractors.

Finds ``/** ... */`` blocks in source text and turns each into AstElements:
description, scope and the parsed tags.
"""

from __future__ import annotations

import bisect
import re
from dataclasses import replace

from .base import SchemaError
from .filters import parse_filters
from .models import AstElements, CommentRecord, Scope, SourceLocation, Tag
from .scanner import find_closing_bracket
from .typeparser import parse_type

# Alias -> canonical tag name
TAG_REPLACEMENTS = {
    "@virtual": "@abstract",
    "@extends": "@augments",
    "@constructor": "@class",
    "@const": "@constant",
    "@defaultvalue": "@default",
    "@desc": "@description",
    "@host": "@external",
    "@fileoverview": "@file",
    "@overview": "@file",
    "@emits": "@fires",
    "@func": "@function",
    "@method": "@function",
    "@var": "@member",
    "@arg": "@param",
    "@argument": "@param",
    "@prop": "@property",
    "@return": "@returns",
    "@exception": "@throws",
    "@yield": "@yields",
    "@linkcode": "@link",
    "@linkplain": "@link",
}

SINGLE_TAGS = ("type", "enum", "typedef", "callback", "returns", "yields")
MULTI_TAGS = ("param", "property", "import")

# Tags whose first word after the type is the tag's own identifier
NAMED_TAGS = frozenset({"param", "property", "import", "typedef", "callback"})

_COMMENT = re.compile(
    r"(/\*\*[\t ]*\r?\n(?:[ \t]* \*.*\r?\n)+[ \t*]*\*/|/\*\*.*?\*/)"
    r"(?:\s*\r?\n)*(\s*[^\s/].*)?"
)
_STARS = re.compile(r"\n?[ \t]*\*/$|^[ \t]*(?:/\*\* *\r?\n?| \* *)", re.MULTILINE)
_SYNONYM = re.compile(r"@[a-z]+")
_USED_TAG = re.compile(r"^[ \t]*@([a-zA-Z]+)(?: .*)?$")
_TAG_PREFIX = re.compile(r"^[ \t]*@[a-z]+[ \t]*")
_OPTIONAL_NAME = re.compile(r"\[(?P<name>[^\]=]+)(?:=(?P<default>[^=]+))?\]")
_OPTIONAL_TYPE = re.compile(r"(?P<type>.+)= *", re.DOTALL)
_TAG_LINE_PATTERNS: dict[str, re.Pattern[str]] = {}


def _line_starts(code: str) -> list[int]:
    """Offsets where each line starts; index 0 is line 1."""
    return [0] + [m.end() for m in re.finditer(r"\n", code)]


def _line_number(line_starts: list[int], offset: int) -> int:
    return bisect.bisect_right(line_starts, offset)


def extract_comments(code: str) -> list[CommentRecord]:
    """Find every annotation comment block in source text.

    Both forms are recognised: a single-line ``/** ... */`` and a multi-line
    block where every interior line starts with an aligned ``*``.

    Args:
        code: Source text

    Returns:
        Comment records in source order.
    """
    line_starts = _line_starts(code)
    records: list[CommentRecord] = []

    for match in _COMMENT.finditer(code):
        comment = match.group(1)
        index = match.start()
        records.append(
            CommentRecord(
                text=comment,
                index=index,
                start_line=_line_number(line_starts, index),
                end_line=_line_number(line_starts, index + len(comment)),
                line_after_comment=(match.group(2) or "").strip(),
            )
        )

    return records


def fix_tag_synonyms(comment: str) -> str:
    """Rewrite alternate tag spellings (``@arg``, ``@return``) to canonical names."""
    return _SYNONYM.sub(lambda m: TAG_REPLACEMENTS.get(m.group(0), m.group(0)), comment)


def remove_stars(comment: str) -> str:
    """Strip the comment delimiters and the leading ``*`` of every line."""
    return _STARS.sub("", comment.strip())


def chop_comment(comment: str) -> list[str]:
    """Split a star-less comment into trimmed lines."""
    return [line.strip() for line in comment.replace("\r", "").split("\n")]


def extract_used_tags(lines: list[str]) -> set[str]:
    used: set[str] = set()
    for line in lines:
        match = _USED_TAG.match(line)
        if match:
            used.add(match.group(1))
    return used


def extract_tag_lines(lines: list[str], tag: str) -> list[str]:
    """Collect every occurrence of a tag together with its continuation lines.

    A continuation line is any following line that does not start a tag.
    Lines are joined with ``\\n``.
    """
    pattern = _TAG_LINE_PATTERNS.get(tag)
    if pattern is None:
        pattern = _TAG_LINE_PATTERNS.setdefault(tag, re.compile(rf"^@{tag}(?!\w)"))

    occurrences: list[str] = []
    current: list[str] | None = None

    for line in lines:
        if pattern.match(line):
            if current:
                occurrences.append("\n".join(current))
            current = [line]
        elif line.startswith("@"):
            if current:
                occurrences.append("\n".join(current))
            current = None
        elif current is not None:
            current.append(line)

    if current:
        occurrences.append("\n".join(current))

    return occurrences


def parse_description(lines: list[str]) -> str:
    """Free text before the first tag plus every ``@description`` body.

    Consecutive lines are joined with a space, blank lines become a newline,
    and each ``@description`` starts on a new line.
    """
    description = ""
    collecting = True

    for line in lines:
        if line.startswith("@description"):
            if not description.endswith("\n"):
                description += "\n"
            description += line[len("@description") :].strip()
            collecting = True
        elif line.startswith("@"):
            collecting = False
        elif collecting:
            if not line:
                description += "\n"
            else:
                if not description.endswith("\n"):
                    description += " "
                description += line

    return description.strip()


def parse_scope(lines: list[str]) -> Scope:
    private = any(line.startswith("@private") for line in lines)
    protected = any(line.startswith("@protected") for line in lines)
    return Scope(private=private, protected=protected, public=not (private or protected))


def extract_tag_components(text: str, tag: str) -> Tag:
    """Parse one tag occurrence into a Tag.

    Order: leading ``{type}``, then the name (for named tags), optional
    markers, the parsed type, the description and filters, and finally the
    destructured ``owner.prop`` split.

    Raises:
        SchemaError: If the description carries an invalid filter literal.
    """
    rest = _TAG_PREFIX.sub("", text, count=1)

    type_expression = ""
    if rest.startswith("{"):
        close = find_closing_bracket(rest)
        if close > 0:
            type_expression = rest[1:close]
            rest = rest[close + 1 :]
    type_expression = type_expression.strip()

    tag_name = ""
    if tag in NAMED_TAGS:
        rest = rest.strip()
        parts = rest.split(maxsplit=1)
        if parts:
            tag_name = parts[0]
            rest = parts[1] if len(parts) > 1 else ""

    optional = False
    default_value = None
    match = _OPTIONAL_NAME.fullmatch(tag_name) if tag_name else None
    if match:
        optional = True
        tag_name = match.group("name")
        default_value = match.group("default")

    match = _OPTIONAL_TYPE.fullmatch(type_expression) if type_expression else None
    if match:
        optional = True
        type_expression = match.group("type").strip()

    # @import braces hold a list of names, not a type
    types = () if tag == "import" else tuple(parse_type(type_expression))

    description = ""
    filters = {}
    if rest.strip():
        description, filters = parse_filters(rest, types)

    destructured = None
    if "." in tag_name:
        owner, _, prop = tag_name.partition(".")
        destructured = (owner, prop.split(".")[0])

    return Tag(
        name=tag,
        type_expression=type_expression,
        types=types,
        tag_name=tag_name,
        description=description,
        filters=filters,
        optional=optional,
        default_value=default_value,
        destructured=destructured,
    )


def parse_single_tag(lines: list[str], tag: str) -> Tag | None:
    """Parse the last occurrence of a single-valued tag."""
    occurrences = extract_tag_lines(lines, tag)
    if not occurrences:
        return None
    return extract_tag_components(occurrences[-1], tag)


def parse_multi_tag(lines: list[str], tag: str) -> list[Tag]:
    """Parse every occurrence of a multi-valued tag and assign argument ids.

    A contiguous run of ``owner.prop`` tags replaces the ``owner`` tag that
    declared it.
    """
    tags = [extract_tag_components(text, tag) for text in extract_tag_lines(lines, tag)]
    tags = [t for t in tags if t.tag_name]

    # Walk backwards: the owner sits right before its run of properties
    name_to_delete = ""
    for index in range(len(tags) - 1, -1, -1):
        current = tags[index]
        if current.destructured:
            name_to_delete = current.destructured[0]
        elif name_to_delete and current.tag_name == name_to_delete:
            del tags[index]
            name_to_delete = ""

    numbered: list[Tag] = []
    position = -1
    previous_owner = ""
    for current in tags:
        owner = current.destructured[0] if current.destructured else ""
        if not owner or owner != previous_owner:
            position += 1
        previous_owner = owner
        numbered.append(replace(current, id=position))

    return numbered


def parse_lines(lines: list[str]) -> AstElements:
    """Build AstElements from the trimmed lines of one comment."""
    used = extract_used_tags(lines)
    elements = AstElements(
        description=parse_description(lines),
        scope=parse_scope(lines),
        strict="strict" in used,
    )

    for tag in SINGLE_TAGS:
        if tag in used:
            setattr(elements, tag, parse_single_tag(lines, tag))

    for tag in MULTI_TAGS:
        if tag in used:
            setattr(elements, "imports" if tag == "import" else tag, parse_multi_tag(lines, tag))

    return elements


def parse_comment(record: CommentRecord, file: str = "") -> AstElements:
    """Parse one comment block.

    Raises:
        SchemaError: With ``location`` pointing at the block.
    """
    comment = remove_stars(fix_tag_synonyms(record.text))
    try:
        return parse_lines(chop_comment(comment))
    except SchemaError as e:
        if e.location is None:
            e.location = SourceLocation(file, record.start_line, record.end_line)
        raise
