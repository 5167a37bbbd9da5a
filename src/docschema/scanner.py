"""String scanning helpers shared by the tag, type and filter parsers.

All helpers are pure functions. Offsets returned by the ``find_*`` helpers
are relative to ``start``, and 0 means "not found".
"""

from __future__ import annotations

import re

from .base import AnnotationSyntaxError

BRACKET_PAIRS = {"(": ")", "[": "]", "<": ">", "{": "}"}
QUOTES = ("'", '"', "`")

# Numeric literal as written in annotations: 42, -1.5, .5, 1e3, Infinity
NUMBER_LITERAL = re.compile(r"-?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?|-?Infinity")

_COMMENT_MARKERS = re.compile(r"^\s*//\s*|\n\s*//\s*", re.MULTILINE)


def find_closing_bracket(text: str, start: int = 0) -> int:
    """Find the bracket closing the one at ``start``.

    Only brackets of the same kind are counted for nesting.

    Args:
        text: The string to scan
        start: Position of the opening bracket

    Returns:
        Offset of the closing bracket from ``start``, or 0 if ``start`` is not
        an opening bracket or the bracket is never closed.
    """
    if start >= len(text):
        return 0
    opening = text[start]
    closing = BRACKET_PAIRS.get(opening)
    if closing is None:
        return 0

    depth = 0
    for position in range(start, len(text)):
        char = text[position]
        if char == opening:
            depth += 1
        elif char == closing:
            depth -= 1
            if depth == 0:
                return position - start
    return 0


def find_closing_quote(text: str, start: int = 0) -> int:
    """Find the next unescaped quote matching the one at ``start``.

    Returns:
        Offset of the closing quote from ``start``, or 0 if there is none.
    """
    if start >= len(text) or text[start] not in QUOTES:
        return 0
    quote = text[start]
    position = start + 1
    while True:
        end = text.find(quote, position)
        if end == -1:
            return 0
        if text[end - 1] != "\\":
            return end - start
        position = end + 1


def find_eol(text: str, start: int = 0) -> int:
    """Offset of the next newline from ``start``, or of the last character."""
    position = text.find("\n", start)
    if position < 0:
        position = max(len(text) - 1, 0)
    return position - start


def remove_wrapping_braces(text: str) -> str:
    """Strip one pair of parentheses wrapping the whole (trimmed) text."""
    text = text.strip()
    if text.startswith("(") and find_closing_bracket(text) == len(text) - 1:
        return text[1:-1].strip()
    return text


def dequote(text: str) -> str:
    """Remove matching quotes around a string literal."""
    text = text.strip()
    if len(text) >= 2 and text[0] in QUOTES and text[-1] == text[0]:
        return text[1:-1]
    return text


def split_top_level(expression: str, separators: tuple[str, ...] | str = ("|",)) -> list[str]:
    """Split on separators that are not inside brackets, quotes or // comments.

    The expression is trimmed and one wrapping pair of parentheses is removed
    first. Every member is trimmed.

    Args:
        expression: Text to split
        separators: One or more single-character separators

    Returns:
        The members, always at least one (possibly empty).
    """
    expression = remove_wrapping_braces(expression)
    members: list[str] = []
    start = 0
    previous = ""
    position = 0
    length = len(expression)

    while position < length:
        char = expression[position]
        if char in separators:
            members.append(expression[start:position].strip())
            start = position + 1
        elif char in BRACKET_PAIRS:
            position += find_closing_bracket(expression, position)
        elif char in QUOTES:
            position += find_closing_quote(expression, position)
        elif char == "/" and previous == "/":
            position += find_eol(expression, position)
        previous = char
        position += 1

    members.append(expression[start:].strip())
    return members


def flatten_comment(text: str) -> str:
    """Join the lines of one or more // comments with single spaces."""
    return _COMMENT_MARKERS.sub(" ", text).strip()


def isolate_leading_comment(expression: str) -> tuple[str, str]:
    """Peel // comments that precede the substantive part of an expression.

    Returns:
        (comment, rest), both trimmed. Multi-line comments are joined with
        a space.

    Raises:
        AnnotationSyntaxError: If a single '/' appears where a comment or the
            expression should start.
    """
    length = len(expression)
    position = 0

    while position < length:
        char = expression[position]
        if char.isspace():
            position += 1
        elif char == "/":
            if not expression.startswith("//", position):
                raise AnnotationSyntaxError(
                    f'Unexpected single slash in expression "{expression}"'
                )
            newline = expression.find("\n", position)
            position = length if newline == -1 else newline + 1
        else:
            break

    return flatten_comment(expression[:position]), expression[position:].strip()


def isolate_trailing_comment(expression: str) -> tuple[str, str]:
    """Peel the // comment that follows the substantive part of an expression.

    Bracketed and quoted spans are skipped, so ``{a: 1} // x`` splits after
    the closing brace and ``'http://'`` is never cut.

    Returns:
        (rest, comment), both trimmed.
    """
    position = 0
    length = len(expression)

    while position < length:
        char = expression[position]
        if char in BRACKET_PAIRS:
            position += find_closing_bracket(expression, position)
        elif char in QUOTES:
            position += find_closing_quote(expression, position)
        elif expression.startswith("//", position):
            return (
                expression[:position].strip(),
                flatten_comment(expression[position + 2 :]),
            )
        position += 1

    return expression.strip(), ""
