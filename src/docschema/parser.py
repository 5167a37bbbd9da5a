"""Comment block parsing for source strings and files."""

from __future__ import annotations

import logging
import os
import re
from collections.abc import Sequence
from functools import partial
from typing import Callable

from .base import DocSchemaError, SourceReadError
from .cache import AstCache
from .extractors import extract_comments, parse_comment
from .models import Ast
from .scanner import dequote
from .settings import DocSchemaSettings

log = logging.getLogger(__name__)

# import './types.js'
_SIDE_EFFECT_IMPORT = re.compile(r"""^[ \t]*import\s*['"]([^'"\n]+)['"]""", re.MULTILINE)

Reader = Callable[[str], str]


def read_source(path: str, encoding: str = "utf-8") -> str:
    """Read a source file.

    Raises:
        SourceReadError: If the file cannot be opened or decoded.
    """
    try:
        with open(path, encoding=encoding) as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        raise SourceReadError(f"Cannot read source file {path}: {e}", path) from e


def extract_side_effect_imports(code: str) -> list[str]:
    """Specifiers of ``import '...'`` statements, in source order."""
    return _SIDE_EFFECT_IMPORT.findall(code)


def find_ast_for_line(asts: Sequence[Ast], line: int) -> Ast | None:
    """Find the block that declares the code on ``line``.

    A block ending on the line above matches, as does an inline ``@type``
    block starting on ``line``. When both exist the later one wins.
    """
    found = None
    for ast in asts:
        if line < ast.end_line:
            break
        if line == ast.end_line + 1 or (line == ast.start_line and ast.elements.type):
            found = ast
    return found


class DocSchemaParser:
    """Parses annotation comments into Ast blocks.

    ``parse_file`` results are cached per path in an AstCache, which may be
    shared between parsers.
    """

    def __init__(
        self,
        settings: DocSchemaSettings | None = None,
        cache: AstCache | None = None,
        reader: Reader | None = None,
    ):
        self.settings = settings or DocSchemaSettings()
        self.cache = cache if cache is not None else AstCache()
        self._reader = reader or partial(read_source, encoding=self.settings.encoding)

    def parse_comments(self, code: str, file: str = "") -> list[Ast]:
        """Parse every comment block of a source string.

        Typedef and callback blocks are collected into one ``local_typedefs``
        list shared by all returned blocks.

        Raises:
            SchemaError: If a block has malformed annotations. The error's
                ``location`` points at the block.
        """
        local_typedefs: list[Ast] = []
        asts = [
            Ast(
                elements=parse_comment(record, file),
                file=file,
                start_line=record.start_line,
                end_line=record.end_line,
                line_after_comment=record.line_after_comment,
                local_typedefs=local_typedefs,
            )
            for record in extract_comments(code)
        ]
        local_typedefs.extend(ast for ast in asts if ast.typedef_tag is not None)

        log.debug("Parsed %d comment blocks from %s", len(asts), file or "<string>")
        return asts

    def parse_file(self, path: str) -> list[Ast]:
        """Parse a file, following its relative imports for typedefs.

        Raises:
            SourceReadError: If the file or one of its imports cannot be read.
            SchemaError: If a block has malformed annotations.
        """
        return self._parse_file(os.path.normpath(path), frozenset())

    def remove_file_from_cache(self, path: str) -> None:
        self.cache.discard(os.path.normpath(path))

    def get_parsed_ast(self, path: str) -> list[Ast]:
        """Return the cached blocks of a file parsed earlier.

        Raises:
            DocSchemaError: If the file has not been parsed.
        """
        asts = self.cache.get(os.path.normpath(path))
        if asts is None:
            raise DocSchemaError(f"There is no parsed AST for file {path}")
        return asts

    def _parse_file(self, path: str, visiting: frozenset[str]) -> list[Ast]:
        return self.cache.get_or_create(path, lambda: self._build(path, visiting | {path}))

    def _build(self, path: str, visiting: frozenset[str]) -> list[Ast]:
        code = self._reader(path)
        asts = self.parse_comments(code, path)
        if not self.settings.follow_imports or not asts:
            return asts

        directory = os.path.dirname(path)
        ambient: list[Ast] = []
        imported: list[Ast] = []

        for specifier in extract_side_effect_imports(code):
            target_asts = self._load_import(directory, specifier, visiting)
            for ast in target_asts:
                if ast.typedef_tag is not None and ast not in ambient:
                    ambient.append(ast)
            if target_asts:
                ambient.extend(a for a in target_asts[0].ambient_typedefs if a not in ambient)

        for ast in asts:
            for tag in ast.elements.imports:
                # @import {A, B} from './types.js'
                if tag.tag_name != "from" or not tag.description:
                    continue
                names = {name.strip() for name in tag.type_expression.split(",") if name.strip()}
                for candidate in self._load_import(directory, dequote(tag.description), visiting):
                    typedef = candidate.typedef_tag
                    if typedef is not None and typedef.tag_name in names and candidate not in imported:
                        imported.append(candidate)

        for ast in asts:
            ast.ambient_typedefs = ambient
            ast.imported_typedefs = imported
        return asts

    def _load_import(self, directory: str, specifier: str, visiting: frozenset[str]) -> list[Ast]:
        if not specifier.startswith("."):
            log.debug("Skipping non-relative import %s", specifier)
            return []

        target = os.path.normpath(os.path.join(directory, specifier))
        if target in visiting:
            log.debug("Import cycle through %s, not following it again", target)
            return []
        return self._parse_file(target, visiting)
