"""Per-file cache of parsed comment blocks."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from .models import Ast

log = logging.getLogger(__name__)


class AstCache:
    """Thread-safe path -> ASTs store with populate-once entries.

    The factory runs outside the lock, so two threads may parse the same
    never-cached file at the same time. Parsing is a pure function of the
    file contents, so the first stored result is kept and returned to both.
    """

    def __init__(self) -> None:
        self._entries: dict[str, list[Ast]] = {}
        self._lock = threading.Lock()

    def get(self, path: str) -> list[Ast] | None:
        with self._lock:
            return self._entries.get(path)

    def get_or_create(self, path: str, factory: Callable[[], list[Ast]]) -> list[Ast]:
        """Return the cached ASTs for ``path``, building them on a miss."""
        with self._lock:
            cached = self._entries.get(path)
        if cached is not None:
            log.debug("AST cache hit for %s", path)
            return cached

        log.debug("AST cache miss for %s", path)
        asts = factory()
        with self._lock:
            return self._entries.setdefault(path, asts)

    def discard(self, path: str) -> bool:
        """Drop one entry. Returns True if it was cached."""
        with self._lock:
            removed = self._entries.pop(path, None) is not None
        if removed:
            log.debug("Evicted %s from AST cache", path)
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, path: object) -> bool:
        with self._lock:
            return path in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
