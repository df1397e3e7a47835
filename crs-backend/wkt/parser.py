"""Recursive-descent parser for the bracketed WKT grammar.

    node := IDENT ('[' node (',' node)* ']')? | QUOTED_STRING | NUMBER

``(`` / ``)`` are accepted in place of ``[`` / ``]`` (WKT1 allows both) but a
node must be closed with the bracket that opened it.
"""
from __future__ import annotations

import logging
import os
from typing import Any, List, Optional, Tuple

from app.errors import ParsingError
from .dialect import WKTGuessedDialect, guess_dialect
from .node import WKTNode

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 16

_CLOSING = {"[": "]", "(": ")"}
_DELIMITERS = '[](),"'


def _max_depth() -> int:
    raw = os.getenv("GEOTEXT_WKT_MAX_DEPTH")
    if raw:
        try:
            return max(1, int(raw))
        except ValueError:
            logger.debug("ignoring invalid GEOTEXT_WKT_MAX_DEPTH=%r", raw)
    return DEFAULT_MAX_DEPTH


def _skip_ws(text: str, i: int) -> int:
    n = len(text)
    while i < n and text[i].isspace():
        i += 1
    return i


def _read_token(text: str, i: int) -> Tuple[str, int, bool]:
    n = len(text)
    if text[i] == '"':
        j = i + 1
        while True:
            k = text.find('"', j)
            if k < 0:
                raise ParsingError(f"unterminated quoted string starting at offset {i}")
            if k + 1 < n and text[k + 1] == '"':
                j = k + 2
                continue
            return text[i : k + 1], k + 1, True
    j = i
    while j < n and text[j] not in _DELIMITERS and not text[j].isspace():
        j += 1
    if j == i:
        raise ParsingError(f"unexpected character {text[i]!r} at offset {i}")
    return text[i:j], j, False


def _parse(text: str, i: int, level: int, max_depth: int) -> Tuple[WKTNode, int]:
    if level >= max_depth:
        raise ParsingError(f"too many nesting levels (maximum is {max_depth})")
    i = _skip_ws(text, i)
    if i >= len(text):
        raise ParsingError(f"unexpected end of string at offset {i}")

    value, i, quoted = _read_token(text, i)
    node = WKTNode(value)
    i = _skip_ws(text, i)
    if i >= len(text) or text[i] not in _CLOSING:
        return node, i
    if quoted:
        raise ParsingError(f"a quoted string cannot open a node (offset {i})")

    closing = _CLOSING[text[i]]
    i = _skip_ws(text, i + 1)
    if i < len(text) and text[i] == closing:
        return node, i + 1
    while True:
        child, i = _parse(text, i, level + 1, max_depth)
        node.add_child(child)
        i = _skip_ws(text, i)
        if i >= len(text):
            raise ParsingError(f"missing '{closing}' to close {value}")
        c = text[i]
        if c == ",":
            i += 1
        elif c == closing:
            return node, i + 1
        else:
            raise ParsingError(f"unexpected character {c!r} at offset {i} in {value}")


def parse_tree(text: str, start: int = 0) -> Tuple[WKTNode, int]:
    """Parse one node starting at ``start``; return it with the offset just past it."""
    if not isinstance(text, str):
        raise ParsingError("WKT input must be a string")
    return _parse(text, start, 0, _max_depth())


def parse_tree_full(text: str) -> WKTNode:
    """Parse ``text`` as exactly one node; trailing content is an error."""
    node, end = parse_tree(text, 0)
    end = _skip_ws(text, end)
    if end != len(text):
        raise ParsingError(f"extra content after end of WKT at offset {end}")
    return node


class WKTParser:
    """Parse WKT strings into domain objects.

    Not thread-safe: one instance per logical thread.
    """

    def __init__(self) -> None:
        self._db = None
        self._strict = False
        self._warnings: List[str] = []

    def attach_database_context(self, context: Any) -> "WKTParser":
        self._db = context
        return self

    def set_strict(self, strict: bool) -> "WKTParser":
        self._strict = bool(strict)
        return self

    @property
    def strict(self) -> bool:
        return self._strict

    @property
    def database_context(self) -> Optional[Any]:
        return self._db

    def warning_list(self) -> List[str]:
        return list(self._warnings)

    def emit_warning(self, msg: str) -> None:
        """Record a non-fatal anomaly, or raise it in strict mode."""
        if self._strict:
            raise ParsingError(msg)
        logger.debug("wkt warning: %s", msg)
        self._warnings.append(msg)

    def create_from_wkt(self, text: str):
        from .builder import WKTObjectBuilder

        self._warnings = []
        root = parse_tree_full(text)
        dialect = guess_dialect(text)
        return WKTObjectBuilder(self, dialect).build(root)

    def guess_dialect(self, text: str) -> WKTGuessedDialect:
        return guess_dialect(text)


__all__ = [
    "DEFAULT_MAX_DEPTH",
    "parse_tree",
    "parse_tree_full",
    "WKTParser",
]
