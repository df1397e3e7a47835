from __future__ import annotations

from typing import List, Optional, Tuple


class WKTNode:
    """Node of a WKT string split into a tree.

    ``value`` is the keyword for a bracketed node, or the literal token of a
    leaf. Quoted literals keep their surrounding quotes (and doubled inner
    quotes) so that a tree can be replayed verbatim; use :func:`unquote` to
    get the text.
    """

    __slots__ = ("_value", "_children")

    def __init__(self, value: str, children: Optional[List["WKTNode"]] = None):
        self._value = value
        self._children: List[WKTNode] = list(children or [])

    @property
    def value(self) -> str:
        return self._value

    @property
    def children(self) -> Tuple["WKTNode", ...]:
        return tuple(self._children)

    @property
    def is_quoted(self) -> bool:
        return len(self._value) >= 2 and self._value[0] == '"' and self._value[-1] == '"'

    def add_child(self, child: "WKTNode") -> None:
        self._children.append(child)

    def look_for_child(self, name: str, occurrence: int = 0) -> Optional["WKTNode"]:
        """Return the ``occurrence``-th child whose keyword matches ``name`` (case-insensitive)."""
        up = name.upper()
        seen = 0
        for c in self._children:
            if c._value.upper() == up:
                if seen == occurrence:
                    return c
                seen += 1
        return None

    def look_for_any_child(self, *names: str) -> Optional["WKTNode"]:
        for n in names:
            found = self.look_for_child(n)
            if found is not None:
                return found
        return None

    def count_children_of_name(self, name: str) -> int:
        up = name.upper()
        return sum(1 for c in self._children if c._value.upper() == up)

    def to_string(self) -> str:
        if not self._children:
            return self._value
        return self._value + "[" + ",".join(c.to_string() for c in self._children) + "]"

    @staticmethod
    def create_from(text: str, start: int = 0) -> Tuple["WKTNode", int]:
        from .parser import parse_tree

        return parse_tree(text, start)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WKTNode):
            return NotImplemented
        return self._value == other._value and self._children == other._children

    def __repr__(self) -> str:
        return f"WKTNode({self._value!r}, {len(self._children)} children)"


def unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == '"' and value[-1] == '"':
        return value[1:-1].replace('""', '"')
    return value


__all__ = ["WKTNode", "unquote"]
