"""Stateful writer of WKT strings.

Domain objects drive it through their ``_export_to_wkt(formatter)`` method:
``scoped_node`` (or ``start_node``/``end_node``) opens and closes keyword nodes, the ``add_*``
methods append leaf values, and the ``push_*``/``pop_*`` pairs (or their
context-manager forms) scope the overrides that decide whether units and
identifiers are written. Dialect knowledge lives in the ``_RULES`` table and
is only reached through the predicate methods.

An instance serves a single export call on a single thread.
"""
from __future__ import annotations

import enum
import math
import re
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, List, Optional, Sequence

from app.errors import FormattingError
from .node import WKTNode


class Convention(str, enum.Enum):
    WKT2 = "WKT2"
    WKT2_2015 = "WKT2"
    WKT2_SIMPLIFIED = "WKT2_SIMPLIFIED"
    WKT2_2015_SIMPLIFIED = "WKT2_SIMPLIFIED"
    WKT2_2018 = "WKT2_2018"
    WKT2_2018_SIMPLIFIED = "WKT2_2018_SIMPLIFIED"
    WKT1_GDAL = "WKT1_GDAL"
    WKT1_ESRI = "WKT1_ESRI"


class Version(enum.Enum):
    WKT1 = 1
    WKT2 = 2


class OutputAxisRule(enum.Enum):
    YES = "YES"
    NO = "NO"
    # AXIS only on a top-level PROJCS using easting/northing order
    WKT1_GDAL_EPSG_STYLE = "WKT1_GDAL_EPSG_STYLE"


@dataclass(frozen=True)
class _Rules:
    version: Version
    use_2018_keywords: bool = False
    esri: bool = False
    id_on_top_level_only: bool = False
    output_axis: OutputAxisRule = OutputAxisRule.YES
    output_axis_order: bool = False
    prime_meridian_omitted_if_greenwich: bool = False
    ellipsoid_unit_omitted_if_metre: bool = False
    force_unit_keyword: bool = False
    unit_omitted_if_same_as_axis: bool = False
    prime_meridian_in_degree: bool = False
    cs_unit_only_once_if_same: bool = False


_WKT2_FULL = dict(version=Version.WKT2, output_axis_order=True)
_WKT2_SIMPLE = dict(
    version=Version.WKT2,
    id_on_top_level_only=True,
    prime_meridian_omitted_if_greenwich=True,
    ellipsoid_unit_omitted_if_metre=True,
    force_unit_keyword=True,
    unit_omitted_if_same_as_axis=True,
    cs_unit_only_once_if_same=True,
)

_RULES = {
    Convention.WKT2: _Rules(**_WKT2_FULL),
    Convention.WKT2_SIMPLIFIED: _Rules(**_WKT2_SIMPLE),
    Convention.WKT2_2018: _Rules(use_2018_keywords=True, **_WKT2_FULL),
    Convention.WKT2_2018_SIMPLIFIED: _Rules(use_2018_keywords=True, **_WKT2_SIMPLE),
    Convention.WKT1_GDAL: _Rules(
        version=Version.WKT1,
        output_axis=OutputAxisRule.WKT1_GDAL_EPSG_STYLE,
        force_unit_keyword=True,
        prime_meridian_in_degree=True,
        cs_unit_only_once_if_same=True,
    ),
    Convention.WKT1_ESRI: _Rules(
        version=Version.WKT1,
        esri=True,
        output_axis=OutputAxisRule.NO,
        force_unit_keyword=True,
        cs_unit_only_once_if_same=True,
    ),
}


def format_number(value: float, precision: int = 15) -> str:
    """Shortest of ``%.<precision>g`` / ``%.17g`` that reads back as ``value``."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise FormattingError(f"not a number: {value!r}")
    if isinstance(value, int):
        return str(value)
    if math.isnan(value) or math.isinf(value):
        raise FormattingError(f"cannot format non-finite number {value!r}")
    if value == 0:
        return "0"
    s = "%.*g" % (precision, value)
    if precision == 15 and float(s) != value:
        s = "%.17g" % value
    return s


@dataclass
class _NodeFrame:
    keyword: str
    has_id: bool
    has_child: bool = False


class WKTFormatter:
    def __init__(self, convention: Convention = Convention.WKT2, database_context: Optional[Any] = None):
        self._convention = Convention(convention)
        self._rules = _RULES[self._convention]
        self._db = database_context
        self._strict = False
        self._multi_line = False
        self._indent_width = 4
        self._output_axis = self._rules.output_axis
        self._buf: List[str] = []
        self._nodes: List[_NodeFrame] = []
        self._object_level = 0
        self._output_unit: List[bool] = [True]
        self._output_id: List[bool] = [not self._rules.esri]
        self._axis_linear_unit: List[Any] = [None]
        self._axis_angular_unit: List[Any] = [None]
        self._towgs84: List[float] = []

    @classmethod
    def create(cls, convention: Convention = Convention.WKT2, database_context: Optional[Any] = None) -> "WKTFormatter":
        return cls(convention, database_context)

    # ---- settings --------------------------------------------------------

    @property
    def convention(self) -> Convention:
        return self._convention

    def set_multi_line(self, multi_line: bool) -> "WKTFormatter":
        self._multi_line = bool(multi_line)
        return self

    def set_indentation_width(self, width: int) -> "WKTFormatter":
        self._indent_width = max(0, int(width))
        return self

    def set_output_axis(self, rule: OutputAxisRule) -> "WKTFormatter":
        self._output_axis = rule
        return self

    def set_strict(self, strict: bool) -> "WKTFormatter":
        self._strict = bool(strict)
        return self

    def is_strict(self) -> bool:
        return self._strict

    def set_output_id(self, output_id: bool) -> "WKTFormatter":
        if self._nodes:
            raise RuntimeError("set_output_id() must be called before any node is started")
        self._output_id = [bool(output_id) and not self._rules.esri]
        return self

    @property
    def database_context(self) -> Optional[Any]:
        return self._db

    # ---- rule predicates -------------------------------------------------

    def version(self) -> Version:
        return self._rules.version

    def use_2018_keywords(self) -> bool:
        return self._rules.use_2018_keywords

    def use_esri_dialect(self) -> bool:
        return self._rules.esri

    def output_axis(self) -> OutputAxisRule:
        return self._output_axis

    def output_axis_order(self) -> bool:
        return self._rules.output_axis_order

    def prime_meridian_omitted_if_greenwich(self) -> bool:
        return self._rules.prime_meridian_omitted_if_greenwich

    def ellipsoid_unit_omitted_if_metre(self) -> bool:
        return self._rules.ellipsoid_unit_omitted_if_metre

    def force_unit_keyword(self) -> bool:
        return self._rules.force_unit_keyword

    def prime_meridian_or_parameter_unit_omitted_if_same_as_axis(self) -> bool:
        return self._rules.unit_omitted_if_same_as_axis

    def prime_meridian_in_degree(self) -> bool:
        return self._rules.prime_meridian_in_degree

    def output_cs_unit_only_once_if_same(self) -> bool:
        return self._rules.cs_unit_only_once_if_same

    def on_lossy_output(self, msg: str) -> None:
        """Report a construct the convention cannot express.

        Strict formatters raise; lenient ones drop the construct.
        """
        if self._strict:
            raise FormattingError(msg)

    # ---- nesting ---------------------------------------------------------

    def enter(self) -> None:
        self._object_level += 1

    def leave(self) -> None:
        if self._object_level == 0:
            raise RuntimeError("leave() without matching enter()")
        self._object_level -= 1

    @contextmanager
    def scoped_object(self) -> Iterator[None]:
        self.enter()
        try:
            yield
        finally:
            self.leave()

    def is_at_top_level(self) -> bool:
        return self._object_level == 1

    def _start_new_child(self) -> None:
        if self._nodes:
            frame = self._nodes[-1]
            if frame.has_child:
                self._buf.append(",")
            frame.has_child = True

    def start_node(self, keyword: str, has_id: bool) -> None:
        self._start_new_child()
        if self._multi_line and self._nodes:
            self._buf.append("\n" + " " * (self._indent_width * len(self._nodes)))
        self._buf.append(keyword + "[")

        base = self._output_id[0]
        if not self._nodes:
            child_id = self.output_id()
        elif self._rules.id_on_top_level_only:
            child_id = False
        elif self._rules.version is Version.WKT2:
            ancestor_has_id = any(f.has_id for f in self._nodes)
            if keyword in ("METHOD", "PARAMETER"):
                child_id = base
            else:
                child_id = base and not ancestor_has_id
        else:
            child_id = self.output_id()
        self._output_id.append(child_id)
        self._nodes.append(_NodeFrame(keyword, bool(has_id)))

    def end_node(self) -> None:
        if not self._nodes:
            raise RuntimeError("end_node() without matching start_node()")
        self._nodes.pop()
        self._output_id.pop()
        self._buf.append("]")

    @contextmanager
    def scoped_node(self, keyword: str, has_id: bool) -> Iterator[None]:
        self.start_node(keyword, has_id)
        try:
            yield
        finally:
            self.end_node()

    def simul_cur_node_has_id(self) -> "WKTFormatter":
        if self._nodes:
            self._nodes[-1].has_id = True
        return self

    # ---- values ----------------------------------------------------------

    def add_quoted_string(self, value: str) -> None:
        self._start_new_child()
        self._buf.append('"' + str(value).replace('"', '""') + '"')

    def add(self, token: str) -> None:
        self._start_new_child()
        self._buf.append(token)

    def add_integer(self, value: int) -> None:
        self._start_new_child()
        self._buf.append(str(int(value)))

    def add_number(self, value: float, precision: int = 15) -> None:
        text = format_number(value, precision)
        self._start_new_child()
        self._buf.append(text)

    def add_numbers(self, values: Sequence[float]) -> None:
        for v in values:
            self.add_number(v)

    # ---- scoped overrides ------------------------------------------------

    def push_output_unit(self, output_unit: bool) -> None:
        self._output_unit.append(bool(output_unit))

    def pop_output_unit(self) -> None:
        if len(self._output_unit) <= 1:
            raise RuntimeError("pop_output_unit() without matching push")
        self._output_unit.pop()

    def output_unit(self) -> bool:
        return self._output_unit[-1]

    def push_output_id(self, output_id: bool) -> None:
        self._output_id.append(bool(output_id) and not self._rules.esri)

    def pop_output_id(self) -> None:
        if len(self._output_id) <= 1 + len(self._nodes):
            raise RuntimeError("pop_output_id() without matching push")
        self._output_id.pop()

    def output_id(self) -> bool:
        return self._output_id[-1]

    def push_axis_linear_unit(self, unit: Any) -> None:
        self._axis_linear_unit.append(unit)

    def pop_axis_linear_unit(self) -> None:
        if len(self._axis_linear_unit) <= 1:
            raise RuntimeError("pop_axis_linear_unit() without matching push")
        self._axis_linear_unit.pop()

    def axis_linear_unit(self) -> Any:
        return self._axis_linear_unit[-1]

    def push_axis_angular_unit(self, unit: Any) -> None:
        self._axis_angular_unit.append(unit)

    def pop_axis_angular_unit(self) -> None:
        if len(self._axis_angular_unit) <= 1:
            raise RuntimeError("pop_axis_angular_unit() without matching push")
        self._axis_angular_unit.pop()

    def axis_angular_unit(self) -> Any:
        return self._axis_angular_unit[-1]

    @contextmanager
    def scoped_output_unit(self, output_unit: bool) -> Iterator[None]:
        self.push_output_unit(output_unit)
        try:
            yield
        finally:
            self.pop_output_unit()

    @contextmanager
    def scoped_output_id(self, output_id: bool) -> Iterator[None]:
        self.push_output_id(output_id)
        try:
            yield
        finally:
            self.pop_output_id()

    @contextmanager
    def scoped_axis_linear_unit(self, unit: Any) -> Iterator[None]:
        self.push_axis_linear_unit(unit)
        try:
            yield
        finally:
            self.pop_axis_linear_unit()

    @contextmanager
    def scoped_axis_angular_unit(self, unit: Any) -> Iterator[None]:
        self.push_axis_angular_unit(unit)
        try:
            yield
        finally:
            self.pop_axis_angular_unit()

    # ---- datum shift side channel (WKT1 TOWGS84) -------------------------

    def set_towgs84_parameters(self, params: Sequence[float]) -> None:
        self._towgs84 = [float(p) for p in params]

    def get_towgs84_parameters(self) -> List[float]:
        return list(self._towgs84)

    # ---- verbatim replay -------------------------------------------------

    def ingest_wkt_node(self, node: WKTNode) -> None:
        if not node.children:
            self.add(node.value)
            return
        with self.scoped_node(node.value, False):
            for child in node.children:
                self.ingest_wkt_node(child)

    # ---- result ----------------------------------------------------------

    def is_balanced(self) -> bool:
        return (
            not self._nodes
            and self._object_level == 0
            and len(self._output_unit) == 1
            and len(self._output_id) == 1
            and len(self._axis_linear_unit) == 1
            and len(self._axis_angular_unit) == 1
        )

    def to_string(self) -> str:
        if not self.is_balanced():
            raise RuntimeError("WKTFormatter.to_string() called with unclosed scopes")
        return "".join(self._buf)

    __str__ = to_string

    @staticmethod
    def morph_name_to_esri(name: str) -> str:
        """ESRI spelling of a name: runs of non-alphanumerics become one ``_``."""
        return re.sub(r"[^A-Za-z0-9]+", "_", name).strip("_")


__all__ = [
    "Convention",
    "Version",
    "OutputAxisRule",
    "WKTFormatter",
    "format_number",
]
