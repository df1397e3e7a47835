"""Capability interfaces plugging domain objects into the two formatters.

The formatters never look at the concrete type of what they render: an object
is WKT-exportable because it implements ``_export_to_wkt`` and PROJ-string
exportable because it implements ``_export_to_proj_string``.

To make a new domain type exportable:
1. Subclass IWKTExportable and/or IPROJStringExportable
2. Implement the protected ``_export_to_*`` method(s), driving the formatter
3. Raise FormattingError for anything the formatter's convention cannot express
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from projstring.formatter import PROJStringFormatter
    from wkt.formatter import WKTFormatter


class IWKTExportable(ABC):
    def export_to_wkt(self, formatter: "WKTFormatter") -> str:
        """Render this object with ``formatter``. May raise FormattingError."""
        self._export_to_wkt(formatter)
        return formatter.to_string()

    @abstractmethod
    def _export_to_wkt(self, formatter: "WKTFormatter") -> None:
        ...


class IPROJStringExportable(ABC):
    def export_to_proj_string(self, formatter: "PROJStringFormatter") -> str:
        """Render this object with ``formatter``. May raise FormattingError."""
        self._export_to_proj_string(formatter)
        return formatter.to_string()

    @abstractmethod
    def _export_to_proj_string(self, formatter: "PROJStringFormatter") -> None:
        ...


__all__ = ["IWKTExportable", "IPROJStringExportable"]
