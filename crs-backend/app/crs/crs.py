"""Coordinate reference systems and their WKT / PROJ string renderings."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional, Tuple

from app.errors import FormattingError
from projstring.formatter import Convention as PROJConvention
from wkt.formatter import OutputAxisRule, Version, WKTFormatter
from wkt.node import WKTNode, unquote
from .epsg_catalog import FAMILIES, family_for_datum, prime_meridian_proj_name
from .exportable import IPROJStringExportable, IWKTExportable
from .objects import (
    DEGREE,
    CoordinateSystem,
    Extent,
    GeodeticReferenceFrame,
    Identifier,
    VerticalReferenceFrame,
    esri_name,
    proj_unit_name,
    write_identifiers,
    write_usage,
)

if TYPE_CHECKING:
    from .operations import Conversion


class CRS(IWKTExportable, IPROJStringExportable):
    name: str
    identifiers: Tuple[Identifier, ...]

    def is_equivalent_to(self, other: object) -> bool:
        return type(self) is type(other) and self == other

    def _write_axes_wkt1(self, formatter: WKTFormatter, cs: CoordinateSystem, is_projected: bool) -> None:
        rule = formatter.output_axis()
        if rule is OutputAxisRule.NO:
            return
        if rule is OutputAxisRule.WKT1_GDAL_EPSG_STYLE:
            if not formatter.is_at_top_level():
                return
            if is_projected and not (cs.axes[0].direction == "east" and cs.axes[1].direction == "north"):
                return
        cs.export_wkt1_axes(formatter)


def _proj4_text(extension: Optional[WKTNode]) -> Optional[str]:
    if extension is None or len(extension.children) < 2:
        return None
    if unquote(extension.children[0].value).upper() != "PROJ4":
        return None
    return unquote(extension.children[1].value)


def _write_extension(formatter: WKTFormatter, extension: Optional[WKTNode]) -> None:
    if extension is None:
        return
    if formatter.version() is Version.WKT1 and not formatter.use_esri_dialect():
        formatter.ingest_wkt_node(extension)
    else:
        formatter.on_lossy_output("EXTENSION node dropped: only WKT1_GDAL carries it")


@dataclass
class GeographicCRS(CRS):
    name: str
    datum: GeodeticReferenceFrame
    coordinate_system: CoordinateSystem
    identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)
    scope: Optional[str] = field(default=None, compare=False)
    extent: Optional[Extent] = field(default=None, compare=False)
    towgs84: Optional[Tuple[float, ...]] = None
    extension: Optional[WKTNode] = field(default=None, compare=False)

    def _export_to_wkt(self, formatter: WKTFormatter) -> None:
        with formatter.scoped_object():
            if formatter.version() is Version.WKT1:
                self._export_wkt1(formatter)
            else:
                self._export_wkt2(formatter, as_base=False)

    def _export_wkt2(self, formatter: WKTFormatter, as_base: bool) -> None:
        keyword = "GEOGCRS" if formatter.use_2018_keywords() else "GEODCRS"
        if as_base:
            keyword = "BASE" + keyword
        if self.towgs84:
            formatter.on_lossy_output("TOWGS84 has no WKT2 representation outside of a BOUNDCRS")
        if self.extension is not None:
            formatter.on_lossy_output("EXTENSION node dropped: only WKT1_GDAL carries it")
        with formatter.scoped_node(keyword, bool(self.identifiers)):
            formatter.add_quoted_string(self.name)
            self.datum._export_to_wkt(formatter)
            with formatter.scoped_axis_angular_unit(self.coordinate_system.common_unit()):
                pm = self.datum.prime_meridian
                if not (formatter.prime_meridian_omitted_if_greenwich() and pm.is_greenwich):
                    pm._export_to_wkt(formatter)
            if not as_base:
                self.coordinate_system._export_to_wkt(formatter)
                write_usage(formatter, self.scope, self.extent)
            elif self.coordinate_system.common_unit() not in (None, DEGREE):
                self.coordinate_system.common_unit()._export_to_wkt(formatter)
            write_identifiers(formatter, self.identifiers)

    def _export_wkt1(self, formatter: WKTFormatter) -> None:
        name = self.name
        if formatter.use_esri_dialect():
            name = esri_name(formatter, name, "geodetic_crs", "GCS_")
        with formatter.scoped_node("GEOGCS", bool(self.identifiers)):
            formatter.add_quoted_string(name)
            if self.towgs84 and formatter.use_esri_dialect():
                formatter.on_lossy_output("TOWGS84 has no WKT1_ESRI representation")
            elif self.towgs84:
                formatter.set_towgs84_parameters(self.towgs84)
            try:
                self.datum._export_to_wkt(formatter)
            finally:
                formatter.set_towgs84_parameters([])
            self.datum.prime_meridian._export_to_wkt(formatter)
            unit = self.coordinate_system.common_unit() or self.coordinate_system.axes[0].unit
            unit._export_to_wkt(formatter)
            self._write_axes_wkt1(formatter, self.coordinate_system, is_projected=False)
            _write_extension(formatter, self.extension)
            write_identifiers(formatter, self.identifiers)

    # ---- PROJ strings ----------------------------------------------------

    def add_datum_params(self, formatter) -> None:
        family = family_for_datum(self.datum.name)
        if family and FAMILIES[family]["ellipsoid"] == self.datum.ellipsoid.name:
            formatter.add_param("datum", family)
        else:
            self.datum.ellipsoid.add_proj_params(formatter)
        if self.towgs84:
            formatter.add_param("towgs84", tuple(self.towgs84))
        pm = self.datum.prime_meridian
        if not pm.is_greenwich:
            formatter.add_param("pm", prime_meridian_proj_name(pm.name) or pm.longitude_in_degree())

    def _export_to_proj_string(self, formatter) -> None:
        proj4 = _proj4_text(self.extension)
        if proj4:
            formatter.ingest_proj_string(proj4)
            return
        if formatter.convention is PROJConvention.PROJ_4:
            formatter.add_step("longlat")
            self.add_datum_params(formatter)
            if formatter.get_add_no_defs():
                formatter.add_param("no_defs")
            return

        if not self.datum.prime_meridian.is_greenwich or self.towgs84:
            formatter.add_step("longlat")
            self.add_datum_params(formatter)
            formatter.set_current_step_inverted(True)
        unit = proj_unit_name(self.coordinate_system.axes[0].unit)
        if unit != "rad":
            formatter.add_step("unitconvert")
            formatter.add_param("xy_in", "rad")
            formatter.add_param("xy_out", unit)
        if self.coordinate_system.is_north_first():
            formatter.add_step("axisswap")
            formatter.add_param("order", "2,1")


@dataclass
class ProjectedCRS(CRS):
    name: str
    base_crs: GeographicCRS
    conversion: "Conversion"
    coordinate_system: CoordinateSystem
    identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)
    scope: Optional[str] = field(default=None, compare=False)
    extent: Optional[Extent] = field(default=None, compare=False)
    extension: Optional[WKTNode] = field(default=None, compare=False)

    def _export_to_wkt(self, formatter: WKTFormatter) -> None:
        with formatter.scoped_object():
            if formatter.version() is Version.WKT1:
                self._export_wkt1(formatter)
            else:
                self._export_wkt2(formatter)

    def _export_wkt2(self, formatter: WKTFormatter) -> None:
        if self.extension is not None:
            formatter.on_lossy_output("EXTENSION node dropped: only WKT1_GDAL carries it")
        # The base CRS keeps its own ID: the node only claims one once the base is written
        with formatter.scoped_node("PROJCRS", False):
            formatter.add_quoted_string(self.name)
            with formatter.scoped_object():
                self.base_crs._export_wkt2(formatter, as_base=True)
            if self.identifiers:
                formatter.simul_cur_node_has_id()
            with formatter.scoped_axis_linear_unit(self.coordinate_system.common_unit()), \
                    formatter.scoped_axis_angular_unit(self.base_crs.coordinate_system.common_unit()):
                self.conversion._export_to_wkt(formatter)
            self.coordinate_system._export_to_wkt(formatter)
            write_usage(formatter, self.scope, self.extent)
            write_identifiers(formatter, self.identifiers)

    def _export_wkt1(self, formatter: WKTFormatter) -> None:
        name = self.name
        if formatter.use_esri_dialect():
            name = esri_name(formatter, name, "projected_crs")
        with formatter.scoped_node("PROJCS", bool(self.identifiers)):
            formatter.add_quoted_string(name)
            with formatter.scoped_object():
                self.base_crs._export_wkt1(formatter)
            self.conversion.export_wkt1_parts(formatter)
            unit = self.coordinate_system.common_unit() or self.coordinate_system.axes[0].unit
            unit._export_to_wkt(formatter)
            self._write_axes_wkt1(formatter, self.coordinate_system, is_projected=True)
            _write_extension(formatter, self.extension)
            write_identifiers(formatter, self.identifiers)

    def _export_to_proj_string(self, formatter) -> None:
        proj4 = _proj4_text(self.extension)
        if proj4:
            formatter.ingest_proj_string(proj4)
            return
        unit = self.coordinate_system.common_unit() or self.coordinate_system.axes[0].unit
        if formatter.convention is PROJConvention.PROJ_4:
            self.conversion._export_to_proj_string(formatter)
            self.base_crs.add_datum_params(formatter)
            formatter.add_param("units", proj_unit_name(unit))
            if formatter.get_add_no_defs():
                formatter.add_param("no_defs")
            return

        with formatter.inverted():
            self.base_crs._export_to_proj_string(formatter)
        self.conversion._export_to_proj_string(formatter)
        self.base_crs.datum.ellipsoid.add_proj_params(formatter)
        pm = self.base_crs.datum.prime_meridian
        if not pm.is_greenwich:
            formatter.add_param("pm", prime_meridian_proj_name(pm.name) or pm.longitude_in_degree())
        unit_name = proj_unit_name(unit)
        if unit_name != "m":
            formatter.add_step("unitconvert")
            formatter.add_param("xy_in", "m")
            formatter.add_param("xy_out", unit_name)
        if self.coordinate_system.is_north_first():
            formatter.add_step("axisswap")
            formatter.add_param("order", "2,1")


@dataclass
class VerticalCRS(CRS):
    name: str
    datum: VerticalReferenceFrame
    coordinate_system: CoordinateSystem
    identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)
    scope: Optional[str] = field(default=None, compare=False)
    extent: Optional[Extent] = field(default=None, compare=False)

    def _export_to_wkt(self, formatter: WKTFormatter) -> None:
        with formatter.scoped_object():
            if formatter.version() is Version.WKT2:
                keyword, has_id = "VERTCRS", bool(self.identifiers)
            elif formatter.use_esri_dialect():
                keyword, has_id = "VERTCS", False
            else:
                keyword, has_id = "VERT_CS", bool(self.identifiers)
            with formatter.scoped_node(keyword, has_id):
                if keyword == "VERTCRS":
                    formatter.add_quoted_string(self.name)
                    self.datum._export_to_wkt(formatter)
                    self.coordinate_system._export_to_wkt(formatter)
                    write_usage(formatter, self.scope, self.extent)
                elif keyword == "VERTCS":
                    formatter.add_quoted_string(esri_name(formatter, self.name, "vertical_crs"))
                    self.datum._export_to_wkt(formatter)
                    for param, value in (("Vertical_Shift", 0.0), ("Direction", 1.0)):
                        with formatter.scoped_node("PARAMETER", False):
                            formatter.add_quoted_string(param)
                            formatter.add_number(value)
                    self.coordinate_system.axes[0].unit._export_to_wkt(formatter)
                else:
                    formatter.add_quoted_string(self.name)
                    self.datum._export_to_wkt(formatter)
                    self.coordinate_system.axes[0].unit._export_to_wkt(formatter)
                    if formatter.output_axis() is not OutputAxisRule.NO:
                        self.coordinate_system.export_wkt1_axes(formatter)
                write_identifiers(formatter, self.identifiers)

    def add_proj_params(self, formatter) -> None:
        """Vertical part of a compound CRS, appended after the horizontal part."""
        unit = proj_unit_name(self.coordinate_system.axes[0].unit)
        if formatter.convention is PROJConvention.PROJ_4:
            formatter.add_param("vunits", unit)
        elif unit != "m":
            formatter.add_step("unitconvert")
            formatter.add_param("z_in", "m")
            formatter.add_param("z_out", unit)

    def _export_to_proj_string(self, formatter) -> None:
        raise FormattingError("a vertical CRS has no PROJ string representation on its own")


@dataclass
class CompoundCRS(CRS):
    name: str
    components: Tuple[CRS, ...]
    identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)
    scope: Optional[str] = field(default=None, compare=False)
    extent: Optional[Extent] = field(default=None, compare=False)

    def _export_to_wkt(self, formatter: WKTFormatter) -> None:
        if formatter.use_esri_dialect():
            raise FormattingError("WKT1_ESRI has no compound CRS")
        with formatter.scoped_object():
            wkt2 = formatter.version() is Version.WKT2
            with formatter.scoped_node("COMPOUNDCRS" if wkt2 else "COMPD_CS", bool(self.identifiers)):
                formatter.add_quoted_string(self.name)
                for component in self.components:
                    component._export_to_wkt(formatter)
                write_usage(formatter, self.scope, self.extent)
                write_identifiers(formatter, self.identifiers)

    def _export_to_proj_string(self, formatter) -> None:
        horizontal = [c for c in self.components if not isinstance(c, VerticalCRS)]
        vertical = [c for c in self.components if isinstance(c, VerticalCRS)]
        if len(horizontal) != 1 or len(vertical) > 1:
            raise FormattingError("only horizontal + vertical compound CRS can be exported as a PROJ string")
        add_no_defs = formatter.get_add_no_defs()
        formatter.set_add_no_defs(False)
        try:
            horizontal[0]._export_to_proj_string(formatter)
        finally:
            formatter.set_add_no_defs(add_no_defs)
        for v in vertical:
            v.add_proj_params(formatter)
        if formatter.convention is PROJConvention.PROJ_4 and add_no_defs:
            formatter.add_param("no_defs")

__all__ = [
    "CRS",
    "GeographicCRS",
    "ProjectedCRS",
    "VerticalCRS",
    "CompoundCRS",
]
