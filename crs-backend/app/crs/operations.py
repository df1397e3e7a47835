"""Coordinate operations: map projections (conversions), datum transformations,
chains of both, and operations known only by their PROJ string.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple, Union

from app.errors import FormattingError
from projstring.formatter import Convention as PROJConvention
from wkt.formatter import Version, WKTFormatter
from .crs import CRS, GeographicCRS, ProjectedCRS
from .epsg_catalog import MethodMapping, ParamMapping, method_by_code, method_by_name, param_by_name, utm_zone
from .exportable import IPROJStringExportable, IWKTExportable
from .objects import DEGREE, Ellipsoid, Extent, Identifier, UnitOfMeasure, UnitType, write_identifiers, write_usage

PROJ_BASED_METHOD_PREFIX = "PROJ-based operation method: "


@dataclass
class OperationParameterValue:
    name: str
    value: Union[float, str]  # str for a file name
    unit: Optional[UnitOfMeasure] = None
    identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)

    @property
    def is_file(self) -> bool:
        return isinstance(self.value, str)

    @property
    def epsg_code(self) -> Optional[str]:
        for ident in self.identifiers:
            if ident.authority.upper() == "EPSG":
                return ident.code
        return None

    def _export_to_wkt(self, formatter: WKTFormatter) -> None:
        keyword = "PARAMETERFILE" if self.is_file else "PARAMETER"
        with formatter.scoped_node(keyword, bool(self.identifiers)):
            formatter.add_quoted_string(self.name)
            if self.is_file:
                formatter.add_quoted_string(self.value)
            else:
                formatter.add_number(self.value)
                if self.unit is not None and not self._unit_implied(formatter):
                    self.unit._export_to_wkt(formatter)
            write_identifiers(formatter, self.identifiers)

    def _unit_implied(self, formatter: WKTFormatter) -> bool:
        if not formatter.prime_meridian_or_parameter_unit_omitted_if_same_as_axis():
            return False
        if self.unit.type is UnitType.ANGULAR:
            return self.unit == formatter.axis_angular_unit()
        if self.unit.type is UnitType.LINEAR:
            return self.unit == formatter.axis_linear_unit()
        return False

    def proj_value(self, kind: str) -> Union[float, str]:
        """Value expressed in the unit PROJ expects (degree or metre)."""
        if self.is_file or self.unit is None:
            return self.value
        if kind == "angular" and self.unit != DEGREE:
            return self.value * self.unit.conversion_to_si / DEGREE.conversion_to_si
        if kind == "linear":
            return self.value * self.unit.conversion_to_si
        return self.value


def _param_mapping(mapping: MethodMapping, p: OperationParameterValue) -> Optional[ParamMapping]:
    code = p.epsg_code
    if code:
        found = next((m for m in mapping.params if m.epsg_code == code), None)
        if found is not None:
            return found
    return param_by_name(mapping, p.name)


class CoordinateOperation(IWKTExportable, IPROJStringExportable):
    name: str
    method_name: str
    method_identifiers: Tuple[Identifier, ...]
    parameters: Tuple[OperationParameterValue, ...]
    identifiers: Tuple[Identifier, ...]

    def is_equivalent_to(self, other: object) -> bool:
        return type(self) is type(other) and self == other

    def method_mapping(self) -> Optional[MethodMapping]:
        for ident in self.method_identifiers:
            if ident.authority.upper() == "EPSG":
                found = method_by_code(ident.code)
                if found:
                    return found
        return method_by_name(self.method_name)

    def proj_values(self) -> Dict[str, Union[float, str]]:
        """Parameter values keyed by PROJ parameter name."""
        mapping = self.method_mapping()
        if mapping is None:
            return {}
        out: Dict[str, Union[float, str]] = {}
        for p in self.parameters:
            pm = _param_mapping(mapping, p)
            if pm is not None and pm.proj_name:
                out[pm.proj_name] = p.proj_value(pm.kind)
        return out

    def _write_method(self, formatter: WKTFormatter) -> None:
        with formatter.scoped_node("METHOD", bool(self.method_identifiers)):
            formatter.add_quoted_string(self.method_name)
            write_identifiers(formatter, self.method_identifiers)

    def _write_parameters(self, formatter: WKTFormatter) -> None:
        for p in self.parameters:
            p._export_to_wkt(formatter)


@dataclass
class Conversion(CoordinateOperation):
    name: str
    method_name: str
    parameters: Tuple[OperationParameterValue, ...] = ()
    method_identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)
    identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)

    def _export_to_wkt(self, formatter: WKTFormatter) -> None:
        if formatter.version() is Version.WKT1:
            raise FormattingError("a conversion has no WKT1 representation outside of a PROJCS")
        with formatter.scoped_object():
            with formatter.scoped_node("CONVERSION", bool(self.identifiers)):
                formatter.add_quoted_string(self.name)
                self._write_method(formatter)
                self._write_parameters(formatter)
                write_identifiers(formatter, self.identifiers)

    def export_wkt1_parts(self, formatter: WKTFormatter) -> None:
        """PROJECTION and PARAMETER nodes of a WKT1 PROJCS."""
        mapping = self.method_mapping()
        esri = formatter.use_esri_dialect()
        method = None
        if mapping is not None:
            method = mapping.esri_name if esri else mapping.wkt1_name
        if not method:
            raise FormattingError(f"method {self.method_name!r} has no WKT1 equivalent")
        with formatter.scoped_node("PROJECTION", False):
            formatter.add_quoted_string(method)
        for p in self.parameters:
            pm = _param_mapping(mapping, p)
            if pm is not None:
                name = pm.esri_name if esri else pm.wkt1_name
            else:
                name = WKTFormatter.morph_name_to_esri(p.name)
                if not esri:
                    name = name.lower()
            with formatter.scoped_node("PARAMETER", False):
                formatter.add_quoted_string(name)
                if p.is_file:
                    formatter.add_quoted_string(p.value)
                else:
                    formatter.add_number(p.value)

    def _export_to_proj_string(self, formatter) -> None:
        mapping = self.method_mapping()
        if mapping is None or mapping.proj_name is None:
            raise FormattingError(f"method {self.method_name!r} has no PROJ string equivalent")
        values = self.proj_values()
        proj_name = mapping.proj_name
        if proj_name == "tmerc":
            try:
                zone = utm_zone(values["lon_0"], values["lat_0"], values["k"], values["x_0"], values["y_0"])
            except KeyError:
                zone = None
            if zone is not None:
                formatter.add_step("utm")
                formatter.add_param("zone", zone[0])
                if zone[1] == "S":
                    formatter.add_param("south")
                return
            if formatter.use_etmerc_for_tmerc():
                proj_name = "etmerc"
        formatter.add_step(proj_name)
        for pm in mapping.params:
            if pm.proj_name in values:
                formatter.add_param(pm.proj_name, values[pm.proj_name])


def _ellipsoid_of(crs: CRS) -> Ellipsoid:
    if isinstance(crs, GeographicCRS):
        return crs.datum.ellipsoid
    if isinstance(crs, ProjectedCRS):
        return crs.base_crs.datum.ellipsoid
    raise FormattingError(f"{type(crs).__name__} has no geodetic datum")


def _write_crs_wrapper(formatter: WKTFormatter, keyword: str, crs: CRS) -> None:
    with formatter.scoped_node(keyword, False):
        crs._export_to_wkt(formatter)


@dataclass
class Transformation(CoordinateOperation):
    name: str
    source_crs: CRS
    target_crs: CRS
    method_name: str
    parameters: Tuple[OperationParameterValue, ...] = ()
    accuracy: Optional[float] = None
    method_identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)
    identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)
    scope: Optional[str] = field(default=None, compare=False)
    extent: Optional[Extent] = field(default=None, compare=False)

    def grid_names(self) -> Tuple[str, ...]:
        return tuple(p.value for p in self.parameters if p.is_file)

    def _export_to_wkt(self, formatter: WKTFormatter) -> None:
        if formatter.version() is Version.WKT1:
            raise FormattingError("a transformation has no WKT1 representation")
        with formatter.scoped_object():
            with formatter.scoped_node("COORDINATEOPERATION", False):
                formatter.add_quoted_string(self.name)
                _write_crs_wrapper(formatter, "SOURCECRS", self.source_crs)
                _write_crs_wrapper(formatter, "TARGETCRS", self.target_crs)
                if self.identifiers:
                    formatter.simul_cur_node_has_id()
                self._write_method(formatter)
                self._write_parameters(formatter)
                if self.accuracy is not None:
                    with formatter.scoped_node("OPERATIONACCURACY", False):
                        formatter.add_number(self.accuracy)
                write_usage(formatter, self.scope, self.extent)
                write_identifiers(formatter, self.identifiers)

    def _grid_name(self, formatter, name: str) -> str:
        db = formatter.database_context
        if db is not None:
            alt = db.look_for_grid_alternative(name)
            if alt is not None:
                return alt[0]
        return name

    def _add_transformation_steps(self, formatter) -> None:
        mapping = self.method_mapping()
        if mapping is None or mapping.proj_name is None:
            raise FormattingError(f"method {self.method_name!r} has no PROJ string equivalent")
        if mapping.proj_name == "helmert":
            formatter.add_step("cart")
            _ellipsoid_of(self.source_crs).add_proj_params(formatter)
            formatter.add_step("helmert")
            values = self.proj_values()
            for pm in mapping.params:
                if pm.proj_name in values:
                    formatter.add_param(pm.proj_name, values[pm.proj_name])
            if mapping.epsg_code == "9606":
                formatter.add_param("convention", "position_vector")
            formatter.add_step("cart")
            _ellipsoid_of(self.target_crs).add_proj_params(formatter)
            formatter.set_current_step_inverted(True)
            return
        grids = self.grid_names()
        if not grids:
            raise FormattingError(f"transformation {self.name!r} has no grid file")
        formatter.add_step(mapping.proj_name)
        formatter.add_param("grids", ",".join(self._grid_name(formatter, g) for g in grids))
        if mapping.proj_name == "vgridshift":
            formatter.add_param("multiplier", 1)

    def _export_to_proj_string(self, formatter) -> None:
        if formatter.convention is PROJConvention.PROJ_4:
            raise FormattingError("a transformation has no PROJ.4 string representation")
        with formatter.inverted():
            self.source_crs._export_to_proj_string(formatter)
        self._add_transformation_steps(formatter)
        self.target_crs._export_to_proj_string(formatter)


@dataclass
class ConcatenatedOperation(CoordinateOperation):
    name: str
    operations: Tuple[CoordinateOperation, ...]
    identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)
    method_name: str = field(default="", compare=False)
    method_identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)
    parameters: Tuple[OperationParameterValue, ...] = field(default=(), compare=False)

    @property
    def source_crs(self) -> CRS:
        return self.operations[0].source_crs

    @property
    def target_crs(self) -> CRS:
        return self.operations[-1].target_crs

    def _export_to_wkt(self, formatter: WKTFormatter) -> None:
        if formatter.version() is Version.WKT1:
            raise FormattingError("a concatenated operation has no WKT1 representation")
        if not formatter.use_2018_keywords():
            raise FormattingError("CONCATENATEDOPERATION is only defined in WKT2_2018")
        with formatter.scoped_object():
            with formatter.scoped_node("CONCATENATEDOPERATION", False):
                formatter.add_quoted_string(self.name)
                _write_crs_wrapper(formatter, "SOURCECRS", self.source_crs)
                _write_crs_wrapper(formatter, "TARGETCRS", self.target_crs)
                if self.identifiers:
                    formatter.simul_cur_node_has_id()
                for op in self.operations:
                    with formatter.scoped_node("STEP", False):
                        op._export_to_wkt(formatter)
                write_identifiers(formatter, self.identifiers)

    def _export_to_proj_string(self, formatter) -> None:
        if formatter.convention is PROJConvention.PROJ_4:
            raise FormattingError("a concatenated operation has no PROJ.4 string representation")
        for op in self.operations:
            op._export_to_proj_string(formatter)


@dataclass
class PROJBasedOperation(CoordinateOperation):
    """Operation known only by its PROJ string (no catalogued method)."""

    proj_string: str
    name: str = "PROJ-based coordinate operation"
    identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)
    method_identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)
    parameters: Tuple[OperationParameterValue, ...] = field(default=(), compare=False)

    @property
    def method_name(self) -> str:
        return PROJ_BASED_METHOD_PREFIX + self.proj_string

    def _export_to_wkt(self, formatter: WKTFormatter) -> None:
        if formatter.version() is Version.WKT1:
            raise FormattingError("a PROJ-based operation has no WKT1 representation")
        with formatter.scoped_object():
            with formatter.scoped_node("CONVERSION", False):
                formatter.add_quoted_string(self.name)
                self._write_method(formatter)

    def _export_to_proj_string(self, formatter) -> None:
        formatter.ingest_proj_string(self.proj_string)


__all__ = [
    "PROJ_BASED_METHOD_PREFIX",
    "OperationParameterValue",
    "CoordinateOperation",
    "Conversion",
    "Transformation",
    "ConcatenatedOperation",
    "PROJBasedOperation",
]
