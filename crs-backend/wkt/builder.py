"""Turn a parsed WKT tree into CRS / coordinate operation objects.

Both WKT2 revisions and both WKT1 flavours are read by the same builder; the
guessed dialect only decides how WKT1 names are mapped back to official
names (ESRI spellings go through the registry aliases when one is attached).
"""
from __future__ import annotations

import re
from typing import Iterable, List, Optional, Tuple

from app.crs.crs import CRS, CompoundCRS, GeographicCRS, ProjectedCRS, VerticalCRS
from app.crs.epsg_catalog import WKT1_DATUM_NAMES, method_by_name, utm_label, utm_zone
from app.crs.objects import (
    DEGREE,
    GREENWICH,
    METRE,
    UNITY,
    Axis,
    CoordinateSystem,
    Ellipsoid,
    Extent,
    GeodeticReferenceFrame,
    Identifier,
    PrimeMeridian,
    UnitOfMeasure,
    UnitType,
    VerticalReferenceFrame,
    cartesian_cs,
    ellipsoidal_cs,
    known_unit,
    vertical_cs,
)
from app.crs.operations import (
    ConcatenatedOperation,
    Conversion,
    CoordinateOperation,
    OperationParameterValue,
    Transformation,
)
from app.errors import ParsingError
from .dialect import WKTGuessedDialect
from .node import WKTNode, unquote

_UNIT_KEYWORDS = {
    "LENGTHUNIT": UnitType.LINEAR,
    "ANGLEUNIT": UnitType.ANGULAR,
    "SCALEUNIT": UnitType.SCALE,
    "UNIT": None,
}
_PARAM_UNIT_TYPES = {
    "angular": UnitType.ANGULAR,
    "rotation": UnitType.ANGULAR,
    "linear": UnitType.LINEAR,
    "scale": UnitType.SCALE,
}
_AXIS_LABEL_RE = re.compile(r"^(.*?)\s*\(([^()]*)\)\s*$")
_CS_KINDS = {"ellipsoidal": "ellipsoidal", "cartesian": "Cartesian", "vertical": "vertical"}

_GEOG_WKT2 = {"GEOGCRS", "GEODCRS", "GEOGRAPHICCRS", "GEODETICCRS"}
_BASE_GEOG_WKT2 = {"BASEGEOGCRS", "BASEGEODCRS"}
_PROJ_WKT2 = {"PROJCRS", "PROJECTEDCRS"}
_VERT_WKT2 = {"VERTCRS", "VERTICALCRS"}
_META = {"ID", "AUTHORITY", "USAGE", "SCOPE", "AREA", "BBOX", "REMARK", "VERTICALEXTENT", "TIMEEXTENT"}


def _keyword_children(node: WKTNode, *names: str) -> List[WKTNode]:
    wanted = {n.upper() for n in names}
    return [c for c in node.children if c.value.upper() in wanted]


def _name(node: WKTNode) -> str:
    if not node.children or not node.children[0].is_quoted:
        raise ParsingError(f"{node.value}: missing quoted name")
    return unquote(node.children[0].value)


def _to_float(token: WKTNode, context: str) -> float:
    if token.is_quoted or token.children:
        raise ParsingError(f"{context}: expected a number, got {token.to_string()!r}")
    try:
        return float(token.value)
    except ValueError:
        raise ParsingError(f"{context}: invalid number {token.value!r}") from None


def _number_at(node: WKTNode, index: int, what: str) -> float:
    values = node.children
    if len(values) <= index:
        raise ParsingError(f"{node.value}: missing {what}")
    return _to_float(values[index], f"{node.value} {what}")


def _identifiers(node: WKTNode) -> Tuple[Identifier, ...]:
    out: List[Identifier] = []
    for child in _keyword_children(node, "ID", "AUTHORITY"):
        if len(child.children) < 2:
            raise ParsingError(f"{child.value}: expected an authority name and a code")
        out.append(Identifier(unquote(child.children[0].value), unquote(child.children[1].value)))
    return tuple(out)


class WKTObjectBuilder:
    def __init__(self, parser, dialect: WKTGuessedDialect):
        self._parser = parser
        self._dialect = dialect
        self._db = parser.database_context

    @property
    def _esri(self) -> bool:
        return self._dialect is WKTGuessedDialect.WKT1_ESRI

    def _warn(self, msg: str) -> None:
        self._parser.emit_warning(msg)

    def _check_children(self, node: WKTNode, allowed: Iterable[str]) -> None:
        known = {a.upper() for a in allowed} | _META
        for child in node.children:
            if child.children and child.value.upper() not in known:
                self._warn(f"ignoring unsupported node {child.value} in {node.value}")

    # ---- dispatch --------------------------------------------------------

    def build(self, root: WKTNode):
        kw = root.value.upper()
        if kw in _GEOG_WKT2:
            return self._geographic_wkt2(root, as_base=False)
        if kw == "GEOGCS":
            return self._geographic_wkt1(root)
        if kw in _PROJ_WKT2:
            return self._projected_wkt2(root)
        if kw == "PROJCS":
            return self._projected_wkt1(root)
        if kw in _VERT_WKT2:
            return self._vertical_wkt2(root)
        if kw in ("VERT_CS", "VERTCS"):
            return self._vertical_wkt1(root)
        if kw in ("COMPOUNDCRS", "COMPD_CS"):
            return self._compound(root)
        if kw == "CONVERSION":
            return self._conversion(root, DEGREE, METRE)
        if kw == "COORDINATEOPERATION":
            return self._transformation(root)
        if kw == "CONCATENATEDOPERATION":
            return self._concatenated(root)
        if kw in ("ELLIPSOID", "SPHEROID"):
            return self._ellipsoid(root)
        if kw in ("PRIMEM", "PRIMEMERIDIAN"):
            return self._prime_meridian(root, DEGREE)
        if kw in ("DATUM", "TRF", "GEODETICDATUM"):
            return self._geodetic_datum(root, GREENWICH, wkt1=False)
        raise ParsingError(f"unsupported WKT root keyword {root.value}")

    def _build_crs(self, node: WKTNode) -> CRS:
        obj = self.build(node)
        if not isinstance(obj, CRS):
            raise ParsingError(f"{node.value} is not a CRS")
        return obj

    # ---- names -----------------------------------------------------------

    def _official_name(self, name: str, table: str, prefix: str = "") -> str:
        source = "ESRI" if self._esri else None
        if self._db is not None:
            official = self._db.get_official_name_from_alias(name, table, source)
            if official:
                return official
        if not self._esri:
            return name
        if self._db is None:
            self._warn(f"no registry attached: ESRI name {name!r} mapped approximately")
        if prefix and name.startswith(prefix):
            name = name[len(prefix):]
        return name.replace("_", " ")

    def _wkt1_datum_name(self, name: str) -> str:
        if not self._esri:
            for official, wkt1 in WKT1_DATUM_NAMES.items():
                if wkt1 == name:
                    return official
            if self._db is not None:
                official = self._db.get_official_name_from_alias(name, "geodetic_datum", None)
                if official:
                    return official
            return name.replace("_", " ")
        return self._official_name(name, "geodetic_datum", "D_")

    # ---- units / extents -------------------------------------------------

    def _unit(self, node: WKTNode, default_type: UnitType) -> UnitOfMeasure:
        kw = node.value.upper()
        unit_type = _UNIT_KEYWORDS.get(kw) or default_type
        name = _name(node)
        known = known_unit(name) if self._esri else None
        if len(node.children) < 2:
            known = known_unit(name)
            if known is None:
                raise ParsingError(f"{node.value}[{name!r}]: missing conversion factor")
            return UnitOfMeasure(known.name, known.conversion_to_si, known.type)
        factor = _number_at(node, 1, "conversion factor")
        if known is not None and known.conversion_to_si == factor:
            name = known.name
        return UnitOfMeasure(name, factor, unit_type, _identifiers(node))

    def _unit_child(self, node: WKTNode, default_type: UnitType) -> Optional[UnitOfMeasure]:
        child = node.look_for_any_child(*_UNIT_KEYWORDS)
        return None if child is None else self._unit(child, default_type)

    def _usage(self, node: WKTNode) -> Tuple[Optional[str], Optional[Extent]]:
        holder = node.look_for_child("USAGE") or node
        scope_node = holder.look_for_child("SCOPE")
        scope = _name(scope_node) if scope_node is not None else None
        area = holder.look_for_child("AREA")
        bbox = holder.look_for_child("BBOX")
        if area is None and bbox is None:
            return scope, None
        extent = Extent(description=_name(area) if area is not None else None)
        if bbox is not None:
            extent.south, extent.west, extent.north, extent.east = (
                _number_at(bbox, i, "coordinate") for i in range(4)
            )
        return scope, extent

    # ---- datum pieces ----------------------------------------------------

    def _ellipsoid(self, node: WKTNode) -> Ellipsoid:
        name = _name(node)
        if self._esri:
            name = self._official_name(name, "ellipsoid")
        a = _number_at(node, 1, "semi-major axis")
        rf = _number_at(node, 2, "inverse flattening")
        unit = self._unit_child(node, UnitType.LINEAR) or METRE
        return Ellipsoid(name, a, rf, unit, _identifiers(node))

    def _prime_meridian(self, node: WKTNode, default_unit: UnitOfMeasure) -> PrimeMeridian:
        name = _name(node)
        longitude = _number_at(node, 1, "longitude")
        unit = self._unit_child(node, UnitType.ANGULAR) or default_unit
        return PrimeMeridian(name, longitude, unit, _identifiers(node))

    def _geodetic_datum(self, node: WKTNode, pm: PrimeMeridian, wkt1: bool) -> GeodeticReferenceFrame:
        name = _name(node)
        if wkt1:
            name = self._wkt1_datum_name(name)
        ell = node.look_for_any_child("ELLIPSOID", "SPHEROID")
        if ell is None:
            raise ParsingError(f"{node.value}[{name!r}]: missing ELLIPSOID")
        self._check_children(node, ("ELLIPSOID", "SPHEROID", "TOWGS84", "ANCHOR", "ANCHOREPOCH", "EXTENSION"))
        anchor_node = node.look_for_child("ANCHOR")
        anchor = _name(anchor_node) if anchor_node is not None else None
        return GeodeticReferenceFrame(name, self._ellipsoid(ell), pm, anchor, _identifiers(node))

    def _datum_wkt2(self, node: WKTNode, pm: PrimeMeridian) -> GeodeticReferenceFrame:
        datum = node.look_for_any_child("DATUM", "TRF", "GEODETICDATUM")
        if datum is not None:
            return self._geodetic_datum(datum, pm, wkt1=False)
        ensemble = node.look_for_child("ENSEMBLE")
        if ensemble is not None:
            self._warn(f"datum ensemble {_name(ensemble)!r} read as a single datum")
            ell = ensemble.look_for_any_child("ELLIPSOID", "SPHEROID")
            if ell is None:
                raise ParsingError("ENSEMBLE: missing ELLIPSOID")
            return GeodeticReferenceFrame(_name(ensemble), self._ellipsoid(ell), pm, None, _identifiers(ensemble))
        raise ParsingError(f"{node.value}: missing DATUM")

    # ---- coordinate systems ----------------------------------------------

    def _cs_wkt2(self, node: WKTNode, default_type: UnitType) -> CoordinateSystem:
        cs_node = node.look_for_child("CS")
        if cs_node is None:
            raise ParsingError(f"{node.value}: missing CS")
        leaves = cs_node.children
        if len(leaves) < 2:
            raise ParsingError("CS: expected a type and a dimension")
        kind = _CS_KINDS.get(leaves[0].value.lower(), leaves[0].value)
        dim = int(_to_float(leaves[1], "CS dimension"))
        axis_nodes = _keyword_children(node, "AXIS")
        if len(axis_nodes) != dim:
            raise ParsingError(f"CS declares {dim} axes but {len(axis_nodes)} AXIS nodes follow")
        common = self._unit_child(node, default_type)

        axes: List[Tuple[int, Axis]] = []
        for pos, ax in enumerate(axis_nodes):
            if len(ax.children) < 2:
                raise ParsingError("AXIS: expected a name and a direction")
            label = unquote(ax.children[0].value)
            m = _AXIS_LABEL_RE.match(label)
            name, abbrev = (m.group(1), m.group(2)) if m else (label, "")
            direction = ax.children[1].value.lower()
            unit = self._unit_child(ax, default_type) or common
            if unit is None:
                raise ParsingError(f"AXIS[{label!r}]: missing unit")
            order_node = ax.look_for_child("ORDER")
            order = int(_number_at(order_node, 0, "value")) if order_node is not None else pos + 1
            axes.append((order, Axis(name, abbrev, direction, unit)))
        axes.sort(key=lambda t: t[0])
        return CoordinateSystem(kind, tuple(a for _, a in axes))

    def _axes_wkt1(self, node: WKTNode, unit: UnitOfMeasure) -> Optional[Tuple[Axis, ...]]:
        axis_nodes = _keyword_children(node, "AXIS")
        if not axis_nodes:
            return None
        axes = []
        for ax in axis_nodes:
            if len(ax.children) < 2:
                raise ParsingError("AXIS: expected a name and a direction")
            axes.append(Axis.from_wkt1(unquote(ax.children[0].value), ax.children[1].value, unit))
        return tuple(axes)

    # ---- CRS -------------------------------------------------------------

    def _geographic_wkt2(self, node: WKTNode, as_base: bool) -> GeographicCRS:
        name = _name(node)
        self._check_children(node, (
            "DATUM", "TRF", "GEODETICDATUM", "ENSEMBLE", "PRIMEM", "PRIMEMERIDIAN",
            "CS", "AXIS", "ANGLEUNIT", "LENGTHUNIT", "SCALEUNIT", "UNIT", "DYNAMIC",
        ))
        if as_base:
            unit = self._unit_child(node, UnitType.ANGULAR) or DEGREE
            cs = ellipsoidal_cs(unit)
        else:
            cs = self._cs_wkt2(node, UnitType.ANGULAR)
        pm_node = node.look_for_any_child("PRIMEM", "PRIMEMERIDIAN")
        pm = GREENWICH
        if pm_node is not None:
            pm = self._prime_meridian(pm_node, cs.common_unit() or DEGREE)
        datum = self._datum_wkt2(node, pm)
        scope, extent = self._usage(node)
        return GeographicCRS(name, datum, cs, _identifiers(node), scope, extent)

    def _geographic_wkt1(self, node: WKTNode) -> GeographicCRS:
        name = _name(node)
        if self._esri:
            name = self._official_name(name, "geodetic_crs", "GCS_")
        self._check_children(node, ("DATUM", "PRIMEM", "UNIT", "AXIS", "EXTENSION"))
        datum_node = node.look_for_child("DATUM")
        if datum_node is None:
            raise ParsingError(f"GEOGCS[{name!r}]: missing DATUM")
        unit_node = node.look_for_child("UNIT")
        if unit_node is None:
            raise ParsingError(f"GEOGCS[{name!r}]: missing UNIT")
        unit = self._unit(unit_node, UnitType.ANGULAR)

        pm_node = node.look_for_child("PRIMEM")
        pm = GREENWICH
        if pm_node is not None:
            pm = self._prime_meridian(pm_node, unit if self._esri else DEGREE)
        datum = self._geodetic_datum(datum_node, pm, wkt1=True)

        towgs84 = None
        towgs84_node = datum_node.look_for_child("TOWGS84")
        if towgs84_node is not None:
            values = [_to_float(v, "TOWGS84") for v in towgs84_node.children]
            if len(values) not in (3, 7):
                raise ParsingError(f"TOWGS84: expected 3 or 7 values, got {len(values)}")
            towgs84 = tuple(values + [0.0] * (7 - len(values)))

        axes = self._axes_wkt1(node, unit)
        cs = CoordinateSystem("ellipsoidal", axes) if axes else ellipsoidal_cs(unit)
        return GeographicCRS(
            name, datum, cs, _identifiers(node),
            towgs84=towgs84, extension=node.look_for_child("EXTENSION"),
        )

    def _projected_wkt2(self, node: WKTNode) -> ProjectedCRS:
        name = _name(node)
        self._check_children(node, (
            "BASEGEOGCRS", "BASEGEODCRS", "CONVERSION", "CS", "AXIS", "LENGTHUNIT", "UNIT",
        ))
        base_node = node.look_for_any_child(*_BASE_GEOG_WKT2)
        if base_node is None:
            raise ParsingError(f"PROJCRS[{name!r}]: missing BASEGEOGCRS")
        conv_node = node.look_for_child("CONVERSION")
        if conv_node is None:
            raise ParsingError(f"PROJCRS[{name!r}]: missing CONVERSION")
        base = self._geographic_wkt2(base_node, as_base=True)
        cs = self._cs_wkt2(node, UnitType.LINEAR)
        conversion = self._conversion(
            conv_node, base.coordinate_system.common_unit() or DEGREE, cs.common_unit() or METRE
        )
        scope, extent = self._usage(node)
        return ProjectedCRS(name, base, conversion, cs, _identifiers(node), scope, extent)

    def _projected_wkt1(self, node: WKTNode) -> ProjectedCRS:
        name = _name(node)
        if self._esri:
            name = self._official_name(name, "projected_crs")
        self._check_children(node, ("GEOGCS", "PROJECTION", "PARAMETER", "UNIT", "AXIS", "EXTENSION"))
        geog = node.look_for_child("GEOGCS")
        if geog is None:
            raise ParsingError(f"PROJCS[{name!r}]: missing GEOGCS")
        base = self._geographic_wkt1(geog)
        unit_node = node.look_for_child("UNIT")
        if unit_node is None:
            raise ParsingError(f"PROJCS[{name!r}]: missing UNIT")
        unit = self._unit(unit_node, UnitType.LINEAR)
        conversion = self._conversion_wkt1(node, base.coordinate_system.common_unit() or DEGREE, unit)
        axes = self._axes_wkt1(node, unit)
        cs = CoordinateSystem("Cartesian", axes) if axes else cartesian_cs(unit)
        return ProjectedCRS(
            name, base, conversion, cs, _identifiers(node), extension=node.look_for_child("EXTENSION"),
        )

    def _vertical_wkt2(self, node: WKTNode) -> VerticalCRS:
        name = _name(node)
        self._check_children(node, ("VDATUM", "VRF", "VERTICALDATUM", "CS", "AXIS", "LENGTHUNIT", "UNIT", "GEOIDMODEL"))
        datum_node = node.look_for_any_child("VDATUM", "VRF", "VERTICALDATUM")
        if datum_node is None:
            raise ParsingError(f"VERTCRS[{name!r}]: missing VDATUM")
        datum = VerticalReferenceFrame(_name(datum_node), _identifiers(datum_node))
        cs = self._cs_wkt2(node, UnitType.LINEAR)
        scope, extent = self._usage(node)
        return VerticalCRS(name, datum, cs, _identifiers(node), scope, extent)

    def _vertical_wkt1(self, node: WKTNode) -> VerticalCRS:
        name = _name(node)
        if self._esri:
            name = self._official_name(name, "vertical_crs")
        self._check_children(node, ("VERT_DATUM", "VDATUM", "UNIT", "AXIS", "PARAMETER", "EXTENSION"))
        datum_node = node.look_for_any_child("VERT_DATUM", "VDATUM")
        if datum_node is None:
            raise ParsingError(f"{node.value}[{name!r}]: missing vertical datum")
        datum_name = _name(datum_node)
        if self._esri:
            datum_name = self._official_name(datum_name, "vertical_datum")
        unit_node = node.look_for_child("UNIT")
        unit = self._unit(unit_node, UnitType.LINEAR) if unit_node is not None else METRE
        axes = self._axes_wkt1(node, unit)
        cs = CoordinateSystem("vertical", axes) if axes else vertical_cs(unit)
        return VerticalCRS(name, VerticalReferenceFrame(datum_name, _identifiers(datum_node)), cs, _identifiers(node))

    def _compound(self, node: WKTNode) -> CompoundCRS:
        name = _name(node)
        components = tuple(
            self._build_crs(c) for c in node.children if c.children and c.value.upper() not in _META
        )
        if len(components) < 2:
            raise ParsingError(f"{node.value}[{name!r}]: expected at least two components")
        scope, extent = self._usage(node)
        return CompoundCRS(name, components, _identifiers(node), scope, extent)

    # ---- operations ------------------------------------------------------

    def _parameters(
        self, node: WKTNode, method_name: str, angular: UnitOfMeasure, linear: UnitOfMeasure
    ) -> Tuple[OperationParameterValue, ...]:
        mapping = method_by_name(method_name)
        params = []
        for child in _keyword_children(node, "PARAMETER", "PARAMETERFILE"):
            pname = _name(child)
            ids = _identifiers(child)
            if child.value.upper() == "PARAMETERFILE":
                if len(child.children) < 2:
                    raise ParsingError(f"PARAMETERFILE[{pname!r}]: missing file name")
                params.append(OperationParameterValue(pname, unquote(child.children[1].value), None, ids))
                continue
            value = _number_at(child, 1, f"value of {pname!r}")
            kind = None
            if mapping is not None:
                pm = next((p for p in mapping.params if p.name.lower() == pname.lower()), None)
                kind = pm.kind if pm is not None else None
            # a bare UNIT keyword takes its type from the parameter
            unit = self._unit_child(child, _PARAM_UNIT_TYPES.get(kind, UnitType.NONE))
            if unit is None:
                unit = {"angular": angular, "linear": linear, "scale": UNITY}.get(kind)
            params.append(OperationParameterValue(pname, value, unit, ids))
        return tuple(params)

    def _method(self, node: WKTNode) -> Tuple[str, Tuple[Identifier, ...]]:
        method = node.look_for_any_child("METHOD", "PROJECTION")
        if method is None:
            raise ParsingError(f"{node.value}: missing METHOD")
        return _name(method), _identifiers(method)

    def _conversion(self, node: WKTNode, angular: UnitOfMeasure, linear: UnitOfMeasure) -> Conversion:
        name = _name(node)
        self._check_children(node, ("METHOD", "PROJECTION", "PARAMETER", "PARAMETERFILE"))
        method_name, method_ids = self._method(node)
        params = self._parameters(node, method_name, angular, linear)
        return Conversion(name, method_name, params, method_ids, _identifiers(node))

    def _conversion_wkt1(self, node: WKTNode, angular: UnitOfMeasure, linear: UnitOfMeasure) -> Conversion:
        projection = node.look_for_child("PROJECTION")
        if projection is None:
            raise ParsingError(f"PROJCS[{_name(node)!r}]: missing PROJECTION")
        wkt1_method = _name(projection)
        mapping = method_by_name(wkt1_method)
        if mapping is None:
            self._warn(f"unknown projection method {wkt1_method!r}: parameters kept as written")
        params = []
        for child in _keyword_children(node, "PARAMETER"):
            pname = _name(child)
            value = _number_at(child, 1, f"value of {pname!r}")
            pm = None
            if mapping is not None:
                pm = next(
                    (p for p in mapping.params if pname.lower() in (p.wkt1_name.lower(), p.esri_name.lower())),
                    None,
                )
                if pm is None:
                    self._warn(f"parameter {pname!r} is not used by {mapping.name}")
            if pm is None:
                params.append(OperationParameterValue(pname, value))
                continue
            unit = {"angular": angular, "linear": linear, "scale": UNITY}[pm.kind]
            params.append(OperationParameterValue(pm.name, value, unit, (Identifier("EPSG", pm.epsg_code),)))

        if mapping is None:
            return Conversion("unknown", wkt1_method, tuple(params))
        conv = Conversion("unknown", mapping.name, tuple(params), (Identifier("EPSG", mapping.epsg_code),))
        if mapping.proj_name == "tmerc":
            v = conv.proj_values()
            try:
                zone = utm_zone(v["lon_0"], v["lat_0"], v["k"], v["x_0"], v["y_0"])
            except KeyError:
                zone = None
            if zone is not None:
                conv.name = utm_label(*zone)
        return conv

    def _crs_wrapper(self, node: WKTNode, keyword: str) -> CRS:
        wrapper = node.look_for_child(keyword)
        if wrapper is None:
            raise ParsingError(f"{node.value}: missing {keyword}")
        inner = [c for c in wrapper.children if c.children]
        if len(inner) != 1:
            raise ParsingError(f"{keyword}: expected exactly one CRS")
        return self._build_crs(inner[0])

    def _transformation(self, node: WKTNode) -> Transformation:
        name = _name(node)
        self._check_children(node, (
            "SOURCECRS", "TARGETCRS", "INTERPOLATIONCRS", "METHOD", "PARAMETER", "PARAMETERFILE", "OPERATIONACCURACY",
        ))
        source = self._crs_wrapper(node, "SOURCECRS")
        target = self._crs_wrapper(node, "TARGETCRS")
        method_name, method_ids = self._method(node)
        params = self._parameters(node, method_name, DEGREE, METRE)
        acc_node = node.look_for_child("OPERATIONACCURACY")
        accuracy = _number_at(acc_node, 0, "value") if acc_node is not None else None
        scope, extent = self._usage(node)
        return Transformation(
            name, source, target, method_name, params, accuracy, method_ids, _identifiers(node), scope, extent,
        )

    def _concatenated(self, node: WKTNode) -> ConcatenatedOperation:
        name = _name(node)
        self._check_children(node, ("SOURCECRS", "TARGETCRS", "STEP"))
        steps = []
        for step in _keyword_children(node, "STEP"):
            inner = [c for c in step.children if c.children]
            if len(inner) != 1:
                raise ParsingError("STEP: expected exactly one operation")
            op = self.build(inner[0])
            if not isinstance(op, CoordinateOperation):
                raise ParsingError(f"STEP: {inner[0].value} is not a coordinate operation")
            steps.append(op)
        if not steps:
            raise ParsingError(f"CONCATENATEDOPERATION[{name!r}]: no STEP")
        return ConcatenatedOperation(name, tuple(steps), _identifiers(node))


__all__ = ["WKTObjectBuilder"]
