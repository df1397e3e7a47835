"""Building blocks shared by CRS and coordinate operation objects.

Only the identifying attributes take part in equality; identifiers, scopes
and extents are metadata and are excluded so that objects compare equal
across dialects that drop them.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

from wkt.formatter import Version, WKTFormatter
from .epsg_catalog import ESRI_UNIT_NAMES, PROJ_UNITS, WKT1_DATUM_NAMES, ellipsoid_proj_name
from app.errors import FormattingError


@dataclass(frozen=True)
class Identifier:
    authority: str
    code: str

    def __str__(self) -> str:
        return f"{self.authority}:{self.code}"


def write_identifiers(formatter: WKTFormatter, identifiers: Sequence[Identifier]) -> None:
    """Write ID (WKT2) or AUTHORITY (WKT1) nodes if the formatter wants them here."""
    if not identifiers or not formatter.output_id():
        return
    if formatter.version() is Version.WKT1:
        ident = identifiers[0]
        with formatter.scoped_node("AUTHORITY", False):
            formatter.add_quoted_string(ident.authority)
            formatter.add_quoted_string(ident.code)
        return
    for ident in identifiers:
        with formatter.scoped_node("ID", False):
            formatter.add_quoted_string(ident.authority)
            if ident.code.isdigit():
                formatter.add_integer(int(ident.code))
            else:
                formatter.add_quoted_string(ident.code)


def esri_name(formatter: WKTFormatter, name: str, table: str, prefix: str = "") -> str:
    """ESRI spelling of ``name``: registry alias when known, else a morphed name."""
    db = formatter.database_context
    if db is not None:
        alias = db.get_alias_from_official_name(name, table, "ESRI")
        if alias:
            return alias
    morphed = WKTFormatter.morph_name_to_esri(name)
    if prefix and not morphed.startswith(prefix):
        morphed = prefix + morphed
    return morphed


class UnitType(str, enum.Enum):
    LINEAR = "LINEAR"
    ANGULAR = "ANGULAR"
    SCALE = "SCALE"
    NONE = "NONE"


_WKT2_UNIT_KEYWORDS = {
    UnitType.LINEAR: "LENGTHUNIT",
    UnitType.ANGULAR: "ANGLEUNIT",
    UnitType.SCALE: "SCALEUNIT",
}


@dataclass(frozen=True)
class UnitOfMeasure:
    name: str
    conversion_to_si: float
    type: UnitType = UnitType.NONE
    identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)

    @property
    def proj_name(self) -> Optional[str]:
        return PROJ_UNITS.get(self.name)

    def _export_to_wkt(self, formatter: WKTFormatter) -> None:
        keyword = "UNIT"
        if formatter.version() is Version.WKT2 and not formatter.force_unit_keyword():
            keyword = _WKT2_UNIT_KEYWORDS.get(self.type, "UNIT")
        name = self.name
        if formatter.use_esri_dialect():
            name = ESRI_UNIT_NAMES.get(name) or WKTFormatter.morph_name_to_esri(name)
        with formatter.scoped_node(keyword, bool(self.identifiers)):
            formatter.add_quoted_string(name)
            formatter.add_number(self.conversion_to_si)
            write_identifiers(formatter, self.identifiers)


METRE = UnitOfMeasure("metre", 1.0, UnitType.LINEAR, (Identifier("EPSG", "9001"),))
US_FOOT = UnitOfMeasure("US survey foot", 0.304800609601219, UnitType.LINEAR, (Identifier("EPSG", "9003"),))
DEGREE = UnitOfMeasure("degree", 0.0174532925199433, UnitType.ANGULAR, (Identifier("EPSG", "9122"),))
GRAD = UnitOfMeasure("grad", 0.015707963267949, UnitType.ANGULAR, (Identifier("EPSG", "9105"),))
RADIAN = UnitOfMeasure("radian", 1.0, UnitType.ANGULAR, (Identifier("EPSG", "9101"),))
UNITY = UnitOfMeasure("unity", 1.0, UnitType.SCALE, (Identifier("EPSG", "9201"),))

_KNOWN_UNITS = {u.name.lower(): u for u in (METRE, US_FOOT, DEGREE, GRAD, RADIAN, UNITY)}
_KNOWN_UNITS.update({"meter": METRE, "foot_us": US_FOOT, "degree": DEGREE})


def known_unit(name: str) -> Optional[UnitOfMeasure]:
    """Lookup of the handful of units written without a conversion factor (ESRI, PROJ)."""
    return _KNOWN_UNITS.get(name.lower())


def unit_from_proj_name(proj_name: str) -> Optional[UnitOfMeasure]:
    for name, pn in PROJ_UNITS.items():
        if pn == proj_name:
            return known_unit(name)
    return None


@dataclass
class Extent:
    description: Optional[str] = None
    south: Optional[float] = None
    west: Optional[float] = None
    north: Optional[float] = None
    east: Optional[float] = None

    @property
    def has_bbox(self) -> bool:
        return None not in (self.south, self.west, self.north, self.east)


def write_usage(formatter: WKTFormatter, scope: Optional[str], extent: Optional[Extent]) -> None:
    if formatter.version() is not Version.WKT2 or (scope is None and extent is None):
        return
    if formatter.use_2018_keywords():
        with formatter.scoped_node("USAGE", False):
            _write_scope_extent(formatter, scope, extent)
    else:
        _write_scope_extent(formatter, scope, extent)


def _write_scope_extent(formatter: WKTFormatter, scope: Optional[str], extent: Optional[Extent]) -> None:
    if scope is not None:
        with formatter.scoped_node("SCOPE", False):
            formatter.add_quoted_string(scope)
    if extent is not None and extent.description:
        with formatter.scoped_node("AREA", False):
            formatter.add_quoted_string(extent.description)
    if extent is not None and extent.has_bbox:
        with formatter.scoped_node("BBOX", False):
            formatter.add_numbers([extent.south, extent.west, extent.north, extent.east])


@dataclass(frozen=True)
class PrimeMeridian:
    name: str
    longitude: float = 0.0
    unit: UnitOfMeasure = DEGREE
    identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)

    @property
    def is_greenwich(self) -> bool:
        return self.longitude == 0

    def longitude_in_degree(self) -> float:
        if self.unit == DEGREE:
            return self.longitude
        return self.longitude * self.unit.conversion_to_si / DEGREE.conversion_to_si

    def _export_to_wkt(self, formatter: WKTFormatter) -> None:
        value, unit = self.longitude, self.unit
        if formatter.prime_meridian_in_degree() and unit != DEGREE:
            value, unit = self.longitude_in_degree(), DEGREE
        with formatter.scoped_node("PRIMEM", bool(self.identifiers)):
            formatter.add_quoted_string(self.name)
            formatter.add_number(value)
            if formatter.version() is Version.WKT2:
                omit = (
                    formatter.prime_meridian_or_parameter_unit_omitted_if_same_as_axis()
                    and unit == formatter.axis_angular_unit()
                )
                if not omit:
                    unit._export_to_wkt(formatter)
            write_identifiers(formatter, self.identifiers)


GREENWICH = PrimeMeridian("Greenwich", 0.0, DEGREE, (Identifier("EPSG", "8901"),))


@dataclass
class Ellipsoid:
    name: str
    semi_major_axis: float
    inverse_flattening: float  # 0 for a sphere
    unit: UnitOfMeasure = METRE
    identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)

    @property
    def is_sphere(self) -> bool:
        return self.inverse_flattening == 0

    def _export_to_wkt(self, formatter: WKTFormatter) -> None:
        name = self.name
        if formatter.use_esri_dialect():
            name = esri_name(formatter, name, "ellipsoid")
        keyword = "ELLIPSOID" if formatter.version() is Version.WKT2 else "SPHEROID"
        with formatter.scoped_node(keyword, bool(self.identifiers)):
            formatter.add_quoted_string(name)
            formatter.add_number(self.semi_major_axis)
            formatter.add_number(self.inverse_flattening)
            if formatter.version() is Version.WKT2:
                if not (formatter.ellipsoid_unit_omitted_if_metre() and self.unit == METRE):
                    self.unit._export_to_wkt(formatter)
            write_identifiers(formatter, self.identifiers)

    def add_proj_params(self, formatter) -> None:
        """Append +ellps (or +a/+rf/+R) to the formatter's current step."""
        proj_name = ellipsoid_proj_name(self.name, self.semi_major_axis, self.inverse_flattening)
        if proj_name and self.unit == METRE:
            formatter.add_param("ellps", proj_name)
            return
        a = self.semi_major_axis * self.unit.conversion_to_si
        if self.is_sphere:
            formatter.add_param("R", a)
        else:
            formatter.add_param("a", a)
            formatter.add_param("rf", self.inverse_flattening)


@dataclass
class GeodeticReferenceFrame:
    name: str
    ellipsoid: Ellipsoid
    prime_meridian: PrimeMeridian = GREENWICH
    anchor: Optional[str] = field(default=None, compare=False)
    identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)

    def wkt1_name(self, formatter: WKTFormatter) -> str:
        if formatter.use_esri_dialect():
            return esri_name(formatter, self.name, "geodetic_datum", "D_")
        return WKT1_DATUM_NAMES.get(self.name) or WKTFormatter.morph_name_to_esri(self.name)

    def _export_to_wkt(self, formatter: WKTFormatter) -> None:
        wkt1 = formatter.version() is Version.WKT1
        with formatter.scoped_node("DATUM", bool(self.identifiers)):
            formatter.add_quoted_string(self.wkt1_name(formatter) if wkt1 else self.name)
            self.ellipsoid._export_to_wkt(formatter)
            towgs84 = formatter.get_towgs84_parameters()
            if wkt1 and towgs84:
                with formatter.scoped_node("TOWGS84", False):
                    formatter.add_numbers(towgs84)
            if not wkt1 and self.anchor:
                with formatter.scoped_node("ANCHOR", False):
                    formatter.add_quoted_string(self.anchor)
            write_identifiers(formatter, self.identifiers)


@dataclass
class VerticalReferenceFrame:
    name: str
    identifiers: Tuple[Identifier, ...] = field(default=(), compare=False)

    def _export_to_wkt(self, formatter: WKTFormatter) -> None:
        if formatter.version() is Version.WKT2 or formatter.use_esri_dialect():
            name = self.name
            if formatter.use_esri_dialect():
                name = esri_name(formatter, name, "vertical_datum")
            with formatter.scoped_node("VDATUM", bool(self.identifiers)):
                formatter.add_quoted_string(name)
                write_identifiers(formatter, self.identifiers)
            return
        with formatter.scoped_node("VERT_DATUM", bool(self.identifiers)):
            formatter.add_quoted_string(self.name)
            formatter.add_integer(2005)  # geoidally-referenced
            write_identifiers(formatter, self.identifiers)


# WKT1 axis spelling <-> (name, abbreviation)
WKT1_AXIS_NAMES = {
    "geodetic latitude": ("Latitude", "Lat"),
    "geodetic longitude": ("Longitude", "Lon"),
    "easting": ("Easting", "E"),
    "northing": ("Northing", "N"),
    "gravity-related height": ("Gravity-related height", "H"),
}


@dataclass
class Axis:
    name: str
    abbreviation: str
    direction: str
    unit: UnitOfMeasure

    def _export_to_wkt(self, formatter: WKTFormatter, order: Optional[int] = None) -> None:
        if formatter.version() is Version.WKT1:
            wkt1 = WKT1_AXIS_NAMES.get(self.name.lower())
            with formatter.scoped_node("AXIS", False):
                formatter.add_quoted_string(wkt1[0] if wkt1 else self.name)
                formatter.add(self.direction.upper())
            return
        label = f"{self.name} ({self.abbreviation})" if self.abbreviation else self.name
        with formatter.scoped_node("AXIS", False):
            formatter.add_quoted_string(label)
            formatter.add(self.direction.lower())
            if order is not None and formatter.output_axis_order():
                with formatter.scoped_node("ORDER", False):
                    formatter.add_integer(order)
            if formatter.output_unit():
                self.unit._export_to_wkt(formatter)

    @classmethod
    def from_wkt1(cls, name: str, direction: str, unit: UnitOfMeasure) -> "Axis":
        for wkt2_name, (wkt1_name, abbrev) in WKT1_AXIS_NAMES.items():
            if wkt1_name.lower() == name.lower():
                return cls(wkt2_name, abbrev, direction.lower(), unit)
        return cls(name, "", direction.lower(), unit)


@dataclass
class CoordinateSystem:
    kind: str  # "ellipsoidal", "Cartesian" or "vertical"
    axes: Tuple[Axis, ...]

    def common_unit(self) -> Optional[UnitOfMeasure]:
        units = {a.unit for a in self.axes}
        return next(iter(units)) if len(units) == 1 else None

    def is_north_first(self) -> bool:
        return bool(self.axes) and self.axes[0].direction.lower() == "north"

    def _export_to_wkt(self, formatter: WKTFormatter) -> None:
        """WKT2 CS node and its axes. WKT1 containers write AXIS themselves."""
        with formatter.scoped_node("CS", False):
            formatter.add(self.kind)
            formatter.add_integer(len(self.axes))
        unit = self.common_unit()
        collapse = formatter.output_cs_unit_only_once_if_same() and unit is not None
        with formatter.scoped_output_unit(formatter.output_unit() and not collapse):
            for i, axis in enumerate(self.axes, start=1):
                axis._export_to_wkt(formatter, i)
        if collapse:
            unit._export_to_wkt(formatter)

    def export_wkt1_axes(self, formatter: WKTFormatter) -> None:
        for axis in self.axes:
            axis._export_to_wkt(formatter)


def ellipsoidal_cs(unit: UnitOfMeasure = DEGREE, lat_first: bool = True) -> CoordinateSystem:
    lat = Axis("geodetic latitude", "Lat", "north", unit)
    lon = Axis("geodetic longitude", "Lon", "east", unit)
    return CoordinateSystem("ellipsoidal", (lat, lon) if lat_first else (lon, lat))


def cartesian_cs(unit: UnitOfMeasure = METRE) -> CoordinateSystem:
    return CoordinateSystem(
        "Cartesian", (Axis("easting", "E", "east", unit), Axis("northing", "N", "north", unit))
    )


def vertical_cs(unit: UnitOfMeasure = METRE) -> CoordinateSystem:
    return CoordinateSystem("vertical", (Axis("gravity-related height", "H", "up", unit),))


def proj_unit_name(unit: UnitOfMeasure) -> str:
    name = unit.proj_name
    if name is None:
        raise FormattingError(f"unit {unit.name!r} has no PROJ string equivalent")
    return name


__all__ = [
    "Identifier",
    "UnitType",
    "UnitOfMeasure",
    "METRE",
    "US_FOOT",
    "DEGREE",
    "GRAD",
    "RADIAN",
    "UNITY",
    "known_unit",
    "unit_from_proj_name",
    "Extent",
    "PrimeMeridian",
    "GREENWICH",
    "Ellipsoid",
    "GeodeticReferenceFrame",
    "VerticalReferenceFrame",
    "Axis",
    "CoordinateSystem",
    "ellipsoidal_cs",
    "cartesian_cs",
    "vertical_cs",
    "write_identifiers",
    "write_usage",
    "esri_name",
    "proj_unit_name",
]
