from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

# Minimal, programmatic catalog of the EPSG pieces the formatters need to
# translate between WKT vocabularies and PROJ string parameters.


@dataclass(frozen=True)
class ParamMapping:
    epsg_code: str
    name: str  # EPSG / WKT2 name
    proj_name: Optional[str]
    wkt1_name: str
    esri_name: str
    kind: str  # angular, linear, scale, rotation (arc-second) or file


@dataclass(frozen=True)
class MethodMapping:
    epsg_code: str
    name: str
    proj_name: Optional[str]
    wkt1_name: Optional[str]
    esri_name: Optional[str]
    params: Tuple[ParamMapping, ...] = field(default_factory=tuple)


def _p(code, name, proj, wkt1, esri, kind) -> ParamMapping:
    return ParamMapping(code, name, proj, wkt1, esri, kind)


LAT_NAT = _p("8801", "Latitude of natural origin", "lat_0", "latitude_of_origin", "Latitude_Of_Origin", "angular")
LON_NAT = _p("8802", "Longitude of natural origin", "lon_0", "central_meridian", "Central_Meridian", "angular")
K_NAT = _p("8805", "Scale factor at natural origin", "k", "scale_factor", "Scale_Factor", "scale")
FE = _p("8806", "False easting", "x_0", "false_easting", "False_Easting", "linear")
FN = _p("8807", "False northing", "y_0", "false_northing", "False_Northing", "linear")

METHODS: Dict[str, MethodMapping] = {
    "9807": MethodMapping(
        "9807", "Transverse Mercator", "tmerc", "Transverse_Mercator", "Transverse_Mercator",
        (LAT_NAT, LON_NAT, K_NAT, FE, FN),
    ),
    "9804": MethodMapping(
        "9804", "Mercator (variant A)", "merc", "Mercator_1SP", "Mercator",
        (LAT_NAT, LON_NAT, K_NAT, FE, FN),
    ),
    "9802": MethodMapping(
        "9802", "Lambert Conic Conformal (2SP)", "lcc", "Lambert_Conformal_Conic_2SP", "Lambert_Conformal_Conic",
        (
            _p("8821", "Latitude of false origin", "lat_0", "latitude_of_origin", "Latitude_Of_Origin", "angular"),
            _p("8822", "Longitude of false origin", "lon_0", "central_meridian", "Central_Meridian", "angular"),
            _p("8823", "Latitude of 1st standard parallel", "lat_1", "standard_parallel_1", "Standard_Parallel_1", "angular"),
            _p("8824", "Latitude of 2nd standard parallel", "lat_2", "standard_parallel_2", "Standard_Parallel_2", "angular"),
            _p("8826", "Easting at false origin", "x_0", "false_easting", "False_Easting", "linear"),
            _p("8827", "Northing at false origin", "y_0", "false_northing", "False_Northing", "linear"),
        ),
    ),
    "9820": MethodMapping(
        "9820", "Lambert Azimuthal Equal Area", "laea", "Lambert_Azimuthal_Equal_Area", "Lambert_Azimuthal_Equal_Area",
        (
            _p("8801", "Latitude of natural origin", "lat_0", "latitude_of_center", "Latitude_Of_Origin", "angular"),
            _p("8802", "Longitude of natural origin", "lon_0", "longitude_of_center", "Central_Meridian", "angular"),
            FE,
            FN,
        ),
    ),
    # Transformations
    "9603": MethodMapping(
        "9603", "Geocentric translations (geog2D domain)", "helmert", None, None,
        (
            _p("8605", "X-axis translation", "x", "dx", "X_Axis_Translation", "linear"),
            _p("8606", "Y-axis translation", "y", "dy", "Y_Axis_Translation", "linear"),
            _p("8607", "Z-axis translation", "z", "dz", "Z_Axis_Translation", "linear"),
        ),
    ),
    "9606": MethodMapping(
        "9606", "Position Vector transformation (geog2D domain)", "helmert", None, None,
        (
            _p("8605", "X-axis translation", "x", "dx", "X_Axis_Translation", "linear"),
            _p("8606", "Y-axis translation", "y", "dy", "Y_Axis_Translation", "linear"),
            _p("8607", "Z-axis translation", "z", "dz", "Z_Axis_Translation", "linear"),
            _p("8608", "X-axis rotation", "rx", "ex", "X_Axis_Rotation", "rotation"),
            _p("8609", "Y-axis rotation", "ry", "ey", "Y_Axis_Rotation", "rotation"),
            _p("8610", "Z-axis rotation", "rz", "ez", "Z_Axis_Rotation", "rotation"),
            _p("8611", "Scale difference", "s", "ppm", "Scale_Difference", "scale"),
        ),
    ),
    "9615": MethodMapping(
        "9615", "NTv2", "hgridshift", None, None,
        (_p("8656", "Latitude and longitude difference file", "grids", "", "", "file"),),
    ),
    "9665": MethodMapping(
        "9665", "Geographic3D to GravityRelatedHeight (gtx)", "vgridshift", None, None,
        (_p("8666", "Geoid (height correction) model file", "grids", "", "", "file"),),
    ),
}

# Ellipsoid name -> (PROJ +ellps name, semi-major axis, inverse flattening)
ELLIPSOIDS: Dict[str, Tuple[str, float, float]] = {
    "WGS 84": ("WGS84", 6378137.0, 298.257223563),
    "GRS 1980": ("GRS80", 6378137.0, 298.257222101),
    "International 1924": ("intl", 6378388.0, 297.0),
    "Clarke 1866": ("clrk66", 6378206.4, 294.978698213898),
    "Bessel 1841": ("bessel", 6377397.155, 299.1528128),
    "Clarke 1880 (IGN)": ("clrk80ign", 6378249.2, 293.466021293627),
}

# Datum families and their PROJ +datum names
FAMILIES = {
    "WGS84": {"datum": "World Geodetic System 1984", "ellipsoid": "WGS 84", "label": "WGS 84"},
    "NAD83": {"datum": "North American Datum 1983", "ellipsoid": "GRS 1980", "label": "NAD83"},
    "NAD27": {"datum": "North American Datum 1927", "ellipsoid": "Clarke 1866", "label": "NAD27"},
}

# Unit name -> PROJ unit id
PROJ_UNITS: Dict[str, str] = {
    "metre": "m",
    "kilometre": "km",
    "foot": "ft",
    "US survey foot": "us-ft",
    "degree": "deg",
    "grad": "grad",
    "radian": "rad",
}

# Prime meridian name -> (PROJ +pm name, longitude in degree)
PROJ_PRIME_MERIDIANS: Dict[str, Tuple[str, float]] = {
    "Paris": ("paris", 2.33722917),
    "Ferro": ("ferro", -17.6666666666667),
    "Rome": ("rome", 12.4523333333333),
}

# EPSG datum name -> GDAL WKT1 spelling, where it is not a plain morph
WKT1_DATUM_NAMES: Dict[str, str] = {
    "World Geodetic System 1984": "WGS_1984",
}

ESRI_UNIT_NAMES: Dict[str, str] = {
    "metre": "Meter",
    "degree": "Degree",
    "US survey foot": "Foot_US",
    "foot": "Foot",
    "radian": "Radian",
    "grad": "Grad",
}


def method_by_code(code: Optional[str]) -> Optional[MethodMapping]:
    if code is None:
        return None
    return METHODS.get(str(code))


def method_by_name(name: str) -> Optional[MethodMapping]:
    """Lookup by EPSG, WKT1 or ESRI method name (case-insensitive)."""
    key = name.replace(" ", "_").upper()
    for m in METHODS.values():
        for candidate in (m.name, m.wkt1_name, m.esri_name):
            if candidate and candidate.replace(" ", "_").upper() == key:
                return m
    return None


def method_by_proj_name(proj_name: str) -> Optional[MethodMapping]:
    for m in METHODS.values():
        if m.proj_name == proj_name and m.params and m.params[0].kind != "file" and m.wkt1_name:
            return m
    return None


def param_by_name(method: MethodMapping, name: str) -> Optional[ParamMapping]:
    key = name.replace(" ", "_").upper()
    for p in method.params:
        for candidate in (p.name, p.wkt1_name, p.esri_name):
            if candidate and candidate.replace(" ", "_").upper() == key:
                return p
    return None


def ellipsoid_proj_name(name: str, semi_major: float, inv_flattening: float) -> Optional[str]:
    entry = ELLIPSOIDS.get(name)
    if entry and entry[1] == semi_major and entry[2] == inv_flattening:
        return entry[0]
    return None


def ellipsoid_from_proj_name(proj_name: str) -> Optional[Tuple[str, float, float]]:
    for name, (pn, a, rf) in ELLIPSOIDS.items():
        if pn == proj_name:
            return name, a, rf
    return None


def prime_meridian_proj_name(name: str) -> Optional[str]:
    entry = PROJ_PRIME_MERIDIANS.get(name)
    return entry[0] if entry else None


def prime_meridian_from_proj_name(proj_name: str) -> Optional[Tuple[str, float]]:
    for name, (pn, lon) in PROJ_PRIME_MERIDIANS.items():
        if pn == proj_name:
            return name, lon
    return None


def family_for_datum(datum_name: str) -> Optional[str]:
    for key, fam in FAMILIES.items():
        if fam["datum"] == datum_name:
            return key
    return None


def utm_zone(lon_0: float, lat_0: float, k: float, x_0: float, y_0: float) -> Optional[Tuple[int, str]]:
    """Return (zone, hemisphere) when TM parameters are exactly those of a UTM zone."""
    if lat_0 != 0.0 or k != 0.9996 or x_0 != 500000.0 or y_0 not in (0.0, 10000000.0):
        return None
    zone = (lon_0 + 183.0) / 6.0
    if zone != int(zone) or not 1 <= zone <= 60:
        return None
    return int(zone), ("S" if y_0 == 10000000.0 else "N")


def utm_label(zone: int, hemi: Optional[str]) -> str:
    hemich = "S" if hemi == "S" else "N"
    return f"UTM zone {int(zone)}{hemich}"


__all__ = [
    "ParamMapping",
    "MethodMapping",
    "METHODS",
    "ELLIPSOIDS",
    "FAMILIES",
    "PROJ_UNITS",
    "PROJ_PRIME_MERIDIANS",
    "ESRI_UNIT_NAMES",
    "WKT1_DATUM_NAMES",
    "method_by_code",
    "method_by_name",
    "method_by_proj_name",
    "param_by_name",
    "ellipsoid_proj_name",
    "ellipsoid_from_proj_name",
    "family_for_datum",
    "prime_meridian_proj_name",
    "prime_meridian_from_proj_name",
    "utm_zone",
    "utm_label",
]
