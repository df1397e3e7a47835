"""Domain objects from a parsed pipeline.

A single non-inverted ``longlat`` step is a geographic CRS and a single step
of a catalogued projection is a projected CRS; anything else is kept as a
PROJ-based operation.
"""
from __future__ import annotations

from typing import Optional, Tuple

from app.crs.crs import GeographicCRS, ProjectedCRS
from app.crs.epsg_catalog import (
    ELLIPSOIDS,
    FAMILIES,
    ellipsoid_from_proj_name,
    method_by_code,
    method_by_proj_name,
    prime_meridian_from_proj_name,
    utm_label,
)
from app.crs.objects import (
    DEGREE,
    GREENWICH,
    METRE,
    UNITY,
    Ellipsoid,
    GeodeticReferenceFrame,
    Identifier,
    PrimeMeridian,
    UnitOfMeasure,
    UnitType,
    cartesian_cs,
    ellipsoidal_cs,
    unit_from_proj_name,
)
from app.crs.operations import Conversion, OperationParameterValue, PROJBasedOperation
from app.errors import ParsingError
from .formatter import PROJStringFormatter
from .model import Pipeline, Step

GEOGRAPHIC_NAMES = ("longlat", "latlong", "lonlat", "latlon")
DEFAULT_PARAM_VALUES = {"k": 1.0}


def _float(step: Step, name: str, default: Optional[float] = None) -> Optional[float]:
    text = step.param_value(name)
    if text is None:
        return default
    try:
        return float(text)
    except ValueError:
        raise ParsingError(f"+{name}={text}: not a number") from None


def _ellipsoid(step: Step) -> Tuple[Ellipsoid, Optional[str]]:
    """Ellipsoid and, for +datum, the official datum name."""
    datum = step.param_value("datum")
    if datum is not None:
        family = FAMILIES.get(datum)
        if family is None:
            raise ParsingError(f"unknown +datum={datum}")
        proj_name, a, rf = ELLIPSOIDS[family["ellipsoid"]]
        return Ellipsoid(family["ellipsoid"], a, rf), family["datum"]

    ellps = step.param_value("ellps")
    if ellps is not None:
        found = ellipsoid_from_proj_name(ellps)
        if found is None:
            raise ParsingError(f"unknown +ellps={ellps}")
        return Ellipsoid(*found), None

    radius = _float(step, "R")
    if radius is not None:
        return Ellipsoid("unknown", radius, 0.0), None
    a = _float(step, "a")
    if a is not None:
        rf = _float(step, "rf")
        if rf is None:
            b = _float(step, "b")
            if b is None:
                f = _float(step, "f")
                if f is None:
                    raise ParsingError("+a needs one of +rf, +b or +f")
                rf = 0.0 if f == 0 else 1.0 / f
            else:
                rf = 0.0 if a == b else a / (a - b)
        return Ellipsoid("unknown", a, rf), None

    name = "WGS 84"
    _, a, rf = ELLIPSOIDS[name]
    return Ellipsoid(name, a, rf), None


def _prime_meridian(step: Step) -> PrimeMeridian:
    pm = step.param_value("pm")
    if pm is None:
        return GREENWICH
    known = prime_meridian_from_proj_name(pm)
    if known is not None:
        return PrimeMeridian(known[0], known[1], DEGREE)
    try:
        return PrimeMeridian("unknown", float(pm), DEGREE)
    except ValueError:
        raise ParsingError(f"unknown +pm={pm}") from None


def _geographic(step: Step) -> GeographicCRS:
    ellipsoid, datum_name = _ellipsoid(step)
    if datum_name is None:
        datum_name = f"Unknown based on {ellipsoid.name} ellipsoid"
    datum = GeodeticReferenceFrame(datum_name, ellipsoid, _prime_meridian(step))
    towgs84 = None
    if step.has_param("towgs84"):
        try:
            values = [float(v) for v in (step.param_value("towgs84") or "").split(",")]
        except ValueError:
            raise ParsingError("+towgs84: expected comma-separated numbers") from None
        if len(values) not in (3, 7):
            raise ParsingError(f"+towgs84: expected 3 or 7 values, got {len(values)}")
        towgs84 = tuple(values + [0.0] * (7 - len(values)))
    lat_first = (step.param_value("axis") or "enu").startswith("n")
    cs = ellipsoidal_cs(DEGREE, lat_first=lat_first)
    return GeographicCRS("unknown", datum, cs, towgs84=towgs84)


def _linear_unit(step: Step) -> UnitOfMeasure:
    units = step.param_value("units")
    if units is not None:
        unit = unit_from_proj_name(units)
        if unit is None:
            raise ParsingError(f"unknown +units={units}")
        return unit
    to_meter = _float(step, "to_meter")
    if to_meter is not None and to_meter != 1.0:
        return UnitOfMeasure("unknown", to_meter, UnitType.LINEAR)
    return METRE


def _conversion(step: Step) -> Conversion:
    if step.name == "utm":
        zone_text = step.param_value("zone")
        try:
            zone = int(zone_text or "")
        except ValueError:
            raise ParsingError(f"+proj=utm: invalid +zone={zone_text}") from None
        if not 1 <= zone <= 60:
            raise ParsingError(f"+proj=utm: zone {zone} out of range")
        south = step.has_param("south")
        values = {
            "lat_0": 0.0, "lon_0": zone * 6.0 - 183.0, "k": 0.9996,
            "x_0": 500000.0, "y_0": 10000000.0 if south else 0.0,
        }
        mapping = method_by_code("9807")
        name = utm_label(zone, "S" if south else "N")
    else:
        mapping = method_by_proj_name("tmerc" if step.name == "etmerc" else step.name)
        values = {}
        for pm in mapping.params:
            default = DEFAULT_PARAM_VALUES.get(pm.proj_name, 0.0)
            value = _float(step, pm.proj_name)
            if value is None and pm.proj_name == "k":
                value = _float(step, "k_0")
            values[pm.proj_name] = default if value is None else value
        name = "unknown"
    units = {"angular": DEGREE, "linear": METRE, "scale": UNITY}
    params = tuple(
        OperationParameterValue(pm.name, values[pm.proj_name], units[pm.kind], (Identifier("EPSG", pm.epsg_code),))
        for pm in mapping.params
    )
    return Conversion(name, mapping.name, params, (Identifier("EPSG", mapping.epsg_code),))


def _projected(step: Step) -> ProjectedCRS:
    base = _geographic(step)
    return ProjectedCRS("unknown", base, _conversion(step), cartesian_cs(_linear_unit(step)))


def _is_projection(name: str) -> bool:
    return name in ("utm", "etmerc") or method_by_proj_name(name) is not None


def build_object(pipeline: Pipeline):
    steps = pipeline.steps
    if len(steps) == 1 and not steps[0].inverted:
        step = steps[0]
        if step.name in GEOGRAPHIC_NAMES:
            return _geographic(step)
        if _is_projection(step.name):
            return _projected(step)
    fmt = PROJStringFormatter()
    for step in steps:
        fmt.add_step(step.name)
        fmt.set_current_step_inverted(step.inverted)
        for p in step.params:
            fmt.add_param(p.name, p.value)
    return PROJBasedOperation(fmt.to_string())


__all__ = ["build_object", "GEOGRAPHIC_NAMES"]
