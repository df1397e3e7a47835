"""Object categories used to classify registry rows and filter lookups."""
from __future__ import annotations

import enum
from typing import Dict, Optional, Tuple


class ObjectType(str, enum.Enum):
    PRIME_MERIDIAN = "PRIME_MERIDIAN"
    ELLIPSOID = "ELLIPSOID"
    DATUM = "DATUM"
    GEODETIC_REFERENCE_FRAME = "GEODETIC_REFERENCE_FRAME"
    VERTICAL_REFERENCE_FRAME = "VERTICAL_REFERENCE_FRAME"
    CRS = "CRS"
    GEODETIC_CRS = "GEODETIC_CRS"
    GEOCENTRIC_CRS = "GEOCENTRIC_CRS"
    GEOGRAPHIC_CRS = "GEOGRAPHIC_CRS"
    GEOGRAPHIC_2D_CRS = "GEOGRAPHIC_2D_CRS"
    GEOGRAPHIC_3D_CRS = "GEOGRAPHIC_3D_CRS"
    PROJECTED_CRS = "PROJECTED_CRS"
    VERTICAL_CRS = "VERTICAL_CRS"
    COMPOUND_CRS = "COMPOUND_CRS"
    COORDINATE_OPERATION = "COORDINATE_OPERATION"
    CONVERSION = "CONVERSION"
    TRANSFORMATION = "TRANSFORMATION"
    CONCATENATED_OPERATION = "CONCATENATED_OPERATION"


# (table, allowed values of its "type" column or None for every row)
TableFilter = Tuple[str, Optional[Tuple[str, ...]]]

_GEOGRAPHIC = ("geographic 2D", "geographic 3D")

CATEGORY_TABLES: Dict[ObjectType, Tuple[TableFilter, ...]] = {
    ObjectType.PRIME_MERIDIAN: (("prime_meridian", None),),
    ObjectType.ELLIPSOID: (("ellipsoid", None),),
    ObjectType.DATUM: (("geodetic_datum", None), ("vertical_datum", None)),
    ObjectType.GEODETIC_REFERENCE_FRAME: (("geodetic_datum", None),),
    ObjectType.VERTICAL_REFERENCE_FRAME: (("vertical_datum", None),),
    ObjectType.CRS: (
        ("geodetic_crs", None),
        ("projected_crs", None),
        ("vertical_crs", None),
        ("compound_crs", None),
    ),
    ObjectType.GEODETIC_CRS: (("geodetic_crs", None),),
    ObjectType.GEOCENTRIC_CRS: (("geodetic_crs", ("geocentric",)),),
    ObjectType.GEOGRAPHIC_CRS: (("geodetic_crs", _GEOGRAPHIC),),
    ObjectType.GEOGRAPHIC_2D_CRS: (("geodetic_crs", ("geographic 2D",)),),
    ObjectType.GEOGRAPHIC_3D_CRS: (("geodetic_crs", ("geographic 3D",)),),
    ObjectType.PROJECTED_CRS: (("projected_crs", None),),
    ObjectType.VERTICAL_CRS: (("vertical_crs", None),),
    ObjectType.COMPOUND_CRS: (("compound_crs", None),),
    ObjectType.COORDINATE_OPERATION: (("conversion", None), ("coordinate_operation", None)),
    ObjectType.CONVERSION: (("conversion", None),),
    ObjectType.TRANSFORMATION: (("coordinate_operation", ("transformation",)),),
    ObjectType.CONCATENATED_OPERATION: (("coordinate_operation", ("concatenated",)),),
}

# Tables holding identified objects, in the order lookups visit them
OBJECT_TABLES: Tuple[str, ...] = (
    "unit_of_measure",
    "extent",
    "prime_meridian",
    "ellipsoid",
    "geodetic_datum",
    "vertical_datum",
    "geodetic_crs",
    "projected_crs",
    "vertical_crs",
    "compound_crs",
    "conversion",
    "coordinate_operation",
)

# Tables whose rows carry a "type" discriminator column
TYPED_TABLES = ("geodetic_crs", "coordinate_operation")


def tables_for(types) -> Tuple[TableFilter, ...]:
    """Union of the table filters of ``types``, merged per table, in OBJECT_TABLES order.

    An empty ``types`` means every object table except units and extents.
    """
    if not types:
        return tuple((t, None) for t in OBJECT_TABLES[2:])
    merged: Dict[str, Optional[set]] = {}
    for object_type in types:
        for table, allowed in CATEGORY_TABLES[ObjectType(object_type)]:
            if table in merged and merged[table] is None:
                continue
            if allowed is None:
                merged[table] = None
            else:
                merged.setdefault(table, set()).update(allowed)
    return tuple(
        (t, None if merged[t] is None else tuple(sorted(merged[t])))
        for t in OBJECT_TABLES
        if t in merged
    )


__all__ = ["ObjectType", "CATEGORY_TABLES", "OBJECT_TABLES", "TYPED_TABLES", "TableFilter", "tables_for"]
