"""Reference CRS object model rendered by the WKT and PROJ string formatters.

Modules:
 - objects: units, extents, ellipsoids, datums, axes and coordinate systems
 - crs: geographic, projected, vertical and compound CRS
 - operations: conversions, transformations, concatenated and PROJ-based operations
 - epsg_catalog: method/parameter vocabularies shared by WKT1, ESRI and PROJ
 - exportable: the two export capabilities every object implements
"""

__all__ = [
    "objects",
    "crs",
    "operations",
    "epsg_catalog",
    "exportable",
]
