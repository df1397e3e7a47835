from __future__ import annotations

import enum
import re
from dataclasses import dataclass, field
from typing import List, Optional, Set

# -----------------------------
# Keyword signatures
# -----------------------------

WKT1_ROOTS = {"GEOGCS", "PROJCS", "GEOCCS", "VERT_CS", "VERTCS", "COMPD_CS", "LOCAL_CS", "FITTED_CS"}

WKT2_ROOTS = {
    "GEODCRS", "GEODETICCRS", "GEOGCRS", "GEOGRAPHICCRS",
    "PROJCRS", "PROJECTEDCRS", "VERTCRS", "VERTICALCRS",
    "COMPOUNDCRS", "BOUNDCRS", "ENGCRS", "ENGINEERINGCRS",
    "PARAMETRICCRS", "TIMECRS", "DERIVEDPROJCRS",
    "COORDINATEOPERATION", "CONCATENATEDOPERATION",
    "COORDINATEMETADATA", "POINTMOTIONOPERATION",
    "ELLIPSOID", "SPHEROID", "DATUM", "TRF", "GEODETICDATUM",
    "VDATUM", "VRF", "VERTICALDATUM", "PRIMEM", "PRIMEMERIDIAN",
    "CONVERSION", "ENSEMBLE",
}

# Only defined by ISO 19162:2018
WKT2_2018_ONLY = {
    "GEOGCRS", "GEOGRAPHICCRS", "BASEGEOGCRS", "USAGE", "TIMECRS",
    "DERIVEDPROJCRS", "COORDINATEMETADATA", "POINTMOTIONOPERATION",
    "ENSEMBLE", "VERSION", "DYNAMIC", "MEMBER",
}

ESRI_NAME_PREFIXES = ("GCS_", "D_")

_QUOTED_RE = re.compile(r'"(?:[^"]|"")*"')
_FIRST_KW_RE = re.compile(r"\s*([A-Za-z_][A-Za-z0-9_]*)\s*[\[\(]")
_KW_RE = re.compile(r"([A-Za-z_][A-Za-z0-9_]*)\s*[\[\(]")
_NAMED_RE = re.compile(r'([A-Za-z_][A-Za-z0-9_]*)\s*[\[\(]\s*"(\d+)"')


class WKTGuessedDialect(str, enum.Enum):
    WKT2_2018 = "WKT2_2018"
    WKT2_2015 = "WKT2_2015"
    WKT1_GDAL = "WKT1_GDAL"
    WKT1_ESRI = "WKT1_ESRI"
    NOT_WKT = "NOT_WKT"


@dataclass
class DialectFeatures:
    root: Optional[str] = None
    keywords: Set[str] = field(default_factory=set)
    esri_names: List[str] = field(default_factory=list)


def extract_features(text: str) -> DialectFeatures:
    feats = DialectFeatures()
    m = _FIRST_KW_RE.match(text)
    if not m:
        return feats
    feats.root = m.group(1).upper()

    # Keywords and names only count outside quoted literals: each literal
    # is replaced by its index so nothing inside one is scanned again.
    literals: List[str] = []

    def _mask(lit: re.Match) -> str:
        literals.append(lit.group(0)[1:-1].replace('""', '"'))
        return '"%d"' % (len(literals) - 1)

    bare = _QUOTED_RE.sub(_mask, text)
    feats.keywords = {k.upper() for k in _KW_RE.findall(bare)}

    for kw, index in _NAMED_RE.findall(bare):
        name = literals[int(index)]
        if kw.upper() in ("GEOGCS", "DATUM") and name.startswith(ESRI_NAME_PREFIXES):
            feats.esri_names.append(name)
    return feats


def guess_dialect(text: str) -> WKTGuessedDialect:
    """Cheap guess of the WKT flavour of ``text``. Never raises."""
    if not isinstance(text, str):
        return WKTGuessedDialect.NOT_WKT
    feats = extract_features(text)
    root = feats.root
    if root is None:
        return WKTGuessedDialect.NOT_WKT

    if root in WKT1_ROOTS:
        if feats.esri_names or "VERTCS" in feats.keywords:
            return WKTGuessedDialect.WKT1_ESRI
        return WKTGuessedDialect.WKT1_GDAL

    if root in WKT2_ROOTS:
        if feats.keywords & WKT2_2018_ONLY:
            return WKTGuessedDialect.WKT2_2018
        return WKTGuessedDialect.WKT2_2015

    return WKTGuessedDialect.NOT_WKT


__all__ = [
    "WKTGuessedDialect",
    "DialectFeatures",
    "extract_features",
    "guess_dialect",
]
