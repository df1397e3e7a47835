"""Builds domain objects from the rows of a registry database.

An AuthorityFactory is bound to one DatabaseContext and one authority name.
It holds no state beyond that binding: every call queries the registry again.
Missing rows raise NoSuchAuthorityCodeError, rows that cannot be turned into
an object raise FactoryError.
"""
from __future__ import annotations

import dataclasses
import logging
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Tuple

from app.crs.crs import CRS, CompoundCRS, GeographicCRS, ProjectedCRS, VerticalCRS
from app.crs.objects import (
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
)
from app.crs.operations import (
    ConcatenatedOperation,
    Conversion,
    CoordinateOperation,
    OperationParameterValue,
    Transformation,
)
from app.errors import FactoryError, GeoTextError, NoSuchAuthorityCodeError
from projstring.parser import PROJStringParser
from wkt.parser import WKTParser
from . import matching
from .categories import OBJECT_TABLES, ObjectType, tables_for
from .context import DatabaseContext

logger = logging.getLogger(__name__)

_UNIT_TYPES = {
    "length": UnitType.LINEAR,
    "angle": UnitType.ANGULAR,
    "scale": UnitType.SCALE,
    "time": UnitType.NONE,
}


class AliasMatch(NamedTuple):
    official_name: str
    table_name: str
    auth_name: str
    code: str


class AuthorityFactory:
    def __init__(self, context: DatabaseContext, authority_name: str):
        self._db = context
        self._authority = authority_name

    @classmethod
    def create(cls, context: DatabaseContext, authority_name: str) -> "AuthorityFactory":
        return cls(context, authority_name)

    @property
    def database_context(self) -> DatabaseContext:
        return self._db

    def get_authority(self) -> str:
        return self._authority

    # ---- helpers ------------------------------------------------------------

    def _factory(self, auth_name: str) -> "AuthorityFactory":
        if auth_name == self._authority:
            return self
        return AuthorityFactory(self._db, auth_name)

    def _not_found(self, what: str, code: str) -> NoSuchAuthorityCodeError:
        return NoSuchAuthorityCodeError(f"{what} not found: {self._authority}:{code}", self._authority, code)

    def _row(self, table: str, code: str, what: str, columns: str = "*"):
        rows = self._db.query(
            f"SELECT {columns} FROM {table} WHERE auth_name = ? AND code = ?", (self._authority, code)
        )
        if not rows:
            raise self._not_found(what, code)
        return rows[0]

    def _ids(self, code: str) -> Tuple[Identifier, ...]:
        return (Identifier(self._authority, code),)

    def _usage(self, table: str, code: str) -> Tuple[Optional[str], Optional[Extent]]:
        rows = self._db.query(
            "SELECT extent_auth_name, extent_code, scope FROM usage "
            "WHERE object_table_name = ? AND object_auth_name = ? AND object_code = ? "
            "ORDER BY db_order, row_order",
            (table, self._authority, code),
        )
        if not rows:
            return None, None
        r = rows[0]
        extent = None
        if r["extent_code"] is not None:
            extent = self._factory(r["extent_auth_name"]).create_extent(r["extent_code"])
        return r["scope"], extent

    # ---- simple objects -----------------------------------------------------

    def create_unit_of_measure(self, code: str) -> UnitOfMeasure:
        r = self._row("unit_of_measure", code, "unit of measure")
        if r["conv_factor"] is None:
            raise FactoryError(f"unit {self._authority}:{code} has no conversion factor")
        unit_type = _UNIT_TYPES.get(r["type"])
        if unit_type is None:
            raise FactoryError(f"unit {self._authority}:{code}: unknown type {r['type']!r}")
        return UnitOfMeasure(r["name"], float(r["conv_factor"]), unit_type, self._ids(code))

    def create_extent(self, code: str) -> Extent:
        r = self._row("extent", code, "extent")
        return Extent(
            description=r["description"] or r["name"],
            south=r["south_lat"],
            west=r["west_lon"],
            north=r["north_lat"],
            east=r["east_lon"],
        )

    def create_prime_meridian(self, code: str) -> PrimeMeridian:
        r = self._row("prime_meridian", code, "prime meridian")
        unit = self._factory(r["uom_auth_name"]).create_unit_of_measure(r["uom_code"])
        return PrimeMeridian(r["name"], float(r["longitude"]), unit, self._ids(code))

    def identify_body_from_semi_major_axis(self, semi_major_axis: float, tolerance: float) -> str:
        rows = self._db.query(
            "SELECT name, semi_major_axis FROM celestial_body ORDER BY db_order, row_order"
        )
        for r in rows:
            if abs(semi_major_axis - r["semi_major_axis"]) <= tolerance * r["semi_major_axis"]:
                return r["name"]
        raise FactoryError(f"no celestial body with a semi-major axis of {semi_major_axis}")

    def create_ellipsoid(self, code: str) -> Ellipsoid:
        r = self._row("ellipsoid", code, "ellipsoid")
        unit = self._factory(r["uom_auth_name"]).create_unit_of_measure(r["uom_code"])
        a = float(r["semi_major_axis"])
        if r["inv_flattening"] is not None:
            rf = float(r["inv_flattening"])
        elif r["semi_minor_axis"] is not None:
            b = float(r["semi_minor_axis"])
            rf = 0.0 if b == a else a / (a - b)
        else:
            rf = 0.0
        return Ellipsoid(r["name"], a, rf, unit, self._ids(code))

    # ---- datums ---------------------------------------------------------------

    def create_geodetic_datum(self, code: str) -> GeodeticReferenceFrame:
        r = self._row("geodetic_datum", code, "geodetic datum")
        ellipsoid = self._factory(r["ellipsoid_auth_name"]).create_ellipsoid(r["ellipsoid_code"])
        pm = self._factory(r["prime_meridian_auth_name"]).create_prime_meridian(r["prime_meridian_code"])
        return GeodeticReferenceFrame(r["name"], ellipsoid, pm, r["anchor"], self._ids(code))

    def create_vertical_datum(self, code: str) -> VerticalReferenceFrame:
        r = self._row("vertical_datum", code, "vertical datum")
        return VerticalReferenceFrame(r["name"], self._ids(code))

    def create_datum(self, code: str):
        found = self._tables_with_code(code, ["geodetic_datum", "vertical_datum"])
        if not found:
            raise self._not_found("datum", code)
        return self._create_from_table(found[0], code)

    # ---- coordinate systems -------------------------------------------------

    def create_coordinate_system(self, code: str) -> CoordinateSystem:
        r = self._row("coordinate_system", code, "coordinate system")
        rows = self._db.query(
            "SELECT name, abbrev, orientation, uom_auth_name, uom_code FROM axis "
            "WHERE coordinate_system_auth_name = ? AND coordinate_system_code = ? "
            "ORDER BY coordinate_system_order",
            (self._authority, code),
        )
        if len(rows) != r["dimension"]:
            raise FactoryError(
                f"coordinate system {self._authority}:{code}: {len(rows)} axes for dimension {r['dimension']}"
            )
        axes = tuple(
            Axis(a["name"], a["abbrev"], a["orientation"],
                 self._factory(a["uom_auth_name"]).create_unit_of_measure(a["uom_code"]))
            for a in rows
        )
        return CoordinateSystem(r["type"], axes)

    # ---- CRS ----------------------------------------------------------------

    def _from_text(self, table: str, code: str, name: str, text: str, expected: type):
        """Object defined by a stored WKT or PROJ string, renamed and identified as the row."""
        try:
            if text.lstrip().startswith("+"):
                obj = PROJStringParser().attach_database_context(self._db).create_from_proj_string(text)
            else:
                obj = WKTParser().attach_database_context(self._db).create_from_wkt(text)
        except GeoTextError as e:
            raise FactoryError(f"{table} {self._authority}:{code}: invalid text definition: {e}") from e
        if not isinstance(obj, expected):
            raise FactoryError(f"{table} {self._authority}:{code}: text definition is not a {expected.__name__}")
        scope, extent = self._usage(table, code)
        return dataclasses.replace(obj, name=name, identifiers=self._ids(code), scope=scope, extent=extent)

    def create_geodetic_crs(self, code: str) -> GeographicCRS:
        r = self._row("geodetic_crs", code, "geodetic CRS")
        if r["text_definition"]:
            return self._from_text("geodetic_crs", code, r["name"], r["text_definition"], GeographicCRS)
        if r["type"] == "geocentric":
            raise FactoryError(f"geodetic CRS {self._authority}:{code}: geocentric CRS are not supported")
        if r["datum_code"] is None or r["coordinate_system_code"] is None:
            raise FactoryError(f"geodetic CRS {self._authority}:{code} has no datum or coordinate system")
        datum = self._factory(r["datum_auth_name"]).create_geodetic_datum(r["datum_code"])
        cs = self._factory(r["coordinate_system_auth_name"]).create_coordinate_system(r["coordinate_system_code"])
        if cs.kind != "ellipsoidal":
            raise FactoryError(f"geographic CRS {self._authority}:{code} needs an ellipsoidal coordinate system")
        scope, extent = self._usage("geodetic_crs", code)
        return GeographicCRS(r["name"], datum, cs, self._ids(code), scope, extent)

    # geodetic CRS are all geographic here
    create_geographic_crs = create_geodetic_crs

    def create_conversion(self, code: str) -> Conversion:
        r = self._row("conversion", code, "conversion")
        params = self._parameters("conversion", code, False)
        return Conversion(r["name"], r["method_name"], params, self._method_ids(r), self._ids(code))

    def create_projected_crs(self, code: str) -> ProjectedCRS:
        r = self._row("projected_crs", code, "projected CRS")
        if r["text_definition"]:
            return self._from_text("projected_crs", code, r["name"], r["text_definition"], ProjectedCRS)
        for col in ("geodetic_crs_code", "conversion_code", "coordinate_system_code"):
            if r[col] is None:
                raise FactoryError(f"projected CRS {self._authority}:{code}: missing {col}")
        base = self._factory(r["geodetic_crs_auth_name"]).create_geodetic_crs(r["geodetic_crs_code"])
        conversion = self._factory(r["conversion_auth_name"]).create_conversion(r["conversion_code"])
        cs = self._factory(r["coordinate_system_auth_name"]).create_coordinate_system(r["coordinate_system_code"])
        scope, extent = self._usage("projected_crs", code)
        return ProjectedCRS(r["name"], base, conversion, cs, self._ids(code), scope, extent)

    def create_vertical_crs(self, code: str) -> VerticalCRS:
        r = self._row("vertical_crs", code, "vertical CRS")
        datum = self._factory(r["datum_auth_name"]).create_vertical_datum(r["datum_code"])
        cs = self._factory(r["coordinate_system_auth_name"]).create_coordinate_system(r["coordinate_system_code"])
        if cs.kind != "vertical":
            raise FactoryError(f"vertical CRS {self._authority}:{code} needs a vertical coordinate system")
        scope, extent = self._usage("vertical_crs", code)
        return VerticalCRS(r["name"], datum, cs, self._ids(code), scope, extent)

    def create_compound_crs(self, code: str) -> CompoundCRS:
        r = self._row("compound_crs", code, "compound CRS")
        horizontal = self._factory(r["horiz_crs_auth_name"])._create_crs(r["horiz_crs_code"], allow_compound=False)
        vertical = self._factory(r["vertical_crs_auth_name"]).create_vertical_crs(r["vertical_crs_code"])
        scope, extent = self._usage("compound_crs", code)
        return CompoundCRS(r["name"], (horizontal, vertical), self._ids(code), scope, extent)

    def _create_crs(self, code: str, allow_compound: bool) -> CRS:
        tables = ["geodetic_crs", "projected_crs", "vertical_crs"]
        if allow_compound:
            tables.append("compound_crs")
        found = self._tables_with_code(code, tables)
        if not found:
            raise self._not_found("CRS", code)
        if len(found) > 1:
            raise FactoryError(f"more than one CRS matches {self._authority}:{code}")
        return self._create_from_table(found[0], code)

    def create_coordinate_reference_system(self, code: str) -> CRS:
        return self._create_crs(code, allow_compound=True)

    # ---- operations -----------------------------------------------------------

    def _method_ids(self, r) -> Tuple[Identifier, ...]:
        if r["method_code"] is None:
            return ()
        return (Identifier(r["method_auth_name"], r["method_code"]),)

    def _parameters(self, table: str, code: str, use_alternative_grid_names: bool) -> Tuple[OperationParameterValue, ...]:
        rows = self._db.query(
            "SELECT param_auth_name, param_code, param_name, param_value, uom_auth_name, uom_code "
            "FROM operation_param WHERE operation_table_name = ? AND operation_auth_name = ? AND operation_code = ? "
            "ORDER BY param_order",
            (table, self._authority, code),
        )
        params = []
        for p in rows:
            ids = () if p["param_code"] is None else (Identifier(p["param_auth_name"], p["param_code"]),)
            if p["uom_code"] is None:
                value = str(p["param_value"])
                if use_alternative_grid_names:
                    alt = self._db.look_for_grid_alternative(value)
                    if alt is not None:
                        value = alt.proj_filename
                params.append(OperationParameterValue(p["param_name"], value, None, ids))
                continue
            try:
                value = float(p["param_value"])
            except (TypeError, ValueError):
                raise FactoryError(
                    f"{table} {self._authority}:{code}: parameter {p['param_name']!r} is not numeric"
                ) from None
            unit = self._factory(p["uom_auth_name"]).create_unit_of_measure(p["uom_code"])
            params.append(OperationParameterValue(p["param_name"], value, unit, ids))
        return tuple(params)

    def _create_operation(self, code: str, allow_concatenated: bool, use_alternative_grid_names: bool) -> CoordinateOperation:
        r = self._row("coordinate_operation", code, "coordinate operation")
        source = self._factory(r["source_crs_auth_name"]).create_coordinate_reference_system(r["source_crs_code"])
        target = self._factory(r["target_crs_auth_name"]).create_coordinate_reference_system(r["target_crs_code"])
        if r["type"] == "concatenated":
            if not allow_concatenated:
                raise FactoryError(f"nested concatenated operation {self._authority}:{code}")
            steps = self._db.query(
                "SELECT step_auth_name, step_code FROM concatenated_operation_step "
                "WHERE operation_auth_name = ? AND operation_code = ? ORDER BY step_number",
                (self._authority, code),
            )
            if len(steps) < 2:
                raise FactoryError(f"concatenated operation {self._authority}:{code} has fewer than 2 steps")
            ops = tuple(
                self._factory(s["step_auth_name"])._create_operation(s["step_code"], False, use_alternative_grid_names)
                for s in steps
            )
            return ConcatenatedOperation(r["name"], ops, self._ids(code))
        if r["method_name"] is None:
            raise FactoryError(f"transformation {self._authority}:{code} has no method")
        params = self._parameters("coordinate_operation", code, use_alternative_grid_names)
        scope, extent = self._usage("coordinate_operation", code)
        return Transformation(
            r["name"], source, target, r["method_name"], params, r["accuracy"],
            self._method_ids(r), self._ids(code), scope, extent,
        )

    def create_coordinate_operation(self, code: str, use_proj_alternative_grid_names: bool = True) -> CoordinateOperation:
        found = self._tables_with_code(code, ["conversion", "coordinate_operation"])
        if not found:
            raise self._not_found("coordinate operation", code)
        if found[0] == "conversion":
            return self.create_conversion(code)
        return self._create_operation(code, True, use_proj_alternative_grid_names)

    def _grids_available(self, op: CoordinateOperation) -> bool:
        ops = op.operations if isinstance(op, ConcatenatedOperation) else (op,)
        for step in ops:
            for p in step.parameters:
                if not p.is_file:
                    continue
                alt = self._db.look_for_grid_alternative(p.value)
                info = self._db.look_for_grid_info(alt.proj_filename if alt else p.value)
                if info is None or not info.available:
                    return False
        return True

    def _operation_rows(self, source: Tuple[str, str], target: Optional[Tuple[str, str]]) -> List[Any]:
        sql = (
            "SELECT auth_name, code, target_crs_auth_name, target_crs_code FROM coordinate_operation "
            "WHERE deprecated = 0 AND source_crs_auth_name = ? AND source_crs_code = ?"
        )
        params: List[Any] = list(source)
        if target is not None:
            sql += " AND target_crs_auth_name = ? AND target_crs_code = ?"
            params.extend(target)
        if self._authority:
            sql += " AND auth_name = ?"
            params.append(self._authority)
        sql += " ORDER BY db_order, row_order"
        return self._db.query(sql, params)

    def _build_operations(self, rows, use_alternative_grid_names: bool, discard_if_missing_grid: bool) -> List[CoordinateOperation]:
        out = []
        for r in rows:
            op = self._factory(r["auth_name"]).create_coordinate_operation(r["code"], use_alternative_grid_names)
            if discard_if_missing_grid and not self._grids_available(op):
                logger.debug("skipping %s:%s: grid not available", r["auth_name"], r["code"])
                continue
            out.append(op)
        return out

    def create_from_coordinate_reference_system_codes(
        self,
        source_crs_code: str,
        target_crs_code: str,
        source_crs_auth_name: Optional[str] = None,
        target_crs_auth_name: Optional[str] = None,
        use_proj_alternative_grid_names: bool = True,
        discard_if_missing_grid: bool = False,
    ) -> List[CoordinateOperation]:
        """Registered operations from one CRS to the other, in discovery order."""
        source = (source_crs_auth_name or self._authority, source_crs_code)
        target = (target_crs_auth_name or self._authority, target_crs_code)
        rows = self._operation_rows(source, target)
        return self._build_operations(rows, use_proj_alternative_grid_names, discard_if_missing_grid)

    def create_from_crs_codes_with_intermediates(
        self,
        source_crs_auth_name: str,
        source_crs_code: str,
        target_crs_auth_name: str,
        target_crs_code: str,
        use_proj_alternative_grid_names: bool = True,
        discard_if_missing_grid: bool = False,
        intermediate_crs_auth_codes: Sequence[Tuple[str, str]] = (),
    ) -> List[ConcatenatedOperation]:
        """Two-step paths source -> intermediate -> target.

        With no explicit intermediates every CRS reached from the source is
        tried. Paths are returned in the discovery order of their first step,
        then of their second step.
        """
        source = (source_crs_auth_name, source_crs_code)
        target = (target_crs_auth_name, target_crs_code)
        allowed = {tuple(p) for p in intermediate_crs_auth_codes}
        out: List[ConcatenatedOperation] = []
        for first in self._operation_rows(source, None):
            middle = (first["target_crs_auth_name"], first["target_crs_code"])
            if middle in (source, target) or (allowed and middle not in allowed):
                continue
            seconds = self._operation_rows(middle, target)
            if not seconds:
                continue
            op1 = self._build_operations([first], use_proj_alternative_grid_names, discard_if_missing_grid)
            if not op1:
                continue
            for op2 in self._build_operations(seconds, use_proj_alternative_grid_names, discard_if_missing_grid):
                out.append(ConcatenatedOperation(f"{op1[0].name} + {op2.name}", (op1[0], op2)))
        return out

    # ---- dispatch -------------------------------------------------------------

    def _tables_with_code(self, code: str, tables: Sequence[str]) -> List[str]:
        found = []
        for table in tables:
            rows = self._db.query(
                f"SELECT 1 FROM {table} WHERE auth_name = ? AND code = ?", (self._authority, code)
            )
            if rows:
                found.append(table)
        return found

    def _create_from_table(self, table: str, code: str):
        builders = {
            "unit_of_measure": self.create_unit_of_measure,
            "extent": self.create_extent,
            "prime_meridian": self.create_prime_meridian,
            "ellipsoid": self.create_ellipsoid,
            "geodetic_datum": self.create_geodetic_datum,
            "vertical_datum": self.create_vertical_datum,
            "geodetic_crs": self.create_geodetic_crs,
            "projected_crs": self.create_projected_crs,
            "vertical_crs": self.create_vertical_crs,
            "compound_crs": self.create_compound_crs,
            "conversion": self.create_conversion,
            "coordinate_operation": self.create_coordinate_operation,
        }
        return builders[table](code)

    def create_object(self, code: str):
        """Object of any category; the table holding ``code`` decides which."""
        found = self._tables_with_code(code, OBJECT_TABLES)
        if not found:
            raise self._not_found("object", code)
        if len(found) > 1:
            raise FactoryError(f"more than one object matches {self._authority}:{code}: {', '.join(found)}")
        return self._create_from_table(found[0], code)

    # ---- enumeration and names ------------------------------------------------

    def get_authority_codes(self, object_type: ObjectType, allow_deprecated: bool = True) -> List[str]:
        codes: List[str] = []
        seen = set()
        for table, allowed in tables_for([object_type]):
            sql = f"SELECT code FROM {table} WHERE auth_name = ?"
            params: List[Any] = [self._authority]
            if allowed is not None:
                sql += f" AND type IN ({', '.join('?' for _ in allowed)})"
                params.extend(allowed)
            if not allow_deprecated:
                sql += " AND deprecated = 0"
            sql += " ORDER BY db_order, row_order"
            for r in self._db.query(sql, params):
                if r["code"] not in seen:
                    seen.add(r["code"])
                    codes.append(r["code"])
        return codes

    def get_description_text(self, code: str) -> str:
        for table in OBJECT_TABLES:
            rows = self._db.query(
                f"SELECT name FROM {table} WHERE auth_name = ? AND code = ?", (self._authority, code)
            )
            if rows:
                return rows[0]["name"]
        raise self._not_found("object", code)

    def get_official_name_from_alias(
        self, aliased_name: str, table_name: Optional[str] = None, source: Optional[str] = None
    ) -> Optional[AliasMatch]:
        """Official name and key of the object known as ``aliased_name``."""
        sql = "SELECT table_name, auth_name, code FROM alias_name WHERE alt_name = ?"
        params: List[Any] = [aliased_name]
        if table_name:
            sql += " AND table_name = ?"
            params.append(table_name)
        if source:
            sql += " AND source = ?"
            params.append(source)
        if self._authority:
            sql += " AND auth_name = ?"
            params.append(self._authority)
        sql += " ORDER BY db_order, row_order"
        for r in self._db.query(sql, params):
            if r["table_name"] not in OBJECT_TABLES:
                logger.debug("ignoring alias of unknown table %r", r["table_name"])
                continue
            names = self._db.query(
                f"SELECT name FROM {r['table_name']} WHERE auth_name = ? AND code = ?",
                (r["auth_name"], r["code"]),
            )
            if names:
                return AliasMatch(names[0]["name"], r["table_name"], r["auth_name"], r["code"])
        return None

    def _candidates(self, allowed_types: Sequence[ObjectType]) -> List[Tuple[Tuple[str, str, str], List[str]]]:
        """Non-deprecated (table, auth, code) keys with their names and aliases, in discovery order."""
        out: List[Tuple[Tuple[str, str, str], List[str]]] = []
        for table, allowed in tables_for(allowed_types):
            sql = f"SELECT auth_name, code, name FROM {table} WHERE deprecated = 0"
            params: List[Any] = []
            if allowed is not None:
                sql += f" AND type IN ({', '.join('?' for _ in allowed)})"
                params.extend(allowed)
            if self._authority:
                sql += " AND auth_name = ?"
                params.append(self._authority)
            sql += " ORDER BY db_order, row_order"
            rows = self._db.query(sql, params)
            aliases: Dict[Tuple[str, str], List[str]] = {}
            for a in self._db.query(
                "SELECT auth_name, code, alt_name FROM alias_name WHERE table_name = ? ORDER BY db_order, row_order",
                (table,),
            ):
                aliases.setdefault((a["auth_name"], a["code"]), []).append(a["alt_name"])
            for r in rows:
                names = [r["name"], *aliases.get((r["auth_name"], r["code"]), [])]
                out.append(((table, r["auth_name"], r["code"]), names))
        return out

    def create_objects_from_name(
        self,
        name: str,
        allowed_types: Sequence[ObjectType] = (),
        approximate_match: bool = True,
        limit_result_count: int = 0,
    ) -> List[Any]:
        """Objects whose name or alias is ``name``.

        Exact (case-insensitive) matches win. Only when there is none and
        ``approximate_match`` is set are names ranked with ``matching.rank``.
        """
        candidates = self._candidates(allowed_types)
        wanted = name.lower()
        keys = [key for key, names in candidates if any(n.lower() == wanted for n in names)]
        if not keys and approximate_match:
            keys = [key for key, _ in matching.rank(name, candidates)]
        out: List[Any] = []
        for table, auth, code in keys:
            try:
                out.append(self._factory(auth)._create_from_table(table, code))
            except FactoryError as e:
                # rows this factory cannot build (geocentric CRS, ...) are not matches
                logger.debug("skipping %s:%s from %s: %s", auth, code, table, e)
                continue
            if limit_result_count and len(out) >= limit_result_count:
                break
        return out

    def list_area_of_use_from_name(self, name: str, approximate_match: bool) -> List[Tuple[str, str]]:
        """(auth_name, code) of the extents called ``name``."""
        sql = "SELECT auth_name, code, name FROM extent WHERE deprecated = 0"
        params: List[Any] = []
        if self._authority:
            sql += " AND auth_name = ?"
            params.append(self._authority)
        sql += " ORDER BY db_order, row_order"
        wanted = matching.normalize_name(name)
        out = []
        for r in self._db.query(sql, params):
            candidate = matching.normalize_name(r["name"])
            if candidate == wanted or (approximate_match and wanted and wanted in candidate):
                out.append((r["auth_name"], r["code"]))
        return out


__all__ = ["AuthorityFactory", "AliasMatch"]
