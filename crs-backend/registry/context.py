"""Read-only handle on a registry database.

The main database is opened read-only through a sqlite ``file:`` URI and any
auxiliary databases are ATTACHed next to it. Every table of the main schema is
then shadowed by a TEMP view that concatenates the same table from all
attached databases and exposes ``db_order``/``row_order`` columns, so lookups
see one logical registry and can return rows in discovery order (main
database first, then auxiliaries, each in insertion order).

A DatabaseContext is meant to be used by one thread at a time; open one per
worker instead of sharing.

Env vars:
  GEOTEXT_DB_PATH       main database used by ``from_env()``
  GEOTEXT_AUX_DB_PATHS  os.pathsep separated auxiliary databases
  GEOTEXT_GRID_PATHS    os.pathsep separated directories searched for grids
"""
from __future__ import annotations

import logging
import os
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, NamedTuple, Optional, Sequence, Set

from app.errors import FactoryError
from .categories import OBJECT_TABLES

logger = logging.getLogger(__name__)


class GridAlternative(NamedTuple):
    proj_filename: str
    proj_format: str
    inverse: bool


class GridInfo(NamedTuple):
    full_filename: str
    package_name: str
    url: str
    direct_download: bool
    open_license: bool
    available: bool


def _env_paths(name: str) -> List[str]:
    raw = os.getenv(name, "")
    return [p for p in raw.split(os.pathsep) if p]


def _ro_uri(path: str) -> str:
    return Path(path).resolve().as_uri() + "?mode=ro"


class DatabaseContext:
    def __init__(self, conn: sqlite3.Connection, path: str, auxiliary_paths: Sequence[str] = ()):
        self.conn = conn
        self._path = path
        self._auxiliary_paths = list(auxiliary_paths)
        self._metadata: Dict[str, Optional[str]] = {}

    @classmethod
    def open(cls, path: Optional[str] = None, auxiliary_paths: Sequence[str] = ()) -> "DatabaseContext":
        """Open ``path`` (default: $GEOTEXT_DB_PATH) read-only and attach ``auxiliary_paths``."""
        path = path or os.getenv("GEOTEXT_DB_PATH")
        if not path:
            raise FactoryError("no registry database configured (GEOTEXT_DB_PATH is not set)")
        for p in [path, *auxiliary_paths]:
            if not os.path.isfile(p):
                raise FactoryError(f"registry database {p} does not exist")
        try:
            conn = sqlite3.connect(_ro_uri(path), uri=True)
            conn.row_factory = sqlite3.Row
            for i, aux in enumerate(auxiliary_paths):
                conn.execute(f"ATTACH DATABASE ? AS aux{i}", (_ro_uri(aux),))
            ctx = cls(conn, path, auxiliary_paths)
            ctx._create_views()
        except sqlite3.Error as e:
            raise FactoryError(f"cannot open registry database {path}: {e}") from e
        logger.info("registry opened", extra={"db_path": path})
        return ctx

    # PROJ spelling
    create = open

    @classmethod
    def from_env(cls) -> "DatabaseContext":
        return cls.open(None, _env_paths("GEOTEXT_AUX_DB_PATHS"))

    def _create_views(self) -> None:
        tables = [
            r[0]
            for r in self.conn.execute(
                "SELECT name FROM main.sqlite_master WHERE type = 'table' AND name NOT LIKE 'sqlite_%'"
            )
        ]
        for table in tables:
            parts = [f'SELECT 0 AS db_order, rowid AS row_order, * FROM main."{table}"']
            for i in range(len(self._auxiliary_paths)):
                schema = f"aux{i}"
                found = self.conn.execute(
                    f"SELECT 1 FROM {schema}.sqlite_master WHERE type = 'table' AND name = ?", (table,)
                ).fetchone()
                if found:
                    parts.append(f'SELECT {i + 1}, rowid, * FROM {schema}."{table}"')
            self.conn.execute(f'CREATE TEMP VIEW "{table}" AS ' + " UNION ALL ".join(parts))

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "DatabaseContext":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def query(self, sql: str, params: Sequence[Any] = ()) -> List[sqlite3.Row]:
        try:
            return self.conn.execute(sql, tuple(params)).fetchall()
        except sqlite3.Error as e:
            logger.debug("registry query failed: %s (%s)", e, sql)
            raise FactoryError(f"registry query failed: {e}") from e

    # ---- generic lookups --------------------------------------------------

    def get_path(self) -> str:
        return self._path

    def get_metadata(self, key: str) -> Optional[str]:
        if key not in self._metadata:
            rows = self.query("SELECT value FROM metadata WHERE key = ? ORDER BY db_order, row_order", (key,))
            self._metadata[key] = rows[0]["value"] if rows else None
        return self._metadata[key]

    def get_authorities(self) -> Set[str]:
        sql = " UNION ".join(f"SELECT auth_name FROM {t}" for t in OBJECT_TABLES)
        return {r[0] for r in self.query(sql)}

    def get_database_structure(self) -> List[str]:
        """CREATE statements of the main database, in definition order."""
        rows = self.query(
            "SELECT sql FROM main.sqlite_master WHERE sql IS NOT NULL AND name NOT LIKE 'sqlite_%' ORDER BY rowid"
        )
        return [r[0] for r in rows]

    # ---- grids ------------------------------------------------------------

    def look_for_grid_alternative(self, official_name: str) -> Optional[GridAlternative]:
        rows = self.query(
            "SELECT proj_grid_name, proj_grid_format, inverse_direction FROM grid_alternatives "
            "WHERE original_grid_name = ? ORDER BY db_order, row_order",
            (official_name,),
        )
        if not rows:
            return None
        r = rows[0]
        return GridAlternative(r["proj_grid_name"], r["proj_grid_format"], bool(r["inverse_direction"]))

    def look_for_grid_info(self, proj_filename: str) -> Optional[GridInfo]:
        """Package metadata of a grid and whether it is found under $GEOTEXT_GRID_PATHS."""
        full = ""
        for directory in _env_paths("GEOTEXT_GRID_PATHS"):
            candidate = os.path.join(directory, proj_filename)
            if os.path.isfile(candidate):
                full = candidate
                break
        rows = self.query(
            "SELECT package_name, url, direct_download, open_license FROM grid_alternatives "
            "WHERE proj_grid_name = ? OR original_grid_name = ? ORDER BY db_order, row_order",
            (proj_filename, proj_filename),
        )
        if not rows:
            if not full:
                return None
            return GridInfo(full, "", "", False, False, True)
        r = rows[0]
        return GridInfo(
            full,
            r["package_name"] or "",
            r["url"] or "",
            bool(r["direct_download"]),
            bool(r["open_license"]),
            bool(full),
        )

    # ---- names ------------------------------------------------------------

    def get_alias_from_official_name(self, official_name: str, table_name: str, source: Optional[str]) -> Optional[str]:
        """First alias of the object called ``official_name`` in ``table_name`` from ``source``."""
        sql = (
            f"SELECT a.alt_name FROM alias_name a JOIN {_table(table_name)} o "
            "ON a.table_name = ? AND a.auth_name = o.auth_name AND a.code = o.code "
            "WHERE o.name = ?"
        )
        params: List[Any] = [table_name, official_name]
        if source:
            sql += " AND a.source = ?"
            params.append(source)
        sql += " ORDER BY a.db_order, a.row_order"
        rows = self.query(sql, params)
        return rows[0][0] if rows else None

    def get_official_name_from_alias(self, alias: str, table_name: str, source: Optional[str]) -> Optional[str]:
        sql = (
            f"SELECT o.name FROM alias_name a JOIN {_table(table_name)} o "
            "ON a.table_name = ? AND a.auth_name = o.auth_name AND a.code = o.code "
            "WHERE a.alt_name = ?"
        )
        params: List[Any] = [table_name, alias]
        if source:
            sql += " AND a.source = ?"
            params.append(source)
        sql += " ORDER BY a.db_order, a.row_order"
        rows = self.query(sql, params)
        return rows[0][0] if rows else None

    def is_known_name(self, name: str, table_name: str) -> bool:
        table = _table(table_name)
        rows = self.query(
            f"SELECT 1 FROM {table} WHERE name = ? "
            "UNION ALL SELECT 1 FROM alias_name WHERE table_name = ? AND alt_name = ? LIMIT 1",
            (name, table_name, name),
        )
        return bool(rows)

    def get_text_definition(self, table_name: str, auth_name: str, code: str) -> Optional[str]:
        if table_name not in ("geodetic_crs", "projected_crs"):
            return None
        rows = self.query(
            f"SELECT text_definition FROM {table_name} WHERE auth_name = ? AND code = ?",
            (auth_name, code),
        )
        return rows[0][0] if rows else None


def _table(name: str) -> str:
    if name not in OBJECT_TABLES:
        raise FactoryError(f"unknown registry table {name!r}")
    return name


__all__ = ["DatabaseContext", "GridAlternative", "GridInfo"]
