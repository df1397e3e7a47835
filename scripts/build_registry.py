#!/usr/bin/env python3
"""Build a registry database from the bundled schema and seed data.

Usage:
  python scripts/build_registry.py out/registry.db
  python scripts/build_registry.py out/registry.db --sql extra_aliases.sql --force
  python scripts/build_registry.py out/registry.db --no-seed --check
"""
from __future__ import annotations

import argparse
import logging
import os
import sqlite3
import sys
from typing import List

# Make crs-backend importable
THIS_DIR = os.path.dirname(__file__)
BACKEND_DIR = os.path.abspath(os.path.join(THIS_DIR, "..", "crs-backend"))
if BACKEND_DIR not in sys.path:
    sys.path.insert(0, BACKEND_DIR)

from app.logging_setup import configure_logging  # type: ignore
from registry.categories import ObjectType  # type: ignore
from registry.context import DatabaseContext  # type: ignore
from registry.factory import AuthorityFactory  # type: ignore

REGISTRY_DIR = os.path.join(BACKEND_DIR, "registry")
SCHEMA_SQL = os.path.join(REGISTRY_DIR, "schema.sql")
SEED_SQL = os.path.join(REGISTRY_DIR, "seed.sql")

logger = logging.getLogger("build_registry")


def build(path: str, sql_files: List[str]) -> None:
    conn = sqlite3.connect(path)
    try:
        for sql_file in sql_files:
            with open(sql_file, "r", encoding="utf-8") as f:
                conn.executescript(f.read())
            logger.info("applied %s", sql_file)
        conn.commit()
    finally:
        conn.close()


def check(path: str, authority: str) -> int:
    """Instantiate every CRS of ``authority``; return the number that failed."""
    failures = 0
    with DatabaseContext.open(path) as db:
        factory = AuthorityFactory.create(db, authority)
        for code in factory.get_authority_codes(ObjectType.CRS, allow_deprecated=False):
            try:
                factory.create_coordinate_reference_system(code)
            except Exception as e:
                failures += 1
                print(f"{authority}:{code}: {e}")
    return failures


def main(argv: List[str] | None = None) -> int:
    ap = argparse.ArgumentParser(description="Build a geotext registry database")
    ap.add_argument("output", help="Path of the sqlite database to create")
    ap.add_argument("--sql", action="append", default=[], help="Extra SQL file applied after the seed (repeatable)")
    ap.add_argument("--no-seed", action="store_true", help="Only create the schema (plus --sql files)")
    ap.add_argument("--force", action="store_true", help="Overwrite an existing output file")
    ap.add_argument("--check", action="store_true", help="Instantiate every CRS after building")
    ap.add_argument("--authority", default="EPSG", help="Authority checked by --check (default EPSG)")
    args = ap.parse_args(argv)

    configure_logging()
    if os.path.exists(args.output):
        if not args.force:
            print(f"{args.output} exists; use --force to overwrite", file=sys.stderr)
            return 2
        os.unlink(args.output)
    out_dir = os.path.dirname(os.path.abspath(args.output))
    os.makedirs(out_dir, exist_ok=True)

    files = [SCHEMA_SQL] + ([] if args.no_seed else [SEED_SQL]) + list(args.sql)
    build(args.output, files)
    print(f"Wrote {args.output}")

    if args.check:
        failures = check(args.output, args.authority)
        if failures:
            print(f"{failures} CRS could not be instantiated", file=sys.stderr)
            return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
