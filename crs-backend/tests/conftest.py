import os
import sqlite3
import sys

import pytest

# Ensure imports like `from app.main import app` work when pytest is run from repo root
BACKEND_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

REGISTRY_DIR = os.path.join(BACKEND_ROOT, "registry")


def build_db(path, *sql):
    """Create a registry database at ``path`` from the bundled schema plus ``sql`` scripts."""
    conn = sqlite3.connect(str(path))
    try:
        with open(os.path.join(REGISTRY_DIR, "schema.sql"), encoding="utf-8") as f:
            conn.executescript(f.read())
        for script in sql:
            conn.executescript(script)
        conn.commit()
    finally:
        conn.close()
    return str(path)


def seed_sql():
    with open(os.path.join(REGISTRY_DIR, "seed.sql"), encoding="utf-8") as f:
        return f.read()


@pytest.fixture(scope="session")
def registry_db(tmp_path_factory):
    path = tmp_path_factory.mktemp("registry") / "registry.db"
    return build_db(path, seed_sql())


@pytest.fixture
def db(registry_db):
    from registry.context import DatabaseContext

    ctx = DatabaseContext.open(registry_db)
    yield ctx
    ctx.close()


@pytest.fixture
def epsg(db):
    from registry.factory import AuthorityFactory

    return AuthorityFactory.create(db, "EPSG")


@pytest.fixture
def registry_env(registry_db, monkeypatch):
    """Point the HTTP layer at the fixture registry."""
    monkeypatch.setenv("GEOTEXT_DB_PATH", registry_db)
    monkeypatch.delenv("GEOTEXT_AUX_DB_PATHS", raising=False)
    monkeypatch.delenv("GEOTEXT_GRID_PATHS", raising=False)
    return registry_db
