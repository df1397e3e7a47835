from fastapi.testclient import TestClient

from app.main import app

client = TestClient(app)

GDAL_4326 = (
    'GEOGCS["WGS 84",DATUM["WGS_1984",SPHEROID["WGS 84",6378137,298.257223563]],'
    'PRIMEM["Greenwich",0],UNIT["degree",0.0174532925199433]]'
)
ESRI_4326 = (
    'GEOGCS["GCS_WGS_1984",DATUM["D_WGS_1984",SPHEROID["WGS_1984",6378137,298.257223563]],'
    'PRIMEM["Greenwich",0],UNIT["Degree",0.0174532925199433]]'
)


def test_health():
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


def test_wkt_guess():
    resp = client.post("/wkt/guess", json={"text": GDAL_4326})
    assert resp.status_code == 200
    assert resp.json() == {"dialect": "WKT1_GDAL"}
    assert client.post("/wkt/guess", json={"text": "+proj=longlat"}).json() == {"dialect": "NOT_WKT"}


def test_empty_text_is_rejected():
    assert client.post("/wkt/guess", json={"text": "   "}).status_code == 422


def test_wkt_tree():
    resp = client.post("/wkt/tree", json={"text": 'A[1,B["x"]]'})
    assert resp.status_code == 200
    data = resp.json()
    assert data["end"] == 11
    assert data["tree"]["value"] == "A"
    assert [c["value"] for c in data["tree"]["children"]] == ["1", "B"]
    assert data["tree"]["children"][1]["children"] == [{"value": '"x"', "children": []}]
    assert client.post("/wkt/tree", json={"text": "A[1"}).status_code == 422


def test_wkt_convert_without_registry(monkeypatch):
    monkeypatch.delenv("GEOTEXT_DB_PATH", raising=False)
    resp = client.post("/wkt/convert", json={"text": GDAL_4326, "convention": "WKT2_2018"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["wkt"].startswith('GEOGCRS["WGS 84",DATUM["World Geodetic System 1984"')
    assert data["source_dialect"] == "WKT1_GDAL"
    assert data["warnings"] == []


def test_wkt_convert_esri_with_registry(registry_env):
    resp = client.post("/wkt/convert", json={"text": ESRI_4326, "convention": "WKT1_GDAL"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["wkt"].startswith('GEOGCS["WGS 84",DATUM["WGS_1984"')
    assert data["source_dialect"] == "WKT1_ESRI"


def test_wkt_convert_strict_reports_warnings_as_errors(monkeypatch):
    monkeypatch.delenv("GEOTEXT_DB_PATH", raising=False)
    text = GDAL_4326[:-1] + ',FOO["bar"]]'
    lenient = client.post("/wkt/convert", json={"text": text})
    assert lenient.status_code == 200
    assert any("FOO" in w for w in lenient.json()["warnings"])
    assert client.post("/wkt/convert", json={"text": text, "strict": True}).status_code == 422


def test_wkt_convert_unknown_convention():
    assert client.post("/wkt/convert", json={"text": GDAL_4326, "convention": "WKT3"}).status_code == 422


def test_proj_convert(monkeypatch):
    monkeypatch.delenv("GEOTEXT_DB_PATH", raising=False)
    resp = client.post(
        "/proj/convert",
        json={"text": "+proj=longlat +datum=WGS84", "convention": "PROJ_4", "wkt_convention": "WKT1_GDAL"},
    )
    assert resp.status_code == 200
    data = resp.json()
    assert data["proj_string"] == "+proj=longlat +datum=WGS84 +no_defs"
    assert data["wkt"].startswith('GEOGCS["unknown"')
    assert data["grids"] == []


def test_proj_convert_pipeline_to_proj4_fails(monkeypatch):
    monkeypatch.delenv("GEOTEXT_DB_PATH", raising=False)
    resp = client.post(
        "/proj/convert",
        json={"text": "+proj=pipeline +step +proj=longlat +step +proj=utm +zone=31", "convention": "PROJ_4"},
    )
    assert resp.status_code == 422


def test_proj_convert_init_with_registry(registry_env):
    resp = client.post("/proj/convert", json={"text": "+init=EPSG:32631", "use_proj4_init_rules": True})
    assert resp.status_code == 200
    data = resp.json()
    assert data["proj_string"].endswith("+step +proj=utm +zone=31 +ellps=WGS84")
    assert data["warnings"] == []


def test_crs_export(registry_env):
    resp = client.get("/crs/EPSG/4326", params={"format": "PROJ_4"})
    assert resp.status_code == 200
    data = resp.json()
    assert data == {
        "authority": "EPSG",
        "code": "4326",
        "name": "WGS 84",
        "format": "PROJ_4",
        "text": "+proj=longlat +datum=WGS84 +no_defs",
    }
    wkt = client.get("/crs/EPSG/32631").json()["text"]
    assert wkt.startswith('PROJCRS["WGS 84 / UTM zone 31N"')


def test_crs_export_errors(registry_env):
    missing = client.get("/crs/EPSG/999")
    assert missing.status_code == 404
    assert missing.json()["detail"]["authority"] == "EPSG"
    assert missing.json()["detail"]["code"] == "999"
    assert client.get("/crs/EPSG/4978").status_code == 400
    assert client.get("/crs/EPSG/4326", params={"format": "KML"}).status_code == 422


def test_crs_export_without_registry(monkeypatch):
    monkeypatch.delenv("GEOTEXT_DB_PATH", raising=False)
    resp = client.get("/crs/EPSG/4326")
    assert resp.status_code == 503


def test_crs_export_with_missing_database(monkeypatch, tmp_path):
    monkeypatch.setenv("GEOTEXT_DB_PATH", str(tmp_path / "missing.db"))
    assert client.get("/crs/EPSG/4326").status_code == 503


def test_crs_search(registry_env):
    resp = client.post("/crs/search", json={"name": "WGS84", "categories": ["geographic_crs"]})
    assert resp.status_code == 200
    assert resp.json()["matches"] == [
        {"authority": "EPSG", "code": "4326", "name": "WGS 84", "type": "GeographicCRS"}
    ]
    bad = client.post("/crs/search", json={"name": "WGS84", "categories": ["potato"]})
    assert bad.status_code == 422


def test_operations(registry_env):
    resp = client.get("/operations", params={"source": "EPSG:4267", "target": "EPSG:4326"})
    assert resp.status_code == 200
    data = resp.json()
    assert data["source"] == "EPSG:4267"
    assert [op["code"] for op in data["operations"]] == ["1173", "8570"]
    first, second = data["operations"]
    assert first["type"] == "Transformation"
    assert first["accuracy"] == 10.0
    assert first["proj_string"].startswith("+proj=pipeline")
    assert second["type"] == "ConcatenatedOperation"
    assert second["grids"] == ["alternate.gsb"]


def test_operations_discard_missing_grids(registry_env):
    resp = client.get(
        "/operations",
        params={"source": "4267", "target": "4326", "discard_missing_grids": "true"},
    )
    assert resp.status_code == 200
    assert [op["code"] for op in resp.json()["operations"]] == ["1173"]


def test_operations_with_intermediates(registry_env):
    resp = client.get(
        "/operations",
        params={"source": "EPSG:4267", "target": "EPSG:4326", "intermediate": ["EPSG:4269"]},
    )
    assert resp.status_code == 200
    ops = resp.json()["operations"]
    assert len(ops) == 4
    assert ops[2]["name"] == "NAD27 to NAD83 (4) + NAD83 to WGS 84 (1)"
    assert ops[2]["code"] is None


def test_operations_bad_reference(registry_env):
    resp = client.get("/operations", params={"source": "EPSG:", "target": "EPSG:4326"})
    assert resp.status_code == 422


def test_request_id_is_echoed():
    resp = client.get("/health", headers={"X-Request-ID": "abc123"})
    assert resp.headers["X-Request-ID"] == "abc123"
    assert client.get("/health").headers["X-Request-ID"]
