from wkt.dialect import WKTGuessedDialect, extract_features, guess_dialect


def test_wkt2_2018_from_root_keyword():
    assert guess_dialect('GEOGCRS["WGS 84", ...]') == WKTGuessedDialect.WKT2_2018


def test_wkt2_2018_from_nested_keyword():
    text = 'PROJCRS["x",BASEGEOGCRS["WGS 84",DATUM["d",ELLIPSOID["e",1,0]]],USAGE[SCOPE["s"]]]'
    assert guess_dialect(text) == WKTGuessedDialect.WKT2_2018


def test_wkt2_2015():
    text = 'GEODCRS["WGS 84",DATUM["World Geodetic System 1984",ELLIPSOID["WGS 84",6378137,298.257223563]]]'
    assert guess_dialect(text) == WKTGuessedDialect.WKT2_2015


def test_2018_keyword_inside_quotes_does_not_count():
    text = 'GEODCRS["USAGE[ is just a name",DATUM["d",ELLIPSOID["e",1,0]]]'
    assert guess_dialect(text) == WKTGuessedDialect.WKT2_2015


def test_wkt1_gdal():
    assert guess_dialect('GEOGCS["WGS 84", ...]') == WKTGuessedDialect.WKT1_GDAL


def test_wkt1_esri_from_names():
    text = 'GEOGCS["GCS_WGS_1984",DATUM["D_WGS_1984",SPHEROID["WGS_1984",6378137,298.257223563]]]'
    assert guess_dialect(text) == WKTGuessedDialect.WKT1_ESRI


def test_wkt1_esri_from_vertcs():
    assert guess_dialect('VERTCS["NAVD88_height",VDATUM["x"]]') == WKTGuessedDialect.WKT1_ESRI


def test_not_wkt():
    assert guess_dialect("not wkt at all") == WKTGuessedDialect.NOT_WKT
    assert guess_dialect("+proj=longlat +datum=WGS84") == WKTGuessedDialect.NOT_WKT
    assert guess_dialect('FOO["bar"]') == WKTGuessedDialect.NOT_WKT
    assert guess_dialect("") == WKTGuessedDialect.NOT_WKT
    assert guess_dialect(None) == WKTGuessedDialect.NOT_WKT


def test_features_collect_keywords_outside_quotes():
    feats = extract_features('GEOGCS["GCS_x",DATUM["D_y",SPHEROID["s",1,0]]]')
    assert feats.root == "GEOGCS"
    assert {"GEOGCS", "DATUM", "SPHEROID"} <= feats.keywords
    assert feats.esri_names == ["GCS_x", "D_y"]


def test_keyword_inside_a_literal_does_not_add_esri_names():
    # the unescaped quote leaves 'DATUM[' inside the code literal
    text = 'GEOGCS["WGS 84",AUTHORITY["EPSG","DATUM["D_x"]]'
    assert extract_features(text).esri_names == []
    assert guess_dialect(text) == WKTGuessedDialect.WKT1_GDAL


def test_esri_names_unescape_doubled_quotes():
    feats = extract_features('GEOGCS["GCS_""q""",DATUM["WGS_1984",SPHEROID["s",1,0]]]')
    assert feats.esri_names == ['GCS_"q"']
