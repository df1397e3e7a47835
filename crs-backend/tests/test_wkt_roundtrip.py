import pytest

from app.crs.crs import GeographicCRS, ProjectedCRS
from app.errors import ParsingError
from wkt.dialect import WKTGuessedDialect
from wkt.formatter import Convention, WKTFormatter
from wkt.parser import WKTParser

ALL_CONVENTIONS = [
    Convention.WKT2,
    Convention.WKT2_SIMPLIFIED,
    Convention.WKT2_2018,
    Convention.WKT2_2018_SIMPLIFIED,
    Convention.WKT1_GDAL,
    Convention.WKT1_ESRI,
]

GDAL_4326 = (
    'GEOGCS["WGS 84",DATUM["WGS_1984",SPHEROID["WGS 84",6378137,298.257223563,AUTHORITY["EPSG","7030"]],'
    'AUTHORITY["EPSG","6326"]],PRIMEM["Greenwich",0,AUTHORITY["EPSG","8901"]],'
    'UNIT["degree",0.0174532925199433,AUTHORITY["EPSG","9122"]],AUTHORITY["EPSG","4326"]]'
)


@pytest.mark.parametrize("code", ["4326", "32631", "26917"])
@pytest.mark.parametrize("convention", ALL_CONVENTIONS)
def test_registry_crs_survive_every_convention(epsg, db, code, convention):
    crs = epsg.create_coordinate_reference_system(code)
    text = crs.export_to_wkt(WKTFormatter(convention, db))
    back = WKTParser().attach_database_context(db).create_from_wkt(text)
    assert back == crs


@pytest.mark.parametrize("convention", ALL_CONVENTIONS[:4])
def test_non_greenwich_prime_meridian_survives_wkt2(epsg, convention):
    crs = epsg.create_geodetic_crs("4807")
    back = WKTParser().create_from_wkt(crs.export_to_wkt(WKTFormatter(convention)))
    assert back == crs
    assert back.datum.prime_meridian.unit.name == "grad"


def test_gdal_wkt1_writes_prime_meridian_in_degree(epsg):
    crs = epsg.create_geodetic_crs("4807")
    text = crs.export_to_wkt(WKTFormatter(Convention.WKT1_GDAL))
    assert 'PRIMEM["Paris",2.33722917' in text
    assert 'UNIT["grad",0.015707963267949' in text
    back = WKTParser().create_from_wkt(text)
    assert back.datum.prime_meridian.longitude_in_degree() == pytest.approx(2.33722917)
    assert back.datum.prime_meridian.longitude_in_degree() == pytest.approx(
        crs.datum.prime_meridian.longitude_in_degree()
    )


def test_projected_wkt1_gdal_text(epsg):
    crs = epsg.create_projected_crs("32631")
    assert crs.export_to_wkt(WKTFormatter(Convention.WKT1_GDAL)) == (
        'PROJCS["WGS 84 / UTM zone 31N",'
        'GEOGCS["WGS 84",DATUM["WGS_1984",SPHEROID["WGS 84",6378137,298.257223563,AUTHORITY["EPSG","7030"]],'
        'AUTHORITY["EPSG","6326"]],PRIMEM["Greenwich",0,AUTHORITY["EPSG","8901"]],'
        'UNIT["degree",0.0174532925199433,AUTHORITY["EPSG","9122"]],AUTHORITY["EPSG","4326"]],'
        'PROJECTION["Transverse_Mercator"],'
        'PARAMETER["latitude_of_origin",0],PARAMETER["central_meridian",3],PARAMETER["scale_factor",0.9996],'
        'PARAMETER["false_easting",500000],PARAMETER["false_northing",0],'
        'UNIT["metre",1,AUTHORITY["EPSG","9001"]],'
        'AXIS["Easting",EAST],AXIS["Northing",NORTH],'
        'AUTHORITY["EPSG","32631"]]'
    )


def test_projected_wkt2_keeps_base_id_and_usage(epsg):
    text = epsg.create_projected_crs("32631").export_to_wkt(WKTFormatter(Convention.WKT2_2018))
    assert text.startswith('PROJCRS["WGS 84 / UTM zone 31N",BASEGEOGCRS["WGS 84",')
    assert 'ID["EPSG",4326]]' in text
    assert 'USAGE[SCOPE["Engineering survey, topographic mapping."],AREA["Between 0°E and 6°E, northern hemisphere."],BBOX[0,0,84,6]]' in text
    assert text.endswith('ID["EPSG",32631]]')
    assert 'ID["EPSG",16031]' not in text


def test_gdal_wkt1_without_axis_defaults_to_lat_lon(epsg):
    parser = WKTParser()
    crs = parser.create_from_wkt(GDAL_4326)
    assert isinstance(crs, GeographicCRS)
    assert [a.direction for a in crs.coordinate_system.axes] == ["north", "east"]
    assert crs == epsg.create_geodetic_crs("4326")
    assert parser.warning_list() == []


def test_esri_names_map_back_through_registry(db, epsg):
    text = (
        'GEOGCS["GCS_WGS_1984",DATUM["D_WGS_1984",SPHEROID["WGS_1984",6378137,298.257223563]],'
        'PRIMEM["Greenwich",0],UNIT["Degree",0.0174532925199433]]'
    )
    parser = WKTParser().attach_database_context(db)
    assert parser.guess_dialect(text) is WKTGuessedDialect.WKT1_ESRI
    crs = parser.create_from_wkt(text)
    assert crs.name == "WGS 84"
    assert crs.datum.name == "World Geodetic System 1984"
    assert crs == epsg.create_geodetic_crs("4326")


def test_esri_names_without_registry_warn():
    text = (
        'GEOGCS["GCS_WGS_1984",DATUM["D_WGS_1984",SPHEROID["WGS_1984",6378137,298.257223563]],'
        'PRIMEM["Greenwich",0],UNIT["Degree",0.0174532925199433]]'
    )
    parser = WKTParser()
    crs = parser.create_from_wkt(text)
    assert crs.name == "WGS 1984"
    assert parser.warning_list()
    with pytest.raises(ParsingError):
        WKTParser().set_strict(True).create_from_wkt(text)


def test_unknown_nodes_warn_or_fail_in_strict_mode():
    text = GDAL_4326[:-1] + ',FOO["bar"]]'
    parser = WKTParser()
    parser.create_from_wkt(text)
    assert any("FOO" in w for w in parser.warning_list())
    with pytest.raises(ParsingError, match="FOO"):
        WKTParser().set_strict(True).create_from_wkt(text)


def test_towgs84_round_trip_through_wkt1():
    text = (
        'GEOGCS["DHDN",DATUM["Deutsches_Hauptdreiecksnetz",SPHEROID["Bessel 1841",6377397.155,299.1528128],'
        'TOWGS84[598.1,73.7,418.2,0.202,0.045,-2.455,6.7]],PRIMEM["Greenwich",0],'
        'UNIT["degree",0.0174532925199433]]'
    )
    crs = WKTParser().create_from_wkt(text)
    assert crs.towgs84 == (598.1, 73.7, 418.2, 0.202, 0.045, -2.455, 6.7)
    assert crs.datum.name == "Deutsches Hauptdreiecksnetz"
    out = crs.export_to_wkt(WKTFormatter(Convention.WKT1_GDAL))
    assert "TOWGS84[598.1,73.7,418.2,0.202,0.045,-2.455,6.7]" in out
    assert WKTParser().create_from_wkt(out) == crs


def test_extension_proj4_is_kept_for_gdal_only():
    text = GDAL_4326[:-1] + ',EXTENSION["PROJ4","+proj=longlat +datum=WGS84 +no_defs"]]'
    crs = WKTParser().create_from_wkt(text)
    assert crs.extension is not None
    assert 'EXTENSION["PROJ4","+proj=longlat +datum=WGS84 +no_defs"]' in crs.export_to_wkt(
        WKTFormatter(Convention.WKT1_GDAL)
    )
    assert "EXTENSION" not in crs.export_to_wkt(WKTFormatter(Convention.WKT2_2018))


@pytest.mark.parametrize(
    "text",
    [
        "not wkt at all",
        'FOO["bar"]',
        'GEOGCS["x",PRIMEM["Greenwich",0],UNIT["degree",0.0174532925199433]]',
        'GEOGCS["x",DATUM["d",SPHEROID["s",6378137]],UNIT["degree",0.0174532925199433]]',
        'GEOGCRS["x",DATUM["d",ELLIPSOID["e",6378137,298.257223563]],CS[ellipsoidal,3],'
        'AXIS["lat",north,ANGLEUNIT["degree",0.0174532925199433]]]',
    ],
)
def test_malformed_input_raises_parsing_error(text):
    with pytest.raises(ParsingError):
        WKTParser().create_from_wkt(text)


def test_projected_wkt1_gets_utm_conversion_name():
    text = (
        'PROJCS["WGS 84 / UTM zone 17N",' + GDAL_4326 + ','
        'PROJECTION["Transverse_Mercator"],PARAMETER["latitude_of_origin",0],'
        'PARAMETER["central_meridian",-81],PARAMETER["scale_factor",0.9996],'
        'PARAMETER["false_easting",500000],PARAMETER["false_northing",0],UNIT["metre",1]]'
    )
    crs = WKTParser().create_from_wkt(text)
    assert isinstance(crs, ProjectedCRS)
    assert crs.conversion.name == "UTM zone 17N"
    assert crs.conversion.method_name == "Transverse Mercator"
