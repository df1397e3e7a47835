import pytest

from app.crs.crs import CompoundCRS, GeographicCRS, ProjectedCRS, VerticalCRS
from app.crs.objects import Ellipsoid, UnitType, VerticalReferenceFrame
from app.crs.operations import ConcatenatedOperation, Transformation
from app.errors import FactoryError, NoSuchAuthorityCodeError
from projstring.formatter import Convention, PROJStringFormatter
from registry import matching
from registry.categories import ObjectType, tables_for
from registry.context import DatabaseContext, GridAlternative
from registry.factory import AliasMatch, AuthorityFactory
from conftest import build_db, seed_sql

AUX_SQL = """
INSERT INTO metadata VALUES ('EPSG.VERSION', 'aux');
INSERT INTO geodetic_crs VALUES ('TEST', '1', 'My WGS 84', 'geographic 2D', 'EPSG', '6422', 'EPSG', '6326', NULL, 0);
INSERT INTO extent VALUES ('EPSG', '4326', 'Clash', 'Same code as a CRS.', -1.0, 1.0, -1.0, 1.0, 0);
INSERT INTO coordinate_operation VALUES ('EPSG', '99999', 'NAD27 to WGS 84 (aux)', 'transformation', 'EPSG', '9603',
    'Geocentric translations (geog2D domain)', 'EPSG', '4267', 'EPSG', '4326', 2.0, 0);
INSERT INTO operation_param VALUES ('coordinate_operation', 'EPSG', '99999', 1, 'EPSG', '8605', 'X-axis translation', -10.0, 'EPSG', '9001');
INSERT INTO operation_param VALUES ('coordinate_operation', 'EPSG', '99999', 2, 'EPSG', '8606', 'Y-axis translation', 158.0, 'EPSG', '9001');
INSERT INTO operation_param VALUES ('coordinate_operation', 'EPSG', '99999', 3, 'EPSG', '8607', 'Z-axis translation', 187.0, 'EPSG', '9001');
"""


def codes(objects):
    return [o.identifiers[0].code for o in objects]


@pytest.fixture
def aux_db(registry_db, tmp_path):
    aux = build_db(tmp_path / "aux.db", AUX_SQL)
    ctx = DatabaseContext.open(registry_db, [aux])
    yield ctx
    ctx.close()


@pytest.fixture
def grid_dir(tmp_path, monkeypatch):
    directory = tmp_path / "grids"
    directory.mkdir()
    monkeypatch.setenv("GEOTEXT_GRID_PATHS", str(directory))
    return directory


# ---- DatabaseContext -------------------------------------------------------


def test_open_requires_existing_database(tmp_path, monkeypatch):
    monkeypatch.delenv("GEOTEXT_DB_PATH", raising=False)
    with pytest.raises(FactoryError):
        DatabaseContext.open()
    with pytest.raises(FactoryError):
        DatabaseContext.open(str(tmp_path / "missing.db"))


def test_from_env(registry_db, monkeypatch):
    monkeypatch.setenv("GEOTEXT_DB_PATH", registry_db)
    monkeypatch.delenv("GEOTEXT_AUX_DB_PATHS", raising=False)
    with DatabaseContext.from_env() as ctx:
        assert ctx.get_path() == registry_db


def test_metadata_and_authorities(db):
    assert db.get_metadata("EPSG.VERSION") == "v10.000-fixture"
    assert db.get_metadata("NO.SUCH.KEY") is None
    assert db.get_authorities() == {"EPSG", "ESRI"}
    structure = db.get_database_structure()
    assert structure[0].startswith("CREATE TABLE metadata")


def test_grid_alternative(db):
    assert db.look_for_grid_alternative("official.gsb") == GridAlternative("alternate.gsb", "GTX", False)
    assert db.look_for_grid_alternative("nope.gsb") is None


def test_grid_info_without_file(db, monkeypatch):
    monkeypatch.delenv("GEOTEXT_GRID_PATHS", raising=False)
    info = db.look_for_grid_info("alternate.gsb")
    assert info.package_name == "proj-datumgrid-fixture"
    assert info.url == "https://download.example.org/alternate.gsb"
    assert info.direct_download and info.open_license
    assert info.full_filename == ""
    assert not info.available
    assert db.look_for_grid_info("conus.gsb") is None


def test_grid_info_with_file(db, grid_dir):
    (grid_dir / "alternate.gsb").write_bytes(b"")
    (grid_dir / "conus.gsb").write_bytes(b"")
    info = db.look_for_grid_info("alternate.gsb")
    assert info.available
    assert info.full_filename == str(grid_dir / "alternate.gsb")
    bare = db.look_for_grid_info("conus.gsb")
    assert bare.available and bare.package_name == ""


def test_names(db):
    assert db.get_alias_from_official_name("WGS 84", "ellipsoid", "ESRI") == "WGS_1984"
    assert db.get_official_name_from_alias("D_WGS_1984", "geodetic_datum", "ESRI") == "World Geodetic System 1984"
    assert db.get_official_name_from_alias("WGS84", "geodetic_crs", None) == "WGS 84"
    assert db.get_official_name_from_alias("WGS84", "geodetic_crs", "ESRI") is None
    assert db.is_known_name("GRS_1980", "ellipsoid")
    assert db.is_known_name("Clarke 1866", "ellipsoid")
    assert not db.is_known_name("Potato", "ellipsoid")
    with pytest.raises(FactoryError):
        db.is_known_name("x", "sqlite_master")


def test_text_definition(db):
    assert db.get_text_definition("projected_crs", "ESRI", "54004").startswith("+proj=merc")
    assert db.get_text_definition("projected_crs", "EPSG", "32631") is None
    assert db.get_text_definition("extent", "EPSG", "1262") is None


def test_auxiliary_databases_extend_the_registry(aux_db):
    assert aux_db.get_authorities() == {"EPSG", "ESRI", "TEST"}
    # main database wins
    assert aux_db.get_metadata("EPSG.VERSION") == "v10.000-fixture"
    crs = AuthorityFactory.create(aux_db, "TEST").create_geodetic_crs("1")
    assert crs.name == "My WGS 84"
    assert crs.datum.name == "World Geodetic System 1984"


def test_auxiliary_operations_come_after_main_ones(aux_db):
    ops = AuthorityFactory.create(aux_db, "EPSG").create_from_coordinate_reference_system_codes("4267", "4326")
    assert codes(ops) == ["1173", "8570", "99999"]


def test_code_in_two_tables_is_ambiguous(aux_db):
    with pytest.raises(FactoryError, match="more than one"):
        AuthorityFactory.create(aux_db, "EPSG").create_object("4326")


# ---- AuthorityFactory: objects ---------------------------------------------


def test_missing_code_reports_authority_and_code(epsg):
    with pytest.raises(NoSuchAuthorityCodeError) as info:
        epsg.create_geodetic_crs("1")
    assert info.value.authority == "EPSG"
    assert info.value.code == "1"
    assert isinstance(info.value, FactoryError)
    with pytest.raises(NoSuchAuthorityCodeError):
        epsg.create_object("424242")


def test_simple_objects(epsg):
    unit = epsg.create_unit_of_measure("9105")
    assert unit.name == "grad" and unit.type is UnitType.ANGULAR
    extent = epsg.create_extent("1262")
    assert (extent.south, extent.west, extent.north, extent.east) == (-90.0, -180.0, 90.0, 180.0)
    assert extent.description == "World."
    pm = epsg.create_prime_meridian("8903")
    assert pm.name == "Paris" and pm.unit.name == "grad"


def test_ellipsoid_from_semi_minor_axis(epsg):
    clarke = epsg.create_ellipsoid("7008")
    assert clarke.semi_major_axis == 6378206.4
    assert clarke.inverse_flattening == pytest.approx(294.9786982)


def test_sphere_has_zero_inverse_flattening(epsg):
    sphere = epsg.create_ellipsoid("7035")
    assert sphere.inverse_flattening == 0.0
    assert sphere.is_sphere


def test_identify_body(epsg):
    assert epsg.identify_body_from_semi_major_axis(6378137.0, 1e-4) == "Earth"
    assert epsg.identify_body_from_semi_major_axis(6378206.4, 1e-4) == "Earth"
    assert epsg.identify_body_from_semi_major_axis(1737400.0, 1e-6) == "Moon"
    with pytest.raises(FactoryError):
        epsg.identify_body_from_semi_major_axis(3396190.0, 1e-4)


def test_datums(epsg):
    assert isinstance(epsg.create_datum("5103"), VerticalReferenceFrame)
    nad27 = epsg.create_datum("6267")
    assert nad27.anchor == "Meades Ranch"
    assert nad27.ellipsoid.name == "Clarke 1866"


def test_geodetic_crs(epsg):
    crs = epsg.create_geodetic_crs("4326")
    assert isinstance(crs, GeographicCRS)
    assert crs.coordinate_system.is_north_first()
    assert crs.scope == "Horizontal component of 3D system."
    assert crs.extent.description == "World."


def test_geocentric_crs_is_not_supported(epsg):
    with pytest.raises(FactoryError, match="geocentric"):
        epsg.create_coordinate_reference_system("4978")


def test_projected_crs(epsg):
    crs = epsg.create_projected_crs("26917")
    assert isinstance(crs, ProjectedCRS)
    assert crs.base_crs.name == "NAD83"
    assert crs.conversion.name == "UTM zone 17N"
    assert crs.export_to_proj_string(PROJStringFormatter(Convention.PROJ_4)) == (
        "+proj=utm +zone=17 +datum=NAD83 +units=m +no_defs"
    )


def test_projected_crs_from_text_definition(db):
    crs = AuthorityFactory.create(db, "ESRI").create_projected_crs("54004")
    assert crs.name == "World_Mercator"
    assert crs.identifiers[0].authority == "ESRI"
    assert crs.conversion.method_name == "Mercator (variant A)"
    assert crs.export_to_proj_string(PROJStringFormatter(Convention.PROJ_4)) == (
        "+proj=merc +lat_0=0 +lon_0=0 +k=1 +x_0=0 +y_0=0 +datum=WGS84 +units=m +no_defs"
    )


def test_vertical_and_compound_crs(epsg):
    vertical = epsg.create_vertical_crs("5703")
    assert isinstance(vertical, VerticalCRS)
    compound = epsg.create_coordinate_reference_system("5498")
    assert isinstance(compound, CompoundCRS)
    assert [c.name for c in compound.components] == ["NAD83", "NAVD88 height"]
    assert compound.export_to_proj_string(PROJStringFormatter(Convention.PROJ_4)) == (
        "+proj=longlat +datum=NAD83 +vunits=m +no_defs"
    )


def test_create_object_dispatches_on_table(epsg):
    assert isinstance(epsg.create_object("7030"), Ellipsoid)
    assert isinstance(epsg.create_object("32631"), ProjectedCRS)
    assert isinstance(epsg.create_object("1188"), Transformation)
    assert epsg.create_object("9001").name == "metre"


# ---- AuthorityFactory: operations ------------------------------------------


def test_transformation(epsg):
    op = epsg.create_coordinate_operation("1173")
    assert isinstance(op, Transformation)
    assert op.accuracy == 10.0
    assert [p.value for p in op.parameters] == [-8.0, 160.0, 176.0]
    assert op.source_crs.name == "NAD27"
    assert op.target_crs.name == "WGS 84"


def test_concatenated_operation_uses_alternative_grids(epsg):
    op = epsg.create_coordinate_operation("8570")
    assert isinstance(op, ConcatenatedOperation)
    assert codes(op.operations) == ["1313", "1188"]
    assert op.operations[0].grid_names() == ("alternate.gsb",)
    official = epsg.create_coordinate_operation("8570", use_proj_alternative_grid_names=False)
    assert official.operations[0].grid_names() == ("official.gsb",)


def test_conversion_through_coordinate_operation(epsg):
    assert epsg.create_coordinate_operation("16031") == epsg.create_conversion("16031")


def test_operations_between_crs_in_discovery_order(epsg):
    ops = epsg.create_from_coordinate_reference_system_codes("4267", "4326")
    assert codes(ops) == ["1173", "8570"]
    assert epsg.create_from_coordinate_reference_system_codes("4326", "4267") == []


def test_operations_discard_missing_grids(epsg, monkeypatch):
    monkeypatch.delenv("GEOTEXT_GRID_PATHS", raising=False)
    ops = epsg.create_from_coordinate_reference_system_codes("4267", "4326", discard_if_missing_grid=True)
    assert codes(ops) == ["1173"]


def test_operations_keep_grids_found_on_disk(epsg, grid_dir):
    (grid_dir / "alternate.gsb").write_bytes(b"")
    ops = epsg.create_from_coordinate_reference_system_codes("4267", "4326", discard_if_missing_grid=True)
    assert codes(ops) == ["1173", "8570"]


def test_intermediates(epsg):
    ops = epsg.create_from_crs_codes_with_intermediates("EPSG", "4267", "EPSG", "4326")
    assert [op.name for op in ops] == [
        "NAD27 to NAD83 (4) + NAD83 to WGS 84 (1)",
        "NAD27 to NAD83 (1) + NAD83 to WGS 84 (1)",
    ]
    assert all(isinstance(op, ConcatenatedOperation) for op in ops)
    assert codes(ops[0].operations) == ["1313", "1188"]


def test_intermediates_restricted_to_given_pivots(epsg):
    via_nad83 = epsg.create_from_crs_codes_with_intermediates(
        "EPSG", "4267", "EPSG", "4326", intermediate_crs_auth_codes=[("EPSG", "4269")]
    )
    assert len(via_nad83) == 2
    via_dhdn = epsg.create_from_crs_codes_with_intermediates(
        "EPSG", "4267", "EPSG", "4326", intermediate_crs_auth_codes=[("EPSG", "4314")]
    )
    assert via_dhdn == []


def test_intermediates_discard_missing_grids(epsg, grid_dir):
    assert epsg.create_from_crs_codes_with_intermediates(
        "EPSG", "4267", "EPSG", "4326", discard_if_missing_grid=True
    ) == []
    (grid_dir / "alternate.gsb").write_bytes(b"")
    ops = epsg.create_from_crs_codes_with_intermediates("EPSG", "4267", "EPSG", "4326", discard_if_missing_grid=True)
    assert [op.name for op in ops] == ["NAD27 to NAD83 (4) + NAD83 to WGS 84 (1)"]
    (grid_dir / "conus.gsb").write_bytes(b"")
    ops = epsg.create_from_crs_codes_with_intermediates("EPSG", "4267", "EPSG", "4326", discard_if_missing_grid=True)
    assert len(ops) == 2


# ---- AuthorityFactory: enumeration and names -------------------------------


def test_authority_codes(epsg):
    assert epsg.get_authority_codes(ObjectType.GEOGRAPHIC_2D_CRS) == ["4326", "4269", "4267", "4314", "4807"]
    assert epsg.get_authority_codes(ObjectType.GEOCENTRIC_CRS) == ["4978"]
    assert epsg.get_authority_codes(ObjectType.PROJECTED_CRS) == ["32631", "26917"]
    with_deprecated = epsg.get_authority_codes(ObjectType.TRANSFORMATION)
    assert with_deprecated[:2] == ["1173", "1172"]
    assert "1172" not in epsg.get_authority_codes(ObjectType.TRANSFORMATION, allow_deprecated=False)
    assert epsg.get_authority_codes(ObjectType.CONCATENATED_OPERATION) == ["8570"]


def test_description_text(epsg):
    assert epsg.get_description_text("4326") == "WGS 84"
    assert epsg.get_description_text("1323") == "USA - CONUS - onshore"
    with pytest.raises(NoSuchAuthorityCodeError):
        epsg.get_description_text("424242")


def test_official_name_from_alias(epsg):
    assert epsg.get_official_name_from_alias("GCS_WGS_1984") == AliasMatch("WGS 84", "geodetic_crs", "EPSG", "4326")
    match = epsg.get_official_name_from_alias("North_American_Datum_1983", "geodetic_datum")
    assert match.official_name == "North American Datum 1983"
    assert epsg.get_official_name_from_alias("North_American_Datum_1983", "geodetic_datum", "ESRI") is None
    assert epsg.get_official_name_from_alias("nothing") is None


BOGUS_ALIASES_SQL = """
INSERT INTO alias_name VALUES ('no_such_table', 'EPSG', '4326', 'Bogus', NULL);
INSERT INTO alias_name VALUES ('geodetic_crs WHERE 1=1; --', 'EPSG', '4326', 'Bogus', NULL);
INSERT INTO alias_name VALUES ('geodetic_crs', 'EPSG', '4326', 'Bogus', NULL);
INSERT INTO alias_name VALUES ('no_such_table', 'EPSG', '4326', 'OnlyBogus', NULL);
"""


def test_official_name_from_alias_ignores_unknown_tables(tmp_path):
    path = build_db(tmp_path / "bogus.db", seed_sql(), BOGUS_ALIASES_SQL)
    with DatabaseContext.open(path) as ctx:
        factory = AuthorityFactory.create(ctx, "EPSG")
        assert factory.get_official_name_from_alias("Bogus") == AliasMatch("WGS 84", "geodetic_crs", "EPSG", "4326")
        assert factory.get_official_name_from_alias("OnlyBogus") is None


def test_objects_from_exact_name(epsg):
    found = epsg.create_objects_from_name("wgs 84", [ObjectType.GEOGRAPHIC_CRS], approximate_match=False)
    assert codes(found) == ["4326"]
    by_alias = epsg.create_objects_from_name("WGS84", [ObjectType.GEOGRAPHIC_CRS])
    assert codes(by_alias) == ["4326"]
    both = epsg.create_objects_from_name("WGS 84", [ObjectType.ELLIPSOID, ObjectType.GEOGRAPHIC_2D_CRS])
    assert [type(o) for o in both] == [Ellipsoid, GeographicCRS]


def test_name_search_skips_rows_the_factory_cannot_build(epsg):
    # EPSG:4978 is also called "WGS 84" but is geocentric
    found = epsg.create_objects_from_name("WGS 84")
    assert codes(found) == ["7030", "4326"]
    assert codes(epsg.create_objects_from_name("WGS 84", [ObjectType.CRS], False)) == ["4326"]
    assert codes(epsg.create_objects_from_name("WGS 84", limit_result_count=1)) == ["7030"]
    assert epsg.create_objects_from_name("WGS 84", [ObjectType.GEOCENTRIC_CRS]) == []


def test_objects_from_approximate_name(epsg):
    found = epsg.create_objects_from_name("utm zone 31", [ObjectType.PROJECTED_CRS])
    assert codes(found) == ["32631"]
    assert epsg.create_objects_from_name("utm zone 31", [ObjectType.PROJECTED_CRS], approximate_match=False) == []
    assert epsg.create_objects_from_name("zzzz", [ObjectType.CRS]) == []


def test_area_of_use_from_name(epsg):
    assert epsg.list_area_of_use_from_name("World", False) == [("EPSG", "1262")]
    assert epsg.list_area_of_use_from_name("World", True) == [("EPSG", "1262"), ("EPSG", "2060")]
    assert epsg.list_area_of_use_from_name("usa conus onshore", False) == [("EPSG", "1323")]


# ---- helpers ---------------------------------------------------------------


def test_matching_scores():
    assert matching.score("WGS 84", "wgs84") == 1.0
    assert matching.score("utm 31", "WGS 84 / UTM 31N") == matching.SUBSTRING_SCORE
    assert matching.score("", "x") == 0.0
    ranked = matching.rank("nad83", [("a", ["NAD83"]), ("b", ["NAD83 / UTM zone 17N"]), ("c", ["Potato"])])
    assert [item for item, _ in ranked] == ["a", "b"]
    assert matching.rank("nad83", [("a", ["NAD83"]), ("b", ["NAD83"])], limit=1) == [("a", 1.0)]


def test_tables_for_merges_type_filters():
    assert tables_for([ObjectType.GEOCENTRIC_CRS, ObjectType.GEOGRAPHIC_2D_CRS]) == (
        ("geodetic_crs", ("geocentric", "geographic 2D")),
    )
    assert tables_for([ObjectType.GEOGRAPHIC_CRS, ObjectType.GEODETIC_CRS]) == (("geodetic_crs", None),)
    assert tables_for([])[0] == ("prime_meridian", None)
