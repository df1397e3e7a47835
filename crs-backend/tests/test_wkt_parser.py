import pytest

from app.errors import ParsingError
from wkt.node import WKTNode, unquote
from wkt.parser import DEFAULT_MAX_DEPTH, parse_tree, parse_tree_full


def test_tree_structure_and_end_offset():
    text = 'UNIT["metre",1,ID["EPSG",9001]] trailing'
    node, end = parse_tree(text)
    assert node.value == "UNIT"
    assert [c.value for c in node.children] == ['"metre"', "1", "ID"]
    assert node.children[2].children[1].value == "9001"
    assert text[end:] == " trailing"


def test_quoted_leaf_keeps_quotes_and_doubled_quotes():
    node = parse_tree_full('NAME["say ""hi"""]')
    leaf = node.children[0]
    assert leaf.is_quoted
    assert leaf.value == '"say ""hi"""'
    assert unquote(leaf.value) == 'say "hi"'


def test_round_trip_of_tree_rendering():
    text = 'GEOGCS["WGS 84",DATUM["WGS_1984",SPHEROID["WGS 84",6378137,298.257223563]],UNIT["degree",0.0174532925199433]]'
    assert parse_tree_full(text).to_string() == text


def test_whitespace_and_parentheses_are_accepted():
    node = parse_tree_full(' PRIMEM ( "Greenwich" , 0 ) ')
    assert node.value == "PRIMEM"
    assert node.to_string() == 'PRIMEM["Greenwich",0]'


def test_empty_brackets_give_a_node_without_children():
    node, end = parse_tree("AXIS[]")
    assert node.value == "AXIS"
    assert node.children == ()
    assert end == 6


def test_mismatched_bracket_is_rejected():
    with pytest.raises(ParsingError):
        parse_tree('UNIT["metre",1)')


def test_missing_closing_bracket():
    with pytest.raises(ParsingError, match="missing"):
        parse_tree('UNIT["metre",1')


def test_unterminated_quote():
    with pytest.raises(ParsingError, match="unterminated"):
        parse_tree('UNIT["metre,1]')


def test_quoted_string_cannot_open_a_node():
    with pytest.raises(ParsingError):
        parse_tree('"metre"[1]')


def test_extra_content_is_rejected_by_full_parse():
    with pytest.raises(ParsingError, match="extra content"):
        parse_tree_full('UNIT["metre",1] UNIT["foot",0.3048]')


def test_empty_input():
    with pytest.raises(ParsingError):
        parse_tree("   ")


def test_non_string_input():
    with pytest.raises(ParsingError):
        parse_tree(None)


def _nested(levels):
    return "A[" * (levels - 1) + "1" + "]" * (levels - 1)


def test_depth_limit():
    # the innermost leaf counts as a level
    parse_tree_full(_nested(DEFAULT_MAX_DEPTH))
    with pytest.raises(ParsingError, match="nesting"):
        parse_tree_full(_nested(DEFAULT_MAX_DEPTH + 1))


def test_depth_limit_from_env(monkeypatch):
    monkeypatch.setenv("GEOTEXT_WKT_MAX_DEPTH", "3")
    parse_tree_full(_nested(3))
    with pytest.raises(ParsingError):
        parse_tree_full(_nested(4))


def test_node_lookups_are_case_insensitive():
    node = parse_tree_full('CS[AXIS["a",north],axis["b",east],UNIT["m",1]]')
    assert node.look_for_child("AXIS", 1).children[0].value == '"b"'
    assert node.look_for_child("axis", 2) is None
    assert node.count_children_of_name("Axis") == 2
    assert node.look_for_any_child("LENGTHUNIT", "UNIT").value == "UNIT"


def test_create_from_matches_parse_tree():
    text = 'ID["EPSG",4326]'
    assert WKTNode.create_from(text) == parse_tree(text)
