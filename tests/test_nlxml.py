import logging
import xml.etree.ElementTree as ET

import pytest

from nlmorph import nlxml
from nlmorph.exceptions import FormatError
from nlmorph.geometry import Color, Point
from nlmorph.model import NeuronData


def test_parse_color_normalizes_channels():
    assert nlxml.parse_color("#FF0000") == Color(1.0, 0.0, 0.0)
    c = nlxml.parse_color("#80ff00")
    assert c.r == pytest.approx(128 / 255)
    assert c.g == 1.0
    assert c.b == 0.0


@pytest.mark.parametrize("bad", ["FF0000", "#FF00", "#GG0000", "#FF00001", "", "red"])
def test_parse_color_rejects_malformed(bad):
    with pytest.raises(FormatError):
        nlxml.parse_color(bad)


def test_color_to_string_clamps_and_uppercases():
    assert nlxml.color_to_string(Color(1.0, 0.0, 0.0)) == "#FF0000"
    assert nlxml.color_to_string(Color(2.0, -1.0, 10 / 255)) == "#FF000A"


def test_color_string_round_trip():
    for s in ("#000000", "#FFFFFF", "#12AB7F", "#010203"):
        assert nlxml.color_to_string(nlxml.parse_color(s)) == s


def test_decode_sample_document(sample_xml):
    data = nlxml.loads(sample_xml)

    assert len(data.trees) == 1
    assert len(data.contours) == 1
    assert len(data.markers) == 1

    tree = data.trees[0]
    assert tree.type == "Dendrite"
    assert tree.leaf == "Normal"
    assert tree.color == Color(0.0, 1.0, 1.0)
    assert tree.points == [Point(0, 0, 0, 2), Point(1, 1, 1, 1.5)]

    first, second = tree.branches
    assert first.leaf == "Unspecified"
    assert [p.x for p in first.points] == [2.0, 3.0]
    assert first.markers[0].varicosity is True
    assert first.markers[0].name == "syn"
    assert second.leaf == "High"
    assert [b.leaf for b in second.branches] == ["Low", "Incomplete"]

    contour = data.contours[0]
    assert contour.closed is True
    assert contour.name == "CellBody"
    assert len(contour.points) == 3
    assert contour.markers[0].points == [Point(0.5, 0.5, 0, 0.2)]


def test_decode_images_block(sample_xml):
    img = nlxml.loads(sample_xml).images[0]
    assert img.filenames == ["stack_01.tif"]
    assert img.scale == (0.5, 0.25)
    assert img.coord == (10.0, 20.0, 30.0)
    assert img.z_spacing == 2.0
    assert img.slices == 40


def test_unknown_tags_warn_but_do_not_fail(sample_xml, caplog):
    with caplog.at_level(logging.WARNING, logger="nlmorph.nlxml"):
        data = nlxml.loads(sample_xml)
    assert len(data.trees) == 1
    messages = " ".join(r.getMessage() for r in caplog.records)
    assert "description" in messages
    assert "sparcdata" in messages


def test_decode_without_namespace():
    data = nlxml.loads(
        '<mbf version="4.0"><tree color="#FFFFFF" type="Axon">'
        '<point x="1" y="2" z="3" d="4"/></tree></mbf>'
    )
    assert data.trees[0].points == [Point(1, 2, 3, 4)]
    # leaf missing on the tree as well
    assert data.trees[0].leaf == "Unspecified"


def test_decode_rejects_bad_numeric_attribute():
    with pytest.raises(FormatError, match="'x'"):
        nlxml.loads('<mbf><tree color="#FFFFFF"><point x="abc" y="0" z="0" d="1"/></tree></mbf>')


@pytest.mark.parametrize("slices", ["nan", "1e400", "-inf", "2.5"])
def test_decode_rejects_non_integer_slices(slices):
    text = f'<mbf><images><image><zspacing z="1" slices="{slices}"/></image></images></mbf>'
    with pytest.raises(FormatError, match="'slices'"):
        nlxml.loads(text)


def test_decode_rejects_bad_boolean():
    with pytest.raises(FormatError):
        nlxml.loads('<mbf><contour name="c" color="#FFFFFF" closed="maybe"/></mbf>')


def test_decode_rejects_bad_color():
    with pytest.raises(FormatError):
        nlxml.loads('<mbf><marker type="Dot" name="m" color="#12" varicosity="false"/></mbf>')


def test_loads_rejects_invalid_xml():
    with pytest.raises(FormatError):
        nlxml.loads("<mbf><tree></mbf>")


def test_decode_deep_nesting():
    depth = 3000
    text = "<mbf><tree color=\"#FFFFFF\" type=\"Axon\">"
    text += "".join(f'<branch leaf="Normal"><point x="{i}" y="0" z="0" d="1"/>' for i in range(depth))
    text += "</branch>" * depth + "</tree></mbf>"

    data = nlxml.loads(text)

    b = data.trees[0]
    n = 0
    while b.branches:
        b = b.branches[0]
        n += 1
    assert n == depth
    assert b.points == [Point(depth - 1, 0, 0, 1)]


def test_encode_root_and_order(neuron_data):
    root = nlxml.encode(neuron_data)

    assert root.tag == "mbf"
    assert root.get("version") == "4.0"
    assert root.get("xmlns") == nlxml.NAMESPACE
    assert [c.tag for c in root] == ["tree", "contour", "marker"]

    tree_el = root[0]
    tags = [c.tag for c in tree_el]
    assert tags == ["point", "point", "branch", "branch", "marker"]

    contour_tags = [c.tag for c in root[1]]
    assert contour_tags == ["point"] * 4 + ["marker"]


def test_encode_includes_images_on_request(neuron_data):
    root = nlxml.encode(neuron_data, include_images=True)
    assert root[0].tag == "images"
    assert root[0][0].find("zspacing").get("slices") == "10"


def test_round_trip_preserves_model(neuron_data):
    text = nlxml.dumps(neuron_data)
    back = nlxml.loads(text)

    # Image calibration is not written by default
    assert back.images == []
    neuron_data.images = []
    assert back == neuron_data


def test_round_trip_with_images(neuron_data):
    back = nlxml.loads(nlxml.dumps(neuron_data, include_images=True))
    assert back == neuron_data


def test_round_trip_of_sample(sample_xml):
    data = nlxml.loads(sample_xml)
    again = nlxml.loads(nlxml.dumps(data, include_images=True))
    assert again == data


def test_encode_empty_model():
    root = nlxml.encode(NeuronData())
    assert list(root) == []
    assert ET.tostring(root).startswith(b"<mbf")
