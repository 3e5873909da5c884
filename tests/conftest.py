import pytest

from nlmorph.geometry import Color, Point
from nlmorph.model import Branch, Contour, Image, Marker, NeuronData, Tree
from nlmorph.swc import SWCRecord


SAMPLE_XML = """<?xml version="1.0" encoding="UTF-8"?>
<mbf version="4.0" xmlns="http://www.mbfbioscience.com/2007/neurolucida" xmlns:nl="http://www.mbfbioscience.com/2007/neurolucida" appname="Neurolucida" appversion="11.03">
  <description><![CDATA[]]></description>
  <images>
    <image>
      <filename>stack_01.tif</filename>
      <channels merge="yes"><channel id="0" source="stack_01.tif"/></channels>
      <scale x="0.5" y="0.25"/>
      <coord x="10" y="20" z="30"/>
      <zspacing z="2" slices="40"/>
    </image>
  </images>
  <contour name="CellBody" color="#FF0000" closed="true" shape="Contour">
    <property name="GUID"><s>abc</s></property>
    <point x="0" y="0" z="0" d="0.1"/>
    <point x="1" y="0" z="0" d="0.1"/>
    <point x="1" y="1" z="0" d="0.1"/>
    <marker type="Dot" color="#00FF00" name="Soma dot" varicosity="false">
      <point x="0.5" y="0.5" z="0" d="0.2"/>
    </marker>
  </contour>
  <tree color="#00FFFF" type="Dendrite" leaf="Normal">
    <point x="0" y="0" z="0" d="2"/>
    <point x="1" y="1" z="1" d="1.5"/>
    <branch>
      <point x="2" y="2" z="1" d="1"/>
      <point x="3" y="3" z="1" d="1"/>
      <marker type="Circle1" color="#0000FF" name="syn" varicosity="true">
        <point x="2.5" y="2.5" z="1" d="0.5"/>
      </marker>
    </branch>
    <branch leaf="High">
      <point x="2" y="0" z="1" d="1"/>
      <branch leaf="Low">
        <point x="3" y="-1" z="1" d="0.5"/>
      </branch>
      <branch leaf="Incomplete">
        <point x="3" y="1" z="1" d="0.5"/>
      </branch>
    </branch>
  </tree>
  <marker type="FilledCircle" color="#FFFFFF" name="Start" varicosity="false">
    <point x="9" y="9" z="9" d="1"/>
  </marker>
  <sparcdata/>
</mbf>
"""


@pytest.fixture
def sample_xml():
    return SAMPLE_XML


def make_fork_tree():
    """Root polyline forking into two leaves, the second forking again."""
    left = Branch(leaf="Normal", points=[Point(2, 1, 0, 1), Point(3, 2, 0, 1)])
    right_a = Branch(leaf="Normal", points=[Point(4, -2, 0, 0.5)])
    right_b = Branch(leaf="Normal", points=[Point(4, 0, 0, 0.5), Point(5, 0, 0, 0.5)])
    right = Branch(leaf="Normal", points=[Point(2, -1, 0, 1)], branches=[right_a, right_b])
    return Tree(
        leaf="Normal",
        color=Color(1.0, 1.0, 1.0),
        type="Axon",
        points=[Point(0, 0, 0, 3), Point(1, 0, 0, 2)],
        branches=[left, right],
    )


@pytest.fixture
def fork_tree():
    return make_fork_tree()


@pytest.fixture
def neuron_data():
    """A model touching every element kind, with colors that survive hex encoding."""
    tree = make_fork_tree()
    tree.color = Color(0.0, 1.0, 1.0)
    tree.markers.append(Marker("Circle1", "on tree", Color(1.0, 0.0, 0.0), False, [Point(0.5, 0, 0, 1)]))
    tree.branches[0].markers.append(
        Marker("Circle2", "varicose", Color(0.0, 0.0, 1.0), True, [Point(2.5, 1.5, 0, 0.3), Point(2.7, 1.7, 0, 0.3)])
    )
    contour = Contour(
        name="CellBody",
        shape="Contour",
        color=Color(1.0, 0.0, 0.0),
        closed=True,
        points=[Point(-1, -1, 0, 0), Point(1, -1, 0, 0), Point(1, 1, 0, 0), Point(-1, 1, 0, 0)],
        markers=[Marker("Dot", "center", Color(0.0, 1.0, 0.0), False, [Point(0, 0, 0, 0.1)])],
    )
    return NeuronData(
        images=[Image(filenames=["a.tif"], scale=(0.5, 0.5), coord=(1.0, 2.0, 3.0), z_spacing=1.5, slices=10)],
        trees=[tree],
        contours=[contour],
        markers=[Marker("FilledCircle", "Start", Color(1.0, 1.0, 1.0), False, [Point(9, 9, 9, 1)])],
    )


@pytest.fixture
def chain_records():
    return [
        SWCRecord(1, 1, 0.0, 0.0, 0.0, 1.0, -1),
        SWCRecord(2, 0, 1.0, 0.0, 0.0, 1.0, 1),
        SWCRecord(3, 6, 2.0, 0.0, 0.0, 1.0, 2),
    ]
