# src/nlmorph/nlxml.py
from __future__ import annotations

# General imports (stdlib)
import logging
import math
import re
import xml.etree.ElementTree as ET
from typing import List, Optional, Tuple

# Local imports
from .exceptions import FormatError
from .geometry import BLACK, Color, Point
from .model import (
    UNSPECIFIED_LEAF,
    Branch,
    Contour,
    Image,
    Marker,
    NeuronData,
    Tree,
)

logger = logging.getLogger(__name__)

ROOT_TAG = "mbf"
VERSION = "4.0"
NAMESPACE = "http://www.mbfbioscience.com/2007/neurolucida"

_COLOR_RE = re.compile(r"^#([0-9A-Fa-f]{2})([0-9A-Fa-f]{2})([0-9A-Fa-f]{2})$")
_TRUE = {"true", "1"}
_FALSE = {"false", "0"}


# -------------------------
# --- Attribute helpers ---
# -------------------------

def _local(tag: str) -> str:
    # "{namespace}tree" -> "tree"
    return tag.rsplit("}", 1)[-1]


def _float_attr(e: ET.Element, name: str, default: float = 0.0) -> float:
    value = e.get(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError as err:
        raise FormatError(
            f"<{_local(e.tag)}> attribute {name!r} is not a number: {value!r}"
        ) from err


def _int_attr(e: ET.Element, name: str, default: int = 0) -> int:
    value = _float_attr(e, name, float(default))
    if not math.isfinite(value) or value != int(value):
        raise FormatError(f"<{_local(e.tag)}> attribute {name!r} is not an integer: {e.get(name)!r}")
    return int(value)


def _bool_attr(e: ET.Element, name: str, default: bool = False) -> bool:
    value = e.get(name)
    if value is None:
        return default
    v = value.strip().lower()
    if v in _TRUE:
        return True
    if v in _FALSE:
        return False
    raise FormatError(f"<{_local(e.tag)}> attribute {name!r} is not a boolean: {value!r}")


def _color_attr(e: ET.Element) -> Color:
    value = e.get("color")
    return BLACK if value is None else parse_color(value)


def _fmt(v: float) -> str:
    return repr(float(v))


def _fmt_bool(v: bool) -> str:
    return "true" if v else "false"


def parse_color(s: str) -> Color:
    """
    Parse a "#RRGGBB" color string into a normalized Color.

    Args:
        s (str): Color string with exactly six hex digits after '#'.

    Returns:
        Color: Channels divided by 255, i.e. in [0, 1].

    Raises:
        FormatError: If `s` is not of the form "#RRGGBB".
    """
    m = _COLOR_RE.match(s.strip()) if isinstance(s, str) else None
    if m is None:
        raise FormatError(f"Malformed color string {s!r}; expected '#RRGGBB'")
    r, g, b = (int(grp, 16) / 255.0 for grp in m.groups())
    return Color(r, g, b)


def color_to_string(c: Color) -> str:
    """Format a Color as "#RRGGBB" (channels clamped to [0, 1], uppercase hex)."""
    def _byte(v: float) -> int:
        return int(round(min(max(float(v), 0.0), 1.0) * 255.0))

    return "#{:02X}{:02X}{:02X}".format(_byte(c.r), _byte(c.g), _byte(c.b))


# ----------------
# --- Decoding ---
# ----------------

def _read_point(e: ET.Element) -> Point:
    return Point(
        _float_attr(e, "x"),
        _float_attr(e, "y"),
        _float_attr(e, "z"),
        _float_attr(e, "d"),
    )


def _read_marker(e: ET.Element) -> Marker:
    m = Marker(
        type=e.get("type", ""),
        name=e.get("name", ""),
        color=_color_attr(e),
        varicosity=_bool_attr(e, "varicosity"),
    )
    for child in e:
        tag = _local(child.tag)
        if tag == "point":
            m.points.append(_read_point(child))
        else:
            logger.warning("Skipping unrecognized <%s> inside <marker>", tag)
    return m


def _read_contour(e: ET.Element) -> Contour:
    c = Contour(
        name=e.get("name", ""),
        shape=e.get("shape", ""),
        color=_color_attr(e),
        closed=_bool_attr(e, "closed"),
    )
    for child in e:
        tag = _local(child.tag)
        if tag == "point":
            c.points.append(_read_point(child))
        elif tag == "marker":
            c.markers.append(_read_marker(child))
        elif tag != "property":
            logger.warning("Skipping unrecognized <%s> inside <contour>", tag)
    return c


def _read_tree(e: ET.Element) -> Tree:
    """
    Decode a <tree> element and all nested <branch> elements.

    Use:
        Walk the element hierarchy with an explicit work stack of
        (element, target branch) pairs. Each child <branch> is appended to its
        parent's `branches` when the parent is visited, so sibling order always
        matches document order regardless of the order the stack is drained.
    """
    tree = Tree(
        leaf=e.get("leaf", UNSPECIFIED_LEAF),
        color=_color_attr(e),
        type=e.get("type", ""),
    )

    stack: List[Tuple[ET.Element, Branch]] = [(e, tree)]
    while stack:
        elem, target = stack.pop()
        owner = _local(elem.tag)
        for child in elem:
            tag = _local(child.tag)
            if tag == "point":
                target.points.append(_read_point(child))
            elif tag == "marker":
                target.markers.append(_read_marker(child))
            elif tag == "branch":
                b = Branch(leaf=child.get("leaf", UNSPECIFIED_LEAF))
                target.branches.append(b)
                stack.append((child, b))
            elif tag != "property":
                logger.warning("Skipping unrecognized <%s> inside <%s>", tag, owner)
    return tree


def _read_images(e: ET.Element) -> List[Image]:
    images: List[Image] = []
    for img_el in e:
        if _local(img_el.tag) != "image":
            logger.warning("Skipping unrecognized <%s> inside <images>", _local(img_el.tag))
            continue

        img = Image()
        for child in img_el:
            tag = _local(child.tag)
            if tag == "filename":
                img.filenames.append((child.text or "").strip())
            elif tag == "scale":
                img.scale = (_float_attr(child, "x", 1.0), _float_attr(child, "y", 1.0))
            elif tag == "coord":
                img.coord = (
                    _float_attr(child, "x"),
                    _float_attr(child, "y"),
                    _float_attr(child, "z"),
                )
            elif tag == "zspacing":
                img.z_spacing = _float_attr(child, "z", 1.0)
                img.slices = _int_attr(child, "slices", 0)
            # Channel and display settings are not part of the calibration
        images.append(img)
    return images


def decode(root: ET.Element) -> NeuronData:
    """
    Decode a Neurolucida XML document root into a NeuronData.

    Use:
        Dispatch each child of the root on its local tag name into trees,
        contours, file-level markers and the image calibration block. Tags
        without a model counterpart (description, thumbnail, sparcdata, ...)
        are logged and skipped.

    Args:
        root (ET.Element): The document's root element (normally <mbf>).

    Returns:
        NeuronData: Freshly constructed model.

    Raises:
        FormatError: If an attribute or color string is malformed. Nothing is
            returned in that case.
    """
    data = NeuronData()
    for e in root:
        tag = _local(e.tag)
        if tag == "tree":
            data.trees.append(_read_tree(e))
        elif tag == "contour":
            data.contours.append(_read_contour(e))
        elif tag == "marker":
            data.markers.append(_read_marker(e))
        elif tag == "images":
            data.images.extend(_read_images(e))
        else:
            logger.warning("Skipping unrecognized top-level <%s>", tag)
    return data


def loads(text: str | bytes) -> NeuronData:
    """Parse XML text and decode it; XML syntax errors become FormatError."""
    try:
        root = ET.fromstring(text)
    except ET.ParseError as err:
        raise FormatError(f"Invalid XML: {err}") from err
    return decode(root)


# ----------------
# --- Encoding ---
# ----------------

def _write_point(p: Point, parent: ET.Element) -> None:
    ET.SubElement(
        parent,
        "point",
        {"x": _fmt(p.x), "y": _fmt(p.y), "z": _fmt(p.z), "d": _fmt(p.d)},
    )


def _write_marker(m: Marker, parent: ET.Element) -> None:
    e = ET.SubElement(
        parent,
        "marker",
        {
            "type": m.type,
            "name": m.name,
            "color": color_to_string(m.color),
            "varicosity": _fmt_bool(m.varicosity),
        },
    )
    for p in m.points:
        _write_point(p, e)


def _write_contour(c: Contour, parent: ET.Element) -> None:
    e = ET.SubElement(
        parent,
        "contour",
        {
            "name": c.name,
            "shape": c.shape,
            "color": color_to_string(c.color),
            "closed": _fmt_bool(c.closed),
        },
    )
    for p in c.points:
        _write_point(p, e)
    for m in c.markers:
        _write_marker(m, e)


def _write_tree(t: Tree, parent: ET.Element) -> None:
    root_el = ET.SubElement(
        parent,
        "tree",
        {"color": color_to_string(t.color), "type": t.type, "leaf": t.leaf},
    )

    # Each pop fills one element in the fixed order points, branches, markers.
    # Child <branch> elements are created (empty) in place and filled later.
    stack: List[Tuple[Branch, ET.Element]] = [(t, root_el)]
    while stack:
        b, e = stack.pop()
        for p in b.points:
            _write_point(p, e)
        for child in b.branches:
            child_el = ET.SubElement(e, "branch", {"leaf": child.leaf})
            stack.append((child, child_el))
        for m in b.markers:
            _write_marker(m, e)


def _write_images(images: List[Image], parent: ET.Element) -> None:
    e = ET.SubElement(parent, "images")
    for img in images:
        img_el = ET.SubElement(e, "image")
        for name in img.filenames:
            ET.SubElement(img_el, "filename").text = name
        ET.SubElement(img_el, "scale", {"x": _fmt(img.scale[0]), "y": _fmt(img.scale[1])})
        ET.SubElement(
            img_el,
            "coord",
            {"x": _fmt(img.coord[0]), "y": _fmt(img.coord[1]), "z": _fmt(img.coord[2])},
        )
        ET.SubElement(img_el, "zspacing", {"z": _fmt(img.z_spacing), "slices": str(int(img.slices))})


def encode(data: NeuronData, include_images: bool = False) -> ET.Element:
    """
    Encode a NeuronData into a Neurolucida XML root element.

    Use:
        Emit all trees, then all contours, then all file-level markers under a
        versioned <mbf> root. Within a tree or branch, points come first, then
        child branches, then markers.

    Args:
        data (NeuronData): Model to write.
        include_images (bool): Also write the <images> calibration block
            (first child of the root). Off by default, so a decode/encode
            round trip drops calibration unless asked otherwise.

    Returns:
        ET.Element: The <mbf> root element.
    """
    root = ET.Element(
        ROOT_TAG,
        {"version": VERSION, "xmlns": NAMESPACE, "xmlns:nl": NAMESPACE},
    )
    if include_images and data.images:
        _write_images(data.images, root)
    for t in data.trees:
        _write_tree(t, root)
    for c in data.contours:
        _write_contour(c, root)
    for m in data.markers:
        _write_marker(m, root)
    return root


def dumps(data: NeuronData, include_images: bool = False, indent: Optional[str] = "  ") -> str:
    """Encode to an XML string with declaration (pretty-printed unless indent is None)."""
    root = encode(data, include_images=include_images)
    if indent is not None:
        ET.indent(root, space=indent)
    return ET.tostring(root, encoding="unicode", xml_declaration=True)
