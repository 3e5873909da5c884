# src/nlmorph/diadem.py
from __future__ import annotations

# General imports (stdlib)
import copy
import re
from typing import Dict, List, Optional, Tuple

# Local imports
from .exceptions import FormatError
from .geometry import Color, Point
from .model import Marker, NeuronData

MISSED_HEADER = "Nodes that were missed (position and weight):"
EXTRA_HEADER = "Extra nodes in test reconstruction (position and weight):"

_NUM = r"[-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?"
_NODE_RE = re.compile(
    rf"^\(\s*({_NUM})\s*,\s*({_NUM})\s*,\s*({_NUM})\s*\)\s*({_NUM})\s*$"
)


def _parse_node(line: str) -> Point:
    m = _NODE_RE.match(line.strip())
    if m is None:
        raise FormatError(f"Error reading point string {line!r}")
    x, y, z, w = (float(v) for v in m.groups())
    return Point(x, y, z, w)


def parse_report(text: str) -> Tuple[Optional[List[Point]], Optional[List[Point]]]:
    """
    Extract missed and extra node lists from DIADEM metric output.

    Use:
        Each list follows its header line, one "(x,y,z) weight" entry per line,
        and ends at the first blank line (or end of text). The weight is stored
        in the point's diameter channel. When a header appears more than once,
        its entries are collected into one list in file order.

    Args:
        text (str): Full text printed by the DIADEM metric tool.

    Returns:
        Tuple[Optional[List[Point]], Optional[List[Point]]]:
            (missed, extra); an entry is None when its section is absent.

    Raises:
        FormatError: If a node line inside a section cannot be parsed.
    """
    sections: Dict[str, Optional[List[Point]]] = {MISSED_HEADER: None, EXTRA_HEADER: None}
    current: Optional[List[Point]] = None

    for line in text.splitlines():
        stripped = line.strip()
        if current is not None:
            if not stripped:
                current = None
                continue
            current.append(_parse_node(stripped))
        elif stripped in sections:
            # A repeated header keeps adding to the same list
            if sections[stripped] is None:
                sections[stripped] = []
            current = sections[stripped]

    return sections[MISSED_HEADER], sections[EXTRA_HEADER]


def missed_markers(gold: NeuronData, text: str) -> NeuronData:
    """
    Build a marker file locating a tracing's missed and extra nodes.

    Args:
        gold (NeuronData): Gold-standard reconstruction; its image calibration
            is copied so the markers land in the same space.
        text (str): DIADEM metric output comparing a test tracing to `gold`.

    Returns:
        NeuronData: Images of `gold` plus a red "FilledSquare" marker
            "missed pts" and a blue "FilledDiamond" marker "extra pts", each
            present only when the report contains that section.
    """
    missed, extra = parse_report(text)
    out = NeuronData(images=copy.deepcopy(gold.images))
    if missed is not None:
        out.markers.append(Marker("FilledSquare", "missed pts", Color(1.0, 0.0, 0.0), False, missed))
    if extra is not None:
        out.markers.append(Marker("FilledDiamond", "extra pts", Color(0.0, 0.0, 1.0), False, extra))
    return out
