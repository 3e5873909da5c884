# src/nlmorph/model.py
from __future__ import annotations

# General imports (stdlib)
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Tuple

# Local imports
from .geometry import BLACK, Color, Point


LEAF_KINDS: Tuple[str, ...] = (
    "Normal",
    "High",
    "Low",
    "Incomplete",
    "Origin Midpoint",
    "Unspecified",
)
"""Branch ending types written by Neurolucida in the `leaf` attribute."""

UNSPECIFIED_LEAF = "Unspecified"


@dataclass
class Marker:
    """
    A named group of glyph positions.

    Attributes:
        type (str): Glyph tag (e.g. "FilledCircle", "FilledSquare").
        name (str): Free-form label.
        color (Color): Display color.
        varicosity (bool): True when the marker tags neurite swellings.
        points (List[Point]): One center point per placed glyph.
    """
    type: str = ""
    name: str = ""
    color: Color = BLACK
    varicosity: bool = False
    points: List[Point] = field(default_factory=list)


@dataclass
class Branch:
    """
    A polyline between two topological events plus the branches spawned at its end.

    Attributes:
        leaf (str): How the branch terminates (one of LEAF_KINDS in practice;
            other strings are kept verbatim).
        points (List[Point]): Ordered polyline samples.
        markers (List[Marker]): Markers placed on this branch.
        branches (List[Branch]): Child branches, exclusively owned. No child
            keeps a reference back to its parent.
    """
    leaf: str = UNSPECIFIED_LEAF
    points: List[Point] = field(default_factory=list)
    markers: List[Marker] = field(default_factory=list)
    branches: List["Branch"] = field(default_factory=list)

    def is_fork(self) -> bool:
        return len(self.branches) >= 2


@dataclass
class Tree(Branch):
    """
    Root branch of a traced neurite.

    Attributes:
        color (Color): Display color.
        type (str): Neurite type (e.g. "Axon", "Dendrite", "Apical Dendrite").
    """
    color: Color = BLACK
    type: str = ""


@dataclass
class Contour:
    """Closed or open outline (e.g. a cell body), outside the branch hierarchy."""
    name: str = ""
    shape: str = ""
    color: Color = BLACK
    closed: bool = False
    points: List[Point] = field(default_factory=list)
    markers: List[Marker] = field(default_factory=list)


@dataclass
class Image:
    """
    Calibration metadata of the image stack a reconstruction was traced on.

    Attributes:
        filenames (List[str]): Image file names.
        scale (Tuple[float, float]): Pixel size along x and y.
        coord (Tuple[float, float, float]): Stage translation of the stack origin.
        z_spacing (float): Distance between consecutive slices.
        slices (int): Number of slices in the stack.
    """
    filenames: List[str] = field(default_factory=list)
    scale: Tuple[float, float] = (1.0, 1.0)
    coord: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    z_spacing: float = 1.0
    slices: int = 0

    def reset(self) -> None:
        """Make this calibration the identity transform."""
        self.scale = (1.0, 1.0)
        self.coord = (0.0, 0.0, 0.0)
        self.z_spacing = 1.0


@dataclass
class NeuronData:
    """Entire content of one reconstruction file."""
    images: List[Image] = field(default_factory=list)
    trees: List[Tree] = field(default_factory=list)
    contours: List[Contour] = field(default_factory=list)
    markers: List[Marker] = field(default_factory=list)

    def summary(self) -> Dict[str, int]:
        """Return element counts, used for log lines and quick inspection."""
        return {
            "trees": len(self.trees),
            "branches": sum(1 for t in self.trees for _ in iter_branches(t)) - len(self.trees),
            "contours": len(self.contours),
            "markers": sum(1 for _ in iter_markers(self)),
            "points": count_points(self),
        }


def iter_branches(root: Branch) -> Iterator[Branch]:
    """
    Yield `root` and every nested branch in depth-first pre-order.

    Children are visited in stored order. Uses an explicit stack so nesting
    depth is not limited by the interpreter's recursion limit.
    """
    stack: List[Branch] = [root]
    while stack:
        b = stack.pop()
        yield b
        # Reverse so the first child is popped first
        stack.extend(reversed(b.branches))


def iter_markers(data: NeuronData) -> Iterator[Marker]:
    """Yield every marker wherever it is attached (tree, branch, contour, file)."""
    for t in data.trees:
        for b in iter_branches(t):
            yield from b.markers
    for c in data.contours:
        yield from c.markers
    yield from data.markers


def count_points(data: NeuronData, include_markers: bool = True) -> int:
    """Count all points in trees and contours, plus marker points if requested."""
    n = sum(len(b.points) for t in data.trees for b in iter_branches(t))
    n += sum(len(c.points) for c in data.contours)
    if include_markers:
        n += sum(len(m.points) for m in iter_markers(data))
    return n


def count_markers(root: Branch) -> int:
    return sum(len(b.markers) for b in iter_branches(root))
