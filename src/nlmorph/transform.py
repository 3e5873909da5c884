# src/nlmorph/transform.py
from __future__ import annotations

# General imports (stdlib)
import copy
import logging
from typing import Callable, List, Sequence

# Third-party imports
import numpy as np

# Local imports
from .exceptions import StructuralError
from .geometry import WHITE, Point, compose, invert, scaling, transform_point, translation
from .model import Branch, Image, Marker, NeuronData

logger = logging.getLogger(__name__)

PointMap = Callable[[Point], Point]


def compose_calibration(image: Image, flip_z: bool = False) -> np.ndarray:
    """
    Build the image-to-stage calibration matrix of an image stack.

    Use:
        Translate(coord) @ Scale(scale.x, scale.y, z_spacing * sign), with
        sign = -1 when `flip_z` is set and +1 otherwise. Points are scaled
        first, then translated.

    Args:
        image (Image): Calibration metadata.
        flip_z (bool): Mirror the z axis.

    Returns:
        np.ndarray: 4x4 homogeneous matrix.
    """
    sign = -1.0 if flip_z else 1.0
    return compose(
        translation(image.coord),
        scaling((image.scale[0], image.scale[1], image.z_spacing * sign)),
    )


def file_calibration(data: NeuronData, flip_z: bool = False) -> np.ndarray:
    """Calibration of the first image in `data`, or the identity if there is none."""
    if not data.images:
        return np.eye(4)
    return compose_calibration(data.images[0], flip_z=flip_z)


def matrix_map(m: np.ndarray) -> PointMap:
    """Wrap a 4x4 matrix as a point mapping that leaves the diameter untouched."""
    m = np.asarray(m, dtype=float)

    def _map(p: Point) -> Point:
        return transform_point(m, p)

    return _map


def _map_markers(markers: List[Marker], f: PointMap) -> None:
    for m in markers:
        m.points = [f(p) for p in m.points]


def apply(data: NeuronData, f: PointMap) -> NeuronData:
    """
    Map `f` over every point reachable in `data` (in place).

    Use:
        Covers tree root points, the points of every nested branch, the
        points of every marker (tree, branch, contour and file level) and
        contour points. Branch nesting is walked with an explicit stack.
        Whatever `f` returns for the diameter is stored; matrix maps keep it.

    Args:
        data (NeuronData): Model to transform.
        f (Callable[[Point], Point]): Point mapping.

    Returns:
        NeuronData: The same `data`, for chaining.
    """
    for t in data.trees:
        stack: List[Branch] = [t]
        while stack:
            b = stack.pop()
            b.points = [f(p) for p in b.points]
            _map_markers(b.markers, f)
            stack.extend(b.branches)

    for c in data.contours:
        c.points = [f(p) for p in c.points]
        _map_markers(c.markers, f)

    _map_markers(data.markers, f)
    return data


def apply_matrix(data: NeuronData, m: np.ndarray) -> NeuronData:
    return apply(data, matrix_map(m))


def apply_calibration(data: NeuronData, flip_z: bool = False) -> NeuronData:
    """
    Bake the file's own calibration into its points.

    Use:
        Transform every point by the first image's calibration and reset that
        image to the identity, so the result describes the same geometry in
        stage space. A file without images is returned unchanged.
    """
    if not data.images:
        logger.warning("No image calibration found; points left unchanged")
        return data

    apply_matrix(data, compose_calibration(data.images[0], flip_z=flip_z))
    data.images[0].reset()
    return data


def apply_inverse_calibration(data: NeuronData, flip_z: bool = False) -> NeuronData:
    """
    Map stage coordinates back into the first image's voxel space.

    Use:
        Transform every point by inv(calibration) and reset the image to the
        identity. This is the direction SWC exports expect when positions must
        line up with the image stack. A file without images is returned
        unchanged.

    Raises:
        StructuralError: If the calibration is singular.
    """
    if not data.images:
        logger.warning("No image calibration found; points left unchanged")
        return data

    apply_matrix(data, invert(compose_calibration(data.images[0], flip_z=flip_z)))
    data.images[0].reset()
    return data


def user_matrix(
    translate: Sequence[float] = (0.0, 0.0, 0.0),
    scale: Sequence[float] = (1.0, 1.0, 1.0),
) -> np.ndarray:
    """Translate(translate) @ Scale(scale): points are scaled first, then shifted."""
    return compose(translation(translate), scaling(scale))


def apply_from(data: NeuronData, other: NeuronData, flip_z: bool = False) -> NeuronData:
    """
    Transform `data` by the calibration of another file.

    Raises:
        StructuralError: If `other` carries no image calibration.
    """
    if not other.images:
        raise StructuralError("Cannot apply calibration: source file has no images")
    return apply_matrix(data, compose_calibration(other.images[0], flip_z=flip_z))


def to_space_matrix(source: NeuronData, target: NeuronData, flip_z: bool = False) -> np.ndarray:
    """
    Matrix taking `source` points into the calibrated space of `target`.

    Use:
        inv(target_cal) @ inv(source_cal): the source's own calibration is
        undone first, then the target's. A file without images contributes
        the identity, so for the usual identity-space source this is just
        inv(target_cal).

    Args:
        source (NeuronData): File whose points are transformed.
        target (NeuronData): File whose space the points are moved into.
        flip_z (bool): Mirror z in both calibrations.

    Returns:
        np.ndarray: 4x4 homogeneous matrix.
    """
    return compose(
        invert(file_calibration(target, flip_z=flip_z)),
        invert(file_calibration(source, flip_z=flip_z)),
    )


def to_space(data: NeuronData, target: NeuronData, flip_z: bool = False) -> NeuronData:
    """Move `data` into `target`'s space and adopt its image calibration (in place)."""
    apply_matrix(data, to_space_matrix(data, target, flip_z=flip_z))
    data.images = copy.deepcopy(target.images)
    return data


def make_start_marker(data: NeuronData) -> NeuronData:
    """
    Build a file holding only a start marker at the first traced point.

    Returns:
        NeuronData: New model with a single white "FilledCircle" file-level
            marker named "Start" and nothing else.

    Raises:
        StructuralError: If the first tree has no points.
    """
    if not data.trees or not data.trees[0].points:
        raise StructuralError("No trees in file to make start point from")

    start = Marker(
        type="FilledCircle",
        name="Start",
        color=WHITE,
        varicosity=False,
        points=[data.trees[0].points[0]],
    )
    return NeuronData(markers=[start])
