# src/nlmorph/geometry.py
from __future__ import annotations

# General imports (stdlib)
from dataclasses import dataclass
from typing import Sequence

# Third-party imports
import numpy as np

# Local imports
from .exceptions import StructuralError


@dataclass(frozen=True)
class Point:
    """
    A traced sample position.

    Attributes:
        x, y, z (float): Position in file space.
        d (float): Diameter channel as stored in the file. Carried through
            every conversion untouched and never validated.
    """
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    d: float = 0.0

    def xyz(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)


@dataclass(frozen=True)
class Color:
    """RGB color with every channel normalized to [0, 1]."""
    r: float = 0.0
    g: float = 0.0
    b: float = 0.0


WHITE = Color(1.0, 1.0, 1.0)
BLACK = Color(0.0, 0.0, 0.0)


def translation(v: Sequence[float]) -> np.ndarray:
    """
    Build a 4x4 homogeneous translation matrix.

    Args:
        v (Sequence[float]): Offset (tx, ty, tz).

    Returns:
        np.ndarray: 4x4 float matrix.
    """
    m = np.eye(4, dtype=float)
    m[:3, 3] = np.asarray(v, dtype=float)[:3]
    return m


def scaling(v: Sequence[float]) -> np.ndarray:
    """
    Build a 4x4 homogeneous axis-aligned scale matrix.

    Args:
        v (Sequence[float]): Scale factors (sx, sy, sz).

    Returns:
        np.ndarray: 4x4 float matrix.
    """
    m = np.eye(4, dtype=float)
    m[[0, 1, 2], [0, 1, 2]] = np.asarray(v, dtype=float)[:3]
    return m


def compose(*mats: np.ndarray) -> np.ndarray:
    """
    Multiply matrices left to right, so the right-most one acts on points first.

    `compose(A, B)` applied to p equals A @ (B @ p). With no arguments the
    identity is returned.
    """
    out = np.eye(4, dtype=float)
    for m in mats:
        out = out @ np.asarray(m, dtype=float)
    return out


def invert(m: np.ndarray) -> np.ndarray:
    """
    Inverse of a 4x4 homogeneous matrix.

    Raises:
        StructuralError: If the matrix is singular, e.g. a calibration with a
            zero scale or z-spacing.
    """
    try:
        return np.linalg.inv(np.asarray(m, dtype=float))
    except np.linalg.LinAlgError as e:
        raise StructuralError(f"Cannot invert singular calibration matrix: {e}") from e


def transform_point(m: np.ndarray, p: Point) -> Point:
    """Apply a 4x4 homogeneous matrix to a point, leaving the diameter alone."""
    a = np.asarray(m, dtype=float) @ np.array([p.x, p.y, p.z, 1.0])
    return Point(float(a[0]), float(a[1]), float(a[2]), p.d)
