"""Camera pose recomputation for instrument following.

Pure functions: every call returns a new ``CameraPose`` and leaves its inputs
untouched.

Axis convention:
    Rows of an instrument rotation (after canonicalization to 3x3) are the
    instrument axes: row 0 right, row 1 up, row 2 forward (along the shaft).
    In 6-DOF following, row 1 becomes the camera view-up and row 2 the view
    direction.
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from numpy.typing import ArrayLike, NDArray

from instrument_nav.common.errors import DegenerateOrientation
from instrument_nav.navigation.types import CameraPose

# Axes shorter than this are treated as garbled input
MIN_AXIS_NORM = 1e-6

# View-up left after removing its forward component must be at least this long
MIN_UP_REMAINDER = 1e-3


def movement(a: ArrayLike, b: ArrayLike) -> float:
    """Euclidean distance between two positions."""
    return float(np.linalg.norm(np.asarray(a, dtype=np.float64) - np.asarray(b, dtype=np.float64)))


def normalize_axis(
    v: ArrayLike,
    label: str = "axis",
    min_norm: float = MIN_AXIS_NORM,
) -> NDArray[np.float64]:
    """Normalize a vector, raising on near-zero or non-finite input.

    Raises:
        DegenerateOrientation: If ``|v| < min_norm`` or ``v`` has NaN/Inf.
    """
    v = np.asarray(v, dtype=np.float64)
    length = np.linalg.norm(v)
    if not np.isfinite(length) or length < min_norm:
        raise DegenerateOrientation(f"Degenerate {label} (|v|={length:.3g})")
    return v / length


def extract_view_axes(
    rotation: ArrayLike,
) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Extract (view_up, forward) unit vectors from a 3x3 rotation.

    Args:
        rotation: 3x3 instrument rotation.

    Returns:
        Tuple of (view_up, forward). Forward is row 2 normalized; view-up is
        row 1 with its forward component removed (Gram-Schmidt), normalized.

    Raises:
        DegenerateOrientation: If either row has near-zero length or
            contains NaN/Inf, or row 1 is (nearly) parallel to row 2.
    """
    R = np.asarray(rotation, dtype=np.float64)
    if R.shape != (3, 3):
        raise DegenerateOrientation(f"Expected 3x3 rotation, got {R.shape}")
    forward = normalize_axis(R[2], "forward")
    up = normalize_axis(R[1], "view-up")
    up = up - np.dot(up, forward) * forward
    return normalize_axis(up, "view-up along forward", MIN_UP_REMAINDER), forward


def follow_position(camera: CameraPose, target: ArrayLike) -> CameraPose:
    """3-DOF update: move the focal point to ``target``.

    The view direction, camera distance and view-up are kept. A camera whose
    position coincides with its focal point stays coincident.
    """
    target = np.asarray(target, dtype=np.float64)
    offset = camera.position - camera.focal_point
    distance = np.linalg.norm(offset)
    if distance < MIN_AXIS_NORM:
        new_position = target.copy()
    else:
        view_dir = offset / distance
        new_position = target + view_dir * distance

    return CameraPose(
        focal_point=target,
        position=new_position,
        view_up=camera.view_up.copy(),
    )


def follow_orientation(
    camera: CameraPose,
    target: ArrayLike,
    rotation: ArrayLike,
) -> CameraPose:
    """6-DOF update: follow position and orientation.

    The camera sits ``distance`` behind the focal point along the
    instrument's forward axis, looking down the shaft.

    Raises:
        DegenerateOrientation: If the rotation yields a degenerate axis.
    """
    view_up, forward = extract_view_axes(rotation)
    target = np.asarray(target, dtype=np.float64)
    distance = camera.distance

    return CameraPose(
        focal_point=target,
        position=target - forward * distance,
        view_up=view_up,
    )
