"""Rigid transformation utilities.

This module provides the immutable ``RigidTransform`` used to map points
between the register (tracking) frame and the image frame, along with
the canonicalization of the rotation representations that arrive from the
tracking system.

Coordinate Convention:
    4x4 homogeneous matrices are row-major:

    T = [[R, t],
         [0, 1]]

    A point p_B in frame B maps to frame A as ``p_A = R @ p_B + t``.

Example:
    >>> import numpy as np
    >>> from instrument_nav.common.transforms import RigidTransform
    >>>
    >>> T = RigidTransform.build(np.eye(3), [10.0, 0.0, 0.0])
    >>> T.apply([1.0, 2.0, 3.0])
    array([11.,  2.,  3.])
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Sequence, Tuple, Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

from instrument_nav.common.errors import InvalidTransform

# Orthonormality tolerance for rotations handed to RigidTransform.build
ORTHONORMAL_TOL = 1e-3


def make_transform(
    R: NDArray[np.float64],
    t: NDArray[np.float64]
) -> NDArray[np.float64]:
    """Create a 4x4 homogeneous transformation matrix from R and t.

    Args:
        R: 3x3 rotation matrix.
        t: 3-element translation vector.

    Returns:
        4x4 transformation matrix.
    """
    R = np.asarray(R, dtype=np.float64)
    t = np.asarray(t, dtype=np.float64).flatten()

    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 rotation matrix, got {R.shape}")
    if t.shape != (3,):
        raise ValueError(f"Expected 3-element translation, got {t.shape}")

    T = np.eye(4, dtype=np.float64)
    T[:3, :3] = R
    T[:3, 3] = t

    return T

def rotation_matrix_to_euler(
    R: NDArray[np.float64],
    order: str = "xyz",
    degrees: bool = False,
) -> NDArray[np.float64]:
    """Convert a rotation matrix to Euler angles.

    Args:
        R: 3x3 rotation matrix.
        order: Euler angle order (e.g., "xyz", "zyx"). Default: "xyz".
        degrees: Return degrees instead of radians.

    Returns:
        Array of 3 Euler angles.
    """
    from scipy.spatial.transform import Rotation

    R = np.asarray(R, dtype=np.float64)

    if R.shape != (3, 3):
        raise ValueError(f"Expected 3x3 matrix, got {R.shape}")

    return Rotation.from_matrix(R).as_euler(order, degrees=degrees)

def quaternion_to_rotation_matrix(
    q: ArrayLike
) -> NDArray[np.float64]:
    """Convert a quaternion to a rotation matrix.

    The tracking system reports quaternions scalar-first, as ``[w, x, y, z]``.

    Args:
        q: Quaternion as [w, x, y, z].

    Returns:
        3x3 rotation matrix.

    Raises:
        ValueError: If q does not have 4 elements or has zero norm.
    """
    from scipy.spatial.transform import Rotation

    q = np.asarray(q, dtype=np.float64).flatten()

    if q.shape != (4,):
        raise ValueError(f"Expected 4-element quaternion, got {q.shape}")

    quat_scipy = np.array([q[1], q[2], q[3], q[0]], dtype=np.float64)

    return Rotation.from_quat(quat_scipy).as_matrix()


def is_valid_rotation_matrix(
    R: ArrayLike,
    tol: float = 1e-6
) -> bool:
    """Check if a matrix is a valid rotation matrix.

    A valid rotation matrix is finite and satisfies:
    - R @ R.T = I (orthogonality)
    - det(R) = 1 (proper rotation, not reflection)

    Args:
        R: Matrix to check.
        tol: Tolerance for numerical checks.

    Returns:
        True if R is a valid rotation matrix.
    """
    R = np.asarray(R, dtype=np.float64)

    if R.shape != (3, 3):
        return False

    if not np.all(np.isfinite(R)):
        return False

    if not np.allclose(R @ R.T, np.eye(3), atol=tol):
        return False

    if not np.isclose(np.linalg.det(R), 1.0, atol=tol):
        return False

    return True


def to_rotation_matrix(raw: Union[ArrayLike, Sequence[Any]]) -> NDArray[np.float64]:
    """Canonicalize a raw orientation into a row-major 3x3 matrix.

    The tracking source is inconsistent about how it ships orientation. The
    accepted shapes are:

    - 3x3 rotation matrix
    - nested 4x4 homogeneous matrix (upper-left 3x3 is used)
    - flat row-major matrix with at least 16 elements
    - flat 9-element row-major 3x3 matrix
    - 4-element quaternion ``[w, x, y, z]``

    No orthonormality check is done here; garbled rotations are left for the
    consumers, which detect degenerate axes themselves.

    Args:
        raw: Orientation in any of the accepted shapes.

    Returns:
        3x3 float64 array.

    Raises:
        ValueError: If the shape is not recognized.
    """
    arr = np.asarray(raw, dtype=np.float64)

    if arr.shape == (3, 3):
        return arr.copy()

    if arr.shape == (4, 4):
        return arr[:3, :3].copy()

    if arr.ndim == 1:
        if arr.size >= 16:
            return arr[:16].reshape(4, 4)[:3, :3].copy()
        if arr.size == 9:
            return arr.reshape(3, 3).copy()
        if arr.size == 4:
            return quaternion_to_rotation_matrix(arr)

    raise ValueError(f"Unrecognized rotation representation with shape {arr.shape}")


def _frozen(values: ArrayLike, shape: Tuple[int, ...]) -> NDArray[np.float64]:
    arr = np.array(values, dtype=np.float64).reshape(shape)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class RigidTransform:
    """Immutable rotation + translation.

    Use ``RigidTransform.build`` (validating) rather than the constructor.
    Arrays are stored read-only; a transform is replaced wholesale, never
    mutated.

    Attributes:
        rotation: 3x3 orthonormal rotation matrix.
        translation: 3-element translation vector.
    """

    rotation: NDArray[np.float64]
    translation: NDArray[np.float64]

    def __post_init__(self) -> None:
        object.__setattr__(self, "rotation", _frozen(self.rotation, (3, 3)))
        object.__setattr__(self, "translation", _frozen(self.translation, (3,)))

    @classmethod
    def build(
        cls,
        rotation: ArrayLike,
        translation: ArrayLike,
        tol: float = ORTHONORMAL_TOL,
    ) -> "RigidTransform":
        """Validate and construct a rigid transform.

        Args:
            rotation: 3x3 rotation matrix.
            translation: 3-element translation vector.
            tol: Orthonormality tolerance.

        Returns:
            The validated RigidTransform.

        Raises:
            InvalidTransform: If the rotation is not orthonormal within
                ``tol``, is a reflection, or either input contains NaN/Inf
                or has the wrong shape.
        """
        try:
            R = np.asarray(rotation, dtype=np.float64)
            t = np.asarray(translation, dtype=np.float64).flatten()
        except (TypeError, ValueError) as e:
            raise InvalidTransform(f"Transform inputs are not numeric: {e}") from e

        if R.shape != (3, 3):
            raise InvalidTransform(f"Expected 3x3 rotation matrix, got {R.shape}")
        if t.shape != (3,):
            raise InvalidTransform(f"Expected 3-element translation, got {t.shape}")
        if not (np.all(np.isfinite(R)) and np.all(np.isfinite(t))):
            raise InvalidTransform("Transform contains NaN or Inf")
        if not is_valid_rotation_matrix(R, tol=tol):
            det = np.linalg.det(R)
            raise InvalidTransform(
                f"Rotation is not orthonormal within {tol} (det={det:.6f})"
            )

        return cls(rotation=R, translation=t)

    @classmethod
    def identity(cls) -> "RigidTransform":
        """The identity transform."""
        return cls(rotation=np.eye(3), translation=np.zeros(3))

    @classmethod
    def from_matrix(
        cls,
        matrix: ArrayLike,
        tol: float = ORTHONORMAL_TOL,
    ) -> "RigidTransform":
        """Build from a nested 4x4 or flat 16-element row-major matrix.

        Raises:
            InvalidTransform: If the matrix is malformed or not rigid.
        """
        try:
            M = np.asarray(matrix, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise InvalidTransform(f"Matrix is not numeric: {e}") from e

        if M.shape == (16,):
            M = M.reshape(4, 4)
        if M.shape != (4, 4):
            raise InvalidTransform(f"Expected 4x4 or 16-element matrix, got {M.shape}")
        if not np.allclose(M[3, :], [0, 0, 0, 1], atol=1e-6):
            raise InvalidTransform(f"Invalid bottom row {M[3, :].tolist()}")

        return cls.build(M[:3, :3], M[:3, 3], tol=tol)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RigidTransform":
        """Create from ``{"matrix": 4x4}`` or ``{"rotation", "translation"}``."""
        if "matrix" in data:
            return cls.from_matrix(data["matrix"])
        if "rotation" in data and "translation" in data:
            return cls.build(data["rotation"], data["translation"])
        raise InvalidTransform(
            f"Expected 'matrix' or 'rotation'+'translation', got keys {sorted(data)}"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "rotation": self.rotation.tolist(),
            "translation": self.translation.tolist(),
        }

    def to_matrix(self) -> NDArray[np.float64]:
        """Return the 4x4 homogeneous matrix."""
        return make_transform(self.rotation, self.translation)

    def invert(self) -> "RigidTransform":
        """Inverse transform: ``(R^T, -R^T @ t)``."""
        R_inv = self.rotation.T
        return RigidTransform(rotation=R_inv, translation=-R_inv @ self.translation)

    def compose(self, other: "RigidTransform") -> "RigidTransform":
        """Return ``self @ other`` (apply ``other`` first)."""
        return RigidTransform(
            rotation=self.rotation @ other.rotation,
            translation=self.rotation @ other.translation + self.translation,
        )

    def apply(self, points: ArrayLike) -> NDArray[np.float64]:
        """Apply to a single point (3,) or an Nx3 array, preserving shape."""
        p = np.asarray(points, dtype=np.float64)

        if p.shape == (3,):
            return self.rotation @ p + self.translation
        if p.ndim == 2 and p.shape[1] == 3:
            return p @ self.rotation.T + self.translation

        raise ValueError(f"Expected a 3-vector or Nx3 points, got {p.shape}")

    def is_identity(self, tol: float = 1e-6) -> bool:
        """True if rotation ≈ I and translation ≈ 0 within ``tol``."""
        return bool(
            np.allclose(self.rotation, np.eye(3), atol=tol)
            and np.allclose(self.translation, 0.0, atol=tol)
        )

    def __repr__(self) -> str:
        return (
            f"RigidTransform(rotation={self.rotation.tolist()}, "
            f"translation={self.translation.tolist()})"
        )
