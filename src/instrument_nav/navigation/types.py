"""Plain data types shared by the navigation modes.

All coordinates are in the image frame and in millimetres unless stated
otherwise.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from instrument_nav.common.errors import OutOfBounds
from instrument_nav.common.logging import format_point


def _vec3(values: ArrayLike, name: str) -> NDArray[np.float64]:
    arr = np.array(values, dtype=np.float64).flatten()
    if arr.shape != (3,):
        raise ValueError(f"{name} must have 3 elements, got shape {arr.shape}")
    return arr


@dataclass(frozen=True, eq=False)
class CameraPose:
    """Viewing camera pose owned by the rendering collaborator.

    Attributes:
        focal_point: Point the camera looks at.
        position: Camera eye position.
        view_up: Up direction of the view.
    """

    focal_point: NDArray[np.float64]
    position: NDArray[np.float64]
    view_up: NDArray[np.float64]

    def __post_init__(self) -> None:
        object.__setattr__(self, "focal_point", _vec3(self.focal_point, "focal_point"))
        object.__setattr__(self, "position", _vec3(self.position, "position"))
        object.__setattr__(self, "view_up", _vec3(self.view_up, "view_up"))

    @property
    def distance(self) -> float:
        """Distance between the camera position and the focal point."""
        return float(np.linalg.norm(self.position - self.focal_point))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CameraPose":
        """Create from dictionary."""
        return cls(
            focal_point=data["focal_point"],
            position=data["position"],
            view_up=data["view_up"],
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "focal_point": self.focal_point.tolist(),
            "position": self.position.tolist(),
            "view_up": self.view_up.tolist(),
        }

    def __repr__(self) -> str:
        return (
            f"CameraPose(focal_point={format_point(self.focal_point, 2)}, "
            f"position={format_point(self.position, 2)}, "
            f"view_up={format_point(self.view_up, 3)})"
        )


@dataclass(frozen=True, eq=False)
class ViewingPlane:
    """An orthogonal image slice.

    Attributes:
        normal: Unit plane normal (normalized on construction).
        point: Any point on the plane.
        plane_id: Identifier, usually the viewport id.
    """

    normal: NDArray[np.float64]
    point: NDArray[np.float64]
    plane_id: str = ""

    def __post_init__(self) -> None:
        normal = _vec3(self.normal, "normal")
        length = np.linalg.norm(normal)
        if not np.isfinite(length) or length < 1e-12:
            raise ValueError("Plane normal has zero length")
        object.__setattr__(self, "normal", normal / length)
        object.__setattr__(self, "point", _vec3(self.point, "point"))

    def signed_distance(self, p: ArrayLike) -> float:
        """Signed distance ``n · (p - P0)``."""
        return float(self.normal @ (np.asarray(p, dtype=np.float64) - self.point))

    def project_point(self, p: ArrayLike) -> NDArray[np.float64]:
        """Orthogonal projection of ``p`` onto the plane."""
        p = np.asarray(p, dtype=np.float64)
        return p - self.normal * self.signed_distance(p)


@dataclass(frozen=True, eq=False)
class VolumeBounds:
    """Axis-aligned bounding box of the loaded volume.

    Attributes:
        minimum: (x_min, y_min, z_min).
        maximum: (x_max, y_max, z_max).
    """

    minimum: NDArray[np.float64]
    maximum: NDArray[np.float64]

    def __post_init__(self) -> None:
        lo = _vec3(self.minimum, "minimum")
        hi = _vec3(self.maximum, "maximum")
        if np.any(hi < lo):
            raise ValueError(f"Bounds maximum {hi.tolist()} is below minimum {lo.tolist()}")
        object.__setattr__(self, "minimum", lo)
        object.__setattr__(self, "maximum", hi)

    @classmethod
    def from_extent(cls, bounds: Sequence[float]) -> "VolumeBounds":
        """Create from ``[x_min, x_max, y_min, y_max, z_min, z_max]``."""
        if len(bounds) != 6:
            raise ValueError(f"Expected 6 bound values, got {len(bounds)}")
        x0, x1, y0, y1, z0, z1 = (float(v) for v in bounds)
        return cls(minimum=[x0, y0, z0], maximum=[x1, y1, z1])

    def to_extent(self) -> list:
        """Inverse of ``from_extent``."""
        lo, hi = self.minimum, self.maximum
        return [lo[0], hi[0], lo[1], hi[1], lo[2], hi[2]]

    @property
    def center(self) -> NDArray[np.float64]:
        """Geometric centre of the volume."""
        return (self.minimum + self.maximum) / 2.0

    def _shrunk(self, margin: float):
        lo = self.minimum + margin
        hi = self.maximum - margin
        # Axes thinner than twice the margin collapse onto their centre
        thin = lo > hi
        lo = np.where(thin, self.center, lo)
        hi = np.where(thin, self.center, hi)
        return lo, hi

    def contains(self, p: ArrayLike, margin: float = 0.0) -> bool:
        """True if ``p`` lies inside the bounds shrunk by ``margin``."""
        lo, hi = self._shrunk(margin)
        p = np.asarray(p, dtype=np.float64)
        return bool(np.all(p >= lo) and np.all(p <= hi))

    def require_contains(self, p: ArrayLike, margin: float = 0.0) -> None:
        """Raise ``OutOfBounds`` if ``p`` is outside the shrunk bounds."""
        if not self.contains(p, margin):
            lo, hi = self._shrunk(margin)
            raise OutOfBounds(
                f"Position {format_point(p)} outside bounds "
                f"{format_point(lo)}..{format_point(hi)}"
            )

    def clamp(self, p: ArrayLike, margin: float = 0.0) -> NDArray[np.float64]:
        """Clamp ``p`` component-wise into the bounds shrunk by ``margin``."""
        lo, hi = self._shrunk(margin)
        return np.clip(np.asarray(p, dtype=np.float64), lo, hi)


@dataclass(frozen=True, eq=False)
class ToolRepresentation:
    """The instrument modelled as a finite ray in the image frame.

    The visible extension is ``origin + t * axis`` for ``t`` in
    ``[0, extension_length]``. The physical instrument body extends
    ``instrument_length`` behind the origin.

    Attributes:
        origin: Instrument tip position.
        axis: Unit shaft direction (normalized on construction).
        extension_length: Length of the projected extension (mm).
        instrument_length: Length of the instrument body (mm).
    """

    origin: NDArray[np.float64]
    axis: NDArray[np.float64]
    extension_length: float = 100.0
    instrument_length: float = 200.0

    def __post_init__(self) -> None:
        axis = _vec3(self.axis, "axis")
        length = np.linalg.norm(axis)
        if not np.isfinite(length) or length < 1e-12:
            raise ValueError("Tool axis has zero length")
        if self.extension_length < 0:
            raise ValueError(f"extension_length must be >= 0, got {self.extension_length}")
        object.__setattr__(self, "origin", _vec3(self.origin, "origin"))
        object.__setattr__(self, "axis", axis / length)
        object.__setattr__(self, "extension_length", float(self.extension_length))
        object.__setattr__(self, "instrument_length", float(self.instrument_length))

    @property
    def tip(self) -> NDArray[np.float64]:
        """End of the extension: ``origin + axis * extension_length``."""
        return self.origin + self.axis * self.extension_length

    @property
    def base(self) -> NDArray[np.float64]:
        """Back end of the instrument body: ``origin - axis * instrument_length``."""
        return self.origin - self.axis * self.instrument_length

    def point_at(self, t: float) -> NDArray[np.float64]:
        """Point at parameter ``t`` along the axis."""
        return self.origin + self.axis * t
