"""Instrument axis projection onto orthogonal viewing planes.

For each slice plane the instrument's extended axis is intersected with the
plane to decide how it is drawn:

    Plane:  n · (P - P0) = 0
    Line:   P = O + t * D,   t in [0, L]

    d0    = n · (O - P0)
    denom = n · D
    t     = -d0 / denom

Three outcomes:
    - Crossing:     the segment pierces the plane (solid line + marker)
    - OnPlane:      the axis runs inside the slice (dashed line)
    - NoProjection: nothing meaningful to draw (hidden)

``project_tool_onto_plane`` is pure; it is evaluated independently per plane
per update.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar, Dict, Tuple

import numpy as np
from numpy.typing import ArrayLike, NDArray

from instrument_nav.navigation.types import ToolRepresentation, ViewingPlane

PARALLEL_THRESHOLD = 1e-3
ON_PLANE_TOLERANCE_MM = 1.0
SLICE_THRESHOLD_MM = 2.0

REASON_PARALLEL_OFF_PLANE = "parallel-off-plane"
REASON_OUTSIDE_SEGMENT = "outside-segment"


def _point(values: ArrayLike) -> NDArray[np.float64]:
    arr = np.array(values, dtype=np.float64).reshape(3)
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class ProjectionInstruction:
    """How the instrument is drawn on one plane.

    Attributes:
        plane_id: Plane (viewport) the instruction belongs to.
    """

    plane_id: str

    kind: ClassVar[str] = ""
    style: ClassVar[str] = "hidden"

    @property
    def visible(self) -> bool:
        return self.style != "hidden"

    @property
    def distance_to_plane(self) -> float:
        return float("inf")

    def within_slice(self, threshold_mm: float = SLICE_THRESHOLD_MM) -> bool:
        """True if the drawn instrument lies within ``threshold_mm`` of the slice.

        Drives the overlay colour: green when within, red otherwise.
        """
        return self.visible and self.distance_to_plane <= threshold_mm

    def color(self, threshold_mm: float = SLICE_THRESHOLD_MM) -> str:
        return "green" if self.within_slice(threshold_mm) else "red"

    def points(self) -> Tuple[NDArray[np.float64], ...]:
        """World points the renderer maps to canvas coordinates."""
        return ()

    def to_dict(self) -> Dict[str, Any]:
        return {"plane_id": self.plane_id, "kind": self.kind, "style": self.style}


@dataclass(frozen=True, eq=False)
class Crossing(ProjectionInstruction):
    """The segment pierces the plane at ``point``."""

    point: NDArray[np.float64] = None

    kind: ClassVar[str] = "crossing"
    style: ClassVar[str] = "solid"

    def __post_init__(self) -> None:
        object.__setattr__(self, "point", _point(self.point))

    @property
    def distance_to_plane(self) -> float:
        return 0.0

    def points(self) -> Tuple[NDArray[np.float64], ...]:
        return (self.point,)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["point"] = self.point.tolist()
        return data


@dataclass(frozen=True, eq=False)
class OnPlane(ProjectionInstruction):
    """The axis runs within the slice.

    Attributes:
        origin: Origin projected onto the plane.
        tip: Extension tip projected onto the plane.
        distance: Unsigned distance of the origin from the plane.
    """

    origin: NDArray[np.float64] = None
    tip: NDArray[np.float64] = None
    distance: float = 0.0

    kind: ClassVar[str] = "on-plane"
    style: ClassVar[str] = "dashed"

    def __post_init__(self) -> None:
        object.__setattr__(self, "origin", _point(self.origin))
        object.__setattr__(self, "tip", _point(self.tip))
        object.__setattr__(self, "distance", abs(float(self.distance)))

    @property
    def distance_to_plane(self) -> float:
        return self.distance

    @property
    def opacity(self) -> float:
        """Overlay opacity: 0.8 on the plane fading to 0.3 at 50 mm."""
        return float(np.clip(0.8 - (self.distance / 50.0) * 0.5, 0.3, 0.8))

    def points(self) -> Tuple[NDArray[np.float64], ...]:
        return (self.origin, self.tip)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "origin": self.origin.tolist(),
            "tip": self.tip.tolist(),
            "distance_to_plane": self.distance,
        })
        return data


@dataclass(frozen=True, eq=False)
class NoProjection(ProjectionInstruction):
    """Nothing is drawn on this plane."""

    reason: str = ""

    kind: ClassVar[str] = "none"
    style: ClassVar[str] = "hidden"

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["reason"] = self.reason
        return data


def project_point_onto_plane(point: ArrayLike, plane: ViewingPlane) -> NDArray[np.float64]:
    """Orthogonal projection: ``p - n * (n · (p - P0))``."""
    return plane.project_point(point)


def project_tool_onto_plane(
    tool: ToolRepresentation,
    plane: ViewingPlane,
    parallel_threshold: float = PARALLEL_THRESHOLD,
    on_plane_tolerance: float = ON_PLANE_TOLERANCE_MM,
) -> ProjectionInstruction:
    """Decide how the instrument's extension is drawn on ``plane``.

    Args:
        tool: Instrument ray in the image frame.
        plane: Target slice plane.
        parallel_threshold: ``|n·D|`` below which the axis counts as parallel.
        on_plane_tolerance: Maximum ``|d0|`` (mm) for a parallel axis to count
            as lying in the plane.

    Returns:
        ``Crossing``, ``OnPlane`` or ``NoProjection`` for ``plane.plane_id``.
    """
    n = plane.normal
    d0 = float(n @ (tool.origin - plane.point))
    denom = float(n @ tool.axis)

    if abs(denom) < parallel_threshold:
        if abs(d0) < on_plane_tolerance:
            return OnPlane(
                plane_id=plane.plane_id,
                origin=plane.project_point(tool.origin),
                tip=plane.project_point(tool.tip),
                distance=abs(d0),
            )
        return NoProjection(plane_id=plane.plane_id, reason=REASON_PARALLEL_OFF_PLANE)

    t = -d0 / denom
    if 0.0 <= t <= tool.extension_length:
        return Crossing(plane_id=plane.plane_id, point=tool.point_at(t))

    # The infinite line meets the plane, the drawn segment does not
    return NoProjection(plane_id=plane.plane_id, reason=REASON_OUTSIDE_SEGMENT)
