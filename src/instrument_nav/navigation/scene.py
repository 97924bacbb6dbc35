"""Rendering collaborator contract.

The navigation core never reaches into rendering internals. It talks to the
viewer through these narrow protocols: camera get/set, the slice plane a
viewport shows, the volume bounds, a world-to-canvas projection, and
draw/clear commands for the projection overlay.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional, Protocol, Sequence

import numpy as np
from numpy.typing import ArrayLike, NDArray

from instrument_nav.navigation.types import CameraPose, ViewingPlane, VolumeBounds

if TYPE_CHECKING:
    from instrument_nav.navigation.projection import ProjectionInstruction


class ViewportKind(Enum):
    """Viewport types exposed by the viewer."""

    ORTHOGRAPHIC = "orthographic"  # MPR slice: axial, sagittal, coronal
    STACK = "stack"                # raw 2D image stack
    VOLUME_3D = "volume3d"         # free 3D rendering

    def __str__(self) -> str:
        return self.value


class Viewport(Protocol):
    """One viewer viewport."""

    viewport_id: str
    kind: ViewportKind

    def get_camera(self) -> CameraPose:
        ...

    def set_camera(self, camera: CameraPose) -> None:
        ...

    def viewing_plane(self) -> ViewingPlane:
        ...

    def world_to_canvas(self, point: ArrayLike) -> NDArray[np.float64]:
        ...


class RenderingScene(Protocol):
    """The viewer as seen by the navigation modes."""

    def get_viewports(self) -> Sequence[Viewport]:
        ...

    def volume_bounds(self) -> Optional[VolumeBounds]:
        ...

    def draw_projection(self, viewport_id: str, instruction: "ProjectionInstruction") -> None:
        ...

    def clear_projection(self, viewport_id: str) -> None:
        ...


def is_slice_viewport(viewport: Viewport) -> bool:
    """True for orthographic slice viewports, the only ones projection targets."""
    return viewport.kind is ViewportKind.ORTHOGRAPHIC


def is_camera_viewport(viewport: Viewport) -> bool:
    """True for viewports whose camera can follow the instrument."""
    return viewport.kind is not ViewportKind.STACK
