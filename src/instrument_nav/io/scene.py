"""In-memory rendering collaborator and scene files.

``InMemoryScene`` implements the ``RenderingScene`` contract without a
viewer: cameras are plain ``CameraPose`` values, canvas coordinates come from
an orthographic projection of each viewport's camera, and every overlay
command is recorded for inspection. It backs offline replay and the tests.

Scene file format (YAML):

    volume_bounds: [x_min, x_max, y_min, y_max, z_min, z_max]
    viewports:
      - id: axial
        kind: orthographic          # orthographic | stack | volume3d
        camera:
          focal_point: [0, 0, 0]
          position: [0, 0, 500]
          view_up: [0, -1, 0]
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import yaml
from numpy.typing import ArrayLike, NDArray

from instrument_nav.common.logging import get_logger
from instrument_nav.navigation.projection import ProjectionInstruction
from instrument_nav.navigation.scene import ViewportKind
from instrument_nav.navigation.types import CameraPose, ViewingPlane, VolumeBounds

logger = get_logger(__name__)

DEFAULT_CANVAS_SIZE = (512, 512)


class InMemoryViewport:
    """A viewport whose camera is a plain value.

    Attributes:
        viewport_id: Viewport identifier.
        kind: Viewport type.
        camera_history: Every camera passed to ``set_camera``, in order.
    """

    def __init__(
        self,
        viewport_id: str,
        kind: ViewportKind,
        camera: CameraPose,
        canvas_size: Tuple[int, int] = DEFAULT_CANVAS_SIZE,
        pixels_per_mm: float = 1.0,
    ) -> None:
        self.viewport_id = viewport_id
        self.kind = kind
        self._camera = camera
        self.canvas_size = canvas_size
        self.pixels_per_mm = pixels_per_mm
        self.camera_history: List[CameraPose] = []

    def __repr__(self) -> str:
        return f"InMemoryViewport({self.viewport_id!r}, {self.kind})"

    def get_camera(self) -> CameraPose:
        return self._camera

    def set_camera(self, camera: CameraPose) -> None:
        self._camera = camera
        self.camera_history.append(camera)

    def _view_basis(self) -> Tuple[NDArray[np.float64], NDArray[np.float64], NDArray[np.float64]]:
        cam = self._camera
        normal = cam.position - cam.focal_point
        length = np.linalg.norm(normal)
        normal = np.array([0.0, 0.0, 1.0]) if length < 1e-12 else normal / length
        up = cam.view_up - normal * (cam.view_up @ normal)
        up_len = np.linalg.norm(up)
        if up_len < 1e-12:
            # view_up parallel to the view direction; pick any perpendicular
            up = np.cross(normal, [1.0, 0.0, 0.0])
            if np.linalg.norm(up) < 1e-12:
                up = np.cross(normal, [0.0, 1.0, 0.0])
            up_len = np.linalg.norm(up)
        up = up / up_len
        right = np.cross(up, normal)
        return normal, up, right

    def viewing_plane(self) -> ViewingPlane:
        """The slice through the focal point, normal to the view direction."""
        normal, _, _ = self._view_basis()
        return ViewingPlane(
            normal=normal,
            point=self._camera.focal_point,
            plane_id=self.viewport_id,
        )

    def world_to_canvas(self, point: ArrayLike) -> NDArray[np.float64]:
        """Orthographic projection to pixel coordinates (origin top-left)."""
        _, up, right = self._view_basis()
        offset = np.asarray(point, dtype=np.float64) - self._camera.focal_point
        width, height = self.canvas_size
        return np.array([
            width / 2.0 + (right @ offset) * self.pixels_per_mm,
            height / 2.0 - (up @ offset) * self.pixels_per_mm,
        ])


@dataclass
class DrawRecord:
    """One ``draw_projection`` call.

    Attributes:
        viewport_id: Target viewport.
        instruction: What was drawn.
        canvas_points: ``instruction.points()`` in canvas coordinates.
    """

    viewport_id: str
    instruction: ProjectionInstruction
    canvas_points: List[NDArray[np.float64]] = field(default_factory=list)


class InMemoryScene:
    """Rendering collaborator backed by in-memory viewports.

    Volume bounds are only reported while at least one non-stack viewport
    exists, since the bounds come from a loaded volume.
    """

    def __init__(
        self,
        viewports: Optional[Sequence[InMemoryViewport]] = None,
        bounds: Optional[VolumeBounds] = None,
    ) -> None:
        self._viewports: Dict[str, InMemoryViewport] = {}
        self._bounds = bounds
        self.overlays: Dict[str, DrawRecord] = {}
        self.draw_log: List[DrawRecord] = []
        self.clear_count = 0
        for vp in viewports or []:
            self.add_viewport(vp)

    def add_viewport(self, viewport: InMemoryViewport) -> None:
        if viewport.viewport_id in self._viewports:
            raise ValueError(f"Duplicate viewport id: {viewport.viewport_id}")
        self._viewports[viewport.viewport_id] = viewport

    def viewport(self, viewport_id: str) -> InMemoryViewport:
        try:
            return self._viewports[viewport_id]
        except KeyError:
            raise ValueError(f"Unknown viewport: {viewport_id}") from None

    def get_viewports(self) -> List[InMemoryViewport]:
        return list(self._viewports.values())

    def volume_bounds(self) -> Optional[VolumeBounds]:
        if self._bounds is None:
            return None
        if not any(vp.kind is not ViewportKind.STACK for vp in self._viewports.values()):
            return None
        return self._bounds

    def draw_projection(self, viewport_id: str, instruction: ProjectionInstruction) -> None:
        vp = self.viewport(viewport_id)
        record = DrawRecord(
            viewport_id=viewport_id,
            instruction=instruction,
            canvas_points=[vp.world_to_canvas(p) for p in instruction.points()],
        )
        self.overlays[viewport_id] = record
        self.draw_log.append(record)

    def clear_projection(self, viewport_id: str) -> None:
        self.viewport(viewport_id)
        self.overlays.pop(viewport_id, None)
        self.clear_count += 1

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryScene":
        """Create from a scene description (see module docstring)."""
        bounds = None
        if data.get("volume_bounds") is not None:
            bounds = VolumeBounds.from_extent(data["volume_bounds"])

        viewports = []
        for entry in data.get("viewports", []):
            try:
                kind = ViewportKind(entry.get("kind", "orthographic"))
            except ValueError:
                raise ValueError(f"Unknown viewport kind: {entry.get('kind')!r}") from None
            viewports.append(
                InMemoryViewport(
                    viewport_id=str(entry["id"]),
                    kind=kind,
                    camera=CameraPose.from_dict(entry["camera"]),
                    canvas_size=tuple(entry.get("canvas_size", DEFAULT_CANVAS_SIZE)),
                    pixels_per_mm=float(entry.get("pixels_per_mm", 1.0)),
                )
            )

        return cls(viewports=viewports, bounds=bounds)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "volume_bounds": None if self._bounds is None else self._bounds.to_extent(),
            "viewports": [
                {
                    "id": vp.viewport_id,
                    "kind": vp.kind.value,
                    "camera": vp.get_camera().to_dict(),
                    "canvas_size": list(vp.canvas_size),
                    "pixels_per_mm": vp.pixels_per_mm,
                }
                for vp in self._viewports.values()
            ],
        }


def orthogonal_viewports(
    center: ArrayLike,
    distance: float = 500.0,
) -> List[InMemoryViewport]:
    """Standard axial, sagittal and coronal slice viewports through ``center``."""
    c = np.asarray(center, dtype=np.float64)
    layout = [
        ("axial", [0.0, 0.0, 1.0], [0.0, -1.0, 0.0]),
        ("sagittal", [1.0, 0.0, 0.0], [0.0, 0.0, 1.0]),
        ("coronal", [0.0, -1.0, 0.0], [0.0, 0.0, 1.0]),
    ]
    return [
        InMemoryViewport(
            viewport_id=name,
            kind=ViewportKind.ORTHOGRAPHIC,
            camera=CameraPose(
                focal_point=c,
                position=c + np.asarray(normal) * distance,
                view_up=up,
            ),
        )
        for name, normal, up in layout
    ]


def load_scene(path: Path | str) -> InMemoryScene:
    """Load a scene description from YAML.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the description is malformed.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Scene file not found: {path}")

    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}

    try:
        scene = InMemoryScene.from_dict(data)
    except KeyError as e:
        raise ValueError(f"Scene file {path} is missing field {e}") from e

    logger.info(f"Loaded scene with {len(scene.get_viewports())} viewports from {path}")
    return scene
