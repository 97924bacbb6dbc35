"""Instrument projection mode.

Viewport cameras stay fixed while the instrument's axis and extension are
projected onto each orthogonal slice. Camera poses are captured when the mode
is entered (or on the first update if the viewer was not ready) and restored
whenever a camera drifts.
"""

from __future__ import annotations

from typing import Dict, Optional, Set

import numpy as np
from numpy.typing import ArrayLike, NDArray

from instrument_nav.common.errors import DegenerateOrientation
from instrument_nav.common.logging import format_point, get_logger
from instrument_nav.navigation.camera import movement, normalize_axis
from instrument_nav.navigation.interface import ModeName, NavigationConfig, NavigationMode
from instrument_nav.navigation.projection import ProjectionInstruction, project_tool_onto_plane
from instrument_nav.navigation.scene import RenderingScene, is_camera_viewport, is_slice_viewport
from instrument_nav.navigation.types import CameraPose, ToolRepresentation

logger = get_logger(__name__)

DEFAULT_TOOL_AXIS = np.array([0.0, 0.0, 1.0])

# Shaft axes shorter than this fall back to DEFAULT_TOOL_AXIS
MIN_TOOL_AXIS_NORM = 1e-3


class InstrumentProjectionMode(NavigationMode):
    """Projects the instrument onto fixed orthogonal slices."""

    name = ModeName.INSTRUMENT_PROJECTION

    def __init__(self, scene: RenderingScene, config: Optional[NavigationConfig] = None) -> None:
        super().__init__(scene, config)
        self.extension_length = self.config.extension_length_mm
        self.instrument_length = self.config.instrument_length_mm
        self.camera_restores = 0
        self._saved_cameras: Dict[str, CameraPose] = {}
        self._drawn: Set[str] = set()

    @property
    def saved_cameras(self) -> Dict[str, CameraPose]:
        return dict(self._saved_cameras)

    def set_extension_length(self, length_mm: float) -> None:
        """Set the projected extension length (mm)."""
        if length_mm < 0:
            raise ValueError(f"Extension length must be >= 0, got {length_mm}")
        self.extension_length = float(length_mm)
        logger.info(f"Extension length: {self.extension_length:.0f}mm")

    def on_enter(self) -> None:
        self.update_count = 0
        self._saved_cameras.clear()
        saved = self._capture_cameras()
        if saved:
            logger.info(f"Saved camera states for {saved} viewports")
        else:
            logger.info("No viewports ready; camera states will be saved on first update")

    def on_exit(self) -> None:
        self._clear_overlays()
        self._saved_cameras.clear()

    def cleanup(self) -> None:
        self._clear_overlays()
        self._saved_cameras.clear()

    def _clear_overlays(self) -> None:
        for viewport_id in sorted(self._drawn):
            self.scene.clear_projection(viewport_id)
        self._drawn.clear()

    def _capture_cameras(self) -> int:
        """Save camera poses of viewports not yet captured. Returns the count saved."""
        saved = 0
        for vp in self.scene.get_viewports():
            if not is_camera_viewport(vp) or vp.viewport_id in self._saved_cameras:
                continue
            self._saved_cameras[vp.viewport_id] = vp.get_camera()
            saved += 1
        return saved

    def _hold_cameras(self) -> None:
        """Capture late viewports and restore any camera that drifted."""
        late = self._capture_cameras()
        if late and self._verbose():
            logger.debug(f"Saved camera states for {late} viewports (late)")

        tolerance = self.config.camera_hold_tolerance_mm
        for vp in self.scene.get_viewports():
            saved = self._saved_cameras.get(vp.viewport_id)
            if saved is None or not is_camera_viewport(vp):
                continue
            drift = movement(vp.get_camera().focal_point, saved.focal_point)
            if drift > tolerance:
                vp.set_camera(saved)
                self.camera_restores += 1
                if self._verbose():
                    logger.warning(
                        f"Camera moved by {drift:.2f}mm on {vp.viewport_id}, restored"
                    )

    def tool_from_pose(
        self,
        position: ArrayLike,
        rotation: Optional[NDArray[np.float64]] = None,
    ) -> ToolRepresentation:
        """Build the tool ray: shaft axis is rotation row 2.

        A missing or degenerate rotation falls back to ``[0, 0, 1]``.
        """
        axis = DEFAULT_TOOL_AXIS
        if rotation is not None:
            try:
                axis = normalize_axis(
                    np.asarray(rotation, dtype=np.float64)[2], "tool axis", MIN_TOOL_AXIS_NORM
                )
            except DegenerateOrientation as e:
                logger.warning(f"{e}; using default axis {format_point(DEFAULT_TOOL_AXIS, 0)}")

        return ToolRepresentation(
            origin=position,
            axis=axis,
            extension_length=self.extension_length,
            instrument_length=self.instrument_length,
        )

    def handle_update(
        self,
        position: NDArray[np.float64],
        rotation: Optional[NDArray[np.float64]] = None,
    ) -> Dict[str, ProjectionInstruction]:
        """Project the instrument onto every orthogonal slice.

        Returns:
            Projection instruction per plane id.
        """
        self._count_update()
        self._hold_cameras()

        tool = self.tool_from_pose(position, rotation)
        outputs: Dict[str, ProjectionInstruction] = {}

        for vp in self.scene.get_viewports():
            if not is_slice_viewport(vp):
                continue

            plane = vp.viewing_plane()
            instruction = project_tool_onto_plane(
                tool,
                plane,
                parallel_threshold=self.config.parallel_threshold,
                on_plane_tolerance=self.config.on_plane_tolerance_mm,
            )

            if instruction.visible:
                self.scene.draw_projection(vp.viewport_id, instruction)
                self._drawn.add(vp.viewport_id)
            else:
                self.scene.clear_projection(vp.viewport_id)
                self._drawn.discard(vp.viewport_id)

            outputs[instruction.plane_id or vp.viewport_id] = instruction

        if self.update_count == 1 or self.update_count % 100 == 0:
            summary = ", ".join(f"{k}={v.kind}" for k, v in outputs.items())
            logger.info(
                f"Projection #{self.update_count} at {format_point(tool.origin)} "
                f"axis {format_point(tool.axis, 3)}: {summary or 'no slice viewports'}"
            )

        return outputs
