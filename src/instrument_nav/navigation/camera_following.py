"""Camera following mode.

Viewport cameras follow the instrument. With orientation tracking enabled and
a rotation available the cameras also follow the instrument's orientation
(6-DOF); otherwise only the focal point moves (3-DOF).
"""

from __future__ import annotations

from typing import Dict, Optional

import numpy as np
from numpy.typing import NDArray

from instrument_nav.common.errors import DegenerateOrientation
from instrument_nav.common.logging import format_point, get_logger
from instrument_nav.navigation.camera import (
    extract_view_axes,
    follow_orientation,
    follow_position,
    movement,
)
from instrument_nav.navigation.interface import ModeName, NavigationConfig, NavigationMode
from instrument_nav.navigation.scene import RenderingScene, is_camera_viewport
from instrument_nav.navigation.types import CameraPose

logger = get_logger(__name__)


class CameraFollowingMode(NavigationMode):
    """Steers every non-stack viewport camera onto the instrument position."""

    name = ModeName.CAMERA_FOLLOWING

    def __init__(self, scene: RenderingScene, config: Optional[NavigationConfig] = None) -> None:
        super().__init__(scene, config)
        self.orientation_tracking = self.config.orientation_tracking
        self.orientation_fallbacks = 0
        self._last_applied: Optional[NDArray[np.float64]] = None

    @property
    def last_applied_position(self) -> Optional[NDArray[np.float64]]:
        return None if self._last_applied is None else self._last_applied.copy()

    def on_enter(self) -> None:
        self._last_applied = None
        logger.info(
            f"Orientation tracking {'enabled (6-DOF)' if self.orientation_tracking else 'disabled (3-DOF)'}"
        )

    def on_exit(self) -> None:
        self._last_applied = None

    def cleanup(self) -> None:
        self._last_applied = None

    def enable_orientation_tracking(self, enable: bool) -> None:
        """Switch between 6-DOF (position + orientation) and 3-DOF following."""
        self.orientation_tracking = bool(enable)
        logger.info(
            f"Orientation tracking: {'6-DOF (position + orientation)' if enable else '3-DOF (position only)'}"
        )

    def _usable_rotation(
        self,
        rotation: Optional[NDArray[np.float64]],
    ) -> Optional[NDArray[np.float64]]:
        if not self.orientation_tracking or rotation is None:
            return None
        try:
            extract_view_axes(rotation)
        except DegenerateOrientation as e:
            self.orientation_fallbacks += 1
            logger.warning(f"{e}; following position only for this sample")
            return None
        return rotation

    def handle_update(
        self,
        position: NDArray[np.float64],
        rotation: Optional[NDArray[np.float64]] = None,
    ) -> Dict[str, CameraPose]:
        """Move viewport cameras to follow the instrument.

        The first sample after ``enter()`` only sets the baseline position;
        cameras start moving once the instrument leaves it.

        Returns:
            New camera pose per updated viewport id. Empty for the baseline
            sample, when the motion is below the movement threshold, or when
            no viewport can be updated.
        """
        self._count_update()

        viewports = [vp for vp in self.scene.get_viewports() if is_camera_viewport(vp)]
        if not viewports:
            return {}

        target = self.clamp_to_volume_bounds(position)

        if self._last_applied is None:
            self._last_applied = target
            logger.info(f"Initial position stored: {format_point(target)}")
            return {}

        moved = movement(target, self._last_applied)
        if moved < self.config.movement_threshold_mm:
            if self.update_count % 100 == 0:
                logger.debug(f"Skipping small movement: {moved:.2f}mm")
            return {}

        rotation = self._usable_rotation(rotation)
        outputs: Dict[str, CameraPose] = {}

        for vp in viewports:
            camera = vp.get_camera()
            if rotation is not None:
                new_camera = follow_orientation(camera, target, rotation)
            else:
                new_camera = follow_position(camera, target)
            vp.set_camera(new_camera)
            outputs[vp.viewport_id] = new_camera

        if self._verbose():
            logger.debug(f"Camera follow #{self.update_count}: {format_point(target)}")

        self._last_applied = target
        return outputs
