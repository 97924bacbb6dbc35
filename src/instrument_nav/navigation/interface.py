"""Navigation mode interface.

This module defines the contract every navigation mode implements, the closed
set of mode names, and the configuration shared by the controller and modes.

Two modes are available:
- CameraFollowingMode: viewport cameras follow the instrument (3-DOF or 6-DOF)
- InstrumentProjectionMode: cameras stay fixed and the instrument axis is
  projected onto each orthogonal slice
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

from instrument_nav.common.errors import ModeNotFound, OutOfBounds
from instrument_nav.common.logging import format_point, get_logger
from instrument_nav.navigation.scene import RenderingScene

logger = get_logger(__name__)

# Per-sample paths log the first few updates, then every Nth
VERBOSE_UPDATES = 5
LOG_EVERY = 100


class ModeName(Enum):
    """Available navigation modes."""

    CAMERA_FOLLOWING = "camera-follow"
    INSTRUMENT_PROJECTION = "instrument-projection"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, name: Union["ModeName", str]) -> "ModeName":
        """Resolve a ``ModeName`` or its string value.

        Raises:
            ModeNotFound: If ``name`` is not a known mode.
        """
        if isinstance(name, ModeName):
            return name
        try:
            return cls(name)
        except ValueError:
            known = ", ".join(m.value for m in cls)
            raise ModeNotFound(f"Unknown navigation mode: {name!r} (known: {known})") from None


@dataclass
class NavigationConfig:
    """Configuration for navigation.

    Attributes:
        target_fps: Target update rate delivered to the active mode (Hz).
        initial_mode: Mode entered by ``NavigationController.start``.
        orientation_tracking: Use 6-DOF camera following when a rotation is
            available.
        movement_threshold_mm: Minimum motion applied by camera following.
        bounds_margin_mm: Margin kept inside the volume bounds when clamping.
        extension_length_mm: Length of the projected instrument extension.
        instrument_length_mm: Length of the instrument body.
        parallel_threshold: ``|n·D|`` below which the axis counts as parallel.
        on_plane_tolerance_mm: Distance below which a parallel axis lies on
            the plane.
        slice_threshold_mm: Distance at which a projection counts as within
            the displayed slice.
        camera_hold_tolerance_mm: Drift after which projection mode restores
            a viewport camera.
    """

    target_fps: float = 20.0
    initial_mode: str = "camera-follow"
    orientation_tracking: bool = True
    movement_threshold_mm: float = 0.5
    bounds_margin_mm: float = 1.0
    extension_length_mm: float = 100.0
    instrument_length_mm: float = 200.0
    parallel_threshold: float = 1e-3
    on_plane_tolerance_mm: float = 1.0
    slice_threshold_mm: float = 2.0
    camera_hold_tolerance_mm: float = 0.01

    def __post_init__(self) -> None:
        ModeName.parse(self.initial_mode)
        if self.target_fps <= 0:
            raise ValueError(f"target_fps must be positive, got {self.target_fps}")
        if self.extension_length_mm < 0:
            raise ValueError(
                f"extension_length_mm must be >= 0, got {self.extension_length_mm}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NavigationConfig":
        """Create from dictionary."""
        return cls(
            target_fps=float(data.get("target_fps", 20.0)),
            initial_mode=str(data.get("initial_mode", "camera-follow")),
            orientation_tracking=bool(data.get("orientation_tracking", True)),
            movement_threshold_mm=float(data.get("movement_threshold_mm", 0.5)),
            bounds_margin_mm=float(data.get("bounds_margin_mm", 1.0)),
            extension_length_mm=float(data.get("extension_length_mm", 100.0)),
            instrument_length_mm=float(data.get("instrument_length_mm", 200.0)),
            parallel_threshold=float(data.get("parallel_threshold", 1e-3)),
            on_plane_tolerance_mm=float(data.get("on_plane_tolerance_mm", 1.0)),
            slice_threshold_mm=float(data.get("slice_threshold_mm", 2.0)),
            camera_hold_tolerance_mm=float(data.get("camera_hold_tolerance_mm", 0.01)),
        )

    @classmethod
    def from_yaml(cls, path: Path | str) -> "NavigationConfig":
        """Load from a YAML file."""
        import yaml

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        return cls.from_dict(data.get("navigation", data))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return asdict(self)


class NavigationMode(ABC):
    """Lifecycle shared by all navigation modes.

    A mode is entered, receives ``handle_update`` calls while active, and is
    exited then cleaned up when the controller switches away from it. Modes
    only talk to the viewer through the ``RenderingScene`` contract.

    Attributes:
        name: The mode's ``ModeName``.
        update_count: Number of ``handle_update`` calls since construction.
    """

    name: ModeName

    def __init__(self, scene: RenderingScene, config: Optional[NavigationConfig] = None) -> None:
        self.scene = scene
        self.config = config or NavigationConfig()
        self.update_count = 0
        self._active = False

    @property
    def is_active(self) -> bool:
        return self._active

    def enter(self) -> None:
        """Activate the mode and capture any baseline state."""
        self._active = True
        logger.info(f"{self.name} mode activated")
        self.on_enter()

    def exit(self) -> None:
        """Stop producing output and release overlay resources."""
        self.on_exit()
        self._active = False
        logger.info(f"{self.name} mode deactivated")

    @abstractmethod
    def on_enter(self) -> None:
        ...

    @abstractmethod
    def on_exit(self) -> None:
        ...

    @abstractmethod
    def cleanup(self) -> None:
        """Release resources. Idempotent and safe before ``enter``."""

    @abstractmethod
    def handle_update(
        self,
        position: NDArray[np.float64],
        rotation: Optional[NDArray[np.float64]] = None,
    ) -> Dict[str, Any]:
        """Process one image-frame pose.

        Args:
            position: Instrument position in the image frame.
            rotation: 3x3 instrument rotation in the image frame, or None for
                position-only sources.

        Returns:
            Mode output keyed by viewport or plane id.
        """

    def _count_update(self) -> None:
        self.update_count += 1

    def _verbose(self) -> bool:
        return self.update_count <= VERBOSE_UPDATES or self.update_count % LOG_EVERY == 0

    def clamp_to_volume_bounds(self, position: ArrayLike) -> NDArray[np.float64]:
        """Clamp a position into the volume bounds minus the configured margin.

        Returns the position unchanged when the viewer reports no bounds.
        """
        position = np.asarray(position, dtype=np.float64)
        bounds = self.scene.volume_bounds()
        if bounds is None:
            return position

        margin = self.config.bounds_margin_mm
        try:
            bounds.require_contains(position, margin)
        except OutOfBounds as e:
            clamped = bounds.clamp(position, margin)
            if self._verbose():
                logger.debug(f"{e}; clamped to {format_point(clamped)}")
            return clamped
        return position
