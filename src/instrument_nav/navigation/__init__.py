"""Navigation core: coordinate conversion, modes and the controller.

Usage:
    from instrument_nav.navigation import NavigationController, ModeName

    controller = NavigationController(scene)
    controller.load_transformation(transform)
    controller.start(stream, ModeName.CAMERA_FOLLOW)
"""

from instrument_nav.navigation.types import (
    CameraPose,
    ViewingPlane,
    VolumeBounds,
    ToolRepresentation,
)
from instrument_nav.navigation.scene import (
    ViewportKind,
    Viewport,
    RenderingScene,
    is_slice_viewport,
    is_camera_viewport,
)
from instrument_nav.navigation.coordinate_transformer import (
    CoordinateTransformer,
)
from instrument_nav.navigation.projection import (
    ProjectionInstruction,
    Crossing,
    OnPlane,
    NoProjection,
    project_point_onto_plane,
    project_tool_onto_plane,
)
from instrument_nav.navigation.interface import (
    ModeName,
    NavigationConfig,
    NavigationMode,
)
from instrument_nav.navigation.camera_following import CameraFollowingMode
from instrument_nav.navigation.instrument_projection import InstrumentProjectionMode
from instrument_nav.navigation.rate_limiter import RateLimiter
from instrument_nav.navigation.controller import NavigationController

__all__ = [
    # Types
    "CameraPose",
    "ViewingPlane",
    "VolumeBounds",
    "ToolRepresentation",
    # Scene
    "ViewportKind",
    "Viewport",
    "RenderingScene",
    "is_slice_viewport",
    "is_camera_viewport",
    # Coordinates
    "CoordinateTransformer",
    # Projection
    "ProjectionInstruction",
    "Crossing",
    "OnPlane",
    "NoProjection",
    "project_point_onto_plane",
    "project_tool_onto_plane",
    # Modes
    "ModeName",
    "NavigationConfig",
    "NavigationMode",
    "CameraFollowingMode",
    "InstrumentProjectionMode",
    # Controller
    "RateLimiter",
    "NavigationController",
]
