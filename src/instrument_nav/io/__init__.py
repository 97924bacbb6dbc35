"""IO utilities for instrument navigation."""

from instrument_nav.io.pose_stream import (
    PoseSample,
    PoseStream,
    Subscription,
    ReplayPoseStream,
    load_pose_log,
    save_pose_log,
)
from instrument_nav.io.export import (
    load_transform_yaml,
    export_transform_yaml,
    export_navigation_report_json,
)
from instrument_nav.io.scene import (
    InMemoryViewport,
    InMemoryScene,
    orthogonal_viewports,
    load_scene,
)
from instrument_nav.io.session import (
    SessionData,
    load_session,
    validate_session_structure,
)

__all__ = [
    # Pose stream
    "PoseSample",
    "PoseStream",
    "Subscription",
    "ReplayPoseStream",
    "load_pose_log",
    "save_pose_log",
    # Export
    "load_transform_yaml",
    "export_transform_yaml",
    "export_navigation_report_json",
    # Scene
    "InMemoryViewport",
    "InMemoryScene",
    "orthogonal_viewports",
    "load_scene",
    # Session
    "SessionData",
    "load_session",
    "validate_session_structure",
]
