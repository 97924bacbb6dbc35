"""Recorded navigation session loading and validation.

A navigation session has the following structure:

    session/
    ├── session.yaml      # Session metadata (name, notes)
    ├── scene.yaml        # Volume bounds and viewports
    ├── poses.yaml        # Recorded pose samples (register frame)
    └── transform.yaml    # Optional register→image transform (rMd)
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from instrument_nav.common.logging import get_logger
from instrument_nav.common.transforms import RigidTransform
from instrument_nav.io.export import load_transform_yaml
from instrument_nav.io.pose_stream import PoseSample, load_pose_log
from instrument_nav.io.scene import InMemoryScene, load_scene

logger = get_logger(__name__)


@dataclass
class SessionData:
    """Container for loaded session data.

    Attributes:
        session_path: Path to the session directory.
        session_yaml: Contents of session.yaml.
        scene: Scene rebuilt from scene.yaml.
        samples: Recorded pose samples.
        transform: Register→image transform, if recorded.
    """

    session_path: Path
    session_yaml: Dict[str, Any]
    scene: InMemoryScene
    samples: List[PoseSample]
    transform: Optional[RigidTransform] = None

    @property
    def name(self) -> str:
        """Get session name from metadata or directory name."""
        return self.session_yaml.get("name", self.session_path.name)

    @property
    def has_transform(self) -> bool:
        return self.transform is not None


def validate_session_structure(session_dir: Path | str) -> Tuple[bool, List[str]]:
    """Validate that a session directory has the required files.

    Args:
        session_dir: Path to the session directory.

    Returns:
        Tuple of (is_valid, list_of_errors).
    """
    session_dir = Path(session_dir)
    errors: List[str] = []

    if not session_dir.exists():
        return False, [f"Session directory does not exist: {session_dir}"]

    if not session_dir.is_dir():
        return False, [f"Session path is not a directory: {session_dir}"]

    for rel_path in ("session.yaml", "scene.yaml", "poses.yaml"):
        full_path = session_dir / rel_path
        if not full_path.exists():
            errors.append(f"Missing required file: {rel_path}")
        elif not full_path.is_file():
            errors.append(f"Expected file but found directory: {rel_path}")

    return len(errors) == 0, errors


def load_session(session_dir: Path | str) -> SessionData:
    """Load a recorded navigation session.

    Args:
        session_dir: Path to the session directory.

    Returns:
        Loaded SessionData.

    Raises:
        ValueError: If the session structure or any file is invalid.
    """
    session_dir = Path(session_dir)

    is_valid, errors = validate_session_structure(session_dir)
    if not is_valid:
        raise ValueError(f"Invalid session structure: {errors}")

    with open(session_dir / "session.yaml", "r") as f:
        session_yaml = yaml.safe_load(f) or {}

    scene = load_scene(session_dir / "scene.yaml")
    samples = load_pose_log(session_dir / "poses.yaml")

    transform = None
    transform_path = session_dir / "transform.yaml"
    if transform_path.exists():
        transform = load_transform_yaml(transform_path)
    else:
        logger.warning("transform.yaml not found, poses are used as image coordinates")

    logger.info(f"Loaded session from {session_dir}")

    return SessionData(
        session_path=session_dir,
        session_yaml=session_yaml,
        scene=scene,
        samples=samples,
        transform=transform,
    )
