"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest
import numpy as np
from scipy.spatial.transform import Rotation

# Add src to path for development testing
src_path = Path(__file__).parent.parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from instrument_nav.common.transforms import RigidTransform
from instrument_nav.io.scene import InMemoryScene, InMemoryViewport, orthogonal_viewports
from instrument_nav.navigation.scene import ViewportKind
from instrument_nav.navigation.types import CameraPose, VolumeBounds


@pytest.fixture
def sample_session_path() -> Path:
    """Path to the sample session directory."""
    return Path(__file__).parent.parent / "datasets" / "sample_session"


@pytest.fixture
def config_path() -> Path:
    """Path to the config directory."""
    return Path(__file__).parent.parent / "configs"


@pytest.fixture
def sample_transform() -> RigidTransform:
    """Register→image transform with a proper rotation and a room-scale offset."""
    rot = Rotation.from_euler('xyz', [5.0, -10.0, 30.0], degrees=True)
    return RigidTransform.build(rot.as_matrix(), [120.0, -45.0, 310.0])


@pytest.fixture
def identity_transform() -> RigidTransform:
    """Identity register→image transform."""
    return RigidTransform.identity()


@pytest.fixture
def volume_bounds() -> VolumeBounds:
    """200 mm cube centred on the origin."""
    return VolumeBounds.from_extent([-100, 100, -100, 100, -100, 100])


@pytest.fixture
def volume_viewport() -> InMemoryViewport:
    """3D viewport looking along +Y from 400 mm away."""
    return InMemoryViewport(
        "volume3d",
        ViewportKind.VOLUME_3D,
        CameraPose(focal_point=[0, 0, 0], position=[0, -400, 0], view_up=[0, 0, 1]),
    )


@pytest.fixture
def stack_viewport() -> InMemoryViewport:
    """Stack viewport; never driven by navigation."""
    return InMemoryViewport(
        "stack",
        ViewportKind.STACK,
        CameraPose(focal_point=[0, 0, 0], position=[0, 0, 300], view_up=[0, -1, 0]),
    )


@pytest.fixture
def scene(volume_bounds, volume_viewport, stack_viewport) -> InMemoryScene:
    """Axial, sagittal and coronal slices plus a 3D and a stack viewport."""
    viewports = orthogonal_viewports([0, 0, 0]) + [volume_viewport, stack_viewport]
    return InMemoryScene(viewports=viewports, bounds=volume_bounds)


@pytest.fixture
def temp_output_dir(tmp_path: Path) -> Path:
    """Temporary output directory for tests."""
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    return output_dir
