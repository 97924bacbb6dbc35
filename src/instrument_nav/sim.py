"""Synthetic instrument trajectories.

This module generates pose streams for testing and offline replay without a
tracker. The circular sweep moves the instrument tip around a circle in the
image-frame axial plane while the shaft tilts toward the circle's centre.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from numpy.typing import NDArray
from scipy.spatial.transform import Rotation

from instrument_nav.common.logging import format_point, get_logger
from instrument_nav.common.transforms import RigidTransform
from instrument_nav.io.pose_stream import PoseSample

logger = get_logger(__name__)


@dataclass
class TrajectoryConfig:
    """Configuration for a circular sweep.

    Attributes:
        n_samples: Number of samples to generate.
        radius_mm: Circle radius.
        rate_hz: Sample rate of the simulated tracker.
        center: Circle centre in the image frame.
        revolutions: Number of turns over the whole trajectory.
        tilt_deg: Shaft tilt away from the axial normal.
        noise_mm: Standard deviation of position jitter.
        seed: Random seed for the jitter.
    """

    n_samples: int = 200
    radius_mm: float = 50.0
    rate_hz: float = 100.0
    center: Tuple[float, float, float] = (0.0, 0.0, 0.0)
    revolutions: float = 1.0
    tilt_deg: float = 15.0
    noise_mm: float = 0.0
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        if self.n_samples < 1:
            raise ValueError(f"n_samples must be >= 1, got {self.n_samples}")
        if self.rate_hz <= 0:
            raise ValueError(f"rate_hz must be positive, got {self.rate_hz}")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["center"] = list(self.center)
        return data


def tool_rotation(heading_rad: float, tilt_deg: float) -> NDArray[np.float64]:
    """Instrument rotation with rows as axes (right, up, shaft).

    The shaft starts along -Z (pointing into the patient from above), is
    tilted by ``tilt_deg`` and turned to ``heading_rad`` about Z.
    """
    frame = Rotation.from_euler("zx", [heading_rad, np.pi + np.deg2rad(tilt_deg)])
    # Columns of the rotation are the instrument axes; rows are wanted
    return frame.as_matrix().T


def simulate_circular_trajectory(
    config: Optional[TrajectoryConfig] = None,
    register_to_image: Optional[RigidTransform] = None,
) -> List[PoseSample]:
    """Generate a circular sweep.

    Args:
        config: Trajectory configuration.
        register_to_image: If given, poses are generated in the image frame
            and mapped back into the register frame through its inverse, so
            that replaying them through the same transform reproduces the
            circle in image coordinates.

    Returns:
        Register-frame pose samples with timestamps at ``config.rate_hz``.
    """
    config = config or TrajectoryConfig()
    rng = np.random.default_rng(config.seed)
    center = np.asarray(config.center, dtype=np.float64)
    to_register = None if register_to_image is None else register_to_image.invert()

    samples: List[PoseSample] = []
    period_ms = 1000.0 / config.rate_hz

    for i in range(config.n_samples):
        theta = 2.0 * np.pi * config.revolutions * i / config.n_samples
        position = center + config.radius_mm * np.array([np.cos(theta), np.sin(theta), 0.0])
        if config.noise_mm > 0:
            position = position + rng.normal(0.0, config.noise_mm, 3)

        # Heading points the tilt back toward the centre
        rotation = tool_rotation(theta + np.pi / 2.0, config.tilt_deg)

        if to_register is not None:
            position = to_register.apply(position)
            rotation = rotation @ register_to_image.rotation

        samples.append(
            PoseSample(
                position=position,
                rotation=rotation,
                timestamp_ms=i * period_ms,
                sequence_id=i,
            )
        )

    logger.info(
        f"Simulated {len(samples)} samples on a {config.radius_mm:.1f}mm circle "
        f"around {format_point(center)} at {config.rate_hz:.0f} Hz"
    )
    return samples
