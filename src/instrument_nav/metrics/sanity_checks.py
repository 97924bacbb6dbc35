"""Sanity checks for navigation inputs and runs.

This module provides functions to validate a register→image transform and a
recorded pose stream against expected physical constraints, and to check a
finished run against the configured update rate.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence

import numpy as np
from numpy.typing import ArrayLike

from instrument_nav.common.logging import get_logger
from instrument_nav.common.transforms import RigidTransform
from instrument_nav.io.pose_stream import PoseSample
from instrument_nav.navigation.coordinate_transformer import CoordinateTransformer

logger = get_logger(__name__)


@dataclass
class TransformSanityResult:
    """Result of transform sanity check.

    Attributes:
        passed: Whether the check passed.
        orthonormality_error: ``max|R @ R.T - I|``.
        determinant: ``det(R)``.
        translation_magnitude_mm: Translation magnitude.
        rotation_angle_deg: Rotation angle from identity.
        round_trip_error_mm: Worst register→image→register error on check points.
        is_identity: Whether the transform is the identity.
        notes: Additional notes.
    """

    passed: bool
    orthonormality_error: float
    determinant: float
    translation_magnitude_mm: float
    rotation_angle_deg: float
    round_trip_error_mm: float
    is_identity: bool
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "passed": self.passed,
            "orthonormality_error": self.orthonormality_error,
            "determinant": self.determinant,
            "translation_magnitude_mm": self.translation_magnitude_mm,
            "rotation_angle_deg": self.rotation_angle_deg,
            "round_trip_error_mm": self.round_trip_error_mm,
            "is_identity": self.is_identity,
            "notes": self.notes,
        }


def check_transform_sanity(
    transform: RigidTransform,
    max_translation_mm: float = 2000.0,
    round_trip_tol_mm: float = 1e-6,
    check_points: Optional[ArrayLike] = None,
) -> TransformSanityResult:
    """Check if a register→image transform is plausible.

    For an optical tracker and a CT/MR volume we expect:
    - A rotation that is orthonormal to numerical precision
    - A translation within a couple of metres (tracker and patient share a room)
    - Exact round trips through the transform and its inverse

    Args:
        transform: The transform to check.
        max_translation_mm: Maximum expected translation (mm).
        round_trip_tol_mm: Maximum acceptable round-trip error (mm).
        check_points: Nx3 register-frame points for the round trip. Defaults
            to the corners of a 500 mm cube.

    Returns:
        TransformSanityResult with validation details.
    """
    R = transform.rotation
    t = transform.translation

    orthonormality_error = float(np.max(np.abs(R @ R.T - np.eye(3))))
    determinant = float(np.linalg.det(R))

    translation_magnitude = float(np.linalg.norm(t))
    translation_in_bounds = translation_magnitude <= max_translation_mm

    angle_rad = np.arccos(np.clip((np.trace(R) - 1) / 2, -1, 1))
    rotation_angle_deg = float(np.degrees(angle_rad))

    if check_points is None:
        corners = np.array(np.meshgrid([-250, 250], [-250, 250], [-250, 250])).reshape(3, -1).T
        check_points = corners.astype(np.float64)
    check_points = np.asarray(check_points, dtype=np.float64)

    transformer = CoordinateTransformer(transform)
    restored = transformer.to_register_frame(transformer.to_image_frame(check_points))
    round_trip_error = float(np.max(np.linalg.norm(restored - check_points, axis=1)))
    round_trip_ok = round_trip_error <= round_trip_tol_mm

    is_identity = transform.is_identity()

    passed = translation_in_bounds and round_trip_ok

    notes_parts = []
    if not translation_in_bounds:
        notes_parts.append(
            f"Translation {translation_magnitude:.1f}mm exceeds {max_translation_mm}mm"
        )
    if not round_trip_ok:
        notes_parts.append(
            f"Round-trip error {round_trip_error:.2e}mm exceeds {round_trip_tol_mm}mm"
        )

    if passed:
        notes = "Transform is within expected bounds"
        if is_identity:
            notes += " (identity: register and image frames coincide)"
    else:
        notes = "; ".join(notes_parts)

    return TransformSanityResult(
        passed=passed,
        orthonormality_error=orthonormality_error,
        determinant=determinant,
        translation_magnitude_mm=translation_magnitude,
        rotation_angle_deg=rotation_angle_deg,
        round_trip_error_mm=round_trip_error,
        is_identity=is_identity,
        notes=notes,
    )


@dataclass
class UpdateRateCheckResult:
    """Result of update-rate validation.

    Attributes:
        passed: Whether the check passed.
        source_rate_hz: Median rate of the incoming samples.
        delivered_rate_hz: Average rate delivered to the active mode.
        target_fps: Configured target rate.
        monotonic: Whether sample timestamps never decrease.
        notes: Additional notes.
    """

    passed: bool
    source_rate_hz: Optional[float]
    delivered_rate_hz: Optional[float]
    target_fps: float
    monotonic: bool
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "passed": self.passed,
            "source_rate_hz": self.source_rate_hz,
            "delivered_rate_hz": self.delivered_rate_hz,
            "target_fps": self.target_fps,
            "monotonic": self.monotonic,
            "notes": self.notes,
        }


def check_update_rate(
    samples: Sequence[PoseSample],
    target_fps: float,
    delivered_rate_hz: Optional[float] = None,
    tolerance: float = 0.05,
) -> UpdateRateCheckResult:
    """Check a pose stream and the rate a run delivered from it.

    The throttle never delivers faster than the target rate, and samples are
    expected to arrive in non-decreasing timestamp order.

    Args:
        samples: Samples in arrival order.
        target_fps: Configured target rate (Hz).
        delivered_rate_hz: Average delivered rate of a run, if known.
        tolerance: Relative slack on the target rate.

    Returns:
        UpdateRateCheckResult with validation details.
    """
    timestamps = np.array([s.timestamp_ms for s in samples], dtype=np.float64)
    intervals = np.diff(timestamps)

    monotonic = bool(np.all(intervals >= 0))

    source_rate = None
    positive = intervals[intervals > 0]
    if positive.size:
        source_rate = float(1000.0 / np.median(positive))

    rate_ok = delivered_rate_hz is None or delivered_rate_hz <= target_fps * (1 + tolerance)
    passed = monotonic and rate_ok

    notes_parts = []
    if not monotonic:
        notes_parts.append("Sample timestamps decrease; the stream was reordered")
    if not rate_ok:
        notes_parts.append(
            f"Delivered {delivered_rate_hz:.1f} Hz exceeds target {target_fps:.1f} Hz"
        )
    if passed and source_rate is not None and source_rate < target_fps:
        notes_parts.append(
            f"Source rate {source_rate:.1f} Hz is below target {target_fps:.1f} Hz; "
            f"every sample is delivered"
        )

    notes = "; ".join(notes_parts) if notes_parts else "Update rate is within expected bounds"

    return UpdateRateCheckResult(
        passed=passed,
        source_rate_hz=source_rate,
        delivered_rate_hz=delivered_rate_hz,
        target_fps=target_fps,
        monotonic=monotonic,
        notes=notes,
    )
