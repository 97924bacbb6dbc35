"""Coordinate frame definitions and conventions.

Frame Naming Convention:
    The transform ``rMd`` (register-to-DICOM) maps points from the tracking
    system's register frame into the image frame:

        p_image = R @ p_register + t

Standard Frames:
    - register: native frame of the optical tracker (after patient-reference
      compensation)
    - image: patient coordinate system of the loaded image volume (DICOM)
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Any


class Frame(Enum):
    """Standard coordinate frame identifiers."""

    REGISTER = "register"
    IMAGE = "image"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class FrameConvention:
    """Describes the coordinate convention for a frame.

    Attributes:
        name: Frame identifier.
        description: Human-readable description.
        x_axis: Description of X axis direction.
        y_axis: Description of Y axis direction.
        z_axis: Description of Z axis direction.
        units: Length unit of coordinates.
        notes: Additional notes about the frame.
    """

    name: str
    description: str
    x_axis: str
    y_axis: str
    z_axis: str
    units: str = "mm"
    notes: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "name": self.name,
            "description": self.description,
            "axes": {
                "x": self.x_axis,
                "y": self.y_axis,
                "z": self.z_axis,
            },
            "units": self.units,
            "notes": self.notes,
        }


FRAME_CONVENTIONS: Dict[Frame, FrameConvention] = {
    Frame.REGISTER: FrameConvention(
        name="register",
        description="Tracking system register frame",
        x_axis="Tracker X",
        y_axis="Tracker Y",
        z_axis="Tracker Z",
        notes=(
            "Instrument poses arrive in this frame. Rotation rows are the "
            "instrument axes: row 0 right, row 1 up, row 2 forward (shaft)."
        ),
    ),

    Frame.IMAGE: FrameConvention(
        name="image",
        description="Image volume (DICOM patient) frame",
        x_axis="Patient left (L)",
        y_axis="Patient posterior (P)",
        z_axis="Patient superior (S)",
        notes="LPS convention used by DICOM. Viewing planes live in this frame.",
    ),
}


def get_frame_convention(frame: Frame) -> FrameConvention:
    """Get the coordinate convention for a frame."""
    return FRAME_CONVENTIONS[frame]


def describe_transform(from_frame: Frame, to_frame: Frame) -> str:
    """Generate a human-readable description of a transform.

    Args:
        from_frame: Source frame.
        to_frame: Target frame.

    Returns:
        Description string.
    """
    return (
        f"T_{to_frame.value}_{from_frame.value}: "
        f"Transforms points from {from_frame.value} frame to {to_frame.value} frame"
    )
