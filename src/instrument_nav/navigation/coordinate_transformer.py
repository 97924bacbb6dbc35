"""Register-to-image frame conversion.

The tracking system reports instrument poses in its register frame. The
loaded image volume lives in the image (DICOM) frame. ``CoordinateTransformer``
holds the ``rMd`` rigid transform between the two and applies it to every
incoming sample. With no transform loaded every mapping is the identity.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Union

import numpy as np
from numpy.typing import ArrayLike, NDArray

from instrument_nav.common.frames import Frame, describe_transform
from instrument_nav.common.logging import get_logger
from instrument_nav.common.transforms import RigidTransform

logger = get_logger(__name__)

TransformLike = Union[RigidTransform, ArrayLike]


class CoordinateTransformer:
    """Applies the register→image transform and its inverse."""

    def __init__(self, transform: Optional[TransformLike] = None) -> None:
        self._transform: Optional[RigidTransform] = None
        self._inverse: Optional[RigidTransform] = None
        if transform is not None:
            self.load(transform)

    def load(self, transform: TransformLike) -> RigidTransform:
        """Load a new transform, replacing any previous one.

        Args:
            transform: A ``RigidTransform`` or a 4x4 / flat 16-element matrix.

        Returns:
            The loaded transform.

        Raises:
            InvalidTransform: If the matrix is not a valid rigid transform.
                The previously loaded transform is kept in that case.
        """
        if not isinstance(transform, RigidTransform):
            transform = RigidTransform.from_matrix(transform)

        self._transform = transform
        self._inverse = transform.invert()

        logger.info(f"Loaded {describe_transform(Frame.REGISTER, Frame.IMAGE)}")
        logger.debug(f"rMd = {transform}")
        return transform

    def clear(self) -> None:
        """Drop the loaded transform; mappings become the identity."""
        self._transform = None
        self._inverse = None
        logger.info("Cleared register→image transform")

    def has_transform(self) -> bool:
        return self._transform is not None

    def is_identity(self) -> bool:
        """True if no transform is loaded or the loaded one is the identity."""
        return self._transform is None or self._transform.is_identity()

    def get_transform(self) -> Optional[RigidTransform]:
        return self._transform

    def to_image_frame(self, point: ArrayLike) -> NDArray[np.float64]:
        """Map a point (or Nx3 points) from register to image frame."""
        if self._transform is None:
            return np.array(point, dtype=np.float64)
        return self._transform.apply(point)

    def to_register_frame(self, point: ArrayLike) -> NDArray[np.float64]:
        """Map a point (or Nx3 points) from image to register frame."""
        if self._inverse is None:
            return np.array(point, dtype=np.float64)
        return self._inverse.apply(point)

    def rotation_to_image_frame(self, rotation: ArrayLike) -> NDArray[np.float64]:
        """Rotate a pose rotation into the image frame.

        Rows of a pose rotation are the instrument axes expressed in the
        register frame, so each row is rotated: ``R @ Rt.T``.
        """
        rotation = np.array(rotation, dtype=np.float64)
        if self._transform is None:
            return rotation
        return rotation @ self._transform.rotation.T

    def get_status(self) -> Dict[str, Any]:
        """Summary used in controller status reports."""
        return {
            "loaded": self.has_transform(),
            "is_identity": self.is_identity(),
        }
