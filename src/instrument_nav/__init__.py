"""Instrument Navigation Core.

Keeps 2D slice views and 3D camera views of a medical image volume in step
with a tracked surgical instrument.
"""

__version__ = "0.1.0"
__author__ = "Instrument Navigation Team"

from instrument_nav.common.transforms import RigidTransform
from instrument_nav.navigation.coordinate_transformer import CoordinateTransformer
from instrument_nav.navigation.controller import NavigationController
from instrument_nav.navigation.interface import ModeName, NavigationConfig

__all__ = [
    "__version__",
    "RigidTransform",
    "CoordinateTransformer",
    "NavigationController",
    "ModeName",
    "NavigationConfig",
]
