"""Navigation visualization module."""

from instrument_nav.viz.navigation_3d import plot_navigation_3d

__all__ = [
    "plot_navigation_3d",
]
