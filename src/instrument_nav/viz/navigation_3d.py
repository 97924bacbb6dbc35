"""3D navigation visualization.

This module draws the instrument, its projected extension and the slice
planes in the image frame, for inspecting a replayed session.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Optional, Sequence, Tuple

import numpy as np
from numpy.typing import ArrayLike, NDArray
import matplotlib.pyplot as plt
from mpl_toolkits.mplot3d import Axes3D
from mpl_toolkits.mplot3d.art3d import Poly3DCollection

from instrument_nav.navigation.projection import Crossing, OnPlane, ProjectionInstruction
from instrument_nav.navigation.types import ToolRepresentation, ViewingPlane, VolumeBounds


def _plane_basis(normal: NDArray[np.float64]) -> Tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Two unit vectors spanning the plane with the given normal."""
    helper = np.array([1.0, 0.0, 0.0]) if abs(normal[0]) < 0.9 else np.array([0.0, 1.0, 0.0])
    u = np.cross(normal, helper)
    u /= np.linalg.norm(u)
    v = np.cross(normal, u)
    return u, v


def _draw_plane(
    ax: Axes3D,
    plane: ViewingPlane,
    half_size: float,
    color: str,
    alpha: float = 0.15,
) -> None:
    """Draw a slice plane as a square centred on its reference point."""
    u, v = _plane_basis(plane.normal)
    p = plane.point
    corners = np.array([
        p - u * half_size - v * half_size,
        p + u * half_size - v * half_size,
        p + u * half_size + v * half_size,
        p - u * half_size + v * half_size,
    ])
    ax.add_collection3d(Poly3DCollection([corners.tolist()], alpha=alpha, facecolor=color,
                                         edgecolor=color, linewidth=1))
    ax.text(p[0] + u[0] * half_size, p[1] + u[1] * half_size, p[2] + u[2] * half_size,
            plane.plane_id, fontsize=8, color=color)


def _draw_bounds(ax: Axes3D, bounds: VolumeBounds) -> None:
    """Draw the volume bounding box as a wireframe."""
    lo, hi = bounds.minimum, bounds.maximum
    xs, ys, zs = (lo[0], hi[0]), (lo[1], hi[1]), (lo[2], hi[2])
    for y in ys:
        for z in zs:
            ax.plot3D(xs, (y, y), (z, z), color='gray', linewidth=0.5)
    for x in xs:
        for z in zs:
            ax.plot3D((x, x), ys, (z, z), color='gray', linewidth=0.5)
    for x in xs:
        for y in ys:
            ax.plot3D((x, x), (y, y), zs, color='gray', linewidth=0.5)


def _draw_tool(ax: Axes3D, tool: ToolRepresentation) -> None:
    """Draw the instrument body (solid) and its extension (dashed)."""
    base, origin, tip = tool.base, tool.origin, tool.tip
    ax.plot3D(*zip(base, origin), color='black', linewidth=3, label='Instrument')
    ax.plot3D(*zip(origin, tip), color='black', linewidth=1.5, linestyle='--',
              label='Extension')
    ax.scatter(*origin, color='black', s=30)


def plot_navigation_3d(
    tool: ToolRepresentation,
    planes: Sequence[ViewingPlane],
    instructions: Optional[Mapping[str, ProjectionInstruction]] = None,
    bounds: Optional[VolumeBounds] = None,
    trajectory: Optional[ArrayLike] = None,
    output_path: Optional[Path] = None,
    figsize: Tuple[float, float] = (10, 8),
    title: str = "Instrument Projection",
    slice_threshold_mm: float = 2.0,
) -> plt.Figure:
    """Plot the instrument against the slice planes in 3D.

    Shows:
    - Volume bounds (wireframe)
    - Each slice plane
    - Instrument body and extension
    - Per-plane projection result: crossing marker or on-plane segment,
      green when within ``slice_threshold_mm`` of the slice, red otherwise
    - Optional trajectory of image-frame positions

    Args:
        tool: Instrument ray in the image frame.
        planes: Slice planes.
        instructions: Projection result per plane id.
        bounds: Optional volume bounds.
        trajectory: Optional Nx3 image-frame positions.
        output_path: Optional path to save figure.
        figsize: Figure size.
        title: Plot title.
        slice_threshold_mm: Distance for the green/red colouring.

    Returns:
        Matplotlib figure.
    """
    fig = plt.figure(figsize=figsize)
    ax = fig.add_subplot(111, projection='3d')

    instructions = instructions or {}
    all_pts = [tool.base, tool.origin, tool.tip]

    if bounds is not None:
        _draw_bounds(ax, bounds)
        all_pts.extend([bounds.minimum, bounds.maximum])
        half_size = float(np.max(bounds.maximum - bounds.minimum)) / 2.0
    else:
        half_size = tool.extension_length

    cmap = plt.cm.Set2
    for j, plane in enumerate(planes):
        _draw_plane(ax, plane, half_size, color=cmap(j % 8))
        all_pts.append(plane.point)

    for instruction in instructions.values():
        color = instruction.color(slice_threshold_mm)
        if isinstance(instruction, Crossing):
            ax.scatter(*instruction.point, color=color, s=60, marker='x')
        elif isinstance(instruction, OnPlane):
            ax.plot3D(*zip(instruction.origin, instruction.tip), color=color,
                      linewidth=2, linestyle='--')

    _draw_tool(ax, tool)

    if trajectory is not None:
        path = np.asarray(trajectory, dtype=np.float64).reshape(-1, 3)
        if len(path):
            ax.plot3D(path[:, 0], path[:, 1], path[:, 2], color='tab:blue',
                      linewidth=0.8, alpha=0.6, label='Trajectory')
            all_pts.extend(path)

    # Set equal aspect ratio
    all_pts = np.array(all_pts)
    max_range = np.ptp(all_pts, axis=0).max() / 2.0 + 1.0
    mid = (all_pts.max(axis=0) + all_pts.min(axis=0)) / 2.0

    ax.set_xlim(mid[0] - max_range, mid[0] + max_range)
    ax.set_ylim(mid[1] - max_range, mid[1] + max_range)
    ax.set_zlim(mid[2] - max_range, mid[2] + max_range)

    ax.set_xlabel('X (mm)')
    ax.set_ylabel('Y (mm)')
    ax.set_zlabel('Z (mm)')
    ax.set_title(f"{title}\n(Image frame)")
    ax.legend(loc='upper left', fontsize=8)

    plt.tight_layout()

    if output_path:
        fig.savefig(output_path, dpi=150, bbox_inches='tight')

    return fig
