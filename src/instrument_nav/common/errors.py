"""Error taxonomy for the navigation core.

All errors derive from ``NavigationError``, which is a ``ValueError`` so that
callers already guarding input validation with ``except ValueError`` keep
working.

Construction-time errors (``InvalidTransform``, ``ModeNotFound``) are raised
to the caller. Per-sample anomalies (``DegenerateOrientation``,
``OutOfBounds``, ``SampleHandlingError``) are raised by the pure helpers and
recovered inside the modes or at the controller boundary.
"""

from __future__ import annotations

from typing import Optional


class NavigationError(ValueError):
    """Base class for navigation core errors."""


class InvalidTransform(NavigationError):
    """Rotation is not orthonormal, or the input contains NaN/Inf."""


class DegenerateOrientation(NavigationError):
    """An axis extracted from a pose rotation has near-zero length."""


class OutOfBounds(NavigationError):
    """A target position lies outside the active volume's bounds."""


class ModeNotFound(NavigationError):
    """``set_mode`` was given an unknown mode name."""


class SampleHandlingError(NavigationError):
    """Wraps an exception raised inside a mode's ``handle_update``.

    Attributes:
        mode: Name of the mode that raised.
        sequence_id: Sequence id of the offending pose sample.
        cause: The original exception.
    """

    def __init__(
        self,
        mode: str,
        sequence_id: Optional[int],
        cause: BaseException,
    ) -> None:
        self.mode = mode
        self.sequence_id = sequence_id
        self.cause = cause
        super().__init__(
            f"{mode} failed on sample #{sequence_id}: "
            f"{type(cause).__name__}: {cause}"
        )
