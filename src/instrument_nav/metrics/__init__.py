"""Sanity checks for transforms and navigation runs."""

from instrument_nav.metrics.sanity_checks import (
    check_transform_sanity,
    check_update_rate,
    TransformSanityResult,
    UpdateRateCheckResult,
)

__all__ = [
    "check_transform_sanity",
    "check_update_rate",
    "TransformSanityResult",
    "UpdateRateCheckResult",
]
