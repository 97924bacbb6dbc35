"""Update-rate throttling.

The tracker streams at up to ~100 Hz while the viewer only needs ~20 Hz. The
limiter enforces a minimum interval between delivered samples, measured on
the samples' own timestamps. Early samples are dropped, never queued.
"""

from __future__ import annotations

from typing import Optional

from instrument_nav.common.logging import get_logger

logger = get_logger(__name__)


class RateLimiter:
    """Minimum-interval gate keyed on sample timestamps (ms).

    A timestamp earlier than the last delivered one is taken as a source
    restart (tracker reconnect, replay rewind): the sample is delivered and
    the interval is measured from it from then on.

    Attributes:
        accepted: Samples let through since the last reset.
        dropped: Samples rejected since the last reset.
        restarts: Backwards timestamps seen since the last reset.
    """

    def __init__(self, target_fps: float = 20.0) -> None:
        self._min_interval_ms = 0.0
        self._last_ms: Optional[float] = None
        self.accepted = 0
        self.dropped = 0
        self.restarts = 0
        self.set_target_fps(target_fps)

    @property
    def target_fps(self) -> float:
        return 1000.0 / self._min_interval_ms

    @property
    def min_interval_ms(self) -> float:
        return self._min_interval_ms

    def set_target_fps(self, fps: float) -> None:
        if fps <= 0:
            raise ValueError(f"Target rate must be positive, got {fps}")
        self._min_interval_ms = 1000.0 / float(fps)

    def accept(self, timestamp_ms: float) -> bool:
        """Return True and record the delivery if the interval has elapsed."""
        if self._last_ms is not None:
            elapsed = timestamp_ms - self._last_ms
            if elapsed < 0:
                self.restarts += 1
                logger.debug(
                    f"Timestamp went back {-elapsed:.1f}ms; restarting rate window"
                )
            elif elapsed < self._min_interval_ms:
                self.dropped += 1
                return False
        self._last_ms = float(timestamp_ms)
        self.accepted += 1
        return True

    def reset(self) -> None:
        self._last_ms = None
        self.accepted = 0
        self.dropped = 0
        self.restarts = 0
