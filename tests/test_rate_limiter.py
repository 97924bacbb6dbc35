"""Tests for update-rate throttling."""

from __future__ import annotations

import pytest

from instrument_nav.navigation.rate_limiter import RateLimiter


class TestRateLimiter:
    """Tests for the minimum-interval gate."""

    def test_first_sample_accepted(self):
        limiter = RateLimiter(20)

        assert limiter.accept(1000) is True
        assert limiter.accepted == 1

    def test_interval_enforced(self):
        """Samples closer than 1/fps are dropped; the boundary passes."""
        limiter = RateLimiter(20)
        limiter.accept(0)

        assert limiter.accept(49.9) is False
        assert limiter.accept(50) is True
        assert limiter.dropped == 1

    def test_backwards_timestamp_restarts_window(self):
        """A clock that jumps back is followed from its new origin."""
        limiter = RateLimiter(20)

        results = [limiter.accept(ts) for ts in (1000, 1010, 0, 10, 50)]

        assert results == [True, False, True, False, True]
        assert limiter.restarts == 1
        assert limiter.accepted == 3
        assert limiter.dropped == 2

    def test_reset(self):
        limiter = RateLimiter(20)
        limiter.accept(100)
        limiter.accept(0)

        limiter.reset()

        assert (limiter.accepted, limiter.dropped, limiter.restarts) == (0, 0, 0)
        assert limiter.accept(5) is True

    def test_target_fps(self):
        limiter = RateLimiter(25)

        assert limiter.min_interval_ms == pytest.approx(40.0)
        assert limiter.target_fps == pytest.approx(25.0)

    @pytest.mark.parametrize("fps", [0, -5])
    def test_non_positive_fps_rejected(self, fps):
        with pytest.raises(ValueError):
            RateLimiter(fps)
