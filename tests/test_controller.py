"""Tests for the navigation controller."""

from __future__ import annotations

from typing import List

import pytest
import numpy as np
from numpy.testing import assert_array_almost_equal

from instrument_nav.common.errors import ModeNotFound, SampleHandlingError
from instrument_nav.common.transforms import RigidTransform
from instrument_nav.io.pose_stream import PoseSample, ReplayPoseStream
from instrument_nav.navigation.controller import NavigationController
from instrument_nav.navigation.interface import ModeName, NavigationConfig


def make_samples(timestamps_ms, start=(0.0, 0.0, 0.0), step=(1.0, 0.0, 0.0), rotation=None) -> List[PoseSample]:
    start = np.asarray(start, dtype=np.float64)
    step = np.asarray(step, dtype=np.float64)
    return [
        PoseSample(position=start + i * step, rotation=rotation, timestamp_ms=ts, sequence_id=i)
        for i, ts in enumerate(timestamps_ms)
    ]


def spy_on(monkeypatch, mode) -> list:
    """Record positions passed to ``mode.handle_update``."""
    calls = []
    original = mode.handle_update

    def spy(position, rotation=None):
        calls.append(np.array(position))
        return original(position, rotation)

    monkeypatch.setattr(mode, "handle_update", spy)
    return calls


def record_lifecycle(monkeypatch, mode, calls: list) -> None:
    """Append ``"<mode>.<hook>"`` to ``calls`` on enter, exit and cleanup."""
    for hook in ("enter", "exit", "cleanup"):
        original = getattr(mode, hook)

        def recorder(original=original, hook=hook):
            calls.append(f"{mode.name.value}.{hook}")
            return original()

        monkeypatch.setattr(mode, hook, recorder)


class TestModeSwitching:
    """Tests for set_mode and the mode registry."""

    def test_no_mode_initially(self, scene):
        """A fresh controller has no active mode."""
        controller = NavigationController(scene)

        assert controller.get_active_mode() is None

    def test_set_mode_by_name(self, scene):
        """Modes can be selected by their string value."""
        controller = NavigationController(scene)

        assert controller.set_mode("instrument-projection") is True
        assert controller.get_active_mode() is ModeName.INSTRUMENT_PROJECTION
        assert controller.get_mode(ModeName.INSTRUMENT_PROJECTION).is_active

    def test_set_same_mode_is_noop(self, scene):
        """Selecting the active mode again does nothing unless forced."""
        controller = NavigationController(scene)
        controller.set_mode(ModeName.CAMERA_FOLLOWING)

        assert controller.set_mode(ModeName.CAMERA_FOLLOWING) is False
        assert controller.set_mode(ModeName.CAMERA_FOLLOWING, force=True) is True

    def test_unknown_mode_rejected(self, scene):
        """Unknown names raise and keep the current mode."""
        controller = NavigationController(scene)
        controller.set_mode(ModeName.CAMERA_FOLLOWING)

        with pytest.raises(ModeNotFound):
            controller.set_mode("fly-through")

        assert controller.get_active_mode() is ModeName.CAMERA_FOLLOWING

    def test_switch_exits_previous(self, scene):
        """Switching away from projection clears its overlays."""
        controller = NavigationController(scene)
        controller.set_mode(ModeName.INSTRUMENT_PROJECTION)
        controller.handle_pose_sample(PoseSample([0, 0, 0], np.eye(3), timestamp_ms=0))
        assert scene.overlays

        controller.set_mode(ModeName.CAMERA_FOLLOWING)

        assert scene.overlays == {}
        assert not controller.get_mode(ModeName.INSTRUMENT_PROJECTION).is_active

    def test_switch_order_exit_cleanup_enter(self, scene, monkeypatch):
        """The outgoing mode exits and cleans up before the incoming one enters."""
        controller = NavigationController(scene)
        calls = []
        for name in ModeName:
            record_lifecycle(monkeypatch, controller.get_mode(name), calls)

        controller.set_mode(ModeName.CAMERA_FOLLOWING)
        controller.set_mode(ModeName.INSTRUMENT_PROJECTION)

        assert calls == [
            "camera-follow.enter",
            "camera-follow.exit",
            "camera-follow.cleanup",
            "instrument-projection.enter",
        ]

    def test_forced_reentry_order(self, scene, monkeypatch):
        """Forcing the active mode runs its full exit, cleanup, enter cycle."""
        controller = NavigationController(scene)
        calls = []
        for name in ModeName:
            record_lifecycle(monkeypatch, controller.get_mode(name), calls)

        controller.set_mode(ModeName.CAMERA_FOLLOWING)
        controller.set_mode(ModeName.CAMERA_FOLLOWING, force=True)

        assert calls == [
            "camera-follow.enter",
            "camera-follow.exit",
            "camera-follow.cleanup",
            "camera-follow.enter",
        ]


class TestStartStop:
    """Tests for start and stop."""

    def test_start_subscribes(self, scene):
        """start enters the initial mode and subscribes to the stream."""
        controller = NavigationController(scene)
        stream = ReplayPoseStream(make_samples([0, 100]))

        controller.start(stream)

        assert controller.is_navigating
        assert controller.get_active_mode() is ModeName.CAMERA_FOLLOWING
        assert stream.subscriber_count == 1

    def test_start_uses_config_initial_mode(self, scene):
        """The configured initial mode is used by default."""
        config = NavigationConfig(initial_mode="instrument-projection")
        controller = NavigationController(scene, config=config)

        controller.start(ReplayPoseStream([]))

        assert controller.get_active_mode() is ModeName.INSTRUMENT_PROJECTION

    def test_start_twice_ignored(self, scene):
        """A second start while running does not subscribe again."""
        controller = NavigationController(scene)
        stream = ReplayPoseStream([])
        controller.start(stream)

        controller.start(stream)

        assert stream.subscriber_count == 1

    def test_stop_unsubscribes_and_cleans_up(self, scene):
        """stop releases the subscription and the active mode together."""
        controller = NavigationController(scene)
        stream = ReplayPoseStream(make_samples([0, 100]))
        controller.start(stream, ModeName.INSTRUMENT_PROJECTION)
        stream.play()

        controller.stop()

        assert not controller.is_navigating
        assert controller.get_active_mode() is None
        assert stream.subscriber_count == 0
        assert scene.overlays == {}

    def test_stop_idempotent(self, scene):
        """Stopping twice, or before start, is harmless."""
        controller = NavigationController(scene)

        controller.stop()
        controller.start(ReplayPoseStream([]))
        controller.stop()
        controller.stop()

        assert controller.get_active_mode() is None

    def test_replay_through_stream(self, scene):
        """Samples played on the stream reach the active mode."""
        controller = NavigationController(scene)
        stream = ReplayPoseStream(make_samples([0, 100, 200], step=(5.0, 0.0, 0.0)))
        controller.start(stream)

        stream.play()

        status = controller.get_status()
        assert status["samples_received"] == 3
        assert status["update_count"] == 3
        assert_array_almost_equal(scene.viewport("volume3d").get_camera().focal_point, [10, 0, 0])


class TestSampleRouting:
    """Tests for handle_pose_sample."""

    def test_no_active_mode_drops(self, scene):
        """Samples without an active mode are counted and dropped."""
        controller = NavigationController(scene)

        result = controller.handle_pose_sample(PoseSample([0, 0, 0], None, timestamp_ms=0))

        assert result is None
        assert controller.samples_without_mode == 1

    def test_transform_applied(self, scene, monkeypatch):
        """Modes receive image-frame positions."""
        controller = NavigationController(scene)
        controller.load_transformation(RigidTransform.build(np.eye(3), [10, 20, 30]))
        controller.set_mode(ModeName.CAMERA_FOLLOWING)
        calls = spy_on(monkeypatch, controller.get_mode(ModeName.CAMERA_FOLLOWING))

        controller.handle_pose_sample(PoseSample([1, 2, 3], None, timestamp_ms=0))

        assert_array_almost_equal(calls[0], [11, 22, 33])

    def test_throttle_bound(self, scene, monkeypatch):
        """Samples inside one minimum interval produce exactly one update."""
        controller = NavigationController(scene, config=NavigationConfig(target_fps=20))
        controller.set_mode(ModeName.CAMERA_FOLLOWING)
        calls = spy_on(monkeypatch, controller.get_mode(ModeName.CAMERA_FOLLOWING))

        for sample in make_samples([0, 10, 20, 30, 40, 49.9]):
            controller.handle_pose_sample(sample)

        assert len(calls) == 1
        assert controller.get_status()["samples_throttled"] == 5

    def test_throttle_lets_through_after_interval(self, scene, monkeypatch):
        """A 100 Hz stream is delivered at 20 Hz."""
        controller = NavigationController(scene, config=NavigationConfig(target_fps=20))
        controller.set_mode(ModeName.CAMERA_FOLLOWING)
        calls = spy_on(monkeypatch, controller.get_mode(ModeName.CAMERA_FOLLOWING))

        for sample in make_samples(np.arange(0, 1000, 10)):
            controller.handle_pose_sample(sample)

        assert len(calls) == 20
        assert controller.average_rate_hz() == pytest.approx(20.0)

    def test_mode_isolation(self, scene, monkeypatch):
        """Only the active mode's update runs."""
        controller = NavigationController(scene)
        follow_calls = spy_on(monkeypatch, controller.get_mode(ModeName.CAMERA_FOLLOWING))
        project_calls = spy_on(monkeypatch, controller.get_mode(ModeName.INSTRUMENT_PROJECTION))

        controller.set_mode(ModeName.INSTRUMENT_PROJECTION)
        for sample in make_samples([0, 100, 200]):
            controller.handle_pose_sample(sample)
        controller.set_mode(ModeName.CAMERA_FOLLOWING)
        for sample in make_samples([300, 400]):
            controller.handle_pose_sample(sample)

        assert len(project_calls) == 3
        assert len(follow_calls) == 2

    def test_errors_isolated(self, scene, monkeypatch):
        """A raising mode is logged and the stream keeps flowing."""
        controller = NavigationController(scene)
        controller.set_mode(ModeName.CAMERA_FOLLOWING)
        mode = controller.get_mode(ModeName.CAMERA_FOLLOWING)
        original = mode.handle_update

        def flaky(position, rotation=None):
            if position[0] == 1.0:
                raise RuntimeError("renderer went away")
            return original(position, rotation)

        monkeypatch.setattr(mode, "handle_update", flaky)

        results = [controller.handle_pose_sample(s) for s in make_samples([0, 100, 200])]

        assert results[0] == {}
        assert results[2]
        assert results[1] is None
        assert controller.errors == 1
        assert isinstance(controller.last_error, SampleHandlingError)
        assert controller.last_error.sequence_id == 1
        assert isinstance(controller.last_error.cause, RuntimeError)
        assert controller.get_status()["update_count"] == 2

    def test_set_mode_during_update_deferred(self, scene, monkeypatch):
        """A switch requested from inside an update happens after it returns."""
        controller = NavigationController(scene)
        controller.set_mode(ModeName.CAMERA_FOLLOWING)
        mode = controller.get_mode(ModeName.CAMERA_FOLLOWING)
        original = mode.handle_update
        seen = []

        def switching(position, rotation=None):
            controller.set_mode(ModeName.INSTRUMENT_PROJECTION)
            seen.append((controller.get_active_mode(), mode.is_active))
            return original(position, rotation)

        monkeypatch.setattr(mode, "handle_update", switching)

        controller.handle_pose_sample(PoseSample([0, 0, 0], None, timestamp_ms=0))

        assert seen == [(ModeName.CAMERA_FOLLOWING, True)]
        assert controller.get_active_mode() is ModeName.INSTRUMENT_PROJECTION
        assert not mode.is_active

    def test_set_same_mode_during_update(self, scene, monkeypatch):
        """Re-selecting the active mode from inside an update is a no-op."""
        controller = NavigationController(scene)
        controller.set_mode(ModeName.CAMERA_FOLLOWING)
        mode = controller.get_mode(ModeName.CAMERA_FOLLOWING)
        original = mode.handle_update
        results = []

        def reselecting(position, rotation=None):
            results.append(controller.set_mode(ModeName.CAMERA_FOLLOWING))
            return original(position, rotation)

        monkeypatch.setattr(mode, "handle_update", reselecting)
        calls = []
        record_lifecycle(monkeypatch, mode, calls)

        controller.handle_pose_sample(PoseSample([0, 0, 0], None, timestamp_ms=0))

        assert results == [False]
        assert calls == []
        assert controller.get_active_mode() is ModeName.CAMERA_FOLLOWING

    def test_same_mode_supersedes_queued_switch(self, scene, monkeypatch):
        """Switching away then back within one update leaves the mode in place."""
        controller = NavigationController(scene)
        controller.set_mode(ModeName.CAMERA_FOLLOWING)
        mode = controller.get_mode(ModeName.CAMERA_FOLLOWING)
        original = mode.handle_update

        def flip_flop(position, rotation=None):
            controller.set_mode(ModeName.INSTRUMENT_PROJECTION)
            controller.set_mode(ModeName.CAMERA_FOLLOWING)
            return original(position, rotation)

        monkeypatch.setattr(mode, "handle_update", flip_flop)

        controller.handle_pose_sample(PoseSample([0, 0, 0], None, timestamp_ms=0))

        assert controller.get_active_mode() is ModeName.CAMERA_FOLLOWING
        assert mode.is_active
        assert not controller.get_mode(ModeName.INSTRUMENT_PROJECTION).is_active

    def test_timestamp_restart_delivered(self, scene, monkeypatch):
        """A stream whose clock jumps back keeps being delivered."""
        controller = NavigationController(scene, config=NavigationConfig(target_fps=20))
        controller.set_mode(ModeName.CAMERA_FOLLOWING)
        calls = spy_on(monkeypatch, controller.get_mode(ModeName.CAMERA_FOLLOWING))

        for sample in make_samples([1000, 1100, 0, 10, 50, 100]):
            controller.handle_pose_sample(sample)

        assert len(calls) == 5
        assert controller.get_status()["samples_throttled"] == 1

    def test_stop_during_update_deferred(self, scene, monkeypatch):
        """stop requested from inside an update runs after it returns."""
        controller = NavigationController(scene)
        stream = ReplayPoseStream(make_samples([0, 100, 200]))
        controller.start(stream)
        mode = controller.get_mode(ModeName.CAMERA_FOLLOWING)
        original = mode.handle_update

        def stopping(position, rotation=None):
            controller.stop()
            assert mode.is_active
            return original(position, rotation)

        monkeypatch.setattr(mode, "handle_update", stopping)

        stream.play()

        assert controller.get_status()["samples_received"] == 1
        assert controller.errors == 0
        assert not controller.is_navigating
        assert controller.get_active_mode() is None


class TestSettings:
    """Tests for runtime settings."""

    def test_target_fps_in_range(self, scene):
        """Rates within 10-60 Hz are accepted."""
        controller = NavigationController(scene)

        controller.set_target_fps(30)

        assert controller.target_fps == pytest.approx(30.0)

    @pytest.mark.parametrize("fps", [5, 0, -1, 120])
    def test_target_fps_out_of_range(self, scene, fps):
        """Rates outside 10-60 Hz fall back to 20 Hz."""
        controller = NavigationController(scene)

        controller.set_target_fps(fps)

        assert controller.target_fps == pytest.approx(20.0)

    def test_enable_orientation_tracking(self, scene):
        """The toggle reaches camera-following mode."""
        controller = NavigationController(scene)

        controller.enable_orientation_tracking(False)

        assert controller.get_mode(ModeName.CAMERA_FOLLOWING).orientation_tracking is False

    def test_set_extension_length(self, scene):
        """The extension length reaches projection mode."""
        controller = NavigationController(scene)

        controller.set_extension_length(42.0)

        assert controller.get_mode(ModeName.INSTRUMENT_PROJECTION).extension_length == 42.0

    def test_clear_transformation(self, scene, sample_transform):
        """Clearing the transform reverts to identity mapping."""
        controller = NavigationController(scene)
        controller.load_transformation(sample_transform)

        controller.clear_transformation()

        assert controller.get_status()["transform"] == {"loaded": False, "is_identity": True}

    def test_status_keys(self, scene):
        """Status carries the counters reports rely on."""
        status = NavigationController(scene).get_status()

        assert set(status) == {
            "navigating", "mode", "samples_received", "update_count",
            "samples_throttled", "samples_without_mode", "errors", "last_error",
            "target_fps", "average_rate_hz", "transform",
        }
        assert status["average_rate_hz"] is None
