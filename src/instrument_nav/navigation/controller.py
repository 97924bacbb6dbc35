"""Navigation controller.

Owns the active navigation mode and routes live pose samples to it:

    pose stream → register→image transform → rate limiter → active mode

The controller is constructed explicitly and passed around; there is no
process-wide instance. Everything runs synchronously on the thread that
delivers samples. A mode switch or stop requested while a mode is handling a
sample is deferred until that call returns.

Example:
    >>> scene = load_scene("session/scene.yaml")
    >>> controller = NavigationController(scene, config=NavigationConfig())
    >>> controller.load_transformation(rMd)
    >>> controller.start(ReplayPoseStream(samples))
    >>> controller.set_mode("instrument-projection")
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Tuple, Union

from instrument_nav.common.errors import SampleHandlingError
from instrument_nav.common.logging import format_point, get_logger
from instrument_nav.common.transforms import RigidTransform
from instrument_nav.io.pose_stream import PoseSample, PoseStream, Subscription
from instrument_nav.navigation.camera_following import CameraFollowingMode
from instrument_nav.navigation.coordinate_transformer import CoordinateTransformer, TransformLike
from instrument_nav.navigation.instrument_projection import InstrumentProjectionMode
from instrument_nav.navigation.interface import ModeName, NavigationConfig, NavigationMode
from instrument_nav.navigation.rate_limiter import RateLimiter
from instrument_nav.navigation.scene import RenderingScene

logger = get_logger(__name__)

MIN_TARGET_FPS = 10.0
MAX_TARGET_FPS = 60.0
DEFAULT_TARGET_FPS = 20.0


class NavigationController:
    """Mode state machine and pose router.

    Args:
        scene: Rendering collaborator shared by both modes.
        transformer: Register→image transformer. A fresh, empty one is
            created if omitted.
        config: Navigation configuration.
    """

    def __init__(
        self,
        scene: RenderingScene,
        transformer: Optional[CoordinateTransformer] = None,
        config: Optional[NavigationConfig] = None,
    ) -> None:
        self.scene = scene
        self.config = config or NavigationConfig()
        self.transformer = transformer or CoordinateTransformer()

        self._modes: Dict[ModeName, NavigationMode] = {
            ModeName.CAMERA_FOLLOWING: CameraFollowingMode(scene, self.config),
            ModeName.INSTRUMENT_PROJECTION: InstrumentProjectionMode(scene, self.config),
        }
        self._active: Optional[ModeName] = None

        self._limiter = RateLimiter(DEFAULT_TARGET_FPS)
        self.set_target_fps(self.config.target_fps)

        self._subscription: Optional[Subscription] = None
        self._in_update = False
        self._pending_mode: Optional[Tuple[ModeName, bool]] = None
        self._pending_stop = False

        self._reset_counters()

    def _reset_counters(self) -> None:
        self.samples_received = 0
        self.updates_delivered = 0
        self.samples_without_mode = 0
        self.errors = 0
        self.last_error: Optional[SampleHandlingError] = None
        self._first_ms: Optional[float] = None
        self._last_ms: Optional[float] = None
        self._first_update_ms: Optional[float] = None
        self._last_update_ms: Optional[float] = None
        self._limiter.reset()

    def get_mode(self, name: Union[ModeName, str]) -> NavigationMode:
        """Return the mode instance registered under ``name``."""
        return self._modes[ModeName.parse(name)]

    def get_active_mode(self) -> Optional[ModeName]:
        return self._active

    def set_mode(self, name: Union[ModeName, str], force: bool = False) -> bool:
        """Switch the active mode.

        Args:
            name: Target mode, as a ``ModeName`` or its string value.
            force: Re-enter the mode even if it is already active.

        Returns:
            True if a transition happened or was scheduled, False if the mode
            was already active.

        Raises:
            ModeNotFound: If ``name`` is unknown. The current mode is kept.
        """
        target = ModeName.parse(name)

        if self._in_update:
            if target is self._active and not force:
                # Staying put also supersedes an earlier queued switch
                self._pending_mode = None
                logger.debug(f"Already in {target} mode")
                return False
            logger.debug(f"Deferring switch to {target} until the current update returns")
            self._pending_mode = (target, force)
            return True

        return self._switch(target, force)

    def _switch(self, target: ModeName, force: bool) -> bool:
        if target is self._active and not force:
            logger.debug(f"Already in {target} mode")
            return False

        previous = self._active
        if previous is not None:
            outgoing = self._modes[previous]
            outgoing.exit()
            outgoing.cleanup()

        self._active = None
        self._modes[target].enter()
        self._active = target

        logger.info(f"Navigation mode: {previous or 'none'} → {target}")
        return True

    @property
    def is_navigating(self) -> bool:
        return self._subscription is not None and self._subscription.active

    def start(self, stream: PoseStream, mode: Optional[Union[ModeName, str]] = None) -> None:
        """Enter the initial mode and subscribe to ``stream``.

        Args:
            stream: Pose source.
            mode: Initial mode; defaults to ``config.initial_mode``.
        """
        if self.is_navigating:
            logger.warning("Navigation already running")
            return

        initial = ModeName.parse(mode or self.config.initial_mode)
        self._reset_counters()

        bounds = self.scene.volume_bounds()
        if bounds is not None:
            logger.info(f"Volume center: {format_point(bounds.center)}")
        else:
            logger.warning("Volume bounds unavailable; positions will not be clamped")

        self._switch(initial, force=True)
        self._subscription = stream.subscribe(self.handle_pose_sample)
        logger.info(f"Navigation started in {initial} mode at {self.target_fps:.0f} Hz")

    def stop(self) -> None:
        """Unsubscribe from the pose stream and tear down the active mode."""
        if self._in_update:
            self._pending_stop = True
            return

        if self._subscription is None and self._active is None:
            return

        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

        if self._active is not None:
            mode = self._modes[self._active]
            self._active = None
            mode.exit()
            mode.cleanup()

        rate = self.average_rate_hz()
        if self.updates_delivered and rate is not None:
            span_s = (self._last_ms - self._first_ms) / 1000.0
            logger.info(
                f"Navigation stats: {self.updates_delivered} updates in {span_s:.2f}s "
                f"(avg {rate:.1f} Hz)"
            )
        logger.info("Navigation stopped")

    def handle_pose_sample(self, sample: PoseSample) -> Optional[Dict[str, Any]]:
        """Route one register-frame sample to the active mode.

        Returns:
            The mode's output, or None if the sample was dropped (no active
            mode, throttled) or the mode raised.
        """
        self.samples_received += 1
        if self._first_ms is None:
            self._first_ms = sample.timestamp_ms
        self._last_ms = sample.timestamp_ms

        if self._active is None:
            self.samples_without_mode += 1
            if self.samples_without_mode == 1 or self.samples_without_mode % 100 == 0:
                logger.warning(
                    f"No active navigation mode; dropped {self.samples_without_mode} samples"
                )
            return None

        position = self.transformer.to_image_frame(sample.position)
        rotation = None
        if sample.rotation is not None:
            rotation = self.transformer.rotation_to_image_frame(sample.rotation)

        if not self._limiter.accept(sample.timestamp_ms):
            return None

        mode = self._modes[self._active]
        self._in_update = True
        try:
            output = mode.handle_update(position, rotation)
        except Exception as e:
            error = SampleHandlingError(str(mode.name), sample.sequence_id, e)
            self.errors += 1
            self.last_error = error
            logger.error(str(error))
            output = None
        else:
            self.updates_delivered += 1
            if self._first_update_ms is None:
                self._first_update_ms = sample.timestamp_ms
            self._last_update_ms = sample.timestamp_ms
        finally:
            self._in_update = False

        self._apply_deferred()
        return output

    def _apply_deferred(self) -> None:
        if self._pending_stop:
            self._pending_stop = False
            self._pending_mode = None
            self.stop()
            return

        if self._pending_mode is not None:
            target, force = self._pending_mode
            self._pending_mode = None
            self._switch(target, force)

    @property
    def target_fps(self) -> float:
        return self._limiter.target_fps

    def set_target_fps(self, fps: float) -> None:
        """Set the delivery rate. Values outside 10-60 Hz fall back to 20 Hz."""
        if not MIN_TARGET_FPS <= fps <= MAX_TARGET_FPS:
            logger.warning(
                f"Invalid target rate {fps} Hz (valid {MIN_TARGET_FPS:.0f}-{MAX_TARGET_FPS:.0f}); "
                f"using {DEFAULT_TARGET_FPS:.0f} Hz"
            )
            fps = DEFAULT_TARGET_FPS
        self._limiter.set_target_fps(fps)
        logger.info(f"Target update rate: {fps:.0f} Hz")

    def enable_orientation_tracking(self, enable: bool) -> None:
        self._modes[ModeName.CAMERA_FOLLOWING].enable_orientation_tracking(enable)

    def set_extension_length(self, length_mm: float) -> None:
        self._modes[ModeName.INSTRUMENT_PROJECTION].set_extension_length(length_mm)

    def load_transformation(self, transform: TransformLike) -> RigidTransform:
        """Load the register→image transform. See ``CoordinateTransformer.load``."""
        return self.transformer.load(transform)

    def clear_transformation(self) -> None:
        self.transformer.clear()

    def average_rate_hz(self) -> Optional[float]:
        """Delivered update rate over sample time, or None before two updates.

        Measured between the first and last delivered samples, so it never
        exceeds the target rate.
        """
        if self._first_update_ms is None or self._last_update_ms is None:
            return None
        span_s = (self._last_update_ms - self._first_update_ms) / 1000.0
        if span_s <= 0:
            return None
        return (self.updates_delivered - 1) / span_s

    def get_status(self) -> Dict[str, Any]:
        """Snapshot of navigation state for reports and UI."""
        return {
            "navigating": self.is_navigating,
            "mode": None if self._active is None else self._active.value,
            "samples_received": self.samples_received,
            "update_count": self.updates_delivered,
            "samples_throttled": self._limiter.dropped,
            "samples_without_mode": self.samples_without_mode,
            "errors": self.errors,
            "last_error": None if self.last_error is None else str(self.last_error),
            "target_fps": self.target_fps,
            "average_rate_hz": self.average_rate_hz(),
            "transform": self.transformer.get_status(),
        }
