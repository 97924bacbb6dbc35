"""Offline replay of recorded navigation sessions.

Runs a session's pose log through a ``NavigationController`` over the
session's in-memory scene and collects what each delivered update produced.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import numpy as np
from numpy.typing import NDArray

from instrument_nav.common.logging import get_logger
from instrument_nav.io.pose_stream import PoseSample, ReplayPoseStream
from instrument_nav.io.session import SessionData
from instrument_nav.navigation.controller import NavigationController
from instrument_nav.navigation.instrument_projection import InstrumentProjectionMode
from instrument_nav.navigation.interface import ModeName, NavigationConfig
from instrument_nav.navigation.projection import ProjectionInstruction
from instrument_nav.navigation.types import ToolRepresentation

logger = get_logger(__name__)


@dataclass
class ReplayResult:
    """Outcome of a replayed session.

    Attributes:
        status: Controller status at the end of the run.
        updates: One summary per delivered update.
        trajectory: Nx3 image-frame positions of the delivered samples.
        last_tool: Tool ray of the last delivered sample.
        last_instructions: Projection output of the last delivered update in
            instrument-projection mode.
    """

    status: Dict[str, Any]
    updates: List[Dict[str, Any]] = field(default_factory=list)
    trajectory: NDArray[np.float64] = field(default_factory=lambda: np.zeros((0, 3)))
    last_tool: Optional[ToolRepresentation] = None
    last_instructions: Dict[str, ProjectionInstruction] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "status": self.status,
            "num_updates": len(self.updates),
            "updates": self.updates,
        }


def _summarize(outputs: Dict[str, Any]) -> Dict[str, Any]:
    return {key: value.to_dict() for key, value in outputs.items()}


def replay_session(
    session: SessionData,
    config: Optional[NavigationConfig] = None,
    mode: Optional[Union[ModeName, str]] = None,
) -> ReplayResult:
    """Replay a session's poses through a fresh controller.

    Args:
        session: Loaded session.
        config: Navigation configuration.
        mode: Mode to run in; defaults to ``config.initial_mode``.

    Returns:
        ReplayResult with per-update summaries and final status.
    """
    config = config or NavigationConfig()
    controller = NavigationController(session.scene, config=config)
    if session.transform is not None:
        controller.load_transformation(session.transform)

    updates: List[Dict[str, Any]] = []
    trajectory: List[NDArray[np.float64]] = []
    last_sample: Optional[PoseSample] = None
    last_instructions: Dict[str, ProjectionInstruction] = {}

    def record(sample: PoseSample) -> None:
        nonlocal last_sample
        active = controller.get_active_mode()
        outputs = controller.handle_pose_sample(sample)
        if outputs is None:
            return
        updates.append({
            "sequence_id": sample.sequence_id,
            "timestamp_ms": sample.timestamp_ms,
            "mode": None if active is None else active.value,
            "outputs": _summarize(outputs),
        })
        trajectory.append(controller.transformer.to_image_frame(sample.position))
        last_sample = sample
        if active is ModeName.INSTRUMENT_PROJECTION:
            last_instructions.clear()
            last_instructions.update(outputs)

    stream = ReplayPoseStream(session.samples)
    subscription = stream.subscribe(record)
    controller.set_mode(mode or config.initial_mode)

    stream.play()

    subscription.unsubscribe()
    status = controller.get_status()

    last_tool = None
    if last_sample is not None:
        rotation = None
        if last_sample.rotation is not None:
            rotation = controller.transformer.rotation_to_image_frame(last_sample.rotation)
        projection: InstrumentProjectionMode = controller.get_mode(ModeName.INSTRUMENT_PROJECTION)
        last_tool = projection.tool_from_pose(
            controller.transformer.to_image_frame(last_sample.position), rotation
        )

    controller.stop()

    logger.info(
        f"Replayed {status['samples_received']} samples of '{session.name}': "
        f"{status['update_count']} updates, {status['errors']} errors"
    )

    return ReplayResult(
        status=status,
        updates=updates,
        trajectory=np.array(trajectory).reshape(-1, 3),
        last_tool=last_tool,
        last_instructions=last_instructions,
    )
