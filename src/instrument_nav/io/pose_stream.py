"""Pose samples and pose streams.

``PoseSample`` is the ingestion boundary: whatever shape the tracker ships
the orientation in (nested 4x4, flat 16, 3x3, flat 9 or a ``[w, x, y, z]``
quaternion) is canonicalized here to a row-major 3x3 matrix, so nothing
downstream branches on array shapes.

A pose stream hands samples to subscribers and returns a cancellable
``Subscription``. ``ReplayPoseStream`` replays recorded or simulated samples
synchronously.

Pose log format (YAML or JSON):

    samples:
      - position: [x, y, z]           # or position_mm
        matrix: [[...4x4...]]         # or quaternion [w, x, y, z], or rotation 3x3
        timestamp_ms: 0.0             # or timestamp
        sequence_id: 0                # or frame_id
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

import numpy as np
import yaml
from numpy.typing import ArrayLike, NDArray

from instrument_nav.common.logging import get_logger
from instrument_nav.common.transforms import to_rotation_matrix

logger = get_logger(__name__)

PoseCallback = Callable[["PoseSample"], Any]


@dataclass(frozen=True, eq=False)
class PoseSample:
    """One tracked instrument pose in the register frame.

    Attributes:
        position: Instrument position (mm).
        rotation: 3x3 row-major rotation, or None for position-only sources.
        timestamp_ms: Source timestamp in milliseconds.
        sequence_id: Source frame counter.
    """

    position: NDArray[np.float64]
    rotation: Optional[NDArray[np.float64]]
    timestamp_ms: float
    sequence_id: int = 0

    def __post_init__(self) -> None:
        position = np.array(self.position, dtype=np.float64).flatten()
        if position.shape != (3,):
            raise ValueError(f"Pose position must have 3 elements, got {position.shape}")
        if not np.all(np.isfinite(position)):
            raise ValueError(f"Pose position contains NaN or Inf: {position.tolist()}")
        object.__setattr__(self, "position", position)

        if self.rotation is not None:
            object.__setattr__(self, "rotation", to_rotation_matrix(self.rotation))

        object.__setattr__(self, "timestamp_ms", float(self.timestamp_ms))
        object.__setattr__(self, "sequence_id", int(self.sequence_id))

    @classmethod
    def from_matrix(
        cls,
        matrix: ArrayLike,
        timestamp_ms: float,
        sequence_id: int = 0,
    ) -> "PoseSample":
        """Create from a 4x4 (nested or flat) pose matrix.

        The position is the matrix translation column.
        """
        M = np.asarray(matrix, dtype=np.float64)
        if M.ndim == 1 and M.size >= 16:
            M = M[:16].reshape(4, 4)
        if M.shape != (4, 4):
            raise ValueError(f"Expected 4x4 or flat 16-element pose matrix, got {M.shape}")
        return cls(
            position=M[:3, 3],
            rotation=M[:3, :3],
            timestamp_ms=timestamp_ms,
            sequence_id=sequence_id,
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PoseSample":
        """Create from a pose log entry or tracker message.

        Raises:
            ValueError: If position or timestamp is missing, or the
                orientation shape is not recognized.
        """
        timestamp = data.get("timestamp_ms", data.get("timestamp"))
        if timestamp is None:
            raise ValueError(f"Pose sample has no timestamp: keys {sorted(data)}")
        sequence_id = data.get("sequence_id", data.get("frame_id", 0))
        position = data.get("position", data.get("position_mm"))

        if "matrix" in data and data["matrix"] is not None:
            if position is None:
                return cls.from_matrix(data["matrix"], timestamp, sequence_id)
            rotation = data["matrix"]
        elif data.get("quaternion") is not None:
            rotation = data["quaternion"]
        else:
            rotation = data.get("rotation")

        if position is None:
            raise ValueError(f"Pose sample has no position: keys {sorted(data)}")

        return cls(
            position=position,
            rotation=rotation,
            timestamp_ms=timestamp,
            sequence_id=sequence_id,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "position": self.position.tolist(),
            "rotation": None if self.rotation is None else self.rotation.tolist(),
            "timestamp_ms": self.timestamp_ms,
            "sequence_id": self.sequence_id,
        }


class Subscription:
    """Cancellable handle returned by ``PoseStream.subscribe``."""

    def __init__(self, on_cancel: Callable[[], None]) -> None:
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        """Stop delivery. Safe to call more than once."""
        if not self._active:
            return
        self._active = False
        self._on_cancel()


class PoseStream(Protocol):
    """Push source of pose samples."""

    def subscribe(self, callback: PoseCallback) -> Subscription:
        ...


class ReplayPoseStream:
    """Replays a fixed list of samples to its subscribers, in order.

    Delivery is synchronous: ``play`` returns once every sample has been
    handed to every subscriber that is still subscribed at that point.
    """

    def __init__(self, samples: Iterable[PoseSample]) -> None:
        self._samples: List[PoseSample] = list(samples)
        self._subscribers: Dict[int, PoseCallback] = {}
        self._next_token = 0

    def __len__(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> List[PoseSample]:
        return list(self._samples)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def subscribe(self, callback: PoseCallback) -> Subscription:
        token = self._next_token
        self._next_token += 1
        self._subscribers[token] = callback
        return Subscription(lambda: self._subscribers.pop(token, None))

    def play(self) -> int:
        """Deliver all samples. Returns the number of samples delivered."""
        delivered = 0
        for sample in self._samples:
            if not self._subscribers:
                break
            for token in list(self._subscribers):
                callback = self._subscribers.get(token)
                if callback is not None:
                    callback(sample)
            delivered += 1
        logger.debug(f"Replayed {delivered}/{len(self._samples)} samples")
        return delivered


def load_pose_log(path: Path | str) -> List[PoseSample]:
    """Load pose samples from a YAML or JSON log.

    Args:
        path: Path to the log. ``.json`` files are read as JSON, anything
            else as YAML.

    Returns:
        Samples in file order.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        ValueError: If the file has no sample list or a sample is invalid.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Pose log not found: {path}")

    with open(path, "r") as f:
        if path.suffix.lower() == ".json":
            data = json.load(f)
        else:
            data = yaml.safe_load(f)

    entries = data.get("samples") if isinstance(data, dict) else data
    if not isinstance(entries, list):
        raise ValueError(f"Pose log {path} has no 'samples' list")

    samples = []
    for i, entry in enumerate(entries):
        try:
            samples.append(PoseSample.from_dict(entry))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid pose sample #{i} in {path}: {e}") from e

    logger.info(f"Loaded {len(samples)} pose samples from {path}")
    return samples


def save_pose_log(
    samples: Iterable[PoseSample],
    path: Path | str,
    metadata: Optional[Dict[str, Any]] = None,
) -> Path:
    """Write pose samples to a YAML (or ``.json``) log.

    Returns:
        Path to the written file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data: Dict[str, Any] = {}
    if metadata:
        data["metadata"] = metadata
    data["samples"] = [s.to_dict() for s in samples]

    with open(path, "w") as f:
        if path.suffix.lower() == ".json":
            json.dump(data, f, indent=2)
        else:
            yaml.dump(data, f, default_flow_style=None, sort_keys=False)

    logger.info(f"Wrote {len(data['samples'])} pose samples to {path}")
    return path
