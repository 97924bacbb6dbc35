"""Transform files and navigation reports.

Transform file format (YAML):

    rMd:                      # or register_to_image
      - [r00, r01, r02, tx]
      - [r10, r11, r12, ty]
      - [r20, r21, r22, tz]
      - [0, 0, 0, 1]
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from instrument_nav.common.frames import Frame, describe_transform
from instrument_nav.common.logging import get_logger
from instrument_nav.common.transforms import RigidTransform

logger = get_logger(__name__)

TRANSFORM_KEYS = ("rMd", "register_to_image")


def load_transform_yaml(input_path: Path | str) -> RigidTransform:
    """Load the register→image transform from a YAML file.

    Args:
        input_path: Path to the YAML file.

    Returns:
        The validated RigidTransform.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        InvalidTransform: If the matrix is not a valid rigid transform.
        ValueError: If the file holds no transform.
    """
    input_path = Path(input_path)

    if not input_path.exists():
        raise FileNotFoundError(f"Transform file not found: {input_path}")

    with open(input_path, "r") as f:
        data = yaml.safe_load(f) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Transform file {input_path} must contain a mapping")

    for key in TRANSFORM_KEYS:
        if key in data:
            transform = RigidTransform.from_matrix(data[key])
            break
    else:
        if "rotation" in data and "translation" in data:
            transform = RigidTransform.from_dict(data)
        else:
            raise ValueError(
                f"No transform in {input_path}: expected one of "
                f"{', '.join(TRANSFORM_KEYS)} or rotation+translation"
            )

    logger.info(f"Loaded transform from {input_path}")
    return transform


def export_transform_yaml(
    transform: RigidTransform,
    output_path: Path | str,
    notes: str = "",
) -> Path:
    """Write the register→image transform as a 4x4 ``rMd`` matrix.

    Returns:
        Path to the written file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    data: Dict[str, Any] = {
        "description": describe_transform(Frame.REGISTER, Frame.IMAGE),
        "rMd": transform.to_matrix().tolist(),
    }
    if notes:
        data["notes"] = notes

    with open(output_path, "w") as f:
        yaml.dump(data, f, default_flow_style=None, sort_keys=False, allow_unicode=True)

    logger.info(f"Exported transform to {output_path}")
    return output_path


def export_navigation_report_json(
    status: Dict[str, Any],
    output_path: Path | str,
    config: Optional[Dict[str, Any]] = None,
    updates: Optional[List[Dict[str, Any]]] = None,
    additional_info: Optional[Dict[str, Any]] = None,
) -> Path:
    """Export a navigation run report as JSON.

    Args:
        status: ``NavigationController.get_status()`` at the end of the run.
        output_path: Path to write the JSON file.
        config: Configuration used for the run.
        updates: Per-update output summaries.
        additional_info: Optional additional information to include.

    Returns:
        Path to the written file.
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    report: Dict[str, Any] = {
        "report_version": "1.0",
        "generated_at": datetime.now().isoformat(),
        "status": status,
    }
    if config is not None:
        report["config"] = config
    if updates is not None:
        report["updates"] = updates
    if additional_info:
        report["additional_info"] = additional_info

    with open(output_path, "w") as f:
        json.dump(report, f, indent=2)

    logger.info(f"Exported navigation report to {output_path}")
    return output_path


def export_json(data: Dict[str, Any], output_path: Path | str) -> Path:
    """Write a plain JSON document (used for check reports)."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    with open(output_path, "w") as f:
        json.dump(data, f, indent=2)
    logger.info(f"Wrote {output_path}")
    return output_path
