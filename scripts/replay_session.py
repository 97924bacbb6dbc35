#!/usr/bin/env python3
"""Replay script - thin wrapper around the library replay command.

Usage:
    python scripts/replay_session.py --session <path> --config <navigation.yaml> --out <dir>
"""

from __future__ import annotations

import argparse
from pathlib import Path
import sys

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from instrument_nav.cli import cmd_replay


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Replay a recorded instrument navigation session",
    )
    parser.add_argument(
        "--session",
        type=Path,
        required=True,
        help="Path to navigation session directory",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(__file__).parent.parent / "configs" / "navigation.yaml",
        help="Path to navigation configuration file",
    )
    parser.add_argument(
        "--out",
        type=Path,
        required=True,
        help="Output directory",
    )
    parser.add_argument(
        "--mode",
        choices=["camera-follow", "instrument-projection"],
        default=None,
        help="Navigation mode (default: from config)",
    )
    parser.add_argument(
        "--plot",
        action="store_true",
        help="Write projection_3d.png",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Dry run mode",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Verbose output",
    )

    args = parser.parse_args()

    from instrument_nav.common.logging import setup_logging
    import logging

    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    return cmd_replay(args)


if __name__ == "__main__":
    sys.exit(main())
