#!/usr/bin/env python
"""Simulation script for the navigation controller.

This script generates a circular instrument sweep, replays it through
both navigation modes against a synthetic scene, and reports throttling
and projection statistics.

Usage:
    python scripts/sim_run_navigation.py --n 500 --rate 120 --fps 30 --out report.json
"""

from __future__ import annotations

import argparse
import json
import sys
from collections import Counter
from pathlib import Path

# Add src to path for development
src_path = Path(__file__).parent.parent / "src"
if src_path.exists():
    sys.path.insert(0, str(src_path))

from instrument_nav.common.logging import (
    format_verdict,
    print_info,
    print_success,
    print_summary,
    setup_logging,
)
from instrument_nav.common.transforms import RigidTransform
from instrument_nav.io.scene import InMemoryScene, InMemoryViewport, orthogonal_viewports
from instrument_nav.io.session import SessionData
from instrument_nav.metrics.sanity_checks import check_update_rate
from instrument_nav.navigation.interface import NavigationConfig
from instrument_nav.navigation.scene import ViewportKind
from instrument_nav.navigation.types import CameraPose, VolumeBounds
from instrument_nav.replay import replay_session
from instrument_nav.sim import TrajectoryConfig, simulate_circular_trajectory


def build_scene() -> InMemoryScene:
    volume = InMemoryViewport(
        "volume3d",
        ViewportKind.VOLUME_3D,
        CameraPose(focal_point=[0, 0, 0], position=[0, -400, 0], view_up=[0, 0, 1]),
    )
    return InMemoryScene(
        viewports=orthogonal_viewports([0, 0, 0]) + [volume],
        bounds=VolumeBounds.from_extent([-100, 100, -100, 100, -100, 100]),
    )


def main():
    parser = argparse.ArgumentParser(
        description="Run the navigation controller on a simulated sweep"
    )
    parser.add_argument(
        "--n", type=int, default=300,
        help="Number of samples to simulate (default: 300)"
    )
    parser.add_argument(
        "--rate", type=float, default=100.0,
        help="Tracker rate in Hz (default: 100)"
    )
    parser.add_argument(
        "--fps", type=float, default=20.0,
        help="Target update rate (default: 20)"
    )
    parser.add_argument(
        "--noise", type=float, default=0.2,
        help="Position jitter standard deviation in mm (default: 0.2)"
    )
    parser.add_argument(
        "--seed", type=int, default=None,
        help="Random seed for reproducibility"
    )
    parser.add_argument(
        "--out", type=str, default=None,
        help="Output JSON report path"
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args()

    # Setup logging
    import logging
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    print_info(f"Simulating {args.n} samples at {args.rate} Hz with noise sigma={args.noise} mm")

    transform = RigidTransform.identity()
    samples = simulate_circular_trajectory(
        TrajectoryConfig(n_samples=args.n, rate_hz=args.rate, noise_mm=args.noise, seed=args.seed),
        register_to_image=transform,
    )
    config = NavigationConfig(target_fps=args.fps)

    report = {"n_samples": args.n, "source_rate_hz": args.rate, "target_fps": args.fps, "modes": {}}

    print("\n" + "=" * 60)
    print("NAVIGATION RESULTS")
    print("=" * 60)

    for mode in ("camera-follow", "instrument-projection"):
        session = SessionData(
            session_path=Path("simulated"),
            session_yaml={"name": "simulated"},
            scene=build_scene(),
            samples=samples,
            transform=transform,
        )
        result = replay_session(session, config, mode=mode)
        status = result.status
        rate_check = check_update_rate(samples, args.fps, status["average_rate_hz"])

        kinds = Counter(
            out["kind"]
            for update in result.updates
            for out in update["outputs"].values()
            if "kind" in out
        )

        print_summary(f"Mode: {mode}", {
            "Updates": f"{status['update_count']} / {status['samples_received']}",
            "Throttled": status["samples_throttled"],
            "Errors": status["errors"],
            "Rate (Hz)": status["average_rate_hz"],
            "Target (Hz)": args.fps,
            "Projections": ", ".join(f"{k}={v}" for k, v in sorted(kinds.items())) or None,
            "Rate check": format_verdict(rate_check.passed),
        })

        report["modes"][mode] = {
            "status": status,
            "projection_kinds": dict(kinds),
            "update_rate_check": rate_check.to_dict(),
        }

    print("=" * 60)

    if args.out:
        with open(args.out, "w") as f:
            json.dump(report, f, indent=2)
        print_success(f"Report saved to {args.out}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
