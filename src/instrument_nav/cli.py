"""Command-line interface for the Instrument Navigation Core.

This module provides the main CLI entrypoint with subcommands for:
- simulate: Generate a synthetic circular pose log
- replay: Replay a recorded session through the navigation controller
- check-transform: Validate a register→image transform
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
import logging

from instrument_nav import __version__
from instrument_nav.common.logging import (
    setup_logging,
    get_logger,
    print_banner,
    print_success,
    print_error,
    print_info,
    print_warning,
    print_mode,
    print_summary,
    format_verdict,
    console,
)

logger = get_logger(__name__)


def main() -> int:
    """Main CLI entrypoint."""
    parser = create_parser()
    args = parser.parse_args()

    # Setup logging
    log_level = logging.DEBUG if getattr(args, "verbose", False) else logging.INFO
    setup_logging(level=log_level)

    # Dispatch to subcommand
    if hasattr(args, "func"):
        try:
            return args.func(args)
        except Exception as e:
            print_error(f"Error: {e}")
            if getattr(args, "verbose", False):
                console.print_exception()
            return 1
    else:
        parser.print_help()
        return 0


def _parse_center(text: str):
    parts = [p for p in text.replace(",", " ").split() if p]
    if len(parts) != 3:
        raise argparse.ArgumentTypeError(f"Expected 'x,y,z', got {text!r}")
    try:
        return tuple(float(p) for p in parts)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Expected numbers in 'x,y,z', got {text!r}") from None


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="instrument-nav",
        description="Instrument Navigation Core - replay and check surgical instrument navigation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Generate a synthetic pose log
  instrument-nav simulate --out ./poses.yaml --n 300 --radius 40

  # Replay a session in projection mode and plot the last pose
  instrument-nav replay --session ./my_session --config configs/navigation.yaml --out ./output --mode instrument-projection --plot

  # Check a transform
  instrument-nav check-transform --transform ./my_session/transform.yaml --out ./output
""",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
    )

    # Simulate subcommand
    simulate_parser = subparsers.add_parser(
        "simulate",
        help="Generate a synthetic circular pose log",
    )
    simulate_parser.add_argument(
        "--out",
        type=Path,
        required=True,
        help="Output pose log (.yaml or .json)",
    )
    simulate_parser.add_argument(
        "--n",
        type=int,
        default=200,
        help="Number of samples (default: 200)",
    )
    simulate_parser.add_argument(
        "--radius",
        type=float,
        default=50.0,
        help="Circle radius in mm (default: 50)",
    )
    simulate_parser.add_argument(
        "--rate",
        type=float,
        default=100.0,
        help="Sample rate in Hz (default: 100)",
    )
    simulate_parser.add_argument(
        "--center",
        type=_parse_center,
        default=(0.0, 0.0, 0.0),
        help="Circle centre as 'x,y,z' in mm (default: 0,0,0)",
    )
    simulate_parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Random seed for position jitter",
    )
    simulate_parser.add_argument(
        "--noise",
        type=float,
        default=0.0,
        help="Position jitter standard deviation in mm (default: 0)",
    )
    simulate_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )
    simulate_parser.set_defaults(func=cmd_simulate)

    # Replay subcommand
    replay_parser = subparsers.add_parser(
        "replay",
        help="Replay a recorded session through the navigation controller",
    )
    replay_parser.add_argument(
        "--session",
        type=Path,
        required=True,
        help="Path to navigation session directory",
    )
    replay_parser.add_argument(
        "--config",
        type=Path,
        required=True,
        help="Path to navigation configuration file",
    )
    replay_parser.add_argument(
        "--out",
        type=Path,
        required=True,
        help="Output directory for navigation_report.json",
    )
    replay_parser.add_argument(
        "--mode",
        choices=["camera-follow", "instrument-projection"],
        default=None,
        help="Navigation mode (default: initial_mode from config)",
    )
    replay_parser.add_argument(
        "--plot",
        action="store_true",
        help="Also write projection_3d.png for the last delivered pose",
    )
    replay_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )
    replay_parser.set_defaults(func=cmd_replay)

    # Check-transform subcommand
    check_parser = subparsers.add_parser(
        "check-transform",
        help="Validate a register→image transform",
    )
    check_parser.add_argument(
        "--transform",
        type=Path,
        required=True,
        help="Path to transform YAML (rMd 4x4 matrix)",
    )
    check_parser.add_argument(
        "--out",
        type=Path,
        required=True,
        help="Output directory for transform_report.json",
    )
    check_parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes",
    )
    check_parser.set_defaults(func=cmd_check_transform)

    return parser


def cmd_simulate(args: argparse.Namespace) -> int:
    """Run simulate command."""
    print_banner()

    output_path = args.out.resolve()
    print_info(f"Output: {output_path}")

    if args.dry_run:
        print_info("[DRY-RUN] Would perform the following:")
        print_info(f"  1. Simulate {args.n} samples on a {args.radius}mm circle at {args.rate} Hz")
        print_info(f"  2. Write pose log to {output_path}")
        return 0

    from instrument_nav.io.pose_stream import save_pose_log
    from instrument_nav.sim import TrajectoryConfig, simulate_circular_trajectory

    config = TrajectoryConfig(
        n_samples=args.n,
        radius_mm=args.radius,
        rate_hz=args.rate,
        center=args.center,
        noise_mm=args.noise,
        seed=args.seed,
    )
    samples = simulate_circular_trajectory(config)

    save_pose_log(samples, output_path, metadata={"generator": "circular", **config.to_dict()})
    print_success(f"Exported: {output_path}")

    return 0


def cmd_replay(args: argparse.Namespace) -> int:
    """Run replay command."""
    print_banner()

    session_path = args.session.resolve()
    config_path = args.config.resolve()
    output_dir = args.out.resolve()

    print_info(f"Session: {session_path}")
    print_info(f"Config: {config_path}")
    print_info(f"Output: {output_dir}")

    if args.dry_run:
        print_info("[DRY-RUN] Would perform the following:")
        print_info(f"  1. Load session from {session_path}")
        print_info(f"  2. Load config from {config_path}")
        print_info("  3. Replay poses through the navigation controller")
        print_info(f"  4. Export report to {output_dir / 'navigation_report.json'}")
        if args.plot:
            print_info(f"  5. Plot last pose to {output_dir / 'projection_3d.png'}")
        return 0

    from instrument_nav.io.session import load_session
    from instrument_nav.io.export import export_navigation_report_json
    from instrument_nav.metrics.sanity_checks import check_update_rate
    from instrument_nav.navigation.interface import NavigationConfig
    from instrument_nav.replay import replay_session

    # Load session and config
    logger.info("Loading session...")
    session = load_session(session_path)

    logger.info("Loading configuration...")
    config = NavigationConfig.from_yaml(config_path)
    print_mode(args.mode or config.initial_mode)

    # Replay
    logger.info("Replaying poses...")
    result = replay_session(session, config, mode=args.mode)
    status = result.status

    rate_check = check_update_rate(
        session.samples,
        target_fps=status["target_fps"],
        delivered_rate_hz=status["average_rate_hz"],
    )

    # Export
    output_dir.mkdir(parents=True, exist_ok=True)

    report_path = export_navigation_report_json(
        status,
        output_dir / "navigation_report.json",
        config=config.to_dict(),
        updates=result.updates,
        additional_info={
            "session": session.name,
            "session_path": str(session_path),
            "update_rate_check": rate_check.to_dict(),
        },
    )
    print_success(f"Exported: {report_path}")

    if args.plot:
        if result.last_tool is None:
            print_warning("No update was delivered; skipping plot")
        else:
            import matplotlib.pyplot as plt
            from instrument_nav.navigation.scene import is_slice_viewport
            from instrument_nav.viz.navigation_3d import plot_navigation_3d

            planes = [vp.viewing_plane() for vp in session.scene.get_viewports()
                      if is_slice_viewport(vp)]
            plot_path = output_dir / "projection_3d.png"
            plot_navigation_3d(
                result.last_tool,
                planes,
                instructions=result.last_instructions,
                bounds=session.scene.volume_bounds(),
                trajectory=result.trajectory,
                output_path=plot_path,
                title=f"Session {session.name}",
                slice_threshold_mm=config.slice_threshold_mm,
            )
            plt.close('all')
            print_success(f"Exported: {plot_path}")

    # Print summary
    print_summary("Replay Summary", {
        "Samples received": status["samples_received"],
        "Updates delivered": status["update_count"],
        "Samples throttled": status["samples_throttled"],
        "Average rate (Hz)": status["average_rate_hz"],
        "Errors": status["errors"],
        "Update rate check": format_verdict(rate_check.passed),
    })

    return 0


def cmd_check_transform(args: argparse.Namespace) -> int:
    """Run check-transform command."""
    print_banner()

    transform_path = args.transform.resolve()
    output_dir = args.out.resolve()

    print_info(f"Transform: {transform_path}")
    print_info(f"Output: {output_dir}")

    if args.dry_run:
        print_info("[DRY-RUN] Would perform the following:")
        print_info(f"  1. Load transform from {transform_path}")
        print_info("  2. Run sanity checks")
        print_info(f"  3. Export report to {output_dir / 'transform_report.json'}")
        return 0

    from instrument_nav.common.transforms import rotation_matrix_to_euler
    from instrument_nav.io.export import export_json, load_transform_yaml
    from instrument_nav.metrics.sanity_checks import check_transform_sanity

    logger.info("Loading transform...")
    transform = load_transform_yaml(transform_path)

    logger.info("Running sanity checks...")
    check = check_transform_sanity(transform)

    report = {
        "transform_path": str(transform_path),
        "rMd": transform.to_matrix().tolist(),
        "euler_xyz_deg": rotation_matrix_to_euler(transform.rotation, degrees=True).tolist(),
        "sanity_check": check.to_dict(),
    }

    output_dir.mkdir(parents=True, exist_ok=True)
    report_path = export_json(report, output_dir / "transform_report.json")
    print_success(f"Exported: {report_path}")

    # Print summary
    print_summary("Transform Summary", {
        "Translation (mm)": check.translation_magnitude_mm,
        "Rotation (deg)": check.rotation_angle_deg,
        "Identity": check.is_identity,
        "Sanity check": format_verdict(check.passed),
    })

    return 0 if check.passed else 1


if __name__ == "__main__":
    sys.exit(main())
