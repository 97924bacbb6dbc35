"""Tests for CLI functionality."""

from __future__ import annotations

import json
import os
import subprocess
import sys
from pathlib import Path

import pytest
import yaml

SRC_DIR = Path(__file__).parent.parent / "src"


def run_cli(*args: str) -> subprocess.CompletedProcess:
    """Run the CLI in a subprocess with the source tree importable."""
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(SRC_DIR), env.get("PYTHONPATH")]))
    return subprocess.run(
        [sys.executable, "-m", "instrument_nav.cli", *args],
        capture_output=True,
        text=True,
        env=env,
    )


class TestCLIHelp:
    """Tests for CLI help output."""

    def test_main_help(self):
        """Test that --help lists every command."""
        result = run_cli("--help")

        assert result.returncode == 0
        assert "instrument-nav" in result.stdout
        assert "simulate" in result.stdout
        assert "replay" in result.stdout
        assert "check-transform" in result.stdout

    def test_replay_help(self):
        """Test that --help works for replay subcommand."""
        result = run_cli("replay", "--help")

        assert result.returncode == 0
        assert "--session" in result.stdout
        assert "--config" in result.stdout
        assert "--mode" in result.stdout
        assert "--plot" in result.stdout
        assert "--dry-run" in result.stdout

    def test_check_transform_help(self):
        """Test that --help works for check-transform subcommand."""
        result = run_cli("check-transform", "--help")

        assert result.returncode == 0
        assert "--transform" in result.stdout
        assert "--out" in result.stdout

    def test_version(self):
        """Test that --version works."""
        result = run_cli("--version")

        assert result.returncode == 0
        assert "0.1.0" in result.stdout

    def test_no_command(self):
        """Running without a command prints help and succeeds."""
        result = run_cli()

        assert result.returncode == 0


class TestCLIDryRun:
    """Tests for CLI dry-run mode."""

    def test_simulate_dry_run(self, temp_output_dir: Path):
        """Test simulate with --dry-run."""
        out = temp_output_dir / "poses.yaml"

        result = run_cli("simulate", "--out", str(out), "--dry-run")

        assert result.returncode == 0
        assert "DRY-RUN" in result.stdout
        assert not out.exists()

    def test_replay_dry_run(self, sample_session_path: Path, config_path: Path, temp_output_dir: Path):
        """Test replay with --dry-run."""
        result = run_cli(
            "replay",
            "--session", str(sample_session_path),
            "--config", str(config_path / "navigation.yaml"),
            "--out", str(temp_output_dir),
            "--plot",
            "--dry-run",
        )

        assert result.returncode == 0
        assert "DRY-RUN" in result.stdout
        assert not (temp_output_dir / "navigation_report.json").exists()

    def test_check_transform_dry_run(self, sample_session_path: Path, temp_output_dir: Path):
        """Test check-transform with --dry-run."""
        result = run_cli(
            "check-transform",
            "--transform", str(sample_session_path / "transform.yaml"),
            "--out", str(temp_output_dir),
            "--dry-run",
        )

        assert result.returncode == 0
        assert "DRY-RUN" in result.stdout
        assert not (temp_output_dir / "transform_report.json").exists()


class TestCLIIntegration:
    """Integration tests for CLI commands."""

    def test_simulate_writes_log(self, temp_output_dir: Path):
        """Simulated logs load back with the requested sample count."""
        from instrument_nav.io.pose_stream import load_pose_log

        out = temp_output_dir / "poses.yaml"

        result = run_cli("simulate", "--out", str(out), "--n", "25", "--center", "1,2,3", "--seed", "4")

        assert result.returncode == 0, f"Simulate failed: {result.stderr}"
        assert out.exists()
        assert len(load_pose_log(out)) == 25
        with open(out) as f:
            assert yaml.safe_load(f)["metadata"]["generator"] == "circular"

    def test_simulate_bad_center(self, temp_output_dir: Path):
        """Malformed centres are rejected by the parser."""
        result = run_cli("simulate", "--out", str(temp_output_dir / "p.yaml"), "--center", "1,2")

        assert result.returncode != 0

    def test_full_replay_workflow(
        self,
        sample_session_path: Path,
        config_path: Path,
        temp_output_dir: Path,
    ):
        """Test full replay workflow produces the report."""
        result = run_cli(
            "replay",
            "--session", str(sample_session_path),
            "--config", str(config_path / "navigation.yaml"),
            "--out", str(temp_output_dir),
        )

        assert result.returncode == 0, f"Replay failed: {result.stderr}"

        report_json = temp_output_dir / "navigation_report.json"
        assert report_json.exists(), "navigation_report.json not created"

        with open(report_json) as f:
            report = json.load(f)

        assert report["status"]["samples_received"] == 8
        assert report["status"]["update_count"] == 3
        assert len(report["updates"]) == 3
        assert report["additional_info"]["session"] == "sample_session"
        assert report["additional_info"]["update_rate_check"]["passed"]
        assert "Mode: camera-follow" in result.stdout
        assert "Replay Summary" in result.stdout
        assert "PASS" in result.stdout

    def test_replay_projection_with_plot(
        self,
        sample_session_path: Path,
        config_path: Path,
        temp_output_dir: Path,
    ):
        """Projection replays can also plot the last pose."""
        result = run_cli(
            "replay",
            "--session", str(sample_session_path),
            "--config", str(config_path / "navigation.yaml"),
            "--out", str(temp_output_dir),
            "--mode", "instrument-projection",
            "--plot",
        )

        assert result.returncode == 0, f"Replay failed: {result.stderr}"
        assert (temp_output_dir / "navigation_report.json").exists()
        assert (temp_output_dir / "projection_3d.png").exists()

    def test_replay_missing_session(self, config_path: Path, temp_output_dir: Path):
        """Missing sessions fail with an error."""
        result = run_cli(
            "replay",
            "--session", str(temp_output_dir / "missing"),
            "--config", str(config_path / "navigation.yaml"),
            "--out", str(temp_output_dir),
        )

        assert result.returncode == 1
        assert "ERROR" in result.stdout

    def test_check_transform(self, sample_session_path: Path, temp_output_dir: Path):
        """The sample transform passes its sanity check."""
        result = run_cli(
            "check-transform",
            "--transform", str(sample_session_path / "transform.yaml"),
            "--out", str(temp_output_dir),
        )

        assert result.returncode == 0, f"Check failed: {result.stderr}"

        with open(temp_output_dir / "transform_report.json") as f:
            report = json.load(f)

        assert report["sanity_check"]["passed"]
        assert report["euler_xyz_deg"][2] == pytest.approx(90.0)
        assert "Transform Summary" in result.stdout
        assert "PASS" in result.stdout

    def test_check_transform_out_of_range(self, temp_output_dir: Path):
        """A far-away translation fails the check."""
        path = temp_output_dir / "far.yaml"
        path.write_text(yaml.dump({"rMd": [[1, 0, 0, 0], [0, 1, 0, 0], [0, 0, 1, 9000], [0, 0, 0, 1]]}))

        result = run_cli("check-transform", "--transform", str(path), "--out", str(temp_output_dir))

        assert result.returncode == 1
        assert (temp_output_dir / "transform_report.json").exists()
