"""Tests for console and logging helpers."""

from __future__ import annotations

import logging

import pytest

from instrument_nav.common.logging import (
    NOISY_LOGGERS,
    console,
    format_point,
    format_verdict,
    print_summary,
    setup_logging,
)


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_noisy_loggers_quieted_at_debug(self, restore_logging):
        """Plotting libraries stay at WARNING while navigation logs at DEBUG."""
        setup_logging(logging.DEBUG)

        assert logging.getLogger().level == logging.DEBUG
        for name in NOISY_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING

    def test_log_file(self, restore_logging, tmp_path):
        """A log file receives messages with their logger name."""
        log_file = tmp_path / "nav.log"
        setup_logging(logging.INFO, log_file=log_file)

        logging.getLogger("instrument_nav.test").info("Navigation started")
        for handler in logging.getLogger().handlers:
            handler.flush()

        text = log_file.read_text()
        assert "instrument_nav.test" in text
        assert "Navigation started" in text


class TestFormatting:
    """Tests for message formatting helpers."""

    def test_format_point(self):
        assert format_point([1, 2.26, -3]) == "[1.0, 2.3, -3.0]"
        assert format_point([1, 2, 3], precision=2) == "[1.00, 2.00, 3.00]"

    def test_format_verdict(self):
        assert "PASS" in format_verdict(True)
        assert "FAIL" in format_verdict(False)


class TestPrintSummary:
    """Tests for summary tables."""

    def test_rows_rendered(self):
        """Floats use two decimals and None is shown as a dash."""
        with console.capture() as capture:
            table = print_summary("Replay Summary", {
                "Updates delivered": 3,
                "Average rate (Hz)": 19.876,
                "Last error": None,
                "Update rate check": format_verdict(True),
            })

        assert table.row_count == 4
        output = capture.get()
        assert "Replay Summary" in output
        assert "19.88" in output
        assert "-" in output
        assert "PASS" in output
        assert "[pass]" not in output
