"""Console and logging setup for the navigation core.

Library modules log through ``get_logger(__name__)``; the per-sample paths
keep their messages short and use ``format_point`` for positions. The CLI
and scripts print through the shared Rich ``console``: one-line status
messages plus ``print_summary`` tables at the end of a run.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.theme import Theme


THEME = Theme({
    "info": "cyan",
    "warning": "yellow",
    "error": "red bold",
    "success": "green",
    "debug": "dim",
    "mode": "bold magenta",
    "pass": "bold green",
    "fail": "bold red",
})

console = Console(theme=THEME)

# Third-party loggers that flood DEBUG output while plotting
NOISY_LOGGERS = ("matplotlib", "PIL")


def setup_logging(
    level: int = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
) -> None:
    """Route all logging through a Rich handler on the shared console.

    Args:
        level: Logging level (e.g., logging.INFO, logging.DEBUG).
        log_file: Optional path to also log to a file, with timestamps and
            logger names so per-sample traces can be grepped after a replay.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    rich_handler = RichHandler(
        console=console,
        show_time=True,
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        markup=False,
    )
    rich_handler.setLevel(level)
    rich_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(rich_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        root_logger.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def format_point(point, precision: int = 1) -> str:
    """Format a 3D point for log output, e.g. ``[1.0, 2.0, 3.0]``."""
    return "[" + ", ".join(f"{float(v):.{precision}f}" for v in point) + "]"


def format_verdict(passed: bool) -> str:
    """Rich markup for a PASS/FAIL check result."""
    return "[pass]PASS[/pass]" if passed else "[fail]FAIL[/fail]"


def print_banner() -> None:
    """Print the tool banner."""
    from instrument_nav import __version__

    console.print()
    console.print("[bold cyan]Instrument Navigation Core[/bold cyan]", justify="center")
    console.print(f"[dim]Version {__version__}[/dim]", justify="center")
    console.print()


def print_summary(title: str, rows: Mapping[str, Any]) -> Table:
    """Print a two-column summary table and return it.

    Floats are shown with two decimals; ``None`` is shown as ``-``.
    """
    table = Table(title=title, show_header=False, title_justify="left")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for key, value in rows.items():
        if value is None:
            text = "-"
        elif isinstance(value, float):
            text = f"{value:.2f}"
        else:
            text = str(value)
        table.add_row(key, text)
    console.print()
    console.print(table)
    return table


def print_mode(name: str) -> None:
    """Announce the navigation mode a run uses."""
    console.print(f"[info][INFO][/info] Mode: [mode]{name}[/mode]")


def print_success(message: str) -> None:
    console.print(f"[success][OK][/success] {message}")


def print_error(message: str) -> None:
    console.print(f"[error][ERROR][/error] {message}")


def print_warning(message: str) -> None:
    console.print(f"[warning][WARN][/warning] {message}")


def print_info(message: str) -> None:
    console.print(f"[info][INFO][/info] {message}")
