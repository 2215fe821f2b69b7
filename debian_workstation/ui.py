"""
Console UI & Logging
--------------------

Nord-themed rich console, pyfiglet banners, status helpers and the logger
used by every module of the package.
"""

import logging
import os
import shutil
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

import pyfiglet
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.style import Style
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

from debian_workstation import __version__


# ----------------------------------------------------------------
# Nord Color Theme & Console Setup
# ----------------------------------------------------------------
class NordColors:
    """Nord color palette for consistent styling."""

    POLAR_NIGHT_1: str = "#2E3440"
    POLAR_NIGHT_4: str = "#4C566A"
    SNOW_STORM_1: str = "#D8DEE9"
    FROST_1: str = "#8FBCBB"
    FROST_2: str = "#88C0D0"
    FROST_3: str = "#81A1C1"
    FROST_4: str = "#5E81AC"
    RED: str = "#BF616A"
    YELLOW: str = "#EBCB8B"
    GREEN: str = "#A3BE8C"


nord_theme = Theme(
    {
        "info": f"{NordColors.FROST_2}",
        "warning": f"{NordColors.YELLOW}",
        "error": f"{NordColors.RED}",
        "success": f"{NordColors.GREEN}",
        "debug": f"{NordColors.POLAR_NIGHT_4}",
        "header": f"bold {NordColors.FROST_1}",
    }
)

console = Console(theme=nord_theme, highlight=False)

STATUS_STYLES = {
    "success": NordColors.GREEN,
    "failed": NordColors.RED,
    "skipped": NordColors.POLAR_NIGHT_4,
    "in_progress": NordColors.YELLOW,
    "pending": NordColors.FROST_3,
}


# ----------------------------------------------------------------
# UI Helper Functions
# ----------------------------------------------------------------
def create_header(title: str) -> Panel:
    """
    Generate an ASCII art header with gradient styling using Pyfiglet.

    Args:
        title: The title text to display in the ASCII art

    Returns:
        A Rich Panel containing the styled ASCII art header
    """
    term_width = shutil.get_terminal_size().columns
    adjusted_width = min(term_width - 4, 80)

    ascii_art = ""
    for font in ("slant", "small", "standard"):
        try:
            ascii_art = pyfiglet.Figlet(font=font, width=adjusted_width).renderText(
                title
            )
        except pyfiglet.FontNotFound:
            continue
        if ascii_art.strip():
            break

    colors = [
        NordColors.FROST_1,
        NordColors.FROST_2,
        NordColors.FROST_3,
        NordColors.FROST_4,
    ]
    styled_text = Text()
    ascii_lines = [line for line in ascii_art.splitlines() if line.strip()]
    for i, line in enumerate(ascii_lines):
        styled_text.append(line, style=Style(color=colors[i % len(colors)], bold=True))
        styled_text.append("\n")

    return Panel(
        styled_text,
        border_style=Style(color=NordColors.FROST_1),
        padding=(1, 2),
        title=f"v{__version__}",
        title_align="right",
    )


def print_section(title: str) -> None:
    console.print()
    console.print(f"[bold {NordColors.FROST_3}]{title}[/]")
    console.print(f"[{NordColors.FROST_3}]{'─' * len(title)}[/]")


def print_message(
    text: str, style: str = NordColors.FROST_2, prefix: str = "•"
) -> None:
    """Print a styled message with a prefix."""
    console.print(f"[{style}]{prefix} {text}[/{style}]")


def print_success(message: str) -> None:
    print_message(message, NordColors.GREEN, "✓")


def print_warning(message: str) -> None:
    print_message(message, NordColors.YELLOW, "⚠")


def print_error(message: str) -> None:
    print_message(message, NordColors.RED, "✗")


def print_step(message: str) -> None:
    print_message(message, NordColors.FROST_2, "→")


def print_status_report(status: Dict[str, Dict[str, str]], title: str) -> None:
    """Display a summary table of every phase."""
    table = Table(
        title=title,
        title_style=f"bold {NordColors.FROST_1}",
        border_style=f"{NordColors.FROST_3}",
        box=box.ROUNDED,
        show_lines=True,
    )
    table.add_column("Task", style=f"bold {NordColors.FROST_2}")
    table.add_column("Status", style="bold")
    table.add_column("Message")

    for key, data in status.items():
        style = STATUS_STYLES.get(data["status"].lower(), NordColors.FROST_2)
        table.add_row(
            key.replace("_", " ").title(),
            f"[{style}]{data['status'].upper()}[/{style}]",
            data["message"],
        )

    console.print(Panel(table, border_style=f"{NordColors.FROST_1}"))


def run_with_progress(description: str, func: Callable, *args, **kwargs) -> Any:
    """
    Run a function under a spinner and report how long it took.

    Exceptions from func are reported and re-raised.
    """
    start = time.time()
    with Progress(
        SpinnerColumn(style=f"bold {NordColors.FROST_1}"),
        TextColumn(f"[bold {NordColors.FROST_2}]{{task.description}}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task(description, total=None)
        try:
            result = func(*args, **kwargs)
        except Exception as e:
            elapsed = time.time() - start
            print_error(f"{description} failed in {elapsed:.2f}s: {e}")
            raise
    elapsed = time.time() - start
    print_success(f"{description} completed in {elapsed:.2f}s")
    return result


# ----------------------------------------------------------------
# Logger Setup
# ----------------------------------------------------------------
def setup_logger(
    log_file: Optional[Union[str, Path]] = None, level: int = logging.INFO
) -> logging.Logger:
    """
    Configure the package logger with Rich formatting and optional file logging.

    Args:
        log_file: Path to a persistent log file, or None for console only
        level: Console log level

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger("debian_workstation")
    logger.setLevel(logging.DEBUG)

    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    rich_handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        markup=False,
        show_time=True,
        show_path=False,
    )
    rich_handler.setLevel(level)
    logger.addHandler(rich_handler)

    if log_file is not None:
        log_file = Path(log_file)
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setFormatter(
                logging.Formatter(
                    "[%(asctime)s] [%(levelname)s] %(message)s", "%Y-%m-%d %H:%M:%S"
                )
            )
            file_handler.setLevel(logging.DEBUG)
            logger.addHandler(file_handler)
            os.chmod(str(log_file), 0o600)
        except OSError as e:
            logger.warning(f"Could not set up file logging to {log_file}: {e}")

    return logger
