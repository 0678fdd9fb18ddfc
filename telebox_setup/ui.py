"""
Console output and logging for the TeleBox installer.

Status lines go to a Nord-themed Rich console and to the ``telebox_setup``
logger. The log file handler is attached separately, once the installer
knows it is allowed to write under /var/log.
"""

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import pyfiglet
from rich.box import ROUNDED
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.style import Style
from rich.table import Table
from rich.text import Text
from rich.theme import Theme

APP_NAME = "TeleBox Setup"
APP_SUBTITLE = "Debian/Ubuntu installer with pm2 supervision"

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


# ----------------------------------------------------------------
# Nord-Themed Colors and Rich Console
# ----------------------------------------------------------------
class NordColors:
    """Nord color palette for consistent theming throughout the application."""

    # Polar Night (dark background)
    POLAR_NIGHT_1: str = "#2E3440"
    POLAR_NIGHT_4: str = "#4C566A"

    # Snow Storm (light text)
    SNOW_STORM_1: str = "#D8DEE9"
    SNOW_STORM_2: str = "#E5E9F0"

    # Frost (blue accents)
    FROST_1: str = "#8FBCBB"
    FROST_2: str = "#88C0D0"
    FROST_3: str = "#81A1C1"
    FROST_4: str = "#5E81AC"

    # Aurora (other accents)
    RED: str = "#BF616A"
    YELLOW: str = "#EBCB8B"
    GREEN: str = "#A3BE8C"
    PURPLE: str = "#B48EAD"

    @classmethod
    def get_frost_gradient(cls, text_lines: List[str]) -> List[Tuple[str, str]]:
        """Pair each line with a Frost color, cycling through the palette."""
        colors = [cls.FROST_1, cls.FROST_2, cls.FROST_3, cls.FROST_4]
        return [(line, colors[i % len(colors)]) for i, line in enumerate(text_lines)]


console = Console(
    theme=Theme(
        {
            "info": f"bold {NordColors.FROST_2}",
            "warning": f"bold {NordColors.YELLOW}",
            "error": f"bold {NordColors.RED}",
            "success": f"bold {NordColors.GREEN}",
            "prompt": f"bold {NordColors.PURPLE}",
            "command": f"bold {NordColors.FROST_4}",
            "path": f"italic {NordColors.FROST_1}",
        }
    ),
    highlight=False,
)

logger = logging.getLogger("telebox_setup")


# ----------------------------------------------------------------
# Logging Setup
# ----------------------------------------------------------------
def setup_logging(debug: bool = False) -> logging.Logger:
    """
    Configure the installer logger.

    Nothing is written to disk here; see ``add_file_handler``. With
    ``debug`` a RichHandler echoes every record to the console.
    """
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    if debug:
        rich_handler = RichHandler(rich_tracebacks=True, markup=True, console=console)
        rich_handler.setLevel(logging.DEBUG)
        logger.addHandler(rich_handler)
    return logger


def add_file_handler(log_file: Path) -> Optional[logging.Handler]:
    """
    Start writing the installer log to ``log_file``.

    Returns the handler, or None if the file cannot be opened. A missing
    log file never stops the installation.
    """
    log_file = Path(log_file)
    for handler in logger.handlers:
        if isinstance(handler, logging.FileHandler) and Path(
            handler.baseFilename
        ) == log_file.resolve():
            return handler
    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_file)
    except OSError as e:
        print_warning(f"Could not open log file {log_file}: {e}")
        return None
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    handler.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    logger.info("Logging initialized: %s", log_file)
    return handler


def close_file_handlers() -> None:
    """Detach and close every file handler on the installer logger."""
    for handler in list(logger.handlers):
        if isinstance(handler, logging.FileHandler):
            logger.removeHandler(handler)
            handler.close()


# ----------------------------------------------------------------
# Banner and Message Helpers
# ----------------------------------------------------------------
def create_header(version: str) -> Panel:
    """
    Create an ASCII art header using Pyfiglet with a Nord-themed gradient.

    Returns:
        Panel: A Rich Panel containing the styled header.
    """
    fonts = ["slant", "small", "standard"]
    ascii_art = ""
    width = min(console.width - 10, 80)

    for font in fonts:
        try:
            ascii_art = pyfiglet.Figlet(font=font, width=width).renderText(APP_NAME)
        except pyfiglet.FontNotFound:
            logger.debug("Font %s not available", font)
            continue
        if ascii_art.strip():
            break

    if not ascii_art.strip():
        ascii_art = f"=== {APP_NAME} ===\n"

    lines = [line for line in ascii_art.splitlines() if line.strip()]
    styled_text = ""
    for line, color in NordColors.get_frost_gradient(lines):
        escaped_line = line.replace("[", "\\[").replace("]", "\\]")
        styled_text += f"[bold {color}]{escaped_line}[/]\n"

    border = f"[{NordColors.FROST_3}]{'━' * min(60, max(width - 5, 10))}[/]"
    return Panel(
        Text.from_markup(f"{border}\n{styled_text}{border}"),
        border_style=Style(color=NordColors.FROST_1),
        padding=(1, 2),
        box=ROUNDED,
        title=f"[bold {NordColors.SNOW_STORM_2}]v{version}[/]",
        title_align="right",
        subtitle=f"[bold {NordColors.SNOW_STORM_1}]{APP_SUBTITLE}[/]",
        subtitle_align="center",
    )


def print_message(
    text: str, style: str = NordColors.FROST_2, prefix: str = "•"
) -> None:
    """Print a styled message to the console."""
    console.print(f"[{style}]{prefix} {text}[/{style}]")


def print_step(text: str) -> None:
    """Print a step description with arrow indication."""
    print_message(text, NordColors.FROST_3, "➜")
    logger.info(text)


def print_success(text: str) -> None:
    """Print a success message with checkmark."""
    print_message(text, NordColors.GREEN, "✓")
    logger.info(f"SUCCESS: {text}")


def print_warning(text: str) -> None:
    """Print a warning message with warning symbol."""
    print_message(text, NordColors.YELLOW, "⚠")
    logger.warning(text)


def print_error(text: str) -> None:
    """Print an error message with X symbol."""
    print_message(text, NordColors.RED, "✗")
    logger.error(text)


def print_section(title: str) -> None:
    """Print a section header rule."""
    console.print()
    console.rule(f"[bold {NordColors.FROST_2}]{title}[/]", style=NordColors.FROST_3)
    logger.info(f"==== {title} ====")


def display_panel(
    message: str, style: str = NordColors.FROST_2, title: Optional[str] = None
) -> None:
    """Display a message in a styled panel."""
    console.print(
        Panel(
            Text.from_markup(message),
            border_style=Style(color=style),
            padding=(1, 2),
            title=f"[bold {style}]{title}[/]" if title else None,
        )
    )


def print_table(
    title: str, columns: Iterable[str], rows: Iterable[Iterable[str]]
) -> None:
    """Print a Nord-styled table."""
    table = Table(
        show_header=True,
        header_style=f"bold {NordColors.FROST_1}",
        border_style=NordColors.FROST_3,
        title=f"[bold {NordColors.FROST_2}]{title}[/]",
        title_justify="center",
        box=ROUNDED,
    )
    for column in columns:
        table.add_column(column, style=NordColors.SNOW_STORM_1)
    for row in rows:
        table.add_row(*row)
    console.print(table)
