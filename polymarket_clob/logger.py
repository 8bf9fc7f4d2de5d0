"""
Logging setup for scripts and the CLI.

Library modules only call ``logging.getLogger(__name__)``; nothing is
configured until the application calls ``setup_logging()``. The console
goes through rich, the optional log file keeps everything at DEBUG.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
LOG_MAX_BYTES = int(os.getenv("LOG_MAX_BYTES", "10485760"))  # 10MB
LOG_BACKUP_COUNT = int(os.getenv("LOG_BACKUP_COUNT", "5"))

HANDLER_MARK = "_polymarket_clob_handler"


def setup_logging(
    verbose: bool = False,
    use_rich: bool = True,
    log_file: Optional[str] = None,
) -> logging.Logger:
    """
    Set up root logging.

    Args:
        verbose: DEBUG on the console (same as LOG_LEVEL=DEBUG)
        use_rich: Rich console handler instead of a plain stream handler
        log_file: Also write a rotating DEBUG log here

    Returns:
        The package logger
    """
    if verbose or LOG_LEVEL == "DEBUG":
        level = logging.DEBUG
    else:
        level = getattr(logging, LOG_LEVEL, logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Replace handlers from an earlier call, leave foreign ones alone
    for handler in list(root_logger.handlers):
        if getattr(handler, HANDLER_MARK, False):
            root_logger.removeHandler(handler)
            handler.close()

    if use_rich:
        console_handler = RichHandler(
            console=Console(stderr=True),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
    else:
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s"))
    console_handler.setLevel(level)
    setattr(console_handler, HANDLER_MARK, True)
    root_logger.addHandler(console_handler)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s"
        ))
        setattr(file_handler, HANDLER_MARK, True)
        root_logger.addHandler(file_handler)

    # Suppress noisy HTTP logs
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    return logging.getLogger("polymarket_clob")


def get_console() -> Console:
    return Console()


def print_success(message: str):
    get_console().print(f"[bold green]OK[/bold green] {message}")


def print_error(message: str):
    get_console().print(f"[bold red]ERROR[/bold red] {message}")
