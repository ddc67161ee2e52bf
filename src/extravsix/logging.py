"""Logging configuration using loguru with a DONE level for success markers."""

import sys

from loguru import logger

DONE_LEVEL = "DONE"

# Registered once per process; loguru raises ValueError for unknown levels
try:
    logger.level(DONE_LEVEL)
except ValueError:
    logger.level(DONE_LEVEL, no=25, color="<green><bold>")


def format_record(record: dict) -> str:
    """Format log record, prefixing non-INFO levels with their name."""
    if record["level"].name == "INFO":
        return "<level>{message}</level>\n{exception}"
    return "<level>{level}</level> <level>{message}</level>\n{exception}"


def setup_logging(log_level: str = "INFO", colorize: bool | None = None) -> None:
    """Configure loguru for the command line.

    Args:
        log_level: Minimum log level to output
        colorize: Force colour on or off. None lets loguru decide from the tty.
    """
    # Remove default handler
    logger.remove()

    logger.add(
        sys.stdout,
        format=format_record,
        level=log_level,
        colorize=colorize,
    )


def done(message: str) -> None:
    """Log a success marker at the DONE level."""
    logger.log(DONE_LEVEL, message)


__all__ = [
    "DONE_LEVEL",
    "done",
    "logger",
    "setup_logging",
]
